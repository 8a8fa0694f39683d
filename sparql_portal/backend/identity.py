"""Identity provider: accounts, sessions and password recovery.

A :class:`IdentityClient` is bound to one browser session (its access token)
and notifies subscribers of every change to that session through a blinker
signal, in emission order.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from blinker import Namespace
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from sparql_portal.backend.result import AuthApiError, Result
from sparql_portal.models import db, AuthAccount, AuthSession
from sparql_portal.models.base import utcnow

logger = logging.getLogger(__name__)

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'
PASSWORD_RECOVERY = 'PASSWORD_RECOVERY'
USER_UPDATED = 'USER_UPDATED'

SESSION_PASSWORD = 'password'
SESSION_RECOVERY = 'recovery'

_signals = Namespace()
auth_state_changed = _signals.signal('auth-state-changed')


@dataclass(frozen=True)
class Session:
    access_token: str
    user_id: str
    email: str
    kind: str
    expires_at: datetime

    @property
    def user(self):
        return {'id': self.user_id, 'email': self.email}

    @property
    def is_recovery(self):
        return self.kind == SESSION_RECOVERY


class Subscription:
    def __init__(self, receiver, sender):
        self._receiver = receiver
        self._sender = sender
        self.active = True

    def unsubscribe(self):
        if self.active:
            auth_state_changed.disconnect(self._receiver, sender=self._sender)
            self.active = False


def _log_recovery_link(email, link):
    logger.info("Password recovery link for %s: %s", email, link)


class IdentityProvider:
    """Flask extension handing out per-session identity clients."""

    def __init__(self, app=None):
        self.mailer = _log_recovery_link
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions['identity_provider'] = self

    def client(self, access_token=None):
        return IdentityClient(self, access_token)

    def list_users(self):
        """Admin listing of every account, independent of any profile row."""
        try:
            accounts = db.session.scalars(db.select(AuthAccount).order_by(AuthAccount.created_at)).all()
        except SQLAlchemyError as exc:
            logger.exception("Failed to list accounts")
            return Result(error=AuthApiError(str(exc), status=500))
        return Result(data=[{'id': a.id, 'email': a.email} for a in accounts])

    def _serializer(self):
        return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt='password-recovery')


class IdentityClient:
    def __init__(self, provider, access_token=None):
        self._provider = provider
        self.access_token = access_token

    # ==================== Subscriptions ====================

    def on_auth_state_change(self, callback):
        def receiver(sender, event, session):
            callback(event, session)
        auth_state_changed.connect(receiver, sender=self, weak=False)
        return Subscription(receiver, self)

    def _emit(self, event, session):
        logger.debug("Auth event %s", event)
        auth_state_changed.send(self, event=event, session=session)

    # ==================== Sessions ====================

    def get_session(self):
        if not self.access_token:
            return Result(data=None)
        row = db.session.get(AuthSession, self.access_token)
        if row is None or row.revoked or row.expires_at <= utcnow():
            return Result(data=None)
        return Result(data=self._to_session(row))

    def _issue_session(self, account, kind=SESSION_PASSWORD):
        lifetime = current_app.config['SESSION_LIFETIME']
        row = AuthSession(
            access_token=secrets.token_urlsafe(32),
            user_id=account.id,
            kind=kind,
            expires_at=utcnow() + timedelta(seconds=lifetime),
        )
        db.session.add(row)
        db.session.commit()
        self.access_token = row.access_token
        return self._to_session(row, account)

    @staticmethod
    def _to_session(row, account=None):
        account = account or row.account
        return Session(
            access_token=row.access_token,
            user_id=account.id,
            email=account.email,
            kind=row.kind,
            expires_at=row.expires_at,
        )

    def _weak_password(self, password):
        minimum = current_app.config['MIN_PASSWORD_LENGTH']
        if not password or len(password) < minimum:
            return AuthApiError(f'Password should be at least {minimum} characters.', status=422)
        return None

    # ==================== Accounts ====================

    def sign_up(self, email, password):
        email = (email or '').strip().lower()
        if not email:
            return Result(error=AuthApiError('Email is required.', status=422))
        error = self._weak_password(password)
        if error:
            return Result(error=error)

        account = AuthAccount(email=email, password_hash=generate_password_hash(password))
        db.session.add(account)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return Result(error=AuthApiError('User already registered', status=422))
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Failed to create account for %s", email)
            return Result(error=AuthApiError(str(exc), status=500))

        logger.info("Account created for %s", email)
        session = self._issue_session(account)
        self._emit(SIGNED_IN, session)
        return Result(data={'user': session.user, 'session': session})

    def sign_in_with_password(self, email, password):
        email = (email or '').strip().lower()
        account = db.session.scalar(db.select(AuthAccount).filter_by(email=email))
        if account is None or not check_password_hash(account.password_hash, password or ''):
            logger.info("Rejected sign-in for %s", email)
            return Result(error=AuthApiError('Invalid login credentials', status=400))

        session = self._issue_session(account)
        self._emit(SIGNED_IN, session)
        return Result(data={'user': session.user, 'session': session})

    def sign_out(self):
        if self.access_token:
            row = db.session.get(AuthSession, self.access_token)
            if row is not None:
                row.revoked = True
                db.session.commit()
        self.access_token = None
        self._emit(SIGNED_OUT, None)
        return Result(data=None)

    def update_user(self, password=None):
        current = self.get_session().data
        if current is None:
            return Result(error=AuthApiError('Auth session missing!', status=401))
        error = self._weak_password(password)
        if error:
            return Result(error=error)

        account = db.session.get(AuthAccount, current.user_id)
        account.password_hash = generate_password_hash(password)
        db.session.commit()
        self._emit(USER_UPDATED, current)
        return Result(data={'user': current.user})

    # ==================== Password recovery ====================

    def reset_password_for_email(self, email, redirect_to):
        email = (email or '').strip().lower()
        account = db.session.scalar(db.select(AuthAccount).filter_by(email=email))
        # Same answer whether or not the address is known
        if account is not None:
            token = self._provider._serializer().dumps({'uid': account.id, 'ph': account.password_hash[-12:]})
            separator = '&' if '?' in redirect_to else '?'
            self._provider.mailer(email, f'{redirect_to}{separator}token={token}')
        return Result(data={})

    def exchange_recovery_token(self, token):
        max_age = current_app.config['RECOVERY_TOKEN_MAX_AGE']
        try:
            payload = self._provider._serializer().loads(token, max_age=max_age)
        except SignatureExpired:
            return Result(error=AuthApiError('Email link is invalid or has expired', status=403))
        except BadSignature:
            return Result(error=AuthApiError('Email link is invalid or has expired', status=403))

        account = db.session.get(AuthAccount, payload.get('uid'))
        # A token is spent once the password it was issued against changes
        if account is None or account.password_hash[-12:] != payload.get('ph'):
            return Result(error=AuthApiError('Email link is invalid or has expired', status=403))

        session = self._issue_session(account, kind=SESSION_RECOVERY)
        self._emit(PASSWORD_RECOVERY, session)
        return Result(data={'user': session.user, 'session': session})


identity = IdentityProvider()
