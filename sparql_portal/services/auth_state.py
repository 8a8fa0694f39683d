"""Session/identity resolver.

``AuthState`` owns the current ``user`` (profile row), ``session`` and
``is_loading`` flag for one browser session. It is the only writer of that
state; readers register with :meth:`AuthState.subscribe` and are called with
an :class:`AuthSnapshot` after every change.

Each identity-provider event triggers a profile refresh. A refresh that is
overtaken by a newer one before it finishes is discarded, so the published
profile always belongs to the latest event.
"""
import logging
import threading
from collections import namedtuple

from sparql_portal.errors import AuthError, DataStoreError
from sparql_portal.models.profile import GUEST, APPROVAL_PENDING
from sparql_portal.models.registration_request import STATUS_PENDING

logger = logging.getLogger(__name__)

AuthSnapshot = namedtuple('AuthSnapshot', ['user', 'session', 'is_loading'])


class AuthState:
    def __init__(self, client, store):
        self._client = client
        self._store = store
        self.user = None
        self.session = None
        self.is_loading = True
        self._listeners = []
        self._subscription = None
        self._lock = threading.Lock()
        self._generation = 0

    # ==================== Lifecycle ====================

    def start(self):
        """Subscribe to provider changes and resolve the current identity."""
        if self._subscription is None:
            self._subscription = self._client.on_auth_state_change(self._on_auth_event)
        self._set_loading(True)
        result = self._client.get_session()
        self._resolve(result.data)
        return self

    def close(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ==================== Publish / subscribe ====================

    def snapshot(self):
        return AuthSnapshot(self.user, self.session, self.is_loading)

    def subscribe(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _publish(self):
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _set_loading(self, value):
        if self.is_loading != value:
            self.is_loading = value
            self._publish()

    # ==================== Resolution ====================

    def _on_auth_event(self, event, session):
        logger.debug("Resolving identity after %s", event)
        self._resolve(session)

    def _fetch_profile(self, user_id):
        result = self._store.table('profiles').select().eq('id', user_id).execute()
        if result.error:
            logger.warning("Profile lookup failed for %s: %s", user_id, result.error.message)
            return None
        return result.data[0] if result.data else None

    def _resolve(self, session):
        """Load the profile for ``session`` and publish it unless superseded."""
        with self._lock:
            self._generation += 1
            generation = self._generation

        profile = self._fetch_profile(session.user_id) if session is not None else None

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding superseded profile refresh")
                return False
            self.session = session
            self.user = profile
            self.is_loading = False
        self._publish()
        return True

    # ==================== Operations ====================

    def sign_up(self, email, password, full_name, reason=None):
        """Create an account plus its guest profile and pending registration request."""
        self._set_loading(True)
        try:
            result = self._client.sign_up(email, password)
            if result.error:
                raise AuthError(result.error.message)

            session = result.data['session']
            user_id = result.data['user']['id']
            if user_id:
                try:
                    with self._store.atomic():
                        self._insert(
                            'profiles',
                            {
                                'id': user_id,
                                'email': result.data['user']['email'],
                                'full_name': full_name,
                                'role': GUEST,
                                'approval_status': APPROVAL_PENDING,
                            },
                        )
                        self._insert(
                            'registration_requests',
                            {
                                'user_id': user_id,
                                'email': result.data['user']['email'],
                                'full_name': full_name,
                                'reason': reason or None,
                                'status': STATUS_PENDING,
                            },
                        )
                except DataStoreError:
                    logger.error("Account %s created without profile or registration request", user_id)
                    raise AuthError('Your account could not be registered. Please try again later.')
                logger.info("Registration request filed for %s", email)
            self._resolve(session)
        finally:
            self._set_loading(False)
        return self.user

    def _insert(self, table, row):
        result = self._store.table(table).insert(row).execute()
        if result.error:
            raise DataStoreError(result.error.message)
        return result.data[0]

    def sign_in(self, email, password):
        self._set_loading(True)
        try:
            result = self._client.sign_in_with_password(email, password)
            if result.error:
                raise AuthError(result.error.message)
            self._resolve(result.data['session'])
        finally:
            self._set_loading(False)
        return self.user

    def sign_out(self):
        self._client.sign_out()
        self._resolve(None)

    def request_password_reset(self, email, redirect_to):
        result = self._client.reset_password_for_email(email, redirect_to)
        if result.error:
            raise AuthError(result.error.message)

    def exchange_recovery_token(self, token):
        """Open a recovery session from the link sent by :meth:`request_password_reset`."""
        result = self._client.exchange_recovery_token(token)
        if result.error:
            raise AuthError(result.error.message)
        self._resolve(result.data['session'])
        return self.session

    def reset_password(self, new_password):
        result = self._client.update_user(password=new_password)
        if result.error:
            raise AuthError(result.error.message)

    def verify_password(self, password):
        """Re-authenticate the signed-in user, e.g. before a password change."""
        if self.user is None:
            raise AuthError('Auth session missing!')
        result = self._client.sign_in_with_password(self.user['email'], password)
        if result.error:
            raise AuthError('Current password is incorrect')
        self._resolve(result.data['session'])

    def refresh_session(self):
        """Re-read session and profile, e.g. after the profile was edited."""
        result = self._client.get_session()
        self._resolve(result.data)
        return self.user
