"""Authentication routes, identity loading, route guard and decorators."""
import re
from functools import wraps

from flask import (
    Blueprint, current_app, flash, g, jsonify, redirect, render_template, request, session, url_for,
)
from flask_babel import gettext as _

from sparql_portal.backend.identity import identity
from sparql_portal.backend.store import get_store
from sparql_portal.errors import AuthError, PortalError
from sparql_portal.models.profile import GUEST
from sparql_portal.services.access import LOGIN_ROUTE, can, decide
from sparql_portal.services.auth_state import AuthState
from sparql_portal.services.registrations import update_own_profile

auth_bp = Blueprint('auth', __name__)


def is_valid_email(email):
    return re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', email or '') is not None


# ==================== Identity per request ====================

def _remember_session(snapshot):
    """Keep the session cookie pointing at the provider's current session."""
    if snapshot.is_loading:
        return
    if snapshot.session is not None:
        session['access_token'] = snapshot.session.access_token
    else:
        session.pop('access_token', None)


@auth_bp.before_app_request
def load_identity():
    if request.endpoint == 'static':
        return None
    g.auth = AuthState(identity.client(session.get('access_token')), get_store())
    g.auth.subscribe(_remember_session)
    g.auth.start()
    return None


# Endpoints that act on the session rather than render a page
ACTION_ENDPOINTS = ('auth.logout', 'main.set_language')


@auth_bp.before_app_request
def enforce_route_access():
    """Redirect page navigations the current identity may not see.

    ``load_identity`` resolves the identity before this runs, so the guard
    never sees a loading state here.
    """
    if request.endpoint == 'static' or request.endpoint in ACTION_ENDPOINTS:
        return None
    if request.path.startswith('/api/'):
        return None
    decision = decide(request.path, g.auth.user)
    if decision.redirect_to is None:
        return None
    if decision.redirect_to == LOGIN_ROUTE and g.auth.session is not None:
        current_app.logger.warning("Session for %s has no profile", g.auth.session.user_id)
        flash(_('Your account has no profile. Please contact an administrator.'), 'error')
    return redirect(decision.redirect_to)


@auth_bp.teardown_app_request
def release_identity(exc):
    state = g.pop('auth', None)
    if state is not None:
        state.close()


# ==================== RBAC Decorators (MUST be defined before routes that use them) ====================

def permission_required(action, api=False):
    """Server-side check of ``can(role, action)``.

    JSON endpoints answer 401 without a session and 403 without the
    permission; pages redirect to the login or unauthorized page instead.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth = g.auth
            if auth.session is None:
                if api:
                    return jsonify(error='Authentication required'), 401
                return redirect(url_for('auth.login'))
            if auth.user is None or not can(auth.user['role'], action):
                if api:
                    return jsonify(error='Forbidden. Insufficient permissions.'), 403
                return redirect(url_for('main.unauthorized'))
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    return permission_required('admin:access')(f)


def _unexpected(message):
    current_app.logger.exception(message)
    flash(_('An error occurred. Please try again later.'), 'error')


# ==================== Routes ====================

@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')
        full_name = request.form.get('full_name', '').strip()
        reason = request.form.get('reason', '').strip()

        error = None
        if not is_valid_email(email):
            error = _('Please enter a valid email address.')
        elif not full_name:
            error = _('Full name is required.')
        elif not password:
            error = _('Password is required.')

        if error is None:
            try:
                g.auth.sign_up(email, password, full_name, reason or None)
            except AuthError as exc:
                flash(exc.message, 'error')
            except Exception:
                _unexpected('Registration failed')
            else:
                flash(_('Registration submitted. An administrator will review your request.'), 'success')
                return redirect(url_for('auth.pending_approval'))
        else:
            flash(error, 'error')

    return render_template('auth/register.html')


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')
        try:
            g.auth.sign_in(email, password)
        except AuthError as exc:
            flash(exc.message, 'error')
        except Exception:
            _unexpected('Sign-in failed')
        else:
            return redirect(url_for('main.dashboard'))

    return render_template('auth/login.html')


@auth_bp.route('/logout')
def logout():
    g.auth.sign_out()
    return redirect('/')


@auth_bp.route('/forgot-password', methods=['GET', 'POST'])
def forgot_password():
    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        if not is_valid_email(email):
            flash(_('Please enter a valid email address.'), 'error')
        else:
            try:
                g.auth.request_password_reset(email, url_for('auth.reset_password', _external=True))
            except AuthError as exc:
                flash(exc.message, 'error')
            except Exception:
                _unexpected('Password reset request failed')
            else:
                flash(_('If an account exists for that email, a reset link is on its way.'), 'success')
                return redirect(url_for('auth.login'))

    return render_template('auth/forgot_password.html')


@auth_bp.route('/reset-password', methods=['GET', 'POST'])
def reset_password():
    token = request.args.get('token')
    if token and request.method == 'GET':
        try:
            g.auth.exchange_recovery_token(token)
        except AuthError as exc:
            flash(exc.message, 'error')

    # Only a live session may set a new password
    if g.auth.session is None:
        return render_template('auth/reset_password.html', link_valid=False)

    if request.method == 'POST':
        password = request.form.get('password', '')
        confirm_password = request.form.get('confirm_password', '')
        if password != confirm_password:
            flash(_('Passwords do not match.'), 'error')
        else:
            try:
                g.auth.reset_password(password)
            except AuthError as exc:
                flash(exc.message, 'error')
            except Exception:
                _unexpected('Password reset failed')
            else:
                g.auth.sign_out()
                flash(_('Your password has been reset. Please sign in.'), 'success')
                return redirect(url_for('auth.login'))

    return render_template('auth/reset_password.html', link_valid=True)


@auth_bp.route('/pending-approval')
def pending_approval():
    user = g.auth.user
    if user and user['role'] != GUEST:
        return redirect(url_for('main.dashboard'))
    return render_template('auth/pending_approval.html', user=user)


@auth_bp.route('/profile', methods=['GET', 'POST'])
@permission_required('profile:edit')
def profile():
    if request.method == 'POST':
        if request.form.get('action') == 'password':
            _change_password()
        else:
            _update_profile()
        return redirect(url_for('auth.profile'))

    return render_template('auth/profile.html', user=g.auth.user)


def _update_profile():
    full_name = request.form.get('full_name', '').strip()
    if not full_name:
        flash(_('Full name is required.'), 'error')
        return
    try:
        update_own_profile(get_store(), g.auth.user['id'], full_name)
        g.auth.refresh_session()
    except PortalError as exc:
        flash(exc.message, 'error')
    else:
        flash(_('Profile updated successfully.'), 'success')


def _change_password():
    current_password = request.form.get('current_password', '')
    new_password = request.form.get('new_password', '')
    confirm_password = request.form.get('confirm_password', '')

    if not current_password:
        flash(_('Current password is required.'), 'error')
        return
    if len(new_password) < current_app.config['MIN_PASSWORD_LENGTH']:
        flash(_('Password must be at least %(n)d characters.', n=current_app.config['MIN_PASSWORD_LENGTH']), 'error')
        return
    if new_password != confirm_password:
        flash(_('Passwords do not match.'), 'error')
        return

    try:
        g.auth.verify_password(current_password)
        g.auth.reset_password(new_password)
    except AuthError as exc:
        flash(exc.message, 'error')
    except Exception:
        _unexpected('Password change failed')
    else:
        flash(_('Your password has been changed successfully.'), 'success')
