"""Admin routes - overview, registration review and user management."""
from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for
from flask_babel import gettext as _

from sparql_portal.backend.store import get_store
from sparql_portal.errors import PortalError
from sparql_portal.models.profile import ROLES, APPROVAL_STATUSES
from sparql_portal.models.registration_request import REQUEST_STATUSES
from sparql_portal.routes.auth import admin_required, permission_required
from sparql_portal.services import registrations

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/admin')
@admin_required
def dashboard():
    stats = registrations.registration_stats(get_store())
    return render_template('admin/dashboard.html', stats=stats)


# ==================== REGISTRATION REQUESTS ====================

@admin_bp.route('/admin/registrations')
@permission_required('registrations:review')
def registrations_list():
    status = request.args.get('status', 'pending')
    page = request.args.get('page', 1, type=int)
    try:
        result = registrations.list_requests(get_store(), status, page, current_app.config['PAGE_SIZE'])
    except ValueError:
        return redirect(url_for('admin.registrations_list'))
    return render_template('admin/registrations.html', result=result, status=status, statuses=REQUEST_STATUSES)


@admin_bp.route('/admin/registrations/<request_id>/approve', methods=['POST'])
@permission_required('registrations:review')
def approve_request(request_id):
    return _decide(request_id, registrations.approve, _('Registration request approved.'))


@admin_bp.route('/admin/registrations/<request_id>/reject', methods=['POST'])
@permission_required('registrations:review')
def reject_request(request_id):
    return _decide(request_id, registrations.reject, _('Registration request rejected.'))


def _decide(request_id, action, success_message):
    user_id = request.form.get('user_id', '')
    try:
        action(get_store(), request_id, user_id, reviewer_id=g.auth.user['id'])
    except PortalError as exc:
        flash(exc.message, 'error')
    else:
        flash(success_message, 'success')
    return redirect(url_for('admin.registrations_list', status=request.form.get('status', 'pending')))


# ==================== USER MANAGEMENT ====================

@admin_bp.route('/admin/users')
@permission_required('users:manage')
def users_list():
    """List users for admin management."""
    role = request.args.get('role', 'all')
    approval_status = request.args.get('approval_status', 'all')
    page = request.args.get('page', 1, type=int)
    try:
        result = registrations.list_users(get_store(), role, approval_status, page, current_app.config['PAGE_SIZE'])
    except ValueError:
        return redirect(url_for('admin.users_list'))
    return render_template(
        'admin/users.html', result=result, role=role, approval_status=approval_status,
        valid_roles=ROLES, approval_statuses=APPROVAL_STATUSES, current_user_id=g.auth.user['id'],
    )


@admin_bp.route('/admin/users/<user_id>/update', methods=['POST'])
@permission_required('users:manage')
def update_user(user_id):
    """Update a user's name, role and active flag."""
    updates = {
        'full_name': request.form.get('full_name', '').strip() or None,
        'role': request.form.get('role'),
        'is_active': request.form.get('is_active') == 'on',
    }
    if user_id == g.auth.user['id']:
        # Own role and active flag are not editable from the form
        del updates['role'], updates['is_active']
    elif not updates['role']:
        del updates['role']
    try:
        registrations.update_user(get_store(), g.auth.user['id'], user_id, updates)
    except ValueError as exc:
        flash(str(exc), 'error')
    except PortalError as exc:
        flash(exc.message, 'error')
    else:
        flash(_('User updated successfully.'), 'success')
    return redirect(url_for('admin.users_list'))
