"""Admin JSON API - registrations and users."""
from flask import Blueprint, current_app, g, jsonify, request

from sparql_portal.backend.store import get_store
from sparql_portal.errors import (
    DataStoreError, InvalidTransition, RegistrationNotFound, SelfModificationError,
)
from sparql_portal.routes.auth import permission_required
from sparql_portal.services import registrations

api_bp = Blueprint('api', __name__, url_prefix='/api/admin')


def error_response(message, status):
    return jsonify(error=message), status


@api_bp.errorhandler(RegistrationNotFound)
def handle_not_found(exc):
    return error_response(exc.message, 404)


@api_bp.errorhandler(InvalidTransition)
def handle_invalid_transition(exc):
    return error_response(exc.message, 409)


@api_bp.errorhandler(SelfModificationError)
def handle_self_modification(exc):
    return error_response(exc.message, 403)


@api_bp.errorhandler(DataStoreError)
def handle_store_error(exc):
    current_app.logger.error('Store failure: %s', exc.message)
    return error_response('Failed to process request', 500)


@api_bp.errorhandler(ValueError)
def handle_bad_input(exc):
    return error_response(str(exc), 400)


def _paging():
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', current_app.config['PAGE_SIZE'], type=int)
    return page, limit


@api_bp.route('/registrations', methods=['GET'])
@permission_required('registrations:review', api=True)
def list_registrations():
    page, limit = _paging()
    result = registrations.list_requests(get_store(), request.args.get('status', 'pending'), page, limit)
    return jsonify(requests=result.items, pagination=result.pagination())


@api_bp.route('/registrations', methods=['POST'])
@permission_required('registrations:review', api=True)
def decide_registration():
    body = request.get_json(silent=True) or {}
    request_id = body.get('requestId')
    approved = body.get('approved')
    if not request_id or not isinstance(approved, bool):
        return error_response('Missing required fields', 400)

    store = get_store()
    pending = registrations.get_request(store, request_id)
    action = registrations.approve if approved else registrations.reject
    updated = action(store, request_id, pending['user_id'], reviewer_id=g.auth.user['id'])
    return jsonify(
        message='Registration request approved' if approved else 'Registration request rejected',
        request=updated,
    )


@api_bp.route('/users', methods=['GET'])
@permission_required('users:manage', api=True)
def list_users():
    page, limit = _paging()
    result = registrations.list_users(
        get_store(),
        role=request.args.get('role', 'all'),
        approval_status=request.args.get('approvalStatus', 'all'),
        page=page,
        limit=limit,
    )
    return jsonify(users=result.items, pagination=result.pagination())


@api_bp.route('/users', methods=['PATCH'])
@permission_required('users:manage', api=True)
def update_user():
    body = request.get_json(silent=True) or {}
    user_id = body.get('userId')
    updates = body.get('updates')
    if not user_id or not isinstance(updates, dict) or not updates:
        return error_response('Missing required fields', 400)

    user = registrations.update_user(get_store(), g.auth.user['id'], user_id, updates)
    return jsonify(message='User updated successfully', user=user)


@api_bp.route('/users/approve', methods=['POST'])
@permission_required('users:manage', api=True)
def approve_user():
    body = request.get_json(silent=True) or {}
    user_id = body.get('userId')
    if not user_id:
        return error_response('User ID is required', 400)

    approved = bool(body.get('approved'))
    user = registrations.decide_user(get_store(), user_id, approved, reviewer_id=g.auth.user['id'])
    return jsonify(message=f'User {"approved" if approved else "declined"} successfully', user=user)
