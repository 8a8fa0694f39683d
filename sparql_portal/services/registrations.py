"""Registration approval workflow and admin user management.

A registration request moves ``pending -> approved`` or ``pending ->
rejected`` and never leaves a terminal state. Each decision updates the
request and the requester's profile inside one transaction.
"""
import logging
import math
from collections import namedtuple

from sparql_portal.errors import (
    AuthError, DataStoreError, InvalidTransition, RegistrationNotFound, SelfModificationError,
)
from sparql_portal.models.profile import (
    ROLES, GUEST, USER, ADMIN, APPROVAL_STATUSES, APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_DECLINED,
)
from sparql_portal.models.registration_request import (
    REQUEST_STATUSES, STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED,
)

logger = logging.getLogger(__name__)

EDITABLE_USER_FIELDS = ('full_name', 'role', 'is_active')

# Profile fields written by each terminal request status
PROFILE_CHANGES = {
    STATUS_APPROVED: {'role': USER, 'approval_status': APPROVAL_APPROVED},
    STATUS_REJECTED: {'approval_status': APPROVAL_DECLINED},
}

# Approval status a profile should show for each request status
EXPECTED_APPROVAL = {
    STATUS_PENDING: APPROVAL_PENDING,
    STATUS_APPROVED: APPROVAL_APPROVED,
    STATUS_REJECTED: APPROVAL_DECLINED,
}

Inconsistency = namedtuple('Inconsistency', ['kind', 'user_id', 'request_id', 'detail'])


class Page(namedtuple('Page', ['items', 'page', 'limit', 'total', 'pages'])):
    __slots__ = ()

    def pagination(self):
        return {'page': self.page, 'limit': self.limit, 'total': self.total, 'pages': self.pages}


def _data(result):
    if result.error:
        raise DataStoreError(result.error.message)
    return result.data


def _paginate(query, page, limit):
    if page < 1 or limit < 1:
        raise ValueError('page and limit must be positive')
    start = (page - 1) * limit
    result = query.order('created_at', desc=True).range(start, start + limit - 1).execute()
    rows = _data(result)
    total = result.count or 0
    return Page(rows, page, limit, total, math.ceil(total / limit))


# ==================== Listing ====================

def list_requests(store, status=STATUS_PENDING, page=1, limit=10):
    """Registration requests, newest first, each with its requester's profile."""
    if status != 'all' and status not in REQUEST_STATUSES:
        raise ValueError(f'Invalid status: {status}')

    query = store.table('registration_requests').select(count=True)
    if status != 'all':
        query = query.eq('status', status)
    result = _paginate(query, page, limit)

    user_ids = {row['user_id'] for row in result.items}
    profiles = {}
    if user_ids:
        profiles = {p['id']: p for p in _data(store.table('profiles').select().in_('id', user_ids).execute())}
    for row in result.items:
        row['profile'] = profiles.get(row['user_id'])
    return result


def list_users(store, role='all', approval_status='all', page=1, limit=10):
    if role != 'all' and role not in ROLES:
        raise ValueError(f'Invalid role: {role}')
    if approval_status != 'all' and approval_status not in APPROVAL_STATUSES:
        raise ValueError(f'Invalid approval status: {approval_status}')

    query = store.table('profiles').select(count=True)
    if role != 'all':
        query = query.eq('role', role)
    if approval_status != 'all':
        query = query.eq('approval_status', approval_status)
    return _paginate(query, page, limit)


def get_request(store, request_id):
    rows = _data(store.table('registration_requests').select().eq('id', request_id).execute())
    if not rows:
        raise RegistrationNotFound()
    return rows[0]


def registration_stats(store):
    """Counts for the admin overview."""
    def count(table, **filters):
        query = store.table(table).select(count=True, head=True)
        for column, value in filters.items():
            query = query.eq(column, value)
        result = query.execute()
        _data(result)
        return result.count or 0

    return {
        'total_users': count('profiles'),
        'active_users': count('profiles', is_active=True),
        'pending_registrations': count('registration_requests', status=STATUS_PENDING),
        'approved_registrations': count('registration_requests', status=STATUS_APPROVED),
        'rejected_registrations': count('registration_requests', status=STATUS_REJECTED),
    }


# ==================== Decisions ====================

def approve(store, request_id, user_id, reviewer_id=None):
    """Approve a pending request and promote its profile from guest to user."""
    return _settle(store, request_id, user_id, STATUS_APPROVED, reviewer_id)


def reject(store, request_id, user_id, reviewer_id=None):
    """Reject a pending request. The profile keeps the guest role."""
    return _settle(store, request_id, user_id, STATUS_REJECTED, reviewer_id)


def _settle(store, request_id, user_id, target, reviewer_id):
    with store.atomic():
        changed = _data(
            store.table('registration_requests')
            .update({'status': target, 'reviewed_by': reviewer_id})
            .eq('id', request_id)
            .eq('user_id', user_id)
            .eq('status', STATUS_PENDING)
            .execute()
        )
        if not changed:
            current = get_request(store, request_id)
            if current['user_id'] != user_id:
                raise RegistrationNotFound()
            if current['status'] == target:
                logger.info("Registration request %s already %s", request_id, target)
                return current
            raise InvalidTransition(f'Registration request is already {current["status"]}.')

        profiles = _data(store.table('profiles').update(PROFILE_CHANGES[target]).eq('id', user_id).execute())
        if not profiles:
            raise RegistrationNotFound('No profile exists for this registration request.')

    logger.info("Registration request %s %s by %s", request_id, target, reviewer_id)
    return changed[0]


def decide_user(store, user_id, approved, reviewer_id=None):
    """Approve or decline a user directly.

    The user's pending registration request, if any, is settled with the same
    decision. Without one, the profile itself must still be pending.
    """
    target = STATUS_APPROVED if approved else STATUS_REJECTED
    pending = _data(
        store.table('registration_requests').select()
        .eq('user_id', user_id).eq('status', STATUS_PENDING).execute()
    )
    if pending:
        _settle(store, pending[0]['id'], user_id, target, reviewer_id)
        return _get_profile(store, user_id)

    profile = _get_profile(store, user_id)
    wanted = EXPECTED_APPROVAL[target]
    if profile['approval_status'] == wanted:
        return profile
    if profile['approval_status'] != APPROVAL_PENDING:
        raise InvalidTransition(f'User is already {profile["approval_status"]}.')

    changed = _data(
        store.table('profiles').update(PROFILE_CHANGES[target])
        .eq('id', user_id).eq('approval_status', APPROVAL_PENDING).execute()
    )
    if not changed:
        raise InvalidTransition('User was reviewed by someone else.')
    logger.info("User %s %s by %s", user_id, wanted, reviewer_id)
    return changed[0]


def _get_profile(store, user_id):
    rows = _data(store.table('profiles').select().eq('id', user_id).execute())
    if not rows:
        raise RegistrationNotFound('User not found.')
    return rows[0]


# ==================== User management ====================

def update_user(store, actor_id, user_id, updates):
    """Admin edit of full name, role and active flag."""
    unknown = set(updates) - set(EDITABLE_USER_FIELDS)
    if unknown:
        raise ValueError(f'Fields cannot be updated: {", ".join(sorted(unknown))}')
    if 'role' in updates and updates['role'] not in ROLES:
        raise ValueError(f'Invalid role: {updates["role"]}')
    if 'is_active' in updates and not isinstance(updates['is_active'], bool):
        raise ValueError('is_active must be a boolean')

    if user_id == actor_id:
        if updates.get('role', ADMIN) != ADMIN or updates.get('is_active', True) is False:
            raise SelfModificationError()

    profile = _get_profile(store, user_id)
    if updates.get('role') in (USER, ADMIN) and profile['approval_status'] != APPROVAL_APPROVED:
        raise InvalidTransition('Approve the registration before granting a role.')

    changed = _data(store.table('profiles').update(updates).eq('id', user_id).execute())
    logger.info("User %s updated by %s: %s", user_id, actor_id, sorted(updates))
    return changed[0]


def update_own_profile(store, user_id, full_name):
    changed = _data(store.table('profiles').update({'full_name': full_name}).eq('id', user_id).execute())
    if not changed:
        raise RegistrationNotFound('User not found.')
    return changed[0]


def create_admin_account(client, store, email, password, full_name=None):
    """Bootstrap an approved admin without going through the approval queue."""
    result = client.sign_up(email, password)
    if result.error:
        raise AuthError(result.error.message)
    user = result.data['user']
    with store.atomic():
        profile = _data(
            store.table('profiles').insert({
                'id': user['id'],
                'email': user['email'],
                'full_name': full_name,
                'role': ADMIN,
                'approval_status': APPROVAL_APPROVED,
            }).execute()
        )[0]
    client.sign_out()
    return profile


# ==================== Reconciliation ====================

def find_inconsistencies(store, accounts=None):
    """Compare requests, profiles and accounts and report where they disagree.

    Only detects; nothing is repaired.
    """
    requests = _data(store.table('registration_requests').select().order('created_at').execute())
    profiles = {p['id']: p for p in _data(store.table('profiles').select().execute())}
    problems = []

    requested_users = set()
    for req in requests:
        profile = profiles.get(req['user_id'])
        if profile is None:
            problems.append(Inconsistency('missing_profile', req['user_id'], req['id'],
                                          'registration request has no profile'))
            continue
        requested_users.add(req['user_id'])
        expected = EXPECTED_APPROVAL[req['status']]
        if profile['approval_status'] != expected:
            problems.append(Inconsistency(
                'status_mismatch', req['user_id'], req['id'],
                f'request is {req["status"]} but profile is {profile["approval_status"]}',
            ))
        elif req['status'] == STATUS_APPROVED and profile['role'] == GUEST:
            problems.append(Inconsistency('role_mismatch', req['user_id'], req['id'],
                                          'request is approved but profile role is guest'))

    for profile in profiles.values():
        if profile['approval_status'] == APPROVAL_PENDING and profile['id'] not in requested_users:
            problems.append(Inconsistency('missing_request', profile['id'], None,
                                          'profile is pending with no registration request'))

    for account in accounts or ():
        if account['id'] not in profiles:
            problems.append(Inconsistency('orphan_account', account['id'], None,
                                          f'account {account["email"]} has no profile'))
    return problems
