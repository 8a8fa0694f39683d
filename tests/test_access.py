"""Route guard decisions and the permission table."""
import pytest

from sparql_portal.services.access import (
    ALLOW, PROTECTED_ROUTES, PUBLIC_ROUTES, REDIRECT, WAIT, can, decide, find_route, path_matches,
)

ROLES = ('guest', 'user', 'admin')

GATED_PATHS = {
    '/admin': {'admin'},
    '/admin/users': {'admin'},
    '/admin/registrations': {'admin'},
    '/dashboard': {'user', 'admin'},
    '/query-builder': {'user', 'admin'},
    '/profile': {'user', 'admin'},
}


def profile(role):
    return {'id': 'u1', 'email': 'a@x.com', 'role': role}


def test_loading_identity_makes_no_decision():
    assert decide('/admin', None, is_loading=True).action == WAIT
    assert decide('/admin', profile('user'), is_loading=True).redirect_to is None


@pytest.mark.parametrize('path', PUBLIC_ROUTES)
@pytest.mark.parametrize('role', (None,) + ROLES)
def test_public_routes_always_allowed(path, role):
    user = profile(role) if role else None
    assert decide(path, user).action == ALLOW


@pytest.mark.parametrize('path', sorted(GATED_PATHS))
def test_anonymous_redirected_to_login(path):
    decision = decide(path, None)
    assert decision.action == REDIRECT
    assert decision.redirect_to == '/login'


@pytest.mark.parametrize('path', sorted(GATED_PATHS) + ['/unauthorized', '/somewhere-else'])
def test_guest_redirected_to_pending_approval(path):
    assert decide(path, profile('guest')).redirect_to == '/pending-approval'


def test_guest_may_see_pending_approval():
    assert decide('/pending-approval', profile('guest')).action == ALLOW


@pytest.mark.parametrize('path,allowed', sorted(GATED_PATHS.items()))
@pytest.mark.parametrize('role', ('user', 'admin'))
def test_role_gated_paths(path, allowed, role):
    decision = decide(path, profile(role))
    if role in allowed:
        assert decision.action == ALLOW
    else:
        assert decision.redirect_to == '/unauthorized'


def test_prefix_matching_stops_at_segment_boundary():
    assert path_matches('/admin', '/admin')
    assert path_matches('/admin/users', '/admin')
    assert not path_matches('/admin-extra', '/admin')
    assert not path_matches('/administrator', '/admin')
    assert find_route('/admin-extra') is None
    assert decide('/admin-extra', profile('user')).action == ALLOW


def test_root_public_route_only_matches_exactly():
    # "/" must not make every path public
    assert path_matches('/', '/')
    assert not path_matches('/dashboard', '/')
    assert decide('/dashboard', None).redirect_to == '/login'


def test_first_matching_protected_route_wins():
    assert find_route('/admin/users').path == '/admin'
    assert [route.path for route in PROTECTED_ROUTES][0] == '/admin'


def test_can_uses_shared_permission_table():
    assert can('admin', 'registrations:review')
    assert not can('user', 'registrations:review')
    assert can('user', 'queries:run')
    assert not can('guest', 'queries:run')
    assert not can('admin', 'no:such-action')
    assert not can(None, 'dashboard:view')
