"""Route access guard and the authorization policy behind it.

``PERMISSIONS`` is the single table of who may do what. The page guard reads
it through ``PROTECTED_ROUTES`` and the JSON API reads it through ``can``, so
both sides enforce the same rules.
"""
from collections import namedtuple

from sparql_portal.models.profile import GUEST, USER, ADMIN

LOGIN_ROUTE = '/login'
PENDING_APPROVAL_ROUTE = '/pending-approval'
UNAUTHORIZED_ROUTE = '/unauthorized'

PUBLIC_ROUTES = (
    '/',
    LOGIN_ROUTE,
    '/register',
    '/forgot-password',
    '/reset-password',
    PENDING_APPROVAL_ROUTE,
)

PERMISSIONS = {
    'admin:access': frozenset({ADMIN}),
    'registrations:review': frozenset({ADMIN}),
    'users:manage': frozenset({ADMIN}),
    'dashboard:view': frozenset({USER, ADMIN}),
    'queries:run': frozenset({USER, ADMIN}),
    'queries:save': frozenset({USER, ADMIN}),
    'profile:edit': frozenset({USER, ADMIN}),
}

RouteAccess = namedtuple('RouteAccess', ['path', 'allowed_roles'])

# First match wins
PROTECTED_ROUTES = (
    RouteAccess('/admin', PERMISSIONS['admin:access']),
    RouteAccess('/dashboard', PERMISSIONS['dashboard:view']),
    RouteAccess('/query-builder', PERMISSIONS['queries:run']),
    RouteAccess('/profile', PERMISSIONS['profile:edit']),
)

WAIT = 'wait'
ALLOW = 'allow'
REDIRECT = 'redirect'


class GuardDecision(namedtuple('GuardDecision', ['action', 'target'])):
    __slots__ = ()

    @property
    def redirect_to(self):
        return self.target if self.action == REDIRECT else None


def can(role, action):
    """True when ``role`` may perform ``action``. Unknown actions are denied."""
    return role in PERMISSIONS.get(action, ())


def path_matches(path, prefix):
    """Exact match or a match ending on a path segment boundary.

    ``/admin/users`` matches ``/admin``; ``/admin-extra`` does not.
    """
    return path == prefix or path.startswith(prefix + '/')


def is_public(path):
    return any(path_matches(path, route) for route in PUBLIC_ROUTES)


def find_route(path):
    for route in PROTECTED_ROUTES:
        if path_matches(path, route.path):
            return route
    return None


def decide(path, user, is_loading=False):
    """Decide whether a navigation to ``path`` renders or redirects.

    ``user`` is the current profile row (or None when signed out). While the
    identity is still being resolved no decision is made.
    """
    if is_loading:
        return GuardDecision(WAIT, None)

    if is_public(path):
        return GuardDecision(ALLOW, None)

    if user is None:
        return GuardDecision(REDIRECT, LOGIN_ROUTE)

    role = user.get('role')
    if role == GUEST and path != PENDING_APPROVAL_ROUTE:
        return GuardDecision(REDIRECT, PENDING_APPROVAL_ROUTE)

    route = find_route(path)
    if route is not None and role not in route.allowed_roles:
        return GuardDecision(REDIRECT, UNAUTHORIZED_ROUTE)

    return GuardDecision(ALLOW, None)
