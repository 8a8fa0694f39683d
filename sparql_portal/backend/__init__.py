"""Local backend service: identity provider and table store.

Every operation answers with a :class:`Result` carrying either ``data`` or
``error``; callers decide what an error means for them.
"""
from sparql_portal.backend.result import Result, BackendError

__all__ = ['Result', 'BackendError']
