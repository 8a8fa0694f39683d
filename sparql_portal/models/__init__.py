"""Models package - Re-exports all models for convenient importing."""
from sparql_portal.extensions import db
from sparql_portal.models.account import AuthAccount, AuthSession
from sparql_portal.models.profile import Profile
from sparql_portal.models.registration_request import RegistrationRequest
from sparql_portal.models.query import SavedQuery, QueryHistory

__all__ = ['db', 'AuthAccount', 'AuthSession', 'Profile', 'RegistrationRequest', 'SavedQuery', 'QueryHistory']
