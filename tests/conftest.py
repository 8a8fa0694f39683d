"""
Pytest Configuration and Shared Fixtures

Every test gets a fresh in-memory database inside an application context.
"""
import pytest

from sparql_portal import create_app
from sparql_portal.backend.identity import identity
from sparql_portal.backend.store import TableStore
from sparql_portal.extensions import db
from sparql_portal.services import registrations
from sparql_portal.services.auth_state import AuthState

PASSWORD = 'pw12345678'
ADMIN_PASSWORD = 'admin-pass-123'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return TableStore()


@pytest.fixture
def outbox():
    """Recovery links the identity provider would have emailed."""
    sent = []
    previous = identity.mailer
    identity.mailer = lambda email, link: sent.append((email, link))
    yield sent
    identity.mailer = previous


@pytest.fixture
def sign_up(store):
    def _sign_up(email, password=PASSWORD, full_name='Ann', reason=None):
        with AuthState(identity.client(), store) as state:
            return state.sign_up(email, password, full_name, reason)
    return _sign_up


@pytest.fixture
def pending_request(store):
    def _pending_request(user_id):
        rows = store.table('registration_requests').select().eq('user_id', user_id).execute().data
        return rows[0]
    return _pending_request


@pytest.fixture
def guest(sign_up):
    return sign_up('guest@example.com', full_name='Gus')


@pytest.fixture
def member(store, sign_up, pending_request):
    profile = sign_up('member@example.com', full_name='Mem')
    registrations.approve(store, pending_request(profile['id'])['id'], profile['id'])
    return store.table('profiles').select().eq('id', profile['id']).single().execute().data


@pytest.fixture
def admin(store):
    return registrations.create_admin_account(
        identity.client(), store, 'admin@example.com', ADMIN_PASSWORD, 'Ada',
    )


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        return client.post('/login', data={'email': email, 'password': password})
    return _login
