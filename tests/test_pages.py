"""Page navigation through the route guard and the auth forms."""
from urllib.parse import urlparse

from conftest import ADMIN_PASSWORD, PASSWORD


def location(response):
    return urlparse(response.headers['Location']).path


def test_anonymous_visitor_sent_to_login(client):
    for path in ('/dashboard', '/query-builder', '/profile', '/admin', '/admin/users'):
        response = client.get(path)
        assert response.status_code == 302
        assert location(response) == '/login'


def test_public_pages_render_for_anonymous(client):
    for path in ('/', '/login', '/register', '/forgot-password', '/pending-approval'):
        assert client.get(path).status_code == 200


def test_guest_held_at_pending_approval(client, guest, login):
    response = login('guest@example.com')
    assert location(response) == '/dashboard'

    for path in ('/dashboard', '/query-builder', '/admin', '/unauthorized'):
        assert location(client.get(path)) == '/pending-approval'
    page = client.get('/pending-approval')
    assert page.status_code == 200
    assert b'Awaiting approval' in page.data


def test_declined_guest_sees_decision(client, store, guest, pending_request, login):
    from sparql_portal.services import registrations
    registrations.reject(store, pending_request(guest['id'])['id'], guest['id'])
    login('guest@example.com')
    assert b'Registration declined' in client.get('/pending-approval').data


def test_user_denied_admin_area(client, member, login):
    login('member@example.com')
    assert client.get('/dashboard').status_code == 200
    assert client.get('/query-builder').status_code == 200
    response = client.get('/admin/registrations')
    assert location(response) == '/unauthorized'
    assert client.get('/unauthorized').status_code == 403


def test_prefix_lookalike_is_not_admin_area(client, member, login):
    login('member@example.com')
    # Not a route, but also not part of /admin
    assert client.get('/admin-extra').status_code == 404


def test_approved_user_leaves_pending_page(client, member, login):
    login('member@example.com')
    assert location(client.get('/pending-approval')) == '/dashboard'


def test_admin_reaches_admin_pages(client, admin, guest, login):
    login('admin@example.com', ADMIN_PASSWORD)
    overview = client.get('/admin')
    assert overview.status_code == 200
    assert b'Pending registrations: 1' in overview.data
    assert b'guest@example.com' in client.get('/admin/registrations').data
    assert client.get('/admin/users').status_code == 200


def test_register_then_wait_for_approval(client, store):
    response = client.post('/register', data={
        'email': 'a@x.com', 'password': PASSWORD, 'full_name': 'Ann', 'reason': 'trial',
    })
    assert location(response) == '/pending-approval'
    assert location(client.get('/dashboard')) == '/pending-approval'

    profile = store.table('profiles').select().eq('email', 'a@x.com').single().execute().data
    assert profile['role'] == 'guest'


def test_register_validation_message(client):
    response = client.post('/register', data={'email': 'nope', 'password': PASSWORD, 'full_name': 'Ann'})
    assert response.status_code == 200
    assert b'valid email' in response.data


def test_bad_login_shows_provider_message(client, member):
    response = client.post('/login', data={'email': 'member@example.com', 'password': 'wrong-one'})
    assert response.status_code == 200
    assert b'Invalid login credentials' in response.data


def test_logout_returns_to_landing(client, member, login):
    login('member@example.com')
    response = client.get('/logout')
    assert location(response) == '/'
    assert location(client.get('/dashboard')) == '/login'


def test_admin_approves_from_registrations_page(client, store, admin, guest, pending_request, login):
    login('admin@example.com', ADMIN_PASSWORD)
    request = pending_request(guest['id'])
    response = client.post(f'/admin/registrations/{request["id"]}/approve', data={'user_id': guest['id']})
    assert location(response) == '/admin/registrations'

    profile = store.table('profiles').select().eq('id', guest['id']).single().execute().data
    assert profile['role'] == 'user'
    assert pending_request(guest['id'])['reviewed_by'] == admin['id']


def test_profile_edit_refreshes_identity(client, member, login):
    login('member@example.com')
    response = client.post('/profile', data={'action': 'profile', 'full_name': 'Renamed Member'})
    assert location(response) == '/profile'
    assert b'Renamed Member' in client.get('/profile').data


def test_password_change_checks_current_password(client, member, login):
    login('member@example.com')
    client.post('/profile', data={
        'action': 'password', 'current_password': 'not-it',
        'new_password': 'new-password-1', 'confirm_password': 'new-password-1',
    })
    assert b'Current password is incorrect' in client.get('/profile').data

    client.post('/profile', data={
        'action': 'password', 'current_password': PASSWORD,
        'new_password': 'new-password-1', 'confirm_password': 'new-password-1',
    })
    client.get('/logout')
    assert location(login('member@example.com', 'new-password-1')) == '/dashboard'


def test_password_reset_through_emailed_link(client, member, outbox):
    response = client.post('/forgot-password', data={'email': 'member@example.com'})
    assert location(response) == '/login'
    link = urlparse(outbox[0][1])

    form = client.get(f'{link.path}?{link.query}')
    assert b'Choose a new password' in form.data

    response = client.post('/reset-password', data={'password': 'reset-pass-99', 'confirm_password': 'reset-pass-99'})
    assert location(response) == '/login'
    response = client.post('/login', data={'email': 'member@example.com', 'password': 'reset-pass-99'})
    assert location(response) == '/dashboard'


def test_reset_page_without_live_session(client):
    response = client.get('/reset-password?token=garbage')
    assert response.status_code == 200
    assert b'Invalid or expired link' in response.data
    assert b'Choose a new password' not in client.get('/reset-password').data


def test_query_builder_runs_and_saves(client, store, member, login):
    login('member@example.com')
    response = client.post('/query-builder', data={
        'query': 'SELECT * WHERE { ?s ?p ?o }', 'save': 'on', 'title': 'Everything',
    })
    assert response.status_code == 200
    assert b'http://example.org/resource1' in response.data

    dashboard = client.get('/dashboard')
    assert b'Everything' in dashboard.data
    assert b'SELECT * WHERE' in dashboard.data


def test_guest_can_sign_out(client, guest, login):
    login('guest@example.com')
    response = client.get('/logout')
    assert location(response) == '/'
    assert location(client.get('/dashboard')) == '/login'


def test_language_switch_for_anonymous_visitor(client):
    response = client.get('/set_language/es')
    assert location(response) == '/'
    assert client.get_cookie('babel_translation').value == 'es'


def test_language_switch_for_guest(client, guest, login):
    login('guest@example.com')
    response = client.get('/set_language/es', headers={'Referer': '/pending-approval'})
    assert location(response) == '/pending-approval'
    assert client.get_cookie('babel_translation').value == 'es'


def test_session_without_profile_is_explained_on_login(client):
    from sparql_portal.backend.identity import identity
    identity.client().sign_up('orphan@example.com', PASSWORD)
    login_response = client.post('/login', data={'email': 'orphan@example.com', 'password': PASSWORD})
    assert location(login_response) == '/dashboard'

    response = client.get('/dashboard')
    assert location(response) == '/login'
    assert b'Your account has no profile' in client.get('/login').data
