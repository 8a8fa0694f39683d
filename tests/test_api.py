"""JSON API: admin registrations/users and the query endpoint."""
from conftest import ADMIN_PASSWORD


def seed_requests(store, count):
    for n in range(count):
        user_id = f'user-{n:02d}'
        store.table('profiles').insert({'id': user_id, 'email': f'{user_id}@example.com'}).execute()
        store.table('registration_requests').insert({'user_id': user_id, 'email': f'{user_id}@example.com'}).execute()


def test_admin_api_requires_session(client):
    response = client.get('/api/admin/registrations')
    assert response.status_code == 401
    assert response.get_json() == {'error': 'Authentication required'}
    assert client.patch('/api/admin/users', json={}).status_code == 401


def test_admin_api_requires_admin_role(client, member, guest, login):
    login('member@example.com')
    assert client.get('/api/admin/registrations').status_code == 403
    assert client.post('/api/admin/users/approve', json={'userId': guest['id'], 'approved': True}).status_code == 403


def test_list_registrations_paginated(client, store, admin, login):
    seed_requests(store, 15)
    login('admin@example.com', ADMIN_PASSWORD)

    body = client.get('/api/admin/registrations?status=pending&page=2&limit=10').get_json()

    assert len(body['requests']) == 5
    assert body['pagination'] == {'page': 2, 'limit': 10, 'total': 15, 'pages': 2}
    assert body['requests'][0]['profile']['id'] == body['requests'][0]['user_id']


def test_list_registrations_bad_status(client, admin, login):
    login('admin@example.com', ADMIN_PASSWORD)
    assert client.get('/api/admin/registrations?status=bogus').status_code == 400


def test_approve_registration_over_api(client, store, admin, guest, pending_request, login):
    login('admin@example.com', ADMIN_PASSWORD)
    request_id = pending_request(guest['id'])['id']

    response = client.post('/api/admin/registrations', json={'requestId': request_id, 'approved': True})
    assert response.status_code == 200
    assert response.get_json()['message'] == 'Registration request approved'

    again = client.post('/api/admin/registrations', json={'requestId': request_id, 'approved': True})
    assert again.status_code == 200

    reversed_ = client.post('/api/admin/registrations', json={'requestId': request_id, 'approved': False})
    assert reversed_.status_code == 409

    profile = store.table('profiles').select().eq('id', guest['id']).single().execute().data
    assert (profile['role'], profile['approval_status']) == ('user', 'approved')


def test_decide_registration_validation(client, admin, login):
    login('admin@example.com', ADMIN_PASSWORD)
    assert client.post('/api/admin/registrations', json={'requestId': 'x'}).status_code == 400
    missing = client.post('/api/admin/registrations', json={'requestId': 'x', 'approved': True})
    assert missing.status_code == 404


def test_list_users_by_approval_status(client, admin, guest, member, login):
    login('admin@example.com', ADMIN_PASSWORD)
    body = client.get('/api/admin/users?approvalStatus=pending').get_json()
    assert [u['email'] for u in body['users']] == ['guest@example.com']
    assert body['pagination']['total'] == 1


def test_patch_user(client, admin, member, login):
    login('admin@example.com', ADMIN_PASSWORD)
    response = client.patch('/api/admin/users', json={'userId': member['id'], 'updates': {'is_active': False}})
    assert response.status_code == 200
    assert response.get_json()['user']['is_active'] is False

    bad = client.patch('/api/admin/users', json={'userId': member['id'], 'updates': {'email': 'x@y.z'}})
    assert bad.status_code == 400


def test_admin_cannot_demote_self_over_api(client, admin, login):
    login('admin@example.com', ADMIN_PASSWORD)
    response = client.patch('/api/admin/users', json={'userId': admin['id'], 'updates': {'role': 'user'}})
    assert response.status_code == 403


def test_approve_user_by_id(client, admin, guest, pending_request, login):
    login('admin@example.com', ADMIN_PASSWORD)
    response = client.post('/api/admin/users/approve', json={'userId': guest['id'], 'approved': True})
    assert response.status_code == 200
    assert response.get_json()['user']['role'] == 'user'
    assert pending_request(guest['id'])['status'] == 'approved'
    assert client.post('/api/admin/users/approve', json={}).status_code == 400


def test_query_demo_for_visitors(client):
    body = client.get('/api/rdf').get_json()
    assert body['message'] == 'Demo data for guest users'
    bindings = body['data']['results']['results']['bindings']
    assert [b['person']['value'] for b in bindings] == [
        'http://example.org/person1', 'http://example.org/person2', 'http://example.org/person3',
    ]


def test_query_records_history_for_users(client, store, member, login):
    login('member@example.com')
    body = client.get('/api/rdf?query=SELECT%20*%20WHERE%20%7B%3Fs%20%3Fp%20%3Fo%7D').get_json()

    assert body['query'] == 'SELECT * WHERE {?s ?p ?o}'
    assert body['results']['head']['vars'] == ['subject', 'predicate', 'object']
    assert len(body['results']['results']['bindings']) == 3
    history = store.table('query_history').select().eq('user_id', member['id']).execute().data
    assert history[0]['query_content'] == {'sparql': 'SELECT * WHERE {?s ?p ?o}'}
    assert history[0]['status'] == 'completed'


def test_guest_queries_are_not_recorded(client, store, guest, login):
    login('guest@example.com')
    assert client.get('/api/rdf?query=ASK%20%7B%7D').status_code == 200
    assert store.table('query_history').select(count=True, head=True).execute().count == 0


def test_post_query_requires_permission(client, guest, login):
    assert client.post('/api/rdf', json={'query': 'ASK {}'}).status_code == 401
    login('guest@example.com')
    assert client.post('/api/rdf', json={'query': 'ASK {}'}).status_code == 403


def test_post_query_saves_when_asked(client, store, member, login):
    login('member@example.com')
    response = client.post('/api/rdf', json={
        'query': 'SELECT ?s WHERE { ?s ?p ?o }', 'saveQuery': True, 'title': 'Subjects',
    })
    assert response.status_code == 200
    saved = store.table('saved_queries').select().eq('user_id', member['id']).execute().data
    assert [(s['title'], s['is_public']) for s in saved] == [('Subjects', False)]
    assert client.post('/api/rdf', json={}).status_code == 400
