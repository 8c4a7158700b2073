from boxgame.services import participants


def _login(client, password='letmein'):
    return client.post('/login', json={'username': 'controller', 'password': password})


def test_health_reports_aggregates(client, flask_app):
    participants.submit_guess('u1', 'one@x.com', None, 1)
    participants.submit_guess('u2', 'two@x.com', None, 1)

    res = client.get('/')
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'running'
    assert data['phase'] == 'collecting'
    assert data['revealed'] is False
    assert data['correctBox'] is None
    assert data['totalParticipants'] == 2
    assert data['box1Count'] == 2
    assert data['syncBacklog'] == 2
    assert data['sync']['enabled'] is False


def test_login_with_bad_credentials(client):
    res = _login(client, password='nope')
    assert res.status_code == 401
    body = res.get_json()
    assert body['code'] == 'invalid_credentials'
    assert body['error'] == 'Invalid credentials'


def test_login_returns_token(client):
    res = _login(client)
    assert res.status_code == 200
    body = res.get_json()
    assert body['success'] is True
    assert body['user'] == {'username': 'controller', 'role': 'controller'}
    assert body['token']


def test_admin_routes_need_controller(flask_app):
    res = flask_app.test_client().get('/api/admin/participants')
    assert res.status_code == 401
    assert res.get_json()['code'] == 'unauthorized'

    res = flask_app.test_client().get(
        '/api/admin/participants', headers={'Authorization': 'Bearer not-a-token'}
    )
    assert res.status_code == 401


def test_admin_lists_recent_participants(client, flask_app):
    participants.submit_guess('u1', 'one@x.com', None, 1)
    participants.submit_guess('u2', 'two@x.com', None, 3)
    token = _login(client).get_json()['token']

    res = flask_app.test_client().get(
        '/api/admin/participants?limit=1', headers={'Authorization': f'Bearer {token}'}
    )
    assert res.status_code == 200
    body = res.get_json()
    assert body['count'] == 1
    assert body['participants'][0]['identity'] in ('u1', 'u2')

    res = flask_app.test_client().get(
        '/api/admin/participants?limit=abc', headers={'Authorization': f'Bearer {token}'}
    )
    assert res.status_code == 400


def test_admin_sync_flags_a_cycle(client, flask_app):
    participants.submit_guess('u1', 'one@x.com', None, 1)
    _login(client)

    res = client.post('/api/admin/sync', json={'full': True})
    assert res.status_code == 202
    body = res.get_json()
    assert body['syncBacklog'] == 1
    assert body['enabled'] is False
    assert flask_app.extensions['backup_replicator'].sync_requested_at is not None


def test_controller_registration_can_require_token(client, flask_app, connect):
    flask_app.config['CONTROLLER_REQUIRE_TOKEN'] = True
    sock = connect()
    sock.emit('register', {'type': 'controller'})
    assert sock.get_received()[0]['args'][0]['success'] is False

    token = _login(client).get_json()['token']
    sock.emit('register', {'type': 'controller', 'token': token})
    received = sock.get_received()
    assert received[0]['args'][0] == {'success': True, 'type': 'controller'}
