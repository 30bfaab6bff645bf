"""
Registration, login and token resolution
"""
from unittest.mock import patch

from werkzeug.security import generate_password_hash

from app import db, User
from conftest import auth_headers, fetch_user, TEST_PASSWORD


def test_register_returns_token_and_private_profile(client):
    response = client.post('/api/auth/register', json={
        'username': 'selin',
        'email': 'selin@example.com',
        'password': 'pw12345',
        'fullName': 'Selin Kaya'
    })

    assert response.status_code == 200
    data = response.get_json()
    assert data['success'] is True
    assert data['token'] == f"mock-jwt-{data['user']['_id']}"
    assert len(data['user']['_id']) == 24
    assert data['user']['email'] == 'selin@example.com'
    assert data['user']['fullName'] == 'Selin Kaya'
    assert data['user']['details']['smoking'] == 'Belirtilmedi'
    assert data['user']['notifications'] is True


def test_register_stores_argon2_hash(client):
    client.post('/api/auth/register', json={'username': 'ece', 'email': 'ece@example.com', 'password': 'pw'})

    user = fetch_user('ece')
    assert user.password_hash.startswith('$argon2')
    assert 'pw' != user.password_hash


def test_register_missing_fields(client):
    response = client.post('/api/auth/register', json={'username': 'x', 'password': 'pw'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Please provide all required fields'


def test_register_blank_username_rejected(client):
    response = client.post('/api/auth/register', json={'username': '   ', 'email': 'a@b.c', 'password': 'pw'})
    assert response.status_code == 400


def test_register_duplicate_username_or_email(client, make_user):
    make_user('taken', email='taken@example.com')

    by_username = client.post('/api/auth/register', json={
        'username': 'taken', 'email': 'other@example.com', 'password': 'pw'})
    by_email = client.post('/api/auth/register', json={
        'username': 'other', 'email': 'taken@example.com', 'password': 'pw'})

    assert by_username.status_code == 400
    assert by_username.get_json()['error'] == 'User already exists'
    assert by_email.status_code == 400


def test_login_with_username_or_email(client, make_user):
    user = make_user('deniz', email='deniz@example.com')

    for handle in ('deniz', 'deniz@example.com'):
        response = client.post('/api/auth/login', json={'identifier': handle, 'password': TEST_PASSWORD})
        assert response.status_code == 200
        assert response.get_json()['token'] == f"mock-jwt-{user.id}"


def test_login_accepts_username_field(client, make_user):
    make_user('melis')
    response = client.post('/api/auth/login', json={'username': 'melis', 'password': TEST_PASSWORD})
    assert response.status_code == 200


def test_login_requires_credentials(client):
    response = client.post('/api/auth/login', json={'password': 'pw'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Please provide credentials'


def test_login_wrong_password_and_unknown_user(client, make_user):
    make_user('pelin')

    wrong = client.post('/api/auth/login', json={'identifier': 'pelin', 'password': 'nope'})
    unknown = client.post('/api/auth/login', json={'identifier': 'ghost', 'password': 'nope'})

    assert wrong.status_code == 400
    assert wrong.get_json()['error'] == 'Invalid credentials'
    assert unknown.status_code == 400


def test_login_upgrades_legacy_werkzeug_hash(client, test_app):
    user = User(username='legacy', email='legacy@example.com',
                password_hash=generate_password_hash('oldpass'))
    db.session.add(user)
    db.session.commit()

    response = client.post('/api/auth/login', json={'identifier': 'legacy', 'password': 'oldpass'})

    assert response.status_code == 200
    assert fetch_user('legacy').password_hash.startswith('$argon2')


def test_auth_me_returns_own_profile(client, make_user):
    user = make_user('gizem', location={'city': 'İzmir', 'lat': None, 'lng': None})

    response = client.get('/api/auth/me', headers=auth_headers(user))

    assert response.status_code == 200
    data = response.get_json()['user']
    assert data['username'] == 'gizem'
    assert data['email'] == 'gizem@example.com'
    assert data['location']['city'] == 'İzmir'
    assert data['stats'] == {'posts': 0, 'followers': 0, 'following': 0}
    assert response.headers['Cache-Control'] == 'no-store'


def test_auth_me_without_bearer_prefix(client, make_user):
    user = make_user()
    response = client.get('/api/auth/me', headers={'Authorization': f"mock-jwt-{user.id}"})
    assert response.status_code == 200


def test_auth_me_errors(client, test_app):
    assert client.get('/api/auth/me').status_code == 401

    bad_format = client.get('/api/auth/me', headers={'Authorization': 'Bearer abc'})
    assert bad_format.status_code == 401
    assert bad_format.get_json()['error'] == 'Invalid token format'

    missing = client.get('/api/auth/me', headers={'Authorization': 'Bearer mock-jwt-' + 'f' * 24})
    assert missing.status_code == 404


def test_protected_route_without_token(client, test_app):
    response = client.get('/api/notifications')
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Unauthorized'


def test_protected_route_with_unknown_user(client, test_app):
    response = client.get('/api/notifications', headers={'Authorization': 'Bearer mock-jwt-' + '0' * 24})
    assert response.status_code == 404
    assert response.get_json()['error'] == 'User not found'


def test_health_reports_storage_mode(client, test_app):
    response = client.get('/api/health')

    assert response.status_code == 200
    data = response.get_json()
    assert data['status'] == 'healthy'
    assert data['storage_mode'] == 'memory'
    assert data['deployment']['storage_mode'] == 'memory'
    assert 'DATABASE_URL' in data['deployment']['settings']


def test_unknown_endpoint_is_json_404(client, test_app):
    response = client.get('/api/does-not-exist')
    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_register_accepts_null_full_name(client):
    response = client.post('/api/auth/register', json={
        'username': 'nameless', 'email': 'nameless@example.com', 'password': 'pw', 'fullName': None})

    assert response.status_code == 200
    assert response.get_json()['user']['fullName'] == ''


def test_register_refuses_admin_username(client, test_app):
    for username in ('admin', 'Admin'):
        response = client.post('/api/auth/register', json={
            'username': username, 'email': f"{username}@example.com", 'password': 'pw'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Username not available'

    assert fetch_user('admin') is None


def test_profile_rename_to_admin_refused(client, make_user):
    user = make_user('sneaky')

    response = client.put('/api/users/profile', headers=auth_headers(user), json={'username': 'admin'})

    assert response.status_code == 400
    assert client.get('/api/admin/users', headers=auth_headers(user)).status_code == 403


def test_wrong_method_is_json_405(client, test_app):
    response = client.put('/api/health')

    assert response.status_code == 405
    assert response.get_json() == {'success': False, 'error': 'Method not allowed'}


def test_unexpected_error_is_json_500_and_rolls_back(client, make_user):
    user = make_user()

    with patch('app.load_token_user', side_effect=RuntimeError('boom')), \
            patch.object(db.session, 'rollback') as rollback:
        response = client.get('/api/notifications', headers=auth_headers(user))

    assert response.status_code == 500
    assert response.get_json() == {'success': False, 'error': 'Something broke!', 'details': 'boom'}
    rollback.assert_called()
