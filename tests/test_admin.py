"""
Admin console: gating, user management, bulk actions, broadcast, bots and audit log
"""
from unittest.mock import patch

from app import User, Message, Notification, AdminActionLog, Report, db
from conftest import auth_headers, fetch_user


def test_non_admin_forbidden(client, make_user):
    me = make_user('me')

    response = client.get('/api/admin/users', headers=auth_headers(me))

    assert response.status_code == 403
    assert response.get_json()['error'] == 'Admin access only'
    assert client.get('/api/admin/users').status_code == 401


def test_configured_admin_username_is_admin(client, make_user, test_app):
    boss = make_user('boss')
    test_app.config['ADMIN_USERNAME'] = 'boss'
    try:
        response = client.get('/api/admin/users', headers=auth_headers(boss))
    finally:
        test_app.config['ADMIN_USERNAME'] = 'admin'
    assert response.status_code == 200


def test_list_users(client, admin_user, make_user):
    make_user('member', is_member=True)

    users = client.get('/api/admin/users', headers=auth_headers(admin_user)).get_json()['users']

    assert {u['username'] for u in users} == {'admin', 'member'}
    assert 'email' in users[0]


def test_create_user_both_routes(client, admin_user):
    headers = auth_headers(admin_user)

    first = client.post('/api/admin/users', headers=headers,
                        json={'username': 'New Person', 'password': 'pw', 'isMember': True})
    second = client.post('/api/admin/create-user', headers=headers,
                         json={'username': 'second', 'password': 'pw', 'email': 's@example.com'})

    assert first.status_code == 200
    assert first.get_json()['user']['email'] == 'newperson@thevault.local'
    assert first.get_json()['user']['isMember'] is True
    assert second.get_json()['user']['email'] == 's@example.com'
    assert AdminActionLog.query.filter_by(action='user_creation').count() == 2


def test_create_user_duplicates_and_missing_fields(client, admin_user, make_user):
    make_user('exists', email='exists@example.com')
    headers = auth_headers(admin_user)

    dup_name = client.post('/api/admin/users', headers=headers, json={'username': 'exists', 'password': 'pw'})
    dup_email = client.post('/api/admin/users', headers=headers,
                            json={'username': 'fresh', 'password': 'pw', 'email': 'exists@example.com'})
    missing = client.post('/api/admin/users', headers=headers, json={'username': 'nopw'})

    assert dup_name.status_code == 400
    assert dup_email.status_code == 400
    assert missing.status_code == 400


def test_update_user_by_id_or_username(client, admin_user, make_user):
    target = make_user('target')
    headers = auth_headers(admin_user)

    by_id = client.put(f"/api/admin/users/{target.id}", headers=headers, json={'isVerified': True})
    by_name = client.put('/api/admin/users/target', headers=headers,
                         json={'fullName': 'Target T', 'details': {'gender': 'Kadın'}})

    assert by_id.status_code == 200
    assert by_name.status_code == 200
    updated = fetch_user('target')
    assert updated.is_verified is True
    assert updated.full_name == 'Target T'
    assert updated.details['gender'] == 'Kadın'
    assert updated.details['smoking'] == 'Belirtilmedi'


def test_update_user_duplicate_username(client, admin_user, make_user):
    make_user('a')
    make_user('b')
    response = client.put('/api/admin/users/a', headers=auth_headers(admin_user), json={'username': 'b'})
    assert response.status_code == 400
    assert client.put('/api/admin/users/ghost', headers=auth_headers(admin_user), json={}).status_code == 404


def test_delete_user_but_not_self(client, admin_user, make_user):
    make_user('victim')
    headers = auth_headers(admin_user)

    assert client.delete('/api/admin/users/victim', headers=headers).status_code == 200
    assert fetch_user('victim') is None
    assert client.delete(f"/api/admin/users/{admin_user.id}", headers=headers).status_code == 400
    assert client.delete('/api/admin/users/ghost', headers=headers).status_code == 404


def test_upgrade_user(client, admin_user, make_user):
    make_user('lucky')

    response = client.post('/api/admin/upgrade/lucky', headers=auth_headers(admin_user))

    assert response.status_code == 200
    lucky = fetch_user('lucky')
    assert lucky.is_member is True and lucky.is_verified is True


def test_dashboard_stats(client, admin_user, make_user):
    make_user('vip', is_member=True, is_verified=True)
    make_user('anon', is_anonymous=True)

    stats = client.get('/api/admin/dashboard-stats', headers=auth_headers(admin_user)).get_json()['stats']

    assert stats['totalUsers'] == 3
    assert stats['vipUsers'] == 1
    assert stats['verifiedUsers'] == 1
    assert stats['anonymousUsers'] == 1
    assert len(stats['recentUsers']) == 3


def test_bulk_actions(client, admin_user, make_user):
    make_user('a')
    make_user('b', is_member=True)
    headers = auth_headers(admin_user)

    response = client.post('/api/admin/bulk-action', headers=headers,
                           json={'usernames': ['a', 'b', 'ghost'], 'action': 'makeVip'})
    assert response.get_json() == {'success': True, 'affected': 1}
    assert fetch_user('a').is_member is True

    deleted = client.post('/api/admin/bulk-action', headers=headers,
                          json={'usernames': ['a', 'admin'], 'action': 'delete'})
    assert deleted.get_json()['affected'] == 1
    assert fetch_user('admin') is not None


def test_bulk_action_validation(client, admin_user):
    headers = auth_headers(admin_user)

    empty = client.post('/api/admin/bulk-action', headers=headers, json={'usernames': [], 'action': 'verify'})
    unknown = client.post('/api/admin/bulk-action', headers=headers, json={'usernames': ['a'], 'action': 'ban'})

    assert empty.status_code == 400
    assert empty.get_json()['error'] == 'No users selected'
    assert unknown.status_code == 400
    assert unknown.get_json()['error'] == 'Unknown action'


def test_broadcast_to_all(client, admin_user, make_user):
    make_user('a')
    make_user('b')

    response = client.post('/api/admin/send-message', headers=auth_headers(admin_user),
                           json={'recipients': 'all', 'message': 'y' * 120})

    assert response.get_json()['count'] == 3
    assert Message.query.filter_by(sender='The Vault Admin').count() == 3
    notification = Notification.query.filter_by(recipient='a').one()
    assert notification.type == 'admin_broadcast'
    assert notification.body == 'y' * 100 + '...'


def test_broadcast_to_selection_and_validation(client, admin_user, make_user):
    make_user('a')
    headers = auth_headers(admin_user)

    response = client.post('/api/admin/send-message', headers=headers, json={'recipients': ['a'], 'message': 'hi'})
    assert response.get_json()['count'] == 1

    assert client.post('/api/admin/send-message', headers=headers, json={'recipients': 'all'}).status_code == 400


def test_seed_and_clear_bots(client, admin_user, make_user):
    make_user('human')
    headers = auth_headers(admin_user)

    with patch('app.hash_password', return_value='$argon2id$stub'):
        response = client.post('/api/admin/seed?count=5', headers=headers)

    assert response.get_json()['count'] == 5
    bots = User.query.filter(User.email.like('%@bot.com')).all()
    assert len(bots) == 5
    assert all(len(b.photos) == 6 for b in bots)

    cleared = client.post('/api/admin/clear-bots', headers=headers)
    assert cleared.get_json()['removed'] == 5
    assert User.query.count() == 2


def test_seed_replaces_existing_bots(client, admin_user):
    headers = auth_headers(admin_user)
    with patch('app.hash_password', return_value='$argon2id$stub'):
        client.post('/api/admin/seed?count=3', headers=headers)
        client.post('/api/admin/seed?count=4', headers=headers)

    assert User.query.filter(User.email.like('%@bot.com')).count() == 4


def test_reset_all_interactions(client, admin_user, make_user):
    make_user('a', liked_users=['b'], seen_users=['b', 'c'])

    client.post('/api/admin/reset-all-interactions', headers=auth_headers(admin_user))

    a = fetch_user('a')
    assert a.liked_users == []
    assert a.seen_users == []


def test_reports_and_logs_paginated(client, admin_user, make_user):
    for i in range(3):
        db.session.add(Report(reporter='x', reported=f"r{i}", reason='spam'))
    db.session.commit()
    make_user('target')
    headers = auth_headers(admin_user)
    client.post('/api/admin/upgrade/target', headers=headers)

    reports = client.get('/api/admin/reports?per_page=2', headers=headers).get_json()
    logs = client.get('/api/admin/logs', headers=headers).get_json()

    assert reports['total'] == 3
    assert len(reports['reports']) == 2
    assert reports['pages'] == 2
    assert logs['logs'][0]['action'] == 'upgrade'
    assert logs['logs'][0]['adminUsername'] == 'admin'


def test_create_user_accepts_null_full_name(client, admin_user):
    response = client.post('/api/admin/users', headers=auth_headers(admin_user),
                           json={'username': 'plain', 'password': 'pw', 'fullName': None})

    assert response.status_code == 200
    assert response.get_json()['user']['fullName'] == ''


def test_update_user_rejects_blank_username(client, admin_user, make_user):
    make_user('target')

    response = client.put('/api/admin/users/target', headers=auth_headers(admin_user), json={'username': '   '})

    assert response.status_code == 400
    assert fetch_user('target') is not None


def test_update_user_rename_strips_and_stamps(client, admin_user, make_user):
    make_user('target')

    response = client.put('/api/admin/users/target', headers=auth_headers(admin_user),
                          json={'username': '  renamed  '})

    assert response.status_code == 200
    renamed = fetch_user('renamed')
    assert renamed is not None
    assert renamed.last_username_change is not None


def test_bulk_action_reports_malformed_usernames(client, admin_user):
    response = client.post('/api/admin/bulk-action', headers=auth_headers(admin_user),
                           json={'usernames': [1], 'action': 'verify'})

    assert response.status_code == 400
    assert response.get_json()['error'].startswith('usernames')


def test_broadcast_reports_malformed_recipients(client, admin_user):
    response = client.post('/api/admin/send-message', headers=auth_headers(admin_user),
                           json={'recipients': 5, 'message': 'hi'})

    assert response.status_code == 400
    assert response.get_json()['error'].startswith('recipients')
