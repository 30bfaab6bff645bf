"""
Notification listing, read state and deletion
"""
from datetime import datetime, timedelta

from app import db, Notification
from conftest import auth_headers


def add_notification(recipient, title='t', is_read=False, minutes_ago=0):
    notification = Notification(recipient=recipient, type='system', title=title, is_read=is_read,
                                created_at=datetime.utcnow() - timedelta(minutes=minutes_ago))
    db.session.add(notification)
    db.session.commit()
    return notification.id


def test_list_newest_first_with_unread_count(client, make_user):
    me = make_user('me')
    add_notification('me', title='old', is_read=True, minutes_ago=10)
    add_notification('me', title='new', minutes_ago=1)
    add_notification('someone_else', title='not mine')

    data = client.get('/api/notifications', headers=auth_headers(me)).get_json()

    assert [n['title'] for n in data['notifications']] == ['new', 'old']
    assert data['unreadCount'] == 1


def test_list_is_capped_at_fifty(client, make_user):
    me = make_user('me')
    for i in range(55):
        add_notification('me', title=str(i))

    data = client.get('/api/notifications', headers=auth_headers(me)).get_json()
    assert len(data['notifications']) == 50


def test_mark_all_read(client, make_user):
    me = make_user('me')
    add_notification('me')
    add_notification('me')
    add_notification('other')

    client.put('/api/notifications/read', headers=auth_headers(me), json={'markAll': True})

    db.session.expire_all()
    assert Notification.query.filter_by(recipient='me', is_read=False).count() == 0
    assert Notification.query.filter_by(recipient='other', is_read=False).count() == 1


def test_mark_single_only_touches_own(client, make_user):
    me = make_user('me')
    mine = add_notification('me')
    theirs = add_notification('other')
    headers = auth_headers(me)

    client.put('/api/notifications/read', headers=headers, json={'notificationId': mine})
    client.put('/api/notifications/read', headers=headers, json={'notificationId': theirs})

    db.session.expire_all()
    assert db.session.get(Notification, mine).is_read is True
    assert db.session.get(Notification, theirs).is_read is False


def test_delete_single_and_all(client, make_user):
    me = make_user('me')
    first = add_notification('me')
    add_notification('me')
    theirs = add_notification('other')
    headers = auth_headers(me)

    assert client.delete(f"/api/notifications/{theirs}", headers=headers).status_code == 200
    client.delete(f"/api/notifications/{first}", headers=headers)
    assert Notification.query.filter_by(recipient='me').count() == 1

    client.delete('/api/notifications', headers=headers)
    assert Notification.query.filter_by(recipient='me').count() == 0
    assert Notification.query.filter_by(recipient='other').count() == 1
