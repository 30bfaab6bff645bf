"""
Test configuration for The Vault backend tests
"""
import os

# Must be set before app is imported: Config reads the environment at import time
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['RATELIMIT_ENABLED'] = '0'
os.environ['LOGIN_RATELIMIT_ENABLED'] = '0'
os.environ.pop('GEO_API_KEY', None)

import pytest  # noqa: E402
from app import app, db, User, hash_password, TOKEN_PREFIX  # noqa: E402

TEST_PASSWORD = 'secret-pass-1'


@pytest.fixture
def test_app():
    """App bound to a fresh in-memory database"""
    app.config['TESTING'] = True

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(test_app):
    """Create test client"""
    return test_app.test_client()


@pytest.fixture
def make_user(test_app):
    """Factory creating committed users; keyword arguments are model columns"""
    counter = {'n': 0}

    def _make_user(username=None, password=TEST_PASSWORD, **fields):
        counter['n'] += 1
        username = username or f"user{counter['n']}"
        fields.setdefault('email', f"{username}@example.com")
        user = User(username=username, password_hash=hash_password(password), **fields)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user('admin', is_admin=True)


def auth_headers(user):
    return {'Authorization': f"Bearer {TOKEN_PREFIX}{user.id}"}


def fetch_user(username):
    """Re-read a user after requests made through the test client"""
    db.session.expire_all()
    return User.query.filter_by(username=username).first()
