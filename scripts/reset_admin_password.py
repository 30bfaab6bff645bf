#!/usr/bin/env python3
"""
Reset (or create) the admin account password
Usage: python scripts/reset_admin_password.py [--username admin] [--password ...]
A random password is generated and printed when --password is omitted.
"""
import argparse
import os
import secrets
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from app import app, db, hash_password, find_user_by_username  # noqa: E402
from init_database import ensure_admin  # noqa: E402


def reset_password(username, password):
    """Returns True when an existing account was updated, False when it was created"""
    admin = find_user_by_username(username)
    if not admin:
        ensure_admin(username=username, password=password)
        return False

    admin.password_hash = hash_password(password)
    admin.is_admin = True
    db.session.commit()
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description='Reset the admin password')
    parser.add_argument('--username', default=app.config['ADMIN_USERNAME'])
    parser.add_argument('--password', default=None)
    args = parser.parse_args(argv)

    password = args.password or secrets.token_urlsafe(12)

    with app.app_context():
        db.create_all()
        updated = reset_password(args.username, password)

    print(f"✅ Admin '{args.username}' {'updated' if updated else 'created'}")
    if not args.password:
        print(f"🔑 New password: {password}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
