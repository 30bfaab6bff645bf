#!/usr/bin/env python3
"""
Database Initialization Script
==============================

Creates every table defined in app.py and the bootstrap admin account.
The admin password comes from ADMIN_PASSWORD; a random one is generated and
printed once when it is not set.
"""

import os
import secrets
import sys
from app import app, db, User, hash_password, find_user_by_username


def ensure_admin(username=None, password=None):
    """Create the admin account if missing; returns (user, generated_password or None)"""
    username = username or app.config['ADMIN_USERNAME']
    admin = find_user_by_username(username)
    if admin:
        if not admin.is_admin:
            admin.is_admin = True
            db.session.commit()
        return admin, None

    generated = None
    if not password:
        password = generated = secrets.token_urlsafe(12)

    admin = User(
        username=username,
        email=f"{username}@thevault.local",
        password_hash=hash_password(password),
        full_name='The Vault Admin',
        is_admin=True,
        is_verified=True,
        is_member=True
    )
    db.session.add(admin)
    db.session.commit()
    return admin, generated


def init_database():
    """Initialize the database with all tables"""
    print("🚀 Initializing The Vault database")
    print(f"📍 Storage mode: {app.config['STORAGE_MODE']}")

    with app.app_context():
        try:
            print("📝 Creating database tables...")
            db.create_all()

            tables = sorted(db.inspect(db.engine).get_table_names())
            print(f"✅ {len(tables)} tables present:")
            for table in tables:
                print(f"   - {table}")

            admin, generated = ensure_admin(password=os.environ.get('ADMIN_PASSWORD'))
            print(f"👤 Admin account: {admin.username}")
            if generated:
                print(f"🔑 Generated admin password (shown once): {generated}")

            print("🎉 Database initialization completed successfully!")
            return True

        except Exception as e:
            db.session.rollback()
            print(f"❌ Database initialization failed: {str(e)}")
            import traceback
            traceback.print_exc()
            return False


if __name__ == "__main__":
    success = init_database()
    if not success:
        sys.exit(1)
