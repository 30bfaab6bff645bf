#!/usr/bin/env python3
"""
Delete every seeded bot account (email ending with @bot.com)
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from app import app, db, User, delete_bots, BOT_EMAIL_DOMAIN  # noqa: E402


def main(argv=None):
    parser = argparse.ArgumentParser(description='Remove seeded bot accounts')
    parser.add_argument('--dry-run', action='store_true', help='Only count the bots')
    args = parser.parse_args(argv)

    with app.app_context():
        if args.dry_run:
            count = User.query.filter(User.email.like(f"%{BOT_EMAIL_DOMAIN}")).count()
            print(f"{count} bots would be removed")
            return 0

        try:
            removed = delete_bots()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            print(f"❌ Failed to remove bots: {e}")
            return 1

        print(f"✅ Removed {removed} bots")
    return 0


if __name__ == '__main__':
    sys.exit(main())
