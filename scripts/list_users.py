#!/usr/bin/env python3
"""
List user accounts with their flags
Usage: python scripts/list_users.py [--vip] [--bots | --no-bots]
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from app import app, User, BOT_EMAIL_DOMAIN  # noqa: E402


def list_users(vip_only=False, bots=None):
    query = User.query
    if vip_only:
        query = query.filter_by(is_member=True)
    if bots is True:
        query = query.filter(User.email.like(f"%{BOT_EMAIL_DOMAIN}"))
    elif bots is False:
        query = query.filter(~User.email.like(f"%{BOT_EMAIL_DOMAIN}"))
    return query.order_by(User.created_at.desc()).all()


def main(argv=None):
    parser = argparse.ArgumentParser(description='List Vault users')
    parser.add_argument('--vip', action='store_true', help='Only VIP members')
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--bots', dest='bots', action='store_true', default=None, help='Only seeded bots')
    group.add_argument('--no-bots', dest='bots', action='store_false', help='Exclude seeded bots')
    args = parser.parse_args(argv)

    with app.app_context():
        users = list_users(vip_only=args.vip, bots=args.bots)
        for user in users:
            flags = ''.join([
                'V' if user.is_member else '-',
                'C' if user.is_verified else '-',
                'A' if user.is_anonymous else '-',
                'S' if user.is_admin else '-',
            ])
            print(f"{user.id}  {flags}  {user.username:<32} {user.email}")
        print(f"Total: {len(users)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
