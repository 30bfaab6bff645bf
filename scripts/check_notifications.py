#!/usr/bin/env python3
"""
Dump the newest notifications for a user (or for everyone)
"""
import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from app import app, Notification  # noqa: E402


def main(argv=None):
    parser = argparse.ArgumentParser(description='Print recent notifications')
    parser.add_argument('username', nargs='?', help='Recipient username (default: all users)')
    parser.add_argument('--limit', type=int, default=20)
    parser.add_argument('--unread', action='store_true', help='Only unread notifications')
    args = parser.parse_args(argv)

    with app.app_context():
        query = Notification.query
        if args.username:
            query = query.filter_by(recipient=args.username)
        if args.unread:
            query = query.filter_by(is_read=False)

        notifications = query.order_by(Notification.created_at.desc()).limit(args.limit).all()
        print(json.dumps([n.to_dict() for n in notifications], indent=2, ensure_ascii=False))
    return 0


if __name__ == '__main__':
    sys.exit(main())
