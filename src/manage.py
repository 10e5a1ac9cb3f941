"""Notifications management CLI.

Provides commands to create and drop the database schema and to run the
retention sweep from a scheduler such as cron. Pending digests live in the
serving process, so they are flushed through
``POST /notifications/maintenance/flush-digests`` instead.

Usage:
    python src/manage.py setup-db                      # Create all tables
    python src/manage.py drop-db                       # Drop all tables
    python src/manage.py purge --older-than-days 30
"""

import argparse
import sys


def _domain():
    from notifications.domain import notifications
    from notifications.utils.logging import configure_logging

    configure_logging()
    notifications.init()
    return notifications


def setup_database():
    from notifications.utils.db import setup_db

    domain = _domain()
    print("Creating notifications database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from notifications.utils.db import drop_db

    domain = _domain()
    print("Dropping notifications database schema...")
    drop_db(domain)
    print("Done.")


def purge(older_than_days=None):
    from notifications.engine import get_engine, reset_engine

    _domain()
    try:
        removed = get_engine().purge_notifications(older_than_days)
        print(f"Removed {removed} read notification(s).")
    finally:
        reset_engine()


def main():
    parser = argparse.ArgumentParser(description="Notifications management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    purge_parser = subparsers.add_parser("purge", help="Delete old read notifications")
    purge_parser.add_argument(
        "--older-than-days",
        type=int,
        help="Retention cutoff in days (default: NOTIFICATIONS_RETENTION_DAYS)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "purge":
        purge(args.older_than_days)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
