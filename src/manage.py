"""Ordering management CLI.

Usage:
    python src/manage.py setup-db                 # Create SQL tables
    python src/manage.py drop-db                  # Drop SQL tables
    python src/manage.py expire-unpaid            # Cancel unpaid orders (hourly)
    python src/manage.py expire-unpaid --hours 48 # Override the window
"""

import argparse
import sys


def _domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_database():
    from ordering.utils.db import setup_db

    print("Creating ordering database schema...")
    touched = setup_db(_domain())
    print(f"  {touched} SQL provider(s) ready." if touched else "  No SQL providers configured.")
    print("Done.")


def drop_database():
    from ordering.utils.db import drop_db

    print("Dropping ordering database schema...")
    touched = drop_db(_domain())
    print(f"  {touched} SQL provider(s) dropped." if touched else "  No SQL providers configured.")
    print("Done.")


def expire_unpaid(hours=None):
    """Run the unpaid-order sweep once and report how many orders it cancelled."""
    from ordering.config import current_store_settings
    from ordering.order.expiry import UnpaidOrderCompensator
    from ordering.utils.logging import configure_logging

    configure_logging()
    domain = _domain()
    settings = current_store_settings()
    hours = hours or settings.pending_payment_expiration_hours

    with domain.domain_context():
        expired = UnpaidOrderCompensator(settings).run(hours=hours)

    print(f"Expired {expired} unpaid order(s) using {hours}h window.")
    return expired


def _positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("hours must be a positive integer")
    return number


def main(argv=None):
    parser = argparse.ArgumentParser(description="Ordering management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    expire_parser = subparsers.add_parser("expire-unpaid", help="Cancel orders left unpaid past the window")
    expire_parser.add_argument(
        "--hours",
        type=_positive_int,
        default=None,
        help="Expiration window in hours (default: STORE_PENDING_PAYMENT_EXPIRATION_HOURS or 24)",
    )

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "expire-unpaid":
        expire_unpaid(args.hours)
    else:
        parser.print_help()
        sys.exit(1)
    return 0


if __name__ == "__main__":
    sys.exit(main())
