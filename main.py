#!/usr/bin/env python3
"""
AuthGate -- account registration and session management service.

Usage:
  python main.py setup
  python main.py strength 'Tr0ub4dor&3'
  python main.py create-admin admin@example.com

Environment variables:
  SECRET_KEY     JWT signing key (required unless DEBUG=true, >= 32 chars)
  DATABASE_URL   SQLAlchemy URL of the credential store (default: SQLite file)
  DEBUG          Development mode; generates a throwaway SECRET_KEY
"""

import argparse
import getpass
import os
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import USER_EXISTS
from core.strength import MAX_SCORE, password_requirements, score_password
from core.validation import RULE_SETS, validate_field

_REQUIRED_ENV = ("SECRET_KEY", "DATABASE_URL")


def cmd_setup() -> int:
    """Report configuration gaps, create the schema, and print the user count."""
    # Only reports presence; values are read through get_settings().
    missing = [name for name in _REQUIRED_ENV if not os.environ.get(name)]
    for name in missing:
        print(f"  [!] {name} is not set.")
    if not missing:
        print("  Environment OK.")

    from auth.store import UserStore
    from core.config import get_settings

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"  [!] Configuration error: {e}")
        return 1

    store = UserStore(settings.database_url)
    try:
        count = store.count_users()
    except SQLAlchemyError as e:
        print(f"  [!] Could not reach the credential store: {type(e).__name__}")
        return 1
    finally:
        store.close()
    print(f"  Credential store ready. {count} user(s).")
    return 0


def cmd_strength(password: str) -> int:
    """Print the strength tier and requirement checklist for a password."""
    result = score_password(password)
    if result is None:
        print("  No password given.")
        return 1
    print(f"  Strength: {result.label} ({result.score}/{MAX_SCORE})")
    for label, met in password_requirements(password):
        print(f"    [{'x' if met else ' '}] {label}")
    return 0


def _prompt_password() -> Optional[str]:
    password = getpass.getpass("  Password: ")
    confirm = getpass.getpass("  Confirm password: ")
    if password != confirm:
        print("  [!] Passwords do not match.")
        return None
    errors = validate_field(password, RULE_SETS["password"])
    if errors:
        for message in errors:
            print(f"  [!] {message}")
        return None
    return password


def cmd_create_admin(email: str) -> int:
    """Create an admin account after prompting for a password."""
    errors = validate_field(email, RULE_SETS["email"])
    if errors:
        print(f"  [!] {errors[0]}")
        return 1

    password = _prompt_password()
    if password is None:
        return 1

    from auth.store import UserStore
    from auth.tokens import hash_password

    store = UserStore()
    try:
        if store.find_by_email(email) is not None:
            print(f"  [!] {USER_EXISTS.message}")
            return 1
        user = store.create(email, hash_password(password), role="admin")
    except IntegrityError:
        print(f"  [!] {USER_EXISTS.message}")
        return 1
    finally:
        store.close()
    print(f"  Admin {user.email} created (id {user.id}).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="AuthGate administration commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py setup
  python main.py strength 'correct horse battery staple'
  SECRET_KEY=... python main.py create-admin admin@example.com
        """,
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("setup", help="Check configuration and initialise the credential store")
    strength = sub.add_parser("strength", help="Score a password")
    strength.add_argument("password", metavar="PASSWORD")
    admin = sub.add_parser("create-admin", help="Create an admin account")
    admin.add_argument("email", metavar="EMAIL")
    args = parser.parse_args(argv)

    if args.command == "setup":
        return cmd_setup()
    if args.command == "strength":
        return cmd_strength(args.password)
    if args.command == "create-admin":
        return cmd_create_admin(args.email)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
