"""Create an admin account from the command line.

    python -m app.create_admin --name "Venue Owner" --email owner@example.com

The password is prompted for unless ``--password`` is given.
"""
import argparse
import getpass
import sys

import app.db.base  # noqa: F401  registers every model on the metadata
from app.core.exceptions import ConflictError
from app.db.session import SessionLocal
from app.services.admin_accounts import create_admin


def main(argv=None, session_factory=SessionLocal) -> int:
    parser = argparse.ArgumentParser(description="Create a venue admin account")
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password")
    args = parser.parse_args(argv)

    password = args.password or getpass.getpass("Password: ")
    if not password:
        print("Password must not be empty", file=sys.stderr)
        return 1

    db = session_factory()
    try:
        admin = create_admin(db, args.name, args.email, password)
    except ConflictError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"Created admin {admin.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
