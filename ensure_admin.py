#!/usr/bin/env python3
# ensure_admin.py
# Create or reset an admin login:
#   python ensure_admin.py --email admin@school.com --password secret --name "Admin User"
import argparse
import logging
import sys

import db
from auth import encode_password
from portal.settings import setup_logging
from portal.tables import DataError, SQLiteTables, get_tables

logger = logging.getLogger("ensure_admin")


def ensure_admin(client, email: str, password: str, name: str = "Admin") -> dict:
    email = email.strip().lower()
    row = {"email": email, "password": encode_password(password), "name": name, "role": "admin"}
    return client.upsert("admins", row, on_conflict=["email"])[0]


def main(argv=None):
    ap = argparse.ArgumentParser(description="Create or update an admin account")
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--name", default="Admin")
    args = ap.parse_args(argv)

    setup_logging()
    try:
        client = get_tables()
        if isinstance(client, SQLiteTables):
            db.init_db()
        admin = ensure_admin(client, args.email, args.password, args.name)
    except DataError as e:
        logger.error("Upsert failed: %s", e.message)
        return 1
    logger.info("Admin %s ready; log in with that email and the given password", admin["email"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
