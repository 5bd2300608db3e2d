# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the tables and the first admin user.

    python bin/seed_admin.py
    python bin/seed_admin.py --email ops@example.com --password '...' --name 'Ops'

Without arguments it reads FIRST_ADMIN_NAME, FIRST_ADMIN_EMAIL and
FIRST_ADMIN_PASSWORD from etc/app.conf.  The API server performs the same
step at start-up; this script is for provisioning a store ahead of time.
"""

import argparse
import os
import sys

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from bootstrap import create_tables, ensure_admin   # noqa: E402
from core.config import settings                    # noqa: E402
from database import store                          # noqa: E402


def seed(name: str, email: str, password: str) -> int:
    if not email or not password:
        print("[seed_admin] admin email or password not set (etc/app.conf or --email/--password) – nothing to do.")
        return 1
    if len(password) < settings.min_password_length:
        print(f"[seed_admin] password must be at least {settings.min_password_length} characters.")
        return 1

    store.open()
    try:
        create_tables(store)
        db = store.session()
        try:
            if ensure_admin(db, name, email, password):
                print(f"[seed_admin] Admin '{email}' created successfully in {store.path}.")
            else:
                print(f"[seed_admin] Admin '{email}' already exists – skipping.")
        finally:
            db.close()
    finally:
        store.close()
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the first admin account.")
    parser.add_argument("--name", default=settings.first_admin_name)
    parser.add_argument("--email", default=settings.first_admin_email)
    parser.add_argument("--password", default=settings.first_admin_password)
    args = parser.parse_args(argv)
    return seed(args.name, args.email, args.password)


if __name__ == "__main__":
    sys.exit(main())
