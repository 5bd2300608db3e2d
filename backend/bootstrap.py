# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
First-run setup.

``SETUP_STEPS`` is an ordered list of idempotent steps run against the open
store at start-up.  Each one reports success or failure; a failing step is
logged and the remaining steps still run (a missing default service must not
keep the API down).
"""

from typing import Callable

from sqlalchemy.orm import Session

import models  # noqa: F401  – registers every table on Base.metadata
from core.activity import log_activity
from core.config import settings
from core.logger import logger
from core.security import hash_password
from database import Base, Store
from models.service import Service
from models.user import User

DEFAULT_SERVICES = [
    {
        "name": "SOC Analysis",
        "description": "24/7 Security Operations Center monitoring and analysis to detect and respond to threats in real-time.",
        "category": "cybersecurity",
        "icon": "fas fa-shield-alt",
    },
    {
        "name": "Penetration Testing",
        "description": "Comprehensive security testing to identify vulnerabilities in your systems, applications and networks.",
        "category": "cybersecurity",
        "icon": "fas fa-bug",
    },
    {
        "name": "Security Audit",
        "description": "Thorough security assessment and compliance auditing for your organization's infrastructure and processes.",
        "category": "cybersecurity",
        "icon": "fas fa-clipboard-check",
    },
]


def create_tables(store: Store) -> None:
    """CREATE TABLE IF NOT EXISTS for every model."""
    Base.metadata.create_all(bind=store.engine, checkfirst=True)


def ensure_admin(db: Session, name: str, email: str, password: str) -> bool:
    """Create the admin account *email* unless it exists.  Returns True if created."""
    if db.query(User).filter(User.email == email).first():
        return False

    admin = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role="admin",
        position="System Administrator",
        is_active=True,
    )
    db.add(admin)
    db.flush()  # get admin.id before logging
    log_activity(db, admin.id, "System", "system_init", "Database initialized with default admin user")
    db.commit()
    return True


def create_default_admin(store: Store) -> None:
    if not settings.first_admin_email or not settings.first_admin_password:
        logger.warning("FIRST_ADMIN_EMAIL / FIRST_ADMIN_PASSWORD not set – no bootstrap admin")
        return
    db = store.session()
    try:
        if ensure_admin(db, settings.first_admin_name, settings.first_admin_email, settings.first_admin_password):
            logger.info("Default admin '%s' created", settings.first_admin_email)
    finally:
        db.close()


def create_default_services(store: Store) -> None:
    db = store.session()
    try:
        for entry in DEFAULT_SERVICES:
            if not db.query(Service).filter(Service.name == entry["name"]).first():
                db.add(Service(**entry))
                logger.info("Default service created: %s", entry["name"])
        db.commit()
    finally:
        db.close()


SETUP_STEPS: list[tuple[str, Callable[[Store], None]]] = [
    ("create tables", create_tables),
    ("default admin", create_default_admin),
    ("default services", create_default_services),
]


def run_setup(store: Store, steps=None) -> dict[str, bool]:
    """Run each step in order and return ``{step name: succeeded}``."""
    results: dict[str, bool] = {}
    for name, step in steps if steps is not None else SETUP_STEPS:
        try:
            step(store)
        except Exception:
            logger.exception("Setup step '%s' failed", name)
            results[name] = False
        else:
            logger.info("Setup step '%s' done", name)
            results[name] = True
    return results
