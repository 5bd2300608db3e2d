import os

# Must be set before core.config builds the settings singleton
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("FIRST_ADMIN_EMAIL", "")
os.environ.setdefault("FIRST_ADMIN_PASSWORD", "")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
from auth.sessions import create_session, utcnow  # noqa: E402
from bootstrap import create_tables, ensure_admin  # noqa: E402
from core.config import settings  # noqa: E402
from core.security import SESSION_HEADER, hash_password  # noqa: E402
from database import store  # noqa: E402
from models.user import User  # noqa: E402
from models.user_session import UserSession  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture(autouse=True)
def live_store(tmp_path, monkeypatch):
    """A fresh SQLite store per test, with the bootstrap admin in place."""
    backup_dir = tmp_path / "backups"
    monkeypatch.setattr(settings, "backup_dir", str(backup_dir))
    # Deferred deletions would race the assertions on the backup directory
    monkeypatch.setattr("core.scheduler.defer", lambda delay, func, *args: None)

    store.open(tmp_path / "site.db")
    create_tables(store)
    db = store.session()
    try:
        ensure_admin(db, "Admin User", ADMIN_EMAIL, ADMIN_PASSWORD)
    finally:
        db.close()

    yield store

    store.close()


@pytest.fixture
def db(live_store):
    session = live_store.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    # No context manager: start-up would reopen the store at the configured path
    return TestClient(main.app)


def make_user(db, email, password="user-pass", role="user", name="Test User", is_active=True):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_session(db, user_id, expires_in=timedelta(hours=1), is_active=True):
    """Insert a session row with an explicit expiry; returns the token."""
    token, _ = create_session(db, user_id)
    row = db.query(UserSession).filter(UserSession.session_token == token).one()
    row.expires_at = utcnow() + expires_in
    row.is_active = is_active
    db.commit()
    return token


def login(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
    response = client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["sessionToken"]


def auth(token):
    return {SESSION_HEADER: token}


@pytest.fixture
def admin_token(client):
    return login(client)
