# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Session manager – opaque login tokens persisted in ``user_sessions``.

A session is valid iff
    is_active  AND  expires_at > now  AND  the owning user is active.

Rules
-----
* Tokens are 32 random bytes (hex encoded) from ``secrets``; they are only
  ever returned to the client once, at login, and are never logged.
* ``expires_at`` is always computed here, never taken from the client.
* Unknown / expired tokens are a normal outcome (``None``), not an error.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth.schemas import Identity
from core.config import settings
from core.exceptions import StoreError
from core.logger import logger
from models.user import User
from models.user_session import UserSession


def utcnow() -> datetime:
    """Naive UTC timestamp – the format every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_session_token() -> str:
    return secrets.token_hex(32)


def create_session(
    db: Session,
    user_id: int,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[str, datetime]:
    """
    Persist a new active session for *user_id* and return
    ``(token, expires_at)``.  Raises ``StoreError`` if the row cannot be
    written.
    """
    token = generate_session_token()
    expires_at = utcnow() + timedelta(hours=settings.session_ttl_hours)
    try:
        db.add(
            UserSession(
                user_id=user_id,
                session_token=token,
                ip_address=ip,
                user_agent=user_agent,
                expires_at=expires_at,
                is_active=True,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Session creation failed for user_id=%s: %s", user_id, exc)
        raise StoreError("Login failed due to session error") from exc
    return token, expires_at


def validate_session(db: Session, token: str) -> Optional[Identity]:
    """Resolve *token* to the owning user's Identity, or ``None``."""
    if not token:
        return None
    row = db.execute(
        select(User)
        .join(UserSession, UserSession.user_id == User.id)
        .where(
            UserSession.session_token == token,
            UserSession.is_active.is_(True),
            UserSession.expires_at > utcnow(),
            User.is_active.is_(True),
        )
    ).scalar_one_or_none()
    if row is None:
        return None
    return Identity.model_validate(row)


def revoke_session(db: Session, token: str) -> None:
    """Mark the session inactive.  Unknown or already revoked tokens are fine."""
    if not token:
        return
    db.execute(
        update(UserSession)
        .where(UserSession.session_token == token)
        .values(is_active=False)
    )
    db.commit()


def revoke_user_sessions(db: Session, user_id: int, keep_token: Optional[str] = None) -> int:
    """
    Deactivate every active session of *user_id* except *keep_token*.
    Does not commit; returns the number of sessions revoked.
    """
    stmt = (
        update(UserSession)
        .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
        .values(is_active=False)
    )
    if keep_token:
        stmt = stmt.where(UserSession.session_token != keep_token)
    return db.execute(stmt).rowcount or 0


def sweep_expired(db: Session, now: Optional[datetime] = None) -> int:
    """Delete exactly the sessions whose ``expires_at`` is before *now*."""
    cutoff = now or utcnow()
    removed = db.execute(delete(UserSession).where(UserSession.expires_at < cutoff)).rowcount or 0
    db.commit()
    return removed


def run_session_sweep() -> Optional[int]:
    """
    Scheduler entry point for the hourly sweep.

    Skips the cycle (returns ``None``) while a restore holds the store's
    maintenance lock, instead of waiting on it.
    """
    from database import store  # noqa: E402

    if not store.maintenance_lock.acquire(blocking=False):
        logger.info("Session sweep skipped: database maintenance in progress")
        return None
    try:
        db = store.session()
        try:
            removed = sweep_expired(db)
        finally:
            db.close()
    finally:
        store.maintenance_lock.release()
    logger.info("Session sweep removed %d expired session(s)", removed)
    return removed
