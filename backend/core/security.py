# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Central security module.  Password hashing and the request guards live here.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. FastAPI dependency guards                (get_current_user, require_admin)
3. Client metadata extraction               (IP address, user agent)

Session tokens themselves are issued and checked by ``auth.sessions``.
"""

from fastapi import Depends, Request
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import Forbidden, Unauthenticated
from database import get_db

# Header carrying the opaque session token on every authenticated request
SESSION_HEADER = "session-token"

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """
    Hash a plaintext password with PBKDF2-SHA256.

    The salt is embedded in the returned passlib hash string
    (``"$pbkdf2-sha256$<rounds>$<salt>$<digest>"``).
    """
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a
    pbkdf2_sha256 hash produced by :func:`hash_password`.  A malformed
    stored hash counts as a mismatch.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except (ValueError, TypeError):
        return False


# ---------------------------------------------------------------------------
# 2.  FastAPI dependency guards
# ---------------------------------------------------------------------------


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Dependency: resolve the ``session-token`` header to an Identity.

    Raises 401 (with ``sessionExpired: true``) if the header is missing or
    the token does not map to an active, unexpired session of an active
    user.  On success the identity is also stored on ``request.state.user``.
    """
    token = request.headers.get(SESSION_HEADER)
    if not token:
        raise Unauthenticated()

    # Lazy import to avoid circular dependency at module load time
    from auth.sessions import validate_session  # noqa: E402

    identity = validate_session(db, token)
    if identity is None:
        raise Unauthenticated()

    request.state.user = identity
    request.state.session_token = token
    return identity


def require_admin(current_user=Depends(get_current_user)):
    """
    Dependency: wraps :func:`get_current_user` and additionally asserts
    ``role == 'admin'``.  Raises 403 otherwise – before the handler runs, so
    the response never depends on whether the target resource exists.
    """
    if current_user.role != "admin":
        raise Forbidden()
    return current_user


# ---------------------------------------------------------------------------
# 3.  Client metadata
# ---------------------------------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


def get_user_agent(request: Request) -> str:
    return (request.headers.get("user-agent") or "Unknown")[:512]
