# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – login, logout, session validation.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist or
  the password is wrong.  This prevents user-enumeration attacks.
* Logout always reports success: revoking an unknown or already revoked
  token is a no-op, and a storage error is logged rather than surfaced.
* The session token is returned exactly once, in the login response.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from core.activity import log_activity
from core.logger import logger
from core.security import (
    SESSION_HEADER,
    get_client_ip,
    get_current_user,
    get_user_agent,
    verify_password,
)
from auth.schemas import (
    Identity,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SessionStatusResponse,
)
from auth.sessions import create_session, revoke_session, utcnow
from models.user import User

router = APIRouter(prefix="/api", tags=["auth"])

# Generic message used for both "no such email" and "wrong password"
_LOGIN_FAIL = "Invalid credentials"


# ---------------------------------------------------------------------------
# POST /api/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Check the credentials and open a new session."""
    if not body.email or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )

    user = db.query(User).filter(User.email == body.email).first()

    # Unified failure path – no information leaks about whether the email exists
    if not user or not verify_password(body.password, user.password_hash):
        logger.info("Login failed for %s", body.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_LOGIN_FAIL)

    if not user.is_active:
        logger.info("Login refused for deactivated account %s", body.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account deactivated. Please contact administrator.",
        )

    user.last_login = utcnow()
    log_activity(db, user.id, user.name, "login", "User logged into admin panel", request)
    db.commit()

    token, expires_at = create_session(db, user.id, get_client_ip(request), get_user_agent(request))
    db.refresh(user)

    logger.info("Login successful for %s", user.email)
    return LoginResponse(
        user=Identity.model_validate(user),
        session_token=token,
        session_expires=expires_at,
    )


# ---------------------------------------------------------------------------
# POST /api/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, db: Session = Depends(get_db)):
    """Revoke the presented session.  Always succeeds from the caller's view."""
    token = request.headers.get(SESSION_HEADER)
    if token:
        try:
            revoke_session(db, token)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Logout could not revoke session: %s", exc)
    return MessageResponse(message="Logged out successfully")


# ---------------------------------------------------------------------------
# GET /api/validate-session
# ---------------------------------------------------------------------------


@router.get("/validate-session", response_model=SessionStatusResponse)
def validate(current_user: Identity = Depends(get_current_user)):
    """Return the identity behind the session token (401 if it is gone)."""
    return SessionStatusResponse(user=current_user)
