# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Back-office endpoints – user lifecycle, activity log, dashboard counters.

Endpoints that only an admin may call are guarded by ``require_admin``.  A
request that carries a valid session but belongs to a ``user`` role will
receive 403 before any business logic runs.  The few endpoints open to every
signed-in user (own profile, own activity) check ownership explicitly.
"""

import io

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from database import get_db
from core.activity import log_activity
from core.config import settings
from core.security import get_current_user, hash_password, require_admin
from auth.schemas import Identity, MessageResponse
from auth.sessions import revoke_user_sessions, utcnow
from models.activity_log import ActivityLog
from models.service import Service
from models.submission import ContactSubmission, GetInTouchSubmission
from models.user import User
from models.user_session import UserSession
from admin.schemas import (
    ActivityLogListResponse,
    ActivityLogRow,
    ChangeStatusRequest,
    CreateUserRequest,
    DashboardStats,
    DashboardStatsResponse,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UpdateUserRequest,
    UserCreatedResponse,
    UserListResponse,
    UserResponse,
)

router = APIRouter(prefix="/api", tags=["admin"])

_VALID_ROLES = {"admin", "user"}


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _assert_self_or_admin(current_user: Identity, user_id: int, detail: str) -> None:
    """Users may only touch their own record; admins may touch any."""
    if current_user.role != "admin" and user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _check_password(pw: str | None) -> str:
    if not pw:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password is required")
    if len(pw) < settings.min_password_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.min_password_length} characters",
        )
    return pw


# ---------------------------------------------------------------------------
# GET /api/users  – list all users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Return every user row (no password data – handled by the schema)."""
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return UserListResponse(users=users)


# ---------------------------------------------------------------------------
# GET /api/users/{id}  – one user (self or admin)
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _assert_self_or_admin(current_user, user_id, "Access denied")
    return UserResponse(user=_get_user_or_404(db, user_id))


# ---------------------------------------------------------------------------
# POST /api/users  – create a new user
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if body.role not in _VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid role. Must be 'admin' or 'user'",
        )
    password = _check_password(body.password)

    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(password),
        role=body.role,
        phone=body.phone,
        position=body.position,
        is_active=True,
    )
    db.add(user)
    try:
        db.flush()  # get user.id before commit
    except IntegrityError:
        # Lost a race with a concurrent create of the same email
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
    log_activity(db, admin.id, admin.name, "create_user", f"Created user: {body.email} with role: {body.role}", request)
    db.commit()
    return UserCreatedResponse(message="User created successfully", user_id=user.id)


# ---------------------------------------------------------------------------
# PUT /api/users/{id}  – update name/phone/position (+ role for admins)
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}", response_model=MessageResponse)
def update_user(
    user_id: int,
    body: UpdateUserRequest,
    request: Request,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _assert_self_or_admin(current_user, user_id, "You can only update your own profile")
    target = _get_user_or_404(db, user_id)

    target.name = body.name
    target.phone = body.phone
    target.position = body.position
    # Only admins change roles, and never their own (prevents self-lockout)
    if current_user.role == "admin" and body.role is not None and body.role != target.role:
        if body.role not in _VALID_ROLES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid role. Must be 'admin' or 'user'",
            )
        if user_id == current_user.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change your own role")
        target.role = body.role

    log_activity(db, current_user.id, current_user.name, "update_user", f"Updated user: {user_id}", request)
    db.commit()
    return MessageResponse(message="User updated successfully")


# ---------------------------------------------------------------------------
# PUT /api/users/{id}/password  – admin sets another user's password
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/password", response_model=MessageResponse)
def reset_password(
    user_id: int,
    body: ResetPasswordRequest,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Overwrite a user's password and sign out all of that user's other
    sessions.  The admin's own current session survives a self-reset.
    """
    password = _check_password(body.new_password)
    target = _get_user_or_404(db, user_id)

    target.password_hash = hash_password(password)
    revoked = revoke_user_sessions(db, user_id, keep_token=getattr(request.state, "session_token", None))
    log_activity(
        db, admin.id, admin.name, "change_user_password",
        f"Changed password for user: {user_id} ({revoked} session(s) revoked)", request,
    )
    db.commit()
    return MessageResponse(message="Password updated successfully")


# ---------------------------------------------------------------------------
# PUT /api/users/{id}/status  – activate / deactivate
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/status", response_model=MessageResponse)
def change_status(
    user_id: int,
    body: ChangeStatusRequest,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    A deactivated user can no longer log in, and their existing sessions
    stop validating immediately.  An admin cannot deactivate themselves.
    """
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account",
        )
    target = _get_user_or_404(db, user_id)

    target.is_active = body.is_active
    if not body.is_active:
        revoke_user_sessions(db, user_id)
    status_text = "activated" if body.is_active else "deactivated"
    log_activity(db, admin.id, admin.name, "update_user_status", f"{status_text} user: {user_id}", request)
    db.commit()
    return MessageResponse(message=f"User {status_text} successfully")


# ---------------------------------------------------------------------------
# PUT /api/users/{id}/profile  – self-service profile edit
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/profile", response_model=MessageResponse)
def update_profile(
    user_id: int,
    body: UpdateProfileRequest,
    request: Request,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _assert_self_or_admin(current_user, user_id, "You can only update your own profile")
    target = _get_user_or_404(db, user_id)

    target.name = body.name
    target.phone = body.phone
    target.position = body.position
    log_activity(db, current_user.id, current_user.name, "update_profile", f"Updated profile: {user_id}", request)
    db.commit()
    return MessageResponse(message="Profile updated successfully")


# ---------------------------------------------------------------------------
# DELETE /api/users/{id}
# ---------------------------------------------------------------------------


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")
    target = _get_user_or_404(db, user_id)

    db.query(UserSession).filter(UserSession.user_id == user_id).delete()
    db.delete(target)
    log_activity(db, admin.id, admin.name, "delete_user", f"Deleted user: {user_id} ({target.email})", request)
    db.commit()
    return MessageResponse(message="User deleted successfully")


# ---------------------------------------------------------------------------
# GET /api/activity-logs  – newest first; users only see their own
# ---------------------------------------------------------------------------


def _activity_rows(db: Session, current_user: Identity, limit: int | None) -> list[ActivityLogRow]:
    q = (
        db.query(ActivityLog, User.email, User.name)
        .outerjoin(User, ActivityLog.user_id == User.id)
    )
    if current_user.role != "admin":
        q = q.filter(ActivityLog.user_id == current_user.id)
    q = q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    if limit:
        q = q.limit(limit)

    return [
        ActivityLogRow(
            id=row.id,
            user_id=row.user_id,
            # Prefer the current name; fall back to the one recorded at write time
            user_name=current_name or row.user_name,
            user_email=email,
            action=row.action,
            details=row.details,
            ip_address=row.ip_address,
            user_agent=row.user_agent,
            created_at=row.created_at,
        )
        for row, email, current_name in q.all()
    ]


@router.get("/activity-logs", response_model=ActivityLogListResponse)
def list_activity_logs(
    limit: int = Query(100, ge=1, le=1000),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ActivityLogListResponse(logs=_activity_rows(db, current_user, limit))


# ---------------------------------------------------------------------------
# GET /api/activity-logs/export  – download the activity log as Excel
# ---------------------------------------------------------------------------

_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_HEADER_FILL  = PatternFill(start_color="0B3D91", end_color="0B3D91", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

_EXPORT_HEADERS = ["ID", "Time (UTC)", "User", "Email", "Action", "IP Address", "Details"]
_EXPORT_WIDTHS  = [8, 20, 24, 28, 22, 16, 50]


@router.get("/activity-logs/export")
def export_activity_logs(
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Export the complete activity log as an .xlsx workbook."""
    rows = _activity_rows(db, admin, limit=None)

    wb = Workbook()
    ws = wb.active
    ws.title = "Activity Log"

    ws.append(_EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGN
        cell.border = _THIN_BORDER

    for row in rows:
        ws.append([
            row.id,
            row.created_at.strftime("%Y-%m-%d %H:%M:%S") if row.created_at else "",
            row.user_name or "",
            row.user_email or "",
            row.action,
            row.ip_address or "",
            row.details or "",
        ])
        for col_idx in range(1, len(_EXPORT_HEADERS) + 1):
            ws.cell(row=ws.max_row, column=col_idx).border = _THIN_BORDER

    for col_idx, width in enumerate(_EXPORT_WIDTHS, start=1):
        ws.column_dimensions[chr(64 + col_idx)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    filename = f"activity-log-{utcnow():%Y%m%d}.xlsx"
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# GET /api/dashboard-stats
# ---------------------------------------------------------------------------


@router.get("/dashboard-stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Counters for the dashboard tiles.  User and log totals are scoped by role."""
    is_admin = current_user.role == "admin"

    activity_q = db.query(func.count(ActivityLog.id))
    if not is_admin:
        activity_q = activity_q.filter(ActivityLog.user_id == current_user.id)

    stats = DashboardStats(
        total_users=db.query(func.count(User.id)).scalar() if is_admin else 0,
        total_services=db.query(func.count(Service.id)).filter(Service.is_active.is_(True)).scalar(),
        new_contact_messages=db.query(func.count(ContactSubmission.id))
        .filter(ContactSubmission.status == "new").scalar(),
        new_get_in_touch_messages=db.query(func.count(GetInTouchSubmission.id))
        .filter(GetInTouchSubmission.status == "new").scalar(),
        total_activity_logs=activity_q.scalar(),
    )
    return DashboardStatsResponse(stats=stats)
