# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Lead capture and team chat.

* ``POST /api/contact`` and ``POST /api/get-in-touch`` are public – they are
  the two forms on the marketing site.
* Reading and triaging submissions needs a signed-in user (any role).
* The team chat is a flat, append-only message list for signed-in users.
"""

from typing import Type

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from core.activity import log_activity
from core.security import get_current_user
from auth.schemas import Identity, MessageResponse
from auth.sessions import utcnow
from models.chat_message import ChatMessage
from models.submission import (
    SUBMISSION_STATUSES,
    ContactSubmission,
    GetInTouchSubmission,
)
from models.user import User
from messages.schemas import (
    ChatListResponse,
    ChatMessageRow,
    ChatPost,
    StatusUpdate,
    SubmissionCreate,
    SubmissionListResponse,
    SubmissionResponse,
    SubmissionRow,
)

router = APIRouter(prefix="/api", tags=["messages"])

_CHAT_HISTORY = 100


def _row(submission, updated_by_name) -> SubmissionRow:
    return SubmissionRow(
        id=submission.id,
        name=submission.name,
        email=submission.email,
        company=submission.company,
        service=submission.service,
        message=submission.message,
        status=submission.status,
        submitted_at=submission.submitted_at,
        updated_by=submission.updated_by,
        updated_by_name=updated_by_name,
        updated_at=submission.updated_at,
    )


def _with_updater(db: Session, model):
    return db.query(model, User.name).outerjoin(User, User.id == model.updated_by)


def _register_submission_routes(model: Type, form_path: str, list_path: str, label: str) -> None:
    """Wire the public form plus the triage endpoints for one submission table."""
    key = model.__tablename__

    @router.post(
        form_path,
        response_model=MessageResponse,
        status_code=status.HTTP_201_CREATED,
        name=f"submit_{key}",
    )
    def submit(body: SubmissionCreate, db: Session = Depends(get_db)):
        if not body.name.strip() or not body.email.strip() or not body.message.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Name, email and message are required",
            )
        db.add(model(**body.model_dump(), status="new"))
        db.commit()
        return MessageResponse(message="Message sent successfully")

    @router.get(list_path, response_model=SubmissionListResponse, name=f"list_{key}")
    def list_submissions(
        _: Identity = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        rows = _with_updater(db, model).order_by(model.submitted_at.desc(), model.id.desc()).all()
        return SubmissionListResponse(submissions=[_row(s, n) for s, n in rows])

    @router.get(list_path + "/{submission_id}", response_model=SubmissionResponse, name=f"get_{key}")
    def get_submission(
        submission_id: int,
        _: Identity = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        found = _with_updater(db, model).filter(model.id == submission_id).first()
        if not found:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        return SubmissionResponse(submission=_row(*found))

    @router.put(list_path + "/{submission_id}/status", response_model=MessageResponse, name=f"status_{key}")
    def update_status(
        submission_id: int,
        body: StatusUpdate,
        request: Request,
        current_user: Identity = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        if body.status not in SUBMISSION_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Status must be one of: {', '.join(SUBMISSION_STATUSES)}",
            )
        submission = db.query(model).filter(model.id == submission_id).first()
        if not submission:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")

        submission.status = body.status
        submission.updated_by = current_user.id
        submission.updated_at = utcnow()
        log_activity(
            db,
            current_user.id,
            current_user.name,
            "update_message_status",
            f"Updated {label} message {submission_id} status to: {body.status}",
            request,
        )
        db.commit()
        return MessageResponse(message="Status updated successfully")


_register_submission_routes(ContactSubmission, "/contact", "/contact-submissions", "contact")
_register_submission_routes(GetInTouchSubmission, "/get-in-touch", "/get-in-touch-submissions", "get in touch")


# ---------------------------------------------------------------------------
# /api/team-chat
# ---------------------------------------------------------------------------


@router.get("/team-chat", response_model=ChatListResponse)
def list_chat(
    _: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The most recent messages, oldest first."""
    latest = (
        db.query(ChatMessage)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(_CHAT_HISTORY)
        .all()
    )
    return ChatListResponse(messages=list(reversed(latest)))


@router.post("/team-chat", response_model=ChatMessageRow, status_code=status.HTTP_201_CREATED)
def post_chat(
    body: ChatPost,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    text = (body.message or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")

    msg = ChatMessage(
        user_id=current_user.id,
        user_name=current_user.name,
        user_role=current_user.role,
        message=text,
    )
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg
