# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Activity-log writer shared by every router that changes state."""

from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from core.security import get_client_ip, get_user_agent
from models.activity_log import ActivityLog


def log_activity(
    db: Session,
    user_id: Optional[int],
    user_name: Optional[str],
    action: str,
    details: Optional[str] = None,
    request: Optional[Request] = None,
) -> ActivityLog:
    """
    Add an activity entry to *db*.  The caller commits, so the entry lands in
    the same transaction as the change it describes.

    Without a request (start-up, background jobs) the entry is attributed to
    the local system.
    """
    entry = ActivityLog(
        user_id=user_id,
        user_name=user_name,
        action=action,
        details=details,
        ip_address=get_client_ip(request) if request is not None else "127.0.0.1",
        user_agent=get_user_agent(request) if request is not None else "System",
    )
    db.add(entry)
    return entry
