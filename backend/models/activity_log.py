# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""ActivityLog ORM model – append-only trail of auth and admin actions."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # No FK: entries must outlive the user they mention
    user_id = Column(Integer, nullable=True, index=True)
    user_name = Column(String(255), nullable=True)
    action = Column(String(64), nullable=False, index=True)   # e.g. "create_user"
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
