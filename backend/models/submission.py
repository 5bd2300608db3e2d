# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Lead-capture ORM models.

The site has two public forms (the contact page and the "get in touch"
section).  Both collect the same fields and go through the same triage
workflow, so they share a mixin but live in separate tables.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func

from database import Base

SUBMISSION_STATUSES = ("new", "read", "replied", "archived")


class _SubmissionMixin:
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    service = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default="new", index=True)
    submitted_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, nullable=True)

    @declared_attr
    def updated_by(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


class ContactSubmission(_SubmissionMixin, Base):
    __tablename__ = "contact_submissions"


class GetInTouchSubmission(_SubmissionMixin, Base):
    __tablename__ = "get_in_touch_submissions"
