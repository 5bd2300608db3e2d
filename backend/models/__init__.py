"""Importing this package registers every table on Base.metadata."""

from models.user import User  # noqa: F401
from models.user_session import UserSession  # noqa: F401
from models.activity_log import ActivityLog  # noqa: F401
from models.service import Service  # noqa: F401
from models.submission import ContactSubmission, GetInTouchSubmission  # noqa: F401
from models.chat_message import ChatMessage  # noqa: F401
