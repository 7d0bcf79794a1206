"""SQLAlchemy models for the Cerca forum."""

from .forum import Post, Thread, Topic
from .moderation import (
    ModerationAction,
    ModerationLogEntry,
    ModerationProposal,
    QuorumDecision,
)
from .system import meta_table
from .user import Admin, Registration, User

__all__ = [
    "Post", "Thread", "Topic",
    "ModerationAction", "ModerationLogEntry", "ModerationProposal", "QuorumDecision",
    "meta_table",
    "Admin", "Registration", "User",
]
