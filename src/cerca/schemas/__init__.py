"""Pydantic read models returned by the moderation core."""

from .moderation import EntryShape, ModerationEntry, ModProposal
from .user import UserSummary

__all__ = ["EntryShape", "ModerationEntry", "ModProposal", "UserSummary"]
