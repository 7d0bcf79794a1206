"""Business logic services for the moderation core."""

from .audit import ModerationLog
from .migrations import MigrationReport, migrate_pwhash
from .moderation import ActionOutcome, FinalizeOutcome, ModerationService
from .removal import RemovalService, RemoveUserOptions
from .users import UserRegistry

__all__ = [
    "ActionOutcome",
    "FinalizeOutcome",
    "MigrationReport",
    "ModerationLog",
    "ModerationService",
    "RemovalService",
    "RemoveUserOptions",
    "UserRegistry",
    "migrate_pwhash",
]
