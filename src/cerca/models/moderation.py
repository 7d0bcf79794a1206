"""Models tracking moderation events, pending proposals, and quorum decisions."""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from cerca.db.session import Base


class ModerationAction(IntEnum):
    """Action codes persisted in moderation_log and moderation_proposals.

    Values are stored in the database: only ever append new members.
    """

    RESETPW = 0
    ADMIN_VETO = 1
    ADMIN_MAKE = 2
    REMOVE_USER = 3
    ADMIN_ADD_USER = 4
    ADMIN_DEMOTE = 5
    ADMIN_CONFIRM = 6
    PROPOSE_DEMOTE_ADMIN = 7
    PROPOSE_MAKE_ADMIN = 8
    PROPOSE_REMOVE_USER = 9

    @property
    def is_proposal(self) -> bool:
        """Return True for the PROPOSE_* kinds."""
        return self in PROPOSAL_EFFECTS


# Proposal kind -> the effect recorded once the proposal is finalized.
PROPOSAL_EFFECTS = {
    ModerationAction.PROPOSE_DEMOTE_ADMIN: ModerationAction.ADMIN_DEMOTE,
    ModerationAction.PROPOSE_MAKE_ADMIN: ModerationAction.ADMIN_MAKE,
    ModerationAction.PROPOSE_REMOVE_USER: ModerationAction.REMOVE_USER,
}
EFFECT_PROPOSALS = {effect: proposal for proposal, effect in PROPOSAL_EFFECTS.items()}

PROPOSAL_CONFIRM = True
PROPOSAL_VETO = False


class ModerationLogEntry(Base):
    """Append-only audit record of a moderation event."""

    __tablename__ = "moderation_log"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    acting_id: Mapped[int] = mapped_column(
        "actingid", Integer, ForeignKey("users.id"), nullable=False
    )
    # NULL for events without a recipient.
    recipient_id: Mapped[int | None] = mapped_column(
        "recipientid", Integer, ForeignKey("users.id"), nullable=True
    )
    action: Mapped[int] = mapped_column(Integer, nullable=False)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ModerationProposal(Base):
    """A privileged action awaiting confirmation or veto by an admin."""

    __tablename__ = "moderation_proposals"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposer_id: Mapped[int] = mapped_column(
        "proposerid", Integer, ForeignKey("users.id"), nullable=False
    )
    recipient_id: Mapped[int] = mapped_column(
        "recipientid", Integer, ForeignKey("users.id"), nullable=False
    )
    action: Mapped[int] = mapped_column(Integer, nullable=False)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class QuorumDecision(Base):
    """Confirm or veto attached to the log entry that finalized a proposal."""

    __tablename__ = "quorum_decisions"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column("userid", Integer, ForeignKey("users.id"), nullable=False)
    # True = confirm, False = veto.
    decision: Mapped[bool] = mapped_column(Boolean, nullable=False)
    modlog_id: Mapped[int] = mapped_column(
        "modlogid", Integer, ForeignKey("moderation_log.id"), nullable=False
    )
