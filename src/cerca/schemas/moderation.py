"""Moderation-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from cerca.models.moderation import ModerationAction


class EntryShape(str, Enum):
    """The three kinds of event a moderation log row can represent."""

    DIRECT = "direct"
    PROPOSAL = "proposal"
    FINALIZATION = "finalization"


class ModerationEntry(BaseModel):
    """A moderation log row with the names of everyone involved."""

    acting_name: str | None = None
    recipient_name: str | None = None
    quorum_name: str | None = None
    quorum_decision: bool | None = None
    action: ModerationAction
    time: datetime

    @property
    def shape(self) -> EntryShape:
        """Classify the row for rendering.

        A row with a quorum decision attached finalized a proposal; otherwise a
        PROPOSE_* code announces a proposal; anything else was applied directly.
        """
        if self.quorum_decision is not None:
            return EntryShape.FINALIZATION
        if self.action.is_proposal:
            return EntryShape.PROPOSAL
        return EntryShape.DIRECT


class ModProposal(BaseModel):
    """A pending proposal as shown to admins."""

    id: int
    proposer_id: int
    proposer_name: str
    recipient_id: int
    recipient_name: str
    action: ModerationAction
    time: datetime
    # When the proposer becomes allowed to confirm their own proposal.
    self_confirmable_at: datetime
