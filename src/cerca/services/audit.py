"""Append-only moderation log."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from cerca.core.errors import describe
from cerca.db.session import Store
from cerca.db.time import Clock, as_utc, utcnow
from cerca.models import ModerationAction, ModerationLogEntry, QuorumDecision, User
from cerca.schemas.moderation import ModerationEntry

__all__ = ["ModerationLog", "append_log_in"]


def append_log_in(
    db: Session,
    acting_id: int,
    recipient_id: int | None,
    action: ModerationAction,
    time: datetime,
) -> int:
    """Insert a log row within an open transaction and return its id."""
    entry = ModerationLogEntry(
        acting_id=acting_id,
        recipient_id=recipient_id,
        action=int(action),
        time=as_utc(time),
    )
    with describe("add moderation log").step("insert into modlog"):
        db.add(entry)
        db.flush()
    return entry.id


class ModerationLog:
    """Read and append moderation events."""

    def __init__(self, store: Store, *, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    def add_log(
        self,
        acting_id: int,
        recipient_id: int | None,
        action: ModerationAction,
    ) -> int:
        """Append an event stamped with the current time.

        ``recipient_id`` is None for events that have no recipient.
        """
        with self.store.transaction("add moderation log") as db:
            return append_log_in(db, acting_id, recipient_id, action, self.clock())

    def get_logs(self) -> list[ModerationEntry]:
        """Return every event, newest first, with participant names resolved."""
        acting = aliased(User)
        recipient = aliased(User)
        quorum = aliased(User)
        stmt = (
            select(
                acting.name.label("acting_name"),
                recipient.name.label("recipient_name"),
                quorum.name.label("quorum_name"),
                QuorumDecision.decision,
                ModerationLogEntry.action,
                ModerationLogEntry.time,
            )
            .select_from(ModerationLogEntry)
            .outerjoin(acting, acting.id == ModerationLogEntry.acting_id)
            .outerjoin(recipient, recipient.id == ModerationLogEntry.recipient_id)
            .outerjoin(QuorumDecision, QuorumDecision.modlog_id == ModerationLogEntry.id)
            .outerjoin(quorum, quorum.id == QuorumDecision.user_id)
            .order_by(ModerationLogEntry.time.desc(), ModerationLogEntry.id.desc())
        )
        with self.store.transaction("moderation log") as db:
            rows = db.execute(stmt).all()
        return [
            ModerationEntry(
                acting_name=row.acting_name,
                recipient_name=row.recipient_name,
                quorum_name=row.quorum_name,
                quorum_decision=row.decision,
                action=ModerationAction(row.action),
                time=as_utc(row.time),
            )
            for row in rows
        ]
