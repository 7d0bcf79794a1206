"""Account removal that keeps conversation history intact.

Several tables reference a user's id, and removing the user outright would
either break those references or leave holes in threads. Instead every
reference is handed over to the reserved *deleted user*:

- threads.authorid and posts.authorid
- moderation_log.actingid and moderation_log.recipientid
- quorum_decisions.userid and moderation_proposals.proposerid

Registrations and admin membership are deleted, pending proposals aimed at
the user are dropped, and finally the users row itself is removed. Post
contents are replaced with ``_deleted_`` unless the caller keeps them.

With ``keep_username`` the account row and its attribution stay; only the
password is replaced with a throwaway hash so nobody can log in again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, update
from sqlalchemy.sql import Executable

from cerca.core import security
from cerca.core.errors import PreconditionFailedError, describe
from cerca.db.session import Store
from cerca.db.time import Clock, utcnow
from cerca.models import (
    Admin,
    ModerationAction,
    ModerationLogEntry,
    ModerationProposal,
    Post,
    QuorumDecision,
    Registration,
    Thread,
    User,
)
from cerca.services.audit import append_log_in
from cerca.services.users import UserRegistry, user_exists_in

logger = logging.getLogger(__name__)

__all__ = ["DELETED_CONTENT", "RemoveUserOptions", "RemovalService"]

DELETED_CONTENT = "_deleted_"


@dataclass(frozen=True)
class RemoveUserOptions:
    """What remains visible after an account is removed."""

    keep_content: bool = False
    keep_username: bool = False


class RemovalService:
    """Remove accounts while preserving referential integrity."""

    def __init__(self, store: Store, registry: UserRegistry, *, clock: Clock = utcnow) -> None:
        self.store = store
        self.registry = registry
        self.clock = clock

    def remove_user(
        self,
        user_id: int,
        options: RemoveUserOptions | None = None,
        *,
        logged_by: int | None = None,
    ) -> None:
        """Remove ``user_id`` in a single transaction.

        Args:
            user_id: Account to remove.
            options: Content and attribution retention; defaults remove both.
            logged_by: When set, a REMOVE_USER entry acting as this admin is
                appended in the same transaction, before references move over.

        Raises:
            PreconditionFailedError: If the user is missing or is the deleted user.
            StorageError: If any statement fails; nothing is changed.
        """
        options = options or RemoveUserOptions()
        ed = describe("remove user")
        with self.store.transaction(ed.environ) as db:
            deleted_id = self.registry.deleted_user_id(db)
            if user_id == deleted_id:
                raise ed.error(PreconditionFailedError, "the deleted user cannot be removed")
            if not user_exists_in(db, user_id):
                raise ed.error(PreconditionFailedError, f"userid {user_id} did not exist")

            if logged_by is not None:
                append_log_in(db, logged_by, user_id, ModerationAction.REMOVE_USER, self.clock())

            for desc, stmt in self._statements(user_id, deleted_id, options):
                with ed.step(f"exec {desc}"):
                    db.execute(stmt)
        logger.info(
            "removed userid %d (keep_content=%s, keep_username=%s)",
            user_id,
            options.keep_content,
            options.keep_username,
        )

    def _statements(
        self,
        user_id: int,
        deleted_id: int,
        options: RemoveUserOptions,
    ) -> list[tuple[str, Executable]]:
        keep_content = options.keep_content
        keep_username = options.keep_username
        stmts: list[tuple[str, Executable]] = []

        # Threads and posts: every combination of keeping content and attribution.
        if not keep_username:
            stmts.append((
                "threads stmt",
                update(Thread).where(Thread.author_id == user_id).values(author_id=deleted_id),
            ))
        posts = update(Post).where(Post.author_id == user_id)
        if not keep_content and not keep_username:
            stmts.append(("posts stmt", posts.values(content=DELETED_CONTENT, author_id=deleted_id)))
        elif keep_content and not keep_username:
            stmts.append(("posts stmt", posts.values(author_id=deleted_id)))
        elif not keep_content and keep_username:
            stmts.append(("posts stmt", posts.values(content=DELETED_CONTENT)))

        if keep_username:
            # The account stays for attribution but can no longer be logged into.
            throwaway = security.get_password_hash(security.generate_password())
            stmts.append((
                "nullify logins by replacing user password",
                update(User).where(User.id == user_id).values(password_hash=throwaway),
            ))
            return stmts

        stmts.extend([
            ("modlog stmt#1", update(ModerationLogEntry)
                .where(ModerationLogEntry.recipient_id == user_id)
                .values(recipient_id=deleted_id)),
            ("modlog stmt#2", update(ModerationLogEntry)
                .where(ModerationLogEntry.acting_id == user_id)
                .values(acting_id=deleted_id)),
            ("quorum decisions stmt", update(QuorumDecision)
                .where(QuorumDecision.user_id == user_id)
                .values(user_id=deleted_id)),
            ("pending proposals for user stmt", delete(ModerationProposal)
                .where(ModerationProposal.recipient_id == user_id)),
            ("pending proposals by user stmt", update(ModerationProposal)
                .where(ModerationProposal.proposer_id == user_id)
                .values(proposer_id=deleted_id)),
            ("registrations stmt", delete(Registration).where(Registration.user_id == user_id)),
            ("admins stmt", delete(Admin).where(Admin.id == user_id)),
            ("delete user stmt", delete(User).where(User.id == user_id)),
        ])
        return stmts
