"""Quorum-governed moderation for privileged actions.

While fewer admins than the quorum size exist, privileged actions (make
admin, demote admin, remove user) take effect immediately. Once a quorum is
active, an admin *proposes* the action and another admin finalizes it by
confirming or vetoing. A proposer may confirm their own proposal only after
the self-confirmation wait has elapsed; vetoing their own proposal is always
allowed.

Every step is recorded in the moderation log:

- a direct effect logs the effect code (ADMIN_MAKE, ADMIN_DEMOTE, REMOVE_USER);
- a proposal logs its PROPOSE_* code;
- a finalization logs the effect code joined to a quorum_decisions row.
"""

from __future__ import annotations

import logging
from enum import Enum

from sqlalchemy import delete, select
from sqlalchemy.orm import aliased

from cerca.core import security
from cerca.core.errors import InvariantViolationError, PreconditionFailedError, describe
from cerca.core.settings import Settings
from cerca.core.settings import settings as default_settings
from cerca.db.session import Store
from cerca.db.time import Clock, as_utc, utcnow
from cerca.models import ModerationAction, ModerationProposal, QuorumDecision, User
from cerca.models.moderation import EFFECT_PROPOSALS, PROPOSAL_CONFIRM, PROPOSAL_EFFECTS
from cerca.schemas.moderation import ModProposal
from cerca.services.audit import append_log_in
from cerca.services.removal import RemovalService, RemoveUserOptions
from cerca.services.users import UserRegistry, add_admin_in, demote_admin_in

logger = logging.getLogger(__name__)

__all__ = ["ActionOutcome", "FinalizeOutcome", "ModerationService"]


class ActionOutcome(str, Enum):
    """Result of requesting a privileged action."""

    PERFORMED = "performed"
    PROPOSED = "proposed"


class FinalizeOutcome(str, Enum):
    """Result of finalizing a proposal."""

    MISSING = "missing"  # already finalized by someone else
    TOO_EARLY = "too_early"  # self-confirmation before the wait elapsed
    VETOED = "vetoed"
    CONFIRMED = "confirmed"


class ModerationService:
    """Propose, finalize, and directly apply privileged actions."""

    def __init__(
        self,
        store: Store,
        *,
        registry: UserRegistry | None = None,
        removal: RemovalService | None = None,
        settings: Settings | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.settings = settings or default_settings
        self.clock = clock
        self.registry = registry or UserRegistry(store, settings=self.settings, clock=clock)
        self.removal = removal or RemovalService(store, self.registry, clock=clock)

    def request_action(
        self,
        acting_id: int,
        recipient_id: int,
        action: ModerationAction,
    ) -> ActionOutcome:
        """Apply ``action`` directly, or propose it when a quorum is active.

        Without a quorum the effect and its log entry are written in one
        transaction; this is the only way privileged state changes without a
        proposal.
        """
        ed = describe("request mod action")
        if action not in EFFECT_PROPOSALS:
            raise ed.error(InvariantViolationError, f"action {int(action)} cannot be requested")
        action = ModerationAction(action)

        if self.registry.quorum_active():
            self.propose(acting_id, recipient_id, EFFECT_PROPOSALS[action])
            return ActionOutcome.PROPOSED

        if action is ModerationAction.REMOVE_USER:
            self.removal.remove_user(recipient_id, RemoveUserOptions(), logged_by=acting_id)
        else:
            with self.store.transaction(ed.environ) as db:
                if action is ModerationAction.ADMIN_MAKE:
                    self.registry.protect_deleted_user_in(db, recipient_id, ed.environ)
                    add_admin_in(db, recipient_id)
                else:
                    demote_admin_in(db, recipient_id)
                append_log_in(db, acting_id, recipient_id, action, self.clock())
        logger.info("userid %d performed %s on userid %d", acting_id, action.name, recipient_id)
        return ActionOutcome.PERFORMED

    def propose(
        self,
        proposer_id: int,
        recipient_id: int,
        proposed_action: ModerationAction,
    ) -> None:
        """Record a pending proposal and announce it in the moderation log.

        Only one proposal per action kind may be pending at a time (per action
        and recipient when ``proposal_unique_per_recipient`` is set); a
        duplicate is silently ignored.
        """
        ed = describe("propose mod action")
        if proposed_action not in PROPOSAL_EFFECTS:
            raise ed.error(InvariantViolationError, f"action {int(proposed_action)} is not a proposal")
        proposed_action = ModerationAction(proposed_action)
        now = as_utc(self.clock())
        with self.store.transaction(ed.environ) as db:
            pending = select(ModerationProposal.id).where(
                ModerationProposal.action == int(proposed_action)
            )
            if self.settings.proposal_unique_per_recipient:
                pending = pending.where(ModerationProposal.recipient_id == recipient_id)
            with ed.step("check pending proposals"):
                if Store.exists(db, pending):
                    logger.debug("%s already pending; ignoring", proposed_action.name)
                    return

            with ed.step("insert into proposals table"):
                db.add(
                    ModerationProposal(
                        proposer_id=proposer_id,
                        recipient_id=recipient_id,
                        action=int(proposed_action),
                        time=now,
                    )
                )
                db.flush()
            append_log_in(db, proposer_id, recipient_id, proposed_action, now)

    def finalize(self, proposal_id: int, admin_id: int, decision: bool) -> FinalizeOutcome:
        """Confirm (``True``) or veto (``False``) a pending proposal.

        The proposal is removed and the outcome logged in one transaction. The
        confirmed effect runs after that commit; if it fails the log entry
        and quorum decision stay in place and the error is raised.
        """
        ed = describe("finalize proposed mod action")
        now = as_utc(self.clock())
        with self.store.transaction(ed.environ) as db:
            with ed.step("retrieve proposal vals"):
                proposal = db.get(ModerationProposal, proposal_id)
            if proposal is None:
                # Somebody beat us to acting on it.
                return FinalizeOutcome.MISSING

            proposer_id = proposal.proposer_id
            recipient_id = proposal.recipient_id
            proposal_action = proposal.action

            is_self_confirm = proposer_id == admin_id and decision == PROPOSAL_CONFIRM
            self_confirm_ok_at = as_utc(proposal.time) + self.settings.proposal_self_confirmation_wait
            if is_self_confirm and now < self_confirm_ok_at:
                return FinalizeOutcome.TOO_EARLY

            try:
                effect = PROPOSAL_EFFECTS[ModerationAction(proposal_action)]
            except (KeyError, ValueError):
                raise ed.error(
                    InvariantViolationError, f"unknown proposal action {proposal_action}"
                ) from None

            with ed.step("remove proposal from table"):
                db.execute(delete(ModerationProposal).where(ModerationProposal.id == proposal_id))
            # The proposer is logged as the one performing the action.
            modlog_id = append_log_in(db, proposer_id, recipient_id, effect, now)
            with ed.step("execute quorum insertion"):
                db.add(QuorumDecision(user_id=admin_id, decision=decision, modlog_id=modlog_id))
                db.flush()

        if decision != PROPOSAL_CONFIRM:
            logger.info("proposal %d vetoed by userid %d", proposal_id, admin_id)
            return FinalizeOutcome.VETOED

        try:
            self._apply_effect(effect, recipient_id)
        except Exception:
            logger.error(
                "proposal %d was confirmed but %s on userid %d failed",
                proposal_id,
                effect.name,
                recipient_id,
                exc_info=True,
            )
            raise
        logger.info("proposal %d confirmed by userid %d", proposal_id, admin_id)
        return FinalizeOutcome.CONFIRMED

    def _apply_effect(self, effect: ModerationAction, recipient_id: int) -> None:
        if effect is ModerationAction.ADMIN_MAKE:
            self.registry.add_admin(recipient_id)
        elif effect is ModerationAction.ADMIN_DEMOTE:
            self.registry.demote_admin(recipient_id)
        elif effect is ModerationAction.REMOVE_USER:
            self.removal.remove_user(
                recipient_id, RemoveUserOptions(keep_content=False, keep_username=False)
            )
        else:  # pragma: no cover - PROPOSAL_EFFECTS only maps to the three above
            raise InvariantViolationError(f"no effect for {effect.name}", environ="apply mod action")

    def get_proposals(self) -> list[ModProposal]:
        """Return pending proposals, newest first."""
        proposer = aliased(User)
        recipient = aliased(User)
        stmt = (
            select(
                ModerationProposal.id,
                ModerationProposal.proposer_id,
                proposer.name.label("proposer_name"),
                ModerationProposal.recipient_id,
                recipient.name.label("recipient_name"),
                ModerationProposal.action,
                ModerationProposal.time,
            )
            .join(proposer, proposer.id == ModerationProposal.proposer_id)
            .join(recipient, recipient.id == ModerationProposal.recipient_id)
            .order_by(ModerationProposal.time.desc(), ModerationProposal.id.desc())
        )
        with self.store.transaction("get moderation proposals") as db:
            rows = db.execute(stmt).all()
        wait = self.settings.proposal_self_confirmation_wait
        return [
            ModProposal(
                id=row.id,
                proposer_id=row.proposer_id,
                proposer_name=row.proposer_name,
                recipient_id=row.recipient_id,
                recipient_name=row.recipient_name,
                action=ModerationAction(row.action),
                time=as_utc(row.time),
                self_confirmable_at=as_utc(row.time) + wait,
            )
            for row in rows
        ]

    def admin_reset_password(self, admin_id: int, user_id: int) -> str:
        """Reset ``user_id``'s password, log it, and return the new password."""
        with self.store.transaction("admin reset password") as db:
            new_password = self.registry.reset_password_in(db, user_id)
            append_log_in(db, admin_id, user_id, ModerationAction.RESETPW, self.clock())
        return new_password

    def admin_add_user(self, admin_id: int, username: str) -> tuple[int, str]:
        """Create an account on behalf of an admin.

        Returns:
            The new user's id and the generated password to hand over.
        """
        ed = describe("admin manually add user")
        if self.registry.check_username_exists(username):
            raise ed.error(PreconditionFailedError, "username is already registered")
        password = security.generate_password()
        user_id = self.registry.create_user(username, security.get_password_hash(password))
        with self.store.transaction(ed.environ) as db:
            append_log_in(db, admin_id, user_id, ModerationAction.ADMIN_ADD_USER, self.clock())
        return user_id, password
