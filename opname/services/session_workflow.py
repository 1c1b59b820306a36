"""Session state machine: draft -> completed -> locked."""

import logging
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opname.models.enums import SessionStatus
from opname.models.opname_session import OpnameSession
from opname.services.actor import Actor
from opname.services.discrepancy_resolver import DiscrepancyResolver, StagedEdits
from opname.services.exceptions import (
    DependencyError,
    InvalidTransitionError,
    OpnameError,
    PermissionDeniedError,
    UnresolvedDiscrepanciesError,
)
from opname.services.session_store import load_session, refresh_counters

logger = logging.getLogger(__name__)

# The only legal moves; nothing skips a state and nothing goes back.
TRANSITIONS: dict[SessionStatus, SessionStatus] = {
    SessionStatus.DRAFT: SessionStatus.COMPLETED,
    SessionStatus.COMPLETED: SessionStatus.LOCKED,
}


def check_transition(opname_session: OpnameSession, target: SessionStatus) -> None:
    """Raise unless ``target`` is the next state of the session."""
    current = SessionStatus(opname_session.session_status)
    if TRANSITIONS.get(current) != target:
        raise InvalidTransitionError(
            f"Session {opname_session.id} cannot move from {current.value} to {target.value}"
        )


class SessionWorkflow:
    """Completion and the privileged lock gate."""

    def __init__(self, db: Session, resolver: DiscrepancyResolver | None = None):
        self.db = db
        self.resolver = resolver or DiscrepancyResolver(db)

    def complete_session(self, session_id: int, actor: Actor) -> OpnameSession:
        """Close scanning. Requires at least one accepted scan."""
        try:
            opname_session = load_session(self.db, session_id, for_update=True)
            check_transition(opname_session, SessionStatus.COMPLETED)

            counts = refresh_counters(self.db, opname_session)
            if counts.total_scanned == 0:
                raise InvalidTransitionError(
                    f"Session {session_id} has no scans; scan at least one unit before completing"
                )

            opname_session.session_status = SessionStatus.COMPLETED.value
            opname_session.completed_at = datetime.now(UTC)
            opname_session.completed_by = actor.user_id
            self.db.commit()
        except OpnameError as e:
            self.db.rollback()
            logger.warning(f"Completing session {session_id} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Completing session {session_id} failed: {e}", exc_info=True)
            raise DependencyError("Could not complete the session") from e

        self.db.refresh(opname_session)
        logger.info(
            f"Session {session_id} completed by user {actor.user_id}: "
            f"{opname_session.total_match} match, {opname_session.total_missing} missing, "
            f"{opname_session.total_unregistered} unregistered"
        )
        return opname_session

    def lock_session(
        self,
        session_id: int,
        actor: Actor,
        staged: StagedEdits | None = None,
    ) -> OpnameSession:
        """Approve and lock a completed session.

        Staged actions are written in the same transaction as the lock. Every
        missing and unregistered item must carry an action afterwards,
        otherwise the whole operation, staged actions included, is rolled back.
        """
        if not actor.can_approve:
            logger.warning(f"User {actor.user_id} attempted to lock session {session_id}")
            raise PermissionDeniedError("Only a super admin can lock an opname session")

        try:
            opname_session = load_session(self.db, session_id, for_update=True)
            check_transition(opname_session, SessionStatus.LOCKED)

            if staged:
                self.resolver.apply(opname_session, staged)

            worklists = self.resolver.worklists(session_id)
            if not worklists.is_resolved:
                raise UnresolvedDiscrepanciesError(
                    worklists.pending_missing_ids, worklists.pending_unregistered_ids
                )

            refresh_counters(self.db, opname_session)
            now = datetime.now(UTC)
            opname_session.session_status = SessionStatus.LOCKED.value
            opname_session.approved_by = actor.user_id
            opname_session.approved_at = now
            opname_session.locked_at = now
            self.db.commit()
        except OpnameError as e:
            self.db.rollback()
            logger.warning(f"Locking session {session_id} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Locking session {session_id} failed: {e}", exc_info=True)
            raise DependencyError("Could not lock the session") from e

        self.db.refresh(opname_session)
        logger.info(f"Session {session_id} locked by user {actor.user_id}")
        return opname_session
