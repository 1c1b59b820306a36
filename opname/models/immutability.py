"""ORM-level guard that keeps locked opname sessions immutable.

A ``before_flush`` listener inspects every pending, dirty and deleted object.
Writes touching a session whose *persisted* status is ``locked`` (or any of its
snapshot, scan or assignment rows) abort the flush. The lock transition itself
passes because the persisted status is still ``completed`` while it flushes.
"""

import logging

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from opname.models.enums import SessionStatus
from opname.models.opname_items import OpnameScannedItem, OpnameSnapshotItem
from opname.models.opname_session import OpnameSession, OpnameSessionAssignment
from opname.services.exceptions import ImmutabilityViolationError

logger = logging.getLogger(__name__)

_CHILD_MODELS = (OpnameSnapshotItem, OpnameScannedItem, OpnameSessionAssignment)


def _persisted_status(opname_session: OpnameSession) -> str | None:
    """Status as stored in the database, ignoring unflushed changes."""
    history = inspect(opname_session).attrs.session_status.history
    if history.deleted:
        return history.deleted[0]
    return opname_session.session_status


def _check_session(session: Session, obj: OpnameSession) -> None:
    if _persisted_status(obj) == SessionStatus.LOCKED.value and session.is_modified(obj):
        raise ImmutabilityViolationError(f"Opname session {obj.id} is locked")


def _check_child(session: Session, obj, operation: str) -> None:
    if obj.session_id is None:
        parent = obj.session
    else:
        parent = session.get(OpnameSession, obj.session_id)
    if parent is not None and _persisted_status(parent) == SessionStatus.LOCKED.value:
        logger.warning(
            f"Blocked {operation} of {type(obj).__name__} in locked session {parent.id}"
        )
        raise ImmutabilityViolationError(f"Opname session {parent.id} is locked")


@event.listens_for(Session, "before_flush")
def _guard_locked_sessions(session: Session, flush_context, instances) -> None:
    for obj in session.dirty:
        if isinstance(obj, OpnameSession):
            _check_session(session, obj)
        elif isinstance(obj, _CHILD_MODELS) and session.is_modified(obj):
            _check_child(session, obj, "update")

    for obj in session.new:
        if isinstance(obj, _CHILD_MODELS):
            _check_child(session, obj, "insert")

    for obj in session.deleted:
        if isinstance(obj, OpnameSession):
            raise ImmutabilityViolationError("Opname sessions cannot be deleted")
        if isinstance(obj, _CHILD_MODELS):
            _check_child(session, obj, "delete")
