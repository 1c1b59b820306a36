"""Discrepancy worklists and action recording for completed sessions."""

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opname.models.enums import (
    ScannedAction,
    ScannedScanResult,
    SessionStatus,
    SnapshotAction,
    SnapshotScanResult,
)
from opname.models.opname_items import OpnameScannedItem, OpnameSnapshotItem
from opname.models.opname_session import OpnameSession
from opname.services.actor import Actor
from opname.services.exceptions import (
    DependencyError,
    InvalidActionError,
    MissingSoldReferenceError,
    NotFoundError,
    OpnameError,
)
from opname.services.session_store import load_session, require_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StagedAction:
    """An action selected for one discrepancy but not yet saved."""

    action: str
    notes: str | None = None
    sold_reference_id: str | None = None


@dataclass
class StagedEdits:
    """Pending action selections keyed by item id, one map per worklist."""

    snapshot_items: dict[int, StagedAction] = field(default_factory=dict)
    scanned_items: dict[int, StagedAction] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.snapshot_items or self.scanned_items)


@dataclass
class Worklists:
    """Missing snapshot items and unregistered scans of one session."""

    session_id: int
    missing: list[OpnameSnapshotItem]
    unregistered: list[OpnameScannedItem]

    @property
    def pending_missing_ids(self) -> list[int]:
        return [item.id for item in self.missing if item.action_taken is None]

    @property
    def pending_unregistered_ids(self) -> list[int]:
        return [item.id for item in self.unregistered if item.action_taken is None]

    @property
    def is_resolved(self) -> bool:
        return not self.pending_missing_ids and not self.pending_unregistered_ids


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None


class DiscrepancyResolver:
    """Records how each missing or unregistered item was dealt with."""

    def __init__(self, db: Session):
        self.db = db

    def worklists(self, session_id: int) -> Worklists:
        """Current worklists; readable in any session status."""
        load_session(self.db, session_id)
        missing = (
            self.db.query(OpnameSnapshotItem)
            .filter(
                OpnameSnapshotItem.session_id == session_id,
                OpnameSnapshotItem.scan_result == SnapshotScanResult.MISSING.value,
            )
            .order_by(OpnameSnapshotItem.id)
            .all()
        )
        unregistered = (
            self.db.query(OpnameScannedItem)
            .filter(
                OpnameScannedItem.session_id == session_id,
                OpnameScannedItem.scan_result == ScannedScanResult.UNREGISTERED.value,
            )
            .order_by(OpnameScannedItem.id)
            .all()
        )
        return Worklists(session_id=session_id, missing=missing, unregistered=unregistered)

    def save_actions(self, session_id: int, staged: StagedEdits, actor: Actor) -> Worklists:
        """Upsert staged actions on a completed session.

        The whole buffer is validated before anything is written; partial
        resolution of the worklists is allowed.
        """
        try:
            opname_session = load_session(self.db, session_id, for_update=True)
            require_status(
                opname_session, SessionStatus.COMPLETED, action="record discrepancy actions"
            )
            self.apply(opname_session, staged)
            self.db.commit()
        except OpnameError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Saving actions failed for session {session_id}: {e}", exc_info=True)
            raise DependencyError("Could not save discrepancy actions") from e

        logger.info(
            f"Session {session_id}: user {actor.user_id} saved "
            f"{len(staged.snapshot_items)} missing and {len(staged.scanned_items)} "
            "unregistered actions"
        )
        return self.worklists(session_id)

    def apply(self, opname_session: OpnameSession, staged: StagedEdits) -> None:
        """Validate and write a staged buffer without committing."""
        snapshot_updates = self._validate_snapshot_actions(opname_session.id, staged)
        scanned_updates = self._validate_scanned_actions(opname_session.id, staged)

        for item, action, notes, reference in snapshot_updates:
            item.action_taken = action.value
            item.action_notes = notes
            item.sold_reference_id = reference if action.is_sold else None
        for item, action, notes in scanned_updates:
            item.action_taken = action.value
            item.action_notes = notes
        self.db.flush()

    def _validate_snapshot_actions(self, session_id: int, staged: StagedEdits) -> list[tuple]:
        if not staged.snapshot_items:
            return []
        items = {
            item.id: item
            for item in self.db.query(OpnameSnapshotItem)
            .filter(
                OpnameSnapshotItem.session_id == session_id,
                OpnameSnapshotItem.id.in_(list(staged.snapshot_items)),
            )
            .all()
        }

        updates = []
        for item_id, staged_action in staged.snapshot_items.items():
            item = items.get(item_id)
            if item is None:
                raise NotFoundError(f"Snapshot item {item_id} not found in session {session_id}")
            if item.scan_result != SnapshotScanResult.MISSING.value:
                raise InvalidActionError(f"Snapshot item {item_id} was matched and needs no action")
            try:
                action = SnapshotAction(staged_action.action)
            except ValueError as e:
                raise InvalidActionError(
                    f"Snapshot item {item_id}: unknown action {staged_action.action!r}"
                ) from e
            reference = _clean(staged_action.sold_reference_id)
            if action.is_sold and reference is None:
                raise MissingSoldReferenceError(item_id)
            updates.append((item, action, _clean(staged_action.notes), reference))
        return updates

    def _validate_scanned_actions(self, session_id: int, staged: StagedEdits) -> list[tuple]:
        if not staged.scanned_items:
            return []
        items = {
            item.id: item
            for item in self.db.query(OpnameScannedItem)
            .filter(
                OpnameScannedItem.session_id == session_id,
                OpnameScannedItem.id.in_(list(staged.scanned_items)),
            )
            .all()
        }

        updates = []
        for item_id, staged_action in staged.scanned_items.items():
            item = items.get(item_id)
            if item is None:
                raise NotFoundError(f"Scanned item {item_id} not found in session {session_id}")
            if item.scan_result != ScannedScanResult.UNREGISTERED.value:
                raise InvalidActionError(f"Scanned item {item_id} matched and needs no action")
            try:
                action = ScannedAction(staged_action.action)
            except ValueError as e:
                raise InvalidActionError(
                    f"Scanned item {item_id}: unknown action {staged_action.action!r}"
                ) from e
            updates.append((item, action, _clean(staged_action.notes)))
        return updates
