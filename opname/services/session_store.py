"""Session loading, row locking and counter derivation shared by the services."""

from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from opname.models.enums import ScannedScanResult, SessionStatus, SnapshotScanResult
from opname.models.opname_items import OpnameScannedItem, OpnameSnapshotItem
from opname.models.opname_session import OpnameSession
from opname.services.exceptions import InvalidTransitionError, NotFoundError


@dataclass(frozen=True)
class SessionCounts:
    """Counter tuple recomputed from the child tables."""

    total_expected: int
    total_scanned: int
    total_match: int
    total_missing: int
    total_unregistered: int
    scanned_match: int

    def as_dict(self) -> dict[str, int]:
        return {
            "total_expected": self.total_expected,
            "total_scanned": self.total_scanned,
            "total_match": self.total_match,
            "total_missing": self.total_missing,
            "total_unregistered": self.total_unregistered,
        }


def load_session(db: Session, session_id: int, for_update: bool = False) -> OpnameSession:
    """Load a session, optionally taking a row lock for the rest of the transaction.

    The row lock serializes every mutating operation on one session; on
    backends without ``SELECT ... FOR UPDATE`` the database write lock does it.
    """
    query = db.query(OpnameSession).filter(OpnameSession.id == session_id)
    if for_update:
        # populate_existing picks up writes committed by other operators
        query = query.with_for_update().populate_existing()
    opname_session = query.first()
    if opname_session is None:
        raise NotFoundError(f"Opname session {session_id} not found")
    return opname_session


def require_status(opname_session: OpnameSession, *allowed: SessionStatus, action: str) -> None:
    """Reject the operation unless the session is in one of ``allowed``."""
    if opname_session.session_status not in {s.value for s in allowed}:
        raise InvalidTransitionError(
            f"Cannot {action}: session {opname_session.id} is {opname_session.session_status}"
        )


def recount_session(db: Session, session_id: int) -> SessionCounts:
    """Derive the counter tuple from the snapshot and scan rows."""
    snapshot_counts = dict(
        db.query(OpnameSnapshotItem.scan_result, func.count(OpnameSnapshotItem.id))
        .filter(OpnameSnapshotItem.session_id == session_id)
        .group_by(OpnameSnapshotItem.scan_result)
        .all()
    )
    scanned_counts = dict(
        db.query(OpnameScannedItem.scan_result, func.count(OpnameScannedItem.id))
        .filter(OpnameScannedItem.session_id == session_id)
        .group_by(OpnameScannedItem.scan_result)
        .all()
    )

    expected = sum(snapshot_counts.values())
    match = snapshot_counts.get(SnapshotScanResult.MATCH.value, 0)
    return SessionCounts(
        total_expected=expected,
        total_scanned=sum(scanned_counts.values()),
        total_match=match,
        total_missing=expected - match,
        total_unregistered=scanned_counts.get(ScannedScanResult.UNREGISTERED.value, 0),
        scanned_match=scanned_counts.get(ScannedScanResult.MATCH.value, 0),
    )


def refresh_counters(db: Session, opname_session: OpnameSession) -> SessionCounts:
    """Flush pending row changes and write the re-derived counters onto the session."""
    db.flush()
    counts = recount_session(db, opname_session.id)
    opname_session.total_scanned = counts.total_scanned
    opname_session.total_match = counts.total_match
    opname_session.total_missing = counts.total_missing
    opname_session.total_unregistered = counts.total_unregistered
    return counts
