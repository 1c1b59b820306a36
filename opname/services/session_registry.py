"""Session listing, detail views and assignment management."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import func
from sqlalchemy.orm import Session

from opname.models.enums import ScannedScanResult, SessionStatus
from opname.models.opname_items import OpnameScannedItem, OpnameSnapshotItem
from opname.models.opname_session import OpnameSession, OpnameSessionAssignment
from opname.models.user import User
from opname.services.actor import Actor
from opname.services.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from opname.services.session_store import (
    SessionCounts,
    load_session,
    recount_session,
    require_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannerTally:
    """Scans accepted from one scanner; ``scanned_by`` is None for unattributed scans."""

    scanned_by: int | None
    name: str | None
    scanned: int
    matched: int


@dataclass
class SessionDetail:
    """A session with its full child lists."""

    session: OpnameSession
    snapshot_items: list[OpnameSnapshotItem]
    scanned_items: list[OpnameScannedItem]
    assignee_ids: list[int] = field(default_factory=list)
    scanner_breakdown: list[ScannerTally] = field(default_factory=list)


@dataclass(frozen=True)
class CounterCheck:
    """Stored counters compared with the ones derived from child rows."""

    session_id: int
    stored: dict[str, int]
    derived: SessionCounts

    @property
    def drifted(self) -> bool:
        return self.stored != self.derived.as_dict()


def replace_assignments(
    db: Session,
    opname_session: OpnameSession,
    admin_ids: list[int],
    actor: Actor,
) -> None:
    """Make ``admin_ids`` the exact set of admins assigned to the session.

    Does not commit; callers own the transaction.
    """
    if not actor.can_approve:
        raise PermissionDeniedError("Only a super admin can assign admins to a session")

    wanted = list(dict.fromkeys(admin_ids))
    if wanted:
        found = {uid for (uid,) in db.query(User.id).filter(User.id.in_(wanted)).all()}
        unknown = [uid for uid in wanted if uid not in found]
        if unknown:
            raise NotFoundError(f"Users not found: {unknown}")

    existing = {a.admin_id: a for a in opname_session.assignments}
    for admin_id, assignment in existing.items():
        if admin_id not in wanted:
            db.delete(assignment)
    for admin_id in wanted:
        if admin_id not in existing:
            db.add(
                OpnameSessionAssignment(
                    session_id=opname_session.id,
                    admin_id=admin_id,
                    assigned_by=actor.user_id,
                )
            )


class SessionRegistry:
    """Read side of opname sessions for the surrounding UI and reporting."""

    def __init__(self, db: Session):
        self.db = db

    def list_sessions(self, status: SessionStatus | str | None = None) -> list[OpnameSession]:
        """List sessions, newest first, optionally filtered by status."""
        query = self.db.query(OpnameSession)
        if status is not None:
            try:
                status = SessionStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown session status: {status}") from e
            query = query.filter(OpnameSession.session_status == status.value)
        return query.order_by(OpnameSession.started_at.desc(), OpnameSession.id.desc()).all()

    def get_session(self, session_id: int) -> OpnameSession:
        return load_session(self.db, session_id)

    def get_session_detail(self, session_id: int) -> SessionDetail:
        """Session with snapshot rows and scans (newest scan first)."""
        opname_session = load_session(self.db, session_id)
        snapshot_items = (
            self.db.query(OpnameSnapshotItem)
            .filter(OpnameSnapshotItem.session_id == session_id)
            .order_by(OpnameSnapshotItem.id)
            .all()
        )
        scanned_items = (
            self.db.query(OpnameScannedItem)
            .filter(OpnameScannedItem.session_id == session_id)
            .order_by(OpnameScannedItem.scanned_at.desc(), OpnameScannedItem.id.desc())
            .all()
        )
        return SessionDetail(
            session=opname_session,
            snapshot_items=snapshot_items,
            scanned_items=scanned_items,
            assignee_ids=sorted(a.admin_id for a in opname_session.assignments),
            scanner_breakdown=self.scanner_breakdown(session_id),
        )

    def scanner_breakdown(self, session_id: int) -> list[ScannerTally]:
        """Scan and match counts per scanning user, busiest scanner first."""
        rows = (
            self.db.query(
                OpnameScannedItem.scanned_by,
                User.name,
                OpnameScannedItem.scan_result,
                func.count(OpnameScannedItem.id),
            )
            .outerjoin(User, User.id == OpnameScannedItem.scanned_by)
            .filter(OpnameScannedItem.session_id == session_id)
            .group_by(OpnameScannedItem.scanned_by, User.name, OpnameScannedItem.scan_result)
            .all()
        )

        tallies: dict[int | None, dict] = {}
        for scanned_by, name, scan_result, count in rows:
            tally = tallies.setdefault(scanned_by, {"name": name, "scanned": 0, "matched": 0})
            tally["scanned"] += count
            if scan_result == ScannedScanResult.MATCH.value:
                tally["matched"] += count

        breakdown = [ScannerTally(scanned_by=uid, **t) for uid, t in tallies.items()]
        # Unattributed scans sort last among equal counts
        breakdown.sort(key=lambda t: (-t.scanned, t.scanned_by is None, t.scanned_by or 0))
        return breakdown

    def assign_admins(self, session_id: int, admin_ids: list[int], actor: Actor) -> list[int]:
        """Replace the admins assigned to a session; returns the new set."""
        opname_session = load_session(self.db, session_id, for_update=True)
        try:
            require_status(
                opname_session,
                SessionStatus.DRAFT,
                SessionStatus.COMPLETED,
                action="change assignees",
            )
            replace_assignments(self.db, opname_session, admin_ids, actor)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(opname_session)
        logger.info(
            f"Session {session_id} assignees set to {admin_ids} by user {actor.user_id}"
        )
        return sorted(a.admin_id for a in opname_session.assignments)

    def verify_counters(self, session_id: int) -> CounterCheck:
        """Compare the stored counters against a fresh recount."""
        opname_session = load_session(self.db, session_id)
        stored = {
            "total_expected": opname_session.total_expected,
            "total_scanned": opname_session.total_scanned,
            "total_match": opname_session.total_match,
            "total_missing": opname_session.total_missing,
            "total_unregistered": opname_session.total_unregistered,
        }
        return CounterCheck(
            session_id=session_id,
            stored=stored,
            derived=recount_session(self.db, session_id),
        )
