"""Scan ingestion: single scans, bulk batches and retractions."""

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from opname.config import get_settings
from opname.models.enums import ScannedScanResult, SessionStatus, SnapshotScanResult
from opname.models.opname_items import OpnameScannedItem, OpnameSnapshotItem
from opname.models.opname_session import OpnameSession
from opname.services.actor import Actor
from opname.services.exceptions import (
    DependencyError,
    DuplicateScanError,
    InvalidIdentifierError,
    NotFoundError,
    OpnameError,
)
from opname.services.session_store import (
    SessionCounts,
    load_session,
    refresh_counters,
    require_status,
)

logger = logging.getLogger(__name__)

MATCH_MESSAGE = "IMEI matches the stock snapshot."
UNREGISTERED_MESSAGE = "IMEI is not in the expected stock list."


@dataclass(frozen=True)
class ScanOutcome:
    """Result of one accepted scan."""

    imei: str
    result: ScannedScanResult
    scanned_item_id: int
    message: str


@dataclass(frozen=True)
class BulkLineResult:
    """Classification of one line of a bulk batch."""

    line: int
    imei: str
    result: str  # "match" | "unregistered" | "duplicate" | "invalid"
    scanned_item_id: int | None = None
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.scanned_item_id is not None


@dataclass
class BulkScanReport:
    """Per-line results of a bulk scan, in input order."""

    session_id: int
    lines: list[BulkLineResult]
    counts: SessionCounts | None = None

    @property
    def totals(self) -> dict[str, int]:
        tally = Counter(line.result for line in self.lines)
        return {key: tally.get(key, 0) for key in ("match", "unregistered", "duplicate", "invalid")}

    @property
    def accepted(self) -> int:
        return sum(1 for line in self.lines if line.accepted)


class ScanIngestor:
    """Applies scan observations to a draft session.

    Every public operation runs as one transaction holding the session row
    lock, so concurrent operators on the same session are serialized and the
    counters are re-derived before commit.
    """

    def __init__(
        self,
        db: Session,
        min_length: int | None = None,
        max_length: int | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.min_length = min_length or settings.imei_min_length
        self.max_length = max_length or settings.imei_max_length

    def scan(self, session_id: int, imei: str, actor: Actor) -> ScanOutcome:
        """Accept a single scanned identifier."""
        imei = imei.strip()
        try:
            opname_session = load_session(self.db, session_id, for_update=True)
            require_status(opname_session, SessionStatus.DRAFT, action="scan")
            outcome = self._ingest(opname_session, imei, actor)
            refresh_counters(self.db, opname_session)
            self.db.commit()
        except OpnameError as e:
            self.db.rollback()
            logger.info(f"Scan rejected in session {session_id}: {e.message}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Scan failed in session {session_id}: {e}", exc_info=True)
            raise DependencyError("Could not record the scan") from e

        logger.info(f"Session {session_id}: scanned {imei} -> {outcome.result.value}")
        return outcome

    def bulk_scan(self, session_id: int, lines: Iterable[str], actor: Actor) -> BulkScanReport:
        """Accept a batch of identifiers, one per line.

        Blank lines are dropped. Invalid and duplicate lines are reported and
        skipped; they never abort the rest of the batch.
        """
        imeis = [line.strip() for line in lines if line and line.strip()]
        results: list[BulkLineResult] = []
        try:
            opname_session = load_session(self.db, session_id, for_update=True)
            require_status(opname_session, SessionStatus.DRAFT, action="scan")

            for line_number, imei in enumerate(imeis, start=1):
                try:
                    outcome = self._ingest(opname_session, imei, actor)
                except InvalidIdentifierError as e:
                    results.append(BulkLineResult(line_number, imei, "invalid", message=e.message))
                    continue
                except DuplicateScanError as e:
                    results.append(
                        BulkLineResult(line_number, imei, "duplicate", message=e.message)
                    )
                    continue
                results.append(
                    BulkLineResult(
                        line_number,
                        imei,
                        outcome.result.value,
                        scanned_item_id=outcome.scanned_item_id,
                        message=outcome.message,
                    )
                )

            counts = refresh_counters(self.db, opname_session)
            self.db.commit()
        except OpnameError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Bulk scan failed in session {session_id}: {e}", exc_info=True)
            raise DependencyError("Could not record the bulk scan") from e

        report = BulkScanReport(session_id=session_id, lines=results, counts=counts)
        logger.info(
            f"Session {session_id}: bulk scan processed {report.accepted} of {len(imeis)} lines "
            f"{report.totals}"
        )
        return report

    def retract(self, session_id: int, scanned_item_id: int, actor: Actor) -> None:
        """Undo an accepted scan while the session is still a draft."""
        try:
            opname_session = load_session(self.db, session_id, for_update=True)
            require_status(opname_session, SessionStatus.DRAFT, action="retract a scan")

            item = (
                self.db.query(OpnameScannedItem)
                .filter(
                    OpnameScannedItem.id == scanned_item_id,
                    OpnameScannedItem.session_id == session_id,
                )
                .first()
            )
            if item is None:
                raise NotFoundError(f"Scan {scanned_item_id} not found in session {session_id}")

            if item.scan_result == ScannedScanResult.MATCH.value:
                snapshot_item = self._snapshot_item(session_id, item.imei)
                if snapshot_item is not None:
                    snapshot_item.scan_result = SnapshotScanResult.MISSING.value

            imei = item.imei
            self.db.delete(item)
            refresh_counters(self.db, opname_session)
            self.db.commit()
        except OpnameError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Retraction failed in session {session_id}: {e}", exc_info=True)
            raise DependencyError("Could not retract the scan") from e

        logger.info(f"Session {session_id}: scan of {imei} retracted by user {actor.user_id}")

    def _ingest(self, opname_session: OpnameSession, imei: str, actor: Actor) -> ScanOutcome:
        """Validate, classify and persist one identifier (no commit)."""
        if not self.min_length <= len(imei) <= self.max_length:
            raise InvalidIdentifierError(imei, self.min_length, self.max_length)

        if self._already_scanned(opname_session.id, imei):
            raise DuplicateScanError(imei)

        snapshot_item = self._snapshot_item(opname_session.id, imei)
        result = ScannedScanResult.MATCH if snapshot_item else ScannedScanResult.UNREGISTERED

        scanned = OpnameScannedItem(
            session_id=opname_session.id,
            imei=imei,
            scan_result=result.value,
            scanned_by=actor.user_id,
        )
        try:
            # The unique (session_id, imei) constraint settles any duplicate
            # that slipped past the check above; only this line is rolled back.
            with self.db.begin_nested():
                self.db.add(scanned)
                if snapshot_item is not None:
                    snapshot_item.scan_result = SnapshotScanResult.MATCH.value
        except IntegrityError as e:
            raise DuplicateScanError(imei) from e

        return ScanOutcome(
            imei=imei,
            result=result,
            scanned_item_id=scanned.id,
            message=MATCH_MESSAGE if snapshot_item else UNREGISTERED_MESSAGE,
        )

    def _already_scanned(self, session_id: int, imei: str) -> bool:
        return (
            self.db.query(OpnameScannedItem.id)
            .filter(
                OpnameScannedItem.session_id == session_id,
                OpnameScannedItem.imei == imei,
            )
            .first()
            is not None
        )

    def _snapshot_item(self, session_id: int, imei: str) -> OpnameSnapshotItem | None:
        return (
            self.db.query(OpnameSnapshotItem)
            .filter(
                OpnameSnapshotItem.session_id == session_id,
                OpnameSnapshotItem.imei == imei,
            )
            .first()
        )
