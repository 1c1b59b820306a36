"""Session creation with a frozen snapshot of expected inventory."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opname.models.enums import SessionStatus, SessionType, SnapshotScanResult
from opname.models.opname_items import OpnameSnapshotItem
from opname.models.opname_session import OpnameSession
from opname.services.actor import Actor
from opname.services.exceptions import DependencyError, OpnameError, ValidationError
from opname.services.inventory_source import InventorySnapshotSource, StockUnitSnapshotSource
from opname.services.session_registry import replace_assignments
from opname.services.session_store import recount_session

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """Creates opname sessions and materializes their snapshot rows."""

    def __init__(self, db: Session, source: InventorySnapshotSource | None = None):
        self.db = db
        self.source = source or StockUnitSnapshotSource(db)

    def preview_expected_count(self) -> int:
        """Number of units a session created now would expect."""
        return self.source.count_expected_units()

    def create_session(
        self,
        actor: Actor,
        session_type: SessionType | str,
        notes: str | None = None,
        assignee_ids: list[int] | None = None,
    ) -> OpnameSession:
        """Create a draft session and copy every expected unit into it.

        Session row, snapshot rows, counters and assignments are written in one
        transaction. ``total_expected`` is the number of snapshot rows actually
        persisted; if anything fails nothing is kept.
        """
        try:
            session_type = SessionType(session_type)
        except ValueError as e:
            raise ValidationError(f"Unknown session type: {session_type}") from e

        try:
            units = self.source.list_expected_units()

            opname_session = OpnameSession(
                session_type=session_type.value,
                session_status=SessionStatus.DRAFT.value,
                notes=notes or None,
                created_by=actor.user_id,
            )
            self.db.add(opname_session)
            self.db.flush()

            self.db.add_all(
                [
                    OpnameSnapshotItem(
                        session_id=opname_session.id,
                        unit_id=unit.unit_id,
                        imei=unit.imei,
                        product_label=unit.product_label,
                        selling_price=unit.selling_price,
                        cost_price=unit.cost_price,
                        stock_status=unit.stock_status,
                        scan_result=SnapshotScanResult.MISSING.value,
                    )
                    for unit in units
                ]
            )
            if assignee_ids:
                replace_assignments(self.db, opname_session, assignee_ids, actor)
            self.db.flush()

            counts = recount_session(self.db, opname_session.id)
            if counts.total_expected != len(units):
                raise DependencyError(
                    f"Snapshot incomplete: {counts.total_expected} of {len(units)} rows persisted"
                )
            opname_session.total_expected = counts.total_expected
            opname_session.total_missing = counts.total_missing

            self.db.commit()
        except OpnameError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Snapshot build failed: {e}", exc_info=True)
            raise DependencyError("Could not persist the stock snapshot") from e

        self.db.refresh(opname_session)
        logger.info(
            f"Opname session {opname_session.id} ({session_type.value}) created by user "
            f"{actor.user_id} with {opname_session.total_expected} expected units"
        )
        return opname_session
