"""Read access to the inventory unit store for snapshot building."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opname.config import get_settings
from opname.models.stock_unit import StockUnit
from opname.services.exceptions import SnapshotSourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpectedUnit:
    """A unit the store considers physically on the shelf right now."""

    unit_id: int
    imei: str
    product_label: str | None
    selling_price: Decimal | None
    cost_price: Decimal | None
    stock_status: str


class InventorySnapshotSource(Protocol):
    """Query surface returning the units expected on the shelf."""

    def list_expected_units(self) -> list[ExpectedUnit]: ...

    def count_expected_units(self) -> int: ...


class StockUnitSnapshotSource:
    """Snapshot source backed by the ``stock_units`` table."""

    def __init__(self, db: Session, statuses: list[str] | None = None):
        self.db = db
        self.statuses = statuses or get_settings().expected_stock_statuses

    def list_expected_units(self) -> list[ExpectedUnit]:
        try:
            units = (
                self.db.query(StockUnit)
                .filter(StockUnit.stock_status.in_(self.statuses))
                .order_by(StockUnit.id)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to read expected stock units: {e}")
            raise SnapshotSourceError("Inventory store is unavailable") from e

        return [
            ExpectedUnit(
                unit_id=unit.id,
                imei=unit.imei.strip(),
                product_label=unit.product_label or unit.imei,
                selling_price=unit.selling_price,
                cost_price=unit.cost_price,
                stock_status=unit.stock_status,
            )
            for unit in units
        ]

    def count_expected_units(self) -> int:
        try:
            return (
                self.db.query(StockUnit)
                .filter(StockUnit.stock_status.in_(self.statuses))
                .count()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to count expected stock units: {e}")
            raise SnapshotSourceError("Inventory store is unavailable") from e
