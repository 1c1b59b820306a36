"""SQLAlchemy models."""

from opname.models import immutability  # noqa: F401  registers the locked-session guard
from opname.models.opname_items import OpnameScannedItem, OpnameSnapshotItem
from opname.models.opname_session import OpnameSession, OpnameSessionAssignment
from opname.models.stock_unit import StockUnit
from opname.models.user import User

__all__ = [
    "User",
    "StockUnit",
    "OpnameSession",
    "OpnameSessionAssignment",
    "OpnameSnapshotItem",
    "OpnameScannedItem",
]
