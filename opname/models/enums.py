"""Enums for model fields."""

from enum import Enum


class UserRole(str, Enum):
    """Back-office roles."""

    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    def can_approve(self) -> bool:
        """Check if this role may lock (approve) an opname session."""
        return self == UserRole.SUPER_ADMIN


class UserStatus(str, Enum):
    """Approval state of a back-office account."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class UserAction(str, Enum):
    """Decision a super admin takes on an account."""

    APPROVE = "approve"
    REJECT = "reject"
    SUSPEND = "suspend"

    @property
    def resulting_status(self) -> UserStatus:
        return {
            UserAction.APPROVE: UserStatus.ACTIVE,
            UserAction.REJECT: UserStatus.REJECTED,
            UserAction.SUSPEND: UserStatus.SUSPENDED,
        }[self]


class StockStatus(str, Enum):
    """Status of a physical unit in the inventory store."""

    AVAILABLE = "available"
    RESERVED = "reserved"
    COMING_SOON = "coming_soon"
    SERVICE = "service"
    SOLD = "sold"
    RETURN = "return"
    LOST = "lost"


class SessionType(str, Enum):
    """Classification of an opname session (no behavioral difference)."""

    OPENING = "opening"
    CLOSING = "closing"
    ADHOC = "adhoc"


class SessionStatus(str, Enum):
    """Opname session lifecycle: draft -> completed -> locked."""

    DRAFT = "draft"
    COMPLETED = "completed"
    LOCKED = "locked"


class SnapshotScanResult(str, Enum):
    """Scan state of an expected unit."""

    MISSING = "missing"
    MATCH = "match"


class ScannedScanResult(str, Enum):
    """Classification of an accepted scan, fixed at ingestion."""

    MATCH = "match"
    UNREGISTERED = "unregistered"


class SnapshotAction(str, Enum):
    """Disposition of an expected unit that was never scanned."""

    SOLD_POS = "sold_pos"
    SOLD_ECOMMERCE = "sold_ecommerce"
    SOLD_MANUAL = "sold_manual"
    LOST = "lost"
    DAMAGED = "damaged"
    IN_SERVICE = "in_service"
    INVESTIGATE = "investigate"

    @property
    def is_sold(self) -> bool:
        """Sold dispositions must carry a sale reference."""
        return self in (
            SnapshotAction.SOLD_POS,
            SnapshotAction.SOLD_ECOMMERCE,
            SnapshotAction.SOLD_MANUAL,
        )


class ScannedAction(str, Enum):
    """Disposition of a scanned identifier that was not expected."""

    REGISTER_UNIT = "register_unit"
    SCAN_ERROR = "scan_error"
    RETURN_TO_SUPPLIER = "return_to_supplier"
    INVESTIGATE = "investigate"
