"""Snapshot and scan rows belonging to an opname session."""

from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from opname.database import Base
from opname.models.enums import SnapshotScanResult


class OpnameSnapshotItem(Base):
    """Point-in-time copy of one unit expected on the shelf."""

    __tablename__ = "opname_snapshot_items"
    __table_args__ = (
        UniqueConstraint("session_id", "imei", name="uq_opname_snapshot_session_imei"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("opname_sessions.id"), nullable=False, index=True)
    unit_id = Column(Integer, nullable=False, index=True)  # stock_units.id, owned by the store
    imei = Column(String(32), nullable=False)
    product_label = Column(String(255), nullable=True)
    selling_price = Column(Numeric(14, 2), nullable=True)
    cost_price = Column(Numeric(14, 2), nullable=True)
    stock_status = Column(String(20), nullable=False)  # status at snapshot time
    scan_result = Column(String(20), nullable=False, default=SnapshotScanResult.MISSING.value)

    # Discrepancy resolution (only meaningful while scan_result == "missing")
    action_taken = Column(String(30), nullable=True)
    action_notes = Column(Text, nullable=True)
    sold_reference_id = Column(String(100), nullable=True)  # required for sold_* actions

    # Relationships
    session = relationship("OpnameSession", back_populates="snapshot_items")


class OpnameScannedItem(Base):
    """One accepted physical scan within a session."""

    __tablename__ = "opname_scanned_items"
    __table_args__ = (
        UniqueConstraint("session_id", "imei", name="uq_opname_scanned_session_imei"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("opname_sessions.id"), nullable=False, index=True)
    imei = Column(String(32), nullable=False)
    scan_result = Column(String(20), nullable=False)  # "match" | "unregistered"
    scanned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    scanned_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    # Discrepancy resolution (only meaningful while scan_result == "unregistered")
    action_taken = Column(String(30), nullable=True)
    action_notes = Column(Text, nullable=True)

    # Relationships
    session = relationship("OpnameSession", back_populates="scanned_items")
    scanned_by_user = relationship("User", foreign_keys=[scanned_by])
