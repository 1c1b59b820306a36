"""Opname session models."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from opname.database import Base
from opname.models.enums import SessionStatus
from opname.models.mixins import TimestampMixin


class OpnameSession(Base, TimestampMixin):
    """One bounded stock-taking exercise, from snapshot to lock.

    The ``total_*`` columns are derived from the child rows and are kept in
    step with them inside the same transaction as every mutation.
    """

    __tablename__ = "opname_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_type = Column(String(20), nullable=False)  # "opening" | "closing" | "adhoc"
    session_status = Column(
        String(20), nullable=False, default=SessionStatus.DRAFT.value, index=True
    )
    notes = Column(Text, nullable=True)

    total_expected = Column(Integer, nullable=False, default=0)
    total_scanned = Column(Integer, nullable=False, default=0)
    total_match = Column(Integer, nullable=False, default=0)
    total_missing = Column(Integer, nullable=False, default=0)
    total_unregistered = Column(Integer, nullable=False, default=0)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    started_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), index=True
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    snapshot_items = relationship(
        "OpnameSnapshotItem", back_populates="session", cascade="all, delete-orphan"
    )
    scanned_items = relationship(
        "OpnameScannedItem", back_populates="session", cascade="all, delete-orphan"
    )
    assignments = relationship(
        "OpnameSessionAssignment", back_populates="session", cascade="all, delete-orphan"
    )
    created_by_user = relationship("User", foreign_keys=[created_by])
    approved_by_user = relationship("User", foreign_keys=[approved_by])

    @property
    def is_locked(self) -> bool:
        """Check if the session has been approved and locked."""
        return self.session_status == SessionStatus.LOCKED.value


class OpnameSessionAssignment(Base):
    """Admin assigned to carry out an opname session."""

    __tablename__ = "opname_session_assignments"
    __table_args__ = (
        UniqueConstraint("session_id", "admin_id", name="uq_opname_assignment_session_admin"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("opname_sessions.id"), nullable=False, index=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    # Relationships
    session = relationship("OpnameSession", back_populates="assignments")
    admin = relationship("User", foreign_keys=[admin_id])
