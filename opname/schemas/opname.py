"""Opname session schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from opname.config import get_settings
from opname.services.discrepancy_resolver import StagedAction, StagedEdits

settings = get_settings()


class SessionCreate(BaseModel):
    """Start a new opname session."""

    session_type: Literal["opening", "closing", "adhoc"] = "opening"
    notes: str | None = Field(None, max_length=2000)
    assignee_ids: list[int] = Field(default_factory=list)


class SessionResponse(BaseModel):
    """Opname session with its counters."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_type: str
    session_status: str
    notes: str | None
    total_expected: int
    total_scanned: int
    total_match: int
    total_missing: int
    total_unregistered: int
    created_by: int
    started_at: datetime
    completed_at: datetime | None
    completed_by: int | None
    approved_at: datetime | None
    approved_by: int | None
    locked_at: datetime | None


class SessionListItem(SessionResponse):
    """Session row for the registry list."""

    assignee_ids: list[int] = Field(default_factory=list)


class SnapshotItemResponse(BaseModel):
    """Expected unit captured at session start."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    unit_id: int
    imei: str
    product_label: str | None
    selling_price: Decimal | None
    cost_price: Decimal | None
    stock_status: str
    scan_result: str
    action_taken: str | None
    action_notes: str | None
    sold_reference_id: str | None


class ScannedItemResponse(BaseModel):
    """Accepted scan."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    imei: str
    scan_result: str
    scanned_by: int | None
    scanned_at: datetime
    action_taken: str | None
    action_notes: str | None


class ScannerBreakdownEntry(BaseModel):
    """Scan and match counts of one scanner."""

    model_config = ConfigDict(from_attributes=True)

    scanned_by: int | None
    name: str | None
    scanned: int
    matched: int


class SessionDetailResponse(BaseModel):
    """Session with full snapshot and scan lists."""

    session: SessionResponse
    assignee_ids: list[int]
    snapshot_items: list[SnapshotItemResponse]
    scanned_items: list[ScannedItemResponse]
    scanner_breakdown: list[ScannerBreakdownEntry]


class ExpectedCountResponse(BaseModel):
    """Units a new session would currently expect."""

    expected: int


class ScanRequest(BaseModel):
    """Single scanned identifier."""

    model_config = ConfigDict(str_strip_whitespace=True)

    imei: str = Field(..., min_length=1, max_length=settings.imei_max_length)


class ScanResponse(BaseModel):
    """Outcome of a single accepted scan."""

    imei: str
    result: str
    scanned_item_id: int
    message: str
    session: SessionResponse


class BulkScanRequest(BaseModel):
    """Batch of identifiers, as a list and/or pasted text with one per line."""

    imeis: list[str] = Field(default_factory=list, max_length=5000)
    text: str | None = Field(None, max_length=200_000)

    def all_lines(self) -> list[str]:
        lines = list(self.imeis)
        if self.text:
            lines.extend(self.text.splitlines())
        return lines


class BulkLineResponse(BaseModel):
    """Result of one line of a bulk scan."""

    model_config = ConfigDict(from_attributes=True)

    line: int
    imei: str
    result: Literal["match", "unregistered", "duplicate", "invalid"]
    scanned_item_id: int | None
    message: str | None


class BulkScanResponse(BaseModel):
    """Per-line report of a bulk scan."""

    lines: list[BulkLineResponse]
    totals: dict[str, int]
    accepted: int
    session: SessionResponse


class ActionInput(BaseModel):
    """Selected disposition of one discrepancy."""

    action: str = Field(..., min_length=1, max_length=30)
    notes: str | None = Field(None, max_length=2000)
    sold_reference_id: str | None = Field(None, max_length=100)

    def to_staged(self) -> StagedAction:
        return StagedAction(
            action=self.action, notes=self.notes, sold_reference_id=self.sold_reference_id
        )


class SaveActionsRequest(BaseModel):
    """Staged actions keyed by item id."""

    snapshot_items: dict[int, ActionInput] = Field(default_factory=dict)
    scanned_items: dict[int, ActionInput] = Field(default_factory=dict)

    def to_staged(self) -> StagedEdits:
        return StagedEdits(
            snapshot_items={k: v.to_staged() for k, v in self.snapshot_items.items()},
            scanned_items={k: v.to_staged() for k, v in self.scanned_items.items()},
        )


class LockRequest(SaveActionsRequest):
    """Lock a session, persisting any actions still staged on the client."""


class WorklistsResponse(BaseModel):
    """Missing and unregistered worklists of a session."""

    session_id: int
    missing: list[SnapshotItemResponse]
    unregistered: list[ScannedItemResponse]
    pending_missing_ids: list[int]
    pending_unregistered_ids: list[int]
    is_resolved: bool


class AssigneesUpdate(BaseModel):
    """Replace the admins assigned to a session."""

    admin_ids: list[int]


class AssigneesResponse(BaseModel):
    """Admins assigned to a session."""

    session_id: int
    admin_ids: list[int]
