"""Stock opname API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from opname.api.dependencies import (
    get_current_actor,
    get_discrepancy_resolver,
    get_scan_ingestor,
    get_session_registry,
    get_session_workflow,
    get_snapshot_builder,
)
from opname.config import get_settings
from opname.models.enums import SessionStatus
from opname.schemas.opname import (
    AssigneesResponse,
    AssigneesUpdate,
    BulkLineResponse,
    BulkScanRequest,
    BulkScanResponse,
    ExpectedCountResponse,
    LockRequest,
    SaveActionsRequest,
    ScannedItemResponse,
    ScannerBreakdownEntry,
    ScanRequest,
    ScanResponse,
    SessionCreate,
    SessionDetailResponse,
    SessionListItem,
    SessionResponse,
    SnapshotItemResponse,
    WorklistsResponse,
)
from opname.services.actor import Actor
from opname.services.discrepancy_resolver import DiscrepancyResolver, Worklists
from opname.services.realtime import SessionEventType, publish_session_event
from opname.services.scan_ingestor import ScanIngestor
from opname.services.session_registry import SessionRegistry
from opname.services.session_workflow import SessionWorkflow
from opname.services.snapshot_builder import SnapshotBuilder
from opname.tasks.opname import audit_session_counters

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/v1/opname", tags=["opname"])


def _counters(session_response: SessionResponse) -> dict:
    return session_response.model_dump(
        include={
            "total_expected",
            "total_scanned",
            "total_match",
            "total_missing",
            "total_unregistered",
        }
    )


def _worklists_response(worklists: Worklists) -> WorklistsResponse:
    return WorklistsResponse(
        session_id=worklists.session_id,
        missing=[SnapshotItemResponse.model_validate(i) for i in worklists.missing],
        unregistered=[ScannedItemResponse.model_validate(i) for i in worklists.unregistered],
        pending_missing_ids=worklists.pending_missing_ids,
        pending_unregistered_ids=worklists.pending_unregistered_ids,
        is_resolved=worklists.is_resolved,
    )


def _schedule_counter_audit(session_id: int) -> None:
    if not settings.counter_audit_enabled:
        return
    try:
        audit_session_counters.delay(session_id)
    except Exception as e:
        # The audit is advisory; the transition has already committed
        logger.error(f"Failed to schedule counter audit for session {session_id}: {e}")


@router.get("/expected-count", response_model=ExpectedCountResponse)
def get_expected_count(
    actor: Annotated[Actor, Depends(get_current_actor)],
    builder: Annotated[SnapshotBuilder, Depends(get_snapshot_builder)],
):
    """Number of units a session created now would expect on the shelf."""
    return ExpectedCountResponse(expected=builder.preview_expected_count())


@router.get("/sessions", response_model=list[SessionListItem])
def list_sessions(
    actor: Annotated[Actor, Depends(get_current_actor)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    session_status: SessionStatus | None = Query(default=None, alias="status"),
):
    """List opname sessions, newest first."""
    sessions = registry.list_sessions(session_status)
    return [
        SessionListItem(
            **SessionResponse.model_validate(s).model_dump(),
            assignee_ids=sorted(a.admin_id for a in s.assignments),
        )
        for s in sessions
    ]


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    session_data: SessionCreate,
    actor: Annotated[Actor, Depends(get_current_actor)],
    builder: Annotated[SnapshotBuilder, Depends(get_snapshot_builder)],
):
    """Start a session by freezing a snapshot of the expected stock."""
    return builder.create_session(
        actor,
        session_data.session_type,
        notes=session_data.notes,
        assignee_ids=session_data.assignee_ids,
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
def get_session(
    session_id: int,
    actor: Annotated[Actor, Depends(get_current_actor)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Get a session with its snapshot and scan lists."""
    detail = registry.get_session_detail(session_id)
    return SessionDetailResponse(
        session=SessionResponse.model_validate(detail.session),
        assignee_ids=detail.assignee_ids,
        snapshot_items=[SnapshotItemResponse.model_validate(i) for i in detail.snapshot_items],
        scanned_items=[ScannedItemResponse.model_validate(i) for i in detail.scanned_items],
        scanner_breakdown=[
            ScannerBreakdownEntry.model_validate(t) for t in detail.scanner_breakdown
        ],
    )


@router.post("/sessions/{session_id}/scans", response_model=ScanResponse)
def scan_imei(
    session_id: int,
    scan_data: ScanRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    ingestor: Annotated[ScanIngestor, Depends(get_scan_ingestor)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Record a single scanned IMEI."""
    outcome = ingestor.scan(session_id, scan_data.imei, actor)
    session_response = SessionResponse.model_validate(registry.get_session(session_id))

    publish_session_event(
        session_id,
        SessionEventType.SCAN_ACCEPTED,
        {
            "imei": outcome.imei,
            "result": outcome.result.value,
            "scanned_item_id": outcome.scanned_item_id,
            "scanned_by": actor.user_id,
            "counters": _counters(session_response),
        },
    )

    return ScanResponse(
        imei=outcome.imei,
        result=outcome.result.value,
        scanned_item_id=outcome.scanned_item_id,
        message=outcome.message,
        session=session_response,
    )


@router.post("/sessions/{session_id}/scans/bulk", response_model=BulkScanResponse)
def bulk_scan(
    session_id: int,
    bulk_data: BulkScanRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    ingestor: Annotated[ScanIngestor, Depends(get_scan_ingestor)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Record many IMEIs at once; bad lines are reported, not fatal."""
    report = ingestor.bulk_scan(session_id, bulk_data.all_lines(), actor)
    session_response = SessionResponse.model_validate(registry.get_session(session_id))

    if report.accepted:
        publish_session_event(
            session_id,
            SessionEventType.SCANS_BULK_ACCEPTED,
            {
                "accepted": report.accepted,
                "totals": report.totals,
                "scanned_by": actor.user_id,
                "counters": _counters(session_response),
            },
        )

    return BulkScanResponse(
        lines=[BulkLineResponse.model_validate(line) for line in report.lines],
        totals=report.totals,
        accepted=report.accepted,
        session=session_response,
    )


@router.delete("/sessions/{session_id}/scans/{scanned_item_id}", response_model=SessionResponse)
def retract_scan(
    session_id: int,
    scanned_item_id: int,
    actor: Annotated[Actor, Depends(get_current_actor)],
    ingestor: Annotated[ScanIngestor, Depends(get_scan_ingestor)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Undo a scan while the session is still a draft."""
    ingestor.retract(session_id, scanned_item_id, actor)
    session_response = SessionResponse.model_validate(registry.get_session(session_id))

    publish_session_event(
        session_id,
        SessionEventType.SCAN_RETRACTED,
        {"scanned_item_id": scanned_item_id, "counters": _counters(session_response)},
    )
    return session_response


@router.post("/sessions/{session_id}/complete", response_model=SessionResponse)
def complete_session(
    session_id: int,
    actor: Annotated[Actor, Depends(get_current_actor)],
    workflow: Annotated[SessionWorkflow, Depends(get_session_workflow)],
):
    """Finish scanning and move the session to discrepancy resolution."""
    opname_session = workflow.complete_session(session_id, actor)
    session_response = SessionResponse.model_validate(opname_session)

    publish_session_event(
        session_id,
        SessionEventType.SESSION_COMPLETED,
        {"completed_by": actor.user_id, "counters": _counters(session_response)},
    )
    _schedule_counter_audit(session_id)
    return session_response


@router.get("/sessions/{session_id}/worklists", response_model=WorklistsResponse)
def get_worklists(
    session_id: int,
    actor: Annotated[Actor, Depends(get_current_actor)],
    resolver: Annotated[DiscrepancyResolver, Depends(get_discrepancy_resolver)],
):
    """Missing and unregistered items with their current actions."""
    return _worklists_response(resolver.worklists(session_id))


@router.put("/sessions/{session_id}/actions", response_model=WorklistsResponse)
def save_actions(
    session_id: int,
    actions: SaveActionsRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    resolver: Annotated[DiscrepancyResolver, Depends(get_discrepancy_resolver)],
):
    """Save actions for missing and unregistered items."""
    worklists = resolver.save_actions(session_id, actions.to_staged(), actor)

    publish_session_event(
        session_id,
        SessionEventType.ACTIONS_SAVED,
        {
            "pending_missing": len(worklists.pending_missing_ids),
            "pending_unregistered": len(worklists.pending_unregistered_ids),
        },
    )
    return _worklists_response(worklists)


@router.post("/sessions/{session_id}/lock", response_model=SessionResponse)
def lock_session(
    session_id: int,
    actor: Annotated[Actor, Depends(get_current_actor)],
    workflow: Annotated[SessionWorkflow, Depends(get_session_workflow)],
    lock_data: LockRequest | None = None,
):
    """Approve and lock a completed session (super admin only)."""
    staged = lock_data.to_staged() if lock_data else None
    opname_session = workflow.lock_session(session_id, actor, staged)

    publish_session_event(
        session_id,
        SessionEventType.SESSION_LOCKED,
        {"approved_by": actor.user_id},
    )
    _schedule_counter_audit(session_id)
    return opname_session


@router.put("/sessions/{session_id}/assignees", response_model=AssigneesResponse)
def update_assignees(
    session_id: int,
    assignees: AssigneesUpdate,
    actor: Annotated[Actor, Depends(get_current_actor)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Replace the admins assigned to a session (super admin only)."""
    admin_ids = registry.assign_admins(session_id, assignees.admin_ids, actor)
    return AssigneesResponse(session_id=session_id, admin_ids=admin_ids)
