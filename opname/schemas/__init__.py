"""Pydantic schemas for API requests and responses."""

from opname.schemas.auth import AuthResponse, UserLogin, UserRegister, UserResponse
from opname.schemas.opname import (
    BulkScanRequest,
    BulkScanResponse,
    LockRequest,
    SaveActionsRequest,
    ScanRequest,
    ScanResponse,
    SessionCreate,
    SessionDetailResponse,
    SessionListItem,
    SessionResponse,
    WorklistsResponse,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "AuthResponse",
    "UserResponse",
    "SessionCreate",
    "SessionResponse",
    "SessionListItem",
    "SessionDetailResponse",
    "ScanRequest",
    "ScanResponse",
    "BulkScanRequest",
    "BulkScanResponse",
    "SaveActionsRequest",
    "LockRequest",
    "WorklistsResponse",
]
