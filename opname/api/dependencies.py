"""FastAPI dependencies for authentication, database and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from opname.database import get_db
from opname.models.user import User
from opname.services.actor import Actor
from opname.services.auth import decode_access_token
from opname.services.discrepancy_resolver import DiscrepancyResolver
from opname.services.inventory_source import InventorySnapshotSource, StockUnitSnapshotSource
from opname.services.scan_ingestor import ScanIngestor
from opname.services.session_registry import SessionRegistry
from opname.services.session_workflow import SessionWorkflow
from opname.services.snapshot_builder import SnapshotBuilder

security = HTTPBearer()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    payload = decode_access_token(credentials.credentials)

    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def get_current_actor(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Actor:
    """Explicit actor for service calls; role comes from the user row, not the token.

    Only approved accounts may act. Pending, suspended and rejected users can
    still sign in and read their own profile.
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account is {current_user.status}; a super admin must approve it first",
        )
    return Actor.from_user(current_user)


def get_snapshot_source(
    db: Annotated[Session, Depends(get_db)],
) -> InventorySnapshotSource:
    """Get the inventory snapshot source."""
    return StockUnitSnapshotSource(db)


def get_snapshot_builder(
    db: Annotated[Session, Depends(get_db)],
    source: Annotated[InventorySnapshotSource, Depends(get_snapshot_source)],
) -> SnapshotBuilder:
    """Get snapshot builder with dependencies."""
    return SnapshotBuilder(db, source)


def get_scan_ingestor(
    db: Annotated[Session, Depends(get_db)],
) -> ScanIngestor:
    """Get scan ingestor service."""
    return ScanIngestor(db)


def get_discrepancy_resolver(
    db: Annotated[Session, Depends(get_db)],
) -> DiscrepancyResolver:
    """Get discrepancy resolver service."""
    return DiscrepancyResolver(db)


def get_session_workflow(
    db: Annotated[Session, Depends(get_db)],
) -> SessionWorkflow:
    """Get session workflow service."""
    return SessionWorkflow(db)


def get_session_registry(
    db: Annotated[Session, Depends(get_db)],
) -> SessionRegistry:
    """Get session registry service."""
    return SessionRegistry(db)
