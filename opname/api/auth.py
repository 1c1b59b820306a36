"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from opname.api.dependencies import get_current_actor, get_current_user
from opname.database import get_db
from opname.models.enums import UserStatus
from opname.models.user import User
from opname.schemas.auth import (
    AuthResponse,
    UserLogin,
    UserRegister,
    UserResponse,
    UserStatusUpdate,
)
from opname.services.actor import Actor
from opname.services.auth import (
    authenticate_user,
    create_access_token,
    create_user,
    get_user_by_email,
    list_users,
    set_user_status,
)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    db: Annotated[Session, Depends(get_db)],
):
    """Register a new admin account.

    The account stays pending until a super admin approves it. Super admins
    are provisioned out of band.
    """
    if get_user_by_email(db, user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = create_user(db, user_data.email, user_data.password, user_data.name)
    access_token = create_access_token(user.id, user.role)

    return AuthResponse(
        access_token=access_token,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    db: Annotated[Session, Depends(get_db)],
):
    """Login with email and password."""
    user = authenticate_user(db, credentials.email, credentials.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(user.id, user.role)

    return AuthResponse(
        access_token=access_token,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user information."""
    return current_user


@router.get("/users", response_model=list[UserResponse])
def get_users(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[Session, Depends(get_db)],
    user_status: UserStatus | None = Query(default=None, alias="status"),
):
    """List accounts, e.g. those waiting for approval (super admin only)."""
    return list_users(db, actor, user_status)


@router.post("/users/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    update: UserStatusUpdate,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Approve, reject or suspend an account (super admin only)."""
    return set_user_status(db, user_id, update.action, actor)
