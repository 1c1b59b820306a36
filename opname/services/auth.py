"""Authentication service for JWT and password handling."""

import logging
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from opname.config import get_settings
from opname.models.enums import UserAction, UserRole, UserStatus
from opname.models.user import User
from opname.services.actor import Actor
from opname.services.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)
settings = get_settings()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(user_id: int, role: str) -> str:
    """Create a JWT access token carrying the user's role."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.jwt_expiration_minutes)
    to_encode = {
        "sub": str(user_id),
        "role": role,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Authenticate a user by email and password."""
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get a user by email."""
    return db.query(User).filter(User.email == email.lower()).first()


def create_user(
    db: Session,
    email: str,
    password: str,
    name: str | None = None,
    role: UserRole = UserRole.ADMIN,
    status: UserStatus = UserStatus.PENDING,
) -> User:
    """Create a new back-office user."""
    user = User(
        email=email.lower(),
        password_hash=get_password_hash(password),
        name=name,
        role=role.value,
        status=status.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session, actor: Actor, status: UserStatus | None = None) -> list[User]:
    """List back-office accounts for review (super admin only)."""
    if not actor.can_approve:
        raise PermissionDeniedError("Only a super admin can review accounts")
    query = db.query(User)
    if status is not None:
        query = query.filter(User.status == status.value)
    return query.order_by(User.id).all()


def set_user_status(db: Session, user_id: int, action: UserAction, actor: Actor) -> User:
    """Approve, reject or suspend an account (super admin only)."""
    if not actor.can_approve:
        raise PermissionDeniedError("Only a super admin can approve or suspend accounts")
    if user_id == actor.user_id:
        raise InvalidTransitionError("You cannot change the status of your own account")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    user.status = action.resulting_status.value
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} set to {user.status} by user {actor.user_id}")
    return user
