"""Explicit acting-user identity passed into every mutating operation."""

from dataclasses import dataclass

from opname.models.enums import UserRole
from opname.models.user import User


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation and what they are allowed to do."""

    user_id: int
    role: UserRole

    @property
    def can_approve(self) -> bool:
        return self.role.can_approve()

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        """Build an actor from an authenticated user row."""
        return cls(user_id=user.id, role=UserRole(user.role))
