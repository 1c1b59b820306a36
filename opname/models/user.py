"""User model."""

from sqlalchemy import Column, Integer, String

from opname.database import Base
from opname.models.enums import UserRole, UserStatus
from opname.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """Back-office user for authentication and accountability."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    # "admin" | "super_admin"
    role = Column(String(20), nullable=False, default=UserRole.ADMIN.value)
    # New registrations wait for a super admin to approve them
    status = Column(String(20), nullable=False, default=UserStatus.PENDING.value)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value
