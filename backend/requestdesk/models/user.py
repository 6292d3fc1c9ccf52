"""
User model and roles.
"""
import enum
from datetime import datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Boolean, Integer, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from requestdesk.core.database import Base
from requestdesk.models.base import TimestampMixin, enum_column

if TYPE_CHECKING:
    from requestdesk.models.organization import Organization


class UserRole(str, enum.Enum):
    """Role determines which requests a user sees and may change."""
    REQUESTER = "requester"  # Submits and follows own requests
    MAINTENANCE = "maintenance"  # Works requests within the organization
    ADMIN = "admin"  # Manages the organization
    SUPER_ADMIN = "super_admin"  # Cross-tenant, no home organization


STAFF_ROLES = frozenset({UserRole.MAINTENANCE, UserRole.ADMIN, UserRole.SUPER_ADMIN})
ASSIGNABLE_ROLES = frozenset({UserRole.MAINTENANCE, UserRole.ADMIN})


class User(Base, TimestampMixin):
    """
    User represents a person who can access RequestDesk.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Profile
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole), default=UserRole.REQUESTER, nullable=False, index=True
    )
    # Null only for super_admin
    organization_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    organization: Mapped[Optional["Organization"]] = relationship("Organization", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_assignable(self) -> bool:
        """Maintenance-capable users may be assigned requests."""
        return self.role in ASSIGNABLE_ROLES and self.is_active

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
