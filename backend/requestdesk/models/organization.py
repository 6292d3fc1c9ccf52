"""
Organization model for multi-tenancy support.
"""
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from requestdesk.core.database import Base
from requestdesk.models.base import TimestampMixin

if TYPE_CHECKING:
    from requestdesk.models.user import User
    from requestdesk.models.directory import Building, Facility


class Organization(Base, TimestampMixin):
    """
    Organization represents a tenant.
    Buildings, facilities, users and requests are all isolated by organization.
    """

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    # Users signing up with this email domain join the organization automatically
    domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    users: Mapped[List["User"]] = relationship("User", back_populates="organization")
    buildings: Mapped[List["Building"]] = relationship(
        "Building", back_populates="organization", cascade="all, delete-orphan"
    )
    facilities: Mapped[List["Facility"]] = relationship(
        "Facility", back_populates="organization", cascade="all, delete-orphan"
    )

    def get_setting(self, key: str, default=None):
        return (self.settings or {}).get(key, default)

    @property
    def requester_can_cancel(self) -> bool:
        return bool(self.get_setting("requester_can_cancel", True))

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug='{self.slug}', name='{self.name}')>"
