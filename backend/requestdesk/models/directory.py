"""
Per-tenant directory of buildings and facilities referenced by requests.
"""
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Boolean, Text, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from requestdesk.core.database import Base
from requestdesk.models.base import TimestampMixin, TenantMixin

if TYPE_CHECKING:
    from requestdesk.models.organization import Organization


class Building(Base, TimestampMixin, TenantMixin):
    """
    A building with an ordered list of room identifiers.
    Building requests must reference one of these rooms.
    """

    __tablename__ = "buildings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    room_numbers: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    organization: Mapped["Organization"] = relationship("Organization", back_populates="buildings")

    def has_room(self, room_number: str) -> bool:
        """An empty room list accepts any room."""
        if not self.room_numbers:
            return True
        return str(room_number).strip() in [str(r).strip() for r in self.room_numbers]

    def __repr__(self) -> str:
        return f"<Building(id={self.id}, name='{self.name}', org_id={self.organization_id})>"


class Facility(Base, TimestampMixin, TenantMixin):
    """
    A reservable facility with a free-form list of available items.
    """

    __tablename__ = "facilities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    available_items: Mapped[Optional[list]] = mapped_column(JSON, default=list, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    organization: Mapped["Organization"] = relationship("Organization", back_populates="facilities")

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, name='{self.name}', org_id={self.organization_id})>"
