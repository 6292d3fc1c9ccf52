"""
Request aggregate: the request record, its typed detail row, assignments,
status history, messages and photos.
"""
import enum
from datetime import datetime, date, time
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Boolean, Text, Integer, ForeignKey, Date, Time, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from requestdesk.core.database import Base
from requestdesk.models.base import TimestampMixin, TenantMixin, enum_column, utcnow

if TYPE_CHECKING:
    from requestdesk.models.organization import Organization
    from requestdesk.models.user import User


class RequestType(str, enum.Enum):
    """Type of request; decides which detail row exists."""
    FACILITIES = "facilities"  # Event logistics (chairs, AV, tables...)
    BUILDING = "building"  # Repair in a specific room


class RequestStatus(str, enum.Enum):
    """Request lifecycle status."""
    PENDING = "pending"
    APPROVED = "approved"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED})


class RequestPriority(str, enum.Enum):
    """Request priority level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class PhotoStorageState(str, enum.Enum):
    """Two-phase photo storage state."""
    RESERVED = "reserved"  # Metadata row written, binary not yet confirmed
    CONFIRMED = "confirmed"  # Binary present in file storage
    MISSING = "missing"  # Binary never arrived or has since been lost


class Request(Base, TimestampMixin, TenantMixin):
    """
    A single maintenance/facilities ticket. Aggregate root of the domain.

    ``status`` mirrors the latest StatusUpdate row and is only written
    together with that row.
    """

    __tablename__ = "requests"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_type: Mapped[RequestType] = mapped_column(
        enum_column(RequestType), default=RequestType.FACILITIES, nullable=False, index=True
    )
    facility: Mapped[str] = mapped_column(String(255), nullable=False)
    event: Mapped[str] = mapped_column(String(255), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    setup_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    requestor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[RequestStatus] = mapped_column(
        enum_column(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True
    )
    priority: Mapped[RequestPriority] = mapped_column(
        enum_column(RequestPriority), default=RequestPriority.MEDIUM, nullable=False
    )

    # Relationships
    organization: Mapped["Organization"] = relationship("Organization")
    requestor: Mapped["User"] = relationship("User", foreign_keys=[requestor_id])
    items: Mapped[Optional["RequestItems"]] = relationship(
        "RequestItems", back_populates="request", uselist=False, cascade="all, delete-orphan"
    )
    building_details: Mapped[Optional["BuildingRequest"]] = relationship(
        "BuildingRequest", back_populates="request", uselist=False, cascade="all, delete-orphan"
    )
    assignments: Mapped[List["Assignment"]] = relationship(
        "Assignment", back_populates="request", cascade="all, delete-orphan",
        order_by=lambda: [Assignment.assigned_at, Assignment.id],
    )
    status_updates: Mapped[List["StatusUpdate"]] = relationship(
        "StatusUpdate", back_populates="request", cascade="all, delete-orphan",
        order_by=lambda: [StatusUpdate.updated_at, StatusUpdate.id],
    )
    messages: Mapped[List["Message"]] = relationship(
        "Message", back_populates="request", cascade="all, delete-orphan"
    )
    photos: Mapped[List["RequestPhoto"]] = relationship(
        "RequestPhoto", back_populates="request", cascade="all, delete-orphan"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Request(id={self.id}, type='{self.request_type.value}', status='{self.status.value}')>"


class RequestItems(Base):
    """
    Logistics needs of a facilities request (1:1).
    """

    __tablename__ = "request_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    chairs_audience: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    chairs_audience_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    chairs_stage: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    chairs_stage_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    podium: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    podium_sound: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    podium_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    audio_visual: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    av_other: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    av_other_spec: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    tables: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tables_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tables_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    lighting: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    food: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cleanup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    other_needs: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    request: Mapped["Request"] = relationship("Request", back_populates="items")

    def selected_labels(self) -> List[str]:
        """Human-readable list of the items that were ticked."""
        labels = []
        if self.chairs_audience:
            labels.append(f"Audience chairs ({self.chairs_audience_qty or 0})")
        if self.chairs_stage:
            labels.append(f"Stage chairs ({self.chairs_stage_qty or 0})")
        if self.podium:
            labels.append("Podium with sound" if self.podium_sound else "Podium")
        if self.audio_visual:
            labels.append("Audio/visual")
        if self.av_other:
            labels.append(f"Other AV: {self.av_other_spec or 'unspecified'}")
        if self.tables:
            labels.append(f"Tables ({self.tables_qty or 0})")
        if self.lighting:
            labels.append("Lighting")
        if self.food:
            labels.append("Food")
        if self.cleanup:
            labels.append("Cleanup")
        return labels


class BuildingRequest(Base):
    """
    Location and description of a building repair request (1:1).
    """

    __tablename__ = "building_requests"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    building: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    room_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    request: Mapped["Request"] = relationship("Request", back_populates="building_details")


class Assignment(Base):
    """
    Who is working a request. Rows are never updated; the most recent one
    names the current assignee.
    """

    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignee_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    request: Mapped["Request"] = relationship("Request", back_populates="assignments")
    assignee: Mapped["User"] = relationship("User", foreign_keys=[assignee_id])
    assigner: Mapped["User"] = relationship("User", foreign_keys=[assigner_id])

    def __repr__(self) -> str:
        return f"<Assignment(request_id={self.request_id}, assignee_id={self.assignee_id})>"


class StatusUpdate(Base):
    """
    Append-only log of status transitions.
    """

    __tablename__ = "status_updates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[RequestStatus] = mapped_column(enum_column(RequestStatus), nullable=False)
    updated_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    request: Mapped["Request"] = relationship("Request", back_populates="status_updates")
    updated_by: Mapped["User"] = relationship("User", foreign_keys=[updated_by_id])

    def __repr__(self) -> str:
        return f"<StatusUpdate(request_id={self.request_id}, status='{self.status.value}')>"


class Message(Base):
    """
    Append-only conversation entry on a request.
    """

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    request: Mapped["Request"] = relationship("Request", back_populates="messages")
    sender: Mapped["User"] = relationship("User", foreign_keys=[sender_id])


class RequestPhoto(Base):
    """
    Index entry for a photo binary held in file storage.
    The row is authoritative; ``storage_state`` records whether the binary
    is known to be present.
    """

    __tablename__ = "request_photos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    original_filename: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_path: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    photo_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    storage_state: Mapped[PhotoStorageState] = mapped_column(
        enum_column(PhotoStorageState), default=PhotoStorageState.RESERVED, nullable=False, index=True
    )
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    request: Mapped["Request"] = relationship("Request", back_populates="photos")

    def __repr__(self) -> str:
        return f"<RequestPhoto(id={self.id}, filename='{self.filename}', state='{self.storage_state.value}')>"
