"""
Base model with common fields and mixins.
"""
import enum
from datetime import datetime, timezone
from typing import Type

from sqlalchemy import DateTime, Integer, ForeignKey, Enum as SQLEnum, func
from sqlalchemy.orm import Mapped, mapped_column, declared_attr


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_column(enum_cls: Type[enum.Enum]) -> SQLEnum:
    """
    Column type storing an enum by its value ("in-progress"), not its name.
    """
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        length=32,
        validate_strings=True,
    )


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class TenantMixin:
    """Mixin for multi-tenancy support via organization_id."""

    @declared_attr
    def organization_id(cls) -> Mapped[int]:
        return mapped_column(
            Integer,
            ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
