"""
Response envelopes shared by several endpoints.
"""
from math import ceil
from typing import Generic, TypeVar, List, Optional, Dict, Sequence
from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a listing plus the size of the whole result."""
    items: List[T]
    total: int
    page: int
    page_size: int
    pages: int

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def of(cls, items: Sequence, total: int, page: int, page_size: int) -> "PaginatedResponse":
        return cls(
            items=list(items),
            total=total,
            page=page,
            page_size=page_size,
            pages=ceil(total / page_size) if page_size else 0,
        )


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """
    Body of every domain error response. ``errors`` maps field names to
    messages on a 422; ``current`` and ``requested`` name both states on a
    rejected status transition.
    """
    detail: str
    errors: Optional[Dict[str, str]] = None
    current: Optional[str] = None
    requested: Optional[str] = None
