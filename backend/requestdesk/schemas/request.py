"""
Request schemas.
"""
from typing import Optional, List, Literal
from datetime import datetime, date, time
from pydantic import BaseModel, ConfigDict, Field

from requestdesk.models.request import (
    RequestType,
    RequestStatus,
    RequestPriority,
    PhotoStorageState,
)
from requestdesk.schemas.user import UserSummary


class RequestItemsCreate(BaseModel):
    """Logistics needs of a facilities request."""
    chairs_audience: bool = False
    chairs_audience_qty: Optional[int] = Field(None, ge=0)
    chairs_stage: bool = False
    chairs_stage_qty: Optional[int] = Field(None, ge=0)
    podium: bool = False
    podium_sound: bool = False
    podium_location: Optional[str] = Field(None, max_length=255)
    audio_visual: bool = False
    av_other: bool = False
    av_other_spec: Optional[str] = Field(None, max_length=255)
    tables: bool = False
    tables_qty: Optional[int] = Field(None, ge=0)
    tables_location: Optional[str] = Field(None, max_length=255)
    lighting: bool = False
    food: bool = False
    cleanup: bool = False
    other_needs: Optional[str] = None


class RequestItemsResponse(RequestItemsCreate):
    id: int
    request_id: int

    model_config = ConfigDict(from_attributes=True)


class RequestCreateBase(BaseModel):
    """Fields shared by both request types."""
    event: str = Field(..., min_length=1, max_length=255)
    event_date: date
    priority: RequestPriority = RequestPriority.MEDIUM
    # Target tenant; required for super_admin, ignored for everyone else
    organization_id: Optional[int] = None


class FacilitiesRequestCreate(RequestCreateBase):
    """Facilities (event logistics) request."""
    facility: str = Field(..., min_length=1, max_length=255)
    setup_time: Optional[time] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    items: RequestItemsCreate = Field(default_factory=RequestItemsCreate)


class BuildingRequestCreate(RequestCreateBase):
    """Building repair request for a specific room."""
    building: str = Field(..., min_length=1, max_length=255)
    room_number: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1)
    event_date: date = Field(default_factory=date.today)


class BuildingDetailsResponse(BaseModel):
    id: int
    request_id: int
    building: str
    room_number: str
    description: str

    model_config = ConfigDict(from_attributes=True)


class RequestResponse(BaseModel):
    """Request list item."""
    id: int
    organization_id: int
    request_type: RequestType
    facility: str
    event: str
    event_date: date
    setup_time: Optional[time] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    requestor_id: int
    status: RequestStatus
    priority: RequestPriority
    created_at: datetime
    updated_at: datetime
    requestor: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None


class PhotoResponse(BaseModel):
    """Photo metadata."""
    id: int
    request_id: int
    filename: str
    original_filename: Optional[str] = None
    photo_url: str
    mime_type: Optional[str] = None
    size: Optional[int] = None
    caption: Optional[str] = None
    uploaded_by_id: int
    uploaded_at: datetime
    storage_state: PhotoStorageState

    model_config = ConfigDict(from_attributes=True)


class PhotoError(BaseModel):
    """A photo that was rejected or could not be stored."""
    filename: Optional[str] = None
    reason: str


class RequestDetailResponse(RequestResponse):
    """Request with its detail row and the caller's capabilities on it."""
    items: Optional[RequestItemsResponse] = None
    building_details: Optional[BuildingDetailsResponse] = None
    photos: List[PhotoResponse] = []
    capabilities: List[str] = []


class RequestCreateResponse(BaseModel):
    """Created request plus the outcome of every attached photo."""
    request: RequestDetailResponse
    photos: List[PhotoResponse] = []
    photo_errors: List[PhotoError] = []


class PhotoUploadResponse(BaseModel):
    photos: List[PhotoResponse] = []
    photo_errors: List[PhotoError] = []


class StatusChange(BaseModel):
    """Status transition request."""
    status: RequestStatus
    note: Optional[str] = Field(None, max_length=5000)
    priority: Optional[RequestPriority] = None


class AssignmentCreate(BaseModel):
    """Assignment request."""
    assignee_id: int
    internal_notes: Optional[str] = Field(None, max_length=5000)


class PriorityUpdate(BaseModel):
    priority: RequestPriority


class AssignmentResponse(BaseModel):
    id: int
    request_id: int
    assignee_id: int
    assigner_id: int
    assigned_at: datetime
    internal_notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class StatusUpdateResponse(BaseModel):
    id: int
    request_id: int
    status: RequestStatus
    updated_by_id: int
    note: Optional[str] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimelineEvent(BaseModel):
    """
    One entry of the merged request timeline.
    ``date`` is None and ``date_unavailable`` is True when the source
    timestamp is missing or unparsable.
    """
    kind: Literal["creation", "status", "assignment"]
    id: int
    date: Optional[datetime] = None
    date_unavailable: bool = False
    status: Optional[RequestStatus] = None
    note: Optional[str] = None
    actor: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None
    internal_notes: Optional[str] = None


class RequestMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class RequestMessageResponse(BaseModel):
    id: int
    request_id: int
    sender_id: int
    content: str
    sent_at: datetime
    sender: Optional[UserSummary] = None


class RoomHistoryEntry(BaseModel):
    """Historical request against a building room."""
    id: int
    event: str
    description: str
    status: RequestStatus
    priority: RequestPriority
    event_date: date
    created_at: datetime
    requestor: Optional[UserSummary] = None
