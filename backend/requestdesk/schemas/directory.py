"""
Building and facility schemas.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class BuildingBase(BaseModel):
    """Base building schema."""
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    description: Optional[str] = None
    room_numbers: List[str] = []


class BuildingCreate(BuildingBase):
    """Building creation schema."""
    # Only honoured for super_admin; everyone else writes into their own organization
    organization_id: Optional[int] = None


class BuildingUpdate(BaseModel):
    """Building update schema."""
    name: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    room_numbers: Optional[List[str]] = None
    is_active: Optional[bool] = None


class BuildingResponse(BuildingBase):
    """Building response schema."""
    id: int
    organization_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FacilityBase(BaseModel):
    """Base facility schema."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    available_items: List[str] = []
    sort_order: int = 0


class FacilityCreate(FacilityBase):
    """Facility creation schema."""
    organization_id: Optional[int] = None


class FacilityUpdate(BaseModel):
    """Facility update schema."""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    available_items: Optional[List[str]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class FacilityResponse(FacilityBase):
    """Facility response schema."""
    id: int
    organization_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomBuildingResponse(BaseModel):
    """Building name with its rooms, for the room-history picker."""
    building: str
    room_numbers: List[str] = []
