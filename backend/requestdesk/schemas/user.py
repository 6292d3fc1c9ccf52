"""
User schemas.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, EmailStr, ConfigDict, Field

from requestdesk.models.user import UserRole


class UserBase(BaseModel):
    """Base user schema."""
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


class UserCreate(UserBase):
    """User creation schema (admin)."""
    password: Optional[str] = Field(None, min_length=8)
    role: UserRole = UserRole.REQUESTER
    # Required when a super_admin creates a non-super_admin user
    organization_id: Optional[int] = None


class UserBulkCreate(BaseModel):
    """Bulk user import."""
    users: List[UserCreate] = Field(..., min_length=1, max_length=500)


class UserBulkResult(BaseModel):
    """Outcome of a bulk import: created users plus per-row errors."""
    created: List["UserResponse"] = []
    errors: List[dict] = []


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserOrganizationUpdate(BaseModel):
    organization_id: Optional[int] = None


class UserResponse(UserBase):
    """User response schema."""
    id: int
    role: UserRole
    organization_id: Optional[int] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    """Denormalized user display data embedded in other responses."""
    id: int
    name: str
    profile_image_url: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> Optional["UserSummary"]:
        if user is None:
            return None
        return cls(id=user.id, name=user.display_name, profile_image_url=user.profile_image_url)


class CurrentUserResponse(UserResponse):
    """The authenticated user with organization context and capabilities."""
    organization_name: Optional[str] = None
    capabilities: List[str] = []


UserBulkResult.model_rebuild()
