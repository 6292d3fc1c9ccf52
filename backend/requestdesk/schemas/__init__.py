"""
Pydantic schemas for API request/response validation.
"""
from requestdesk.schemas.common import PaginatedResponse, MessageResponse, ErrorResponse
from requestdesk.schemas.auth import Token, TokenPayload, LoginRequest, SignupRequest
from requestdesk.schemas.organization import OrganizationCreate, OrganizationUpdate, OrganizationResponse
from requestdesk.schemas.user import (
    UserCreate, UserBulkCreate, UserBulkResult, UserResponse, UserSummary,
    UserRoleUpdate, UserOrganizationUpdate, CurrentUserResponse,
)
from requestdesk.schemas.directory import (
    BuildingCreate, BuildingUpdate, BuildingResponse,
    FacilityCreate, FacilityUpdate, FacilityResponse,
    RoomBuildingResponse,
)
from requestdesk.schemas.request import (
    FacilitiesRequestCreate, BuildingRequestCreate, RequestItemsCreate,
    RequestResponse, RequestDetailResponse, RequestCreateResponse,
    StatusChange, AssignmentCreate, PriorityUpdate,
    AssignmentResponse, StatusUpdateResponse, TimelineEvent,
    RequestMessageCreate, RequestMessageResponse,
    PhotoResponse, PhotoError, PhotoUploadResponse, RoomHistoryEntry,
)
from requestdesk.schemas.report import DashboardStats, ReportRow, ReportResponse
from requestdesk.schemas.contact import ContactCreate, ContactResponse

__all__ = [
    "PaginatedResponse", "MessageResponse", "ErrorResponse",
    "Token", "TokenPayload", "LoginRequest", "SignupRequest",
    "OrganizationCreate", "OrganizationUpdate", "OrganizationResponse",
    "UserCreate", "UserBulkCreate", "UserBulkResult", "UserResponse", "UserSummary",
    "UserRoleUpdate", "UserOrganizationUpdate", "CurrentUserResponse",
    "BuildingCreate", "BuildingUpdate", "BuildingResponse",
    "FacilityCreate", "FacilityUpdate", "FacilityResponse", "RoomBuildingResponse",
    "FacilitiesRequestCreate", "BuildingRequestCreate", "RequestItemsCreate",
    "RequestResponse", "RequestDetailResponse", "RequestCreateResponse",
    "StatusChange", "AssignmentCreate", "PriorityUpdate",
    "AssignmentResponse", "StatusUpdateResponse", "TimelineEvent",
    "RequestMessageCreate", "RequestMessageResponse",
    "PhotoResponse", "PhotoError", "PhotoUploadResponse", "RoomHistoryEntry",
    "DashboardStats", "ReportRow", "ReportResponse",
    "ContactCreate", "ContactResponse",
]
