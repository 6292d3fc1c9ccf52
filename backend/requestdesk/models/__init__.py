"""
Database models for RequestDesk.
"""
from requestdesk.models.organization import Organization
from requestdesk.models.user import User, UserRole
from requestdesk.models.directory import Building, Facility
from requestdesk.models.request import (
    Request,
    RequestType,
    RequestStatus,
    RequestPriority,
    RequestItems,
    BuildingRequest,
    Assignment,
    StatusUpdate,
    Message,
    RequestPhoto,
    PhotoStorageState,
)
from requestdesk.models.contact_message import ContactMessage

__all__ = [
    "Organization",
    "User",
    "UserRole",
    "Building",
    "Facility",
    "Request",
    "RequestType",
    "RequestStatus",
    "RequestPriority",
    "RequestItems",
    "BuildingRequest",
    "Assignment",
    "StatusUpdate",
    "Message",
    "RequestPhoto",
    "PhotoStorageState",
    "ContactMessage",
]
