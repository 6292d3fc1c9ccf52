"""
Domain exception hierarchy.

Services raise these instead of HTTPException; handlers registered in
``requestdesk.main`` translate them into responses once.

Usage:
    from requestdesk.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Request", resource_id=42)
    raise ValidationError("Invalid request", errors={"room_number": "..."})
"""
from typing import Optional


class RequestDeskError(Exception):
    """Base class for errors recovered at the request boundary."""


class ValidationError(RequestDeskError):
    """Raised when input is malformed or references unknown directory entries.

    ``errors`` maps every failing field to a message, so callers can fix
    the whole payload in one round trip.
    """

    def __init__(self, message: str, errors: Optional[dict] = None) -> None:
        self.errors = errors or {}
        super().__init__(message)


class PolicyError(RequestDeskError):
    """Raised when an actor may not perform an operation.

    Covers insufficient role, cross-tenant operations and illegal status
    transitions. For transitions ``current`` and ``requested`` carry the
    two states involved.
    """

    def __init__(
        self,
        message: str,
        current: Optional[str] = None,
        requested: Optional[str] = None,
    ) -> None:
        self.current = current
        self.requested = requested
        super().__init__(message)

    @property
    def is_transition_conflict(self) -> bool:
        return self.current is not None and self.requested is not None


class NotFoundError(RequestDeskError):
    """Raised when a record is absent or belongs to another tenant.

    Both cases produce the same error so that existence never leaks
    across organizations.
    """

    def __init__(self, resource: str, resource_id: Optional[object] = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class StorageError(RequestDeskError):
    """Raised when a photo binary cannot be written to file storage."""

    def __init__(self, message: str, filename: Optional[str] = None) -> None:
        self.filename = filename
        super().__init__(message)
