"""
API dependencies for authentication, authorization, and common operations.
"""
from typing import Optional, Annotated
from fastapi import Depends, HTTPException, status, Query
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from requestdesk.core.database import get_db
from requestdesk.core.security import decode_token
from requestdesk.core.config import get_settings
from requestdesk.models.user import User
from requestdesk.services.access_policy import Capability, resolve_capabilities

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> User:
    """
    Get current authenticated user from JWT token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    if payload.get("type") != "access":
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    try:
        user_id = int(user_id)
    except ValueError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


class CapabilityChecker:
    """
    Dependency for checking role-level capabilities.
    Usage: Depends(CapabilityChecker(Capability.MANAGE_USERS))
    """

    def __init__(self, required: Capability):
        self.required = required

    async def __call__(self, current_user: User = Depends(get_current_user)) -> User:
        if self.required not in resolve_capabilities(current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="The user doesn't have enough privileges",
            )
        return current_user


# Common query parameters
class PaginationParams:
    """Common pagination parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"
        ),
    ):
        self.page = page
        self.page_size = page_size
        self.offset = (page - 1) * page_size


def get_selected_organization(
    organization_id: Optional[int] = Query(
        None, description="Target organization (super admin only)"
    ),
) -> Optional[int]:
    return organization_id


# Type aliases for cleaner signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
DirectoryManager = Annotated[User, Depends(CapabilityChecker(Capability.MANAGE_DIRECTORY))]
UserManager = Annotated[User, Depends(CapabilityChecker(Capability.MANAGE_USERS))]
SuperAdmin = Annotated[User, Depends(CapabilityChecker(Capability.MANAGE_ORGANIZATIONS))]
DBSession = Annotated[AsyncSession, Depends(get_db)]
Pagination = Annotated[PaginationParams, Depends()]
SelectedOrganization = Annotated[Optional[int], Depends(get_selected_organization)]
