"""
User management endpoints.
"""
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, status, Query
from sqlalchemy import select, false, func

from requestdesk.api.deps import DBSession, CurrentUser, UserManager, Pagination, SelectedOrganization
from requestdesk.core.exceptions import NotFoundError, PolicyError, ValidationError, RequestDeskError
from requestdesk.core.security import get_password_hash
from requestdesk.models.organization import Organization
from requestdesk.models.user import User, UserRole, ASSIGNABLE_ROLES
from requestdesk.schemas.common import PaginatedResponse
from requestdesk.schemas.user import (
    UserCreate,
    UserBulkCreate,
    UserBulkResult,
    UserResponse,
    UserRoleUpdate,
    UserOrganizationUpdate,
)
from requestdesk.services.access_policy import Capability, resolve_capabilities, require

router = APIRouter()
admin_router = APIRouter()
logger = logging.getLogger(__name__)


def _check_role_grant(actor: User, role: UserRole) -> None:
    """Only a super admin may hand out the super_admin role."""
    if role == UserRole.SUPER_ADMIN and not actor.is_super_admin:
        raise PolicyError("Only a super admin can grant the super_admin role")


async def _resolve_user_organization(
    db,
    actor: User,
    role: UserRole,
    organization_id: Optional[int],
) -> Optional[int]:
    """
    Organization a user with ``role`` should belong to. Every role except
    super_admin must carry one.
    """
    if role == UserRole.SUPER_ADMIN:
        return None
    if not actor.is_super_admin:
        if organization_id is not None and organization_id != actor.organization_id:
            raise PolicyError("Cannot manage users of another organization")
        return actor.organization_id
    if organization_id is None:
        raise ValidationError(
            "Organization is required",
            errors={"organization_id": "Required for every role except super_admin"},
        )
    org = await db.get(Organization, organization_id)
    if org is None:
        raise NotFoundError(resource="Organization", resource_id=organization_id)
    return org.id


async def _get_managed_user(db, actor: User, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None or (not actor.is_super_admin and user.organization_id != actor.organization_id):
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


async def _create_user(db, actor: User, user_data: UserCreate) -> User:
    _check_role_grant(actor, user_data.role)
    email = user_data.email.lower()
    result = await db.execute(select(User).where(func.lower(User.email) == email))
    if result.scalar_one_or_none():
        raise ValidationError("Email already registered", errors={"email": "Email already registered"})

    organization_id = await _resolve_user_organization(db, actor, user_data.role, user_data.organization_id)
    user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password) if user_data.password else None,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        profile_image_url=user_data.profile_image_url,
        role=user_data.role,
        organization_id=organization_id,
    )
    db.add(user)
    await db.flush()
    return user


@router.get("/maintenance", response_model=List[UserResponse])
async def list_maintenance_staff(
    db: DBSession,
    current_user: CurrentUser,
    organization_id: SelectedOrganization,
) -> Any:
    """
    List users who can be assigned requests.
    """
    require(resolve_capabilities(current_user), Capability.LIST_ALL, "Only staff can list maintenance users")
    org_id = organization_id if current_user.is_super_admin else current_user.organization_id
    if org_id is None:
        return []

    result = await db.execute(
        select(User)
        .where(User.organization_id == org_id)
        .where(User.role.in_(list(ASSIGNABLE_ROLES)))
        .where(User.is_active == True)  # noqa: E712
        .order_by(User.first_name, User.last_name, User.email)
    )
    return result.scalars().all()


@admin_router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    db: DBSession,
    current_user: UserManager,
    pagination: Pagination,
    organization_id: SelectedOrganization,
    role: UserRole = Query(None, description="Filter by role"),
    search: str = Query(None, description="Search by name or email"),
) -> Any:
    """
    List users. Admins see their organization; a super admin sees the
    selected organization and an empty page when none is selected.
    """
    query = select(User)
    if not current_user.is_super_admin:
        query = query.where(User.organization_id == current_user.organization_id)
    elif organization_id is not None:
        query = query.where(User.organization_id == organization_id)
    else:
        query = query.where(false())

    if role:
        query = query.where(User.role == role)

    if search:
        search_filter = f"%{search}%"
        query = query.where(
            (User.email.ilike(search_filter))
            | (User.first_name.ilike(search_filter))
            | (User.last_name.ilike(search_filter))
        )

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total = await db.scalar(count_query)

    # Get paginated results
    query = query.order_by(User.id).offset(pagination.offset).limit(pagination.page_size)
    result = await db.execute(query)
    users = result.scalars().all()

    return PaginatedResponse.of(users, total, pagination.page, pagination.page_size)


@admin_router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    db: DBSession,
    current_user: UserManager,
    user_data: UserCreate,
) -> Any:
    """
    Create a new user.
    """
    user = await _create_user(db, current_user, user_data)
    await db.commit()
    await db.refresh(user)

    logger.info("User %s (%s) created by user %s", user.id, user.role.value, current_user.id)
    return user


@admin_router.post("/bulk", response_model=UserBulkResult)
async def bulk_create_users(
    db: DBSession,
    current_user: UserManager,
    bulk_data: UserBulkCreate,
) -> Any:
    """
    Create many users at once. Rows that fail are reported by index and do
    not prevent the others from being created.
    """
    created: List[User] = []
    errors = []
    for index, user_data in enumerate(bulk_data.users):
        try:
            async with db.begin_nested():
                created.append(await _create_user(db, current_user, user_data))
        except RequestDeskError as e:
            errors.append({
                "index": index,
                "email": user_data.email,
                "error": str(e),
                "errors": getattr(e, "errors", None) or {},
            })

    await db.commit()
    for user in created:
        await db.refresh(user)

    logger.info("Bulk import by user %s: %d created, %d failed", current_user.id, len(created), len(errors))
    return UserBulkResult(
        created=[UserResponse.model_validate(user) for user in created],
        errors=errors,
    )


@admin_router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    db: DBSession,
    current_user: UserManager,
    user_id: int,
    role_data: UserRoleUpdate,
) -> Any:
    """
    Change a user's role.
    """
    user = await _get_managed_user(db, current_user, user_id)
    _check_role_grant(current_user, role_data.role)
    if user.is_super_admin and not current_user.is_super_admin:
        raise PolicyError("Only a super admin can change a super admin")
    if user.id == current_user.id:
        raise PolicyError("Users cannot change their own role")

    if role_data.role == UserRole.SUPER_ADMIN:
        user.organization_id = None
    elif user.organization_id is None:
        raise ValidationError(
            "User has no organization",
            errors={"organization_id": "Assign an organization before changing to this role"},
        )
    user.role = role_data.role

    await db.commit()
    await db.refresh(user)

    logger.info("User %s role set to %s by user %s", user.id, user.role.value, current_user.id)
    return user


@admin_router.patch("/{user_id}/organization", response_model=UserResponse)
async def update_user_organization(
    db: DBSession,
    current_user: UserManager,
    user_id: int,
    org_data: UserOrganizationUpdate,
) -> Any:
    """
    Move a user to another organization (super admin only).
    """
    require(
        resolve_capabilities(current_user),
        Capability.MANAGE_ORGANIZATIONS,
        "Only a super admin can move users between organizations",
    )
    user = await _get_managed_user(db, current_user, user_id)
    user.organization_id = await _resolve_user_organization(
        db, current_user, user.role, org_data.organization_id
    )

    await db.commit()
    await db.refresh(user)
    return user
