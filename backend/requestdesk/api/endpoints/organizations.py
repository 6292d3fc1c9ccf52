"""
Organization management endpoints.
"""
import logging
from typing import Any, List

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from requestdesk.api.deps import DBSession, CurrentUser, SuperAdmin
from requestdesk.core.exceptions import NotFoundError, ValidationError
from requestdesk.models.organization import Organization
from requestdesk.schemas.organization import (
    OrganizationCreate,
    OrganizationUpdate,
    OrganizationResponse,
)

router = APIRouter()
admin_router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/current", response_model=OrganizationResponse)
async def get_current_organization(
    db: DBSession,
    current_user: CurrentUser,
) -> Any:
    """
    Get current user's organization.
    """
    if current_user.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User has no home organization",
        )

    org = await db.get(Organization, current_user.organization_id)
    if not org:
        raise NotFoundError(resource="Organization", resource_id=current_user.organization_id)
    return org


# Super admin endpoints for managing all organizations

@admin_router.get("", response_model=List[OrganizationResponse])
async def list_organizations(
    db: DBSession,
    current_user: SuperAdmin,
) -> Any:
    """
    List all organizations (super admin only).
    """
    result = await db.execute(select(Organization).order_by(Organization.name))
    return result.scalars().all()


@admin_router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    db: DBSession,
    current_user: SuperAdmin,
    org_data: OrganizationCreate,
) -> Any:
    """
    Create a new organization (super admin only).
    """
    result = await db.execute(
        select(Organization).where(Organization.slug == org_data.slug)
    )
    if result.scalar_one_or_none():
        raise ValidationError("Organization slug already exists", errors={"slug": "Already in use"})

    data = org_data.model_dump()
    if data.get("domain"):
        data["domain"] = data["domain"].strip().lower()
    org = Organization(**data)
    db.add(org)
    await db.commit()
    await db.refresh(org)

    logger.info("Organization %s (%s) created by user %s", org.id, org.slug, current_user.id)
    return org


@admin_router.get("/{org_id}", response_model=OrganizationResponse)
async def get_organization(
    db: DBSession,
    current_user: SuperAdmin,
    org_id: int,
) -> Any:
    """
    Get organization by ID (super admin only).
    """
    org = await db.get(Organization, org_id)
    if not org:
        raise NotFoundError(resource="Organization", resource_id=org_id)
    return org


@admin_router.patch("/{org_id}", response_model=OrganizationResponse)
async def update_organization(
    db: DBSession,
    current_user: SuperAdmin,
    org_id: int,
    org_data: OrganizationUpdate,
) -> Any:
    """
    Update organization (super admin only).
    """
    org = await db.get(Organization, org_id)
    if not org:
        raise NotFoundError(resource="Organization", resource_id=org_id)

    update_data = org_data.model_dump(exclude_unset=True)
    if update_data.get("settings") is not None:
        # Merge so unrelated keys survive a partial update
        update_data["settings"] = {**(org.settings or {}), **update_data["settings"]}
    for field, value in update_data.items():
        setattr(org, field, value)

    await db.commit()
    await db.refresh(org)

    return org
