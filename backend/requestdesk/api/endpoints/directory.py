"""
Building and facility directory endpoints.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, status
from sqlalchemy import select

from requestdesk.api.deps import DBSession, CurrentUser, DirectoryManager, SelectedOrganization
from requestdesk.core.exceptions import NotFoundError
from requestdesk.models.directory import Building, Facility
from requestdesk.schemas.common import MessageResponse
from requestdesk.schemas.directory import (
    BuildingCreate,
    BuildingUpdate,
    BuildingResponse,
    FacilityCreate,
    FacilityUpdate,
    FacilityResponse,
)
from requestdesk.services.access_policy import resolve_target_organization

router = APIRouter()
admin_router = APIRouter()


def _directory_org(current_user, organization_id: Optional[int]) -> Optional[int]:
    return organization_id if current_user.is_super_admin else current_user.organization_id


def _clean_rooms(room_numbers: List[str]) -> List[str]:
    """Strip blanks and duplicates, keeping order."""
    seen = []
    for room in room_numbers:
        room = str(room).strip()
        if room and room not in seen:
            seen.append(room)
    return seen


async def _get_owned(db, model, current_user, item_id: int):
    item = await db.get(model, item_id)
    if item is None or (not current_user.is_super_admin and item.organization_id != current_user.organization_id):
        raise NotFoundError(resource=model.__name__, resource_id=item_id)
    return item


@router.get("/buildings", response_model=List[BuildingResponse])
async def list_buildings(
    db: DBSession,
    current_user: CurrentUser,
    organization_id: SelectedOrganization,
) -> Any:
    """
    List active buildings of the organization.
    """
    org_id = _directory_org(current_user, organization_id)
    if org_id is None:
        return []
    result = await db.execute(
        select(Building)
        .where(Building.organization_id == org_id)
        .where(Building.is_active == True)  # noqa: E712
        .order_by(Building.name)
    )
    return result.scalars().all()


@router.get("/facilities", response_model=List[FacilityResponse])
async def list_facilities(
    db: DBSession,
    current_user: CurrentUser,
    organization_id: SelectedOrganization,
) -> Any:
    """
    List active facilities of the organization.
    """
    org_id = _directory_org(current_user, organization_id)
    if org_id is None:
        return []
    result = await db.execute(
        select(Facility)
        .where(Facility.organization_id == org_id)
        .where(Facility.is_active == True)  # noqa: E712
        .order_by(Facility.sort_order, Facility.name)
    )
    return result.scalars().all()


# Admin endpoints

@admin_router.get("/buildings", response_model=List[BuildingResponse])
async def admin_list_buildings(
    db: DBSession,
    current_user: DirectoryManager,
    organization_id: SelectedOrganization,
) -> Any:
    """
    List all buildings, including inactive ones.
    """
    org_id = _directory_org(current_user, organization_id)
    if org_id is None:
        return []
    result = await db.execute(
        select(Building).where(Building.organization_id == org_id).order_by(Building.name)
    )
    return result.scalars().all()


@admin_router.post("/buildings", response_model=BuildingResponse, status_code=status.HTTP_201_CREATED)
async def create_building(
    db: DBSession,
    current_user: DirectoryManager,
    building_data: BuildingCreate,
) -> Any:
    """
    Create a building.
    """
    organization = await resolve_target_organization(db, current_user, building_data.organization_id)
    data = building_data.model_dump(exclude={"organization_id"})
    data["room_numbers"] = _clean_rooms(data["room_numbers"])

    building = Building(organization_id=organization.id, **data)
    db.add(building)
    await db.commit()
    await db.refresh(building)
    return building


@admin_router.patch("/buildings/{building_id}", response_model=BuildingResponse)
async def update_building(
    db: DBSession,
    current_user: DirectoryManager,
    building_id: int,
    building_data: BuildingUpdate,
) -> Any:
    """
    Update a building.
    """
    building = await _get_owned(db, Building, current_user, building_id)

    update_data = building_data.model_dump(exclude_unset=True)
    if update_data.get("room_numbers") is not None:
        update_data["room_numbers"] = _clean_rooms(update_data["room_numbers"])
    for field, value in update_data.items():
        setattr(building, field, value)

    await db.commit()
    await db.refresh(building)
    return building


@admin_router.delete("/buildings/{building_id}", response_model=MessageResponse)
async def delete_building(
    db: DBSession,
    current_user: DirectoryManager,
    building_id: int,
) -> Any:
    """
    Deactivate a building. Historical requests keep their building name.
    """
    building = await _get_owned(db, Building, current_user, building_id)
    building.is_active = False
    await db.commit()
    return MessageResponse(message="Building deactivated successfully")


@admin_router.get("/facilities", response_model=List[FacilityResponse])
async def admin_list_facilities(
    db: DBSession,
    current_user: DirectoryManager,
    organization_id: SelectedOrganization,
) -> Any:
    """
    List all facilities, including inactive ones.
    """
    org_id = _directory_org(current_user, organization_id)
    if org_id is None:
        return []
    result = await db.execute(
        select(Facility)
        .where(Facility.organization_id == org_id)
        .order_by(Facility.sort_order, Facility.name)
    )
    return result.scalars().all()


@admin_router.post("/facilities", response_model=FacilityResponse, status_code=status.HTTP_201_CREATED)
async def create_facility(
    db: DBSession,
    current_user: DirectoryManager,
    facility_data: FacilityCreate,
) -> Any:
    """
    Create a facility.
    """
    organization = await resolve_target_organization(db, current_user, facility_data.organization_id)
    facility = Facility(organization_id=organization.id, **facility_data.model_dump(exclude={"organization_id"}))
    db.add(facility)
    await db.commit()
    await db.refresh(facility)
    return facility


@admin_router.patch("/facilities/{facility_id}", response_model=FacilityResponse)
async def update_facility(
    db: DBSession,
    current_user: DirectoryManager,
    facility_id: int,
    facility_data: FacilityUpdate,
) -> Any:
    """
    Update a facility.
    """
    facility = await _get_owned(db, Facility, current_user, facility_id)
    for field, value in facility_data.model_dump(exclude_unset=True).items():
        setattr(facility, field, value)

    await db.commit()
    await db.refresh(facility)
    return facility


@admin_router.delete("/facilities/{facility_id}", response_model=MessageResponse)
async def delete_facility(
    db: DBSession,
    current_user: DirectoryManager,
    facility_id: int,
) -> Any:
    """
    Deactivate a facility.
    """
    facility = await _get_owned(db, Facility, current_user, facility_id)
    facility.is_active = False
    await db.commit()
    return MessageResponse(message="Facility deactivated successfully")
