"""
Tenant-scoped directory lookups used to validate request payloads.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from requestdesk.models.directory import Building, Facility

logger = logging.getLogger(__name__)


class DirectoryService:
    """Lookups of active buildings and facilities within one organization."""

    def __init__(self, db: AsyncSession, organization_id: int):
        self.db = db
        self.organization_id = organization_id

    async def find_facility(self, name: str) -> Optional[Facility]:
        result = await self.db.execute(
            select(Facility)
            .where(Facility.organization_id == self.organization_id)
            .where(Facility.is_active == True)  # noqa: E712
            .where(func.lower(Facility.name) == name.strip().lower())
        )
        return result.scalars().first()

    async def find_building(self, name: str) -> Optional[Building]:
        result = await self.db.execute(
            select(Building)
            .where(Building.organization_id == self.organization_id)
            .where(Building.is_active == True)  # noqa: E712
            .where(func.lower(Building.name) == name.strip().lower())
        )
        return result.scalars().first()

    async def facility_errors(self, facility: Any) -> Dict[str, str]:
        """
        Field errors for a facilities request's facility reference.
        Non-string values already carry a schema error and are not looked up.
        """
        if not facility or not isinstance(facility, str):
            return {}
        if await self.find_facility(facility) is None:
            return {"facility": f"Unknown facility '{facility}'"}
        return {}

    async def building_errors(
        self,
        building: Any,
        room_number: Any,
    ) -> Dict[str, str]:
        """
        Field errors for a building request's building and room references.
        A name that exists only in another organization is reported as unknown.
        """
        if not building or not isinstance(building, str):
            return {}
        record = await self.find_building(building)
        if record is None:
            return {"building": f"Unknown building '{building}'"}
        if isinstance(room_number, str) and room_number and not record.has_room(room_number):
            return {"room_number": f"Room '{room_number}' is not in building '{record.name}'"}
        return {}
