"""
Dashboard, report and room-history endpoints.
"""
from typing import Any, List

from fastapi import APIRouter, Query

from requestdesk.api.deps import DBSession, CurrentUser, SelectedOrganization
from requestdesk.schemas.directory import RoomBuildingResponse
from requestdesk.schemas.report import DashboardStats, ReportResponse
from requestdesk.schemas.request import RoomHistoryEntry
from requestdesk.services.report_service import ReportService

router = APIRouter()


@router.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    db: DBSession,
    current_user: CurrentUser,
    organization_id: SelectedOrganization,
) -> Any:
    """
    Request counts by status and priority for the caller's visible requests.
    """
    return await ReportService(db).dashboard_stats(current_user, organization_id)


@router.get("/reports", response_model=ReportResponse)
async def get_report(
    db: DBSession,
    current_user: CurrentUser,
    organization_id: SelectedOrganization,
    report_type: str = Query(
        "monthly",
        alias="type",
        pattern="^(monthly|facility|status|completion)$",
        description="monthly, facility, status or completion",
    ),
) -> Any:
    """
    Organization report (staff only).
    """
    return await ReportService(db).report(current_user, report_type, organization_id)


@router.get("/room-buildings", response_model=List[RoomBuildingResponse])
async def list_room_buildings(
    db: DBSession,
    current_user: CurrentUser,
    organization_id: SelectedOrganization,
) -> Any:
    """
    Buildings and rooms available for room history lookups.
    """
    return await ReportService(db).room_buildings(current_user, organization_id)


@router.get("/room-history", response_model=List[RoomHistoryEntry])
async def get_room_history(
    db: DBSession,
    current_user: CurrentUser,
    organization_id: SelectedOrganization,
    building: str = Query(..., min_length=1),
    room_number: str = Query(..., min_length=1),
) -> Any:
    """
    Every building request filed against one room, newest first.
    """
    return await ReportService(db).room_history(current_user, building, room_number, organization_id)
