"""
Dashboard statistics, reports and room history, all organization-scoped.
"""
import logging
from collections import OrderedDict, defaultdict
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from requestdesk.models.directory import Building
from requestdesk.models.request import (
    Request,
    RequestStatus,
    BuildingRequest,
    StatusUpdate,
)
from requestdesk.models.user import User
from requestdesk.schemas.directory import RoomBuildingResponse
from requestdesk.schemas.report import DashboardStats, ReportRow, ReportResponse
from requestdesk.schemas.request import RoomHistoryEntry
from requestdesk.schemas.user import UserSummary
from requestdesk.services.access_policy import (
    Capability,
    ListScope,
    resolve_capabilities,
    request_listing_clause,
    resolve_target_organization,
    require,
)
from requestdesk.services.timeline import coerce_timestamp

logger = logging.getLogger(__name__)

REPORT_TYPES = ("monthly", "facility", "status", "completion")


class ReportService:
    """Read-only projections over requests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def dashboard_stats(self, actor: User, organization_id: Optional[int] = None) -> DashboardStats:
        """
        Status and priority counts over the caller's visible slice: the whole
        tenant for staff, their own requests otherwise.
        """
        capabilities = resolve_capabilities(actor)
        scope = ListScope.ALL if Capability.LIST_ALL in capabilities else ListScope.MY
        clause = request_listing_clause(actor, scope, organization_id)

        stats = DashboardStats()
        result = await self.db.execute(
            select(Request.status, func.count()).where(clause).group_by(Request.status)
        )
        for status, count in result.all():
            stats.total += count
            setattr(stats, status.value.replace("-", "_"), count)

        result = await self.db.execute(
            select(Request.priority, func.count()).where(clause).group_by(Request.priority)
        )
        stats.by_priority = {priority.value: count for priority, count in result.all()}

        if Capability.LIST_ASSIGNED in capabilities:
            assigned_clause = request_listing_clause(actor, ListScope.ASSIGNED, organization_id)
            stats.assigned_to_me = await self.db.scalar(
                select(func.count())
                .select_from(Request)
                .where(assigned_clause)
                .where(Request.status.notin_([RequestStatus.COMPLETED, RequestStatus.CANCELLED]))
            ) or 0

        return stats

    async def report(
        self,
        actor: User,
        report_type: str,
        organization_id: Optional[int] = None,
    ) -> ReportResponse:
        """Build one of the monthly, facility, status or completion reports."""
        require(resolve_capabilities(actor), Capability.VIEW_REPORTS, "Reports are restricted to staff")
        organization = await resolve_target_organization(self.db, actor, organization_id)

        result = await self.db.execute(
            select(Request).where(Request.organization_id == organization.id).order_by(Request.created_at)
        )
        requests = result.scalars().all()

        if report_type == "monthly":
            rows = self._by_key(requests, lambda r: self._month(r.created_at))
        elif report_type == "facility":
            rows = self._by_key(requests, lambda r: r.facility)
            rows.sort(key=lambda row: (-row.count, row.label))
        elif report_type == "status":
            counts = OrderedDict((status.value, 0) for status in RequestStatus)
            for request in requests:
                counts[request.status.value] += 1
            rows = [ReportRow(label=label, count=count) for label, count in counts.items()]
        else:
            rows = await self._completion_rows(requests)

        logger.debug("Built %s report for organization %s: %d rows", report_type, organization.id, len(rows))
        return ReportResponse(type=report_type, organization_id=organization.id, rows=rows)

    @staticmethod
    def _month(value) -> str:
        when = coerce_timestamp(value)
        return when.strftime("%Y-%m") if when else "unknown"

    @staticmethod
    def _by_key(requests, key) -> List[ReportRow]:
        totals: Dict[str, int] = OrderedDict()
        completed: Dict[str, int] = defaultdict(int)
        for request in requests:
            label = key(request)
            totals[label] = totals.get(label, 0) + 1
            if request.status == RequestStatus.COMPLETED:
                completed[label] += 1
        return [
            ReportRow(
                label=label,
                count=count,
                completed=completed[label],
                completion_rate=round(completed[label] / count * 100, 1),
            )
            for label, count in totals.items()
        ]

    async def _completion_rows(self, requests) -> List[ReportRow]:
        """Average days from submission to completion, per request type."""
        completed_ids = [r.id for r in requests if r.status == RequestStatus.COMPLETED]
        completed_at = {}
        if completed_ids:
            result = await self.db.execute(
                select(StatusUpdate.request_id, func.max(StatusUpdate.updated_at))
                .where(StatusUpdate.request_id.in_(completed_ids))
                .where(StatusUpdate.status == RequestStatus.COMPLETED)
                .group_by(StatusUpdate.request_id)
            )
            completed_at = {request_id: when for request_id, when in result.all()}

        durations: Dict[str, List[float]] = defaultdict(list)
        totals: Dict[str, int] = defaultdict(int)
        for request in requests:
            label = request.request_type.value
            totals[label] += 1
            start = coerce_timestamp(request.created_at)
            end = coerce_timestamp(completed_at.get(request.id))
            if start and end:
                durations[label].append((end - start).total_seconds() / 86400)

        rows = []
        for label in sorted(totals):
            done = durations[label]
            rows.append(ReportRow(
                label=label,
                count=totals[label],
                completed=len(done),
                completion_rate=round(len(done) / totals[label] * 100, 1),
                avg_days_to_complete=round(sum(done) / len(done), 2) if done else None,
            ))
        return rows

    async def room_buildings(self, actor: User, organization_id: Optional[int] = None) -> List[RoomBuildingResponse]:
        """
        Buildings with their rooms: the directory entries plus any building
        or room that only appears in historical requests.
        """
        require(resolve_capabilities(actor), Capability.LIST_ALL, "Room history is restricted to staff")
        organization = await resolve_target_organization(self.db, actor, organization_id)

        rooms: Dict[str, List[str]] = OrderedDict()
        result = await self.db.execute(
            select(Building)
            .where(Building.organization_id == organization.id)
            .where(Building.is_active == True)  # noqa: E712
            .order_by(Building.name)
        )
        for building in result.scalars().all():
            rooms[building.name] = list(building.room_numbers or [])

        result = await self.db.execute(
            select(BuildingRequest.building, BuildingRequest.room_number)
            .join(Request, Request.id == BuildingRequest.request_id)
            .where(Request.organization_id == organization.id)
            .distinct()
        )
        for building, room_number in result.all():
            known = rooms.setdefault(building, [])
            if room_number not in known:
                known.append(room_number)

        return [RoomBuildingResponse(building=name, room_numbers=numbers) for name, numbers in rooms.items()]

    async def room_history(
        self,
        actor: User,
        building: str,
        room_number: str,
        organization_id: Optional[int] = None,
    ) -> List[RoomHistoryEntry]:
        """All building requests filed against one room, newest first."""
        require(resolve_capabilities(actor), Capability.LIST_ALL, "Room history is restricted to staff")
        organization = await resolve_target_organization(self.db, actor, organization_id)

        result = await self.db.execute(
            select(Request, BuildingRequest, User)
            .join(BuildingRequest, BuildingRequest.request_id == Request.id)
            .join(User, User.id == Request.requestor_id)
            .where(Request.organization_id == organization.id)
            .where(func.lower(BuildingRequest.building) == building.strip().lower())
            .where(BuildingRequest.room_number == room_number.strip())
            .order_by(Request.created_at.desc(), Request.id.desc())
        )
        return [
            RoomHistoryEntry(
                id=request.id,
                event=request.event,
                description=details.description,
                status=request.status,
                priority=request.priority,
                event_date=request.event_date,
                created_at=request.created_at,
                requestor=UserSummary.from_user(requestor),
            )
            for request, details, requestor in result.all()
        ]
