"""
Timeline projection: creation, status changes and assignments of a request
merged into one ascending sequence.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from requestdesk.models.request import Request, StatusUpdate, Assignment
from requestdesk.models.user import User
from requestdesk.schemas.request import TimelineEvent
from requestdesk.schemas.user import UserSummary

logger = logging.getLogger(__name__)

# Tie-break order for events sharing a timestamp
KIND_RANK = {"creation": 0, "status": 1, "assignment": 2}


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """
    Normalize a stored timestamp to an aware UTC datetime.
    Returns None for anything missing or unparsable.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _sort_key(event: TimelineEvent):
    rank = KIND_RANK[event.kind]
    if event.date is None:
        return (1, rank, event.id)
    return (0, event.date, rank, event.id)


def assemble_timeline(
    request: Request,
    status_updates: Iterable[StatusUpdate],
    assignments: Iterable[Assignment],
    users: Dict[int, User],
    include_internal_notes: bool = False,
) -> List[TimelineEvent]:
    """
    Merge the rows of a request into an ordered list of events.

    Dated events come first, by (timestamp, kind, id). Events whose date is
    missing or unparsable are flagged ``date_unavailable`` and follow in
    insertion order. A bad row never fails the whole projection.
    """
    events: List[TimelineEvent] = []

    created = coerce_timestamp(request.created_at)
    events.append(
        TimelineEvent(
            kind="creation",
            id=request.id,
            date=created,
            date_unavailable=created is None,
            actor=UserSummary.from_user(users.get(request.requestor_id)),
        )
    )

    for update in status_updates:
        when = coerce_timestamp(update.updated_at)
        events.append(
            TimelineEvent(
                kind="status",
                id=update.id,
                date=when,
                date_unavailable=when is None,
                status=update.status,
                note=update.note,
                actor=UserSummary.from_user(users.get(update.updated_by_id)),
            )
        )

    for assignment in assignments:
        when = coerce_timestamp(assignment.assigned_at)
        events.append(
            TimelineEvent(
                kind="assignment",
                id=assignment.id,
                date=when,
                date_unavailable=when is None,
                actor=UserSummary.from_user(users.get(assignment.assigner_id)),
                assignee=UserSummary.from_user(users.get(assignment.assignee_id)),
                internal_notes=assignment.internal_notes if include_internal_notes else None,
            )
        )

    undated = sum(1 for event in events if event.date_unavailable)
    if undated:
        logger.warning("Request %s timeline has %d event(s) without a usable date", request.id, undated)

    return sorted(events, key=_sort_key)


async def build_request_timeline(
    db: AsyncSession,
    request: Request,
    include_internal_notes: bool = False,
) -> List[TimelineEvent]:
    """Load the rows of ``request`` and assemble its timeline."""
    status_result = await db.execute(
        select(StatusUpdate).where(StatusUpdate.request_id == request.id)
    )
    status_updates = status_result.scalars().all()

    assignment_result = await db.execute(
        select(Assignment).where(Assignment.request_id == request.id)
    )
    assignments = assignment_result.scalars().all()

    user_ids = {request.requestor_id}
    user_ids.update(update.updated_by_id for update in status_updates)
    for assignment in assignments:
        user_ids.update((assignment.assigner_id, assignment.assignee_id))

    user_result = await db.execute(select(User).where(User.id.in_(user_ids)))
    users = {user.id: user for user in user_result.scalars().all()}

    return assemble_timeline(
        request,
        status_updates,
        assignments,
        users,
        include_internal_notes=include_internal_notes,
    )
