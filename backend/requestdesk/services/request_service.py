"""
Request service for business logic: creation, status workflow,
assignment, priority and messages.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from requestdesk.core.exceptions import NotFoundError, PolicyError, ValidationError
from requestdesk.models.organization import Organization
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
)
from requestdesk.models.user import User, UserRole
from requestdesk.schemas.request import (
    FacilitiesRequestCreate,
    BuildingRequestCreate,
    RequestItemsCreate,
    RequestResponse,
    RequestDetailResponse,
    RequestItemsResponse,
    BuildingDetailsResponse,
    PhotoResponse,
    RequestMessageResponse,
    PhotoError,
)
from requestdesk.schemas.user import UserSummary
from requestdesk.services.access_policy import (
    Capability,
    ListScope,
    resolve_capabilities,
    request_listing_clause,
    latest_assignment_subquery,
    current_assignee_id,
    get_visible_request,
    resolve_target_organization,
    require,
)
from requestdesk.services.directory_service import DirectoryService
from requestdesk.services.notification_service import RequestEmailData
from requestdesk.services.photo_storage import PhotoService, PhotoUpload, LocalPhotoStorage

logger = logging.getLogger(__name__)


# Valid status transitions. Forward moves may skip states.
STATUS_TRANSITIONS = {
    RequestStatus.PENDING: [
        RequestStatus.APPROVED,
        RequestStatus.IN_PROGRESS,
        RequestStatus.COMPLETED,
        RequestStatus.CANCELLED,
    ],
    RequestStatus.APPROVED: [
        RequestStatus.IN_PROGRESS,
        RequestStatus.COMPLETED,
        RequestStatus.CANCELLED,
    ],
    RequestStatus.IN_PROGRESS: [
        RequestStatus.COMPLETED,
        RequestStatus.CANCELLED,
    ],
    RequestStatus.COMPLETED: [],  # Final state
    RequestStatus.CANCELLED: [],  # Final state
}

ASSIGNMENT_APPROVAL_NOTE = "Request approved and assigned to staff"


@dataclass
class CreationResult:
    request: Request
    photos: List[RequestPhoto] = field(default_factory=list)
    photo_errors: List[PhotoError] = field(default_factory=list)


def validate_transition(from_status: RequestStatus, to_status: RequestStatus) -> bool:
    """Whether ``to_status`` is reachable from ``from_status``."""
    return to_status in STATUS_TRANSITIONS.get(from_status, [])


def check_transition(from_status: RequestStatus, to_status: RequestStatus) -> None:
    """Raise PolicyError naming both states unless the transition is valid."""
    if from_status == to_status:
        raise PolicyError(
            f"Request is already {from_status.value}",
            current=from_status.value,
            requested=to_status.value,
        )
    if not validate_transition(from_status, to_status):
        raise PolicyError(
            f"Cannot transition from {from_status.value} to {to_status.value}",
            current=from_status.value,
            requested=to_status.value,
        )


def field_errors(exc: PydanticValidationError) -> Dict[str, str]:
    """Flatten pydantic errors into {field: message}."""
    errors: Dict[str, str] = {}
    for error in exc.errors():
        key = ".".join(str(part) for part in error["loc"]) or "payload"
        errors.setdefault(key, error["msg"])
    return errors


def _clean_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Blank form values count as absent."""
    cleaned = {}
    for key, value in payload.items():
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                continue
        cleaned[key] = value
    return cleaned


def _nest_items(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Move flat item fields (as sent by a form) under ``items``."""
    if "items" in payload:
        return payload
    item_fields = set(RequestItemsCreate.model_fields)
    nested = {k: v for k, v in payload.items() if k not in item_fields}
    items = {k: v for k, v in payload.items() if k in item_fields}
    if items:
        nested["items"] = items
    return nested


def _parse_organization_id(payload: Dict[str, Any], errors: Dict[str, str]) -> Optional[int]:
    value = payload.get("organization_id")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        errors["organization_id"] = "Input should be a valid integer"
        return None


class RequestService:
    """Service class for request operations."""

    def __init__(self, db: AsyncSession, storage: Optional[LocalPhotoStorage] = None):
        self.db = db
        self.storage = storage

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _prepare(
        self,
        actor: User,
        schema,
        payload: Dict[str, Any],
    ) -> Tuple[Any, Optional[Organization], Dict[str, str]]:
        """Validate the payload and resolve the target organization, collecting every field error."""
        errors: Dict[str, str] = {}
        data = None
        try:
            data = schema.model_validate(payload)
        except PydanticValidationError as e:
            errors.update(field_errors(e))

        organization = None
        organization_id = _parse_organization_id(payload, errors)
        if "organization_id" not in errors:
            try:
                organization = await resolve_target_organization(self.db, actor, organization_id)
            except ValidationError as e:
                errors.update(e.errors)
        return data, organization, errors

    async def create_facilities_request(
        self,
        actor: User,
        payload: Dict[str, Any],
        uploads: Sequence[PhotoUpload] = (),
    ) -> CreationResult:
        """
        Create a facilities request with its RequestItems row and the
        initial pending StatusUpdate.
        """
        require(resolve_capabilities(actor), Capability.CREATE_REQUEST, "Not allowed to create requests")
        payload = _nest_items(_clean_payload(payload))
        data, organization, errors = await self._prepare(actor, FacilitiesRequestCreate, payload)

        if organization is not None:
            directory = DirectoryService(self.db, organization.id)
            errors.update(await directory.facility_errors(payload.get("facility")))
        if data is not None and data.start_time and data.end_time and data.end_time <= data.start_time:
            errors["end_time"] = "End time must be after start time"
        if errors:
            raise ValidationError("Invalid facilities request", errors=errors)
        # Store the directory's spelling so reports group by one name
        facility_name = (await directory.find_facility(data.facility)).name

        request = Request(
            organization_id=organization.id,
            request_type=RequestType.FACILITIES,
            facility=facility_name,
            event=data.event,
            event_date=data.event_date,
            setup_time=data.setup_time,
            start_time=data.start_time,
            end_time=data.end_time,
            requestor_id=actor.id,
            status=RequestStatus.PENDING,
            priority=data.priority,
        )
        self.db.add(request)
        await self.db.flush()

        items = RequestItems(request_id=request.id, **data.items.model_dump())
        self.db.add(items)

        labels = items.selected_labels()
        note = "Facilities request submitted"
        if labels:
            note += f". Items: {', '.join(labels)}"
        if data.items.other_needs:
            note += f". Other needs: {data.items.other_needs}"
        self._append_status(request, RequestStatus.PENDING, actor, note)

        return await self._finish_creation(request, actor, uploads)

    async def create_building_request(
        self,
        actor: User,
        payload: Dict[str, Any],
        uploads: Sequence[PhotoUpload] = (),
    ) -> CreationResult:
        """
        Create a building repair request with its BuildingRequest row and
        the initial pending StatusUpdate.
        """
        require(resolve_capabilities(actor), Capability.CREATE_REQUEST, "Not allowed to create requests")
        payload = _clean_payload(payload)
        data, organization, errors = await self._prepare(actor, BuildingRequestCreate, payload)

        building_name = payload.get("building")
        if organization is not None:
            directory = DirectoryService(self.db, organization.id)
            errors.update(await directory.building_errors(building_name, payload.get("room_number")))
            if not errors:
                building_name = (await directory.find_building(data.building)).name
        if errors:
            raise ValidationError("Invalid building request", errors=errors)

        request = Request(
            organization_id=organization.id,
            request_type=RequestType.BUILDING,
            facility=building_name,
            event=data.event,
            event_date=data.event_date,
            requestor_id=actor.id,
            status=RequestStatus.PENDING,
            priority=data.priority,
        )
        self.db.add(request)
        await self.db.flush()

        self.db.add(BuildingRequest(
            request_id=request.id,
            building=building_name,
            room_number=data.room_number,
            description=data.description,
        ))
        self._append_status(
            request,
            RequestStatus.PENDING,
            actor,
            f"Building request submitted for {building_name} room {data.room_number}",
        )

        return await self._finish_creation(request, actor, uploads)

    async def _finish_creation(
        self,
        request: Request,
        actor: User,
        uploads: Sequence[PhotoUpload],
    ) -> CreationResult:
        result = CreationResult(request=request)
        if uploads:
            photo_service = PhotoService(self.db, self.storage)
            result.photos, result.photo_errors = await photo_service.attach(request, actor, list(uploads))
        await self.db.flush()

        logger.info(
            "Request %s (%s) created by user %s in organization %s with %d photo(s), %d rejected",
            request.id,
            request.request_type.value,
            actor.id,
            request.organization_id,
            len(result.photos),
            len(result.photo_errors),
        )
        return result

    # ------------------------------------------------------------------
    # Status workflow
    # ------------------------------------------------------------------

    def _append_status(
        self,
        request: Request,
        new_status: RequestStatus,
        actor: User,
        note: Optional[str] = None,
    ) -> StatusUpdate:
        """Append a StatusUpdate and mirror it onto the request."""
        now = datetime.now(timezone.utc)
        update = StatusUpdate(
            request_id=request.id,
            status=new_status,
            updated_by_id=actor.id,
            note=note,
            updated_at=now,
        )
        self.db.add(update)
        request.status = new_status
        request.updated_at = now
        return update

    async def _load_for_change(self, actor: User, request_id: int) -> Tuple[Request, frozenset]:
        request = await get_visible_request(self.db, actor, request_id, for_update=True)
        organization = await self.db.get(Organization, request.organization_id)
        assignee_id = await current_assignee_id(self.db, request.id)
        capabilities = resolve_capabilities(actor, request, assignee_id, organization)
        return request, capabilities

    async def transition(
        self,
        actor: User,
        request_id: int,
        new_status: RequestStatus,
        note: Optional[str] = None,
        priority: Optional[RequestPriority] = None,
    ) -> Request:
        """
        Move a request to ``new_status``.

        The row is locked, the StatusUpdate append and the status mirror
        commit together.
        """
        request, capabilities = await self._load_for_change(actor, request_id)

        if Capability.TRANSITION not in capabilities:
            if new_status != RequestStatus.CANCELLED or Capability.CANCEL not in capabilities:
                raise PolicyError("Not allowed to change the status of this request")
        if priority is not None:
            require(capabilities, Capability.SET_PRIORITY, "Not allowed to change priority")

        old_status = request.status
        check_transition(old_status, new_status)

        self._append_status(request, new_status, actor, note)
        if priority is not None:
            request.priority = priority

        await self.db.commit()
        await self.db.refresh(request)

        logger.info(
            "Request %s status %s -> %s by user %s",
            request.id, old_status.value, new_status.value, actor.id,
        )
        return request

    async def assign(
        self,
        actor: User,
        request_id: int,
        assignee_id: int,
        internal_notes: Optional[str] = None,
    ) -> Assignment:
        """
        Append an Assignment row. A pending request is approved in the same
        transaction.
        """
        request, capabilities = await self._load_for_change(actor, request_id)
        require(capabilities, Capability.ASSIGN, "Not allowed to assign this request")

        assignee = await self.db.get(User, assignee_id)
        if assignee is None or assignee.organization_id != request.organization_id:
            raise NotFoundError(resource="User", resource_id=assignee_id)
        if not assignee.is_assignable:
            raise ValidationError(
                "Assignee cannot work requests",
                errors={"assignee_id": "User must be active maintenance or admin staff"},
            )

        assignment = Assignment(
            request_id=request.id,
            assignee_id=assignee.id,
            assigner_id=actor.id,
            assigned_at=datetime.now(timezone.utc),
            internal_notes=internal_notes,
        )
        self.db.add(assignment)

        if request.status == RequestStatus.PENDING:
            self._append_status(request, RequestStatus.APPROVED, actor, ASSIGNMENT_APPROVAL_NOTE)
        else:
            request.updated_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(assignment)

        logger.info("Request %s assigned to user %s by user %s", request.id, assignee.id, actor.id)
        return assignment

    async def set_priority(self, actor: User, request_id: int, priority: RequestPriority) -> Request:
        request, capabilities = await self._load_for_change(actor, request_id)
        require(capabilities, Capability.SET_PRIORITY, "Not allowed to change priority")
        request.priority = priority
        await self.db.commit()
        await self.db.refresh(request)
        return request

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def add_message(self, actor: User, request_id: int, content: str) -> RequestMessageResponse:
        request = await get_visible_request(self.db, actor, request_id)
        assignee_id = await current_assignee_id(self.db, request.id)
        require(
            resolve_capabilities(actor, request, assignee_id),
            Capability.MESSAGE,
            "Not allowed to message on this request",
        )
        content = content.strip()
        if not content:
            raise ValidationError("Message is empty", errors={"content": "Message cannot be empty"})

        message = Message(
            request_id=request.id,
            sender_id=actor.id,
            content=content,
            sent_at=datetime.now(timezone.utc),
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return RequestMessageResponse(
            id=message.id,
            request_id=message.request_id,
            sender_id=message.sender_id,
            content=message.content,
            sent_at=message.sent_at,
            sender=UserSummary.from_user(actor),
        )

    async def list_messages(self, actor: User, request_id: int) -> List[RequestMessageResponse]:
        request = await get_visible_request(self.db, actor, request_id)
        result = await self.db.execute(
            select(Message)
            .options(selectinload(Message.sender))
            .where(Message.request_id == request.id)
            .order_by(Message.sent_at, Message.id)
        )
        return [
            RequestMessageResponse(
                id=message.id,
                request_id=message.request_id,
                sender_id=message.sender_id,
                content=message.content,
                sent_at=message.sent_at,
                sender=UserSummary.from_user(message.sender),
            )
            for message in result.scalars().all()
        ]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _users_by_id(self, user_ids) -> Dict[int, User]:
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    @staticmethod
    def _summary(request: Request, users: Dict[int, User], assignee_id: Optional[int]) -> Dict[str, Any]:
        return {
            "id": request.id,
            "organization_id": request.organization_id,
            "request_type": request.request_type,
            "facility": request.facility,
            "event": request.event,
            "event_date": request.event_date,
            "setup_time": request.setup_time,
            "start_time": request.start_time,
            "end_time": request.end_time,
            "requestor_id": request.requestor_id,
            "status": request.status,
            "priority": request.priority,
            "created_at": request.created_at,
            "updated_at": request.updated_at,
            "requestor": UserSummary.from_user(users.get(request.requestor_id)),
            "assignee": UserSummary.from_user(users.get(assignee_id)),
        }

    async def list_requests(
        self,
        actor: User,
        scope: ListScope,
        organization_id: Optional[int] = None,
        status: Optional[RequestStatus] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Tuple[List[RequestResponse], int]:
        """Role-filtered request listing, newest first."""
        clause = request_listing_clause(actor, scope, organization_id)
        latest = latest_assignment_subquery()

        query = (
            select(Request, latest.c.assignee_id)
            .outerjoin(latest, latest.c.request_id == Request.id)
            .where(clause)
        )
        if status:
            query = query.where(Request.status == status)

        count_query = select(func.count()).select_from(Request).where(clause)
        if status:
            count_query = count_query.where(Request.status == status)
        total = await self.db.scalar(count_query) or 0

        result = await self.db.execute(
            query.order_by(Request.created_at.desc(), Request.id.desc()).offset(offset).limit(limit)
        )
        rows = result.all()

        users = await self._users_by_id(
            [row.Request.requestor_id for row in rows] + [row.assignee_id for row in rows]
        )
        items = [RequestResponse(**self._summary(row.Request, users, row.assignee_id)) for row in rows]
        return items, total

    async def get_detail(self, actor: User, request_id: int) -> RequestDetailResponse:
        request = await get_visible_request(
            self.db,
            actor,
            request_id,
            options=(
                selectinload(Request.items),
                selectinload(Request.building_details),
                selectinload(Request.photos),
            ),
        )
        assignee_id = await current_assignee_id(self.db, request.id)
        organization = await self.db.get(Organization, request.organization_id)
        capabilities = resolve_capabilities(actor, request, assignee_id, organization)
        users = await self._users_by_id([request.requestor_id, assignee_id])

        return RequestDetailResponse(
            **self._summary(request, users, assignee_id),
            items=RequestItemsResponse.model_validate(request.items) if request.items else None,
            building_details=(
                BuildingDetailsResponse.model_validate(request.building_details)
                if request.building_details else None
            ),
            photos=[PhotoResponse.model_validate(photo) for photo in sorted(request.photos, key=lambda p: p.id)],
            capabilities=sorted(capability.value for capability in capabilities),
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def notification_data(
        self,
        request: Request,
        note: Optional[str] = None,
        include_admins: bool = False,
    ) -> RequestEmailData:
        """Snapshot what the notification emails need, while the session is open."""
        requestor = await self.db.get(User, request.requestor_id)
        organization = await self.db.get(Organization, request.organization_id)
        details = await self.db.scalar(
            select(BuildingRequest).where(BuildingRequest.request_id == request.id)
        )

        admin_emails: List[str] = []
        if include_admins:
            result = await self.db.execute(
                select(User.email)
                .where(User.organization_id == request.organization_id)
                .where(User.role == UserRole.ADMIN)
                .where(User.is_active == True)  # noqa: E712
            )
            admin_emails = list(result.scalars().all())

        return RequestEmailData(
            request_id=request.id,
            request_type=request.request_type.value,
            title=request.event,
            priority=request.priority.value,
            status=request.status.value,
            requester_name=requestor.display_name if requestor else "Requester",
            requester_email=requestor.email if requestor else "",
            organization_name=organization.name if organization else "",
            location=request.facility,
            building=details.building if details else None,
            room_number=details.room_number if details else None,
            description=details.description if details else None,
            note=note,
            admin_emails=admin_emails,
        )
