"""
Request endpoints: creation, role-filtered listings, status workflow,
assignment, messages and photos.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Query, Request as HTTPRequest, status
from fastapi.responses import FileResponse
from sqlalchemy import select
from starlette.datastructures import UploadFile

from requestdesk.api.deps import DBSession, CurrentUser, Pagination, SelectedOrganization
from requestdesk.core.config import get_settings
from requestdesk.core.exceptions import NotFoundError, ValidationError
from requestdesk.models.request import RequestStatus, RequestPhoto, PhotoStorageState
from requestdesk.schemas.common import PaginatedResponse
from requestdesk.schemas.request import (
    RequestResponse,
    RequestDetailResponse,
    RequestCreateResponse,
    StatusChange,
    AssignmentCreate,
    AssignmentResponse,
    PriorityUpdate,
    TimelineEvent,
    RequestMessageCreate,
    RequestMessageResponse,
    PhotoResponse,
    PhotoUploadResponse,
)
from requestdesk.services.access_policy import (
    Capability,
    ListScope,
    resolve_capabilities,
    current_assignee_id,
    get_visible_request,
    require,
)
from requestdesk.services.notification_service import notify_request_created, notify_status_changed
from requestdesk.services.photo_storage import PhotoService, PhotoUpload, get_photo_storage
from requestdesk.services.request_service import RequestService, CreationResult
from requestdesk.services.timeline import build_request_timeline

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)


async def _read_submission(http_request: HTTPRequest) -> Tuple[Dict[str, Any], List[PhotoUpload]]:
    """
    Split a multipart (or JSON) submission into plain fields and photo uploads.
    """
    content_type = http_request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await http_request.json()
        except ValueError:
            raise ValidationError("Malformed JSON body", errors={"payload": "Body is not valid JSON"})
        if not isinstance(payload, dict):
            raise ValidationError("Malformed JSON body", errors={"payload": "Expected an object"})
        return payload, []

    form = await http_request.form()
    payload: Dict[str, Any] = {}
    uploads: List[PhotoUpload] = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key in ("photos", "photo") and value.filename:
                # Read one byte past the limit so oversize files are detectable
                data = await value.read(settings.MAX_UPLOAD_SIZE + 1)
                uploads.append(PhotoUpload(filename=value.filename, content_type=value.content_type, data=data))
            continue
        payload[key] = value
    return payload, uploads


async def _creation_response(
    db,
    service: RequestService,
    current_user,
    result: CreationResult,
    background_tasks: BackgroundTasks,
) -> RequestCreateResponse:
    await db.commit()

    email_data = await service.notification_data(result.request, include_admins=True)
    background_tasks.add_task(notify_request_created, email_data)

    detail = await service.get_detail(current_user, result.request.id)
    return RequestCreateResponse(
        request=detail,
        photos=[PhotoResponse.model_validate(photo) for photo in result.photos],
        photo_errors=result.photo_errors,
    )


@router.post(
    "/facilities-requests",
    response_model=RequestCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_facilities_request(
    db: DBSession,
    current_user: CurrentUser,
    http_request: HTTPRequest,
    background_tasks: BackgroundTasks,
) -> Any:
    """
    Submit a facilities request. Multipart form fields with up to five
    inline ``photos``; rejected photos are listed in ``photo_errors``.
    """
    payload, uploads = await _read_submission(http_request)
    service = RequestService(db)
    result = await service.create_facilities_request(current_user, payload, uploads)
    return await _creation_response(db, service, current_user, result, background_tasks)


@router.post(
    "/building-requests",
    response_model=RequestCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_building_request(
    db: DBSession,
    current_user: CurrentUser,
    http_request: HTTPRequest,
    background_tasks: BackgroundTasks,
) -> Any:
    """
    Submit a building repair request for a room of a known building.
    """
    payload, uploads = await _read_submission(http_request)
    service = RequestService(db)
    result = await service.create_building_request(current_user, payload, uploads)
    return await _creation_response(db, service, current_user, result, background_tasks)


async def _list(db, current_user, scope, pagination, organization_id, status_filter):
    items, total = await RequestService(db).list_requests(
        current_user,
        scope,
        organization_id=organization_id,
        status=status_filter,
        offset=pagination.offset,
        limit=pagination.page_size,
    )
    return PaginatedResponse.of(items, total, pagination.page, pagination.page_size)


@router.get("/requests/my", response_model=PaginatedResponse[RequestResponse])
async def list_my_requests(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    organization_id: SelectedOrganization,
    status: Optional[RequestStatus] = Query(None, description="Filter by status"),
) -> Any:
    """
    List requests submitted by the current user.
    """
    return await _list(db, current_user, ListScope.MY, pagination, organization_id, status)


@router.get("/requests/assigned", response_model=PaginatedResponse[RequestResponse])
async def list_assigned_requests(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    organization_id: SelectedOrganization,
    status: Optional[RequestStatus] = Query(None, description="Filter by status"),
) -> Any:
    """
    List requests whose current assignee is the current user (staff only).
    """
    return await _list(db, current_user, ListScope.ASSIGNED, pagination, organization_id, status)


@router.get("/requests/all", response_model=PaginatedResponse[RequestResponse])
async def list_all_requests(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    organization_id: SelectedOrganization,
    status: Optional[RequestStatus] = Query(None, description="Filter by status"),
) -> Any:
    """
    List every request of the organization (staff only). A super admin must
    pass ``organization_id``; without it the list is empty.
    """
    return await _list(db, current_user, ListScope.ALL, pagination, organization_id, status)


@router.get("/requests/{request_id}", response_model=RequestDetailResponse)
async def get_request(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
) -> Any:
    """
    Get request with its detail row, photos, requestor and current assignee.
    """
    return await RequestService(db).get_detail(current_user, request_id)


@router.get("/requests/{request_id}/timeline", response_model=List[TimelineEvent])
async def get_request_timeline(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
) -> Any:
    """
    Get the merged creation, status and assignment timeline.
    """
    request = await get_visible_request(db, current_user, request_id)
    assignee_id = await current_assignee_id(db, request.id)
    capabilities = resolve_capabilities(current_user, request, assignee_id)
    return await build_request_timeline(
        db,
        request,
        include_internal_notes=Capability.VIEW_INTERNAL_NOTES in capabilities,
    )


@router.patch("/requests/{request_id}/status", response_model=RequestDetailResponse)
async def change_request_status(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
    status_data: StatusChange,
    background_tasks: BackgroundTasks,
) -> Any:
    """
    Change request status with workflow validation.
    """
    service = RequestService(db)
    request = await service.transition(
        current_user,
        request_id,
        status_data.status,
        note=status_data.note,
        priority=status_data.priority,
    )

    email_data = await service.notification_data(request, note=status_data.note)
    background_tasks.add_task(notify_status_changed, email_data)

    return await service.get_detail(current_user, request.id)


@router.patch("/requests/{request_id}/assignment", response_model=AssignmentResponse)
async def assign_request(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
    assignment_data: AssignmentCreate,
) -> Any:
    """
    Assign the request to a maintenance-capable user. Prior assignments are
    kept as history.
    """
    return await RequestService(db).assign(
        current_user,
        request_id,
        assignment_data.assignee_id,
        internal_notes=assignment_data.internal_notes,
    )


@router.patch("/requests/{request_id}/priority", response_model=RequestDetailResponse)
async def change_request_priority(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
    priority_data: PriorityUpdate,
) -> Any:
    """
    Change request priority (staff only).
    """
    service = RequestService(db)
    await service.set_priority(current_user, request_id, priority_data.priority)
    return await service.get_detail(current_user, request_id)


@router.get("/requests/{request_id}/messages", response_model=List[RequestMessageResponse])
async def list_request_messages(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
) -> Any:
    """
    List the message thread of a request.
    """
    return await RequestService(db).list_messages(current_user, request_id)


@router.post(
    "/requests/{request_id}/messages",
    response_model=RequestMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_request_message(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
    message_data: RequestMessageCreate,
) -> Any:
    """
    Append a message to the request thread.
    """
    return await RequestService(db).add_message(current_user, request_id, message_data.content)


@router.get("/requests/{request_id}/photos", response_model=List[PhotoResponse])
async def list_request_photos(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
) -> Any:
    """
    List photo metadata of a request.
    """
    request = await get_visible_request(db, current_user, request_id)
    result = await db.execute(
        select(RequestPhoto).where(RequestPhoto.request_id == request.id).order_by(RequestPhoto.id)
    )
    return result.scalars().all()


@router.post("/requests/{request_id}/photos", response_model=PhotoUploadResponse)
async def upload_request_photos(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
    http_request: HTTPRequest,
) -> Any:
    """
    Attach more photos to an existing request.
    """
    request = await get_visible_request(db, current_user, request_id)
    assignee_id = await current_assignee_id(db, request.id)
    require(
        resolve_capabilities(current_user, request, assignee_id),
        Capability.UPLOAD_PHOTO,
        "Not allowed to add photos to this request",
    )

    payload, uploads = await _read_submission(http_request)
    if not uploads:
        raise ValidationError("No photos uploaded", errors={"photos": "At least one photo is required"})

    photos, errors = await PhotoService(db).attach(request, current_user, uploads, caption=payload.get("caption"))
    await db.commit()

    return PhotoUploadResponse(
        photos=[PhotoResponse.model_validate(photo) for photo in photos],
        photo_errors=errors,
    )


@router.get("/requests/{request_id}/photos/{photo_id}/file")
async def get_request_photo_file(
    db: DBSession,
    current_user: CurrentUser,
    request_id: int,
    photo_id: int,
) -> Any:
    """
    Download a photo binary.
    """
    request = await get_visible_request(db, current_user, request_id)
    photo = await db.get(RequestPhoto, photo_id)
    if photo is None or photo.request_id != request.id:
        raise NotFoundError(resource="Photo", resource_id=photo_id)

    storage = get_photo_storage()
    if photo.storage_state == PhotoStorageState.MISSING or not storage.exists(photo.filename):
        raise NotFoundError(resource="Photo file", resource_id=photo_id)

    return FileResponse(
        storage.path_for(photo.filename),
        media_type=photo.mime_type or "application/octet-stream",
        filename=photo.original_filename or photo.filename.rsplit("/", 1)[-1],
    )
