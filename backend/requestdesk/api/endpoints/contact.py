"""
Public contact form endpoints.
"""
import logging
from typing import Any

from fastapi import APIRouter, status
from sqlalchemy import select, func

from requestdesk.api.deps import DBSession, SuperAdmin, Pagination
from requestdesk.models.contact_message import ContactMessage
from requestdesk.schemas.common import PaginatedResponse, MessageResponse
from requestdesk.schemas.contact import ContactCreate, ContactResponse

router = APIRouter()
admin_router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/contact", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def submit_contact_message(
    db: DBSession,
    contact_data: ContactCreate,
) -> Any:
    """
    Store a contact-form submission. No authentication required.
    """
    message = ContactMessage(**contact_data.model_dump())
    db.add(message)
    await db.commit()

    logger.info("Contact message %s received from %s", message.id, message.email)
    return MessageResponse(message="Thank you for reaching out. We will be in touch soon.")


@admin_router.get("/contact-messages", response_model=PaginatedResponse[ContactResponse])
async def list_contact_messages(
    db: DBSession,
    current_user: SuperAdmin,
    pagination: Pagination,
) -> Any:
    """
    List contact-form submissions, newest first (super admin only).
    """
    total = await db.scalar(select(func.count()).select_from(ContactMessage))
    result = await db.execute(
        select(ContactMessage)
        .order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
    )
    return PaginatedResponse.of(result.scalars().all(), total, pagination.page, pagination.page_size)
