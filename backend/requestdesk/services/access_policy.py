"""
Centralized access policy for requests.

Every role decision goes through ``resolve_capabilities`` and every request
listing goes through ``request_listing_clause``; endpoints never compare
role strings themselves.
"""
import enum
import logging
from typing import Optional, Sequence

from sqlalchemy import select, and_, false, func
from sqlalchemy.ext.asyncio import AsyncSession

from requestdesk.core.exceptions import NotFoundError, PolicyError, ValidationError
from requestdesk.models.organization import Organization
from requestdesk.models.request import Request, Assignment
from requestdesk.models.user import User, UserRole

logger = logging.getLogger(__name__)


class Capability(str, enum.Enum):
    """What an actor may do, globally or on one request."""
    CREATE_REQUEST = "create_request"
    LIST_ALL = "list_all"
    LIST_ASSIGNED = "list_assigned"
    READ = "read"
    MESSAGE = "message"
    UPLOAD_PHOTO = "upload_photo"
    TRANSITION = "transition"
    CANCEL = "cancel"
    ASSIGN = "assign"
    SET_PRIORITY = "set_priority"
    VIEW_INTERNAL_NOTES = "view_internal_notes"
    VIEW_REPORTS = "view_reports"
    MANAGE_DIRECTORY = "manage_directory"
    MANAGE_USERS = "manage_users"
    MANAGE_ORGANIZATIONS = "manage_organizations"


class ListScope(str, enum.Enum):
    MY = "my"
    ASSIGNED = "assigned"
    ALL = "all"


_STAFF = frozenset({
    Capability.CREATE_REQUEST,
    Capability.LIST_ALL,
    Capability.LIST_ASSIGNED,
    Capability.VIEW_REPORTS,
})

ROLE_CAPABILITIES = {
    UserRole.REQUESTER: frozenset({Capability.CREATE_REQUEST}),
    UserRole.MAINTENANCE: _STAFF,
    UserRole.ADMIN: _STAFF | {Capability.MANAGE_DIRECTORY, Capability.MANAGE_USERS},
    UserRole.SUPER_ADMIN: _STAFF | {
        Capability.MANAGE_DIRECTORY,
        Capability.MANAGE_USERS,
        Capability.MANAGE_ORGANIZATIONS,
    },
}

# Granted on any request the actor can see
_READER = frozenset({Capability.READ, Capability.MESSAGE, Capability.UPLOAD_PHOTO})

# Granted to staff on requests of their tenant
_WORKER = frozenset({
    Capability.TRANSITION,
    Capability.CANCEL,
    Capability.ASSIGN,
    Capability.SET_PRIORITY,
    Capability.VIEW_INTERNAL_NOTES,
})


def _in_tenant(actor: User, organization_id: Optional[int]) -> bool:
    if actor.is_super_admin:
        return True
    return actor.organization_id is not None and actor.organization_id == organization_id


def resolve_capabilities(
    actor: User,
    request: Optional[Request] = None,
    assignee_id: Optional[int] = None,
    organization: Optional[Organization] = None,
) -> frozenset:
    """
    Resolve the capability set of ``actor``.

    Without a request, returns role-level capabilities. With a request,
    returns what the actor may do on that request; an empty set means the
    request is invisible to them. ``assignee_id`` is the current assignee
    and ``organization`` the request's tenant (needed for the requestor
    cancellation setting).
    """
    if not actor.is_active:
        return frozenset()

    if request is None:
        return ROLE_CAPABILITIES.get(actor.role, frozenset())

    if not _in_tenant(actor, request.organization_id):
        return frozenset()

    if actor.is_staff:
        return _READER | _WORKER

    is_requestor = request.requestor_id == actor.id
    if not (is_requestor or (assignee_id is not None and assignee_id == actor.id)):
        return frozenset()

    capabilities = set(_READER)
    if is_requestor and (organization is None or organization.requester_can_cancel):
        capabilities.add(Capability.CANCEL)
    return frozenset(capabilities)


def require(capabilities: frozenset, capability: Capability, message: str) -> None:
    """Raise PolicyError unless ``capability`` is in ``capabilities``."""
    if capability not in capabilities:
        raise PolicyError(message)


def latest_assignment_subquery():
    """
    One row per request: (request_id, assignee_id) of its most recent
    Assignment, ordered by (assigned_at, id).
    """
    ranked = select(
        Assignment.request_id,
        Assignment.assignee_id,
        func.row_number()
        .over(
            partition_by=Assignment.request_id,
            order_by=(Assignment.assigned_at.desc(), Assignment.id.desc()),
        )
        .label("position"),
    ).subquery("ranked_assignments")
    return (
        select(ranked.c.request_id, ranked.c.assignee_id)
        .where(ranked.c.position == 1)
        .subquery("latest_assignment")
    )


def _tenant_clause(actor: User, selected_organization_id: Optional[int]):
    if actor.is_super_admin:
        # No home tenant: nothing is listed until a tenant is selected
        if selected_organization_id is None:
            return false()
        return Request.organization_id == selected_organization_id
    if actor.organization_id is None:
        return false()
    return Request.organization_id == actor.organization_id


def request_listing_clause(
    actor: User,
    scope: ListScope,
    selected_organization_id: Optional[int] = None,
):
    """
    Build the WHERE clause for a request listing.

    The tenant filter is always part of the clause for non-super_admin
    roles. Raises PolicyError when a requester asks for a staff scope.
    """
    scope = ListScope(scope)
    capabilities = resolve_capabilities(actor)
    tenant = _tenant_clause(actor, selected_organization_id)

    if scope == ListScope.MY:
        return and_(tenant, Request.requestor_id == actor.id)

    if scope == ListScope.ASSIGNED:
        require(capabilities, Capability.LIST_ASSIGNED, "Only staff can list assigned requests")
        latest = latest_assignment_subquery()
        assigned_ids = select(latest.c.request_id).where(latest.c.assignee_id == actor.id)
        return and_(tenant, Request.id.in_(assigned_ids))

    require(capabilities, Capability.LIST_ALL, "Only staff can list all requests")
    return tenant


async def current_assignee_id(db: AsyncSession, request_id: int) -> Optional[int]:
    """Assignee of the most recent Assignment row, if any."""
    result = await db.execute(
        select(Assignment.assignee_id)
        .where(Assignment.request_id == request_id)
        .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_visible_request(
    db: AsyncSession,
    actor: User,
    request_id: int,
    for_update: bool = False,
    options: Sequence = (),
) -> Request:
    """
    Load a request the actor may read.

    A request outside the actor's reach raises the same NotFoundError as
    an absent one.
    With ``for_update`` the row is locked for the rest of the transaction.
    """
    query = select(Request).where(Request.id == request_id)
    if not actor.is_super_admin:
        query = query.where(Request.organization_id == actor.organization_id)
    if options:
        query = query.options(*options)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)

    result = await db.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError(resource="Request", resource_id=request_id)

    if not actor.is_staff and request.requestor_id != actor.id:
        if await current_assignee_id(db, request.id) != actor.id:
            logger.debug("User %s denied read of request %s", actor.id, request_id)
            raise NotFoundError(resource="Request", resource_id=request_id)

    return request


async def resolve_target_organization(
    db: AsyncSession,
    actor: User,
    organization_id: Optional[int],
) -> Organization:
    """
    Tenant a write lands in: the actor's own organization, or for
    super_admin the explicitly selected one.
    """
    if actor.is_super_admin:
        if organization_id is None:
            raise ValidationError(
                "Organization must be selected",
                errors={"organization_id": "Required for super admin"},
            )
        target_id = organization_id
    else:
        if organization_id is not None and organization_id != actor.organization_id:
            raise PolicyError("Cannot write into another organization")
        target_id = actor.organization_id

    organization = None
    if target_id is not None:
        organization = await db.get(Organization, target_id)
    if organization is None or not organization.is_active:
        raise NotFoundError(resource="Organization", resource_id=target_id)
    return organization
