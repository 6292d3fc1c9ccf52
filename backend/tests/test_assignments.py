"""
Test assignment, priority and message operations
"""
import pytest
from sqlalchemy import select

from requestdesk.core.exceptions import NotFoundError, PolicyError, ValidationError
from requestdesk.models import Assignment, RequestPriority, RequestStatus, StatusUpdate
from requestdesk.services.access_policy import current_assignee_id
from requestdesk.services.request_service import RequestService, ASSIGNMENT_APPROVAL_NOTE


class TestAssignment:
    """Test assigning requests to staff."""

    @pytest.mark.asyncio
    async def test_assigning_pending_request_approves_it(
        self, db_session, building_request, admin, maintenance
    ):
        assignment = await RequestService(db_session).assign(
            admin, building_request.id, maintenance.id, internal_notes="Bring a wrench"
        )

        assert assignment.assignee_id == maintenance.id
        assert assignment.assigner_id == admin.id
        assert assignment.internal_notes == "Bring a wrench"

        await db_session.refresh(building_request)
        assert building_request.status == RequestStatus.APPROVED

        updates = (await db_session.execute(
            select(StatusUpdate)
            .where(StatusUpdate.request_id == building_request.id)
            .order_by(StatusUpdate.id)
        )).scalars().all()
        assert [u.status for u in updates] == [RequestStatus.PENDING, RequestStatus.APPROVED]
        assert updates[-1].note == ASSIGNMENT_APPROVAL_NOTE

    @pytest.mark.asyncio
    async def test_assigning_in_progress_request_keeps_status(
        self, db_session, building_request, admin, maintenance
    ):
        service = RequestService(db_session)
        await service.transition(admin, building_request.id, RequestStatus.IN_PROGRESS)
        await service.assign(admin, building_request.id, maintenance.id)

        await db_session.refresh(building_request)
        assert building_request.status == RequestStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_reassignment_keeps_history(
        self, db_session, building_request, admin, maintenance, second_maintenance
    ):
        service = RequestService(db_session)
        await service.assign(admin, building_request.id, maintenance.id)
        await service.assign(admin, building_request.id, second_maintenance.id)

        rows = (await db_session.execute(
            select(Assignment).where(Assignment.request_id == building_request.id).order_by(Assignment.id)
        )).scalars().all()
        assert [a.assignee_id for a in rows] == [maintenance.id, second_maintenance.id]
        assert await current_assignee_id(db_session, building_request.id) == second_maintenance.id

    @pytest.mark.asyncio
    async def test_requester_cannot_be_assignee(
        self, db_session, building_request, admin, other_requester
    ):
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).assign(admin, building_request.id, other_requester.id)
        assert "assignee_id" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_assignee_from_other_organization_not_found(
        self, db_session, building_request, admin, outside_staff
    ):
        with pytest.raises(NotFoundError):
            await RequestService(db_session).assign(admin, building_request.id, outside_staff.id)

    @pytest.mark.asyncio
    async def test_requester_cannot_assign(self, db_session, building_request, requester, maintenance):
        with pytest.raises(PolicyError):
            await RequestService(db_session).assign(requester, building_request.id, maintenance.id)

    @pytest.mark.asyncio
    async def test_assignment_allowed_on_terminal_request(
        self, db_session, building_request, admin, maintenance
    ):
        service = RequestService(db_session)
        await service.transition(admin, building_request.id, RequestStatus.COMPLETED)
        assignment = await service.assign(admin, building_request.id, maintenance.id)

        assert assignment.id is not None
        await db_session.refresh(building_request)
        assert building_request.status == RequestStatus.COMPLETED


class TestPriority:
    """Test priority changes."""

    @pytest.mark.asyncio
    async def test_staff_set_priority(self, db_session, building_request, maintenance):
        request = await RequestService(db_session).set_priority(
            maintenance, building_request.id, RequestPriority.LOW
        )
        assert request.priority == RequestPriority.LOW

    @pytest.mark.asyncio
    async def test_requester_cannot_set_priority(self, db_session, building_request, requester):
        with pytest.raises(PolicyError):
            await RequestService(db_session).set_priority(requester, building_request.id, RequestPriority.URGENT)


class TestMessages:
    """Test the request message thread."""

    @pytest.mark.asyncio
    async def test_requestor_and_staff_converse(self, db_session, building_request, requester, maintenance):
        service = RequestService(db_session)
        await service.add_message(requester, building_request.id, "Is anyone coming today?")
        await service.add_message(maintenance, building_request.id, "  After lunch.  ")

        messages = await service.list_messages(requester, building_request.id)
        assert [m.content for m in messages] == ["Is anyone coming today?", "After lunch."]
        assert messages[1].sender.id == maintenance.id

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, db_session, building_request, requester):
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).add_message(requester, building_request.id, "   ")
        assert "content" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_outsider_cannot_message(self, db_session, building_request, other_requester):
        with pytest.raises(NotFoundError):
            await RequestService(db_session).add_message(other_requester, building_request.id, "Hello")
