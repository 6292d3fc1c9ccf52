"""
Test capability resolution and role-filtered listings
"""
import pytest

from requestdesk.core.exceptions import NotFoundError, PolicyError, ValidationError
from requestdesk.models import Request, RequestStatus, RequestType, Organization
from requestdesk.services.access_policy import (
    Capability,
    ListScope,
    resolve_capabilities,
    get_visible_request,
    resolve_target_organization,
)
from requestdesk.services.request_service import RequestService


def _request(org_id, requestor_id):
    return Request(
        id=1,
        organization_id=org_id,
        request_type=RequestType.BUILDING,
        facility="Main Hall",
        event="Broken window",
        requestor_id=requestor_id,
        status=RequestStatus.PENDING,
    )


class TestResolveCapabilities:
    """Test the capability table."""

    @pytest.mark.asyncio
    async def test_role_level_capabilities(self, requester, maintenance, admin, super_admin):
        assert resolve_capabilities(requester) == {Capability.CREATE_REQUEST}
        assert Capability.LIST_ALL in resolve_capabilities(maintenance)
        assert Capability.MANAGE_USERS not in resolve_capabilities(maintenance)
        assert Capability.MANAGE_DIRECTORY in resolve_capabilities(admin)
        assert Capability.MANAGE_ORGANIZATIONS not in resolve_capabilities(admin)
        assert Capability.MANAGE_ORGANIZATIONS in resolve_capabilities(super_admin)

    @pytest.mark.asyncio
    async def test_inactive_user_has_nothing(self, requester, admin):
        admin.is_active = False
        assert resolve_capabilities(admin) == frozenset()
        assert resolve_capabilities(admin, _request(admin.organization_id, requester.id)) == frozenset()

    @pytest.mark.asyncio
    async def test_requestor_reads_and_cancels_own_request(self, requester):
        caps = resolve_capabilities(requester, _request(requester.organization_id, requester.id))
        assert {Capability.READ, Capability.MESSAGE, Capability.UPLOAD_PHOTO, Capability.CANCEL} <= caps
        assert Capability.TRANSITION not in caps
        assert Capability.VIEW_INTERNAL_NOTES not in caps

    @pytest.mark.asyncio
    async def test_requestor_cancel_follows_organization_setting(self, requester, org):
        org.settings = {"requester_can_cancel": False}
        caps = resolve_capabilities(requester, _request(org.id, requester.id), organization=org)
        assert Capability.READ in caps
        assert Capability.CANCEL not in caps

    @pytest.mark.asyncio
    async def test_other_requester_sees_nothing(self, requester, other_requester):
        caps = resolve_capabilities(other_requester, _request(requester.organization_id, requester.id))
        assert caps == frozenset()

    @pytest.mark.asyncio
    async def test_assignee_reads_but_does_not_work_the_request(self, requester, other_requester):
        request = _request(requester.organization_id, requester.id)
        caps = resolve_capabilities(other_requester, request, assignee_id=other_requester.id)
        assert Capability.READ in caps
        assert Capability.CANCEL not in caps
        assert Capability.TRANSITION not in caps

    @pytest.mark.asyncio
    async def test_staff_work_requests_of_their_tenant(self, requester, maintenance):
        caps = resolve_capabilities(maintenance, _request(requester.organization_id, requester.id))
        assert {Capability.TRANSITION, Capability.ASSIGN, Capability.VIEW_INTERNAL_NOTES} <= caps

    @pytest.mark.asyncio
    async def test_staff_of_another_tenant_see_nothing(self, requester, outside_staff):
        caps = resolve_capabilities(outside_staff, _request(requester.organization_id, requester.id))
        assert caps == frozenset()

    @pytest.mark.asyncio
    async def test_super_admin_crosses_tenants(self, requester, super_admin):
        caps = resolve_capabilities(super_admin, _request(requester.organization_id, requester.id))
        assert Capability.TRANSITION in caps


class TestVisibility:
    """Test request visibility and tenant isolation."""

    @pytest.mark.asyncio
    async def test_requestor_can_load_own_request(self, db_session, building_request, requester):
        request = await get_visible_request(db_session, requester, building_request.id)
        assert request.id == building_request.id

    @pytest.mark.asyncio
    async def test_foreign_request_looks_absent(
        self, db_session, building_request, other_requester, outside_staff
    ):
        with pytest.raises(NotFoundError):
            await get_visible_request(db_session, other_requester, building_request.id)
        with pytest.raises(NotFoundError):
            await get_visible_request(db_session, outside_staff, building_request.id)
        with pytest.raises(NotFoundError):
            await get_visible_request(db_session, outside_staff, 999999)

    @pytest.mark.asyncio
    async def test_assignee_can_load_request(
        self, db_session, building_request, admin, second_maintenance
    ):
        await RequestService(db_session).assign(admin, building_request.id, second_maintenance.id)
        request = await get_visible_request(db_session, second_maintenance, building_request.id)
        assert request.id == building_request.id


class TestListings:
    """Test role-filtered listings."""

    @pytest.mark.asyncio
    async def test_my_requests_only_lists_own(
        self, db_session, building_request, other_requester, requester
    ):
        service = RequestService(db_session)
        items, total = await service.list_requests(requester, ListScope.MY)
        assert total == 1
        assert items[0].id == building_request.id
        assert items[0].requestor.id == requester.id

        items, total = await service.list_requests(other_requester, ListScope.MY)
        assert total == 0
        assert items == []

    @pytest.mark.asyncio
    async def test_requester_cannot_list_all(self, db_session, requester):
        with pytest.raises(PolicyError):
            await RequestService(db_session).list_requests(requester, ListScope.ALL)
        with pytest.raises(PolicyError):
            await RequestService(db_session).list_requests(requester, ListScope.ASSIGNED)

    @pytest.mark.asyncio
    async def test_staff_list_all_within_tenant(
        self, db_session, building_request, maintenance, outside_staff
    ):
        service = RequestService(db_session)
        items, total = await service.list_requests(maintenance, ListScope.ALL)
        assert total == 1

        items, total = await service.list_requests(outside_staff, ListScope.ALL)
        assert total == 0

    @pytest.mark.asyncio
    async def test_super_admin_needs_selected_organization(
        self, db_session, building_request, super_admin, org
    ):
        service = RequestService(db_session)
        items, total = await service.list_requests(super_admin, ListScope.ALL)
        assert (items, total) == ([], 0)

        items, total = await service.list_requests(super_admin, ListScope.ALL, organization_id=org.id)
        assert total == 1

    @pytest.mark.asyncio
    async def test_assigned_follows_latest_assignment(
        self, db_session, building_request, admin, maintenance, second_maintenance
    ):
        service = RequestService(db_session)
        await service.assign(admin, building_request.id, maintenance.id)
        items, total = await service.list_requests(maintenance, ListScope.ASSIGNED)
        assert total == 1
        assert items[0].assignee.id == maintenance.id

        await service.assign(admin, building_request.id, second_maintenance.id)
        items, total = await service.list_requests(maintenance, ListScope.ASSIGNED)
        assert total == 0

        items, total = await service.list_requests(second_maintenance, ListScope.ASSIGNED)
        assert total == 1

    @pytest.mark.asyncio
    async def test_status_filter(self, db_session, building_request, maintenance):
        service = RequestService(db_session)
        _, pending = await service.list_requests(maintenance, ListScope.ALL, status=RequestStatus.PENDING)
        _, completed = await service.list_requests(maintenance, ListScope.ALL, status=RequestStatus.COMPLETED)
        assert (pending, completed) == (1, 0)


class TestTargetOrganization:
    """Test which tenant a write lands in."""

    @pytest.mark.asyncio
    async def test_member_writes_into_own_organization(self, db_session, requester, org):
        organization = await resolve_target_organization(db_session, requester, None)
        assert organization.id == org.id

    @pytest.mark.asyncio
    async def test_member_cannot_target_another_organization(self, db_session, requester, other_org):
        with pytest.raises(PolicyError):
            await resolve_target_organization(db_session, requester, other_org.id)

    @pytest.mark.asyncio
    async def test_super_admin_must_select(self, db_session, super_admin, other_org):
        with pytest.raises(ValidationError) as exc_info:
            await resolve_target_organization(db_session, super_admin, None)
        assert "organization_id" in exc_info.value.errors

        organization = await resolve_target_organization(db_session, super_admin, other_org.id)
        assert organization.id == other_org.id

    @pytest.mark.asyncio
    async def test_inactive_organization_rejected(self, db_session, requester, org):
        organization = await db_session.get(Organization, org.id)
        organization.is_active = False
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await resolve_target_organization(db_session, requester, None)
