"""
Test email notifications
"""
import json

import httpx
import pytest

from requestdesk.services.notification_service import (
    EmailClient,
    RequestEmailData,
    compose_created_email,
    compose_status_email,
    notify_request_created,
    notify_status_changed,
)
from requestdesk.services.request_service import RequestService


def _data(**overrides):
    values = dict(
        request_id=42,
        request_type="building",
        title="Leaking radiator",
        priority="high",
        status="pending",
        requester_name="Riley Tester",
        requester_email="riley@lincoln.edu",
        organization_name="Lincoln High School",
        location="Main Hall",
        building="Main Hall",
        room_number="101",
        description="Water under the window.",
        admin_emails=["avery@lincoln.edu", "riley@lincoln.edu"],
    )
    values.update(overrides)
    return RequestEmailData(**values)


def _recording_client(status_code=202):
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(status_code)

    client = EmailClient(
        api_key="test-key",
        api_url="https://mail.test/v3/mail/send",
        from_email="desk@lincoln.edu",
        transport=httpx.MockTransport(handler),
    )
    return client, sent


class TestCompose:
    """Test email content."""

    def test_requester_copy_of_building_request(self):
        subject, body = compose_created_email(_data(), for_requester=True)
        assert subject == "Your building request has been submitted - #42"
        assert "Dear Riley Tester," in body
        assert "Room: 101" in body
        assert "Water under the window." in body

    def test_admin_copy_names_requester(self):
        subject, body = compose_created_email(_data(request_type="facilities"), for_requester=False)
        assert subject.startswith("New facilities request")
        assert "submitted by Riley Tester" in body
        assert "Location: Main Hall" in body

    def test_status_email_includes_note(self):
        subject, body = compose_status_email(_data(status="completed", note="Replaced the valve"))
        assert subject == "Request #42 is now completed"
        assert "Replaced the valve" in body


class TestDelivery:
    """Test sending through the email API."""

    @pytest.mark.asyncio
    async def test_log_only_without_api_key(self):
        client = EmailClient(api_key="")
        assert not client.enabled
        assert await client.send("a@b.test", "Hi", "Body") is False

    @pytest.mark.asyncio
    async def test_created_notification_skips_requester_admin_duplicate(self):
        client, sent = _recording_client()
        count = await notify_request_created(_data(), client=client)

        assert count == 2
        recipients = [p["personalizations"][0]["to"][0]["email"] for p in sent]
        assert recipients == ["riley@lincoln.edu", "avery@lincoln.edu"]
        assert sent[0]["from"]["email"] == "desk@lincoln.edu"

    @pytest.mark.asyncio
    async def test_api_failure_is_swallowed(self):
        client, sent = _recording_client(status_code=500)
        assert await notify_status_changed(_data(status="approved"), client=client) == 0
        assert len(sent) == 1


class TestNotificationData:
    """Test the snapshot taken from stored rows."""

    @pytest.mark.asyncio
    async def test_snapshot_of_building_request(self, db_session, building_request, requester, admin, org):
        data = await RequestService(db_session).notification_data(building_request, include_admins=True)

        assert data.request_id == building_request.id
        assert data.requester_email == requester.email
        assert data.organization_name == org.name
        assert data.building == "Main Hall"
        assert data.room_number == "101"
        assert data.admin_emails == [admin.email]
