"""
Test request creation, directory validation and photo attachment
"""
import pytest
from sqlalchemy import select

from requestdesk.core.exceptions import PolicyError, ValidationError
from requestdesk.models import (
    Building,
    BuildingRequest,
    PhotoStorageState,
    RequestItems,
    RequestPhoto,
    RequestStatus,
    RequestType,
    StatusUpdate,
)
from requestdesk.services.photo_storage import LocalPhotoStorage, PhotoUpload
from requestdesk.services.request_service import RequestService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestFacilitiesRequest:
    """Test facilities request creation."""

    @pytest.mark.asyncio
    async def test_create_facilities_request(
        self, db_session, directory, requester, facilities_payload, photo_storage
    ):
        result = await RequestService(db_session, photo_storage).create_facilities_request(
            requester, facilities_payload
        )
        await db_session.commit()
        request = result.request

        assert request.request_type == RequestType.FACILITIES
        assert request.status == RequestStatus.PENDING
        assert request.organization_id == requester.organization_id
        assert request.requestor_id == requester.id

        items = await db_session.scalar(select(RequestItems).where(RequestItems.request_id == request.id))
        assert items.chairs_audience is True
        assert items.chairs_audience_qty == 120
        assert items.tables is False

        updates = (await db_session.execute(
            select(StatusUpdate).where(StatusUpdate.request_id == request.id)
        )).scalars().all()
        assert len(updates) == 1
        assert updates[0].status == RequestStatus.PENDING
        assert "Audience chairs (120)" in updates[0].note

    @pytest.mark.asyncio
    async def test_flat_form_fields_become_items(
        self, db_session, directory, requester, facilities_payload
    ):
        payload = {k: v for k, v in facilities_payload.items() if k != "items"}
        payload.update({"tables": "true", "tables_qty": "8", "lighting": "on"})

        result = await RequestService(db_session).create_facilities_request(requester, payload)
        items = await db_session.scalar(
            select(RequestItems).where(RequestItems.request_id == result.request.id)
        )
        assert items.tables is True
        assert items.tables_qty == 8
        assert items.lighting is True

    @pytest.mark.asyncio
    async def test_unknown_facility_and_missing_fields_reported_together(
        self, db_session, directory, requester
    ):
        payload = {"facility": "Gymnasium", "event": "", "event_date": "2026-05-01"}

        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_facilities_request(requester, payload)
        errors = exc_info.value.errors
        assert "facility" in errors
        assert "event" in errors

    @pytest.mark.asyncio
    async def test_end_time_must_follow_start_time(
        self, db_session, directory, requester, facilities_payload
    ):
        facilities_payload.update({"start_time": "20:00", "end_time": "19:00"})
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_facilities_request(requester, facilities_payload)
        assert "end_time" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_facility_match_is_case_insensitive(
        self, db_session, directory, requester, facilities_payload
    ):
        facilities_payload["facility"] = "  auditorium "
        result = await RequestService(db_session).create_facilities_request(requester, facilities_payload)
        await db_session.commit()
        assert result.request.facility == "Auditorium"

    @pytest.mark.asyncio
    async def test_non_string_facility_is_a_field_error(
        self, db_session, directory, requester, facilities_payload
    ):
        facilities_payload["facility"] = 5
        del facilities_payload["event"]
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_facilities_request(requester, facilities_payload)
        assert {"facility", "event"} <= set(exc_info.value.errors)


class TestBuildingRequest:
    """Test building request creation."""

    @pytest.mark.asyncio
    async def test_create_building_request(self, db_session, directory, requester, building_payload):
        building_payload["building"] = "main hall"
        result = await RequestService(db_session).create_building_request(requester, building_payload)
        await db_session.commit()
        request = result.request

        assert request.request_type == RequestType.BUILDING
        assert request.facility == "Main Hall"
        assert request.event_date is not None

        details = await db_session.scalar(
            select(BuildingRequest).where(BuildingRequest.request_id == request.id)
        )
        assert details.building == "Main Hall"
        assert details.room_number == "101"

        update = await db_session.scalar(select(StatusUpdate).where(StatusUpdate.request_id == request.id))
        assert update.note == "Building request submitted for Main Hall room 101"

    @pytest.mark.asyncio
    async def test_unknown_room_keyed_on_room_number(
        self, db_session, directory, requester, building_payload
    ):
        building_payload["room_number"] = "999"
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_building_request(requester, building_payload)
        assert set(exc_info.value.errors) == {"room_number"}

    @pytest.mark.asyncio
    async def test_non_string_building_and_room_are_field_errors(
        self, db_session, directory, requester, building_payload
    ):
        building_payload.update({"building": ["Main Hall"], "room_number": 101})
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_building_request(requester, building_payload)
        assert {"building", "room_number"} <= set(exc_info.value.errors)

    @pytest.mark.asyncio
    async def test_building_of_other_organization_is_unknown(
        self, db_session, directory, requester, other_org, building_payload
    ):
        db_session.add(Building(organization_id=other_org.id, name="Annex", room_numbers=["1"]))
        await db_session.commit()

        building_payload.update({"building": "Annex", "room_number": "1"})
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_building_request(requester, building_payload)
        assert "building" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_inactive_building_is_unknown(self, db_session, directory, requester, building_payload):
        building, _ = directory
        building.is_active = False
        await db_session.commit()

        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_building_request(requester, building_payload)
        assert "building" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_super_admin_must_select_organization(
        self, db_session, directory, super_admin, org, building_payload
    ):
        with pytest.raises(ValidationError) as exc_info:
            await RequestService(db_session).create_building_request(super_admin, building_payload)
        assert "organization_id" in exc_info.value.errors

        building_payload["organization_id"] = str(org.id)
        result = await RequestService(db_session).create_building_request(super_admin, building_payload)
        assert result.request.organization_id == org.id

    @pytest.mark.asyncio
    async def test_member_cannot_create_in_other_organization(
        self, db_session, directory, requester, other_org, building_payload
    ):
        building_payload["organization_id"] = other_org.id
        with pytest.raises(PolicyError):
            await RequestService(db_session).create_building_request(requester, building_payload)


class TestCreationPhotos:
    """Test photos attached while creating a request."""

    @pytest.mark.asyncio
    async def test_valid_photos_confirmed_and_rejects_reported(
        self, db_session, directory, requester, building_payload, photo_storage
    ):
        uploads = [
            PhotoUpload(filename="leak.png", content_type="image/png", data=PNG),
            PhotoUpload(filename="notes.pdf", content_type="application/pdf", data=b"%PDF-1.4"),
            PhotoUpload(filename="empty.jpg", content_type="image/jpeg", data=b""),
        ]
        result = await RequestService(db_session, photo_storage).create_building_request(
            requester, building_payload, uploads
        )
        await db_session.commit()

        assert len(result.photos) == 1
        photo = result.photos[0]
        assert photo.storage_state == PhotoStorageState.CONFIRMED
        assert photo.confirmed_at is not None
        assert photo.photo_url == f"/api/requests/{result.request.id}/photos/{photo.id}/file"
        assert photo_storage.exists(photo.filename)

        assert [e.filename for e in result.photo_errors] == ["notes.pdf", "empty.jpg"]

    @pytest.mark.asyncio
    async def test_photo_limit_per_request(
        self, db_session, directory, requester, building_payload, photo_storage
    ):
        uploads = [
            PhotoUpload(filename=f"p{i}.png", content_type="image/png", data=PNG) for i in range(7)
        ]
        result = await RequestService(db_session, photo_storage).create_building_request(
            requester, building_payload, uploads
        )
        assert len(result.photos) == 5
        assert len(result.photo_errors) == 2
        assert "Limit" in result.photo_errors[0].reason

    @pytest.mark.asyncio
    async def test_failed_write_leaves_row_reserved(
        self, db_session, directory, requester, building_payload, tmp_path
    ):
        # A regular file where the storage root should be makes every write fail
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        storage = LocalPhotoStorage(root=str(blocker))

        uploads = [PhotoUpload(filename="leak.png", content_type="image/png", data=PNG)]
        result = await RequestService(db_session, storage).create_building_request(
            requester, building_payload, uploads
        )
        await db_session.commit()

        assert result.request.id is not None
        assert len(result.photo_errors) == 1
        row = await db_session.scalar(select(RequestPhoto).where(RequestPhoto.request_id == result.request.id))
        assert row.storage_state == PhotoStorageState.RESERVED
