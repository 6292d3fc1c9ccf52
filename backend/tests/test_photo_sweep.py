"""
Test photo storage and reconciliation sweep
"""
import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, func

from requestdesk.core.exceptions import StorageError
from requestdesk.models import PhotoStorageState, RequestPhoto
from requestdesk.services.photo_storage import (
    LocalPhotoStorage,
    PhotoUpload,
    reconcile_photos,
    validate_photo,
)
from requestdesk.services.request_service import RequestService


async def _photo(db, request, user, filename, state, uploaded_at=None):
    photo = RequestPhoto(
        request_id=request.id,
        filename=filename,
        original_filename=filename.rsplit("/", 1)[-1],
        photo_url="/placeholder",
        mime_type="image/png",
        size=4,
        uploaded_by_id=user.id,
        uploaded_at=uploaded_at or datetime.now(timezone.utc),
        storage_state=state,
    )
    db.add(photo)
    await db.commit()
    return photo


class TestValidatePhoto:
    """Test upload validation."""

    def test_accepts_allowed_image(self):
        assert validate_photo(PhotoUpload("a.jpg", "image/jpeg", b"\xff\xd8\xff")) is None

    def test_content_type_parameters_ignored(self):
        assert validate_photo(PhotoUpload("a.png", "image/png; charset=binary", b"png")) is None

    def test_rejects_other_types(self):
        assert "not allowed" in validate_photo(PhotoUpload("a.exe", "application/octet-stream", b"MZ"))
        assert "not allowed" in validate_photo(PhotoUpload("a", None, b"data"))

    def test_rejects_oversize(self):
        from requestdesk.core.config import get_settings

        data = b"x" * (get_settings().MAX_UPLOAD_SIZE + 1)
        assert "exceeds" in validate_photo(PhotoUpload("big.png", "image/png", data))


class TestLocalStorage:
    """Test the filesystem backend."""

    def test_write_and_exists(self, photo_storage):
        path = photo_storage.write("1/2/abc.png", b"data")
        assert path.endswith("abc.png")
        assert photo_storage.exists("1/2/abc.png")
        assert not photo_storage.exists("1/2/other.png")

    def test_key_cannot_escape_root(self, photo_storage):
        with pytest.raises(StorageError):
            photo_storage.path_for("../../etc/passwd")
        assert not photo_storage.exists("../../etc/passwd")


class TestReconcilePhotos:
    """Test the reconciliation sweep."""

    @pytest.mark.asyncio
    async def test_reserved_with_file_is_confirmed(
        self, db_session, building_request, requester, photo_storage
    ):
        photo = await _photo(db_session, building_request, requester, "1/1/late.png", PhotoStorageState.RESERVED)
        photo_storage.write(photo.filename, b"data")

        counts = await reconcile_photos(db_session, photo_storage)

        await db_session.refresh(photo)
        assert counts == {"confirmed": 1, "missing": 0, "orphaned": 0}
        assert photo.storage_state == PhotoStorageState.CONFIRMED
        assert photo.confirmed_at is not None

    @pytest.mark.asyncio
    async def test_reserved_within_grace_is_left_alone(
        self, db_session, building_request, requester, photo_storage
    ):
        photo = await _photo(db_session, building_request, requester, "1/1/fresh.png", PhotoStorageState.RESERVED)

        counts = await reconcile_photos(db_session, photo_storage, grace_seconds=900)

        await db_session.refresh(photo)
        assert counts == {"confirmed": 0, "missing": 0, "orphaned": 0}
        assert photo.storage_state == PhotoStorageState.RESERVED

    @pytest.mark.asyncio
    async def test_reserved_past_grace_is_missing(
        self, db_session, building_request, requester, photo_storage
    ):
        old = datetime.now(timezone.utc) - timedelta(hours=2)
        photo = await _photo(
            db_session, building_request, requester, "1/1/lost.png", PhotoStorageState.RESERVED, uploaded_at=old
        )

        counts = await reconcile_photos(db_session, photo_storage, grace_seconds=900)

        await db_session.refresh(photo)
        assert counts["missing"] == 1
        assert photo.storage_state == PhotoStorageState.MISSING

    @pytest.mark.asyncio
    async def test_confirmed_without_file_is_missing_until_it_returns(
        self, db_session, building_request, requester, photo_storage
    ):
        photo = await _photo(db_session, building_request, requester, "1/1/gone.png", PhotoStorageState.CONFIRMED)

        await reconcile_photos(db_session, photo_storage)
        await db_session.refresh(photo)
        assert photo.storage_state == PhotoStorageState.MISSING

        photo_storage.write(photo.filename, b"data")
        await reconcile_photos(db_session, photo_storage)
        await db_session.refresh(photo)
        assert photo.storage_state == PhotoStorageState.CONFIRMED

    @pytest.mark.asyncio
    async def test_sweep_never_deletes_rows(self, db_session, building_request, requester, tmp_path):
        old = datetime.now(timezone.utc) - timedelta(days=3)
        await _photo(
            db_session, building_request, requester, "1/1/a.png", PhotoStorageState.RESERVED, uploaded_at=old
        )
        await _photo(db_session, building_request, requester, "1/1/b.png", PhotoStorageState.CONFIRMED)

        await reconcile_photos(db_session, LocalPhotoStorage(root=str(tmp_path / "empty")))

        assert await db_session.scalar(select(func.count()).select_from(RequestPhoto)) == 2

    @pytest.mark.asyncio
    async def test_file_without_row_removed_after_grace(
        self, db_session, building_request, requester, photo_storage
    ):
        await _photo(db_session, building_request, requester, "1/1/kept.png", PhotoStorageState.CONFIRMED)
        photo_storage.write("1/1/kept.png", b"data")
        photo_storage.write("1/1/fresh-orphan.png", b"data")
        stale = photo_storage.write("1/1/stale-orphan.png", b"data")
        two_hours_ago = (datetime.now(timezone.utc) - timedelta(hours=2)).timestamp()
        os.utime(stale, (two_hours_ago, two_hours_ago))

        counts = await reconcile_photos(db_session, photo_storage, grace_seconds=900)

        assert counts["orphaned"] == 1
        assert not photo_storage.exists("1/1/stale-orphan.png")
        assert photo_storage.exists("1/1/fresh-orphan.png")
        assert photo_storage.exists("1/1/kept.png")

    @pytest.mark.asyncio
    async def test_rolled_back_creation_leaves_no_file_after_sweep(
        self, db_session, directory, requester, building_payload, photo_storage
    ):
        png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
        result = await RequestService(db_session, photo_storage).create_building_request(
            requester, building_payload, [PhotoUpload("leak.png", "image/png", png)]
        )
        filename = result.photos[0].filename
        assert photo_storage.exists(filename)
        await db_session.rollback()

        later = datetime.now(timezone.utc) + timedelta(hours=1)
        counts = await reconcile_photos(db_session, photo_storage, grace_seconds=900, now=later)

        assert counts["orphaned"] == 1
        assert not photo_storage.exists(filename)
        assert await db_session.scalar(select(func.count()).select_from(RequestPhoto)) == 0
