"""
Photo storage with two-phase commit and periodic reconciliation.

A photo is stored in three steps: reserve the metadata row (``reserved``),
write the binary, mark the row ``confirmed``. A failed write leaves the row
reserved; the sweep later confirms it if the file turned up, or marks it
``missing`` once the grace period has passed. Files with no row at all,
left behind when the surrounding transaction rolled back, are removed by
the same sweep once they are older than the grace period.
"""
import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import select, func
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from requestdesk.core.config import get_settings
from requestdesk.core.exceptions import StorageError
from requestdesk.models.request import Request, RequestPhoto, PhotoStorageState
from requestdesk.models.user import User
from requestdesk.schemas.request import PhotoError
from requestdesk.services.timeline import coerce_timestamp

settings = get_settings()
logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/heic": ".heic",
}


@dataclass
class PhotoUpload:
    """An uploaded photo, read into memory."""
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes


def validate_photo(upload: PhotoUpload) -> Optional[str]:
    """
    Check a photo against the MIME allowlist and size limit.
    Returns the rejection reason, or None when the photo is acceptable.
    """
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in settings.ALLOWED_PHOTO_TYPES:
        return f"Content type '{content_type or 'unknown'}' not allowed"
    if not upload.data:
        return "File is empty"
    if len(upload.data) > settings.MAX_UPLOAD_SIZE:
        max_mb = settings.MAX_UPLOAD_SIZE / (1024 * 1024)
        return f"File size exceeds {max_mb:.0f} MB limit"
    return None


class LocalPhotoStorage:
    """Photo binaries on the local filesystem, keyed by storage filename."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.UPLOAD_DIR)

    def path_for(self, filename: str) -> Path:
        path = (self.root / filename).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError("Storage key escapes upload directory", filename=filename)
        return path

    def write(self, filename: str, data: bytes) -> str:
        """Write a binary; returns its path. Raises StorageError on failure."""
        path = self.path_for(filename)
        try:
            os.makedirs(path.parent, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Could not write photo: {e}", filename=filename) from e
        return str(path)

    def exists(self, filename: str) -> bool:
        try:
            return self.path_for(filename).is_file()
        except StorageError:
            return False

    def iter_files(self) -> Iterator[Tuple[str, datetime]]:
        """Yield (storage key, modification time) for every stored file."""
        if not self.root.is_dir():
            return
        for path in sorted(self.root.rglob("*")):
            if path.is_file():
                modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
                yield path.relative_to(self.root).as_posix(), modified

    def delete(self, filename: str) -> None:
        try:
            self.path_for(filename).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not delete photo: {e}", filename=filename) from e


def get_photo_storage() -> LocalPhotoStorage:
    return LocalPhotoStorage()


class PhotoService:
    """Attaches photos to requests."""

    def __init__(self, db: AsyncSession, storage: Optional[LocalPhotoStorage] = None):
        self.db = db
        self.storage = storage or get_photo_storage()

    async def count_photos(self, request_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(RequestPhoto).where(RequestPhoto.request_id == request_id)
        )
        return result.scalar() or 0

    async def attach(
        self,
        request: Request,
        uploader: User,
        uploads: List[PhotoUpload],
        caption: Optional[str] = None,
    ) -> Tuple[List[RequestPhoto], List[PhotoError]]:
        """
        Validate and store each upload. Rejected or failed photos are
        returned as errors and never abort the others.
        """
        photos: List[RequestPhoto] = []
        errors: List[PhotoError] = []
        remaining = settings.MAX_PHOTOS_PER_REQUEST - await self.count_photos(request.id)

        for upload in uploads:
            if remaining <= 0:
                errors.append(PhotoError(
                    filename=upload.filename,
                    reason=f"Limit of {settings.MAX_PHOTOS_PER_REQUEST} photos per request reached",
                ))
                continue

            reason = validate_photo(upload)
            if reason:
                logger.warning("Rejected photo %r for request %s: %s", upload.filename, request.id, reason)
                errors.append(PhotoError(filename=upload.filename, reason=reason))
                continue

            photo = await self._reserve(request, uploader, upload, caption)
            remaining -= 1
            try:
                photo.file_path = await run_in_threadpool(self.storage.write, photo.filename, upload.data)
            except StorageError as e:
                logger.error("Photo %s for request %s left reserved: %s", photo.filename, request.id, e)
                errors.append(PhotoError(filename=upload.filename, reason="Photo could not be stored"))
            else:
                photo.storage_state = PhotoStorageState.CONFIRMED
                photo.confirmed_at = datetime.now(timezone.utc)
            photos.append(photo)

        await self.db.flush()
        return photos, errors

    async def _reserve(
        self,
        request: Request,
        uploader: User,
        upload: PhotoUpload,
        caption: Optional[str],
    ) -> RequestPhoto:
        content_type = (upload.content_type or "").split(";")[0].strip().lower()
        filename = f"{request.organization_id}/{request.id}/{uuid.uuid4().hex}{EXTENSIONS.get(content_type, '')}"
        photo = RequestPhoto(
            request_id=request.id,
            filename=filename,
            original_filename=upload.filename,
            photo_url="",
            mime_type=content_type,
            size=len(upload.data),
            caption=caption,
            uploaded_by_id=uploader.id,
            storage_state=PhotoStorageState.RESERVED,
        )
        self.db.add(photo)
        await self.db.flush()
        photo.photo_url = f"/api/requests/{request.id}/photos/{photo.id}/file"
        return photo


async def reconcile_photos(
    db: AsyncSession,
    storage: LocalPhotoStorage,
    grace_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Settle photo rows against file storage.

    - reserved with file present: confirmed
    - reserved past the grace period without a file: missing
    - confirmed whose file has vanished: missing
    - missing whose file has reappeared: confirmed
    - file with no row, older than the grace period: removed
    """
    now = now or datetime.now(timezone.utc)
    grace = timedelta(seconds=settings.PHOTO_RESERVATION_GRACE_SECONDS if grace_seconds is None else grace_seconds)
    counts = {"confirmed": 0, "missing": 0, "orphaned": 0}

    result = await db.execute(select(RequestPhoto).order_by(RequestPhoto.id))
    photos = result.scalars().all()
    for photo in photos:
        present = storage.exists(photo.filename)

        if photo.storage_state == PhotoStorageState.CONFIRMED:
            if not present:
                photo.storage_state = PhotoStorageState.MISSING
                counts["missing"] += 1
                logger.warning("Confirmed photo %s is missing from storage", photo.filename)
            continue

        if present:
            photo.storage_state = PhotoStorageState.CONFIRMED
            photo.confirmed_at = now
            photo.file_path = str(storage.path_for(photo.filename))
            counts["confirmed"] += 1
            continue

        if photo.storage_state == PhotoStorageState.RESERVED:
            uploaded_at = coerce_timestamp(photo.uploaded_at)
            if uploaded_at is None or now - uploaded_at >= grace:
                photo.storage_state = PhotoStorageState.MISSING
                counts["missing"] += 1
                logger.warning("Reserved photo %s never arrived in storage", photo.filename)

    known = {photo.filename for photo in photos}
    await db.commit()

    stored = await run_in_threadpool(lambda: list(storage.iter_files()))
    for filename, modified in stored:
        if filename in known or now - modified < grace:
            continue
        await run_in_threadpool(storage.delete, filename)
        counts["orphaned"] += 1
        logger.warning("Removed stored photo %s with no matching row", filename)

    return counts


async def run_photo_sweeper(session_maker: async_sessionmaker[AsyncSession]):
    """
    Background task to reconcile photo rows periodically.
    """
    storage = get_photo_storage()

    while True:
        try:
            async with session_maker() as db:
                counts = await reconcile_photos(db, storage)
            logger.info(
                "Photo sweep completed. Confirmed %d, marked %d missing, removed %d orphaned.",
                counts["confirmed"],
                counts["missing"],
                counts["orphaned"],
            )
        except Exception as e:
            logger.error(f"Photo sweep error: {e}")

        await asyncio.sleep(settings.PHOTO_SWEEP_INTERVAL_SECONDS)
