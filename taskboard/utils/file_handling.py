"""Attachment storage backends.

New uploads go to the backend chosen by ``ATTACHMENT_STORAGE``. Every
attachment row records the backend that stored it, and downloads and deletes
are always served by that same backend.
"""

import logging
import os
import re
import unicodedata
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import HTTPException, UploadFile, status
from fastapi.responses import FileResponse, Response

from taskboard.core.config import settings
from taskboard.utils.supabase_client import get_supabase

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def sanitize_filename(filename: str) -> str:
    name, ext = os.path.splitext(filename)

    name = unicodedata.normalize("NFD", name).encode("ascii", "ignore").decode("utf-8")

    name = re.sub(r"\s+", "_", name)

    name = re.sub(r"[^a-zA-Z0-9._-]", "", name)

    return f"{name}{ext}"


def has_extension(filename: str) -> bool:
    return "." in filename and not filename.startswith(".")


def unique_storage_name(filename: str) -> str:
    """Unique, filesystem-safe name that keeps the original extension."""
    ext = os.path.splitext(filename)[1] if has_extension(filename) else ""
    return f"{uuid.uuid4().hex}{sanitize_filename(ext)}"


def content_disposition(filename: str) -> str:
    safe = sanitize_filename(filename) or "download"
    return f'attachment; filename="{safe}"'


@dataclass
class StoredFile:
    locator: str
    size: int


class AttachmentStorage:
    backend = ""

    async def save(self, file: UploadFile, prefix: str) -> StoredFile:
        raise NotImplementedError

    def download(self, locator: str, file_name: str, media_type: str | None) -> Response:
        raise NotImplementedError

    def delete(self, locator: str) -> bool:
        raise NotImplementedError


class LocalAttachmentStorage(AttachmentStorage):
    backend = "local"

    def __init__(self, base_dir: str | Path, max_bytes: int | None = None):
        self.base_dir = Path(base_dir)
        self.max_bytes = max_bytes

    def _path(self, locator: str) -> Path:
        # locators are bare file names, never paths
        return self.base_dir / Path(locator).name

    async def save(self, file: UploadFile, prefix: str) -> StoredFile:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        locator = unique_storage_name(file.filename or "")
        target = self._path(locator)
        size = 0
        try:
            with open(target, "wb") as out:
                while chunk := await file.read(CHUNK_SIZE):
                    size += len(chunk)
                    if self.max_bytes is not None and size > self.max_bytes:
                        raise HTTPException(
                            status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"File exceeds the {self.max_bytes // (1024 * 1024)} MB limit",
                        )
                    out.write(chunk)
        except BaseException:
            target.unlink(missing_ok=True)
            raise
        logger.info(f"Stored {file.filename} at {target}")
        return StoredFile(locator=locator, size=size)

    def download(self, locator: str, file_name: str, media_type: str | None) -> Response:
        path = self._path(locator)
        if not path.is_file():
            logger.error(f"Attachment file missing on disk: {path}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Attachment file not found on server",
            )
        return FileResponse(
            path,
            media_type=media_type or "application/octet-stream",
            headers={"Content-Disposition": content_disposition(file_name)},
        )

    def delete(self, locator: str) -> bool:
        path = self._path(locator)
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete file {path}: {e}. Proceeding with DB deletion.")
            return False
        logger.debug(f"File {path} deleted from filesystem")
        return True


class SupabaseAttachmentStorage(AttachmentStorage):
    backend = "supabase"

    def __init__(self, bucket: str, max_bytes: int | None = None):
        self.bucket = bucket
        self.max_bytes = max_bytes

    async def save(self, file: UploadFile, prefix: str) -> StoredFile:
        file_data = await file.read()
        if self.max_bytes is not None and len(file_data) > self.max_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"File exceeds the {self.max_bytes // (1024 * 1024)} MB limit",
            )
        object_path = f"{prefix}/{unique_storage_name(file.filename or '')}"
        res = get_supabase().storage.from_(self.bucket).upload(
            object_path,
            file_data,
            {"content-type": file.content_type or "application/octet-stream"},
        )
        logger.info(f"Uploaded {file.filename} to Supabase -> {res.path}")
        return StoredFile(locator=res.path, size=len(file_data))

    def download(self, locator: str, file_name: str, media_type: str | None) -> Response:
        try:
            file_bytes = get_supabase().storage.from_(self.bucket).download(locator)
        except Exception:
            logger.exception(f"Error when getting file '{locator}' from Supabase")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Attachment file not found on server",
            )
        return Response(
            content=file_bytes,
            media_type=media_type or "application/octet-stream",
            headers={"Content-Disposition": content_disposition(file_name)},
        )

    def delete(self, locator: str) -> bool:
        try:
            get_supabase().storage.from_(self.bucket).remove([locator])
        except Exception:
            logger.exception(f"Failed to remove '{locator}' from Supabase. Proceeding with DB deletion.")
            return False
        return True


def build_storage(backend: str) -> AttachmentStorage:
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    if backend == SupabaseAttachmentStorage.backend:
        return SupabaseAttachmentStorage(settings.supabase_bucket, max_bytes)
    return LocalAttachmentStorage(settings.upload_dir, max_bytes)


def get_attachment_storage() -> AttachmentStorage:
    """FastAPI dependency: the backend new uploads go to."""
    return build_storage(settings.attachment_storage)


def storage_for(backend: str, configured: AttachmentStorage) -> AttachmentStorage:
    """Backend that owns an existing attachment row."""
    if backend == configured.backend:
        return configured
    return build_storage(backend)


def stored_locators(attachments):
    """Snapshot ``(backend, locator)`` pairs; rows are gone once deleted."""
    return [(a.storage_backend, a.file_path) for a in attachments]


def remove_stored_files(locators, configured: AttachmentStorage) -> None:
    """Best-effort removal of the stored files behind ``stored_locators`` output."""
    for backend, locator in locators:
        storage_for(backend, configured).delete(locator)
