"""
ClassJournal Backend - Media Storage Service
=============================================

What:  Validates and stores media attached to journals, and resolves stored
       files for download.
How:   Extension allow-list decides both acceptance and the journal's media
       type; content is size-checked and written with aiofiles under a
       date-organized directory with a UUID file name.
Who:   The journal create/update routes (upload) and GET /api/files/{path}.

Directory Structure:
    storage/
    └── 2024/
        └── 01/
            └── 15/
                ├── a1b2c3d4-....png
                └── e5f6a7b8-....mp4

The public URL of a stored file is `{MEDIA_BASE_URL}/{YYYY/MM/DD/uuid.ext}`.
No part of the client's file name besides its extension reaches the disk.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from classjournal.config import settings
from classjournal.exceptions import FileStorageError, NotFoundError, ValidationError
from classjournal.models.journal import MediaType

logger = logging.getLogger(__name__)

EXTENSION_MEDIA_TYPES = {
    ".jpg": MediaType.IMAGE,
    ".jpeg": MediaType.IMAGE,
    ".png": MediaType.IMAGE,
    ".gif": MediaType.IMAGE,
    ".mp4": MediaType.VIDEO,
    ".mov": MediaType.VIDEO,
    ".mp3": MediaType.AUDIO,
    ".wav": MediaType.AUDIO,
    ".pdf": MediaType.PDF,
}


@dataclass(frozen=True)
class StoredMedia:
    """Result of a successful upload."""

    url: str
    media_type: MediaType
    relative_path: str
    absolute_path: str


class MediaService:
    """Upload validation, storage, cleanup and lookup for journal media."""

    def __init__(self, storage_root: Optional[str] = None, base_url: Optional[str] = None):
        """
        Args:
            storage_root: Override the storage directory (used in tests).
            base_url: Override the public URL prefix of stored files.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.base_url = (base_url if base_url is not None else settings.media_base_url).rstrip("/")
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("MediaService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> Tuple[str, MediaType]:
        """Return the normalized extension and the media type it implies."""
        ext = Path(filename or "").suffix.lower()
        media_type = EXTENSION_MEDIA_TYPES.get(ext)
        if media_type is None:
            allowed = ", ".join(sorted(EXTENSION_MEDIA_TYPES))
            raise ValidationError(
                message=f"File type '{ext or filename}' is not supported. Allowed types: {allowed}",
                field="media",
                context={"extension": ext, "allowed": sorted(EXTENSION_MEDIA_TYPES)},
            )
        return ext, media_type

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Check the declared Content-Length first, then the bytes received.

        Raises:
            ValidationError for empty files or files above MAX_FILE_SIZE.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB.",
                field="media",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size == 0:
            raise ValidationError(message="Uploaded file is empty.", field="media")

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"File size ({actual_size / (1024 * 1024):.1f}MB) "
                    f"exceeds maximum of {max_mb:.0f}MB."
                ),
                field="media",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """Return (absolute_path, relative_path) for a new YYYY/MM/DD/<uuid><ext> file."""
        now = datetime.now(timezone.utc)
        relative_path = f"{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    def url_for(self, relative_path: str) -> str:
        return f"{self.base_url}/{relative_path}"

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Write content to a fresh path.

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded media. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a stored file after a failed request.

        Missing files are ignored; other failures are logged and not raised,
        so the original error reaches the client.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> StoredMedia:
        """Extension check, size check, then write. Cheapest checks first."""
        ext, media_type = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        absolute_path, relative_path = await self.store_file(content, ext)
        return StoredMedia(
            url=self.url_for(relative_path),
            media_type=media_type,
            relative_path=relative_path,
            absolute_path=absolute_path,
        )

    def resolve(self, relative_path: str) -> Path:
        """
        Map a URL path back to a stored file.

        Raises:
            NotFoundError for missing files and for paths that escape the
            storage root (`../` segments, absolute paths).
        """
        candidate = (self.storage_root / relative_path).resolve()
        if self.storage_root not in candidate.parents or not candidate.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return candidate


media_service = MediaService()
