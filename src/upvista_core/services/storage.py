"""Media uploads to the object store.

Uploads are checked against the MIME allow-list and the size limit before any
bytes leave the process. Objects live under ``{bucket}/{user_id}/{uuid}{ext}``
and are served from the public object URL.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import uuid
from dataclasses import dataclass

import httpx

from upvista_core.core.errors import StoreUnavailableError, ValidationFailedError
from upvista_core.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Immutable configuration for the object store."""

    base_url: str
    service_key: str
    bucket: str
    max_file_size: int
    allowed_types: tuple[str, ...]
    timeout_seconds: float


def load_storage_config() -> StorageConfig:
    """Build configuration object from global settings."""

    return StorageConfig(
        base_url=settings.storage_base_url,
        service_key=settings.supabase_service_role_key,
        bucket=settings.storage_bucket,
        max_file_size=settings.storage_max_file_size,
        allowed_types=tuple(settings.storage_allowed_types),
        timeout_seconds=float(settings.store_timeout_seconds),
    )


class MediaStorage:
    """Client for ``/storage/v1/object`` uploads and deletes."""

    def __init__(
        self,
        config: StorageConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_storage_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers={
                        "apikey": self.config.service_key,
                        "Authorization": f"Bearer {self.config.service_key}",
                    },
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def validate(self, content_type: str, size: int) -> None:
        """Reject files with a disallowed type or over the size limit.

        Raises:
            ValidationFailedError: If the file cannot be stored
        """
        if content_type not in self.config.allowed_types:
            raise ValidationFailedError(f"File type {content_type} is not allowed")
        if size <= 0:
            raise ValidationFailedError("File is empty")
        if size > self.config.max_file_size:
            raise ValidationFailedError(
                f"File exceeds the {self.config.max_file_size} byte limit"
            )

    def object_path(self, user_id: str, filename: str | None, content_type: str) -> str:
        if filename and "." in filename:
            extension = "." + filename.rsplit(".", 1)[1].lower()
        else:
            extension = mimetypes.guess_extension(content_type) or ""
        return f"{user_id}/{uuid.uuid4()}{extension}"

    def public_url(self, path: str) -> str:
        return f"{self.config.base_url}/object/public/{self.config.bucket}/{path}"

    async def upload(
        self, user_id: str, filename: str | None, content_type: str, data: bytes
    ) -> str:
        """Store ``data`` and return its public URL."""
        self.validate(content_type, len(data))
        path = self.object_path(user_id, filename, content_type)
        client = await self._ensure_client()
        try:
            response = await client.post(
                f"/object/{self.config.bucket}/{path}",
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"Upload failed: {exc}") from exc
        if not response.is_success:
            raise StoreUnavailableError(f"Object store responded with {response.status_code}")

        logger.info("Uploaded %s (%d bytes) for user %s", path, len(data), user_id)
        return self.public_url(path)

    async def delete(self, path: str) -> None:
        client = await self._ensure_client()
        try:
            response = await client.delete(f"/object/{self.config.bucket}/{path}")
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"Delete failed: {exc}") from exc
        if not response.is_success:
            raise StoreUnavailableError(f"Object store responded with {response.status_code}")
