"""Re-hosting of AniList cover and avatar images on S3."""

from __future__ import annotations

import enum
import logging
from typing import Any, Protocol

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings
from ..utils import file_extension, image_storage_key, naive_content_type

logger = logging.getLogger(__name__)


class ImageSubject(str, enum.Enum):
    """What an image depicts; used as the storage key prefix."""

    ANIME = "anime"
    USER = "user"


class ImageMaterializationError(RuntimeError):
    """Raised when an image cannot be downloaded or uploaded."""


class BlobStore(Protocol):
    async def put_object(self, key: str, body: bytes, content_type: str) -> None:
        ...


class S3BlobStore:
    """Publishes objects to an S3 (or S3-compatible) bucket with public-read access.

    ``client`` is an aioboto3 S3 client whose context is owned by the caller.
    """

    def __init__(self, client: Any, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    async def put_object(self, key: str, body: bytes, content_type: str) -> None:
        await self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ACL="public-read",
        )


class ImageMaterializer:
    """Downloads remote images and republishes them under deterministic keys."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        blob_store: BlobStore,
    ) -> None:
        self._client = http_client
        self._store = blob_store
        self._base_url = settings.storage_base_url

    def storage_key(self, subject: ImageSubject, subject_id: int, source_url: str) -> str:
        return image_storage_key(subject.value, subject_id, file_extension(source_url))

    def storage_url(self, subject: ImageSubject, subject_id: int, source_url: str) -> str:
        """Return the public URL the image will be served from once materialized."""

        return f"{self._base_url}/{self.storage_key(subject, subject_id, source_url)}"

    async def materialize(
        self, subject: ImageSubject, subject_id: int, source_url: str
    ) -> str:
        """Download ``source_url`` and upload it, returning the stored URL."""

        extension = file_extension(source_url)
        key = image_storage_key(subject.value, subject_id, extension)

        try:
            response = await self._client.get(source_url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageMaterializationError(
                f"error downloading {source_url} for {key}: {exc}"
            ) from exc

        try:
            await self._store.put_object(key, response.content, naive_content_type(extension))
        except (BotoCoreError, ClientError) as exc:
            raise ImageMaterializationError(f"error uploading {key}: {exc}") from exc

        logger.debug("Uploaded %s (%s bytes)", key, len(response.content))
        return f"{self._base_url}/{key}"
