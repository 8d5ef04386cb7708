"""
Blob storage for serialized feed documents.

Provides:
    - ArtifactStore: abstract put / delete / public_url interface
    - R2ArtifactStore: Cloudflare R2 through the S3-compatible boto3 client
    - InMemoryArtifactStore: dict-backed store for tests and previews
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from feedgen.config.settings import Settings
from feedgen.utils.errors import ArtifactDeleteError, ArtifactWriteError, ValidationError
from feedgen.utils.logger import get_logger

logger = get_logger(__name__)

XML_CONTENT_TYPE = "application/xml"
DEFAULT_CACHE_CONTROL = "max-age=3600"
MISSING_OBJECT_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


# =============================================================================
# Abstract Interface
# =============================================================================

class ArtifactStore(ABC):
    """Abstract interface for feed blob storage."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str = XML_CONTENT_TYPE) -> int:
        """
        Write (or overwrite) a blob.

        Returns:
            Number of bytes written.

        Raises:
            ArtifactWriteError: The write failed.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Remove a blob. Removing a blob that does not exist succeeds.

        Raises:
            ArtifactDeleteError: The removal failed for another reason.
        """
        pass

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public URL a platform fetches the feed from."""
        pass

    async def close(self) -> None:
        """Release client resources."""
        return None


# =============================================================================
# Cloudflare R2
# =============================================================================

class R2ArtifactStore(ArtifactStore):
    """
    Cloudflare R2 artifact store.

    boto3 is synchronous; every client call runs in a worker thread so the
    event loop stays free during uploads.

    Example:
        >>> store = R2ArtifactStore.from_settings(get_settings())
        >>> size = await store.put("b1_1700000000000.xml", b"<rss/>")
    """

    def __init__(
        self,
        bucket: str,
        client: Any,
        public_domain: Optional[str] = None,
        cache_control: str = DEFAULT_CACHE_CONTROL,
    ):
        self.bucket = bucket
        self.client = client
        self.public_domain = public_domain
        self.cache_control = cache_control

    @classmethod
    def from_settings(cls, settings: Settings) -> "R2ArtifactStore":
        """
        Build the store and its S3 client from settings.

        Raises:
            ValidationError: Storage credentials are incomplete.
        """
        if not settings.storage_configured():
            raise ValidationError(
                "R2 storage is not configured: set R2_ACCOUNT_ID (or R2_ENDPOINT_URL), "
                "R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY and R2_BUCKET_NAME",
                code="STORAGE_NOT_CONFIGURED",
            )

        client = boto3.client(
            "s3",
            endpoint_url=settings.r2_endpoint(),
            aws_access_key_id=settings.r2_access_key_id.get_secret_value(),
            aws_secret_access_key=settings.r2_secret_access_key.get_secret_value(),
            region_name="auto",
            config=Config(signature_version="s3v4"),
        )
        return cls(
            bucket=settings.r2_bucket_name,
            client=client,
            public_domain=settings.r2_public_domain,
            cache_control=settings.feed_cache_control,
        )

    async def put(self, key: str, data: bytes, content_type: str = XML_CONTENT_TYPE) -> int:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=self.cache_control,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Feed upload failed", bucket=self.bucket, key=key, error=str(e))
            raise ArtifactWriteError(
                f"Failed to upload '{key}' to bucket '{self.bucket}': {e}",
                details={"bucket": self.bucket, "key": key},
            ) from e

        logger.info("Feed uploaded", bucket=self.bucket, key=key, size=len(data))
        return len(data)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in MISSING_OBJECT_CODES:
                logger.info("Feed blob already absent", bucket=self.bucket, key=key)
                return
            raise ArtifactDeleteError(
                f"Failed to delete '{key}' from bucket '{self.bucket}': {e}",
                details={"bucket": self.bucket, "key": key, "code": _error_code(e)},
            ) from e
        except BotoCoreError as e:
            raise ArtifactDeleteError(
                f"Failed to delete '{key}' from bucket '{self.bucket}': {e}",
                details={"bucket": self.bucket, "key": key},
            ) from e

        logger.info("Feed blob deleted", bucket=self.bucket, key=key)

    def public_url(self, key: str) -> str:
        if self.public_domain:
            return f"https://{self.public_domain}/{key}"
        return f"https://{self.bucket}.r2.cloudflarestorage.com/{key}"

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            await asyncio.to_thread(close)


# =============================================================================
# In-Memory
# =============================================================================

class InMemoryArtifactStore(ArtifactStore):
    """In-memory artifact store for testing and local previews."""

    def __init__(self, public_domain: str = "feeds.local"):
        self.public_domain = public_domain
        self.blobs: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}

    async def put(self, key: str, data: bytes, content_type: str = XML_CONTENT_TYPE) -> int:
        self.blobs[key] = bytes(data)
        self.content_types[key] = content_type
        return len(data)

    async def delete(self, key: str) -> None:
        self.blobs.pop(key, None)
        self.content_types.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"https://{self.public_domain}/{key}"
