"""
Object storage client for uploaded videos and thumbnails.

Supports Cloudflare R2 (S3-compatible) with a local-disk fallback and a
mock mode for local development.

Uploads try R2 first. If R2 is not configured, or an upload to it fails,
the file lands on local disk under `uploads/<folder>/` instead, so an
outage at the storage provider never loses an athlete's recording. The
StoredObject returned says which backend took the file; records keep its
storage path so later reads go back to the same place.
"""

import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)

BACKEND_R2 = "r2"
BACKEND_LOCAL = "local"
BACKEND_MOCK = "mock"


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class FileTooLargeError(StorageError):
    """Raised when a file exceeds the backend's size limit."""
    pass


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    public_url: Optional[str] = None
    region: str = "auto"  # R2 uses 'auto' for region


@dataclass(frozen=True)
class StoredObject:
    """Where an upload ended up."""
    storage_path: str
    url: str
    backend: str
    size_bytes: int
    content_type: str


def build_storage_path(folder: str, filename: str) -> str:
    """
    Unique key for an upload: {folder}/{random hex}{original extension}.

    The original filename is user input, so only its extension survives.
    """
    ext = os.path.splitext(filename or "")[1].lower()
    if not ext or len(ext) > 10 or not ext[1:].isalnum():
        ext = ""
    return f"{folder.strip('/')}/{uuid4().hex}{ext}"


def guess_content_type(storage_path: str, default: str = "application/octet-stream") -> str:
    content_type, _ = mimetypes.guess_type(storage_path)
    return content_type or default


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def upload(
        self,
        data: bytes,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredObject:
        """Store data and describe where it went."""
        ...

    async def download(self, storage_path: str) -> bytes:
        ...

    async def delete(self, storage_path: str) -> bool:
        """Delete an object. Returns False when it did not exist."""
        ...

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate temporary download URL."""
        ...

    def local_path(self, storage_path: str) -> Optional[Path]:
        """Filesystem path when the object is on local disk, else None."""
        ...


class R2StorageClient:
    """
    Cloudflare R2 object storage client.

    Uses boto3 because R2 is S3-compatible. This abstraction means
    we could swap to actual S3, MinIO, or other S3-compatible storage
    with minimal changes.

    All methods are async to match the Protocol even though boto3 is
    synchronous.
    """

    def __init__(self, config: StorageConfig) -> None:
        import boto3
        from botocore.config import Config

        self._config = config

        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    def _url_for(self, storage_path: str) -> str:
        if self._config.public_url:
            return f"{self._config.public_url.rstrip('/')}/{storage_path}"
        return f"s3://{self._config.bucket_name}/{storage_path}"

    async def upload(
        self,
        data: bytes,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredObject:
        storage_path = build_storage_path(folder, filename)

        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket_name,
                Key=storage_path,
                Body=data,
                ContentType=content_type,
                Metadata={'original-filename': filename or ''},
            )
        except Exception as e:
            logger.error(
                "Failed to upload to R2",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")

        logger.info(
            "Uploaded object to R2",
            extra={"storage_path": storage_path, "size_bytes": len(data)}
        )

        return StoredObject(
            storage_path=storage_path,
            url=self._url_for(storage_path),
            backend=BACKEND_R2,
            size_bytes=len(data),
            content_type=content_type,
        )

    async def download(self, storage_path: str) -> bytes:
        try:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=storage_path,
            )
            return response['Body'].read()

        except Exception as e:
            logger.error(
                "Failed to download from R2",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise StorageError(f"Download failed: {e}")

    async def delete(self, storage_path: str) -> bool:
        try:
            self._s3_client.delete_object(
                Bucket=self._config.bucket_name,
                Key=storage_path,
            )
        except Exception as e:
            logger.error(
                "Failed to delete from R2",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")
        return True

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Generate a temporary download URL.

        Presigned URLs let the client stream straight from R2 instead of
        through the API. Default 1-hour expiry covers a viewing session.
        """
        try:
            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self._config.bucket_name,
                    'Key': storage_path,
                },
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    def local_path(self, storage_path: str) -> Optional[Path]:
        return None


# ---------------------------------------------------------------------------
# Local Disk Storage
# ---------------------------------------------------------------------------

class LocalDiskStorageClient:
    """
    Stores files under a directory on the API host.

    Used on its own when R2 is not configured, and as the fallback when
    it is. Files are served back by the API itself (see the stream
    routes), so URLs are relative `/uploads/...` paths.
    """

    def __init__(self, root: str = "uploads", max_size_bytes: Optional[int] = None) -> None:
        self._root = Path(root)
        self._max_size_bytes = max_size_bytes
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Initialized local disk storage",
            extra={"root": str(self._root.resolve()), "max_size_bytes": max_size_bytes}
        )

    def _resolve(self, storage_path: str) -> Path:
        root = self._root.resolve()
        path = (root / storage_path).resolve()
        if root not in path.parents:
            raise StorageError(f"Invalid storage path: {storage_path}")
        return path

    async def upload(
        self,
        data: bytes,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredObject:
        if self._max_size_bytes is not None and len(data) > self._max_size_bytes:
            raise FileTooLargeError(
                f"File exceeds local storage limit of {self._max_size_bytes // (1024 * 1024)}MB"
            )

        storage_path = build_storage_path(folder, filename)
        path = self._resolve(storage_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(
                "Failed to write file to local storage",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise StorageError(f"Local write failed: {e}")

        logger.info(
            "Stored object on local disk",
            extra={"storage_path": storage_path, "size_bytes": len(data)}
        )

        return StoredObject(
            storage_path=storage_path,
            url=f"/uploads/{storage_path}",
            backend=BACKEND_LOCAL,
            size_bytes=len(data),
            content_type=content_type,
        )

    async def download(self, storage_path: str) -> bytes:
        path = self._resolve(storage_path)
        if not path.is_file():
            raise StorageError(f"File not found: {storage_path}")
        return path.read_bytes()

    async def delete(self, storage_path: str) -> bool:
        path = self._resolve(storage_path)
        if not path.is_file():
            return False
        path.unlink()
        logger.info("Deleted local file", extra={"storage_path": storage_path})
        return True

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        if not self._resolve(storage_path).is_file():
            raise StorageError(f"File not found: {storage_path}")
        return f"/uploads/{storage_path}"

    def local_path(self, storage_path: str) -> Optional[Path]:
        try:
            path = self._resolve(storage_path)
        except StorageError:
            return None
        return path if path.is_file() else None


# ---------------------------------------------------------------------------
# Fallback Composite
# ---------------------------------------------------------------------------

class FallbackStorageClient:
    """
    Primary storage with a fallback for uploads that fail.

    Reads and deletes look wherever the object actually is: local disk
    first (cheap to check), then the primary.
    """

    def __init__(self, primary: StorageClient, fallback: StorageClient) -> None:
        self._primary = primary
        self._fallback = fallback

    async def upload(
        self,
        data: bytes,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredObject:
        try:
            return await self._primary.upload(data, folder, filename, content_type)
        except StorageError as e:
            logger.warning(
                "Primary storage upload failed, using fallback",
                extra={"folder": folder, "error": str(e)}
            )
            return await self._fallback.upload(data, folder, filename, content_type)

    async def download(self, storage_path: str) -> bytes:
        if self._fallback.local_path(storage_path) is not None:
            return await self._fallback.download(storage_path)
        return await self._primary.download(storage_path)

    async def delete(self, storage_path: str) -> bool:
        if self._fallback.local_path(storage_path) is not None:
            return await self._fallback.delete(storage_path)
        return await self._primary.delete(storage_path)

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        if self._fallback.local_path(storage_path) is not None:
            return await self._fallback.get_presigned_url(storage_path, expiry_seconds)
        return await self._primary.get_presigned_url(storage_path, expiry_seconds)

    def local_path(self, storage_path: str) -> Optional[Path]:
        return self._fallback.local_path(storage_path)


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. Objects live in a dictionary and "URLs" are
    mock URIs.

    Set `fail_uploads` to simulate a provider outage.
    """

    def __init__(self, fail_uploads: bool = False) -> None:
        self._objects: dict[str, bytes] = {}
        self.fail_uploads = fail_uploads
        logger.info("Initialized mock storage client (in-memory)")

    async def upload(
        self,
        data: bytes,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredObject:
        if self.fail_uploads:
            raise StorageError("Mock storage is configured to fail uploads")

        storage_path = build_storage_path(folder, filename)
        self._objects[storage_path] = data

        logger.debug(
            "Stored object in mock storage",
            extra={"storage_path": storage_path, "size_bytes": len(data)}
        )

        return StoredObject(
            storage_path=storage_path,
            url=f"mock://storage/{storage_path}",
            backend=BACKEND_MOCK,
            size_bytes=len(data),
            content_type=content_type,
        )

    async def download(self, storage_path: str) -> bytes:
        if storage_path not in self._objects:
            raise StorageError(f"Object not found: {storage_path}")
        return self._objects[storage_path]

    async def delete(self, storage_path: str) -> bool:
        return self._objects.pop(storage_path, None) is not None

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        if storage_path not in self._objects:
            raise StorageError(f"Object not found: {storage_path}")
        return f"mock://storage/{storage_path}"

    def local_path(self, storage_path: str) -> Optional[Path]:
        return None

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        self._objects.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
    local_root: str = "uploads",
    local_max_size_bytes: Optional[int] = None,
) -> StorageClient:
    """
    Create storage client based on configuration.

    - mock_mode: in-memory mock
    - R2 config present: R2 with local disk as fallback
    - otherwise: local disk only

    Args:
        config: R2 configuration, or None when R2 is not configured
        mock_mode: If True, return mock client for testing
        local_root: Directory for local storage
        local_max_size_bytes: Upload size limit for local storage
    """
    if mock_mode:
        return MockStorageClient()

    local = LocalDiskStorageClient(local_root, local_max_size_bytes)
    if config is None:
        logger.info("R2 not configured, storing uploads on local disk")
        return local

    return FallbackStorageClient(primary=R2StorageClient(config), fallback=local)
