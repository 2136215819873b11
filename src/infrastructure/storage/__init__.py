"""
Object storage for uploaded videos and thumbnails.

Supports R2 (Cloudflare) and S3 (AWS) via S3-compatible API, with local
disk as fallback. Includes mock mode for local development without
credentials.
"""

from .client import (
    FallbackStorageClient,
    FileTooLargeError,
    LocalDiskStorageClient,
    MockStorageClient,
    R2StorageClient,
    StorageClient,
    StorageConfig,
    StorageError,
    StoredObject,
    create_storage_client,
)

__all__ = [
    "FallbackStorageClient",
    "FileTooLargeError",
    "LocalDiskStorageClient",
    "MockStorageClient",
    "R2StorageClient",
    "StorageClient",
    "StorageConfig",
    "StorageError",
    "StoredObject",
    "create_storage_client",
]
