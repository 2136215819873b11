"""
Serving stored media back to clients.

A file may be on local disk (local storage, or the fallback after an R2
failure), behind a public or presigned URL, or only reachable through the
storage client (mock mode). Routes don't need to know which.
"""

import logging

from fastapi import HTTPException, status
from fastapi.responses import FileResponse, RedirectResponse, Response

from ..infrastructure.storage.client import StorageClient, StorageError

logger = logging.getLogger(__name__)


async def serve_stored_media(
    storage: StorageClient,
    storage_path: str,
    media_type: str,
    missing_detail: str = "Video file not found on server",
) -> Response:
    """Local file, redirect to remote URL, or the bytes themselves."""
    local = storage.local_path(storage_path)
    if local is not None:
        return FileResponse(local, media_type=media_type)

    try:
        url = await storage.get_presigned_url(storage_path)
        if url.startswith("http"):
            return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
        data = await storage.download(storage_path)
    except StorageError as e:
        logger.warning(
            "Stored media unavailable",
            extra={"storage_path": storage_path, "error": str(e)}
        )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=missing_detail)

    return Response(content=data, media_type=media_type)


async def delete_stored_media(storage: StorageClient, *storage_paths: str) -> None:
    """Best-effort removal; a record is still deleted when its file is already gone."""
    for path in storage_paths:
        if not path:
            continue
        try:
            await storage.delete(path)
        except StorageError as e:
            logger.warning(
                "Could not delete stored media",
                extra={"storage_path": path, "error": str(e)}
            )
