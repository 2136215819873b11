"""
Video upload, discovery, and review endpoints.

Upload flow:
1. Validate type and size
2. Store the file (R2, falling back to local disk)
3. Probe duration and grab a thumbnail (best effort)
4. Save the record; assignment and practice videos skip moderation

Coaches find athletes through /nearby, which applies per-role visibility
on top of the distance search.
"""

import logging
from dataclasses import asdict
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ...core.accounts.models import Account, Role
from ...core.media.models import (
    MAX_COMMENT_LENGTH,
    AssessmentType,
    GeoPoint,
    ModerationStatus,
    SkillLevel,
    VerificationError,
    Video,
    VideoCategory,
    VideoType,
    VideoVerificationStatus,
    Visibility,
    initial_status,
    parse_tags,
)
from ...core.media.scoring import analyze
from ...core.media.visibility import default_radius_km, policy_for
from ...infrastructure.snowflake.repositories import VideoRepository
from ...infrastructure.storage.client import FileTooLargeError, StorageError
from ...infrastructure.video.processor import describe_upload
from ..dependencies import (
    CoachAccount,
    CurrentAccount,
    OfficialAccount,
    SettingsDep,
    StorageClientDep,
    VideoProcessorDep,
    VideoRepositoryDep,
)
from ..media import delete_stored_media, serve_stored_media

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class AnalyzeVideoRequest(BaseModel):
    video_url: str = Field(min_length=1, description="URL of an uploaded video")
    test_type: AssessmentType = Field(description="Which standard test the video shows")


class CommentRequest(BaseModel):
    text: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)


class VerifyVideoRequest(BaseModel):
    status: VideoVerificationStatus
    notes: Optional[str] = Field(None, max_length=1000)


class ModerateVideoRequest(BaseModel):
    status: ModerationStatus
    notes: Optional[str] = Field(None, max_length=1000)


class LikeResponse(BaseModel):
    liked: bool
    like_count: int


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def video_payload(video: Video) -> dict[str, Any]:
    data = asdict(video)
    data["like_count"] = video.like_count
    data["comment_count"] = video.comment_count
    return data


def parse_location(latitude: Optional[float], longitude: Optional[float]) -> GeoPoint:
    """Coordinates from query or form input, or a 400."""
    if latitude is None or longitude is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Latitude and longitude are required",
        )
    try:
        return GeoPoint(latitude=latitude, longitude=longitude)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Coordinates out of valid range",
        )


def _get_video(videos: VideoRepository, video_id: UUID) -> Video:
    video = videos.find(video_id)
    if video is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    return video


def _can_delete(account: Account, video: Video) -> bool:
    return video.uploaded_by == account.id or account.role == Role.OFFICIAL


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    status_code=status.HTTP_201_CREATED,
    summary="Upload a video",
)
async def upload_video(
    video: Annotated[UploadFile, File(description="Video file (MP4, WebM, MOV, AVI, MKV)")],
    title: Annotated[str, Form(max_length=200)],
    sport: Annotated[str, Form()],
    latitude: Annotated[float, Form()],
    longitude: Annotated[float, Form()],
    city: Annotated[str, Form()],
    state: Annotated[str, Form()],
    account: CurrentAccount,
    videos: VideoRepositoryDep,
    storage: StorageClientDep,
    processor: VideoProcessorDep,
    settings: SettingsDep,
    description: Annotated[str, Form(max_length=1000)] = "",
    category: Annotated[VideoCategory, Form()] = VideoCategory.TRAINING,
    video_type: Annotated[VideoType, Form()] = VideoType.REGULAR_UPLOAD,
    skill_level: Annotated[SkillLevel, Form()] = SkillLevel.BEGINNER,
    visibility: Annotated[Visibility, Form()] = Visibility.COACHES_ONLY,
    share_radius_km: Annotated[int, Form()] = 50,
    tags: Annotated[Optional[str], Form()] = None,
    address: Annotated[Optional[str], Form()] = None,
) -> dict[str, Any]:
    """
    Upload a video with its location.

    Max file size: configured in settings (default 500MB)
    Duration and thumbnail are filled in when FFmpeg can read the file.
    """
    content_type = (video.content_type or "").lower()
    if content_type not in settings.allowed_video_types_list:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type: {video.content_type}. Only video files are allowed.",
        )

    location = parse_location(latitude, longitude)

    # Validate the record before anything is written to storage
    try:
        record = Video(
            title=title,
            uploaded_by=account.id,
            uploader_role=account.role.value,
            location=location,
            sport=sport,
            city=city,
            state=state,
            description=description,
            category=category,
            video_type=video_type,
            skill_level=skill_level,
            visibility=visibility,
            share_radius_km=share_radius_km,
            tags=parse_tags(tags),
            address=address,
            mime_type=content_type,
            status=initial_status(video_type),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    data = await video.read()

    max_size_bytes = settings.max_video_size_mb * 1024 * 1024
    if len(data) > max_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Video too large. Maximum size: {settings.max_video_size_mb}MB",
        )

    try:
        stored = await storage.upload(data, "videos", video.filename or "video.mp4", content_type)
    except FileTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    except StorageError as e:
        logger.error("Failed to store video", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store video",
        )

    record.video_url = stored.url
    record.storage_path = stored.storage_path
    record.file_size_bytes = stored.size_bytes

    media = await describe_upload(processor, data)
    record.duration_seconds = media.duration_seconds
    if media.thumbnail:
        try:
            thumb = await storage.upload(media.thumbnail, "thumbnails", "thumbnail.jpg", "image/jpeg")
            record.thumbnail_url = thumb.url
            record.thumbnail_path = thumb.storage_path
        except StorageError as e:
            logger.warning("Failed to store thumbnail", extra={"error": str(e)})

    videos.save(record)

    logger.info(
        "Video uploaded",
        extra={
            "video_id": str(record.id),
            "uploaded_by": str(account.id),
            "backend": stored.backend,
            "size_bytes": stored.size_bytes,
            "status": record.status.value,
        }
    )

    return {"message": "Video uploaded successfully", "video": video_payload(record)}


@router.post(
    "/analyze",
    summary="Reference analysis of a test video",
)
async def analyze_video(
    request: AnalyzeVideoRequest,
    account: CurrentAccount,
) -> dict[str, Any]:
    """Same video and test type always give the same analysis."""
    analysis = analyze(request.test_type, request.video_url)
    return {
        "test_type": request.test_type,
        "analysis": analysis.to_dict(),
    }


@router.get(
    "/nearby",
    summary="Videos near a location",
)
async def nearby_videos(
    account: CurrentAccount,
    videos: VideoRepositoryDep,
    latitude: Optional[float] = Query(None),
    longitude: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, gt=0, le=500, description="Kilometres"),
    sport: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
) -> dict[str, Any]:
    center = parse_location(latitude, longitude)
    radius_km = radius or default_radius_km(account.role)

    found = videos.nearby(
        center,
        radius_km,
        policy_for(account.role, account.id),
        sport=sport,
        category=category,
    )

    return {
        "count": len(found),
        "videos": [video_payload(v) for v in found],
        "search_params": {
            "latitude": center.latitude,
            "longitude": center.longitude,
            "radius_km": radius_km,
            "sport": sport,
            "category": category,
        },
    }


@router.get(
    "/my-videos",
    summary="My uploads",
)
async def my_videos(
    account: CurrentAccount,
    videos: VideoRepositoryDep,
) -> dict[str, Any]:
    mine = videos.list_by_uploader(account.id)
    return {"count": len(mine), "videos": [video_payload(v) for v in mine]}


@router.get(
    "/{video_id}",
    summary="Get a video",
)
async def get_video(
    video_id: UUID,
    account: CurrentAccount,
    videos: VideoRepositoryDep,
) -> dict[str, Any]:
    return {"video": video_payload(_get_video(videos, video_id))}


@router.get(
    "/{video_id}/stream",
    summary="Stream a video",
    description="Public so that <video> tags can load it without a token.",
)
async def stream_video(
    video_id: UUID,
    videos: VideoRepositoryDep,
    storage: StorageClientDep,
) -> Response:
    video = _get_video(videos, video_id)
    if not video.storage_path:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video file not found on server",
        )

    response = await serve_stored_media(storage, video.storage_path, video.mime_type)

    # Only views of media that could be served are counted
    video.record_view()
    videos.save(video)
    return response


@router.get(
    "/{video_id}/thumbnail",
    summary="Video thumbnail",
)
async def video_thumbnail(
    video_id: UUID,
    videos: VideoRepositoryDep,
    storage: StorageClientDep,
) -> Response:
    video = _get_video(videos, video_id)
    if not video.thumbnail_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thumbnail not found")

    return await serve_stored_media(
        storage, video.thumbnail_path, "image/jpeg", missing_detail="Thumbnail not found"
    )


@router.delete(
    "/{video_id}",
    summary="Delete a video",
)
async def delete_video(
    video_id: UUID,
    account: CurrentAccount,
    videos: VideoRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, str]:
    video = _get_video(videos, video_id)
    if not _can_delete(account, video):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this video",
        )

    await delete_stored_media(storage, video.storage_path, video.thumbnail_path)
    videos.delete(video.id)

    logger.info(
        "Video deleted",
        extra={"video_id": str(video.id), "by": str(account.id)}
    )

    return {"message": "Video deleted successfully"}


@router.post(
    "/{video_id}/like",
    response_model=LikeResponse,
    summary="Like or unlike a video",
)
async def like_video(
    video_id: UUID,
    account: CurrentAccount,
    videos: VideoRepositoryDep,
) -> LikeResponse:
    video = _get_video(videos, video_id)
    liked, count = video.toggle_like(account.id)
    videos.save(video)
    return LikeResponse(liked=liked, like_count=count)


@router.post(
    "/{video_id}/comment",
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a video",
)
async def comment_on_video(
    video_id: UUID,
    request: CommentRequest,
    account: CurrentAccount,
    videos: VideoRepositoryDep,
) -> dict[str, Any]:
    video = _get_video(videos, video_id)
    try:
        comment = video.add_comment(account.id, request.text)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    videos.save(video)
    return {
        "message": "Comment added successfully",
        "comment": asdict(comment),
        "comment_count": video.comment_count,
    }


@router.put(
    "/{video_id}/verify",
    summary="Verify an assignment submission (coaches)",
)
async def verify_video(
    video_id: UUID,
    request: VerifyVideoRequest,
    coach: CoachAccount,
    videos: VideoRepositoryDep,
) -> dict[str, Any]:
    video = _get_video(videos, video_id)
    try:
        video.verify(coach.id, request.status, request.notes)
    except VerificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    videos.save(video)
    logger.info(
        "Video verified",
        extra={"video_id": str(video.id), "status": request.status.value, "by": str(coach.id)}
    )
    return {"message": "Video verification updated", "video": video_payload(video)}


@router.put(
    "/{video_id}/moderate",
    summary="Moderate a video (officials)",
)
async def moderate_video(
    video_id: UUID,
    request: ModerateVideoRequest,
    official: OfficialAccount,
    videos: VideoRepositoryDep,
) -> dict[str, Any]:
    video = _get_video(videos, video_id)
    try:
        video.moderate(official.id, request.status, request.notes)
    except VerificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    videos.save(video)
    logger.info(
        "Video moderated",
        extra={"video_id": str(video.id), "status": request.status.value, "by": str(official.id)}
    )
    return {"message": "Video moderation updated", "video": video_payload(video)}
