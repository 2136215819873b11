"""
Fitness assessment endpoints.

Athletes submit a standard test (most need a video), the reference
analyzer scores it, and coaches review, comment and verify. Coaches find
assessments near them the same way they find videos.
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ...core.accounts.models import AccessLevel, Account, Official
from ...core.media.models import (
    MAX_COMMENT_LENGTH,
    Assessment,
    AssessmentCommentType,
    AssessmentType,
    AssessmentVerificationStatus,
    LocationMetadata,
    VerificationError,
)
from ...core.media.scoring import analyze, normalized_score, percentile
from ...core.media.visibility import DEFAULT_ASSESSMENT_RADIUS_KM, DEFAULT_ASSESSMENT_RESULTS
from ...infrastructure.snowflake.repositories import AssessmentRepository
from ...infrastructure.storage.client import FileTooLargeError, StorageError
from ...infrastructure.video.processor import describe_upload
from ..dependencies import (
    AssessmentRepositoryDep,
    AthleteAccount,
    CoachAccount,
    CurrentAccount,
    SettingsDep,
    StorageClientDep,
    VideoProcessorDep,
)
from ..media import delete_stored_media, serve_stored_media
from .videos import LikeResponse, parse_location

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class AnalyzeAssessmentRequest(BaseModel):
    video_url: str = Field(min_length=1)
    assessment_type: AssessmentType
    assessment_id: Optional[UUID] = Field(
        None,
        description="Save the result on this assessment (must be your own)"
    )


class AssessmentCommentRequest(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)
    type: AssessmentCommentType = AssessmentCommentType.FEEDBACK


class VerifyAssessmentRequest(BaseModel):
    status: AssessmentVerificationStatus
    notes: Optional[str] = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def assessment_payload(assessment: Assessment) -> dict[str, Any]:
    data = asdict(assessment)
    data["display_name"] = assessment.display_name
    data["like_count"] = assessment.like_count
    data["comment_count"] = assessment.comment_count
    return data


def _parse_json_field(name: str, raw: Optional[str]) -> dict[str, Any]:
    """Optional JSON object sent as a form string. Malformed input is dropped."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring malformed JSON form field", extra={"field": name, "error": str(e)})
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring non-object JSON form field", extra={"field": name})
        return {}
    return value


def _get_assessment(assessments: AssessmentRepository, assessment_id: UUID) -> Assessment:
    assessment = assessments.find(assessment_id)
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")
    return assessment


def _can_delete(account: Account, assessment: Assessment) -> bool:
    if assessment.athlete_id == account.id:
        return True
    return isinstance(account, Official) and account.access_level == AccessLevel.ADMIN


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    status_code=status.HTTP_201_CREATED,
    summary="Submit an assessment",
)
async def upload_assessment(
    assessment_type: Annotated[AssessmentType, Form()],
    latitude: Annotated[float, Form()],
    longitude: Annotated[float, Form()],
    athlete: AthleteAccount,
    assessments: AssessmentRepositoryDep,
    storage: StorageClientDep,
    processor: VideoProcessorDep,
    settings: SettingsDep,
    video: Annotated[Optional[UploadFile], File()] = None,
    test_date: Annotated[Optional[datetime], Form()] = None,
    accuracy: Annotated[Optional[float], Form()] = None,
    sport: Annotated[Optional[str], Form()] = None,
    category: Annotated[Optional[str], Form()] = None,
    attempt_number: Annotated[int, Form(ge=1)] = 1,
    raw_data: Annotated[Optional[str], Form()] = None,
    test_conditions: Annotated[Optional[str], Form()] = None,
) -> dict[str, Any]:
    location = parse_location(latitude, longitude)

    if assessment_type.requires_video and video is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A video is required for {assessment_type.display_name}",
        )

    video_fields: dict[str, Any] = {}
    if video is not None:
        content_type = (video.content_type or "").lower()
        if content_type not in settings.allowed_video_types_list:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid file type: {video.content_type}. Only video files are allowed.",
            )

        data = await video.read()
        if len(data) > settings.max_video_size_mb * 1024 * 1024:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Video too large. Maximum size: {settings.max_video_size_mb}MB",
            )

        try:
            stored = await storage.upload(
                data, "assessments", video.filename or "assessment.mp4", content_type
            )
        except FileTooLargeError as e:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
        except StorageError as e:
            logger.error("Failed to store assessment video", extra={"error": str(e)})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to store video",
            )

        video_fields = {
            "video_url": stored.url,
            "storage_path": stored.storage_path,
            "mime_type": content_type,
        }

        media = await describe_upload(processor, data)
        video_fields["video_duration"] = media.duration_seconds
        if media.thumbnail:
            try:
                thumb = await storage.upload(
                    media.thumbnail, "thumbnails", "thumbnail.jpg", "image/jpeg"
                )
                video_fields["thumbnail_url"] = thumb.url
                video_fields["thumbnail_path"] = thumb.storage_path
            except StorageError as e:
                logger.warning("Failed to store thumbnail", extra={"error": str(e)})

    optional = {}
    if test_date is not None:
        # Stored timestamps are UTC-aware; a bare date-time from a form is taken as UTC
        if test_date.tzinfo is None:
            test_date = test_date.replace(tzinfo=timezone.utc)
        optional["test_date"] = test_date
    try:
        assessment = Assessment(
            athlete_id=athlete.id,
            assessment_type=assessment_type,
            location=location,
            location_metadata=LocationMetadata(accuracy=accuracy),
            sport=sport or getattr(athlete, "sport", None),
            category=category,
            attempt_number=attempt_number,
            raw_data=_parse_json_field("raw_data", raw_data),
            test_conditions=_parse_json_field("test_conditions", test_conditions),
            **video_fields,
            **optional,
        )
    except ValueError as e:
        await delete_stored_media(
            storage, video_fields.get("storage_path"), video_fields.get("thumbnail_path")
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    assessments.save(assessment)

    logger.info(
        "Assessment submitted",
        extra={
            "assessment_id": str(assessment.id),
            "athlete_id": str(athlete.id),
            "assessment_type": assessment_type.value,
            "has_video": bool(assessment.video_url),
        }
    )

    return {
        "message": "Assessment uploaded successfully",
        "assessment": assessment_payload(assessment),
    }


@router.post(
    "/analyze",
    summary="Score an assessment video",
)
async def analyze_assessment(
    request: AnalyzeAssessmentRequest,
    account: CurrentAccount,
    assessments: AssessmentRepositoryDep,
) -> dict[str, Any]:
    """
    Run the reference analyzer.

    Results are deterministic for an assessment id (or, without one, the
    video URL), so re-running the analysis never changes a saved score.
    """
    seed = str(request.assessment_id) if request.assessment_id else request.video_url
    analysis = analyze(request.assessment_type, seed)
    score = normalized_score(request.assessment_type, analysis)
    pct = percentile(seed)

    saved = False
    if request.assessment_id:
        assessment = assessments.find(request.assessment_id)
        if assessment is not None and assessment.athlete_id == account.id:
            assessment.record_analysis(analysis.to_dict(), score, pct)
            assessments.save(assessment)
            saved = True

    return {
        "analysis": analysis.to_dict(),
        "normalized_score": score,
        "percentile": pct,
        "saved": saved,
    }


@router.get(
    "/nearby",
    summary="Assessments near a location",
)
async def nearby_assessments(
    account: CurrentAccount,
    assessments: AssessmentRepositoryDep,
    latitude: Optional[float] = Query(None),
    longitude: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, gt=0, le=500, description="Kilometres"),
    sport: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    max_results: int = Query(DEFAULT_ASSESSMENT_RESULTS, ge=1, le=100),
) -> dict[str, Any]:
    center = parse_location(latitude, longitude)
    radius_km = radius or DEFAULT_ASSESSMENT_RADIUS_KM

    found = assessments.nearby(
        center,
        radius_km,
        sport=sport,
        category=category,
        max_results=max_results,
    )

    return {
        "count": len(found),
        "assessments": [assessment_payload(a) for a in found],
        "search_params": {
            "latitude": center.latitude,
            "longitude": center.longitude,
            "radius_km": radius_km,
            "sport": sport,
            "category": category,
            "max_results": max_results,
        },
    }


@router.get(
    "/my-assessments",
    summary="My assessments",
)
async def my_assessments(
    account: CurrentAccount,
    assessments: AssessmentRepositoryDep,
) -> dict[str, Any]:
    mine = assessments.list_for_athlete(account.id)
    return {"count": len(mine), "assessments": [assessment_payload(a) for a in mine]}


@router.get(
    "/{assessment_id}",
    summary="Get an assessment",
)
async def get_assessment(
    assessment_id: UUID,
    account: CurrentAccount,
    assessments: AssessmentRepositoryDep,
) -> dict[str, Any]:
    return {"assessment": assessment_payload(_get_assessment(assessments, assessment_id))}


@router.get(
    "/{assessment_id}/stream",
    summary="Stream an assessment video",
)
async def stream_assessment(
    assessment_id: UUID,
    assessments: AssessmentRepositoryDep,
    storage: StorageClientDep,
) -> Response:
    assessment = _get_assessment(assessments, assessment_id)
    if not assessment.storage_path:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video file not found on server",
        )

    response = await serve_stored_media(
        storage, assessment.storage_path, assessment.mime_type or "video/mp4"
    )

    assessment.record_view()
    assessments.save(assessment)
    return response


@router.delete(
    "/{assessment_id}",
    summary="Delete an assessment",
)
async def delete_assessment(
    assessment_id: UUID,
    account: CurrentAccount,
    assessments: AssessmentRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, str]:
    assessment = _get_assessment(assessments, assessment_id)
    if not _can_delete(account, assessment):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this assessment",
        )

    await delete_stored_media(storage, assessment.storage_path, assessment.thumbnail_path)
    assessments.delete(assessment.id)

    logger.info(
        "Assessment deleted",
        extra={"assessment_id": str(assessment.id), "by": str(account.id)}
    )

    return {"message": "Assessment deleted successfully"}


@router.post(
    "/{assessment_id}/like",
    response_model=LikeResponse,
    summary="Like or unlike an assessment",
)
async def like_assessment(
    assessment_id: UUID,
    account: CurrentAccount,
    assessments: AssessmentRepositoryDep,
) -> LikeResponse:
    assessment = _get_assessment(assessments, assessment_id)
    liked, count = assessment.toggle_like(account.id)
    assessments.save(assessment)
    return LikeResponse(liked=liked, like_count=count)


@router.post(
    "/{assessment_id}/comment",
    status_code=status.HTTP_201_CREATED,
    summary="Comment on an assessment",
)
async def comment_on_assessment(
    assessment_id: UUID,
    request: AssessmentCommentRequest,
    account: CurrentAccount,
    assessments: AssessmentRepositoryDep,
) -> dict[str, Any]:
    assessment = _get_assessment(assessments, assessment_id)
    try:
        comment = assessment.add_comment(
            account.id,
            request.content,
            comment_type=request.type,
            author_role=account.role.value,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    assessments.save(assessment)
    return {
        "message": "Comment added successfully",
        "comment": asdict(comment),
        "comment_count": assessment.comment_count,
    }


@router.put(
    "/{assessment_id}/verify",
    summary="Verify an assessment (coaches)",
)
async def verify_assessment(
    assessment_id: UUID,
    request: VerifyAssessmentRequest,
    coach: CoachAccount,
    assessments: AssessmentRepositoryDep,
) -> dict[str, Any]:
    assessment = _get_assessment(assessments, assessment_id)
    try:
        assessment.verify(coach.id, request.status, request.notes)
    except VerificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    assessments.save(assessment)
    logger.info(
        "Assessment verified",
        extra={
            "assessment_id": str(assessment.id),
            "status": request.status.value,
            "by": str(coach.id),
        }
    )
    return {
        "message": "Assessment verification updated",
        "assessment": assessment_payload(assessment),
    }
