"""
Gesture practice endpoints.

A practice session is started, violations are recorded per attempt
(either reported by the client or found by the server-side monitor from
pose landmarks), and completing the session scores it.

An attempt ends after MAX_VIOLATIONS_PER_ATTEMPT violations; clients
should stop recording once `max_violations_reached` / `stopped` is true.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.accounts.models import Account, Role
from ...core.gesture.analytics import sport_analytics
from ...core.gesture.models import (
    MAX_ATTEMPTS,
    MAX_VIOLATIONS_PER_ATTEMPT,
    GestureAnalysis,
    GestureAnalysisError,
    GestureCategory,
    GestureSport,
    RecordingMetadata,
    RecordingQuality,
    Severity,
)
from ...core.gesture.pose import POSE_LANDMARK_COUNT, Landmark, PracticeMonitor
from ...core.gesture.rules import rule_description, rules_for
from ...infrastructure.snowflake.repositories import GestureAnalysisRepository
from ..dependencies import (
    AthleteAccount,
    CurrentAccount,
    GestureAnalysisRepositoryDep,
    StaffAccount,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class StartAnalysisRequest(BaseModel):
    sport: GestureSport
    category: GestureCategory
    video_id: Optional[UUID] = None


class RuleModel(BaseModel):
    name: str
    description: str


class StartAnalysisResponse(BaseModel):
    message: str
    analysis_id: UUID
    rules: list[RuleModel]


class ViolationRequest(BaseModel):
    attempt_number: int = Field(ge=1, le=MAX_ATTEMPTS)
    timestamp_ms: float = Field(ge=0)
    rule_name: str = Field(min_length=1)
    rule_description: Optional[str] = None
    severity: Severity = Severity.MAJOR
    landmark_data: Optional[Any] = None


class ViolationResponse(BaseModel):
    message: str
    violation_count: int = Field(description="Violations in this attempt")
    total_violations: int
    max_violations_reached: bool


class LandmarkModel(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


class PoseFrame(BaseModel):
    timestamp_ms: float = Field(ge=0)
    landmarks: list[Optional[LandmarkModel]] = Field(
        max_length=POSE_LANDMARK_COUNT,
        description="MediaPipe pose landmarks in index order; null for undetected points",
    )


class EvaluateRequest(BaseModel):
    attempt_number: int = Field(ge=1, le=MAX_ATTEMPTS)
    frames: list[PoseFrame] = Field(min_length=1)


class RecordingMetadataModel(BaseModel):
    fps: int = Field(30, ge=1)
    width: Optional[int] = None
    height: Optional[int] = None
    recording_quality: RecordingQuality = RecordingQuality.MEDIUM


class CompleteRequest(BaseModel):
    duration: float = Field(ge=0, description="Recording length in seconds")
    total_attempts: int = Field(ge=1, le=MAX_ATTEMPTS)
    recording_metadata: Optional[RecordingMetadataModel] = None


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def analysis_payload(analysis: GestureAnalysis) -> dict[str, Any]:
    data = asdict(analysis)
    data["violation_count"] = analysis.violation_count
    data["success_rate"] = round(analysis.success_rate, 2)
    return data


def _get_analysis(analyses: GestureAnalysisRepository, analysis_id: UUID) -> GestureAnalysis:
    analysis = analyses.find(analysis_id)
    if analysis is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Gesture analysis not found",
        )
    return analysis


def _owned_analysis(
    analyses: GestureAnalysisRepository,
    analysis_id: UUID,
    account: Account,
) -> GestureAnalysis:
    analysis = _get_analysis(analyses, analysis_id)
    if analysis.athlete_id != account.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to modify this analysis",
        )
    return analysis


def _to_landmarks(frame: PoseFrame) -> list[Optional[Landmark]]:
    return [
        Landmark(x=p.x, y=p.y, z=p.z, visibility=p.visibility) if p is not None else None
        for p in frame.landmarks
    ]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/start",
    response_model=StartAnalysisResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a practice session",
)
async def start_analysis(
    request: StartAnalysisRequest,
    athlete: AthleteAccount,
    analyses: GestureAnalysisRepositoryDep,
) -> StartAnalysisResponse:
    rules = rules_for(request.sport.value, request.category.value)
    analysis = GestureAnalysis(
        athlete_id=athlete.id,
        sport=request.sport,
        category=request.category,
        video_id=request.video_id,
        rules_applied=rules,
    )
    analyses.save(analysis)

    logger.info(
        "Gesture analysis started",
        extra={
            "analysis_id": str(analysis.id),
            "athlete_id": str(athlete.id),
            "sport": request.sport.value,
            "category": request.category.value,
            "rule_count": len(rules),
        }
    )

    return StartAnalysisResponse(
        message="Gesture analysis session started",
        analysis_id=analysis.id,
        rules=[RuleModel(name=r.name, description=r.description) for r in rules],
    )


@router.post(
    "/{analysis_id}/violation",
    response_model=ViolationResponse,
    summary="Record a violation",
)
async def record_violation(
    analysis_id: UUID,
    request: ViolationRequest,
    account: CurrentAccount,
    analyses: GestureAnalysisRepositoryDep,
) -> ViolationResponse:
    analysis = _owned_analysis(analyses, analysis_id, account)

    try:
        count = analysis.add_violation(
            attempt_number=request.attempt_number,
            timestamp_ms=request.timestamp_ms,
            rule_name=request.rule_name,
            rule_description=request.rule_description or rule_description(request.rule_name),
            severity=request.severity,
            landmark_data=request.landmark_data,
        )
    except (GestureAnalysisError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    analyses.save(analysis)

    return ViolationResponse(
        message="Violation recorded",
        violation_count=count,
        total_violations=analysis.violation_count,
        max_violations_reached=count >= MAX_VIOLATIONS_PER_ATTEMPT,
    )


@router.post(
    "/{analysis_id}/evaluate",
    summary="Check pose frames against the session's rules",
)
async def evaluate_frames(
    analysis_id: UUID,
    request: EvaluateRequest,
    account: CurrentAccount,
    analyses: GestureAnalysisRepositoryDep,
) -> dict[str, Any]:
    """
    Run the rule checker over frames of one attempt.

    Violations already recorded for the attempt count toward the limit,
    so frames can be sent in batches.
    """
    analysis = _owned_analysis(analyses, analysis_id, account)
    if analysis.is_completed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot add violations to a completed analysis",
        )

    monitor = PracticeMonitor.for_session(
        analysis.sport.value,
        analysis.category.value,
        attempt_number=request.attempt_number,
    )
    monitor.violations = [
        v for v in analysis.violations if v.attempt_number == request.attempt_number
    ]

    found = []
    frames_evaluated = 0
    for frame in request.frames:
        if monitor.stopped:
            break
        frames_evaluated += 1
        for violation in monitor.evaluate(_to_landmarks(frame), frame.timestamp_ms):
            analysis.add_violation(
                attempt_number=violation.attempt_number,
                timestamp_ms=violation.timestamp_ms,
                rule_name=violation.rule_name,
                rule_description=violation.rule_description,
                severity=violation.severity,
            )
            found.append(violation)

    if found:
        analyses.save(analysis)

    return {
        "violations": [asdict(v) for v in found],
        "frames_evaluated": frames_evaluated,
        "violation_count": analysis.violations_in_attempt(request.attempt_number),
        "total_violations": analysis.violation_count,
        "stopped": monitor.stopped,
    }


@router.put(
    "/{analysis_id}/complete",
    summary="Finish a practice session",
)
async def complete_analysis(
    analysis_id: UUID,
    request: CompleteRequest,
    account: CurrentAccount,
    analyses: GestureAnalysisRepositoryDep,
) -> dict[str, Any]:
    analysis = _owned_analysis(analyses, analysis_id, account)

    metadata = None
    if request.recording_metadata is not None:
        metadata = RecordingMetadata(**request.recording_metadata.model_dump())

    try:
        results = analysis.complete(request.duration, request.total_attempts, metadata)
    except (GestureAnalysisError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    analyses.save(analysis)

    logger.info(
        "Gesture analysis completed",
        extra={
            "analysis_id": str(analysis.id),
            "overall_score": results.overall_score,
            "violations": analysis.violation_count,
        }
    )

    return {
        "message": "Analysis completed successfully",
        "results": asdict(results),
        "success_rate": round(analysis.success_rate, 2),
        "analysis": analysis_payload(analysis),
    }


@router.get(
    "/athlete/{athlete_id}",
    summary="An athlete's practice history",
)
async def athlete_history(
    athlete_id: UUID,
    account: CurrentAccount,
    analyses: GestureAnalysisRepositoryDep,
    sport: Optional[GestureSport] = Query(None),
    limit: int = Query(10, ge=1, le=100),
) -> dict[str, Any]:
    if account.role == Role.ATHLETE and account.id != athlete_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    history = analyses.list_for_athlete(
        athlete_id,
        sport=sport.value if sport else None,
        limit=limit,
    )
    return {"count": len(history), "analyses": [analysis_payload(a) for a in history]}


@router.get(
    "/analytics/{sport}",
    summary="Practice analytics for a sport",
)
async def analytics(
    sport: GestureSport,
    staff: StaffAccount,
    analyses: GestureAnalysisRepositoryDep,
    timeframe: int = Query(30, ge=1, le=365, description="Days to look back"),
) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    window = analyses.completed_since(sport.value, now - timedelta(days=timeframe))
    result = sport_analytics(window, sport.value, timeframe_days=timeframe, now=now)

    return {
        "sport": sport,
        "timeframe_days": timeframe,
        "avg_overall_score": result.avg_overall_score,
        "avg_form_accuracy": result.avg_form_accuracy,
        "avg_consistency_score": result.avg_consistency_score,
        "total_analyses": result.total_analyses,
        "total_violations": result.total_violations,
        "common_violations": [
            {"rule_name": name, "count": count} for name, count in result.common_violations
        ],
    }


@router.get(
    "/{analysis_id}",
    summary="Get a practice session",
)
async def get_analysis(
    analysis_id: UUID,
    account: CurrentAccount,
    analyses: GestureAnalysisRepositoryDep,
) -> dict[str, Any]:
    analysis = _get_analysis(analyses, analysis_id)
    if account.role == Role.ATHLETE and analysis.athlete_id != account.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return {"analysis": analysis_payload(analysis)}
