"""
User-specific API endpoints.

Profiles, search for coaches and officials, leaderboards, badges, and the
officials' account administration.
"""

import logging
import math
from dataclasses import asdict
from typing import Any, Optional, Union
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.accounts.models import Account, Athlete, DuplicateBadgeError, Role
from ...core.accounts.rankings import build_leaderboard, platform_stats
from ...infrastructure.snowflake.repositories import AccountRepository
from ..dependencies import (
    AccountRepositoryDep,
    AssessmentRepositoryDep,
    CurrentAccount,
    OfficialAccount,
    StaffAccount,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class EmergencyContactModel(BaseModel):
    name: str = ""
    phone: str = ""
    relationship: str = ""


class CertificationModel(BaseModel):
    name: str
    issued_by: str = ""
    certificate_number: str = ""


class ProfileUpdateRequest(BaseModel):
    """
    Self-service profile fields.

    Fields that don't apply to the caller's role are ignored.
    """
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    sport: Optional[str] = None
    specialization: Optional[Union[str, list[str]]] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    blood_group: Optional[str] = None
    emergency_contact: Optional[EmergencyContactModel] = None
    experience_years: Optional[int] = Field(None, ge=0)
    certifications: Optional[list[CertificationModel]] = None


class AwardBadgeRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    icon: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    is_active: bool
    is_verified: Optional[bool] = None


class AssessmentStatsModel(BaseModel):
    total_assessments: int
    verified_assessments: int
    average_score: float
    best_score: float


class LeaderboardEntryModel(BaseModel):
    rank: int
    id: str
    name: str
    location: str
    specialization: Optional[str] = None
    points: int
    level: Optional[str] = None
    badge_count: int


class LeaderboardResponse(BaseModel):
    user_type: Role
    leaderboard: list[LeaderboardEntryModel]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class SearchResponse(BaseModel):
    users: list[dict[str, Any]]
    pagination: Pagination


class StatsResponse(BaseModel):
    total_users: int
    active_users: int
    verified_users: int
    users_by_type: dict[str, int]
    users_by_state: list[dict[str, Any]]
    top_performers: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def save_profile_update(
    account: Account,
    request: ProfileUpdateRequest,
    accounts: AccountRepository,
) -> dict[str, Any]:
    """Apply a profile edit for the caller and persist it."""
    try:
        applied = account.apply_profile_update(request.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if applied:
        accounts.save(account)
        logger.info(
            "Profile updated",
            extra={"account_id": str(account.id), "fields": applied}
        )

    return {
        "message": "Profile updated successfully",
        "updated_fields": applied,
        "user": account.to_public_dict(),
    }


def _get_account(accounts: AccountRepository, account_id: UUID) -> Account:
    account = accounts.find(account_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return account


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/profile/{user_id}",
    summary="Get a user's profile",
    description="Your own profile, or anyone's if you are a coach or official.",
)
async def get_profile(
    user_id: UUID,
    account: CurrentAccount,
    accounts: AccountRepositoryDep,
    assessments: AssessmentRepositoryDep,
) -> dict[str, Any]:
    if account.id != user_id and account.role not in (Role.COACH, Role.OFFICIAL):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    target = _get_account(accounts, user_id)
    response: dict[str, Any] = {"user": target.to_public_dict()}

    if isinstance(target, Athlete):
        stats = assessments.stats_for_athlete(target.id)
        response["assessment_stats"] = AssessmentStatsModel(**asdict(stats))

    return response


@router.put(
    "/profile",
    summary="Update my profile",
)
async def update_profile(
    request: ProfileUpdateRequest,
    account: CurrentAccount,
    accounts: AccountRepositoryDep,
) -> dict[str, Any]:
    return save_profile_update(account, request, accounts)


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Search athletes and coaches",
)
async def search_users(
    account: StaffAccount,
    accounts: AccountRepositoryDep,
    q: Optional[str] = Query(None, description="Matches name or email"),
    user_type: Optional[Role] = Query(None),
    state: Optional[str] = Query(None),
    sport: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> SearchResponse:
    if user_type == Role.OFFICIAL:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="user_type must be athlete or coach",
        )

    roles = [user_type] if user_type else [Role.ATHLETE, Role.COACH]
    matches = accounts.search(query=q, roles=roles, state=state, sport=sport)

    start = (page - 1) * limit
    return SearchResponse(
        users=[m.to_public_dict() for m in matches[start:start + limit]],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=len(matches),
            pages=math.ceil(len(matches) / limit),
        ),
    )


@router.post(
    "/{user_id}/award-badge",
    summary="Award a badge",
)
async def award_badge(
    user_id: UUID,
    request: AwardBadgeRequest,
    official: OfficialAccount,
    accounts: AccountRepositoryDep,
) -> dict[str, Any]:
    target = _get_account(accounts, user_id)

    try:
        badge = target.award_badge(request.name, request.description, request.icon)
    except DuplicateBadgeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    accounts.save(target)
    logger.info(
        "Badge awarded",
        extra={"account_id": str(target.id), "badge": badge.name, "by": str(official.id)}
    )

    return {
        "message": "Badge awarded successfully",
        "badge": asdict(badge),
        "points": target.points,
    }


@router.get(
    "/leaderboard",
    response_model=LeaderboardResponse,
    summary="Top accounts by points",
)
async def leaderboard(
    accounts: AccountRepositoryDep,
    user_type: Role = Query(Role.ATHLETE),
    state: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
) -> LeaderboardResponse:
    ranked = build_leaderboard(
        accounts.list_by_role(user_type, state=state, active_only=True),
        limit=limit,
    )
    return LeaderboardResponse(
        user_type=user_type,
        leaderboard=[
            LeaderboardEntryModel(
                rank=entry.rank,
                id=entry.account_id,
                name=entry.name,
                location=entry.location,
                specialization=entry.specialization,
                points=entry.points,
                level=entry.level,
                badge_count=entry.badge_count,
            )
            for entry in ranked
        ],
    )


@router.put(
    "/{user_id}/status",
    summary="Activate, deactivate or verify an account",
)
async def update_status(
    user_id: UUID,
    request: StatusUpdateRequest,
    official: OfficialAccount,
    accounts: AccountRepositoryDep,
) -> dict[str, Any]:
    target = _get_account(accounts, user_id)
    target.set_status(request.is_active, request.is_verified)
    accounts.save(target)

    logger.info(
        "Account status changed",
        extra={
            "account_id": str(target.id),
            "is_active": target.is_active,
            "is_verified": target.is_verified,
            "by": str(official.id),
        }
    )

    return {
        "message": "User status updated successfully",
        "user": target.to_public_dict(),
    }


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Platform statistics",
)
async def stats(
    official: OfficialAccount,
    accounts: AccountRepositoryDep,
) -> StatsResponse:
    summary = platform_stats(accounts.list_all())
    return StatsResponse(
        total_users=summary.total_users,
        active_users=summary.active_users,
        verified_users=summary.verified_users,
        users_by_type=summary.users_by_type,
        users_by_state=[
            {"state": state, "count": count} for state, count in summary.users_by_state
        ],
        top_performers=[
            {
                "id": str(a.id),
                "name": a.name,
                "location": a.location,
                "specialization": a.specialization,
                "points": a.points,
            }
            for a in summary.top_performers
        ],
    )
