"""
Who may discover which videos through the nearby search.

Coaches scout, officials oversee, athletes mostly see their own work.
The policy is expressed as data so the repository can push the status
filter into SQL and apply the rest after the distance check.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional
from uuid import UUID

from ..accounts.models import Role
from .geo import haversine_km
from .models import (
    Assessment,
    AssessmentVerificationStatus,
    GeoPoint,
    ModerationStatus,
    Video,
    Visibility,
)

DEFAULT_NEARBY_RADIUS_KM = {
    Role.COACH: 50.0,
    Role.OFFICIAL: 100.0,
    Role.ATHLETE: 50.0,
}

NEARBY_ASSESSMENT_STATUSES = (
    AssessmentVerificationStatus.VERIFIED,
    AssessmentVerificationStatus.PENDING,
)
DEFAULT_ASSESSMENT_RADIUS_KM = 50.0
DEFAULT_ASSESSMENT_RESULTS = 20


@dataclass(frozen=True)
class NearbyPolicy:
    """
    Filter applied to nearby videos for one viewer.

    A video passes when its status is allowed and either its visibility is
    allowed or the viewer uploaded it (when `own_uploads_visible`).
    """
    viewer_id: UUID
    statuses: frozenset = frozenset({ModerationStatus.APPROVED})
    visibilities: frozenset = field(default_factory=frozenset)
    own_uploads_visible: bool = False

    def allows(self, video: Video) -> bool:
        if video.status not in self.statuses:
            return False
        if self.own_uploads_visible and video.uploaded_by == self.viewer_id:
            return True
        return video.visibility in self.visibilities


def policy_for(role: Role, viewer_id: UUID) -> NearbyPolicy:
    if role == Role.COACH:
        return NearbyPolicy(
            viewer_id=viewer_id,
            visibilities=frozenset({Visibility.PUBLIC, Visibility.COACHES_ONLY}),
        )
    if role == Role.OFFICIAL:
        return NearbyPolicy(
            viewer_id=viewer_id,
            visibilities=frozenset({
                Visibility.PUBLIC,
                Visibility.COACHES_ONLY,
                Visibility.SAI_OFFICIALS_ONLY,
            }),
        )
    return NearbyPolicy(
        viewer_id=viewer_id,
        visibilities=frozenset({Visibility.PUBLIC}),
        own_uploads_visible=True,
    )


def default_radius_km(role: Role) -> float:
    return DEFAULT_NEARBY_RADIUS_KM.get(role, 50.0)


def filter_nearby_videos(
    videos: Iterable[Video],
    center: GeoPoint,
    radius_km: float,
    policy: NearbyPolicy,
    sport: Optional[str] = None,
    category: Optional[str] = None,
) -> list[Video]:
    """Exact radius, policy and optional filters; newest first."""
    matches = [
        v for v in videos
        if haversine_km(center, v.location) <= radius_km
        and policy.allows(v)
        and (sport is None or v.sport == sport)
        and (category is None or v.category.value == category)
    ]
    return sorted(matches, key=lambda v: v.created_at, reverse=True)


def filter_nearby_assessments(
    assessments: Iterable[Assessment],
    center: GeoPoint,
    radius_km: float,
    sport: Optional[str] = None,
    category: Optional[str] = None,
    max_results: int = DEFAULT_ASSESSMENT_RESULTS,
) -> list[Assessment]:
    matches = [
        a for a in assessments
        if haversine_km(center, a.location) <= radius_km
        and a.verification_status in NEARBY_ASSESSMENT_STATUSES
        and (sport is None or a.sport == sport)
        and (category is None or a.category == category)
    ]
    matches.sort(key=lambda a: a.created_at, reverse=True)
    return matches[:max_results]
