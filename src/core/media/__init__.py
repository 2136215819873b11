"""
Media: uploaded videos and fitness assessments.

Models, the nearby visibility policy, distance helpers and the reference
assessment analyzer.
"""

from .geo import BoundingBox, bounding_box, haversine_km
from .models import (
    Assessment,
    AssessmentComment,
    AssessmentCommentType,
    AssessmentType,
    AssessmentVerificationStatus,
    Comment,
    GeoPoint,
    Like,
    LocationMetadata,
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

__all__ = [
    "BoundingBox",
    "bounding_box",
    "haversine_km",
    "Assessment",
    "AssessmentComment",
    "AssessmentCommentType",
    "AssessmentType",
    "AssessmentVerificationStatus",
    "Comment",
    "GeoPoint",
    "Like",
    "LocationMetadata",
    "ModerationStatus",
    "SkillLevel",
    "VerificationError",
    "Video",
    "VideoCategory",
    "VideoType",
    "VideoVerificationStatus",
    "Visibility",
    "initial_status",
    "parse_tags",
]
