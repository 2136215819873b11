"""
Domain models for uploaded media: general videos and fitness assessments.

Both are geotagged so coaches and officials can discover athletes near
them. Both carry likes and comments. They differ in lifecycle:

- Video goes through moderation (status) and, for assignment submissions,
  coach verification (verification_status).
- Assessment is a standardised test (vertical jump, shuttle run, ...) with
  a normalised score that coaches verify or flag.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

MAX_COMMENT_LENGTH = 500
DEFAULT_SHARE_RADIUS_KM = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Shared Value Objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 position. Frozen because positions are values."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90 <= self.latitude <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        if not -180 <= self.longitude <= 180:
            raise ValueError("Longitude must be between -180 and 180")


@dataclass
class Like:
    user_id: UUID
    liked_at: datetime = field(default_factory=_now)


@dataclass
class Comment:
    user_id: UUID
    text: str
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        self.text = self.text.strip()
        if not self.text:
            raise ValueError("Comment cannot be empty")
        if len(self.text) > MAX_COMMENT_LENGTH:
            raise ValueError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")


class Engagement:
    """
    Like/comment behaviour shared by videos and assessments.

    Mixed into dataclasses that define `likes` and `comments` lists.
    """
    likes: list[Like]
    comments: list

    @property
    def like_count(self) -> int:
        return len(self.likes)

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    def is_liked_by(self, user_id: UUID) -> bool:
        return any(like.user_id == user_id for like in self.likes)

    def toggle_like(self, user_id: UUID) -> tuple[bool, int]:
        """Like if not yet liked, unlike otherwise. Returns (liked, count)."""
        if self.is_liked_by(user_id):
            self.likes = [like for like in self.likes if like.user_id != user_id]
            return False, self.like_count
        self.likes.append(Like(user_id=user_id))
        return True, self.like_count


def parse_tags(raw: Optional[str]) -> list[str]:
    """Split a comma-separated tag string into clean lowercase tags."""
    if not raw:
        return []
    return [tag.strip().lower() for tag in raw.split(",") if tag.strip()]


# ---------------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------------

class VideoCategory(Enum):
    TRAINING = "training"
    PERFORMANCE = "performance"
    ASSESSMENT = "assessment"
    TECHNIQUE = "technique"
    OTHER = "other"


class VideoType(Enum):
    """
    Why the video was uploaded.

    Practice recordings and assignment submissions are trusted inputs and
    skip the moderation queue.
    """
    GESTURE_PRACTICE = "gesture_practice"
    ASSIGNMENT_SUBMISSION = "assignment_submission"
    REGULAR_UPLOAD = "regular_upload"


class SkillLevel(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    PROFESSIONAL = "professional"


class Visibility(Enum):
    PUBLIC = "public"
    COACHES_ONLY = "coaches_only"
    SAI_OFFICIALS_ONLY = "sai_officials_only"
    PRIVATE = "private"


class ModerationStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class VideoVerificationStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


AUTO_APPROVED_TYPES = frozenset({VideoType.ASSIGNMENT_SUBMISSION, VideoType.GESTURE_PRACTICE})


def initial_status(video_type: VideoType) -> ModerationStatus:
    if video_type in AUTO_APPROVED_TYPES:
        return ModerationStatus.APPROVED
    return ModerationStatus.PENDING


class VerificationError(ValueError):
    """Raised when a verification or moderation decision is not allowed."""
    pass


@dataclass
class Video(Engagement):
    """
    An uploaded video and everything the platform knows about it.

    `storage_path` is the key in object storage; `video_url` is what
    clients are given.
    """
    title: str
    uploaded_by: UUID
    location: GeoPoint
    sport: str
    city: str
    state: str
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    uploader_role: str = "athlete"
    video_url: str = ""
    storage_path: str = ""
    thumbnail_url: Optional[str] = None
    thumbnail_path: Optional[str] = None
    duration_seconds: Optional[float] = None
    file_size_bytes: int = 0
    mime_type: str = "video/mp4"
    address: Optional[str] = None
    category: VideoCategory = VideoCategory.TRAINING
    video_type: VideoType = VideoType.REGULAR_UPLOAD
    skill_level: SkillLevel = SkillLevel.BEGINNER
    visibility: Visibility = Visibility.COACHES_ONLY
    share_radius_km: int = DEFAULT_SHARE_RADIUS_KM
    tags: list[str] = field(default_factory=list)
    views: int = 0
    likes: list[Like] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    ai_analysis: Optional[dict[str, Any]] = None
    status: ModerationStatus = ModerationStatus.PENDING
    moderated_by: Optional[UUID] = None
    moderated_at: Optional[datetime] = None
    moderation_notes: Optional[str] = None
    verification_status: VideoVerificationStatus = VideoVerificationStatus.PENDING
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        self.title = self.title.strip()
        if not self.title:
            raise ValueError("Video title is required")
        if len(self.title) > 200:
            raise ValueError("Title cannot exceed 200 characters")
        if len(self.description) > 1000:
            raise ValueError("Description cannot exceed 1000 characters")
        if not 1 <= self.share_radius_km <= 500:
            raise ValueError("Share radius must be between 1 and 500 km")
        self.tags = [t.strip().lower() for t in self.tags if t and t.strip()]

    def add_comment(self, user_id: UUID, text: str) -> Comment:
        comment = Comment(user_id=user_id, text=text)
        self.comments.append(comment)
        self.updated_at = comment.created_at
        return comment

    def record_view(self) -> int:
        self.views += 1
        return self.views

    def verify(
        self,
        coach_id: UUID,
        status: VideoVerificationStatus,
        notes: Optional[str] = None,
    ) -> None:
        """A coach's decision on an assignment submission."""
        if status == VideoVerificationStatus.PENDING:
            raise VerificationError("Verification status must be approved or rejected")
        if self.video_type != VideoType.ASSIGNMENT_SUBMISSION:
            raise VerificationError("Only assessment videos can be verified")

        self.verification_status = status
        self.verified_by = coach_id
        self.verified_at = _now()
        self.verification_notes = notes
        self.updated_at = self.verified_at

    def moderate(
        self,
        official_id: UUID,
        status: ModerationStatus,
        notes: Optional[str] = None,
    ) -> None:
        """An official's moderation decision."""
        if status == ModerationStatus.PENDING:
            raise VerificationError("Moderation status must be approved, rejected or flagged")

        self.status = status
        self.moderated_by = official_id
        self.moderated_at = _now()
        self.moderation_notes = notes
        self.updated_at = self.moderated_at


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------

class AssessmentType(Enum):
    """The standardised fitness tests."""
    VERTICAL_JUMP = "vertical_jump"
    SHUTTLE_RUN = "shuttle_run"
    SIT_UPS = "sit_ups"
    ENDURANCE_RUN_800M = "endurance_run_800m"
    ENDURANCE_RUN_1500M = "endurance_run_1500m"
    HEIGHT_WEIGHT = "height_weight"
    FLEXIBILITY = "flexibility"
    STRENGTH_TEST = "strength_test"

    @property
    def requires_video(self) -> bool:
        return self in _VIDEO_ASSESSMENTS

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_VIDEO_ASSESSMENTS = frozenset({
    AssessmentType.VERTICAL_JUMP,
    AssessmentType.SHUTTLE_RUN,
    AssessmentType.SIT_UPS,
    AssessmentType.ENDURANCE_RUN_800M,
    AssessmentType.ENDURANCE_RUN_1500M,
})

_DISPLAY_NAMES = {
    AssessmentType.VERTICAL_JUMP: "Vertical Jump",
    AssessmentType.SHUTTLE_RUN: "Shuttle Run",
    AssessmentType.SIT_UPS: "Sit-ups",
    AssessmentType.ENDURANCE_RUN_800M: "800m Endurance Run",
    AssessmentType.ENDURANCE_RUN_1500M: "1500m Endurance Run",
    AssessmentType.HEIGHT_WEIGHT: "Height & Weight",
    AssessmentType.FLEXIBILITY: "Flexibility Test",
    AssessmentType.STRENGTH_TEST: "Strength Test",
}


class AssessmentVerificationStatus(Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FLAGGED = "flagged"
    REJECTED = "rejected"


class AssessmentCommentType(Enum):
    FEEDBACK = "feedback"
    IMPROVEMENT_SUGGESTION = "improvement_suggestion"
    VERIFICATION_NOTE = "verification_note"


@dataclass
class AssessmentComment:
    author_id: UUID
    content: str
    type: AssessmentCommentType = AssessmentCommentType.FEEDBACK
    author_role: str = "coach"
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        self.content = self.content.strip()
        if not self.content:
            raise ValueError("Comment cannot be empty")
        if len(self.content) > MAX_COMMENT_LENGTH:
            raise ValueError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")


@dataclass
class LocationMetadata:
    accuracy: Optional[float] = None
    captured_at: datetime = field(default_factory=_now)
    source: str = "browser_geolocation"


@dataclass
class Assessment(Engagement):
    """One attempt at a standardised test by an athlete."""
    athlete_id: UUID
    assessment_type: AssessmentType
    location: GeoPoint
    id: UUID = field(default_factory=uuid4)
    test_date: datetime = field(default_factory=_now)
    video_url: Optional[str] = None
    storage_path: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_path: Optional[str] = None
    video_duration: Optional[float] = None
    mime_type: Optional[str] = None
    location_metadata: LocationMetadata = field(default_factory=LocationMetadata)
    sport: Optional[str] = None
    category: Optional[str] = None
    raw_data: dict[str, Any] = field(default_factory=dict)
    test_conditions: dict[str, Any] = field(default_factory=dict)
    attempt_number: int = 1
    ai_analysis: Optional[dict[str, Any]] = None
    normalized_score: Optional[float] = None
    percentile: Optional[int] = None
    verification_status: AssessmentVerificationStatus = AssessmentVerificationStatus.PENDING
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    comments: list[AssessmentComment] = field(default_factory=list)
    likes: list[Like] = field(default_factory=list)
    views: int = 0
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if self.assessment_type.requires_video and not self.video_url:
            raise ValueError(
                f"A video is required for {self.assessment_type.display_name}"
            )
        if self.attempt_number < 1:
            raise ValueError("Attempt number must be at least 1")
        if self.normalized_score is not None and not 0 <= self.normalized_score <= 100:
            raise ValueError("Normalized score must be between 0 and 100")

    @property
    def display_name(self) -> str:
        return self.assessment_type.display_name

    def add_comment(
        self,
        author_id: UUID,
        content: str,
        comment_type: AssessmentCommentType = AssessmentCommentType.FEEDBACK,
        author_role: str = "coach",
    ) -> AssessmentComment:
        comment = AssessmentComment(
            author_id=author_id,
            content=content,
            type=comment_type,
            author_role=author_role,
        )
        self.comments.append(comment)
        return comment

    def record_view(self) -> int:
        self.views += 1
        return self.views

    def record_analysis(self, analysis: dict[str, Any], normalized_score: float, percentile: int) -> None:
        self.ai_analysis = analysis
        self.normalized_score = normalized_score
        self.percentile = percentile

    def verify(
        self,
        coach_id: UUID,
        status: AssessmentVerificationStatus,
        notes: Optional[str] = None,
    ) -> None:
        if status == AssessmentVerificationStatus.PENDING:
            raise VerificationError("Verification status must be verified, flagged or rejected")

        self.verification_status = status
        self.verified_by = coach_id
        self.verified_at = _now()
        self.verification_notes = notes
