"""
Unit tests for videos and assessments: models, distance helpers, the
nearby visibility policy and the reference analyzer.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.core.accounts.models import Role
from src.core.media.geo import bounding_box, haversine_km, within_radius
from src.core.media.models import (
    Assessment,
    AssessmentType,
    AssessmentVerificationStatus,
    GeoPoint,
    ModerationStatus,
    VerificationError,
    Video,
    VideoType,
    VideoVerificationStatus,
    Visibility,
    initial_status,
    parse_tags,
)
from src.core.media.scoring import (
    ReferenceAnalysis,
    analyze,
    assessment_stats,
    normalized_score,
    percentile,
)
from src.core.media.visibility import (
    default_radius_km,
    filter_nearby_assessments,
    filter_nearby_videos,
    policy_for,
)

BENGALURU = GeoPoint(12.9716, 77.5946)
NEAR_BENGALURU = GeoPoint(13.0166, 77.5946)  # ~5km north
MUMBAI = GeoPoint(19.0760, 72.8777)


def make_video(**overrides) -> Video:
    fields = {
        "title": "Sprint drills",
        "uploaded_by": uuid4(),
        "location": BENGALURU,
        "sport": "athletics",
        "city": "Bengaluru",
        "state": "Karnataka",
        "status": ModerationStatus.APPROVED,
    }
    fields.update(overrides)
    return Video(**fields)


def make_assessment(**overrides) -> Assessment:
    fields = {
        "athlete_id": uuid4(),
        "assessment_type": AssessmentType.VERTICAL_JUMP,
        "location": BENGALURU,
        "video_url": "mock://storage/assessments/a.mp4",
    }
    fields.update(overrides)
    return Assessment(**fields)


# ---------------------------------------------------------------------------
# Geo Tests
# ---------------------------------------------------------------------------

class TestGeoPoint:

    def test_rejects_latitude_out_of_range(self):
        with pytest.raises(ValueError, match="Latitude"):
            GeoPoint(91, 0)

    def test_rejects_longitude_out_of_range(self):
        with pytest.raises(ValueError, match="Longitude"):
            GeoPoint(0, -181)


class TestDistance:

    def test_zero_distance_to_self(self):
        assert haversine_km(BENGALURU, BENGALURU) == 0

    def test_short_distance(self):
        assert haversine_km(BENGALURU, NEAR_BENGALURU) == pytest.approx(5.0, abs=0.1)

    def test_long_distance(self):
        assert 820 < haversine_km(BENGALURU, MUMBAI) < 860

    def test_within_radius(self):
        assert within_radius(BENGALURU, NEAR_BENGALURU, 10)
        assert not within_radius(BENGALURU, MUMBAI, 100)


class TestBoundingBox:

    def test_box_contains_points_inside_radius(self):
        box = bounding_box(BENGALURU, 10)
        assert box.contains(NEAR_BENGALURU)
        assert not box.contains(MUMBAI)

    def test_box_widens_longitude_near_pole(self):
        box = bounding_box(GeoPoint(89.99, 10), 50)
        assert (box.min_longitude, box.max_longitude) == (-180.0, 180.0)

    def test_box_gives_up_across_antimeridian(self):
        box = bounding_box(GeoPoint(0, 179.9), 50)
        assert (box.min_longitude, box.max_longitude) == (-180.0, 180.0)

    def test_negative_radius_is_rejected(self):
        with pytest.raises(ValueError):
            bounding_box(BENGALURU, -1)


# ---------------------------------------------------------------------------
# Video Model Tests
# ---------------------------------------------------------------------------

class TestVideo:

    def test_title_is_required(self):
        with pytest.raises(ValueError, match="title is required"):
            make_video(title="   ")

    def test_share_radius_bounds(self):
        with pytest.raises(ValueError, match="Share radius"):
            make_video(share_radius_km=0)

    def test_tags_are_cleaned(self):
        assert parse_tags(" Speed, ,Drills ") == ["speed", "drills"]
        assert make_video(tags=["Speed", " "]).tags == ["speed"]

    def test_practice_and_assignment_skip_moderation(self):
        assert initial_status(VideoType.GESTURE_PRACTICE) == ModerationStatus.APPROVED
        assert initial_status(VideoType.ASSIGNMENT_SUBMISSION) == ModerationStatus.APPROVED
        assert initial_status(VideoType.REGULAR_UPLOAD) == ModerationStatus.PENDING

    def test_like_toggles(self):
        video = make_video()
        user = uuid4()
        assert video.toggle_like(user) == (True, 1)
        assert video.toggle_like(user) == (False, 0)

    def test_comment_limits(self):
        video = make_video()
        video.add_comment(uuid4(), "  Great start  ")
        assert video.comments[0].text == "Great start"
        with pytest.raises(ValueError, match="exceed"):
            video.add_comment(uuid4(), "x" * 501)

    def test_only_assignments_can_be_verified(self):
        video = make_video()
        with pytest.raises(VerificationError, match="Only assessment videos"):
            video.verify(uuid4(), VideoVerificationStatus.APPROVED)

    def test_verify_assignment(self):
        video = make_video(video_type=VideoType.ASSIGNMENT_SUBMISSION)
        coach_id = uuid4()
        video.verify(coach_id, VideoVerificationStatus.REJECTED, "Camera angle hides the feet")
        assert video.verification_status == VideoVerificationStatus.REJECTED
        assert video.verified_by == coach_id
        assert video.verified_at is not None

    def test_moderation_cannot_return_to_pending(self):
        with pytest.raises(VerificationError):
            make_video().moderate(uuid4(), ModerationStatus.PENDING)


# ---------------------------------------------------------------------------
# Assessment Model Tests
# ---------------------------------------------------------------------------

class TestAssessment:

    def test_video_assessments_need_a_video(self):
        with pytest.raises(ValueError, match="A video is required for Vertical Jump"):
            make_assessment(video_url=None)

    def test_measurement_assessments_do_not(self):
        assessment = make_assessment(assessment_type=AssessmentType.HEIGHT_WEIGHT, video_url=None)
        assert assessment.display_name == "Height & Weight"
        assert not AssessmentType.HEIGHT_WEIGHT.requires_video

    def test_score_must_be_in_range(self):
        with pytest.raises(ValueError, match="Normalized score"):
            make_assessment(normalized_score=120)

    def test_verify_rejects_pending(self):
        with pytest.raises(VerificationError):
            make_assessment().verify(uuid4(), AssessmentVerificationStatus.PENDING)

    def test_comment_records_author_role(self):
        assessment = make_assessment()
        comment = assessment.add_comment(uuid4(), "Bend the knees more", author_role="coach")
        assert comment.author_role == "coach"
        assert assessment.comment_count == 1


# ---------------------------------------------------------------------------
# Nearby Visibility Tests
# ---------------------------------------------------------------------------

class TestNearbyPolicy:

    def test_coach_sees_public_and_coach_videos(self):
        policy = policy_for(Role.COACH, uuid4())
        assert policy.allows(make_video(visibility=Visibility.PUBLIC))
        assert policy.allows(make_video(visibility=Visibility.COACHES_ONLY))
        assert not policy.allows(make_video(visibility=Visibility.SAI_OFFICIALS_ONLY))
        assert not policy.allows(make_video(visibility=Visibility.PRIVATE))

    def test_official_sees_official_videos(self):
        policy = policy_for(Role.OFFICIAL, uuid4())
        assert policy.allows(make_video(visibility=Visibility.SAI_OFFICIALS_ONLY))
        assert not policy.allows(make_video(visibility=Visibility.PRIVATE))

    def test_athlete_sees_public_and_own(self):
        me = uuid4()
        policy = policy_for(Role.ATHLETE, me)
        assert policy.allows(make_video(visibility=Visibility.PUBLIC))
        assert policy.allows(make_video(visibility=Visibility.PRIVATE, uploaded_by=me))
        assert not policy.allows(make_video(visibility=Visibility.COACHES_ONLY))

    def test_unapproved_videos_are_hidden(self):
        policy = policy_for(Role.OFFICIAL, uuid4())
        assert not policy.allows(make_video(status=ModerationStatus.PENDING))
        assert not policy.allows(make_video(status=ModerationStatus.FLAGGED))

    def test_default_radius_by_role(self):
        assert default_radius_km(Role.COACH) == 50.0
        assert default_radius_km(Role.OFFICIAL) == 100.0

    def test_filter_by_distance_newest_first(self):
        now = datetime.now(timezone.utc)
        older = make_video(title="Older", location=NEAR_BENGALURU, created_at=now - timedelta(days=1))
        newer = make_video(title="Newer", created_at=now)
        far = make_video(title="Far", location=MUMBAI)

        found = filter_nearby_videos(
            [older, far, newer], BENGALURU, 50, policy_for(Role.COACH, uuid4())
        )
        assert [v.title for v in found] == ["Newer", "Older"]

    def test_filter_by_sport_and_category(self):
        football = make_video(sport="football")
        found = filter_nearby_videos(
            [make_video(), football], BENGALURU, 50, policy_for(Role.COACH, uuid4()),
            sport="football",
        )
        assert found == [football]

    def test_nearby_assessments_skip_rejected_and_cap_results(self):
        rejected = make_assessment(verification_status=AssessmentVerificationStatus.REJECTED)
        kept = [make_assessment() for _ in range(3)]

        found = filter_nearby_assessments([rejected] + kept, BENGALURU, 50, max_results=2)
        assert len(found) == 2
        assert rejected not in found


# ---------------------------------------------------------------------------
# Reference Analyzer Tests
# ---------------------------------------------------------------------------

class TestReferenceAnalyzer:

    def test_same_seed_same_result(self):
        first = analyze(AssessmentType.SHUTTLE_RUN, "assessment-1")
        second = analyze(AssessmentType.SHUTTLE_RUN, "assessment-1")
        assert first.overall_score == second.overall_score
        assert first.raw_measurements == second.raw_measurements
        assert first.confidence == second.confidence

    def test_values_are_in_range(self):
        for index in range(25):
            analysis = analyze(AssessmentType.VERTICAL_JUMP, f"seed-{index}")
            assert 0.7 <= analysis.confidence < 1.0
            assert 70 <= analysis.overall_score <= 99
            assert 40 <= analysis.raw_measurements["jump_height_cm"] <= 79
            assert len(analysis.key_points) == 3
            # Low confidence always comes with an anomaly, and only then
            assert bool(analysis.detected_anomalies) == (analysis.confidence < 0.8)

    def test_measurement_tests_have_no_raw_measurements(self):
        analysis = analyze(AssessmentType.HEIGHT_WEIGHT, "seed")
        assert analysis.raw_measurements == {}
        assert analysis.key_points == []

    def test_to_dict_shape(self):
        data = analyze(AssessmentType.SIT_UPS, "seed").to_dict()
        assert set(data) == {
            "confidence", "detected_anomalies", "form_analysis",
            "performance_metrics", "raw_measurements", "processed_at",
        }
        assert set(data["performance_metrics"]) == {"consistency", "technique", "efficiency"}

    def test_normalized_score_formula(self):
        analysis = ReferenceAnalysis(
            confidence=0.9,
            overall_score=85,
            key_points=[],
            consistency=80,
            technique=80,
            efficiency=80,
            raw_measurements={},
        )
        # 75 base + (85 - 70) / 3 + (240 - 210) / 9 = 83.33
        assert normalized_score(AssessmentType.VERTICAL_JUMP, analysis) == 83.0

    def test_normalized_score_is_capped(self):
        analysis = ReferenceAnalysis(
            confidence=0.9,
            overall_score=99,
            key_points=[],
            consistency=99,
            technique=99,
            efficiency=99,
            raw_measurements={},
        )
        assert normalized_score(AssessmentType.HEIGHT_WEIGHT, analysis) == 100.0

    def test_percentile_is_deterministic_and_bounded(self):
        assert percentile("x") == percentile("x")
        assert all(60 <= percentile(f"seed-{i}") <= 89 for i in range(25))

    def test_assessment_stats(self):
        stats = assessment_stats([
            make_assessment(normalized_score=80.0, verification_status=AssessmentVerificationStatus.VERIFIED),
            make_assessment(normalized_score=90.0),
            make_assessment(),
        ])
        assert stats.total_assessments == 3
        assert stats.verified_assessments == 1
        assert stats.average_score == 85.0
        assert stats.best_score == 90.0

    def test_assessment_stats_empty(self):
        stats = assessment_stats([])
        assert (stats.total_assessments, stats.average_score, stats.best_score) == (0, 0.0, 0.0)
