"""
API tests for video and assessment uploads, discovery and review.

Files go to the in-memory mock storage and the mock video processor
supplies duration and thumbnail, so the whole upload path runs.
"""

import asyncio

import pytest

from src.infrastructure.video.processor import PLACEHOLDER_JPEG

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 256

BENGALURU = {"latitude": "12.9716", "longitude": "77.5946"}
NEAR_BENGALURU = {"latitude": "13.0166", "longitude": "77.5946"}
MUMBAI = {"latitude": "19.0760", "longitude": "72.8777"}
# About 80 km north of Bengaluru
NORTH_OF_BENGALURU = {"latitude": "13.69", "longitude": "77.5946"}


def without_timestamp(body: dict) -> dict:
    """An analyze response minus the analysis time, which differs per call."""
    analysis = {k: v for k, v in body["analysis"].items() if k != "processed_at"}
    return {**body, "analysis": analysis}


@pytest.fixture
def upload_video(client):
    """Post a video as the given account; form fields can be overridden."""
    def _upload(account, filename="sprint.mp4", content_type="video/mp4", **fields):
        data = {
            "title": "Morning sprint",
            "sport": "athletics",
            "city": "Bengaluru",
            "state": "Karnataka",
            **BENGALURU,
        }
        data.update(fields)
        return client.post(
            "/api/v1/videos/upload",
            headers=account["headers"],
            data=data,
            files={"video": (filename, VIDEO_BYTES, content_type)},
        )

    return _upload


@pytest.fixture
def upload_assessment(client):
    def _upload(account, assessment_type="vertical_jump", with_video=True, **fields):
        data = {"assessment_type": assessment_type, **BENGALURU}
        data.update(fields)
        files = {"video": ("jump.mp4", VIDEO_BYTES, "video/mp4")} if with_video else None
        return client.post(
            "/api/v1/assessments/upload",
            headers=account["headers"],
            data=data,
            files=files,
        )

    return _upload


# ---------------------------------------------------------------------------
# Video Upload
# ---------------------------------------------------------------------------

class TestVideoUpload:

    def test_upload_stores_file_and_thumbnail(self, upload_video, athlete, storage):
        response = upload_video(athlete, tags="sprint, Speed ,")

        assert response.status_code == 201
        video = response.json()["video"]
        assert video["title"] == "Morning sprint"
        assert video["status"] == "pending"
        assert video["duration_seconds"] == 30.0
        assert video["location"] == {"latitude": 12.9716, "longitude": 77.5946}
        assert video["uploaded_by"] == athlete["user"]["id"]
        assert video["video_url"].startswith("mock://storage/videos/")
        assert asyncio.run(storage.download(video["storage_path"])) == VIDEO_BYTES
        assert asyncio.run(storage.download(video["thumbnail_path"])) == PLACEHOLDER_JPEG

    def test_practice_and_assignment_uploads_skip_moderation(self, upload_video, athlete):
        for video_type in ("assignment_submission", "gesture_practice"):
            response = upload_video(athlete, video_type=video_type)
            assert response.json()["video"]["status"] == "approved"

    def test_rejects_non_video_files(self, upload_video, athlete):
        response = upload_video(athlete, filename="notes.txt", content_type="text/plain")
        assert response.status_code == 400
        assert "Only video files are allowed" in response.json()["detail"]

    def test_rejects_bad_coordinates(self, upload_video, athlete):
        response = upload_video(athlete, latitude="95")
        assert response.status_code == 400
        assert response.json()["detail"] == "Coordinates out of valid range"

    def test_rejects_bad_share_radius_before_storing(self, upload_video, athlete, storage):
        response = upload_video(athlete, share_radius_km="900")
        assert response.status_code == 400
        assert response.json()["detail"] == "Share radius must be between 1 and 500 km"
        assert storage._objects == {}

    def test_requires_login(self, client):
        response = client.post(
            "/api/v1/videos/upload",
            data={"title": "x", "sport": "x", "city": "x", "state": "x", **BENGALURU},
            files={"video": ("a.mp4", VIDEO_BYTES, "video/mp4")},
        )
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# Video Discovery and Review
# ---------------------------------------------------------------------------

class TestNearbyVideos:

    def test_coach_sees_approved_videos_nearby(self, client, upload_video, athlete, coach):
        upload_video(athlete, title="Assignment", video_type="assignment_submission")
        upload_video(athlete, title="Awaiting moderation")
        upload_video(athlete, title="Far away", video_type="assignment_submission", **MUMBAI)

        response = client.get(
            "/api/v1/videos/nearby", params=NEAR_BENGALURU, headers=coach["headers"]
        )

        assert response.status_code == 200
        body = response.json()
        assert [v["title"] for v in body["videos"]] == ["Assignment"]
        assert body["search_params"]["radius_km"] == 50.0

    def test_athletes_only_see_public_or_own(self, client, register, upload_video, athlete):
        other = register("athlete", email="other@example.com")
        upload_video(athlete, title="Coaches only", video_type="assignment_submission")
        upload_video(athlete, title="Public", video_type="assignment_submission", visibility="public")

        mine = client.get("/api/v1/videos/nearby", params=BENGALURU, headers=athlete["headers"])
        theirs = client.get("/api/v1/videos/nearby", params=BENGALURU, headers=other["headers"])

        assert mine.json()["count"] == 2
        assert [v["title"] for v in theirs.json()["videos"]] == ["Public"]

    def test_officials_have_wider_default_radius(self, client, official):
        response = client.get(
            "/api/v1/videos/nearby", params=BENGALURU, headers=official["headers"]
        )
        assert response.json()["search_params"]["radius_km"] == 100.0

    def test_location_is_required(self, client, coach):
        response = client.get("/api/v1/videos/nearby", headers=coach["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == "Latitude and longitude are required"


class TestVideoEngagement:

    @pytest.fixture
    def video(self, upload_video, athlete):
        return upload_video(athlete, video_type="assignment_submission").json()["video"]

    def test_stream_serves_bytes_and_counts_views(self, client, video, coach):
        response = client.get(f"/api/v1/videos/{video['id']}/stream")

        assert response.status_code == 200
        assert response.content == VIDEO_BYTES
        assert response.headers["content-type"] == "video/mp4"

        fetched = client.get(f"/api/v1/videos/{video['id']}", headers=coach["headers"])
        assert fetched.json()["video"]["views"] == 1

    def test_thumbnail(self, client, video):
        response = client.get(f"/api/v1/videos/{video['id']}/thumbnail")
        assert response.status_code == 200
        assert response.content == PLACEHOLDER_JPEG

    def test_stream_missing_file(self, client, video, storage, coach):
        storage._clear()
        response = client.get(f"/api/v1/videos/{video['id']}/stream")
        assert response.status_code == 404
        assert response.json()["detail"] == "Video file not found on server"

        fetched = client.get(f"/api/v1/videos/{video['id']}", headers=coach["headers"])
        assert fetched.json()["video"]["views"] == 0

    def test_like_toggles(self, client, video, coach):
        url = f"/api/v1/videos/{video['id']}/like"
        assert client.post(url, headers=coach["headers"]).json() == {"liked": True, "like_count": 1}
        assert client.post(url, headers=coach["headers"]).json() == {"liked": False, "like_count": 0}

    def test_comment(self, client, video, coach):
        response = client.post(
            f"/api/v1/videos/{video['id']}/comment",
            json={"text": "Great drive phase"},
            headers=coach["headers"],
        )
        assert response.status_code == 201
        assert response.json()["comment_count"] == 1
        assert response.json()["comment"]["user_id"] == coach["user"]["id"]

    def test_my_videos(self, client, video, athlete, coach):
        assert client.get("/api/v1/videos/my-videos", headers=athlete["headers"]).json()["count"] == 1
        assert client.get("/api/v1/videos/my-videos", headers=coach["headers"]).json()["count"] == 0

    def test_unknown_video(self, client, coach):
        response = client.get(
            "/api/v1/videos/00000000-0000-0000-0000-000000000000", headers=coach["headers"]
        )
        assert response.status_code == 404


class TestVideoReview:

    def test_coach_verifies_assignment(self, client, upload_video, athlete, coach):
        video = upload_video(athlete, video_type="assignment_submission").json()["video"]

        response = client.put(
            f"/api/v1/videos/{video['id']}/verify",
            json={"status": "approved", "notes": "Clean technique"},
            headers=coach["headers"],
        )

        assert response.status_code == 200
        verified = response.json()["video"]
        assert verified["verification_status"] == "approved"
        assert verified["verified_by"] == coach["user"]["id"]

    def test_only_assignments_can_be_verified(self, client, upload_video, athlete, coach):
        video = upload_video(athlete).json()["video"]
        response = client.put(
            f"/api/v1/videos/{video['id']}/verify",
            json={"status": "approved"},
            headers=coach["headers"],
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Only assessment videos can be verified"

    def test_athletes_cannot_verify(self, client, upload_video, athlete):
        video = upload_video(athlete, video_type="assignment_submission").json()["video"]
        response = client.put(
            f"/api/v1/videos/{video['id']}/verify",
            json={"status": "approved"},
            headers=athlete["headers"],
        )
        assert response.status_code == 403

    def test_moderation_makes_video_discoverable(self, client, upload_video, athlete, coach, official):
        video = upload_video(athlete).json()["video"]
        def nearby():
            return client.get(
                "/api/v1/videos/nearby", params=BENGALURU, headers=coach["headers"]
            ).json()["count"]

        assert nearby() == 0

        response = client.put(
            f"/api/v1/videos/{video['id']}/moderate",
            json={"status": "approved"},
            headers=official["headers"],
        )

        assert response.status_code == 200
        assert response.json()["video"]["status"] == "approved"
        assert nearby() == 1

    def test_moderation_cannot_reset_to_pending(self, client, upload_video, athlete, official):
        video = upload_video(athlete).json()["video"]
        response = client.put(
            f"/api/v1/videos/{video['id']}/moderate",
            json={"status": "pending"},
            headers=official["headers"],
        )
        assert response.status_code == 400


class TestVideoDelete:

    def test_owner_deletes_video_and_files(self, client, upload_video, athlete, storage):
        video = upload_video(athlete).json()["video"]

        response = client.delete(f"/api/v1/videos/{video['id']}", headers=athlete["headers"])

        assert response.status_code == 200
        assert storage._objects == {}
        assert client.get(
            f"/api/v1/videos/{video['id']}", headers=athlete["headers"]
        ).status_code == 404

    def test_others_cannot_delete(self, client, upload_video, athlete, coach):
        video = upload_video(athlete).json()["video"]
        response = client.delete(f"/api/v1/videos/{video['id']}", headers=coach["headers"])
        assert response.status_code == 403

    def test_officials_can_delete(self, client, upload_video, athlete, official):
        video = upload_video(athlete).json()["video"]
        response = client.delete(f"/api/v1/videos/{video['id']}", headers=official["headers"])
        assert response.status_code == 200


class TestVideoAnalysis:

    def test_analysis_is_repeatable(self, client, athlete):
        body = {"video_url": "mock://storage/videos/a.mp4", "test_type": "vertical_jump"}
        first = client.post("/api/v1/videos/analyze", json=body, headers=athlete["headers"])
        second = client.post("/api/v1/videos/analyze", json=body, headers=athlete["headers"])

        assert first.status_code == 200
        assert without_timestamp(first.json()) == without_timestamp(second.json())
        assert 70 <= first.json()["analysis"]["form_analysis"]["overall_score"] <= 99


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------

class TestAssessmentUpload:

    def test_upload_with_video(self, upload_assessment, athlete):
        response = upload_assessment(athlete, attempt_number="2")

        assert response.status_code == 201
        assessment = response.json()["assessment"]
        assert assessment["display_name"] == "Vertical Jump"
        assert assessment["athlete_id"] == athlete["user"]["id"]
        assert assessment["sport"] == "athletics"
        assert assessment["attempt_number"] == 2
        assert assessment["verification_status"] == "pending"
        assert assessment["video_duration"] == 30.0
        assert assessment["thumbnail_path"]

    def test_video_tests_need_a_video(self, upload_assessment, athlete):
        response = upload_assessment(athlete, with_video=False)
        assert response.status_code == 400
        assert response.json()["detail"] == "A video is required for Vertical Jump"

    def test_measurement_tests_need_no_video(self, upload_assessment, athlete):
        response = upload_assessment(
            athlete,
            assessment_type="height_weight",
            with_video=False,
            raw_data='{"height_cm": 170, "weight_kg": 65}',
            test_conditions="not json",
            test_date="2024-05-01T10:00:00",
        )

        assert response.status_code == 201
        assessment = response.json()["assessment"]
        assert assessment["video_url"] is None
        assert assessment["raw_data"] == {"height_cm": 170, "weight_kg": 65}
        assert assessment["test_conditions"] == {}
        assert assessment["test_date"].startswith("2024-05-01T10:00:00")

    def test_only_athletes_upload(self, upload_assessment, coach):
        response = upload_assessment(coach)
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Required roles: athlete"


class TestAssessmentAnalysis:

    def test_analysis_is_saved_on_own_assessment(self, client, upload_assessment, athlete):
        assessment = upload_assessment(athlete).json()["assessment"]
        body = {
            "video_url": assessment["video_url"],
            "assessment_type": "vertical_jump",
            "assessment_id": assessment["id"],
        }

        first = client.post("/api/v1/assessments/analyze", json=body, headers=athlete["headers"])
        again = client.post("/api/v1/assessments/analyze", json=body, headers=athlete["headers"])

        assert first.json()["saved"] is True
        assert without_timestamp(first.json()) == without_timestamp(again.json())
        assert 60 <= first.json()["percentile"] < 90

        stored = client.get(
            f"/api/v1/assessments/{assessment['id']}", headers=athlete["headers"]
        ).json()["assessment"]
        assert stored["normalized_score"] == first.json()["normalized_score"]
        assert stored["percentile"] == first.json()["percentile"]

    def test_analysis_is_not_saved_on_someone_elses(self, client, upload_assessment, athlete, coach):
        assessment = upload_assessment(athlete).json()["assessment"]
        response = client.post("/api/v1/assessments/analyze", json={
            "video_url": assessment["video_url"],
            "assessment_type": "vertical_jump",
            "assessment_id": assessment["id"],
        }, headers=coach["headers"])

        assert response.json()["saved"] is False


class TestNearbyAssessments:

    def test_default_radius_is_50_km_for_every_role(
        self, client, upload_assessment, athlete, coach, official
    ):
        upload_assessment(athlete, **NORTH_OF_BENGALURU)

        for viewer in (athlete, coach, official):
            response = client.get(
                "/api/v1/assessments/nearby", params=BENGALURU, headers=viewer["headers"]
            )
            assert response.status_code == 200
            assert response.json()["count"] == 0
            assert response.json()["search_params"]["radius_km"] == 50.0
            assert response.json()["search_params"]["max_results"] == 20

    def test_wider_radius_on_request(self, client, upload_assessment, athlete, official):
        far = upload_assessment(athlete, **NORTH_OF_BENGALURU).json()["assessment"]

        response = client.get(
            "/api/v1/assessments/nearby",
            params={**BENGALURU, "radius": "100"},
            headers=official["headers"],
        )

        assert [a["id"] for a in response.json()["assessments"]] == [far["id"]]

    def test_max_results_keeps_newest(self, client, upload_assessment, athlete, coach):
        ids = [upload_assessment(athlete).json()["assessment"]["id"] for _ in range(3)]

        response = client.get(
            "/api/v1/assessments/nearby",
            params={**BENGALURU, "max_results": "2"},
            headers=coach["headers"],
        )

        assert response.json()["count"] == 2
        assert {a["id"] for a in response.json()["assessments"]} <= set(ids)

    def test_coordinates_are_required(self, client, coach):
        response = client.get(
            "/api/v1/assessments/nearby", params={"latitude": "12.9"}, headers=coach["headers"]
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Latitude and longitude are required"


class TestAssessmentReview:

    def test_nearby_hides_flagged(self, client, upload_assessment, athlete, coach):
        kept = upload_assessment(athlete).json()["assessment"]
        flagged = upload_assessment(athlete).json()["assessment"]
        upload_assessment(athlete, **MUMBAI)

        client.put(
            f"/api/v1/assessments/{flagged['id']}/verify",
            json={"status": "flagged", "notes": "Camera angle hides the take-off"},
            headers=coach["headers"],
        )

        response = client.get(
            "/api/v1/assessments/nearby", params=NEAR_BENGALURU, headers=coach["headers"]
        )

        assert response.status_code == 200
        assert [a["id"] for a in response.json()["assessments"]] == [kept["id"]]

    def test_verify(self, client, upload_assessment, athlete, coach):
        assessment = upload_assessment(athlete).json()["assessment"]
        url = f"/api/v1/assessments/{assessment['id']}/verify"

        pending = client.put(url, json={"status": "pending"}, headers=coach["headers"])
        assert pending.status_code == 400

        verified = client.put(url, json={"status": "verified"}, headers=coach["headers"])
        assert verified.status_code == 200
        assert verified.json()["assessment"]["verification_status"] == "verified"
        assert verified.json()["assessment"]["verified_by"] == coach["user"]["id"]

    def test_comment_records_author_role(self, client, upload_assessment, athlete, coach):
        assessment = upload_assessment(athlete).json()["assessment"]
        response = client.post(
            f"/api/v1/assessments/{assessment['id']}/comment",
            json={"content": "Bend the knees more", "type": "improvement_suggestion"},
            headers=coach["headers"],
        )

        assert response.status_code == 201
        comment = response.json()["comment"]
        assert comment["type"] == "improvement_suggestion"
        assert comment["author_role"] == "coach"

    def test_like_and_my_assessments(self, client, upload_assessment, athlete, coach):
        assessment = upload_assessment(athlete).json()["assessment"]
        like = client.post(
            f"/api/v1/assessments/{assessment['id']}/like", headers=coach["headers"]
        )
        assert like.json() == {"liked": True, "like_count": 1}

        mine = client.get("/api/v1/assessments/my-assessments", headers=athlete["headers"])
        assert mine.json()["count"] == 1

    def test_stream(self, client, upload_assessment, athlete):
        with_video = upload_assessment(athlete).json()["assessment"]
        without = upload_assessment(
            athlete, assessment_type="flexibility", with_video=False
        ).json()["assessment"]

        assert client.get(f"/api/v1/assessments/{with_video['id']}/stream").content == VIDEO_BYTES
        missing = client.get(f"/api/v1/assessments/{without['id']}/stream")
        assert missing.status_code == 404

    def test_failed_stream_counts_no_view(self, client, upload_assessment, athlete, storage):
        assessment = upload_assessment(athlete).json()["assessment"]
        storage._clear()

        response = client.get(f"/api/v1/assessments/{assessment['id']}/stream")
        assert response.status_code == 404

        stored = client.get(
            f"/api/v1/assessments/{assessment['id']}", headers=athlete["headers"]
        ).json()["assessment"]
        assert stored["views"] == 0

    def test_delete_needs_owner_or_admin(self, client, upload_assessment, athlete, official):
        assessment = upload_assessment(athlete).json()["assessment"]
        url = f"/api/v1/assessments/{assessment['id']}"

        assert client.delete(url, headers=official["headers"]).status_code == 403
        assert client.delete(url, headers=athlete["headers"]).status_code == 200
        assert client.get(url, headers=athlete["headers"]).status_code == 404
