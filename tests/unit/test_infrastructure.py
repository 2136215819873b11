"""
Tests for the storage, video processing and email clients.

Nothing here talks to R2, SES or a real FFmpeg: local disk runs in a
temporary directory and the remote services are replaced by mocks.
"""

import asyncio

import pytest
from botocore.exceptions import ClientError

from src.infrastructure.email.client import (
    EmailDeliveryError,
    MockEmailClient,
    SesEmailClient,
    create_email_client,
    otp_message,
    password_changed_message,
)
from src.infrastructure.storage.client import (
    BACKEND_LOCAL,
    BACKEND_MOCK,
    FallbackStorageClient,
    FileTooLargeError,
    LocalDiskStorageClient,
    MockStorageClient,
    StorageConfig,
    StorageError,
    build_storage_path,
    create_storage_client,
)
from src.infrastructure.video.processor import (
    PLACEHOLDER_JPEG,
    FFmpegVideoProcessor,
    MockVideoProcessor,
    VideoProcessingError,
    create_video_processor,
    describe_upload,
)

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


# ---------------------------------------------------------------------------
# Storage Tests
# ---------------------------------------------------------------------------

class TestStoragePaths:

    def test_keeps_only_the_extension(self):
        path = build_storage_path("videos", "My Clip.MP4")
        folder, name = path.split("/")
        assert folder == "videos"
        assert name.endswith(".mp4")
        assert "clip" not in name.lower()

    def test_drops_suspicious_extensions(self):
        assert "." not in build_storage_path("videos", "clip.m-p4").split("/")[1]
        assert "." not in build_storage_path("videos", "no_extension").split("/")[1]

    def test_paths_are_unique(self):
        assert build_storage_path("videos", "a.mp4") != build_storage_path("videos", "a.mp4")


class TestLocalDiskStorage:

    def test_upload_download_delete(self, tmp_path):
        storage = LocalDiskStorageClient(str(tmp_path))

        stored = asyncio.run(storage.upload(VIDEO_BYTES, "videos", "clip.mp4", "video/mp4"))
        assert stored.backend == BACKEND_LOCAL
        assert stored.url == f"/uploads/{stored.storage_path}"
        assert stored.size_bytes == len(VIDEO_BYTES)
        assert (tmp_path / stored.storage_path).read_bytes() == VIDEO_BYTES
        assert storage.local_path(stored.storage_path) == (tmp_path / stored.storage_path).resolve()

        assert asyncio.run(storage.download(stored.storage_path)) == VIDEO_BYTES
        assert asyncio.run(storage.delete(stored.storage_path)) is True
        assert asyncio.run(storage.delete(stored.storage_path)) is False
        assert storage.local_path(stored.storage_path) is None

    def test_size_limit(self, tmp_path):
        storage = LocalDiskStorageClient(str(tmp_path), max_size_bytes=10)
        with pytest.raises(FileTooLargeError):
            asyncio.run(storage.upload(VIDEO_BYTES, "videos", "clip.mp4", "video/mp4"))

    def test_paths_cannot_escape_root(self, tmp_path):
        storage = LocalDiskStorageClient(str(tmp_path / "uploads"))
        with pytest.raises(StorageError, match="Invalid storage path"):
            asyncio.run(storage.download("../secrets.txt"))
        assert storage.local_path("../secrets.txt") is None

    def test_missing_file(self, tmp_path):
        storage = LocalDiskStorageClient(str(tmp_path))
        with pytest.raises(StorageError, match="not found"):
            asyncio.run(storage.get_presigned_url("videos/missing.mp4"))


class TestFallbackStorage:

    def test_failed_primary_upload_lands_on_local_disk(self, tmp_path):
        primary = MockStorageClient(fail_uploads=True)
        storage = FallbackStorageClient(primary, LocalDiskStorageClient(str(tmp_path)))

        stored = asyncio.run(storage.upload(VIDEO_BYTES, "videos", "clip.mp4", "video/mp4"))

        assert stored.backend == BACKEND_LOCAL
        assert storage.local_path(stored.storage_path) is not None
        assert asyncio.run(storage.download(stored.storage_path)) == VIDEO_BYTES
        assert asyncio.run(storage.get_presigned_url(stored.storage_path)).startswith("/uploads/")

    def test_primary_is_used_when_healthy(self, tmp_path):
        primary = MockStorageClient()
        storage = FallbackStorageClient(primary, LocalDiskStorageClient(str(tmp_path)))

        stored = asyncio.run(storage.upload(VIDEO_BYTES, "videos", "clip.mp4", "video/mp4"))

        assert stored.backend == BACKEND_MOCK
        assert storage.local_path(stored.storage_path) is None
        assert asyncio.run(storage.download(stored.storage_path)) == VIDEO_BYTES
        assert asyncio.run(storage.delete(stored.storage_path)) is True
        assert not list(tmp_path.rglob("*.mp4"))


class TestMockStorage:

    def test_round_trip(self):
        storage = MockStorageClient()
        stored = asyncio.run(storage.upload(b"data", "thumbnails", "t.jpg", "image/jpeg"))
        assert stored.url == f"mock://storage/{stored.storage_path}"
        assert asyncio.run(storage.download(stored.storage_path)) == b"data"

    def test_missing_object(self):
        with pytest.raises(StorageError):
            asyncio.run(MockStorageClient().download("videos/nope.mp4"))


class TestStorageFactory:

    def test_mock_mode(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)

    def test_local_only_without_r2(self, tmp_path):
        storage = create_storage_client(local_root=str(tmp_path))
        assert isinstance(storage, LocalDiskStorageClient)

    def test_r2_with_local_fallback(self, tmp_path):
        config = StorageConfig(
            access_key_id="key",
            secret_access_key="secret",
            bucket_name="sports-talent-media",
            endpoint_url="https://account.r2.cloudflarestorage.com",
        )
        storage = create_storage_client(config=config, local_root=str(tmp_path))
        assert isinstance(storage, FallbackStorageClient)


# ---------------------------------------------------------------------------
# Video Processor Tests
# ---------------------------------------------------------------------------

class TestVideoProcessor:

    def test_mock_describes_upload(self):
        media = asyncio.run(describe_upload(MockVideoProcessor(), VIDEO_BYTES))
        assert media.duration_seconds == 30.0
        assert media.thumbnail == PLACEHOLDER_JPEG

    def test_failures_become_empty_values(self):
        media = asyncio.run(describe_upload(MockVideoProcessor(fail=True), VIDEO_BYTES))
        assert media.duration_seconds is None
        assert media.thumbnail is None

    def test_missing_ffmpeg_is_a_processing_error(self):
        processor = FFmpegVideoProcessor(
            ffmpeg_path="/nonexistent/ffmpeg",
            ffprobe_path="/nonexistent/ffprobe",
        )
        with pytest.raises(VideoProcessingError, match="not found"):
            asyncio.run(processor.get_video_info(VIDEO_BYTES))

        media = asyncio.run(describe_upload(processor, VIDEO_BYTES))
        assert media.duration_seconds is None
        assert media.thumbnail is None

    def test_factory(self):
        assert isinstance(create_video_processor(mock_mode=True), MockVideoProcessor)
        assert isinstance(create_video_processor(), FFmpegVideoProcessor)


# ---------------------------------------------------------------------------
# Email Tests
# ---------------------------------------------------------------------------

class RejectingSes:
    """Stands in for the boto3 SES client and rejects every message."""

    def send_email(self, **kwargs):
        raise ClientError(
            {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified."}},
            "SendEmail",
        )


class TestEmail:

    def test_otp_message_contains_code_and_expiry(self):
        message = otp_message("asha@example.com", "482913", 10)
        assert message.to == "asha@example.com"
        assert "482913" in message.text and "482913" in message.html
        assert "10 minutes" in message.text

    def test_password_changed_message_greets_user(self):
        message = password_changed_message("asha@example.com", "Asha")
        assert message.text.startswith("Hi Asha")

    def test_mock_outbox(self):
        mailer = MockEmailClient()
        assert mailer.send(otp_message("a@example.com", "111111", 10)) == "mock-1"
        mailer.send(otp_message("b@example.com", "222222", 10))
        mailer.send(otp_message("a@example.com", "333333", 10))

        assert len(mailer.outbox) == 3
        assert "333333" in mailer.last_to("a@example.com").text
        assert mailer.last_to("c@example.com") is None

    def test_ses_rejection_is_a_delivery_error(self):
        mailer = SesEmailClient("no-reply@example.com", "ap-south-1")
        mailer._ses = RejectingSes()

        with pytest.raises(EmailDeliveryError, match="MessageRejected"):
            mailer.send(otp_message("a@example.com", "111111", 10))

    def test_factory_needs_sender_outside_mock_mode(self):
        assert isinstance(create_email_client(mock_mode=True), MockEmailClient)
        with pytest.raises(ValueError, match="sender"):
            create_email_client()
