"""
Video processing service using FFmpeg.

Uploads are probed for their duration and get a JPEG thumbnail taken a
second in. Both are nice-to-haves: an upload must succeed even when the
host has no FFmpeg or the file is in a format FFmpeg cannot read, so
`describe_upload` turns every processing failure into a warning and
empty values.

Why server-side processing instead of client-side:
- Works on all browsers
- Consistent results regardless of client device
"""

import asyncio
import json
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class VideoProcessingError(Exception):
    """Raised when FFmpeg cannot process a video."""
    pass


@dataclass
class VideoInfo:
    """Video metadata extracted via FFprobe."""
    duration_seconds: float
    width: int
    height: int
    fps: float
    codec: str
    file_size_bytes: int


@dataclass
class UploadMedia:
    """What processing learned about an upload. Fields are None on failure."""
    duration_seconds: Optional[float] = None
    thumbnail: Optional[bytes] = None


class VideoProcessor(Protocol):
    """Protocol for video processing operations."""

    async def get_video_info(self, video_data: bytes) -> VideoInfo:
        """Extract metadata from video."""
        ...

    async def extract_thumbnail(self, video_data: bytes, at_seconds: float = 1.0) -> bytes:
        """Extract a single JPEG frame."""
        ...


class FFmpegVideoProcessor:
    """
    Video processor using FFmpeg/FFprobe.

    All operations use temporary files because FFmpeg works best with
    file paths. We write the video data to a temp file, process it,
    read the output, then clean up.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path

    async def _run(self, cmd: list[str], timeout: int) -> subprocess.CompletedProcess:
        try:
            return await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                timeout=timeout
            )
        except FileNotFoundError:
            raise VideoProcessingError(f"{cmd[0]} not found. Install with: apt-get install ffmpeg")
        except subprocess.TimeoutExpired:
            raise VideoProcessingError(f"{cmd[0]} timed out after {timeout}s")

    async def get_video_info(self, video_data: bytes) -> VideoInfo:
        """
        Extract video metadata using FFprobe.

        FFprobe outputs JSON with stream info - we parse that to get
        duration, resolution, fps, codec.
        """
        with tempfile.NamedTemporaryFile(suffix=".mp4", delete=False) as tmp:
            tmp.write(video_data)
            tmp_path = tmp.name

        try:
            result = await self._run([
                self._ffprobe,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                tmp_path
            ], timeout=30)

            if result.returncode != 0:
                raise VideoProcessingError(f"FFprobe failed: {result.stderr.decode(errors='replace')}")

            info = json.loads(result.stdout)

            video_stream = next(
                (s for s in info.get("streams", []) if s.get("codec_type") == "video"),
                None,
            )
            if not video_stream:
                raise VideoProcessingError("No video stream found")

            # fps can be a fraction like "30000/1001"
            fps_str = video_stream.get("r_frame_rate", "30/1")
            if "/" in fps_str:
                num, denom = fps_str.split("/")
                fps = float(num) / float(denom) if float(denom) else 0.0
            else:
                fps = float(fps_str)

            duration = float(info.get("format", {}).get("duration", 0))
            if duration == 0:
                duration = float(video_stream.get("duration", 0))

            return VideoInfo(
                duration_seconds=duration,
                width=int(video_stream.get("width", 0)),
                height=int(video_stream.get("height", 0)),
                fps=fps,
                codec=video_stream.get("codec_name", "unknown"),
                file_size_bytes=len(video_data),
            )

        finally:
            os.unlink(tmp_path)

    async def extract_thumbnail(self, video_data: bytes, at_seconds: float = 1.0) -> bytes:
        """
        Extract one frame as a JPEG, scaled to 640px wide.

        -ss before -i for fast seeking; -frames:v 1 for a single frame.
        """
        with tempfile.NamedTemporaryFile(suffix=".mp4", delete=False) as tmp:
            tmp.write(video_data)
            video_path = tmp.name

        try:
            with tempfile.TemporaryDirectory() as output_dir:
                output_path = os.path.join(output_dir, "thumbnail.jpg")
                result = await self._run([
                    self._ffmpeg,
                    "-ss", str(at_seconds),
                    "-i", video_path,
                    "-frames:v", "1",
                    "-vf", "scale=640:-2",
                    "-q:v", "3",
                    "-y",
                    output_path
                ], timeout=20)

                if result.returncode != 0 or not os.path.exists(output_path):
                    raise VideoProcessingError(
                        f"Thumbnail extraction failed: {result.stderr.decode(errors='replace')[-300:]}"
                    )

                with open(output_path, "rb") as f:
                    return f.read()
        finally:
            os.unlink(video_path)


# Minimal valid 1x1 JPEG
PLACEHOLDER_JPEG = bytes([
    0xFF, 0xD8, 0xFF, 0xE0, 0x00, 0x10, 0x4A, 0x46, 0x49, 0x46, 0x00, 0x01,
    0x01, 0x00, 0x00, 0x01, 0x00, 0x01, 0x00, 0x00, 0xFF, 0xDB, 0x00, 0x43,
    0x00, 0x08, 0x06, 0x06, 0x07, 0x06, 0x05, 0x08, 0x07, 0x07, 0x07, 0x09,
    0x09, 0x08, 0x0A, 0x0C, 0x14, 0x0D, 0x0C, 0x0B, 0x0B, 0x0C, 0x19, 0x12,
    0x13, 0x0F, 0x14, 0x1D, 0x1A, 0x1F, 0x1E, 0x1D, 0x1A, 0x1C, 0x1C, 0x20,
    0x24, 0x2E, 0x27, 0x20, 0x22, 0x2C, 0x23, 0x1C, 0x1C, 0x28, 0x37, 0x29,
    0x2C, 0x30, 0x31, 0x34, 0x34, 0x34, 0x1F, 0x27, 0x39, 0x3D, 0x38, 0x32,
    0x3C, 0x2E, 0x33, 0x34, 0x32, 0xFF, 0xC0, 0x00, 0x0B, 0x08, 0x00, 0x01,
    0x00, 0x01, 0x01, 0x01, 0x11, 0x00, 0xFF, 0xC4, 0x00, 0x14, 0x00, 0x01,
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
    0x00, 0x00, 0x00, 0x09, 0xFF, 0xDA, 0x00, 0x08, 0x01, 0x01, 0x00, 0x00,
    0x3F, 0x00, 0xD2, 0xCF, 0x20, 0xFF, 0xD9,
])


class MockVideoProcessor:
    """
    Mock video processor for local development without FFmpeg.

    Returns fixed video info and a placeholder thumbnail.
    Set `fail` to simulate FFmpeg errors.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        logger.info("Initialized mock video processor")

    async def get_video_info(self, video_data: bytes) -> VideoInfo:
        if self.fail:
            raise VideoProcessingError("Mock processor is configured to fail")
        return VideoInfo(
            duration_seconds=30.0,
            width=1920,
            height=1080,
            fps=30.0,
            codec="h264",
            file_size_bytes=len(video_data),
        )

    async def extract_thumbnail(self, video_data: bytes, at_seconds: float = 1.0) -> bytes:
        if self.fail:
            raise VideoProcessingError("Mock processor is configured to fail")
        return PLACEHOLDER_JPEG


async def describe_upload(processor: VideoProcessor, video_data: bytes) -> UploadMedia:
    """Duration and thumbnail for an upload, never raising."""
    media = UploadMedia()

    try:
        info = await processor.get_video_info(video_data)
        media.duration_seconds = round(info.duration_seconds, 2)
    except (VideoProcessingError, ValueError) as e:
        logger.warning("Could not read video duration", extra={"error": str(e)})

    try:
        media.thumbnail = await processor.extract_thumbnail(video_data)
    except VideoProcessingError as e:
        logger.warning("Could not extract thumbnail", extra={"error": str(e)})

    return media


def create_video_processor(mock_mode: bool = False) -> VideoProcessor:
    """
    Factory function for video processor.

    Args:
        mock_mode: If True, return mock processor (no FFmpeg required)
    """
    if mock_mode:
        return MockVideoProcessor()

    return FFmpegVideoProcessor()
