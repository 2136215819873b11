"""
Video processing infrastructure.

Handles server-side video processing using FFmpeg:
- Video metadata extraction (duration, resolution)
- Thumbnail extraction for uploaded videos
"""

from .processor import (
    MockVideoProcessor,
    UploadMedia,
    VideoInfo,
    VideoProcessingError,
    VideoProcessor,
    create_video_processor,
    describe_upload,
)

__all__ = [
    "MockVideoProcessor",
    "UploadMedia",
    "VideoInfo",
    "VideoProcessingError",
    "VideoProcessor",
    "create_video_processor",
    "describe_upload",
]
