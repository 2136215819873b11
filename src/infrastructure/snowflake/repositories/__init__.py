"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .accounts import AccountRepository
from .assessments import AssessmentRepository
from .documents import DuplicateRecordError, RecordNotFoundError, SnowflakeConfig
from .gesture_analyses import GestureAnalysisRepository
from .otps import OtpRepository
from .videos import VideoRepository

__all__ = [
    "AccountRepository",
    "AssessmentRepository",
    "DuplicateRecordError",
    "GestureAnalysisRepository",
    "OtpRepository",
    "RecordNotFoundError",
    "SnowflakeConfig",
    "VideoRepository",
]
