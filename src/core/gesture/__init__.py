"""
Gesture practice: sessions, the rule catalog and the pose rule checker.
"""

from .analytics import SportAnalytics, sport_analytics
from .models import (
    MAX_VIOLATIONS_PER_ATTEMPT,
    AnalysisResults,
    AnalysisStatus,
    GestureAnalysis,
    GestureAnalysisError,
    GestureCategory,
    GestureSport,
    RecordingMetadata,
    RecordingQuality,
    Severity,
    Violation,
)
from .pose import Landmark, PracticeMonitor
from .rules import (
    GestureRule,
    ImprovementArea,
    Priority,
    improvement_suggestions,
    rules_for,
)

__all__ = [
    "SportAnalytics",
    "sport_analytics",
    "MAX_VIOLATIONS_PER_ATTEMPT",
    "AnalysisResults",
    "AnalysisStatus",
    "GestureAnalysis",
    "GestureAnalysisError",
    "GestureCategory",
    "GestureSport",
    "RecordingMetadata",
    "RecordingQuality",
    "Severity",
    "Violation",
    "Landmark",
    "PracticeMonitor",
    "GestureRule",
    "ImprovementArea",
    "Priority",
    "improvement_suggestions",
    "rules_for",
]
