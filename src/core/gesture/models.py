"""
Domain models for gesture practice sessions.

A session is one athlete practising one movement (e.g. athletics sprint)
for a number of attempts while a pose checker watches for rule
violations. Each attempt stops after MAX_VIOLATIONS_PER_ATTEMPT
violations. When the session completes we turn the violations into
scores and a short list of things to work on.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .rules import GestureRule, ImprovementArea, improvement_suggestions

MAX_VIOLATIONS_PER_ATTEMPT = 3
MAX_ATTEMPTS = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GestureSport(Enum):
    ATHLETICS = "athletics"
    FOOTBALL = "football"
    BASKETBALL = "basketball"
    SWIMMING = "swimming"
    CRICKET = "cricket"
    BADMINTON = "badminton"
    WRESTLING = "wrestling"
    BOXING = "boxing"


class GestureCategory(Enum):
    SPRINT = "sprint"
    LONG_JUMP = "long_jump"
    HIGH_JUMP = "high_jump"
    SHOT_PUT = "shot_put"
    DRIBBLING = "dribbling"
    SHOOTING = "shooting"
    PASSING = "passing"
    GENERAL = "general"


class Severity(Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class AnalysisStatus(Enum):
    RECORDING = "recording"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class RecordingQuality(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GestureAnalysisError(Exception):
    """Raised when a session is asked to do something its state forbids."""
    pass


@dataclass(frozen=True)
class Violation:
    """A single rule broken at a point in an attempt."""
    attempt_number: int
    timestamp_ms: float
    rule_name: str
    rule_description: str
    severity: Severity = Severity.MAJOR
    landmark_data: Optional[Any] = None

    def __post_init__(self) -> None:
        if self.attempt_number < 1:
            raise ValueError("Attempt number must be at least 1")
        if self.timestamp_ms < 0:
            raise ValueError("Timestamp cannot be negative")
        if not self.rule_name:
            raise ValueError("Rule name is required")


@dataclass
class AnalysisResults:
    overall_score: int = 0
    form_accuracy: int = 0
    consistency_score: int = 0
    improvement_areas: list[ImprovementArea] = field(default_factory=list)


@dataclass
class RecordingMetadata:
    duration: float = 0.0
    fps: int = 30
    width: Optional[int] = None
    height: Optional[int] = None
    recording_quality: RecordingQuality = RecordingQuality.MEDIUM


@dataclass
class GestureAnalysis:
    """
    One practice session.

    Aggregate root: violations and results are only changed through
    its methods so the attempt limits hold.
    """
    athlete_id: UUID
    sport: GestureSport
    category: GestureCategory
    id: UUID = field(default_factory=uuid4)
    video_id: Optional[UUID] = None
    total_attempts: int = 1
    violations: list[Violation] = field(default_factory=list)
    rules_applied: list[GestureRule] = field(default_factory=list)
    analysis_results: AnalysisResults = field(default_factory=AnalysisResults)
    recording_metadata: RecordingMetadata = field(default_factory=RecordingMetadata)
    status: AnalysisStatus = AnalysisStatus.RECORDING
    created_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not 1 <= self.total_attempts <= MAX_ATTEMPTS:
            raise ValueError(f"Total attempts must be between 1 and {MAX_ATTEMPTS}")

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    @property
    def is_completed(self) -> bool:
        return self.status == AnalysisStatus.COMPLETED

    @property
    def success_rate(self) -> float:
        """Share of attempts not ended by violations, as a percentage."""
        successful = self.total_attempts - min(self.violation_count, MAX_VIOLATIONS_PER_ATTEMPT)
        return successful / self.total_attempts * 100

    def violations_in_attempt(self, attempt_number: int) -> int:
        return sum(1 for v in self.violations if v.attempt_number == attempt_number)

    def add_violation(
        self,
        attempt_number: int,
        timestamp_ms: float,
        rule_name: str,
        rule_description: str,
        severity: Severity = Severity.MAJOR,
        landmark_data: Optional[Any] = None,
    ) -> int:
        """Record a violation. Returns the count for that attempt."""
        if self.is_completed:
            raise GestureAnalysisError("Cannot add violations to a completed analysis")

        self.violations.append(
            Violation(
                attempt_number=attempt_number,
                timestamp_ms=timestamp_ms,
                rule_name=rule_name,
                rule_description=rule_description,
                severity=severity,
                landmark_data=landmark_data,
            )
        )
        return self.violations_in_attempt(attempt_number)

    def calculate_scores(self) -> AnalysisResults:
        """
        Scores from violations.

        Form accuracy falls linearly with violations against the worst
        case (every attempt stopped). Consistency falls with the variance
        of violations across attempts, so one bad attempt costs more than
        the same violations spread evenly.
        """
        total = self.violation_count
        worst_case = self.total_attempts * MAX_VIOLATIONS_PER_ATTEMPT
        form = max(0.0, 100 - total / worst_case * 100)

        by_attempt = Counter(v.attempt_number for v in self.violations)
        counts = [by_attempt.get(n, 0) for n in range(1, self.total_attempts + 1)]
        mean = total / self.total_attempts
        variance = sum((c - mean) ** 2 for c in counts) / self.total_attempts
        consistency = max(0.0, 100 - variance * 20)

        self.analysis_results.form_accuracy = round(form)
        self.analysis_results.consistency_score = round(consistency)
        self.analysis_results.overall_score = round(form * 0.7 + consistency * 0.3)
        return self.analysis_results

    def complete(
        self,
        duration: float,
        total_attempts: int,
        metadata: Optional[RecordingMetadata] = None,
    ) -> AnalysisResults:
        if self.is_completed:
            raise GestureAnalysisError("Analysis is already completed")
        if not 1 <= total_attempts <= MAX_ATTEMPTS:
            raise ValueError(f"Total attempts must be between 1 and {MAX_ATTEMPTS}")

        self.total_attempts = total_attempts
        if metadata is not None:
            self.recording_metadata = metadata
        self.recording_metadata.duration = duration

        self.calculate_scores()
        self.analysis_results.improvement_areas = improvement_suggestions(
            v.rule_name for v in self.violations
        )
        self.status = AnalysisStatus.COMPLETED
        self.completed_at = _now()
        return self.analysis_results
