"""
Per-sport analytics across completed practice sessions.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from .models import AnalysisStatus, GestureAnalysis


@dataclass(frozen=True)
class SportAnalytics:
    avg_overall_score: float = 0.0
    avg_form_accuracy: float = 0.0
    avg_consistency_score: float = 0.0
    total_analyses: int = 0
    total_violations: int = 0
    common_violations: list[tuple[str, int]] = field(default_factory=list)


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def sport_analytics(
    analyses: Iterable[GestureAnalysis],
    sport: str,
    timeframe_days: int = 30,
    now: Optional[datetime] = None,
) -> SportAnalytics:
    """Averages over completed sessions for `sport` in the last N days."""
    since = (now or datetime.now(timezone.utc)) - timedelta(days=timeframe_days)
    window = [
        a for a in analyses
        if a.sport.value == sport
        and a.status == AnalysisStatus.COMPLETED
        and a.created_at >= since
    ]
    if not window:
        return SportAnalytics()

    rule_counts = Counter(v.rule_name for a in window for v in a.violations)
    return SportAnalytics(
        avg_overall_score=_mean([a.analysis_results.overall_score for a in window]),
        avg_form_accuracy=_mean([a.analysis_results.form_accuracy for a in window]),
        avg_consistency_score=_mean([a.analysis_results.consistency_score for a in window]),
        total_analyses=len(window),
        total_violations=sum(a.violation_count for a in window),
        common_violations=rule_counts.most_common(),
    )
