"""
Snowflake repository for gesture practice sessions.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from src.core.gesture.models import AnalysisStatus, GestureAnalysis

from .documents import DocumentRepository, RecordNotFoundError, decode_document


class GestureAnalysisRepository(DocumentRepository[GestureAnalysis]):
    table = "gesture_analyses"
    columns = ("athlete_id", "video_id", "sport", "category", "status", "created_at")

    def _column_values(self, analysis: GestureAnalysis) -> tuple:
        return (
            str(analysis.athlete_id),
            str(analysis.video_id) if analysis.video_id else None,
            analysis.sport.value,
            analysis.category.value,
            analysis.status.value,
            analysis.created_at,
        )

    def _from_document(self, data: dict[str, Any]) -> GestureAnalysis:
        return decode_document(GestureAnalysis, data)

    def save(self, analysis: GestureAnalysis) -> GestureAnalysis:
        self._upsert(analysis)
        return analysis

    def get(self, analysis_id: UUID) -> GestureAnalysis:
        return self._get(analysis_id, "Gesture analysis")

    def find(self, analysis_id: UUID) -> Optional[GestureAnalysis]:
        try:
            return self.get(analysis_id)
        except RecordNotFoundError:
            return None

    def list_for_athlete(
        self,
        athlete_id: UUID,
        sport: Optional[str] = None,
        limit: int = 10,
    ) -> list[GestureAnalysis]:
        conditions = [("athlete_id", "=", str(athlete_id))]
        if sport:
            conditions.append(("sport", "=", sport))
        return self._find(conditions, order_by="created_at", limit=limit)

    def completed_since(self, sport: str, since: datetime) -> list[GestureAnalysis]:
        return self._find([
            ("sport", "=", sport),
            ("status", "=", AnalysisStatus.COMPLETED.value),
            ("created_at", ">=", since),
        ])
