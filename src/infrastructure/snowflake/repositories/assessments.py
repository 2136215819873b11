"""
Snowflake repository for fitness assessments.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from src.core.media.geo import bounding_box
from src.core.media.models import Assessment, GeoPoint
from src.core.media.scoring import AssessmentStats, assessment_stats
from src.core.media.visibility import (
    DEFAULT_ASSESSMENT_RESULTS,
    NEARBY_ASSESSMENT_STATUSES,
    filter_nearby_assessments,
)

from .documents import DocumentRepository, RecordNotFoundError, decode_document

logger = logging.getLogger(__name__)


class AssessmentRepository(DocumentRepository[Assessment]):
    table = "assessments"
    columns = (
        "athlete_id",
        "assessment_type",
        "verification_status",
        "sport",
        "category",
        "normalized_score",
        "latitude",
        "longitude",
        "test_date",
        "created_at",
    )

    def _column_values(self, assessment: Assessment) -> tuple:
        return (
            str(assessment.athlete_id),
            assessment.assessment_type.value,
            assessment.verification_status.value,
            assessment.sport,
            assessment.category,
            assessment.normalized_score,
            assessment.location.latitude,
            assessment.location.longitude,
            assessment.test_date,
            assessment.created_at,
        )

    def _from_document(self, data: dict[str, Any]) -> Assessment:
        return decode_document(Assessment, data)

    def save(self, assessment: Assessment) -> Assessment:
        self._upsert(assessment)
        return assessment

    def get(self, assessment_id: UUID) -> Assessment:
        return self._get(assessment_id, "Assessment")

    def find(self, assessment_id: UUID) -> Optional[Assessment]:
        try:
            return self.get(assessment_id)
        except RecordNotFoundError:
            return None

    def delete(self, assessment_id: UUID) -> bool:
        deleted = self._delete([("id", "=", str(assessment_id))])
        if deleted:
            logger.info("Deleted assessment", extra={"assessment_id": str(assessment_id)})
        return deleted > 0

    def list_for_athlete(self, athlete_id: UUID) -> list[Assessment]:
        """Newest test first."""
        return self._find(
            [("athlete_id", "=", str(athlete_id))],
            order_by="test_date",
        )

    def stats_for_athlete(self, athlete_id: UUID) -> AssessmentStats:
        return assessment_stats(self._find([("athlete_id", "=", str(athlete_id))]))

    def nearby(
        self,
        center: GeoPoint,
        radius_km: float,
        sport: Optional[str] = None,
        category: Optional[str] = None,
        max_results: int = DEFAULT_ASSESSMENT_RESULTS,
    ) -> list[Assessment]:
        box = bounding_box(center, radius_km)
        conditions = [
            ("latitude", "BETWEEN", (box.min_latitude, box.max_latitude)),
            ("longitude", "BETWEEN", (box.min_longitude, box.max_longitude)),
            ("verification_status", "IN", [s.value for s in NEARBY_ASSESSMENT_STATUSES]),
        ]
        if sport:
            conditions.append(("sport", "=", sport))
        if category:
            conditions.append(("category", "=", category))

        candidates = self._find(conditions, order_by="created_at")
        return filter_nearby_assessments(
            candidates, center, radius_km, sport, category, max_results
        )
