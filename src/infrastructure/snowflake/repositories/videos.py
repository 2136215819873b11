"""
Snowflake repository for uploaded videos.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from src.core.media.geo import bounding_box
from src.core.media.models import GeoPoint, Video
from src.core.media.visibility import NearbyPolicy, filter_nearby_videos

from .documents import DocumentRepository, RecordNotFoundError, decode_document

logger = logging.getLogger(__name__)


class VideoRepository(DocumentRepository[Video]):
    table = "videos"
    columns = (
        "uploaded_by",
        "status",
        "visibility",
        "sport",
        "category",
        "video_type",
        "latitude",
        "longitude",
        "created_at",
    )

    def _column_values(self, video: Video) -> tuple:
        return (
            str(video.uploaded_by),
            video.status.value,
            video.visibility.value,
            video.sport,
            video.category.value,
            video.video_type.value,
            video.location.latitude,
            video.location.longitude,
            video.created_at,
        )

    def _from_document(self, data: dict[str, Any]) -> Video:
        return decode_document(Video, data)

    def save(self, video: Video) -> Video:
        self._upsert(video)
        return video

    def get(self, video_id: UUID) -> Video:
        return self._get(video_id, "Video")

    def find(self, video_id: UUID) -> Optional[Video]:
        try:
            return self.get(video_id)
        except RecordNotFoundError:
            return None

    def delete(self, video_id: UUID) -> bool:
        deleted = self._delete([("id", "=", str(video_id))])
        if deleted:
            logger.info("Deleted video", extra={"video_id": str(video_id)})
        return deleted > 0

    def list_by_uploader(self, uploader_id: UUID) -> list[Video]:
        return self._find(
            [("uploaded_by", "=", str(uploader_id))],
            order_by="created_at",
        )

    def nearby(
        self,
        center: GeoPoint,
        radius_km: float,
        policy: NearbyPolicy,
        sport: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[Video]:
        """
        Videos within radius_km of center that the policy lets the viewer see.

        The bounding box and status go to SQL; exact distance and the
        rest of the policy are applied to the candidates.
        """
        box = bounding_box(center, radius_km)
        conditions = [
            ("latitude", "BETWEEN", (box.min_latitude, box.max_latitude)),
            ("longitude", "BETWEEN", (box.min_longitude, box.max_longitude)),
            ("status", "IN", [s.value for s in policy.statuses]),
        ]
        if sport:
            conditions.append(("sport", "=", sport))
        if category:
            conditions.append(("category", "=", category))

        candidates = self._find(conditions, order_by="created_at")
        return filter_nearby_videos(candidates, center, radius_km, policy, sport, category)
