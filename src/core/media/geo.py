"""
Great-circle distance helpers for the "nearby" queries.

The database can only filter on plain latitude/longitude columns, so a
nearby search is two steps: a cheap bounding box in SQL, then an exact
haversine distance here to drop the corners of the box.
"""

import math
from dataclasses import dataclass

from .models import GeoPoint

EARTH_RADIUS_KM = 6371.0088
KM_PER_DEGREE_LAT = math.pi * EARTH_RADIUS_KM / 180


@dataclass(frozen=True)
class BoundingBox:
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.min_latitude <= point.latitude <= self.max_latitude
            and self.min_longitude <= point.longitude <= self.max_longitude
        )


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def bounding_box(center: GeoPoint, radius_km: float) -> BoundingBox:
    """
    Lat/lng box that contains every point within radius_km of center.

    Longitude degrees shrink towards the poles; near a pole (or when the
    box would wrap the antimeridian) we give up on narrowing longitude.
    """
    if radius_km < 0:
        raise ValueError("Radius cannot be negative")

    dlat = radius_km / KM_PER_DEGREE_LAT
    min_lat = max(-90.0, center.latitude - dlat)
    max_lat = min(90.0, center.latitude + dlat)

    cos_lat = math.cos(math.radians(center.latitude))
    if cos_lat < 1e-6 or min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    dlng = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    min_lng = center.longitude - dlng
    max_lng = center.longitude + dlng
    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    return BoundingBox(min_lat, max_lat, min_lng, max_lng)


def within_radius(center: GeoPoint, point: GeoPoint, radius_km: float) -> bool:
    return haversine_km(center, point) <= radius_km
