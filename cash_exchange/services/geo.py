"""
Great-circle distance helpers.

Coordinates are WGS84 latitude/longitude in degrees; distances are metres on
a spherical earth. ``distance_expr`` builds the same haversine formula as a
SQL expression so radius filtering and ordering happen inside the query.
"""

import math
from typing import NamedTuple, Optional, Tuple

from sqlalchemy import Float, case, func

from ..exceptions import ValidationError

EARTH_RADIUS_M = 6371008.8


class GeoPoint(NamedTuple):
    latitude: float
    longitude: float

    @classmethod
    def of(cls, latitude, longitude):
        if latitude is None or longitude is None:
            raise ValidationError("Latitude and longitude are required")
        latitude, longitude = float(latitude), float(longitude)
        if not -90 <= latitude <= 90:
            raise ValidationError("Latitude must be between -90 and 90", latitude=latitude)
        if not -180 <= longitude <= 180:
            raise ValidationError("Longitude must be between -180 and 180", longitude=longitude)
        return cls(latitude, longitude)


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def bounding_box(origin: GeoPoint, radius_m: float) -> Tuple[float, float, Optional[float], Optional[float]]:
    """
    Latitude/longitude box enclosing the circle of ``radius_m`` around origin.

    Longitude bounds are ``None`` when the circle reaches a pole or crosses the
    antimeridian; callers then skip the longitude prefilter.
    """
    angular = radius_m / EARTH_RADIUS_M
    lat = math.radians(origin.latitude)
    min_lat = math.degrees(lat - angular)
    max_lat = math.degrees(lat + angular)
    if min_lat <= -90 or max_lat >= 90:
        return max(min_lat, -90.0), min(max_lat, 90.0), None, None

    dlon = math.degrees(math.asin(min(1.0, math.sin(angular) / math.cos(lat))))
    min_lon = origin.longitude - dlon
    max_lon = origin.longitude + dlon
    if min_lon < -180 or max_lon > 180:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lon, max_lon


def distance_expr(lat_col, lon_col, origin: GeoPoint):
    """SQL haversine distance in metres from ``origin`` to the row's point."""
    half_dlat = func.sin(func.radians(lat_col - origin.latitude, type_=Float) / 2.0, type_=Float)
    half_dlon = func.sin(func.radians(lon_col - origin.longitude, type_=Float) / 2.0, type_=Float)
    h = (
        half_dlat * half_dlat
        + func.cos(func.radians(lat_col, type_=Float), type_=Float)
        * math.cos(math.radians(origin.latitude))
        * half_dlon * half_dlon
    )
    clamped = case((h > 1.0, 1.0), else_=h)
    return 2 * EARTH_RADIUS_M * func.asin(func.sqrt(clamped, type_=Float), type_=Float)
