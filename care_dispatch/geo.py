"""
Great-circle geometry and coordinate validation.

Coordinates of ``0`` are legitimate (equator, prime meridian); only missing,
non-numeric, non-finite or out-of-range values are rejected.
"""
from __future__ import annotations

import math
from typing import Any, Mapping

from .errors import InvalidArgument
from .models import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """
    Distance in kilometers between two points using the haversine formula.

    Args:
        a: First point (degrees).
        b: Second point (degrees).

    Returns:
        Great-circle distance on a sphere of radius ``EARTH_RADIUS_KM``.
    """
    lat1 = math.radians(a.latitude)
    lon1 = math.radians(a.longitude)
    lat2 = math.radians(b.latitude)
    lon2 = math.radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h just outside [0, 1] for near-antipodal points.
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def coerce_coordinate(value: Any, name: str, bound: float) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidArgument(f"{name} is required.")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidArgument(f"{name} is required.")
        try:
            number = float(text)
        except ValueError as exc:
            raise InvalidArgument(f"{name} must be numeric, got {value!r}.") from exc
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        raise InvalidArgument(f"{name} must be numeric, got {type(value).__name__}.")

    if not math.isfinite(number):
        raise InvalidArgument(f"{name} must be a finite number.")
    if abs(number) > bound:
        raise InvalidArgument(f"{name} must be within [-{bound:g}, {bound:g}].")
    return number


def origin_point(latitude: Any, longitude: Any) -> GeoPoint:
    return GeoPoint(
        latitude=coerce_coordinate(latitude, "latitude", 90.0),
        longitude=coerce_coordinate(longitude, "longitude", 180.0),
    )


def validate_point(point: GeoPoint | None) -> GeoPoint:
    if point is None:
        raise InvalidArgument("origin is required.")
    return GeoPoint(
        latitude=coerce_coordinate(point.latitude, "latitude", 90.0),
        longitude=coerce_coordinate(point.longitude, "longitude", 180.0),
        accuracy=point.accuracy,
        altitude=point.altitude,
        timestamp=point.timestamp,
    )


def _optional_float(raw: Any) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return float(raw)


def parse_geo_point(raw: Any) -> GeoPoint | None:
    """Read a stored location mapping; anything malformed yields ``None``."""
    if not isinstance(raw, Mapping):
        return None
    lat = raw.get("lat", raw.get("latitude"))
    lng = raw.get("lng", raw.get("longitude"))
    if isinstance(lat, str) or isinstance(lng, str):
        return None
    try:
        point = origin_point(lat, lng)
    except InvalidArgument:
        return None
    timestamp = raw.get("timestamp")
    return GeoPoint(
        latitude=point.latitude,
        longitude=point.longitude,
        accuracy=_optional_float(raw.get("accuracy")),
        altitude=_optional_float(raw.get("altitude")),
        timestamp=str(timestamp) if timestamp is not None else None,
    )


def point_to_json(point: GeoPoint | None) -> dict[str, Any] | None:
    if point is None:
        return None
    payload: dict[str, Any] = {"lat": point.latitude, "lng": point.longitude}
    if point.accuracy is not None:
        payload["accuracy"] = point.accuracy
    if point.altitude is not None:
        payload["altitude"] = point.altitude
    if point.timestamp is not None:
        payload["timestamp"] = point.timestamp
    return payload
