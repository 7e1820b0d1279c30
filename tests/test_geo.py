import math

import pytest

from care_dispatch.errors import InvalidArgument
from care_dispatch.geo import (
    EARTH_RADIUS_KM,
    haversine_km,
    origin_point,
    parse_geo_point,
    point_to_json,
)
from care_dispatch.models import GeoPoint


def test_distance_to_self_is_exactly_zero() -> None:
    nairobi = GeoPoint(-1.2921, 36.8219)
    assert haversine_km(nairobi, nairobi) == 0.0


def test_distance_between_known_cities() -> None:
    paris = GeoPoint(48.8566, 2.3522)
    london = GeoPoint(51.5074, -0.1278)
    assert haversine_km(paris, london) == pytest.approx(343.5, abs=2.0)


def test_pole_to_pole_is_half_circumference() -> None:
    north = GeoPoint(90.0, 0.0)
    south = GeoPoint(-90.0, 0.0)
    assert haversine_km(north, south) == pytest.approx(math.pi * EARTH_RADIUS_KM, abs=1e-6)


def test_distance_is_symmetric() -> None:
    a = GeoPoint(-1.3, 36.8)
    b = GeoPoint(-1.28, 36.83)
    assert haversine_km(a, b) == pytest.approx(haversine_km(b, a))


def test_zero_coordinates_are_valid() -> None:
    point = origin_point(0.0, 36.8)
    assert point.latitude == 0.0
    assert origin_point(0, 0) == GeoPoint(0.0, 0.0)


def test_numeric_strings_are_accepted() -> None:
    assert origin_point("-1.2921", " 36.8219 ") == GeoPoint(-1.2921, 36.8219)


@pytest.mark.parametrize(
    ("latitude", "longitude"),
    [
        (None, 36.8),
        (-1.29, None),
        ("", 36.8),
        ("north", 36.8),
        (float("nan"), 36.8),
        (-1.29, float("inf")),
        (True, 36.8),
        (91.0, 36.8),
        (-1.29, 180.5),
        ([1.0], 36.8),
    ],
)
def test_invalid_coordinates_are_rejected(latitude, longitude) -> None:
    with pytest.raises(InvalidArgument):
        origin_point(latitude, longitude)


def test_parse_geo_point_reads_both_key_styles() -> None:
    assert parse_geo_point({"lat": -1.3, "lng": 36.8}) == GeoPoint(-1.3, 36.8)
    parsed = parse_geo_point(
        {"latitude": 0, "longitude": 36.8, "accuracy": 12, "timestamp": "2024-01-01T10:00:00Z"}
    )
    assert parsed == GeoPoint(0.0, 36.8, accuracy=12.0, timestamp="2024-01-01T10:00:00Z")


@pytest.mark.parametrize(
    "raw",
    [None, "(-1.3, 36.8)", {}, {"lat": "-1.3", "lng": "36.8"}, {"lat": -1.3}, [1, 2]],
)
def test_parse_geo_point_rejects_malformed_values(raw) -> None:
    assert parse_geo_point(raw) is None


def test_point_to_json_omits_missing_fields() -> None:
    assert point_to_json(GeoPoint(-1.3, 36.8)) == {"lat": -1.3, "lng": 36.8}
    assert point_to_json(None) is None


def test_near_antipodal_points_do_not_overflow() -> None:
    a = GeoPoint(0.08, 0.0)
    b = GeoPoint(-0.08, 180.0)
    distance = haversine_km(a, b)
    assert math.isfinite(distance)
    assert distance == pytest.approx(math.pi * EARTH_RADIUS_KM, rel=1e-6)
