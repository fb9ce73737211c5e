# tests/navigation/test_geography.py
import math

import pytest

from geonav.domain.entities.geography import (
    Bounds,
    GeoPoint,
    PlanePoint,
    haversine_m,
    normalize_latitude,
    normalize_longitude,
)


@pytest.mark.parametrize(
    "lon, expected",
    [(190.0, -170.0), (-181.0, 179.0), (151.2, 151.2), (540.0, -180.0)],
)
def test_longitude_wraps(lon, expected):
    assert normalize_longitude(lon) == pytest.approx(expected)


def test_latitude_clamps_and_rescales():
    assert normalize_latitude(95.0) == 90.0
    assert normalize_latitude(-33.87) == -33.87
    # microdegrees scaled back into range
    assert normalize_latitude(-33871800.0) == pytest.approx(-33.8718)
    assert math.isnan(normalize_latitude(float("nan")))


def test_geo_validity():
    assert GeoPoint(-33.87, 151.2).is_valid
    assert not GeoPoint(91.0, 0.0).is_valid
    assert not GeoPoint(0.0, float("inf")).is_valid


def test_haversine():
    a = GeoPoint(-33.8560, 151.1995)
    assert haversine_m(a, a) == 0.0
    # one degree of latitude is about 111.2 km
    assert haversine_m(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0)) == pytest.approx(111_195, rel=1e-3)
    # across the antimeridian
    assert haversine_m(GeoPoint(0.0, 179.5), GeoPoint(0.0, -179.5)) == pytest.approx(
        111_195, rel=1e-3
    )


def test_plane_helpers():
    a, b = PlanePoint(0.0, 0.0), PlanePoint(3.0, 4.0)
    assert a.distance_to(b) == 5.0
    assert a.lerp(b, 0.5) == PlanePoint(1.5, 2.0)
    assert not PlanePoint(float("nan"), 0.0).is_finite


def test_bounds():
    b = Bounds.around([PlanePoint(0, 0), PlanePoint(10, 20)])
    assert (b.width, b.height) == (10, 20)
    assert b.contains(PlanePoint(5, 5))
    assert not b.contains(PlanePoint(15, 5))
    assert b.contains(PlanePoint(15, 5), margin=5)
    assert b.distance_to(PlanePoint(13, 24)) == 5.0
    assert b.padded(0.1) == Bounds(-1, -2, 11, 22)
    assert Bounds.around([]) is None
