"""
Unit tests for the geodesy kernel
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.geo import (
    angular_distance,
    bearing,
    bounding_box,
    center_of,
    destination,
    distance,
    from_local_cartesian,
    normalize_bearing,
    to_local_cartesian,
)
from common.types import GeoPoint

ORIGINS = [
    GeoPoint(0.0, 0.0),
    GeoPoint(45.0, -120.0, 250.0),
    GeoPoint(-33.9, 151.2),
    GeoPoint(-15.79, -47.88, 1100.0),
    GeoPoint(60.0, 10.0),
]


class TestDistance:
    """Haversine distance"""

    @pytest.mark.parametrize("p", ORIGINS)
    def test_distance_to_self_is_zero(self, p):
        assert distance(p, p) == pytest.approx(0.0, abs=1e-6)

    def test_one_degree_of_latitude(self):
        d = distance(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0))
        assert d == pytest.approx(111195.0, rel=1e-4)

    def test_symmetric(self):
        a, b = ORIGINS[1], ORIGINS[3]
        assert distance(a, b) == pytest.approx(distance(b, a))

    def test_angular_distance_radians(self):
        assert angular_distance(GeoPoint(0.0, 0.0), GeoPoint(0.0, 90.0)) == pytest.approx(np.pi / 2)


class TestDestination:
    """Forward projection and its round trip with distance()"""

    @pytest.mark.parametrize("origin", ORIGINS)
    @pytest.mark.parametrize("d", [1.0, 1000.0, 50000.0, 500000.0])
    @pytest.mark.parametrize("b", [0.0, 45.0, 137.0, 270.0, 359.0])
    def test_round_trip(self, origin, d, b):
        p = destination(origin, d, b)
        assert distance(origin, p) == pytest.approx(d, rel=1e-4)

    def test_zero_distance_is_origin(self):
        o = ORIGINS[3]
        p = destination(o, 0.0, 123.0)
        assert p.latitude == pytest.approx(o.latitude)
        assert p.longitude == pytest.approx(o.longitude)

    def test_altitude_carried_over(self):
        o = GeoPoint(10.0, 10.0, 321.0)
        assert destination(o, 5000.0, 90.0).altitude == 321.0

    def test_longitude_wraps_across_antimeridian(self):
        p = destination(GeoPoint(0.0, 179.9), 50000.0, 90.0)
        assert -180.0 <= p.longitude < -179.0

    def test_bearing_of_destination(self):
        o = GeoPoint(-15.79, -47.88)
        p = destination(o, 2000.0, 60.0)
        assert bearing(o, p) == pytest.approx(60.0, abs=1e-6)


class TestBearing:
    def test_due_east_on_equator(self):
        assert bearing(GeoPoint(0.0, 0.0), GeoPoint(0.0, 1.0)) == pytest.approx(90.0)

    def test_due_south(self):
        assert bearing(GeoPoint(10.0, 5.0), GeoPoint(9.0, 5.0)) == pytest.approx(180.0)

    @pytest.mark.parametrize("raw,expected", [(-1.0, 359.0), (360.0, 0.0), (725.0, 5.0), (0.0, 0.0)])
    def test_normalize_bearing(self, raw, expected):
        assert normalize_bearing(raw) == pytest.approx(expected)

    def test_normalize_tiny_negative_stays_below_360(self):
        assert normalize_bearing(-1e-17) < 360.0


class TestLocalCartesian:
    """Equirectangular tangent plane"""

    def test_origin_maps_to_zero(self):
        o = ORIGINS[1]
        assert np.allclose(to_local_cartesian(o, o), [0.0, 0.0, 0.0])

    def test_axes(self):
        o = GeoPoint(45.0, 7.0, 100.0)
        east = to_local_cartesian(destination(o, 1000.0, 90.0), o)
        north = to_local_cartesian(destination(o, 1000.0, 0.0), o)
        assert east[0] == pytest.approx(1000.0, abs=0.5)
        assert east[1] == pytest.approx(0.0, abs=0.5)
        assert north[1] == pytest.approx(1000.0, abs=0.5)
        assert north[0] == pytest.approx(0.0, abs=1e-6)

    def test_altitude_is_up(self):
        o = GeoPoint(1.0, 1.0, 100.0)
        assert to_local_cartesian(GeoPoint(1.0, 1.0, 350.0), o)[2] == pytest.approx(250.0)

    @pytest.mark.parametrize("xyz", [(0.0, 0.0, 0.0), (1200.0, -300.0, 45.0), (-5000.0, 8000.0, -20.0)])
    def test_inverse(self, xyz):
        o = GeoPoint(-15.79, -47.88, 1100.0)
        p = from_local_cartesian(xyz, o)
        assert np.allclose(to_local_cartesian(p, o), xyz, atol=1e-6)

    def test_short_way_across_antimeridian(self):
        a, b = GeoPoint(0.0, 179.99), GeoPoint(0.0, -179.99)
        xyz = to_local_cartesian(b, a)
        assert xyz[0] == pytest.approx(distance(a, b), rel=1e-3)
        assert to_local_cartesian(a, b)[0] == pytest.approx(-xyz[0], rel=1e-6)

    def test_inverse_wraps_longitude(self):
        o = GeoPoint(10.0, 179.999)
        p = from_local_cartesian([2000.0, 0.0, 0.0], o)
        assert -180.0 <= p.longitude < 180.0
        assert p.longitude == pytest.approx(-179.9827, abs=1e-3)
        assert np.allclose(to_local_cartesian(p, o), [2000.0, 0.0, 0.0], atol=1e-3)

    @pytest.mark.parametrize("lat,north_m,expected_lat", [(89.995, 2000.0, 89.987), (-89.995, -2000.0, -89.987)])
    def test_inverse_folds_over_pole(self, lat, north_m, expected_lat):
        o = GeoPoint(lat, 30.0)
        p = from_local_cartesian([0.0, north_m, 0.0], o)
        assert p.latitude == pytest.approx(expected_lat, abs=1e-3)
        assert p.longitude == pytest.approx(-150.0, abs=1e-9)
        assert distance(o, p) == pytest.approx(2000.0, abs=5.0)


class TestAreaHelpers:
    def test_bounding_box(self):
        box = bounding_box(GeoPoint(0.0, 0.0), km=111.0)
        assert box["min_lat"] == pytest.approx(-1.0)
        assert box["max_lat"] == pytest.approx(1.0)
        assert box["min_lon"] == pytest.approx(-1.0)
        assert box["max_lon"] == pytest.approx(1.0)

    def test_center_of(self):
        c = center_of([GeoPoint(0.0, 0.0, 0.0), GeoPoint(2.0, 4.0, 10.0)])
        assert (c.latitude, c.longitude, c.altitude) == pytest.approx((1.0, 2.0, 5.0))

    def test_center_of_empty(self):
        assert center_of([]) is None
