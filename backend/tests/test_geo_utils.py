"""Tests for geographic utility functions."""

import pytest

from conftest import make_resort
from utils.geo_utils import (
    bounding_box,
    find_nearby,
    haversine_distance,
    haversine_miles,
    km_to_miles,
)


class TestHaversineDistance:
    """Test cases for haversine distance calculation."""

    def test_same_point_zero_distance(self):
        """Test that same point returns zero distance."""
        assert haversine_distance(49.0, -120.0, 49.0, -120.0) == 0.0
        assert haversine_miles(39.64, -106.37, 39.64, -106.37) == 0.0

    def test_one_degree_latitude_in_miles(self):
        """One degree of latitude is roughly 69 miles."""
        distance = haversine_miles(39.0, -106.0, 40.0, -106.0)
        assert distance == pytest.approx(69.1, abs=0.2)

    def test_known_distance_vail_breckenridge(self):
        """Vail to Breckenridge is roughly 20 miles in a straight line."""
        distance = haversine_miles(39.6403, -106.3742, 39.4817, -106.0384)
        assert 18 < distance < 23

    def test_symmetric(self):
        a = haversine_miles(40.5884, -111.6386, 39.6403, -106.3742)
        b = haversine_miles(39.6403, -106.3742, 40.5884, -111.6386)
        assert a == pytest.approx(b)

    def test_km_and_miles_agree(self):
        km = haversine_distance(39.0, -106.0, 40.0, -105.0)
        miles = haversine_miles(39.0, -106.0, 40.0, -105.0)
        assert km_to_miles(km) == pytest.approx(miles, rel=1e-3)


class TestBoundingBox:
    def test_box_contains_center(self):
        min_lat, max_lat, min_lon, max_lon = bounding_box(39.6, -106.4, 50)
        assert min_lat < 39.6 < max_lat
        assert min_lon < -106.4 < max_lon


class TestFindNearby:
    """Test cases for the nearby resort lookup."""

    @pytest.fixture
    def origin(self):
        return make_resort("vail", lat=39.6403, lon=-106.3742)

    def test_sorted_by_distance_and_limited(self, origin):
        candidates = [
            make_resort("keystone", lat=39.6045, lon=-105.9544),
            make_resort("beaver-creek", lat=39.6042, lon=-106.5165),
            make_resort("breckenridge", lat=39.4817, lon=-106.0384),
            make_resort("copper-mountain", lat=39.5022, lon=-106.1497),
        ]
        results = find_nearby(origin, candidates, max_miles=100, limit=3)

        assert [r.slug for r, _ in results] == ["beaver-creek", "copper-mountain", "breckenridge"]
        distances = [d for _, d in results]
        assert distances == sorted(distances)

    def test_excludes_origin_and_missing_coordinates(self, origin):
        candidates = [
            make_resort("vail", lat=39.6403, lon=-106.3742),
            make_resort("no-coords", lat=None, lon=None),
            make_resort("beaver-creek", lat=39.6042, lon=-106.5165),
        ]
        results = find_nearby(origin, candidates, max_miles=100, limit=3)
        assert [r.slug for r, _ in results] == ["beaver-creek"]

    def test_excludes_resorts_beyond_radius(self, origin):
        candidates = [make_resort("alta", lat=40.5884, lon=-111.6386)]
        assert find_nearby(origin, candidates, max_miles=100, limit=3) == []

    def test_origin_without_coordinates(self):
        origin = make_resort("unknown", lat=None, lon=None)
        candidates = [make_resort("vail")]
        assert find_nearby(origin, candidates, max_miles=100, limit=3) == []

    def test_distances_rounded_to_tenths(self, origin):
        candidates = [make_resort("beaver-creek", lat=39.6042, lon=-106.5165)]
        (_, distance), = find_nearby(origin, candidates, max_miles=100, limit=3)
        assert distance == round(distance, 1)
