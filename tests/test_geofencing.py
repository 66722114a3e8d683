"""Unit tests for geofence indexing and blocking queries."""

import math

import pytest

from exceptions import GeofenceMalformed
from geofencing import (
    build_geofence_index, compute_bounding_box, geofence_blocks_point,
    geofence_blocks_segment, index_geofence, point_in_polygon,
)
from models import GeofenceRecord, GridPoint

SQUARE = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0)]


def test_point_in_polygon_square():
    assert point_in_polygon((0.5, 0.5), SQUARE)
    assert not point_in_polygon((1.5, 0.5), SQUARE)
    assert not point_in_polygon((0.5, -0.1), SQUARE)


def test_point_in_polygon_concave():
    # U shape opening north: the notch is outside
    u_shape = [(0, 0), (0, 3), (3, 3), (3, 2), (1, 2), (1, 1), (3, 1), (3, 0)]
    assert point_in_polygon((0.5, 1.5), u_shape)
    assert not point_in_polygon((2.0, 1.5), u_shape)
    assert point_in_polygon((2.0, 0.5), u_shape)


def test_bounding_box_ignores_non_finite_vertices():
    box = compute_bounding_box([(0.0, 0.0), (math.nan, 5.0), (2.0, 3.0)])
    assert (box.min_lat, box.max_lat, box.min_lon, box.max_lon) == (0.0, 2.0, 0.0, 3.0)
    assert compute_bounding_box([(math.nan, math.inf)]) is None


def test_index_geofence_defaults_and_swapped_band():
    entry = index_geofence(GeofenceRecord(id="a", polygon=SQUARE))
    assert entry.lower_altitude == 0.0
    assert entry.upper_altitude == 120.0

    swapped = index_geofence(GeofenceRecord(id="b", polygon=SQUARE,
                                            lower_altitude_m=200.0, upper_altitude_m=50.0))
    assert (swapped.lower_altitude, swapped.upper_altitude) == (50.0, 200.0)


def test_index_geofence_rejects_degenerate_polygons():
    with pytest.raises(GeofenceMalformed):
        index_geofence(GeofenceRecord(id="line", polygon=[(0, 0), (1, 1)]))
    with pytest.raises(GeofenceMalformed):
        index_geofence(GeofenceRecord(id="nan", polygon=[(math.nan, 0), (math.nan, 1), (math.nan, 2)]))


def test_build_index_skips_inactive_advisory_and_malformed():
    raw = [
        {"id": 1, "polygon": SQUARE, "type": "restricted"},
        {"id": "off", "polygon": SQUARE, "active": False},
        {"id": "adv", "polygon": SQUARE, "type": "ADVISORY"},
        {"id": "short", "polygon": SQUARE[:2]},
        {"id": "bad", "polygon": "not a polygon"},
        None,
    ]
    index = build_geofence_index(raw)
    assert [entry.id for entry in index] == ["1"]


def test_build_index_empty():
    assert build_geofence_index(None) == []
    assert build_geofence_index([]) == []


def test_blocks_point_respects_altitude_band():
    index = build_geofence_index([{"id": "z", "polygon": SQUARE,
                                   "lower_altitude_m": 10, "upper_altitude_m": 50}])
    assert geofence_blocks_point(index, 0.5, 0.5, 30.0)
    assert geofence_blocks_point(index, 0.5, 0.5, 50.0)
    assert not geofence_blocks_point(index, 0.5, 0.5, 60.0)
    assert not geofence_blocks_point(index, 0.5, 0.5, 5.0)
    assert not geofence_blocks_point(index, 2.0, 0.5, 30.0)


def test_blocks_point_non_finite_input_is_blocked():
    index = build_geofence_index([{"id": "z", "polygon": SQUARE}])
    assert geofence_blocks_point(index, math.nan, 0.5, 30.0)
    assert geofence_blocks_point(index, 0.5, 0.5, math.inf)
    assert not geofence_blocks_point([], math.nan, 0.5, 30.0)


def test_blocks_segment_crossing_small_zone():
    # ~110 m square around (0.001, 0) crossed by a 220 m north-bound segment
    zone = [(0.0005, -0.0005), (0.0005, 0.0005), (0.0015, 0.0005), (0.0015, -0.0005)]
    index = build_geofence_index([{"id": "z", "polygon": zone}])
    start = GridPoint(lat=0.0, lon=0.0)
    end = GridPoint(lat=0.002, lon=0.0)
    assert geofence_blocks_segment(index, start, end, 30.0, 30.0)
    assert not geofence_blocks_segment(index, start, end, 130.0, 130.0)

    beside = GridPoint(lat=0.0, lon=0.002)
    beside_end = GridPoint(lat=0.002, lon=0.002)
    assert not geofence_blocks_segment(index, beside, beside_end, 30.0, 30.0)
