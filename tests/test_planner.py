"""Tests for the full planning pass and straight-path FAA validation."""

import asyncio

from config import EngineConfig
from height_sampler import CallableHeightSampler
from models import FlightPhase, GridPoint
from planner import calculate_route, validate_straight_path
from route_engine import INSUFFICIENT_WAYPOINTS, NO_PATH_FOUND

# ~200 m north along the equator, planned at 30 m
WAYPOINTS = [{"lat": 0.0, "lon": 0.0, "alt": 30.0}, {"lat": 0.0018, "lon": 0.0, "alt": 30.0}]


def band_sampler(height, recording=None):
    """Obstacle band across the whole corridor between lat 0.0008 and 0.001"""
    def lookup(lat, lon, probe_altitude):
        if probe_altitude is None:
            return 0.0
        return height if 0.0008 < lat < 0.001 else 0.0

    return recording(lookup) if recording else CallableHeightSampler(lookup)


def test_straight_path_violations():
    points = [GridPoint(lat=0.0, lon=0.0, terrain_height=0.0, obstacle_height=50.0)]

    low = validate_straight_path(points, 60.0)
    assert not low.is_valid
    assert [v.type for v in low.violations] == ["INSUFFICIENT_CLEARANCE"]
    assert low.suggested_altitude == 70.0
    assert low.faa_compliant
    assert low.summary == "DENIED: 1 violation(s) found"

    high = validate_straight_path(points, 200.0)
    assert [v.type for v in high.violations] == ["FAA_ALTITUDE_EXCEEDED"]
    assert high.violations[0].value == 200.0

    ok = validate_straight_path(points, 80.0)
    assert ok.is_valid
    assert ok.summary == "APPROVED: Route is legal at 80m"


def test_straight_path_suggestion_over_faa_limit():
    points = [
        GridPoint(lat=0.0, lon=0.0, terrain_height=0.0, obstacle_height=0.0),
        GridPoint(lat=0.001, lon=0.0, terrain_height=0.0, obstacle_height=110.0),
    ]
    result = validate_straight_path(points, 30.0, EngineConfig(safety_buffer_m=20.0))
    assert result.max_obstacle_height == 110.0
    assert result.suggested_agl == 130.0
    assert not result.faa_compliant


def test_clear_route_is_flown_straight(flat_sampler):
    result = asyncio.run(calculate_route(WAYPOINTS, flat_sampler))

    assert result.success
    assert not result.optimized
    assert result.optimization is None
    assert result.planned_altitude == 30.0
    assert result.lane_radius_m == 90.0
    assert result.sample_points > 0
    assert [(wp.alt, wp.phase) for wp in result.waypoints] == [(30.0, FlightPhase.CRUISE)] * 2
    assert result.summary.startswith("APPROVED")


def test_blocked_route_is_optimized():
    result = asyncio.run(calculate_route(WAYPOINTS, band_sampler(60.0)))

    assert result.success
    assert result.optimized
    assert result.summary.startswith("APPROVED (A*)")
    assert not result.validation.is_valid
    assert result.waypoints[0].phase == FlightPhase.GROUND_START
    assert result.waypoints[1].phase == FlightPhase.VERTICAL_ASCENT
    assert result.waypoints[1].alt == 80.0
    assert result.waypoints[-1].phase == FlightPhase.GROUND_END
    assert FlightPhase.CRUISE_DETOUR not in [wp.phase for wp in result.waypoints]


def test_segment_validation_can_be_skipped():
    result = asyncio.run(calculate_route(WAYPOINTS, band_sampler(60.0), validate_segments=False))
    assert result.success and result.optimized


def test_lane_fan_widens_around_geofence():
    half_width = 120.0 / 111320.0
    zone = [(0.0006, -half_width), (0.0006, half_width), (0.0012, half_width), (0.0012, -half_width)]
    result = asyncio.run(calculate_route(
        WAYPOINTS, band_sampler(60.0), [{"id": "stadium", "polygon": zone}]
    ))

    assert result.success
    assert result.optimized
    assert result.lane_radius_m == 150.0


def test_faa_wall_exhausts_every_radius(recording_sampler):
    sampler = band_sampler(200.0, recording_sampler)
    result = asyncio.run(calculate_route(WAYPOINTS, sampler))

    assert not result.success
    assert result.error == NO_PATH_FOUND
    assert result.summary == "DENIED: No legal path found within FAA limits"
    assert result.lane_radius_m == 240.0
    assert len(result.impossible_segments) == 1
    # 90, 150, 210 and 240 m fans, one obstacle and one terrain batch each
    assert len(sampler.batches) == 8


def test_single_waypoint_is_rejected(flat_sampler):
    result = asyncio.run(calculate_route(WAYPOINTS[:1], flat_sampler))
    assert not result.success
    assert result.error == INSUFFICIENT_WAYPOINTS


def test_mast_between_lanes_lifts_optimized_route():
    # 70 m mast ~5 m west of the center line, missed by the 15 m lane grid
    mast_west, mast_east = -7.0 / 111320.0, -3.0 / 111320.0

    def lookup(lat, lon, probe_altitude):
        if probe_altitude is None or not 0.0008 < lat < 0.001:
            return 0.0
        return 70.0 if mast_west < lon < mast_east else 60.0

    result = asyncio.run(calculate_route(WAYPOINTS, CallableHeightSampler(lookup)))

    assert result.success and result.optimized
    ascent = result.waypoints[1]
    descent = [wp for wp in result.waypoints if wp.phase == FlightPhase.VERTICAL_DESCENT]
    assert ascent.phase == FlightPhase.VERTICAL_ASCENT
    assert ascent.alt == 90.0
    assert [wp.alt for wp in descent] == [80.0]

    unchecked = asyncio.run(calculate_route(WAYPOINTS, CallableHeightSampler(lookup), validate_segments=False))
    assert unchecked.waypoints[1].alt == 80.0
