"""Unit tests for corridor grid construction and height analysis."""

import asyncio
import math

import pytest

from config import PlannerConfig
from corridor import (
    analyze_grid, apply_heights, as_route_waypoints, build_corridor_grid,
    build_lane_offsets, resolve_step_spacing, route_length,
)
from exceptions import HeightSampleUnavailable, InsufficientWaypointsError
from geodesy import geodesic_distance
from height_sampler import CallableHeightSampler, HeightSampler

# ~99.5 m of latitude at the equator
LEG_DEG = 0.0009


def test_lane_offsets_are_odd_and_centered():
    offsets = build_lane_offsets(90.0, 15.0)
    assert len(offsets) == 13
    assert offsets[6] == 0.0
    assert offsets[0] == -90.0 and offsets[-1] == 90.0

    assert build_lane_offsets(10.0, 15.0) == [-15.0, 0.0, 15.0]


def test_lane_offsets_reject_bad_spacing():
    with pytest.raises(ValueError):
        build_lane_offsets(90.0, 0.0)


def test_as_route_waypoints_accepts_dicts_and_objects():
    class Point:
        lat = 1.0
        lon = 2.0

    waypoints = as_route_waypoints([{"lat": 0.0, "lon": 0.0, "alt": 5}, Point()])
    assert waypoints[0].alt == 5.0
    assert (waypoints[1].lat, waypoints[1].lon, waypoints[1].alt) == (1.0, 2.0, 0.0)


def test_resolve_step_spacing_tiers():
    short = [{"lat": 0.0, "lon": 0.0}, {"lat": 0.009, "lon": 0.0}]  # ~1 km
    assert resolve_step_spacing(short) == 5.0

    long = [{"lat": 0.0, "lon": 0.0}, {"lat": 0.09, "lon": 0.0}]  # ~10 km
    spacing = resolve_step_spacing(long)
    assert spacing == pytest.approx(route_length(as_route_waypoints(long)) / 300)

    wide = PlannerConfig(target_grid_steps=100000)
    assert resolve_step_spacing(long, wide) == 10.0
    assert resolve_step_spacing(short[:1]) == 5.0


def test_single_leg_grid_shape():
    waypoints = [{"lat": 0.0, "lon": 0.0}, {"lat": LEG_DEG, "lon": 0.0}]
    grid = build_corridor_grid(waypoints, 10.0, [-15.0, 0.0, 15.0])

    assert grid.num_lanes == 3
    assert grid.num_steps == 11
    assert grid.waypoint_indices == [0, 10]

    center = grid.center_line
    assert center[0].lat == pytest.approx(0.0, abs=1e-9)
    assert center[-1].lat == pytest.approx(LEG_DEG, abs=1e-9)


def test_multi_leg_grid_shares_waypoint_steps():
    waypoints = [
        {"lat": 0.0, "lon": 0.0, "alt": 10},
        {"lat": LEG_DEG, "lon": 0.0, "alt": 30},
        {"lat": 2 * LEG_DEG, "lon": 0.0, "alt": 30},
    ]
    grid = build_corridor_grid(waypoints, 10.0, [-15.0, 0.0, 15.0])

    assert grid.num_steps == 21
    assert grid.waypoint_indices == [0, 10, 20]
    middle = grid.point(10, grid.center_lane)
    assert middle.lat == pytest.approx(LEG_DEG, abs=1e-9)
    assert middle.alt == pytest.approx(30.0)
    assert grid.point(5, grid.center_lane).alt == pytest.approx(20.0)


def test_lanes_are_offset_to_the_right_of_travel():
    waypoints = [{"lat": 0.0, "lon": 0.0}, {"lat": LEG_DEG, "lon": 0.0}]
    grid = build_corridor_grid(waypoints, 10.0, [-15.0, 0.0, 15.0])

    left, center, right = (grid.point(0, lane) for lane in range(3))
    # Heading north, right is east
    assert right.lon > center.lon > left.lon
    assert geodesic_distance(center.lat, center.lon, right.lat, right.lon) == pytest.approx(15.0, abs=0.05)
    assert geodesic_distance(center.lat, center.lon, left.lat, left.lon) == pytest.approx(15.0, abs=0.05)


def test_grid_rejects_insufficient_waypoints():
    with pytest.raises(InsufficientWaypointsError):
        build_corridor_grid([{"lat": 0.0, "lon": 0.0}], 10.0)
    with pytest.raises(ValueError):
        build_corridor_grid([], 10.0)


def test_grid_rejects_even_lane_offsets():
    waypoints = [{"lat": 0.0, "lon": 0.0}, {"lat": LEG_DEG, "lon": 0.0}]
    with pytest.raises(ValueError):
        build_corridor_grid(waypoints, 10.0, [-15.0, 15.0])


def test_apply_heights_clamps_obstacle_to_terrain(make_grid):
    grid = make_grid(num_lanes=1, num_steps=3)
    sampled = apply_heights(grid, [5.0, 1.0, 40.0], [2.0, 3.0, 4.0])

    assert [p.terrain_height for p in sampled.center_line] == [2.0, 3.0, 4.0]
    assert [p.obstacle_height for p in sampled.center_line] == [5.0, 3.0, 40.0]

    with pytest.raises(ValueError):
        apply_heights(grid, [1.0], [1.0])


def test_analyze_grid_samples_obstacles_from_above():
    waypoints = [{"lat": 0.0, "lon": 0.0}, {"lat": LEG_DEG, "lon": 0.0}]
    grid = build_corridor_grid(waypoints, 10.0, [-15.0, 0.0, 15.0])

    def lookup(lat, lon, probe_altitude):
        if probe_altitude is None:
            return 2.0
        return 30.0 if lon > 1e-6 else None

    analyzed = asyncio.run(analyze_grid(grid, CallableHeightSampler(lookup)))

    right = analyzed.lanes[2]
    center = analyzed.center_line
    assert all(p.obstacle_height == 30.0 and p.terrain_height == 2.0 for p in right)
    # Missing obstacle data falls back to 0, then clamps up to the terrain
    assert all(p.obstacle_height == 2.0 for p in center)
    assert analyzed.waypoint_indices == grid.waypoint_indices


def test_analyze_grid_uses_terrain_sampler():
    waypoints = [{"lat": 0.0, "lon": 0.0}, {"lat": LEG_DEG, "lon": 0.0}]
    grid = build_corridor_grid(waypoints, 10.0, [0.0])
    obstacles = CallableHeightSampler(lambda lat, lon, altitude: 25.0)
    terrain = CallableHeightSampler(lambda lat, lon, altitude: 7.0)

    analyzed = asyncio.run(analyze_grid(grid, obstacles, terrain))
    assert all((p.terrain_height, p.obstacle_height) == (7.0, 25.0) for p in analyzed.center_line)


def test_analyze_grid_survives_sampler_failure():
    class BrokenSampler(HeightSampler):
        async def sample(self, points):
            raise HeightSampleUnavailable("service down")

    waypoints = [{"lat": 0.0, "lon": 0.0}, {"lat": LEG_DEG, "lon": 0.0}]
    grid = build_corridor_grid(waypoints, 10.0, [0.0])
    analyzed = asyncio.run(analyze_grid(grid, BrokenSampler()))

    assert all(p.obstacle_height == 0.0 and p.terrain_height == 0.0 for p in analyzed.center_line)
    assert not any(math.isnan(p.obstacle_height) for p in analyzed.center_line)
