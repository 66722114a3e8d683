"""
Corridor Grid Builder
Samples a fan of parallel lanes along the route between user waypoints and
fills in obstacle / terrain heights from a height sampler
"""

import logging
import math
from typing import Any, Iterable, List, Optional, Sequence

import config
from config import DEFAULT_ENGINE_CONFIG, DEFAULT_PLANNER_CONFIG, EngineConfig, PlannerConfig
from exceptions import InsufficientWaypointsError
from geodesy import destination, geodesic_distance, inverse, offset_enu
from height_sampler import HeightSampler, sample_or_zero
from models import Grid, GridPoint, RouteWaypoint, SamplePoint

logger = logging.getLogger(__name__)


def as_route_waypoints(waypoints: Iterable[Any]) -> List[RouteWaypoint]:
    """Coerce dicts / objects with lat, lon, alt into RouteWaypoint models"""
    result = []
    for wp in waypoints:
        if isinstance(wp, RouteWaypoint):
            result.append(wp)
        elif isinstance(wp, dict):
            result.append(RouteWaypoint.model_validate(wp))
        else:
            result.append(RouteWaypoint(lat=wp.lat, lon=wp.lon, alt=getattr(wp, "alt", 0.0)))
    return result


def route_length(waypoints: Sequence[RouteWaypoint]) -> float:
    """Total geodesic length of the route in meters"""
    return sum(
        geodesic_distance(a.lat, a.lon, b.lat, b.lon)
        for a, b in zip(waypoints, waypoints[1:])
    )


def build_lane_offsets(radius_m: float, spacing_m: float) -> List[float]:
    """
    Lateral lane offsets for a fan of the given half-width

    Returns:
        Ascending offsets in meters, odd count, 0 in the middle.
        Negative offsets are left of the route bearing.
    """
    if spacing_m <= 0:
        raise ValueError("lane spacing must be positive")
    n = max(1, math.floor(radius_m / spacing_m))
    return [i * spacing_m for i in range(-n, n + 1)]


def resolve_step_spacing(waypoints: Sequence[Any],
                         planner_config: PlannerConfig = DEFAULT_PLANNER_CONFIG) -> float:
    """
    Step spacing for the corridor grid, coarser on long routes

    The spacing is raised above the tier value when needed to keep the grid
    at or below planner_config.target_grid_steps steps.
    """
    waypoints = as_route_waypoints(waypoints)
    if len(waypoints) < 2:
        return planner_config.default_sample_spacing_m

    distance = route_length(waypoints)
    spacing = planner_config.default_sample_spacing_m
    for threshold, tier_spacing in config.SAMPLE_SPACING_TIERS:
        if distance > threshold:
            spacing = tier_spacing
            break

    return max(spacing, distance / planner_config.target_grid_steps)


def build_corridor_grid(waypoints: Sequence[Any], spacing_m: float,
                        lane_offsets: Optional[Sequence[float]] = None) -> Grid:
    """
    Generate the lane x step sampling grid along the route

    Each leg is walked along its geodesic in ceil(distance / spacing) steps.
    Lane points are the center point moved sideways, perpendicular to the
    leg's initial bearing, in the local east-north-up frame. Heights are
    left at 0 for analyze_grid to fill.

    Args:
        waypoints: user waypoints, at least 2
        spacing_m: target distance between steps
        lane_offsets: ascending lateral offsets with 0 in the middle

    Returns:
        Grid with waypoint_indices pointing at each user waypoint's step

    Raises:
        InsufficientWaypointsError: fewer than 2 waypoints
    """
    waypoints = as_route_waypoints(waypoints)
    if len(waypoints) < 2:
        raise InsufficientWaypointsError(len(waypoints))
    if spacing_m <= 0:
        raise ValueError("step spacing must be positive")

    if lane_offsets is None:
        lane_offsets = build_lane_offsets(config.DEFAULT_LANE_RADIUS_M, config.DEFAULT_LANE_SPACING_M)
    lane_offsets = list(lane_offsets)
    if len(lane_offsets) % 2 == 0 or lane_offsets[len(lane_offsets) // 2] != 0:
        raise ValueError("lane offsets must have an odd count with 0 in the middle")

    lanes: List[List[GridPoint]] = [[] for _ in lane_offsets]
    waypoint_indices = [0]
    total_steps = 0

    for i in range(len(waypoints) - 1):
        start = waypoints[i]
        end = waypoints[i + 1]
        last_leg = i == len(waypoints) - 2

        bearing, distance = inverse(start.lat, start.lon, end.lat, end.lon)
        right = bearing + 90.0
        num_steps = max(1, math.ceil(distance / spacing_m))

        for j in range(num_steps + 1):
            # The end of an inner leg is the start of the next one
            if j == num_steps and not last_leg:
                continue

            fraction = j / num_steps
            lat, lon = destination(start.lat, start.lon, bearing, fraction * distance)
            alt = start.alt + fraction * (end.alt - start.alt)

            for lane_idx, offset in enumerate(lane_offsets):
                lane_lat, lane_lon = offset_enu(lat, lon, right, offset)
                lanes[lane_idx].append(GridPoint(lat=lane_lat, lon=lane_lon, alt=alt))
            total_steps += 1

        if not last_leg:
            waypoint_indices.append(total_steps)

    waypoint_indices.append(total_steps - 1)

    logger.info(
        "Grid created: %d lanes x %d steps, waypoint indices: %s",
        len(lanes), total_steps, ", ".join(str(i) for i in waypoint_indices)
    )
    return Grid(lanes=lanes, waypoint_indices=waypoint_indices)


def apply_heights(grid: Grid, obstacle_heights: Sequence[float],
                  terrain_heights: Sequence[float]) -> Grid:
    """
    Return a copy of the grid with heights filled in

    Both sequences are lane-major (all steps of lane 0, then lane 1, ...).
    The obstacle height is never left below the terrain height.
    """
    expected = grid.num_lanes * grid.num_steps
    if len(obstacle_heights) != expected or len(terrain_heights) != expected:
        raise ValueError(f"expected {expected} heights per sequence")

    lanes = []
    i = 0
    for lane in grid.lanes:
        sampled = []
        for point in lane:
            terrain = terrain_heights[i]
            obstacle = max(obstacle_heights[i], terrain)
            sampled.append(point.model_copy(update={
                "terrain_height": terrain,
                "obstacle_height": obstacle,
            }))
            i += 1
        lanes.append(sampled)

    return Grid(lanes=lanes, waypoint_indices=list(grid.waypoint_indices))


async def analyze_grid(grid: Grid, sampler: HeightSampler,
                       terrain_sampler: Optional[HeightSampler] = None,
                       engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> Grid:
    """
    Batch-sample obstacle and terrain heights for every grid point

    Obstacles are probed from engine_config.height_probe_altitude_m so the
    sampler clamps down onto rooftops. Terrain comes from terrain_sampler
    when given, otherwise from the same sampler without a probe altitude.
    Points without data get height 0.
    """
    points = [point for lane in grid.lanes for point in lane]
    logger.info("Sampling heights for %d grid points", len(points))

    obstacle = await sample_or_zero(
        sampler,
        [SamplePoint(lat=p.lat, lon=p.lon, probe_altitude=engine_config.height_probe_altitude_m)
         for p in points],
        label="Obstacle height",
    )
    terrain = await sample_or_zero(
        terrain_sampler or sampler,
        [SamplePoint(lat=p.lat, lon=p.lon) for p in points],
        label="Terrain height",
    )

    analyzed = apply_heights(grid, obstacle, terrain)

    building_heights = [o - t for o, t in zip(obstacle, terrain)]
    logger.info(
        "Grid analysis complete: max obstacle %.1fm, max building %.1fm, %d/%d points with buildings",
        max(max(obstacle), max(terrain)) if points else 0.0,
        max(0.0, max(building_heights)) if points else 0.0,
        sum(1 for h in building_heights if h > 1.0),
        len(points),
    )
    return analyzed
