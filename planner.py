"""
Route Planner
Runs a complete planning pass: corridor sampling, straight-line FAA check,
global optimization and post-optimization height checks, widening the lane
fan until a legal path is found
"""

import logging
from typing import Any, Iterable, Optional, Sequence

from config import DEFAULT_ENGINE_CONFIG, DEFAULT_PLANNER_CONFIG, EngineConfig, PlannerConfig
from corridor import analyze_grid, as_route_waypoints, build_corridor_grid, build_lane_offsets, resolve_step_spacing
from geofencing import GeofenceInput
from height_sampler import HeightSampler
from models import FAAViolation, FlightPhase, GridPoint, RouteResult, StraightPathValidation, Waypoint
from route_engine import INSUFFICIENT_WAYPOINTS, NO_PATH_FOUND, optimize_flight_path
from segment_validation import check_corridor_heights, validate_and_fix_segments

logger = logging.getLogger(__name__)


def validate_straight_path(points: Sequence[GridPoint], planned_altitude: float,
                           engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> StraightPathValidation:
    """
    Validate flying the given points at one planned altitude

    Args:
        points: center-lane grid points with heights
        planned_altitude: altitude flown over every point

    Returns:
        StraightPathValidation listing FAA ceiling and clearance violations
    """
    violations = []
    limit = engine_config.faa_limit_agl
    buffer = engine_config.safety_buffer_m

    for point in points:
        agl = planned_altitude - point.terrain_height
        clearance = planned_altitude - point.obstacle_height

        if agl > limit:
            violations.append(FAAViolation(
                type="FAA_ALTITUDE_EXCEEDED",
                lat=point.lat,
                lon=point.lon,
                value=agl,
                limit=limit,
                message=f"Altitude {agl:.0f}m AGL exceeds FAA 400ft ({limit:.0f}m) limit",
            ))

        if clearance < buffer:
            violations.append(FAAViolation(
                type="INSUFFICIENT_CLEARANCE",
                lat=point.lat,
                lon=point.lon,
                value=clearance,
                limit=buffer,
                message=f"Only {clearance:.0f}m clearance (need {buffer:.0f}m safety buffer)",
            ))

    max_obstacle = max((p.obstacle_height for p in points), default=0.0)
    min_terrain = min((p.terrain_height for p in points), default=0.0)
    suggested_altitude = max_obstacle + buffer
    suggested_agl = suggested_altitude - min_terrain
    is_valid = not violations

    return StraightPathValidation(
        is_valid=is_valid,
        violations=violations,
        suggested_altitude=suggested_altitude,
        suggested_agl=suggested_agl,
        max_obstacle_height=max_obstacle,
        faa_compliant=suggested_agl <= limit,
        summary=(f"APPROVED: Route is legal at {planned_altitude:.0f}m" if is_valid
                 else f"DENIED: {len(violations)} violation(s) found"),
    )


async def calculate_route(waypoints: Sequence[Any], sampler: HeightSampler,
                          geofences: Optional[Iterable[GeofenceInput]] = None,
                          engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG,
                          planner_config: PlannerConfig = DEFAULT_PLANNER_CONFIG,
                          terrain_sampler: Optional[HeightSampler] = None,
                          validate_segments: bool = True) -> RouteResult:
    """
    Plan a route through the given user waypoints

    The straight center-lane route is used when it is legal at the planned
    altitude (mean of the waypoint altitudes). Otherwise the corridor is
    optimized, widening the lane fan by lane_expansion_step_m after every
    failed attempt up to max_lane_radius_m.

    Args:
        waypoints: user waypoints (landing zones)
        sampler: obstacle height source
        geofences: raw geofence records
        terrain_sampler: bare-earth height source, defaults to sampler
        validate_segments: re-check cruise legs and the corridor width after optimization

    Returns:
        RouteResult
    """
    waypoints = as_route_waypoints(waypoints)
    if len(waypoints) < 2:
        logger.warning("Route rejected: need at least 2 waypoints, got %d", len(waypoints))
        return RouteResult(
            success=False,
            summary="DENIED: At least 2 waypoints are required",
            error=INSUFFICIENT_WAYPOINTS,
        )

    geofences = list(geofences or [])
    planned_altitude = sum(wp.alt for wp in waypoints) / len(waypoints)
    spacing = resolve_step_spacing(waypoints, planner_config)

    lane_radius = planner_config.lane_radius_m
    max_radius = max(planner_config.max_lane_radius_m, lane_radius)
    last_optimization = None
    sample_points = 0

    while True:
        offsets = build_lane_offsets(lane_radius, planner_config.lane_spacing_m)
        logger.info("Generating %d-lane sampling grid (spacing: %.1fm, radius: %.0fm)",
                    len(offsets), spacing, lane_radius)

        grid = build_corridor_grid(waypoints, spacing, offsets)
        grid = await analyze_grid(grid, sampler, terrain_sampler, engine_config)
        sample_points = grid.num_lanes * grid.num_steps

        validation = validate_straight_path(grid.center_line, planned_altitude, engine_config)

        if validation.is_valid:
            logger.info("Straight path is valid at %.1fm", planned_altitude)
            return RouteResult(
                success=True,
                optimized=False,
                waypoints=[
                    Waypoint(lat=wp.lat, lon=wp.lon, alt=planned_altitude, phase=FlightPhase.CRUISE)
                    for wp in waypoints
                ],
                sample_points=sample_points,
                planned_altitude=planned_altitude,
                lane_radius_m=lane_radius,
                validation=validation,
                summary=validation.summary,
            )

        logger.info("Straight path blocked (%d violations), running global A* optimization",
                    len(validation.violations))
        optimization = optimize_flight_path(waypoints, grid, geofences, engine_config)
        last_optimization = optimization

        if optimization.success:
            route_waypoints = optimization.waypoints
            if validate_segments:
                route_waypoints = await validate_and_fix_segments(route_waypoints, sampler, engine_config)
                route_waypoints = await check_corridor_heights(
                    route_waypoints, sampler, engine_config, planner_config, terrain_sampler
                )

            return RouteResult(
                success=True,
                optimized=True,
                waypoints=route_waypoints,
                sample_points=sample_points,
                planned_altitude=planned_altitude,
                lane_radius_m=lane_radius,
                validation=validation,
                optimization=optimization,
                summary=f"APPROVED (A*): Optimal path found with {optimization.nodes_visited} nodes visited",
            )

        next_radius = min(max_radius, lane_radius + planner_config.lane_expansion_step_m)
        if next_radius <= lane_radius:
            break
        lane_radius = next_radius
        logger.warning("No path found. Expanding corridor to %.0fm and retrying", lane_radius)

    logger.error("No valid A* path found up to a %.0fm lane radius", lane_radius)
    return RouteResult(
        success=False,
        optimized=False,
        sample_points=sample_points,
        planned_altitude=planned_altitude,
        lane_radius_m=lane_radius,
        optimization=last_optimization,
        impossible_segments=last_optimization.impossible_segments if last_optimization else [],
        summary="DENIED: No legal path found within FAA limits",
        error=NO_PATH_FOUND,
    )
