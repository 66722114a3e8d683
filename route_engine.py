"""
Route Engine
Global corridor optimization: geofence index -> A* -> string pulling -> waypoint synthesis
Pure function of its inputs and the engine configuration
"""

import logging
import time
from typing import Any, Iterable, List, Optional, Sequence

from config import DEFAULT_ENGINE_CONFIG, EngineConfig
from geofencing import GeofenceInput, build_geofence_index
from models import Grid, ImpossibleSegment, OptimizationResult
from pathfinding import search_corridor
from smoothing import smooth_path
from waypoint_synthesis import compute_path_stats, synthesize_waypoints

logger = logging.getLogger(__name__)

INSUFFICIENT_WAYPOINTS = "INSUFFICIENT_WAYPOINTS"
NO_PATH_FOUND = "NO_PATH_FOUND"


def find_impossible_segments(waypoint_indices: Sequence[int], furthest_step: int) -> List[ImpossibleSegment]:
    """
    Legs the search could not complete

    Starts at the leg holding the search frontier and includes every later
    leg, since none of them can be reached.
    """
    legs = list(zip(waypoint_indices, waypoint_indices[1:]))
    if not legs:
        return []

    first_blocked = len(legs) - 1
    for i, (_, end_step) in enumerate(legs):
        if end_step > furthest_step:
            first_blocked = i
            break

    return [
        ImpossibleSegment(segment_index=i, start_step=start, end_step=end, furthest_step=furthest_step)
        for i, (start, end) in enumerate(legs)
        if i >= first_blocked
    ]


def optimize_flight_path(waypoints: Sequence[Any], grid: Grid,
                         geofences: Optional[Iterable[GeofenceInput]] = None,
                         engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> OptimizationResult:
    """
    Calculate the minimal-cost flight path through the sampled corridor

    Args:
        waypoints: user waypoints (landing zones) the grid was built from
        grid: corridor grid with heights filled in
        geofences: raw geofence records
        engine_config: limits and cost weights

    Returns:
        OptimizationResult; success False with an error code when fewer than
        2 waypoints are given or no path exists
    """
    if len(waypoints) < 2:
        logger.warning("Optimization rejected: %d waypoint(s), need at least 2", len(waypoints))
        return OptimizationResult(success=False, error=INSUFFICIENT_WAYPOINTS)

    logger.info("Starting global A* optimization on %d lanes x %d steps", grid.num_lanes, grid.num_steps)
    started = time.perf_counter()

    geofence_index = build_geofence_index(geofences)
    waypoint_indices = grid.waypoint_indices or [0, grid.num_steps - 1]

    outcome = search_corridor(grid, geofence_index, engine_config)

    if outcome.path is None:
        return OptimizationResult(
            success=False,
            nodes_visited=outcome.nodes_visited,
            impossible_segments=find_impossible_segments(waypoint_indices, outcome.furthest_step),
            error=NO_PATH_FOUND,
        )

    smoothed = smooth_path(outcome.path, grid, geofence_index, engine_config)
    final_waypoints = synthesize_waypoints(smoothed, grid, waypoint_indices, engine_config)

    logger.info(
        "Optimization took %.1fms: %d waypoints (landing at %d user waypoints)",
        (time.perf_counter() - started) * 1000.0, len(final_waypoints), len(waypoint_indices)
    )

    return OptimizationResult(
        success=True,
        waypoints=final_waypoints,
        nodes_visited=outcome.nodes_visited,
        stats=compute_path_stats(outcome.path, smoothed, grid),
    )
