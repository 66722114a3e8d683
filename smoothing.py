"""
String-Pulling Path Smoothing
Drops intermediate A* nodes wherever a straight line between two further
apart nodes stays clear of obstacles, walls and geofences
"""

import logging
import math
from typing import List, Optional, Sequence

from config import DEFAULT_ENGINE_CONFIG, EngineConfig
from geofencing import geofence_blocks_point
from models import GeofenceIndexEntry, Grid, PathNode
from pathfinding import min_safe_altitude

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def is_line_of_sight_clear(start: PathNode, end: PathNode, path: Sequence[PathNode],
                           start_idx: int, end_idx: int, grid: Grid,
                           geofence_index: Optional[Sequence[GeofenceIndexEntry]] = None,
                           engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> bool:
    """
    Check whether the straight grid-space line from start to end is flyable

    The line is flown at the highest altitude the path already committed to
    between start_idx and end_idx. Every interior sample must be inside the
    grid, clear the cell below it, clear both neighbouring lanes and stay out
    of the geofences.

    Returns:
        True if line of sight is clear
    """
    cruise_alt = max(start.alt, end.alt)
    for i in range(start_idx, end_idx + 1):
        cruise_alt = max(cruise_alt, path[i].alt)

    num_lanes = grid.num_lanes
    num_steps = grid.num_steps
    num_samples = max(5, 2 * (end_idx - start_idx), 2 * abs(end.step - start.step))

    for i in range(1, num_samples):
        t = i / num_samples
        step = _round_half_up(start.step + t * (end.step - start.step))
        lane = _round_half_up(start.lane + t * (end.lane - start.lane))

        if lane < 0 or lane >= num_lanes or step < 0 or step >= num_steps:
            return False

        point = grid.point(step, lane)

        if geofence_index:
            sample_alt = start.alt + t * (end.alt - start.alt)
            if geofence_blocks_point(geofence_index, point.lat, point.lon, sample_alt):
                return False

        if min_safe_altitude(point, engine_config) > cruise_alt:
            return False

        # Wall right beside the line
        if lane > 0 and min_safe_altitude(grid.point(step, lane - 1), engine_config) > cruise_alt:
            return False
        if lane < num_lanes - 1 and min_safe_altitude(grid.point(step, lane + 1), engine_config) > cruise_alt:
            return False

    return True


def smooth_path(path: Sequence[PathNode], grid: Grid,
                geofence_index: Optional[Sequence[GeofenceIndexEntry]] = None,
                engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> List[PathNode]:
    """
    Greedy forward string pulling

    From each kept node every later node is tested, and the furthest one
    with clear line of sight is kept next (at least the immediate successor).
    The first and last nodes are always kept.

    Args:
        path: raw A* path
        grid: grid the path was found on

    Returns:
        Monotone subsequence of path
    """
    if len(path) <= 2:
        return list(path)

    smoothed = [path[0]]
    current_idx = 0

    while current_idx < len(path) - 1:
        current = path[current_idx]
        furthest_valid = current_idx + 1

        for target_idx in range(current_idx + 2, len(path)):
            if is_line_of_sight_clear(current, path[target_idx], path, current_idx, target_idx,
                                      grid, geofence_index, engine_config):
                furthest_valid = target_idx

        smoothed.append(path[furthest_valid])
        current_idx = furthest_valid

    logger.info("Path smoothed: %d -> %d nodes", len(path), len(smoothed))
    return smoothed
