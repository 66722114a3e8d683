"""
Trajectory Timing
Cumulative time offsets and 1 m densification of a planned waypoint sequence
"""

import logging
import math
from typing import List, Sequence

from config import DEFAULT_ENGINE_CONFIG, EngineConfig
from geodesy import distance_3d
from models import FlightPhase, TrajectoryPoint, Waypoint

logger = logging.getLogger(__name__)


def leg_speed(start: Waypoint, end: Waypoint, engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> float:
    """
    Speed flown on the leg from start to end

    Takeoff legs (ending in a vertical ascent) use the climb speed and
    landing legs (leaving a vertical descent) the descent speed.
    """
    if end.phase == FlightPhase.VERTICAL_ASCENT:
        return engine_config.climb_speed_mps
    if start.phase == FlightPhase.VERTICAL_DESCENT:
        return engine_config.descent_speed_mps
    return engine_config.cruise_speed_mps


def calculate_time_offsets(waypoints: Sequence[Waypoint],
                           engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> List[TrajectoryPoint]:
    """
    Cumulative flight time at every waypoint

    Returns:
        One TrajectoryPoint per waypoint, time_offset rounded to 2 decimals
    """
    result = []
    cumulative = 0.0

    for i, wp in enumerate(waypoints):
        if i > 0:
            prev = waypoints[i - 1]
            distance = distance_3d(prev.lat, prev.lon, prev.alt, wp.lat, wp.lon, wp.alt)
            cumulative += distance / leg_speed(prev, wp, engine_config)

        result.append(TrajectoryPoint(lat=wp.lat, lon=wp.lon, alt=wp.alt,
                                      time_offset=round(cumulative, 2)))

    return result


def densify_route(waypoints: Sequence[Waypoint], speed_mps: float = DEFAULT_ENGINE_CONFIG.cruise_speed_mps,
                  spacing_m: float = 1.0) -> List[TrajectoryPoint]:
    """
    Interpolate the route every spacing_m meters for a high-fidelity trajectory

    Args:
        waypoints: sparse waypoints
        speed_mps: constant ground speed used for the time offsets
        spacing_m: distance between generated points

    Returns:
        Dense trajectory starting at the first waypoint
    """
    if len(waypoints) < 2:
        return []

    first = waypoints[0]
    trajectory = [TrajectoryPoint(lat=first.lat, lon=first.lon, alt=first.alt, time_offset=0.0)]
    time_per_step = spacing_m / speed_mps
    cumulative = 0.0

    for start, end in zip(waypoints, waypoints[1:]):
        distance = distance_3d(start.lat, start.lon, start.alt, end.lat, end.lon, end.alt)
        num_steps = math.ceil(distance / spacing_m)
        if num_steps == 0:
            continue

        for j in range(1, num_steps + 1):
            t = j / num_steps
            cumulative += time_per_step
            trajectory.append(TrajectoryPoint(
                lat=round(start.lat + t * (end.lat - start.lat), 7),
                lon=round(start.lon + t * (end.lon - start.lon), 7),
                alt=round(start.alt + t * (end.alt - start.alt), 2),
                time_offset=round(cumulative, 2),
            ))

    logger.info("Densified trajectory: %d waypoints -> %d points", len(waypoints), len(trajectory))
    return trajectory
