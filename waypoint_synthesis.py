"""
Waypoint Synthesis
Turns the smoothed node path into the flyable waypoint sequence:
ground -> vertical ascent -> cruise -> vertical descent -> ground at every user waypoint
"""

import logging
from typing import List, Optional, Sequence

from config import DEFAULT_ENGINE_CONFIG, EngineConfig
from geodesy import geodesic_distance
from models import FlightPhase, Grid, GridPoint, PathNode, PathStats, Waypoint

logger = logging.getLogger(__name__)


def _waypoint(point: GridPoint, alt: float, phase: FlightPhase) -> Waypoint:
    return Waypoint(lat=point.lat, lon=point.lon, alt=alt, phase=phase, priority=1)


def ground_phase(index: int, count: int) -> FlightPhase:
    if index == 0:
        return FlightPhase.GROUND_START
    if index == count - 1:
        return FlightPhase.GROUND_END
    return FlightPhase.GROUND_WAYPOINT


def segment_cruise_altitude(path: Sequence[PathNode], grid: Grid, start_step: int, end_step: int,
                            engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> float:
    """
    Cruise altitude for the leg between two user waypoints

    Highest path altitude strictly between the two steps. Legs without a
    path node in between fall back to the tallest center-lane feature on
    the leg plus the safety buffer.
    """
    altitudes = [node.alt for node in path if start_step < node.step < end_step]
    if altitudes:
        return max(altitudes)

    max_feature = 0.0
    for step in range(start_step, end_step + 1):
        max_feature = max(max_feature, grid.point(step, grid.center_lane).feature_height)
    return max_feature + engine_config.safety_buffer_m


def synthesize_waypoints(path: Sequence[PathNode], grid: Grid,
                         waypoint_indices: Optional[Sequence[int]] = None,
                         engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> List[Waypoint]:
    """
    Build the final waypoint sequence

    For every leg between user waypoints: ground point, vertical ascent to
    the leg's cruise altitude, cruise points along the smoothed path and a
    vertical descent above the next user waypoint. A lane change emits the
    last node of the old lane as a CRUISE_CORNER elbow followed by the new
    lane's node as CRUISE. Long same-lane runs get CRUISE_INTERMEDIATE points.

    Args:
        path: smoothed path nodes
        grid: grid the path was found on
        waypoint_indices: grid steps of the user waypoints

    Returns:
        List of Waypoint
    """
    center = grid.center_lane
    if not waypoint_indices:
        waypoint_indices = [0, grid.num_steps - 1]

    waypoints: List[Waypoint] = []
    count = len(waypoint_indices)

    for wp_idx, step_idx in enumerate(waypoint_indices):
        point = grid.point(step_idx, center)
        waypoints.append(_waypoint(point, point.terrain_height, ground_phase(wp_idx, count)))

        if wp_idx == count - 1:
            break

        next_step_idx = waypoint_indices[wp_idx + 1]
        cruise_alt = segment_cruise_altitude(path, grid, step_idx, next_step_idx, engine_config)

        waypoints.append(_waypoint(point, cruise_alt, FlightPhase.VERTICAL_ASCENT))

        last_output_lane = center
        last_output_node: Optional[PathNode] = None
        previous_node: Optional[PathNode] = None

        for node in path:
            if not (step_idx < node.step < next_step_idx):
                continue
            node_point = grid.point(node.step, node.lane)

            if node.lane != last_output_lane:
                # Elbow: finish the old lane before turning into the new one
                if previous_node is not None:
                    waypoints.append(_waypoint(
                        grid.point(previous_node.step, previous_node.lane),
                        cruise_alt, FlightPhase.CRUISE_CORNER
                    ))
                waypoints.append(_waypoint(node_point, cruise_alt, FlightPhase.CRUISE))
                last_output_lane = node.lane
                last_output_node = node
            elif last_output_node is not None:
                last_point = grid.point(last_output_node.step, last_output_node.lane)
                distance = geodesic_distance(last_point.lat, last_point.lon, node_point.lat, node_point.lon)
                if distance > engine_config.max_segment_distance_m:
                    waypoints.append(_waypoint(node_point, cruise_alt, FlightPhase.CRUISE_INTERMEDIATE))
                    last_output_node = node

            previous_node = node

        next_point = grid.point(next_step_idx, center)
        waypoints.append(_waypoint(next_point, cruise_alt, FlightPhase.VERTICAL_DESCENT))
        logger.debug("Leg %d (steps %d-%d) cruising at %.1fm", wp_idx, step_idx, next_step_idx, cruise_alt)

    return waypoints


def compute_path_stats(raw_path: Sequence[PathNode], smoothed_path: Sequence[PathNode], grid: Grid) -> PathStats:
    """Altitude statistics over the raw path"""
    max_altitude = 0.0
    max_agl = 0.0
    for node in raw_path:
        max_altitude = max(max_altitude, node.alt)
        max_agl = max(max_agl, node.alt - grid.point(node.step, node.lane).terrain_height)
    return PathStats(
        max_agl=max_agl,
        max_altitude=max_altitude,
        raw_nodes=len(raw_path),
        smoothed_nodes=len(smoothed_path),
    )
