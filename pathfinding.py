"""
Corridor Pathfinding Module
Implements A* over the (step, lane) grid of the flight corridor
Respects the FAA altitude ceiling and geofences, and optimizes for travel
time, climbing, lane changes and wall proximity
"""

import heapq
import logging
from typing import Dict, List, NamedTuple, Optional, Sequence, Set, Tuple

from config import DEFAULT_ENGINE_CONFIG, EngineConfig
from geodesy import geodesic_distance
from geofencing import geofence_blocks_segment
from models import GeofenceIndexEntry, Grid, GridPoint, PathNode

logger = logging.getLogger(__name__)

NodeKey = Tuple[int, int]  # (step, lane)


class SearchNode:
    """A* node for one (step, lane) cell"""

    def __init__(self, step: int, lane: int, g: float, f: float, alt: float, seq: int):
        self.step = step
        self.lane = lane
        self.g = g      # Cost from start
        self.f = f      # g + heuristic
        self.alt = alt  # Carried altitude
        self.seq = seq  # Insertion order, breaks f ties

    def __lt__(self, other):
        return (self.f, self.seq) < (other.f, other.seq)

    @property
    def key(self) -> NodeKey:
        return (self.step, self.lane)


class SearchOutcome(NamedTuple):
    path: Optional[List[PathNode]]
    nodes_visited: int
    furthest_step: int


def min_safe_altitude(point: GridPoint, engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> float:
    """Lowest altitude clearing the tallest feature at a cell by the safety buffer"""
    return point.feature_height + engine_config.safety_buffer_m


def faa_ceiling(point: GridPoint, engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> float:
    """Highest legal altitude at a cell"""
    return point.terrain_height + engine_config.faa_limit_agl


def proximity_cost(grid: Grid, step: int, lane: int, cruise_alt: float,
                   engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> float:
    """
    Penalty for flying beside walls

    Each adjacent lane (left and right, independently) whose required
    clearance exceeds the cruise altitude adds one proximity penalty.
    """
    cost = 0.0
    if lane > 0 and min_safe_altitude(grid.point(step, lane - 1), engine_config) > cruise_alt:
        cost += engine_config.cost_proximity_penalty
    if lane < grid.num_lanes - 1 and min_safe_altitude(grid.point(step, lane + 1), engine_config) > cruise_alt:
        cost += engine_config.cost_proximity_penalty
    return cost


def evaluate_transition(grid: Grid, current: SearchNode, next_step: int, next_lane: int,
                        geofence_index: Sequence[GeofenceIndexEntry],
                        engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> Optional[Tuple[float, float]]:
    """
    Validate and price the edge from current to (next_step, next_lane)

    Returns:
        (edge cost, cruise altitude flown into the next cell), or None if the
        edge is blocked by the FAA ceiling or a geofence
    """
    next_point = grid.point(next_step, next_lane)
    target_alt = min_safe_altitude(next_point, engine_config)

    if target_alt > faa_ceiling(next_point, engine_config):
        return None

    curr_point = grid.point(current.step, current.lane)
    cruise_alt = max(current.alt, target_alt)

    if geofence_index and geofence_blocks_segment(
        geofence_index, curr_point, next_point, current.alt, cruise_alt, engine_config
    ):
        return None

    distance = geodesic_distance(curr_point.lat, curr_point.lon, next_point.lat, next_point.lon)
    time_cost = distance / engine_config.cruise_speed_mps * engine_config.cost_time_weight

    # Altitude already carried is never charged again
    climb_cost = max(0.0, target_alt - current.alt) * engine_config.cost_climb_penalty

    lane_change_cost = abs(next_lane - current.lane) * engine_config.cost_lane_change

    cost = (time_cost + climb_cost + lane_change_cost
            + proximity_cost(grid, next_step, next_lane, cruise_alt, engine_config))
    return cost, cruise_alt


def reconstruct_path(came_from: Dict[NodeKey, NodeKey], best: Dict[NodeKey, SearchNode],
                     goal: NodeKey) -> List[PathNode]:
    """Walk parent links back from the goal, returning start-to-goal order"""
    path = []
    key: Optional[NodeKey] = goal
    while key is not None:
        node = best[key]
        path.append(PathNode(step=node.step, lane=node.lane, alt=node.alt))
        key = came_from.get(key)
    path.reverse()
    return path


def search_corridor(grid: Grid,
                    geofence_index: Optional[Sequence[GeofenceIndexEntry]] = None,
                    engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> SearchOutcome:
    """
    Find the minimum-cost path from (0, center) to (last step, center)

    The open set is a binary heap ordered by f, ties broken by insertion
    order. Improved nodes are pushed again and stale heap entries are
    skipped when popped.

    Args:
        grid: sampled corridor grid
        geofence_index: output of build_geofence_index
        engine_config: cost weights and limits

    Returns:
        SearchOutcome with path None when the open set empties before the goal
    """
    geofence_index = geofence_index or []
    num_lanes = grid.num_lanes
    last_step = grid.num_steps - 1
    center = grid.center_lane
    goal_key = (last_step, center)
    goal_point = grid.point(last_step, center)

    heuristic_cache: Dict[NodeKey, float] = {}

    def heuristic(step: int, lane: int) -> float:
        key = (step, lane)
        if key not in heuristic_cache:
            point = grid.point(step, lane)
            distance = geodesic_distance(point.lat, point.lon, goal_point.lat, goal_point.lon)
            heuristic_cache[key] = distance / engine_config.cruise_speed_mps * engine_config.cost_time_weight
        return heuristic_cache[key]

    # Takeoff from the terrain at the first center cell
    counter = 0
    start = SearchNode(0, center, g=0.0, f=heuristic(0, center),
                       alt=grid.point(0, center).terrain_height, seq=counter)

    open_set = [start]
    best: Dict[NodeKey, SearchNode] = {start.key: start}
    came_from: Dict[NodeKey, NodeKey] = {}
    closed_set: Set[NodeKey] = set()

    nodes_visited = 0
    furthest_step = 0

    while open_set:
        current = heapq.heappop(open_set)
        if best.get(current.key) is not current or current.key in closed_set:
            continue  # stale entry

        nodes_visited += 1
        furthest_step = max(furthest_step, current.step)

        if current.key == goal_key:
            path = reconstruct_path(came_from, best, goal_key)
            logger.info("A* found raw path: %d nodes, visited: %d", len(path), nodes_visited)
            return SearchOutcome(path, nodes_visited, furthest_step)

        closed_set.add(current.key)

        next_step = current.step + 1
        if next_step > last_step:
            continue

        for next_lane in (current.lane - 1, current.lane, current.lane + 1):
            if next_lane < 0 or next_lane >= num_lanes:
                continue
            next_key = (next_step, next_lane)
            if next_key in closed_set:
                continue

            edge = evaluate_transition(grid, current, next_step, next_lane, geofence_index, engine_config)
            if edge is None:
                continue
            cost, carried_alt = edge

            tentative_g = current.g + cost
            existing = best.get(next_key)
            if existing is not None and tentative_g >= existing.g:
                continue

            came_from[next_key] = current.key
            f = tentative_g + heuristic(next_step, next_lane)
            if existing is None:
                counter += 1
                node = SearchNode(next_step, next_lane, tentative_g, f, carried_alt, counter)
            else:
                # Never drop below altitude already cleared on another route into this cell
                node = SearchNode(next_step, next_lane, tentative_g, f,
                                  max(existing.alt, carried_alt), existing.seq)
            best[next_key] = node
            heapq.heappush(open_set, node)

    logger.warning("A* failed: no path found after visiting %d nodes (furthest step %d of %d)",
                   nodes_visited, furthest_step, last_step)
    return SearchOutcome(None, nodes_visited, furthest_step)
