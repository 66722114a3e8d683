"""
Segment Validation
Re-checks horizontal legs of a synthesized route against freshly sampled
heights, inserts detour waypoints above detected collisions and lifts the
route over buildings standing beside it
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from config import BUILDING_MIN_HEIGHT_M, DEFAULT_ENGINE_CONFIG, DEFAULT_PLANNER_CONFIG, EngineConfig, PlannerConfig
from geodesy import destination, inverse, offset_enu
from height_sampler import HeightSampler, sample_or_zero
from models import GROUND_PHASES, FlightPhase, SamplePoint, Waypoint

logger = logging.getLogger(__name__)


def is_horizontal_leg(start: Waypoint, end: Waypoint) -> bool:
    """
    Legs touching the ground are the vertical takeoff / landing legs

    Airborne legs next to the vertical ascent or descent are checked as well.
    """
    return start.phase not in GROUND_PHASES and end.phase not in GROUND_PHASES


async def find_collisions(start: Waypoint, end: Waypoint, sampler: HeightSampler,
                          engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> List[Waypoint]:
    """
    Sample the leg and return a raised detour point for every collision

    The leg is flown at the start waypoint's altitude.
    """
    checks = engine_config.segment_check_count
    fractions = [j / checks for j in range(1, checks)]
    positions = [
        (start.lat + t * (end.lat - start.lat), start.lon + t * (end.lon - start.lon))
        for t in fractions
    ]

    heights = await sample_or_zero(
        sampler,
        [SamplePoint(lat=lat, lon=lon, probe_altitude=engine_config.height_probe_altitude_m)
         for lat, lon in positions],
        label="Segment height",
    )

    collisions = []
    for (lat, lon), obstacle_height in zip(positions, heights):
        min_safe_alt = obstacle_height + engine_config.safety_buffer_m
        if min_safe_alt > start.alt:
            collisions.append(Waypoint(
                lat=lat,
                lon=lon,
                alt=min_safe_alt + engine_config.detour_margin_m,
                phase=FlightPhase.CRUISE_DETOUR,
                priority=1,
                obstacle_height=obstacle_height,
            ))
    return collisions


async def validate_and_fix_segments(waypoints: Sequence[Waypoint], sampler: HeightSampler,
                                    engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> List[Waypoint]:
    """
    Insert CRUISE_DETOUR waypoints where a horizontal leg hits an obstacle

    Only the first and last collision of a leg are inserted, right after the
    leg's start waypoint. Overlapping collisions on one leg are therefore
    only partially corrected.

    Args:
        waypoints: synthesized route
        sampler: height source, sampled once per checked leg

    Returns:
        New waypoint list
    """
    if sampler is None or len(waypoints) < 2:
        return list(waypoints)

    logger.info("Validating %d legs for collisions", len(waypoints) - 1)
    fixed: List[Waypoint] = []

    for i, wp in enumerate(waypoints):
        fixed.append(wp)
        if i == len(waypoints) - 1:
            continue

        next_wp = waypoints[i + 1]
        if not is_horizontal_leg(wp, next_wp):
            continue

        collisions = await find_collisions(wp, next_wp, sampler, engine_config)
        if not collisions:
            continue

        logger.info("Leg %d has %d collision(s), inserting detours", i, len(collisions))
        # TODO: re-run a local corridor search when one leg has several separate collisions
        fixed.append(collisions[0])
        if len(collisions) > 1:
            fixed.append(collisions[-1])

    logger.info("Segment validation complete: %d -> %d waypoints", len(waypoints), len(fixed))
    return fixed


# ============================================================================
# CORRIDOR WIDTH CHECK
# ============================================================================

def corridor_sample_positions(waypoints: Sequence[Waypoint],
                              planner_config: PlannerConfig = DEFAULT_PLANNER_CONFIG) -> List[Tuple[float, float]]:
    """
    Points spread across the corridor along every leg of the route

    Each leg is walked every corridor_sample_spacing_m meters. At every stop
    five points are taken perpendicular to the leg: the center, both edges
    at corridor_sample_radius_m and halfway to each edge.
    """
    radius = planner_config.corridor_sample_radius_m
    offsets = [-radius, -radius / 2, 0.0, radius / 2, radius]
    positions = []

    for start, end in zip(waypoints, waypoints[1:]):
        bearing, distance = inverse(start.lat, start.lon, end.lat, end.lon)
        steps = max(1, math.ceil(distance / planner_config.corridor_sample_spacing_m))
        for j in range(steps + 1):
            lat, lon = destination(start.lat, start.lon, bearing, distance * j / steps)
            for offset in offsets:
                positions.append(offset_enu(lat, lon, bearing + 90.0, offset))

    return positions


async def check_corridor_heights(waypoints: Sequence[Waypoint], sampler: HeightSampler,
                                 engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG,
                                 planner_config: PlannerConfig = DEFAULT_PLANNER_CONFIG,
                                 terrain_sampler: Optional[HeightSampler] = None) -> List[Waypoint]:
    """
    Raise the route above buildings standing beside its legs

    Heights are sampled across the corridor width of every leg. When any
    sample stands more than BUILDING_MIN_HEIGHT_M above the terrain, every
    airborne waypoint except the descents is lifted to the tallest sampled
    obstacle plus the safety buffer.

    Args:
        waypoints: route after segment validation
        sampler: obstacle height source
        terrain_sampler: bare-earth height source, defaults to sampler

    Returns:
        New waypoint list, unchanged when no building was found
    """
    if sampler is None or len(waypoints) < 2:
        return list(waypoints)

    positions = corridor_sample_positions(waypoints, planner_config)
    logger.info("Checking corridor heights at %d points (radius %.0fm)",
                len(positions), planner_config.corridor_sample_radius_m)

    obstacle = await sample_or_zero(
        sampler,
        [SamplePoint(lat=lat, lon=lon, probe_altitude=engine_config.height_probe_altitude_m)
         for lat, lon in positions],
        label="Corridor height",
    )
    terrain = await sample_or_zero(
        terrain_sampler or sampler,
        [SamplePoint(lat=lat, lon=lon) for lat, lon in positions],
        label="Corridor terrain",
    )

    building_heights = [o for o, t in zip(obstacle, terrain) if o - t > BUILDING_MIN_HEIGHT_M]
    if not building_heights:
        logger.info("No buildings in the corridor")
        return list(waypoints)

    min_safe_alt = max(building_heights) + engine_config.safety_buffer_m
    raised = []
    for wp in waypoints:
        if wp.phase in GROUND_PHASES or wp.phase == FlightPhase.VERTICAL_DESCENT or wp.alt >= min_safe_alt:
            raised.append(wp)
        else:
            raised.append(wp.model_copy(update={"alt": min_safe_alt}))

    changed = sum(1 for old, new in zip(waypoints, raised) if old is not new)
    logger.info("Corridor buildings up to %.1fm, raised %d waypoint(s) to %.1fm",
                max(building_heights), changed, min_safe_alt)
    return raised
