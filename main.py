"""
UTM Route Engine - Command Line Entry Point
Plans a route for a JSON request and prints the result as JSON
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config import EngineConfig, PlannerConfig
from height_sampler import HttpHeightSampler
from models import Grid, Waypoint
from planner import calculate_route
from route_engine import optimize_flight_path
from trajectory import calculate_time_offsets, densify_route

logger = logging.getLogger(__name__)

# ============================================================================
# ARGUMENT PARSING
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plan an FAA-compliant drone route through a sampled corridor"
    )
    parser.add_argument("request", help="request JSON with waypoints, optional geofences and grid")
    parser.add_argument("--height-service", metavar="URL",
                        help="batch height service used when the request has no grid")
    parser.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
                        help="engine config override, e.g. --set faaLimitAGL=100 (repeatable)")
    parser.add_argument("--no-validate", action="store_true",
                        help="skip re-sampling cruise legs after optimization")
    parser.add_argument("--densify", action="store_true",
                        help="add a 1 m trajectory with time offsets to the output")
    return parser


def parse_overrides(pairs: List[str]) -> Dict[str, Any]:
    """
    Turn KEY=VALUE strings into a flat override map

    Values are parsed as JSON where possible (numbers), otherwise kept as text.
    """
    overrides = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Override '{pair}' is not KEY=VALUE")
        try:
            overrides[key.strip()] = json.loads(value)
        except json.JSONDecodeError:
            overrides[key.strip()] = value
    return overrides


# ============================================================================
# PLANNING
# ============================================================================

async def run_request(request: Dict[str, Any], engine_config: EngineConfig,
                      height_service: Optional[str], validate_segments: bool) -> Dict[str, Any]:
    """
    Run one request

    A pre-sampled grid goes straight to the optimizer. Without one the full
    planning pass samples heights from the height service.
    """
    waypoints = request.get("waypoints", [])
    geofences = request.get("geofences", [])

    if "grid" in request:
        grid = Grid.model_validate(request["grid"])
        result = optimize_flight_path(waypoints, grid, geofences, engine_config)
        return result.model_dump(mode="json")

    if not height_service:
        raise ValueError("Request has no grid; --height-service is required")

    sampler = HttpHeightSampler(height_service)
    planner_config = PlannerConfig.model_validate(request.get("planner", {}))
    result = await calculate_route(
        waypoints, sampler, geofences,
        engine_config=engine_config,
        planner_config=planner_config,
        validate_segments=validate_segments,
    )
    return result.model_dump(mode="json")


def add_trajectory(output: Dict[str, Any], engine_config: EngineConfig) -> None:
    """Attach timing and the densified trajectory for a successful result"""
    waypoints = [Waypoint.model_validate(wp) for wp in output.get("waypoints", [])]
    if not waypoints:
        return
    output["timing"] = [p.model_dump() for p in calculate_time_offsets(waypoints, engine_config)]
    output["trajectory"] = [p.model_dump() for p in densify_route(waypoints, engine_config.cruise_speed_mps)]


# ============================================================================
# MAIN
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    args = build_parser().parse_args(argv)

    try:
        with open(args.request, "r") as f:
            request = json.load(f)
        if not isinstance(request, dict):
            raise ValueError("Request JSON must be an object")
        engine_config = EngineConfig.from_overrides(
            {**request.get("config", {}), **parse_overrides(args.overrides)}
        )
        output = asyncio.run(run_request(request, engine_config, args.height_service, not args.no_validate))
    except (OSError, ValueError, ValidationError) as e:
        logger.error("Request failed: %s", e)
        return 2

    if args.densify and output.get("success"):
        add_trajectory(output, engine_config)

    print(json.dumps(output, indent=2))
    return 0 if output.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
