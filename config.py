"""
Route Engine Configuration
Defines regulatory limits, flight characteristics, cost weights and corridor sampling defaults
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# REGULATORY LIMITS
# ============================================================================

FAA_LIMIT_AGL = 121.0   # meters (FAA Part 107, 400 ft above ground level)
SAFETY_BUFFER_M = 20.0  # meters of clearance required above any obstacle

# ============================================================================
# FLIGHT CHARACTERISTICS
# ============================================================================

CLIMB_SPEED_MPS = 2.0
CRUISE_SPEED_MPS = 15.0
DESCENT_SPEED_MPS = 3.0

# ============================================================================
# COST WEIGHTS
# ============================================================================
# Straight paths are preferred over lateral deviations, lateral deviations
# over climbing

COST_TIME_WEIGHT = 1.0
COST_CLIMB_PENALTY = 15.0        # per meter climbed
COST_LANE_CHANGE = 50.0          # per lane shifted
COST_PROXIMITY_PENALTY = 100.0   # per adjacent wall taller than cruise altitude

# ============================================================================
# GEOFENCES
# ============================================================================

GEOFENCE_SAMPLE_STEP_M = 25.0
GEOFENCE_MAX_SAMPLES = 200
GEOFENCE_DEFAULT_LOWER_M = 0.0
GEOFENCE_DEFAULT_UPPER_M = 120.0

# ============================================================================
# WAYPOINT SYNTHESIS AND SEGMENT VALIDATION
# ============================================================================

MAX_SEGMENT_DISTANCE_M = 15.0   # straight runs longer than this get CRUISE_INTERMEDIATE points
SEGMENT_CHECK_COUNT = 5         # samples per cruise leg
DETOUR_MARGIN_M = 10.0          # extra height on top of min safe altitude for detours
HEIGHT_PROBE_ALTITUDE_M = 1000.0  # probe height for clamp-from-above obstacle sampling

# ============================================================================
# CORRIDOR GRID
# ============================================================================

DEFAULT_SAMPLE_SPACING_M = 5.0
TARGET_GRID_STEPS = 300

# (route length threshold in meters, step spacing in meters), longest first
SAMPLE_SPACING_TIERS = [
    (8000.0, 10.0),
    (4000.0, 7.5),
    (2000.0, 6.0),
]

# Fan search lateral offsets
DEFAULT_LANE_SPACING_M = 15.0
DEFAULT_LANE_RADIUS_M = 90.0
MAX_LANE_RADIUS_M = 240.0
LANE_EXPANSION_STEP_M = 60.0

# Side-to-side building check along the final route
CORRIDOR_SAMPLE_RADIUS_M = 10.0
CORRIDOR_SAMPLE_SPACING_M = 3.0
BUILDING_MIN_HEIGHT_M = 2.0


# ============================================================================
# CONFIGURATION OBJECTS
# ============================================================================

class EngineConfig(BaseModel):
    """
    Parameters for one optimization call

    Accepts either the snake_case field names or the flat camelCase keys
    (faaLimitAGL, safetyBufferM, ...). Unknown keys are rejected.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    faa_limit_agl: float = Field(FAA_LIMIT_AGL, alias="faaLimitAGL", gt=0)
    safety_buffer_m: float = Field(SAFETY_BUFFER_M, alias="safetyBufferM", ge=0)
    climb_speed_mps: float = Field(CLIMB_SPEED_MPS, alias="climbSpeedMps", gt=0)
    cruise_speed_mps: float = Field(CRUISE_SPEED_MPS, alias="cruiseSpeedMps", gt=0)
    descent_speed_mps: float = Field(DESCENT_SPEED_MPS, alias="descentSpeedMps", gt=0)
    cost_time_weight: float = Field(COST_TIME_WEIGHT, alias="costTimeWeight", ge=0)
    cost_climb_penalty: float = Field(COST_CLIMB_PENALTY, alias="costClimbPenalty", ge=0)
    cost_lane_change: float = Field(COST_LANE_CHANGE, alias="costLaneChange", ge=0)
    cost_proximity_penalty: float = Field(COST_PROXIMITY_PENALTY, alias="costProximityPenalty", ge=0)
    geofence_sample_step_m: float = Field(GEOFENCE_SAMPLE_STEP_M, alias="geofenceSampleStepM", gt=0)
    geofence_max_samples: int = Field(GEOFENCE_MAX_SAMPLES, alias="geofenceMaxSamples", ge=1)
    max_segment_distance_m: float = Field(MAX_SEGMENT_DISTANCE_M, alias="maxSegmentDistanceM", gt=0)
    segment_check_count: int = Field(SEGMENT_CHECK_COUNT, alias="segmentCheckCount", ge=2)
    detour_margin_m: float = Field(DETOUR_MARGIN_M, alias="detourMarginM", ge=0)
    height_probe_altitude_m: float = Field(HEIGHT_PROBE_ALTITUDE_M, alias="heightProbeAltitudeM")

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, Any]] = None) -> "EngineConfig":
        """
        Build a config from a flat key -> value map on top of the defaults

        Raises:
            pydantic.ValidationError: unknown key or invalid value
        """
        return cls.model_validate(dict(overrides or {}))

    def with_overrides(self, overrides: Mapping[str, Any]) -> "EngineConfig":
        """Return a copy with the given flat overrides applied"""
        parsed = EngineConfig.from_overrides(overrides)
        update = {name: getattr(parsed, name) for name in parsed.model_fields_set}
        return self.model_copy(update=update)


class PlannerConfig(BaseModel):
    """Corridor sampling and lane fan parameters for a full planning pass"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    default_sample_spacing_m: float = Field(DEFAULT_SAMPLE_SPACING_M, gt=0)
    target_grid_steps: int = Field(TARGET_GRID_STEPS, ge=1)
    lane_spacing_m: float = Field(DEFAULT_LANE_SPACING_M, gt=0)
    lane_radius_m: float = Field(DEFAULT_LANE_RADIUS_M, gt=0)
    max_lane_radius_m: float = Field(MAX_LANE_RADIUS_M, gt=0)
    lane_expansion_step_m: float = Field(LANE_EXPANSION_STEP_M, gt=0)
    corridor_sample_radius_m: float = Field(CORRIDOR_SAMPLE_RADIUS_M, ge=0)
    corridor_sample_spacing_m: float = Field(CORRIDOR_SAMPLE_SPACING_M, gt=0)


DEFAULT_ENGINE_CONFIG = EngineConfig()
DEFAULT_PLANNER_CONFIG = PlannerConfig()
