"""
Data Models for the Route Engine
Uses Pydantic for validation and serialization
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class FlightPhase(str, Enum):
    """Flight phase attached to every emitted waypoint"""
    GROUND_START = "GROUND_START"
    GROUND_WAYPOINT = "GROUND_WAYPOINT"
    GROUND_END = "GROUND_END"
    VERTICAL_ASCENT = "VERTICAL_ASCENT"
    VERTICAL_DESCENT = "VERTICAL_DESCENT"
    CRUISE = "CRUISE"
    CRUISE_CORNER = "CRUISE_CORNER"
    CRUISE_INTERMEDIATE = "CRUISE_INTERMEDIATE"
    CRUISE_DETOUR = "CRUISE_DETOUR"


GROUND_PHASES = frozenset({
    FlightPhase.GROUND_START,
    FlightPhase.GROUND_WAYPOINT,
    FlightPhase.GROUND_END,
})

CRUISE_PHASES = frozenset({
    FlightPhase.CRUISE,
    FlightPhase.CRUISE_CORNER,
    FlightPhase.CRUISE_INTERMEDIATE,
    FlightPhase.CRUISE_DETOUR,
})


class RouteWaypoint(BaseModel):
    """User waypoint (landing zone) given to the planner"""
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    alt: float = 0.0


class SamplePoint(BaseModel):
    """Height sampler query point, optionally probed from a given altitude"""
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float
    probe_altitude: Optional[float] = None


# ============================================================================
# CORRIDOR GRID
# ============================================================================

class GridPoint(BaseModel):
    """Sampled corridor cell; heights are meters above a common datum"""
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float
    alt: float = 0.0
    terrain_height: float = 0.0
    obstacle_height: float = 0.0

    @property
    def feature_height(self) -> float:
        return max(self.obstacle_height, self.terrain_height)


class Grid(BaseModel):
    """
    Corridor grid addressed as lanes[lane][step]

    The lane count is odd so the fan is symmetric around the center lane.
    waypoint_indices holds the step index of every user waypoint.
    """
    lanes: List[List[GridPoint]]
    waypoint_indices: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_shape(self) -> "Grid":
        if not self.lanes:
            raise ValueError("grid must have at least one lane")
        if len(self.lanes) % 2 == 0:
            raise ValueError(f"grid lane count must be odd, got {len(self.lanes)}")
        steps = len(self.lanes[0])
        if steps == 0:
            raise ValueError("grid lanes must have at least one step")
        if any(len(lane) != steps for lane in self.lanes):
            raise ValueError("all grid lanes must have the same number of steps")
        for index in self.waypoint_indices:
            if index < 0 or index >= steps:
                raise ValueError(f"waypoint index {index} outside grid of {steps} steps")
        return self

    @property
    def num_lanes(self) -> int:
        return len(self.lanes)

    @property
    def num_steps(self) -> int:
        return len(self.lanes[0])

    @property
    def center_lane(self) -> int:
        return len(self.lanes) // 2

    @property
    def center_line(self) -> List[GridPoint]:
        return self.lanes[self.center_lane]

    def point(self, step: int, lane: int) -> GridPoint:
        return self.lanes[lane][step]


# ============================================================================
# GEOFENCES
# ============================================================================

class GeofenceRecord(BaseModel):
    """Raw geofence as delivered by the geofence service"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    polygon: List[Tuple[float, float]] = Field(default_factory=list)  # (lat, lon) ring
    lower_altitude_m: Optional[float] = None
    upper_altitude_m: Optional[float] = None
    geofence_type: str = Field("", validation_alias=AliasChoices("geofence_type", "type"))
    active: bool = True

    @field_validator("id", "geofence_type", mode="before")
    @classmethod
    def _to_text(cls, value):
        return "" if value is None else str(value)


class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


class GeofenceIndexEntry(BaseModel):
    """Normalized geofence ready for fast rejection and polygon tests"""
    model_config = ConfigDict(frozen=True)

    id: str
    polygon: List[Tuple[float, float]]
    bounding_box: BoundingBox
    lower_altitude: float
    upper_altitude: float


# ============================================================================
# PATHS AND WAYPOINTS
# ============================================================================

class PathNode(BaseModel):
    """Node on a reconstructed search path"""
    model_config = ConfigDict(frozen=True)

    step: int
    lane: int
    alt: float


class Waypoint(BaseModel):
    """Final output unit of the planner"""
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float
    alt: float
    phase: FlightPhase
    priority: int = 1
    obstacle_height: Optional[float] = None


class PathStats(BaseModel):
    max_agl: float = 0.0
    max_altitude: float = 0.0
    raw_nodes: int = 0
    smoothed_nodes: int = 0


class ImpossibleSegment(BaseModel):
    """User waypoint leg the search could not get through"""
    segment_index: int
    start_step: int
    end_step: int
    furthest_step: int  # furthest step the search reached


class OptimizationResult(BaseModel):
    success: bool
    waypoints: List[Waypoint] = Field(default_factory=list)
    nodes_visited: int = 0
    stats: Optional[PathStats] = None
    impossible_segments: List[ImpossibleSegment] = Field(default_factory=list)
    error: Optional[str] = None  # "INSUFFICIENT_WAYPOINTS", "NO_PATH_FOUND"


class FAAViolation(BaseModel):
    type: str  # "FAA_ALTITUDE_EXCEEDED", "INSUFFICIENT_CLEARANCE"
    lat: float
    lon: float
    value: float
    limit: float
    message: str


class StraightPathValidation(BaseModel):
    """Result of checking the center lane at a single planned altitude"""
    is_valid: bool
    violations: List[FAAViolation] = Field(default_factory=list)
    suggested_altitude: float
    suggested_agl: float
    max_obstacle_height: float
    faa_compliant: bool
    summary: str


class RouteResult(BaseModel):
    """Outcome of a full planning pass"""
    success: bool
    optimized: bool = False
    waypoints: List[Waypoint] = Field(default_factory=list)
    sample_points: int = 0
    planned_altitude: float = 0.0
    lane_radius_m: Optional[float] = None
    validation: Optional[StraightPathValidation] = None
    optimization: Optional[OptimizationResult] = None
    impossible_segments: List[ImpossibleSegment] = Field(default_factory=list)
    summary: str = ""
    error: Optional[str] = None


class TrajectoryPoint(BaseModel):
    """Densified trajectory sample"""
    lat: float
    lon: float
    alt: float
    time_offset: float  # seconds since departure
