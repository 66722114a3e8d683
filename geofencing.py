"""
Geofencing Module
Builds the geofence index and answers point / segment blocking queries
Uses the even-odd ray-casting algorithm for point-in-polygon tests
"""

import logging
import math
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

import config
from config import DEFAULT_ENGINE_CONFIG, EngineConfig
from exceptions import GeofenceMalformed
from geodesy import geodesic_distance
from models import BoundingBox, GeofenceIndexEntry, GeofenceRecord

logger = logging.getLogger(__name__)

ADVISORY_TYPE = "advisory"

GeofenceInput = Union[GeofenceRecord, dict]


def point_in_polygon(point: Tuple[float, float], polygon: Sequence[Tuple[float, float]]) -> bool:
    """
    Ray-casting algorithm to determine if a point is inside a polygon

    Args:
        point: (latitude, longitude)
        polygon: List of (latitude, longitude) vertices

    Returns:
        True if point is inside polygon, False otherwise
    """
    lat, lon = point
    inside = False

    j = len(polygon) - 1
    for i in range(len(polygon)):
        yi, xi = polygon[i]
        yj, xj = polygon[j]
        if (yi > lat) != (yj > lat):
            crossing = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lon < crossing:
                inside = not inside
        j = i

    return inside


def compute_bounding_box(polygon: Sequence[Tuple[float, float]]) -> Optional[BoundingBox]:
    """Axis-aligned lat/lon box over the finite vertices, None if there are none"""
    finite = [(lat, lon) for lat, lon in polygon if math.isfinite(lat) and math.isfinite(lon)]
    if not finite:
        return None
    lats = [lat for lat, _ in finite]
    lons = [lon for _, lon in finite]
    return BoundingBox(min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons))


def _altitude_or(value: Optional[float], fallback: float) -> float:
    if value is None or not math.isfinite(value):
        return fallback
    return value


def index_geofence(record: GeofenceRecord) -> GeofenceIndexEntry:
    """
    Normalize one geofence record

    Raises:
        GeofenceMalformed: polygon cannot be indexed
    """
    if len(record.polygon) < 3:
        raise GeofenceMalformed(record.id, f"polygon has {len(record.polygon)} vertices, need 3")

    bounds = compute_bounding_box(record.polygon)
    if bounds is None:
        raise GeofenceMalformed(record.id, "polygon has no finite vertices")

    lower = _altitude_or(record.lower_altitude_m, config.GEOFENCE_DEFAULT_LOWER_M)
    upper = _altitude_or(record.upper_altitude_m, config.GEOFENCE_DEFAULT_UPPER_M)

    return GeofenceIndexEntry(
        id=record.id,
        polygon=list(record.polygon),
        bounding_box=bounds,
        lower_altitude=min(lower, upper),
        upper_altitude=max(lower, upper),
    )


def build_geofence_index(geofences: Optional[Iterable[GeofenceInput]]) -> List[GeofenceIndexEntry]:
    """
    Build the blocking index from raw geofence records

    Inactive and advisory geofences are left out. Malformed records are
    skipped and logged.

    Args:
        geofences: GeofenceRecord objects or plain dicts

    Returns:
        List of index entries in input order
    """
    if not geofences:
        return []

    indexed = []
    for raw in geofences:
        if raw is None:
            continue
        try:
            record = raw if isinstance(raw, GeofenceRecord) else GeofenceRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Geofence skipped: invalid record (%s)", e.errors()[0].get("msg", e))
            continue

        if not record.active:
            logger.debug("Geofence '%s' skipped: inactive", record.id)
            continue
        if record.geofence_type.lower() == ADVISORY_TYPE:
            logger.debug("Geofence '%s' skipped: advisory", record.id)
            continue

        try:
            indexed.append(index_geofence(record))
        except GeofenceMalformed as e:
            logger.warning(str(e))

    return indexed


def geofence_blocks_point(geofences: Sequence[GeofenceIndexEntry],
                          lat: float, lon: float, altitude: float) -> bool:
    """
    Check whether a 3D point falls inside any geofence

    Non-finite coordinates count as blocked.
    """
    if not geofences:
        return False
    if not (math.isfinite(lat) and math.isfinite(lon) and math.isfinite(altitude)):
        return True

    for geofence in geofences:
        if not geofence.bounding_box.contains(lat, lon):
            continue
        if altitude < geofence.lower_altitude or altitude > geofence.upper_altitude:
            continue
        if point_in_polygon((lat, lon), geofence.polygon):
            return True

    return False


def geofence_blocks_segment(geofences: Sequence[GeofenceIndexEntry],
                            start: Any, end: Any,
                            start_alt: float, end_alt: float,
                            engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> bool:
    """
    Sample a straight segment at fixed ground intervals against the geofences

    Args:
        start, end: objects with lat / lon attributes
        start_alt, end_alt: altitudes at the two ends, linearly interpolated

    Returns:
        True if any sample is blocked
    """
    if not geofences:
        return False

    distance = geodesic_distance(start.lat, start.lon, end.lat, end.lon)
    step = max(1.0, engine_config.geofence_sample_step_m)
    samples = max(1, min(engine_config.geofence_max_samples, math.ceil(distance / step)))

    for i in range(samples + 1):
        t = i / samples
        lat = start.lat + t * (end.lat - start.lat)
        lon = start.lon + t * (end.lon - start.lon)
        alt = start_alt + t * (end_alt - start_alt)
        if geofence_blocks_point(geofences, lat, lon, alt):
            return True

    return False
