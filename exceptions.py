"""
Route Engine Errors
Only construction-time contract violations are raised across the public entry points
"""


class RouteEngineError(Exception):
    """Base class for route engine errors"""


class InsufficientWaypointsError(RouteEngineError, ValueError):
    """Fewer than two waypoints were given"""

    def __init__(self, count: int):
        super().__init__(f"At least 2 waypoints are required, got {count}")
        self.count = count


class HeightSampleUnavailable(RouteEngineError):
    """The height sampler failed or returned no data"""


class GeofenceMalformed(RouteEngineError):
    """A raw geofence record cannot be indexed"""

    def __init__(self, geofence_id: str, reason: str):
        super().__init__(f"Geofence '{geofence_id}' skipped: {reason}")
        self.geofence_id = geofence_id
        self.reason = reason
