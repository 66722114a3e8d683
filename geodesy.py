"""
Geodesy Helpers
Ellipsoidal (WGS84) distances, bearings, geodesic interpolation and
east-north-up lateral offsets
"""

import math
from typing import Tuple

from pyproj import Geod, Transformer

GEOD = Geod(ellps="WGS84")

# Geographic 3D (lon, lat, h) <-> Earth-centered Earth-fixed (x, y, z)
_TO_ECEF = Transformer.from_crs("EPSG:4979", "EPSG:4978", always_xy=True)
_FROM_ECEF = Transformer.from_crs("EPSG:4978", "EPSG:4979", always_xy=True)


def geodesic_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance along the WGS84 ellipsoid between two points

    Returns:
        Distance in meters
    """
    _, _, distance = GEOD.inv(lon1, lat1, lon2, lat2)
    return distance


def distance_3d(lat1: float, lon1: float, alt1: float,
                lat2: float, lon2: float, alt2: float) -> float:
    """Surface distance combined with the altitude difference, in meters"""
    horizontal = geodesic_distance(lat1, lon1, lat2, lon2)
    vertical = abs(alt2 - alt1)
    return math.sqrt(horizontal ** 2 + vertical ** 2)


def inverse(lat1: float, lon1: float, lat2: float, lon2: float) -> Tuple[float, float]:
    """
    Solve the inverse geodesic problem

    Returns:
        (initial bearing in degrees clockwise from north in [0, 360), distance in meters)
    """
    azimuth, _, distance = GEOD.inv(lon1, lat1, lon2, lat2)
    return azimuth % 360.0, distance


def destination(lat: float, lon: float, bearing: float, distance: float) -> Tuple[float, float]:
    """
    Travel along the geodesic leaving (lat, lon) at the given bearing

    Returns:
        (lat, lon) of the point reached after distance meters
    """
    lon2, lat2, _ = GEOD.fwd(lon, lat, bearing, distance)
    return lat2, lon2


def offset_enu(lat: float, lon: float, bearing: float, offset: float) -> Tuple[float, float]:
    """
    Move a point sideways in its local east-north-up tangent plane

    The displacement is offset meters along the horizontal direction given by
    bearing. The result is projected back onto the ellipsoid.

    Returns:
        (lat, lon) of the offset point
    """
    if offset == 0:
        return lat, lon

    x, y, z = _TO_ECEF.transform(lon, lat, 0.0)

    phi = math.radians(lat)
    lam = math.radians(lon)
    theta = math.radians(bearing)

    east = (-math.sin(lam), math.cos(lam), 0.0)
    north = (-math.sin(phi) * math.cos(lam), -math.sin(phi) * math.sin(lam), math.cos(phi))

    d_east = math.sin(theta) * offset
    d_north = math.cos(theta) * offset

    x += east[0] * d_east + north[0] * d_north
    y += east[1] * d_east + north[1] * d_north
    z += east[2] * d_east + north[2] * d_north

    lon2, lat2, _ = _FROM_ECEF.transform(x, y, z)
    return lat2, lon2
