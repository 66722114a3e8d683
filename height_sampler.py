"""
Height Sampler Clients
Resolves obstacle / terrain heights for batches of points
The engine only relies on heights coming back in request order
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

import aiohttp

from exceptions import HeightSampleUnavailable
from models import SamplePoint

logger = logging.getLogger(__name__)


class HeightSampler:
    """Base class for height sources"""

    async def sample(self, points: Sequence[SamplePoint]) -> List[Optional[float]]:
        """
        Resolve a height for every point

        Returns:
            One entry per point in request order, None where no data is available

        Raises:
            HeightSampleUnavailable: the whole batch failed
        """
        raise NotImplementedError


class CallableHeightSampler(HeightSampler):
    """Wraps a synchronous lookup such as a DEM or a building footprint table"""

    def __init__(self, lookup: Callable[[float, float, Optional[float]], Optional[float]]):
        self.lookup = lookup

    async def sample(self, points: Sequence[SamplePoint]) -> List[Optional[float]]:
        return [self.lookup(p.lat, p.lon, p.probe_altitude) for p in points]


class HttpHeightSampler(HeightSampler):
    """
    Client for a batch height service

    Request:  POST {"points": [{"lat": .., "lon": .., "alt": ..}, ...]}
    Response: {"heights": [float | null, ...]}
    """

    def __init__(self, url: str, timeout: float = 30.0,
                 session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.timeout = timeout
        self.session = session

    async def sample(self, points: Sequence[SamplePoint]) -> List[Optional[float]]:
        if not points:
            return []

        payload = {"points": [_point_payload(p) for p in points]}

        if self.session is not None:
            return await self._post(self.session, payload, len(points))
        async with aiohttp.ClientSession() as session:
            return await self._post(session, payload, len(points))

    async def _post(self, session: aiohttp.ClientSession, payload: dict, count: int) -> List[Optional[float]]:
        try:
            async with session.post(
                self.url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status != 200:
                    raise HeightSampleUnavailable(
                        f"Height service returned HTTP {response.status} for {count} points"
                    )
                body = await response.json()
        except asyncio.TimeoutError as e:
            raise HeightSampleUnavailable(f"Height service timed out after {self.timeout}s") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise HeightSampleUnavailable(f"Height service request failed: {e}") from e

        heights = body.get("heights") if isinstance(body, dict) else None
        if not isinstance(heights, list):
            raise HeightSampleUnavailable("Height service response has no 'heights' list")

        result = []
        for i in range(count):
            value = heights[i] if i < len(heights) else None
            result.append(float(value) if isinstance(value, (int, float)) else None)
        return result


def _point_payload(point: SamplePoint) -> dict:
    payload = {"lat": point.lat, "lon": point.lon}
    if point.probe_altitude is not None:
        payload["alt"] = point.probe_altitude
    return payload


async def sample_or_zero(sampler: HeightSampler, points: Sequence[SamplePoint],
                         label: str = "height") -> List[float]:
    """
    Sample heights, falling back to 0 for every point without data

    A failed batch is logged and treated as all zeros.
    """
    try:
        heights = await sampler.sample(points)
    except HeightSampleUnavailable as e:
        logger.warning("%s sampling failed, using 0 for %d points: %s", label, len(points), e)
        return [0.0] * len(points)

    heights = list(heights) + [None] * max(0, len(points) - len(heights))
    missing = sum(1 for h in heights[:len(points)] if h is None)
    if missing:
        logger.warning("%s unavailable for %d of %d points, using 0", label, missing, len(points))

    return [0.0 if h is None else float(h) for h in heights[:len(points)]]
