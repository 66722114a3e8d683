"""Shared grid builders and height samplers for the route engine tests."""

import pytest

from height_sampler import CallableHeightSampler
from models import Grid, GridPoint

# Roughly 10 m of latitude and 15 m of longitude at the equator
STEP_DEG = 10.0 / 110574.0
LANE_DEG = 15.0 / 111320.0


def build_grid(num_lanes=5, num_steps=20, obstacles=None, terrain=0.0, waypoint_indices=None):
    """
    Synthetic corridor running north along the equator

    obstacles maps (step, lane) -> obstacle height; every other cell sits at
    the terrain height.
    """
    obstacles = obstacles or {}
    center = num_lanes // 2
    lanes = []
    for lane in range(num_lanes):
        points = []
        for step in range(num_steps):
            points.append(GridPoint(
                lat=step * STEP_DEG,
                lon=(lane - center) * LANE_DEG,
                terrain_height=terrain,
                obstacle_height=max(terrain, obstacles.get((step, lane), terrain)),
            ))
        lanes.append(points)
    return Grid(lanes=lanes, waypoint_indices=waypoint_indices or [0, num_steps - 1])


@pytest.fixture
def make_grid():
    return build_grid


@pytest.fixture
def flat_sampler():
    return CallableHeightSampler(lambda lat, lon, probe_altitude: 0.0)


class RecordingSampler(CallableHeightSampler):
    """Callable sampler that remembers every batch it was asked for"""

    def __init__(self, lookup):
        super().__init__(lookup)
        self.batches = []

    async def sample(self, points):
        self.batches.append(list(points))
        return await super().sample(points)


@pytest.fixture
def recording_sampler():
    return RecordingSampler
