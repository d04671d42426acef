from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from floorit.config import Settings
from floorit.errors import NetworkFailure
from floorit.models.domain import AttributeSnapshot, RoadAttributeElement
from floorit.services.geospatial import METERS_PER_MILE, path_length_miles
from floorit.services.routing.models import NormalizedRoute

START = (-73.95, 41.70)


def interpolate(points: Sequence[tuple[float, float]], per_leg: int = 15) -> list[tuple[float, float]]:
    coords: list[tuple[float, float]] = []
    for (x1, y1), (x2, y2) in zip(points, points[1:]):
        for step in range(per_leg):
            t = step / per_leg
            coords.append((x1 + (x2 - x1) * t, y1 + (y2 - y1) * t))
    coords.append(points[-1])
    return coords


def loop_route(start, waypoints, mph: float = 55.0) -> NormalizedRoute:
    geometry = tuple(interpolate([start, *waypoints, start]))
    miles = path_length_miles(geometry)
    return NormalizedRoute(
        distance=miles * METERS_PER_MILE,
        duration=miles / mph * 3600,
        geometry=geometry,
        legs=(),
    )


def speed_step_snapshot(coords: Sequence[tuple[float, float]]) -> AttributeSnapshot:
    """A 25 mph way near the start and a 55 mph way a quarter of the way in."""
    slow = coords[2]
    fast = coords[len(coords) // 4]
    return AttributeSnapshot(
        elements=(
            RoadAttributeElement(kind="way", element_id=1, tags={"maxspeed": "25 mph"}, geometry=(slow,)),
            RoadAttributeElement(kind="way", element_id=2, tags={"maxspeed": "55 mph"}, geometry=(fast,)),
        )
    )


class FakeRouting:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []

    async def fetch_trip(self, start, waypoints):
        self.calls.append((start, tuple(waypoints)))
        if self.fail:
            return None
        return loop_route(start, waypoints)

    async def fetch_alternatives(self, origin, destination):
        if self.fail:
            return []
        direct = NormalizedRoute(
            distance=16000.0,
            duration=900.0,
            geometry=tuple(interpolate([origin, destination], per_leg=60)),
        )
        detour_via = (destination[0], origin[1])
        detour = NormalizedRoute(
            distance=21000.0,
            duration=1260.0,
            geometry=tuple(interpolate([origin, detour_via, destination], per_leg=30)),
        )
        return [detour, direct]


class FakeAttributes:
    def __init__(self, mode: str = "speed_step") -> None:
        self.mode = mode
        self.calls = 0

    async def query_attributes(self, coords):
        self.calls += 1
        if self.mode == "fail":
            raise NetworkFailure("attribute backend unreachable")
        if self.mode == "empty":
            return AttributeSnapshot()
        return speed_step_snapshot(coords)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def start():
    return START


@pytest.fixture
def test_settings():
    return Settings(loop_attribute_delay_seconds=1.0)


@pytest.fixture
def fake_routing():
    return FakeRouting()


@pytest.fixture
def fake_attributes():
    return FakeAttributes()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def failing_routing():
    return FakeRouting(fail=True)
