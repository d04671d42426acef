"""Waypoint strategies for loop candidates.

Each strategy turns a start point and a search radius into independent
waypoint sets; every set becomes one routing request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ..geospatial import Coordinate, offset_coordinate

# Search radius (miles) for the preset loop durations.
DURATION_RADIUS_MI: dict[int, float] = {
    15: 5.0,
    30: 12.0,
    60: 22.0,
}
MILES_PER_MINUTE = 0.4
MIN_RADIUS_MI = 2.0
MAX_RADIUS_MI = 30.0


def radius_for_duration(duration_minutes: int) -> float:
    if duration_minutes in DURATION_RADIUS_MI:
        return DURATION_RADIUS_MI[duration_minutes]
    return min(MAX_RADIUS_MI, max(MIN_RADIUS_MI, duration_minutes * MILES_PER_MINUTE))


@dataclass(frozen=True, slots=True)
class WaypointSet:
    waypoints: tuple[Coordinate, ...]
    method: str


def waypoints_on_circle(center: Coordinate, radius_mi: float, angles: Sequence[float]) -> tuple[Coordinate, ...]:
    return tuple(offset_coordinate(center, angle, radius_mi) for angle in angles)


class WaypointStrategy(ABC):
    """Contract for waypoint generation strategies."""

    @abstractmethod
    def generate(self, *, start: Coordinate, radius_mi: float) -> list[WaypointSet]:
        raise NotImplementedError


class AngularWaypoints(WaypointStrategy):
    """Four waypoints spaced 90 degrees apart, at several orientations and radii."""

    CONFIGURATIONS: tuple[tuple[str, tuple[float, ...], float], ...] = (
        ("cardinal", (0, 90, 180, 270), 0.5),
        ("cardinal", (0, 90, 180, 270), 0.7),
        ("diagonal", (45, 135, 225, 315), 0.5),
        ("diagonal", (45, 135, 225, 315), 0.7),
        ("rotated", (22.5, 112.5, 202.5, 292.5), 0.6),
    )

    def generate(self, *, start: Coordinate, radius_mi: float) -> list[WaypointSet]:
        return [
            WaypointSet(
                waypoints=waypoints_on_circle(start, radius_mi * fraction, angles),
                method=f"{name}-{fraction:.1f}",
            )
            for name, angles, fraction in self.CONFIGURATIONS
        ]


class TriangleWaypoints(WaypointStrategy):
    """Three waypoints at 120-degree spacing on a wider circle."""

    ORIENTATIONS: tuple[float, ...] = (0, 60, 90)
    RADIUS_FRACTION = 0.85

    def generate(self, *, start: Coordinate, radius_mi: float) -> list[WaypointSet]:
        sets: list[WaypointSet] = []
        for rotation in self.ORIENTATIONS:
            angles = (rotation, rotation + 120, rotation + 240)
            sets.append(
                WaypointSet(
                    waypoints=waypoints_on_circle(start, radius_mi * self.RADIUS_FRACTION, angles),
                    method=f"triangle-{rotation:g}",
                )
            )
        return sets


class SpokeWaypoints(WaypointStrategy):
    """Single out-and-back waypoint per direction. Last-resort tier."""

    ANGLES: tuple[float, ...] = (0, 90, 180, 270)
    RADIUS_FRACTION = 0.5

    def generate(self, *, start: Coordinate, radius_mi: float) -> list[WaypointSet]:
        return [
            WaypointSet(
                waypoints=(offset_coordinate(start, angle, radius_mi * self.RADIUS_FRACTION),),
                method=f"spoke-{angle:g}",
            )
            for angle in self.ANGLES
        ]


def get_strategy(method: str) -> WaypointStrategy:
    match method:
        case "angular":
            return AngularWaypoints()
        case "triangle":
            return TriangleWaypoints()
        case "spoke":
            return SpokeWaypoints()
        case _:
            raise ValueError(f"Unknown waypoint strategy '{method}'.")


def generate_tier(methods: Sequence[str], *, start: Coordinate, radius_mi: float) -> list[WaypointSet]:
    sets: list[WaypointSet] = []
    for method in methods:
        sets.extend(get_strategy(method).generate(start=start, radius_mi=radius_mi))
    return sets
