"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..geospatial import Coordinate, METERS_PER_MILE


@dataclass(frozen=True, slots=True)
class RouteStep:
    name: str = ""
    ref: str = ""
    distance: float = 0.0
    duration: float = 0.0
    maneuver_type: str = ""
    instruction: str = ""


@dataclass(frozen=True, slots=True)
class RouteLeg:
    distance: float = 0.0
    duration: float = 0.0
    summary: str = ""
    steps: tuple[RouteStep, ...] = ()

    def steps_distance(self) -> float:
        return sum(step.distance for step in self.steps)


@dataclass(frozen=True, slots=True)
class NormalizedRoute:
    """Canonical route produced once by the routing client and read-only afterwards."""

    distance: float
    duration: float
    geometry: tuple[Coordinate, ...] = ()
    legs: tuple[RouteLeg, ...] = field(default_factory=tuple)

    @property
    def distance_mi(self) -> float:
        return self.distance / METERS_PER_MILE

    @property
    def duration_min(self) -> int:
        return round(self.duration / 60)

    def steps(self) -> list[RouteStep]:
        return [step for leg in self.legs for step in leg.steps]
