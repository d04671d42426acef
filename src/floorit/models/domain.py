"""Domain models for road attributes, floorability results and loop routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Mapping, Optional

from ..services.geospatial import Coordinate
from ..services.routing.models import NormalizedRoute


@dataclass(frozen=True, slots=True)
class RoadAttributeElement:
    """A tagged way or node returned by the road-attribute backend.

    Ways carry their own geometry; nodes carry ``lat``/``lon``. Missing tags
    are valid and simply absent from ``tags``.
    """

    kind: Literal["way", "node"]
    element_id: int
    tags: Mapping[str, str] = field(default_factory=dict)
    lat: Optional[float] = None
    lon: Optional[float] = None
    geometry: tuple[Coordinate, ...] = ()

    def tag(self, key: str) -> str:
        return self.tags.get(key, "")

    @property
    def midpoint(self) -> Optional[Coordinate]:
        if self.geometry:
            return self.geometry[len(self.geometry) // 2]
        if self.lat is not None and self.lon is not None:
            return (self.lon, self.lat)
        return None


@dataclass(frozen=True, slots=True)
class AttributeSnapshot:
    """Everything fetched for one route. ``degraded`` marks a failed fetch."""

    elements: tuple[RoadAttributeElement, ...] = ()
    degraded: bool = False

    def ways(self) -> list[RoadAttributeElement]:
        return [element for element in self.elements if element.kind == "way"]

    def nodes(self) -> list[RoadAttributeElement]:
        return [element for element in self.elements if element.kind == "node"]


@dataclass(frozen=True, slots=True)
class SpeedProfileEntry:
    index: int
    speed_mph: int
    road_name: str
    highway: str


class EventCategory(str, Enum):
    SPEED_DELTA = "speed_delta"
    SIGNAL_LAUNCH = "signal_launch"
    RAMP_MERGE = "ramp_merge"


@dataclass(frozen=True, slots=True)
class FloorItEvent:
    category: EventCategory
    coordinate: Coordinate
    score: float
    label: str
    detail: str
    runway_mi: float


@dataclass(frozen=True, slots=True)
class FloorabilityResult:
    total_score: int
    raw_score: float
    events: tuple[FloorItEvent, ...]
    speed_delta_score: int
    signal_launch_score: int
    ramp_merge_score: int
    runway_score: int
    road_quality_score: int
    best_moment: str
    floor_it_count: int


@dataclass(frozen=True, slots=True)
class GradientStop:
    progress: float
    color: str


@dataclass(frozen=True, slots=True)
class LoopCandidate:
    route: NormalizedRoute
    waypoints: tuple[Coordinate, ...]
    method: str


@dataclass(slots=True)
class ScoredLoopRoute:
    """A ranked loop. ``id`` and ``color`` follow the final rank, not the content."""

    id: str
    name: str
    route: NormalizedRoute
    waypoints: tuple[Coordinate, ...]
    method: str
    distance_mi: float
    duration_min: int
    delta_min: int
    is_fastest: bool
    color: str
    highlights: list[str]
    floorability: FloorabilityResult
    circularity: float
    overlap_penalty: float
    loop_style: str


@dataclass(slots=True)
class ScoredRoute:
    """A scored point-to-point alternative."""

    id: str
    name: str
    route: NormalizedRoute
    distance_mi: float
    duration_min: int
    delta_min: int
    is_fastest: bool
    color: str
    highlights: list[str]
    floorability: FloorabilityResult
