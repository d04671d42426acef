"""Names and step-based highlights for point-to-point routes."""

from __future__ import annotations

from dataclasses import dataclass

from ..geospatial import METERS_PER_MILE, bearing_degrees, bearing_delta
from ..attributes.matcher import is_major_road
from .models import NormalizedRoute

SHARP_TURN_DEGREES = 60
TURN_MANEUVERS = frozenset({"turn", "end of road"})

HIGHWAY_NAMES = (
    "The Interstate Blast",
    "The Highway Flyer",
    "Full Throttle Express",
    "The Long Stretch",
    "Redline Run",
)
CURVE_NAMES = (
    "The Ridge Runner",
    "Canyon Carver",
    "The Switchback Special",
    "Apex Hunter",
    "The Winding Way",
)
MIXED_NAMES = (
    "The Best of Both",
    "Street to Summit",
    "The Cross-Country",
    "Mix Master Route",
    "The All-Rounder",
)
BACKROAD_NAMES = (
    "The Back Road Blitz",
    "Hidden Gem Route",
    "The Local Legend",
    "Off the Beaten Path",
    "The Secret Run",
)
FASTEST_NAMES = (
    "The Commuter",
    "Vanilla Route",
    "The Shortcut",
    "Quick & Quiet",
    "The Efficiency Play",
)


@dataclass(frozen=True, slots=True)
class RoadAnalysis:
    highway_ratio: float
    turns_per_mile: float
    sharp_bends: int
    longest_segment_name: str

    @property
    def has_highway(self) -> bool:
        return self.highway_ratio > 0.4

    @property
    def has_curves(self) -> bool:
        return self.turns_per_mile > 2


def count_sharp_bends(route: NormalizedRoute, threshold: float = SHARP_TURN_DEGREES) -> int:
    """Heading changes sharper than ``threshold`` between consecutive geometry segments."""
    coords = route.geometry
    bends = 0
    previous: float | None = None
    for (lng1, lat1), (lng2, lat2) in zip(coords, coords[1:]):
        if (lng1, lat1) == (lng2, lat2):
            continue
        heading = bearing_degrees(lat1, lng1, lat2, lng2)
        if previous is not None and abs(bearing_delta(previous, heading)) > threshold:
            bends += 1
        previous = heading
    return bends


def analyze_route(route: NormalizedRoute) -> RoadAnalysis:
    steps = route.steps()
    total = 0.0
    highway = 0.0
    turns = 0
    longest = 0.0
    longest_name = ""
    for step in steps:
        total += step.distance
        if step.distance > longest:
            longest = step.distance
            longest_name = step.name or "unnamed road"
        if is_major_road(step.name, step.ref):
            highway += step.distance
        if step.maneuver_type in TURN_MANEUVERS:
            turns += 1
    miles = total / METERS_PER_MILE
    return RoadAnalysis(
        highway_ratio=highway / total if total > 0 else 0.0,
        turns_per_mile=turns / miles if miles > 0 else 0.0,
        sharp_bends=count_sharp_bends(route),
        longest_segment_name=longest_name,
    )


def generate_route_name(route: NormalizedRoute, index: int, is_fastest: bool, is_slowest: bool) -> str:
    if is_fastest and not is_slowest:
        return FASTEST_NAMES[index % len(FASTEST_NAMES)]
    analysis = analyze_route(route)
    if analysis.has_highway and analysis.has_curves:
        pool = MIXED_NAMES
    elif analysis.has_highway:
        pool = HIGHWAY_NAMES
    elif analysis.has_curves:
        pool = CURVE_NAMES
    else:
        pool = BACKROAD_NAMES
    seed = int(abs(route.distance * 7 + route.duration * 13 + index * 31))
    return pool[seed % len(pool)]


def generate_highlights(route: NormalizedRoute) -> list[str]:
    steps = route.steps()
    highlights: list[str] = []

    named = [step for step in steps if step.name]
    if named:
        longest = max(named, key=lambda step: step.distance)
        if longest.distance > METERS_PER_MILE:
            highlights.append(f"{longest.distance / METERS_PER_MILE:.1f}mi stretch on {longest.name}")

    highway_m = sum(step.distance for step in steps if is_major_road(step.name, step.ref))
    if highway_m > 0:
        highlights.append(f"{highway_m / METERS_PER_MILE:.1f}mi of highway")

    turns = sum(1 for step in steps if step.maneuver_type in TURN_MANEUVERS)
    if turns > 5:
        highlights.append(f"{turns} turns, stay sharp")
    elif turns <= 2:
        highlights.append("Minimal turns, open road")

    unique_roads = {step.name for step in named}
    if len(unique_roads) <= 3:
        highlights.append(f"Only {len(unique_roads)} roads, simple route")

    return highlights[:3]
