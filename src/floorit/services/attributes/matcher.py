"""Match fetched road attributes to the route they were fetched for.

Proximity alone lets a cross street's speed limit leak onto the route. When
the route's steps are known, each element must also agree with the road the
route is on at that point: same name (or reference code), compatible road
class and a credible speed for its class.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Sequence

from ...models.domain import AttributeSnapshot, RoadAttributeElement, SpeedProfileEntry
from ..geospatial import Coordinate, METERS_PER_MILE, cumulative_distances_miles, nearest_point
from ..routing.models import RouteLeg

logger = logging.getLogger(__name__)

MAX_MATCH_DISTANCE_MI = 0.04
DEDUP_INDEX_WINDOW = 10
MAJOR_ROAD_MIN_SPEED_MPH = 30

ROAD_NAME_ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    (r"\bstreet\b", "st"),
    (r"\bavenue\b", "ave"),
    (r"\bboulevard\b", "blvd"),
    (r"\bdrive\b", "dr"),
    (r"\broad\b", "rd"),
    (r"\blane\b", "ln"),
    (r"\bparkway\b", "pkwy"),
    (r"\bpky\b", "pkwy"),
    (r"\bhighway\b", "hwy"),
    (r"\bexpressway\b", "expy"),
    (r"\bturnpike\b", "tpk"),
    (r"\btpke\b", "tpk"),
    (r"\bcircle\b", "cir"),
    (r"\bcourt\b", "ct"),
    (r"\bplace\b", "pl"),
    (r"\bterrace\b", "ter"),
)

# Substrings of a step name that mark a limited-access or arterial road.
MAJOR_ROAD_NAME_MARKERS: tuple[str, ...] = (
    "parkway",
    "highway",
    "interstate",
    "expressway",
    "turnpike",
    "freeway",
    "thruway",
)
# Route numbering found inside step names ("I-87", "US-9", "US 9").
MAJOR_ROAD_NAME_CODES: tuple[str, ...] = ("i-", "us-", "us ")
# Prefixes of a step's ref code: interstate, US and state routes.
MAJOR_ROAD_REF_PREFIXES: tuple[str, ...] = ("i ", "i-", "us ", "us-", "ny ", "sr ")

LOW_CLASS_HIGHWAYS = frozenset({"residential", "tertiary", "unclassified", "service", "living_street"})

MIN_CREDIBLE_SPEED_MPH: dict[str, int] = {
    "motorway": 40,
    "trunk": 35,
    "motorway_link": 25,
    "trunk_link": 25,
    "primary": 25,
}

_SPEED_PATTERN = re.compile(r"^(\d+)\s*(mph|km/h)?")


def normalize_road_name(name: str) -> str:
    normalized = name.lower()
    for pattern, replacement in ROAD_NAME_ABBREVIATIONS:
        normalized = re.sub(pattern, replacement, normalized)
    normalized = re.sub(r"[^a-z0-9\s]", "", normalized)
    return re.sub(r"\s+", " ", normalized).strip()


def normalize_ref(ref: str) -> str:
    return re.sub(r"[\s\-]+", " ", ref.strip().upper())


def road_names_match(first: str, second: str) -> bool:
    """True when two road names likely refer to the same road."""
    if not first or not second:
        return False
    n1 = normalize_road_name(first)
    n2 = normalize_road_name(second)
    if n1 == n2:
        return True
    if len(n1) >= 5 and len(n2) >= 5 and (n1 in n2 or n2 in n1):
        return True
    words1 = {word for word in n1.split(" ") if len(word) >= 3}
    words2 = {word for word in n2.split(" ") if len(word) >= 3}
    return len(words1 & words2) >= 2


def is_major_road(name: str, ref: str = "", *, include_codes: bool = True) -> bool:
    """Whether a step's name or ref marks a major road.

    With ``include_codes=False`` only the name markers count; route numbers
    such as "US 9" also cover village main streets.
    """
    name_lower = name.lower()
    if any(marker in name_lower for marker in MAJOR_ROAD_NAME_MARKERS):
        return True
    if not include_codes:
        return False
    if any(code in name_lower for code in MAJOR_ROAD_NAME_CODES):
        return True
    ref_lower = ref.lower()
    return any(ref_lower.startswith(prefix) for prefix in MAJOR_ROAD_REF_PREFIXES)


def is_highway_type_compatible(element_highway: str, step_name: str, step_ref: str) -> bool:
    return not (is_major_road(step_name, step_ref) and element_highway in LOW_CLASS_HIGHWAYS)


def parse_speed_mph(maxspeed: str | None) -> int | None:
    """Parse an OSM ``maxspeed`` tag ("55 mph", "55", "50 km/h")."""
    if not maxspeed:
        return None
    match = _SPEED_PATTERN.match(maxspeed.strip())
    if not match:
        return None
    value = int(match.group(1))
    if match.group(2) == "km/h":
        return round(value * 0.621371)
    return value


@dataclass(frozen=True, slots=True)
class StepSegment:
    name: str
    ref: str
    start_idx: int
    end_idx: int


class StepIndex:
    """Road name and ref for every route coordinate index."""

    def __init__(self, names: Sequence[str], refs: Sequence[str]) -> None:
        self._names = list(names)
        self._refs = list(refs)

    @classmethod
    def build(cls, coords: Sequence[Coordinate], legs: Sequence[RouteLeg] | None) -> "StepIndex":
        names = [""] * len(coords)
        refs = [""] * len(coords)
        for segment in build_step_segments(coords, legs):
            for idx in range(segment.start_idx, segment.end_idx + 1):
                if not names[idx] and not refs[idx]:
                    names[idx] = segment.name
                    refs[idx] = segment.ref
        return cls(names, refs)

    def __bool__(self) -> bool:
        return any(self._names) or any(self._refs)

    def name_at(self, idx: int) -> str:
        return self._names[idx] if 0 <= idx < len(self._names) else ""

    def ref_at(self, idx: int) -> str:
        return self._refs[idx] if 0 <= idx < len(self._refs) else ""


def build_step_segments(coords: Sequence[Coordinate], legs: Sequence[RouteLeg] | None) -> list[StepSegment]:
    """Walk cumulative route distance against step distances to place each step."""
    if not legs or len(coords) < 2:
        return []
    cumulative_m = [miles * METERS_PER_MILE for miles in cumulative_distances_miles(coords)]
    last_idx = len(coords) - 1
    segments: list[StepSegment] = []
    current_m = 0.0
    for leg in legs:
        for step in leg.steps:
            start_m = current_m
            end_m = current_m + step.distance
            current_m = end_m
            if not step.name and not step.ref:
                continue
            start_idx = bisect.bisect_left(cumulative_m, start_m)
            if start_idx > last_idx:
                start_idx = 0
            end_idx = bisect.bisect_left(cumulative_m, end_m, lo=start_idx)
            if end_idx > last_idx:
                end_idx = last_idx
            segments.append(StepSegment(step.name, step.ref, start_idx, end_idx))
    return segments


class AttributeMatcher:
    """Accept or reject attribute elements against a route's step index."""

    def __init__(self, coords: Sequence[Coordinate], legs: Sequence[RouteLeg] | None = None) -> None:
        self.coords = coords
        self.step_index = StepIndex.build(coords, legs)

    @property
    def has_steps(self) -> bool:
        return bool(self.step_index)

    def accept(self, element: RoadAttributeElement, nearest_idx: int, distance_mi: float, speed_mph: int) -> bool:
        if distance_mi > MAX_MATCH_DISTANCE_MI:
            return False
        if not self.has_steps:
            return True

        route_name = self.step_index.name_at(nearest_idx)
        route_ref = self.step_index.ref_at(nearest_idx)
        element_name = element.tag("name")
        highway = element.tag("highway") or "road"

        if element_name and route_name and not road_names_match(element_name, route_name):
            element_ref = element.tag("ref")
            if not element_ref or not route_ref or normalize_ref(element_ref) != normalize_ref(route_ref):
                return False

        if (route_name or route_ref) and not is_highway_type_compatible(highway, route_name, route_ref):
            return False

        if highway in MIN_CREDIBLE_SPEED_MPH and speed_mph < MIN_CREDIBLE_SPEED_MPH[highway]:
            return False

        if is_major_road(route_name, include_codes=False) and speed_mph < MAJOR_ROAD_MIN_SPEED_MPH:
            return False

        return True

    def road_name_for(self, element: RoadAttributeElement, nearest_idx: int) -> str:
        name = element.tag("name")
        if name:
            return name
        if self.has_steps:
            return self.step_index.name_at(nearest_idx)
        return "unnamed"

    def deduplicate(self, entries: Sequence[SpeedProfileEntry]) -> list[SpeedProfileEntry]:
        """Collapse entries closer than ``DEDUP_INDEX_WINDOW`` indices to one.

        Collisions chain: every entry within the window of a cluster's first
        entry joins that cluster. The cluster keeps its first entry whose name
        matches the route's road at the cluster start, else its first entry.
        """
        result: list[SpeedProfileEntry] = []
        i = 0
        while i < len(entries):
            anchor = entries[i]
            cluster = [anchor]
            j = i + 1
            while j < len(entries) and entries[j].index - anchor.index < DEDUP_INDEX_WINDOW:
                cluster.append(entries[j])
                j += 1
            chosen = anchor
            if len(cluster) > 1 and self.has_steps:
                route_name = self.step_index.name_at(anchor.index)
                for entry in cluster:
                    if road_names_match(entry.road_name, route_name):
                        chosen = entry
                        break
            result.append(chosen)
            i = j
        return result


def build_speed_profile(
    coords: Sequence[Coordinate],
    snapshot: AttributeSnapshot,
    legs: Sequence[RouteLeg] | None = None,
    matcher: AttributeMatcher | None = None,
) -> list[SpeedProfileEntry]:
    """Ordered, deduplicated speed profile along the route."""
    if not coords:
        return []
    matcher = matcher or AttributeMatcher(coords, legs)
    entries: list[SpeedProfileEntry] = []
    rejected = 0
    for way in snapshot.ways():
        speed = parse_speed_mph(way.tags.get("maxspeed"))
        if not speed or not way.geometry:
            continue
        nearest_idx, distance_mi = nearest_point(way.midpoint, coords)
        if not matcher.accept(way, nearest_idx, distance_mi, speed):
            rejected += 1
            continue
        entries.append(
            SpeedProfileEntry(
                index=nearest_idx,
                speed_mph=speed,
                road_name=matcher.road_name_for(way, nearest_idx),
                highway=way.tag("highway") or "road",
            )
        )
    entries.sort(key=lambda entry: entry.index)
    if rejected:
        logger.debug(f"Rejected {rejected} speed-tagged ways that did not match the route")
    return matcher.deduplicate(entries)
