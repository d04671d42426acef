"""Floorability scoring engine.

Scores a route on its acceleration opportunities:

- speed deltas: a posted limit steps up by 10 mph or more
- signal launches: traffic lights on roads posted 35 mph or faster
- ramp merges: motorway on-ramps next to the route
- runway: uninterrupted distance after a speed step-up
- road quality: lane count and surface of nearby ways

Every function here is pure; nothing is retained between calls.
"""

from __future__ import annotations

import dataclasses
import math
import re
from dataclasses import dataclass
from typing import Sequence

from ...config import Settings
from ...models.domain import (
    AttributeSnapshot,
    EventCategory,
    FloorabilityResult,
    FloorItEvent,
    GradientStop,
    RoadAttributeElement,
    SpeedProfileEntry,
)
from ..attributes.matcher import build_speed_profile
from ..geospatial import (
    Coordinate,
    FEET_PER_MILE,
    cumulative_distances_miles,
    nearest_point,
    path_length_miles,
)
from ..routing.models import RouteLeg

MIN_SPEED_DELTA_MPH = 10
MAX_SCORED_RUNWAY_MI = 3.0
RUNWAY_POINTS_PER_MILE = 5

SIGNAL_MAX_DISTANCE_MI = 0.05
SIGNAL_SPEED_SEARCH_WINDOW = 30
SIGNAL_DEFAULT_SPEED_MPH = 35
SIGNAL_MIN_SPEED_MPH = 35
SIGNAL_DEFAULT_GAP_MI = 2.0
SIGNAL_MIN_GAP_MI = 0.1

RAMP_MAX_DISTANCE_MI = 0.15
RAMP_MAX_SCORED_LENGTH_MI = 0.5

NO_EVENTS_MOMENT = "No major floor-it events detected on this route."
ROAD_DATA_UNAVAILABLE = "Road data unavailable; score is estimated."

GRADIENT_BASE_COLOR = "#2a3a5a"


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Composite weights and normalizers. Empirical, so configurable."""

    speed_delta: float = 0.35
    signal_launch: float = 0.25
    ramp_merge: float = 0.20
    runway: float = 0.10
    road_quality: float = 0.10
    total_normalizer: float = 150.0
    speed_delta_denominator: float = 50.0
    signal_launch_denominator: float = 40.0
    ramp_merge_denominator: float = 30.0
    runway_denominator: float = 30.0
    road_quality_denominator: float = 20.0

    @classmethod
    def from_settings(cls, config: Settings) -> "ScoringWeights":
        speed, signal, ramp, runway, quality = config.subscore_denominators
        return cls(
            speed_delta=config.weight_speed_delta,
            signal_launch=config.weight_signal_launch,
            ramp_merge=config.weight_ramp_merge,
            runway=config.weight_runway,
            road_quality=config.weight_road_quality,
            total_normalizer=config.total_score_normalizer,
            speed_delta_denominator=speed,
            signal_launch_denominator=signal,
            ramp_merge_denominator=ramp,
            runway_denominator=runway,
            road_quality_denominator=quality,
        )


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True, slots=True)
class RawScores:
    speed_delta: float = 0.0
    signal_launch: float = 0.0
    ramp_merge: float = 0.0
    runway: float = 0.0
    road_quality: float = 0.0


# --- Event formatters, one per category -------------------------------------


def speed_delta_event(
    prev: SpeedProfileEntry,
    curr: SpeedProfileEntry,
    coordinate: Coordinate,
    score: float,
    runway_mi: float,
) -> FloorItEvent:
    return FloorItEvent(
        category=EventCategory.SPEED_DELTA,
        coordinate=coordinate,
        score=score,
        label=f"{prev.speed_mph}→{curr.speed_mph} mph",
        detail=(
            f"Speed jumps from {prev.speed_mph} to {curr.speed_mph} mph on {curr.road_name}. "
            f"{runway_mi:.1f}mi runway ahead."
        ),
        runway_mi=runway_mi,
    )


def signal_launch_event(coordinate: Coordinate, speed_mph: int, gap_mi: float, score: float) -> FloorItEvent:
    return FloorItEvent(
        category=EventCategory.SIGNAL_LAUNCH,
        coordinate=coordinate,
        score=score,
        label=f"{speed_mph}mph signal launch",
        detail=f"Traffic light on {speed_mph}mph road. {gap_mi:.1f}mi until next signal, floor it.",
        runway_mi=gap_mi,
    )


def ramp_merge_event(coordinate: Coordinate, ramp_mi: float, score: float) -> FloorItEvent:
    return FloorItEvent(
        category=EventCategory.RAMP_MERGE,
        coordinate=coordinate,
        score=score,
        label="Highway merge",
        detail=f"{ramp_mi * FEET_PER_MILE:.0f}ft on-ramp, a merge acceleration zone.",
        runway_mi=ramp_mi,
    )


# --- Detectors ---------------------------------------------------------------


def speed_factor(speed_mph: int) -> float:
    if speed_mph >= 50:
        return 1.5
    if speed_mph >= 40:
        return 1.2
    return 1.0


def detect_speed_deltas(
    profile: Sequence[SpeedProfileEntry],
    coords: Sequence[Coordinate],
) -> tuple[list[FloorItEvent], float, float]:
    """Speed step-ups of at least ``MIN_SPEED_DELTA_MPH``.

    Returns ``(events, speed_delta_raw, runway_raw)``. Runway runs from the
    step-up to the next profile change, or to the end of the route.
    """
    events: list[FloorItEvent] = []
    speed_raw = 0.0
    runway_raw = 0.0
    if not coords:
        return events, speed_raw, runway_raw
    last_idx = len(coords) - 1
    for i in range(1, len(profile)):
        prev, curr = profile[i - 1], profile[i]
        delta = curr.speed_mph - prev.speed_mph
        if delta < MIN_SPEED_DELTA_MPH:
            continue
        runway_end = profile[i + 1].index if i + 1 < len(profile) else last_idx
        runway_mi = path_length_miles(coords, curr.index, runway_end)
        score = delta * min(runway_mi, MAX_SCORED_RUNWAY_MI) * speed_factor(curr.speed_mph)
        speed_raw += score
        runway_raw += runway_mi * RUNWAY_POINTS_PER_MILE
        events.append(speed_delta_event(prev, curr, coords[min(curr.index, last_idx)], score, runway_mi))
    return events, speed_raw, runway_raw


def _signal_speed(nearest_idx: int, profile: Sequence[SpeedProfileEntry]) -> int:
    for entry in profile:
        if abs(entry.index - nearest_idx) < SIGNAL_SPEED_SEARCH_WINDOW:
            return entry.speed_mph
    return SIGNAL_DEFAULT_SPEED_MPH


def detect_signal_launches(
    signals: Sequence[RoadAttributeElement],
    profile: Sequence[SpeedProfileEntry],
    coords: Sequence[Coordinate],
) -> tuple[list[FloorItEvent], float]:
    """Traffic lights on fast roads, scored by speed and the gap to the next light."""
    events: list[FloorItEvent] = []
    total = 0.0
    if not coords:
        return events, total

    located: list[tuple[RoadAttributeElement, Coordinate, int, float]] = []
    for signal in signals:
        point = signal.midpoint
        if point is None:
            continue
        nearest_idx, distance_mi = nearest_point(point, coords)
        located.append((signal, point, nearest_idx, distance_mi))

    for signal, point, nearest_idx, distance_mi in located:
        if distance_mi > SIGNAL_MAX_DISTANCE_MI:
            continue
        speed = _signal_speed(nearest_idx, profile)
        if speed < SIGNAL_MIN_SPEED_MPH:
            continue

        gap_mi = SIGNAL_DEFAULT_GAP_MI
        for other, _, other_idx, _ in located:
            if other.element_id == signal.element_id or other_idx <= nearest_idx:
                continue
            distance = path_length_miles(coords, nearest_idx, other_idx)
            if distance > SIGNAL_MIN_GAP_MI:
                gap_mi = min(gap_mi, distance)

        score = (speed / 50) * min(gap_mi, SIGNAL_DEFAULT_GAP_MI) * 15
        total += score
        events.append(signal_launch_event(point, speed, gap_mi, score))
    return events, total


def detect_ramp_merges(
    ramps: Sequence[RoadAttributeElement],
    coords: Sequence[Coordinate],
) -> tuple[list[FloorItEvent], float]:
    events: list[FloorItEvent] = []
    total = 0.0
    if not coords:
        return events, total
    for ramp in ramps:
        if not ramp.geometry:
            continue
        midpoint = ramp.midpoint
        _, distance_mi = nearest_point(midpoint, coords)
        if distance_mi > RAMP_MAX_DISTANCE_MI:
            continue
        ramp_mi = path_length_miles(ramp.geometry)
        score = min(ramp_mi, RAMP_MAX_SCORED_LENGTH_MI) * 60
        total += score
        events.append(ramp_merge_event(midpoint, ramp_mi, score))
    return events, total


def _leading_int(value: str) -> int:
    match = re.match(r"\s*(\d+)", value or "")
    return int(match.group(1)) if match else 0


def road_quality_points(ways: Sequence[RoadAttributeElement]) -> float:
    """Lanes (>=4: +3, >=2: +1) plus surface (asphalt: +2, concrete: +1), summed."""
    points = 0.0
    for way in ways:
        lanes_tag = way.tag("lanes")
        surface = way.tag("surface")
        if not lanes_tag and not surface:
            continue
        lanes = _leading_int(lanes_tag)
        if lanes >= 4:
            points += 3
        elif lanes >= 2:
            points += 1
        if surface == "asphalt":
            points += 2
        elif surface == "concrete":
            points += 1
    return points


# --- Composition ---------------------------------------------------------------


def round_half_up(value: float) -> int:
    """Round halves up: 12.5 gives 13, not 12."""
    return math.floor(value + 0.5)


def _subscore(raw: float, denominator: float) -> int:
    return max(0, min(100, round_half_up(raw / denominator * 100)))


def compose_result(
    events: Sequence[FloorItEvent],
    raw: RawScores,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> FloorabilityResult:
    raw_total = (
        raw.speed_delta * weights.speed_delta
        + raw.signal_launch * weights.signal_launch
        + raw.ramp_merge * weights.ramp_merge
        + raw.runway * weights.runway
        + raw.road_quality * weights.road_quality
    )
    ordered = tuple(sorted(events, key=lambda event: event.score, reverse=True))
    return FloorabilityResult(
        total_score=_subscore(raw_total, weights.total_normalizer),
        raw_score=raw_total,
        events=ordered,
        speed_delta_score=_subscore(raw.speed_delta, weights.speed_delta_denominator),
        signal_launch_score=_subscore(raw.signal_launch, weights.signal_launch_denominator),
        ramp_merge_score=_subscore(raw.ramp_merge, weights.ramp_merge_denominator),
        runway_score=_subscore(raw.runway, weights.runway_denominator),
        road_quality_score=_subscore(raw.road_quality, weights.road_quality_denominator),
        best_moment=ordered[0].detail if ordered else NO_EVENTS_MOMENT,
        floor_it_count=len(ordered),
    )


def empty_result(note: str = NO_EVENTS_MOMENT) -> FloorabilityResult:
    return FloorabilityResult(
        total_score=0,
        raw_score=0.0,
        events=(),
        speed_delta_score=0,
        signal_launch_score=0,
        ramp_merge_score=0,
        runway_score=0,
        road_quality_score=0,
        best_moment=note,
        floor_it_count=0,
    )


def score_route(
    coords: Sequence[Coordinate],
    snapshot: AttributeSnapshot,
    legs: Sequence[RouteLeg] | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> FloorabilityResult:
    """Score one route against one attribute snapshot.

    Without ``legs`` the speed profile falls back to proximity-only matching.
    A degraded snapshot yields the zero result with an explanatory note.
    """
    if snapshot.degraded:
        return empty_result(ROAD_DATA_UNAVAILABLE)
    if not coords:
        return empty_result()

    profile = build_speed_profile(coords, snapshot, legs)
    speed_events, speed_raw, runway_raw = detect_speed_deltas(profile, coords)

    signals = [node for node in snapshot.nodes() if node.tag("highway") == "traffic_signals"]
    signal_events, signal_raw = detect_signal_launches(signals, profile, coords)

    ramps = [way for way in snapshot.ways() if way.tag("highway") == "motorway_link"]
    ramp_events, ramp_raw = detect_ramp_merges(ramps, coords)

    quality_raw = road_quality_points(snapshot.ways())

    raw = RawScores(
        speed_delta=speed_raw,
        signal_launch=signal_raw,
        ramp_merge=ramp_raw,
        runway=runway_raw,
        road_quality=quality_raw,
    )
    return compose_result([*speed_events, *signal_events, *ramp_events], raw, weights)


def apply_loop_adjustments(
    result: FloorabilityResult,
    circularity: float,
    overlap_penalty: float,
) -> FloorabilityResult:
    """Penalize back-tracking and reward loop-shaped routes. Apply once per result."""
    total = result.total_score
    if overlap_penalty > 0.1:
        total = round_half_up(total * (1 - overlap_penalty * 0.3))
    if circularity > 0.4:
        total = min(100, total + 3)
    return dataclasses.replace(result, total_score=total)


# --- Heat-map gradient ---------------------------------------------------------


def _lerp_hex(a: str, b: str, t: float) -> str:
    channels = []
    for offset in (1, 3, 5):
        start = int(a[offset : offset + 2], 16)
        end = int(b[offset : offset + 2], 16)
        channels.append(round(start + (end - start) * t))
    return "#" + "".join(f"{channel:02x}" for channel in channels)


def heat_to_color(heat: float) -> str:
    """Dim blue, through cyan and amber, to hot red."""
    if heat < 0.05:
        return GRADIENT_BASE_COLOR
    if heat < 0.25:
        return _lerp_hex(GRADIENT_BASE_COLOR, "#00d4ff", (heat - 0.05) / 0.20)
    if heat < 0.55:
        return _lerp_hex("#00d4ff", "#ffb800", (heat - 0.25) / 0.30)
    return _lerp_hex("#ffb800", "#ff2d55", min((heat - 0.55) / 0.45, 1))


def floorability_gradient(
    coords: Sequence[Coordinate],
    events: Sequence[FloorItEvent],
    samples: int = 64,
) -> list[GradientStop]:
    """Colour stops along the route; each event heats its runway, fading to 30%."""
    flat = [GradientStop(0.0, GRADIENT_BASE_COLOR), GradientStop(1.0, GRADIENT_BASE_COLOR)]
    if not events or len(coords) < 2:
        return flat
    cumulative = cumulative_distances_miles(coords)
    total_mi = cumulative[-1]
    if total_mi == 0:
        return flat

    zones: list[tuple[float, float, float]] = []
    for event in events:
        nearest_idx, _ = nearest_point(event.coordinate, coords)
        progress = cumulative[nearest_idx] / total_mi
        runway_progress = min(event.runway_mi / total_mi, 0.25)
        zones.append((max(0.0, progress - 0.008), min(1.0, progress + runway_progress), event.score))
    max_score = max(max(score for _, _, score in zones), 1)

    stops: list[GradientStop] = []
    for i in range(samples + 1):
        p = i / samples
        heat = 0.0
        for start, end, score in zones:
            if start <= p <= end:
                length = end - start
                along = (p - start) / length if length > 0 else 0
                heat = max(heat, (score / max_score) * (1 - along * 0.7))
        stops.append(GradientStop(p, heat_to_color(heat)))
    return stops
