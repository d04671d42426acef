"""Display fields for ranked loops: names, style, highlights and colours."""

from __future__ import annotations

from typing import Callable

from ...models.domain import EventCategory, FloorabilityResult, FloorItEvent

ROUTE_COLORS = (
    "#ff2d55",  # electric red
    "#ffb800",  # amber gold
    "#00d4ff",  # cyan
    "#a855f7",  # purple
    "#22c55e",  # green
)

LIMITED_OPPORTUNITY_MARKER = "Limited floor-it opportunities near this start"
MAX_HIGHLIGHTS = 4

LOOP_NAMES_SPEED_DELTA = (
    "The Speed Step",
    "Gear Shift Loop",
    "The Accelerator",
    "Zone Runner",
    "The Speed Surge",
)
LOOP_NAMES_SIGNAL = (
    "The Launch Loop",
    "Green Light Special",
    "Signal Sender",
    "The Traffic Dancer",
    "Light-to-Light",
)
LOOP_NAMES_RAMP = (
    "The Ramp Run",
    "Merge Machine",
    "On-Ramp Rally",
    "Highway Hopper",
    "The Merge Loop",
)
LOOP_NAMES_GENERAL = (
    "The Full Send",
    "The Quick Rip",
    "Neighborhood Blast",
    "The Joy Loop",
    "Sunday Sender",
    "The Daily Driver",
    "Backyard Burner",
    "The Scenic Rip",
)


def route_color(rank: int) -> str:
    return ROUTE_COLORS[rank % len(ROUTE_COLORS)]


def name_loop_route(floorability: FloorabilityResult, rank: int) -> str:
    """Pick a name from the pool of the dominant event category."""
    f = floorability
    if f.speed_delta_score > f.signal_launch_score and f.speed_delta_score > f.ramp_merge_score:
        pool = LOOP_NAMES_SPEED_DELTA
    elif f.signal_launch_score > f.ramp_merge_score:
        pool = LOOP_NAMES_SIGNAL
    elif f.ramp_merge_score > 20:
        pool = LOOP_NAMES_RAMP
    else:
        pool = LOOP_NAMES_GENERAL
    return pool[rank % len(pool)]


def categorize_loop(floorability: FloorabilityResult) -> str:
    f = floorability
    if f.ramp_merge_score > f.speed_delta_score and f.ramp_merge_score > f.signal_launch_score:
        return "Highway-heavy"
    if f.speed_delta_score > f.signal_launch_score:
        return "Speed transitions"
    if f.signal_launch_score > 20:
        return "Signal launches"
    return "Mixed"


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


BEST_EVENT_FORMATTERS: dict[EventCategory, Callable[[FloorItEvent], str]] = {
    EventCategory.SPEED_DELTA: lambda event: f"Best: {event.label} with {event.runway_mi:.1f}mi runway",
    EventCategory.SIGNAL_LAUNCH: lambda event: f"Best: {event.label}",
    EventCategory.RAMP_MERGE: lambda event: f"Best: {event.label}",
}

CATEGORY_COUNT_FORMATTERS: dict[EventCategory, Callable[[int], str]] = {
    EventCategory.SPEED_DELTA: lambda count: _plural(count, "speed transition", "speed transitions"),
    EventCategory.SIGNAL_LAUNCH: lambda count: _plural(count, "signal launch", "signal launches"),
    EventCategory.RAMP_MERGE: lambda count: _plural(count, "highway merge", "highway merges"),
}


def loop_highlights(floorability: FloorabilityResult, duration_min: int) -> list[str]:
    highlights: list[str] = []
    if floorability.floor_it_count > 0:
        highlights.append(_plural(floorability.floor_it_count, "floor-it moment", "floor-it moments"))
    if floorability.events:
        best = floorability.events[0]
        highlights.append(BEST_EVENT_FORMATTERS[best.category](best))
    for category in EventCategory:
        count = sum(1 for event in floorability.events if event.category is category)
        if count:
            highlights.append(CATEGORY_COUNT_FORMATTERS[category](count))
    highlights.append(f"~{duration_min} min loop")
    return highlights[:MAX_HIGHLIGHTS]


def mark_limited(highlights: list[str]) -> list[str]:
    """Prepend the limited-opportunity marker once."""
    if LIMITED_OPPORTUNITY_MARKER in highlights:
        return list(highlights)
    return [LIMITED_OPPORTUNITY_MARKER, *highlights]
