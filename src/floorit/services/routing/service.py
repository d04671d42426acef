"""Scored point-to-point routing."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, Sequence

from ...errors import FloorItError, NoCandidatesError
from ...models.domain import AttributeSnapshot, ScoredRoute
from ..geospatial import Coordinate
from ..loops.naming import route_color
from ..scoring.floorability import (
    DEFAULT_WEIGHTS,
    ROAD_DATA_UNAVAILABLE,
    ScoringWeights,
    empty_result,
    score_route,
)
from .models import NormalizedRoute
from .namer import generate_highlights, generate_route_name

logger = logging.getLogger(__name__)


class AlternativesBackend(Protocol):
    async def fetch_alternatives(self, origin: Coordinate, destination: Coordinate) -> list[NormalizedRoute]: ...


class AttributeBackend(Protocol):
    async def query_attributes(self, coords: Sequence[Coordinate]) -> AttributeSnapshot: ...


async def score_route_alternatives(
    origin: Coordinate,
    destination: Coordinate,
    routing: AlternativesBackend,
    attributes: AttributeBackend,
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    delay_seconds: float = 0.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[ScoredRoute]:
    """Fetch the backend's alternatives between two points and score each one.

    Routes keep the backend's order; the fastest is flagged and every route
    carries its delay against it.
    """
    routes = await routing.fetch_alternatives(origin, destination)
    if not routes:
        raise NoCandidatesError("No routes found between these points.")

    fastest_duration = min(route.duration for route in routes)
    fastest_idx = next(i for i, route in enumerate(routes) if route.duration == fastest_duration)
    slowest_idx = max(range(len(routes)), key=lambda i: routes[i].duration)
    fastest_min = routes[fastest_idx].duration_min

    scored: list[ScoredRoute] = []
    for index, route in enumerate(routes):
        try:
            snapshot = await attributes.query_attributes(route.geometry)
            floorability = score_route(route.geometry, snapshot, route.legs, weights)
        except FloorItError as exc:
            logger.warning(f"Scoring alternative {index} failed: {exc}")
            floorability = empty_result(ROAD_DATA_UNAVAILABLE)
        scored.append(
            ScoredRoute(
                id=f"route-{index}",
                name=generate_route_name(route, index, index == fastest_idx, index == slowest_idx),
                route=route,
                distance_mi=round(route.distance_mi, 1),
                duration_min=route.duration_min,
                delta_min=route.duration_min - fastest_min,
                is_fastest=index == fastest_idx,
                color=route_color(index),
                highlights=generate_highlights(route),
                floorability=floorability,
            )
        )
        if index < len(routes) - 1 and delay_seconds > 0:
            await sleep(delay_seconds)
    return scored
