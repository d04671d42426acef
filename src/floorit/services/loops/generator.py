"""Loop candidate generation and ranking.

One run moves through ``GeneratingWaypoints -> FetchingRoutes ->
EvaluatingShapes -> ScoringAttributes -> Ranked``. Cheap geometry checks run
on every fetched candidate; the rate-limited attribute backend is only asked
about the best-shaped few, one at a time.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from ...config import Settings, settings as default_settings
from ...errors import FloorItError, NoCandidatesError
from ...models.domain import AttributeSnapshot, FloorabilityResult, LoopCandidate, ScoredLoopRoute
from ..geospatial import Coordinate
from ..routing.models import NormalizedRoute
from ..scoring.floorability import (
    ROAD_DATA_UNAVAILABLE,
    ScoringWeights,
    apply_loop_adjustments,
    empty_result,
    score_route,
)
from .geometry import circularity, geometry_quality, overlap_penalty
from .naming import categorize_loop, loop_highlights, mark_limited, name_loop_route, route_color
from .waypoints import WaypointSet, generate_tier, radius_for_duration

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]

# Strategy tiers, tried in order until one yields at least one route.
WAYPOINT_TIERS: tuple[tuple[str, ...], ...] = (
    ("angular", "triangle"),
    ("spoke",),
)


class RoutingBackend(Protocol):
    async def fetch_trip(self, start: Coordinate, waypoints: Sequence[Coordinate]) -> Optional[NormalizedRoute]: ...


class AttributeBackend(Protocol):
    async def query_attributes(self, coords: Sequence[Coordinate]) -> AttributeSnapshot: ...


class LoopRunState(str, Enum):
    GENERATING_WAYPOINTS = "generating_waypoints"
    FETCHING_ROUTES = "fetching_routes"
    EVALUATING_SHAPES = "evaluating_shapes"
    SCORING_ATTRIBUTES = "scoring_attributes"
    RANKED = "ranked"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class EvaluatedCandidate:
    candidate: LoopCandidate
    circularity: float
    overlap_penalty: float
    quality: float


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    evaluated: EvaluatedCandidate
    floorability: FloorabilityResult


class ProgressReporter:
    """Forwards (label, fraction) pairs to an optional observer.

    Fractions never decrease. Observer errors are logged and dropped so the
    channel cannot affect the run.
    """

    def __init__(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self._last = 0.0

    def __call__(self, label: str, fraction: float) -> None:
        self._last = max(self._last, min(1.0, fraction))
        if self._callback is None:
            return
        try:
            self._callback(label, self._last)
        except Exception:
            logger.exception("Progress observer raised; ignoring")


def filter_by_duration(
    candidates: Sequence[LoopCandidate],
    target_seconds: float,
    min_factor: float,
    max_factor: float,
) -> list[LoopCandidate]:
    """Keep candidates within the duration window, or all of them if none fit."""
    low, high = target_seconds * min_factor, target_seconds * max_factor
    kept = [c for c in candidates if low <= c.route.duration <= high]
    return kept or list(candidates)


def evaluate_shapes(
    candidates: Sequence[LoopCandidate],
    target_seconds: float,
    max_overlap: float,
    min_circularity: float,
) -> list[EvaluatedCandidate]:
    """Score loop shape, drop obviously bad shapes unless that empties the set, best first."""
    evaluated = []
    for candidate in candidates:
        circ = circularity(candidate.route.geometry)
        overlap = overlap_penalty(candidate.route.geometry)
        quality = geometry_quality(circ, overlap, candidate.route.duration, target_seconds)
        evaluated.append(EvaluatedCandidate(candidate, circ, overlap, quality))
    acceptable = [e for e in evaluated if e.overlap_penalty <= max_overlap and e.circularity >= min_circularity]
    if acceptable:
        evaluated = acceptable
    return sorted(evaluated, key=lambda e: e.quality, reverse=True)


def rank_loops(
    scored: Sequence[ScoredCandidate],
    start: Coordinate,
    min_score: int,
    max_results: int,
) -> tuple[list[ScoredLoopRoute], bool]:
    """Order by floorability, apply the score threshold and assign rank-based fields.

    Returns ``(routes, limited)``. ``limited`` is True when no candidate
    cleared ``min_score``; every route then carries the limited marker.
    """
    ordered = sorted(scored, key=lambda s: s.floorability.total_score, reverse=True)
    clearing = [s for s in ordered if s.floorability.total_score >= min_score]
    limited = not clearing
    survivors = (ordered if limited else clearing)[:max_results]
    if not survivors:
        return [], limited

    fastest_idx = min(range(len(survivors)), key=lambda i: survivors[i].evaluated.candidate.route.duration)
    fastest_min = survivors[fastest_idx].evaluated.candidate.route.duration_min

    routes: list[ScoredLoopRoute] = []
    for rank, item in enumerate(survivors):
        candidate = item.evaluated.candidate
        route = candidate.route
        highlights = loop_highlights(item.floorability, route.duration_min)
        if limited:
            highlights = mark_limited(highlights)
        routes.append(
            ScoredLoopRoute(
                id=f"loop-{rank}",
                name=name_loop_route(item.floorability, rank),
                route=route,
                waypoints=(start, *candidate.waypoints),
                method=candidate.method,
                distance_mi=round(route.distance_mi, 1),
                duration_min=route.duration_min,
                delta_min=route.duration_min - fastest_min,
                is_fastest=rank == fastest_idx,
                color=route_color(rank),
                highlights=highlights,
                floorability=item.floorability,
                circularity=item.evaluated.circularity,
                overlap_penalty=item.evaluated.overlap_penalty,
                loop_style=categorize_loop(item.floorability),
            )
        )
    return routes, limited


class LoopRun:
    """State of one generation run. Runs share nothing but the backends."""

    def __init__(
        self,
        generator: "LoopGenerator",
        start: Coordinate,
        duration_minutes: int,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive.")
        self.generator = generator
        self.start = start
        self.duration_minutes = duration_minutes
        self.target_seconds = duration_minutes * 60
        self.progress = ProgressReporter(on_progress)
        self.state = LoopRunState.GENERATING_WAYPOINTS
        self.failure_reason: str | None = None
        self.limited = False

    @property
    def config(self) -> Settings:
        return self.generator.config

    async def _fetch_batch(self, batch: Sequence[WaypointSet]) -> list[LoopCandidate]:
        results = await asyncio.gather(
            *(self.generator.routing.fetch_trip(self.start, item.waypoints) for item in batch),
            return_exceptions=True,
        )
        candidates: list[LoopCandidate] = []
        for item, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.warning(f"Route fetch for {item.method} failed: {result}")
            elif result is not None and result.geometry:
                candidates.append(LoopCandidate(route=result, waypoints=item.waypoints, method=item.method))
        return candidates

    async def _fetch_candidates(self, sets: Sequence[WaypointSet]) -> list[LoopCandidate]:
        self.state = LoopRunState.FETCHING_ROUTES
        batch_size = self.config.loop_batch_size
        candidates: list[LoopCandidate] = []
        for offset in range(0, len(sets), batch_size):
            self.progress("Calculating routes...", 0.1 + (offset / len(sets)) * 0.3)
            candidates.extend(await self._fetch_batch(sets[offset : offset + batch_size]))
        return candidates

    async def _score(self, evaluated: EvaluatedCandidate) -> FloorabilityResult:
        route = evaluated.candidate.route
        try:
            snapshot = await self.generator.attributes.query_attributes(route.geometry)
        except FloorItError as exc:
            logger.warning(f"Attribute fetch for {evaluated.candidate.method} failed: {exc}")
            return empty_result(ROAD_DATA_UNAVAILABLE)
        result = score_route(route.geometry, snapshot, route.legs, self.generator.weights)
        if snapshot.degraded:
            return result
        return apply_loop_adjustments(result, evaluated.circularity, evaluated.overlap_penalty)

    async def execute(self) -> list[ScoredLoopRoute]:
        config = self.config
        radius = radius_for_duration(self.duration_minutes)
        self.progress("Generating waypoints...", 0.05)

        candidates: list[LoopCandidate] = []
        for tier in WAYPOINT_TIERS:
            self.state = LoopRunState.GENERATING_WAYPOINTS
            sets = generate_tier(tier, start=self.start, radius_mi=radius)
            candidates = await self._fetch_candidates(sets)
            if candidates:
                break
            logger.warning(f"No routes from waypoint tier {tier}; trying next tier")
        if not candidates:
            self.state = LoopRunState.FAILED
            self.failure_reason = "Could not generate any loop routes from this location."
            raise NoCandidatesError(self.failure_reason)
        logger.info(f"Fetched {len(candidates)} loop candidates around {self.start}")

        self.state = LoopRunState.EVALUATING_SHAPES
        self.progress("Filtering routes...", 0.45)
        in_window = filter_by_duration(
            candidates,
            self.target_seconds,
            config.loop_min_duration_factor,
            config.loop_max_duration_factor,
        )
        shortlisted = evaluate_shapes(
            in_window,
            self.target_seconds,
            config.loop_max_overlap_penalty,
            config.loop_min_circularity,
        )[: config.loop_max_scored_candidates]

        self.state = LoopRunState.SCORING_ATTRIBUTES
        scored: list[ScoredCandidate] = []
        for i, evaluated in enumerate(shortlisted):
            self.progress(f"Scoring route {i + 1}/{len(shortlisted)}...", 0.5 + (i / len(shortlisted)) * 0.4)
            floorability = await self._score(evaluated)
            logger.debug(
                f"{evaluated.candidate.method}: score={floorability.total_score} "
                f"circularity={evaluated.circularity:.2f} overlap={evaluated.overlap_penalty:.2f}"
            )
            scored.append(ScoredCandidate(evaluated, floorability))
            if i < len(shortlisted) - 1 and config.loop_attribute_delay_seconds > 0:
                await self.generator.sleep(config.loop_attribute_delay_seconds)

        routes, self.limited = rank_loops(scored, self.start, config.min_floorability_score, config.loop_max_results)
        self.state = LoopRunState.RANKED
        self.progress("Done!", 1.0)
        if self.limited:
            logger.info("No loop cleared the minimum floorability score; returning limited results")
        return routes


class LoopGenerator:
    def __init__(
        self,
        routing: RoutingBackend,
        attributes: AttributeBackend,
        config: Settings | None = None,
        weights: ScoringWeights | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.routing = routing
        self.attributes = attributes
        self.config = config or default_settings
        self.weights = weights or ScoringWeights.from_settings(self.config)
        self.sleep = sleep

    def new_run(
        self,
        start: Coordinate,
        duration_minutes: int,
        on_progress: ProgressCallback | None = None,
    ) -> LoopRun:
        return LoopRun(self, start, duration_minutes, on_progress)

    async def generate(
        self,
        start: Coordinate,
        duration_minutes: int,
        on_progress: ProgressCallback | None = None,
    ) -> list[ScoredLoopRoute]:
        """Ranked loops (at most ``loop_max_results``) starting and ending at ``start``.

        Raises ``NoCandidatesError`` when no waypoint tier yields a route.
        """
        return await self.new_run(start, duration_minutes, on_progress).execute()
