"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import httpx

from ...config import settings
from ...errors import MalformedResponse, NetworkFailure
from ..geospatial import Coordinate
from .models import NormalizedRoute, RouteLeg, RouteStep

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FailoverState:
    """Which OSRM server is active and when the client last failed over.

    One instance belongs to one client, so independent clients never share
    failover decisions.
    """

    active_index: int = 0
    failover_timestamp: float = 0.0

    def reset_if_expired(self, now: float, reset_after: float) -> None:
        if self.active_index > 0 and now - self.failover_timestamp > reset_after:
            logger.info("OSRM failover cool-down expired, returning to primary server")
            self.active_index = 0

    def fail_over(self, server_count: int, now: float) -> bool:
        """Advance to the next server. Returns False when already on the last one."""
        if self.active_index >= server_count - 1:
            return False
        self.active_index += 1
        self.failover_timestamp = now
        return True


def format_coordinates(coords: Sequence[Coordinate]) -> str:
    """Convert (lon, lat) pairs to OSRM's 'lon,lat;lon,lat;...' path segment."""
    return ";".join(f"{lon},{lat}" for lon, lat in coords)


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_step(raw: Any) -> RouteStep:
    if not isinstance(raw, dict):
        return RouteStep()
    maneuver = raw.get("maneuver") if isinstance(raw.get("maneuver"), dict) else {}
    return RouteStep(
        name=str(raw.get("name") or ""),
        ref=str(raw.get("ref") or ""),
        distance=_as_float(raw.get("distance")),
        duration=_as_float(raw.get("duration")),
        maneuver_type=str(maneuver.get("type") or ""),
        instruction=str(maneuver.get("instruction") or ""),
    )


def _parse_leg(raw: Any) -> RouteLeg:
    if not isinstance(raw, dict):
        return RouteLeg()
    steps = raw.get("steps") if isinstance(raw.get("steps"), list) else []
    return RouteLeg(
        distance=_as_float(raw.get("distance")),
        duration=_as_float(raw.get("duration")),
        summary=str(raw.get("summary") or ""),
        steps=tuple(_parse_step(step) for step in steps),
    )


def _parse_geometry(raw: Any) -> tuple[Coordinate, ...]:
    if not isinstance(raw, dict) or not isinstance(raw.get("coordinates"), list):
        return ()
    coords: list[Coordinate] = []
    for point in raw["coordinates"]:
        if isinstance(point, (list, tuple)) and len(point) >= 2:
            coords.append((_as_float(point[0]), _as_float(point[1])))
    return tuple(coords)


def parse_route(raw: Any) -> NormalizedRoute:
    """Normalize one OSRM route or trip object. Missing fields default to empty/zero."""
    if not isinstance(raw, dict):
        raw = {}
    legs = raw.get("legs") if isinstance(raw.get("legs"), list) else []
    return NormalizedRoute(
        distance=_as_float(raw.get("distance")),
        duration=_as_float(raw.get("duration")),
        geometry=_parse_geometry(raw.get("geometry")),
        legs=tuple(_parse_leg(leg) for leg in legs),
    )


def parse_routes(payload: Any, key: str = "routes") -> list[NormalizedRoute]:
    """Extract usable routes from an OSRM response body.

    Raises ``MalformedResponse`` when the body is not an "Ok" response with at
    least one route carrying geometry.
    """
    if not isinstance(payload, dict):
        raise MalformedResponse("OSRM response is not a JSON object.")
    if payload.get("code") != "Ok":
        raise MalformedResponse(f"OSRM error: {payload.get('message') or payload.get('code', 'Unknown error')}")
    raw_routes = payload.get(key)
    if not isinstance(raw_routes, list) or not raw_routes:
        raise MalformedResponse(f"OSRM response has no {key}.")
    routes = [parse_route(item) for item in raw_routes]
    routes = [route for route in routes if route.geometry]
    if not routes:
        raise MalformedResponse("OSRM routes carry no geometry.")
    return routes


class OSRMClient:
    """Async OSRM client with a per-call time box and ordered server failover.

    A network error, timeout or 5xx on the active server moves the client to
    the next server and retries there once. After ``failover_reset_seconds``
    the primary is tried again.
    """

    def __init__(
        self,
        servers: Sequence[str] | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        failover_reset_seconds: float | None = None,
        state: FailoverState | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.servers = tuple(servers or settings.osrm_servers)
        if not self.servers:
            raise ValueError("At least one OSRM server must be configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.failover_reset_seconds = (
            failover_reset_seconds if failover_reset_seconds is not None else settings.osrm_failover_reset_seconds
        )
        self.state = state or FailoverState()
        self._client = http_client
        self._clock = clock

    @property
    def active_server(self) -> str:
        return self.servers[self.state.active_index]

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
                headers={"User-Agent": settings.user_agent},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_once(self, server_index: int, path: str, params: dict) -> Any:
        url = f"{self.servers[server_index]}{path}"
        try:
            response = await asyncio.wait_for(self._get_client().get(url, params=params), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise NetworkFailure(f"OSRM request timed out after {self.timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"OSRM request failed: {exc}") from exc
        if response.status_code >= 500:
            raise NetworkFailure(f"OSRM server error: {response.status_code}")
        if response.status_code >= 400:
            raise MalformedResponse(f"OSRM rejected request: {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse("OSRM response is not valid JSON.") from exc

    async def _request(self, path: str, params: dict) -> Any:
        """GET ``path`` on the active server, failing over once on a network failure.

        Concurrent calls share the failover state: a call whose server was
        already abandoned by another call retries on the current server
        instead of advancing again.
        """
        self.state.reset_if_expired(self._clock(), self.failover_reset_seconds)
        used = self.state.active_index
        try:
            return await self._get_once(used, path, params)
        except NetworkFailure as exc:
            if self.state.active_index <= used and not self.state.fail_over(len(self.servers), self._clock()):
                raise
            logger.warning(f"OSRM server {self.servers[used]} failed ({exc}); retrying on {self.active_server}")
            return await self._get_once(self.state.active_index, path, params)

    async def _fetch(self, path: str, params: dict, key: str = "routes") -> list[NormalizedRoute]:
        try:
            payload = await self._request(path, params)
            return parse_routes(payload, key=key)
        except (NetworkFailure, MalformedResponse) as exc:
            logger.warning(f"OSRM {path.split('/')[1]} request yielded no route: {exc}")
            return []

    async def fetch_route(
        self,
        start: Coordinate,
        waypoints: Sequence[Coordinate],
        *,
        round_trip: bool = True,
    ) -> NormalizedRoute | None:
        """Route from ``start`` through ``waypoints`` (and back to ``start`` when ``round_trip``)."""
        if not waypoints:
            raise ValueError("At least one waypoint is required to fetch a route.")
        coords = [start, *waypoints, start] if round_trip else [start, *waypoints]
        path = f"/route/v1/{self.profile}/{format_coordinates(coords)}"
        params = {"overview": "full", "geometries": "geojson", "steps": "true"}
        routes = await self._fetch(path, params)
        return routes[0] if routes else None

    async def fetch_trip(self, start: Coordinate, waypoints: Sequence[Coordinate]) -> NormalizedRoute | None:
        """Round trip with waypoint order optimized by the trip endpoint.

        Falls back to a plain looped route call on any failure.
        """
        if not waypoints:
            raise ValueError("At least one waypoint is required to fetch a trip.")
        coords = [start, *waypoints]
        path = f"/trip/v1/{self.profile}/{format_coordinates(coords)}"
        params = {
            "source": "first",
            "roundtrip": "true",
            "overview": "full",
            "geometries": "geojson",
            "steps": "true",
        }
        trips = await self._fetch(path, params, key="trips")
        if trips:
            return trips[0]
        logger.debug("Trip endpoint failed, falling back to looped route request")
        return await self.fetch_route(start, waypoints, round_trip=True)

    async def fetch_alternatives(self, origin: Coordinate, destination: Coordinate) -> list[NormalizedRoute]:
        """Point-to-point routes including the backend's alternatives."""
        path = f"/route/v1/{self.profile}/{format_coordinates([origin, destination])}"
        params = {"alternatives": "true", "overview": "full", "geometries": "geojson", "steps": "true"}
        return await self._fetch(path, params)

    async def check_health(self) -> bool:
        """Probe the active server with a minimal two-point route request."""
        test_coords = [(13.388860, 52.517037), (13.385983, 52.496891)]
        path = f"/route/v1/{self.profile}/{format_coordinates(test_coords)}"
        try:
            payload = await self._request(path, {"overview": "false"})
            return isinstance(payload, dict) and payload.get("code") == "Ok"
        except (NetworkFailure, MalformedResponse):
            return False
