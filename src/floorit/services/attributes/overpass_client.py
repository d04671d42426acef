"""HTTP client for the Overpass road-attribute backend.

Enrichment is optional: every failure degrades to an empty snapshot flagged
``degraded`` instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx

from ...config import settings
from ...errors import MalformedResponse, NetworkFailure
from ...models.domain import AttributeSnapshot, RoadAttributeElement
from ..geospatial import Coordinate

logger = logging.getLogger(__name__)

# Around-filter radii in meters
SPEED_WAY_RADIUS_M = 50
SIGNAL_NODE_RADIUS_M = 150
RAMP_WAY_RADIUS_M = 250
LANE_WAY_RADIUS_M = 100


def sample_polyline(
    coords: Sequence[Coordinate],
    interval: int = 20,
    max_samples: int = 40,
) -> list[Coordinate]:
    """Every ``interval``-th point plus the last one, thinned to at most ``max_samples``."""
    if not coords:
        return []
    sampled = list(coords[::interval])
    if (len(coords) - 1) % interval:
        sampled.append(coords[-1])
    step = max(1, -(-len(sampled) // max_samples))
    return sampled[::step]


def build_query(samples: Sequence[Coordinate], timeout_seconds: int = 25) -> str:
    poly = ",".join(f"{lat},{lon}" for lon, lat in samples)
    return (
        f"[out:json][timeout:{timeout_seconds}];\n"
        "(\n"
        f'  way(around:{SPEED_WAY_RADIUS_M},{poly})["maxspeed"];\n'
        f'  node(around:{SIGNAL_NODE_RADIUS_M},{poly})["highway"="traffic_signals"];\n'
        f'  way(around:{RAMP_WAY_RADIUS_M},{poly})["highway"="motorway_link"];\n'
        f'  way(around:{LANE_WAY_RADIUS_M},{poly})["highway"~"^(motorway|trunk|primary|secondary)$"]["lanes"];\n'
        ");\n"
        "out body geom;\n"
    )


def _parse_element(raw: Any) -> RoadAttributeElement | None:
    if not isinstance(raw, dict) or raw.get("type") not in ("way", "node"):
        return None
    tags = raw.get("tags") if isinstance(raw.get("tags"), dict) else {}
    geometry: list[Coordinate] = []
    raw_geometry = raw.get("geometry") if isinstance(raw.get("geometry"), list) else []
    for point in raw_geometry:
        if isinstance(point, dict) and "lat" in point and "lon" in point:
            try:
                geometry.append((float(point["lon"]), float(point["lat"])))
            except (TypeError, ValueError):
                continue
    try:
        lat = float(raw["lat"]) if raw.get("lat") is not None else None
        lon = float(raw["lon"]) if raw.get("lon") is not None else None
        element_id = int(raw.get("id", 0))
    except (TypeError, ValueError):
        return None
    return RoadAttributeElement(
        kind=raw["type"],
        element_id=element_id,
        tags={str(key): str(value) for key, value in tags.items()},
        lat=lat,
        lon=lon,
        geometry=tuple(geometry),
    )


def parse_elements(payload: Any) -> AttributeSnapshot:
    if not isinstance(payload, dict) or not isinstance(payload.get("elements"), list):
        raise MalformedResponse("Overpass response has no element list.")
    elements = [_parse_element(raw) for raw in payload["elements"]]
    return AttributeSnapshot(elements=tuple(element for element in elements if element is not None))


class OverpassClient:
    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        sample_interval: int | None = None,
        max_samples: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url or settings.overpass_url
        self.timeout = timeout if timeout is not None else settings.overpass_timeout_seconds
        self.sample_interval = sample_interval or settings.overpass_sample_interval
        self.max_samples = max_samples or settings.overpass_max_samples
        self._client = http_client

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

    async def _post(self, query: str) -> Any:
        try:
            response = await asyncio.wait_for(
                self._get_client().post(self.url, data={"data": query}),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise NetworkFailure(f"Overpass API timed out after {self.timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"Overpass API error: {exc}") from exc
        if response.status_code != 200:
            raise NetworkFailure(f"Overpass API error: {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse("Overpass response is not valid JSON.") from exc

    async def query_attributes(self, coords: Sequence[Coordinate]) -> AttributeSnapshot:
        """Tagged ways and nodes near the route, or a degraded empty snapshot."""
        samples = sample_polyline(coords, self.sample_interval, self.max_samples)
        if not samples:
            return AttributeSnapshot()
        query = build_query(samples, timeout_seconds=int(self.timeout) + 10)
        try:
            snapshot = parse_elements(await self._post(query))
        except (NetworkFailure, MalformedResponse) as exc:
            logger.warning(f"Road attribute query failed, continuing without enrichment: {exc}")
            return AttributeSnapshot(degraded=True)
        logger.debug(f"Overpass returned {len(snapshot.elements)} elements for {len(samples)} samples")
        return snapshot
