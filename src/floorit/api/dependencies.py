"""Process-wide backend clients injected into endpoints."""

from __future__ import annotations

from functools import lru_cache

from ..config import settings
from ..services.attributes.overpass_client import OverpassClient
from ..services.loops.generator import LoopGenerator
from ..services.routing.osrm_client import OSRMClient


@lru_cache(maxsize=1)
def get_osrm_client() -> OSRMClient:
    return OSRMClient()


@lru_cache(maxsize=1)
def get_overpass_client() -> OverpassClient:
    return OverpassClient()


def get_loop_generator() -> LoopGenerator:
    return LoopGenerator(get_osrm_client(), get_overpass_client(), config=settings)


async def close_clients() -> None:
    if get_osrm_client.cache_info().currsize:
        await get_osrm_client().aclose()
    if get_overpass_client.cache_info().currsize:
        await get_overpass_client().aclose()
    get_osrm_client.cache_clear()
    get_overpass_client.cache_clear()
