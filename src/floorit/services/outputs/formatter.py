"""Serializers for floorability and loop outputs.

The JSON form keeps every field of the domain records, so decoding an
encoded value gives back an equal value.
"""

from __future__ import annotations

from typing import Any, Sequence

from pydantic import TypeAdapter

from ...models.domain import FloorabilityResult, ScoredLoopRoute, ScoredRoute

_FLOORABILITY = TypeAdapter(FloorabilityResult)
_LOOP_ROUTES = TypeAdapter(list[ScoredLoopRoute])
_ROUTES = TypeAdapter(list[ScoredRoute])


def floorability_to_json(result: FloorabilityResult) -> str:
    return _FLOORABILITY.dump_json(result).decode("utf-8")


def floorability_from_json(payload: str | bytes) -> FloorabilityResult:
    return _FLOORABILITY.validate_json(payload)


def loop_routes_to_json(routes: Sequence[ScoredLoopRoute], *, indent: int | None = None) -> str:
    return _LOOP_ROUTES.dump_json(list(routes), indent=indent).decode("utf-8")


def loop_routes_from_json(payload: str | bytes) -> list[ScoredLoopRoute]:
    return _LOOP_ROUTES.validate_json(payload)


def loop_routes_to_python(routes: Sequence[ScoredLoopRoute]) -> list[dict[str, Any]]:
    return _LOOP_ROUTES.dump_python(list(routes), mode="json")


def routes_to_json(routes: Sequence[ScoredRoute]) -> str:
    return _ROUTES.dump_json(list(routes)).decode("utf-8")


def routes_from_json(payload: str | bytes) -> list[ScoredRoute]:
    return _ROUTES.validate_json(payload)
