"""Loop generation and route scoring endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...config import settings
from ...errors import NoCandidatesError
from ...schemas.loops import LoopRequest, LoopResponse, RouteScoreRequest, RouteScoreResponse
from ...services.attributes.overpass_client import OverpassClient
from ...services.loops.generator import LoopGenerator
from ...services.routing.osrm_client import OSRMClient
from ...services.routing.service import score_route_alternatives
from ...services.scoring.floorability import ScoringWeights, floorability_gradient
from ..dependencies import get_loop_generator, get_osrm_client, get_overpass_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["loops"])


@router.post("/loops/generate", response_model=LoopResponse, status_code=status.HTTP_200_OK)
async def generate_loops(
    payload: LoopRequest,
    generator: LoopGenerator = Depends(get_loop_generator),
) -> LoopResponse:
    run = generator.new_run(payload.as_coordinate(), payload.duration_minutes)
    try:
        routes = await run.execute()
    except NoCandidatesError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"No routes generated: {exc}",
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return LoopResponse(
        routes=routes,
        limited_floorability=run.limited,
        gradients={
            route.id: floorability_gradient(route.route.geometry, route.floorability.events) for route in routes
        },
    )


@router.post("/routes/score", response_model=RouteScoreResponse, status_code=status.HTTP_200_OK)
async def score_routes(
    payload: RouteScoreRequest,
    routing: OSRMClient = Depends(get_osrm_client),
    attributes: OverpassClient = Depends(get_overpass_client),
) -> RouteScoreResponse:
    try:
        routes = await score_route_alternatives(
            payload.origin.as_coordinate(),
            payload.destination.as_coordinate(),
            routing,
            attributes,
            weights=ScoringWeights.from_settings(settings),
            delay_seconds=settings.loop_attribute_delay_seconds,
        )
    except NoCandidatesError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return RouteScoreResponse(
        routes=routes,
        gradients={
            route.id: floorability_gradient(route.route.geometry, route.floorability.events) for route in routes
        },
    )
