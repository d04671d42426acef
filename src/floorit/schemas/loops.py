"""Loop and scored-route request/response schemas."""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field

from ..models.domain import GradientStop, ScoredLoopRoute, ScoredRoute


class PointModel(BaseModel):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)

    def as_coordinate(self) -> tuple[float, float]:
        return (self.longitude, self.latitude)


class LoopRequest(PointModel):
    duration_minutes: int = Field(default=30, ge=5, le=180, description="Target loop duration.")


class LoopResponse(BaseModel):
    routes: List[ScoredLoopRoute]
    limited_floorability: bool = Field(
        default=False,
        description="True when no loop cleared the minimum floorability score.",
    )
    gradients: Dict[str, List[GradientStop]] = Field(
        default_factory=dict,
        description="Heat-map stops per route id.",
    )


class RouteScoreRequest(BaseModel):
    origin: PointModel
    destination: PointModel


class RouteScoreResponse(BaseModel):
    routes: List[ScoredRoute]
    gradients: Dict[str, List[GradientStop]] = Field(default_factory=dict)
