"""Routing client and route models."""

from .models import NormalizedRoute, RouteLeg, RouteStep
from .osrm_client import FailoverState, OSRMClient

__all__ = ["OSRMClient", "FailoverState", "NormalizedRoute", "RouteLeg", "RouteStep"]
