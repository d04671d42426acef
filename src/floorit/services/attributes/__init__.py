"""Road attribute fetching and route matching."""

from .matcher import AttributeMatcher, StepIndex, build_speed_profile
from .overpass_client import OverpassClient

__all__ = ["OverpassClient", "AttributeMatcher", "StepIndex", "build_speed_profile"]
