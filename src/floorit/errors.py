"""Error types shared across the floorability services."""

from __future__ import annotations


class FloorItError(Exception):
    """Base class for errors raised by the floorability services."""


class NetworkFailure(FloorItError):
    """A backend call failed in transit: connection error, timeout or 5xx."""


class MalformedResponse(FloorItError):
    """A backend answered, but the payload could not be used."""


class NoCandidatesError(FloorItError):
    """No loop candidate survived any fallback tier."""
