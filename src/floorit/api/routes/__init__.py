"""Route group exports."""

from . import health, loops

__all__ = ["health", "loops"]
