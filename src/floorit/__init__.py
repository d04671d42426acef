"""Floor-it loop planner: floorability scoring and loop route generation."""

__version__ = "0.1.0"
