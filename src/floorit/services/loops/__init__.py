"""Loop generation exports."""

from .generator import LoopGenerator, LoopRun, LoopRunState
from .geometry import circularity, overlap_penalty

__all__ = ["LoopGenerator", "LoopRun", "LoopRunState", "circularity", "overlap_penalty"]
