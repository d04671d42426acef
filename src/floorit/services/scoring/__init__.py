"""Floorability scoring exports."""

from .floorability import ScoringWeights, apply_loop_adjustments, floorability_gradient, score_route

__all__ = ["score_route", "apply_loop_adjustments", "floorability_gradient", "ScoringWeights"]
