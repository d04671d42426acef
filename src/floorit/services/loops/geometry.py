"""Shape metrics for candidate loop routes. No network access."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..geospatial import Coordinate, METERS_PER_MILE, polygon_area, to_local_miles

MAX_ASPECT_RATIO = 5.0

OVERLAP_SAMPLES = 200
OVERLAP_MIN_INDEX_GAP = 0.10
OVERLAP_RADIUS_MI = 50 / METERS_PER_MILE

TURNAROUND_WINDOW_FRACTION = 0.05
TURNAROUND_MIN_WINDOWS_AHEAD = 2
TURNAROUND_MAX_WINDOWS_AHEAD = 5
TURNAROUND_RADIUS_MI = 55 / METERS_PER_MILE
TURNAROUND_BULGE_FACTOR = 2.0
TURNAROUND_SCALE = 3.0


def circularity(coords: Sequence[Coordinate]) -> float:
    """Polygon area over bounding-box area: ~0.78 for a circle, ~0 for a line.

    Elongated shapes (bounding box beyond 5:1) score 0.
    """
    if len(coords) < 3:
        return 0.0
    local = to_local_miles(coords)
    width = float(local[:, 0].max() - local[:, 0].min())
    height = float(local[:, 1].max() - local[:, 1].min())
    if width <= 0 or height <= 0:
        return 0.0
    if max(width, height) / min(width, height) > MAX_ASPECT_RATIO:
        return 0.0
    area = polygon_area([(float(x), float(y)) for x, y in local])
    return float(min(1.0, max(0.0, area / (width * height))))


def _global_overlap(local: np.ndarray) -> float:
    n = len(local)
    sample_count = min(n, OVERLAP_SAMPLES)
    indices = np.unique(np.linspace(0, n - 1, sample_count).round().astype(int))
    points = local[indices]
    min_gap = OVERLAP_MIN_INDEX_GAP * n

    distances = np.linalg.norm(points[:, None, :] - points[None, :, :], axis=-1)
    index_gaps = np.abs(indices[:, None] - indices[None, :])
    revisits = (distances <= OVERLAP_RADIUS_MI) & (index_gaps >= min_gap)
    return float(revisits.any(axis=1).mean())


def _local_turnarounds(local: np.ndarray) -> float:
    n = len(local)
    window = max(1, round(n * TURNAROUND_WINDOW_FRACTION))
    checked = 0
    turnarounds = 0
    for start in range(0, n - TURNAROUND_MIN_WINDOWS_AHEAD * window, window):
        checked += 1
        origin = local[start]
        for ahead in range(TURNAROUND_MIN_WINDOWS_AHEAD, TURNAROUND_MAX_WINDOWS_AHEAD + 1):
            end = start + ahead * window
            if end >= n:
                break
            if np.linalg.norm(local[end] - origin) > TURNAROUND_RADIUS_MI:
                continue
            bulge = np.linalg.norm(local[start : end + 1] - origin, axis=1).max()
            if bulge > TURNAROUND_RADIUS_MI * TURNAROUND_BULGE_FACTOR:
                turnarounds += 1
                break
    if not checked:
        return 0.0
    return min(1.0, turnarounds / checked * TURNAROUND_SCALE)


def overlap_penalty(coords: Sequence[Coordinate]) -> float:
    """How much of the route re-travels road it already used, in [0, 1].

    The larger of the share of sampled points revisited later in the route
    and the (scaled) share of short windows that double back on themselves.
    """
    if len(coords) < 10:
        return 0.0
    local = to_local_miles(coords)
    penalty = max(_global_overlap(local), _local_turnarounds(local))
    return float(min(1.0, max(0.0, penalty)))


def geometry_quality(
    circularity_value: float,
    overlap_value: float,
    duration_seconds: float,
    target_seconds: float,
) -> float:
    duration_fit = max(0.0, 1 - abs(duration_seconds - target_seconds) / target_seconds) if target_seconds > 0 else 0.0
    return circularity_value * 0.45 + (1 - overlap_value) * 0.35 + duration_fit * 0.20
