"""Geospatial helper functions.

Coordinates are ``(longitude, latitude)`` pairs in degrees, matching the
order OSRM and GeoJSON use.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from shapely.geometry import Polygon

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_MI = 3958.8
METERS_PER_MILE = 1609.34
FEET_PER_MILE = 5280
MILES_PER_DEGREE_LAT = 69.0

Coordinate = tuple[float, float]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_miles(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in miles between two (lon, lat) coordinates."""

    return haversine_km(a[1], a[0], b[1], b[0]) * EARTH_RADIUS_MI / EARTH_RADIUS_KM


def cumulative_distances_miles(coords: Sequence[Coordinate]) -> list[float]:
    """Running distance along ``coords``; element ``i`` is the length up to point ``i``."""

    if not coords:
        return []
    totals = [0.0]
    for prev, curr in zip(coords, coords[1:]):
        totals.append(totals[-1] + haversine_miles(prev, curr))
    return totals


def path_length_miles(coords: Sequence[Coordinate], start: int = 0, end: int | None = None) -> float:
    """Length of the polyline between point indices ``start`` and ``end`` (inclusive)."""

    if end is None:
        end = len(coords) - 1
    end = min(end, len(coords) - 1)
    total = 0.0
    for i in range(max(start, 0), end):
        total += haversine_miles(coords[i], coords[i + 1])
    return total


def nearest_point(coord: Coordinate, coords: Sequence[Coordinate]) -> tuple[int, float]:
    """Return ``(index, miles)`` of the point in ``coords`` closest to ``coord``."""

    best_idx = 0
    best_dist = math.inf
    for idx, candidate in enumerate(coords):
        dist = haversine_miles(coord, candidate)
        if dist < best_dist:
            best_dist = dist
            best_idx = idx
    return best_idx, best_dist


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def bearing_delta(first: float, second: float) -> float:
    """Signed smallest rotation from bearing ``first`` to ``second``, in (-180, 180]."""

    delta = (second - first) % 360
    if delta > 180:
        delta -= 360
    return delta


def offset_coordinate(center: Coordinate, bearing: float, miles: float) -> Coordinate:
    """Move ``miles`` from ``center`` along ``bearing`` using a flat-earth approximation."""

    lng, lat = center
    rad = math.radians(bearing)
    lat_per_mile = 1 / MILES_PER_DEGREE_LAT
    lng_per_mile = 1 / (MILES_PER_DEGREE_LAT * math.cos(math.radians(lat)))
    return (lng + math.sin(rad) * miles * lng_per_mile, lat + math.cos(rad) * miles * lat_per_mile)


def to_local_miles(coords: Sequence[Coordinate]) -> np.ndarray:
    """Project coordinates to an (n, 2) array of miles east/north of the first point."""

    points = np.asarray(coords, dtype=float)
    if points.size == 0:
        return points.reshape(0, 2)
    lng_ref, lat_ref = points[0]
    x = (points[:, 0] - lng_ref) * MILES_PER_DEGREE_LAT * np.cos(np.radians(lat_ref))
    y = (points[:, 1] - lat_ref) * MILES_PER_DEGREE_LAT
    return np.column_stack((x, y))


def polygon_area(points: Sequence[tuple[float, float]]) -> float:
    """Shoelace area of the ring through ``points`` (planar units squared)."""

    if len(points) < 3:
        return 0.0
    return float(Polygon(points).area)
