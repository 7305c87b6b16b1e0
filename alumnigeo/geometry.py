"""Great-circle distance helpers used by the radius filter and the clusterer."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple
import math

import numpy as np

__all__ = [
    "EARTH_RADIUS_KM",
    "haversine_km",
    "distance_km",
    "haversine_km_vec",
    "coords_array",
    "mean_centroid",
    "probably_latlng",
]

EARTH_RADIUS_KM = 6371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float, *, radius_km: float = EARTH_RADIUS_KM
) -> float:
    """Great-circle distance between two lat/lng points in kilometres."""
    from math import atan2, cos, radians, sin, sqrt

    phi1, lam1, phi2, lam2 = map(radians, (lat1, lng1, lat2, lng2))
    dphi = phi2 - phi1
    dlam = lam2 - lam1
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlam / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return radius_km * c


def distance_km(
    lat1: Optional[float],
    lng1: Optional[float],
    lat2: Optional[float],
    lng2: Optional[float],
    *,
    radius_km: float = EARTH_RADIUS_KM,
) -> Optional[float]:
    """Like :func:`haversine_km` but returns ``None`` when any coordinate is unknown.

    ``0.0`` is a valid coordinate; only ``None`` means unknown.
    """
    if lat1 is None or lng1 is None or lat2 is None or lng2 is None:
        return None
    return haversine_km(
        float(lat1), float(lng1), float(lat2), float(lng2), radius_km=radius_km
    )


def coords_array(points: Iterable[Tuple[Optional[float], Optional[float]]]) -> np.ndarray:
    """Pack (lat, lng) pairs into an ``(n, 2)`` float array, unknowns as NaN."""

    rows = [
        (
            np.nan if lat is None else float(lat),
            np.nan if lng is None else float(lng),
        )
        for lat, lng in points
    ]
    if not rows:
        return np.empty((0, 2), dtype=float)
    return np.array(rows, dtype=float)


def haversine_km_vec(
    lat: float, lng: float, coords: np.ndarray, *, radius_km: float = EARTH_RADIUS_KM
) -> np.ndarray:
    """Vectorized distance from one point to every row of ``coords``.

    Rows with a NaN coordinate yield NaN.
    """
    if coords.shape[0] == 0:
        return np.empty(0, dtype=float)
    phi1, lam1 = np.radians([lat, lng])
    phi2 = np.radians(coords[:, 0])
    lam2 = np.radians(coords[:, 1])
    dphi = phi2 - phi1
    dlam = lam2 - lam1
    a = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlam / 2) ** 2
    return radius_km * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def mean_centroid(points: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    """Arithmetic mean of (lat, lng) pairs, summed in the given order."""
    if not points:
        raise ValueError("mean_centroid requires at least one point")
    lat_sum = 0.0
    lng_sum = 0.0
    for lat, lng in points:
        lat_sum += lat
        lng_sum += lng
    n = len(points)
    return (lat_sum / n, lng_sum / n)


def probably_latlng(lat: float, lng: float) -> bool:
    """Return True when (lat, lng) are inside the valid degree ranges."""

    return (
        math.isfinite(lat)
        and math.isfinite(lng)
        and -90.0 <= lat <= 90.0
        and -180.0 <= lng <= 180.0
    )
