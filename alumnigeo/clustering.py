"""Greedy centroid-chaining clustering of same-category records."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
import logging

from .entities import AlumniRecord, Cluster
from .geometry import EARTH_RADIUS_KM, haversine_km, mean_centroid

__all__ = ["CategoryKey", "GeoClusterer", "category_key"]

logger = logging.getLogger(__name__)

CategoryKey = Union[str, Callable[[AlumniRecord], Any]]


def category_key(key: CategoryKey, unknown: str) -> Callable[[AlumniRecord], str]:
    """Turn a field name or callable into a key function with an ``unknown`` sentinel."""

    getter = key if callable(key) else (lambda rec, _name=key: getattr(rec, _name, None))

    def _key(rec: AlumniRecord) -> str:
        value = getter(rec)
        if value is None or value == "":
            return unknown
        return str(value)

    return _key


class GeoClusterer:
    """Collapse nearby records of the same category into anonymous clusters.

    Within a category, the first unassigned record seeds a cluster. Passes over
    the remaining unassigned records add every record within ``radius_km`` of
    the *current* centroid, recomputing the centroid as the mean of all members
    after each join, and repeat until a full pass adds nothing. The centroid
    can therefore drift and chain beyond ``radius_km`` from the seed, and the
    result depends on input order.
    """

    def __init__(self, *, unknown_category: str = "未知", earth_radius_km: float = EARTH_RADIUS_KM):
        self.unknown_category = unknown_category
        self.earth_radius_km = earth_radius_km

    def _bucket(
        self, records: Sequence[AlumniRecord], key: Callable[[AlumniRecord], str]
    ) -> Dict[str, List[Tuple[float, float]]]:
        buckets: Dict[str, List[Tuple[float, float]]] = {}
        for rec in records:
            points = buckets.setdefault(key(rec), [])
            xy = rec.coords
            if xy is not None:
                points.append(xy)
        return buckets

    def _cluster_points(
        self, category: str, points: List[Tuple[float, float]], radius_km: float
    ) -> List[Cluster]:
        n = len(points)
        assigned = [False] * n
        clusters: List[Cluster] = []

        for seed in range(n):
            if assigned[seed]:
                continue
            assigned[seed] = True
            members = [seed]
            c_lat, c_lng = points[seed]

            changed = True
            while changed:
                changed = False
                for j in range(n):
                    if assigned[j]:
                        continue
                    lat, lng = points[j]
                    d = haversine_km(c_lat, c_lng, lat, lng, radius_km=self.earth_radius_km)
                    if d <= radius_km:
                        assigned[j] = True
                        members.append(j)
                        c_lat, c_lng = mean_centroid([points[m] for m in members])
                        changed = True

            clusters.append(
                Cluster(category=category, lat=c_lat, lng=c_lng, virtual_count=len(members))
            )
        return clusters

    def cluster(
        self,
        records: Sequence[AlumniRecord],
        key: CategoryKey = "industry",
        radius_km: float = 100.0,
        *,
        unknown: Optional[str] = None,
    ) -> List[Cluster]:
        """Cluster ``records`` (in their given order) per category.

        Records without coordinates are skipped entirely.
        """
        keyfunc = category_key(key, self.unknown_category if unknown is None else unknown)
        out: List[Cluster] = []
        for category, points in self._bucket(records, keyfunc).items():
            out.extend(self._cluster_points(category, points, float(radius_km)))
        logger.debug(
            "clustering.done records=%d clusters=%d radius_km=%s",
            len(records),
            len(out),
            radius_km,
        )
        return out
