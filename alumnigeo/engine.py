"""Query engine: fetches a snapshot, filters, optionally clusters, and shapes results."""
from __future__ import annotations

from functools import wraps
from typing import Any, Dict, List, Optional
import logging
import time

from .clustering import GeoClusterer
from .config import EngineConfig
from .entities import AlumniRecord
from .filters import AlumniFilter, validate_category
from .privacy import present_detail, present_self_view
from .query import QueryResult, RecordFilter
from .sources import RecordSource

__all__ = ["QueryEngine", "timeit"]

logger = logging.getLogger(__name__)


def timeit(func):
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        t0 = time.perf_counter()
        out = func(self, *args, **kwargs)
        dt = (time.perf_counter() - t0) * 1000
        if self.config.profiling:
            logger.debug("timeit %s took %.2f ms", func.__name__, dt)
        return out

    return wrapper


class QueryEngine:
    """Privacy-aware listing, radius, location-search and clustering queries.

    The engine holds no mutable state: each call fetches a candidate snapshot
    from ``source`` and computes its whole result from that snapshot.
    """

    def __init__(self, source: RecordSource, config: EngineConfig | None = None):
        self.source = source
        self.config = config or EngineConfig()
        self.record_filter = RecordFilter(
            earth_radius_km=self.config.earth_radius_km,
            distance_decimals=self.config.distance_decimals,
        )
        self.clusterer = GeoClusterer(
            unknown_category=self.config.unknown_category,
            earth_radius_km=self.config.earth_radius_km,
        )

    # ------------------------------------------------------------------
    def _snapshot(self, spec: AlumniFilter) -> List[AlumniRecord]:
        # the location path matches structured fields by substring, so it
        # cannot push equality predicates down to the store
        if spec.has_location and not spec.has_radius:
            predicates: Dict[str, Any] = {}
        else:
            predicates = spec.structured_predicates()
        return list(self.source.fetch_candidate_records(predicates))

    # ------------------------------------------------------------------
    def query(
        self, spec: AlumniFilter, *, group_radius_km: Optional[float] = None
    ) -> QueryResult:
        """Masked rows, or cluster summaries when ``spec.group_by`` is set."""
        if spec.group_by:
            return self.grouped(spec, group_radius_km=group_radius_km)
        return self.list_alumni(spec)

    @timeit
    def list_alumni(self, spec: AlumniFilter | None = None) -> QueryResult:
        spec = spec or AlumniFilter()
        records = self._snapshot(spec)
        rows = self.record_filter.filter(records, spec)
        logger.debug("engine.list_alumni candidates=%d results=%d", len(records), len(rows))
        return QueryResult(rows)

    def nearby(self, lat: float, lng: float, radius_km: Optional[float] = None) -> QueryResult:
        if radius_km is None:
            radius_km = self.config.default_nearby_radius_km
        return self.list_alumni(AlumniFilter(lat=lat, lng=lng, radius_km=radius_km))

    def startups(self, spec: AlumniFilter | None = None) -> QueryResult:
        spec = (spec or AlumniFilter()).with_changes(is_startup=True)
        return self.list_alumni(spec)

    def search_location(self, phrase: str, spec: AlumniFilter | None = None) -> QueryResult:
        spec = (spec or AlumniFilter()).with_changes(location=phrase)
        return self.list_alumni(spec)

    @timeit
    def grouped(
        self,
        spec: AlumniFilter | None = None,
        *,
        group_radius_km: Optional[float] = None,
        category: Optional[str] = None,
    ) -> QueryResult:
        """Anonymized cluster summaries of the masked listing.

        Only records whose tier exposes coordinates take part in clustering.
        ``category`` must be one of :data:`~alumnigeo.filters.CATEGORY_FIELDS`.
        """
        spec = spec or AlumniFilter()
        if group_radius_km is None:
            group_radius_km = self.config.default_group_radius_km
        key = validate_category(category or spec.group_by or "industry")

        records = self._snapshot(spec)
        masked = self.record_filter.masked_records(records, spec)
        clusters = self.clusterer.cluster(masked, key, group_radius_km)
        summaries = [
            c.summary(i, label_suffix=self.config.cluster_label_suffix)
            for i, c in enumerate(clusters, start=1)
        ]
        logger.debug(
            "engine.grouped candidates=%d listed=%d clusters=%d radius_km=%s",
            len(records),
            len(masked),
            len(summaries),
            group_radius_km,
        )
        return QueryResult(summaries, mode="clusters")

    def overseas(self, country: Optional[str] = None) -> Dict[str, Dict[str, List[dict]]]:
        """Masked rows nested as ``{country: {city: [rows]}}``."""
        unknown = self.config.unknown_category
        groups: Dict[str, Dict[str, List[dict]]] = {}
        for row in self.list_alumni(AlumniFilter(country=country)):
            c = row.get("country") or unknown
            city = row.get("city") or unknown
            groups.setdefault(c, {}).setdefault(city, []).append(row)
        return groups

    # ------------------------------------------------------------------
    # Single-record contracts (not reachable through AlumniFilter)
    # ------------------------------------------------------------------
    def detail(self, record_id: Any) -> Optional[dict]:
        """Profile detail by id: location masked, but never excluded by tier."""
        rec = self.source.get_record(record_id)
        if rec is None:
            return None
        return present_detail(rec)

    def self_view(self, owner_id: Any) -> Optional[dict]:
        """The authenticated owner's own profile, unmasked."""
        rec = self.source.get_record(owner_id)
        if rec is None:
            return None
        return present_self_view(rec)
