"""Record filtering pipeline and the ordered result container."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

import numpy as np

from .entities import AlumniRecord, DistanceAnnotatedRecord
from .filters import AlumniFilter, matches_structured, matches_substrings
from .fuzzy import keyword_matches, match_by_location
from .geometry import EARTH_RADIUS_KM, coords_array, haversine_km_vec
from .privacy import mask, mask_record, present_public_row

__all__ = ["RecordFilter", "QueryResult"]

logger = logging.getLogger(__name__)


class QueryResult:
    """Ordered, fully materialized result of one engine call."""

    _PRESETS: Dict[str, Dict[str, Any]] = {
        "listing": {
            "column_order": [
                "id",
                "name",
                "industry",
                "company",
                "job_title",
                "city",
                "district",
                "distance_km",
            ],
        },
        "clusters": {
            "column_order": ["cluster_id", "label", "lat", "lng", "virtual_count"],
            "rename": {"virtual_count": "count"},
        },
    }

    def __init__(self, items: Iterable[Any], *, mode: str = "listing"):
        self._items = list(items)
        self.mode = mode

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    def __getitem__(self, idx: int) -> Any:
        return self._items[idx]

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<{self.__class__.__name__} mode={self.mode} len={len(self._items)}>"

    @property
    def total(self) -> int:
        return len(self._items)

    def first(self) -> Optional[Any]:
        return self._items[0] if self._items else None

    def to_list(self) -> List[Any]:
        return list(self._items)

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------
    def to_dicts(self) -> list[dict]:
        rows = []
        for item in self._items:
            if hasattr(item, "to_dict"):
                rows.append(item.to_dict())
            else:
                rows.append(dict(item))
        return rows

    def to_payload(self) -> dict:
        """The ``{"total": n, "items": [...]}`` envelope handed to the HTTP layer."""
        return {"total": self.total, "items": self.to_dicts()}

    def to_df(
        self,
        columns: list[str] | None = None,
        *,
        column_order: Sequence[str] | None = None,
        rename: Dict[str, str] | None = None,
        preset: str | None = None,
    ):
        """Materialize the items as a pandas DataFrame.

        Parameters
        ----------
        columns : list[str] | None
            Optional subset of columns to retain (after renaming).
        column_order : Sequence[str] | None
            Preferred ordering; missing columns are ignored.
        rename : Dict[str, str] | None
            Column rename mapping applied via DataFrame.rename.
        preset : str | None
            ``'listing'`` or ``'clusters'``.
        """
        import pandas as pd

        df = pd.DataFrame(self.to_dicts())

        config_order: Sequence[str] | None = None
        config_rename: Dict[str, str] = {}
        if preset is not None:
            key = preset.lower()
            if key not in self._PRESETS:
                raise ValueError(f"Unknown preset '{preset}' for QueryResult.to_df()")
            preset_cfg = self._PRESETS[key]
            config_order = preset_cfg.get("column_order")
            config_rename = dict(preset_cfg.get("rename", {}))

        if rename:
            config_rename.update(rename)
        if config_rename:
            df = df.rename(columns=config_rename)

        order = list(column_order or [])
        if config_order:
            order += [config_rename.get(c, c) for c in config_order if c not in order]
        if order:
            cols = [c for c in order if c in df.columns]
            cols += [c for c in df.columns if c not in cols]
            df = df[cols]
        if columns:
            df = df[[c for c in columns if c in df.columns]]
        return df


def _searchable_row(record: AlumniRecord) -> dict:
    """Profile fields as stored, location fields as a viewer would see them."""
    row = record.to_dict()
    row.update(mask(record).to_dict())
    return row


class RecordFilter:
    """Structured, keyword, radius and location filtering over a record snapshot.

    :meth:`select` returns unmasked records annotated with distance;
    :meth:`filter` returns masked public rows. Records in the ``hidden`` and
    ``friends`` tiers never survive either call.
    """

    def __init__(self, *, earth_radius_km: float = EARTH_RADIUS_KM, distance_decimals: int = 3):
        self.earth_radius_km = earth_radius_km
        self.distance_decimals = distance_decimals

    # ------------------------------------------------------------------
    @staticmethod
    def _warn_ignored(part: str, reason: str) -> None:
        logger.warning("query.ignored_filter part=%s reason=%s", part, reason)

    @staticmethod
    def listable(records: Iterable[AlumniRecord]) -> List[AlumniRecord]:
        return [rec for rec in records if rec.tier.listable]

    def _structured(self, records: Iterable[AlumniRecord], spec: AlumniFilter) -> List[AlumniRecord]:
        predicates = spec.structured_predicates()
        out = [rec for rec in records if matches_structured(rec, predicates)]
        if spec.has_keyword:
            out = [rec for rec in out if keyword_matches(rec, spec.keyword)]
        return self.listable(out)

    def _within_radius(
        self, records: List[AlumniRecord], lat: float, lng: float, radius_km: float
    ) -> List[DistanceAnnotatedRecord]:
        coords = coords_array(
            rec.coords if rec.coords is not None else (None, None) for rec in records
        )
        dists = haversine_km_vec(
            float(lat), float(lng), coords, radius_km=self.earth_radius_km
        )
        keep = np.nonzero(~np.isnan(dists) & (dists <= float(radius_km)))[0]
        order = keep[np.argsort(dists[keep], kind="stable")]
        return [
            DistanceAnnotatedRecord(records[int(i)], float(dists[int(i)])) for i in order
        ]

    def _by_location(
        self, records: Iterable[AlumniRecord], spec: AlumniFilter
    ) -> List[DistanceAnnotatedRecord]:
        hits = match_by_location(self.listable(records), spec.location)
        predicates = spec.structured_predicates()
        if predicates:
            hits = [rec for rec in hits if matches_substrings(_searchable_row(rec), predicates)]
        return [DistanceAnnotatedRecord(rec) for rec in hits]

    # ------------------------------------------------------------------
    def select(
        self, records: Sequence[AlumniRecord], spec: AlumniFilter
    ) -> List[DistanceAnnotatedRecord]:
        """Steps 1-5: filter, rank and annotate, without masking."""

        if spec.has_radius:
            if spec.has_location:
                self._warn_ignored("location", "radius")
            out = self._within_radius(
                self._structured(records, spec), spec.lat, spec.lng, spec.radius_km
            )
            mode = "radius"
        elif spec.has_location:
            if spec.has_keyword:
                self._warn_ignored("keyword", "location")
            out = self._by_location(records, spec)
            mode = "location"
        else:
            out = [DistanceAnnotatedRecord(rec) for rec in self._structured(records, spec)]
            mode = "structured"

        logger.debug(
            "query.select mode=%s candidates=%d results=%d", mode, len(records), len(out)
        )
        return out

    def filter(self, records: Sequence[AlumniRecord], spec: AlumniFilter) -> List[dict]:
        """Full pipeline: :meth:`select` then masking into public rows."""
        return [
            present_public_row(
                item.record, distance_km=item.distance_km, decimals=self.distance_decimals
            )
            for item in self.select(records, spec)
        ]

    def masked_records(
        self, records: Sequence[AlumniRecord], spec: AlumniFilter
    ) -> List[AlumniRecord]:
        """Like :meth:`filter` but keeps masked :class:`AlumniRecord` copies."""
        return [mask_record(item.record) for item in self.select(records, spec)]
