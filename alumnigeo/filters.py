"""The closed filter record accepted by the query engine."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .entities import AlumniRecord

__all__ = [
    "STRUCTURED_FIELDS",
    "CATEGORY_FIELDS",
    "validate_category",
    "AlumniFilter",
    "matches_structured",
    "matches_substrings",
]

STRUCTURED_FIELDS = (
    "school",
    "college",
    "major",
    "graduation_year",
    "degree",
    "industry",
    "industry_segment",
    "is_startup",
    "funding_stage",
    "business_domain",
    "city",
    "district",
    "country",
)

_FLOAT_FIELDS = ("lat", "lng", "radius_km")

# fields a cluster may be keyed on; none of them identifies a single member
CATEGORY_FIELDS = (
    "industry",
    "industry_segment",
    "business_domain",
    "funding_stage",
    "school",
    "college",
    "major",
    "degree",
    "graduation_year",
    "country",
    "city",
)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_category(name: Any) -> str:
    """Return ``name`` if it is an allowed cluster category field, else raise ``ValueError``."""
    if name not in CATEGORY_FIELDS:
        raise ValueError(
            f"group_by must be one of {', '.join(CATEGORY_FIELDS)}, got {name!r}"
        )
    return name


def _coerce_startup_flag(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in {"0", "1", "true", "false"}:
        return value.strip().lower() in {"1", "true"}
    raise ValueError(f"is_startup must be 0/1 or a boolean, got {value!r}")


@dataclass(frozen=True)
class AlumniFilter:
    """Immutable query filter.

    Every field is optional and ``None`` means "don't care". Blank strings are
    treated the same as ``None``; ``is_startup=False`` is an enforced predicate.
    """

    school: Optional[str] = None
    college: Optional[str] = None
    major: Optional[str] = None
    graduation_year: Optional[int] = None
    degree: Optional[str] = None
    industry: Optional[str] = None
    industry_segment: Optional[str] = None
    is_startup: Optional[bool] = None
    funding_stage: Optional[str] = None
    business_domain: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    country: Optional[str] = None

    keyword: Optional[str] = None
    location: Optional[str] = None

    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: Optional[float] = None

    group_by: Optional[str] = None

    def __post_init__(self):
        if not _blank(self.group_by):
            validate_category(self.group_by)

    @property
    def has_radius(self) -> bool:
        return self.lat is not None and self.lng is not None and self.radius_km is not None

    @property
    def has_keyword(self) -> bool:
        return not _blank(self.keyword)

    @property
    def has_location(self) -> bool:
        return self.location is not None

    def structured_predicates(self) -> Dict[str, Any]:
        """The equality predicates that are actually set."""
        out: Dict[str, Any] = {}
        for name in STRUCTURED_FIELDS:
            value = getattr(self, name)
            if name == "is_startup":
                if value is not None:
                    out[name] = bool(value)
                continue
            if _blank(value):
                continue
            out[name] = value
        return out

    def with_changes(self, **changes: Any) -> "AlumniFilter":
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, query: Mapping[str, Any]) -> "AlumniFilter":
        """Coerce a loose query-string style mapping into an ``AlumniFilter``.

        Raises ``ValueError`` for unknown keys or values of the wrong shape.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(query) - known)
        if unknown:
            raise ValueError(f"Unknown filter keys: {', '.join(unknown)}")

        data: Dict[str, Any] = {}
        for key, value in query.items():
            if key == "is_startup":
                data[key] = _coerce_startup_flag(value)
            elif key == "graduation_year":
                if _blank(value):
                    continue
                try:
                    data[key] = int(value)
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"graduation_year must be an integer, got {value!r}") from exc
            elif key in _FLOAT_FIELDS:
                if _blank(value):
                    continue
                try:
                    data[key] = float(value)
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"{key} must be a number, got {value!r}") from exc
            elif key == "location":
                data[key] = None if value is None else str(value)
            else:
                if _blank(value):
                    continue
                data[key] = str(value)
        return cls(**data)


def matches_structured(record: AlumniRecord, predicates: Mapping[str, Any]) -> bool:
    """Exact equality on every predicate."""
    for name, wanted in predicates.items():
        value = getattr(record, name, None)
        if name == "is_startup":
            if bool(value) != bool(wanted):
                return False
        elif value != wanted:
            return False
    return True


def matches_substrings(row: Mapping[str, Any], predicates: Mapping[str, Any]) -> bool:
    """Case-insensitive substring match of each predicate against a presented row.

    A missing value never matches a non-empty predicate.
    """
    for name, wanted in predicates.items():
        value = row.get(name)
        if value is None:
            return False
        if isinstance(wanted, bool) or isinstance(value, bool):
            if bool(value) != bool(wanted):
                return False
            continue
        if str(wanted).lower() not in str(value).lower():
            return False
    return True
