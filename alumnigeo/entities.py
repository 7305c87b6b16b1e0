"""Domain entities (AlumniRecord, clusters) and the privacy tier enumeration."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import StrEnum
from typing import Any, Mapping, Optional, Tuple

__all__ = [
    "PrivacyTier",
    "AlumniRecord",
    "LocationView",
    "DistanceAnnotatedRecord",
    "Cluster",
    "ClusterSummary",
    "LOCATION_FIELDS",
]

LOCATION_FIELDS = (
    "city",
    "district",
    "address",
    "address_en",
    "lat",
    "lng",
    "office_address",
    "office_lat",
    "office_lng",
)


def validate_non_empty_str(name: str):
    """Decorator factory: enforce non-empty string attribute on __post_init__."""

    def deco(cls):
        orig_post = getattr(cls, "__post_init__", None)

        def post(self):
            if not getattr(self, name) or not isinstance(getattr(self, name), str):
                raise ValueError(f"{cls.__name__}.{name} must be a non-empty string")
            if orig_post:
                orig_post(self)

        cls.__post_init__ = post
        return cls

    return deco


class PrivacyTier(StrEnum):
    HIDDEN = "hidden"
    FRIENDS = "friends"
    CITY = "city"
    DISTRICT = "district"
    ADDRESS = "address"

    @classmethod
    def coerce(cls, value: Any) -> "PrivacyTier":
        """Map a stored ``privacy_level`` to a tier.

        Unset values fall back to ``district``; unrecognised strings get full
        ``address`` visibility.
        """
        if value is None or value == "":
            return cls.DISTRICT
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.ADDRESS

    @property
    def listable(self) -> bool:
        """False for tiers that never appear in public listings."""
        return self not in (PrivacyTier.HIDDEN, PrivacyTier.FRIENDS)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _coerce_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _coerce_optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@validate_non_empty_str("name")
@dataclass(slots=True)
class AlumniRecord:
    id: int
    name: str
    graduation_year: Optional[int] = None
    alumni_identity_id: Optional[str] = None

    school: Optional[str] = None
    college: Optional[str] = None
    major: Optional[str] = None
    degree: Optional[str] = None

    company: Optional[str] = None
    job_title: Optional[str] = None
    industry: Optional[str] = None
    industry_segment: Optional[str] = None
    is_startup: bool = False
    funding_stage: Optional[str] = None
    business_domain: Optional[str] = None

    country: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    address: Optional[str] = None
    address_en: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    office_address: Optional[str] = None
    office_lat: Optional[float] = None
    office_lng: Optional[float] = None

    privacy_level: Optional[str] = PrivacyTier.DISTRICT.value

    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    wechat: Optional[str] = None
    qq: Optional[str] = None

    skills: list[str] = field(default_factory=list, repr=False, compare=False)
    resources: list[str] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self):
        self.is_startup = _coerce_bool(self.is_startup)
        self.graduation_year = _coerce_optional_int(self.graduation_year)
        self.lat = _coerce_optional_float(self.lat)
        self.lng = _coerce_optional_float(self.lng)
        self.office_lat = _coerce_optional_float(self.office_lat)
        self.office_lng = _coerce_optional_float(self.office_lng)
        self.skills = list(self.skills or [])
        self.resources = list(self.resources or [])

    @property
    def tier(self) -> PrivacyTier:
        return PrivacyTier.coerce(self.privacy_level)

    @property
    def coords(self) -> Optional[Tuple[float, float]]:
        if self.lat is None or self.lng is None:
            return None
        return (self.lat, self.lng)

    def with_location(self, view: "LocationView") -> "AlumniRecord":
        """Return a copy whose location fields are replaced by ``view``."""
        return replace(
            self,
            city=view.city,
            district=view.district,
            address=view.address,
            address_en=view.address_en,
            lat=view.lat,
            lng=view.lng,
            office_address=view.office_address,
            office_lat=view.office_lat,
            office_lng=view.office_lng,
        )

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "AlumniRecord":
        """Build a record from a loose row (e.g. a joined users/profiles row).

        ``user_id`` wins over ``id`` because joined profile rows carry their
        own surrogate ``id``.
        """
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in row.items() if k in known}
        if row.get("user_id") is not None:
            data["id"] = row["user_id"]
        if "id" not in data:
            raise ValueError("AlumniRecord row requires 'id' or 'user_id'")
        return cls(**data)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True, slots=True)
class LocationView:
    """The location fields an external viewer may see."""

    city: Optional[str] = None
    district: Optional[str] = None
    address: Optional[str] = None
    address_en: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    office_address: Optional[str] = None
    office_lat: Optional[float] = None
    office_lng: Optional[float] = None

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in LOCATION_FIELDS}


@dataclass(frozen=True, slots=True)
class DistanceAnnotatedRecord:
    record: AlumniRecord
    distance_km: Optional[float] = None


@dataclass(slots=True)
class Cluster:
    """Request-scoped aggregate: category, running centroid and member count."""

    category: str
    lat: float
    lng: float
    virtual_count: int = 1

    def summary(self, cluster_id: int, *, label_suffix: str = "圈层") -> "ClusterSummary":
        return ClusterSummary(
            cluster_id=cluster_id,
            label=f"{self.category}{label_suffix}",
            category=self.category,
            lat=self.lat,
            lng=self.lng,
            virtual_count=self.virtual_count,
        )


@dataclass(frozen=True, slots=True)
class ClusterSummary:
    """Anonymized cluster as returned to callers: no member identity."""

    cluster_id: int
    label: str
    category: str
    lat: float
    lng: float
    virtual_count: int

    def to_dict(self) -> dict:
        return {
            "cluster_id": self.cluster_id,
            "label": self.label,
            "category": self.category,
            "lat": self.lat,
            "lng": self.lng,
            "virtual_count": self.virtual_count,
        }
