"""Location masking by privacy tier and the public/detail/self-view row shapes."""

from __future__ import annotations

from typing import Optional

from .entities import AlumniRecord, LocationView, PrivacyTier

__all__ = [
    "mask",
    "mask_record",
    "present_public_row",
    "present_detail",
    "present_self_view",
]

_HIDDEN_VIEW = LocationView()


def mask(record: AlumniRecord) -> LocationView:
    """Return the location fields visible to a non-owner viewer."""

    tier = record.tier
    if tier in (PrivacyTier.HIDDEN, PrivacyTier.FRIENDS):
        return _HIDDEN_VIEW
    if tier is PrivacyTier.CITY:
        return LocationView(city=record.city)
    if tier is PrivacyTier.DISTRICT:
        return LocationView(city=record.city, district=record.district)
    return LocationView(
        city=record.city,
        district=record.district,
        address=record.address,
        address_en=record.address_en,
        lat=record.lat,
        lng=record.lng,
        office_address=record.office_address,
        office_lat=record.office_lat,
        office_lng=record.office_lng,
    )


def mask_record(record: AlumniRecord) -> AlumniRecord:
    """Copy of ``record`` with its location fields masked."""
    return record.with_location(mask(record))


def _round_distance(distance_km: Optional[float], decimals: int) -> Optional[float]:
    if distance_km is None:
        return None
    return round(float(distance_km), decimals)


def present_public_row(
    record: AlumniRecord,
    *,
    distance_km: Optional[float] = None,
    decimals: int = 3,
) -> dict:
    """Shape one listing row. Location fields are always masked here."""

    loc = mask(record)
    return {
        "id": record.id,
        "name": record.name,
        "college": record.college,
        "major": record.major,
        "graduation_year": record.graduation_year,
        "industry": record.industry,
        "industry_segment": record.industry_segment,
        "company": record.company,
        "job_title": record.job_title,
        "funding_stage": record.funding_stage,
        "business_domain": record.business_domain,
        "is_startup": bool(record.is_startup),
        "contact_name": record.contact_name,
        "contact_phone": record.contact_phone,
        "contact_email": record.contact_email,
        "wechat": record.wechat,
        "qq": record.qq,
        "country": record.country,
        "city": loc.city,
        "district": loc.district,
        "address": loc.address,
        "address_en": loc.address_en,
        "lat": loc.lat,
        "lng": loc.lng,
        "office_address": loc.office_address,
        "office_lat": loc.office_lat,
        "office_lng": loc.office_lng,
        "distance_km": _round_distance(distance_km, decimals),
    }


def _profile_fields(record: AlumniRecord) -> dict:
    return {
        "id": record.id,
        "name": record.name,
        "alumni_identity_id": record.alumni_identity_id,
        "graduation_year": record.graduation_year,
        "school": record.school,
        "college": record.college,
        "major": record.major,
        "degree": record.degree,
        "company": record.company,
        "job_title": record.job_title,
        "industry": record.industry,
        "industry_segment": record.industry_segment,
        "is_startup": bool(record.is_startup),
        "business_domain": record.business_domain,
        "funding_stage": record.funding_stage,
        "contact_name": record.contact_name,
        "contact_phone": record.contact_phone,
        "contact_email": record.contact_email,
        "wechat": record.wechat,
        "qq": record.qq,
        "country": record.country,
        "skills": list(record.skills),
        "resources": list(record.resources),
    }


def present_detail(record: AlumniRecord) -> dict:
    """Detail-by-id shape: full profile, masked location."""

    out = _profile_fields(record)
    out.update(mask(record).to_dict())
    return out


def present_self_view(record: AlumniRecord) -> dict:
    """Owner's own view: nothing masked, tier included."""

    out = _profile_fields(record)
    out.update(
        {
            "city": record.city,
            "district": record.district,
            "address": record.address,
            "address_en": record.address_en,
            "lat": record.lat,
            "lng": record.lng,
            "office_address": record.office_address,
            "office_lat": record.office_lat,
            "office_lng": record.office_lng,
            "privacy_level": record.privacy_level,
        }
    )
    return out
