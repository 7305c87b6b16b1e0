import pytest

from alumnigeo.entities import AlumniRecord, PrivacyTier
from alumnigeo.privacy import (
    mask,
    mask_record,
    present_detail,
    present_public_row,
    present_self_view,
)


def _record(privacy_level="district", **kwargs) -> AlumniRecord:
    base = dict(
        id=1,
        name="Li Wei",
        city="北京",
        district="朝阳区",
        address="建国路 88 号",
        address_en="88 Jianguo Rd",
        lat=39.908,
        lng=116.46,
        privacy_level=privacy_level,
        contact_email="li@example.com",
    )
    base.update(kwargs)
    return AlumniRecord(**base)


@pytest.mark.parametrize(
    "level, visible",
    [
        ("hidden", set()),
        ("friends", set()),
        ("city", {"city"}),
        ("district", {"city", "district"}),
        ("address", {"city", "district", "address", "address_en", "lat", "lng"}),
        (None, {"city", "district"}),
        ("", {"city", "district"}),
        ("something-else", {"city", "district", "address", "address_en", "lat", "lng"}),
    ],
)
def test_mask_by_tier(level, visible):
    view = mask(_record(level)).to_dict()

    shown = {k for k, v in view.items() if v is not None}
    assert shown == visible


@pytest.mark.parametrize("level", ["hidden", "friends", "city", "district", "address", None])
def test_masking_is_idempotent(level):
    rec = _record(level)

    once = mask(rec)
    twice = mask(mask_record(rec))

    assert once == twice


def test_tier_coercion_and_listability():
    assert PrivacyTier.coerce(None) is PrivacyTier.DISTRICT
    assert PrivacyTier.coerce("city") is PrivacyTier.CITY
    assert PrivacyTier.coerce("precise") is PrivacyTier.ADDRESS
    assert not PrivacyTier.HIDDEN.listable
    assert not PrivacyTier.FRIENDS.listable
    assert PrivacyTier.CITY.listable


def test_public_row_rounds_distance_and_masks_location():
    row = present_public_row(_record("city"), distance_km=1.23456)

    assert row["distance_km"] == 1.235
    assert row["city"] == "北京"
    assert row["district"] is None
    assert row["lat"] is None
    assert row["contact_email"] == "li@example.com"


def test_public_row_without_distance():
    assert present_public_row(_record("address"))["distance_km"] is None


def test_detail_is_masked_but_self_view_is_not():
    rec = _record("hidden", skills=["python"])

    detail = present_detail(rec)
    own = present_self_view(rec)

    assert detail["city"] is None and detail["lat"] is None
    assert detail["skills"] == ["python"]
    assert "privacy_level" not in detail
    assert own["address"] == "建国路 88 号"
    assert own["lat"] == pytest.approx(39.908)
    assert own["privacy_level"] == "hidden"


@pytest.mark.parametrize(
    "level, shown",
    [("hidden", False), ("city", False), ("district", False), ("address", True)],
)
def test_office_location_is_masked_with_the_street_address(level, shown):
    rec = _record(level, office_address="国贸大厦 3 座", office_lat=39.91, office_lng=116.46)

    row = present_public_row(rec)
    detail = present_detail(rec)

    for out in (row, detail):
        assert (out["office_address"] is not None) is shown
        assert (out["office_lat"] is not None) is shown
        assert (out["office_lng"] is not None) is shown
    assert present_self_view(rec)["office_address"] == "国贸大厦 3 座"
