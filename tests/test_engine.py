import logging
import math

import pytest

from alumnigeo import AlumniFilter, AlumniRecord, EngineConfig, QueryEngine
from alumnigeo.sources import SnapshotSource

KM_PER_DEG = 6371.0 * math.pi / 180
LAT0, LNG0 = 31.0, 121.0


def _north(km: float) -> float:
    return LAT0 + km / KM_PER_DEG


def _rec(rid, **kwargs) -> AlumniRecord:
    base = dict(id=rid, name=f"n{rid}", privacy_level="address")
    base.update(kwargs)
    return AlumniRecord(**base)


class RecordingSource(SnapshotSource):
    def __init__(self, records):
        super().__init__(records)
        self.calls = []

    def fetch_candidate_records(self, predicates):
        self.calls.append(dict(predicates))
        return super().fetch_candidate_records(predicates)


@pytest.fixture
def engine():
    records = [
        _rec(1, industry="AI", lat=_north(0.0), lng=LNG0, country="中国", city="上海"),
        _rec(2, industry="AI", lat=_north(1.0), lng=LNG0, country="中国", city="上海"),
        _rec(3, industry="AI", lat=_north(2.0), lng=LNG0, country="中国", city="上海",
             is_startup=True, funding_stage="A"),
        _rec(4, industry="AI", lat=_north(50.0), lng=LNG0, country="USA", city="Boston"),
        _rec(5, industry="AI", lat=_north(51.0), lng=LNG0, country="USA", city=None),
        _rec(6, industry="Finance", lat=_north(0.5), lng=LNG0, privacy_level="hidden",
             country="中国", city="上海", address="淮海路 1 号"),
        _rec(7, industry=None, lat=_north(0.0), lng=LNG0, privacy_level="district",
             country="中国", city="上海"),
    ]
    return QueryEngine(SnapshotSource(records))


def test_grouped_end_to_end(engine):
    result = engine.grouped(AlumniFilter(industry="AI"), group_radius_km=10.0)

    assert result.mode == "clusters"
    assert [s.cluster_id for s in result] == [1, 2]
    assert [s.virtual_count for s in result] == [3, 2]
    assert sum(s.virtual_count for s in result) == 5
    assert all(s.label == "AI圈层" for s in result)


def test_grouped_only_clusters_records_that_expose_coordinates(engine):
    result = engine.grouped(group_radius_km=10.0)

    # record 7 is district tier, record 6 is hidden
    assert sum(s.virtual_count for s in result) == 5
    assert {s.category for s in result} == {"AI"}


def test_query_dispatches_on_group_by(engine):
    grouped = engine.query(AlumniFilter(group_by="industry"), group_radius_km=10.0)
    listed = engine.query(AlumniFilter(industry="AI"))

    assert grouped.mode == "clusters"
    assert listed.mode == "listing"
    assert [r["id"] for r in listed] == [1, 2, 3, 4, 5]


def test_grouped_payload_has_only_anonymous_fields(engine):
    payload = engine.grouped(group_radius_km=10.0).to_payload()

    assert payload["total"] == 2
    for item in payload["items"]:
        assert set(item) == {"cluster_id", "label", "category", "lat", "lng", "virtual_count"}


def test_nearby_uses_configured_default_radius(engine):
    rows = engine.nearby(LAT0, LNG0)

    # record 7 hides its coordinates but is still found by its true position
    assert [r["id"] for r in rows] == [1, 7, 2, 3]
    assert rows[1]["lat"] is None
    assert rows[3]["distance_km"] == pytest.approx(2.0, abs=1e-3)


def test_nearby_default_radius_comes_from_config():
    source = SnapshotSource([_rec(1, lat=_north(3.0), lng=LNG0)])
    engine = QueryEngine(source, EngineConfig(default_nearby_radius_km=1.0))

    assert len(engine.nearby(LAT0, LNG0)) == 0
    assert len(engine.nearby(LAT0, LNG0, radius_km=5.0)) == 1


def test_startups_forces_the_flag(engine):
    rows = engine.startups()

    assert [r["id"] for r in rows] == [3]
    assert rows[0]["is_startup"] is True


def test_search_location(engine):
    rows = engine.search_location("boston")

    assert [r["id"] for r in rows] == [4]


def test_location_path_does_not_push_predicates_down():
    source = RecordingSource([_rec(1, industry="Artificial Intelligence", city="杭州")])
    engine = QueryEngine(source)

    rows = engine.search_location("杭州", AlumniFilter(industry="intelligence"))

    assert source.calls == [{}]
    assert [r["id"] for r in rows] == [1]


def test_structured_path_pushes_predicates_down():
    source = RecordingSource([_rec(1, industry="AI")])

    QueryEngine(source).list_alumni(AlumniFilter(industry="AI"))

    assert source.calls == [{"industry": "AI"}]


def test_overseas_nests_country_and_city(engine):
    groups = engine.overseas()

    assert set(groups) == {"中国", "USA"}
    assert [r["id"] for r in groups["USA"]["Boston"]] == [4]
    assert [r["id"] for r in groups["USA"]["未知"]] == [5]
    assert 6 not in [r["id"] for rows in groups["中国"].values() for r in rows]


def test_overseas_for_one_country(engine):
    assert set(engine.overseas("USA")) == {"USA"}


def test_detail_masks_but_does_not_exclude(engine):
    detail = engine.detail(6)

    assert detail["id"] == 6
    assert detail["address"] is None
    assert detail["city"] is None
    assert engine.detail(999) is None


def test_self_view_is_unmasked(engine):
    own = engine.self_view(6)

    assert own["address"] == "淮海路 1 号"
    assert own["privacy_level"] == "hidden"
    assert engine.self_view(999) is None


def test_engine_is_idempotent_for_a_fixed_snapshot(engine):
    spec = AlumniFilter(lat=LAT0, lng=LNG0, radius_km=100.0)

    assert engine.list_alumni(spec).to_dicts() == engine.list_alumni(spec).to_dicts()
    assert engine.grouped(spec).to_dicts() == engine.grouped(spec).to_dicts()


def test_profiling_logs_timings(caplog):
    engine = QueryEngine(SnapshotSource([_rec(1)]), EngineConfig(profiling=True))

    with caplog.at_level(logging.DEBUG, logger="alumnigeo.engine"):
        engine.list_alumni()

    assert "timeit list_alumni took" in caplog.text


@pytest.mark.parametrize("field", ["contact_phone", "name", "id", "wechat", "address"])
def test_grouped_rejects_member_identifying_categories(engine, field):
    with pytest.raises(ValueError):
        engine.grouped(category=field)
    with pytest.raises(ValueError):
        engine.query(AlumniFilter.from_mapping({"group_by": field}))


def test_grouped_by_an_allowed_category(engine):
    result = engine.query(AlumniFilter(group_by="city"), group_radius_km=10.0)

    assert {s.category for s in result} == {"上海", "Boston", "未知"}
    assert sum(s.virtual_count for s in result) == 5


def test_query_logs_one_timing_line(caplog):
    engine = QueryEngine(SnapshotSource([_rec(1)]), EngineConfig(profiling=True))

    with caplog.at_level(logging.DEBUG, logger="alumnigeo.engine"):
        engine.query(AlumniFilter())
        engine.query(AlumniFilter(group_by="industry"))

    assert caplog.text.count("timeit ") == 2
    assert "timeit query" not in caplog.text
