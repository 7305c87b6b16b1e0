import logging
import os
from pathlib import Path

import pytest

from alumnigeo import sources
from alumnigeo.entities import AlumniRecord
from alumnigeo.sources import SnapshotSource, discover_store


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ALUMNIGEO_STORE", raising=False)
    monkeypatch.setattr(sources, "user_cache_dir", lambda *_a, **_k: str(tmp_path / "user-cache"))
    monkeypatch.setattr(sources, "_LAST_LOGGED_STORE", None)


def _touch(path: Path, mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def test_snapshot_source_filters_and_looks_up():
    source = SnapshotSource(
        [AlumniRecord(id=1, name="a", industry="AI"), AlumniRecord(id=2, name="b")]
    )

    assert len(source) == 2
    assert [r.id for r in source.fetch_candidate_records({"industry": "AI"})] == [1]
    assert source.get_record(2).name == "b"
    assert source.get_record(3) is None


def test_explicit_path_wins(tmp_path: Path, monkeypatch):
    explicit = _touch(tmp_path / "mine.sqlite")
    monkeypatch.setenv("ALUMNIGEO_STORE", str(_touch(tmp_path / "env.sqlite")))

    assert discover_store(explicit) == explicit


def test_env_path_used_when_no_explicit(tmp_path: Path, monkeypatch):
    env = _touch(tmp_path / "env.sqlite")
    monkeypatch.setenv("ALUMNIGEO_STORE", str(env))

    assert discover_store() == env


def test_missing_explicit_path_warns_and_falls_through(tmp_path: Path, caplog):
    cached = _touch(tmp_path / ".cache" / "alumni.sqlite")

    with caplog.at_level(logging.WARNING, logger="alumnigeo.sources"):
        found = discover_store(tmp_path / "missing.sqlite")

    assert found == cached
    assert "store.unavailable source=explicit" in caplog.text


def test_newest_cache_file_in_parent_directories(tmp_path: Path, monkeypatch):
    _touch(tmp_path / ".cache" / "alumni-old.sqlite", mtime=1_000)
    newest = _touch(tmp_path / ".cache" / "alumni-new.sqlite", mtime=2_000)
    _touch(tmp_path / ".cache" / "other.sqlite", mtime=3_000)
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert discover_store() == newest


def test_user_cache_dir_is_last_resort(tmp_path: Path, caplog):
    store = _touch(tmp_path / "user-cache" / "alumni.sqlite")

    with caplog.at_level(logging.INFO, logger="alumnigeo.sources"):
        assert discover_store() == store
        assert discover_store() == store

    assert caplog.text.count("store.discovered source=user-cache") == 1


def test_nothing_found(tmp_path: Path):
    assert discover_store() is None
