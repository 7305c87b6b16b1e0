"""Record sources the engine reads snapshots from, and store discovery."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Protocol
import logging
import os

from platformdirs import user_cache_dir

from .entities import AlumniRecord
from .filters import matches_structured

__all__ = [
    "RecordSource",
    "SnapshotSource",
    "discover_store",
]

logger = logging.getLogger(__name__)

_STORE_GLOB = "alumni*.sqlite"
_LAST_LOGGED_STORE: Optional[str] = None


class RecordSource(Protocol):
    """Synchronous row-fetch interface supplied by the storage layer.

    Implementations may return a superset of the matching records; the engine
    re-applies every predicate itself.
    """

    def fetch_candidate_records(
        self, predicates: Mapping[str, Any]
    ) -> List[AlumniRecord]:
        ...

    def get_record(self, record_id: Any) -> Optional[AlumniRecord]:
        ...


class SnapshotSource:
    """Immutable in-memory snapshot of records."""

    def __init__(self, records: Iterable[AlumniRecord]):
        self._records = tuple(records)
        self._by_id = {rec.id: rec for rec in self._records}

    def __len__(self) -> int:
        return len(self._records)

    def fetch_candidate_records(
        self, predicates: Mapping[str, Any]
    ) -> List[AlumniRecord]:
        return [rec for rec in self._records if matches_structured(rec, predicates)]

    def get_record(self, record_id: Any) -> Optional[AlumniRecord]:
        return self._by_id.get(record_id)


# ---------------------------------------------------------------------------
# Store discovery
# ---------------------------------------------------------------------------


def _iter_parents(start: Path):
    cur = start.resolve()
    yielded = set()
    while True:
        if cur in yielded:
            break
        yielded.add(cur)
        yield cur
        if cur.parent == cur:
            break
        cur = cur.parent


def _newest_store(folder: Path) -> Optional[Path]:
    try:
        if not folder.exists() or not folder.is_dir():
            return None
        picks = sorted(
            folder.glob(_STORE_GLOB),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        return picks[0] if picks else None
    except OSError:
        return None


def _log_store(path: Path, source: str) -> None:
    global _LAST_LOGGED_STORE
    path_str = str(path)
    if _LAST_LOGGED_STORE == path_str:
        return
    _LAST_LOGGED_STORE = path_str
    logger.info("store.discovered source=%s path=%s", source, path_str)


def _user_cache_dir() -> Path:
    return Path(user_cache_dir("alumnigeo", "alumnigeo"))


def discover_store(explicit: str | Path | None = None) -> Optional[Path]:
    """Locate a SQLite record store.

    Order: ``explicit`` path, ``$ALUMNIGEO_STORE``, ``.cache/alumni*.sqlite`` in
    the working directory and its parents, then the user cache directory.
    """
    if explicit:
        p = Path(explicit)
        if p.exists() and p.is_file():
            _log_store(p, "explicit")
            return p
        logger.warning("store.unavailable source=explicit path=%s", p)

    env = os.environ.get("ALUMNIGEO_STORE")
    if env:
        p = Path(env)
        if p.exists() and p.is_file():
            _log_store(p, "env")
            return p
        logger.warning("store.unavailable source=env path=%s", p)

    for base in _iter_parents(Path.cwd()):
        p = _newest_store(base / ".cache")
        if p is not None:
            _log_store(p, "parent-cache")
            return p

    p = _newest_store(_user_cache_dir())
    if p is not None:
        _log_store(p, "user-cache")
        return p

    return None
