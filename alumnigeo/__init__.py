from importlib.metadata import PackageNotFoundError, version
import sys

_MINIMUM_PYTHON = (3, 11)
_REQUIRED_DEPENDENCIES = {
    "pandas": "2.1",
    "numpy": "1.26",
    "SQLAlchemy": "2.0",
    "PyYAML": "6.0",
    "platformdirs": "3.0",
}

if sys.version_info < _MINIMUM_PYTHON:
    raise RuntimeError(f"Python >= {'.'.join(map(str, _MINIMUM_PYTHON))} is required.")


def _gte(installed: str, required: str) -> bool:
    from packaging import version as pv

    return pv.parse(installed) >= pv.parse(required)


_required_issues: list[str] = []
for pkg, minv in _REQUIRED_DEPENDENCIES.items():
    try:
        v = version(pkg)
    except PackageNotFoundError:
        _required_issues.append(f"{pkg}>={minv} (not installed)")
        continue
    if not _gte(v, minv):
        _required_issues.append(f"{pkg}>={minv} (found {v})")

if _required_issues:
    raise ImportError(
        "alumnigeo requires the following dependencies: "
        + ", ".join(_required_issues)
    ) from None


try:
    __version__ = version("alumnigeo")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .config import EngineConfig, load_config
from .engine import QueryEngine
from .entities import AlumniRecord, Cluster, ClusterSummary, PrivacyTier
from .filters import AlumniFilter
from .geometry import distance_km

__all__ = [
    "AlumniFilter",
    "AlumniRecord",
    "Cluster",
    "ClusterSummary",
    "EngineConfig",
    "PrivacyTier",
    "QueryEngine",
    "distance_km",
    "load_config",
    "__version__",
]
