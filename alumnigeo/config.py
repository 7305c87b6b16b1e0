#!/usr/bin/env python3
"""
config.py

Engine configuration loader for alumnigeo.

Features:
- YAML/TOML config files; settings live at the root or under an ``engine`` section
- Unknown keys are rejected so typos do not silently fall back to defaults
- ``$ALUMNIGEO_CONFIG`` names a default file
- CLI:
    - init <out.yaml>
    - show <cfg>
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional
from pathlib import Path
import json
import os
import sys

from .geometry import EARTH_RADIUS_KM

__all__ = ["EngineConfig", "load_config", "main"]

# ------------------------------
# Loading utilities (YAML/TOML)
# ------------------------------


def _load_yaml(text: str) -> dict:
    try:
        import yaml  # PyYAML
    except ImportError as e:
        raise RuntimeError(
            "PyYAML is required to read .yaml/.yml configs. pip install pyyaml"
        ) from e
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML root must be a mapping (dict).")
    return data


def _load_toml(text: str) -> dict:
    import tomllib

    data = tomllib.loads(text)
    if not isinstance(data, dict):
        raise ValueError("TOML root must be a mapping (dict).")
    return data


def _detect_and_load(path: Path) -> dict:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in (".yaml", ".yml"):
        return _load_yaml(text)
    if suffix == ".toml":
        return _load_toml(text)
    # Last resort: try YAML first, then TOML
    try:
        return _load_yaml(text)
    except (RuntimeError, ValueError):
        return _load_toml(text)


# ------------------------------
# Config object
# ------------------------------


@dataclass(frozen=True)
class EngineConfig:
    earth_radius_km: float = EARTH_RADIUS_KM
    default_nearby_radius_km: float = 5.0
    default_group_radius_km: float = 100.0
    unknown_category: str = "未知"
    cluster_label_suffix: str = "圈层"
    distance_decimals: int = 3
    profiling: bool = False

    def __post_init__(self):
        for name in ("earth_radius_km", "default_nearby_radius_km", "default_group_radius_km"):
            if float(getattr(self, name)) <= 0:
                raise ValueError(f"{name} must be positive")
        if int(self.distance_decimals) < 0:
            raise ValueError("distance_decimals must be >= 0")

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "EngineConfig":
        section = d.get("engine", d)
        if not isinstance(section, dict):
            raise ValueError("'engine' section must be a mapping (dict).")
        known = {f.name for f in fields(EngineConfig)}
        unknown = sorted(set(section) - known)
        if unknown:
            raise ValueError(f"Unknown engine config keys: {', '.join(unknown)}")
        return EngineConfig(**section)

    def to_json(self) -> str:
        return json.dumps({"engine": asdict(self)}, ensure_ascii=False, indent=2)


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load an :class:`EngineConfig` from ``path`` or ``$ALUMNIGEO_CONFIG``.

    Returns the defaults when neither is given.
    """
    if path is None:
        env = os.environ.get("ALUMNIGEO_CONFIG")
        if not env:
            return EngineConfig()
        path = env
    p = Path(os.path.expandvars(os.path.expanduser(str(path))))
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {p}")
    return EngineConfig.from_dict(_detect_and_load(p))


# ------------------------------
# CLI
# ------------------------------

_TEMPLATE = """\
# alumnigeo engine configuration
engine:
  earth_radius_km: 6371.0
  default_nearby_radius_km: 5.0
  default_group_radius_km: 100.0
  unknown_category: "未知"
  cluster_label_suffix: "圈层"
  distance_decimals: 3
  profiling: false
"""


def _cmd_init(out_path: str) -> None:
    p = Path(out_path)
    if p.exists():
        raise FileExistsError(f"Refusing to overwrite existing file: {p}")
    p.write_text(_TEMPLATE, encoding="utf-8")
    print(f"Wrote template config to {p}")


def _cmd_show(cfg_path: str) -> None:
    print(load_config(cfg_path).to_json())


def main(argv: List[str]) -> None:
    if len(argv) >= 1 and argv[0] == "init":
        if len(argv) != 2:
            print("Usage: python -m alumnigeo.config init <output.yaml>", file=sys.stderr)
            sys.exit(2)
        _cmd_init(argv[1])
        return
    if len(argv) >= 1 and argv[0] == "show":
        if len(argv) != 2:
            print("Usage: python -m alumnigeo.config show <config.(yaml|toml)>", file=sys.stderr)
            sys.exit(2)
        _cmd_show(argv[1])
        return

    print("Commands:", file=sys.stderr)
    print("  python -m alumnigeo.config init <output.yaml>", file=sys.stderr)
    print("  python -m alumnigeo.config show <config.(yaml|toml)>", file=sys.stderr)
    sys.exit(2)


if __name__ == "__main__":
    main(sys.argv[1:])
