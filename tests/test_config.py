import json
from pathlib import Path

import pytest

from alumnigeo.config import EngineConfig, load_config, main


def test_defaults_without_file_or_env(monkeypatch):
    monkeypatch.delenv("ALUMNIGEO_CONFIG", raising=False)

    cfg = load_config()

    assert cfg == EngineConfig()
    assert cfg.default_nearby_radius_km == 5.0
    assert cfg.default_group_radius_km == 100.0
    assert cfg.unknown_category == "未知"


def test_yaml_engine_section(tmp_path: Path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "engine:\n  default_group_radius_km: 25\n  profiling: true\n", encoding="utf-8"
    )

    cfg = load_config(path)

    assert cfg.default_group_radius_km == 25
    assert cfg.profiling is True


def test_toml_root_level(tmp_path: Path):
    path = tmp_path / "cfg.toml"
    path.write_text('unknown_category = "other"\ndistance_decimals = 1\n', encoding="utf-8")

    cfg = load_config(path)

    assert cfg.unknown_category == "other"
    assert cfg.distance_decimals == 1


def test_env_var_names_default_file(monkeypatch, tmp_path: Path):
    path = tmp_path / "env.yaml"
    path.write_text("engine:\n  default_nearby_radius_km: 2.5\n", encoding="utf-8")
    monkeypatch.setenv("ALUMNIGEO_CONFIG", str(path))

    assert load_config().default_nearby_radius_km == 2.5


def test_unknown_keys_are_rejected(tmp_path: Path):
    path = tmp_path / "cfg.yaml"
    path.write_text("engine:\n  nearby_radius: 3\n", encoding="utf-8")

    with pytest.raises(ValueError, match="nearby_radius"):
        load_config(path)


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"earth_radius_km": 0},
        {"default_nearby_radius_km": -1},
        {"default_group_radius_km": 0},
        {"distance_decimals": -1},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)


def test_cli_init_then_show(tmp_path: Path, capsys):
    out = tmp_path / "alumnigeo.yaml"

    main(["init", str(out)])
    assert out.exists()
    capsys.readouterr()

    main(["show", str(out)])
    shown = json.loads(capsys.readouterr().out)
    assert shown["engine"] == json.loads(EngineConfig().to_json())["engine"]


def test_cli_init_refuses_to_overwrite(tmp_path: Path):
    out = tmp_path / "alumnigeo.yaml"
    out.write_text("engine: {}\n", encoding="utf-8")

    with pytest.raises(FileExistsError):
        main(["init", str(out)])


def test_cli_usage_exits_2():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
