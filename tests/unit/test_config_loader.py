from __future__ import annotations

from pathlib import Path

import pytest

from course_import.config.loader import ConfigError, load_config, parse_config
from course_import.models.config_models import DuplicatePolicy


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.settings.max_rows == 1000
    assert cfg.settings.price_tolerance == 0.5
    assert cfg.settings.late_registration_days == 30
    assert cfg.settings.policy_for("registrations") is DuplicatePolicy.BLOCK
    assert cfg.settings.policy_for("students") is DuplicatePolicy.REPORT
    assert cfg.database.host == "localhost"
    assert cfg.database.port == 5432
    assert cfg.database.client_id == 1


def test_load_config_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "missing.yml")


def test_load_config_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("max_rows: [1, 2\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_empty_file_gives_defaults(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.settings.max_rows == 1000
    assert cfg.settings.duplicate_policy == {}
    assert cfg.database.dsn is None


def test_partial_config_keeps_defaults():
    cfg = parse_config({"price_tolerance": 0.2})
    assert cfg.settings.price_tolerance == 0.2
    assert cfg.settings.late_registration_days == 30


@pytest.mark.parametrize(
    "data",
    [
        {"max_rows": 0},
        {"max_rows": "mille"},
        {"price_tolerance": -1},
        {"duplicate_policy": {"students": "ignore"}},
        {"duplicate_policy": {"courses": "block"}},
        {"database": {"port": "5432"}},
        {"database": {"schema": "public"}},
        {"unknown_key": True},
    ],
)
def test_schema_violations(data):
    with pytest.raises(ConfigError, match="config validation failed"):
        parse_config(data)


def test_non_mapping_root():
    with pytest.raises(ConfigError):
        parse_config(["max_rows", 10])  # type: ignore[arg-type]


def test_shipped_sample_config_is_valid():
    sample = Path(__file__).resolve().parents[2] / "config" / "import.yml"
    cfg = load_config(sample)
    assert cfg.settings.policy_for("registrations") is DuplicatePolicy.BLOCK
