from __future__ import annotations

import json
from pathlib import Path

import pytest

pytest.importorskip("pydantic")

from rompatch.config import (
    PatcherConfig,
    get_config_path,
    load_config,
    save_config,
    validate_config,
    validate_config_schema,
)
from rompatch.config.models import DEFAULT_MAX_PATCH_SIZE
from rompatch.exceptions import ConfigurationError, ValidationError


def test_defaults() -> None:
    config = validate_config({})
    assert config.verify_checksums is True
    assert config.verify_patch_checksum is True
    assert config.max_patch_size == DEFAULT_MAX_PATCH_SIZE
    assert config.allow_overwrite is False
    assert config.output_dir is None
    assert config.logging.level == "INFO"
    assert config.logging.json_output is False


def test_validate_config_minimal() -> None:
    model = validate_config({"verify_checksums": False, "logging": {"json": True, "level": "DEBUG"}})
    assert model.verify_checksums is False
    assert model.logging.json_output is True
    assert model.logging.level == "DEBUG"


def test_invalid_value_raises_validation_error() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_config({"max_workers": 0})
    assert excinfo.value.error_code == "VALIDATION_ERROR"
    assert excinfo.value.details["field_name"] == "max_workers"
    assert isinstance(excinfo.value, ConfigurationError)


def test_schema_reports_location() -> None:
    ok, error = validate_config_schema({"logging": {"level": "LOUD"}})
    assert ok is False
    assert error.startswith("logging/level")

    assert validate_config_schema({"max_patch_size": 1024}) == (True, None)


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "rompatch.yaml"
    path.write_text("allow_overwrite: true\noutput_dir: out\nlogging:\n  file: logs/rompatch.log\n",
                    encoding="utf-8")
    config = load_config(path)
    assert config.allow_overwrite is True
    assert config.output_dir == "out"
    assert config.logging.file == "logs/rompatch.log"


def test_empty_yaml_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == PatcherConfig()


def test_explicit_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_config(tmp_path / "missing.json")
    assert excinfo.value.details["file_path"].endswith("missing.json")


def test_unparseable_file(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_non_mapping_file(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_save_and_reload_json(tmp_path: Path) -> None:
    config = validate_config({"max_workers": 2, "logging": {"json": True}})
    path = save_config(config, tmp_path / "nested" / "rompatch.json")

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["logging"]["json"] is True
    assert load_config(path) == config


def test_save_yaml(tmp_path: Path) -> None:
    path = save_config(PatcherConfig(allow_overwrite=True), tmp_path / "rompatch.yaml")
    assert "allow_overwrite: true" in path.read_text(encoding="utf-8")
    assert load_config(path).allow_overwrite is True


def test_default_path_from_environment(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "env.json"
    path.write_text(json.dumps({"verify_patch_checksum": False}), encoding="utf-8")
    monkeypatch.setenv("ROMPATCH_CONFIG", str(path))

    assert get_config_path() == path
    assert load_config().verify_patch_checksum is False


def test_missing_default_file_gives_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("ROMPATCH_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    assert get_config_path() == tmp_path / "rompatch.json"
    assert load_config() == PatcherConfig()
