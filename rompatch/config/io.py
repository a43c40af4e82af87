"""Config I/O utilities."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..exceptions import ConfigurationError
from .models import PatcherConfig, validate_config
from .schema import validate_config_schema

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ROMPATCH_CONFIG"
DEFAULT_CONFIG_NAME = "rompatch.json"
_YAML_SUFFIXES = (".yml", ".yaml")


def get_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path.cwd() / DEFAULT_CONFIG_NAME


def _read_config_data(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file: {exc}", file_path=str(path)) from exc

    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot parse config file: {exc}", file_path=str(path)) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file must contain a mapping, found {type(data).__name__}",
            file_path=str(path),
        )
    return data


def load_config(config_path: Optional[Union[str, Path]] = None) -> PatcherConfig:
    """Load and validate the configuration.

    Without an explicit path the default location is used and a missing file
    yields the defaults. An explicit path must exist.
    """
    if config_path is None:
        path = get_config_path()
        if not path.exists():
            logger.debug("No config file at %s, using defaults", path)
            return PatcherConfig()
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError("Config file not found", file_path=str(path))

    data = _read_config_data(path)
    ok, error = validate_config_schema(data)
    if not ok:
        logger.warning("Config schema validation failed: %s", error)

    config = validate_config(data)
    logger.debug("Loaded config from %s", path)
    return config


def save_config(config: PatcherConfig, config_path: Optional[Union[str, Path]] = None) -> Path:
    path = Path(config_path) if config_path is not None else get_config_path()
    data = config.model_dump(by_alias=True)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            if path.suffix.lower() in _YAML_SUFFIXES:
                yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
            else:
                json.dump(data, f, indent=2)
    except OSError as exc:
        raise ConfigurationError(f"Cannot write config file: {exc}", file_path=str(path)) from exc
    return path
