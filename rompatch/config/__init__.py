"""ROM Patch configuration package (pydantic models, JSON schema check, JSON/YAML files)."""

from .io import get_config_path, load_config, save_config
from .models import LoggingConfig, PatcherConfig, validate_config
from .schema import validate_config_schema

__all__ = [
    'LoggingConfig',
    'PatcherConfig',
    'get_config_path',
    'load_config',
    'save_config',
    'validate_config',
    'validate_config_schema',
]
