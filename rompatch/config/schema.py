"""Config schema validation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import jsonschema

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent / "config-schema.json"


def validate_config_schema(config_data: Dict[str, Any], schema_path: Optional[str] = None) -> Tuple[bool, Optional[str]]:
    """Validate raw config data against the JSON schema.

    Returns:
        Tuple of (ok, error message or None)
    """
    path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH
    if not path.exists():
        return True, None

    with open(path, "r", encoding="utf-8") as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=config_data, schema=schema)
        return True, None
    except jsonschema.ValidationError as exc:
        location = "/".join(str(part) for part in exc.absolute_path)
        return False, f"{location or '<root>'}: {exc.message}"
