from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError

# Patches above 7 MiB and ROMs above 2 GiB are refused
DEFAULT_MAX_PATCH_SIZE = 7_340_032
DEFAULT_MAX_ROM_SIZE = 2_147_483_648


class _BaseConfigModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class LoggingConfig(_BaseConfigModel):
    level: str = "INFO"
    json_output: bool = Field(default=False, alias="json")
    file: Optional[str] = None
    max_size: str = "10MB"
    backup_count: int = Field(default=3, ge=0)

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class PatcherConfig(_BaseConfigModel):
    verify_checksums: bool = True
    verify_patch_checksum: bool = True
    max_patch_size: int = Field(default=DEFAULT_MAX_PATCH_SIZE, gt=0)
    max_rom_size: int = Field(default=DEFAULT_MAX_ROM_SIZE, gt=0)
    allow_overwrite: bool = False
    output_dir: Optional[str] = None
    max_workers: int = Field(default=4, ge=1)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def validate_config(payload: Dict[str, Any]) -> PatcherConfig:
    """Validate a raw mapping into a :class:`PatcherConfig`.

    Raises:
        ValidationError: the payload does not describe a valid configuration
    """
    try:
        return PatcherConfig.model_validate(payload or {})
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field_name = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"Invalid configuration: {exc.error_count()} error(s), first at '{field_name}': "
            f"{first.get('msg', exc)}",
            field_name=field_name or None,
            expected_type=first.get("type"),
        ) from exc
