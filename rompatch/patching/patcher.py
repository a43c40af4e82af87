"""IPS/BPS Patcher - file level entry point.

Reads a ROM and a patch from disk, picks the decoder from the patch file's
extension, applies it and writes the patched ROM beside the source. The
decode/apply core never touches the file system; everything here is the
boundary around it.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from ..config.models import PatcherConfig
from ..exceptions import (
    FileOperationError,
    FileTooLargeError,
    IntegrityError,
    RomPatchError,
    UnsupportedFormatError,
)
from ..logging_config import LoggingTimer
from ..utils.result import Err, Ok, Result
from .base import Patch, PatchFormat, format_from_path
from .bps import BpsPatch, decode_bps
from .ips import decode_ips

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class PatchResult:
    """Result of a patch operation.

    ``checksum_valid`` is True when source and target checksums were
    verified, False when verification failed and None when the format has
    no checksums or verification was disabled.
    """

    success: bool
    output_path: Optional[str] = None
    original_size: int = 0
    patched_size: int = 0
    format_used: PatchFormat = PatchFormat.UNKNOWN
    error: Optional[str] = None
    error_code: Optional[str] = None
    checksum_valid: Optional[bool] = None


def decode_patch(
    data: bytes,
    name: str,
    patch_format: PatchFormat,
    verify_patch_checksum: bool = True,
) -> Patch:
    """Decode ``data`` with the decoder registered for ``patch_format``."""
    if patch_format == PatchFormat.IPS:
        return decode_ips(data, name)
    if patch_format == PatchFormat.BPS:
        return decode_bps(data, name, verify_patch_checksum=verify_patch_checksum)
    raise UnsupportedFormatError(f"No decoder for patch format {patch_format.name}", file_path=name)


def derive_output_path(
    rom_path: PathLike,
    patch_name: str,
    output_dir: Optional[PathLike] = None,
) -> Path:
    """Name the patched ROM after the patch, keeping the ROM's extension.

    ``hack.ips`` applied to ``roms/game.sfc`` gives ``roms/hack.sfc``. The
    patch file's own extension is dropped even when it is not ``.ips``/``.bps``.
    """
    rom = Path(rom_path)
    stem = Path(patch_name).stem
    directory = Path(output_dir) if output_dir else rom.parent
    return directory / f"{stem}{rom.suffix}"


class Patcher:
    """ROM Patcher supporting IPS and BPS formats."""

    def __init__(self, config: Optional[PatcherConfig] = None, verify_checksums: Optional[bool] = None):
        """Initialize patcher.

        Args:
            config: Patcher configuration (defaults when omitted)
            verify_checksums: Override ``config.verify_checksums``
        """
        self.config = config or PatcherConfig()
        self.verify_checksums = (
            self.config.verify_checksums if verify_checksums is None else verify_checksums
        )

    def detect_format(self, patch_path: PathLike) -> PatchFormat:
        """Detect patch format from the file extension."""
        return format_from_path(patch_path)

    def read_patch(self, patch_path: PathLike, patch_format: Optional[PatchFormat] = None) -> Patch:
        """Read and decode a patch file without applying it."""
        path = Path(patch_path)
        patch_format = patch_format or self._require_format(path)
        data = _read_file(path, self.config.max_patch_size, "patch")
        logger.info("Read %d bytes from patch %s", len(data), path.name)
        with LoggingTimer(f"decode {path.name}", logger):
            return decode_patch(
                data,
                path.name,
                patch_format,
                verify_patch_checksum=self.config.verify_patch_checksum,
            )

    def make_output_path(self, rom_path: PathLike, patch_path: PathLike) -> Path:
        return derive_output_path(rom_path, Path(patch_path).name, self.config.output_dir)

    def patch_file(
        self,
        rom_path: PathLike,
        patch_path: PathLike,
        output_path: Optional[PathLike] = None,
        patch_format: Optional[PatchFormat] = None,
    ) -> PatchResult:
        """Apply a patch file to a ROM file, raising on any failure.

        Nothing is written unless the whole patch applied and verified.

        Raises:
            RomPatchError: any decode, apply, integrity or file error
        """
        rom = Path(rom_path)
        patch_src = Path(patch_path)
        patch_format = patch_format or self._require_format(patch_src)

        if output_path is None:
            output = self.make_output_path(rom, patch_src)
        else:
            output = Path(output_path)
        self._check_output(output, rom)

        patch = self.read_patch(patch_src, patch_format)
        if isinstance(patch, BpsPatch) and patch.target_size > self.config.max_rom_size:
            raise FileTooLargeError(
                f"Patch {patch.name} declares a {patch.target_size} byte target, "
                f"limit is {self.config.max_rom_size}",
                file_path=str(patch_src),
                size=patch.target_size,
                limit=self.config.max_rom_size,
            )
        rom_data = _read_file(rom, self.config.max_rom_size, "ROM")

        with LoggingTimer(f"apply {patch.name}", logger):
            if isinstance(patch, BpsPatch):
                patched = patch.apply(rom_data, verify_checksums=self.verify_checksums)
            else:
                patched = patch.apply(rom_data)

        _write_atomic(output, patched, allow_replace=self.config.allow_overwrite)
        logger.info("Wrote patched ROM %s (%d -> %d bytes)", output, len(rom_data), len(patched))

        checksum_valid = True if patch_format == PatchFormat.BPS and self.verify_checksums else None
        return PatchResult(
            success=True,
            output_path=str(output),
            original_size=len(rom_data),
            patched_size=len(patched),
            format_used=patch_format,
            checksum_valid=checksum_valid,
        )

    def apply(
        self,
        rom_path: PathLike,
        patch_path: PathLike,
        output_path: Optional[PathLike] = None,
        patch_format: Optional[PatchFormat] = None,
    ) -> PatchResult:
        """Apply a patch to a ROM file.

        Args:
            rom_path: Path to source ROM
            patch_path: Path to patch file
            output_path: Path for patched ROM (default: named after the patch, beside the ROM)
            patch_format: Force a format instead of detecting it from the extension

        Returns:
            PatchResult with status and details
        """
        detected = patch_format or self.detect_format(patch_path)
        try:
            return self.patch_file(rom_path, patch_path, output_path, patch_format)
        except IntegrityError as e:
            logger.error("Patch %s does not match %s: %s", patch_path, rom_path, e,
                         extra={"error": e.to_dict()})
            return PatchResult(
                success=False,
                error=str(e),
                error_code=e.error_code,
                format_used=detected,
                checksum_valid=False,
            )
        except RomPatchError as e:
            logger.error("Failed to apply %s to %s: %s", patch_path, rom_path, e,
                         extra={"error": e.to_dict()})
            return PatchResult(
                success=False,
                error=str(e),
                error_code=e.error_code,
                format_used=detected,
            )

    def _require_format(self, patch_path: Path) -> PatchFormat:
        patch_format = self.detect_format(patch_path)
        if patch_format == PatchFormat.UNKNOWN:
            raise UnsupportedFormatError(
                f"Unknown patch format: {patch_path.name} (expected .ips or .bps)",
                file_path=str(patch_path),
            )
        return patch_format

    def _check_output(self, output: Path, rom: Path) -> None:
        if output.resolve() == rom.resolve():
            raise FileOperationError(
                "Patched ROM would overwrite the source ROM",
                file_path=str(output),
                operation="write",
            )
        if output.exists() and not self.config.allow_overwrite:
            raise FileOperationError(
                "Output file already exists",
                file_path=str(output),
                operation="write",
            )


def _read_file(path: Path, limit: int, kind: str) -> bytes:
    try:
        size = path.stat().st_size
        if size > limit:
            raise FileTooLargeError(
                f"{kind} file {path.name} is {size} bytes, limit is {limit}",
                file_path=str(path),
                size=size,
                limit=limit,
            )
        return path.read_bytes()
    except OSError as exc:
        raise FileOperationError(
            f"Cannot read {kind} file: {exc}", file_path=str(path), operation="read"
        ) from exc


def _write_atomic(dst: Path, data: bytes, *, allow_replace: bool) -> None:
    """Write ``data`` to ``dst`` through a ``.part`` file and ``os.replace``."""
    if dst.exists() and not allow_replace:
        raise FileOperationError("Output file already exists", file_path=str(dst), operation="write")

    tmp = dst.with_name(dst.name + ".part")
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp), str(dst))
    except OSError as exc:
        raise FileOperationError(
            f"Cannot write patched ROM: {exc}", file_path=str(dst), operation="write"
        ) from exc
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError as exc:
                logger.debug("Failed to remove temp file %s: %s", tmp, exc)


def apply_batch(
    jobs: Iterable[Sequence[PathLike]],
    config: Optional[PatcherConfig] = None,
    max_workers: Optional[int] = None,
) -> List[Result[PatchResult]]:
    """Apply independent ``(rom, patch[, output])`` jobs concurrently.

    Returns one ``Ok(PatchResult)`` or ``Err(exception)`` per job, in input order.
    A job whose output file is already claimed by an earlier job is not run.
    """
    patcher = Patcher(config)
    workers = max_workers or patcher.config.max_workers
    claimed = set()
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rompatch") as pool:
        pending: List[Union[Future, RomPatchError]] = []
        for rom_path, patch_path, *rest in jobs:
            if rest and rest[0] is not None:
                output = Path(rest[0])
            else:
                output = patcher.make_output_path(rom_path, patch_path)
            key = output.resolve()
            if key in claimed:
                pending.append(FileOperationError(
                    "Another job in this batch writes the same output file",
                    file_path=str(output),
                    operation="write",
                ))
                continue
            claimed.add(key)
            pending.append(pool.submit(patcher.patch_file, rom_path, patch_path, output, *rest[1:]))

        results: List[Result[PatchResult]] = []
        for item in pending:
            try:
                if isinstance(item, RomPatchError):
                    raise item
                results.append(Ok(item.result()))
            except RomPatchError as exc:
                logger.error("Batch job failed: %s", exc, extra={"error": exc.to_dict()})
                results.append(Err(exc))
    return results


# Convenience functions
def apply_ips_patch(rom_path: PathLike, patch_path: PathLike, output_path: Optional[PathLike] = None,
                    config: Optional[PatcherConfig] = None) -> PatchResult:
    """Apply IPS patch to ROM."""
    return Patcher(config).apply(rom_path, patch_path, output_path, PatchFormat.IPS)


def apply_bps_patch(rom_path: PathLike, patch_path: PathLike, output_path: Optional[PathLike] = None,
                    config: Optional[PatcherConfig] = None) -> PatchResult:
    """Apply BPS patch to ROM."""
    return Patcher(config).apply(rom_path, patch_path, output_path, PatchFormat.BPS)
