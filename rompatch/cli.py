#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
ROM Patch - Command line interface

Applies an IPS or BPS patch to a ROM. The patched ROM is written beside the
source and named after the patch, keeping the ROM's extension.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import load_config
from .exceptions import ConfigurationError, RomPatchError
from .hash_utils import calculate_crc32
from .logging_config import setup_logging
from .patching import Patcher
from .version import load_version

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTEGRITY = 3

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parses command line arguments."""
    parser = argparse.ArgumentParser(
        prog="rompatch",
        description="ROM Patch - apply IPS/BPS patches to ROM images",
    )
    parser.add_argument("-r", "--rom", metavar="ROM", help="ROM to apply patch to")
    parser.add_argument("-p", "--patch", metavar="PATCH", help="Patch to apply (.ips or .bps)")
    parser.add_argument("-o", "--output", metavar="PATH", help="Output file (default: named after the patch)")
    parser.add_argument("--config", metavar="FILE", help="Config file (.json, .yml or .yaml)")
    parser.add_argument("--no-verify", action="store_true", help="Skip BPS source/target checksum checks")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing output file")
    parser.add_argument("--info", action="store_true", help="Decode the patch and print a JSON summary")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-json", action="store_true", help="Emit log records as JSON lines")
    parser.add_argument("--version", action="store_true", help="Show version information")

    args = parser.parse_args(argv)
    if not args.version:
        if not args.patch:
            parser.error("the following arguments are required: -p/--patch")
        if not args.info and not args.rom:
            parser.error("the following arguments are required: -r/--rom")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main function of the command line tool."""
    args = parse_arguments(argv)

    if args.version:
        print(f"ROM Patch v{load_version()}")
        return EXIT_OK

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    overrides = {}
    if args.no_verify:
        overrides["verify_checksums"] = False
    if args.force:
        overrides["allow_overwrite"] = True
    if overrides:
        config = config.model_copy(update=overrides)

    log_cfg = config.logging
    setup_logging(
        log_level="DEBUG" if args.debug else log_cfg.level,
        log_file=log_cfg.file,
        structured_json=True if args.log_json else (log_cfg.json_output or None),
        max_log_size=log_cfg.max_size,
        backup_count=log_cfg.backup_count,
        # Keep stdout for the JSON summary
        console_stream=sys.stderr if args.info else None,
    )

    patcher = Patcher(config)

    if args.info:
        try:
            patch = patcher.read_patch(args.patch)
        except RomPatchError as e:
            logger.error("Cannot read patch %s: %s", args.patch, e, extra={"error": e.to_dict()})
            print(f"Reading patch failed [{e.error_code}]: {e}", file=sys.stderr)
            return EXIT_ERROR
        print(json.dumps(patch.describe(), indent=2, ensure_ascii=False))
        return EXIT_OK

    result = patcher.apply(args.rom, args.patch, args.output)
    if result.success:
        print(f"Patched ROM written to: {result.output_path}")
        try:
            print(f"CRC32: {calculate_crc32(result.output_path)}")
        except RomPatchError as e:
            logger.warning("Cannot checksum %s: %s", result.output_path, e)
        return EXIT_OK

    print(f"Patching failed [{result.error_code}]: {result.error}", file=sys.stderr)
    if result.checksum_valid is False:
        print("The ROM does not match the one this patch was made for.", file=sys.stderr)
        return EXIT_INTEGRITY
    return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
