#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
Logging setup for ROM Patch.

The patching core only ever calls ``logging.getLogger(__name__)``; this
module decides where those records go:
- Console output with level-dependent formats (colours on a TTY)
- Optional rotating log file
- Optional structured JSON lines (``ROMPATCH_LOG_JSON=1``)
"""

import json
import logging
import logging.handlers
import os
import sys
import time
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

ROOT_LOGGER_NAME = "rompatch"
SLOW_OPERATION_SECONDS = 1.0

# =====================================================================================================
# Formatters
# =====================================================================================================

class FastFormatter(logging.Formatter):
    """Level-dependent console formatter."""

    def __init__(self, enable_colors: bool = False):
        super().__init__()
        self.enable_colors = enable_colors

        self._formatters = {
            level: logging.Formatter(fmt, style='{', datefmt='%H:%M:%S')
            for level, fmt in {
                logging.ERROR: "[{asctime}] ERROR   [{name}] {message}",
                logging.WARNING: "[{asctime}] WARNING [{name}] {message}",
                logging.INFO: "[{asctime}] INFO    {message}",
                logging.DEBUG: "[{asctime}] DEBUG   {name}:{lineno} - {message}",
            }.items()
        }

        self.colors = {
            logging.ERROR: '\033[91m',     # Red
            logging.WARNING: '\033[93m',   # Yellow
            logging.INFO: '\033[92m',      # Green
            logging.DEBUG: '\033[94m',     # Blue
        } if enable_colors else {}

    def format(self, record):
        level = record.levelno
        if level >= logging.ERROR:
            level = logging.ERROR
        elif level not in self._formatters:
            level = logging.INFO
        text = self._formatters[level].format(record)

        color = self.colors.get(level)
        if color:
            return f"{color}{text}\033[0m"
        return text


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter (one object per line)."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "thread": record.threadName,
            "process": record.process,
        }
        error = getattr(record, "error", None)
        if isinstance(error, dict):
            payload["error"] = error
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

# =====================================================================================================
# Setup
# =====================================================================================================

def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    structured_json: Optional[bool] = None,
    max_log_size: str = "10MB",
    backup_count: int = 3,
    console_stream: Optional[TextIO] = None,
) -> Dict[str, Any]:
    """Configure the ``rompatch`` logger hierarchy.

    Args:
        log_level: Level name (DEBUG, INFO, ...)
        log_file: Optional path of a rotating log file
        structured_json: Emit JSON lines; ``None`` reads ``ROMPATCH_LOG_JSON``
        max_log_size: Rotation size such as "10MB"
        backup_count: Number of rotated files to keep
        console_stream: Stream for console records (default: stdout)

    Returns:
        Dict with the configured logger and its handlers
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    use_json = structured_json if structured_json is not None else _env_bool("ROMPATCH_LOG_JSON")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)
    logger.propagate = False

    # Clear Existing Handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    handlers = {}

    stream = console_stream or sys.stdout
    console_handler = logging.StreamHandler(stream)
    console_handler.setLevel(numeric_level)
    enable_colors = (hasattr(stream, 'isatty') and
                     stream.isatty() and
                     os.environ.get('TERM') != 'dumb')
    console_handler.setFormatter(JsonFormatter() if use_json else FastFormatter(enable_colors=enable_colors))
    logger.addHandler(console_handler)
    handlers['console'] = console_handler

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=_parse_size_string(max_log_size),
            backupCount=backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(JsonFormatter() if use_json else FastFormatter())
        logger.addHandler(file_handler)
        handlers['file'] = file_handler

    logger.debug("Logging initialised (level=%s, file=%s, json=%s)", log_level, log_file, use_json)
    return {'logger': logger, 'handlers': handlers}


def _parse_size_string(size_str: str) -> int:
    """Parse size string into bytes."""
    size_str = size_str.upper().strip()

    multipliers = {
        'KB': 1024,
        'MB': 1024 ** 2,
        'GB': 1024 ** 3,
        'B': 1,
    }

    for suffix, multiplier in multipliers.items():
        if size_str.endswith(suffix):
            try:
                return int(float(size_str[:-len(suffix)].strip()) * multiplier)
            except ValueError:
                continue

    try:
        return int(float(size_str))
    except ValueError:
        return 10 * 1024 * 1024  # Default 10MB


@lru_cache(maxsize=32)
def get_logger(name: str) -> logging.Logger:
    """Get cached logger instance."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

# =====================================================================================================
# Timing
# =====================================================================================================

class LoggingTimer:
    """Times a block and logs the duration; slow blocks are logged as warnings."""

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.start_time = None
        self.duration = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.duration = time.perf_counter() - self.start_time
            if self.duration > SLOW_OPERATION_SECONDS:
                self.logger.warning("SLOW: %s took %.2fs", self.operation_name, self.duration)
            else:
                self.logger.debug("%s took %.4fs", self.operation_name, self.duration)
