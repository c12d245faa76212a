"""JSON logging for the booth device.

Every record is one JSON object carrying the app version and, once
configured, the booth's device id. Image payloads are never logged;
audit helpers below log ids and sizes only.

Usage:
    from photobooth.logging import setup_logging, sync_logger

    setup_logging("INFO", device_id="booth-lobby")
    sync_logger().info("Sync run started", extra={"pending": 3})
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

from photobooth import __version__

_device_id: str | None = None


class PhotoboothJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping records with version and device id.

    Standard fields are renamed to timestamp/level/logger/message so device
    logs line up with the share server's structlog output.
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("fmt", "%(levelname)s %(name)s %(message)s")
        kwargs.setdefault("rename_fields", {"levelname": "level", "name": "logger"})
        kwargs.setdefault("timestamp", True)
        super().__init__(**kwargs)

    def process_log_record(self, log_record: dict[str, Any]) -> dict[str, Any]:
        log_record["app_version"] = __version__
        if _device_id:
            log_record["device_id"] = _device_id
        return super().process_log_record(log_record)


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    device_id: str | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Replace the root logger's handlers with JSON output.

    Logs go to stderr so stdout stays free for CLI output, and to a
    rotating file when log_file is given.

    Args:
        level: Log level name
        log_file: Optional file for a size-rotated copy of the log
        device_id: Identifier added to every record
        max_bytes: Rotation threshold for log_file
        backup_count: Rotated files kept next to log_file
    """
    global _device_id
    if device_id:
        _device_id = device_id

    formatter = PhotoboothJsonFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count))

    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(level.upper())


@lru_cache(maxsize=None)
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def store_logger() -> logging.Logger:
    return get_logger("photobooth.store")


def sync_logger() -> logging.Logger:
    return get_logger("photobooth.sync")


# --- Audit Event Functions ---


def log_capture_saved(
    logger: logging.Logger,
    photo_id: str,
    layout_name: str,
    file_size: int,
) -> None:
    """Log a capture durably saved on the device.

    Args:
        logger: Logger instance
        photo_id: Client-generated photo identifier
        layout_name: Composition template that produced the image
        file_size: Size of the image payload in bytes
    """
    logger.info(
        "Capture saved",
        extra={
            "event": "capture_saved",
            "photo_id": photo_id,
            "layout_name": layout_name,
            "file_size": file_size,
        },
    )


def log_upload_success(
    logger: logging.Logger,
    photo_id: str,
    remote_id: str,
    duration_ms: float,
) -> None:
    logger.info(
        "Upload successful",
        extra={
            "event": "upload_success",
            "photo_id": photo_id,
            "remote_id": remote_id,
            "duration_ms": round(duration_ms, 2),
        },
    )


def log_upload_failed(
    logger: logging.Logger,
    photo_id: str,
    error: str,
    attempt_count: int,
) -> None:
    """Log a failed upload attempt.

    Args:
        logger: Logger instance
        photo_id: Client-generated photo identifier
        error: Error message
        attempt_count: Value of retry_count for this attempt (0 for the
            immediate attempt right after capture)
    """
    logger.warning(
        "Upload failed",
        extra={
            "event": "upload_failed",
            "photo_id": photo_id,
            "error": error,
            "attempt_count": attempt_count,
        },
    )


def log_retry_exhausted(
    logger: logging.Logger,
    photo_id: str,
    retry_count: int,
) -> None:
    logger.warning(
        "Retry limit reached, photo left in queue",
        extra={
            "event": "retry_exhausted",
            "photo_id": photo_id,
            "retry_count": retry_count,
        },
    )


def log_sync_run_completed(
    logger: logging.Logger,
    attempted: int,
    synced: int,
    failed: int,
    exhausted: int,
) -> None:
    logger.info(
        "Sync run completed",
        extra={
            "event": "sync_run_completed",
            "attempted": attempted,
            "synced": synced,
            "failed": failed,
            "exhausted": exhausted,
        },
    )
