"""Structured JSON logging for fieldsync.

Provides audit-friendly logging with contextual fields for per-photo sync
outcomes, retries and batch summaries. Credentials are never logged.

Logging is configured explicitly with ``setup_logging`` before the sync
service starts; nothing is buffered and replayed later.

Usage:
    import logging

    from fieldsync.logging import log_item_synced, setup_logging

    setup_logging("INFO")
    log = logging.getLogger("fieldsync.sync.orchestrator")
    log_item_synced(log, "a1b2", "https://dav.example.com/photos/a1b2.jpg", 812.0)
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from pythonjsonlogger import jsonlogger

from fieldsync import __version__

if TYPE_CHECKING:
    from fieldsync.sync.models import BatchResult


class FieldSyncJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that adds package context to all log records."""

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict,
    ) -> None:
        """Add standard fields to every log record."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["version"] = __version__

        if "message" not in log_record and record.getMessage():
            log_record["message"] = record.getMessage()

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        """Format time as ISO 8601."""
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.isoformat()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    max_bytes: int = 10_000_000,  # 10MB
    backup_count: int = 5,
) -> None:
    """Configure root logger with JSON formatting.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path for rotating file handler
        max_bytes: Max size per log file for rotation
        backup_count: Number of backup files to keep
    """
    formatter = FieldSyncJsonFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # JSON to stderr so stdout stays free for CLI output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


# --- Audit Event Functions ---


def log_item_synced(
    logger: logging.Logger,
    global_id: str,
    url: str,
    duration_ms: float,
) -> None:
    """Log a photo that completed every pipeline step."""
    logger.info(
        "Photo synced",
        extra={
            "event": "item_synced",
            "global_id": global_id,
            "url": url,
            "duration_ms": round(duration_ms, 1),
        },
    )


def log_item_failed(
    logger: logging.Logger,
    global_id: str,
    stage: str,
    error_kind: str,
    error: str,
) -> None:
    """Log a photo whose pipeline ended in a failure.

    Args:
        logger: Logger instance
        global_id: Feature global ID
        stage: Pipeline stage that failed (uploading, confirming, committing)
        error_kind: ErrorKind value
        error: Error message (sanitized - no credentials)
    """
    logger.warning(
        "Photo sync failed",
        extra={
            "event": "item_failed",
            "global_id": global_id,
            "stage": stage,
            "error_kind": error_kind,
            "error": error,
        },
    )


def log_retry_scheduled(
    logger: logging.Logger,
    global_id: str,
    attempt: int,
    delay: float,
) -> None:
    """Log a database update retry after a timeout."""
    logger.info(
        "Retrying database update",
        extra={
            "event": "retry_scheduled",
            "global_id": global_id,
            "attempt": attempt,
            "delay_seconds": delay,
        },
    )


def log_batch_complete(logger: logging.Logger, result: BatchResult) -> None:
    """Log the summary of a finished batch."""
    extra = {
        "event": "batch_complete",
        "total": result.total,
        "succeeded": result.succeeded,
        "failed": result.failed,
    }
    if result.aborted:
        extra["aborted"] = result.aborted
    logger.info("Batch complete", extra=extra)
