"""Structured event logging for uploads and order synchronization.

Events are logged in Elasticsearch-compatible JSON format (ECS - Elastic
Common Schema) on the ``gallerysync.events`` logger. Regular diagnostics use
per-module loggers.
"""

import contextlib
import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from .config import LogDestination

EVENTS_LOGGER_NAME = "gallerysync.events"

events_logger = logging.getLogger(EVENTS_LOGGER_NAME)


def log_event(
    category: str,
    action: str,
    outcome: str,
    duration_ms: float | None = None,
    **fields,
) -> None:
    """Write one ECS-style event. Never raises into the caller.

    Args:
        category: Event category (e.g. "upload", "reorder")
        action: What happened (e.g. "upload_single", "persist_order")
        outcome: "success" or "failure"
        duration_ms: Optional duration, stored in nanoseconds per ECS
        **fields: Extra top-level groups, e.g. upload={"container": ...}
    """
    entry = {
        "@timestamp": datetime.now(UTC).isoformat(),
        "event": {
            "category": category,
            "action": action,
            "outcome": outcome,
        },
    }
    if duration_ms is not None:
        entry["event"]["duration"] = int(duration_ms * 1_000_000)
    for key, value in fields.items():
        if value is not None:
            entry[key] = value

    with contextlib.suppress(Exception):
        events_logger.info(json.dumps(entry, default=str))


def configure_logging(
    destination: LogDestination | str = LogDestination.STDOUT,
    file_path: str | None = None,
    level: str = "INFO",
) -> None:
    """Configure the event logger.

    Args:
        destination: Where to log - "stdout", "file", or "external"
        file_path: Path to log file (required if destination is "file")
        level: Log level for the gallerysync loggers
    """
    destination = LogDestination(destination)

    logging.getLogger("gallerysync").setLevel(level)

    logger = logging.getLogger(EVENTS_LOGGER_NAME)
    logger.setLevel(logging.INFO)

    # Remove existing handlers
    logger.handlers.clear()

    # Prevent propagation to root logger
    logger.propagate = False

    if destination == LogDestination.STDOUT:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    elif destination == LogDestination.FILE and file_path:
        log_path = Path(file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(file_path)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    # "external" means no local handler - events go to an external service via separate config


def configure_logging_from_settings(settings) -> None:
    """Configure logging from a Settings instance."""
    configure_logging(
        destination=settings.LOG_DESTINATION,
        file_path=settings.LOG_FILE_PATH,
        level=settings.LOG_LEVEL,
    )
