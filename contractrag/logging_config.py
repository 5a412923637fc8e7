"""
Logging configuration for analysis and knowledge base events.

This module provides structured (JSON lines) logging of catalog loads,
reloads, dropped patterns, rejected inputs and completed analyses so the
silent fallbacks of the knowledge base stay diagnosable.
"""

import json
import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Any

EVENT_LOGGER_NAME = "contractrag.events"

# Extra record attributes copied into the JSON line, in output order
EVENT_FIELDS: tuple[str, ...] = (
    "event",
    # knowledge base
    "catalog_size",
    "enhanced",
    "pattern_id",
    "source",
    "dropped",
    # analysis
    "size",
    "limit",
    "security_score",
    "confidence",
    "dataset_matches",
    # failures
    "error",
    "reason",
)


class AnalysisEventFormatter(logging.Formatter):
    """Renders each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(
            {field: getattr(record, field) for field in EVENT_FIELDS if hasattr(record, field)}
        )
        return json.dumps(log_entry, default=str)


def configure_logging(
    log_file: str | None = None,
    log_level: str = "INFO",
    enable_console: bool = True,
) -> None:
    """
    Configure logging for analysis events.

    Args:
        log_file: Path to log file for analysis events (optional)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_console: Whether to also log to console
    """
    logger = logging.getLogger(EVENT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.propagate = False

    logger.handlers.clear()

    formatter = AnalysisEventFormatter()

    if log_file:
        # Rotate daily, keep a week
        file_handler = TimedRotatingFileHandler(
            log_file,
            when="D",
            interval=1,
            backupCount=7,
            encoding="utf-8",
            utc=False,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)


def get_event_logger() -> logging.Logger:
    """Get the configured analysis events logger."""
    return logging.getLogger(EVENT_LOGGER_NAME)


def summarize_event_log(log_file: str) -> dict[str, Any]:
    """
    Count the events recorded in a JSON-lines event log.

    Args:
        log_file: Path to the log file

    Returns:
        Dictionary with per-event counters and the number of dropped patterns
    """
    stats: dict[str, Any] = {
        "analyses": 0,
        "rejected_inputs": 0,
        "catalog_loads": 0,
        "catalog_load_failures": 0,
        "reloads": 0,
        "dropped_patterns": 0,
        "events": {},
    }

    try:
        with open(log_file, encoding="utf-8") as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                except json.JSONDecodeError:
                    continue
                if not isinstance(entry, dict):
                    continue

                event = entry.get("event")
                if not event:
                    continue
                stats["events"][event] = stats["events"].get(event, 0) + 1

                if event == "analysis_completed":
                    stats["analyses"] += 1
                elif event == "input_rejected":
                    stats["rejected_inputs"] += 1
                elif event == "catalog_loaded":
                    stats["catalog_loads"] += 1
                elif event == "catalog_load_failed":
                    stats["catalog_load_failures"] += 1
                elif event == "catalog_reloaded":
                    stats["reloads"] += 1
                elif event == "pattern_dropped":
                    stats["dropped_patterns"] += 1

    except FileNotFoundError:
        pass

    return stats
