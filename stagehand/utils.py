"""
Utility functions for stagehand.

Includes logging setup and the name helpers used to derive Kubernetes
object names from actor and registry identifiers.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "structured",
    log_file: Optional[Path] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up logging for the operator.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (human-readable)
        log_file: Optional path to a log file
        console_output: Also log to console

    Returns:
        Configured logger
    """
    logger = logging.getLogger("stagehand")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        if log_format == "structured":
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        logger.addHandler(file_handler)

    if console_output:
        if log_format == "pretty":
            console_handler = RichHandler(rich_tracebacks=True, show_time=False)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(StructuredFormatter())
        logger.addHandler(console_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "kind"):
            log_data["kind"] = record.kind
        if hasattr(record, "object"):
            log_data["object"] = record.object
        if hasattr(record, "state"):
            log_data["state"] = record.state

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")

MAX_NAME_LENGTH = 63


def dns_label(value: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """
    Turn an arbitrary string into a valid DNS-1123 label.

    Lowercases, replaces runs of invalid characters with '-', and trims
    leading/trailing dashes after truncation.
    """
    label = _INVALID_NAME_CHARS.sub("-", value.lower()).strip("-")
    return label[:max_length].rstrip("-")


def short_revision(revision: Optional[str], length: int = 7) -> str:
    """Return the abbreviated form of a commit hash (or '' when unknown)."""
    if not revision:
        return ""
    return revision[:length]


def utcnow_iso() -> str:
    """Return the current UTC time in the RFC 3339 form Kubernetes expects."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
