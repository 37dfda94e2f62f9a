"""Structured logging configuration (structlog)."""

from __future__ import annotations

import logging
from pathlib import Path

import structlog

LOG_FILE = "mqgo.log"


def configure_structlog(verbose: bool = False) -> None:
    """Configure structlog for human-readable console output.

    Call once at process startup. ``verbose`` lowers the threshold to DEBUG,
    which makes the plan runner echo every request it sends.
    """
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_json_file_logger(log_path: Path) -> structlog.BoundLogger:
    """Return a structlog logger that appends JSON lines to *log_path*.

    The logger is independent of the console configuration. The parent
    directory must already exist; the workspace is never created implicitly.
    """
    file_handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)

    stdlib_logger = logging.getLogger(f"mqgo.{log_path}")
    for old in stdlib_logger.handlers:
        old.close()
    stdlib_logger.handlers = [file_handler]
    stdlib_logger.setLevel(logging.DEBUG)
    stdlib_logger.propagate = False

    return structlog.wrap_logger(
        stdlib_logger,
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
    )


def workspace_logger(workspace_dir: Path) -> structlog.BoundLogger:
    return get_json_file_logger(Path(workspace_dir) / LOG_FILE)
