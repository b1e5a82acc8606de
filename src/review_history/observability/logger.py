"""
Structured logging for review-history

Every module logs through get_logger(__name__). Records are emitted as JSON
(python-json-logger) unless LOG_FORMAT=text is set for local development.
While a run is active, each record carries the run's id and mode so the
lines of one seed or incremental load can be grouped downstream.
"""
import logging
import os
import sys
import time
import uuid
from datetime import datetime, timezone

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "review-history"

# Fields of the run currently executing in this process (single writer)
_active_run: dict[str, str] = {}


class RunContextFilter(logging.Filter):
    """Stamps run_id and run_mode onto every record ("-" outside a run)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _active_run.get("run_id", "-")
        record.run_mode = _active_run.get("run_mode", "-")
        return True


class HistoryJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with a UTC ISO-8601 timestamp and an upper-case level."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["function"] = record.funcName


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure a logger with a stdout handler

    Args:
        name: Logger name
        level: Log level (defaults to env var LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to env var LOG_FORMAT, then json)

    Returns:
        Configured logger instance
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO
    format_type = format_type or os.getenv("LOG_FORMAT", "json")

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RunContextFilter())

    if format_type == "json":
        handler.setFormatter(HistoryJsonFormatter(fmt="%(timestamp)s %(level)s %(logger)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s [%(run_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger, configuring it on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


class log_run:
    """
    Context manager scoping one pipeline run

    Assigns a run id, tags every record logged inside the block with it, and
    logs start, completion (with duration) or failure.

    Usage:
        with log_run("incremental", logger=logger, candidates=985) as run:
            ...
            result.run_id = run.run_id
    """

    def __init__(self, mode: str, logger: logging.Logger | None = None, **extra_fields):
        self.mode = mode
        self.run_id = uuid.uuid4().hex[:12]
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self._started = 0.0

    def __enter__(self) -> "log_run":
        _active_run.update(run_id=self.run_id, run_mode=self.mode)
        self._started = time.perf_counter()
        self.logger.info(f"Starting {self.mode} run", extra=self.extra_fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = round(time.perf_counter() - self._started, 3)
        try:
            if exc_type is None:
                self.logger.info(
                    f"Completed {self.mode} run in {duration}s",
                    extra={"duration_seconds": duration, "status": "success", **self.extra_fields},
                )
            else:
                self.logger.error(
                    f"Failed {self.mode} run after {duration}s: {exc_type.__name__}: {exc_val}",
                    extra={"duration_seconds": duration, "status": "failure", **self.extra_fields},
                    exc_info=(exc_type, exc_val, exc_tb),
                )
        finally:
            _active_run.clear()
        return False
