"""
Structured logging for ballotbox.

Provides centralized logging with console and file outputs, log levels,
and counters describing what happened during a counting session.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json

from .env import file_logging_enabled, get_log_dir, get_log_level

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


class StructuredLogger:
    """
    Logger writing to the console and a daily file in the log directory.
    Also keeps counters of elections, ballots, votes and rejected operations.
    """

    def __init__(
        self,
        name: str = "ballotbox",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Name of the underlying logging.Logger
            level: Console level name, e.g. "INFO" or "DEBUG"
            log_dir: Where ballotbox_YYYYMMDD.log goes (default: logs/)
            enable_file: Also write a log file
            enable_console: Also write to stdout
        """
        numeric_level = getattr(logging, level.upper())
        self.logger = logging.getLogger(name)
        self.logger.setLevel(numeric_level)
        self.logger.handlers.clear()

        self.metrics = {
            "elections_created": 0,
            "elections_finalized": 0,
            "votes_adjusted": 0,
            "ballots_finalized": 0,
            "ties_detected": 0,
            "runoffs_started": 0,
            "errors_by_type": {},
        }

        if enable_console:
            self.logger.addHandler(_handler(logging.StreamHandler(sys.stdout), numeric_level, CONSOLE_FORMAT))

        if enable_file:
            log_dir = Path(log_dir) if log_dir is not None else Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"ballotbox_{datetime.now():%Y%m%d}.log"
            # File gets every level regardless of the console level
            self.logger.addHandler(
                _handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT)
            )

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Counters

    def record_election_created(self):
        self.metrics["elections_created"] += 1

    def record_election_finalized(self):
        self.metrics["elections_finalized"] += 1

    def record_vote_adjusted(self):
        self.metrics["votes_adjusted"] += 1

    def record_ballot_finalized(self, tie: bool = False):
        """Record a completed ballot, and whether it ended in a tie."""
        self.metrics["ballots_finalized"] += 1
        if tie:
            self.metrics["ties_detected"] += 1

    def record_runoff_started(self):
        self.metrics["runoffs_started"] += 1

    def record_error(self, error_type: str):
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return a copy of the current counters."""
        metrics_copy = self.metrics.copy()
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current counters."""
        metrics = self.get_metrics()

        self.info("=== Counting Session Metrics ===")
        self.info(
            f"Elections: {metrics['elections_created']} created, "
            f"{metrics['elections_finalized']} finalized"
        )
        self.info(f"Votes adjusted: {metrics['votes_adjusted']}")
        self.info(
            f"Ballots: {metrics['ballots_finalized']} finalized, "
            f"{metrics['ties_detected']} tied, {metrics['runoffs_started']} runoffs"
        )

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "ballotbox",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level, log directory and file output default to the BALLOTBOX_LOG_*
    environment settings.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        kwargs.setdefault("log_dir", get_log_dir())
        kwargs.setdefault("enable_file", file_logging_enabled())
        _global_logger = StructuredLogger(name=name, level=level or get_log_level(), **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
