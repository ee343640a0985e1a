"""
Structured logging system for SponsorMatch.

Provides centralized logging with console and file outputs, key/value
context on every message, and in-process metrics for monitoring the
matching service.
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks request and scoring metrics.
    """

    def __init__(
        self,
        name: str = "sponsormatch",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()
        self.logger.propagate = False

        self.metrics = {
            "requests_received": 0,
            "requests_succeeded": 0,
            "requests_failed": 0,
            "candidates_scored": 0,
            "candidates_excluded": 0,
            "matches_returned": 0,
            "errors_by_category": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"sponsormatch_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

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
        if not self.logger.isEnabledFor(level):
            return
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str, sort_keys=True)}"
        self.logger.log(level, message, stacklevel=3)

    # Metric tracking methods

    def record_request(self):
        self.metrics["requests_received"] += 1

    def record_request_success(self, matches_returned: int):
        self.metrics["requests_succeeded"] += 1
        self.metrics["matches_returned"] += matches_returned

    def record_request_failure(self, category: str):
        """Record a failed request under its error category."""
        self.metrics["requests_failed"] += 1
        errors = self.metrics["errors_by_category"]
        errors[category] = errors.get(category, 0) + 1

    def record_candidates_scored(self, count: int):
        self.metrics["candidates_scored"] += count

    def record_candidates_excluded(self, count: int):
        self.metrics["candidates_excluded"] += count

    def get_metrics(self) -> dict:
        """Return current metrics with the derived success rate."""
        metrics_copy = dict(self.metrics)
        metrics_copy["errors_by_category"] = dict(self.metrics["errors_by_category"])
        received = metrics_copy["requests_received"]
        metrics_copy["success_rate"] = (
            round(metrics_copy["requests_succeeded"] / received, 3) if received else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Matching Session Metrics ===")
        self.info(
            f"Requests: {metrics['requests_succeeded']}/{metrics['requests_received']} "
            f"({metrics['success_rate'] * 100:.1f}% success)"
        )
        self.info(
            f"Candidates: {metrics['candidates_scored']} scored, "
            f"{metrics['candidates_excluded']} excluded"
        )
        self.info(f"Matches returned: {metrics['matches_returned']}")

        if metrics["errors_by_category"]:
            self.info("Error Categories:")
            for category, count in metrics["errors_by_category"].items():
                self.info(f"  {category}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "sponsormatch",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level defaults to SPONSORMATCH_LOG_LEVEL (or INFO). File output is only
    enabled when a log_dir is passed or SPONSORMATCH_LOG_DIR is set.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        level = level or os.getenv("SPONSORMATCH_LOG_LEVEL", "INFO")
        if "log_dir" not in kwargs and os.getenv("SPONSORMATCH_LOG_DIR"):
            kwargs["log_dir"] = Path(os.environ["SPONSORMATCH_LOG_DIR"])
        kwargs.setdefault("enable_file", kwargs.get("log_dir") is not None)
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
