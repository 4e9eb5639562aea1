"""
Structured logging configuration for TenantGuard.

Provides consistent logging across the scanner, match engine and
deployment dispatcher, with human-readable or JSON output.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured JSON logs.

    Each line carries the message plus any ``extra`` fields attached by
    TenantGuardLogger event helpers.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        """
        Initialize structured formatter.

        Args:
            include_timestamp: Include timestamp in output
            include_location: Include file/line location
            extra_fields: Additional fields to include in every log
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_location = include_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_data["level"] = record.levelname.lower()
        log_data["logger"] = record.name
        log_data["message"] = record.getMessage()

        if self.include_location:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        log_data.update(self.extra_fields)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter that outputs human-readable logs for CLI usage."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_timestamp: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable text."""
        parts = []

        if self.include_timestamp:
            timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
            parts.append(f"[{timestamp}]")

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"
        parts.append(f"{level:>8}")

        parts.append(f"{record.name}:")
        parts.append(record.getMessage())

        output = " ".join(parts)

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


class TenantGuardLogger:
    """
    Wrapper around Python logging with TenantGuard event helpers.

    Event helpers attach an ``event_type`` plus structured fields so that
    JSON output can be filtered downstream. Bearer tokens are never passed
    to any helper.
    """

    def __init__(self, name: str, level: int | None = None):
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)
        self._context: dict[str, Any] = {}

    def set_context(self, **kwargs: Any) -> None:
        """Set persistent context fields for all logs."""
        self._context.update(kwargs)

    def clear_context(self) -> None:
        """Clear context fields."""
        self._context.clear()

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        extra = {**self._context, **kwargs}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def scan_started(self, tenant_id: str | None, sources: list[str]) -> None:
        """Log scan start event."""
        self.info(
            f"Scan started ({len(sources)} sources)",
            event_type="scan.started",
            tenant_id=tenant_id,
            sources=sources,
        )

    def scan_completed(
        self,
        tenant_id: str | None,
        success_count: int,
        source_count: int,
        duration_seconds: float,
    ) -> None:
        """Log scan completion event."""
        self.info(
            f"Scan completed: {success_count}/{source_count} sources "
            f"in {duration_seconds:.1f}s",
            event_type="scan.completed",
            tenant_id=tenant_id,
            success_count=success_count,
            source_count=source_count,
            duration_seconds=duration_seconds,
        )

    def source_failed(self, source: str, error: str) -> None:
        """Log a single scan source failure."""
        self.warning(
            f"Scan source {source} failed: {error}",
            event_type="scan.source_failed",
            source=source,
            error=error,
        )

    def deployment_started(self, control_id: str, method: str, calls: int) -> None:
        """Log deployment start event."""
        self.info(
            f"Deploying {control_id} via {method} ({calls} call(s))",
            event_type="deployment.started",
            control_id=control_id,
            method=method,
            calls=calls,
        )

    def deployment_finished(
        self,
        control_id: str,
        state: str,
        detail: str = "",
    ) -> None:
        """Log deployment terminal state."""
        level = logging.WARNING if state == "failed" else logging.INFO
        self._log(
            level,
            f"Deployment of {control_id} finished: {state}"
            + (f" ({detail})" if detail else ""),
            event_type="deployment.finished",
            control_id=control_id,
            state=state,
            detail=detail,
        )


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    output: str = "stderr",
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure logging for TenantGuard.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format (human, json)
        output: Output destination (stderr, stdout)
        extra_fields: Extra fields to include in structured logs
    """
    root_logger = logging.getLogger("tenantguard")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    if output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler(sys.stderr)

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter(extra_fields=extra_fields)
    else:
        formatter = HumanReadableFormatter()

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> TenantGuardLogger:
    """
    Get a TenantGuard logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        TenantGuardLogger instance
    """
    if not name.startswith("tenantguard"):
        name = f"tenantguard.{name}"
    return TenantGuardLogger(name)


# Configure logging from environment on import
_log_level = os.getenv("TENANTGUARD_LOG_LEVEL", "WARNING")
_log_format = os.getenv("TENANTGUARD_LOG_FORMAT", "human")
configure_logging(level=_log_level, format=_log_format)
