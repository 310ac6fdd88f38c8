"""
Logging configuration and utilities for the e2e-replay runner.

Text output goes through rich; JSON output carries the scenario/step
context of each record as top-level fields. Both paths redact secrets
unless ``sanitize_logs`` is off.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from e2e_replay.config.settings import get_settings
from e2e_replay.security.sanitizer import DataSanitizer

STEP_EVENTS_LOGGER = "e2e_replay.step_events"

# Extra attributes promoted to top-level JSON fields
CONTEXT_FIELDS = (
    "scenario", "step_index", "browser_id", "mode", "event_type", "component", "error",
)

# Third-party loggers that only report warnings and above
QUIET_LOGGERS = ("openai", "httpx", "httpcore", "mcp", "asyncio")

FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with step context and optional redaction."""

    def __init__(self, *args, sanitize: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.sanitizer = DataSanitizer() if sanitize else None

    def _payload(self, record: logging.LogRecord) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return payload

    def format(self, record: logging.LogRecord) -> str:
        if self.sanitizer is None:
            return json.dumps(self._payload(record), default=str)

        record = self.sanitizer.sanitize_log_record(record)
        return json.dumps(self.sanitizer.sanitize_dict(self._payload(record)), default=str)


class SanitizingHandler(logging.Handler):
    """Redacts each record before handing it to the wrapped handler."""

    def __init__(self, handler: logging.Handler, sanitizer: Optional[DataSanitizer] = None):
        super().__init__(level=handler.level)
        self.handler = handler
        self.sanitizer = sanitizer or DataSanitizer()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.handler.emit(self.sanitizer.sanitize_log_record(record))
        except Exception:
            self.handleError(record)


class StepLogAdapter(logging.LoggerAdapter):
    """Stamps a fixed context (scenario, browser, component...) onto every record."""

    def process(
        self, msg: str, kwargs: Dict[str, Any]
    ) -> tuple[str, Dict[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def _console_handler(format_type: str, sanitize: bool) -> logging.Handler:
    if format_type == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter(sanitize=sanitize))
        return handler

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    # JSON formatter already sanitizes; rich output needs the wrapper
    return SanitizingHandler(handler) if sanitize else handler


def _file_handler(path: str, format_type: str, sanitize: bool) -> logging.Handler:
    handler = logging.FileHandler(path)
    if format_type == "json":
        handler.setFormatter(JSONFormatter(sanitize=sanitize))
        return handler

    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return SanitizingHandler(handler) if sanitize else handler


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    sanitize_logs: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (defaults to settings)
        log_format: Log format 'json' or 'text' (defaults to settings)
        log_file: Optional log file path (defaults to settings)
        sanitize_logs: Whether to redact secrets (defaults to settings)

    Returns:
        Root logger instance
    """
    settings = get_settings()

    level = (log_level or settings.log_level).upper()
    format_type = log_format or settings.log_format
    file_path = log_file or settings.log_file
    sanitize = settings.sanitize_logs if sanitize_logs is None else sanitize_logs
    numeric_level = getattr(logging, level)

    handlers = [_console_handler(format_type, sanitize)]
    if file_path:
        handlers.append(_file_handler(file_path, format_type, sanitize))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    for handler in handlers:
        handler.setLevel(numeric_level)
        root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("e2e_replay").debug(
        f"Logging initialized: level={level}, format={format_type}, "
        f"file={file_path or '-'}, sanitize={sanitize}"
    )
    return root_logger


def get_logger(name: str, **context: Any) -> logging.Logger:
    """
    Get a logger, wrapped in a StepLogAdapter when context is given.

    Args:
        name: Logger name
        **context: Fields stamped onto every record (e.g. scenario, browser_id)
    """
    logger = logging.getLogger(name)
    return StepLogAdapter(logger, context) if context else logger


def log_step_event(
    event_type: str,
    scenario: str,
    step_index: Optional[int] = None,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a step lifecycle event (started, passed, failed, retried, relearned).

    Args:
        event_type: Type of event
        scenario: Scenario name
        step_index: Optional zero-based step index
        data: Additional event data
    """
    extra: Dict[str, Any] = {"event_type": event_type, "scenario": scenario}
    if step_index is not None:
        extra["step_index"] = step_index
    extra.update(data or {})

    logging.getLogger(STEP_EVENTS_LOGGER).info(f"Step event: {event_type}", extra=extra)
