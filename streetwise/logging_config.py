"""
Streetwise - Centralized Logging Configuration
Supports both development (plain text) and structured (JSON) logging
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from streetwise.config import StreetwiseConfig


LOGGER_NAME = "streetwise"

# Context variables for tracing a view and the report it is focused on
view_id_var: ContextVar[str] = ContextVar('view_id', default='')
report_id_var: ContextVar[str] = ContextVar('report_id', default='')


def get_view_id() -> str:
    """Get current view ID from context"""
    return view_id_var.get() or ''


def set_view_id(view_id: str) -> None:
    """Set view ID in context"""
    view_id_var.set(view_id)


def get_report_id() -> str:
    """Get current report ID from context"""
    return report_id_var.get() or ''


def set_report_id(report_id: Any) -> None:
    """Set report ID in context"""
    report_id_var.set(str(report_id) if report_id is not None else '')


def generate_view_id() -> str:
    """Generate a short unique view ID"""
    return str(uuid.uuid4())[:8]


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'view_id', 'report_id',
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        view_id = get_view_id()
        if view_id:
            log_data["view_id"] = view_id

        report_id = get_report_id()
        if report_id:
            log_data["report_id"] = report_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """
    Readable formatter that includes the view and report context
    """

    def format(self, record: logging.LogRecord) -> str:
        record.view_id = get_view_id() or '-'
        record.report_id = get_report_id() or '-'

        return super().format(record)


class StreetwiseLogger(logging.Logger):
    """
    Custom logger with convenience methods for structured logging
    """

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        """Log HTTP request details"""
        self.debug(
            f"HTTP {method} {path} - {status_code} ({duration_ms:.2f}ms)",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": duration_ms,
                **kwargs
            }
        )

    def log_poll(self, poller: str, item_count: int, duration_ms: float,
                 applied: bool = True, **kwargs) -> None:
        """Log a completed poll"""
        self.debug(
            f"Poll {poller}: {item_count} items ({duration_ms:.2f}ms)" +
            ("" if applied else " - discarded"),
            extra={
                "event_type": "poll",
                "poller": poller,
                "item_count": item_count,
                "duration_ms": duration_ms,
                "applied": applied,
                **kwargs
            }
        )

    def log_auth_event(self, event: str, success: bool, user_email: str = None,
                       reason: str = None, **kwargs) -> None:
        """Log authentication events"""
        level = logging.INFO if success else logging.WARNING
        self.log(
            level,
            f"Auth {event}: {'success' if success else 'failed'}" +
            (f" - {user_email}" if user_email else "") +
            (f" - {reason}" if reason else ""),
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "user_email": user_email,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_transition(self, machine: str, from_state: str, to_state: str,
                       reason: str = None, **kwargs) -> None:
        """Log a state machine transition"""
        self.info(
            f"[{machine}] State transition: {from_state} → {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                "event_type": "transition",
                "machine": machine,
                "from_state": from_state,
                "to_state": to_state,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=error,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )


def _get_logger() -> StreetwiseLogger:
    logging.setLoggerClass(StreetwiseLogger)
    named = logging.getLogger(LOGGER_NAME)
    named.__class__ = StreetwiseLogger  # Ensure it's our custom class
    return named


def setup_logging(config: Optional[StreetwiseConfig] = None) -> StreetwiseLogger:
    """Setup logging from the client configuration"""
    config = config or StreetwiseConfig()

    named = _get_logger()
    level_name = "DEBUG" if config.verbose else config.log_level.upper()
    named.setLevel(getattr(logging, level_name, logging.INFO))
    named.propagate = False

    named.handlers.clear()

    if config.json_logs:
        console_formatter = JSONFormatter()
        file_formatter = JSONFormatter()
    else:
        detailed_format = (
            "%(asctime)s | %(levelname)-8s | "
            "[%(view_id)s] [%(report_id)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )
        simple_format = "%(levelname)-8s | %(message)s"
        console_formatter = ContextualFormatter(simple_format)
        file_formatter = ContextualFormatter(detailed_format)

    # stderr keeps the rendered feed on stdout readable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if config.verbose else logging.WARNING)
    console_handler.setFormatter(console_formatter)
    named.addHandler(console_handler)

    if config.log_file:
        log_file = Path(config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        named.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    named.debug(
        "Logging initialized",
        extra={
            "log_level": level_name,
            "json_logging": config.json_logs
        }
    )

    return named


# Module-level logger; handlers are attached by setup_logging()
logger: StreetwiseLogger = _get_logger()


__all__ = [
    'logger',
    'setup_logging',
    'get_view_id',
    'set_view_id',
    'get_report_id',
    'set_report_id',
    'generate_view_id',
    'StreetwiseLogger',
    'JSONFormatter',
    'ContextualFormatter',
]
