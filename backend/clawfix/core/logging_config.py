"""
ClawFix - Logging

One "clawfix" logger for the whole service. Production writes one JSON
object per line; everything else writes short text lines. Each record
carries the current request id and fix id so a diagnosis can be followed
from the HTTP request through the rule engine and the AI pass.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List

from clawfix.core.config import settings


LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "uvicorn.access", "sqlalchemy.engine")

# Correlation ids, set by the request middleware and the diagnosis service
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
fix_id_var: ContextVar[str] = ContextVar('fix_id', default='')


def get_request_id() -> str:
    return request_id_var.get() or ''


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_fix_id() -> str:
    return fix_id_var.get() or ''


def set_fix_id(fix_id: str) -> None:
    fix_id_var.set(fix_id)


def generate_request_id() -> str:
    """Short random id for X-Request-ID"""
    return uuid.uuid4().hex[:8]


# Attributes every LogRecord has; anything else came in through `extra`
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord('', 0, '', 0, '', None, None))
) | {'message', 'asctime', 'request_id', 'fix_id'}


class JSONFormatter(logging.Formatter):
    """One JSON document per record, for log shippers"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for key, value in (("request_id", get_request_id()), ("fix_id", get_fix_id())):
            if value:
                entry[key] = value

        if record.exc_info and record.exc_info[0]:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith('_')
        )
        return json.dumps(entry, default=str)


class ContextualFormatter(logging.Formatter):
    """Text formatter that exposes %(request_id)s and %(fix_id)s"""

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.fix_id = get_fix_id() or '-'
        return super().format(record)


class ClawFixLogger(logging.Logger):
    """Logger with one helper per structured event the service emits"""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        self.info(
            f"{method} {path} -> {status_code} in {duration_ms:.1f}ms",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": duration_ms,
                **kwargs
            }
        )

    def log_rule_fault(self, rule_id: str, error: Exception, **kwargs) -> None:
        """A detection rule raised; the detector counts it as no match"""
        self.warning(
            f"Rule {rule_id} raised {type(error).__name__}: {error} - treated as no match",
            extra={
                "event_type": "rule_fault",
                "rule_id": rule_id,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **kwargs
            }
        )

    def log_ai_event(self, event: str, model: str = None,
                     tokens_used: int = 0, **kwargs) -> None:
        details = []
        if model:
            details.append(f"model={model}")
        if tokens_used:
            details.append(f"tokens={tokens_used}")
        self.info(
            f"AI {event}" + (f" ({', '.join(details)})" if details else ""),
            extra={
                "event_type": "ai",
                "ai_event": event,
                "ai_model": model,
                "tokens_used": tokens_used,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Error with traceback and where it happened"""
        self.error(
            f"{context or 'unknown'} failed: {type(error).__name__}: {error}",
            exc_info=error,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        """DEBUG normally, WARNING when the operation ran past threshold_ms"""
        slow = duration_ms > threshold_ms
        message = f"{operation} took {duration_ms:.1f}ms"
        if slow:
            message += f" (over {threshold_ms:g}ms)"
        self.log(
            logging.WARNING if slow else logging.DEBUG,
            message,
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": duration_ms,
                "threshold_ms": threshold_ms,
                "exceeded_threshold": slow,
                **kwargs
            }
        )


def _build_handlers(json_output: bool) -> List[logging.Handler]:
    if json_output:
        console_formatter = file_formatter = JSONFormatter()
    else:
        console_formatter = ContextualFormatter("%(levelname)-8s | %(message)s")
        file_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | [%(request_id)s] [%(fix_id)s] | "
            "%(module)s.%(funcName)s:%(lineno)d | %(message)s"
        )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(console_formatter)
    handlers: List[logging.Handler] = [console]

    if settings.LOG_FILE:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=10 if json_output else 5,
        )
        rotating.setLevel(logging.DEBUG)
        rotating.setFormatter(file_formatter)
        handlers.append(rotating)

    return handlers


def setup_logging() -> ClawFixLogger:
    """Configure the "clawfix" logger from settings (idempotent)"""
    logging.setLoggerClass(ClawFixLogger)

    clawfix_logger = logging.getLogger("clawfix")
    clawfix_logger.__class__ = ClawFixLogger  # in case it existed before setLoggerClass
    clawfix_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    json_output = settings.ENVIRONMENT == "production"
    clawfix_logger.handlers.clear()
    for handler in _build_handlers(json_output):
        clawfix_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    clawfix_logger.debug(
        "Logging configured",
        extra={"environment": settings.ENVIRONMENT, "json_logging": json_output}
    )
    return clawfix_logger


logger: ClawFixLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_request_id',
    'set_request_id',
    'get_fix_id',
    'set_fix_id',
    'generate_request_id',
    'ClawFixLogger',
    'JSONFormatter',
    'ContextualFormatter',
]
