"""
Correlated logging for the stock engine.

Records emitted while a document is validated, scored or moved through its
lifecycle are tagged with the identifiers of that operation:
- document_number: BR-2025-0001, TR-2025-0004, INV-2025-0002...
- document_type: receipt | transfer | inventory
- store_id: Store the operation applies to
- user_id: Acting user
- operation: Engine entry point (validate_receipt, validate_comprehensive, ...)

Inside a Temporal worker, activity_name and workflow_id are added as well.

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(document_number="BR-2025-0001", store_id="S1"):
        logger.info("Receipt validated", extra_fields={"line_count": 3})
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any, Dict, Optional


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass(frozen=True)
class CorrelationContext:
    """Identifiers of the stock operation currently being processed."""
    document_number: Optional[str] = None
    document_type: Optional[str] = None
    store_id: Optional[str] = None
    user_id: Optional[str] = None
    operation: Optional[str] = None
    activity_name: Optional[str] = None
    workflow_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Set identifiers only, in declaration order."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                data[f.name] = value
        return data

    def merge(self, **kwargs) -> "CorrelationContext":
        """Copy with the given identifiers; None leaves a value unchanged."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


_current_context: ContextVar[CorrelationContext] = ContextVar(
    "stock_correlation_context",
    default=CorrelationContext(),
)


def get_correlation_context() -> CorrelationContext:
    return _current_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Tag every record logged inside the block with the given identifiers.

    Nested blocks inherit the enclosing identifiers. The enclosing context is
    restored on exit, including when the block raises.
    """
    ctx = get_correlation_context().merge(**kwargs)
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.utcfromtimestamp(record.created)


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "extra_fields", None) or {}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record, correlation identifiers at the top level.

    {"timestamp": "2025-03-05T10:00:00.000000Z", "level": "WARNING",
     "logger": "risk.assessor", "message": "Operation requires approval",
     "document_number": "TR-2025-0012", "store_id": "S1", "risk_level": "HIGH"}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _record_time(record).isoformat(timespec="microseconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(get_correlation_context().to_dict())
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console format with the store and document in brackets.

    2025-03-05 10:00:00 [INFO ] lifecycle.controller [S1/BR-2025-0001/user:U1]: Receipt validated
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()
        tags = [value for value in (ctx.store_id, ctx.document_number) if value]
        if ctx.user_id:
            tags.append(f"user:{ctx.user_id}")

        line = "{} [{:5}] {} [{}]: {}".format(
            _record_time(record).strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
            record.name,
            "/".join(tags) or "-",
            record.getMessage(),
        )
        extra = _extra_fields(record)
        if extra:
            line += " " + " ".join(f"{key}={value}" for key, value in extra.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Correlated Logger
# =============================================================================

class CorrelatedLogger:
    """
    Thin wrapper over a stdlib logger adding ``extra_fields=`` to each call.

    The correlation identifiers themselves are added by the formatters, so
    plain ``logging`` records (temporalio, third-party code) carry them too.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, level: int, msg: str, *args, extra_fields: Optional[Dict[str, Any]] = None, exc_info=None):
        if not self._logger.isEnabledFor(level):
            return
        if exc_info is True:
            exc_info = sys.exc_info()
        record = self._logger.makeRecord(
            self._logger.name, level, "(stock engine)", 0, msg, args, exc_info or None
        )
        record.extra_fields = dict(extra_fields or {})
        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """Log at ERROR with the exception being handled."""
        kwargs["exc_info"] = True
        self.log(logging.ERROR, msg, *args, **kwargs)

    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level) -> bool:
        return self._logger.isEnabledFor(level)


# =============================================================================
# Setup
# =============================================================================

PACKAGE_LOGGERS = (
    "core",
    "validation",
    "valuation",
    "reconciliation",
    "risk",
    "lifecycle",
    "activities",
    "workers",
)

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False


def _is_engine_handler(handler: logging.Handler) -> bool:
    return isinstance(handler.formatter, (StructuredFormatter, HumanReadableFormatter))


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    include_temporal: bool = True,
    force: bool = False,
):
    """
    Install the engine's stdout handler on the root logger.

    Args:
        level: Level for the handler and the engine packages
        json_format: StructuredFormatter when True, HumanReadableFormatter otherwise
        include_temporal: Keep the temporalio loggers at INFO
        force: Replace a handler installed by an earlier call
    """
    global _configured

    if _configured and not force:
        return

    root = logging.getLogger()
    for existing in [h for h in root.handlers if _is_engine_handler(h)]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())
    root.addHandler(handler)
    root.setLevel(level)

    for package in PACKAGE_LOGGERS:
        logging.getLogger(package).setLevel(level)
    if include_temporal:
        logging.getLogger("temporalio").setLevel(logging.INFO)

    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """Correlated logger for a module; configures logging on first use."""
    logger = _loggers.get(name)
    if logger is None:
        if not _configured:
            configure_logging()
        logger = _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return logger


# =============================================================================
# Activity Helpers
# =============================================================================

def log_activity_start(activity_name: str, **details):
    get_logger(f"activities.{activity_name}").info(
        f"{activity_name} started", extra_fields=details
    )


def log_activity_complete(activity_name: str, duration_ms: Optional[float] = None, **details):
    """Log activity completion, with its duration when known."""
    extra: Dict[str, Any] = {}
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    extra.update(details)
    get_logger(f"activities.{activity_name}").info(
        f"{activity_name} completed", extra_fields=extra
    )
