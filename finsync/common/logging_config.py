"""
Structured JSON logging.

Every record is one JSON object carrying the request id of the API call
that produced it. Keyword arguments passed to a logger from get_logger()
become top-level fields:

    logger.info("Account synced.", account_id="dkb_123", new=4)

Session credentials must never reach a log file, so fields with a
credential-like name are masked wherever they appear.
"""
import json
import logging
import os
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

DEFAULT_REQUEST_ID = "GLOBAL"
REDACTED = "***"
SENSITIVE_FIELDS = frozenset({"cookie", "xsrf_token", "x-xsrf-token", "authorization", "password"})

# Noisy third-party loggers kept at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "multipart")

# ContextVar rather than thread-local: Starlette copies the context into
# the threadpool that runs sync endpoints.
_request_id: ContextVar[str] = ContextVar("request_id", default=DEFAULT_REQUEST_ID)


def redact(value: Any) -> Any:
    """Mask credential fields in nested dicts and lists."""
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_FIELDS and v else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """
    Custom formatter that outputs JSON records.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "request_id": get_request_id(),
        }

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_data.update(redact(extra_fields))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(log_level: int = logging.INFO, log_file: Optional[str] = "logs/finsync.log"):
    """
    Configure the root logger: JSON to stderr and, when log_file is set,
    JSON lines to that file.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    formatter = JSONFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    get_logger(__name__).info(
        "Logging configured.",
        log_level=logging.getLevelName(log_level),
        log_file=log_file or None,
    )


def set_request_id(request_id: str):
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """
    Folds keyword arguments into record.extra_fields.

    An explicit extra_fields dict is merged in as well; the logging
    keywords (exc_info, stack_info, stacklevel, extra) pass through.
    Field names that clash with Logger.log arguments (level, msg) are
    fields too.
    """
    PASSTHROUGH = frozenset({'exc_info', 'stack_info', 'stacklevel', 'extra'})

    def log(self, level, msg, /, *args, **kwargs):
        if self.isEnabledFor(level):
            msg, kwargs = self.process(msg, kwargs)
            # Report the caller, not this frame
            kwargs['stacklevel'] = kwargs.get('stacklevel', 1) + 1
            self.logger.log(level, msg, *args, **kwargs)

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        fields = dict(extra.get("extra_fields") or {})
        passthrough = {}

        for key, value in kwargs.items():
            if key in self.PASSTHROUGH:
                passthrough[key] = value
            elif key == "extra_fields" and isinstance(value, dict):
                fields.update(value)
            else:
                fields[key] = value

        extra["extra_fields"] = fields
        passthrough["extra"] = extra
        return msg, passthrough


def get_logger(name: str) -> StructuredLoggerAdapter:
    return StructuredLoggerAdapter(logging.getLogger(name), {})
