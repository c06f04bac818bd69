# app/utils/logging.py
import logging
import sys
import uuid
from contextvars import ContextVar

from app.utils.settings import LOG_LEVEL

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"


def new_correlation_id() -> str:
    return f"req-{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(value: str | None):
    """Bind a correlation id to the current context, returns the reset token."""
    return _correlation_id.set(value)


def reset_correlation_id(token) -> None:
    _correlation_id.reset(token)


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or "-"
        return True


def _configure_root() -> logging.Logger:
    root = logging.getLogger("app")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        root.addHandler(handler)
        root.setLevel(LOG_LEVEL.upper())
        root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    _configure_root()
    return logging.getLogger(name)
