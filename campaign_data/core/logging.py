from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Union


# Context variables for enriched logging
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | tenant=%(tenant_id)s | %(message)s"


class LoggingContextFilter(logging.Filter):
    """
    Logging filter that injects correlation_id and tenant_id from contextvars
    into each log record so formatters can include them.

    If no values are present in the context, placeholders are used.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        cid = correlation_id_var.get()
        tid = tenant_id_var.get()
        setattr(record, "correlation_id", cid or "-")
        setattr(record, "tenant_id", tid or "-")
        return True


# PUBLIC_INTERFACE
@contextmanager
def bind_tenant(tenant_id: str) -> Iterator[None]:
    """Expose `tenant_id` to log records emitted inside the block."""
    token = tenant_id_var.set(tenant_id)
    try:
        yield
    finally:
        tenant_id_var.reset(token)


def parse_level(level: Union[int, str]) -> int:
    """Numeric level for `level`; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Route all records through one stdout handler carrying the correlation and tenant context."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    # Remove pre-existing default handlers configured elsewhere (e.g., basicConfig)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(parse_level(level))
