"""Request-scoped logging context for the HTTP and limiter layers."""

from __future__ import annotations

import contextlib
import contextvars
import logging
import uuid
from typing import Iterator, Optional

_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "client_request_id", default=None
)


def generate_request_id() -> str:
    """Generate a unique, log-friendly request identifier."""

    return f"req-{uuid.uuid4().hex[:12]}"


def get_current_request_id() -> Optional[str]:
    return _request_id_var.get()


@contextlib.contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a request id to the current task for the duration of the block.

    Nested blocks without an explicit id reuse the enclosing id so that a
    guarded login and the HTTP retries it triggers share one identifier.
    """

    resolved = request_id or get_current_request_id() or generate_request_id()
    token = _request_id_var.set(resolved)
    try:
        yield resolved
    finally:
        _request_id_var.reset(token)


class RequestIdFilter(logging.Filter):
    """Ensure every log record carries the current request identifier."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_current_request_id() or "n/a"
        return True


__all__ = [
    "RequestIdFilter",
    "generate_request_id",
    "get_current_request_id",
    "request_context",
]
