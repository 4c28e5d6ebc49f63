from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

CORRELATION_HEADER = "x-correlation-id"
MAX_CORRELATION_ID_LENGTH = 128

correlation_id_var: ContextVar[str | None] = ContextVar("referralhub_correlation_id", default=None)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def resolve_correlation_id(raw: str | None) -> str:
    """Return the caller-supplied id when usable, otherwise a fresh one."""
    value = (raw or "").strip()
    if not value or len(value) > MAX_CORRELATION_ID_LENGTH:
        return str(uuid.uuid4())
    return value


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)
