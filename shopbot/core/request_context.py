"""Per-request and per-message identifiers picked up by the JSON log formatter.

Webhook processing continues in background tasks and thread pools after the
HTTP request is gone, so values are bound with ``bind_log_context`` and
restored on exit instead of being cleared globally.
"""
from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator

_request_id: ContextVar[str | None] = ContextVar("shopbot_request_id", default=None)
_tenant_id: ContextVar[str | None] = ContextVar("shopbot_tenant_id", default=None)


def new_request_id() -> str:
    return uuid.uuid4().hex


def current_request_id() -> str | None:
    return _request_id.get()


def current_tenant_id() -> str | None:
    return _tenant_id.get()


@contextmanager
def bind_log_context(*, request_id: str | None = None, tenant_id: str | None = None) -> Iterator[None]:
    tokens: list[tuple[ContextVar, Token]] = []
    if request_id is not None:
        tokens.append((_request_id, _request_id.set(request_id)))
    if tenant_id is not None:
        tokens.append((_tenant_id, _tenant_id.set(tenant_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
