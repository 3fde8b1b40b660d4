from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from dataclasses import dataclass

import sentry_sdk


@dataclass
class LogContext:
    """Per-request ids stamped on log lines.

    The object is mutated in place so the Stripe event id bound inside the
    route is still visible to the middleware once the response is built.
    """

    request_id: str | None = None
    stripe_event_id: str | None = None
    stripe_event_type: str | None = None


_current: ContextVar[LogContext | None] = ContextVar("photovault_log_context", default=None)


def current_log_context() -> LogContext | None:
    return _current.get()


class RequestContextFilter(logging.Filter):
    """Copy request and Stripe event ids onto every log record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - formatting only
        context = _current.get() or LogContext()
        record.request_id = context.request_id
        record.stripe_event_id = context.stripe_event_id
        record.stripe_event_type = context.stripe_event_type
        return True


def bind_request_context(request_id: str) -> Token:
    return _current.set(LogContext(request_id=request_id))


def reset_request_context(token: Token) -> None:
    _current.reset(token)


def set_event_context(event_id: str | None, event_type: str | None = None) -> LogContext:
    """Tag the current request (or a bare context, for scripts) with a Stripe event."""
    context = _current.get()
    if context is None:
        context = LogContext()
        _current.set(context)
    context.stripe_event_id = event_id
    context.stripe_event_type = event_type
    sentry_sdk.set_tag("stripe.event_id", event_id)
    if event_type:
        sentry_sdk.set_tag("stripe.event_type", event_type)
    return context


__all__ = [
    "LogContext",
    "RequestContextFilter",
    "bind_request_context",
    "current_log_context",
    "reset_request_context",
    "set_event_context",
]
