from __future__ import annotations

import logging
import time
import uuid

import sentry_sdk
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..logging_context import bind_request_context, current_log_context, reset_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
EVENT_ID_HEADER = "X-Stripe-Event-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id for logging and report which Stripe event a request carried."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        sentry_sdk.set_tag("request_id", request_id)
        started = time.perf_counter()
        token = bind_request_context(request_id)
        try:
            response: Response = await call_next(request)
            context = current_log_context()
            event_id = context.stripe_event_id if context else None
            logger.info(
                "%s %s %s",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": int((time.perf_counter() - started) * 1000),
                },
            )
        finally:
            reset_request_context(token)

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        if event_id:
            response.headers.setdefault(EVENT_ID_HEADER, event_id)
        return response
