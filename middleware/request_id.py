"""
Request ID middleware.

Every request gets an X-Request-ID (the client's, or a fresh UUID). It is
echoed on the response and stamped on every log record emitted while the
request is being served, including logs from provider clients.
"""

import uuid
import logging
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

_base_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _base_factory(*args, **kwargs)
    request_id = _request_id.get()
    if request_id is not None:
        record.request_id = request_id
    return record

# Installed once; the context variable keeps concurrent requests apart
logging.setLogRecordFactory(_record_factory)


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        token = _request_id.set(request_id)
        try:
            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            _request_id.reset(token)


def get_request_id(request: Request) -> str:
    """Request ID from request state, or "no-request-id" outside a request."""
    return getattr(request.state, "request_id", "no-request-id")
