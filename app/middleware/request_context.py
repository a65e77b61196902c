"""
RequestContext Middleware - Adds request tracking to all requests.

Every request gets a request_id that is:
- stored in request.state.request_id
- bound to structlog context variables, so aggregation and transport logs
  emitted while serving the request carry it
- echoed back in the X-Request-ID response header

A client-supplied X-Request-ID is reused so a frontend can correlate one
sync with its logs.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Add a request id to request.state, the log context and the response."""

    async def dispatch(self, request: Request, call_next):
        request_id = self._request_id(request)
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            logger.debug(
                "Request started",
                method=request.method,
                path=request.url.path,
            )
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _request_id(self, request: Request) -> str:
        supplied = request.headers.get(REQUEST_ID_HEADER)
        if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH:
            return supplied
        return str(uuid.uuid4())
