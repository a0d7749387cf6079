import logging
import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Propagate a request id for log correlation.

    A client-supplied X-Request-ID is kept when it is short and printable;
    otherwise a new UUID is generated. The id is stored on
    ``request.state.request_id``, bound into the structlog context for the
    lifetime of the request and echoed back in the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER, "")
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH or not request_id.isprintable():
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        start = time.perf_counter()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
            logger.info(
                "REQUEST | method=%s | path=%s | status=%s | duration=%.4fs",
                request.method,
                request.url.path,
                response.status_code,
                time.perf_counter() - start,
                extra={"event_type": "http_request"},
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
