import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from tangabiz.core.logging import LOGGER_NAME, latency_bucket_ms, request_id_ctx_var

logger = logging.getLogger(LOGGER_NAME)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request_id for the lifetime of the request.

    An inbound ``x-request-id`` is reused so callers can correlate; otherwise a
    uuid4 is minted. The id is echoed on the response and every request ends
    with one ``request.complete`` record (warning level for 5xx).
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        request_id = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = request_id

        token = request_id_ctx_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[self.header_name] = request_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "request.complete",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms(elapsed_ms),
            },
        )
        return response
