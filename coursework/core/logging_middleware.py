import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()

        response = await call_next(request)

        duration = time.monotonic() - start
        logger.info(
            "[%s] %s %s -> %s (%.2fs)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
