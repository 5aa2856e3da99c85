import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from agri_auction.core.logging import request_id_var

logger = logging.getLogger("agri_auction.access")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware. Resolves the request id (client supplied or new),
    exposes it to handlers, services and log records, and writes one JSON
    access line per request with the acting participant when known.
    """

    def __init__(self, app, header_name: str = "X-Request-Id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = rid
        token = request_id_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[self.header_name] = rid
            logger.info(
                "request handled",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "participant_id": request.headers.get("x-participant-id"),
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
            return response
        finally:
            request_id_var.reset(token)
