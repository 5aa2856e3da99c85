from __future__ import annotations

import re

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from agri_auction.core.rate_limit import InMemoryRateLimiter

_BID_PATH = re.compile(r"/lots/[^/]+/bids/?$")


class BidRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies ONLY to POST /lots/{lot_id}/bids.
    Caller identity is the X-Participant-Id header, falling back to client host.
    """

    def __init__(self, app, capacity: int = 10, per_minute: int = 10):
        super().__init__(app)
        self.limiter = InMemoryRateLimiter(capacity=capacity, refill_per_sec=per_minute / 60.0)

    async def dispatch(self, request: Request, call_next):
        if request.method.upper() == "POST" and _BID_PATH.search(request.url.path):
            caller = request.headers.get("x-participant-id") or (
                request.client.host if request.client else "anonymous"
            )
            if not self.limiter.allow(caller, "POST:bids"):
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Rate limit exceeded for bid submission."},
                    headers={"Retry-After": "60"},
                )
        return await call_next(request)
