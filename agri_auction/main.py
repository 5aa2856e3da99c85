from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from agri_auction.api.v1.router import v1_router
from agri_auction.core.config import Settings, get_settings
from agri_auction.core.logging import configure_logging
from agri_auction.core.middleware import RequestIdMiddleware
from agri_auction.core.middleware_rate_limit import BidRateLimitMiddleware
from agri_auction.services.expiry_scheduler import init_scheduler, shutdown_scheduler


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.scheduler_enabled:
            init_scheduler(settings)
        try:
            yield
        finally:
            if settings.scheduler_enabled:
                shutdown_scheduler()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )

    # Middleware: bid rate limit, then Request ID (outermost, so 429s carry the header too)
    app.add_middleware(
        BidRateLimitMiddleware,
        capacity=settings.bid_rate_limit_capacity,
        per_minute=settings.bid_rate_limit_per_minute,
    )
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
