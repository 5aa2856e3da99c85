from fastapi import APIRouter

from agri_auction.api.v1.health import router as health_router
from agri_auction.api.v1.participants import router as participants_router

# lots first: /lots/active and /lots/seller/... must win over /lots/{lot_id}
from agri_auction.api.v1.lots import router as lots_router
from agri_auction.api.v1.bids import router as bids_router
from agri_auction.api.v1.history import router as history_router
from agri_auction.api.v1.notifications import router as notifications_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(participants_router)

# ------------------------------------------------------------------
# MARKET
# ------------------------------------------------------------------
v1_router.include_router(lots_router)
v1_router.include_router(bids_router)

# ------------------------------------------------------------------
# OUTCOMES
# ------------------------------------------------------------------
v1_router.include_router(history_router)
v1_router.include_router(notifications_router)
