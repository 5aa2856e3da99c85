# agri_auction/api/v1/lots.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agri_auction.core.config import Settings, get_settings
from agri_auction.core.deps import get_history, get_lifecycle, get_registry, raise_http
from agri_auction.core.errors import AuctionError
from agri_auction.db.session import get_db
from agri_auction.models.enums import LotStatus, QualityGrade
from agri_auction.schemas.history import HistoryRecordOut
from agri_auction.schemas.lots import LotCreate, LotOut, LotSummaryOut, SellerAction
from agri_auction.services.history_service import HistoryRecorder
from agri_auction.services.lot_lifecycle import LotLifecycleService
from agri_auction.services.lot_registry import LotRegistryService

router = APIRouter(prefix="/lots", tags=["lots"])


# ---------------------------------------------------------------------
# create / browse
# ---------------------------------------------------------------------

@router.post("", response_model=LotOut, status_code=201)
def create_lot(
    req: LotCreate,
    db: Session = Depends(get_db),
    registry: LotRegistryService = Depends(get_registry),
):
    try:
        lot = registry.create_lot(db, req.model_dump(mode="python", exclude_none=True))
        return registry.get_lot(db, lot.id)
    except AuctionError as e:
        raise_http(e)


@router.get("/active", response_model=List[LotSummaryOut])
def list_active_lots(
    state: Optional[str] = None,
    district: Optional[str] = None,
    city: Optional[str] = None,
    min_quality: Optional[QualityGrade] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    registry: LotRegistryService = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    return registry.list_active_lots(
        db,
        state=state,
        district=district,
        city=city,
        min_quality=min_quality,
        limit=limit or settings.active_lots_default_limit,
    )


@router.get("/seller/{seller_id}", response_model=List[LotSummaryOut])
def list_seller_lots(
    seller_id: str,
    status: Optional[LotStatus] = None,
    db: Session = Depends(get_db),
    registry: LotRegistryService = Depends(get_registry),
):
    return registry.list_seller_lots(db, seller_id, status=status)


@router.get("/{lot_id}", response_model=LotOut)
def get_lot(
    lot_id: uuid.UUID,
    db: Session = Depends(get_db),
    registry: LotRegistryService = Depends(get_registry),
):
    try:
        return registry.get_lot(db, lot_id)
    except AuctionError as e:
        raise_http(e)


# ---------------------------------------------------------------------
# seller actions
# ---------------------------------------------------------------------

@router.post("/{lot_id}/cancel", response_model=LotOut)
def cancel_lot(
    lot_id: uuid.UUID,
    req: SellerAction,
    db: Session = Depends(get_db),
    lifecycle: LotLifecycleService = Depends(get_lifecycle),
    registry: LotRegistryService = Depends(get_registry),
):
    try:
        lifecycle.cancel_lot(db, lot_id=lot_id, seller_id=req.seller_id)
        return registry.get_lot(db, lot_id)
    except AuctionError as e:
        raise_http(e)


@router.post("/{lot_id}/close", response_model=LotOut)
def close_lot_early(
    lot_id: uuid.UUID,
    req: SellerAction,
    db: Session = Depends(get_db),
    lifecycle: LotLifecycleService = Depends(get_lifecycle),
    registry: LotRegistryService = Depends(get_registry),
):
    try:
        lifecycle.close_lot_early(db, lot_id=lot_id, seller_id=req.seller_id)
        return registry.get_lot(db, lot_id)
    except AuctionError as e:
        raise_http(e)


@router.get("/{lot_id}/history", response_model=List[HistoryRecordOut])
def lot_history(
    lot_id: uuid.UUID,
    db: Session = Depends(get_db),
    history: HistoryRecorder = Depends(get_history),
):
    try:
        return history.list_for_lot(db, lot_id)
    except AuctionError as e:
        raise_http(e)
