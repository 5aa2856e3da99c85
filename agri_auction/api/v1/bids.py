# agri_auction/api/v1/bids.py
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agri_auction.core.deps import get_ledger, raise_http
from agri_auction.core.errors import AuctionError
from agri_auction.db.session import get_db
from agri_auction.schemas.bids import BidCreate, BidReceiptOut
from agri_auction.services.bid_ledger import BidLedgerService

router = APIRouter(prefix="/lots", tags=["bids"])


@router.post("/{lot_id}/bids", response_model=BidReceiptOut, status_code=201)
def place_bid(
    lot_id: uuid.UUID,
    req: BidCreate,
    db: Session = Depends(get_db),
    ledger: BidLedgerService = Depends(get_ledger),
):
    """
    Accepted only when strictly above the current price seen at commit time.
    A stale read comes back as 409 with the fresh current_price.
    """
    try:
        return ledger.place_bid(db, lot_id=lot_id, bidder_id=req.bidder_id, amount=req.amount)
    except AuctionError as e:
        raise_http(e)
