import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class BidCreate(BaseModel):
    bidder_id: str
    amount: Decimal = Field(gt=0, decimal_places=2)


class BidReceiptOut(BaseModel):
    lot_id: uuid.UUID
    bid_id: uuid.UUID
    seq: int
    bidder_id: str
    bidder_name: str
    amount: Decimal
    placed_at: datetime
    current_price: Decimal
    total_bids: int
    unique_bidders: int

    model_config = {"from_attributes": True}
