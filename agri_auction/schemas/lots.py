import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from agri_auction.models.enums import QualityGrade, QuantityUnit


class LotLocation(BaseModel):
    state: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None


class LotCreate(BaseModel):
    seller_id: str
    commodity_name: str = Field(min_length=1, max_length=128)
    quantity: Decimal = Field(gt=0, decimal_places=3)
    unit: QuantityUnit
    quality: QualityGrade
    harvest_date: datetime
    expiry_date: datetime
    closing_time: datetime
    starting_price: Decimal = Field(gt=0, decimal_places=2)
    location: Optional[LotLocation] = None


class SellerAction(BaseModel):
    seller_id: str


class LotBidOut(BaseModel):
    id: uuid.UUID
    seq: int
    bidder_id: str
    bidder_name: str
    amount: Decimal
    placed_at: datetime

    model_config = {"from_attributes": True}


class LotSummaryOut(BaseModel):
    id: uuid.UUID
    seller_id: str
    seller_name: str
    commodity_name: str
    quantity: Decimal
    unit: str
    quality: str
    harvest_date: datetime
    expiry_date: datetime
    closing_time: datetime
    starting_price: Decimal
    current_price: Decimal
    status: str
    state: Optional[str]
    district: Optional[str]
    city: Optional[str]
    total_bids: int
    unique_bidders: int
    winner_id: Optional[str]
    winner_name: Optional[str]
    winning_amount: Optional[Decimal]
    closed_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class LotOut(LotSummaryOut):
    outcome: Optional[Dict[str, Any]] = Field(default=None, validation_alias="outcome_json")
    settled_at: Optional[datetime]
    recorded_at: Optional[datetime]
    notified_at: Optional[datetime]
    bids: List[LotBidOut] = []
