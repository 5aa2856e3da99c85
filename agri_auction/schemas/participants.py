from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from agri_auction.models.enums import BuyerType, ParticipantRole


class ParticipantUpsert(BaseModel):
    role: ParticipantRole
    display_name: str = Field(min_length=1, max_length=256)
    email: Optional[str] = None
    phone: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    pin_code: Optional[str] = None
    buyer_type: Optional[BuyerType] = None
    max_bid_limit: Optional[Decimal] = None


class ParticipantOut(BaseModel):
    participant_id: str
    role: str
    display_name: str
    email: Optional[str]
    phone: Optional[str]
    state: Optional[str]
    district: Optional[str]
    city: Optional[str]
    pin_code: Optional[str]
    buyer_type: Optional[str]
    max_bid_limit: Optional[Decimal]
    updated_at: datetime

    model_config = {"from_attributes": True}
