import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HistoryRecordOut(BaseModel):
    id: uuid.UUID
    lot_id: uuid.UUID
    participant_id: str
    participant_name: str
    role: str
    commodity_name: str
    quantity: Decimal
    unit: str
    quality: str
    my_bids: List[Dict[str, Any]] = Field(default_factory=list, validation_alias="my_bids_json")
    my_highest_bid: Optional[Decimal]
    final_status: str
    winner_name: Optional[str]
    winning_amount: Optional[Decimal]
    is_winner: Optional[bool]
    contact_exchanged: bool
    contact_details: Optional[Dict[str, Any]] = Field(default=None, validation_alias="contact_details_json")
    lot_closed_at: Optional[datetime]
    recorded_at: datetime

    model_config = {"from_attributes": True}
