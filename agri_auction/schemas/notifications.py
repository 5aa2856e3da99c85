import uuid
from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    id: uuid.UUID
    recipient_id: str
    lot_id: uuid.UUID
    kind: str
    title: str
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
