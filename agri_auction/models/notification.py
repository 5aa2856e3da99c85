#agri_auction/models/notification.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict

import sqlalchemy as sa
from sqlalchemy import String, DateTime, Text, UniqueConstraint, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from agri_auction.core.clock import utc_now
from agri_auction.db.base import Base, JSONType


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    recipient_id: Mapped[str] = mapped_column(String(128), nullable=False)
    lot_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    is_read: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    __table_args__ = (
        # one outcome message per participant per lot
        UniqueConstraint("lot_id", "recipient_id", name="uq_notifications_lot_recipient"),
        Index("ix_notifications_recipient", "recipient_id", "created_at"),
    )
