#agri_auction/models/history_record.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy import (
    String,
    DateTime,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    Index,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from agri_auction.db.base import Base, JSONType


class HistoryRecord(Base):
    """
    Per-participant outcome of one lot.
    - Written once when the lot reaches a terminal state (upsert keyed by lot + participant)
    - Commodity fields are a copy, not a reference to the lot
    - Contact details only on the creator record and the winning bidder record
    """
    __tablename__ = "history_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    lot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lots.id", ondelete="CASCADE"),
        nullable=False,
    )

    participant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    participant_name: Mapped[str] = mapped_column(String(256), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)  # creator | bidder

    # commodity snapshot
    commodity_name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False)
    quality: Mapped[str] = mapped_column(String(16), nullable=False)

    # bidders only
    my_bids_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    my_highest_bid: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    # outcome (denormalized)
    final_status: Mapped[str] = mapped_column(String(16), nullable=False)
    winner_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    winning_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    # NULL on the creator record
    is_winner: Mapped[Optional[bool]] = mapped_column(sa.Boolean, nullable=True)

    contact_exchanged: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    contact_details_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    lot_closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("lot_id", "participant_id", name="uq_history_lot_participant"),
        Index("ix_history_participant", "participant_id", "role"),
        Index("ix_history_final_status", "final_status"),
    )
