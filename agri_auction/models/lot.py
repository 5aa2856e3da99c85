#agri_auction/models/lot.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Numeric,
    CheckConstraint,
    Index,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agri_auction.core.clock import utc_now
from agri_auction.db.base import Base, JSONType
from agri_auction.models.enums import LotStatus


class Lot(Base):
    __tablename__ = "lots"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # seller
    seller_id: Mapped[str] = mapped_column(String(128), nullable=False)
    seller_name: Mapped[str] = mapped_column(String(256), nullable=False)

    # commodity
    commodity_name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False)
    quality: Mapped[str] = mapped_column(String(16), nullable=False)

    # timing
    harvest_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closing_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # pricing
    starting_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    current_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=LotStatus.active.value)

    # outcome (settlement only)
    winner_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    winner_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    winning_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    # {"seller_contact": {...}, "winner_contact": {...}}
    outcome_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    # location (discovery only)
    state: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    district: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    total_bids: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_bidders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # finalize pipeline bookkeeping: claim -> settle -> record -> notify
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    recorded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalize_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_attempt_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    bids: Mapped[List["LotBid"]] = relationship(
        "LotBid",
        back_populates="lot",
        cascade="all, delete-orphan",
        order_by="LotBid.seq",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_lots_quantity_positive"),
        CheckConstraint("starting_price > 0", name="ck_lots_starting_price_positive"),
        CheckConstraint("current_price >= starting_price", name="ck_lots_price_monotonic"),
        CheckConstraint(
            "status IN ('active', 'ended', 'cancelled', 'completed')",
            name="ck_lots_status",
        ),
        Index("ix_lots_status_closing", "status", "closing_time"),
        Index("ix_lots_seller", "seller_id"),
        Index("ix_lots_location", "state", "district"),
    )

    @property
    def status_enum(self) -> LotStatus:
        return LotStatus(self.status)
