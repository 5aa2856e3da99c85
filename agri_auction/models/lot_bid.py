#agri_auction/models/lot_bid.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    Index,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agri_auction.db.base import Base


class LotBid(Base):
    """
    One accepted bid. Append-only: rows are only ever inserted by the bid
    ledger, in the same transaction as the guarded price update on the lot.
    """
    __tablename__ = "lot_bids"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    lot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lots.id", ondelete="CASCADE"),
        nullable=False,
    )

    # 1-based insertion order within the lot
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    bidder_id: Mapped[str] = mapped_column(String(128), nullable=False)
    bidder_name: Mapped[str] = mapped_column(String(256), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    placed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    lot = relationship("Lot", back_populates="bids")

    __table_args__ = (
        UniqueConstraint("lot_id", "seq", name="uq_lot_bids_seq"),
        UniqueConstraint("lot_id", "amount", name="uq_lot_bids_amount"),
        Index("ix_lot_bids_bidder", "bidder_id"),
    )
