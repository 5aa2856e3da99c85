# agri_auction/models/participant.py

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, Numeric, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from agri_auction.core.clock import utc_now
from agri_auction.db.base import Base


class Participant(Base):
    """
    Local view of the marketplace user directory: who a farmer or buyer is
    and how to reach them once a lot settles.
    """
    __tablename__ = "participants"

    participant_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    role: Mapped[str] = mapped_column(String(16), nullable=False)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)

    # contact
    email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    district: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    pin_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # buyers only
    buyer_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    max_bid_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_participants_role", "role"),
    )
