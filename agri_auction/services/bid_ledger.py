#agri_auction/services/bid_ledger.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agri_auction.core.clock import Clock, ensure_utc, utc_now
from agri_auction.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from agri_auction.models.enums import BuyerType, LotStatus, ParticipantRole
from agri_auction.models.lot import Lot
from agri_auction.models.lot_bid import LotBid
from agri_auction.services.participant_directory import ParticipantDirectory

logger = logging.getLogger(__name__)

# matches Numeric(14, 2) on lots.current_price and lot_bids.amount
CENT = Decimal("0.01")


@dataclass(frozen=True)
class BidReceipt:
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


def _amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Bid amount must be a number.")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Bid amount must be a positive number.")
    try:
        rounded = amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError("Bid amount is too large.")
    if amount != rounded:
        raise ValidationError("Bid amount cannot have more than 2 decimal places.")
    return rounded


class BidLedgerService:
    """
    Accepts bids against active lots.

    Placement is optimistic: read the lot, validate, then apply one
    conditional UPDATE guarded on the price that was read. Losing a race
    surfaces as ConflictError(stale_price); nothing is ever half-applied.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        directory: Optional[ParticipantDirectory] = None,
    ):
        self.clock = clock
        self.directory = directory or ParticipantDirectory(clock=clock)

    # -----------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------

    def _get_lot(self, db: Session, lot_id: uuid.UUID) -> Lot:
        lot = db.execute(select(Lot).where(Lot.id == lot_id)).scalar_one_or_none()
        if not lot:
            raise NotFoundError(f"Lot {lot_id} not found.")
        return lot

    def _ensure_open(self, lot: Lot, now: datetime) -> None:
        if lot.status != LotStatus.active.value or now >= ensure_utc(lot.closing_time):
            raise ConflictError(
                f"Lot {lot.id} is closed for bidding.",
                reason=ConflictError.LOT_CLOSED,
            )

    def _ensure_eligible(self, db: Session, lot: Lot, bidder_id: str, amount: Decimal):
        if bidder_id == lot.seller_id:
            raise AuthorizationError("A seller cannot bid on their own lot.")

        bidder = self.directory.get(db, bidder_id)
        if not bidder:
            raise NotFoundError(f"Bidder {bidder_id} not found.")
        if bidder.role != ParticipantRole.BUYER.value:
            raise AuthorizationError("Only buyers may bid on lots.")
        if bidder.buyer_type == BuyerType.PUBLIC.value:
            raise AuthorizationError("Public buyers cannot participate in bidding.")
        if bidder.max_bid_limit is not None and amount > bidder.max_bid_limit:
            raise ValidationError(f"Bid amount exceeds your limit of {bidder.max_bid_limit}.")
        return bidder

    def _conflict_after_lost_race(self, db: Session, lot_id: uuid.UUID, now: datetime) -> ConflictError:
        # Re-read to tell the caller whether to retry higher or stop.
        lot = self._get_lot(db, lot_id)
        try:
            self._ensure_open(lot, now)
        except ConflictError as closed:
            return closed
        return ConflictError(
            f"Current price moved to {lot.current_price}; refresh and bid higher.",
            reason=ConflictError.STALE_PRICE,
            current_price=lot.current_price,
        )

    # -----------------------------------------------------------------
    # place
    # -----------------------------------------------------------------

    def place_bid(
        self,
        db: Session,
        *,
        lot_id: uuid.UUID,
        bidder_id: str,
        amount: Any,
    ) -> BidReceipt:
        amount = _amount(amount)
        now = self.clock()

        lot = self._get_lot(db, lot_id)
        self._ensure_open(lot, now)
        bidder = self._ensure_eligible(db, lot, bidder_id, amount)

        read_price = lot.current_price
        read_total = lot.total_bids
        read_unique = lot.unique_bidders

        if amount <= read_price:
            logger.info(
                "bid rejected: stale price",
                extra={"lot_id": str(lot_id), "bidder_id": bidder_id,
                       "amount": str(amount), "current_price": str(read_price)},
            )
            raise ConflictError(
                f"Bid amount must be higher than current price of {read_price}.",
                reason=ConflictError.STALE_PRICE,
                current_price=read_price,
            )

        # read after the lot row: any bid landing in between moves the price and fails the guard
        first_time = db.execute(
            select(LotBid.id)
            .where(LotBid.lot_id == lot_id, LotBid.bidder_id == bidder_id)
            .limit(1)
        ).first() is None

        result = db.execute(
            update(Lot)
            .where(
                Lot.id == lot_id,
                Lot.status == LotStatus.active.value,
                Lot.current_price == read_price,
                Lot.closing_time > now,
            )
            .values(
                current_price=amount,
                total_bids=Lot.total_bids + 1,
                unique_bidders=Lot.unique_bidders + (1 if first_time else 0),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            conflict = self._conflict_after_lost_race(db, lot_id, now)
            logger.info(
                "bid lost race",
                extra={"lot_id": str(lot_id), "bidder_id": bidder_id,
                       "amount": str(amount), "reason": conflict.reason},
            )
            raise conflict

        bid_id = uuid.uuid4()
        bidder_name = bidder.display_name
        bid = LotBid(
            id=bid_id,
            lot_id=lot_id,
            seq=read_total + 1,
            bidder_id=bidder_id,
            bidder_name=bidder_name,
            amount=amount,
            placed_at=now,
        )
        db.add(bid)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise self._conflict_after_lost_race(db, lot_id, now)

        logger.info(
            "bid accepted",
            extra={"lot_id": str(lot_id), "bidder_id": bidder_id,
                   "amount": str(amount), "seq": read_total + 1},
        )
        return BidReceipt(
            lot_id=lot_id,
            bid_id=bid_id,
            seq=read_total + 1,
            bidder_id=bidder_id,
            bidder_name=bidder_name,
            amount=amount,
            placed_at=now,
            current_price=amount,
            total_bids=read_total + 1,
            unique_bidders=read_unique + (1 if first_time else 0),
        )

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------

    def list_bids(self, db: Session, lot_id: uuid.UUID) -> List[LotBid]:
        return list(
            db.execute(
                select(LotBid).where(LotBid.lot_id == lot_id).order_by(LotBid.seq)
            ).scalars().all()
        )
