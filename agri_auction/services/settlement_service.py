# agri_auction/services/settlement_service.py
from __future__ import annotations

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from agri_auction.core.clock import Clock, utc_now
from agri_auction.core.errors import ConflictError, NotFoundError
from agri_auction.core.lot_states import is_terminal, require_transition
from agri_auction.models.enums import LotStatus
from agri_auction.models.lot import Lot
from agri_auction.models.lot_bid import LotBid
from agri_auction.services.participant_directory import ParticipantDirectory, contact_snapshot

logger = logging.getLogger(__name__)


def determine_winner(bids: Sequence[LotBid]) -> Optional[LotBid]:
    """
    Highest amount wins; equal amounts fall back to the earliest bid.

    The ledger only accepts strictly increasing amounts, so the last bid is
    always the answer. An exact tie means that invariant was broken.
    """
    if not bids:
        return None

    ordered = sorted(bids, key=lambda b: (-b.amount, b.placed_at, b.seq))
    winner = ordered[0]
    if len(ordered) > 1 and ordered[1].amount == winner.amount:
        logger.error(
            "tied top bids on lot; ledger invariant violated",
            extra={"lot_id": str(winner.lot_id), "amount": str(winner.amount)},
        )
    return winner


class SettlementService:
    """
    Computes the outcome of a claimed lot and writes it once.

    Input is a lot the claim already moved to `ended`. The write is guarded on
    `settled_at IS NULL`, so re-running after a crash returns the stored
    outcome instead of writing a second one.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        directory: Optional[ParticipantDirectory] = None,
    ):
        self.clock = clock
        self.directory = directory or ParticipantDirectory(clock=clock)

    def _get_lot(self, db: Session, lot_id: uuid.UUID) -> Lot:
        lot = db.execute(
            select(Lot).options(selectinload(Lot.bids)).where(Lot.id == lot_id)
        ).scalar_one_or_none()
        if not lot:
            raise NotFoundError(f"Lot {lot_id} not found.")
        return lot

    def settle(self, db: Session, lot_id: uuid.UUID) -> Lot:
        lot = self._get_lot(db, lot_id)

        if lot.settled_at is not None:
            return lot
        if not is_terminal(lot.status):
            raise ConflictError(
                f"Lot {lot_id} is still {lot.status}; claim it before settling.",
                reason=ConflictError.INVALID_TRANSITION,
            )
        if lot.status == LotStatus.cancelled.value:
            # cancellation has no outcome to compute
            return self._mark_settled(db, lot, values={})
        if lot.status != LotStatus.ended.value:
            raise ConflictError(
                f"Lot {lot_id} is {lot.status} without a settlement mark.",
                reason=ConflictError.INVALID_TRANSITION,
            )

        winner = determine_winner(lot.bids)
        if winner is None:
            lot = self._mark_settled(db, lot, values={})
            logger.info("lot settled without bids", extra={"lot_id": str(lot_id)})
            return lot

        seller = self.directory.get(db, lot.seller_id)
        buyer = self.directory.get(db, winner.bidder_id)
        if buyer is None:
            logger.warning(
                "winner missing from directory; contact snapshot limited to bid name",
                extra={"lot_id": str(lot_id), "winner_id": winner.bidder_id},
            )

        final = require_transition(lot.status, LotStatus.completed)
        lot = self._mark_settled(
            db,
            lot,
            values={
                "status": final.value,
                "winner_id": winner.bidder_id,
                "winner_name": winner.bidder_name,
                "winning_amount": winner.amount,
                "outcome_json": {
                    "seller_contact": contact_snapshot(seller) or {"name": lot.seller_name},
                    "winner_contact": contact_snapshot(buyer) or {"name": winner.bidder_name},
                },
            },
        )
        logger.info(
            "lot settled",
            extra={"lot_id": str(lot_id), "winner_id": lot.winner_id,
                   "winning_amount": str(lot.winning_amount)},
        )
        return lot

    def _mark_settled(self, db: Session, lot: Lot, *, values: dict) -> Lot:
        now = self.clock()
        lot_id = lot.id
        result = db.execute(
            update(Lot)
            .where(
                Lot.id == lot_id,
                Lot.status == lot.status,
                Lot.settled_at.is_(None),
            )
            .values(settled_at=now, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            logger.info("settlement already written elsewhere", extra={"lot_id": str(lot_id)})
        return self._get_lot(db, lot_id)
