# agri_auction/services/history_service.py
from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from agri_auction.core.clock import Clock, utc_now
from agri_auction.core.errors import ConflictError, NotFoundError, ValidationError
from agri_auction.models.enums import HistoryRole, LotStatus
from agri_auction.models.history_record import HistoryRecord
from agri_auction.models.lot import Lot
from agri_auction.models.lot_bid import LotBid

logger = logging.getLogger(__name__)

OUTCOME_FILTERS = ("won", "lost", "no_winner")


def _bid_entry(b: LotBid) -> Dict[str, Any]:
    return {
        "seq": b.seq,
        "amount": str(b.amount),
        "placed_at": b.placed_at.isoformat() if b.placed_at else None,
    }


class HistoryRecorder:
    """
    Writes the per-participant outcome of a settled lot.

    Upsert keyed by (lot_id, participant_id): running it twice for the same
    lot yields the same rows, which is what lets the repair pass retry it.
    """

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _get_lot(self, db: Session, lot_id: uuid.UUID) -> Lot:
        lot = db.execute(
            select(Lot).options(selectinload(Lot.bids)).where(Lot.id == lot_id)
        ).scalar_one_or_none()
        if not lot:
            raise NotFoundError(f"Lot {lot_id} not found.")
        return lot

    def _build_rows(self, lot: Lot) -> List[Dict[str, Any]]:
        outcome = lot.outcome_json or {}
        has_winner = lot.winner_id is not None
        base = {
            "commodity_name": lot.commodity_name,
            "quantity": lot.quantity,
            "unit": lot.unit,
            "quality": lot.quality,
            "final_status": lot.status,
            "winner_name": lot.winner_name,
            "winning_amount": lot.winning_amount,
            "lot_closed_at": lot.closed_at,
        }

        rows = [
            dict(
                base,
                participant_id=lot.seller_id,
                participant_name=lot.seller_name,
                role=HistoryRole.creator.value,
                my_bids_json=[],
                my_highest_bid=None,
                is_winner=None,
                contact_exchanged=has_winner,
                contact_details_json=outcome.get("winner_contact") if has_winner else None,
            )
        ]

        by_bidder: "OrderedDict[str, List[LotBid]]" = OrderedDict()
        for b in lot.bids:
            by_bidder.setdefault(b.bidder_id, []).append(b)

        for bidder_id, bids in by_bidder.items():
            is_winner = has_winner and bidder_id == lot.winner_id
            rows.append(
                dict(
                    base,
                    participant_id=bidder_id,
                    participant_name=bids[-1].bidder_name,
                    role=HistoryRole.bidder.value,
                    my_bids_json=[_bid_entry(b) for b in bids],
                    my_highest_bid=max(b.amount for b in bids),
                    is_winner=is_winner,
                    contact_exchanged=is_winner,
                    contact_details_json=outcome.get("seller_contact") if is_winner else None,
                )
            )
        return rows

    def _upsert_all(self, db: Session, lot_id: uuid.UUID, rows: List[Dict[str, Any]]) -> None:
        now = self.clock()
        existing = {
            r.participant_id: r
            for r in db.execute(
                select(HistoryRecord).where(HistoryRecord.lot_id == lot_id)
            ).scalars().all()
        }
        for values in rows:
            rec = existing.get(values["participant_id"])
            if rec is None:
                db.add(HistoryRecord(id=uuid.uuid4(), lot_id=lot_id, recorded_at=now, **values))
            else:
                for k, v in values.items():
                    setattr(rec, k, v)

        db.execute(
            update(Lot)
            .where(Lot.id == lot_id, Lot.recorded_at.is_(None))
            .values(recorded_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()

    # ─────────────────────────────────────────────
    # Write
    # ─────────────────────────────────────────────

    def record(self, db: Session, lot_id: uuid.UUID) -> List[HistoryRecord]:
        lot = self._get_lot(db, lot_id)
        if lot.settled_at is None:
            raise ConflictError(
                f"Lot {lot_id} has no settled outcome to record.",
                reason=ConflictError.INVALID_TRANSITION,
            )

        rows = self._build_rows(lot)
        try:
            self._upsert_all(db, lot_id, rows)
        except IntegrityError:
            # another worker inserted first; second pass turns the inserts into updates
            db.rollback()
            self._upsert_all(db, lot_id, rows)

        logger.info(
            "history recorded",
            extra={"lot_id": str(lot_id), "participants": len(rows)},
        )
        return self.list_for_lot(db, lot_id)

    # ─────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────

    def list_for_lot(self, db: Session, lot_id: uuid.UUID) -> List[HistoryRecord]:
        if db.get(Lot, lot_id) is None:
            raise NotFoundError(f"Lot {lot_id} not found.")
        return list(
            db.execute(
                select(HistoryRecord)
                .where(HistoryRecord.lot_id == lot_id)
                .order_by(HistoryRecord.role.desc(), HistoryRecord.participant_id)
            ).scalars().all()
        )

    def list_for_participant(
        self,
        db: Session,
        participant_id: str,
        *,
        role: Optional[HistoryRole] = None,
        status: Optional[LotStatus] = None,
        outcome: Optional[str] = None,
    ) -> List[HistoryRecord]:
        stmt = select(HistoryRecord).where(HistoryRecord.participant_id == participant_id)
        if role:
            stmt = stmt.where(HistoryRecord.role == HistoryRole(role).value)
        if status:
            stmt = stmt.where(HistoryRecord.final_status == LotStatus(status).value)
        if outcome:
            if outcome not in OUTCOME_FILTERS:
                raise ValidationError(f"outcome must be one of: {', '.join(OUTCOME_FILTERS)}.")
            if outcome == "won":
                stmt = stmt.where(HistoryRecord.is_winner.is_(True))
            elif outcome == "lost":
                stmt = stmt.where(
                    HistoryRecord.is_winner.is_(False),
                    HistoryRecord.winner_name.is_not(None),
                )
            else:
                stmt = stmt.where(HistoryRecord.winner_name.is_(None))

        return list(db.execute(stmt.order_by(desc(HistoryRecord.recorded_at))).scalars().all())
