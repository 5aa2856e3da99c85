# agri_auction/services/lot_lifecycle.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from agri_auction.core.clock import Clock, ensure_utc, utc_now
from agri_auction.core.config import Settings, get_settings
from agri_auction.core.errors import AuthorizationError, ConflictError, NotFoundError
from agri_auction.core.lot_states import require_transition
from agri_auction.models.enums import LotStatus
from agri_auction.models.lot import Lot
from agri_auction.services.history_service import HistoryRecorder
from agri_auction.services.notification_service import NotificationDispatcher
from agri_auction.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)


class LotLifecycleService:
    """
    Terminal transitions of a lot and everything that follows them.

    Every move out of `active` is one guarded UPDATE (the claim). Whoever
    gets rowcount == 1 owns the lot's finalize pipeline:
    settle -> record history -> notify. Each step is idempotent, and
    `next_attempt_at` acts as a lease so a repair pass only resumes lots
    nobody is working on.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
        settlement: Optional[SettlementService] = None,
        history: Optional[HistoryRecorder] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.clock = clock
        self.settings = settings or get_settings()
        self.settlement = settlement or SettlementService(clock=clock)
        self.history = history or HistoryRecorder(clock=clock)
        self.dispatcher = dispatcher or NotificationDispatcher(clock=clock)

    # ---------------------------
    # helpers
    # ---------------------------

    def _lease_until(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.settings.finalize_lease_seconds)

    def _backoff(self, attempts: int) -> timedelta:
        base = self.settings.retry_backoff_base_seconds
        cap = self.settings.retry_backoff_max_seconds
        return timedelta(seconds=min(cap, base * (2 ** max(0, attempts - 1))))

    def _get_lot(self, db: Session, lot_id: uuid.UUID) -> Lot:
        lot = db.execute(select(Lot).where(Lot.id == lot_id)).scalar_one_or_none()
        if not lot:
            raise NotFoundError(f"Lot {lot_id} not found.")
        return lot

    def _guarded_move(
        self,
        db: Session,
        lot_id: uuid.UUID,
        target: LotStatus,
        *conditions,
    ) -> bool:
        now = self.clock()
        require_transition(LotStatus.active, target)
        result = db.execute(
            update(Lot)
            .where(Lot.id == lot_id, Lot.status == LotStatus.active.value, *conditions)
            .values(
                status=target.value,
                closed_at=now,
                next_attempt_at=self._lease_until(now),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            return False
        db.commit()
        return True

    def _seller_transition(
        self,
        db: Session,
        *,
        lot_id: uuid.UUID,
        seller_id: str,
        target: LotStatus,
    ) -> Lot:
        lot = self._get_lot(db, lot_id)
        if lot.seller_id != seller_id:
            raise AuthorizationError("Only the seller of this lot may do that.")
        require_transition(lot.status, target)

        now = self.clock()
        if now >= ensure_utc(lot.closing_time):
            raise ConflictError(
                f"Lot {lot_id} already passed its closing time.",
                reason=ConflictError.LOT_CLOSED,
            )
        if not self._guarded_move(db, lot_id, target, Lot.closing_time > now):
            raise ConflictError(
                f"Lot {lot_id} was closed by another actor.",
                reason=ConflictError.ALREADY_CLAIMED,
            )

        logger.info(
            "lot claimed by seller",
            extra={"lot_id": str(lot_id), "seller_id": seller_id, "status": target.value},
        )
        self.finalize(db, lot_id)
        return self._get_lot(db, lot_id)

    # ---------------------------
    # CLAIMS
    # ---------------------------

    def claim_expired(self, db: Session, lot_id: uuid.UUID) -> bool:
        """
        active -> ended for a lot past its closing time.
        True only for the single caller whose UPDATE matched the row.
        """
        won = self._guarded_move(db, lot_id, LotStatus.ended, Lot.closing_time <= self.clock())
        logger.info(
            "lot claim won" if won else "lot claim lost",
            extra={"lot_id": str(lot_id)},
        )
        return won

    def cancel_lot(self, db: Session, *, lot_id: uuid.UUID, seller_id: str) -> Lot:
        return self._seller_transition(db, lot_id=lot_id, seller_id=seller_id, target=LotStatus.cancelled)

    def close_lot_early(self, db: Session, *, lot_id: uuid.UUID, seller_id: str) -> Lot:
        return self._seller_transition(db, lot_id=lot_id, seller_id=seller_id, target=LotStatus.ended)

    def lease_for_repair(self, db: Session, lot_id: uuid.UUID) -> bool:
        now = self.clock()
        result = db.execute(
            update(Lot)
            .where(
                Lot.id == lot_id,
                Lot.status != LotStatus.active.value,
                or_(Lot.next_attempt_at.is_(None), Lot.next_attempt_at <= now),
                or_(
                    Lot.settled_at.is_(None),
                    Lot.recorded_at.is_(None),
                    Lot.notified_at.is_(None),
                ),
            )
            .values(next_attempt_at=self._lease_until(now), updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            return False
        db.commit()
        return True

    # ---------------------------
    # PIPELINE
    # ---------------------------

    def finalize(self, db: Session, lot_id: uuid.UUID) -> bool:
        """
        Resume the pipeline from its first incomplete step.
        Returns False when settlement or history failed (retry scheduled);
        undelivered notifications only schedule a retry.
        """
        try:
            lot = self.settlement.settle(db, lot_id)
            if lot.recorded_at is None:
                self.history.record(db, lot_id)
            report = self.dispatcher.dispatch(db, lot_id)
        except Exception as exc:
            db.rollback()
            logger.exception("lot finalize failed", extra={"lot_id": str(lot_id)})
            self._try_schedule_retry(db, lot_id, exc)
            return False

        if not report.complete:
            self._try_schedule_retry(
                db, lot_id, RuntimeError(f"undelivered notifications: {', '.join(report.failed)}")
            )
            return True

        now = self.clock()
        db.execute(
            update(Lot)
            .where(Lot.id == lot_id)
            .values(next_attempt_at=None, last_error=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return True

    def _try_schedule_retry(self, db: Session, lot_id: uuid.UUID, exc: BaseException) -> None:
        # the claim lease on next_attempt_at still lapses; the repair pass resumes the lot
        try:
            self._schedule_retry(db, lot_id, exc)
        except Exception:
            db.rollback()
            logger.exception("lot finalize retry not recorded", extra={"lot_id": str(lot_id)})

    def _schedule_retry(self, db: Session, lot_id: uuid.UUID, exc: BaseException) -> None:
        lot = self._get_lot(db, lot_id)
        attempts = (lot.finalize_attempts or 0) + 1
        now = self.clock()
        delay = self._backoff(attempts)
        db.execute(
            update(Lot)
            .where(Lot.id == lot_id)
            .values(
                finalize_attempts=attempts,
                next_attempt_at=now + delay,
                last_error=str(exc)[:1024],
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        logger.warning(
            "lot finalize retry scheduled",
            extra={"lot_id": str(lot_id), "attempts": attempts,
                   "retry_in_seconds": int(delay.total_seconds())},
        )
