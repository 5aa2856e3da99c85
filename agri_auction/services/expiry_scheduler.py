"""Expiry sweep: claims lots past their closing time and runs their finalize pipeline."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timezone
from typing import Callable, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from agri_auction.core.clock import Clock, utc_now
from agri_auction.core.config import Settings, get_settings
from agri_auction.models.enums import LotStatus
from agri_auction.models.lot import Lot
from agri_auction.services.lot_lifecycle import LotLifecycleService

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


@dataclass
class SweepSummary:
    expired: int = 0
    claimed: int = 0
    lost: int = 0
    finalized: int = 0
    repaired: int = 0
    failed: int = 0


class ExpirySweeper:
    """
    One sweep = claim pass + repair pass.

    Safe to run from any number of processes at once: the claim is a guarded
    UPDATE and the repair pass takes a lease the same way, so no in-memory
    "already handled" state is needed.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
        lifecycle: Optional[LotLifecycleService] = None,
    ):
        self.clock = clock
        self.settings = settings or get_settings()
        self.lifecycle = lifecycle or LotLifecycleService(clock=clock, settings=self.settings)

    def find_expired(self, db: Session) -> List[uuid.UUID]:
        return list(
            db.execute(
                select(Lot.id)
                .where(
                    Lot.status == LotStatus.active.value,
                    Lot.closing_time <= self.clock(),
                )
                .order_by(Lot.closing_time)
                .limit(self.settings.sweep_batch_size)
            ).scalars().all()
        )

    def find_incomplete(self, db: Session) -> List[uuid.UUID]:
        """Claimed lots whose settle/record/notify chain stopped part-way."""
        return list(
            db.execute(
                select(Lot.id)
                .where(
                    Lot.status != LotStatus.active.value,
                    or_(
                        Lot.settled_at.is_(None),
                        Lot.recorded_at.is_(None),
                        Lot.notified_at.is_(None),
                    ),
                    or_(Lot.next_attempt_at.is_(None), Lot.next_attempt_at <= self.clock()),
                )
                .order_by(Lot.closed_at)
                .limit(self.settings.sweep_batch_size)
            ).scalars().all()
        )

    def _finalize(self, db: Session, lot_id: uuid.UUID) -> bool:
        try:
            return self.lifecycle.finalize(db, lot_id)
        except Exception:
            db.rollback()
            logger.exception("lot finalize errored", extra={"lot_id": str(lot_id)})
            return False

    def sweep(self, db: Session) -> SweepSummary:
        summary = SweepSummary()

        expired = self.find_expired(db)
        summary.expired = len(expired)
        for lot_id in expired:
            try:
                won = self.lifecycle.claim_expired(db, lot_id)
            except Exception:
                db.rollback()
                logger.exception("lot claim errored", extra={"lot_id": str(lot_id)})
                summary.failed += 1
                continue
            if not won:
                summary.lost += 1
                continue
            summary.claimed += 1
            if self._finalize(db, lot_id):
                summary.finalized += 1
            else:
                summary.failed += 1

        for lot_id in self.find_incomplete(db):
            try:
                if not self.lifecycle.lease_for_repair(db, lot_id):
                    continue
            except Exception:
                db.rollback()
                logger.exception("lot repair lease errored", extra={"lot_id": str(lot_id)})
                summary.failed += 1
                continue
            summary.repaired += 1
            if not self._finalize(db, lot_id):
                summary.failed += 1

        if summary.expired or summary.repaired or summary.failed:
            logger.info("expiry sweep finished", extra=vars(summary))
        return summary


def run_sweep_job(
    session_factory: Optional[Callable[[], Session]] = None,
    sweeper: Optional[ExpirySweeper] = None,
) -> Optional[SweepSummary]:
    """Scheduler entry point. Never raises; the next interval retries."""
    if session_factory is None:
        from agri_auction.db.session import SessionLocal

        session_factory = SessionLocal

    db = session_factory()
    try:
        return (sweeper or ExpirySweeper()).sweep(db)
    except Exception:
        logger.exception("expiry sweep failed")
        return None
    finally:
        db.close()


def init_scheduler(
    settings: Optional[Settings] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> BackgroundScheduler:
    """Start the background scheduler with the lot expiry sweep."""
    global _scheduler
    settings = settings or get_settings()
    sweeper = ExpirySweeper(settings=settings)

    _scheduler = BackgroundScheduler(timezone=timezone.utc)
    _scheduler.add_job(
        run_sweep_job,
        trigger=IntervalTrigger(seconds=settings.sweep_interval_seconds),
        kwargs={"session_factory": session_factory, "sweeper": sweeper},
        id="lot_expiry_sweep",
        name="Lot Expiry Sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    _scheduler.start()
    logger.info(
        "expiry scheduler started",
        extra={"interval_seconds": settings.sweep_interval_seconds},
    )
    return _scheduler


def shutdown_scheduler() -> None:
    """Gracefully shut down the scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("expiry scheduler shut down")


def scheduler_running() -> bool:
    return bool(_scheduler and _scheduler.running)
