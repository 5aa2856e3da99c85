# agri_auction/services/notification_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Set

from sqlalchemy import select, update, desc
from sqlalchemy.orm import Session

from agri_auction.core.clock import Clock, utc_now
from agri_auction.core.errors import ConflictError, NotFoundError
from agri_auction.models.enums import HistoryRole, LotStatus, NotificationKind
from agri_auction.models.history_record import HistoryRecord
from agri_auction.models.lot import Lot
from agri_auction.models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutcomeMessage:
    recipient_id: str
    lot_id: uuid.UUID
    kind: NotificationKind
    title: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DispatchReport:
    lot_id: uuid.UUID
    delivered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class NotificationSender(Protocol):
    def already_sent(self, db: Session, lot_id: uuid.UUID) -> Set[str]: ...

    def send(self, db: Session, message: OutcomeMessage) -> None: ...


class FeedNotificationSender:
    """Delivers into the in-app notification feed (notifications table)."""

    def already_sent(self, db: Session, lot_id: uuid.UUID) -> Set[str]:
        return set(
            db.execute(
                select(Notification.recipient_id).where(Notification.lot_id == lot_id)
            ).scalars().all()
        )

    def send(self, db: Session, message: OutcomeMessage) -> None:
        db.add(
            Notification(
                id=uuid.uuid4(),
                recipient_id=message.recipient_id,
                lot_id=message.lot_id,
                kind=message.kind.value,
                title=message.title,
                message=message.message,
                metadata_json=message.metadata,
                is_read=False,
            )
        )
        db.commit()

    def list_for_recipient(
        self, db: Session, recipient_id: str, *, unread_only: bool = False
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        return list(db.execute(stmt.order_by(desc(Notification.created_at))).scalars().all())


def _money(amount: Optional[Decimal]) -> str:
    return f"₹{amount:,}" if amount is not None else "-"


def _reach(contact: Optional[Dict[str, Any]]) -> str:
    if not contact:
        return "not available"
    parts = [p for p in (contact.get("phone"), contact.get("email")) if p]
    return ", ".join(parts) or "not available"


class NotificationDispatcher:
    """
    Sends one outcome message per history record of a lot.

    Best effort: every recipient is delivered on its own, a failure is logged
    and left for the next repair pass. Settlement and history are already
    committed when this runs and are never touched here.
    """

    def __init__(self, sender: Optional[NotificationSender] = None, clock: Clock = utc_now):
        self.sender = sender or FeedNotificationSender()
        self.clock = clock

    def compose(self, lot: Lot, record: HistoryRecord) -> OutcomeMessage:
        commodity = f"{lot.commodity_name} ({lot.quantity} {lot.unit})"
        outcome = lot.outcome_json or {}
        meta: Dict[str, Any] = {
            "lot_id": str(lot.id),
            "commodity_name": lot.commodity_name,
            "final_status": lot.status,
            "winner_id": lot.winner_id,
            "winner_name": lot.winner_name,
            "winning_amount": str(lot.winning_amount) if lot.winning_amount is not None else None,
        }

        if lot.status == LotStatus.cancelled.value:
            kind = NotificationKind.LOT_CANCELLED
            title = "Lot cancelled"
            if record.role == HistoryRole.creator.value:
                text = f"Your lot of {commodity} was cancelled."
            else:
                text = f"The lot of {commodity} was cancelled by the seller."

        elif record.role == HistoryRole.creator.value:
            if lot.winner_id:
                winner_contact = outcome.get("winner_contact")
                kind = NotificationKind.LOT_COMPLETED
                title = "Lot completed - winner declared"
                text = (
                    f"Your lot of {commodity} has ended. Winner: {lot.winner_name} "
                    f"at {_money(lot.winning_amount)}. Contact: {_reach(winner_contact)}"
                )
                meta["contact"] = winner_contact
            else:
                kind = NotificationKind.LOT_NO_BIDS
                title = "Lot ended - no bids"
                text = f"Your lot of {commodity} has ended with no bids received."

        elif record.is_winner:
            seller_contact = outcome.get("seller_contact")
            kind = NotificationKind.LOT_WON
            title = "You won the lot"
            text = (
                f"You won the lot of {commodity} at {_money(lot.winning_amount)}. "
                f"Seller contact: {_reach(seller_contact)}"
            )
            meta["contact"] = seller_contact

        else:
            kind = NotificationKind.LOT_LOST
            title = "Lot ended"
            text = (
                f"The lot of {commodity} has ended. You did not win; "
                f"final amount was {_money(lot.winning_amount)}."
            )

        meta["is_winner"] = record.is_winner
        return OutcomeMessage(
            recipient_id=record.participant_id,
            lot_id=lot.id,
            kind=kind,
            title=title,
            message=text,
            metadata=meta,
        )

    def dispatch(self, db: Session, lot_id: uuid.UUID) -> DispatchReport:
        lot = db.get(Lot, lot_id)
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found.")
        if lot.recorded_at is None:
            raise ConflictError(
                f"Lot {lot_id} has no recorded history to notify about.",
                reason=ConflictError.INVALID_TRANSITION,
            )

        records = list(
            db.execute(
                select(HistoryRecord).where(HistoryRecord.lot_id == lot_id)
            ).scalars().all()
        )
        messages = [self.compose(lot, r) for r in records]
        report = DispatchReport(lot_id=lot_id)
        sent = self.sender.already_sent(db, lot_id)

        for msg in messages:
            if msg.recipient_id in sent:
                report.skipped.append(msg.recipient_id)
                continue
            try:
                self.sender.send(db, msg)
            except Exception:
                db.rollback()
                logger.exception(
                    "notification delivery failed",
                    extra={"lot_id": str(lot_id), "recipient_id": msg.recipient_id,
                           "kind": msg.kind.value},
                )
                report.failed.append(msg.recipient_id)
                continue
            report.delivered.append(msg.recipient_id)

        if report.complete:
            now = self.clock()
            db.execute(
                update(Lot)
                .where(Lot.id == lot_id, Lot.notified_at.is_(None))
                .values(notified_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()

        logger.info(
            "notifications dispatched",
            extra={"lot_id": str(lot_id), "delivered": len(report.delivered),
                   "skipped": len(report.skipped), "failed": len(report.failed)},
        )
        return report
