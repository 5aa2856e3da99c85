from datetime import timedelta

import pytest

from agri_auction.core.errors import ConflictError
from agri_auction.models.enums import NotificationKind
from agri_auction.models.lot import Lot
from agri_auction.services.bid_ledger import BidLedgerService
from agri_auction.services.history_service import HistoryRecorder
from agri_auction.services.lot_lifecycle import LotLifecycleService
from agri_auction.services.notification_service import (
    FeedNotificationSender,
    NotificationDispatcher,
)
from agri_auction.services.settlement_service import SettlementService


class FlakySender(FeedNotificationSender):
    """Feed sender that refuses some recipients until told otherwise."""

    def __init__(self, broken=()):
        self.broken = set(broken)

    def send(self, db, message):
        if message.recipient_id in self.broken:
            raise ConnectionError(f"gateway down for {message.recipient_id}")
        super().send(db, message)


@pytest.fixture
def recorded_lot(db, clock, settings, participants, make_lot):
    lot = make_lot(closing_time=clock() + timedelta(minutes=10))
    ledger = BidLedgerService(clock=clock, directory=participants)
    ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5200")
    ledger.place_bid(db, lot_id=lot.id, bidder_id="B", amount="5500")
    clock.advance(minutes=10)
    LotLifecycleService(clock=clock, settings=settings).claim_expired(db, lot.id)
    SettlementService(clock=clock, directory=participants).settle(db, lot.id)
    HistoryRecorder(clock=clock).record(db, lot.id)
    return lot.id


def test_dispatch_sends_one_message_per_participant(db, clock, recorded_lot):
    feed = FeedNotificationSender()
    report = NotificationDispatcher(sender=feed, clock=clock).dispatch(db, recorded_lot)

    assert report.complete
    assert sorted(report.delivered) == ["A", "B", "F1"]

    kinds = {n.recipient_id: n.kind for n in (
        feed.list_for_recipient(db, "F1")
        + feed.list_for_recipient(db, "A")
        + feed.list_for_recipient(db, "B")
    )}
    assert kinds == {
        "F1": NotificationKind.LOT_COMPLETED.value,
        "B": NotificationKind.LOT_WON.value,
        "A": NotificationKind.LOT_LOST.value,
    }

    won = feed.list_for_recipient(db, "B")[0]
    assert "9800000001" in won.message  # seller phone
    seller_note = feed.list_for_recipient(db, "F1")[0]
    assert "Bharat Foods" in seller_note.message

    db.expire_all()
    assert db.get(Lot, recorded_lot).notified_at is not None


def test_dispatch_is_idempotent(db, clock, recorded_lot):
    feed = FeedNotificationSender()
    dispatcher = NotificationDispatcher(sender=feed, clock=clock)
    dispatcher.dispatch(db, recorded_lot)
    again = dispatcher.dispatch(db, recorded_lot)

    assert again.delivered == []
    assert sorted(again.skipped) == ["A", "B", "F1"]
    assert len(feed.list_for_recipient(db, "B")) == 1


def test_one_failed_recipient_does_not_block_others(db, clock, recorded_lot):
    sender = FlakySender(broken={"A"})
    dispatcher = NotificationDispatcher(sender=sender, clock=clock)

    report = dispatcher.dispatch(db, recorded_lot)

    assert not report.complete
    assert report.failed == ["A"]
    assert sorted(report.delivered) == ["B", "F1"]
    db.expire_all()
    lot = db.get(Lot, recorded_lot)
    assert lot.notified_at is None
    # history untouched
    assert lot.recorded_at is not None

    sender.broken.clear()
    retry = dispatcher.dispatch(db, recorded_lot)
    assert retry.delivered == ["A"]
    assert retry.complete
    db.expire_all()
    assert db.get(Lot, recorded_lot).notified_at is not None


def test_dispatch_before_history_is_refused(db, clock, make_lot):
    lot = make_lot()
    with pytest.raises(ConflictError):
        NotificationDispatcher(clock=clock).dispatch(db, lot.id)


def test_unread_filter(db, clock, recorded_lot):
    feed = FeedNotificationSender()
    NotificationDispatcher(sender=feed, clock=clock).dispatch(db, recorded_lot)

    note = feed.list_for_recipient(db, "A")[0]
    note.is_read = True
    db.commit()

    assert feed.list_for_recipient(db, "A", unread_only=True) == []
    assert len(feed.list_for_recipient(db, "A")) == 1
