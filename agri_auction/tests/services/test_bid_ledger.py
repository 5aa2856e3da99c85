import random
import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from agri_auction.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from agri_auction.models.enums import ParticipantRole
from agri_auction.models.lot import Lot
from agri_auction.services.bid_ledger import BidLedgerService


@pytest.fixture
def ledger(clock, participants):
    return BidLedgerService(clock=clock, directory=participants)


def test_first_bid_moves_price(db, ledger, make_lot):
    lot = make_lot()

    receipt = ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5200")

    assert receipt.current_price == Decimal("5200")
    assert receipt.seq == 1
    assert receipt.total_bids == 1
    assert receipt.unique_bidders == 1
    assert receipt.bidder_name == "Anand Traders"

    db.expire_all()
    stored = db.get(Lot, lot.id)
    assert stored.current_price == Decimal("5200")
    assert stored.total_bids == 1


def test_bid_equal_to_current_price_is_stale(db, ledger, make_lot):
    lot = make_lot()

    with pytest.raises(ConflictError) as exc:
        ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5000")

    assert exc.value.reason == ConflictError.STALE_PRICE
    assert exc.value.current_price == Decimal("5000")


def test_rejected_bid_changes_nothing(db, ledger, make_lot):
    lot = make_lot()
    ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5200")

    with pytest.raises(ConflictError) as exc:
        ledger.place_bid(db, lot_id=lot.id, bidder_id="B", amount="5100")
    assert exc.value.current_price == Decimal("5200")

    db.expire_all()
    stored = db.get(Lot, lot.id)
    assert stored.current_price == Decimal("5200")
    assert stored.total_bids == 1
    assert stored.unique_bidders == 1
    assert [b.amount for b in ledger.list_bids(db, lot.id)] == [Decimal("5200")]


def test_unique_bidders_counts_people_not_bids(db, ledger, make_lot):
    lot = make_lot()
    ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5100")
    ledger.place_bid(db, lot_id=lot.id, bidder_id="B", amount="5200")
    receipt = ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5300")

    assert receipt.total_bids == 3
    assert receipt.unique_bidders == 2
    assert [b.seq for b in ledger.list_bids(db, lot.id)] == [1, 2, 3]


def test_bid_at_closing_time_is_rejected(db, ledger, make_lot, clock):
    lot = make_lot(closing_time=clock() + timedelta(minutes=10))
    clock.advance(minutes=10)

    with pytest.raises(ConflictError) as exc:
        ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="6000")
    assert exc.value.reason == ConflictError.LOT_CLOSED


@pytest.mark.parametrize("amount", ["0", "-10", "abc"])
def test_non_positive_amount_is_invalid(db, ledger, make_lot, amount):
    lot = make_lot()
    with pytest.raises(ValidationError):
        ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount=amount)


def test_unknown_lot(db, ledger, participants):
    import uuid

    with pytest.raises(NotFoundError):
        ledger.place_bid(db, lot_id=uuid.uuid4(), bidder_id="A", amount="10")


def test_seller_cannot_bid_on_own_lot(db, ledger, make_lot):
    lot = make_lot()
    with pytest.raises(AuthorizationError):
        ledger.place_bid(db, lot_id=lot.id, bidder_id="F1", amount="6000")


def test_public_buyer_cannot_bid(db, ledger, make_lot):
    lot = make_lot()
    with pytest.raises(AuthorizationError):
        ledger.place_bid(db, lot_id=lot.id, bidder_id="P", amount="6000")


def test_unknown_bidder(db, ledger, make_lot):
    lot = make_lot()
    with pytest.raises(NotFoundError):
        ledger.place_bid(db, lot_id=lot.id, bidder_id="ghost", amount="6000")


def test_farmer_cannot_bid_on_other_lots(db, ledger, participants, make_lot):
    participants.upsert(db, participant_id="F2", role=ParticipantRole.FARMER, display_name="Sita Devi")
    lot = make_lot()
    with pytest.raises(AuthorizationError):
        ledger.place_bid(db, lot_id=lot.id, bidder_id="F2", amount="6000")


def test_max_bid_limit(db, ledger, participants, make_lot):
    participants.upsert(
        db,
        participant_id="A",
        role=ParticipantRole.BUYER,
        display_name="Anand Traders",
        max_bid_limit=Decimal("5500"),
    )
    lot = make_lot()

    ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5500")
    with pytest.raises(ValidationError):
        ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5600")


def test_concurrent_bids_serialize(session_factory, clock, participants, make_lot):
    """
    Many threads racing on one lot: the final price is the highest accepted
    amount, accepted amounts strictly increase in seq order, and every
    rejection is a conflict (never a silent overwrite).
    """
    lot = make_lot()
    lot_id = lot.id
    ledger = BidLedgerService(clock=clock, directory=participants)

    amounts = [Decimal(5001 + i * 7) for i in range(24)]
    random.Random(42).shuffle(amounts)
    bidders = ["A", "B", "C"]

    accepted, rejected, errors = [], [], []
    lock = threading.Lock()
    start = threading.Barrier(len(amounts))

    def worker(i, amount):
        session = session_factory()
        try:
            start.wait()
            receipt = ledger.place_bid(session, lot_id=lot_id, bidder_id=bidders[i % 3], amount=amount)
            with lock:
                accepted.append(receipt.amount)
        except ConflictError as e:
            with lock:
                rejected.append((amount, e.reason))
        except Exception as e:  # surfaced below
            with lock:
                errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, a)) for i, a in enumerate(amounts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert accepted
    assert len(accepted) + len(rejected) == len(amounts)
    assert all(reason == ConflictError.STALE_PRICE for _, reason in rejected)

    session = session_factory()
    try:
        stored = session.get(Lot, lot_id)
        bids = ledger.list_bids(session, lot_id)
        assert stored.current_price == max(accepted)
        assert stored.total_bids == len(accepted) == len(bids)
        assert [b.seq for b in bids] == list(range(1, len(bids) + 1))
        seq_amounts = [b.amount for b in bids]
        assert all(a < b for a, b in zip(seq_amounts, seq_amounts[1:]))
        assert stored.unique_bidders == len({b.bidder_id for b in bids})
    finally:
        session.close()


@pytest.mark.parametrize("amount", ["5000.001", "5200.125", "1e-3"])
def test_sub_cent_amount_is_invalid(db, ledger, make_lot, amount):
    lot = make_lot()
    with pytest.raises(ValidationError):
        ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount=amount)

    db.expire_all()
    stored = db.get(Lot, lot.id)
    assert stored.current_price == Decimal("5000")
    assert stored.total_bids == 0


def test_cent_bids_keep_the_price_guard_matching(db, ledger, make_lot):
    lot = make_lot()

    first = ledger.place_bid(db, lot_id=lot.id, bidder_id="A", amount="5000.01")
    assert first.current_price == Decimal("5000.01")
    # trailing zeros beyond the cent are the same amount, not extra precision
    second = ledger.place_bid(db, lot_id=lot.id, bidder_id="B", amount="5000.0200")
    assert second.current_price == Decimal("5000.02")
    third = ledger.place_bid(db, lot_id=lot.id, bidder_id="C", amount="9000")
    assert third.total_bids == 3

    db.expire_all()
    assert db.get(Lot, lot.id).current_price == Decimal("9000")
