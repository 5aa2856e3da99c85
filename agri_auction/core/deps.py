# agri_auction/core/deps.py
from typing import NoReturn

from fastapi import Depends, HTTPException

from agri_auction.core.clock import Clock, utc_now
from agri_auction.core.config import Settings, get_settings
from agri_auction.core.errors import AuctionError, ConflictError
from agri_auction.services.bid_ledger import BidLedgerService
from agri_auction.services.history_service import HistoryRecorder
from agri_auction.services.lot_lifecycle import LotLifecycleService
from agri_auction.services.lot_registry import LotRegistryService
from agri_auction.services.notification_service import FeedNotificationSender
from agri_auction.services.participant_directory import ParticipantDirectory


def get_clock() -> Clock:
    return utc_now


def get_directory(clock: Clock = Depends(get_clock)) -> ParticipantDirectory:
    return ParticipantDirectory(clock=clock)


def get_registry(
    clock: Clock = Depends(get_clock),
    directory: ParticipantDirectory = Depends(get_directory),
) -> LotRegistryService:
    return LotRegistryService(clock=clock, directory=directory)


def get_ledger(
    clock: Clock = Depends(get_clock),
    directory: ParticipantDirectory = Depends(get_directory),
) -> BidLedgerService:
    return BidLedgerService(clock=clock, directory=directory)


def get_lifecycle(
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> LotLifecycleService:
    return LotLifecycleService(clock=clock, settings=settings)


def get_history(clock: Clock = Depends(get_clock)) -> HistoryRecorder:
    return HistoryRecorder(clock=clock)


def get_feed() -> FeedNotificationSender:
    return FeedNotificationSender()


def raise_http(exc: AuctionError) -> NoReturn:
    """Map a service error onto the HTTP status it carries."""
    if isinstance(exc, ConflictError):
        raise HTTPException(
            status_code=exc.status_code,
            detail={
                "message": exc.message,
                "reason": exc.reason,
                "current_price": str(exc.current_price) if exc.current_price is not None else None,
            },
        ) from exc
    raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
