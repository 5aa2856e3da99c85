# agri_auction/core/errors.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional


class AuctionError(Exception):
    """Base class for every error the auction services raise on purpose."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AuctionError, ValueError):
    """Malformed input. Reported to the caller, never retried automatically."""

    status_code = 400


class NotFoundError(AuctionError, LookupError):
    status_code = 404


class ConflictError(AuctionError, ValueError):
    """
    The lot moved on under the caller: stale price, lot no longer active,
    or a guarded status transition that lost the race.
    """

    status_code = 409

    STALE_PRICE = "stale_price"
    LOT_CLOSED = "lot_closed"
    INVALID_TRANSITION = "invalid_transition"
    ALREADY_CLAIMED = "already_claimed"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        current_price: Optional[Decimal] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.current_price = current_price


class AuthorizationError(AuctionError, PermissionError):
    """Self-bidding, ineligible bidder, or acting on someone else's lot."""

    status_code = 403
