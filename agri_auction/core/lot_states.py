# agri_auction/core/lot_states.py
from __future__ import annotations

from typing import Dict, FrozenSet

from agri_auction.core.errors import ConflictError
from agri_auction.models.enums import LotStatus

ALLOWED_STATUS_TRANSITIONS: Dict[LotStatus, FrozenSet[LotStatus]] = {
    LotStatus.active: frozenset({LotStatus.ended, LotStatus.cancelled}),
    # outcome fill after a claim that found a winner
    LotStatus.ended: frozenset({LotStatus.completed}),
    LotStatus.cancelled: frozenset(),
    LotStatus.completed: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[LotStatus] = frozenset(
    {LotStatus.ended, LotStatus.cancelled, LotStatus.completed}
)


def can_transition(current: LotStatus | str, target: LotStatus | str) -> bool:
    return LotStatus(target) in ALLOWED_STATUS_TRANSITIONS[LotStatus(current)]


def require_transition(current: LotStatus | str, target: LotStatus | str) -> LotStatus:
    """
    Single authority on lot status moves. Returns the target status,
    raises ConflictError for anything outside the table.
    """
    src, dst = LotStatus(current), LotStatus(target)
    if dst not in ALLOWED_STATUS_TRANSITIONS[src]:
        raise ConflictError(
            f"Lot cannot move from {src.value} to {dst.value}.",
            reason=ConflictError.INVALID_TRANSITION,
        )
    return dst


def is_terminal(status: LotStatus | str) -> bool:
    return LotStatus(status) in TERMINAL_STATUSES
