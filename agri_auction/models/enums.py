# agri_auction/models/enums.py
from __future__ import annotations
from enum import Enum


class LotStatus(str, Enum):
    active = "active"
    ended = "ended"
    cancelled = "cancelled"
    completed = "completed"


class QuantityUnit(str, Enum):
    kg = "kg"
    quintal = "quintal"
    ton = "ton"
    piece = "piece"


class QualityGrade(str, Enum):
    PREMIUM = "Premium"
    GRADE_A = "Grade A"
    GRADE_B = "Grade B"
    STANDARD = "Standard"

    @property
    def rank(self) -> int:
        # higher is better
        return _QUALITY_RANK[self]

    @classmethod
    def at_least(cls, floor: "QualityGrade") -> list["QualityGrade"]:
        return [g for g in cls if g.rank >= floor.rank]


_QUALITY_RANK = {
    QualityGrade.PREMIUM: 4,
    QualityGrade.GRADE_A: 3,
    QualityGrade.GRADE_B: 2,
    QualityGrade.STANDARD: 1,
}


class ParticipantRole(str, Enum):
    FARMER = "farmer"
    BUYER = "buyer"


class BuyerType(str, Enum):
    COMMERCIAL = "commercial"
    PUBLIC = "public"


class HistoryRole(str, Enum):
    creator = "creator"
    bidder = "bidder"


class NotificationKind(str, Enum):
    LOT_COMPLETED = "lot_completed"
    LOT_NO_BIDS = "lot_no_bids"
    LOT_CANCELLED = "lot_cancelled"
    LOT_WON = "lot_won"
    LOT_LOST = "lot_lost"
