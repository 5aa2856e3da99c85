# agri_auction/services/participant_directory.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from agri_auction.core.clock import Clock, utc_now
from agri_auction.core.errors import NotFoundError, ValidationError
from agri_auction.models.enums import BuyerType, ParticipantRole
from agri_auction.models.participant import Participant


def contact_snapshot(p: Optional[Participant]) -> Dict[str, Any]:
    """
    Reachable contact details, copied by value into lot outcomes and history.
    """
    if p is None:
        return {}
    return {
        "participant_id": p.participant_id,
        "name": p.display_name,
        "email": p.email,
        "phone": p.phone,
        "address": {
            "state": p.state,
            "district": p.district,
            "city": p.city,
            "pinCode": p.pin_code,
        },
    }


class ParticipantDirectory:
    def __init__(self, clock: Clock = utc_now):
        self.clock = clock

    # ---------------------------
    # READS
    # ---------------------------

    def get(self, db: Session, participant_id: str) -> Optional[Participant]:
        return db.execute(
            select(Participant).where(Participant.participant_id == participant_id)
        ).scalar_one_or_none()

    def require(
        self,
        db: Session,
        participant_id: str,
        role: Optional[ParticipantRole] = None,
    ) -> Participant:
        p = self.get(db, participant_id)
        if not p or (role is not None and p.role != role.value):
            label = role.value.capitalize() if role else "Participant"
            raise NotFoundError(f"{label} {participant_id} not found.")
        return p

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def upsert(
        self,
        db: Session,
        *,
        participant_id: str,
        role: ParticipantRole,
        display_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        state: Optional[str] = None,
        district: Optional[str] = None,
        city: Optional[str] = None,
        pin_code: Optional[str] = None,
        buyer_type: Optional[BuyerType] = None,
        max_bid_limit: Optional[Decimal] = None,
    ) -> Participant:
        if not participant_id or not display_name:
            raise ValidationError("participant_id and display_name are required.")
        role = ParticipantRole(role)
        if role == ParticipantRole.FARMER and (buyer_type is not None or max_bid_limit is not None):
            raise ValidationError("buyer_type and max_bid_limit apply to buyers only.")
        if max_bid_limit is not None and max_bid_limit <= 0:
            raise ValidationError("max_bid_limit must be positive.")
        if role == ParticipantRole.BUYER and buyer_type is None:
            buyer_type = BuyerType.COMMERCIAL

        now = self.clock()
        row = self.get(db, participant_id)
        if not row:
            row = Participant(participant_id=participant_id, created_at=now)
            db.add(row)

        row.role = role.value
        row.display_name = display_name
        row.email = email
        row.phone = phone
        row.state = state
        row.district = district
        row.city = city
        row.pin_code = pin_code
        row.buyer_type = BuyerType(buyer_type).value if buyer_type else None
        row.max_bid_limit = max_bid_limit
        row.updated_at = now

        db.commit()
        db.refresh(row)
        return row
