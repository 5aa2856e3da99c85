# agri_auction/services/lot_registry.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.orm import Session, selectinload

from agri_auction.core.clock import Clock, ensure_utc, utc_now
from agri_auction.core.errors import NotFoundError, ValidationError
from agri_auction.models.enums import LotStatus, ParticipantRole, QualityGrade, QuantityUnit
from agri_auction.models.lot import Lot
from agri_auction.services.participant_directory import ParticipantDirectory

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "seller_id",
    "commodity_name",
    "quantity",
    "unit",
    "quality",
    "harvest_date",
    "expiry_date",
    "closing_time",
    "starting_price",
)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _decimal(value: Any, field: str, places: int) -> Decimal:
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number.")
    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number.")
    quantum = Decimal(1).scaleb(-places)
    try:
        rounded = d.quantize(quantum)
    except InvalidOperation:
        raise ValidationError(f"{field} is too large.")
    if d != rounded:
        raise ValidationError(f"{field} cannot have more than {places} decimal places.")
    return rounded


def _datetime(value: Any, field: str) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"{field} must be an ISO datetime.")
    if not isinstance(value, datetime):
        raise ValidationError(f"{field} must be a datetime.")
    return ensure_utc(value)


def _enum(enum_cls, value: Any, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}.")


class LotRegistryService:
    def __init__(
        self,
        clock: Clock = utc_now,
        directory: Optional[ParticipantDirectory] = None,
    ):
        self.clock = clock
        self.directory = directory or ParticipantDirectory(clock=clock)

    # ---------------------------
    # CREATE
    # ---------------------------

    def create_lot(self, db: Session, payload: Dict[str, Any]) -> Lot:
        """
        Rules:
        - every commodity / timing / pricing field present
        - quantity > 0, starting_price > 0
        - now < closing_time < expiry_date, harvest_date < expiry_date
        - seller registered as a farmer; name and (default) location come from the directory
        """
        missing = [f for f in REQUIRED_FIELDS if _blank(payload.get(f))]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

        quantity = _decimal(payload["quantity"], "quantity", 3)
        starting_price = _decimal(payload["starting_price"], "starting_price", 2)
        if quantity <= 0:
            raise ValidationError("quantity must be positive.")
        if starting_price <= 0:
            raise ValidationError("starting_price must be positive.")

        unit = _enum(QuantityUnit, payload["unit"], "unit")
        quality = _enum(QualityGrade, payload["quality"], "quality")

        harvest = _datetime(payload["harvest_date"], "harvest_date")
        expiry = _datetime(payload["expiry_date"], "expiry_date")
        closing = _datetime(payload["closing_time"], "closing_time")

        now = self.clock()
        if closing <= now:
            raise ValidationError("closing_time must be in the future.")
        if closing >= expiry:
            raise ValidationError("closing_time must be before expiry_date.")
        if expiry <= harvest:
            raise ValidationError("expiry_date must be after harvest_date.")

        seller = self.directory.require(db, payload["seller_id"], role=ParticipantRole.FARMER)
        location = payload.get("location") or {}

        lot = Lot(
            id=uuid.uuid4(),
            seller_id=seller.participant_id,
            seller_name=seller.display_name,
            commodity_name=str(payload["commodity_name"]).strip(),
            quantity=quantity,
            unit=unit.value,
            quality=quality.value,
            harvest_date=harvest,
            expiry_date=expiry,
            closing_time=closing,
            starting_price=starting_price,
            current_price=starting_price,
            status=LotStatus.active.value,
            state=location.get("state") or seller.state,
            district=location.get("district") or seller.district,
            city=location.get("city") or seller.city,
            total_bids=0,
            unique_bidders=0,
            created_at=now,
            updated_at=now,
        )
        db.add(lot)
        db.commit()
        db.refresh(lot)

        logger.info(
            "lot created",
            extra={
                "lot_id": str(lot.id),
                "seller_id": lot.seller_id,
                "commodity": lot.commodity_name,
                "closing_time": lot.closing_time.isoformat(),
            },
        )
        return lot

    # ---------------------------
    # READS
    # ---------------------------

    def get_lot(self, db: Session, lot_id: uuid.UUID) -> Lot:
        lot = db.execute(
            select(Lot).options(selectinload(Lot.bids)).where(Lot.id == lot_id)
        ).scalar_one_or_none()
        if not lot:
            raise NotFoundError(f"Lot {lot_id} not found.")
        return lot

    def list_active_lots(
        self,
        db: Session,
        *,
        state: Optional[str] = None,
        district: Optional[str] = None,
        city: Optional[str] = None,
        min_quality: Optional[QualityGrade] = None,
        limit: int = 50,
    ) -> List[Lot]:
        stmt = select(Lot).where(
            Lot.status == LotStatus.active.value,
            Lot.closing_time > self.clock(),
        )
        if state:
            stmt = stmt.where(Lot.state == state)
        if district:
            stmt = stmt.where(Lot.district == district)
        if city:
            stmt = stmt.where(Lot.city == city)
        if min_quality:
            grades = QualityGrade.at_least(QualityGrade(min_quality))
            stmt = stmt.where(Lot.quality.in_([g.value for g in grades]))

        stmt = stmt.order_by(desc(Lot.created_at)).limit(limit)
        return list(db.execute(stmt).scalars().all())

    def list_seller_lots(
        self,
        db: Session,
        seller_id: str,
        status: Optional[LotStatus] = None,
    ) -> List[Lot]:
        stmt = select(Lot).where(Lot.seller_id == seller_id)
        if status:
            stmt = stmt.where(Lot.status == LotStatus(status).value)
        return list(db.execute(stmt.order_by(desc(Lot.created_at))).scalars().all())
