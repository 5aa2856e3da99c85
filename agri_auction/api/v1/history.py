# agri_auction/api/v1/history.py
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agri_auction.core.deps import get_history, raise_http
from agri_auction.core.errors import AuctionError
from agri_auction.db.session import get_db
from agri_auction.models.enums import HistoryRole, LotStatus
from agri_auction.schemas.history import HistoryRecordOut
from agri_auction.services.history_service import HistoryRecorder

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/{participant_id}", response_model=List[HistoryRecordOut])
def participant_history(
    participant_id: str,
    role: Optional[HistoryRole] = None,
    status: Optional[LotStatus] = None,
    outcome: Optional[Literal["won", "lost", "no_winner"]] = None,
    db: Session = Depends(get_db),
    history: HistoryRecorder = Depends(get_history),
):
    try:
        return history.list_for_participant(
            db, participant_id, role=role, status=status, outcome=outcome
        )
    except AuctionError as e:
        raise_http(e)
