# agri_auction/api/v1/participants.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agri_auction.core.deps import get_directory, raise_http
from agri_auction.core.errors import AuctionError
from agri_auction.db.session import get_db
from agri_auction.schemas.participants import ParticipantOut, ParticipantUpsert
from agri_auction.services.participant_directory import ParticipantDirectory

router = APIRouter(prefix="/participants", tags=["participants"])


@router.put("/{participant_id}", response_model=ParticipantOut)
def upsert_participant(
    participant_id: str,
    req: ParticipantUpsert,
    db: Session = Depends(get_db),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        return directory.upsert(db, participant_id=participant_id, **req.model_dump())
    except AuctionError as e:
        raise_http(e)


@router.get("/{participant_id}", response_model=ParticipantOut)
def get_participant(
    participant_id: str,
    db: Session = Depends(get_db),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        return directory.require(db, participant_id)
    except AuctionError as e:
        raise_http(e)
