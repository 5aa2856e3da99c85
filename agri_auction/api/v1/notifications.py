# agri_auction/api/v1/notifications.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agri_auction.core.deps import get_feed
from agri_auction.db.session import get_db
from agri_auction.schemas.notifications import NotificationOut
from agri_auction.services.notification_service import FeedNotificationSender

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{participant_id}", response_model=List[NotificationOut])
def notification_feed(
    participant_id: str,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    feed: FeedNotificationSender = Depends(get_feed),
):
    return feed.list_for_recipient(db, participant_id, unread_only=unread_only)
