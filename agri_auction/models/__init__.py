# Import every model so Base.metadata sees all tables (create_all, alembic autogenerate)
from agri_auction.models.participant import Participant  # noqa: F401
from agri_auction.models.lot import Lot  # noqa: F401
from agri_auction.models.lot_bid import LotBid  # noqa: F401
from agri_auction.models.history_record import HistoryRecord  # noqa: F401
from agri_auction.models.notification import Notification  # noqa: F401
