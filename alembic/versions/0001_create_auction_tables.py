"""create auction tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "participants",
        sa.Column("participant_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("display_name", sa.String(length=256), nullable=False),
        sa.Column("email", sa.String(length=256), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("district", sa.String(length=64), nullable=True),
        sa.Column("city", sa.String(length=64), nullable=True),
        sa.Column("pin_code", sa.String(length=16), nullable=True),
        sa.Column("buyer_type", sa.String(length=16), nullable=True),
        sa.Column("max_bid_limit", sa.Numeric(14, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_participants_role", "participants", ["role"])

    op.create_table(
        "lots",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("seller_id", sa.String(length=128), nullable=False),
        sa.Column("seller_name", sa.String(length=256), nullable=False),
        sa.Column("commodity_name", sa.String(length=128), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", sa.String(length=16), nullable=False),
        sa.Column("quality", sa.String(length=16), nullable=False),
        sa.Column("harvest_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closing_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("starting_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("winner_id", sa.String(length=128), nullable=True),
        sa.Column("winner_name", sa.String(length=256), nullable=True),
        sa.Column("winning_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("outcome_json", JSONType, nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("district", sa.String(length=64), nullable=True),
        sa.Column("city", sa.String(length=64), nullable=True),
        sa.Column("total_bids", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unique_bidders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finalize_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.String(length=1024), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_lots_quantity_positive"),
        sa.CheckConstraint("starting_price > 0", name="ck_lots_starting_price_positive"),
        sa.CheckConstraint("current_price >= starting_price", name="ck_lots_price_monotonic"),
        sa.CheckConstraint(
            "status IN ('active', 'ended', 'cancelled', 'completed')",
            name="ck_lots_status",
        ),
    )
    op.create_index("ix_lots_status_closing", "lots", ["status", "closing_time"])
    op.create_index("ix_lots_seller", "lots", ["seller_id"])
    op.create_index("ix_lots_location", "lots", ["state", "district"])

    op.create_table(
        "lot_bids",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "lot_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("lots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("bidder_id", sa.String(length=128), nullable=False),
        sa.Column("bidder_name", sa.String(length=256), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("lot_id", "seq", name="uq_lot_bids_seq"),
        sa.UniqueConstraint("lot_id", "amount", name="uq_lot_bids_amount"),
    )
    op.create_index("ix_lot_bids_bidder", "lot_bids", ["bidder_id"])

    op.create_table(
        "history_records",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "lot_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("lots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("participant_id", sa.String(length=128), nullable=False),
        sa.Column("participant_name", sa.String(length=256), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("commodity_name", sa.String(length=128), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", sa.String(length=16), nullable=False),
        sa.Column("quality", sa.String(length=16), nullable=False),
        sa.Column("my_bids_json", JSONType, nullable=False),
        sa.Column("my_highest_bid", sa.Numeric(14, 2), nullable=True),
        sa.Column("final_status", sa.String(length=16), nullable=False),
        sa.Column("winner_name", sa.String(length=256), nullable=True),
        sa.Column("winning_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("is_winner", sa.Boolean(), nullable=True),
        sa.Column("contact_exchanged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contact_details_json", JSONType, nullable=True),
        sa.Column("lot_closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("lot_id", "participant_id", name="uq_history_lot_participant"),
    )
    op.create_index("ix_history_participant", "history_records", ["participant_id", "role"])
    op.create_index("ix_history_final_status", "history_records", ["final_status"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("recipient_id", sa.String(length=128), nullable=False),
        sa.Column("lot_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata_json", JSONType, nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("lot_id", "recipient_id", name="uq_notifications_lot_recipient"),
    )
    op.create_index("ix_notifications_recipient", "notifications", ["recipient_id", "created_at"])


def downgrade():
    op.drop_index("ix_notifications_recipient", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_history_final_status", table_name="history_records")
    op.drop_index("ix_history_participant", table_name="history_records")
    op.drop_table("history_records")
    op.drop_index("ix_lot_bids_bidder", table_name="lot_bids")
    op.drop_table("lot_bids")
    op.drop_index("ix_lots_location", table_name="lots")
    op.drop_index("ix_lots_seller", table_name="lots")
    op.drop_index("ix_lots_status_closing", table_name="lots")
    op.drop_table("lots")
    op.drop_index("ix_participants_role", table_name="participants")
    op.drop_table("participants")
