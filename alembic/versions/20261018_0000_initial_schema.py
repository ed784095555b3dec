"""Initial schema: markets, tracked entities, trades, snapshot series and alerts.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "markets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("condition_id", sa.String(66), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("volume_24hr", sa.Numeric(24, 6), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("condition_id"),
    )
    op.create_index("idx_markets_slug", "markets", ["slug"])

    op.create_table(
        "tracked_markets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("condition_id", sa.String(66), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("event_id", sa.Integer(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("condition_id"),
    )

    op.create_table(
        "tracked_accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("address", sa.String(42), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("address"),
    )

    op.create_table(
        "trades",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("transaction_hash", sa.String(66), nullable=False),
        sa.Column("market_id", sa.Integer(), nullable=False),
        sa.Column("user_address", sa.String(42), nullable=False),
        sa.Column("side", sa.String(4), nullable=False),
        sa.Column("size", sa.Numeric(24, 6), nullable=False),
        sa.Column("usdc_size", sa.Numeric(24, 6), nullable=False),
        sa.Column("price", sa.Numeric(12, 6), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("transaction_hash"),
    )
    op.create_index("idx_trades_market_ts", "trades", ["market_id", "ts"])
    op.create_index("idx_trades_user_ts", "trades", ["user_address", "ts"])

    op.create_table(
        "price_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("market_id", sa.Integer(), nullable=False),
        sa.Column("probability", sa.Float(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_price_snapshots_market_ts", "price_snapshots", ["market_id", "ts"])

    op.create_table(
        "market_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("condition_id", sa.String(66), nullable=False),
        sa.Column("open_interest", sa.Float(), nullable=False),
        sa.Column("live_volume", sa.Float(), nullable=False),
        sa.Column("yes_holders", sa.Integer(), nullable=False),
        sa.Column("no_holders", sa.Integer(), nullable=False),
        sa.Column("yes_concentration", sa.Float(), nullable=False),
        sa.Column("no_concentration", sa.Float(), nullable=False),
        sa.Column("yes_side_pnl", sa.Float(), nullable=False),
        sa.Column("no_side_pnl", sa.Float(), nullable=False),
        sa.Column("probability", sa.Float(), nullable=False),
        sa.Column("snapshot_time", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_market_snapshots_condition_time", "market_snapshots", ["condition_id", "snapshot_time"]
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("alert_type", sa.String(32), nullable=False),
        sa.Column("severity", sa.String(8), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("alert_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("webhook_sent", sa.Boolean(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_alerts_pending", "alerts", ["webhook_sent", "retry_count", "created_at"])
    op.create_index("idx_alerts_created_at", "alerts", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_alerts_created_at", table_name="alerts")
    op.drop_index("idx_alerts_pending", table_name="alerts")
    op.drop_table("alerts")

    op.drop_index("idx_market_snapshots_condition_time", table_name="market_snapshots")
    op.drop_table("market_snapshots")

    op.drop_index("idx_price_snapshots_market_ts", table_name="price_snapshots")
    op.drop_table("price_snapshots")

    op.drop_index("idx_trades_user_ts", table_name="trades")
    op.drop_index("idx_trades_market_ts", table_name="trades")
    op.drop_table("trades")

    op.drop_table("tracked_accounts")
    op.drop_table("tracked_markets")

    op.drop_index("idx_markets_slug", table_name="markets")
    op.drop_table("markets")
