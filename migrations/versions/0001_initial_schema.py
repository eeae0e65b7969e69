"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if with_updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()))
    return cols


def _document_table(name, *columns, unique=("user_id",)):
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        *columns,
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(*unique, name=f"uq_{name}_{'_'.join(u.replace('user_id', 'user') for u in unique)}"),
    )
    op.create_index(f"ix_{name}_user_id", name, ["user_id"])


def upgrade():
    # ── TRADES ────────────────────────────────────────────────
    money = lambda name: sa.Column(name, sa.Float(), nullable=False, server_default="0")  # noqa: E731

    op.create_table(
        "trades",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("legacy_id", sa.String(128), nullable=True),
        sa.Column("trade_no", sa.String(32), nullable=False, server_default=""),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("name", sa.String(64), nullable=False, server_default=""),
        money("entry"),
        money("avg_entry"),
        money("sl"),
        money("tsl"),
        sa.Column("buy_sell", sa.String(8), nullable=False, server_default="Buy"),
        money("cmp"),
        sa.Column("setup", sa.String(128), nullable=False, server_default=""),
        sa.Column("base_duration", sa.String(64), nullable=False, server_default=""),
        money("initial_qty"),
        money("pyramid1_price"),
        money("pyramid1_qty"),
        sa.Column("pyramid1_date", sa.Date(), nullable=True),
        money("pyramid2_price"),
        money("pyramid2_qty"),
        sa.Column("pyramid2_date", sa.Date(), nullable=True),
        money("position_size"),
        money("allocation"),
        money("sl_percent"),
        money("exit1_price"),
        money("exit1_qty"),
        sa.Column("exit1_date", sa.Date(), nullable=True),
        money("exit2_price"),
        money("exit2_qty"),
        sa.Column("exit2_date", sa.Date(), nullable=True),
        money("exit3_price"),
        money("exit3_qty"),
        sa.Column("exit3_date", sa.Date(), nullable=True),
        money("open_qty"),
        money("exited_qty"),
        money("avg_exit_price"),
        money("stock_move"),
        money("reward_risk"),
        sa.Column("holding_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("position_status", sa.String(16), nullable=False, server_default="Open"),
        money("realised_amount"),
        money("pl_rs"),
        money("pf_impact"),
        money("cumm_pf"),
        sa.Column("plan_followed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("exit_trigger", sa.String(128), nullable=False, server_default=""),
        sa.Column("proficiency_growth_areas", sa.String(256), nullable=False, server_default=""),
        sa.Column("sector", sa.String(64), nullable=False, server_default=""),
        money("open_heat"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("chart_attachments", sa.JSON(), nullable=True),
        sa.Column("user_edited_fields", sa.JSON(), nullable=True),
        sa.Column("cmp_auto_fetched", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("needs_recalculation", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", "user_id"),
    )
    op.create_index("ix_trades_user_id", "trades", ["user_id"])

    # ── CHART IMAGE BLOBS ─────────────────────────────────────
    op.create_table(
        "chart_image_blobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("trade_id", sa.String(128), nullable=False),
        sa.Column("image_type", sa.String(16), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(32), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("data", sa.LargeBinary(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("compressed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("original_size", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_chart_image_blobs_user_id", "chart_image_blobs", ["user_id"])
    op.create_index("ix_chart_image_blobs_trade_id", "chart_image_blobs", ["trade_id"])

    # ── CAPITAL ───────────────────────────────────────────────
    op.create_table(
        "capital_changes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("description", sa.String(255), nullable=False, server_default=""),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_capital_changes_user_id", "capital_changes", ["user_id"])

    op.create_table(
        "yearly_starting_capitals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("starting_capital", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "year", name="uq_starting_capital_user_year"),
    )
    op.create_index("ix_yearly_starting_capitals_user_id", "yearly_starting_capitals", ["user_id"])

    # ── USER DOCUMENTS ────────────────────────────────────────
    _document_table("user_preferences", sa.Column("data", sa.JSON(), nullable=True))
    _document_table("trade_settings", sa.Column("data", sa.JSON(), nullable=True))
    _document_table("dashboard_config", sa.Column("data", sa.JSON(), nullable=True))
    _document_table("milestones_data", sa.Column("data", sa.JSON(), nullable=True))
    _document_table(
        "tax_data",
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        unique=("user_id", "year"),
    )
    _document_table(
        "commentary_data",
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        unique=("user_id", "year"),
    )
    _document_table(
        "misc_data",
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        unique=("user_id", "key"),
    )


def downgrade():
    for name in (
        "misc_data",
        "commentary_data",
        "tax_data",
        "milestones_data",
        "dashboard_config",
        "trade_settings",
        "user_preferences",
        "yearly_starting_capitals",
        "capital_changes",
        "chart_image_blobs",
        "trades",
    ):
        op.drop_table(name)
