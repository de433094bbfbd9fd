"""initial schema

Revision ID: 0001
Revises:
Create Date: 2025-01-15 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _flag(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false())


def upgrade() -> None:
    # --- endpoints ---
    op.create_table(
        "endpoints",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shortname", sa.String(255), nullable=False),
        sa.Column("fullname", sa.String(500), nullable=True),
        sa.Column("env", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_endpoints_id", "endpoints", ["id"])
    op.create_index("ix_endpoints_shortname", "endpoints", ["shortname"], unique=True)

    # --- daily_snapshots ---
    op.create_table(
        "daily_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shortname", sa.String(255), nullable=False),
        sa.Column("import_date", sa.Date(), nullable=False),
        sa.Column("fullname", sa.String(500), nullable=True),
        sa.Column("env", sa.String(50), nullable=True),
        sa.Column("server_os", sa.String(255), nullable=True),
        sa.Column("os_name", sa.String(255), nullable=True),
        sa.Column("os_family", sa.String(255), nullable=True),
        sa.Column("os_build_number", sa.String(100), nullable=True),
        _flag("supported_os"),
        sa.Column("ip_priv", sa.String(45), nullable=True),
        sa.Column("ip_pub", sa.String(45), nullable=True),
        sa.Column("user_email", sa.String(255), nullable=True),
        _flag("possible_fake"),
        _flag("r7_found"),
        _flag("am_found"),
        _flag("df_found"),
        _flag("it_found"),
        _flag("vm_found"),
        _flag("seen_recently"),
        _flag("recent_r7_scan"),
        _flag("recent_am_scan"),
        _flag("recent_df_scan"),
        _flag("recent_it_scan"),
        sa.Column("r7_lag_days", sa.Integer(), nullable=True),
        sa.Column("am_lag_days", sa.Integer(), nullable=True),
        sa.Column("df_lag_days", sa.Integer(), nullable=True),
        sa.Column("it_lag_days", sa.Integer(), nullable=True),
        sa.Column("num_criticals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("am_last_user", sa.String(255), nullable=True),
        _flag("needs_am_reboot"),
        _flag("needs_am_attention"),
        sa.Column("vm_power_state", sa.String(50), nullable=True),
        sa.Column("df_id", sa.String(255), nullable=True),
        sa.Column("it_id", sa.String(255), nullable=True),
        sa.Column("script_result", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_daily_snapshots_id", "daily_snapshots", ["id"])
    op.create_index("ix_daily_snapshots_shortname", "daily_snapshots", ["shortname"])
    op.create_index("ix_daily_snapshots_import_date", "daily_snapshots", ["import_date"])
    op.create_index("ix_daily_snapshots_env", "daily_snapshots", ["env"])
    op.create_index(
        "ix_daily_snapshots_shortname_import_date",
        "daily_snapshots",
        ["shortname", "import_date"],
    )


def downgrade() -> None:
    op.drop_table("daily_snapshots")
    op.drop_table("endpoints")
