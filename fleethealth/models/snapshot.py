"""
DailySnapshot: one day's raw tool-reporting facts for one endpoint.

Append-only. If an import is replayed, several rows can exist for the same
(shortname, import_date); the row with the highest `id` is authoritative
(see `fleethealth.services.snapshot_store.collapse_duplicates`).

Tool keys:
  r7 — Rapid7        am — Automox       df — Defender
  it — Intune        vm — VMware (recorded, never part of health)

Lag columns hold "days since the tool last reported": 0 = reported today,
NULL = unknown / never. NULL is never the same thing as 0.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Boolean, DateTime, Date, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from fleethealth.db.base import Base


class DailySnapshot(Base):
    __tablename__ = "daily_snapshots"
    __table_args__ = (
        Index("ix_daily_snapshots_shortname_import_date", "shortname", "import_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    shortname: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    import_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Identity copies at the time of the import
    fullname: Mapped[str | None] = mapped_column(String(500), nullable=True)
    env: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    # Operating system
    server_os: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
        comment='Raw flag from the export: "True"/"False"/"1"/"0" or NULL',
    )
    os_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    os_family: Mapped[str | None] = mapped_column(String(255), nullable=True)
    os_build_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supported_os: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Network
    ip_priv: Mapped[str | None] = mapped_column(String(45), nullable=True)
    ip_pub: Mapped[str | None] = mapped_column(String(45), nullable=True)

    # User & validation
    user_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    possible_fake: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Tool found flags
    r7_found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    am_found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    df_found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    it_found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vm_found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Recency indicators
    seen_recently: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recent_r7_scan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recent_am_scan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recent_df_scan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recent_it_scan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Lag (days since last report)
    r7_lag_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    am_lag_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    df_lag_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    it_lag_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    num_criticals: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Count of r7/am/df/it tools the endpoint was NOT found in",
    )
    am_last_user: Mapped[str | None] = mapped_column(String(255), nullable=True)
    needs_am_reboot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    needs_am_attention: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # VM & tool IDs
    vm_power_state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    df_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    it_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    script_result: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
