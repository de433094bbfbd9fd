"""
Snapshot Store: read-side queries over `daily_snapshots`.

Fetch phase of every analysis. Each function issues one query and hands back
plain ORM rows; nothing here evaluates health.

Duplicate (shortname, import_date) rows are resolved FIRST: only the row with
the highest id for that day is authoritative. The `possible_fake`, env and
desktop filters then apply to that row alone, so a replayed row flagged fake
hides the day instead of letting an older, superseded row through.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from fleethealth.core.config import settings
from fleethealth.models.snapshot import DailySnapshot


# server_os values that mean "not a server"
_DESKTOP_SERVER_OS_VALUES = ("0", "False", "false")


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def _authoritative_ids(start: date, end: date, shortnames: Optional[list[str]] = None):
    """Highest id per (shortname, import_date) within [start, end]."""
    stmt = select(func.max(DailySnapshot.id)).where(
        DailySnapshot.import_date >= start,
        DailySnapshot.import_date <= end,
    )
    if shortnames is not None:
        stmt = stmt.where(DailySnapshot.shortname.in_(shortnames))
    return stmt.group_by(DailySnapshot.shortname, DailySnapshot.import_date)


def _not_fake(query):
    return query.filter(DailySnapshot.possible_fake.is_(False))


def _desktop_windows(query):
    return query.filter(
        or_(
            DailySnapshot.server_os.is_(None),
            DailySnapshot.server_os.in_(_DESKTOP_SERVER_OS_VALUES),
        ),
        DailySnapshot.os_family == settings.DESKTOP_OS_FAMILY,
    )


def _apply(
    query,
    start: date,
    end: date,
    env: Optional[str] = None,
    desktop_windows_only: bool = False,
    shortnames: Optional[list[str]] = None,
):
    query = query.filter(DailySnapshot.id.in_(_authoritative_ids(start, end, shortnames)))
    query = _not_fake(query)
    if env:
        query = query.filter(DailySnapshot.env == env)
    if desktop_windows_only:
        query = _desktop_windows(query)
    return query


def collapse_duplicates(rows: Iterable[DailySnapshot]) -> list[DailySnapshot]:
    """
    Keep one row per (shortname, import_date): the one with the highest id.
    Output is ordered by shortname, then day.
    """
    latest: dict[tuple[str, date], DailySnapshot] = {}
    for row in rows:
        key = (row.shortname, row.import_date)
        held = latest.get(key)
        if held is None or (row.id or 0) > (held.id or 0):
            latest[key] = row
    return [latest[k] for k in sorted(latest)]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def latest_snapshot_date(db: Session, desktop_windows_only: bool = False) -> Optional[date]:
    """Newest import date in storage. Fake rows count: an import happened that day."""
    query = db.query(func.max(DailySnapshot.import_date))
    if desktop_windows_only:
        query = _desktop_windows(query)
    return query.scalar()


def endpoints_active_on(
    db: Session,
    day: date,
    env: Optional[str] = None,
    desktop_windows_only: bool = False,
) -> set[str]:
    """Endpoints whose authoritative row for `day` passes the filters."""
    query = _apply(
        db.query(DailySnapshot.shortname).filter(DailySnapshot.import_date == day),
        day, day,
        env=env,
        desktop_windows_only=desktop_windows_only,
    )
    return {name for (name,) in query.distinct().all()}


def snapshots_in_range(
    db: Session,
    shortnames: Iterable[str],
    start: date,
    end: date,
    desktop_windows_only: bool = False,
) -> dict[str, list[DailySnapshot]]:
    """
    Bulk fetch for many endpoints at once, grouped by shortname.
    Each group is chronologically ascending. Endpoints with no rows in range
    are absent from the mapping.
    """
    names = sorted(set(shortnames))
    if not names:
        return {}

    query = _apply(
        db.query(DailySnapshot).filter(
            DailySnapshot.shortname.in_(names),
            DailySnapshot.import_date >= start,
            DailySnapshot.import_date <= end,
        ),
        start, end,
        desktop_windows_only=desktop_windows_only,
        shortnames=names,
    ).order_by(DailySnapshot.shortname, DailySnapshot.import_date)

    grouped: dict[str, list[DailySnapshot]] = defaultdict(list)
    for row in query.all():
        grouped[row.shortname].append(row)
    return dict(grouped)


def snapshots_for_endpoint(
    db: Session,
    shortname: str,
    start: date,
    end: date,
) -> list[DailySnapshot]:
    query = _apply(
        db.query(DailySnapshot).filter(
            DailySnapshot.shortname == shortname,
            DailySnapshot.import_date >= start,
            DailySnapshot.import_date <= end,
        ),
        start, end,
        shortnames=[shortname],
    ).order_by(DailySnapshot.import_date)
    return query.all()


def snapshots_on(db: Session, day: date, env: Optional[str] = None) -> list[DailySnapshot]:
    """Authoritative row per endpoint for one day, ordered by shortname."""
    query = _apply(
        db.query(DailySnapshot).filter(DailySnapshot.import_date == day),
        day, day,
        env=env,
    ).order_by(DailySnapshot.shortname)
    return query.all()
