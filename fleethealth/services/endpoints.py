"""
Endpoint queries: identity lookups, per-endpoint history and calendar, and
day-by-day fleet health trending.

Every health level shown here comes from `evaluate_health`; there is no
second, stricter evaluator for the listing views. "Today" always means the
newest import date in storage, never the wall clock.
"""
from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from fleethealth.core.errors import EndpointNotFoundError
from fleethealth.models.endpoint import Endpoint
from fleethealth.models.snapshot import DailySnapshot
from fleethealth.services.health import HEALTH_RANK, HealthLevel, evaluate_health
from fleethealth.services.snapshot_store import collapse_duplicates, latest_snapshot_date


NEW_CATEGORY = "new"

_TOOL_LABELS = {"r7": "Rapid7", "am": "Automox", "df": "Defender", "it": "Intune"}
_LEVEL_LABELS = {
    HealthLevel.fully: "Fully Healthy",
    HealthLevel.partially: "Partially Healthy",
    HealthLevel.unhealthy: "Unhealthy",
    HealthLevel.inactive: "Inactive",
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EndpointPage:
    total: int
    limit: int
    offset: int
    items: list[Endpoint]


@dataclass(frozen=True)
class FleetStats:
    total_endpoints: int
    latest_import_date: Optional[date]
    latest_snapshot_count: int


@dataclass(frozen=True)
class CalendarDay:
    day: date
    level: HealthLevel
    tools: dict[str, bool]
    recent_scans: dict[str, bool]
    lag_days: dict[str, Optional[int]]
    criticals: int
    seen_recently: bool


@dataclass(frozen=True)
class MissingEndpoint:
    endpoint: Endpoint
    last_seen_date: Optional[date]
    days_since_last_seen: Optional[int]


@dataclass
class TrendDay:
    day: date
    total_endpoints: int = 0
    active_endpoints: int = 0
    fully: int = 0
    partially: int = 0
    unhealthy: int = 0
    inactive: int = 0
    new_endpoints: int = 0
    existing_endpoints: int = 0
    health_rate: Decimal = Decimal("0.00")
    tool_counts: dict[str, int] = field(default_factory=lambda: {t: 0 for t in _TOOL_LABELS})


@dataclass(frozen=True)
class TrendSummary:
    total_endpoints_now: int
    total_endpoints_start: int
    health_rate_change: Decimal
    new_endpoints_discovered: int
    endpoints_gained_health: int
    endpoints_lost_health: int


@dataclass(frozen=True)
class HealthTrend:
    start: Optional[date]
    end: Optional[date]
    days: int
    trend: list[TrendDay]
    summary: TrendSummary


@dataclass(frozen=True)
class CategoryEndpoint:
    shortname: str
    fullname: Optional[str]
    env: Optional[str]
    level: HealthLevel
    level_label: str
    tools_reporting: list[str]
    health_tools_count: int
    tool_status: dict[str, bool]
    lag_days: dict[str, Optional[int]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _tools(snapshot: DailySnapshot) -> dict[str, bool]:
    return {t: bool(getattr(snapshot, f"{t}_found")) for t in _TOOL_LABELS}


def _lags(snapshot: DailySnapshot) -> dict[str, Optional[int]]:
    return {t: getattr(snapshot, f"{t}_lag_days") for t in _TOOL_LABELS}


def _percent(part: int, whole: int) -> Decimal:
    if whole == 0:
        return Decimal("0.00")
    return (Decimal(100) * Decimal(part) / Decimal(whole)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


def _first_seen(db: Session, shortnames) -> dict[str, date]:
    names = list(shortnames)
    if not names:
        return {}
    rows = (
        db.query(DailySnapshot.shortname, func.min(DailySnapshot.import_date))
        .filter(DailySnapshot.shortname.in_(names))
        .group_by(DailySnapshot.shortname)
        .all()
    )
    return {name: first for name, first in rows}


def _rows_on(db: Session, day: date, env: Optional[str] = None) -> list[DailySnapshot]:
    query = db.query(DailySnapshot).filter(DailySnapshot.import_date == day)
    if env:
        query = query.filter(DailySnapshot.env == env)
    return collapse_duplicates(query.order_by(DailySnapshot.shortname, DailySnapshot.id).all())


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def list_endpoints(
    db: Session,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> EndpointPage:
    query = db.query(Endpoint)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Endpoint.shortname.like(pattern), Endpoint.fullname.like(pattern)))
    total = query.count()
    items = query.order_by(Endpoint.shortname).offset(offset).limit(limit).all()
    return EndpointPage(total=total, limit=limit, offset=offset, items=items)


def get_endpoint(db: Session, shortname: str) -> Endpoint:
    endpoint = db.query(Endpoint).filter(Endpoint.shortname == shortname).first()
    if endpoint is None:
        raise EndpointNotFoundError(shortname)
    return endpoint


def get_history(
    db: Session,
    shortname: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[DailySnapshot]:
    """Raw snapshot rows for one endpoint, newest first."""
    get_endpoint(db, shortname)
    query = db.query(DailySnapshot).filter(DailySnapshot.shortname == shortname)
    if start:
        query = query.filter(DailySnapshot.import_date >= start)
    if end:
        query = query.filter(DailySnapshot.import_date <= end)
    return query.order_by(DailySnapshot.import_date.desc(), DailySnapshot.id.desc()).all()


def get_calendar(db: Session, shortname: str, year: int, month: int) -> list[CalendarDay]:
    """One entry per day of `month` (1-12) that has a snapshot."""
    get_endpoint(db, shortname)
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    rows = (
        db.query(DailySnapshot)
        .filter(
            DailySnapshot.shortname == shortname,
            DailySnapshot.import_date >= first,
            DailySnapshot.import_date <= last,
        )
        .order_by(DailySnapshot.import_date, DailySnapshot.id)
        .all()
    )
    return [
        CalendarDay(
            day=s.import_date,
            level=evaluate_health(s).level,
            tools=_tools(s),
            recent_scans={
                "r7": bool(s.recent_r7_scan),
                "am": bool(s.recent_am_scan),
                "df": bool(s.recent_df_scan),
                "it": bool(s.recent_it_scan),
            },
            lag_days=_lags(s),
            criticals=s.num_criticals or 0,
            seen_recently=bool(s.seen_recently),
        )
        for s in collapse_duplicates(rows)
    ]


def get_stats(db: Session) -> FleetStats:
    latest = latest_snapshot_date(db)
    count = 0
    if latest is not None:
        count = (
            db.query(func.count(func.distinct(DailySnapshot.shortname)))
            .filter(DailySnapshot.import_date == latest)
            .scalar()
        )
    return FleetStats(
        total_endpoints=db.query(Endpoint).count(),
        latest_import_date=latest,
        latest_snapshot_count=count or 0,
    )


def list_environments(db: Session) -> list[str]:
    rows = (
        db.query(DailySnapshot.env)
        .filter(DailySnapshot.env.isnot(None), DailySnapshot.env != "")
        .distinct()
        .order_by(DailySnapshot.env)
        .all()
    )
    return [env for (env,) in rows]


# ---------------------------------------------------------------------------
# Arrivals / departures
# ---------------------------------------------------------------------------

def new_endpoints(db: Session) -> tuple[Optional[date], list[Endpoint]]:
    """Endpoints whose first-ever snapshot is on the latest import date."""
    latest = latest_snapshot_date(db)
    if latest is None:
        return None, []
    today = {s.shortname for s in _rows_on(db, latest)}
    first_seen = _first_seen(db, today)
    names = sorted(n for n in today if first_seen.get(n) == latest)
    if not names:
        return latest, []
    endpoints = (
        db.query(Endpoint).filter(Endpoint.shortname.in_(names)).order_by(Endpoint.shortname).all()
    )
    return latest, endpoints


def missing_endpoints(db: Session) -> tuple[Optional[date], list[MissingEndpoint]]:
    """Known endpoints absent from the latest import, with when they were last seen."""
    latest = latest_snapshot_date(db)
    if latest is None:
        return None, []
    present = {s.shortname for s in _rows_on(db, latest)}
    missing = [
        e for e in db.query(Endpoint).order_by(Endpoint.shortname).all()
        if e.shortname not in present
    ]
    last_seen = dict(
        db.query(DailySnapshot.shortname, func.max(DailySnapshot.import_date))
        .filter(DailySnapshot.shortname.in_([e.shortname for e in missing]))
        .group_by(DailySnapshot.shortname)
        .all()
    ) if missing else {}
    return latest, [
        MissingEndpoint(
            endpoint=e,
            last_seen_date=last_seen.get(e.shortname),
            days_since_last_seen=(
                (latest - last_seen[e.shortname]).days if e.shortname in last_seen else None
            ),
        )
        for e in missing
    ]


# ---------------------------------------------------------------------------
# Trending
# ---------------------------------------------------------------------------

def _trend_day(day: date, rows: list[DailySnapshot], seen: set[str]) -> TrendDay:
    entry = TrendDay(day=day, total_endpoints=len(rows))
    for s in rows:
        level = evaluate_health(s).level
        setattr(entry, level.value, getattr(entry, level.value) + 1)
        if level != HealthLevel.inactive:
            for tool, found in _tools(s).items():
                if found:
                    entry.tool_counts[tool] += 1
        if s.shortname in seen:
            entry.existing_endpoints += 1
        else:
            entry.new_endpoints += 1
            seen.add(s.shortname)

    entry.active_endpoints = entry.fully + entry.partially + entry.unhealthy
    entry.health_rate = _percent(entry.fully + entry.partially, entry.active_endpoints)
    return entry


def health_trending(db: Session, days: int, env: Optional[str] = None) -> HealthTrend:
    latest = latest_snapshot_date(db)
    empty_summary = TrendSummary(0, 0, Decimal("0.00"), 0, 0, 0)
    if latest is None:
        return HealthTrend(start=None, end=None, days=days, trend=[], summary=empty_summary)

    start = latest - timedelta(days=days)
    query = db.query(DailySnapshot).filter(
        DailySnapshot.import_date >= start,
        DailySnapshot.import_date <= latest,
    )
    if env:
        query = query.filter(DailySnapshot.env == env)
    rows = collapse_duplicates(query.all())

    by_day: dict[date, list[DailySnapshot]] = defaultdict(list)
    for s in rows:
        by_day[s.import_date].append(s)
    if not by_day:
        return HealthTrend(start=start, end=latest, days=days, trend=[], summary=empty_summary)

    seen: set[str] = set()
    trend = [_trend_day(d, by_day[d], seen) for d in sorted(by_day)]

    gained = lost = 0
    if len(trend) >= 2:
        first_rank = {
            s.shortname: HEALTH_RANK[evaluate_health(s).level] for s in by_day[trend[0].day]
        }
        for s in by_day[trend[-1].day]:
            before = first_rank.get(s.shortname)
            if before is None:
                continue
            now = HEALTH_RANK[evaluate_health(s).level]
            if now > before:
                gained += 1
            elif now < before:
                lost += 1

    first, last = trend[0], trend[-1]
    summary = TrendSummary(
        total_endpoints_now=last.total_endpoints,
        total_endpoints_start=first.total_endpoints,
        health_rate_change=last.health_rate - first.health_rate,
        new_endpoints_discovered=last.total_endpoints - first.total_endpoints,
        endpoints_gained_health=gained,
        endpoints_lost_health=lost,
    )
    return HealthTrend(start=start, end=latest, days=days, trend=trend, summary=summary)


def endpoints_by_health(
    db: Session,
    day: date,
    category: str,
    env: Optional[str] = None,
) -> list[CategoryEndpoint]:
    """
    Endpoints on `day` in one health level, or first seen that day when
    `category` is "new". Ordered by shortname.
    """
    rows = _rows_on(db, day, env=env)
    if category == NEW_CATEGORY:
        first_seen = _first_seen(db, {s.shortname for s in rows})
        selected = [s for s in rows if first_seen.get(s.shortname) == day]
    else:
        wanted = HealthLevel(category)
        selected = [s for s in rows if evaluate_health(s).level == wanted]

    result = []
    for s in selected:
        health = evaluate_health(s)
        tools = _tools(s)
        result.append(CategoryEndpoint(
            shortname=s.shortname,
            fullname=s.fullname,
            env=s.env,
            level=health.level,
            level_label=_LEVEL_LABELS[health.level],
            tools_reporting=[_TOOL_LABELS[t] for t, found in tools.items() if found],
            health_tools_count=health.healthy_tools,
            tool_status=tools,
            lag_days=_lags(s),
        ))
    return result
