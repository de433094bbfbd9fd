"""
Endpoints router.

GET /endpoints                          — list/search identities (paginated)
GET /endpoints/stats                    — counts for the latest import
GET /endpoints/environments             — distinct env tags
GET /endpoints/new                      — first seen on the latest import
GET /endpoints/missing                  — known but absent from the latest import
GET /endpoints/health-trending          — day-by-day fleet health
GET /endpoints/health-category          — endpoints in one health level on a day
GET /endpoints/{shortname}              — one identity
GET /endpoints/{shortname}/history      — raw snapshots, newest first
GET /endpoints/{shortname}/calendar     — per-day tool status for one month
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fleethealth.core.config import settings
from fleethealth.db.base import get_db
from fleethealth.schemas.common import ErrorResponse
from fleethealth.schemas.endpoints import (
    CalendarDayResponse,
    CategoryEndpointResponse,
    EndpointCalendarResponse,
    EndpointHistoryResponse,
    EndpointListResponse,
    EndpointResponse,
    EnvironmentsResponse,
    FleetStatsResponse,
    HealthCategoryResponse,
    HealthTrendResponse,
    MissingEndpointResponse,
    MissingEndpointsResponse,
    NewEndpointsResponse,
    SnapshotResponse,
)
from fleethealth.services import endpoints as svc

router = APIRouter(prefix="/endpoints", tags=["endpoints"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Unknown endpoint."}}


@router.get("", response_model=EndpointListResponse, summary="List endpoints")
def list_endpoints(
    search: Optional[str] = Query(default=None, description="Substring of shortname or fullname."),
    limit: int = Query(default=50, ge=1, le=500, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    page = svc.list_endpoints(db, search=search, limit=limit, offset=offset)
    return EndpointListResponse(
        items=[EndpointResponse.model_validate(e) for e in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/stats", response_model=FleetStatsResponse, summary="Latest import statistics")
def get_stats(db: Session = Depends(get_db)):
    return FleetStatsResponse.model_validate(svc.get_stats(db))


@router.get("/environments", response_model=EnvironmentsResponse, summary="Distinct environments")
def list_environments(db: Session = Depends(get_db)):
    return EnvironmentsResponse(environments=svc.list_environments(db))


@router.get("/new", response_model=NewEndpointsResponse, summary="Endpoints first seen on the latest import")
def get_new_endpoints(db: Session = Depends(get_db)):
    latest, found = svc.new_endpoints(db)
    return NewEndpointsResponse(
        import_date=latest,
        count=len(found),
        endpoints=[EndpointResponse.model_validate(e) for e in found],
    )


@router.get("/missing", response_model=MissingEndpointsResponse, summary="Endpoints absent from the latest import")
def get_missing_endpoints(db: Session = Depends(get_db)):
    latest, missing = svc.missing_endpoints(db)
    return MissingEndpointsResponse(
        latest_import_date=latest,
        count=len(missing),
        endpoints=[MissingEndpointResponse.model_validate(m) for m in missing],
    )


@router.get("/health-trending", response_model=HealthTrendResponse, summary="Daily fleet health trend")
def get_health_trending(
    days: int = Query(default=settings.DEFAULT_WINDOW_DAYS, ge=1, le=settings.MAX_WINDOW_DAYS),
    env: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """`health_rate` = (fully + partially) / active, as a percentage with 2 decimals."""
    return HealthTrendResponse.model_validate(svc.health_trending(db, days, env=env or None))


@router.get("/health-category", response_model=HealthCategoryResponse, summary="Endpoints in one health level")
def get_endpoints_by_health(
    day: date = Query(..., description="Import date (YYYY-MM-DD)."),
    category: str = Query(
        ...,
        pattern="^(fully|partially|unhealthy|inactive|new)$",
        description='Health level, or "new" for endpoints first seen that day.',
    ),
    env: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    found = svc.endpoints_by_health(db, day, category, env=env or None)
    return HealthCategoryResponse(
        day=day,
        category=category,
        count=len(found),
        endpoints=[CategoryEndpointResponse.model_validate(e) for e in found],
    )


@router.get("/{shortname}", response_model=EndpointResponse, responses=_NOT_FOUND, summary="Get one endpoint")
def get_endpoint(shortname: str, db: Session = Depends(get_db)):
    return EndpointResponse.model_validate(svc.get_endpoint(db, shortname))


@router.get(
    "/{shortname}/history",
    response_model=EndpointHistoryResponse,
    responses=_NOT_FOUND,
    summary="Snapshot history (newest first)",
)
def get_history(
    shortname: str,
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
):
    snapshots = svc.get_history(db, shortname, start=start, end=end)
    return EndpointHistoryResponse(
        endpoint=EndpointResponse.model_validate(svc.get_endpoint(db, shortname)),
        snapshots=[SnapshotResponse.model_validate(s) for s in snapshots],
    )


@router.get(
    "/{shortname}/calendar",
    response_model=EndpointCalendarResponse,
    responses=_NOT_FOUND,
    summary="Per-day tool status for one month",
)
def get_calendar(
    shortname: str,
    year: Optional[int] = Query(default=None, ge=2000, le=2100),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
):
    """Defaults to the month of the latest import (or today when the store is empty)."""
    anchor = svc.get_stats(db).latest_import_date or date.today()
    year = year or anchor.year
    month = month or anchor.month
    days = svc.get_calendar(db, shortname, year, month)
    return EndpointCalendarResponse(
        endpoint=EndpointResponse.model_validate(svc.get_endpoint(db, shortname)),
        year=year,
        month=month,
        days=[CalendarDayResponse.model_validate(d) for d in days],
    )
