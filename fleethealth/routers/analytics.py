"""
Analytics router.

GET /analytics/summary                         — dashboard: insights + action items
GET /analytics/stability-overview              — per-classification counts, mean score
GET /analytics/system-classification           — desktop/laptop Windows endpoints, split
GET /analytics/gap-analysis                    — r7 gap diagnosis on the latest day
GET /analytics/recovery-status                 — endpoints with a live recovery
GET /analytics/endpoint-insights/{shortname}   — one endpoint in depth

All windows trail the newest stored import date, not the wall clock.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fleethealth.core.config import settings
from fleethealth.db.base import get_db
from fleethealth.schemas.analytics import (
    DashboardSummaryResponse,
    EndpointInsightsResponse,
    FleetOverviewResponse,
    GapReportResponse,
    RecoveryReportResponse,
    SystemClassificationResponse,
)
from fleethealth.schemas.common import ErrorResponse
from fleethealth.services import fleet, reports

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _days(
    days: int = Query(
        default=settings.DEFAULT_WINDOW_DAYS,
        ge=1,
        le=settings.MAX_WINDOW_DAYS,
        description="Trailing window length in days.",
    ),
) -> int:
    return days


def _env(
    env: Optional[str] = Query(default=None, description="Environment tag filter."),
) -> Optional[str]:
    return env or None


# ---------------------------------------------------------------------------
# GET /analytics/summary
# ---------------------------------------------------------------------------

@router.get(
    "/summary",
    response_model=DashboardSummaryResponse,
    summary="Dashboard summary with prioritised action items",
)
def get_summary(
    days: int = Depends(_days),
    env: Optional[str] = Depends(_env),
    db: Session = Depends(get_db),
):
    """
    ### Action item priorities
    | Priority | Category |
    |---|---|
    | high   | Chronic Issues (stable unhealthy), R7 Configuration |
    | medium | Stuck Recovery, Degrading Health |
    | low    | Expected Behavior |
    """
    return DashboardSummaryResponse.model_validate(reports.dashboard_summary(db, days, env=env))


# ---------------------------------------------------------------------------
# GET /analytics/stability-overview
# ---------------------------------------------------------------------------

@router.get(
    "/stability-overview",
    response_model=FleetOverviewResponse,
    summary="Fleet stability counts and average score",
)
def get_stability_overview(
    days: int = Depends(_days),
    env: Optional[str] = Depends(_env),
    db: Session = Depends(get_db),
):
    """All-zero counts when no snapshots have been imported yet."""
    return FleetOverviewResponse.model_validate(fleet.summarize_fleet(db, days, env=env))


# ---------------------------------------------------------------------------
# GET /analytics/system-classification
# ---------------------------------------------------------------------------

@router.get(
    "/system-classification",
    response_model=SystemClassificationResponse,
    summary="Per-endpoint classification (desktop/laptop Windows only)",
)
def get_system_classification(
    days: int = Depends(_days),
    env: Optional[str] = Depends(_env),
    db: Session = Depends(get_db),
):
    return SystemClassificationResponse.model_validate(fleet.classify_fleet(db, days, env=env))


# ---------------------------------------------------------------------------
# GET /analytics/gap-analysis
# ---------------------------------------------------------------------------

@router.get(
    "/gap-analysis",
    response_model=GapReportResponse,
    summary="Why is Rapid7 missing? One diagnosis per endpoint",
)
def get_gap_analysis(
    env: Optional[str] = Depends(_env),
    db: Session = Depends(get_db),
):
    """
    ### Classes (first match wins)
    | Class | Expected |
    |---|---|
    | `R7_PRESENT`              | yes |
    | `EXPECTED_RECENT_OFFLINE` | yes |
    | `EXPECTED_INACTIVE`       | yes |
    | `INVESTIGATE_R7_ISSUE`    | **no** |
    | `EXPECTED_OFFLINE`        | yes |
    """
    return GapReportResponse.model_validate(reports.gap_report(db, env=env))


# ---------------------------------------------------------------------------
# GET /analytics/recovery-status
# ---------------------------------------------------------------------------

@router.get(
    "/recovery-status",
    response_model=RecoveryReportResponse,
    summary="Endpoints recovering, stuck, or fully recovered",
)
def get_recovery_status(
    days: int = Depends(_days),
    env: Optional[str] = Depends(_env),
    db: Session = Depends(get_db),
):
    return RecoveryReportResponse.model_validate(reports.recovery_report(db, days, env=env))


# ---------------------------------------------------------------------------
# GET /analytics/endpoint-insights/{shortname}
# ---------------------------------------------------------------------------

@router.get(
    "/endpoint-insights/{shortname}",
    response_model=EndpointInsightsResponse,
    summary="Stability metrics, recommendations and daily history for one endpoint",
    responses={404: {"model": ErrorResponse, "description": "Unknown endpoint."}},
)
def get_endpoint_insights(
    shortname: str,
    days: int = Depends(_days),
    db: Session = Depends(get_db),
):
    """`metrics` is null (and `insufficient_data` true) when the window holds no snapshots."""
    return EndpointInsightsResponse.model_validate(reports.endpoint_insights(db, shortname, days))
