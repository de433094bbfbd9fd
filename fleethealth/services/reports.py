"""
Reports built on top of the core classifiers.

  gap_report          r7 gap diagnosis for every endpoint on the latest day
  recovery_report     endpoints with a live recovery lifecycle
  endpoint_insights   one endpoint: metrics, recommendations, daily history
  dashboard_summary   everything above folded into insights + action items

Each report has a pure `*_from(...)` builder over already-fetched data and a
thin wrapper that does the fetching. Missing data yields empty reports.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from fleethealth.core.errors import EndpointNotFoundError
from fleethealth.models.endpoint import Endpoint
from fleethealth.services import snapshot_store
from fleethealth.services.fleet import FleetOverview, analyze_fleet, overview_of
from fleethealth.services.gap import GapClassification, GapDiagnosis, diagnose_gap
from fleethealth.services.health import HealthLevel, evaluate_health
from fleethealth.services.recovery import NORMAL_RECOVERY_DAYS, RecoveryStatus
from fleethealth.services.stability import (
    StabilityClassification,
    StabilityMetrics,
    classify_stability,
)

log = logging.getLogger(__name__)


_STUCK_STATUSES = (RecoveryStatus.STUCK_RECOVERY, RecoveryStatus.NOT_RECOVERING)
_RECOVERING_STATUSES = (
    RecoveryStatus.NORMAL_RECOVERY,
    RecoveryStatus.STUCK_RECOVERY,
    RecoveryStatus.NOT_RECOVERING,
)

_INSIGHT_SAMPLE = 5
_ACTION_ITEM_SAMPLE = 10


# ---------------------------------------------------------------------------
# Gap report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GapReportEntry:
    shortname: str
    env: Optional[str]
    diagnosis: GapDiagnosis


@dataclass(frozen=True)
class GapReport:
    total_endpoints: int
    r7_present: int
    expected_gaps: int
    investigate_gaps: int
    breakdown: dict[str, int]
    to_investigate: tuple[GapReportEntry, ...]
    expected_gap_endpoints: tuple[GapReportEntry, ...]


def gap_report_from(snapshots: Sequence) -> GapReport:
    entries = [
        GapReportEntry(shortname=s.shortname, env=s.env, diagnosis=diagnose_gap(s))
        for s in snapshots
    ]
    missing = [e for e in entries if not e.diagnosis.r7_found]
    breakdown = {
        c.value: sum(1 for e in entries if e.diagnosis.classification == c)
        for c in GapClassification
        if c != GapClassification.R7_PRESENT
    }
    return GapReport(
        total_endpoints=len(entries),
        r7_present=len(entries) - len(missing),
        expected_gaps=sum(1 for e in missing if e.diagnosis.is_expected),
        investigate_gaps=sum(1 for e in missing if not e.diagnosis.is_expected),
        breakdown=breakdown,
        to_investigate=tuple(e for e in entries if not e.diagnosis.is_expected),
        expected_gap_endpoints=tuple(e for e in missing if e.diagnosis.is_expected),
    )


def gap_report(db: Session, env: Optional[str] = None) -> GapReport:
    latest = snapshot_store.latest_snapshot_date(db)
    if latest is None:
        return gap_report_from([])
    return gap_report_from(snapshot_store.snapshots_on(db, latest, env=env))


# ---------------------------------------------------------------------------
# Recovery report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecoveryEntry:
    shortname: str
    env: Optional[str]
    status: RecoveryStatus
    recovery_start_date: Optional[date]
    days_since_recovery_start: Optional[int]
    current_health: HealthLevel
    previous_health: Optional[HealthLevel]
    is_stuck: bool
    expected_recovery_days: int
    explanation: str


@dataclass(frozen=True)
class RecoveryReport:
    total_recovering: int
    normal_recovery: int
    stuck_recovery: int
    fully_recovered: int
    average_recovery_days: Decimal   # one decimal place
    recovering: tuple[RecoveryEntry, ...]
    stuck: tuple[RecoveryEntry, ...]


def _recovery_entry(m: StabilityMetrics) -> RecoveryEntry:
    return RecoveryEntry(
        shortname=m.shortname,
        env=m.env,
        status=m.recovery.status,
        recovery_start_date=m.last_health_change,
        days_since_recovery_start=m.recovery.elapsed_days,
        current_health=m.current_health,
        previous_health=m.previous_health,
        is_stuck=m.recovery.is_stuck,
        expected_recovery_days=NORMAL_RECOVERY_DAYS,
        explanation=m.recovery.explanation,
    )


def recovery_report_from(metrics: Sequence[StabilityMetrics]) -> RecoveryReport:
    entries = [
        _recovery_entry(m) for m in metrics
        if m.recovery.status != RecoveryStatus.NOT_APPLICABLE
    ]
    completed = [
        e.days_since_recovery_start for e in entries
        if e.status == RecoveryStatus.FULLY_RECOVERED and e.days_since_recovery_start is not None
    ]
    if completed:
        average = (Decimal(sum(completed)) / Decimal(len(completed))).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )
    else:
        average = Decimal("0.0")

    return RecoveryReport(
        total_recovering=len(entries),
        normal_recovery=sum(1 for e in entries if e.status == RecoveryStatus.NORMAL_RECOVERY),
        stuck_recovery=sum(1 for e in entries if e.status in _STUCK_STATUSES),
        fully_recovered=sum(1 for e in entries if e.status == RecoveryStatus.FULLY_RECOVERED),
        average_recovery_days=average,
        recovering=tuple(e for e in entries if e.status in _RECOVERING_STATUSES),
        stuck=tuple(e for e in entries if e.is_stuck),
    )


def recovery_report(db: Session, window_days: int, env: Optional[str] = None) -> RecoveryReport:
    return recovery_report_from(analyze_fleet(db, window_days, env=env).metrics)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

_CLASSIFICATION_RECOMMENDATIONS: dict[StabilityClassification, tuple[str, ...]] = {
    StabilityClassification.STABLE_UNHEALTHY: (
        "System consistently unhealthy - investigate tool agent status and connectivity",
        "Check if system is properly configured in all security tools",
    ),
    StabilityClassification.DEGRADING: (
        "System health recently declined - investigate what changed",
        "Check system logs for errors or configuration changes",
    ),
    StabilityClassification.FLAPPING: (
        "System shows normal offline/online cycles - no immediate action needed",
        "If system should be always-on, investigate power management or network issues",
    ),
    StabilityClassification.RECOVERING: (
        "System recovering normally - monitor for completion within 1-2 days",
    ),
    StabilityClassification.STABLE_HEALTHY: (
        "System operating normally - continue monitoring",
    ),
}

_GAP_RECOMMENDATIONS: dict[GapClassification, tuple[str, ...]] = {
    GapClassification.INVESTIGATE_R7_ISSUE: (
        "R7 agent may need reinstallation or configuration check",
        "Verify R7 agent service is running and can communicate with R7 servers",
    ),
    GapClassification.EXPECTED_RECENT_OFFLINE: (
        "R7 gap is expected - system was recently offline",
        "R7 should resume reporting within 24 hours of system coming back online",
    ),
}

_RECOVERY_RECOMMENDATIONS: dict[RecoveryStatus, tuple[str, ...]] = {
    RecoveryStatus.STUCK_RECOVERY: (
        "Recovery taking longer than expected - manual intervention may be needed",
        "Check tool agent status and restart services if necessary",
    ),
    RecoveryStatus.NOT_RECOVERING: (
        "No improvement detected - immediate investigation required",
        "Verify network connectivity and tool agent configurations",
    ),
}


def build_recommendations(metrics: StabilityMetrics) -> list[str]:
    """Classification advice first, then r7 gap advice, then recovery advice."""
    return [
        *_CLASSIFICATION_RECOMMENDATIONS.get(metrics.classification, ()),
        *_GAP_RECOMMENDATIONS.get(metrics.gap.classification, ()),
        *_RECOVERY_RECOMMENDATIONS.get(metrics.recovery.status, ()),
    ]


# ---------------------------------------------------------------------------
# Endpoint insights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HistoryDay:
    day: date
    level: HealthLevel
    r7_found: bool
    am_found: bool
    df_found: bool
    it_found: bool
    it_lag_days: Optional[int]


@dataclass(frozen=True)
class EndpointInsights:
    shortname: str
    fullname: Optional[str]
    env: Optional[str]
    window_days: int
    metrics: Optional[StabilityMetrics]   # None → insufficient data
    recommendations: tuple[str, ...]
    history: tuple[HistoryDay, ...]

    @property
    def insufficient_data(self) -> bool:
        return self.metrics is None


def endpoint_insights(db: Session, shortname: str, window_days: int) -> EndpointInsights:
    endpoint = db.query(Endpoint).filter(Endpoint.shortname == shortname).first()
    if endpoint is None:
        raise EndpointNotFoundError(shortname)

    latest = snapshot_store.latest_snapshot_date(db)
    snapshots = []
    if latest is not None:
        snapshots = snapshot_store.snapshots_for_endpoint(
            db, shortname, latest - timedelta(days=window_days), latest,
        )

    metrics = classify_stability(shortname, snapshots, as_of=latest) if snapshots else None
    history = tuple(
        HistoryDay(
            day=s.import_date,
            level=evaluate_health(s).level,
            r7_found=bool(s.r7_found),
            am_found=bool(s.am_found),
            df_found=bool(s.df_found),
            it_found=bool(s.it_found),
            it_lag_days=s.it_lag_days,
        )
        for s in snapshots
    )
    return EndpointInsights(
        shortname=endpoint.shortname,
        fullname=endpoint.fullname,
        env=endpoint.env,
        window_days=window_days,
        metrics=metrics,
        recommendations=tuple(build_recommendations(metrics)) if metrics else (),
        history=history,
    )


# ---------------------------------------------------------------------------
# Dashboard summary
# ---------------------------------------------------------------------------

class InsightType:
    WARNING = "warning"
    INFO    = "info"
    SUCCESS = "success"


class Priority:
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    message: str
    count: int
    endpoints: tuple[str, ...] = ()


@dataclass(frozen=True)
class ActionItem:
    priority: str
    category: str
    description: str
    endpoint_count: int
    endpoints: tuple[str, ...] = ()


@dataclass(frozen=True)
class GapSummary:
    expected_gaps: int
    investigate_gaps: int
    percentage_expected: int


@dataclass(frozen=True)
class RecoverySummary:
    normal_recovery: int
    stuck_recovery: int
    average_recovery_days: Decimal


@dataclass(frozen=True)
class DashboardSummary:
    overview: FleetOverview
    critical_insights: tuple[Insight, ...]
    gap_summary: GapSummary
    recovery_summary: RecoverySummary
    action_items: tuple[ActionItem, ...]


def _percentage_expected(gaps: GapReport) -> int:
    denominator = gaps.expected_gaps + gaps.investigate_gaps
    if denominator == 0:
        return 0
    pct = Decimal(100) * Decimal(gaps.expected_gaps) / Decimal(denominator)
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _names(items, limit: int) -> tuple[str, ...]:
    return tuple(i.shortname for i in list(items)[:limit])


def _critical_insights(
    overview: FleetOverview,
    actionable: Sequence[StabilityMetrics],
    recovery: RecoveryReport,
) -> list[Insight]:
    insights: list[Insight] = []
    if overview.actionable_count > 0:
        insights.append(Insight(
            type=InsightType.WARNING,
            title="Systems Requiring Investigation",
            message=f"{overview.actionable_count} system(s) need immediate attention",
            count=overview.actionable_count,
            endpoints=_names(actionable, _INSIGHT_SAMPLE),
        ))
    if overview.flapping > 0:
        insights.append(Insight(
            type=InsightType.INFO,
            title="Flapping Systems Detected",
            message=f"{overview.flapping} system(s) showing normal offline/online cycles - no action needed",
            count=overview.flapping,
        ))
    if recovery.stuck_recovery > 0:
        insights.append(Insight(
            type=InsightType.WARNING,
            title="Stuck Recovery",
            message=f"{recovery.stuck_recovery} system(s) stuck in recovery - may need intervention",
            count=recovery.stuck_recovery,
            endpoints=_names(recovery.stuck, _INSIGHT_SAMPLE),
        ))
    if overview.stable_healthy > 0:
        insights.append(Insight(
            type=InsightType.SUCCESS,
            title="Stable Healthy Systems",
            message=f"{overview.stable_healthy} system(s) consistently healthy",
            count=overview.stable_healthy,
        ))
    return insights


def _action_items(
    overview: FleetOverview,
    metrics: Sequence[StabilityMetrics],
    gaps: GapReport,
    recovery: RecoveryReport,
) -> list[ActionItem]:
    items: list[ActionItem] = []

    chronic = [
        m for m in metrics
        if m.is_actionable and m.classification == StabilityClassification.STABLE_UNHEALTHY
    ]
    if chronic:
        items.append(ActionItem(
            priority=Priority.HIGH,
            category="Chronic Issues",
            description="Systems consistently unhealthy - require immediate remediation",
            endpoint_count=len(chronic),
            endpoints=_names(chronic, _ACTION_ITEM_SAMPLE),
        ))

    if gaps.investigate_gaps > 0:
        items.append(ActionItem(
            priority=Priority.HIGH,
            category="R7 Configuration",
            description="R7 missing but other tools present - possible agent or configuration issue",
            endpoint_count=gaps.investigate_gaps,
            endpoints=_names(gaps.to_investigate, _ACTION_ITEM_SAMPLE),
        ))

    if recovery.stuck_recovery > 0:
        items.append(ActionItem(
            priority=Priority.MEDIUM,
            category="Stuck Recovery",
            description="Systems taking longer than expected to recover",
            endpoint_count=recovery.stuck_recovery,
            endpoints=_names(recovery.stuck, _ACTION_ITEM_SAMPLE),
        ))

    degrading = [m for m in metrics if m.classification == StabilityClassification.DEGRADING]
    if degrading:
        items.append(ActionItem(
            priority=Priority.MEDIUM,
            category="Degrading Health",
            description="Systems recently lost health - monitor closely",
            endpoint_count=len(degrading),
            endpoints=_names(degrading, _ACTION_ITEM_SAMPLE),
        ))

    items.append(ActionItem(
        priority=Priority.LOW,
        category="Expected Behavior",
        description="Systems with normal patterns - no action needed",
        endpoint_count=overview.expected_behavior_count,
    ))
    return items


def dashboard_summary_from(
    overview: FleetOverview,
    metrics: Sequence[StabilityMetrics],
    gaps: GapReport,
) -> DashboardSummary:
    recovery = recovery_report_from(metrics)
    actionable = [m for m in metrics if m.is_actionable]
    return DashboardSummary(
        overview=overview,
        critical_insights=tuple(_critical_insights(overview, actionable, recovery)),
        gap_summary=GapSummary(
            expected_gaps=gaps.expected_gaps,
            investigate_gaps=gaps.investigate_gaps,
            percentage_expected=_percentage_expected(gaps),
        ),
        recovery_summary=RecoverySummary(
            normal_recovery=recovery.normal_recovery,
            stuck_recovery=recovery.stuck_recovery,
            average_recovery_days=recovery.average_recovery_days,
        ),
        action_items=tuple(_action_items(overview, metrics, gaps, recovery)),
    )


def dashboard_summary(db: Session, window_days: int, env: Optional[str] = None) -> DashboardSummary:
    analysis = analyze_fleet(db, window_days, env=env)
    summary = dashboard_summary_from(overview_of(analysis), analysis.metrics, gap_report(db, env=env))
    log.info(
        "Dashboard summary env=%s endpoints=%d insights=%d action_items=%d",
        env or "*", summary.overview.total_endpoints,
        len(summary.critical_insights), len(summary.action_items),
    )
    return summary
