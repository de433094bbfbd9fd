"""
Response models for /analytics.

Built straight from the service dataclasses via `model_validate(...)`
(from_attributes), so field names mirror the service layer.
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from fleethealth.services.gap import GapClassification
from fleethealth.services.health import HealthLevel
from fleethealth.services.recovery import RecoveryStatus
from fleethealth.services.stability import StabilityClassification


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

class GapDiagnosisResponse(_FromAttributes):
    classification: GapClassification
    is_expected: bool
    explanation: str
    r7_found: bool
    it_found: bool
    it_lag_days: Optional[int]
    other_tools_present: bool


class RecoveryStateResponse(_FromAttributes):
    status: RecoveryStatus
    is_stuck: bool
    explanation: str
    elapsed_days: Optional[int]
    current: HealthLevel
    previous: Optional[HealthLevel]


class StabilityMetricsResponse(_FromAttributes):
    shortname: str
    env: Optional[str]
    stability_score: int = Field(..., ge=0, le=100)
    classification: StabilityClassification
    current_health: HealthLevel
    previous_health: Optional[HealthLevel]
    consecutive_days_stable: int
    health_change_count: int
    days_tracked: int
    last_health_change: Optional[date]
    as_of: date
    r7_found: bool
    am_found: bool
    df_found: bool
    it_found: bool
    gap: GapDiagnosisResponse
    recovery: RecoveryStateResponse
    is_actionable: bool
    action_reason: Optional[str]


class FleetOverviewResponse(_FromAttributes):
    total_endpoints: int
    stable_healthy: int
    stable_unhealthy: int
    recovering: int
    degrading: int
    flapping: int
    actionable_count: int
    expected_behavior_count: int
    average_stability_score: int
    window_days: int
    window_start: Optional[date]
    window_end: Optional[date]


# ---------------------------------------------------------------------------
# GET /analytics/system-classification
# ---------------------------------------------------------------------------

class SystemClassificationResponse(_FromAttributes):
    overview: FleetOverviewResponse
    systems: list[StabilityMetricsResponse]
    actionable: list[StabilityMetricsResponse]
    expected_behavior: list[StabilityMetricsResponse]


# ---------------------------------------------------------------------------
# GET /analytics/gap-analysis
# ---------------------------------------------------------------------------

class GapReportEntryResponse(_FromAttributes):
    shortname: str
    env: Optional[str]
    diagnosis: GapDiagnosisResponse


class GapReportResponse(_FromAttributes):
    total_endpoints: int
    r7_present: int
    expected_gaps: int
    investigate_gaps: int
    breakdown: dict[str, int] = Field(..., description="Count per non-present gap class.")
    to_investigate: list[GapReportEntryResponse]
    expected_gap_endpoints: list[GapReportEntryResponse]


# ---------------------------------------------------------------------------
# GET /analytics/recovery-status
# ---------------------------------------------------------------------------

class RecoveryEntryResponse(_FromAttributes):
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


class RecoveryReportResponse(_FromAttributes):
    total_recovering: int
    normal_recovery: int
    stuck_recovery: int
    fully_recovered: int
    average_recovery_days: float
    recovering: list[RecoveryEntryResponse]
    stuck: list[RecoveryEntryResponse]


# ---------------------------------------------------------------------------
# GET /analytics/endpoint-insights/{shortname}
# ---------------------------------------------------------------------------

class HistoryDayResponse(_FromAttributes):
    day: date
    level: HealthLevel
    r7_found: bool
    am_found: bool
    df_found: bool
    it_found: bool
    it_lag_days: Optional[int]


class EndpointInsightsResponse(_FromAttributes):
    shortname: str
    fullname: Optional[str]
    env: Optional[str]
    window_days: int
    insufficient_data: bool = Field(
        default=False, description="True when the endpoint has no snapshots in the window."
    )
    metrics: Optional[StabilityMetricsResponse]
    recommendations: list[str]
    history: list[HistoryDayResponse]


# ---------------------------------------------------------------------------
# GET /analytics/summary
# ---------------------------------------------------------------------------

class InsightResponse(_FromAttributes):
    type: str = Field(..., examples=["warning"])
    title: str
    message: str
    count: int
    endpoints: list[str]


class ActionItemResponse(_FromAttributes):
    priority: str = Field(..., examples=["high"])
    category: str
    description: str
    endpoint_count: int
    endpoints: list[str]


class GapSummaryResponse(_FromAttributes):
    expected_gaps: int
    investigate_gaps: int
    percentage_expected: int


class RecoverySummaryResponse(_FromAttributes):
    normal_recovery: int
    stuck_recovery: int
    average_recovery_days: float


class DashboardSummaryResponse(_FromAttributes):
    overview: FleetOverviewResponse
    critical_insights: list[InsightResponse]
    gap_summary: GapSummaryResponse
    recovery_summary: RecoverySummaryResponse
    action_items: list[ActionItemResponse]
