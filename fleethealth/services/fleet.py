"""
Aggregation Layer — fleet-wide stability analysis.

Two phases:

  fetch    latest snapshot date → endpoints present that day (no fakes,
           optional env / desktop-Windows restriction) → ONE bulk query over
           [latest - window_days, latest], grouped by shortname.
  compute  classify_stability() per endpoint, anchored on the latest date.
           Pure over the fetched mapping; results are frozen dataclasses.

The window is anchored on the newest stored snapshot, not on the wall clock,
so unchanged data always yields identical results. An empty store yields an
all-zero overview rather than an error.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from fleethealth.services import snapshot_store
from fleethealth.services.stability import (
    StabilityClassification,
    StabilityMetrics,
    classify_stability,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FleetOverview:
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
    window_start: Optional[date] = None
    window_end: Optional[date] = None


@dataclass(frozen=True)
class FleetAnalysis:
    """Per-endpoint metrics for one window, ordered by shortname."""
    window_days: int
    window_start: Optional[date]
    window_end: Optional[date]
    env: Optional[str]
    metrics: tuple[StabilityMetrics, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.metrics


@dataclass(frozen=True)
class FleetClassification:
    overview: FleetOverview
    systems: tuple[StabilityMetrics, ...]
    actionable: tuple[StabilityMetrics, ...]
    expected_behavior: tuple[StabilityMetrics, ...]


# ---------------------------------------------------------------------------
# Compute phase
# ---------------------------------------------------------------------------

def compute_metrics(
    snapshots_by_endpoint: Mapping[str, Sequence],
    as_of: date,
) -> tuple[StabilityMetrics, ...]:
    metrics = []
    for shortname in sorted(snapshots_by_endpoint):
        result = classify_stability(shortname, snapshots_by_endpoint[shortname], as_of=as_of)
        if result is not None:
            metrics.append(result)
    return tuple(metrics)


def _count(metrics: Sequence[StabilityMetrics], classification: StabilityClassification) -> int:
    return sum(1 for m in metrics if m.classification == classification)


def fold_overview(
    metrics: Sequence[StabilityMetrics],
    window_days: int,
    window_start: Optional[date] = None,
    window_end: Optional[date] = None,
) -> FleetOverview:
    if metrics:
        mean = Decimal(sum(m.stability_score for m in metrics)) / Decimal(len(metrics))
        average = int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    else:
        average = 0

    actionable = sum(1 for m in metrics if m.is_actionable)
    return FleetOverview(
        total_endpoints=len(metrics),
        stable_healthy=_count(metrics, StabilityClassification.STABLE_HEALTHY),
        stable_unhealthy=_count(metrics, StabilityClassification.STABLE_UNHEALTHY),
        recovering=_count(metrics, StabilityClassification.RECOVERING),
        degrading=_count(metrics, StabilityClassification.DEGRADING),
        flapping=_count(metrics, StabilityClassification.FLAPPING),
        actionable_count=actionable,
        expected_behavior_count=len(metrics) - actionable,
        average_stability_score=average,
        window_days=window_days,
        window_start=window_start,
        window_end=window_end,
    )


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def analyze_fleet(
    db: Session,
    window_days: int,
    env: Optional[str] = None,
    desktop_windows_only: bool = False,
) -> FleetAnalysis:
    latest = snapshot_store.latest_snapshot_date(db, desktop_windows_only=desktop_windows_only)
    if latest is None:
        log.info("Fleet analysis skipped: no snapshots stored")
        return FleetAnalysis(window_days=window_days, window_start=None, window_end=None, env=env)

    start = latest - timedelta(days=window_days)
    shortnames = snapshot_store.endpoints_active_on(
        db, latest, env=env, desktop_windows_only=desktop_windows_only,
    )
    grouped = snapshot_store.snapshots_in_range(
        db, shortnames, start, latest, desktop_windows_only=desktop_windows_only,
    )
    metrics = compute_metrics(grouped, as_of=latest)

    log.info(
        "Fleet analysis window=%s..%s env=%s desktop_only=%s endpoints=%d classified=%d",
        start, latest, env or "*", desktop_windows_only, len(shortnames), len(metrics),
    )
    return FleetAnalysis(
        window_days=window_days,
        window_start=start,
        window_end=latest,
        env=env,
        metrics=metrics,
    )


def overview_of(analysis: FleetAnalysis) -> FleetOverview:
    return fold_overview(
        analysis.metrics,
        analysis.window_days,
        analysis.window_start,
        analysis.window_end,
    )


def summarize_fleet(db: Session, window_days: int, env: Optional[str] = None) -> FleetOverview:
    """Per-classification counts and mean stability score for the fleet."""
    return overview_of(analyze_fleet(db, window_days, env=env))


def classify_fleet(db: Session, window_days: int, env: Optional[str] = None) -> FleetClassification:
    """Desktop/laptop Windows endpoints only, split into actionable vs expected."""
    analysis = analyze_fleet(db, window_days, env=env, desktop_windows_only=True)
    return FleetClassification(
        overview=overview_of(analysis),
        systems=analysis.metrics,
        actionable=tuple(m for m in analysis.metrics if m.is_actionable),
        expected_behavior=tuple(m for m in analysis.metrics if not m.is_actionable),
    )
