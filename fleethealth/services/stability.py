"""
Stability Classifier — how consistent has an endpoint's health been?

Input: one endpoint's snapshots for a trailing window, oldest first.
Each snapshot yields one HealthPoint via the Health Evaluator. Days with no
snapshot simply produce no point; n is the number of points present.

Derived from the health sequence H[0..n-1]
------------------------------------------
  health_change_count      adjacent pairs that differ
  consecutive_days_stable  length of the trailing run equal to H[n-1] (>= 1)
  last_health_change       day the trailing run began, when an earlier
                           different level exists (else None)
  previous_health          level just before the trailing run (else None)

Stability score (integer 0-100)
-------------------------------
  100 - 100 * changes / n
  +10 if streak >= 30, else +5 if streak >= 14
  -10 if streak < 3
  clamp to [0, 100], round half up

Classification (first match wins)
---------------------------------
  FLAPPING          changes >= 5 and n >= 30
  RECOVERING        previous exists, improvement, streak < 7
  DEGRADING         previous exists, degradation, streak < 7
  STABLE_HEALTHY    current fully, score >= 70
  STABLE_UNHEALTHY  current unhealthy/inactive, score >= 70
  fallback          STABLE_HEALTHY if current fully, else STABLE_UNHEALTHY

Actionable when the classification is STABLE_UNHEALTHY or DEGRADING, the r7
gap is not expected, or the recovery is stuck.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, Optional

from fleethealth.services.gap import GapClassification, GapDiagnosis, diagnose_gap
from fleethealth.services.health import (
    HealthLevel,
    evaluate_health,
    is_degradation,
    is_improvement,
)
from fleethealth.services.recovery import RecoveryState, RecoveryStatus, track_recovery


# Thresholds
FLAPPING_CHANGE_THRESHOLD = 5
FLAPPING_MIN_DAYS = 30
STABLE_DAYS_THRESHOLD = 7
STABLE_SCORE_THRESHOLD = 70

_LONG_STREAK_DAYS, _LONG_STREAK_BONUS = 30, 10
_MEDIUM_STREAK_DAYS, _MEDIUM_STREAK_BONUS = 14, 5
_SHORT_STREAK_DAYS, _SHORT_STREAK_PENALTY = 3, 10

_REASON_UNHEALTHY = "System consistently unhealthy"
_REASON_DEGRADING = "System health degrading"
_ACTION_REASON_SEPARATOR = "; "


class StabilityClassification(str, enum.Enum):
    STABLE_HEALTHY = "STABLE_HEALTHY"
    STABLE_UNHEALTHY = "STABLE_UNHEALTHY"
    RECOVERING = "RECOVERING"
    DEGRADING = "DEGRADING"
    FLAPPING = "FLAPPING"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthPoint:
    day: date
    level: HealthLevel
    score: Decimal


@dataclass(frozen=True)
class HistorySummary:
    """Run-length facts about one health sequence."""
    days_tracked: int
    health_change_count: int
    consecutive_days_stable: int
    current_health: HealthLevel
    previous_health: Optional[HealthLevel]
    last_health_change: Optional[date]


@dataclass(frozen=True)
class StabilityMetrics:
    shortname: str
    env: Optional[str]
    stability_score: int
    classification: StabilityClassification
    current_health: HealthLevel
    previous_health: Optional[HealthLevel]
    consecutive_days_stable: int
    health_change_count: int
    days_tracked: int
    last_health_change: Optional[date]
    as_of: date
    gap: GapDiagnosis
    recovery: RecoveryState
    is_actionable: bool
    action_reason: Optional[str]
    # Tool flags of the newest snapshot
    r7_found: bool
    am_found: bool
    df_found: bool
    it_found: bool

    @property
    def gap_classification(self) -> GapClassification:
        return self.gap.classification

    @property
    def gap_is_expected(self) -> bool:
        return self.gap.is_expected

    @property
    def recovery_status(self) -> RecoveryStatus:
        return self.recovery.status

    @property
    def recovery_is_stuck(self) -> bool:
        return self.recovery.is_stuck


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def build_health_history(snapshots: Iterable) -> list[HealthPoint]:
    """One HealthPoint per snapshot, oldest first."""
    ordered = sorted(snapshots, key=lambda s: s.import_date)
    points = []
    for snap in ordered:
        result = evaluate_health(snap)
        points.append(HealthPoint(day=snap.import_date, level=result.level, score=result.score))
    return points


def summarize_history(history: list[HealthPoint]) -> Optional[HistorySummary]:
    if not history:
        return None

    levels = [p.level for p in history]
    changes = sum(1 for prev, cur in zip(levels, levels[1:]) if prev != cur)

    current = levels[-1]
    run_start = len(levels) - 1
    while run_start > 0 and levels[run_start - 1] == current:
        run_start -= 1

    if run_start > 0:
        previous = levels[run_start - 1]
        last_change = history[run_start].day
    else:
        previous = None
        last_change = None

    return HistorySummary(
        days_tracked=len(levels),
        health_change_count=changes,
        consecutive_days_stable=len(levels) - run_start,
        current_health=current,
        previous_health=previous,
        last_health_change=last_change,
    )


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------

def calculate_stability_score(
    health_change_count: int,
    days_tracked: int,
    consecutive_days_stable: int,
) -> int:
    if days_tracked <= 0:
        return 0

    score = Decimal(100) - Decimal(100) * Decimal(health_change_count) / Decimal(days_tracked)

    if consecutive_days_stable >= _LONG_STREAK_DAYS:
        score += _LONG_STREAK_BONUS
    elif consecutive_days_stable >= _MEDIUM_STREAK_DAYS:
        score += _MEDIUM_STREAK_BONUS
    if consecutive_days_stable < _SHORT_STREAK_DAYS:
        score -= _SHORT_STREAK_PENALTY

    score = min(Decimal(100), max(Decimal(0), score))
    return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Classification decision table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _ClassificationRule:
    classification: StabilityClassification
    matches: Callable[[HistorySummary, int], bool]


def _improving(s: HistorySummary) -> bool:
    return s.previous_health is not None and is_improvement(s.previous_health, s.current_health)


def _degrading(s: HistorySummary) -> bool:
    return s.previous_health is not None and is_degradation(s.previous_health, s.current_health)


_CLASSIFICATION_RULES: tuple[_ClassificationRule, ...] = (
    _ClassificationRule(
        StabilityClassification.FLAPPING,
        lambda s, score: (
            s.health_change_count >= FLAPPING_CHANGE_THRESHOLD
            and s.days_tracked >= FLAPPING_MIN_DAYS
        ),
    ),
    _ClassificationRule(
        StabilityClassification.RECOVERING,
        lambda s, score: _improving(s) and s.consecutive_days_stable < STABLE_DAYS_THRESHOLD,
    ),
    _ClassificationRule(
        StabilityClassification.DEGRADING,
        lambda s, score: _degrading(s) and s.consecutive_days_stable < STABLE_DAYS_THRESHOLD,
    ),
    _ClassificationRule(
        StabilityClassification.STABLE_HEALTHY,
        lambda s, score: s.current_health == HealthLevel.fully and score >= STABLE_SCORE_THRESHOLD,
    ),
    _ClassificationRule(
        StabilityClassification.STABLE_UNHEALTHY,
        lambda s, score: (
            s.current_health in (HealthLevel.unhealthy, HealthLevel.inactive)
            and score >= STABLE_SCORE_THRESHOLD
        ),
    ),
    _ClassificationRule(
        StabilityClassification.STABLE_HEALTHY,
        lambda s, score: s.current_health == HealthLevel.fully,
    ),
    _ClassificationRule(
        StabilityClassification.STABLE_UNHEALTHY,
        lambda s, score: True,
    ),
)


def classify(summary: HistorySummary, stability_score: int) -> StabilityClassification:
    rule = next(r for r in _CLASSIFICATION_RULES if r.matches(summary, stability_score))
    return rule.classification


# ---------------------------------------------------------------------------
# Actionability
# ---------------------------------------------------------------------------

def evaluate_actionability(
    classification: StabilityClassification,
    gap: GapDiagnosis,
    recovery: RecoveryState,
) -> tuple[bool, Optional[str]]:
    """Returns (is_actionable, action_reason). Reasons keep a fixed order."""
    reasons: list[str] = []
    if classification == StabilityClassification.STABLE_UNHEALTHY:
        reasons.append(_REASON_UNHEALTHY)
    if classification == StabilityClassification.DEGRADING:
        reasons.append(_REASON_DEGRADING)
    if not gap.is_expected:
        reasons.append(gap.explanation)
    if recovery.is_stuck:
        reasons.append(recovery.explanation)

    if not reasons:
        return False, None
    return True, _ACTION_REASON_SEPARATOR.join(reasons)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def classify_stability(
    shortname: str,
    snapshots: Iterable,
    as_of: Optional[date] = None,
) -> Optional[StabilityMetrics]:
    """
    Full per-endpoint pipeline over an already-fetched window.

    Returns None when there is nothing to classify (zero snapshots); callers
    render that as "insufficient data". `as_of` anchors the elapsed-days
    count for recovery and defaults to the newest snapshot's day.
    """
    ordered = sorted(snapshots, key=lambda s: s.import_date)
    history = build_health_history(ordered)
    summary = summarize_history(history)
    if summary is None:
        return None

    latest = ordered[-1]
    anchor = as_of or latest.import_date

    score = calculate_stability_score(
        summary.health_change_count,
        summary.days_tracked,
        summary.consecutive_days_stable,
    )
    classification = classify(summary, score)

    gap = diagnose_gap(latest)
    elapsed = (
        (anchor - summary.last_health_change).days
        if summary.last_health_change is not None
        else None
    )
    recovery = track_recovery(summary.current_health, summary.previous_health, elapsed)

    actionable, reason = evaluate_actionability(classification, gap, recovery)

    return StabilityMetrics(
        shortname=shortname,
        env=latest.env,
        stability_score=score,
        classification=classification,
        current_health=summary.current_health,
        previous_health=summary.previous_health,
        consecutive_days_stable=summary.consecutive_days_stable,
        health_change_count=summary.health_change_count,
        days_tracked=summary.days_tracked,
        last_health_change=summary.last_health_change,
        as_of=anchor,
        gap=gap,
        recovery=recovery,
        is_actionable=actionable,
        action_reason=reason,
        r7_found=bool(latest.r7_found),
        am_found=bool(latest.am_found),
        df_found=bool(latest.df_found),
        it_found=bool(latest.it_found),
    )
