"""
Health Evaluator — per-snapshot health level and score.

Rules (one snapshot, no history)
--------------------------------
  Active
     "it" lag known and <= INACTIVE_THRESHOLD_DAYS
     OR any of r7 / am / df found today.
     Covers environments where Intune is not deployed but the other
     tools still report.

  Inactive  → level "inactive", score 0, whatever the found flags say.

  Active    → count r7 / am / df that are "currently healthy":
              found today OR lag known and <= GRACE_PERIOD_DAYS.
              vm is never counted.
                 3   → "fully",     score 1.000
                 1-2 → "partially", score healthy_tools / 3
                 0   → "unhealthy", score 0.000

NULL lags are "not within threshold", never 0. Pure functions, no DB.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


GRACE_PERIOD_DAYS = 3
INACTIVE_THRESHOLD_DAYS = 15

# Tools that take part in health math (vm is recorded but excluded).
HEALTH_TOOLS = ("r7", "am", "df")

_SCORE_QUANTUM = Decimal("0.001")


class HealthLevel(str, enum.Enum):
    inactive = "inactive"
    unhealthy = "unhealthy"
    partially = "partially"
    fully = "fully"


# Strict ordering used for improvement / degradation checks.
HEALTH_RANK: dict[HealthLevel, int] = {
    HealthLevel.inactive: 0,
    HealthLevel.unhealthy: 1,
    HealthLevel.partially: 2,
    HealthLevel.fully: 3,
}

_LEVEL_BY_TOOL_COUNT: dict[int, HealthLevel] = {
    0: HealthLevel.unhealthy,
    1: HealthLevel.partially,
    2: HealthLevel.partially,
    3: HealthLevel.fully,
}


@dataclass(frozen=True)
class HealthResult:
    level: HealthLevel
    score: Decimal          # 0.000 – 1.000
    healthy_tools: int      # 0–3, always 0 when inactive
    active: bool


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

def _within(lag: Optional[int], threshold: int) -> bool:
    return lag is not None and lag <= threshold


def is_active(snapshot, inactive_days: int = INACTIVE_THRESHOLD_DAYS) -> bool:
    if _within(snapshot.it_lag_days, inactive_days):
        return True
    return any(bool(getattr(snapshot, f"{tool}_found")) for tool in HEALTH_TOOLS)


def tool_is_healthy(found, lag_days: Optional[int], grace_period_days: int = GRACE_PERIOD_DAYS) -> bool:
    """A tool counts if it reported today or within the grace period."""
    return bool(found) or _within(lag_days, grace_period_days)


def count_healthy_tools(snapshot, grace_period_days: int = GRACE_PERIOD_DAYS) -> int:
    return sum(
        1
        for tool in HEALTH_TOOLS
        if tool_is_healthy(
            getattr(snapshot, f"{tool}_found"),
            getattr(snapshot, f"{tool}_lag_days"),
            grace_period_days,
        )
    )


def is_improvement(previous: HealthLevel, current: HealthLevel) -> bool:
    return HEALTH_RANK[HealthLevel(current)] > HEALTH_RANK[HealthLevel(previous)]


def is_degradation(previous: HealthLevel, current: HealthLevel) -> bool:
    return HEALTH_RANK[HealthLevel(current)] < HEALTH_RANK[HealthLevel(previous)]


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def evaluate_health(
    snapshot,
    grace_period_days: int = GRACE_PERIOD_DAYS,
    inactive_days: int = INACTIVE_THRESHOLD_DAYS,
) -> HealthResult:
    """
    Derive the health level and fractional score of a single snapshot.

    `snapshot` is any object exposing the DailySnapshot tool attributes
    (`r7_found`, `r7_lag_days`, ..., `it_lag_days`); ORM rows and
    detached instances both work.
    """
    if not is_active(snapshot, inactive_days):
        return HealthResult(
            level=HealthLevel.inactive,
            score=Decimal("0").quantize(_SCORE_QUANTUM),
            healthy_tools=0,
            active=False,
        )

    healthy = count_healthy_tools(snapshot, grace_period_days)
    score = (Decimal(healthy) / Decimal(len(HEALTH_TOOLS))).quantize(
        _SCORE_QUANTUM, rounding=ROUND_HALF_UP
    )
    return HealthResult(
        level=_LEVEL_BY_TOOL_COUNT[healthy],
        score=score,
        healthy_tools=healthy,
        active=True,
    )


def health_level(snapshot) -> HealthLevel:
    """Shorthand for callers that only need the level."""
    return evaluate_health(snapshot).level
