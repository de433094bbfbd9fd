"""
Recovery Tracker — lifecycle of an endpoint whose health level changed.

Inputs: current level, previous level (level before the current streak)
and the number of days elapsed since the streak began.

Rules (first match wins)
------------------------
  NOT_APPLICABLE    no previous level, or elapsed unknown
  FULLY_RECOVERED   improvement and current == fully
  NORMAL_RECOVERY   improvement and elapsed <= NORMAL_RECOVERY_DAYS
  STUCK_RECOVERY    improvement and elapsed >  STUCK_RECOVERY_DAYS      (stuck)
  NORMAL_RECOVERY   improvement, elapsed between the two (i.e. exactly 3)
  NOT_RECOVERING    degradation, or current != fully and elapsed > 3    (stuck)
  NOT_APPLICABLE    otherwise

Only strictly more than STUCK_RECOVERY_DAYS counts as stuck.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from fleethealth.services.health import HealthLevel, is_degradation, is_improvement


NORMAL_RECOVERY_DAYS = 2
STUCK_RECOVERY_DAYS = 3


class RecoveryStatus(str, enum.Enum):
    NORMAL_RECOVERY = "NORMAL_RECOVERY"
    STUCK_RECOVERY = "STUCK_RECOVERY"
    NOT_RECOVERING = "NOT_RECOVERING"
    FULLY_RECOVERED = "FULLY_RECOVERED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


@dataclass(frozen=True)
class RecoveryState:
    status: RecoveryStatus
    is_stuck: bool
    explanation: str
    elapsed_days: Optional[int]
    current: HealthLevel
    previous: Optional[HealthLevel]


def track_recovery(
    current: HealthLevel,
    previous: Optional[HealthLevel],
    elapsed_days: Optional[int],
) -> RecoveryState:
    current = HealthLevel(current)
    previous = HealthLevel(previous) if previous is not None else None

    def _state(status: RecoveryStatus, stuck: bool, explanation: str) -> RecoveryState:
        return RecoveryState(
            status=status,
            is_stuck=stuck,
            explanation=explanation,
            elapsed_days=elapsed_days,
            current=current,
            previous=previous,
        )

    if previous is None or elapsed_days is None:
        return _state(RecoveryStatus.NOT_APPLICABLE, False, "No previous health data available")

    improving = is_improvement(previous, current)

    if improving and current == HealthLevel.fully:
        return _state(
            RecoveryStatus.FULLY_RECOVERED, False,
            f"Successfully recovered to fully healthy in {elapsed_days} days",
        )

    if improving:
        if elapsed_days <= NORMAL_RECOVERY_DAYS:
            return _state(
                RecoveryStatus.NORMAL_RECOVERY, False,
                f"Recovering normally ({elapsed_days} days). Expected to complete within 1-2 days.",
            )
        if elapsed_days > STUCK_RECOVERY_DAYS:
            return _state(
                RecoveryStatus.STUCK_RECOVERY, True,
                f"Recovery taking longer than expected ({elapsed_days} days). May need investigation.",
            )
        return _state(
            RecoveryStatus.NORMAL_RECOVERY, False,
            f"Recovering ({elapsed_days} days). Monitor for completion.",
        )

    if is_degradation(previous, current) or (
        current != HealthLevel.fully and elapsed_days > STUCK_RECOVERY_DAYS
    ):
        return _state(
            RecoveryStatus.NOT_RECOVERING, True,
            f"No improvement detected after {elapsed_days} days. Needs investigation.",
        )

    return _state(RecoveryStatus.NOT_APPLICABLE, False, "System status stable")
