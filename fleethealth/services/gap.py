"""
Gap Diagnoser — why is Rapid7 (r7) not reporting for this endpoint?

Evaluated against the endpoint's latest snapshot, in this exact order
(first match wins):

  1. R7_PRESENT               r7 found                                 expected
  2. EXPECTED_RECENT_OFFLINE  it found and it lag < 15                 expected
                              (R7 drops an agent only after 15 days
                              without a check-in)
  3. EXPECTED_INACTIVE        it not found OR it lag > 15              expected
  4. INVESTIGATE_R7_ISSUE     am or df found                           NOT expected
                              (other tools prove the endpoint is live)
  5. EXPECTED_OFFLINE         anything else                            expected

An unknown it lag compares as 0 in rules 2 and 3. Explanations are fixed
strings reused verbatim by action reasons and reports.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Optional


R7_REMOVAL_THRESHOLD_DAYS = 15
INTUNE_INACTIVE_DAYS = 15


class GapClassification(str, enum.Enum):
    R7_PRESENT = "R7_PRESENT"
    EXPECTED_RECENT_OFFLINE = "EXPECTED_RECENT_OFFLINE"
    EXPECTED_INACTIVE = "EXPECTED_INACTIVE"
    INVESTIGATE_R7_ISSUE = "INVESTIGATE_R7_ISSUE"
    EXPECTED_OFFLINE = "EXPECTED_OFFLINE"


@dataclass(frozen=True)
class GapDiagnosis:
    classification: GapClassification
    is_expected: bool
    explanation: str
    r7_found: bool
    it_found: bool
    it_lag_days: Optional[int]
    other_tools_present: bool   # am or df found


@dataclass(frozen=True)
class _GapFacts:
    r7_found: bool
    it_found: bool
    it_lag: int                 # NULL folded to 0
    it_lag_days: Optional[int]  # raw value, for display
    other_tools_present: bool


@dataclass(frozen=True)
class _GapRule:
    classification: GapClassification
    is_expected: bool
    matches: Callable[[_GapFacts], bool]
    explain: Callable[[_GapFacts], str]


def _lag_label(facts: _GapFacts) -> str:
    return "N/A" if facts.it_lag_days is None else str(facts.it_lag_days)


# Ordered decision table. Precedence is the list order.
_GAP_RULES: tuple[_GapRule, ...] = (
    _GapRule(
        GapClassification.R7_PRESENT,
        True,
        lambda f: f.r7_found,
        lambda f: "Rapid7 is reporting normally",
    ),
    _GapRule(
        GapClassification.EXPECTED_RECENT_OFFLINE,
        True,
        lambda f: f.it_found and f.it_lag < R7_REMOVAL_THRESHOLD_DAYS,
        lambda f: (
            f"System recently offline (Intune lag: {f.it_lag} days). "
            f"R7 removes entries after {R7_REMOVAL_THRESHOLD_DAYS} days of no check-in."
        ),
    ),
    _GapRule(
        GapClassification.EXPECTED_INACTIVE,
        True,
        lambda f: not f.it_found or f.it_lag > INTUNE_INACTIVE_DAYS,
        lambda f: f"System inactive (Intune lag: {_lag_label(f)} days). R7 correctly removed.",
    ),
    _GapRule(
        GapClassification.INVESTIGATE_R7_ISSUE,
        False,
        lambda f: f.other_tools_present,
        lambda f: "Other tools reporting but R7 missing. Possible R7 agent or configuration issue.",
    ),
    _GapRule(
        GapClassification.EXPECTED_OFFLINE,
        True,
        lambda f: True,
        lambda f: "System appears offline. R7 gap is expected.",
    ),
)


def diagnose_gap(snapshot) -> GapDiagnosis:
    """Classify the r7 signal of one (latest) snapshot. Total: always returns."""
    facts = _GapFacts(
        r7_found=bool(snapshot.r7_found),
        it_found=bool(snapshot.it_found),
        it_lag=snapshot.it_lag_days or 0,
        it_lag_days=snapshot.it_lag_days,
        other_tools_present=bool(snapshot.am_found) or bool(snapshot.df_found),
    )
    rule = next(r for r in _GAP_RULES if r.matches(facts))
    return GapDiagnosis(
        classification=rule.classification,
        is_expected=rule.is_expected,
        explanation=rule.explain(facts),
        r7_found=facts.r7_found,
        it_found=facts.it_found,
        it_lag_days=facts.it_lag_days,
        other_tools_present=facts.other_tools_present,
    )
