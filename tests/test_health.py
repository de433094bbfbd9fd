"""
Tests for the Health Evaluator.

Covered:
  - inactive whenever no activity signal exists, whatever else is set
  - activity via Intune lag or via any of r7 / am / df
  - grace period counting (found OR lag <= 3), NULL lag never counts
  - healthy tool count → level / score mapping, exhaustively
  - vm never counted
  - rank helpers
"""
from __future__ import annotations

import itertools
from datetime import date
from decimal import Decimal

import pytest

from fleethealth.services.health import (
    GRACE_PERIOD_DAYS,
    INACTIVE_THRESHOLD_DAYS,
    HealthLevel,
    count_healthy_tools,
    evaluate_health,
    health_level,
    is_active,
    is_degradation,
    is_improvement,
    tool_is_healthy,
)

from factories import snap


class TestActivity:
    def test_nothing_reported_is_inactive(self):
        # it not found, it lag unknown, r7/am/df all false
        result = evaluate_health(snap(it=False, it_lag=None))
        assert result.level == HealthLevel.inactive
        assert result.score == Decimal("0")
        assert result.active is False
        assert result.healthy_tools == 0

    def test_intune_lag_within_threshold_is_active(self):
        assert is_active(snap(it_lag=INACTIVE_THRESHOLD_DAYS))

    def test_intune_lag_beyond_threshold_alone_is_inactive(self):
        assert not is_active(snap(it=True, it_lag=INACTIVE_THRESHOLD_DAYS + 1))

    def test_intune_found_with_unknown_lag_alone_is_inactive(self):
        assert not is_active(snap(it=True, it_lag=None))

    @pytest.mark.parametrize("tool", ["r7", "am", "df"])
    def test_any_health_tool_found_makes_active_without_intune(self, tool):
        assert is_active(snap(**{tool: True}))

    def test_inactive_ignores_lag_within_grace(self):
        # lags alone do not make an endpoint active
        result = evaluate_health(snap(r7_lag=0, am_lag=1, df_lag=2, it_lag=None))
        assert result.level == HealthLevel.inactive
        assert result.score == 0

    def test_inactive_property_over_all_flag_combinations(self):
        for r7_lag, am_lag, df_lag in itertools.product([None, 0, 20], repeat=3):
            s = snap(r7_lag=r7_lag, am_lag=am_lag, df_lag=df_lag, it=True, it_lag=30)
            result = evaluate_health(s)
            assert result.level == HealthLevel.inactive
            assert result.score == 0


class TestGracePeriod:
    def test_found_counts(self):
        assert tool_is_healthy(True, None)

    def test_lag_at_grace_boundary_counts(self):
        assert tool_is_healthy(False, GRACE_PERIOD_DAYS)

    def test_lag_past_grace_does_not_count(self):
        assert not tool_is_healthy(False, GRACE_PERIOD_DAYS + 1)

    def test_null_lag_is_not_zero(self):
        assert not tool_is_healthy(False, None)
        assert tool_is_healthy(False, 0)

    def test_vm_never_counted(self):
        s = snap(it_lag=0)
        s.vm_found = True
        assert count_healthy_tools(s) == 0


class TestLevels:
    @pytest.mark.parametrize(
        "flags, level, score",
        [
            ((False, False, False), HealthLevel.unhealthy, Decimal("0.000")),
            ((True, False, False), HealthLevel.partially, Decimal("0.333")),
            ((True, True, False), HealthLevel.partially, Decimal("0.667")),
            ((True, True, True), HealthLevel.fully, Decimal("1.000")),
        ],
    )
    def test_tool_count_maps_to_level(self, flags, level, score):
        r7, am, df = flags
        result = evaluate_health(snap(r7=r7, am=am, df=df, it=True, it_lag=0))
        assert result.level == level
        assert result.score == score
        assert result.healthy_tools == sum(flags)

    def test_scenario_mixed_found_and_lag(self):
        # r7 found, am within grace via lag, df lag 10 > 3
        s = snap(r7=True, am=False, am_lag=2, df=False, df_lag=10, it=True, it_lag=5)
        result = evaluate_health(s)
        assert result.healthy_tools == 2
        assert result.level == HealthLevel.partially
        assert result.score == Decimal("0.667")

    def test_active_without_intune_can_be_fully(self):
        assert health_level(snap(r7=True, am=True, df=True)) == HealthLevel.fully

    def test_score_is_within_unit_interval(self):
        for r7, am, df in itertools.product([True, False], repeat=3):
            result = evaluate_health(snap(r7=r7, am=am, df=df, it_lag=0))
            assert Decimal("0") <= result.score <= Decimal("1")

    def test_works_on_day_independent_of_clock(self):
        a = evaluate_health(snap(date(2020, 1, 1), r7=True, it_lag=0))
        b = evaluate_health(snap(date(2030, 1, 1), r7=True, it_lag=0))
        assert a == b


class TestRank:
    def test_improvement(self):
        assert is_improvement(HealthLevel.unhealthy, HealthLevel.partially)
        assert is_improvement(HealthLevel.inactive, HealthLevel.fully)
        assert not is_improvement(HealthLevel.fully, HealthLevel.fully)

    def test_degradation(self):
        assert is_degradation(HealthLevel.fully, HealthLevel.inactive)
        assert not is_degradation(HealthLevel.inactive, HealthLevel.unhealthy)

    def test_accepts_plain_strings(self):
        assert is_improvement("partially", "fully")
