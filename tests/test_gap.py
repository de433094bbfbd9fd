"""
Tests for the Gap Diagnoser: one test per rule, precedence between rules,
explanation strings and totality.
"""
from __future__ import annotations

import itertools

import pytest

from fleethealth.services.gap import GapClassification, diagnose_gap

from factories import snap


class TestRules:
    def test_r7_present(self):
        d = diagnose_gap(snap(r7=True, it=False))
        assert d.classification == GapClassification.R7_PRESENT
        assert d.is_expected is True
        assert d.explanation == "Rapid7 is reporting normally"

    def test_recent_offline(self):
        d = diagnose_gap(snap(it=True, it_lag=4, am=True))
        assert d.classification == GapClassification.EXPECTED_RECENT_OFFLINE
        assert d.is_expected is True
        assert d.explanation == (
            "System recently offline (Intune lag: 4 days). "
            "R7 removes entries after 15 days of no check-in."
        )

    def test_intune_missing_is_inactive(self):
        d = diagnose_gap(snap(it=False, it_lag=None, am=True, df=True))
        assert d.classification == GapClassification.EXPECTED_INACTIVE
        assert d.is_expected is True
        assert d.explanation == "System inactive (Intune lag: N/A days). R7 correctly removed."

    def test_intune_stale_is_inactive_even_with_other_tools(self):
        # lag > 15 is checked before the other-tools rule
        d = diagnose_gap(snap(it=True, it_lag=20, am=True))
        assert d.classification == GapClassification.EXPECTED_INACTIVE
        assert d.is_expected is True
        assert "Intune lag: 20 days" in d.explanation

    def test_investigate_when_intune_at_threshold_and_other_tools_live(self):
        d = diagnose_gap(snap(it=True, it_lag=15, df=True))
        assert d.classification == GapClassification.INVESTIGATE_R7_ISSUE
        assert d.is_expected is False
        assert d.other_tools_present is True
        assert d.explanation == (
            "Other tools reporting but R7 missing. Possible R7 agent or configuration issue."
        )

    def test_offline_fallback(self):
        d = diagnose_gap(snap(it=True, it_lag=15))
        assert d.classification == GapClassification.EXPECTED_OFFLINE
        assert d.is_expected is True
        assert d.explanation == "System appears offline. R7 gap is expected."

    def test_unknown_lag_with_intune_found_counts_as_zero(self):
        d = diagnose_gap(snap(it=True, it_lag=None))
        assert d.classification == GapClassification.EXPECTED_RECENT_OFFLINE
        assert "Intune lag: 0 days" in d.explanation
        assert d.it_lag_days is None


class TestTotality:
    @pytest.mark.parametrize("it_lag", [None, 0, 14, 15, 16, 40])
    def test_exactly_one_class_and_r7_present_iff_found(self, it_lag):
        for r7, am, df, it in itertools.product([True, False], repeat=4):
            d = diagnose_gap(snap(r7=r7, am=am, df=df, it=it, it_lag=it_lag))
            assert d.classification in set(GapClassification)
            assert (d.classification == GapClassification.R7_PRESENT) == r7

    def test_only_investigate_is_unexpected(self):
        for r7, am, df, it in itertools.product([True, False], repeat=4):
            for lag in (None, 3, 15, 30):
                d = diagnose_gap(snap(r7=r7, am=am, df=df, it=it, it_lag=lag))
                assert d.is_expected == (d.classification != GapClassification.INVESTIGATE_R7_ISSUE)
