"""
Tests for the report builders: gap report, recovery report, endpoint
insights and the dashboard summary.
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from fleethealth.core.errors import EndpointNotFoundError
from fleethealth.models import Endpoint
from fleethealth.services.gap import GapClassification
from fleethealth.services.recovery import RecoveryStatus
from fleethealth.services.reports import (
    Priority,
    build_recommendations,
    dashboard_summary,
    endpoint_insights,
    gap_report,
    gap_report_from,
    recovery_report,
    recovery_report_from,
)
from fleethealth.services.stability import classify_stability

from factories import days_ending, fully, partially, snap, store, unhealthy

LATEST = date(2025, 3, 31)


def _series(shortname, *levels_and_counts, end=LATEST):
    builders = [b for b, n in levels_and_counts for _ in range(n)]
    return [b(d, shortname) for b, d in zip(builders, days_ending(end, len(builders)))]


# ---------------------------------------------------------------------------
# Gap report
# ---------------------------------------------------------------------------

class TestGapReport:
    def test_counts_and_breakdown(self):
        report = gap_report_from([
            snap(LATEST, "WS-001", r7=True),
            snap(LATEST, "WS-002", it=True, it_lag=2),
            snap(LATEST, "WS-003", it=False),
            snap(LATEST, "WS-004", it=True, it_lag=15, am=True),
        ])
        assert report.total_endpoints == 4
        assert report.r7_present == 1
        assert report.expected_gaps == 2
        assert report.investigate_gaps == 1
        assert report.breakdown == {
            "EXPECTED_RECENT_OFFLINE": 1,
            "EXPECTED_INACTIVE": 1,
            "INVESTIGATE_R7_ISSUE": 1,
            "EXPECTED_OFFLINE": 0,
        }
        assert [e.shortname for e in report.to_investigate] == ["WS-004"]
        assert [e.shortname for e in report.expected_gap_endpoints] == ["WS-002", "WS-003"]

    def test_uses_latest_day_only(self, db):
        store(
            db,
            snap(LATEST - timedelta(days=1), "WS-001", it=True, it_lag=15, df=True),
            snap(LATEST, "WS-001", r7=True),
        )
        report = gap_report(db)
        assert report.total_endpoints == 1
        assert report.r7_present == 1
        assert report.investigate_gaps == 0

    def test_empty_store(self, db):
        report = gap_report(db)
        assert report.total_endpoints == 0
        assert set(report.breakdown.values()) == {0}


# ---------------------------------------------------------------------------
# Recovery report
# ---------------------------------------------------------------------------

class TestRecoveryReport:
    def test_statuses_and_average(self):
        metrics = [
            # fully for 3 days: elapsed 2
            classify_stability("WS-001", _series("WS-001", (unhealthy, 5), (fully, 3))),
            # fully for 5 days: elapsed 4
            classify_stability("WS-002", _series("WS-002", (unhealthy, 5), (fully, 5))),
            # improving, 1 day in
            classify_stability("WS-003", _series("WS-003", (unhealthy, 5), (partially, 2))),
            # degraded today
            classify_stability("WS-004", _series("WS-004", (fully, 5), (unhealthy, 1))),
            # no change at all
            classify_stability("WS-005", _series("WS-005", (fully, 5))),
        ]
        report = recovery_report_from(metrics)
        assert report.total_recovering == 4
        assert report.fully_recovered == 2
        assert report.normal_recovery == 1
        assert report.stuck_recovery == 1
        assert report.average_recovery_days == Decimal("3.0")
        assert [e.shortname for e in report.recovering] == ["WS-003", "WS-004"]
        assert [e.shortname for e in report.stuck] == ["WS-004"]
        stuck = report.stuck[0]
        assert stuck.status == RecoveryStatus.NOT_RECOVERING
        assert stuck.recovery_start_date == LATEST
        assert stuck.days_since_recovery_start == 0
        assert stuck.expected_recovery_days == 2

    def test_average_rounds_to_one_decimal(self):
        metrics = [
            classify_stability("WS-001", _series("WS-001", (unhealthy, 3), (fully, 1))),
            classify_stability("WS-002", _series("WS-002", (unhealthy, 3), (fully, 2))),
            classify_stability("WS-003", _series("WS-003", (unhealthy, 3), (fully, 2))),
        ]
        # (0 + 1 + 1) / 3 = 0.666…
        assert recovery_report_from(metrics).average_recovery_days == Decimal("0.7")

    def test_empty(self, db):
        report = recovery_report(db, 30)
        assert report.total_recovering == 0
        assert report.average_recovery_days == Decimal("0.0")


# ---------------------------------------------------------------------------
# Recommendations and endpoint insights
# ---------------------------------------------------------------------------

class TestRecommendations:
    def test_healthy(self):
        m = classify_stability("WS-001", _series("WS-001", (fully, 10)))
        assert build_recommendations(m) == ["System operating normally - continue monitoring"]

    def test_degrading_with_r7_issue(self):
        snaps = _series("WS-001", (fully, 10)) + [
            snap(LATEST + timedelta(days=1), "WS-001", am=True, it=True, it_lag=15),
        ]
        m = classify_stability("WS-001", snaps)
        assert m.gap.classification == GapClassification.INVESTIGATE_R7_ISSUE
        recs = build_recommendations(m)
        assert recs[0] == "System health recently declined - investigate what changed"
        assert "R7 agent may need reinstallation or configuration check" in recs
        assert recs[-1] == "Verify network connectivity and tool agent configurations"


class TestEndpointInsights:
    def test_unknown_endpoint(self, db):
        with pytest.raises(EndpointNotFoundError) as exc:
            endpoint_insights(db, "NOPE", 30)
        assert exc.value.http_status == 404

    def test_endpoint_without_snapshots_has_insufficient_data(self, db):
        db.add(Endpoint(shortname="WS-NEW", fullname="WS-NEW.corp", env="prod"))
        db.commit()
        insights = endpoint_insights(db, "WS-NEW", 30)
        assert insights.insufficient_data is True
        assert insights.recommendations == ()
        assert insights.history == ()

    def test_metrics_history_and_recommendations(self, db):
        store(db, *_series("WS-001", (unhealthy, 3), (fully, 4)))
        insights = endpoint_insights(db, "WS-001", 30)
        assert insights.insufficient_data is False
        assert insights.metrics.recovery.status == RecoveryStatus.FULLY_RECOVERED
        assert len(insights.history) == 7
        assert insights.history[0].day == LATEST - timedelta(days=6)
        assert insights.history[-1].level.value == "fully"
        assert insights.recommendations[0].startswith("System recovering normally")

    def test_anchored_on_fleet_latest_date(self, db):
        store(
            db,
            *_series("WS-001", (unhealthy, 3), (partially, 2), end=LATEST - timedelta(days=5)),
            fully(LATEST, "WS-002"),
        )
        m = endpoint_insights(db, "WS-001", 30).metrics
        assert m.as_of == LATEST
        assert m.recovery.elapsed_days == 6
        assert m.recovery.status == RecoveryStatus.STUCK_RECOVERY


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

class TestDashboard:
    def test_empty_store(self, db):
        summary = dashboard_summary(db, 30)
        assert summary.overview.total_endpoints == 0
        assert summary.critical_insights == ()
        assert summary.gap_summary.percentage_expected == 0
        assert [a.category for a in summary.action_items] == ["Expected Behavior"]
        assert summary.action_items[0].endpoint_count == 0

    def test_insights_and_action_items(self, db):
        store(
            db,
            *_series("WS-001", (fully, 10)),
            *_series("WS-002", (unhealthy, 10)),
            *_series("WS-003", (fully, 10)),
            *[snap(d, "WS-004", am=True, it=True, it_lag=15) for d in days_ending(LATEST, 10)],
        )
        summary = dashboard_summary(db, 30)

        titles = [i.title for i in summary.critical_insights]
        assert titles == ["Systems Requiring Investigation", "Stable Healthy Systems"]
        investigate = summary.critical_insights[0]
        assert investigate.count == 2
        assert investigate.endpoints == ("WS-002", "WS-004")

        categories = [a.category for a in summary.action_items]
        assert categories == ["Chronic Issues", "R7 Configuration", "Expected Behavior"]
        assert summary.action_items[0].priority == Priority.HIGH
        assert summary.action_items[1].endpoints == ("WS-004",)
        assert summary.action_items[-1].endpoint_count == 2

        # WS-002 and WS-004 both missing r7; only WS-004 unexpected
        assert summary.gap_summary.expected_gaps == 1
        assert summary.gap_summary.investigate_gaps == 1
        assert summary.gap_summary.percentage_expected == 50
