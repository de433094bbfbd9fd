"""
Tests for the Aggregation Layer and the snapshot store queries beneath it.
"""
from __future__ import annotations

from datetime import date, timedelta

from fleethealth.services import snapshot_store
from fleethealth.services.fleet import (
    analyze_fleet,
    classify_fleet,
    fold_overview,
    summarize_fleet,
)
from fleethealth.services.stability import StabilityClassification as C

from factories import days_ending, fully, snap, store, unhealthy

LATEST = date(2025, 3, 31)


def _steady(builder, shortname, count=10, end=LATEST, **kw):
    return [builder(d, shortname, **kw) for d in days_ending(end, count)]


# ---------------------------------------------------------------------------
# Snapshot store
# ---------------------------------------------------------------------------

class TestSnapshotStore:
    def test_latest_snapshot_date_counts_fake_rows(self, db):
        store(db, fully(LATEST - timedelta(days=1), "WS-001"), fully(LATEST, "FAKE-1", fake=True))
        assert snapshot_store.latest_snapshot_date(db) == LATEST

    def test_latest_snapshot_date_empty(self, db):
        assert snapshot_store.latest_snapshot_date(db) is None

    def test_duplicate_day_keeps_highest_id(self, db):
        store(db, unhealthy(LATEST, "WS-001"))
        store(db, fully(LATEST, "WS-001"))
        rows = snapshot_store.snapshots_on(db, LATEST)
        assert len(rows) == 1
        assert rows[0].r7_found is True

    def test_replayed_fake_row_hides_the_day(self, db):
        store(db, *_steady(fully, "WS-001"))
        store(db, unhealthy(LATEST, "WS-001", fake=True))

        grouped = snapshot_store.snapshots_in_range(db, ["WS-001"], LATEST - timedelta(days=30), LATEST)
        assert LATEST not in [s.import_date for s in grouped["WS-001"]]
        assert len(grouped["WS-001"]) == 9
        assert snapshot_store.endpoints_active_on(db, LATEST) == set()
        assert snapshot_store.snapshots_on(db, LATEST) == []
        assert snapshot_store.snapshots_for_endpoint(db, "WS-001", LATEST, LATEST) == []
        assert analyze_fleet(db, 30).metrics == ()

    def test_replayed_real_row_replaces_fake_row(self, db):
        store(db, unhealthy(LATEST, "WS-001", fake=True))
        store(db, fully(LATEST, "WS-001"))

        assert snapshot_store.endpoints_active_on(db, LATEST) == {"WS-001"}
        rows = snapshot_store.snapshots_on(db, LATEST)
        assert len(rows) == 1
        assert rows[0].possible_fake is False
        assert rows[0].r7_found is True

    def test_filters_apply_to_the_authoritative_row(self, db):
        store(db, fully(LATEST, "WS-001", env="prod"))
        store(db, fully(LATEST, "WS-001", env="lab"))
        assert snapshot_store.endpoints_active_on(db, LATEST, env="prod") == set()
        assert snapshot_store.endpoints_active_on(db, LATEST, env="lab") == {"WS-001"}

    def test_range_groups_by_endpoint(self, db):
        store(db, *_steady(fully, "WS-001", 3), *_steady(unhealthy, "WS-002", 2))
        grouped = snapshot_store.snapshots_in_range(
            db, ["WS-001", "WS-002", "WS-404"], LATEST - timedelta(days=5), LATEST,
        )
        assert sorted(grouped) == ["WS-001", "WS-002"]
        assert [s.import_date for s in grouped["WS-001"]] == days_ending(LATEST, 3)

    def test_range_with_no_names(self, db):
        assert snapshot_store.snapshots_in_range(db, [], LATEST, LATEST) == {}

    def test_desktop_filter(self, db):
        store(
            db,
            fully(LATEST, "WS-001", server_os="False"),
            fully(LATEST, "WS-002", server_os=None),
            fully(LATEST, "WS-003", server_os="0"),
            fully(LATEST, "SRV-001", server_os="True"),
            fully(LATEST, "MAC-001", os_family="macOS"),
        )
        names = snapshot_store.endpoints_active_on(db, LATEST, desktop_windows_only=True)
        assert names == {"WS-001", "WS-002", "WS-003"}


# ---------------------------------------------------------------------------
# Fleet analysis
# ---------------------------------------------------------------------------

class TestAnalyzeFleet:
    def test_empty_store_gives_zero_overview(self, db):
        overview = summarize_fleet(db, 30)
        assert overview.total_endpoints == 0
        assert overview.average_stability_score == 0
        assert overview.actionable_count == 0
        assert overview.window_end is None

    def test_counts_by_classification(self, db):
        store(
            db,
            *_steady(fully, "WS-001"),
            *_steady(unhealthy, "WS-002"),
            *[
                (fully if i % 2 == 0 else unhealthy)(d, "WS-003")
                for i, d in enumerate(days_ending(LATEST, 31))
            ],
        )
        overview = summarize_fleet(db, 30)
        assert overview.total_endpoints == 3
        assert overview.stable_healthy == 1
        assert overview.stable_unhealthy == 1
        assert overview.flapping == 1
        assert overview.recovering == 0
        assert overview.degrading == 0
        # WS-002 is consistently unhealthy; FLAPPING alone is not actionable
        assert overview.actionable_count == 1
        assert overview.expected_behavior_count == 2
        assert overview.window_start == LATEST - timedelta(days=30)
        assert overview.window_end == LATEST

    def test_window_is_anchored_on_latest_snapshot(self, db):
        # Ten days in, far from any wall-clock "today"
        store(db, *_steady(fully, "WS-001", end=date(2021, 6, 10)))
        analysis = analyze_fleet(db, 5)
        assert analysis.window_end == date(2021, 6, 10)
        assert analysis.window_start == date(2021, 6, 5)
        assert analysis.metrics[0].days_tracked == 6

    def test_only_endpoints_present_on_latest_day(self, db):
        store(db, *_steady(fully, "WS-001"), *_steady(fully, "WS-GONE", end=LATEST - timedelta(days=1)))
        analysis = analyze_fleet(db, 30)
        assert [m.shortname for m in analysis.metrics] == ["WS-001"]

    def test_env_filter(self, db):
        store(db, *_steady(fully, "WS-001", env="prod"), *_steady(fully, "WS-002", env="lab"))
        analysis = analyze_fleet(db, 30, env="lab")
        assert [m.shortname for m in analysis.metrics] == ["WS-002"]
        assert analysis.env == "lab"

    def test_fake_rows_excluded(self, db):
        store(db, *_steady(fully, "WS-001"), *_steady(unhealthy, "WS-FAKE", fake=True))
        assert summarize_fleet(db, 30).total_endpoints == 1

    def test_fake_day_does_not_break_history(self, db):
        rows = _steady(fully, "WS-001")
        rows[4] = unhealthy(rows[4].import_date, "WS-001", fake=True)
        store(db, *rows)
        m = analyze_fleet(db, 30).metrics[0]
        assert m.days_tracked == 9
        assert m.health_change_count == 0

    def test_duplicate_rows_collapse_before_classification(self, db):
        store(db, *_steady(fully, "WS-001"))
        store(db, unhealthy(LATEST - timedelta(days=3), "WS-001"))
        store(db, fully(LATEST - timedelta(days=3), "WS-001"))
        m = analyze_fleet(db, 30).metrics[0]
        assert m.days_tracked == 10
        assert m.health_change_count == 0

    def test_same_data_same_result(self, db):
        store(db, *_steady(fully, "WS-001"), *_steady(unhealthy, "WS-002", count=4))
        assert analyze_fleet(db, 30) == analyze_fleet(db, 30)


class TestClassifyFleet:
    def test_desktop_windows_only(self, db):
        store(
            db,
            *_steady(fully, "WS-001"),
            *_steady(unhealthy, "SRV-001", server_os="True"),
        )
        result = classify_fleet(db, 30)
        assert [m.shortname for m in result.systems] == ["WS-001"]
        assert result.overview.total_endpoints == 1

    def test_split_actionable_and_expected(self, db):
        store(db, *_steady(fully, "WS-001"), *_steady(unhealthy, "WS-002"))
        result = classify_fleet(db, 30)
        assert [m.shortname for m in result.actionable] == ["WS-002"]
        assert [m.shortname for m in result.expected_behavior] == ["WS-001"]
        assert result.actionable[0].classification == C.STABLE_UNHEALTHY


def test_fold_overview_rounds_mean_half_up():
    class _M:
        def __init__(self, score):
            self.stability_score = score
            self.classification = C.STABLE_HEALTHY
            self.is_actionable = False

    overview = fold_overview([_M(90), _M(91)], 30)
    assert overview.average_stability_score == 91
    assert overview.stable_healthy == 2


def test_snap_defaults_are_desktop_windows():
    s = snap()
    assert s.server_os == "False"
    assert s.os_family == "Windows"
