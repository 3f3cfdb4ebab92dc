"""
Competitor Intel - Report Store Tests

SQLite round trips against a temporary database file.

Run: pytest tests/test_store.py -v
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from competitor_intel.db import database as database_module
from competitor_intel.db.database import Database
from competitor_intel.db.migrations import run_migrations
from competitor_intel.db.store import ReportStore
from competitor_intel.errors import PersistenceError
from competitor_intel.models import (
    CompetitorAnalysis,
    MarketOverview,
    PricingTier,
    Recommendation,
    Report,
)


@pytest.fixture
def report_store(tmp_path):
    s = ReportStore(str(tmp_path / "reports.db"))
    yield s
    s.close()


def make_report(name="Acme", created_at=None, **kwargs):
    return Report(
        source_url=f"https://{name.lower()}.io",
        company_name=name,
        company_summary="Widget analytics",
        created_at=created_at or datetime.now(timezone.utc),
        competitors=[
            CompetitorAnalysis(
                name="Beta",
                url="https://beta.com",
                threat_level="high",
                threat_score=82,
                pricing_tier=PricingTier(low=9, high=49, model="per seat"),
                strengths=["Brand"],
            ),
            CompetitorAnalysis(name="Gamma", url="https://gamma.io"),
        ],
        market_intelligence=["Consolidation is under way"],
        recommendations=[Recommendation(action="Ship a free tier", priority="high", impact="Win SMBs")],
        market_overview=MarketOverview(total_addressable_market="$2B", growth_trend="growing"),
        **kwargs,
    )


class TestReportStore:

    def test_round_trip_is_lossless(self, report_store):
        """A saved report reads back equal to the original."""
        report = make_report()
        assert report_store.save(report) == report.id

        loaded = report_store.get(report.id)
        assert loaded == report

    def test_round_trip_minimal_report(self, report_store):
        """Empty sections and a missing market overview survive the round trip."""
        report = Report(source_url="https://acme.io", company_name="Acme")
        report_store.save(report)
        assert report_store.get(report.id) == report

    def test_get_missing_returns_none(self, report_store):
        assert report_store.get("does-not-exist") is None

    def test_mark_sent(self, report_store):
        report = make_report()
        report_store.save(report)

        report_store.mark_sent(report.id, "ceo@acme.io")
        report_store.mark_sent(report.id, "ceo@acme.io")

        loaded = report_store.get(report.id)
        assert loaded.report_sent is True
        assert loaded.recipient_email == "ceo@acme.io"

    def test_list_newest_first_with_limit(self, report_store):
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        for i, name in enumerate(["Old", "Middle", "New"]):
            report_store.save(make_report(name, created_at=base + timedelta(days=i)))

        names = [s.company_name for s in report_store.list(limit=2)]
        assert names == ["New", "Middle"]

        oldest_first = [s.company_name for s in report_store.list(newest_first=False)]
        assert oldest_first == ["Old", "Middle", "New"]

    def test_delete_all(self, report_store):
        report_store.save(make_report("A"))
        report_store.save(make_report("B"))

        assert report_store.delete_all() == 2
        assert report_store.list() == []

    def test_duplicate_id_is_persistence_error(self, report_store):
        report = make_report()
        report_store.save(report)
        with pytest.raises(PersistenceError):
            report_store.save(report)

    def test_unopenable_database(self, tmp_path):
        store = ReportStore(str(tmp_path / "missing-dir" / "reports.db"))
        with pytest.raises(PersistenceError):
            store.list()

    def test_save_timeout_waiting_for_connection(self, report_store):
        """A save that cannot get the connection in time fails and stores nothing."""
        report_store.list()
        held, release = threading.Event(), threading.Event()

        def hold_lock():
            with report_store.db._lock:
                held.set()
                release.wait(5)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        held.wait(5)
        report = make_report()
        try:
            with pytest.raises(PersistenceError, match="timed out"):
                report_store.save(report, timeout=0.05)
        finally:
            release.set()
            holder.join()

        assert report_store.get(report.id) is None

    def test_save_past_deadline_is_rolled_back(self, report_store, monkeypatch):
        """An insert that finishes after its deadline is never committed."""
        report_store.list()
        report = make_report()
        clock = iter([0.0, 0.0, 100.0])
        monkeypatch.setattr(database_module.time, "monotonic", lambda: next(clock, 100.0))

        with pytest.raises(PersistenceError, match="timed out"):
            report_store.save(report, timeout=5)
        monkeypatch.undo()

        assert report_store.get(report.id) is None
        assert report_store.list() == []

    def test_save_within_timeout(self, report_store):
        report = make_report()
        report_store.save(report, timeout=5)
        assert report_store.get(report.id) == report


class TestMigrations:

    def test_applied_once(self, tmp_path):
        db = Database(str(tmp_path / "m.db"))
        db.connect()
        try:
            assert run_migrations(db) == ["001_reports.sql"]
            assert run_migrations(db) == []
        finally:
            db.close()
