"""
Competitor Intel - CLI Tests

Exercises the read-only commands against a temporary report database.

Run: pytest tests/test_cli.py -v
"""

import json

import click
import pytest
from click.testing import CliRunner

from competitor_intel.cli import main
from competitor_intel.db.store import ReportStore
from competitor_intel.models import CompetitorAnalysis, Report


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "cli.db")
    monkeypatch.setenv("REPORTS_DB_PATH", path)
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    return path


@pytest.fixture
def saved_report(db_path):
    report = Report(
        source_url="https://acme.io",
        company_name="Acme",
        competitors=[CompetitorAnalysis(name="Beta", url="https://beta.com", threat_level="high")],
    )
    store = ReportStore(db_path)
    store.save(report)
    store.close()
    return report


class TestCli:

    def test_history_empty(self, db_path):
        result = CliRunner().invoke(main, ["history"])
        assert result.exit_code == 0
        assert "No saved reports." in click.unstyle(result.output)

    def test_history_lists_reports(self, saved_report):
        result = CliRunner().invoke(main, ["history"])
        assert result.exit_code == 0
        assert saved_report.id in click.unstyle(result.output)

    def test_show_json(self, saved_report):
        result = CliRunner().invoke(main, ["show", saved_report.id, "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output[result.output.index("{"):])
        assert data["id"] == saved_report.id
        assert data["competitors"][0]["name"] == "Beta"

    def test_show_unknown(self, db_path):
        result = CliRunner().invoke(main, ["show", "nope"])
        assert result.exit_code == 1
        assert "Report not found" in click.unstyle(result.output)

    def test_send_requires_resend_key(self, saved_report):
        result = CliRunner().invoke(main, ["send", saved_report.id, "ceo@acme.io"])
        assert result.exit_code == 1
        assert "RESEND_API_KEY" in click.unstyle(result.output)

    def test_clear(self, saved_report, db_path):
        result = CliRunner().invoke(main, ["clear", "--yes"])
        assert result.exit_code == 0
        assert "Deleted 1 report(s)." in click.unstyle(result.output)

        store = ReportStore(db_path)
        assert store.list() == []
        store.close()

    def test_clear_aborts_without_confirmation(self, saved_report):
        result = CliRunner().invoke(main, ["clear"], input="n\n")
        assert result.exit_code == 1

    def test_export_to_output_path(self, saved_report, tmp_path):
        out = tmp_path / "acme-report.html"
        result = CliRunner().invoke(main, ["export", saved_report.id, "--output", str(out)])

        assert result.exit_code == 0
        html = out.read_text(encoding="utf-8")
        assert html.startswith("<!DOCTYPE html>")
        assert "Acme" in html
        assert "Beta" in html

    def test_export_default_filename(self, saved_report, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(main, ["export", saved_report.id])

        assert result.exit_code == 0
        assert (tmp_path / "competitor-intel-acme.html").exists()

    def test_export_unknown(self, db_path, tmp_path):
        result = CliRunner().invoke(main, ["export", "nope", "-o", str(tmp_path / "x.html")])
        assert result.exit_code == 1
        assert "Report not found" in click.unstyle(result.output)
        assert not (tmp_path / "x.html").exists()
