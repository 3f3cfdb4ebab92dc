"""
Competitor Intel - Report Email Tests

Rendering, the Resend client (over httpx.MockTransport) and send_report.

Run: pytest tests/test_notify.py -v
"""

import base64
import json

import httpx
import pytest

from competitor_intel.errors import NotifyError
from competitor_intel.models import CompetitorAnalysis, MarketOverview, Recommendation, Report
from competitor_intel.notify import resend_client
from competitor_intel.notify.report_email import (
    attachment_filename,
    email_subject,
    render_report_email,
    send_report,
)
from competitor_intel.notify.resend_client import ResendNotifier

from conftest import FakeNotifier


@pytest.fixture
def report():
    return Report(
        source_url="https://acme.io",
        company_name="Acme Widgets",
        company_summary="Widget analytics",
        competitors=[
            CompetitorAnalysis(name="Low Co", threat_level="low"),
            CompetitorAnalysis(name="<Big> & Co", threat_level="high", threat_score=91, key_differentiator="Price"),
        ],
        market_intelligence=["Buyers want bundles"],
        recommendations=[Recommendation(action="Bundle features", priority="high", impact="Retention")],
        market_overview=MarketOverview(total_addressable_market="$2B"),
    )


@pytest.fixture
def mock_httpx(monkeypatch):
    """Route the Resend client's httpx calls to a handler; returns captured requests."""
    captured = []
    state = {"response": httpx.Response(200, json={"id": "msg_1"})}
    real_client = httpx.AsyncClient

    def handler(request):
        captured.append(request)
        return state["response"]

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(resend_client.httpx, "AsyncClient", factory)
    return captured, state


class TestRendering:

    def test_subject_and_filename(self, report):
        assert email_subject(report) == "Competitor Intel: Acme Widgets vs 2 Competitors"
        assert attachment_filename(report) == "competitor-intel-acme-widgets.html"

    def test_escapes_and_sorts_by_threat(self, report):
        body = render_report_email(report)

        assert "&lt;Big&gt; &amp; Co" in body
        assert "<Big>" not in body
        assert body.index("&lt;Big&gt;") < body.index("Low Co")
        assert "HIGH 91" in body

    def test_sections_present(self, report):
        body = render_report_email(report)
        assert "Buyers want bundles" in body
        assert "Bundle features" in body
        assert "$2B" in body

    def test_no_competitors(self):
        body = render_report_email(Report(source_url="https://acme.io", company_name="Acme"))
        assert "No direct competitors were identified." in body


class TestResendNotifier:

    @pytest.mark.asyncio
    async def test_sends_payload_with_attachment(self, mock_httpx):
        captured, _ = mock_httpx
        notifier = ResendNotifier("re_test", "Intel <intel@example.com>")

        message_id = await notifier.send(
            "ceo@acme.io", "Subject", "<p>hi</p>", [("report.html", b"<p>hi</p>")],
        )

        assert message_id == "msg_1"
        request = captured[0]
        assert request.headers["Authorization"] == "Bearer re_test"
        payload = json.loads(request.content)
        assert payload["to"] == ["ceo@acme.io"]
        assert payload["from"] == "Intel <intel@example.com>"
        assert base64.b64decode(payload["attachments"][0]["content"]) == b"<p>hi</p>"

    @pytest.mark.asyncio
    async def test_http_error_raises_notify_error(self, mock_httpx):
        _, state = mock_httpx
        state["response"] = httpx.Response(422, json={"message": "invalid to address"})

        with pytest.raises(NotifyError, match="422"):
            await ResendNotifier("re_test", "intel@example.com").send("bad", "s", "b")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(NotifyError, match="RESEND_API_KEY"):
            await ResendNotifier("", "intel@example.com").send("ceo@acme.io", "s", "b")


class TestSendReport:

    @pytest.mark.asyncio
    async def test_attaches_rendered_html(self, report):
        notifier = FakeNotifier()
        await send_report(report, "ceo@acme.io", notifier)

        message = notifier.messages[0]
        filename, content = message["attachments"][0]
        assert filename == attachment_filename(report)
        assert content.decode("utf-8") == message["html"]

    @pytest.mark.asyncio
    async def test_propagates_notify_error(self, report):
        with pytest.raises(NotifyError):
            await send_report(report, "ceo@acme.io", FakeNotifier(error=NotifyError("down")))
