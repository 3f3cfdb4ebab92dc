"""
Competitor Intel - Search Provider & Document Parser Tests

Run: pytest tests/test_search_and_scrape.py -v
"""

import asyncio

import pytest

from competitor_intel.config import Config
from competitor_intel.errors import SearchError
from competitor_intel.models import CompanyProfile, SearchResult
from competitor_intel.scrape.pdf_parser import PdfParser, find_pdf_links
from competitor_intel.search import duckduckgo_client as ddg_module
from competitor_intel.search import searcher as searcher_module
from competitor_intel.search.searcher import WebSearcher
from competitor_intel.search.strategy import generate_queries


class TestQueries:

    def test_three_variants(self):
        profile = CompanyProfile(name="Acme", product="Widget analytics", industry="SaaS")
        assert [q["query"] for q in generate_queries(profile)] == [
            "Acme alternatives",
            "Acme vs competitors",
            "Widget analytics competitors SaaS",
        ]

    def test_missing_industry(self):
        profile = CompanyProfile(name="Acme", product="Widget analytics")
        assert generate_queries(profile)[2]["query"] == "Widget analytics competitors"


class TestWebSearcher:

    @pytest.fixture
    def providers(self, monkeypatch):
        calls = {"firecrawl": 0, "ddg": 0}
        state = {"firecrawl_error": None}

        async def fake_firecrawl(query, api_key, num_results=5, timeout=60):
            calls["firecrawl"] += 1
            if state["firecrawl_error"] is not None:
                raise state["firecrawl_error"]
            return [SearchResult(title="fc", url="https://fc.com")]

        async def fake_ddg(query, num_results=5):
            calls["ddg"] += 1
            return [SearchResult(title="ddg", url="https://ddg.com")]

        monkeypatch.setattr(searcher_module, "search_firecrawl", fake_firecrawl)
        monkeypatch.setattr(searcher_module, "search_ddg", fake_ddg)
        return calls, state

    @pytest.mark.asyncio
    async def test_ddg_without_key(self, providers):
        calls, _ = providers
        results = await WebSearcher(Config()).search("acme alternatives")
        assert results[0].title == "ddg"
        assert calls == {"firecrawl": 0, "ddg": 1}

    @pytest.mark.asyncio
    async def test_firecrawl_with_key(self, providers):
        calls, _ = providers
        results = await WebSearcher(Config(firecrawl_key="fc-key")).search("acme alternatives")
        assert results[0].title == "fc"
        assert calls["ddg"] == 0

    @pytest.mark.asyncio
    async def test_transient_error_falls_back_once(self, providers):
        """A non-payment error falls back for that query only."""
        calls, state = providers
        state["firecrawl_error"] = SearchError("HTTP 500")
        searcher = WebSearcher(Config(firecrawl_key="fc-key"))

        await searcher.search("q1")
        state["firecrawl_error"] = None
        results = await searcher.search("q2")

        assert results[0].title == "fc"
        assert calls == {"firecrawl": 2, "ddg": 1}

    @pytest.mark.asyncio
    async def test_payment_error_is_sticky(self, providers):
        """After a payment error Firecrawl is never tried again."""
        calls, state = providers
        state["firecrawl_error"] = SearchError("HTTP 402", payment_required=True)
        searcher = WebSearcher(Config(firecrawl_key="fc-key"))

        await searcher.search("q1")
        await searcher.search("q2")

        assert calls == {"firecrawl": 1, "ddg": 2}


class TestDuckDuckGoLocks:

    def test_one_lock_per_live_loop(self):
        """Each loop gets its own lock and closed loops are forgotten."""
        async def get_lock():
            return ddg_module._get_lock()

        first = asyncio.new_event_loop()
        try:
            lock = first.run_until_complete(get_lock())
            assert first.run_until_complete(get_lock()) is lock
        finally:
            first.close()

        assert asyncio.run(get_lock()) is not lock
        assert first not in ddg_module._locks

class TestPdfLinks:

    def test_first_occurrence_order_deduplicated(self):
        links = find_pdf_links(
            "Read https://a.com/deck.pdf or (https://a.com/brochure.PDF).",
            None,
            "Again https://a.com/deck.pdf",
        )
        assert links == ["https://a.com/deck.pdf", "https://a.com/brochure.PDF"]

    def test_markdown_link(self):
        assert find_pdf_links("[Whitepaper](https://b.io/files/wp.pdf)") == ["https://b.io/files/wp.pdf"]

    def test_none_found(self):
        assert find_pdf_links("no documents here", "") == []


class TestPdfParser:

    @pytest.mark.asyncio
    async def test_unparseable_pdf_returns_none(self, monkeypatch):
        """Garbage bytes are a best-effort miss, not an exception."""
        parser = PdfParser()

        async def fake_download(url):
            return b"this is not a pdf"

        monkeypatch.setattr(parser, "_download", fake_download)
        assert await parser.parse_pdf("https://a.com/deck.pdf") is None

    @pytest.mark.asyncio
    async def test_failed_download_returns_none(self, monkeypatch):
        parser = PdfParser()

        async def fake_download(url):
            return None

        monkeypatch.setattr(parser, "_download", fake_download)
        assert await parser.parse_pdf("https://a.com/deck.pdf") is None
