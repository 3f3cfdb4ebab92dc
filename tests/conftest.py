"""
Competitor Intel - Test Configuration and Fixtures

In-memory fakes for every pipeline collaborator (fetcher, searcher, PDF
parser, reasoning engine, store, notifier) so runs are fully offline.
"""

import asyncio
import json

import pytest

from competitor_intel.analysis.prompts import ANALYSIS_SYSTEM
from competitor_intel.config import Config
from competitor_intel.errors import PersistenceError
from competitor_intel.models import SearchResult
from competitor_intel.pipeline import AnalysisPipeline


TARGET_URL = "https://acme.io"

PROFILE_JSON = json.dumps({
    "name": "Acme",
    "product": "Widget analytics for small businesses",
    "industry": "SaaS",
    "keywords": ["widgets", "analytics"],
    "targetMarket": "SMBs",
})

RANKING_JSON = json.dumps([
    {"name": "Beta", "url": "https://beta.com/features"},
    {"name": "G2", "url": "https://www.g2.com/products/beta"},
    {"name": "Acme", "url": "https://acme.io"},
    {"name": "Gamma", "url": "gamma.io"},
    {"name": "beta", "url": "https://beta-clone.com"},
])

ANALYSIS_JSON = json.dumps({
    "competitors": [
        {
            "name": "Beta",
            "url": "https://beta.com",
            "summary": "Widget dashboards",
            "threatLevel": "HIGH",
            "threatScore": "120",
            "keyDifferentiator": "Free tier",
        },
        {"name": "Gamma", "threatLevel": "bogus", "featureOverlap": 40},
        {"name": "Unknown Co", "threatLevel": "high"},
    ],
    "marketIntelligence": ["Consolidation is under way"],
    "recommendations": ["Ship a free tier", {"action": "Partner with resellers", "priority": "urgent"}],
    "marketOverview": {"totalAddressableMarket": "$2B", "growthTrend": "up"},
})


# ==============================================================================
# Fakes
# ==============================================================================

class FakeFetcher:
    """Returns canned page content; unknown URLs get a generic page."""

    def __init__(self, pages=None, failures=None, hang=()):
        self.pages = {TARGET_URL: "Acme builds widget analytics for small businesses."}
        self.pages.update(pages or {})
        self.failures = failures or {}
        self.hang = set(hang)
        self.calls = []

    async def fetch(self, url):
        self.calls.append(url)
        if url in self.hang:
            await asyncio.Event().wait()
        if url in self.failures:
            raise self.failures[url]
        return self.pages.get(url, f"content for {url}")


class FakeSearcher:
    def __init__(self, results=None, failing_queries=()):
        self.results = results if results is not None else [
            SearchResult(title="Beta - widget analytics", url="https://beta.com", description="Beta"),
        ]
        self.failing_queries = set(failing_queries)
        self.queries = []

    async def search(self, query, limit=5):
        self.queries.append(query)
        if query in self.failing_queries:
            raise RuntimeError(f"search backend down for {query}")
        return list(self.results[:limit])


class FakePdfParser:
    def __init__(self, text="PDF TEXT"):
        self.text = text
        self.urls = []

    async def parse_pdf(self, url):
        self.urls.append(url)
        return self.text


class FakeLLM:
    """Routes each prompt to a canned response by which stage sent it.

    A response may be a string, an exception instance (raised) or an async
    callable taking the prompt.
    """

    def __init__(self, **responses):
        self.responses = {
            "extract": PROFILE_JSON,
            "rank": RANKING_JSON,
            "analyze": ANALYSIS_JSON,
            "chat": "Beta is the top threat.",
        }
        self.responses.update(responses)
        self.calls = []

    @staticmethod
    def route(prompt, system):
        if system == ANALYSIS_SYSTEM:
            return "analyze"
        if prompt.startswith("Analyze this startup website content"):
            return "extract"
        if prompt.startswith("Given this startup"):
            return "rank"
        return "chat"

    def prompt_for(self, kind):
        return next(prompt for k, prompt, _ in self.calls if k == kind)

    async def complete(self, prompt, system=None):
        kind = self.route(prompt, system)
        self.calls.append((kind, prompt, system))
        response = self.responses[kind]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return await response(prompt)
        return response


class FakeStore:
    def __init__(self, fail_save=False):
        self.fail_save = fail_save
        self.saved = {}
        self.sent = []
        self.save_timeout = None

    def save(self, report, timeout=None):
        self.save_timeout = timeout
        if self.fail_save:
            raise PersistenceError("disk full")
        self.saved[report.id] = report.model_copy(deep=True)
        return report.id

    def mark_sent(self, report_id, email):
        self.sent.append((report_id, email))

    def close(self):
        pass


class FakeNotifier:
    def __init__(self, error=None):
        self.error = error
        self.messages = []

    async def send(self, recipient, subject, html_body, attachments=None):
        if self.error is not None:
            raise self.error
        self.messages.append({
            "recipient": recipient,
            "subject": subject,
            "html": html_body,
            "attachments": attachments or [],
        })
        return "msg_123"


class Recorder:
    """Synchronous progress sink that keeps every event."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def stages(self):
        return [e.stage for e in self.events]


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def config(tmp_path):
    return Config(
        anthropic_api_key="test-key",
        reports_db_path=str(tmp_path / "reports.db"),
    )


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def searcher():
    return FakeSearcher()


@pytest.fixture
def pdf_parser():
    return FakePdfParser()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_pipeline(config, fetcher, searcher, pdf_parser, llm, store, notifier):
    """Build a pipeline from the default fakes, overriding any by keyword."""

    def _make(**overrides):
        deps = {
            "fetcher": fetcher,
            "searcher": searcher,
            "pdf_parser": pdf_parser,
            "llm": llm,
            "store": store,
            "notifier": notifier,
        }
        deps.update(overrides)
        return AnalysisPipeline(config, **deps)

    return _make


