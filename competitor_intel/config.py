"""Configuration management via environment variables and .env file."""

from __future__ import annotations

import os
import sys

from dotenv import load_dotenv
from pydantic import BaseModel


class Config(BaseModel):
    """Application configuration loaded from environment."""

    # API keys (firecrawl optional, falls back to DuckDuckGo + trafilatura)
    firecrawl_key: str = ""
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    resend_api_key: str = ""

    # Claude / OpenAI models
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_model: str = "gpt-4o"
    llm_max_tokens: int = 4096
    llm_temperature: float = 0

    # Search settings
    search_results_per_query: int = 5

    # Scraping
    scrape_timeout: int = 30
    target_max_chars: int = 8000
    homepage_max_chars: int = 3000
    subpage_max_chars: int = 2000
    pdf_max_chars: int = 2000
    analysis_budget_chars: int = 30000

    # Pipeline
    max_competitors: int = 5
    stage_timeout: float = 300
    pdf_timeout: float = 30

    # Storage
    reports_db_path: str = ".competitor_intel.db"

    # Email
    report_from_email: str = "Competitor Intel <onboarding@resend.dev>"


def load_config(require_llm: bool = True) -> Config:
    """Load configuration from .env file and environment variables.

    Environment variables override .env values.
    Exits with an error message if required keys are missing. Commands that
    only read stored reports pass ``require_llm=False``.
    """
    load_dotenv()

    firecrawl_key = os.getenv("FIRECRAWL_KEY", "")
    anthropic_key = os.getenv("ANTHROPIC_API_KEY", "")
    openai_key = os.getenv("OPENAI_API_KEY", "")
    resend_key = os.getenv("RESEND_API_KEY", "")

    # At least one LLM key required
    if require_llm and not anthropic_key and not openai_key:
        print("Configuration error:", file=sys.stderr)
        print("  - At least one LLM key required: ANTHROPIC_API_KEY or OPENAI_API_KEY", file=sys.stderr)
        print("\nSet these in a .env file or as environment variables.", file=sys.stderr)
        sys.exit(1)

    # Warn about missing keys (non-fatal)
    if require_llm and not firecrawl_key:
        print("  Note: FIRECRAWL_KEY not set, using DuckDuckGo search and direct scraping", file=sys.stderr)
    if not resend_key:
        print("  Note: RESEND_API_KEY not set, reports cannot be emailed", file=sys.stderr)

    return Config(
        firecrawl_key=firecrawl_key,
        anthropic_api_key=anthropic_key,
        openai_api_key=openai_key,
        resend_api_key=resend_key,
        anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4096")),
        search_results_per_query=int(os.getenv("SEARCH_RESULTS_PER_QUERY", "5")),
        scrape_timeout=int(os.getenv("SCRAPE_TIMEOUT", "30")),
        analysis_budget_chars=int(os.getenv("ANALYSIS_BUDGET_CHARS", "30000")),
        max_competitors=int(os.getenv("MAX_COMPETITORS", "5")),
        stage_timeout=float(os.getenv("STAGE_TIMEOUT", "300")),
        pdf_timeout=float(os.getenv("PDF_TIMEOUT", "30")),
        reports_db_path=os.getenv("REPORTS_DB_PATH", ".competitor_intel.db"),
        report_from_email=os.getenv(
            "REPORT_FROM_EMAIL", "Competitor Intel <onboarding@resend.dev>",
        ),
    )
