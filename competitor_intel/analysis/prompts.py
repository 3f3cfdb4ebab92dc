"""Claude prompt templates for profile extraction, competitor ranking, analysis and chat."""

from __future__ import annotations

import json

from competitor_intel.analysis.scoring import serialize_raw_data
from competitor_intel.models import (
    CompanyProfile,
    CompetitorRawData,
    Report,
    SearchResult,
)

# ---------------------------------------------------------------------------
# PROMPT 1: Company profile extraction
# ---------------------------------------------------------------------------

EXTRACTION_PROMPT = """Analyze this startup website content and return ONLY valid JSON (no markdown):
{{
  "name": "company name",
  "product": "what they do in 1-2 sentences",
  "industry": "industry/category",
  "keywords": ["keyword1", "keyword2", "keyword3"],
  "targetMarket": "who they sell to"
}}

Website content:
{content}"""


def build_extraction_prompt(content: str) -> str:
    return EXTRACTION_PROMPT.format(content=content)


# ---------------------------------------------------------------------------
# PROMPT 2: Competitor ranking
# ---------------------------------------------------------------------------

RANKING_PROMPT = """Given this startup: {name} - {product}

Here are search results for competitors:
{results_json}

Return ONLY valid JSON array of the top {max_competitors} most relevant COMPETITORS (not the startup itself, not review sites like G2/Capterra). Each entry: {{"name": "...", "url": "..."}}
Exclude {name} itself and any non-competitor URLs (blogs, review aggregators, news articles).
Use each competitor's own homepage as the url. Do not list the same competitor twice."""


def build_ranking_prompt(
    profile: CompanyProfile,
    results: list[SearchResult],
    max_competitors: int = 5,
) -> str:
    results_json = json.dumps([r.model_dump() for r in results], indent=2)
    return RANKING_PROMPT.format(
        name=profile.name,
        product=profile.product,
        results_json=results_json,
        max_competitors=max_competitors,
    )


# ---------------------------------------------------------------------------
# PROMPT 3: Comparative analysis
# ---------------------------------------------------------------------------

ANALYSIS_SYSTEM = (
    "You are an expert competitive intelligence analyst. Be specific and "
    "actionable. Base analysis only on the provided data."
)

ANALYSIS_PROMPT = """You are a competitive intelligence analyst. Analyze these competitors against {name} ({product}).

Industry: {industry}
Target market: {target_market}

For each competitor, provide detailed analysis. Return ONLY valid JSON:
{{
  "competitors": [
    {{
      "name": "...",
      "url": "...",
      "summary": "what they do",
      "pricing": "pricing breakdown",
      "pricingTier": {{"low": 0, "high": 0, "model": "per seat / usage / flat"}},
      "recentMoves": "recent activity from blog/news",
      "hiringSignals": "notable job postings and what they signal",
      "keyDifferentiator": "what makes them a threat",
      "threatLevel": "high|medium|low",
      "threatScore": 0-100,
      "featureOverlap": 0-100,
      "marketPresence": 0-100,
      "fundingStage": "seed / series A / ... / public / unknown",
      "estimatedEmployees": "rough headcount range",
      "strengths": ["..."],
      "weaknesses": ["..."]
    }}
  ],
  "marketIntelligence": ["insight1", "insight2", "insight3"],
  "recommendations": [
    {{"action": "actionable rec", "priority": "high|medium|low", "impact": "expected impact"}}
  ],
  "marketOverview": {{
    "totalAddressableMarket": "estimate with reasoning",
    "growthTrend": "growing|stable|declining",
    "consolidationRisk": "high|medium|low"
  }}
}}

Only include competitors that appear in the competitor data below, using the same names.

Competitor data:
{competitor_json}"""


def build_analysis_prompt(
    profile: CompanyProfile,
    raw_data: list[CompetitorRawData],
) -> str:
    """Build the synthesis prompt. Callers fit ``raw_data`` to the prompt budget first."""
    competitor_json = serialize_raw_data(raw_data)
    return ANALYSIS_PROMPT.format(
        name=profile.name,
        product=profile.product,
        industry=profile.industry or "unknown",
        target_market=profile.target_market or "unknown",
        competitor_json=competitor_json,
    )


# ---------------------------------------------------------------------------
# PROMPT 4: Follow-up questions about a stored report
# ---------------------------------------------------------------------------

CHAT_SYSTEM = """You are a competitive intelligence analyst. You have this report:
{report_json}

Answer questions about the competitors, market, and recommendations. Be concise and specific. Use data from the report."""


def build_chat_system(report: Report) -> str:
    context = {
        "startup": report.company_name,
        "competitors": [c.model_dump(mode="json", by_alias=True) for c in report.competitors],
        "market_intelligence": report.market_intelligence,
        "recommendations": [r.model_dump(mode="json") for r in report.recommendations],
    }
    if report.market_overview:
        context["market_overview"] = report.market_overview.model_dump(mode="json", by_alias=True)
    return CHAT_SYSTEM.format(report_json=json.dumps(context, indent=2))
