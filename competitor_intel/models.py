"""Pydantic data models for the competitor analysis pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from competitor_intel.analysis.scoring import (
    clamp_score,
    normalize_consolidation_risk,
    normalize_growth_trend,
    normalize_priority,
    normalize_recommendation,
    normalize_threat_level,
)

ThreatLevel = Literal["high", "medium", "low"]
Priority = Literal["high", "medium", "low"]
GrowthTrend = Literal["growing", "stable", "declining"]
ConsolidationRisk = Literal["high", "medium", "low"]


class _CamelModel(BaseModel):
    """Accepts both the camelCase keys the LLM emits and snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _coerce_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, list):
        return "; ".join(str(item) for item in v)
    if isinstance(v, dict):
        return "; ".join(f"{k}: {val}" for k, val in v.items())
    return str(v)


# ---------------------------------------------------------------------------
# Target company
# ---------------------------------------------------------------------------

class CompanyProfile(_CamelModel):
    """What the target company does, extracted once per run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    product: str
    industry: str = ""
    keywords: tuple[str, ...] = ()
    target_market: str = ""

    @field_validator("industry", "target_market", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _coerce_text(v)

    @field_validator("keywords", mode="before")
    @classmethod
    def coerce_keywords(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            return tuple(k.strip() for k in v.split(",") if k.strip())
        return tuple(str(k) for k in v)


# ---------------------------------------------------------------------------
# Search / ranking
# ---------------------------------------------------------------------------

class SearchResult(BaseModel):
    """A single search snippet."""
    title: str = ""
    url: str = ""
    description: str = ""


class CompetitorCandidate(BaseModel):
    """A ranked competitor to deep-scrape. Identity is (name, url)."""
    name: str
    url: str


class CompetitorRawData(BaseModel):
    """Scraped text for one competitor. Only lives for the duration of a run."""
    name: str
    url: str
    homepage: str = ""
    pricing: str = ""
    about: str = ""
    careers: str = ""
    pdf_content: str = ""

    @property
    def candidate(self) -> CompetitorCandidate:
        return CompetitorCandidate(name=self.name, url=self.url)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

class PricingTier(_CamelModel):
    low: float = 0
    high: float = 0
    model: str = ""


class CompetitorAnalysis(_CamelModel):
    name: str
    url: str = ""
    summary: str = ""
    pricing: str = ""
    recent_moves: str = ""
    hiring_signals: str = ""
    key_differentiator: str = ""
    threat_level: ThreatLevel = "low"
    threat_score: int | None = None
    feature_overlap: int | None = None
    market_presence: int | None = None
    pricing_tier: PricingTier | None = None
    funding_stage: str | None = None
    estimated_employees: str | None = None
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)

    @field_validator(
        "url", "summary", "pricing", "recent_moves", "hiring_signals",
        "key_differentiator", mode="before",
    )
    @classmethod
    def coerce_text(cls, v):
        return _coerce_text(v)

    @field_validator("threat_level", mode="before")
    @classmethod
    def coerce_threat_level(cls, v):
        return normalize_threat_level(v)

    @field_validator("threat_score", "feature_overlap", "market_presence", mode="before")
    @classmethod
    def coerce_score(cls, v):
        return clamp_score(v)

    @field_validator("funding_stage", "estimated_employees", mode="before")
    @classmethod
    def coerce_to_str(cls, v):
        if v is not None:
            return str(v)
        return v

    @field_validator("strengths", "weaknesses", mode="before")
    @classmethod
    def coerce_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(item) for item in v]


class Recommendation(_CamelModel):
    action: str
    priority: Priority = "medium"
    impact: str = ""

    @model_validator(mode="before")
    @classmethod
    def from_plain_string(cls, data):
        if isinstance(data, str):
            return normalize_recommendation(data)
        return data

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v):
        return normalize_priority(v)

    @field_validator("impact", mode="before")
    @classmethod
    def coerce_impact(cls, v):
        return _coerce_text(v)


class MarketOverview(_CamelModel):
    total_addressable_market: str = ""
    growth_trend: GrowthTrend = "stable"
    consolidation_risk: ConsolidationRisk = "medium"

    @field_validator("total_addressable_market", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _coerce_text(v)

    @field_validator("growth_trend", mode="before")
    @classmethod
    def coerce_trend(cls, v):
        return normalize_growth_trend(v)

    @field_validator("consolidation_risk", mode="before")
    @classmethod
    def coerce_risk(cls, v):
        return normalize_consolidation_risk(v)


class AnalysisResult(_CamelModel):
    """Parsed output of the synthesis stage."""
    competitors: list[CompetitorAnalysis] = Field(default_factory=list)
    market_intelligence: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    market_overview: MarketOverview | None = None


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

class Report(BaseModel):
    """A persisted competitive-intelligence report."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_url: str
    company_name: str
    company_summary: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    competitors: list[CompetitorAnalysis] = Field(default_factory=list)
    market_intelligence: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    market_overview: MarketOverview | None = None
    report_sent: bool = False
    recipient_email: str | None = None
    incomplete: bool = False


class ReportSummary(BaseModel):
    """History listing entry."""
    id: str
    company_name: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Pipeline I/O
# ---------------------------------------------------------------------------

class PipelineOptions(BaseModel):
    recipient_email: str | None = None
    max_competitors: int = Field(default=5, ge=0)
    stage_timeout: float = Field(default=300, gt=0)
    pdf_timeout: float = Field(default=30, gt=0)
    persist: bool = True


class ProgressEvent(BaseModel):
    """One entry on the progress channel: {stage, detail?, data?}."""
    stage: str
    detail: str | None = None
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PipelineRun(BaseModel):
    """Result of a successful run. Warnings hold non-fatal failures (e.g. email)."""
    report: Report
    persisted: bool = False
    email_sent: bool = False
    warnings: list[str] = Field(default_factory=list)
