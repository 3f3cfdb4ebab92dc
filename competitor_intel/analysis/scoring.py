"""Report assembly and scoring helpers: deterministic, no I/O, no LLM involvement."""

from __future__ import annotations

import json
from typing import Any

THREAT_LEVELS = ("high", "medium", "low")
PRIORITIES = ("high", "medium", "low")
GROWTH_TRENDS = ("growing", "stable", "declining")
CONSOLIDATION_RISKS = ("high", "medium", "low")

# Display order: highest threat first, anything unrecognised after "low"
_THREAT_ORDER = {level: i for i, level in enumerate(THREAT_LEVELS)}
_UNRANKED = len(THREAT_LEVELS)

# Scraped fields that are truncated to fit the synthesis prompt
RAW_TEXT_FIELDS = ("homepage", "pricing", "about", "careers", "pdf_content")

# Room left per competitor for name, url and JSON punctuation
_ENTRY_OVERHEAD = 200


def _normalize_enum(value: Any, allowed: tuple[str, ...], default: str) -> str:
    if not isinstance(value, str):
        return default
    cleaned = value.strip().lower()
    return cleaned if cleaned in allowed else default


def normalize_threat_level(value: Any) -> str:
    """Map any value onto high/medium/low; unknown or missing becomes "low"."""
    return _normalize_enum(value, THREAT_LEVELS, "low")


def normalize_priority(value: Any) -> str:
    return _normalize_enum(value, PRIORITIES, "medium")


def normalize_growth_trend(value: Any) -> str:
    return _normalize_enum(value, GROWTH_TRENDS, "stable")


def normalize_consolidation_risk(value: Any) -> str:
    return _normalize_enum(value, CONSOLIDATION_RISKS, "medium")


def clamp_score(value: Any) -> int | None:
    """Coerce a 0-100 score; returns None when the value is not numeric.

    Accepts ints, floats and numeric strings such as "75" or "75%".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return int(round(min(100.0, max(0.0, number))))


def threat_score_or_default(competitor: Any, default: int = 50) -> int:
    score = _get(competitor, "threat_score", "threatScore")
    return score if isinstance(score, int) else default


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

def normalize_recommendation(entry: Any) -> dict[str, str]:
    """Normalise one recommendation to {action, priority, impact}.

    A plain string becomes {action: s, priority: "medium", impact: ""}.
    Normalising an already-normalised entry returns an equal dict.
    """
    if isinstance(entry, str):
        return {"action": entry, "priority": "medium", "impact": ""}
    if hasattr(entry, "model_dump"):
        entry = entry.model_dump()
    if not isinstance(entry, dict):
        return {"action": str(entry), "priority": "medium", "impact": ""}

    action = entry.get("action")
    if action is None:
        action = entry.get("recommendation", "")
    impact = entry.get("impact")
    return {
        "action": str(action),
        "priority": normalize_priority(entry.get("priority")),
        "impact": "" if impact is None else str(impact),
    }


def normalize_recommendations(entries: list[Any] | None) -> list[dict[str, str]]:
    """Normalise a recommendation list, dropping entries without an action."""
    normalized = []
    for entry in entries or []:
        if entry is None:
            continue
        rec = normalize_recommendation(entry)
        if rec["action"].strip():
            normalized.append(rec)
    return normalized


# ---------------------------------------------------------------------------
# Competitors
# ---------------------------------------------------------------------------

def normalize_competitor(raw: dict[str, Any]) -> dict[str, Any]:
    """Clean one competitor entry from the synthesis response.

    Defaults the threat level, clamps scores to 0-100 and drops a pricing
    tier that does not carry numeric bounds. Returns a new dict.
    """
    cleaned = dict(raw)
    cleaned["threatLevel"] = normalize_threat_level(
        cleaned.pop("threat_level", cleaned.get("threatLevel")),
    )
    for camel, snake in (
        ("threatScore", "threat_score"),
        ("featureOverlap", "feature_overlap"),
        ("marketPresence", "market_presence"),
    ):
        value = cleaned.pop(snake, cleaned.get(camel))
        cleaned[camel] = clamp_score(value)

    tier = cleaned.pop("pricing_tier", cleaned.get("pricingTier"))
    cleaned["pricingTier"] = _normalize_pricing_tier(tier)
    return cleaned


def _normalize_pricing_tier(tier: Any) -> dict[str, Any] | None:
    if not isinstance(tier, dict):
        return None
    try:
        low = float(tier.get("low", 0) or 0)
        high = float(tier.get("high", 0) or 0)
    except (TypeError, ValueError):
        return None
    if high < low:
        low, high = high, low
    return {"low": low, "high": high, "model": str(tier.get("model") or "")}


def normalize_market_overview(raw: Any) -> dict[str, str] | None:
    if not isinstance(raw, dict):
        return None
    tam = raw.get("totalAddressableMarket", raw.get("total_addressable_market"))
    return {
        "totalAddressableMarket": "" if tam is None else str(tam),
        "growthTrend": normalize_growth_trend(
            raw.get("growthTrend", raw.get("growth_trend")),
        ),
        "consolidationRisk": normalize_consolidation_risk(
            raw.get("consolidationRisk", raw.get("consolidation_risk")),
        ),
    }


def threat_rank(level: Any) -> int:
    if not isinstance(level, str):
        return _UNRANKED
    return _THREAT_ORDER.get(level.strip().lower(), _UNRANKED)


def sort_by_threat(competitors: list[Any]) -> list[Any]:
    """Stable sort: high, medium, low, then unrecognised levels.

    Works on CompetitorAnalysis objects and on raw dicts.
    """
    return sorted(
        competitors,
        key=lambda c: threat_rank(_get(c, "threat_level", "threatLevel")),
    )


def _get(item: Any, attr: str, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key, item.get(attr))
    return getattr(item, attr, None)


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------

def truncate(text: str | None, limit: int) -> str:
    """Keep the first ``limit`` characters."""
    if not text:
        return ""
    return text[:max(0, limit)]


def serialize_raw_data(raw_data: list[Any]) -> str:
    """The competitor data block exactly as it is embedded in the synthesis prompt."""
    return json.dumps([d.model_dump() for d in raw_data], indent=2, ensure_ascii=False)


def fit_to_budget(raw_data: list[Any], budget: int) -> list[Any]:
    """Shrink scraped competitor text so the serialised set fits ``budget`` chars.

    Each competitor gets an equal share; within a competitor every field is
    cut in proportion to its length. No competitor is ever dropped. The share
    is lowered until ``serialize_raw_data`` of the result fits, since JSON
    escaping makes quotes, newlines and control characters longer.
    """
    if not raw_data:
        return []
    share = max(0, budget // len(raw_data) - _ENTRY_OVERHEAD)

    while True:
        fitted = [_fit_entry(item, share) for item in raw_data]
        overflow = len(serialize_raw_data(fitted)) - budget
        if overflow <= 0 or share == 0:
            return fitted
        share = max(0, min(share - 1, share * budget // (budget + overflow)))


def _fit_entry(item: Any, share: int) -> Any:
    lengths = {f: len(getattr(item, f) or "") for f in RAW_TEXT_FIELDS}
    total = sum(lengths.values())
    if total <= share:
        return item
    updates = {
        f: truncate(getattr(item, f), lengths[f] * share // total)
        for f in RAW_TEXT_FIELDS
    }
    return item.model_copy(update=updates)
