"""Parsing boundary for LLM responses: JSON-in-text to validated models.

Every stage that asks the reasoning engine for JSON goes through
``parse_json_response``; any failure surfaces as a stage-tagged
``MalformedResponseError``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from competitor_intel.analysis.scoring import (
    normalize_competitor,
    normalize_market_overview,
    normalize_recommendations,
)
from competitor_intel.errors import MalformedResponseError
from competitor_intel.models import AnalysisResult, CompanyProfile, CompetitorCandidate

logger = logging.getLogger(__name__)

_OPENERS = {dict: "{", list: "["}
_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    cleaned = text.strip()
    cleaned = re.sub(r"^```json\s*", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"^```\s*", "", cleaned)
    cleaned = re.sub(r"\s*```\s*$", "", cleaned)
    return cleaned.strip()


def _find_balanced(text: str, opener: str) -> str | None:
    """Return the first balanced JSON value starting with ``opener``, if any parses."""
    closer = _CLOSERS[opener]
    start = text.find(opener)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        c = text[i]
        if escape:
            escape = False
            continue
        if c == "\\":
            escape = True
            continue
        if c == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if c == opener:
            depth += 1
        elif c == closer:
            depth -= 1
            if depth == 0:
                candidate = text[start:i + 1]
                try:
                    json.loads(candidate)
                    return candidate
                except json.JSONDecodeError:
                    return None
    return None


def parse_json_response(text: str | None, stage: str, expect: type = dict) -> Any:
    """Strip code fences and parse JSON of the expected top-level type.

    Falls back to the first balanced object/array embedded in surrounding
    prose. Raises MalformedResponseError tagged with ``stage`` otherwise.
    """
    if not text or not text.strip():
        raise MalformedResponseError(stage, "empty response")

    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        embedded = _find_balanced(cleaned, _OPENERS[expect])
        if embedded is None:
            logger.error("JSON parse error (%s): %s\nResponse preview: %s", stage, e, cleaned[:200])
            raise MalformedResponseError(stage, f"invalid JSON: {e}") from e
        data = json.loads(embedded)

    if not isinstance(data, expect):
        raise MalformedResponseError(
            stage, f"expected a JSON {expect.__name__}, got {type(data).__name__}",
        )
    return data


def _require(entity: dict, fields: tuple[str, ...], stage: str, label: str) -> None:
    missing = [
        f for f in fields
        if not isinstance(entity.get(f), str) or not entity[f].strip()
    ]
    if missing:
        raise MalformedResponseError(stage, f"{label} missing required field(s): {', '.join(missing)}")


# ---------------------------------------------------------------------------
# Typed parsers, one per stage
# ---------------------------------------------------------------------------

def parse_company_profile(text: str | None, stage: str = "extracting") -> CompanyProfile:
    data = parse_json_response(text, stage, dict)
    _require(data, ("name", "product"), stage, "company profile")
    try:
        return CompanyProfile.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(stage, f"invalid company profile: {e}") from e


def parse_candidates(text: str | None, stage: str = "ranking") -> list[CompetitorCandidate]:
    """Parse the ranking response. An empty array is a valid answer."""
    data = parse_json_response(text, stage, list)

    candidates = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise MalformedResponseError(stage, f"competitor #{i + 1} is not an object")
        _require(entry, ("name", "url"), stage, f"competitor #{i + 1}")
        candidates.append(
            CompetitorCandidate(name=entry["name"].strip(), url=entry["url"].strip()),
        )
    return candidates


def parse_analysis(text: str | None, stage: str = "analyzing") -> AnalysisResult:
    """Parse the synthesis response; ``competitors`` must be present."""
    data = parse_json_response(text, stage, dict)

    competitors = data.get("competitors")
    if not isinstance(competitors, list):
        raise MalformedResponseError(stage, "analysis missing required key: competitors")

    cleaned_competitors = []
    for i, entry in enumerate(competitors):
        if not isinstance(entry, dict):
            raise MalformedResponseError(stage, f"competitor analysis #{i + 1} is not an object")
        _require(entry, ("name",), stage, f"competitor analysis #{i + 1}")
        cleaned_competitors.append(normalize_competitor(entry))

    intel = data.get("marketIntelligence", data.get("market_intelligence")) or []
    if isinstance(intel, str):
        intel = [intel]

    payload = {
        "competitors": cleaned_competitors,
        "marketIntelligence": [str(item) for item in intel if item],
        "recommendations": normalize_recommendations(data.get("recommendations")),
        "marketOverview": normalize_market_overview(
            data.get("marketOverview", data.get("market_overview")),
        ),
    }
    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(stage, f"invalid analysis: {e}") from e
