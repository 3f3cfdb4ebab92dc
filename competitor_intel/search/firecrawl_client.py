"""Async Firecrawl search client."""

from __future__ import annotations

import logging

import httpx

from competitor_intel.errors import SearchError
from competitor_intel.models import SearchResult

logger = logging.getLogger(__name__)

FIRECRAWL_SEARCH_URL = "https://api.firecrawl.dev/v2/search"


async def search_firecrawl(
    query: str,
    api_key: str,
    num_results: int = 5,
    timeout: int = 60,
) -> list[SearchResult]:
    """Execute a web search via Firecrawl.

    Raises SearchError on any failure; ``payment_required`` is set when the
    account is out of credits so the caller can stop using Firecrawl.
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    payload = {"query": query, "limit": num_results}

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                FIRECRAWL_SEARCH_URL,
                headers=headers,
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
    except httpx.TimeoutException as e:
        logger.warning("Firecrawl timeout for query: %s", query[:80])
        raise SearchError("timeout") from e
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.warning("Firecrawl HTTP %d for query: %s", status, query[:80])
        raise SearchError(f"http_{status}", payment_required=status == 402) from e
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Firecrawl error for query '%s': %s", query[:80], e)
        raise SearchError(str(e)) from e

    if not data.get("success", False):
        warning = str(data.get("warning") or data.get("error") or "unknown error")
        logger.warning("Firecrawl search failed for query '%s': %s", query[:80], warning)
        raise SearchError(warning, payment_required="payment" in warning.lower())

    # v2 nests results under "web"; fall back to flat list for v1 compat
    raw_data = data.get("data", {})
    raw_results = raw_data if isinstance(raw_data, list) else raw_data.get("web", [])

    return [
        SearchResult(
            title=item.get("title") or "",
            url=item.get("url") or "",
            description=item.get("description") or "",
        )
        for item in raw_results
        if item.get("url")
    ]
