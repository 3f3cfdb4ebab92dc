"""Async Firecrawl scrape client (single URL to markdown)."""

from __future__ import annotations

import logging

import httpx

from competitor_intel.errors import FetchError

logger = logging.getLogger(__name__)

FIRECRAWL_SCRAPE_URL = "https://api.firecrawl.dev/v2/scrape"


async def scrape_firecrawl(url: str, api_key: str, timeout: int = 60) -> str:
    """Scrape one URL via Firecrawl and return its markdown.

    Raises FetchError on transport errors, unsuccessful responses, or empty
    markdown.
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    payload = {"url": url, "formats": ["markdown"], "onlyMainContent": True}

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(FIRECRAWL_SCRAPE_URL, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
    except httpx.TimeoutException as e:
        raise FetchError(f"{url}: firecrawl timeout") from e
    except httpx.HTTPStatusError as e:
        raise FetchError(f"{url}: firecrawl HTTP {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise FetchError(f"{url}: firecrawl error: {e}") from e

    if not data.get("success", False):
        raise FetchError(f"{url}: firecrawl failed: {data.get('error', 'unknown error')}")

    markdown = (data.get("data") or {}).get("markdown") or ""
    if not markdown.strip():
        raise FetchError(f"{url}: firecrawl returned no content")
    return markdown
