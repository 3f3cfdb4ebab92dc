"""Async HTTP fetch with browser-like headers and retry logic."""

from __future__ import annotations

import asyncio
import logging
import random

import httpx

from competitor_intel.errors import FetchError

logger = logging.getLogger(__name__)

# Rotate through realistic user agents to avoid blocks
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:126.0) Gecko/20100101 Firefox/126.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.5 Safari/605.1.15",
]

_RETRY_STATUSES = (429, 503)


def browser_headers(accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8") -> dict[str, str]:
    return {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
    }


async def fetch_html(url: str, timeout: int = 30, max_retries: int = 2) -> str:
    """Fetch a page and return its HTML/text body.

    Retries on 429/503 and timeouts with a linear backoff.
    Raises FetchError for HTTP errors, non-text content, or when retries run out.
    """
    last_error = "unknown error"

    for attempt in range(max_retries + 1):
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                max_redirects=5,
            ) as client:
                response = await client.get(url, headers=browser_headers())
        except httpx.TimeoutException:
            last_error = "timeout"
            if attempt < max_retries:
                await asyncio.sleep(2 * (attempt + 1))
                continue
            break
        except httpx.TooManyRedirects as e:
            raise FetchError(f"{url}: too many redirects") from e
        except httpx.HTTPError as e:
            last_error = str(e)[:100] or type(e).__name__
            if attempt < max_retries:
                await asyncio.sleep(1)
                continue
            break

        if response.status_code in _RETRY_STATUSES and attempt < max_retries:
            last_error = f"HTTP {response.status_code}"
            await asyncio.sleep(2 * (attempt + 1))
            continue
        if response.status_code >= 400:
            raise FetchError(f"{url}: HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if not any(t in content_type for t in ("text/html", "text/plain", "application/json")):
            raise FetchError(f"{url}: non-HTML content: {content_type[:50]}")
        return response.text

    raise FetchError(f"{url}: {last_error}")
