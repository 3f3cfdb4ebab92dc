"""Web content fetcher with multi-tier fallbacks.

Tier 0: Firecrawl scrape (when FIRECRAWL_KEY is set; returns markdown)
Tier 1: direct fetch + trafilatura (fast, local, good for static HTML)
Tier 2: Jina.ai Reader (free API, great for JS-heavy sites)
Tier 3: Basic HTML stripping (last resort)
"""

from __future__ import annotations

import logging
import re

import httpx
import trafilatura

from competitor_intel.config import Config
from competitor_intel.errors import FetchError
from competitor_intel.scrape.firecrawl_client import scrape_firecrawl
from competitor_intel.scrape.http_scraper import fetch_html

logger = logging.getLogger(__name__)

# Below this many characters a tier's output is treated as a miss
_MIN_CONTENT = 100


class ContentFetcher:
    """Fetch a URL and return its readable text (markdown where available)."""

    def __init__(self, config: Config):
        self.config = config

    async def fetch(self, url: str) -> str:
        """Return page text. Raises FetchError if no tier produced content."""
        timeout = self.config.scrape_timeout

        if self.config.firecrawl_key:
            try:
                return await scrape_firecrawl(url, self.config.firecrawl_key, timeout=timeout * 2)
            except FetchError as e:
                logger.info("Firecrawl scrape failed, falling back to direct fetch: %s", e)

        content = ""
        error: FetchError | None = None
        html = None
        try:
            html = await fetch_html(url, timeout=timeout)
        except FetchError as e:
            error = e

        if html:
            content = trafilatura.extract(
                html,
                output_format="markdown",
                include_tables=True,
                include_links=True,
                include_comments=False,
                favor_recall=True,
                url=url,
            ) or ""
            if len(content) < _MIN_CONTENT:
                content = _basic_html_to_text(html)

        if len(content) < _MIN_CONTENT:
            jina_content = await _fetch_via_jina(url, timeout=timeout)
            if jina_content and len(jina_content) > len(content):
                content = jina_content

        if not content.strip():
            raise error or FetchError(f"{url}: no extractable content")
        return content


async def _fetch_via_jina(url: str, timeout: int = 30) -> str | None:
    """Fetch clean markdown via Jina.ai Reader API (free, no API key).

    Jina renders JavaScript and returns clean markdown for JS-heavy sites,
    SPAs, and pages behind cookie walls.
    """
    jina_url = f"https://r.jina.ai/{url}"
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(jina_url, headers={"Accept": "text/plain"})
            if response.status_code == 200 and len(response.text) > _MIN_CONTENT:
                return response.text
    except httpx.HTTPError as e:
        logger.debug("Jina.ai fallback failed for %s: %s", url[:60], e)
    return None


def _basic_html_to_text(html: str) -> str:
    """Fallback HTML-to-text when trafilatura fails.

    Keeps href targets ending in .pdf so document links survive.
    """
    text = html
    text = re.sub(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", "", text, flags=re.I | re.S)
    text = re.sub(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", "", text, flags=re.I | re.S)
    text = re.sub(r"<!--[\s\S]*?-->", "", text)
    text = re.sub(r"""<a\b[^>]*href=["'](https?://[^"']+\.pdf)["'][^>]*>""", r" \1 ", text, flags=re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = text.replace("&nbsp;", " ")
    text = text.replace("&amp;", "&")
    text = text.replace("&lt;", "<")
    text = text.replace("&gt;", ">")
    text = text.replace("&quot;", '"')
    text = text.replace("&#39;", "'")
    text = re.sub(r"&[a-z]+;", " ", text, flags=re.I)
    text = re.sub(r"\s+", " ", text)
    return text.strip()
