"""Search provider: Firecrawl when configured, DuckDuckGo otherwise."""

from __future__ import annotations

import logging

from competitor_intel.config import Config
from competitor_intel.errors import SearchError
from competitor_intel.models import SearchResult
from competitor_intel.search.duckduckgo_client import search_ddg
from competitor_intel.search.firecrawl_client import search_firecrawl

logger = logging.getLogger(__name__)


class WebSearcher:
    """Execute a search query, falling back from Firecrawl to DuckDuckGo.

    Permanently switches to DuckDuckGo once Firecrawl reports a payment
    error; any other Firecrawl error falls back for that query only.
    """

    def __init__(self, config: Config):
        self.config = config
        self._firecrawl_available = bool(config.firecrawl_key)

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        if self._firecrawl_available:
            try:
                return await search_firecrawl(query, self.config.firecrawl_key, num_results=limit)
            except SearchError as e:
                if e.payment_required:
                    self._firecrawl_available = False
                    logger.warning("Firecrawl credits exhausted: switching to DuckDuckGo (free)")
                else:
                    logger.info("Firecrawl search failed (%s): trying DuckDuckGo", e)

        return await search_ddg(query, num_results=limit)
