"""Free DuckDuckGo search fallback: no API key required."""

from __future__ import annotations

import asyncio
import logging
import time
import weakref

from ddgs import DDGS

from competitor_intel.errors import SearchError
from competitor_intel.models import SearchResult

logger = logging.getLogger(__name__)

_DDG_MIN_INTERVAL = 2.0  # seconds between requests
_MAX_RETRIES = 2

# One lock per event loop: asyncio.Lock binds to the loop that first uses it.
# A contended lock references its loop, so closed loops are pruned explicitly.
_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = weakref.WeakKeyDictionary()
_last_request_time: float = 0


def _get_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    for stale in [other for other in _locks if other.is_closed()]:
        del _locks[stale]
    lock = _locks.get(loop)
    if lock is None:
        lock = _locks[loop] = asyncio.Lock()
    return lock


async def search_ddg(query: str, num_results: int = 5) -> list[SearchResult]:
    """Search DuckDuckGo.

    Requests are serialised with a minimum interval to avoid overwhelming
    the free backends; 429s are retried with a growing wait.
    Raises SearchError when every attempt fails.
    """
    global _last_request_time

    lock = _get_lock()
    for attempt in range(_MAX_RETRIES + 1):
        async with lock:
            elapsed = time.monotonic() - _last_request_time
            if elapsed < _DDG_MIN_INTERVAL:
                await asyncio.sleep(_DDG_MIN_INTERVAL - elapsed)
            try:
                raw = await asyncio.to_thread(_ddg_search_sync, query, num_results)
            except Exception as e:
                err_str = str(e)
                rate_limited = "429" in err_str or "Too Many" in err_str
                if not rate_limited or attempt == _MAX_RETRIES:
                    logger.warning("DuckDuckGo search error for '%s': %s", query[:80], e)
                    raise SearchError(err_str) from e
                wait = _DDG_MIN_INTERVAL * (attempt + 2)
                logger.debug("DDG 429 for '%s', retrying in %.1fs...", query[:40], wait)
                await asyncio.sleep(wait)
                continue
            finally:
                _last_request_time = time.monotonic()

        return [
            SearchResult(
                title=item.get("title", ""),
                url=item["href"],
                description=item.get("body", ""),
            )
            for item in raw
            if item.get("href")
        ]

    raise SearchError("max retries exceeded")


def _ddg_search_sync(query: str, num_results: int) -> list[dict]:
    """Run the synchronous DDG search in a thread."""
    with DDGS() as ddgs:
        return list(ddgs.text(query, max_results=num_results))
