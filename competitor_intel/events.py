"""Progress event channel between the pipeline and its caller."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Union

from competitor_intel.models import ProgressEvent

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], Union[None, Awaitable[None]]]

# Stage identifiers, in the order a successful run emits them
SCRAPING = "scraping"
EXTRACTING = "extracting"
STARTUP_INFO = "startup_info"
SEARCHING = "searching"
RANKING = "ranking"
COMPETITORS_FOUND = "competitors_found"
DEEP_SCRAPING = "deep_scraping"
COMPETITOR_SCRAPING = "competitor_scraping"
COMPETITOR_DONE = "competitor_done"
ANALYZING = "analyzing"
ANALYSIS_READY = "analysis_ready"
STORING = "storing"
DONE = "done"
EMAILING = "emailing"
WARNING = "warning"
ERROR = "error"


class EventChannel:
    """Ordered, unbounded queue of progress events.

    Concurrent branches call the channel like a sink; a single reader
    iterates it until ``close()``.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self.history: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.history.append(event)
        self._queue.put_nowait(event)

    def close(self) -> None:
        self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


async def deliver(sink: ProgressSink | None, event: ProgressEvent) -> None:
    """Hand one event to a sync or async sink. A failing sink never fails the run."""
    if sink is None:
        return
    try:
        result = sink(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning("Progress sink raised on %s event: %s", event.stage, e)


def event(stage: str, detail: str | None = None, data: dict[str, Any] | None = None) -> ProgressEvent:
    return ProgressEvent(stage=stage, detail=detail, data=data)
