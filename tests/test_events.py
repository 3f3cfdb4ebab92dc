"""
Competitor Intel - Progress Channel Tests

Run: pytest tests/test_events.py -v
"""

import asyncio

import pytest

from competitor_intel.events import EventChannel, deliver, event


class TestProgressEvent:

    def test_serializes_stage_detail_data(self):
        ev = event("done", "Analysis complete!", {"reportId": "abc"})
        assert ev.to_dict() == {"stage": "done", "detail": "Analysis complete!", "data": {"reportId": "abc"}}

    def test_optional_fields(self):
        assert event("scraping").to_dict() == {"stage": "scraping", "detail": None, "data": None}


class TestEventChannel:

    @pytest.mark.asyncio
    async def test_iterates_in_order_until_closed(self):
        channel = EventChannel()
        for stage in ("a", "b", "c"):
            await deliver(channel, event(stage))
        channel.close()

        assert [ev.stage async for ev in channel] == ["a", "b", "c"]
        assert [ev.stage for ev in channel.history] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_concurrent_producers_serialized(self):
        """Events from concurrent branches arrive as one ordered sequence."""
        channel = EventChannel()

        async def branch(name):
            for i in range(3):
                await deliver(channel, event(f"{name}{i}"))
                await asyncio.sleep(0)

        await asyncio.gather(branch("x"), branch("y"))
        channel.close()
        stages = [ev.stage async for ev in channel]

        assert sorted(stages) == ["x0", "x1", "x2", "y0", "y1", "y2"]
        assert [s for s in stages if s.startswith("x")] == ["x0", "x1", "x2"]


class TestDeliver:

    @pytest.mark.asyncio
    async def test_none_sink(self):
        await deliver(None, event("scraping"))

    @pytest.mark.asyncio
    async def test_async_sink_awaited(self):
        seen = []

        async def sink(ev):
            await asyncio.sleep(0)
            seen.append(ev.stage)

        await deliver(sink, event("scraping"))
        assert seen == ["scraping"]

    @pytest.mark.asyncio
    async def test_sink_errors_swallowed_and_logged(self, caplog):
        def sink(ev):
            raise ValueError("boom")

        await deliver(sink, event("ranking"))
        assert "boom" in caplog.text
