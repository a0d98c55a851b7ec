from __future__ import annotations

import asyncio

import pytest

from feed_client.controller import FeedController
from feed_client.source import StaticRecordSource
from feed_core.record import Record


class _GatedSource:
    """Source whose fetches block until the test releases them."""

    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.release = asyncio.Event()

    async def fetch_all(self):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.release.wait()
            return self.snapshots[min(self.calls, len(self.snapshots)) - 1]
        finally:
            self.in_flight -= 1


class _FailingSource:
    def __init__(self, exc: Exception):
        self.exc = exc

    async def fetch_all(self):
        raise self.exc


def test_refresh_loads_then_prepends():
    async def scenario():
        source = StaticRecordSource([Record(5, "a"), Record(1, "b")])
        controller = FeedController(source)

        first = await controller.refresh()
        source.add(Record(8, "c"))
        second = await controller.refresh()
        return controller, first, second

    controller, first, second = asyncio.run(scenario())
    assert first.action == "loaded"
    assert second.action == "prepended"
    assert controller.view.timestamps() == [8, 5, 1]
    assert controller.refresh_count == 2
    assert controller.is_refreshing is False


def test_overlapping_triggers_are_serialized():
    async def scenario():
        source = _GatedSource(
            [
                [Record(3, "a"), Record(1, "b")],
                [Record(3, "a"), Record(1, "b"), Record(4, "c")],
            ]
        )
        controller = FeedController(source)

        t1 = controller.request_refresh()
        t2 = controller.request_refresh()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        refreshing_mid_flight = controller.is_refreshing
        calls_mid_flight = source.calls

        source.release.set()
        r1, r2 = await asyncio.gather(t1, t2)
        await controller.drain()
        return controller, source, r1, r2, refreshing_mid_flight, calls_mid_flight

    controller, source, r1, r2, refreshing_mid_flight, calls_mid_flight = asyncio.run(scenario())
    assert refreshing_mid_flight is True
    # second trigger waits on the lock instead of fetching concurrently
    assert calls_mid_flight == 1
    assert source.max_in_flight == 1
    assert source.calls == 2
    assert (r1.action, r2.action) == ("loaded", "prepended")
    assert controller.view.timestamps() == [4, 3, 1]
    assert controller.is_refreshing is False


def test_failed_fetch_propagates_and_leaves_view_unchanged():
    async def scenario():
        controller = FeedController(StaticRecordSource([Record(2, "a")]))
        await controller.refresh()
        controller.source = _FailingSource(RuntimeError("record fetch failed: offline"))
        with pytest.raises(RuntimeError, match="offline"):
            await controller.refresh()
        return controller

    controller = asyncio.run(scenario())
    assert controller.view.timestamps() == [2]
    assert controller.failure_count == 1
    assert controller.refresh_count == 1
    assert controller.is_refreshing is False


def test_background_refresh_failure_is_logged(caplog):
    async def scenario():
        controller = FeedController(_FailingSource(RuntimeError("boom")))
        task = controller.request_refresh()
        await controller.drain()
        return task

    task = asyncio.run(scenario())
    assert isinstance(task.exception(), RuntimeError)
    assert "Background refresh failed" in caplog.text
