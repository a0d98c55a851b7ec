from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional, Set

from feed_core.ordered_view import OrderedSyncView, ReconcileResult
from feed_client.source import RecordSource


log = logging.getLogger("feed_client.controller")


class FeedController:
    """Runs the fetch-then-reconcile pipeline for one view.

    Manual refreshes and the authenticated signal both end up in ``refresh``.
    A lock serializes them, so the watermark read and the view mutation of one
    refresh never interleave with another. A trigger that arrives mid-refresh
    waits and then does its own fetch, so it sees whatever the remote side has
    by then.
    """

    def __init__(self, source: RecordSource, view: Optional[OrderedSyncView] = None) -> None:
        self.source = source
        self._view = view if view is not None else OrderedSyncView()
        self._lock = asyncio.Lock()
        self._pending = 0
        self._tasks: Set[asyncio.Task] = set()
        self.refresh_count = 0
        self.failure_count = 0

    @property
    def view(self) -> OrderedSyncView:
        return self._view

    @property
    def is_refreshing(self) -> bool:
        return self._pending > 0

    async def refresh(self) -> ReconcileResult:
        self._pending += 1
        try:
            async with self._lock:
                try:
                    batch = await self.source.fetch_all()
                except Exception as exc:
                    self.failure_count += 1
                    log.warning("Refresh failed; view left unchanged: %s", exc)
                    raise
                result = self._view.reconcile(batch)
                self.refresh_count += 1
                log.debug(
                    "Refresh #%d action=%s inserted=%d watermark=%s",
                    self.refresh_count,
                    result.action,
                    result.inserted,
                    result.watermark,
                )
                return result
        finally:
            self._pending -= 1

    def request_refresh(self) -> asyncio.Task:
        """Manual refresh trigger. Must be called from a running event loop."""
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._track(task)
        return task

    def bind_authenticated(self, signal: Awaitable[Any]) -> asyncio.Task:
        """Refresh once when the authentication signal resolves truthy."""
        task = asyncio.get_running_loop().create_task(self._await_authenticated(signal))
        self._track(task)
        return task

    async def _await_authenticated(self, signal: Awaitable[Any]) -> Optional[ReconcileResult]:
        # Shielded so cancelling this task leaves a shared signal future intact.
        waiter = asyncio.ensure_future(signal)
        try:
            ok = await asyncio.shield(waiter)
        except asyncio.CancelledError:
            if waiter.cancelled():
                log.info("Authentication signal cancelled; no refresh scheduled")
                return None
            if waiter is not signal:
                waiter.cancel()
            raise
        except Exception:
            log.exception("Authentication signal failed; no refresh scheduled")
            return None

        if not ok:
            log.info("Authentication did not succeed; no refresh scheduled")
            return None
        log.info("Authenticated; refreshing feed")
        return await self.refresh()

    async def drain(self) -> None:
        """Wait for every background trigger task started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Background refresh failed", exc_info=exc)
