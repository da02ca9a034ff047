"""Periodic, concurrent review poller.

One background control-loop task runs a poll cycle immediately and then
once per interval. Each cycle fans out one fetch task per app id and joins
all of them before the cycle is considered complete.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from typing import Protocol

from appreviews.exceptions import AppReviewsError
from appreviews.feed import ReviewsFetcher
from appreviews.models.review import Review

_logger = logging.getLogger(__name__)


class ReviewSink(Protocol):
    """The slice of the store the poller needs."""

    def upsert(self, reviews: Iterable[Review]) -> None:
        ...


class ReviewPoller:
    """Start/stop-able poll loop over a fixed set of app ids.

    ``start`` and ``stop`` are idempotent and safe to call concurrently;
    a stopped poller can be started again.

    Usage::

        poller = ReviewPoller(store, fetcher, ["284882215"], interval=300)
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        store: ReviewSink,
        fetcher: ReviewsFetcher,
        app_ids: Sequence[str],
        *,
        interval: float,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._store = store
        self._fetcher = fetcher
        self._app_ids = tuple(app_ids)
        self._interval = interval
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def app_ids(self) -> tuple[str, ...]:
        return self._app_ids

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        """Whether a control loop is currently active."""
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Launch the control loop unless one is already running.

        Returns as soon as the loop is scheduled; the first poll cycle
        runs in the background.
        """
        async with self._lock:
            if self._task is not None and not self._task.done():
                if self._stop_event is None or not self._stop_event.is_set():
                    _logger.debug("Poller already running, ignoring start()")
                    return
                # A stop() that was cancelled left the old loop winding down.
                await asyncio.shield(self._task)
            stop_event = asyncio.Event()
            self._stop_event = stop_event
            self._task = asyncio.create_task(self._run(stop_event), name="review-poller")
            _logger.info("Poller started for %d apps, interval %.1fs", len(self._app_ids), self._interval)

    async def stop(self) -> None:
        """Signal the control loop to exit and wait until it has.

        An in-flight poll cycle is allowed to finish. Cancelling the caller
        only abandons the wait; the loop still exits after its current
        cycle. Does nothing when the poller is not running.
        """
        async with self._lock:
            task = self._task
            stop_event = self._stop_event
            if task is None or stop_event is None:
                return
            stop_event.set()
            try:
                await asyncio.shield(task)
            finally:
                if task.done():
                    self._task = None
                    self._stop_event = None
            _logger.info("Poller stopped")

    async def _run(self, stop_event: asyncio.Event) -> None:
        # Poll right away so a restart does not wait a full interval for fresh data.
        await self.poll_once()
        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                await self.poll_once()
                continue
            return

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    async def poll_once(self) -> None:
        """Run one fan-out-and-join cycle over every configured app id."""
        _logger.info("Polling all apps concurrently...")
        started = time.monotonic()

        results = await asyncio.gather(
            *(self._poll_app(app_id) for app_id in self._app_ids),
            return_exceptions=True,
        )
        for app_id, result in zip(self._app_ids, results, strict=True):
            if isinstance(result, BaseException):
                _logger.error("Unexpected failure polling app %s", app_id, exc_info=result)

        _logger.info("Poll complete in %.3fs", time.monotonic() - started)

    async def _poll_app(self, app_id: str) -> None:
        try:
            await self._fetch_and_store(app_id)
        except AppReviewsError as exc:
            _logger.error("Error polling app %s: %s", app_id, exc)
        else:
            _logger.info("Successfully polled app %s", app_id)

    async def _fetch_and_store(self, app_id: str) -> None:
        _logger.info("Fetching reviews for app %s", app_id)
        reviews = await self._fetcher.fetch_reviews(app_id)
        if not reviews:
            _logger.info("No reviews found for app %s", app_id)
            return

        # Disk I/O stays off the event loop; the store serializes writers.
        await asyncio.to_thread(self._store.upsert, reviews)
        _logger.info("Stored %d reviews for app %s", len(reviews), app_id)
