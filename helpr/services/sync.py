"""Client-side view synchronisation: fixed-interval polling plus push-triggered refresh.

Both channels funnel into ``SyncedView.refresh``. Every refresh takes a
sequence number when issued; its result is applied only if no newer refresh
was issued meanwhile. Push events never carry state, they only cause a
refresh, so a push and a poll covering the same change settle on whichever
fetch was issued last. If push delivery dies, polling alone still converges.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

from helpr.schemas import ChangeEvent
from helpr.services.change_feed import ChangeFeed, RowPredicate, Subscription
from helpr.services.errors import SyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshSequencer:
    """Hands out strictly increasing sequence numbers; only the latest is current."""

    def __init__(self):
        self._issued = 0

    @property
    def latest(self) -> int:
        return self._issued

    def issue(self) -> int:
        self._issued += 1
        return self._issued

    def is_current(self, seq: int) -> bool:
        return seq == self._issued

    def invalidate(self) -> None:
        """Make every outstanding sequence number stale."""
        self._issued += 1


class SyncedView(Generic[T]):
    """A locally cached value kept in step with the store.

    ``fetch`` is any coroutine function returning the full current value
    (a list of listings, one service snapshot...). ``on_change`` fires only
    when an applied refresh actually changes the value; ``on_error`` fires
    when the latest refresh fails, with the previous value left in place.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        *,
        interval: float | None = None,
        feed: ChangeFeed | None = None,
        tables: tuple[str, ...] = ("service",),
        predicate: RowPredicate | None = None,
        on_change: Callable[[T], None] | None = None,
        on_error: Callable[[SyncError, Exception], None] | None = None,
        name: str = "view",
    ):
        self._fetch = fetch
        self._interval = interval
        self._feed = feed
        self._tables = tables
        self._predicate = predicate
        self._on_change = on_change
        self._on_error = on_error
        self.name = name

        self._sequencer = RefreshSequencer()
        self._subscriptions: list[Subscription] = []
        self._poll_task: asyncio.Task | None = None
        self._running = False
        self._closed = False

        self.value: T | None = None
        self.loaded = False
        self.error: SyncError | None = None
        self.applied_seq = 0

    @property
    def running(self) -> bool:
        return self._running

    async def refresh(self) -> bool:
        """Fetch and apply if still the newest refresh. Returns True if applied."""
        seq = self._sequencer.issue()
        try:
            result = await self._fetch()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._closed or not self._sequencer.is_current(seq):
                logger.debug("%s: stale refresh #%d failed, ignored", self.name, seq)
                return False
            self.error = SyncError.TRANSIENT
            logger.warning("%s: refresh #%d failed: %s", self.name, seq, exc)
            if self._on_error is not None:
                self._notify(self._on_error, SyncError.TRANSIENT, exc)
            return False

        if self._closed:
            logger.debug("%s: view stopped, dropping refresh #%d", self.name, seq)
            return False
        if not self._sequencer.is_current(seq):
            logger.debug("%s: discarding refresh #%d, #%d is newer", self.name, seq, self._sequencer.latest)
            return False

        changed = not self.loaded or result != self.value
        self.value = result
        self.loaded = True
        self.error = None
        self.applied_seq = seq
        if changed and self._on_change is not None:
            self._notify(self._on_change, result)
        return True

    def _notify(self, callback: Callable[..., None], *args) -> None:
        # A failing render must not stop polling or leak the subscription.
        try:
            callback(*args)
        except Exception:
            logger.exception("%s: view callback failed", self.name)

    def _on_push(self, event: ChangeEvent):
        if not self._running:
            return None
        logger.debug("%s: %s on %s, refreshing", self.name, event.operation, event.table)
        return self.refresh()

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.refresh()

    async def start(self, initial: bool = True) -> None:
        """Subscribe to pushes, start the poll timer, and (by default) load once."""
        if self._running:
            return
        self._running = True
        self._closed = False
        if self._feed is not None:
            self._subscriptions = [
                self._feed.subscribe(table, self._on_push, self._predicate) for table in self._tables
            ]
        if self._interval:
            self._poll_task = asyncio.create_task(self._poll())
        if initial:
            try:
                await self.refresh()
            except BaseException:
                await self.stop()
                raise

    async def stop(self) -> None:
        """Stop polling and release subscriptions. In-flight refreshes are discarded."""
        self._running = False
        self._closed = True
        self._sequencer.invalidate()
        for sub in self._subscriptions:
            sub.close()
        self._subscriptions = []
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("%s: poll task ended with an error", self.name)
            self._poll_task = None

    async def __aenter__(self) -> "SyncedView[T]":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
