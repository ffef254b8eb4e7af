"""In-process change notification channel for the service tables.

Writers publish a ChangeEvent after their transaction commits. Subscribers
register per table with an optional row predicate. Events are hints only:
subscribers re-fetch, they never apply ``new_row`` as state.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from helpr.schemas import ChangeEvent

logger = logging.getLogger(__name__)

Listener = Callable[[ChangeEvent], Union[None, Awaitable[None]]]
RowPredicate = Callable[[dict[str, Any]], bool]


@dataclass(eq=False)
class Subscription:
    table: str
    listener: Listener
    predicate: RowPredicate | None = None
    _feed: "ChangeFeed | None" = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._feed is not None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return self.predicate is None or self.predicate(event.new_row)

    def close(self) -> None:
        if self._feed is not None:
            self._feed._remove(self)
            self._feed = None


class ChangeFeed:
    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, table: str, listener: Listener, predicate: RowPredicate | None = None) -> Subscription:
        sub = Subscription(table=table, listener=listener, predicate=predicate, _feed=self)
        self._subscriptions.setdefault(table, []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.table, [])
        if sub in subs:
            subs.remove(sub)

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, []))

    def publish(self, event: ChangeEvent) -> None:
        """Deliver ``event`` to every matching subscriber.

        Coroutine listeners are scheduled on the running loop. A listener that
        raises is logged and skipped; delivery is best-effort.
        """
        for sub in list(self._subscriptions.get(event.table, [])):
            try:
                if not sub.matches(event):
                    continue
                outcome = sub.listener(event)
            except Exception:
                logger.exception("Change listener failed for %s %s", event.table, event.operation)
                continue
            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._pending.add(task)
                task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Async change listener failed: %s", task.exception())

    async def drain(self) -> None:
        """Wait for scheduled coroutine listeners to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def service_event(operation: str, row: dict[str, Any]) -> ChangeEvent:
    return ChangeEvent(table="service", operation=operation, new_row=row)


def bid_event(operation: str, row: dict[str, Any]) -> ChangeEvent:
    return ChangeEvent(table="service_fill_request", operation=operation, new_row=row)


change_feed = ChangeFeed()
