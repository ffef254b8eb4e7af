"""WebSocket relay: forwards change feed events to connected clients per table."""

from __future__ import annotations

import logging

from fastapi import WebSocket

from helpr.schemas import ChangeEvent
from helpr.services.change_feed import ChangeFeed, Subscription, change_feed

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self, feed: ChangeFeed):
        self._feed = feed
        self._connections: dict[str, list[WebSocket]] = {}
        self._subscriptions: dict[str, Subscription] = {}

    async def connect(self, table: str, websocket: WebSocket):
        await websocket.accept()
        self._connections.setdefault(table, []).append(websocket)
        if table not in self._subscriptions:
            self._subscriptions[table] = self._feed.subscribe(table, self.broadcast)

    def disconnect(self, table: str, websocket: WebSocket):
        conns = self._connections.get(table, [])
        if websocket in conns:
            conns.remove(websocket)
        if not conns and table in self._subscriptions:
            self._subscriptions.pop(table).close()

    def connection_count(self, table: str) -> int:
        return len(self._connections.get(table, []))

    async def broadcast(self, event: ChangeEvent):
        """Send the event as JSON to all clients watching its table."""
        conns = self._connections.get(event.table, [])
        dead = []
        for ws in conns:
            try:
                await ws.send_text(event.model_dump_json())
            except Exception:
                dead.append(ws)
        for ws in dead:
            logger.info("Dropping dead websocket for %s", event.table)
            self.disconnect(event.table, ws)


ws_manager = ConnectionManager(change_feed)
