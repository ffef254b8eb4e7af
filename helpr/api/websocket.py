from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from helpr.services.ws_manager import ws_manager

router = APIRouter(tags=["websocket"])

WATCHABLE_TABLES = ("service", "service_fill_request")


@router.websocket("/api/ws/{table}")
async def websocket_endpoint(websocket: WebSocket, table: str):
    if table not in WATCHABLE_TABLES:
        await websocket.close(code=4004, reason="Unknown table")
        return

    await ws_manager.connect(table, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_manager.disconnect(table, websocket)
