import asyncio
import logging
from typing import List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop):
        """Event loop used when a change is published from a worker thread."""
        self._loop = loop

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast_event(self, event_type: str, data: dict = None):
        """
        Sends a generic JSON signal to every connected dashboard.
        """
        payload = {"type": event_type}
        if data:
            payload.update(data)

        # Iterate over a copy, the list may shrink while sending
        for connection in self.active_connections[:]:
            try:
                await connection.send_json(payload)
            except Exception:
                self.disconnect(connection)

    def notify_table_changed(self, table: str):
        """
        ChangeFeed callback. Sync endpoints run in a threadpool, so the
        broadcast is scheduled on the server loop instead of awaited here.
        """
        if self._loop is None or self._loop.is_closed() or not self.active_connections:
            return
        asyncio.run_coroutine_threadsafe(
            self.broadcast_event("db_updated", {"table": table}), self._loop
        )


manager = ConnectionManager()
