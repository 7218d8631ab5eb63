from __future__ import annotations

import asyncio
import logging
from collections import Counter

from fastapi import WebSocket, WebSocketDisconnect, status

from lifecounter.api.models import SessionSnapshot
from lifecounter.session_store import RedisSessionDirectory

logger = logging.getLogger(__name__)

Outbox = asyncio.Queue[dict[str, object]]


def snapshot_message(session_id: str, snapshot: SessionSnapshot) -> dict[str, object]:
    return {"type": "snapshot", "session_id": session_id, "snapshot": snapshot.to_wire()}


class SessionWebSocketHub:
    """Relays a session's published snapshots to WebSocket watchers.

    Each socket gets its own subscription on the session's updates channel,
    so it first receives the current document and then every publish, in
    the order Redis delivered them. Sockets are read-only views: mutations
    go through the HTTP routes or a SyncEngine.
    """

    def __init__(self) -> None:
        self._watchers: Counter[str] = Counter()

    def watchers(self, session_id: str) -> int:
        return self._watchers[session_id]

    async def serve(self, websocket: WebSocket, *, directory: RedisSessionDirectory, session_id: str) -> None:
        if not directory.session_exists(session_id):
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        outbox: Outbox = asyncio.Queue()
        unsubscribe = directory.subscribe(
            session_id,
            lambda snapshot: outbox.put_nowait(snapshot_message(session_id, snapshot)),
        )
        await websocket.accept()
        self._watchers[session_id] += 1
        sender = asyncio.create_task(self._drain(websocket, outbox))

        try:
            # Incoming frames (pings) are read and ignored.
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug("watcher left session %s", session_id)
        finally:
            sender.cancel()
            unsubscribe()
            self._watchers[session_id] -= 1
            if self._watchers[session_id] <= 0:
                del self._watchers[session_id]

    async def _drain(self, websocket: WebSocket, outbox: Outbox) -> None:
        while True:
            message = await outbox.get()
            try:
                await websocket.send_json(message)
            except Exception:
                logger.debug("dropping websocket send", exc_info=True)
                return


hub = SessionWebSocketHub()
