from __future__ import annotations

import asyncio
from typing import Dict, Literal, Set

from fastapi import WebSocket

from churchcms.domain.ports.notification_service import INavigator, IToastService, ToastEvent


class SessionConnectionHub(IToastService, INavigator):
    """Tracks the WebSockets of each UI session and pushes events to them."""

    def __init__(self) -> None:
        self._clients: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def register(self, session_id: str, ws: WebSocket) -> None:
        async with self._lock:
            self._clients.setdefault(session_id, set()).add(ws)

    async def unregister(self, session_id: str, ws: WebSocket) -> None:
        async with self._lock:
            clients = self._clients.get(session_id)
            if clients is None:
                return
            clients.discard(ws)
            if not clients:
                self._clients.pop(session_id, None)

    def connection_count(self, session_id: str) -> int:
        return len(self._clients.get(session_id) or ())

    async def publish(self, session_id: str, event: dict) -> None:
        # send to the session's sockets without failing the caller
        async with self._lock:
            clients = list(self._clients.get(session_id) or ())
        to_drop: list[WebSocket] = []
        for ws in clients:
            try:
                await ws.send_json(event)
            except Exception:
                to_drop.append(ws)
        if to_drop:
            async with self._lock:
                remaining = self._clients.get(session_id)
                if remaining is not None:
                    for ws in to_drop:
                        remaining.discard(ws)
                    if not remaining:
                        self._clients.pop(session_id, None)

    async def show(
        self,
        session_id: str,
        *,
        level: Literal["info", "success", "warning", "error"],
        title: str,
        message: str,
        timeout_ms: int,
        notification_id: str | None = None,
    ) -> None:
        event: ToastEvent = {
            "type": "toast",
            "title": title,
            "message": message,
            "level": level,
            "timeout_ms": timeout_ms,
        }
        if notification_id:
            event["id"] = notification_id
        await self.publish(session_id, dict(event))

    async def redirect(self, session_id: str, url: str) -> None:
        await self.publish(session_id, {"type": "navigate", "url": url})
