from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Tuple

from churchcms.domain.ports.broadcast_channel import BroadcastHandler, IBroadcastChannel, Unsubscribe


logger = logging.getLogger(__name__)


class LocalBroadcastChannel(IBroadcastChannel):
    """In-process loopback channel for a single worker.

    Handlers run on the event loop after ``publish`` returns, one callback per
    subscriber, so a handler that publishes again never re-enters the caller.
    """

    def __init__(self) -> None:
        self._subs: Dict[str, List[Tuple[str, BroadcastHandler]]] = {}

    def subscribe(self, topic: str, handler: BroadcastHandler, *, subscriber: str) -> Unsubscribe:
        entry = (subscriber, handler)
        self._subs.setdefault(topic, []).append(entry)

        def _unsubscribe() -> None:
            subs = self._subs.get(topic) or []
            if entry in subs:
                subs.remove(entry)
            if not subs:
                self._subs.pop(topic, None)

        return _unsubscribe

    async def publish(self, topic: str, payload: str, *, origin: str | None = None) -> None:
        loop = asyncio.get_running_loop()
        for subscriber, handler in list(self._subs.get(topic) or []):
            if origin is not None and subscriber == origin:
                continue
            loop.call_soon(self._deliver, topic, subscriber, handler, payload)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subs.get(topic) or [])

    @staticmethod
    def _deliver(topic: str, subscriber: str, handler: BroadcastHandler, payload: str) -> None:
        try:
            handler(payload)
        except Exception as exc:  # noqa: BLE001
            logger.error("broadcast handler failed (topic=%s subscriber=%s): %s", topic, subscriber, exc)
