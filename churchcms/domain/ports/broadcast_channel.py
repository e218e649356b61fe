from __future__ import annotations

from typing import Callable, Protocol


BroadcastHandler = Callable[[str], None]
Unsubscribe = Callable[[], None]


class IBroadcastChannel(Protocol):
    """Same-origin pub/sub between UI sessions.

    A published value reaches every subscriber of the topic except the one
    whose ``subscriber`` id equals the publisher's ``origin``.
    """

    async def publish(self, topic: str, payload: str, *, origin: str | None = None) -> None: ...

    def subscribe(self, topic: str, handler: BroadcastHandler, *, subscriber: str) -> Unsubscribe: ...
