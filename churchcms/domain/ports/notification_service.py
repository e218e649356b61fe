from __future__ import annotations

from typing import Protocol, TypedDict, Literal


class ToastEvent(TypedDict, total=False):
    type: Literal["toast"]
    id: str
    title: str
    message: str
    level: Literal["info", "success", "warning", "error"]
    timeout_ms: int


class IToastService(Protocol):
    async def show(
        self,
        session_id: str,
        *,
        level: Literal["info", "success", "warning", "error"],
        title: str,
        message: str,
        timeout_ms: int,
        notification_id: str | None = None,
    ) -> None: ...


class INavigator(Protocol):
    async def redirect(self, session_id: str, url: str) -> None: ...
