from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Set, Union
from urllib.parse import urlencode

from churchcms.domain.notification import (
    DEFAULT_DURATION_MS,
    Notification,
    utc_now_iso,
)
from churchcms.domain.ports.broadcast_channel import IBroadcastChannel
from churchcms.domain.ports.cache_invalidator import ICacheInvalidator
from churchcms.domain.ports.messaging_store import PROVIDER_CONFIGURATIONS, TEMPLATES
from churchcms.domain.ports.notification_service import INavigator, IToastService
from churchcms.infrastructure.metrics import metrics


logger = logging.getLogger(__name__)

_SHARED_GUARD = "*"


@dataclass(frozen=True, slots=True)
class RefreshProfile:
    tag: str
    id_prefix: str
    title: str
    message: str
    failure: str


REFRESH_PROFILES: Dict[str, RefreshProfile] = {
    TEMPLATES: RefreshProfile(
        tag=TEMPLATES,
        id_prefix="templates-refreshed",
        title="Templates Updated",
        message="Message templates have been refreshed.",
        failure="Failed to refresh message templates.",
    ),
    PROVIDER_CONFIGURATIONS: RefreshProfile(
        tag=PROVIDER_CONFIGURATIONS,
        id_prefix="providers-refreshed",
        title="Providers Updated",
        message="SMS providers have been refreshed.",
        failure="Failed to refresh SMS providers.",
    ),
}


NotificationInput = Union[Notification, Mapping[str, Any], None]


class NotificationCoordinator:
    """In-memory notification state of one UI session.

    Operations never raise to the caller: rejected input is a silent no-op and
    collaborator failures are logged or turned into a local error toast.
    Async side effects (toasts, refreshes) are scheduled on the running loop.
    """

    def __init__(
        self,
        session_id: str,
        *,
        toasts: IToastService,
        cache: ICacheInvalidator,
        broadcast: IBroadcastChannel,
        navigator: INavigator,
        topic: str = "messaging_notification",
        default_duration_ms: int = DEFAULT_DURATION_MS,
        settings_url: str = "/settings",
        shared_refresh_guard: bool = False,
    ) -> None:
        self.session_id = session_id
        self._toasts = toasts
        self._cache = cache
        self._broadcast = broadcast
        self._navigator = navigator
        self._topic = topic
        self._default_duration_ms = default_duration_ms
        self._settings_url = settings_url
        self._shared_guard = shared_refresh_guard

        self._active: List[Notification] = []
        self._in_flight: Set[str] = set()
        self._timers: Set[asyncio.TimerHandle] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False
        self._unsubscribe = broadcast.subscribe(topic, self._on_broadcast, subscriber=session_id)

    # -- read-only state -------------------------------------------------

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return tuple(self._active)

    @property
    def is_refreshing(self) -> bool:
        return bool(self._in_flight)

    def is_refreshing_tag(self, tag: str) -> bool:
        return self._guard_key(tag) in self._in_flight

    def get(self, notification_id: str) -> Optional[Notification]:
        for n in self._active:
            if n.id == notification_id:
                return n
        return None

    # -- notifications ---------------------------------------------------

    def add_notification(self, payload: NotificationInput) -> Optional[Notification]:
        if not payload:
            metrics.NOTIFICATIONS_REJECTED.labels(reason="invalid").inc()
            return None
        if isinstance(payload, Notification):
            notification: Optional[Notification] = payload if payload.title and payload.message else None
        else:
            notification = Notification.from_wire(payload, default_duration_ms=self._default_duration_ms)
        if notification is None:
            metrics.NOTIFICATIONS_REJECTED.labels(reason="invalid").inc()
            logger.debug("session %s: notification without title/message skipped", self.session_id)
            return None
        return self._admit(notification.with_defaults(duration_ms=self._default_duration_ms))

    def dismiss_notification(self, notification_id: str) -> None:
        self._active = [n for n in self._active if n.id != notification_id]

    def _admit(self, notification: Notification) -> Optional[Notification]:
        if self.get(notification.id) is not None:
            metrics.NOTIFICATIONS_REJECTED.labels(reason="duplicate").inc()
            return None
        self._active.insert(0, notification)
        metrics.NOTIFICATIONS_ADMITTED.labels(kind=notification.kind).inc()

        if not notification.suppress_toast:
            self._spawn(
                self._show_toast(
                    notification.kind,
                    notification.title,
                    notification.message,
                    notification.duration_ms,
                    notification_id=notification.id,
                )
            )
        if notification.auto_dismiss:
            self._schedule_expiry(notification)
        return notification

    def _schedule_expiry(self, notification: Notification) -> None:
        loop = _running_loop()
        if loop is None:
            return
        handle: Optional[asyncio.TimerHandle] = None

        def _expire() -> None:
            self._timers.discard(handle)  # type: ignore[arg-type]
            # only the entry this timer was armed for; a re-added id keeps its own timer
            self._active = [n for n in self._active if n is not notification]

        handle = loop.call_later(notification.duration_ms / 1000.0, _expire)
        self._timers.add(handle)

    # -- refresh ---------------------------------------------------------

    def refresh_templates(self) -> Optional[asyncio.Task]:
        return self._refresh(TEMPLATES)

    def refresh_providers(self) -> Optional[asyncio.Task]:
        return self._refresh(PROVIDER_CONFIGURATIONS)

    def refresh(self, tag: str) -> Optional[asyncio.Task]:
        if tag not in REFRESH_PROFILES:
            logger.warning("session %s: refresh of unknown resource %r ignored", self.session_id, tag)
            return None
        return self._refresh(tag)

    def _guard_key(self, tag: str) -> str:
        return _SHARED_GUARD if self._shared_guard else tag

    def _refresh(self, tag: str) -> Optional[asyncio.Task]:
        key = self._guard_key(tag)
        if self._closed:
            return None
        if key in self._in_flight:
            logger.debug("session %s: refresh of %s skipped, already in flight", self.session_id, tag)
            return None
        if _running_loop() is None:
            logger.warning("session %s: refresh of %s requested outside an event loop", self.session_id, tag)
            return None
        self._in_flight.add(key)
        return self._spawn(self._run_refresh(REFRESH_PROFILES[tag], key))

    async def _run_refresh(self, profile: RefreshProfile, key: str) -> None:
        try:
            await self._cache.invalidate(profile.tag)
            notification = Notification(
                id=f"{profile.id_prefix}-{int(time.time() * 1000)}",
                kind="success",
                title=profile.title,
                message=profile.message,
                created_at=utc_now_iso(),
                duration_ms=self._default_duration_ms,
            )
            # peers learn about it through the channel; the origin session is skipped
            await self._broadcast.publish(
                self._topic, json.dumps(notification.to_wire(), ensure_ascii=False), origin=self.session_id
            )
            metrics.REFRESHES.labels(resource=profile.tag, outcome="success").inc()
            metrics.BROADCASTS_PUBLISHED.inc()
        except Exception as exc:  # noqa: BLE001
            metrics.REFRESHES.labels(resource=profile.tag, outcome="failure").inc()
            logger.error("session %s: error refreshing %s: %s", self.session_id, profile.tag, exc)
            await self._show_toast("error", profile.failure, "", self._default_duration_ms)
        finally:
            self._in_flight.discard(key)

    # -- navigation ------------------------------------------------------

    def navigate_to_settings(self, tab: str = "messages") -> None:
        url = f"{self._settings_url}?{urlencode({'tab': tab or 'messages'})}"
        self._spawn(self._redirect(url))

    async def _redirect(self, url: str) -> None:
        try:
            await self._navigator.redirect(self.session_id, url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("session %s: redirect to %s failed: %s", self.session_id, url, exc)

    # -- cross-session ---------------------------------------------------

    def _on_broadcast(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            metrics.BROADCASTS_DISCARDED.labels(reason="unparsable").inc()
            logger.warning("session %s: error parsing broadcast notification: %s", self.session_id, exc)
            return
        if not isinstance(data, dict) or not data.get("id"):
            metrics.BROADCASTS_DISCARDED.labels(reason="unparsable").inc()
            logger.warning("session %s: broadcast notification without id discarded", self.session_id)
            return
        if self.get(str(data["id"])) is not None:
            metrics.BROADCASTS_DISCARDED.labels(reason="duplicate").inc()
            return
        notification = Notification.from_wire(data, default_duration_ms=self._default_duration_ms)
        if notification is None:
            metrics.NOTIFICATIONS_REJECTED.labels(reason="invalid").inc()
            return
        self._admit(replace(notification, suppress_toast=False).with_defaults(duration_ms=self._default_duration_ms))

    # -- plumbing --------------------------------------------------------

    async def _show_toast(
        self,
        kind: str,
        title: str,
        message: str,
        duration_ms: int,
        *,
        notification_id: str | None = None,
    ) -> None:
        try:
            await self._toasts.show(
                self.session_id,
                level=kind,  # type: ignore[arg-type]
                title=title,
                message=message,
                timeout_ms=duration_ms,
                notification_id=notification_id,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("session %s: toast delivery failed: %s", self.session_id, exc)

    def _spawn(self, coro) -> Optional[asyncio.Task]:
        loop = _running_loop()
        if loop is None or self._closed:
            coro.close()
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()
        self._active = []
        self._in_flight.clear()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
