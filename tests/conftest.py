"""Shared fakes and fixtures for the messaging tests."""

import asyncio
from typing import Any, Dict, List

import pytest

from churchcms.application.notification_coordinator import NotificationCoordinator
from churchcms.infrastructure.broadcast.local_broadcast import LocalBroadcastChannel


class FakeToasts:
    def __init__(self, fail: bool = False):
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    async def show(self, session_id, *, level, title, message, timeout_ms, notification_id=None):
        if self.fail:
            raise RuntimeError("socket gone")
        self.calls.append(
            {
                "session_id": session_id,
                "level": level,
                "title": title,
                "message": message,
                "timeout_ms": timeout_ms,
                "id": notification_id,
            }
        )


class FakeNavigator:
    def __init__(self):
        self.urls: List[tuple] = []

    async def redirect(self, session_id, url):
        self.urls.append((session_id, url))


class FakeInvalidator:
    """Invalidator whose calls block until ``release`` is set."""

    def __init__(self, fail: bool = False, block: bool = False):
        self.tags: List[str] = []
        self.fail = fail
        self.release = asyncio.Event()
        if not block:
            self.release.set()

    async def invalidate(self, tag):
        self.tags.append(tag)
        await self.release.wait()
        if self.fail:
            raise RuntimeError("cache backend down")


async def settle(rounds: int = 5):
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def toasts():
    return FakeToasts()


@pytest.fixture
def navigator():
    return FakeNavigator()


@pytest.fixture
def invalidator():
    return FakeInvalidator()


@pytest.fixture
def channel():
    return LocalBroadcastChannel()


@pytest.fixture
def make_coordinator(toasts, navigator, invalidator, channel):
    created: List[NotificationCoordinator] = []

    def _make(session_id="tab-1", **kwargs):
        kwargs.setdefault("toasts", toasts)
        kwargs.setdefault("navigator", navigator)
        kwargs.setdefault("cache", invalidator)
        kwargs.setdefault("broadcast", channel)
        coordinator = NotificationCoordinator(session_id, **kwargs)
        created.append(coordinator)
        return coordinator

    yield _make
    for c in created:
        c.close()
