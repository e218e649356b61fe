from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

from churchcms.application.notification_coordinator import NotificationCoordinator
from churchcms.infrastructure.metrics import metrics


logger = logging.getLogger(__name__)


CoordinatorFactory = Callable[[str], NotificationCoordinator]


class SessionRegistry:
    """Owns one NotificationCoordinator per UI session id.

    Sessions without an open socket (``is_connected`` False) that have not been
    touched for ``idle_timeout`` seconds are closed the next time a session is
    created. ``idle_timeout=None`` keeps them until closed explicitly.
    """

    def __init__(
        self,
        factory: CoordinatorFactory,
        *,
        idle_timeout: Optional[float] = None,
        is_connected: Optional[Callable[[str], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._sessions: Dict[str, NotificationCoordinator] = {}
        self._last_seen: Dict[str, float] = {}
        self._idle_timeout = idle_timeout
        self._is_connected = is_connected or (lambda _sid: False)
        self._clock = clock

    def get_or_create(self, session_id: str) -> NotificationCoordinator:
        coordinator = self._sessions.get(session_id)
        if coordinator is None:
            self.evict_idle()
            coordinator = self._factory(session_id)
            self._sessions[session_id] = coordinator
            metrics.GAUGE_ACTIVE_SESSIONS.set(len(self._sessions))
            logger.info("session opened: %s", session_id)
        self._last_seen[session_id] = self._clock()
        return coordinator

    def get(self, session_id: str) -> Optional[NotificationCoordinator]:
        coordinator = self._sessions.get(session_id)
        if coordinator is not None:
            self._last_seen[session_id] = self._clock()
        return coordinator

    def evict_idle(self) -> int:
        if self._idle_timeout is None:
            return 0
        cutoff = self._clock() - self._idle_timeout
        idle = [
            sid
            for sid, seen in self._last_seen.items()
            if seen <= cutoff and not self._is_connected(sid)
        ]
        for session_id in idle:
            logger.info("session idle for %.0fs, evicting: %s", self._idle_timeout, session_id)
            self.close(session_id)
        return len(idle)

    def close(self, session_id: str) -> bool:
        self._last_seen.pop(session_id, None)
        coordinator = self._sessions.pop(session_id, None)
        if coordinator is None:
            return False
        coordinator.close()
        metrics.GAUGE_ACTIVE_SESSIONS.set(len(self._sessions))
        logger.info("session closed: %s", session_id)
        return True

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
