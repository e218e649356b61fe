from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, Optional, get_args


NotificationKind = Literal["info", "success", "warning", "error"]
NOTIFICATION_KINDS: frozenset[str] = frozenset(get_args(NotificationKind))

DEFAULT_DURATION_MS = 5000

_ID_ALPHABET = string.digits + string.ascii_lowercase

# wire key -> field name
_WIRE_KEYS = {
    "id": "id",
    "type": "kind",
    "title": "title",
    "message": "message",
    "timestamp": "created_at",
    "duration": "duration_ms",
    "autoDismiss": "auto_dismiss",
}


def generate_notification_id(prefix: str = "notification") -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class Notification:
    """A transient, session-scoped message shown to one UI session.

    ``to_wire``/``from_wire`` use the JSON keys the browser client speaks
    (``type``, ``timestamp``, ``duration``, ``showToast``, ``autoDismiss``).
    """

    id: str
    title: str
    message: str
    kind: NotificationKind = "info"
    created_at: str = ""
    duration_ms: int = DEFAULT_DURATION_MS
    suppress_toast: bool = False
    auto_dismiss: bool = True

    def with_defaults(self, *, duration_ms: int = DEFAULT_DURATION_MS) -> "Notification":
        return replace(
            self,
            id=self.id or generate_notification_id(),
            created_at=self.created_at or utc_now_iso(),
            duration_ms=self.duration_ms if self.duration_ms > 0 else duration_ms,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind,
            "title": self.title,
            "message": self.message,
            "timestamp": self.created_at,
            "duration": self.duration_ms,
            "showToast": not self.suppress_toast,
            "autoDismiss": self.auto_dismiss,
        }

    @classmethod
    def from_wire(
        cls, data: Mapping[str, Any], *, default_duration_ms: int = DEFAULT_DURATION_MS
    ) -> Optional["Notification"]:
        """Build a notification from a wire or field-named mapping.

        Returns None when ``title`` or ``message`` is missing or empty.
        Missing ``id``/``created_at`` stay empty; ``with_defaults`` fills them.
        """
        fields: dict[str, Any] = {}
        for key, value in data.items():
            name = _WIRE_KEYS.get(key, key)
            fields[name] = value
        if "showToast" in fields:
            fields.setdefault("suppress_toast", fields["showToast"] is False)

        title = fields.get("title")
        message = fields.get("message")
        if not title or not message:
            return None

        kind = str(fields.get("kind") or "info").lower()
        if kind not in NOTIFICATION_KINDS:
            kind = "info"

        try:
            duration_ms = int(fields.get("duration_ms") or 0)
        except (TypeError, ValueError):
            duration_ms = 0

        return cls(
            id=str(fields.get("id") or ""),
            title=str(title),
            message=str(message),
            kind=kind,  # type: ignore[arg-type]
            created_at=str(fields.get("created_at") or ""),
            duration_ms=duration_ms if duration_ms > 0 else default_duration_ms,
            suppress_toast=bool(fields.get("suppress_toast", False)),
            auto_dismiss=fields.get("auto_dismiss") is not False,
        )
