from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator


NOTIFICATIONS_ADMITTED = Counter(
    "messaging_notifications_admitted_total",
    "Notifications added to a session's active list",
    ["kind"],
)
NOTIFICATIONS_REJECTED = Counter(
    "messaging_notifications_rejected_total",
    "Notifications skipped (missing title/message or duplicate id)",
    ["reason"],
)
BROADCASTS_PUBLISHED = Counter(
    "messaging_broadcasts_published_total",
    "Refresh notifications written to the cross-session channel",
)
BROADCASTS_DISCARDED = Counter(
    "messaging_broadcasts_discarded_total",
    "Cross-session payloads dropped by a receiving session",
    ["reason"],
)
REFRESHES = Counter(
    "messaging_refreshes_total",
    "Resource refreshes by outcome",
    ["resource", "outcome"],
)
GAUGE_ACTIVE_SESSIONS = Gauge(
    "messaging_active_sessions",
    "UI sessions with a live notification coordinator",
)


def setup_metrics(app: FastAPI) -> None:
    """Attach Prometheus instrumentation.

    - Exposes /metrics with default FastAPI request metrics
    - Messaging counters above are registered on the default registry
    """
    instrumentator = Instrumentator().instrument(app)
    instrumentator.expose(app, include_in_schema=False)
