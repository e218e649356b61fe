from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, List, Optional, Tuple

import redis.asyncio as aioredis

from churchcms.domain.ports.broadcast_channel import BroadcastHandler, IBroadcastChannel, Unsubscribe


logger = logging.getLogger(__name__)


def encode_envelope(payload: str, origin: str | None) -> str:
    return json.dumps({"origin": origin, "payload": payload}, ensure_ascii=False)


def decode_envelope(raw: str | bytes) -> Tuple[Optional[str], Optional[str]]:
    """Return (origin, payload); payload is None for frames that are not envelopes."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except ValueError:
        return None, None
    if not isinstance(data, dict) or not isinstance(data.get("payload"), str):
        return None, None
    origin = data.get("origin")
    return (str(origin) if origin is not None else None), data["payload"]


class RedisBroadcastChannel(IBroadcastChannel):
    """Redis pub/sub channel for deployments running several workers.

    Every worker receives every message; the origin filter is applied to the
    local subscribers of each worker.
    """

    def __init__(self, url: str, *, topics: tuple[str, ...] = ()) -> None:
        self._url = url
        self._client: Optional[aioredis.Redis] = None
        self._pubsub: Optional[aioredis.client.PubSub] = None
        self._reader: Optional[asyncio.Task] = None
        self._subs: Dict[str, List[Tuple[str, BroadcastHandler]]] = {}
        self._initial_topics = topics

    async def start(self) -> None:
        if self._reader is not None:
            return
        self._client = aioredis.from_url(self._url)
        self._pubsub = self._client.pubsub()
        topics = set(self._initial_topics) | set(self._subs)
        if topics:
            await self._pubsub.subscribe(*sorted(topics))
        self._reader = asyncio.create_task(self._read_loop(), name="redis-broadcast-reader")
        logger.info("redis broadcast started: %s topics=%s", self._url, sorted(topics))

    async def stop(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def subscribe(self, topic: str, handler: BroadcastHandler, *, subscriber: str) -> Unsubscribe:
        entry = (subscriber, handler)
        is_new_topic = topic not in self._subs
        self._subs.setdefault(topic, []).append(entry)
        if is_new_topic and self._pubsub is not None and topic not in self._initial_topics:
            asyncio.get_running_loop().create_task(self._pubsub.subscribe(topic))

        def _unsubscribe() -> None:
            subs = self._subs.get(topic) or []
            if entry in subs:
                subs.remove(entry)

        return _unsubscribe

    async def publish(self, topic: str, payload: str, *, origin: str | None = None) -> None:
        if self._client is None:
            raise RuntimeError("redis broadcast channel not started")
        await self._client.publish(topic, encode_envelope(payload, origin))

    def dispatch(self, topic: str, raw: str | bytes) -> None:
        origin, payload = decode_envelope(raw)
        if payload is None:
            logger.warning("redis broadcast: discarded malformed frame on %s", topic)
            return
        for subscriber, handler in list(self._subs.get(topic) or []):
            if origin is not None and subscriber == origin:
                continue
            try:
                handler(payload)
            except Exception as exc:  # noqa: BLE001
                logger.error("broadcast handler failed (topic=%s subscriber=%s): %s", topic, subscriber, exc)

    async def _read_loop(self) -> None:
        assert self._pubsub is not None
        while True:
            try:
                message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("redis broadcast read failed; retrying: %s", exc)
                await asyncio.sleep(1.0)
                continue
            if not message or message.get("type") != "message":
                continue
            channel = message.get("channel")
            if isinstance(channel, bytes):
                channel = channel.decode("utf-8", errors="replace")
            self.dispatch(str(channel), message.get("data") or b"")
