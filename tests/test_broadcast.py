"""Tests for the cross-session broadcast channels."""

import pytest

from churchcms.infrastructure.broadcast.local_broadcast import LocalBroadcastChannel
from churchcms.infrastructure.broadcast.redis_broadcast import (
    RedisBroadcastChannel,
    decode_envelope,
    encode_envelope,
)
from conftest import settle


class TestLocalBroadcastChannel:

    @pytest.mark.asyncio
    async def test_origin_is_skipped(self):
        ch = LocalBroadcastChannel()
        got = {"a": [], "b": []}
        ch.subscribe("t", got["a"].append, subscriber="a")
        ch.subscribe("t", got["b"].append, subscriber="b")
        await ch.publish("t", "hello", origin="a")
        await settle()
        assert got == {"a": [], "b": ["hello"]}

    @pytest.mark.asyncio
    async def test_delivery_is_deferred(self):
        ch = LocalBroadcastChannel()
        got = []
        ch.subscribe("t", got.append, subscriber="a")
        await ch.publish("t", "x")
        assert got == []
        await settle()
        assert got == ["x"]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_affect_others(self):
        ch = LocalBroadcastChannel()
        got = []

        def _boom(_payload):
            raise ValueError("bad")

        ch.subscribe("t", _boom, subscriber="a")
        ch.subscribe("t", got.append, subscriber="b")
        await ch.publish("t", "1")
        await ch.publish("t", "2")
        await settle()
        assert got == ["1", "2"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        ch = LocalBroadcastChannel()
        got = []
        unsubscribe = ch.subscribe("t", got.append, subscriber="a")
        unsubscribe()
        unsubscribe()
        await ch.publish("t", "x")
        await settle()
        assert got == []
        assert ch.subscriber_count("t") == 0

    @pytest.mark.asyncio
    async def test_topics_are_isolated(self):
        ch = LocalBroadcastChannel()
        got = []
        ch.subscribe("t1", got.append, subscriber="a")
        await ch.publish("t2", "x")
        await settle()
        assert got == []


class TestRedisEnvelope:

    def test_roundtrip(self):
        assert decode_envelope(encode_envelope('{"id": "1"}', "tab-1")) == ("tab-1", '{"id": "1"}')
        assert decode_envelope(encode_envelope("p", None).encode()) == (None, "p")

    @pytest.mark.parametrize("raw", ["not json", "[]", '{"origin": "a"}', '{"payload": 3}'])
    def test_malformed(self, raw):
        assert decode_envelope(raw) == (None, None)

    def test_dispatch_filters_origin_and_malformed(self):
        ch = RedisBroadcastChannel("redis://localhost:6379/0")
        got = {"a": [], "b": []}
        ch.subscribe("t", got["a"].append, subscriber="a")
        ch.subscribe("t", got["b"].append, subscriber="b")
        ch.dispatch("t", encode_envelope("hi", "a"))
        ch.dispatch("t", b"garbage")
        assert got == {"a": [], "b": ["hi"]}

    @pytest.mark.asyncio
    async def test_publish_requires_start(self):
        ch = RedisBroadcastChannel("redis://localhost:6379/0")
        with pytest.raises(RuntimeError):
            await ch.publish("t", "x")
