import json
from unittest.mock import MagicMock, patch

import pytest

from churchcms.domain.ports.messaging_store import PROVIDER_CONFIGURATIONS, TEMPLATES
from churchcms.infrastructure.cache.resource_cache import ResourceCache
from churchcms.infrastructure.store.file_store import DEFAULT_MESSAGING_DATA, FileMessagingStore
from churchcms.infrastructure.store.supabase_store import SupabaseMessagingStore


class CountingStore:
    def __init__(self):
        self.loads = []

    async def load(self, tag):
        self.loads.append(tag)
        return [{"id": f"{tag}-{len(self.loads)}"}]


@pytest.mark.asyncio
async def test_read_through_and_invalidate():
    store = CountingStore()
    cache = ResourceCache(store)

    first = await cache.get(TEMPLATES)
    again = await cache.get(TEMPLATES)
    assert first is again
    assert store.loads == [TEMPLATES]

    await cache.invalidate(TEMPLATES)
    assert not cache.is_cached(TEMPLATES)
    fresh = await cache.get(TEMPLATES)
    assert fresh == [{"id": "templates-2"}]


@pytest.mark.asyncio
async def test_invalidate_is_per_tag():
    store = CountingStore()
    cache = ResourceCache(store)
    await cache.get(TEMPLATES)
    await cache.get(PROVIDER_CONFIGURATIONS)
    await cache.invalidate(PROVIDER_CONFIGURATIONS)
    assert cache.is_cached(TEMPLATES)
    assert not cache.is_cached(PROVIDER_CONFIGURATIONS)


@pytest.mark.asyncio
async def test_unknown_tag():
    cache = ResourceCache(CountingStore())
    with pytest.raises(KeyError):
        await cache.invalidate("sermons")
    with pytest.raises(KeyError):
        await cache.get("sermons")


@pytest.mark.asyncio
async def test_file_store_creates_defaults(tmp_path):
    path = tmp_path / "nested" / "messaging.json"
    store = FileMessagingStore(path)
    rows = await store.load(TEMPLATES)
    assert rows == DEFAULT_MESSAGING_DATA[TEMPLATES]
    assert path.exists()


@pytest.mark.asyncio
async def test_file_store_reads_overrides(tmp_path):
    path = tmp_path / "messaging.json"
    path.write_text(json.dumps({PROVIDER_CONFIGURATIONS: [{"id": "hubtel"}, "junk"]}), encoding="utf-8")
    store = FileMessagingStore(path)
    assert await store.load(PROVIDER_CONFIGURATIONS) == [{"id": "hubtel"}]
    assert await store.load(TEMPLATES) == DEFAULT_MESSAGING_DATA[TEMPLATES]


@pytest.mark.asyncio
async def test_file_store_rejects_non_object(tmp_path):
    path = tmp_path / "messaging.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        await FileMessagingStore(path).load(TEMPLATES)


@pytest.mark.asyncio
async def test_supabase_store_queries_table():
    resp = MagicMock()
    resp.json.return_value = [{"id": 1}]
    with patch("churchcms.infrastructure.store.supabase_store.requests.get", return_value=resp) as get:
        store = SupabaseMessagingStore("https://example.supabase.co/", "anon-key", timeout=3)
        rows = await store.load(PROVIDER_CONFIGURATIONS)

    assert rows == [{"id": 1}]
    args, kwargs = get.call_args
    assert args[0] == "https://example.supabase.co/rest/v1/messaging_configurations"
    assert kwargs["headers"]["apikey"] == "anon-key"
    assert kwargs["timeout"] == 3
    resp.raise_for_status.assert_called_once()


@pytest.mark.asyncio
async def test_supabase_store_propagates_errors():
    with patch(
        "churchcms.infrastructure.store.supabase_store.requests.get",
        side_effect=ConnectionError("offline"),
    ):
        store = SupabaseMessagingStore("https://example.supabase.co", "k")
        with pytest.raises(ConnectionError):
            await store.load(TEMPLATES)
