"""
Tests for field discovery and the settings object.
"""

import pytest
from pydantic import ValidationError

from cricstats.domain.catalog.field_catalog import DEFAULT_FIELDS, CacheMemoryStore, FieldCatalog
from cricstats.domain.models.session_state import CollectionName, StructuredQuery
from cricstats.infrastructure.config.settings import Settings
from cricstats.infrastructure.persistence import InMemoryDocumentStore


@pytest.mark.asyncio
async def test_fields_come_from_a_sampled_document(catalog):
    fields = await catalog.fields_for(CollectionName.TEST)

    assert fields == ["Player", "Span", "Mat", "Runs", "HS", "Avg", "100"]


@pytest.mark.asyncio
async def test_empty_collection_uses_default_fields():
    catalog = FieldCatalog(InMemoryDocumentStore(), ttl=300)

    fields = await catalog.all_fields()

    assert set(fields) == set(CollectionName)
    assert fields[CollectionName.ODI] == DEFAULT_FIELDS


@pytest.mark.asyncio
async def test_cached_until_invalidated():
    store = InMemoryDocumentStore()
    catalog = FieldCatalog(store, ttl=300)
    assert await catalog.fields_for(CollectionName.T20) == DEFAULT_FIELDS

    await store.collection("t20").insert_one({"Player": "RG Sharma (INDIA)", "SR": 140.89})
    assert await catalog.fields_for(CollectionName.T20) == DEFAULT_FIELDS

    await catalog.invalidate()
    assert await catalog.fields_for(CollectionName.T20) == ["Player", "SR"]


@pytest.mark.asyncio
async def test_zero_ttl_disables_caching():
    store = InMemoryDocumentStore()
    catalog = FieldCatalog(store, ttl=0)
    await catalog.fields_for(CollectionName.T20)

    await store.collection("t20").insert_one({"Player": "Babar Azam (PAK)"})

    assert await catalog.fields_for(CollectionName.T20) == ["Player"]


@pytest.mark.asyncio
async def test_cache_entries_expire():
    cache = CacheMemoryStore()

    await cache.set("key", "value", ttl=-1)

    assert await cache.get("key") is None
    assert "key" not in cache.cache


@pytest.mark.parametrize("raw, expected", [
    ("ODI", CollectionName.ODI),
    (" t20 ", CollectionName.T20),
    ("Test", CollectionName.TEST),
    (CollectionName.TEST, CollectionName.TEST),
])
def test_collection_name_parse(raw, expected):
    assert CollectionName.parse(raw) is expected


@pytest.mark.parametrize("raw", ["ipl", None, 3])
def test_collection_name_parse_rejects_unknown(raw):
    with pytest.raises(ValueError):
        CollectionName.parse(raw)


def test_structured_query_treats_null_as_empty():
    query = StructuredQuery(filter=None, sort=None)

    assert query.filter == {}
    assert query.sort == {}
    assert query.limit is None


def test_settings_overrides_and_env(monkeypatch):
    monkeypatch.setenv("MEMORY_COMPACTION_THRESHOLD", "20")

    settings = Settings(app_env="test")

    assert settings.compaction_threshold == 20
    assert settings.compaction_keep == 3
    assert settings.is_development is False


def test_settings_rejects_unknown_override():
    with pytest.raises(AttributeError):
        Settings(not_a_setting=True)


def test_structured_query_rejects_negative_limit():
    with pytest.raises(ValidationError):
        StructuredQuery(limit=-2)
