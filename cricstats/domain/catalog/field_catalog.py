from typing import Dict, Any, List, Optional
import asyncio
from datetime import datetime, timedelta, timezone

import structlog

from cricstats.domain.models.session_state import CollectionName
from cricstats.infrastructure.persistence.document_store import DocumentStore

logger = structlog.get_logger(__name__)

# Used when a collection has no documents to sample
DEFAULT_FIELDS = ["Player", "Runs", "HS", "Avg", "SR"]


class CacheMemoryStore:
    """In-memory cache store with TTL support"""

    def __init__(self):
        self.cache: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def set(self, key: str, value: Any, ttl: int = 3600) -> None:
        """Set a value in cache with TTL"""

        async with self._lock:
            self.cache[key] = {
                "value": value,
                "expires_at": datetime.now(timezone.utc) + timedelta(seconds=ttl)
            }

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired"""

        async with self._lock:
            if key not in self.cache:
                return None

            entry = self.cache[key]

            # Check if expired
            if datetime.now(timezone.utc) > entry["expires_at"]:
                del self.cache[key]
                return None

            return entry["value"]

    async def clear(self) -> None:
        async with self._lock:
            self.cache.clear()


class FieldCatalog:
    """Discovers the queryable field names of each record collection"""

    def __init__(self, store: DocumentStore, ttl: int = 300):
        self.store = store
        self.ttl = ttl
        self.cache = CacheMemoryStore()

    async def fields_for(self, collection: CollectionName) -> List[str]:
        """Field names of one sampled document, or the default list for an empty collection"""

        key = f"fields_{collection.value}"
        if self.ttl > 0:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        fields = await self.store.collection(collection.value).sample_field_names()
        if not fields:
            logger.info("Collection empty, using default fields", collection=collection.value)
            fields = list(DEFAULT_FIELDS)

        if self.ttl > 0:
            await self.cache.set(key, fields, ttl=self.ttl)
        return fields

    async def all_fields(self) -> Dict[CollectionName, List[str]]:
        return {collection: await self.fields_for(collection) for collection in CollectionName}

    async def invalidate(self) -> None:
        """Drop cached field lists, e.g. after the collections were re-seeded"""
        await self.cache.clear()
