from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog
from bson import ObjectId
from pymongo import AsyncMongoClient, ReturnDocument

from .document_store import (
    Document,
    DocumentCollection,
    DocumentStore,
    SortSpec,
    normalize_sort,
    public_field_names,
)

logger = structlog.get_logger(__name__)


def _object_id(value: Any) -> Any:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _encode_filter(filter: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Map string ids handed out by this adapter back to ObjectIds"""

    encoded = dict(filter or {})
    if "_id" not in encoded:
        return encoded
    condition = encoded["_id"]
    if isinstance(condition, Mapping):
        encoded["_id"] = {
            operator: [_object_id(item) for item in operand] if isinstance(operand, list) else _object_id(operand)
            for operator, operand in condition.items()
        }
    else:
        encoded["_id"] = _object_id(condition)
    return encoded


def _decode(document: Optional[Mapping[str, Any]]) -> Optional[Document]:
    if document is None:
        return None
    decoded = dict(document)
    if isinstance(decoded.get("_id"), ObjectId):
        decoded["_id"] = str(decoded["_id"])
    return decoded


class MongoCollection(DocumentCollection):
    """DocumentCollection backed by a MongoDB collection"""

    def __init__(self, collection):
        self._collection = collection
        self.name = collection.name

    async def find_one(self, filter: Optional[Mapping[str, Any]] = None) -> Optional[Document]:
        return _decode(await self._collection.find_one(_encode_filter(filter)))

    async def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort: SortSpec = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        cursor = self._collection.find(_encode_filter(filter))
        sort_fields = normalize_sort(sort)
        if sort_fields:
            cursor = cursor.sort(sort_fields)
        if limit:
            cursor = cursor.limit(limit)
        return [_decode(document) for document in await cursor.to_list(None)]

    async def sample_field_names(self) -> List[str]:
        return public_field_names(await self._collection.find_one({}))

    async def count_documents(self, filter: Optional[Mapping[str, Any]] = None) -> int:
        return await self._collection.count_documents(_encode_filter(filter))

    async def insert_one(self, document: Mapping[str, Any]) -> Any:
        result = await self._collection.insert_one(dict(document))
        return str(result.inserted_id)

    async def insert_many(self, documents: Iterable[Mapping[str, Any]]) -> int:
        batch = [dict(document) for document in documents]
        if not batch:
            return 0
        result = await self._collection.insert_many(batch)
        return len(result.inserted_ids)

    async def find_one_and_upsert(self, key: Mapping[str, Any], fields: Mapping[str, Any]) -> Document:
        document = await self._collection.find_one_and_update(
            _encode_filter(key),
            {"$set": dict(fields)},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return _decode(document)

    async def delete_many(self, filter: Optional[Mapping[str, Any]] = None) -> int:
        result = await self._collection.delete_many(_encode_filter(filter))
        return result.deleted_count


class MongoDocumentStore(DocumentStore):
    """Record store over a single MongoDB database"""

    def __init__(self, uri: str, database: str):
        self._client = AsyncMongoClient(uri, tz_aware=True)
        self._database = self._client[database]
        logger.info("MongoDB store configured", database=database)

    def collection(self, name: str) -> MongoCollection:
        return MongoCollection(self._database[name])

    async def close(self) -> None:
        await self._client.close()
