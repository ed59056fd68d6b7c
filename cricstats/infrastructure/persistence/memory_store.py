import asyncio
import copy
import itertools
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .document_store import (
    Document,
    DocumentCollection,
    DocumentStore,
    SortSpec,
    normalize_sort,
    public_field_names,
)

_MISSING = object()

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


def _resolve(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _regex_flags(options: str) -> int:
    flags = 0
    for option in options or "":
        flags |= _REGEX_FLAGS.get(option, 0)
    return flags


def _equals(value: Any, operand: Any) -> bool:
    if value is _MISSING:
        return operand is None
    if isinstance(value, list) and not isinstance(operand, list):
        return operand in value
    return value == operand


def _comparable(value: Any, operand: Any) -> bool:
    numbers = (int, float)
    if isinstance(value, numbers) and isinstance(operand, numbers):
        return True
    return type(value) is type(operand) and isinstance(value, (str, datetime))


def _apply_operator(operator: str, value: Any, operand: Any, options: str) -> bool:
    if operator == "$eq":
        return _equals(value, operand)
    if operator == "$ne":
        return not _equals(value, operand)
    if operator in ("$gt", "$gte", "$lt", "$lte"):
        if value is _MISSING or not _comparable(value, operand):
            return False
        if operator == "$gt":
            return value > operand
        if operator == "$gte":
            return value >= operand
        if operator == "$lt":
            return value < operand
        return value <= operand
    if operator == "$in":
        return any(_equals(value, item) for item in operand)
    if operator == "$nin":
        return not any(_equals(value, item) for item in operand)
    if operator == "$exists":
        return (value is not _MISSING) == bool(operand)
    if operator == "$regex":
        if not isinstance(value, str):
            return False
        pattern = operand.pattern if isinstance(operand, re.Pattern) else str(operand)
        return re.search(pattern, value, _regex_flags(options)) is not None
    if operator == "$not":
        return not _match_field(value, operand)
    raise ValueError(f"Unsupported query operator: {operator}")


def _match_field(value: Any, condition: Any) -> bool:
    if isinstance(condition, Mapping) and any(str(key).startswith("$") for key in condition):
        options = condition.get("$options", "")
        return all(
            _apply_operator(operator, value, operand, options)
            for operator, operand in condition.items()
            if operator != "$options"
        )
    if isinstance(condition, re.Pattern):
        return isinstance(value, str) and condition.search(value) is not None
    return _equals(value, condition)


def matches(document: Mapping[str, Any], filter: Optional[Mapping[str, Any]]) -> bool:
    """Evaluate a MongoDB-style filter against a single document"""

    for key, condition in (filter or {}).items():
        if key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif key == "$nor":
            if any(matches(document, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise ValueError(f"Unsupported top-level operator: {key}")
        elif not _match_field(_resolve(document, key), condition):
            return False
    return True


def _sort_key(value: Any):
    # MongoDB orders by type first: missing/null < numbers < strings < objects < arrays < booleans < dates
    if value is _MISSING or value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (5, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, Mapping):
        return (3, repr(value))
    if isinstance(value, list):
        return (4, repr(value))
    if isinstance(value, datetime):
        return (6, value.timestamp())
    return (7, repr(value))


def sort_documents(documents: List[Document], sort: SortSpec) -> List[Document]:
    ordered = list(documents)
    # Stable sorts applied from the least significant key backwards
    for field, direction in reversed(normalize_sort(sort)):
        ordered.sort(key=lambda doc: _sort_key(_resolve(doc, field)), reverse=direction < 0)
    return ordered


class InMemoryCollection(DocumentCollection):
    """In-process collection with MongoDB-like query semantics"""

    def __init__(self, name: str, documents: Optional[Iterable[Mapping[str, Any]]] = None):
        self.name = name
        self.documents: List[Document] = []
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()
        for document in documents or []:
            self._append(document)

    def _append(self, document: Mapping[str, Any]) -> Any:
        stored = copy.deepcopy(dict(document))
        stored.setdefault("_id", next(self._ids))
        self.documents.append(stored)
        return stored["_id"]

    async def find_one(self, filter: Optional[Mapping[str, Any]] = None) -> Optional[Document]:
        async with self._lock:
            for document in self.documents:
                if matches(document, filter):
                    return copy.deepcopy(document)
            return None

    async def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort: SortSpec = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        async with self._lock:
            found = [document for document in self.documents if matches(document, filter)]
            found = sort_documents(found, sort)
            if limit:
                # MongoDB reads a negative limit as its absolute value
                found = found[:abs(limit)]
            return copy.deepcopy(found)

    async def sample_field_names(self) -> List[str]:
        async with self._lock:
            return public_field_names(self.documents[0] if self.documents else None)

    async def count_documents(self, filter: Optional[Mapping[str, Any]] = None) -> int:
        async with self._lock:
            return sum(1 for document in self.documents if matches(document, filter))

    async def insert_one(self, document: Mapping[str, Any]) -> Any:
        async with self._lock:
            return self._append(document)

    async def insert_many(self, documents: Iterable[Mapping[str, Any]]) -> int:
        async with self._lock:
            count = 0
            for document in documents:
                self._append(document)
                count += 1
            return count

    async def find_one_and_upsert(self, key: Mapping[str, Any], fields: Mapping[str, Any]) -> Document:
        async with self._lock:
            for document in self.documents:
                if matches(document, key):
                    document.update(copy.deepcopy(dict(fields)))
                    return copy.deepcopy(document)
            self._append({**key, **fields})
            return copy.deepcopy(self.documents[-1])

    async def delete_many(self, filter: Optional[Mapping[str, Any]] = None) -> int:
        async with self._lock:
            kept = [document for document in self.documents if not matches(document, filter)]
            deleted = len(self.documents) - len(kept)
            self.documents = kept
            return deleted


class InMemoryDocumentStore(DocumentStore):
    """Record store used in development and tests when no MongoDB URI is configured"""

    def __init__(self, collections: Optional[Dict[str, Iterable[Mapping[str, Any]]]] = None):
        self.collections: Dict[str, InMemoryCollection] = {}
        for name, documents in (collections or {}).items():
            self.collections[name] = InMemoryCollection(name, documents)

    def collection(self, name: str) -> InMemoryCollection:
        if name not in self.collections:
            self.collections[name] = InMemoryCollection(name)
        return self.collections[name]
