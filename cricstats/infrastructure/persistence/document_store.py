from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

Document = Dict[str, Any]
SortSpec = Union[Mapping[str, int], Sequence[Tuple[str, int]], None]

# Keys never reported as queryable fields
INTERNAL_FIELDS = frozenset({"_id", "__v", ""})


def normalize_sort(sort: SortSpec) -> List[Tuple[str, int]]:
    """Turn ``{"Runs": -1}`` or ``[("Runs", -1)]`` into a list of (field, direction) pairs"""

    if not sort:
        return []
    items = sort.items() if isinstance(sort, Mapping) else sort
    normalized = []
    for field, direction in items:
        if isinstance(direction, str):
            direction = -1 if direction.lower() in {"desc", "descending", "-1"} else 1
        normalized.append((field, -1 if int(direction) < 0 else 1))
    return normalized


def public_field_names(document: Optional[Mapping[str, Any]]) -> List[str]:
    """Field names of a document minus storage internals, in document order"""

    if not document:
        return []
    return [key for key in document.keys() if key not in INTERNAL_FIELDS]


class DocumentCollection(ABC):
    """Contract of one schemaless collection in the record store"""

    name: str

    @abstractmethod
    async def find_one(self, filter: Optional[Mapping[str, Any]] = None) -> Optional[Document]:
        """Return the first matching document or None"""
        pass

    @abstractmethod
    async def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort: SortSpec = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Return matching documents, sorted and limited"""
        pass

    @abstractmethod
    async def sample_field_names(self) -> List[str]:
        """Field names of one representative document (empty if the collection is empty)"""
        pass

    @abstractmethod
    async def count_documents(self, filter: Optional[Mapping[str, Any]] = None) -> int:
        pass

    @abstractmethod
    async def insert_one(self, document: Mapping[str, Any]) -> Any:
        """Insert a document and return its id"""
        pass

    @abstractmethod
    async def insert_many(self, documents: Iterable[Mapping[str, Any]]) -> int:
        pass

    @abstractmethod
    async def find_one_and_upsert(self, key: Mapping[str, Any], fields: Mapping[str, Any]) -> Document:
        """Set ``fields`` on the document matching ``key``, creating it if absent"""
        pass

    @abstractmethod
    async def delete_many(self, filter: Optional[Mapping[str, Any]] = None) -> int:
        """Delete matching documents and return how many were removed"""
        pass


class DocumentStore(ABC):
    """Hands out collections by name"""

    @abstractmethod
    def collection(self, name: str) -> DocumentCollection:
        pass

    async def close(self) -> None:
        pass
