from typing import Optional

from .document_store import DocumentCollection, DocumentStore
from .memory_store import InMemoryCollection, InMemoryDocumentStore


def build_document_store(mongodb_uri: Optional[str], database: str) -> DocumentStore:
    """MongoDB when a URI is configured, otherwise the in-process store"""

    if mongodb_uri:
        from .mongo_store import MongoDocumentStore

        return MongoDocumentStore(mongodb_uri, database)
    return InMemoryDocumentStore()


__all__ = [
    "DocumentCollection",
    "DocumentStore",
    "InMemoryCollection",
    "InMemoryDocumentStore",
    "build_document_store",
]
