# app/store/__init__.py
from .base import (
    SERVER_TIMESTAMP,
    DocumentQuery,
    DocumentStore,
    StoredDocument,
    WatchHandle,
)
from .memory_store import InMemoryDocumentStore

__all__ = [
    'SERVER_TIMESTAMP',
    'DocumentQuery',
    'DocumentStore',
    'StoredDocument',
    'WatchHandle',
    'InMemoryDocumentStore',
]
