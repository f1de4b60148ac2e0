"""Storage layer for mnemograph."""

from mnemograph.storage.base import (
    Embedder,
    FetchResult,
    GraphStore,
    MembershipResult,
    VectorStore,
)
from mnemograph.storage.chromadb import ChromaVectorStore, StorageError
from mnemograph.storage.hybrid import HybridStore, HybridStoreError
from mnemograph.storage.sqlite import GraphStoreError, SQLiteGraphStore

__all__ = [
    "ChromaVectorStore",
    "Embedder",
    "FetchResult",
    "GraphStore",
    "GraphStoreError",
    "HybridStore",
    "HybridStoreError",
    "MembershipResult",
    "SQLiteGraphStore",
    "StorageError",
    "VectorStore",
]
