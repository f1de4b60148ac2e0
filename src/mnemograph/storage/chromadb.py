"""ChromaDB storage layer for memory vectors.

This module provides the vector-store collaborator for mnemograph with:
- Persistent storage (production) via PersistentClient
- Ephemeral storage (testing) via EphemeralClient
- Cosine distance metric, reported as similarity in [0, 1]
- Category/language metadata filtering
- Memory payloads (text, category, importance, language, timestamp, entity IDs)
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Optional

import chromadb  # type: ignore[import-not-found]
from chromadb.api.models.Collection import Collection  # type: ignore[import-not-found]

from mnemograph.memory.types import (
    Language,
    MemoryCategory,
    MemoryPayload,
    VectorHit,
)
from mnemograph.storage.base import FetchResult

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Custom exception for vector storage errors."""

    pass


def _distance_to_similarity(distance: float) -> float:
    # Cosine distance: 0 = identical, 2 = opposite
    return 1 - (distance / 2)


class ChromaVectorStore:
    """Vector storage layer using ChromaDB.

    Stores one record per memory: the embedding, the memory text as the
    document, and the remaining payload fields as metadata.

    Args:
        db_path: Path to ChromaDB persistent storage directory.
                 Defaults to ~/.mnemograph/chroma_db.
        collection_name: Name of the collection (default: "memories")
        ephemeral: If True, use in-memory storage for testing (default: False)

    Attributes:
        db_path: Path to database storage (None if ephemeral)
        collection_name: Name of the active collection
        ephemeral: Whether using ephemeral storage
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        collection_name: str = "memories",
        ephemeral: bool = False,
    ):
        """Initialize ChromaVectorStore with persistent or ephemeral storage.

        Raises:
            StorageError: If database initialization fails
        """
        self.collection_name = collection_name
        self.ephemeral = ephemeral
        self._id_counter = 0

        if ephemeral:
            self.db_path = None
        else:
            self.db_path = db_path or Path.home() / ".mnemograph" / "chroma_db"

        try:
            if ephemeral:
                self._client = chromadb.EphemeralClient()
            else:
                if self.db_path is not None:
                    self.db_path.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(self.db_path))

            self._collection = self._get_or_create_collection()

        except Exception as e:
            raise StorageError(f"Failed to initialize ChromaDB storage: {e}") from e

    def _get_or_create_collection(self) -> Collection:
        try:
            return self._client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        except Exception as e:
            raise StorageError(f"Failed to get or create collection: {e}") from e

    def _generate_id(self) -> str:
        """Generate unique, sortable ID using timestamp and sequence."""
        unique_id = f"{int(time.time())}_{self._id_counter}"
        self._id_counter += 1
        return unique_id

    @staticmethod
    def _to_metadata(payload: MemoryPayload) -> dict[str, Any]:
        return {
            "category": payload.category.value,
            "importance": payload.importance,
            "language": payload.language.value,
            "created_at": payload.created_at,
            "entity_ids": json.dumps(payload.entity_ids),
        }

    @staticmethod
    def _to_payload(memory_id: str, document: Optional[str], metadata: Optional[dict]) -> MemoryPayload:
        metadata = metadata or {}
        return MemoryPayload(
            id=memory_id,
            text=document or "",
            category=MemoryCategory(metadata.get("category", MemoryCategory.OTHER.value)),
            importance=float(metadata.get("importance", 0.5)),
            language=Language(metadata.get("language", Language.EN.value)),
            created_at=int(metadata.get("created_at", 0)),
            entity_ids=json.loads(metadata.get("entity_ids") or "[]"),
        )

    @staticmethod
    def _build_where(
        category: Optional[MemoryCategory],
        language: Optional[Language],
    ) -> Optional[dict[str, Any]]:
        conditions: list[dict[str, Any]] = []
        if category is not None:
            conditions.append({"category": category.value})
        if language is not None:
            conditions.append({"language": language.value})
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    def upsert(self, vector: list[float], payload: MemoryPayload) -> str:
        """Insert or replace a memory record.

        Args:
            vector: Embedding of the memory text
            payload: Memory record; an ID is generated if ``payload.id`` is empty

        Returns:
            ID of the stored record

        Raises:
            StorageError: If the write fails
        """
        memory_id = payload.id or self._generate_id()
        try:
            self._collection.upsert(
                ids=[memory_id],
                embeddings=[vector],  # type: ignore[arg-type]
                documents=[payload.text],
                metadatas=[self._to_metadata(payload)],  # type: ignore[arg-type]
            )
            return memory_id

        except Exception as e:
            raise StorageError(f"Failed to upsert memory {memory_id}: {e}") from e

    def search(
        self,
        vector: list[float],
        limit: int,
        min_score: float,
        category: Optional[MemoryCategory] = None,
        language: Optional[Language] = None,
    ) -> list[VectorHit]:
        """Similarity search, most similar first.

        Args:
            vector: Query embedding
            limit: Maximum number of hits
            min_score: Minimum similarity (0.0 to 1.0)
            category: Optional category filter
            language: Optional language filter

        Returns:
            Hits with similarity >= min_score

        Raises:
            StorageError: If the search fails
        """
        try:
            if self._collection.count() == 0:
                return []

            where = self._build_where(category, language)
            query_kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": limit,
                "include": ["documents", "metadatas", "distances"],
            }
            if where is not None:
                query_kwargs["where"] = where

            results = self._collection.query(**query_kwargs)

        except Exception as e:
            raise StorageError(f"Failed to search memories: {e}") from e

        # Results are wrapped in lists, one per query embedding
        ids = results["ids"][0] if results["ids"] else []
        documents = results["documents"][0] if results["documents"] else []
        metadatas = results["metadatas"][0] if results["metadatas"] else []
        distances = results["distances"][0] if results["distances"] else []

        hits = []
        for i, memory_id in enumerate(ids):
            score = _distance_to_similarity(distances[i])
            if score < min_score:
                continue
            try:
                stored = self._to_payload(memory_id, documents[i], metadatas[i])
            except (ValueError, TypeError) as e:
                raise StorageError(f"Malformed memory record {memory_id}: {e}") from e
            hits.append(VectorHit(payload=stored, score=score))
        return hits

    def get_by_id(self, memory_id: str) -> FetchResult:
        """Fetch one memory record.

        Never raises: a failed lookup is reported with ``success=False``.
        """
        try:
            results = self._collection.get(ids=[memory_id], include=["documents", "metadatas"])
            if not results["ids"]:
                return FetchResult(success=True)

            document = results["documents"][0] if results["documents"] else None
            metadata = results["metadatas"][0] if results["metadatas"] else None
            payload = self._to_payload(memory_id, document, metadata)

        except Exception as e:
            logger.warning(f"Failed to fetch memory {memory_id}: {e}")
            return FetchResult(success=False, error=str(e))

        return FetchResult(success=True, payload=payload)

    def update_entity_ids(self, memory_id: str, entity_ids: list[str]) -> bool:
        """Replace the entity IDs stored with a memory.

        Returns:
            True if the memory exists and was updated

        Raises:
            StorageError: If the update fails
        """
        fetched = self.get_by_id(memory_id)
        if not fetched.success:
            raise StorageError(f"Failed to read memory {memory_id}: {fetched.error}")
        if fetched.payload is None:
            return False

        fetched.payload.entity_ids = list(entity_ids)
        try:
            self._collection.update(
                ids=[memory_id],
                metadatas=[self._to_metadata(fetched.payload)],  # type: ignore[arg-type]
            )
            return True

        except Exception as e:
            raise StorageError(f"Failed to update memory {memory_id}: {e}") from e

    def delete(self, memory_id: str) -> bool:
        """Delete a memory record.

        Returns:
            True if the record existed

        Raises:
            StorageError: If the delete fails
        """
        try:
            existing = self._collection.get(ids=[memory_id], include=[])
            if not existing["ids"]:
                return False
            self._collection.delete(ids=[memory_id])
            return True

        except Exception as e:
            raise StorageError(f"Failed to delete memory {memory_id}: {e}") from e

    def all_ids(self) -> list[str]:
        """IDs of every stored memory."""
        try:
            return list(self._collection.get(include=[])["ids"])
        except Exception as e:
            raise StorageError(f"Failed to list memories: {e}") from e

    def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as e:
            raise StorageError(f"Failed to count memories: {e}") from e

    def clear(self) -> int:
        """Delete all records by dropping and recreating the collection.

        Returns:
            Number of records deleted
        """
        try:
            current_count = self._collection.count()
            if current_count == 0:
                return 0

            self._client.delete_collection(self.collection_name)
            self._collection = self._get_or_create_collection()
            return current_count

        except Exception as e:
            raise StorageError(f"Failed to clear collection: {e}") from e
