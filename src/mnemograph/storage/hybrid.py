"""Hybrid storage layer coordinating the vector store, the graph store and the embedder.

This module provides a HybridStore that owns:
- ChromaVectorStore: embeddings plus the memory payload (source of truth for memories)
- SQLiteGraphStore: entities, relations and memory -> entity links
- An embedder (OllamaEmbedder by default) used for memories and queries
- The analysis engines bound to the settings: extractor, capture engine, hybrid search

Key principles:
- A memory exists once its vector record is written; graph writes are enrichment
- Graph relation failures are logged and skipped, never fatal to a store
- Deleting a memory removes its vector record and all of its graph links
"""

import logging
import time
import uuid
from typing import Any, Optional

from mnemograph.capture.engine import CaptureEngine
from mnemograph.config import MnemographSettings
from mnemograph.embedding.ollama import EmbeddingError, OllamaEmbedder
from mnemograph.extraction.extractor import EntityExtractor
from mnemograph.extraction.morphology import RussianMorphology
from mnemograph.log import setup_logging
from mnemograph.memory.types import (
    EntityCandidate,
    GraphExploration,
    HybridResult,
    Language,
    MemoryCategory,
    MemoryPayload,
    RelationCandidate,
    VectorHit,
)
from mnemograph.search.fusion import HybridSearch, SearchOptions
from mnemograph.storage.base import Embedder
from mnemograph.storage.chromadb import ChromaVectorStore, StorageError
from mnemograph.storage.sqlite import GraphStoreError, SQLiteGraphStore

logger = logging.getLogger(__name__)


class HybridStoreError(Exception):
    """Custom exception for hybrid storage operations."""

    pass


def _now_ms() -> int:
    return int(time.time() * 1000)


class HybridStore:
    """Coordinated storage layer combining vector and graph storage.

    Args:
        vector_store: ChromaVectorStore instance for memory records
        graph_store: SQLiteGraphStore instance for the entity graph
        embedder: Embedder for memory texts and queries
        settings: Engine settings (default: loaded from environment)
        morphology: Optional initialized morphology provider for extraction

    Attributes:
        settings: Engine settings
        extractor: EntityExtractor bound to the morphology provider
        capture: CaptureEngine bound to the settings and extractor
        hybrid_search: HybridSearch over both stores

    Example:
        >>> async with await HybridStore.create(ephemeral=True) as store:
        ...     vector = await store.embed("Anna works at Google")
        ...     hits = await store.search_vectors(vector, limit=1, min_score=0.9)
    """

    def __init__(
        self,
        vector_store: ChromaVectorStore,
        graph_store: SQLiteGraphStore,
        embedder: Embedder,
        settings: Optional[MnemographSettings] = None,
        morphology: Optional[RussianMorphology] = None,
    ):
        self.settings = settings or MnemographSettings()
        self._vector = vector_store
        self._graph = graph_store
        self._embedder = embedder
        self.morphology = morphology
        self.extractor = EntityExtractor(morphology=morphology)
        self.capture = CaptureEngine.from_settings(self.settings, extractor=self.extractor)
        self.hybrid_search = HybridSearch(
            vector_store,
            graph_store,
            weights=self.settings.get_fusion_weights(),
        )

    @classmethod
    async def create(
        cls,
        settings: Optional[MnemographSettings] = None,
        embedder: Optional[Embedder] = None,
        ephemeral: bool = False,
    ) -> "HybridStore":
        """Create a HybridStore with new component instances.

        Logging is configured at the settings log level. Morphology is loaded
        when enabled in the settings; if pymorphy3 is missing or fails to
        load, extraction runs regex-only.

        Args:
            settings: Engine settings (default: loaded from environment)
            embedder: Embedder to use (default: OllamaEmbedder from settings)
            ephemeral: Use in-memory storage for testing (default: False)

        Returns:
            Configured HybridStore instance

        Raises:
            HybridStoreError: If store initialization fails
        """
        settings = settings or MnemographSettings()
        setup_logging(settings.log_level)

        try:
            vector_store = ChromaVectorStore(
                db_path=settings.get_chroma_path(),
                collection_name=settings.collection_name,
                ephemeral=ephemeral,
            )
            graph_store = SQLiteGraphStore(
                db_path=settings.get_sqlite_path(),
                ephemeral=ephemeral,
            )

        except (StorageError, GraphStoreError) as e:
            raise HybridStoreError(f"Failed to create HybridStore: {e}") from e

        morphology = None
        if settings.morphology_enabled:
            morphology = RussianMorphology()
            await morphology.ensure_ready()

        return cls(
            vector_store=vector_store,
            graph_store=graph_store,
            embedder=embedder or OllamaEmbedder.from_settings(settings),
            settings=settings,
            morphology=morphology,
        )

    async def close(self) -> None:
        """Close the graph store and the embedder."""
        close_embedder = getattr(self._embedder, "close", None)
        if close_embedder is not None:
            await close_embedder()
        self._graph.close()
        # ChromaDB doesn't require explicit close

    async def __aenter__(self) -> "HybridStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Embedding
    # =========================================================================

    async def embed(self, text: str, is_query: bool = False) -> list[float]:
        """Embed a memory text or a query.

        Raises:
            HybridStoreError: If embedding fails
        """
        try:
            return await self._embedder.embed(text, is_query=is_query)
        except (EmbeddingError, ValueError) as e:
            raise HybridStoreError(f"Failed to embed text: {e}") from e

    # =========================================================================
    # Memory Operations
    # =========================================================================

    async def find_duplicate(self, vector: list[float]) -> Optional[VectorHit]:
        """Most similar stored memory at or above the duplicate threshold."""
        hits = await self.search_vectors(vector, limit=1, min_score=self.settings.duplicate_threshold)
        return hits[0] if hits else None

    async def store_graph(
        self,
        entities: list[EntityCandidate],
        relations: list[RelationCandidate],
    ) -> list[str]:
        """Write entities and the relations that touch them.

        A relation is written only when at least one endpoint is among the
        given entities. Relation failures are logged and skipped.

        Returns:
            IDs of the stored entities

        Raises:
            HybridStoreError: If the entities cannot be stored
        """
        if not entities:
            return []

        try:
            entity_ids = self._graph.ensure_entities(entities)
        except GraphStoreError as e:
            raise HybridStoreError(f"Failed to store entities: {e}") from e

        known = set(entity_ids)
        for relation in relations:
            if relation.source_id not in known and relation.target_id not in known:
                continue
            try:
                self._graph.create_relation(relation)
            except GraphStoreError as e:
                logger.warning(
                    f"Skipping relation {relation.source_name} -[{relation.relation_type.value}]-> "
                    f"{relation.target_name}: {e}"
                )

        return entity_ids

    async def add_memory(
        self,
        text: str,
        vector: list[float],
        category: MemoryCategory,
        importance: float,
        language: Language,
        entity_ids: Optional[list[str]] = None,
    ) -> str:
        """Write a memory record and link it to its entities.

        Returns:
            The ID of the created memory

        Raises:
            HybridStoreError: If the vector write fails (link failures are non-fatal)
        """
        payload = MemoryPayload(
            id=str(uuid.uuid4()),
            text=text,
            category=category,
            importance=importance,
            language=language,
            created_at=_now_ms(),
            entity_ids=list(entity_ids or []),
        )

        try:
            memory_id = self._vector.upsert(vector, payload)
        except StorageError as e:
            raise HybridStoreError(f"Failed to add memory: {e}") from e

        if payload.entity_ids:
            try:
                self._graph.link_memory(memory_id, payload.entity_ids)
            except GraphStoreError as e:
                logger.warning(f"Failed to link memory {memory_id} to entities: {e}")

        logger.debug(f"Stored memory {memory_id} with {len(payload.entity_ids)} entities")
        return memory_id

    async def get_memory(self, memory_id: str) -> Optional[MemoryPayload]:
        """Get a memory record by ID.

        Raises:
            HybridStoreError: If the lookup fails
        """
        fetched = self._vector.get_by_id(memory_id)
        if not fetched.success:
            raise HybridStoreError(f"Failed to get memory: {fetched.error}")
        return fetched.payload

    async def update_memory_entities(self, memory_id: str, entity_ids: list[str]) -> bool:
        """Replace a memory's entity IDs and relink it in the graph.

        Returns:
            True if the memory exists
        """
        try:
            if not self._vector.update_entity_ids(memory_id, entity_ids):
                return False
            self._graph.unlink_memory(memory_id)
            self._graph.link_memory(memory_id, entity_ids)
            return True

        except (StorageError, GraphStoreError) as e:
            raise HybridStoreError(f"Failed to update memory entities: {e}") from e

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory record and its graph links.

        Returns:
            True if memory was deleted, False if not found

        Raises:
            HybridStoreError: If the vector delete fails
        """
        try:
            deleted = self._vector.delete(memory_id)
        except StorageError as e:
            raise HybridStoreError(f"Failed to delete memory: {e}") from e

        # Links are removed even for a missing record so no orphans remain
        try:
            self._graph.unlink_memory(memory_id)
        except GraphStoreError as e:
            logger.warning(f"Failed to unlink memory {memory_id}: {e}")

        return deleted

    def list_memory_ids(self) -> list[str]:
        try:
            return self._vector.all_ids()
        except StorageError as e:
            raise HybridStoreError(f"Failed to list memories: {e}") from e

    def count_memories(self) -> int:
        try:
            return self._vector.count()
        except StorageError as e:
            raise HybridStoreError(f"Failed to count memories: {e}") from e

    # =========================================================================
    # Search Operations
    # =========================================================================

    async def search_vectors(
        self,
        vector: list[float],
        limit: int,
        min_score: float,
    ) -> list[VectorHit]:
        """Plain similarity search over memory records.

        Raises:
            HybridStoreError: If the search fails
        """
        try:
            return self._vector.search(vector, limit, min_score)
        except StorageError as e:
            raise HybridStoreError(f"Search failed: {e}") from e

    async def search(
        self,
        vector: list[float],
        query: str,
        entity_names: list[str],
        options: Optional[SearchOptions] = None,
    ) -> list[HybridResult]:
        """Fused vector + graph search.

        Raises:
            HybridStoreError: If the vector search fails (graph failures degrade)
        """
        try:
            return self.hybrid_search.search(vector, query, entity_names, options)
        except StorageError as e:
            raise HybridStoreError(f"Search failed: {e}") from e

    async def enrich(self, results: list[HybridResult]) -> list[HybridResult]:
        """Attach linked entity summaries to results."""
        return self.hybrid_search.enrich_with_entities(results)

    # =========================================================================
    # Graph Operations
    # =========================================================================

    async def explore_entity(self, name: str, max_hops: int = 2) -> Optional[GraphExploration]:
        try:
            return self._graph.explore_entity(name, max_hops=max_hops)
        except GraphStoreError as e:
            raise HybridStoreError(f"Failed to explore entity: {e}") from e

    def get_stats(self) -> dict[str, Any]:
        """Memory count plus graph statistics."""
        try:
            return {
                "memories": self._vector.count(),
                "graph": self._graph.stats(),
            }
        except (StorageError, GraphStoreError) as e:
            raise HybridStoreError(f"Failed to get stats: {e}") from e
