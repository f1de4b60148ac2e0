"""Collaborator contracts used by the memory engine.

The engine itself performs no I/O. Vector similarity, graph traversal and
embedding generation are delegated to objects satisfying these protocols.
Lookups consumed by hybrid search return explicit result objects instead of
raising, so the search decides locally how to degrade.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from mnemograph.memory.types import (
    EntityCandidate,
    GraphExploration,
    Language,
    MemoryCategory,
    MemoryPayload,
    RelationCandidate,
    VectorHit,
)


@dataclass
class FetchResult:
    """Outcome of fetching one memory record by ID.

    Attributes:
        success: Whether the lookup itself completed
        payload: The record, or None if no memory has that ID
        error: Error message (if the lookup failed)
    """
    success: bool
    payload: Optional[MemoryPayload] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.success and self.payload is not None


@dataclass
class MembershipResult:
    """Outcome of a graph membership lookup.

    Attributes:
        success: Whether the lookup completed
        memory_ids: IDs of memories linked to the queried entities (unranked)
        error: Error message (if the lookup failed)
    """
    success: bool
    memory_ids: set[str] = field(default_factory=set)
    error: Optional[str] = None


@runtime_checkable
class VectorStore(Protocol):
    """Similarity search over stored memory records."""

    def search(
        self,
        vector: list[float],
        limit: int,
        min_score: float,
        category: Optional[MemoryCategory] = None,
        language: Optional[Language] = None,
    ) -> list[VectorHit]: ...

    def get_by_id(self, memory_id: str) -> FetchResult: ...

    def upsert(self, vector: list[float], payload: MemoryPayload) -> str: ...

    def delete(self, memory_id: str) -> bool: ...


@runtime_checkable
class GraphStore(Protocol):
    """Entity graph with memory links."""

    def find_related_memories(self, entity_names: list[str]) -> MembershipResult: ...

    def ensure_entities(self, entities: list[EntityCandidate]) -> list[str]: ...

    def create_relation(self, relation: RelationCandidate) -> bool: ...

    def explore_entity(self, name: str, max_hops: int = 2) -> Optional[GraphExploration]: ...

    def link_memory(self, memory_id: str, entity_ids: list[str]) -> int: ...

    def unlink_memory(self, memory_id: str) -> int: ...


@runtime_checkable
class Embedder(Protocol):
    """Turns text into an embedding vector."""

    async def embed(self, text: str, is_query: bool = False) -> list[float]: ...
