"""Hybrid score fusion of vector similarity and graph membership.

Vector search returns a ranked list of similar memories; graph traversal
returns an unranked set of memories linked to entities named in the query.
This module merges both signals into one ranked list:

    combined = vector_score * w + graph_score * (1 - w) + importance * 0.1

A vector hit also found in the graph gets ``graph_overlap_score`` (0.5);
a memory only the graph found gets ``graph_only_score`` (0.7). The
importance term is a re-ranking nudge, so combined scores may exceed 1.0.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from mnemograph.memory.types import (
    EntitySummary,
    HybridResult,
    Language,
    MemoryCategory,
    MemoryPayload,
    Provenance,
    VectorHit,
)

if TYPE_CHECKING:
    from mnemograph.storage.base import GraphStore, VectorStore

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No relevant memories found."

_WORD_START = re.compile(r"\b\w")


@dataclass(frozen=True)
class FusionWeights:
    """Constants of the fusion formula.

    Attributes:
        graph_overlap_score: Graph score of a vector hit also found in the graph
        graph_only_score: Graph score of a memory only the graph found
        importance_weight: Multiplier of the stored importance
    """
    graph_overlap_score: float = 0.5
    graph_only_score: float = 0.7
    importance_weight: float = 0.1


DEFAULT_WEIGHTS = FusionWeights()


@dataclass
class SearchOptions:
    """Options for a hybrid search.

    Attributes:
        limit: Maximum number of results
        min_score: Minimum vector similarity
        hybrid_weight: Weight of the vector score (0.0 to 1.0)
        include_graph: Whether to consult the graph store
        category: Optional category filter for vector search
        language: Optional language filter for vector search
    """
    limit: int = 5
    min_score: float = 0.3
    hybrid_weight: float = 0.7
    include_graph: bool = True
    category: Optional[MemoryCategory] = None
    language: Optional[Language] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.hybrid_weight <= 1.0:
            raise ValueError(
                f"hybrid_weight must be between 0.0 and 1.0, got {self.hybrid_weight}"
            )
        if self.limit < 1:
            raise ValueError(f"limit must be positive, got {self.limit}")


def combined_score(
    vector_score: float,
    graph_score: float,
    importance: float,
    hybrid_weight: float = 0.7,
    weights: FusionWeights = DEFAULT_WEIGHTS,
) -> float:
    """Weighted combination of the two retrieval signals plus importance."""
    return (
        vector_score * hybrid_weight
        + graph_score * (1 - hybrid_weight)
        + importance * weights.importance_weight
    )


def _result_from_payload(
    payload: MemoryPayload,
    vector_score: float,
    graph_score: float,
    provenance: Provenance,
    hybrid_weight: float,
    weights: FusionWeights,
) -> HybridResult:
    return HybridResult(
        memory_id=payload.id,
        text=payload.text,
        category=payload.category,
        importance=payload.importance,
        language=payload.language,
        created_at=payload.created_at,
        vector_score=vector_score,
        graph_score=graph_score,
        combined_score=combined_score(
            vector_score, graph_score, payload.importance, hybrid_weight, weights
        ),
        provenance=provenance,
    )


def merge_results(
    vector_hits: list[VectorHit],
    graph_ids: Iterable[str],
    graph_payloads: Mapping[str, MemoryPayload],
    hybrid_weight: float = 0.7,
    weights: FusionWeights = DEFAULT_WEIGHTS,
) -> list[HybridResult]:
    """Merge vector hits and graph membership into scored results.

    Results are returned in discovery order (vector hits first, then
    graph-only memories) and are not yet sorted.

    Args:
        vector_hits: Similarity-ranked vector search results
        graph_ids: Memory IDs linked to the query entities
        graph_payloads: Records for graph-only IDs; IDs missing here are skipped
        hybrid_weight: Weight of the vector score (0.0 to 1.0)
        weights: Fusion constants

    Returns:
        One HybridResult per distinct memory ID
    """
    graph_ids = list(graph_ids)
    membership = set(graph_ids)
    merged: dict[str, HybridResult] = {}

    for hit in vector_hits:
        in_graph = hit.id in membership
        merged[hit.id] = _result_from_payload(
            hit.payload,
            vector_score=hit.score,
            graph_score=weights.graph_overlap_score if in_graph else 0.0,
            provenance=Provenance.BOTH if in_graph else Provenance.VECTOR,
            hybrid_weight=hybrid_weight,
            weights=weights,
        )

    for memory_id in graph_ids:
        if memory_id in merged:
            continue
        payload = graph_payloads.get(memory_id)
        if payload is None:
            continue
        merged[memory_id] = _result_from_payload(
            payload,
            vector_score=0.0,
            graph_score=weights.graph_only_score,
            provenance=Provenance.GRAPH,
            hybrid_weight=hybrid_weight,
            weights=weights,
        )

    return list(merged.values())


def rank_results(results: list[HybridResult], limit: int) -> list[HybridResult]:
    """Sort by combined score (descending, stable) and keep the top ``limit``."""
    ranked = sorted(results, key=lambda r: r.combined_score, reverse=True)
    return ranked[:limit]


def parse_entity_id(entity_id: str) -> Optional[EntitySummary]:
    """Derive a display summary from an entity ID like ``person_john_smith``.

    Returns:
        EntitySummary with a title-cased name, or None if the ID has no name part
    """
    parts = entity_id.split("_")
    if len(parts) < 2:
        return None
    name = " ".join(parts[1:])
    formatted = _WORD_START.sub(lambda m: m.group(0).upper(), name)
    return EntitySummary(id=entity_id, type=parts[0], name=formatted)


class HybridSearch:
    """Runs vector search and graph lookup and fuses the results.

    Collaborator failures during graph lookup, graph-only fetches and
    enrichment are absorbed: the search logs a warning and continues with
    what it has. Only the primary vector search propagates errors.

    Args:
        vector_store: Vector-store collaborator
        graph_store: Graph-store collaborator
        weights: Fusion constants (default: 0.5 / 0.7 / 0.1)
    """

    def __init__(
        self,
        vector_store: "VectorStore",
        graph_store: "GraphStore",
        weights: FusionWeights = DEFAULT_WEIGHTS,
    ):
        self._vector_store = vector_store
        self._graph_store = graph_store
        self._weights = weights

    def search(
        self,
        query_vector: list[float],
        query_text: str,
        entity_names: list[str],
        options: Optional[SearchOptions] = None,
    ) -> list[HybridResult]:
        """Search both stores and return fused, ranked results.

        Args:
            query_vector: Embedding of the query
            query_text: The query text
            entity_names: Entity names extracted from the query
            options: Search options (defaults apply when omitted)

        Returns:
            Up to ``options.limit`` results, highest combined score first
        """
        options = options or SearchOptions()

        vector_hits = self._vector_store.search(
            query_vector,
            options.limit * 2,
            options.min_score,
            category=options.category,
            language=options.language,
        )

        graph_ids: list[str] = []
        if options.include_graph and entity_names:
            membership = self._graph_store.find_related_memories(entity_names)
            if membership.success:
                graph_ids = sorted(membership.memory_ids)
            else:
                logger.warning(f"Graph lookup failed, using vector results only: {membership.error}")

        vector_ids = {hit.id for hit in vector_hits}
        graph_payloads: dict[str, MemoryPayload] = {}
        for memory_id in graph_ids:
            if memory_id in vector_ids:
                continue
            fetched = self._vector_store.get_by_id(memory_id)
            if fetched.found:
                graph_payloads[memory_id] = fetched.payload  # type: ignore[assignment]
            elif not fetched.success:
                logger.warning(f"Skipping graph match {memory_id}: {fetched.error}")

        merged = merge_results(
            vector_hits,
            graph_ids,
            graph_payloads,
            hybrid_weight=options.hybrid_weight,
            weights=self._weights,
        )

        logger.debug(
            f"Hybrid search for '{query_text[:50]}': {len(vector_hits)} vector, "
            f"{len(graph_ids)} graph, {len(merged)} merged"
        )

        return rank_results(merged, options.limit)

    def enrich_with_entities(self, results: list[HybridResult]) -> list[HybridResult]:
        """Attach entity summaries from each memory's stored entity IDs.

        Results whose record cannot be fetched, or that have no linked
        entities, are returned unchanged.
        """
        enriched: list[HybridResult] = []

        for result in results:
            fetched = self._vector_store.get_by_id(result.memory_id)
            if not fetched.found:
                if not fetched.success:
                    logger.warning(f"Enrichment skipped for {result.memory_id}: {fetched.error}")
                enriched.append(result)
                continue

            entity_ids = fetched.payload.entity_ids  # type: ignore[union-attr]
            if not entity_ids:
                enriched.append(result)
                continue

            summaries = [
                summary
                for summary in (parse_entity_id(eid) for eid in entity_ids)
                if summary is not None
            ]
            enriched.append(replace(result, entities=summaries))

        return enriched


def format_search_results(results: list[HybridResult]) -> str:
    """Render results as numbered lines for display."""
    if not results:
        return NO_RESULTS_MESSAGE

    blocks = []
    for index, result in enumerate(results, start=1):
        line = (
            f"{index}. [{result.category.value}] {result.text} "
            f"({result.combined_score * 100:.0f}%)"
        )
        if result.entities:
            names = ", ".join(entity.name for entity in result.entities)
            line += f"\n   Linked: {names}"
        blocks.append(line)

    return "\n\n".join(blocks)


def sanitize_search_results(results: list[HybridResult]) -> list[dict[str, Any]]:
    """Convert results to JSON-serializable dicts."""
    return [
        {
            "id": result.memory_id,
            "text": result.text,
            "category": result.category.value,
            "importance": result.importance,
            "score": result.combined_score,
            "source": result.provenance.value,
            "entities": (
                [{"name": entity.name, "type": entity.type} for entity in result.entities]
                if result.entities is not None
                else None
            ),
        }
        for result in results
    ]
