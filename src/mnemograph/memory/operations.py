"""Memory operations for mnemograph.

This module provides the high-level flows built on a HybridStore:
- memory_store: classify, extract entities/relations and store one memory
- memory_recall: hybrid vector + graph search with entity enrichment
- memory_forget: delete by ID, or by query when a single match is certain
- memory_graph: explore an entity's neighbourhood in the knowledge graph
- capture_messages: automatic capture from a finished conversation
- recall_context: automatic recall block for an incoming prompt
- memory_sync: re-extract entities and rebuild graph links for all memories
"""

import logging
from typing import Any, Iterable, Optional

from mnemograph.capture.engine import detect_category, detect_language, extract_message_texts
from mnemograph.capture.triggers import RECALL_CLOSE_TAG, RECALL_OPEN_TAG
from mnemograph.extraction.inference import infer_implicit_relations
from mnemograph.memory.types import (
    EntityCandidate,
    ForgetResult,
    GraphExploration,
    HybridResult,
    MemoryCategory,
    RecallResult,
    RelationCandidate,
    StoreResult,
    SyncResult,
)
from mnemograph.search.fusion import SearchOptions
from mnemograph.storage.hybrid import HybridStore

logger = logging.getLogger(__name__)

# Query-based forget: candidates above FORGET_MIN_SCORE are listed, and a
# lone candidate above FORGET_CERTAIN_SCORE is deleted outright.
FORGET_SEARCH_LIMIT = 5
FORGET_MIN_SCORE = 0.7
FORGET_CERTAIN_SCORE = 0.9

CONTEXT_LIMIT = 3
MIN_PROMPT_LENGTH = 5
CONTEXT_HEADER = "The following memories may be relevant to this conversation:"


def _extract_graph(
    store: HybridStore,
    text: str,
) -> tuple[list[EntityCandidate], list[RelationCandidate]]:
    """Entities plus explicit and inferred relations of one text."""
    entities = store.extractor.extract_entities(text)
    relations = store.extractor.extract_relations(text)
    relations = relations + infer_implicit_relations(entities, relations)
    return entities, relations


async def _store_text(
    store: HybridStore,
    text: str,
    importance: Optional[float] = None,
    category: Optional[MemoryCategory] = None,
) -> StoreResult:
    vector = await store.embed(text)

    duplicate = await store.find_duplicate(vector)
    if duplicate is not None:
        logger.debug(f"Skipping near-duplicate of {duplicate.id} ({duplicate.score:.3f})")
        return StoreResult(
            success=True,
            id=duplicate.id,
            action="duplicate",
            category=duplicate.payload.category,
            importance=duplicate.payload.importance,
        )

    detected_category = category or detect_category(text)
    detected_importance = importance if importance is not None else store.capture.importance(text)

    entities, relations = _extract_graph(store, text)
    entity_ids: list[str] = []
    if entities and store.settings.graph_enrichment:
        entity_ids = await store.store_graph(entities, relations)

    memory_id = await store.add_memory(
        text=text,
        vector=vector,
        category=detected_category,
        importance=detected_importance,
        language=detect_language(text),
        entity_ids=entity_ids,
    )

    return StoreResult(
        success=True,
        id=memory_id,
        action="created",
        category=detected_category,
        importance=detected_importance,
        entities=[entity.name for entity in entities],
    )


async def memory_store(
    store: HybridStore,
    text: str,
    importance: Optional[float] = None,
    category: Optional[MemoryCategory] = None,
) -> StoreResult:
    """Store a memory with entity extraction and graph linking.

    Handles the complete storage workflow:
    1. Embed the text and skip it if a near-duplicate exists
    2. Detect category and importance unless given
    3. Extract entities, explicit relations and inferred relations
    4. Write entities and relations to the graph (when graph enrichment is on)
    5. Write the vector record and link it to its entities

    Args:
        store: HybridStore instance for storage operations
        text: Information to remember
        importance: Importance from 0.0 to 1.0 (default: calculated)
        category: Memory category (default: detected)

    Returns:
        StoreResult with action 'created' or 'duplicate', or an error message

    Example:
        >>> store = await HybridStore.create(ephemeral=True)
        >>> result = await memory_store(store, "My name is Anna and I work at Google")
        >>> result.entities
        ['Anna', 'Google']
    """
    if not text or not text.strip():
        return StoreResult(success=False, action="rejected", error="Text cannot be empty")

    if importance is not None and not 0.0 <= importance <= 1.0:
        return StoreResult(
            success=False,
            action="rejected",
            error=f"Importance must be between 0.0 and 1.0, got {importance}",
        )

    try:
        return await _store_text(store, text.strip(), importance=importance, category=category)
    except Exception as e:
        logger.warning(f"Failed to store memory: {e}")
        return StoreResult(success=False, error=f"Failed to store memory: {e}")


async def memory_recall(
    store: HybridStore,
    query: str,
    limit: Optional[int] = None,
    include_graph: bool = True,
) -> RecallResult:
    """Search memories by meaning and by the entities the query names.

    Args:
        store: HybridStore instance for storage operations
        query: Search query
        limit: Maximum number of results (default: settings.recall_limit)
        include_graph: Also use graph membership of query entities

    Returns:
        RecallResult with ranked results, or an error message
    """
    if not query or not query.strip():
        return RecallResult(error="Query cannot be empty")

    settings = store.settings
    try:
        options = SearchOptions(
            limit=limit or settings.recall_limit,
            min_score=settings.min_score,
            hybrid_weight=settings.hybrid_weight,
            include_graph=include_graph and settings.graph_enrichment,
        )
        vector = await store.embed(query, is_query=True)
        entity_names = store.extractor.extract_entity_names(query)

        results = await store.search(vector, query, entity_names, options)
        if results and settings.graph_enrichment:
            results = await store.enrich(results)

        return RecallResult(results=results, total=len(results))

    except Exception as e:
        logger.warning(f"Recall failed: {e}")
        return RecallResult(error=f"Recall failed: {e}")


async def memory_forget(
    store: HybridStore,
    memory_id: Optional[str] = None,
    query: Optional[str] = None,
) -> ForgetResult:
    """Delete a memory by ID or by semantic search.

    Supports two modes:
    1. Direct ID deletion: the vector record and all graph links are removed
    2. Query deletion: a single match above 0.9 similarity is deleted;
       otherwise the matches above 0.7 are returned as candidates

    Args:
        store: HybridStore instance for storage operations
        memory_id: Specific memory ID to delete
        query: Search query to find the memory to delete

    Returns:
        ForgetResult with action 'deleted', 'candidates' or 'not_found'
    """
    if memory_id is None and query is None:
        return ForgetResult(
            success=False,
            error="Must provide either memory_id or query for deletion",
        )

    if memory_id is not None and query is not None:
        return ForgetResult(
            success=False,
            error="Cannot provide both memory_id and query - use one mode at a time",
        )

    try:
        if memory_id is not None:
            if not await store.delete_memory(memory_id):
                return ForgetResult(
                    success=False,
                    action="not_found",
                    error=f"Memory '{memory_id}' not found",
                )
            return ForgetResult(success=True, action="deleted", deleted_id=memory_id)

        assert query is not None
        vector = await store.embed(query, is_query=True)
        hits = await store.search_vectors(vector, limit=FORGET_SEARCH_LIMIT, min_score=FORGET_MIN_SCORE)

        if not hits:
            return ForgetResult(success=True, action="not_found")

        if len(hits) == 1 and hits[0].score > FORGET_CERTAIN_SCORE:
            await store.delete_memory(hits[0].id)
            return ForgetResult(success=True, action="deleted", deleted_id=hits[0].id)

        return ForgetResult(
            success=True,
            action="candidates",
            candidates=[
                {
                    "id": hit.id,
                    "text": hit.payload.text,
                    "category": hit.payload.category.value,
                    "score": hit.score,
                }
                for hit in hits
            ],
        )

    except Exception as e:
        logger.warning(f"Failed to forget memory: {e}")
        return ForgetResult(success=False, error=f"Failed to delete memory: {e}")


async def memory_graph(
    store: HybridStore,
    entity: str,
    max_hops: int = 2,
) -> Optional[GraphExploration]:
    """Explore the knowledge graph around an entity.

    Returns:
        The exploration, or None if the entity is unknown
    """
    if not entity or not entity.strip():
        return None
    return await store.explore_entity(entity.strip(), max_hops=max_hops)


def format_exploration(exploration: Optional[GraphExploration], entity: str = "") -> str:
    """Render an exploration as text."""
    if exploration is None:
        return f'Entity "{entity}" not found in knowledge graph.'

    lines = [f"Entity: {exploration.entity.name} ({exploration.entity.type.value})", ""]
    if exploration.related:
        lines.append("Relationships:")
        for related in exploration.related:
            arrow = "->" if related.direction == "out" else "<-"
            lines.append(f"  {arrow} [{related.relation}] {related.entity.name}")
    else:
        lines.append("No relationships found.")

    lines.append("")
    if exploration.memories:
        lines.append(f"Linked memories: {len(exploration.memories)}")
    else:
        lines.append("No linked memories.")

    return "\n".join(lines)


async def capture_messages(
    store: HybridStore,
    messages: Iterable[Any],
) -> list[StoreResult]:
    """Capture memorable texts from a finished conversation.

    Texts of user and assistant messages that pass the capture decision are
    stored, at most ``max_captures_per_conversation`` of them. Near-duplicates
    of stored memories are skipped.

    Returns:
        One StoreResult per attempted text
    """
    settings = store.settings
    if not settings.auto_capture:
        return []

    texts = extract_message_texts(messages)
    capturable = [text for text in texts if store.capture.should_capture(text)]
    logger.debug(f"{len(capturable)}/{len(texts)} texts passed the capture decision")

    results: list[StoreResult] = []
    for text in capturable[: settings.max_captures_per_conversation]:
        try:
            results.append(await _store_text(store, text))
        except Exception as e:
            logger.warning(f"Auto-capture failed: {e}")
            results.append(StoreResult(success=False, error=f"Auto-capture failed: {e}"))

    stored = sum(1 for result in results if result.action == "created")
    if stored:
        logger.info(f"Auto-captured {stored} memories")

    return results


def format_context(results: list[HybridResult]) -> str:
    """Wrap results in the recall delimiter block injected before a prompt."""
    lines = []
    for result in results:
        line = f"- [{result.category.value}] {result.text}"
        if result.entities:
            line += f" (linked: {', '.join(entity.name for entity in result.entities)})"
        lines.append(line)

    return "\n".join([RECALL_OPEN_TAG, CONTEXT_HEADER, *lines, RECALL_CLOSE_TAG])


async def recall_context(store: HybridStore, prompt: str) -> Optional[str]:
    """Build the relevant-memories block for an incoming prompt.

    Returns:
        The context block, or None when recall is disabled, the prompt is
        too short, nothing relevant is stored, or recall fails
    """
    settings = store.settings
    if not settings.auto_recall or not prompt or len(prompt) < MIN_PROMPT_LENGTH:
        return None

    try:
        vector = await store.embed(prompt, is_query=True)
        entity_names = store.extractor.extract_entity_names(prompt)
        options = SearchOptions(
            limit=CONTEXT_LIMIT,
            min_score=settings.min_score,
            hybrid_weight=settings.hybrid_weight,
            include_graph=settings.graph_enrichment,
        )
        results = await store.search(vector, prompt, entity_names, options)
        if not results:
            return None

        if settings.graph_enrichment:
            results = await store.enrich(results)

    except Exception as e:
        logger.warning(f"Recall failed: {e}")
        return None

    logger.info(f"Injecting {len(results)} memories into context")
    return format_context(results)


async def memory_sync(store: HybridStore) -> SyncResult:
    """Re-extract entities for every stored memory and rebuild its graph links.

    Returns:
        SyncResult with the number of memories examined and linked
    """
    try:
        memory_ids = store.list_memory_ids()
        synced = 0

        for memory_id in memory_ids:
            payload = await store.get_memory(memory_id)
            if payload is None:
                continue

            entities, relations = _extract_graph(store, payload.text)
            if not entities:
                continue

            entity_ids = await store.store_graph(entities, relations)
            if await store.update_memory_entities(memory_id, entity_ids):
                synced += 1

        logger.info(f"Synced {synced} of {len(memory_ids)} memories with entities")
        return SyncResult(success=True, total=len(memory_ids), synced=synced)

    except Exception as e:
        logger.warning(f"Sync failed: {e}")
        return SyncResult(success=False, error=f"Sync failed: {e}")


def memory_stats(store: HybridStore) -> dict[str, Any]:
    """Memory count and graph statistics."""
    return store.get_stats()
