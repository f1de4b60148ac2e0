"""Tests for memory operations over an ephemeral HybridStore.

Embeddings come from FakeEmbedder: known texts map to fixed vectors and any
other text gets its own orthogonal direction, so similarity between stored
memories is predictable (1.0 for the same text, 0.5 for unrelated ones).
"""

import uuid
from unittest.mock import AsyncMock

import pytest

from mnemograph.capture.triggers import RECALL_CLOSE_TAG, RECALL_OPEN_TAG
from mnemograph.config import MnemographSettings
from mnemograph.embedding.ollama import EmbeddingError
from mnemograph.memory.operations import (
    CONTEXT_HEADER,
    capture_messages,
    format_context,
    format_exploration,
    memory_forget,
    memory_graph,
    memory_recall,
    memory_stats,
    memory_store,
    memory_sync,
    recall_context,
)
from mnemograph.memory.types import (
    EntitySummary,
    EntityType,
    GraphEntity,
    GraphExploration,
    HybridResult,
    Language,
    MemoryCategory,
    Provenance,
    RelatedEntity,
)
from mnemograph.storage.chromadb import ChromaVectorStore
from mnemograph.storage.hybrid import HybridStore
from mnemograph.storage.sqlite import SQLiteGraphStore

DIM = 8

ANNA = "Anna works at Google"
COFFEE = "I prefer dark roast coffee every morning"
POSTGRES = "We decided to use PostgreSQL for the project"


def one_hot(index: int) -> list[float]:
    vector = [0.0] * DIM
    vector[index] = 1.0
    return vector


class FakeEmbedder:
    """Deterministic embedder keyed by text."""

    def __init__(self, documents=None, queries=None):
        self.documents = {ANNA: one_hot(0), COFFEE: one_hot(1), POSTGRES: one_hot(2)}
        self.documents.update(documents or {})
        self.queries = dict(queries or {})
        self._next = 3

    async def embed(self, text, is_query=False):
        if is_query and text in self.queries:
            return self.queries[text]
        if text not in self.documents:
            self.documents[text] = one_hot(self._next)
            self._next += 1
        return self.documents[text]


def unique_collection_name() -> str:
    """Generate a unique collection name for test isolation."""
    return f"test_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_store():
    """Factory for HybridStores over ephemeral stores."""
    created = []

    def factory(queries=None, **overrides):
        settings = MnemographSettings(
            collection_name=unique_collection_name(),
            morphology_enabled=False,
            **overrides,
        )
        store = HybridStore(
            vector_store=ChromaVectorStore(ephemeral=True, collection_name=settings.collection_name),
            graph_store=SQLiteGraphStore(ephemeral=True),
            embedder=FakeEmbedder(queries=queries),
            settings=settings,
        )
        created.append(store)
        return store

    yield factory

    for store in created:
        store._graph.close()


class TestMemoryStore:
    """Tests for memory_store."""

    @pytest.mark.asyncio
    async def test_store_created(self, make_store):
        store = make_store()

        result = await memory_store(store, ANNA)

        assert result.success is True
        assert result.action == "created"
        assert result.category == MemoryCategory.ENTITY
        assert result.importance == pytest.approx(0.55)
        assert result.entities == ["Google"]

        payload = await store.get_memory(result.id)
        assert payload.text == ANNA
        assert payload.language == Language.EN
        assert payload.entity_ids == ["organization_google"]
        assert store._graph.memory_entities(result.id) == ["organization_google"]

    @pytest.mark.asyncio
    async def test_relations_written(self, make_store):
        store = make_store()

        await memory_store(store, ANNA)

        relations = store._graph.get_relations("organization_google")
        assert [(r["source_id"], r["relation_type"]) for r in relations] == [
            ("person_anna", "works_at")
        ]

    @pytest.mark.asyncio
    async def test_duplicate(self, make_store):
        store = make_store()
        first = await memory_store(store, ANNA)

        second = await memory_store(store, f"  {ANNA}  ")

        assert second.success is True
        assert second.action == "duplicate"
        assert second.id == first.id
        assert second.category == MemoryCategory.ENTITY
        assert store.count_memories() == 1

    @pytest.mark.asyncio
    async def test_explicit_category_and_importance(self, make_store):
        store = make_store()

        result = await memory_store(store, COFFEE, importance=0.9, category=MemoryCategory.FACT)

        assert result.category == MemoryCategory.FACT
        assert result.importance == 0.9
        payload = await store.get_memory(result.id)
        assert payload.importance == 0.9

    @pytest.mark.asyncio
    async def test_detected_category(self, make_store):
        store = make_store()
        assert (await memory_store(store, COFFEE)).category == MemoryCategory.PREFERENCE
        assert (await memory_store(store, POSTGRES)).category == MemoryCategory.DECISION

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_text_rejected(self, make_store, text):
        result = await memory_store(make_store(), text)
        assert result.success is False
        assert result.action == "rejected"
        assert result.error == "Text cannot be empty"

    @pytest.mark.asyncio
    async def test_importance_out_of_range(self, make_store):
        result = await memory_store(make_store(), ANNA, importance=1.5)
        assert result.success is False
        assert result.action == "rejected"
        assert "Importance" in result.error

    @pytest.mark.asyncio
    async def test_graph_enrichment_disabled(self, make_store):
        store = make_store(graph_enrichment=False)

        result = await memory_store(store, ANNA)

        assert result.entities == ["Google"]
        assert (await store.get_memory(result.id)).entity_ids == []
        assert store._graph.stats()["entities"] == 0

    @pytest.mark.asyncio
    async def test_embedding_failure(self, make_store):
        store = make_store()
        store._embedder = AsyncMock()
        store._embedder.embed.side_effect = EmbeddingError("Ollama is down")

        result = await memory_store(store, ANNA)

        assert result.success is False
        assert result.error.startswith("Failed to store memory")
        assert "Ollama is down" in result.error


class TestMemoryRecall:
    """Tests for memory_recall."""

    @pytest.mark.asyncio
    async def test_vector_ranked_and_enriched(self, make_store):
        store = make_store(queries={"Where does Anna work?": one_hot(0)})
        for text in (ANNA, COFFEE, POSTGRES):
            await memory_store(store, text)

        recall = await memory_recall(store, "Where does Anna work?")

        assert recall.error is None
        assert recall.total == 3
        top = recall.results[0]
        assert top.text == ANNA
        assert top.vector_score == pytest.approx(1.0, abs=1e-3)
        assert top.entities == [
            EntitySummary(id="organization_google", type="organization", name="Google")
        ]

    @pytest.mark.asyncio
    async def test_limit(self, make_store):
        store = make_store(queries={"Where does Anna work?": one_hot(0)})
        for text in (ANNA, COFFEE, POSTGRES):
            await memory_store(store, text)

        recall = await memory_recall(store, "Where does Anna work?", limit=1)

        assert recall.total == 1
        assert recall.results[0].text == ANNA

    @pytest.mark.asyncio
    async def test_graph_only_match(self, make_store):
        """A memory linked to a query entity is found without vector similarity."""
        opposite = [-1.0] + [0.0] * (DIM - 1)
        store = make_store(queries={ANNA: opposite})
        stored = await memory_store(store, ANNA)

        recall = await memory_recall(store, ANNA)

        assert [r.memory_id for r in recall.results] == [stored.id]
        result = recall.results[0]
        assert result.provenance == Provenance.GRAPH
        assert result.vector_score == 0.0
        assert result.combined_score == pytest.approx(0.7 * 0.3 + 0.55 * 0.1)

    @pytest.mark.asyncio
    async def test_graph_only_skipped_without_graph(self, make_store):
        opposite = [-1.0] + [0.0] * (DIM - 1)
        store = make_store(queries={ANNA: opposite})
        await memory_store(store, ANNA)

        recall = await memory_recall(store, ANNA, include_graph=False)

        assert recall.results == []
        assert recall.total == 0

    @pytest.mark.asyncio
    async def test_empty_query(self, make_store):
        recall = await memory_recall(make_store(), "  ")
        assert recall.error == "Query cannot be empty"
        assert recall.results == []


class TestMemoryForget:
    """Tests for memory_forget."""

    @pytest.mark.asyncio
    async def test_requires_one_mode(self, make_store):
        store = make_store()

        neither = await memory_forget(store)
        both = await memory_forget(store, memory_id="m1", query="Anna")

        assert neither.success is False
        assert "either memory_id or query" in neither.error
        assert both.success is False
        assert "both" in both.error

    @pytest.mark.asyncio
    async def test_forget_by_id(self, make_store):
        store = make_store()
        stored = await memory_store(store, ANNA)

        result = await memory_forget(store, memory_id=stored.id)

        assert result.success is True
        assert result.action == "deleted"
        assert result.deleted_id == stored.id
        assert await store.get_memory(stored.id) is None
        assert store._graph.memory_entities(stored.id) == []

    @pytest.mark.asyncio
    async def test_forget_by_id_not_found(self, make_store):
        result = await memory_forget(make_store(), memory_id="nope")
        assert result.success is False
        assert result.action == "not_found"
        assert result.error == "Memory 'nope' not found"

    @pytest.mark.asyncio
    async def test_forget_by_query_certain(self, make_store):
        store = make_store(queries={"Anna at Google": one_hot(0)})
        anna = await memory_store(store, ANNA)
        await memory_store(store, COFFEE)

        result = await memory_forget(store, query="Anna at Google")

        assert result.action == "deleted"
        assert result.deleted_id == anna.id
        assert store.count_memories() == 1

    @pytest.mark.asyncio
    async def test_forget_by_query_candidates(self, make_store):
        both = [0.0, 1.0, 1.0] + [0.0] * (DIM - 3)
        store = make_store(queries={"coffee or postgres": both})
        for text in (ANNA, COFFEE, POSTGRES):
            await memory_store(store, text)

        result = await memory_forget(store, query="coffee or postgres")

        assert result.success is True
        assert result.action == "candidates"
        assert sorted(c["text"] for c in result.candidates) == [COFFEE, POSTGRES]
        assert {c["category"] for c in result.candidates} == {"preference", "decision"}
        assert store.count_memories() == 3

    @pytest.mark.asyncio
    async def test_forget_by_query_not_found(self, make_store):
        store = make_store(queries={"nothing like it": [-1.0] + [0.0] * (DIM - 1)})
        await memory_store(store, ANNA)

        result = await memory_forget(store, query="nothing like it")

        assert result.success is True
        assert result.action == "not_found"
        assert store.count_memories() == 1


class TestMemoryGraph:
    """Tests for graph exploration and its rendering."""

    @pytest.mark.asyncio
    async def test_explore_entity(self, make_store):
        store = make_store()
        stored = await memory_store(store, ANNA)

        exploration = await memory_graph(store, "google")

        assert exploration.entity.name == "Google"
        assert [(r.entity.name, r.direction) for r in exploration.related] == [("Anna", "in")]
        assert exploration.memories == [stored.id]
        assert format_exploration(exploration) == (
            "Entity: Google (organization)\n"
            "\n"
            "Relationships:\n"
            "  <- [works_at] Anna\n"
            "\n"
            "Linked memories: 1"
        )

    @pytest.mark.asyncio
    async def test_unknown_entity(self, make_store):
        store = make_store()
        assert await memory_graph(store, "Nobody") is None
        assert await memory_graph(store, " ") is None
        assert format_exploration(None, "Nobody") == 'Entity "Nobody" not found in knowledge graph.'

    def test_format_without_relations(self):
        exploration = GraphExploration(
            entity=GraphEntity(id="person_anna", type=EntityType.PERSON, name="Anna")
        )
        assert format_exploration(exploration) == (
            "Entity: Anna (person)\n\nNo relationships found.\n\nNo linked memories."
        )

    def test_format_outgoing(self):
        exploration = GraphExploration(
            entity=GraphEntity(id="person_anna", type=EntityType.PERSON, name="Anna"),
            related=[
                RelatedEntity(
                    entity=GraphEntity(id="location_berlin", type=EntityType.LOCATION, name="Berlin"),
                    relation="lives_in",
                    direction="out",
                )
            ],
            memories=["m1", "m2"],
        )
        text = format_exploration(exploration)
        assert "  -> [lives_in] Berlin" in text
        assert text.endswith("Linked memories: 2")


class TestCaptureMessages:
    """Tests for automatic capture."""

    MESSAGES = [
        {"role": "system", "content": "Remember that you are a helpful assistant"},
        {"role": "user", "content": "Remember that I prefer dark roast coffee"},
        {"role": "assistant", "content": "ok thanks"},
        {"role": "user", "content": [{"type": "text", "text": "We decided to use PostgreSQL for billing"}]},
        {"role": "user", "content": "My email is anna@example.com"},
        {"role": "user", "content": "I love hiking in the mountains"},
    ]

    @pytest.mark.asyncio
    async def test_captures_up_to_limit(self, make_store):
        store = make_store()

        results = await capture_messages(store, self.MESSAGES)

        assert [r.action for r in results] == ["created", "created", "created"]
        texts = sorted(
            [(await store.get_memory(memory_id)).text for memory_id in store.list_memory_ids()]
        )
        assert texts == [
            "My email is anna@example.com",
            "Remember that I prefer dark roast coffee",
            "We decided to use PostgreSQL for billing",
        ]

    @pytest.mark.asyncio
    async def test_custom_limit(self, make_store):
        store = make_store(max_captures_per_conversation=1)
        results = await capture_messages(store, self.MESSAGES)
        assert len(results) == 1
        assert store.count_memories() == 1

    @pytest.mark.asyncio
    async def test_duplicates_skipped(self, make_store):
        store = make_store()
        message = {"role": "user", "content": "Remember that I prefer dark roast coffee"}

        results = await capture_messages(store, [message, message])

        assert [r.action for r in results] == ["created", "duplicate"]
        assert store.count_memories() == 1

    @pytest.mark.asyncio
    async def test_disabled(self, make_store):
        store = make_store(auto_capture=False)
        assert await capture_messages(store, self.MESSAGES) == []
        assert store.count_memories() == 0

    @pytest.mark.asyncio
    async def test_failure_reported_per_text(self, make_store):
        store = make_store()
        store._embedder = AsyncMock()
        store._embedder.embed.side_effect = EmbeddingError("Ollama is down")

        results = await capture_messages(store, self.MESSAGES[:2])

        assert len(results) == 1
        assert results[0].success is False
        assert "Ollama is down" in results[0].error


class TestRecallContext:
    """Tests for automatic recall."""

    @pytest.mark.asyncio
    async def test_context_block(self, make_store):
        store = make_store(queries={"Where does Anna work now?": one_hot(0)})
        await memory_store(store, ANNA)

        context = await recall_context(store, "Where does Anna work now?")

        assert context == "\n".join([
            RECALL_OPEN_TAG,
            CONTEXT_HEADER,
            "- [entity] Anna works at Google (linked: Google)",
            RECALL_CLOSE_TAG,
        ])

    @pytest.mark.asyncio
    async def test_short_prompt(self, make_store):
        store = make_store()
        await memory_store(store, ANNA)
        assert await recall_context(store, "hi") is None

    @pytest.mark.asyncio
    async def test_nothing_stored(self, make_store):
        assert await recall_context(make_store(), "Where does Anna work now?") is None

    @pytest.mark.asyncio
    async def test_disabled(self, make_store):
        store = make_store(auto_recall=False)
        await memory_store(store, ANNA)
        assert await recall_context(store, "Where does Anna work now?") is None

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, make_store):
        store = make_store()
        store._embedder = AsyncMock()
        store._embedder.embed.side_effect = EmbeddingError("Ollama is down")
        assert await recall_context(store, "Where does Anna work now?") is None

    def test_format_context_without_entities(self):
        results = [
            HybridResult(
                memory_id="m1",
                text="I prefer tea",
                category=MemoryCategory.PREFERENCE,
                importance=0.5,
            )
        ]
        assert format_context(results) == "\n".join([
            RECALL_OPEN_TAG,
            CONTEXT_HEADER,
            "- [preference] I prefer tea",
            RECALL_CLOSE_TAG,
        ])


class TestMemorySync:
    """Tests for rebuilding graph links."""

    @pytest.mark.asyncio
    async def test_sync_links_existing_memories(self, make_store):
        store = make_store()
        memory_id = await store.add_memory(
            text=ANNA,
            vector=one_hot(0),
            category=MemoryCategory.ENTITY,
            importance=0.5,
            language=Language.EN,
        )
        await store.add_memory(
            text="nothing to see here",
            vector=one_hot(5),
            category=MemoryCategory.OTHER,
            importance=0.5,
            language=Language.EN,
        )

        result = await memory_sync(store)

        assert result.success is True
        assert result.total == 2
        assert result.synced == 1
        assert (await store.get_memory(memory_id)).entity_ids == ["organization_google"]
        assert store._graph.memory_entities(memory_id) == ["organization_google"]

    @pytest.mark.asyncio
    async def test_sync_empty(self, make_store):
        result = await memory_sync(make_store())
        assert result.success is True
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_stats(self, make_store):
        store = make_store()
        await memory_store(store, ANNA)

        stats = memory_stats(store)

        assert stats["memories"] == 1
        assert stats["graph"]["entities"] == 2
        assert stats["graph"]["relations"] == 1
