"""Mnemograph - hybrid vector + knowledge-graph memory for conversations.

This package distills conversational text into long-term memory: it decides
whether text is worth remembering, classifies it, extracts the people,
organizations, places and concepts it mentions, and ranks stored memories
against a query by fusing vector similarity with graph relationships.

Main components:
- capture: capture decision, language, category and importance
- extraction: entity/relation extraction and implicit relation inference
- search.fusion: hybrid score fusion
- storage.hybrid: coordinated ChromaDB + SQLite storage
- memory.operations: store, recall, forget, graph, capture, context, sync flows
- config: Pydantic Settings for configuration management

Usage:
    from mnemograph.memory.operations import memory_recall, memory_store
    from mnemograph.storage.hybrid import HybridStore

    async with await HybridStore.create() as store:
        await memory_store(store, "Anna works at Google")
        result = await memory_recall(store, "Where does Anna work?")
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
