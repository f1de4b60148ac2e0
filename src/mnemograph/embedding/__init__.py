"""Embedding layer for mnemograph."""

from mnemograph.embedding.ollama import QUERY_PREFIX, EmbeddingError, OllamaEmbedder

__all__ = ["EmbeddingError", "OllamaEmbedder", "QUERY_PREFIX"]
