"""Configuration settings for mnemograph.

This module provides Pydantic Settings for configuration management with:
- Environment variable support (MNEMOGRAPH_ prefix)
- Type validation and defaults
- Helpers converting settings into engine parameters
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mnemograph.memory.types import Language
from mnemograph.search.fusion import FusionWeights

DEFAULT_LANGUAGES = ["en", "ru"]


class MnemographSettings(BaseSettings):
    """Configuration settings for the memory engine.

    Settings are loaded from environment variables with the MNEMOGRAPH_ prefix.

    Example:
        >>> settings = MnemographSettings()
        >>> settings.hybrid_weight
        0.7

        >>> # Override via environment
        >>> # MNEMOGRAPH_HYBRID_WEIGHT=0.5
        >>> settings = MnemographSettings()
        >>> settings.hybrid_weight
        0.5
    """

    model_config = SettingsConfigDict(
        env_prefix="MNEMOGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Capture
    languages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_LANGUAGES),
        description="Languages whose trigger rules are enabled (en, ru, cs)",
    )
    capture_min_length: int = Field(
        default=10,
        ge=0,
        description="Texts shorter than this are never captured",
    )
    capture_max_length: int = Field(
        default=2000,
        ge=1,
        description="Texts longer than this are never captured",
    )
    max_emoji: int = Field(
        default=3,
        ge=0,
        description="Texts with more emoji than this are never captured",
    )
    max_captures_per_conversation: int = Field(
        default=3,
        ge=0,
        description="Maximum number of memories auto-captured from one conversation",
    )
    auto_capture: bool = Field(default=True, description="Enable automatic capture")
    auto_recall: bool = Field(default=True, description="Enable automatic recall")

    # Fusion
    hybrid_weight: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Weight of the vector score against the graph score",
    )
    graph_overlap_score: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Graph score of a vector hit that is also a graph hit",
    )
    graph_only_score: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Graph score of a graph hit missed by vector search",
    )
    importance_weight: float = Field(
        default=0.1,
        ge=0.0,
        description="Multiplier of the stored importance added to the combined score",
    )
    recall_limit: int = Field(default=5, ge=1, description="Default number of results")
    min_score: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum vector similarity for search results",
    )
    duplicate_threshold: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Similarity above which a new memory is treated as a duplicate",
    )
    graph_enrichment: bool = Field(
        default=True,
        description="Write entities to the graph and enrich results with them",
    )

    morphology_enabled: bool = Field(
        default=True,
        description="Use Russian morphology (pymorphy3) when it is installed",
    )

    # Embedding
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL",
    )
    ollama_model: str = Field(
        default="mxbai-embed-large",
        description="Embedding model name",
    )
    embed_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Embedding request timeout in seconds",
    )

    # Storage
    sqlite_path: Optional[Path] = Field(
        default=None,
        description="Path to the graph database (default: ~/.mnemograph/graph.db)",
    )
    chroma_path: Optional[Path] = Field(
        default=None,
        description="Path to ChromaDB storage (default: ~/.mnemograph/chroma_db)",
    )
    collection_name: str = Field(default="memories", description="ChromaDB collection name")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @field_validator("languages", mode="before")
    @classmethod
    def _parse_languages(cls, value: object) -> list[str]:
        """Keep only supported language codes, falling back to the defaults."""
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",")]
        if not isinstance(value, (list, tuple)):
            return list(DEFAULT_LANGUAGES)
        supported = {language.value for language in Language}
        valid = [lang for lang in value if lang in supported]
        return valid or list(DEFAULT_LANGUAGES)

    def get_languages(self) -> list[Language]:
        """Enabled languages as enum members."""
        return [Language(lang) for lang in self.languages]

    def get_fusion_weights(self) -> FusionWeights:
        """Collect the fusion constants into a FusionWeights."""
        return FusionWeights(
            graph_overlap_score=self.graph_overlap_score,
            graph_only_score=self.graph_only_score,
            importance_weight=self.importance_weight,
        )

    def get_sqlite_path(self) -> Optional[Path]:
        """Get the SQLite path, resolving to default if not set."""
        if self.sqlite_path:
            return self.sqlite_path.expanduser().resolve()
        return None

    def get_chroma_path(self) -> Optional[Path]:
        """Get the ChromaDB path, resolving to default if not set."""
        if self.chroma_path:
            return self.chroma_path.expanduser().resolve()
        return None
