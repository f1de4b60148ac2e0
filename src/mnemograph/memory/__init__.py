"""Memory module for mnemograph.

This module provides the core data types shared by capture, extraction,
search and storage. The high-level flows live in ``memory.operations``.
"""

from mnemograph.memory.types import (
    CaptureDecision,
    EntityCandidate,
    EntitySummary,
    EntityType,
    ForgetResult,
    GraphEntity,
    GraphExploration,
    HybridResult,
    Language,
    MemoryCategory,
    MemoryPayload,
    MemorySpan,
    Provenance,
    RecallResult,
    RelatedEntity,
    RelationCandidate,
    RelationType,
    StoreResult,
    SyncResult,
    VectorHit,
    entity_id,
)

__all__ = [
    "CaptureDecision",
    "EntityCandidate",
    "EntitySummary",
    "EntityType",
    "ForgetResult",
    "GraphEntity",
    "GraphExploration",
    "HybridResult",
    "Language",
    "MemoryCategory",
    "MemoryPayload",
    "MemorySpan",
    "Provenance",
    "RecallResult",
    "RelatedEntity",
    "RelationCandidate",
    "RelationType",
    "StoreResult",
    "SyncResult",
    "VectorHit",
    "entity_id",
]
