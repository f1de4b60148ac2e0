"""Core data types for the memory distillation engine.

This module defines the data structures shared by capture, extraction,
inference and fusion:
- Language, MemoryCategory, EntityType, RelationType, Provenance: enums
- MemorySpan / CaptureDecision: output of the capture decision engine
- EntityCandidate / RelationCandidate: output of the extractor
- MemoryPayload / VectorHit: records exchanged with the vector store
- HybridResult / EntitySummary: query-time fused results
- StoreResult, RecallResult, ForgetResult, SyncResult: results of memory operations
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

# Scalar values allowed in entity/relation property bags
PropertyValue = Union[str, int, float, bool]


class Language(Enum):
    """Languages the capture and extraction rules are written for."""
    EN = "en"
    RU = "ru"
    CS = "cs"


class MemoryCategory(Enum):
    """Semantic category of a captured memory.

    - PREFERENCE: likes, dislikes, wants
    - FACT: general statements
    - DECISION: agreed or chosen courses of action
    - ENTITY: personal, contact, organization or location info
    - OTHER: nothing more specific matched
    """
    PREFERENCE = "preference"
    FACT = "fact"
    DECISION = "decision"
    ENTITY = "entity"
    OTHER = "other"


class EntityType(Enum):
    """Types of real-world entities the extractor recognizes."""
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    CONCEPT = "concept"


class RelationType(Enum):
    """Types of directed edges between entities."""
    KNOWS = "knows"
    WORKS_AT = "works_at"
    BELONGS_TO = "belongs_to"
    RELATED_TO = "related_to"
    LIVES_IN = "lives_in"
    USES = "uses"
    MANAGES = "manages"
    STUDIES_AT = "studies_at"
    INTERESTED_IN = "interested_in"


class Provenance(Enum):
    """Which retrieval source(s) produced a hybrid result."""
    VECTOR = "vector"
    GRAPH = "graph"
    BOTH = "both"


def _check_unit_range(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")


_WHITESPACE = re.compile(r"\s+")


def entity_id(entity_type: EntityType, name: str) -> str:
    """Build the deterministic graph identifier for an entity.

    Format is ``{type}_{lowercased name with whitespace runs as underscores}``,
    e.g. ``person_john_smith``.

    Args:
        entity_type: Type of the entity
        name: Canonical entity name

    Returns:
        Entity identifier string
    """
    return f"{entity_type.value}_{_WHITESPACE.sub('_', name.strip().lower())}"


@dataclass(frozen=True)
class MemorySpan:
    """A classified unit of candidate text.

    Attributes:
        text: The raw text
        language: Detected language
        category: Detected memory category
        importance: Importance score from 0.0 to 1.0
    """
    text: str
    language: Language
    category: MemoryCategory
    importance: float

    def __post_init__(self) -> None:
        _check_unit_range("Importance", self.importance)


@dataclass(frozen=True)
class CaptureDecision:
    """Result of classifying a piece of text for storage.

    Attributes:
        accept: Whether the text should be stored as a memory
        language: Detected language
        category: Detected memory category
        importance: Importance score from 0.0 to 1.0
    """
    accept: bool
    language: Language
    category: MemoryCategory
    importance: float

    def to_span(self, text: str) -> MemorySpan:
        """Freeze the classification of ``text`` into a MemorySpan."""
        return MemorySpan(
            text=text,
            language=self.language,
            category=self.category,
            importance=self.importance,
        )


@dataclass
class EntityCandidate:
    """A real-world entity detected in text.

    Identity within one extraction pass is ``(type, lowercased name)``.

    Attributes:
        type: Entity type
        name: Canonical name (normalized casing/morphology when possible)
        properties: Scalar property bag (phone, email, role, category, ...)
        confidence: Confidence score from 0.0 to 1.0
    """
    type: EntityType
    name: str
    properties: dict[str, PropertyValue] = field(default_factory=dict)
    confidence: float = 0.5

    def __post_init__(self) -> None:
        _check_unit_range("Confidence", self.confidence)

    @property
    def key(self) -> tuple[EntityType, str]:
        """Deduplication key."""
        return (self.type, self.name.lower())

    @property
    def id(self) -> str:
        """Deterministic graph identifier."""
        return entity_id(self.type, self.name)


@dataclass
class RelationCandidate:
    """A directed, typed edge between two entities named by type + name.

    Attributes:
        source_type: Type of the source entity
        source_name: Name of the source entity
        target_type: Type of the target entity
        target_name: Name of the target entity
        relation_type: Edge type
        properties: Scalar property bag (``inferred`` marks implicit edges)
        confidence: Confidence score from 0.0 to 1.0
    """
    source_type: EntityType
    source_name: str
    target_type: EntityType
    target_name: str
    relation_type: RelationType
    properties: dict[str, PropertyValue] = field(default_factory=dict)
    confidence: float = 0.5

    def __post_init__(self) -> None:
        _check_unit_range("Confidence", self.confidence)

    @property
    def key(self) -> tuple[str, RelationType, str]:
        """Deduplication key: (source name, relation type, target name)."""
        return (self.source_name.lower(), self.relation_type, self.target_name.lower())

    @property
    def pair_key(self) -> frozenset[str]:
        """Unordered pair of lowercased endpoint names."""
        return frozenset((self.source_name.lower(), self.target_name.lower()))

    @property
    def inferred(self) -> bool:
        return bool(self.properties.get("inferred", False))

    @property
    def source_id(self) -> str:
        return entity_id(self.source_type, self.source_name)

    @property
    def target_id(self) -> str:
        return entity_id(self.target_type, self.target_name)


@dataclass
class MemoryPayload:
    """A stored memory record as held by the vector store.

    Attributes:
        id: Memory identifier (owned by the storage collaborators)
        text: Memory text
        category: Memory category
        importance: Importance score from 0.0 to 1.0
        language: Language of the text
        created_at: Creation timestamp in milliseconds since the epoch
        entity_ids: Identifiers of entities linked to this memory
    """
    id: str
    text: str
    category: MemoryCategory = MemoryCategory.OTHER
    importance: float = 0.5
    language: Language = Language.EN
    created_at: int = 0
    entity_ids: list[str] = field(default_factory=list)


@dataclass
class VectorHit:
    """One similarity search result.

    Attributes:
        payload: The matched memory record
        score: Similarity score from 0.0 to 1.0
    """
    payload: MemoryPayload
    score: float

    @property
    def id(self) -> str:
        return self.payload.id


@dataclass(frozen=True)
class EntitySummary:
    """Display summary of an entity attached to a search result."""
    id: str
    type: str
    name: str


@dataclass
class HybridResult:
    """A fused query result.

    Attributes:
        memory_id: Memory identifier
        text: Memory text
        category: Memory category
        importance: Stored importance score
        language: Stored language
        created_at: Stored creation timestamp
        vector_score: Similarity score (0 if not a vector hit)
        graph_score: Graph membership score (0 if not a graph hit)
        combined_score: Weighted fusion score used for ranking
        provenance: Which source(s) produced the result
        entities: Optional entity summaries attached by enrichment
    """
    memory_id: str
    text: str
    category: MemoryCategory
    importance: float
    language: Language = Language.EN
    created_at: int = 0
    vector_score: float = 0.0
    graph_score: float = 0.0
    combined_score: float = 0.0
    provenance: Provenance = Provenance.VECTOR
    entities: Optional[list[EntitySummary]] = None


@dataclass
class GraphEntity:
    """An entity vertex as stored by the graph store."""
    id: str
    type: EntityType
    name: str
    properties: dict[str, PropertyValue] = field(default_factory=dict)


@dataclass
class RelatedEntity:
    """An entity reached while exploring the graph.

    Attributes:
        entity: The related entity
        relation: Edge type that connects it
        direction: 'out' if the explored entity is the source, 'in' otherwise
        hops: Distance from the explored entity
    """
    entity: GraphEntity
    relation: str
    direction: str
    hops: int = 1


@dataclass
class GraphExploration:
    """Result of exploring the neighbourhood of one entity."""
    entity: GraphEntity
    related: list[RelatedEntity] = field(default_factory=list)
    memories: list[str] = field(default_factory=list)


@dataclass
class StoreResult:
    """Result of a memory store operation.

    Attributes:
        success: Whether the operation succeeded
        id: ID of the stored (or already existing) memory
        action: 'created', 'duplicate' or 'rejected'
        category: Category the memory was stored under
        importance: Importance the memory was stored with
        entities: Names of entities linked to the memory
        error: Error message (if failed)
    """
    success: bool
    id: Optional[str] = None
    action: Optional[str] = None
    category: Optional[MemoryCategory] = None
    importance: Optional[float] = None
    entities: list[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class RecallResult:
    """Result of a memory recall operation."""
    results: list[HybridResult] = field(default_factory=list)
    total: int = 0
    error: Optional[str] = None


@dataclass
class ForgetResult:
    """Result of a memory forget operation.

    Attributes:
        success: Whether the operation completed
        action: 'deleted', 'candidates' or 'not_found'
        deleted_id: ID of the deleted memory (if any)
        candidates: Candidate memories when the query was ambiguous
        error: Error message (if failed)
    """
    success: bool
    action: Optional[str] = None
    deleted_id: Optional[str] = None
    candidates: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class SyncResult:
    """Result of rebuilding graph links for stored memories.

    Attributes:
        success: Whether the sync completed
        total: Number of memories examined
        synced: Number of memories linked to at least one entity
        error: Error message (if failed)
    """
    success: bool
    total: int = 0
    synced: int = 0
    error: Optional[str] = None
