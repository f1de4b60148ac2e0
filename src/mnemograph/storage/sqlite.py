"""SQLite storage layer for the entity graph.

This module provides the graph-store collaborator for mnemograph with:
- Entities (people, organizations, locations, concepts) with JSON properties
- Typed, directed relations between entities
- Links between stored memories and the entities they mention
- Breadth-first exploration of an entity's neighbourhood

Entity IDs are deterministic (``person_john_smith``), so storing the same
entity twice updates one row.
"""

import json
import logging
import sqlite3
import time
from collections import deque
from pathlib import Path
from typing import Any, Optional

from mnemograph.memory.types import (
    EntityCandidate,
    EntityType,
    GraphEntity,
    GraphExploration,
    RelatedEntity,
    RelationCandidate,
    entity_id,
)
from mnemograph.storage.base import MembershipResult

logger = logging.getLogger(__name__)


class GraphStoreError(Exception):
    """Custom exception for graph storage errors."""

    pass


class SQLiteGraphStore:
    """SQLite storage layer for entities, relations and memory links.

    Args:
        db_path: Path to SQLite database file.
                 Defaults to ~/.mnemograph/graph.db
        ephemeral: If True, use in-memory storage for testing (default: False)

    Attributes:
        db_path: Path to database file (None if ephemeral)
        ephemeral: Whether using ephemeral storage
        _conn: SQLite connection instance
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        ephemeral: bool = False,
    ):
        """Initialize SQLiteGraphStore with persistent or ephemeral storage.

        Raises:
            GraphStoreError: If database initialization fails
        """
        self.ephemeral = ephemeral

        if ephemeral:
            self.db_path = None
        else:
            self.db_path = db_path or Path.home() / ".mnemograph" / "graph.db"

        try:
            if ephemeral:
                self._conn = sqlite3.connect(":memory:", check_same_thread=False)
            else:
                if self.db_path is not None:
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)

            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._init_schema()

        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to initialize SQLite storage: {e}") from e

    def _init_schema(self) -> None:
        cursor = self._conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS entities (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                name TEXT NOT NULL,
                name_lower TEXT NOT NULL,
                properties TEXT,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_entities_name ON entities(name_lower)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_entities_type ON entities(type)")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS relations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_id TEXT NOT NULL,
                target_id TEXT NOT NULL,
                relation_type TEXT NOT NULL,
                properties TEXT,
                confidence REAL NOT NULL DEFAULT 0.5,
                created_at REAL NOT NULL,
                FOREIGN KEY (source_id) REFERENCES entities(id) ON DELETE CASCADE,
                FOREIGN KEY (target_id) REFERENCES entities(id) ON DELETE CASCADE,
                UNIQUE(source_id, target_id, relation_type)
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_relations_source ON relations(source_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_relations_target ON relations(target_id)")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS memory_links (
                memory_id TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (memory_id, entity_id),
                FOREIGN KEY (entity_id) REFERENCES entities(id) ON DELETE CASCADE
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_memory_links_entity ON memory_links(entity_id)")

        self._conn.commit()

    @staticmethod
    def _row_to_entity(row: sqlite3.Row) -> GraphEntity:
        return GraphEntity(
            id=row["id"],
            type=EntityType(row["type"]),
            name=row["name"],
            properties=json.loads(row["properties"]) if row["properties"] else {},
        )

    # =========================================================================
    # Entities
    # =========================================================================

    def _upsert_entity(
        self,
        cursor: sqlite3.Cursor,
        entity_type: EntityType,
        name: str,
        properties: dict[str, Any],
        now: float,
    ) -> str:
        eid = entity_id(entity_type, name)
        cursor.execute("SELECT properties FROM entities WHERE id = ?", (eid,))
        row = cursor.fetchone()

        if row is None:
            cursor.execute(
                """
                INSERT INTO entities (id, type, name, name_lower, properties, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (eid, entity_type.value, name, name.lower(), json.dumps(properties), now, now),
            )
        elif properties:
            merged = json.loads(row["properties"]) if row["properties"] else {}
            merged.update(properties)
            cursor.execute(
                "UPDATE entities SET properties = ?, updated_at = ? WHERE id = ?",
                (json.dumps(merged), now, eid),
            )

        return eid

    def ensure_entities(self, entities: list[EntityCandidate]) -> list[str]:
        """Create or update entities.

        Properties of an existing entity are merged with the new ones, new
        values winning.

        Args:
            entities: Entities to store

        Returns:
            Entity IDs, in input order

        Raises:
            GraphStoreError: If the write fails
        """
        if not entities:
            return []

        try:
            cursor = self._conn.cursor()
            now = time.time()
            ids = [
                self._upsert_entity(cursor, e.type, e.name, dict(e.properties), now)
                for e in entities
            ]
            self._conn.commit()
            return ids

        except sqlite3.Error as e:
            self._conn.rollback()
            raise GraphStoreError(f"Failed to store entities: {e}") from e

    def get_entity(self, eid: str) -> Optional[GraphEntity]:
        try:
            cursor = self._conn.cursor()
            cursor.execute("SELECT * FROM entities WHERE id = ?", (eid,))
            row = cursor.fetchone()
            return self._row_to_entity(row) if row else None

        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to get entity: {e}") from e

    def find_entity(self, name: str) -> Optional[GraphEntity]:
        """Find an entity by case-insensitive name (oldest first if ambiguous)."""
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                "SELECT * FROM entities WHERE name_lower = ? ORDER BY created_at, rowid LIMIT 1",
                (name.strip().lower(),),
            )
            row = cursor.fetchone()
            return self._row_to_entity(row) if row else None

        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to find entity: {e}") from e

    # =========================================================================
    # Relations
    # =========================================================================

    def create_relation(self, relation: RelationCandidate) -> bool:
        """Store a relation, creating missing endpoint entities.

        Returns:
            True if the relation was created, False if it already existed

        Raises:
            GraphStoreError: If the write fails
        """
        try:
            cursor = self._conn.cursor()
            now = time.time()
            source_id = self._upsert_entity(cursor, relation.source_type, relation.source_name, {}, now)
            target_id = self._upsert_entity(cursor, relation.target_type, relation.target_name, {}, now)

            cursor.execute(
                """
                INSERT OR IGNORE INTO relations
                    (source_id, target_id, relation_type, properties, confidence, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    source_id,
                    target_id,
                    relation.relation_type.value,
                    json.dumps(relation.properties),
                    relation.confidence,
                    now,
                ),
            )
            created = cursor.rowcount > 0
            self._conn.commit()
            return created

        except sqlite3.Error as e:
            self._conn.rollback()
            raise GraphStoreError(f"Failed to create relation: {e}") from e

    def get_relations(self, eid: str) -> list[dict[str, Any]]:
        """Relations touching an entity, in either direction."""
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                """
                SELECT source_id, target_id, relation_type, properties, confidence
                FROM relations WHERE source_id = ? OR target_id = ?
                ORDER BY id
                """,
                (eid, eid),
            )
            return [
                {
                    "source_id": row["source_id"],
                    "target_id": row["target_id"],
                    "relation_type": row["relation_type"],
                    "properties": json.loads(row["properties"]) if row["properties"] else {},
                    "confidence": row["confidence"],
                }
                for row in cursor.fetchall()
            ]

        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to get relations: {e}") from e

    # =========================================================================
    # Memory links
    # =========================================================================

    def link_memory(self, memory_id: str, entity_ids: list[str]) -> int:
        """Link a memory to existing entities.

        Returns:
            Number of new links

        Raises:
            GraphStoreError: If the write fails
        """
        if not entity_ids:
            return 0

        try:
            cursor = self._conn.cursor()
            now = time.time()
            linked = 0
            for eid in entity_ids:
                cursor.execute(
                    """
                    INSERT OR IGNORE INTO memory_links (memory_id, entity_id, created_at)
                    SELECT ?, id, ? FROM entities WHERE id = ?
                    """,
                    (memory_id, now, eid),
                )
                linked += cursor.rowcount
            self._conn.commit()
            return linked

        except sqlite3.Error as e:
            self._conn.rollback()
            raise GraphStoreError(f"Failed to link memory: {e}") from e

    def unlink_memory(self, memory_id: str) -> int:
        """Remove all links of a memory.

        Returns:
            Number of links removed
        """
        try:
            cursor = self._conn.cursor()
            cursor.execute("DELETE FROM memory_links WHERE memory_id = ?", (memory_id,))
            removed = cursor.rowcount
            self._conn.commit()
            return removed

        except sqlite3.Error as e:
            self._conn.rollback()
            raise GraphStoreError(f"Failed to unlink memory: {e}") from e

    def memory_entities(self, memory_id: str) -> list[str]:
        """IDs of the entities linked to a memory."""
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                "SELECT entity_id FROM memory_links WHERE memory_id = ? ORDER BY entity_id",
                (memory_id,),
            )
            return [row["entity_id"] for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to get memory entities: {e}") from e

    def find_related_memories(self, entity_names: list[str]) -> MembershipResult:
        """IDs of memories linked to any entity with one of the given names.

        Names match case-insensitively across all entity types. Never
        raises: a failed lookup is reported with ``success=False``.
        """
        names = sorted({name.strip().lower() for name in entity_names if name.strip()})
        if not names:
            return MembershipResult(success=True)

        placeholders = ",".join("?" for _ in names)
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                f"""
                SELECT DISTINCT ml.memory_id
                FROM memory_links ml
                JOIN entities e ON e.id = ml.entity_id
                WHERE e.name_lower IN ({placeholders})
                """,
                names,
            )
            return MembershipResult(
                success=True,
                memory_ids={row["memory_id"] for row in cursor.fetchall()},
            )

        except sqlite3.Error as e:
            logger.warning(f"Graph membership lookup failed: {e}")
            return MembershipResult(success=False, error=str(e))

    # =========================================================================
    # Exploration
    # =========================================================================

    def explore_entity(self, name: str, max_hops: int = 2) -> Optional[GraphExploration]:
        """Explore the neighbourhood of an entity breadth-first.

        Args:
            name: Entity name (case-insensitive)
            max_hops: Maximum relation depth (minimum 1)

        Returns:
            The entity, entities reachable within ``max_hops`` (each reported
            once, at its shortest distance) and the IDs of memories linked to
            the entity; None if no entity has that name
        """
        root = self.find_entity(name)
        if root is None:
            return None

        max_hops = max(1, max_hops)
        visited = {root.id}
        related: list[RelatedEntity] = []
        queue: deque[tuple[str, int]] = deque([(root.id, 0)])

        while queue:
            current, depth = queue.popleft()
            if depth >= max_hops:
                continue

            for relation in self.get_relations(current):
                outgoing = relation["source_id"] == current
                neighbour_id = relation["target_id"] if outgoing else relation["source_id"]
                if neighbour_id in visited:
                    continue
                neighbour = self.get_entity(neighbour_id)
                if neighbour is None:
                    continue

                visited.add(neighbour_id)
                related.append(
                    RelatedEntity(
                        entity=neighbour,
                        relation=relation["relation_type"],
                        direction="out" if outgoing else "in",
                        hops=depth + 1,
                    )
                )
                queue.append((neighbour_id, depth + 1))

        try:
            cursor = self._conn.cursor()
            cursor.execute(
                "SELECT memory_id FROM memory_links WHERE entity_id = ? ORDER BY created_at, memory_id",
                (root.id,),
            )
            memories = [row["memory_id"] for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to get linked memories: {e}") from e

        return GraphExploration(entity=root, related=related, memories=memories)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def stats(self) -> dict[str, Any]:
        """Counts of entities (total and per type), relations and memory links."""
        try:
            cursor = self._conn.cursor()
            cursor.execute("SELECT type, COUNT(*) AS cnt FROM entities GROUP BY type")
            by_type = {row["type"]: row["cnt"] for row in cursor.fetchall()}

            cursor.execute("SELECT COUNT(*) FROM relations")
            relations = int(cursor.fetchone()[0])

            cursor.execute("SELECT COUNT(DISTINCT memory_id) FROM memory_links")
            memories = int(cursor.fetchone()[0])

            return {
                "entities": sum(by_type.values()),
                "entities_by_type": by_type,
                "relations": relations,
                "linked_memories": memories,
            }

        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to get stats: {e}") from e

    def clear(self) -> int:
        """Delete all data.

        Returns:
            Number of entities deleted
        """
        try:
            cursor = self._conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM entities")
            result = cursor.fetchone()
            count = int(result[0]) if result else 0

            cursor.execute("DELETE FROM memory_links")
            cursor.execute("DELETE FROM relations")
            cursor.execute("DELETE FROM entities")

            self._conn.commit()
            return count

        except sqlite3.Error as e:
            self._conn.rollback()
            raise GraphStoreError(f"Failed to clear database: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()

    def __enter__(self) -> "SQLiteGraphStore":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
