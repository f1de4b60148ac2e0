"""Implicit relation inference from entity co-occurrence.

Entities mentioned together in one text are likely related even when no
explicit pattern connects them. For every person paired with an
organization, location or concept, a low-confidence ``related_to`` edge is
inferred, unless an explicit relation already connects the pair in either
direction. Person-person pairs are never inferred.
"""

from mnemograph.memory.types import (
    EntityCandidate,
    EntityType,
    RelationCandidate,
    RelationType,
)

INFERRED_CONFIDENCE = 0.4

INFERRED_TARGET_TYPES = (
    EntityType.ORGANIZATION,
    EntityType.LOCATION,
    EntityType.CONCEPT,
)


def infer_implicit_relations(
    entities: list[EntityCandidate],
    explicit_relations: list[RelationCandidate],
) -> list[RelationCandidate]:
    """Infer ``related_to`` edges for co-occurring, unconnected entities.

    Args:
        entities: Entities extracted from one text
        explicit_relations: Relations explicitly extracted from the same text

    Returns:
        New inferred relations; ``explicit_relations`` is not modified
    """
    connected = {relation.pair_key for relation in explicit_relations}
    persons = [e for e in entities if e.type is EntityType.PERSON]

    inferred: list[RelationCandidate] = []
    for person in persons:
        for target_type in INFERRED_TARGET_TYPES:
            for target in (e for e in entities if e.type is target_type):
                pair = frozenset((person.name.lower(), target.name.lower()))
                if pair in connected:
                    continue
                inferred.append(
                    RelationCandidate(
                        source_type=EntityType.PERSON,
                        source_name=person.name,
                        target_type=target_type,
                        target_name=target.name,
                        relation_type=RelationType.RELATED_TO,
                        properties={"inferred": True},
                        confidence=INFERRED_CONFIDENCE,
                    )
                )

    return inferred
