"""Entity and relation extraction from free text.

Scans text with the per-type rule tables from ``extraction.patterns``:
- Persons, organizations, locations and concepts, every match of every rule
- Contact info (phone, email) and role attached to the first person found
- A synthetic contact person when contact info appears without any name
- Typed relations between captured spans

When a morphology provider is ready, Russian names are validated by part of
speech and normalized to their base form (у Маши -> Маша, в Москве -> Москва).
Without it, extraction falls back to plain pattern matching.
"""

import logging
import re
from typing import Iterable, Optional

from mnemograph.extraction.morphology import MorphologyProvider
from mnemograph.extraction.patterns import (
    CONCEPT_LIST_SPLIT,
    CONTACT_PERSON_CONFIDENCE,
    CONTACT_PERSON_NAME,
    EMAIL_PATTERN,
    ENTITY_CONFIDENCE,
    ENTITY_RULES,
    ORGANIZATION_STOP_WORDS,
    PERSON_STOP_WORDS,
    PHONE_PATTERN,
    QUOTE_CHARS,
    RELATION_RULES,
    ROLE_PATTERNS,
    EntityRule,
    RelationRule,
)
from mnemograph.memory.types import (
    EntityCandidate,
    EntityType,
    Language,
    PropertyValue,
    RelationCandidate,
)

logger = logging.getLogger(__name__)

_NON_DIGIT = re.compile(r"\D")
_PLACE_SEPARATOR = re.compile(r"([\s-]+)")
_TRAILING_PUNCTUATION = ".,!?;:"


def _restore_case(original: str, normalized: str) -> str:
    """Capitalize ``normalized`` if ``original`` was capitalized."""
    if normalized and original[:1].isupper():
        return normalized[0].upper() + normalized[1:]
    return normalized


def _phone_digits(raw: str) -> str:
    return _NON_DIGIT.sub("", raw)


def dedupe_entities(entities: Iterable[EntityCandidate]) -> list[EntityCandidate]:
    """Merge entities with the same (type, lowercased name) key.

    The first occurrence is kept; properties of later duplicates are added
    without overwriting existing keys.
    """
    unique: dict[tuple[EntityType, str], EntityCandidate] = {}
    for entity in entities:
        existing = unique.get(entity.key)
        if existing is None:
            unique[entity.key] = entity
            continue
        for name, value in entity.properties.items():
            existing.properties.setdefault(name, value)
    return list(unique.values())


def dedupe_relations(relations: Iterable[RelationCandidate]) -> list[RelationCandidate]:
    """Drop relations whose (source, type, target) key was already seen."""
    unique: dict[tuple, RelationCandidate] = {}
    for relation in relations:
        unique.setdefault(relation.key, relation)
    return list(unique.values())


class EntityExtractor:
    """Extracts entity and relation candidates from text.

    Args:
        morphology: Optional morphology provider. It is only consulted once
            ready, and only for words in the script it covers.

    Example:
        >>> extractor = EntityExtractor()
        >>> [e.name for e in extractor.extract_entities("My name is John Smith")]
        ['John Smith']
    """

    def __init__(self, morphology: Optional[MorphologyProvider] = None):
        self.morphology = morphology

    def _morph_applies(self, word: str) -> bool:
        return (
            self.morphology is not None
            and self.morphology.is_ready()
            and self.morphology.covers(word)
        )

    # =========================================================================
    # Name validation and normalization
    # =========================================================================

    def normalize_person(self, raw: str) -> Optional[str]:
        """Validate a candidate person name and return its canonical form.

        Every word must start with an uppercase letter and the first word
        must not be a stop word ("I am Going home"). With morphology, a
        word whose likely part of speech disqualifies it (verb, adjective,
        preposition, ...) rejects the name unless the word is also tagged as
        a first name, surname or patronymic.

        Returns:
            Normalized name, or None if the candidate is rejected
        """
        name = raw.strip()
        if len(name) < 2 or name.split()[0].lower() in PERSON_STOP_WORDS:
            return None

        parts: list[str] = []
        for word in name.split():
            if not word[0].isupper():
                return None
            if self._morph_applies(word):
                morph = self.morphology
                if morph.is_false_positive_name(word) and not morph.is_proper_name(word):  # type: ignore[union-attr]
                    return None
                word = _restore_case(word, morph.normalize(word))  # type: ignore[union-attr]
            parts.append(word)

        return " ".join(parts)

    def normalize_location(self, raw: str) -> Optional[str]:
        """Validate a candidate location name and return its canonical form.

        Separators (spaces, hyphens) are preserved. With morphology, a name
        with no word tagged as a place name is rejected when its first word
        has a disqualifying part of speech; each word is normalized to its
        base form.
        """
        name = raw.strip()
        if len(name) < 2 or not name[0].isupper():
            return None

        pieces = _PLACE_SEPARATOR.split(name)
        words = pieces[0::2]

        if self._morph_applies(words[0]):
            morph = self.morphology
            has_geo = any(morph.is_geo_name(word) for word in words)  # type: ignore[union-attr]
            if not has_geo and morph.is_false_positive_name(words[0]):  # type: ignore[union-attr]
                return None

        normalized = []
        for index, piece in enumerate(pieces):
            if index % 2 == 0 and piece and self._morph_applies(piece):
                piece = _restore_case(piece, self.morphology.normalize(piece))  # type: ignore[union-attr]
            normalized.append(piece)

        return "".join(normalized)

    def normalize_organization(self, raw: str) -> Optional[str]:
        """Strip quote marks from a candidate organization name.

        Returns:
            Cleaned name, or None if too short or an indefinite article
        """
        name = QUOTE_CHARS.sub("", raw.strip()).strip()
        if len(name) < 2 or name.lower() in ORGANIZATION_STOP_WORDS:
            return None

        # Single inflected word known as an organization: "Яндексе" -> "Яндекс"
        if (
            " " not in name
            and not name.isupper()
            and self._morph_applies(name)
            and self.morphology.is_org_name(name)  # type: ignore[union-attr]
        ):
            name = _restore_case(name, self.morphology.normalize(name))  # type: ignore[union-attr]

        return name

    def split_concepts(self, raw: str, language: Language) -> list[str]:
        """Split one concept capture into list items ("Python и React").

        Only the list conjunction of ``language`` separates items, so the
        Czech "a" never splits English text.
        """
        parts = [
            part.strip().rstrip(_TRAILING_PUNCTUATION)
            for part in CONCEPT_LIST_SPLIT[language].split(raw.strip())
        ]
        return [part for part in parts if len(part) >= 2]

    # =========================================================================
    # Entities
    # =========================================================================

    def _captures(self, rule: EntityRule, text: str) -> list[str]:
        captures: list[str] = []
        for match in rule.pattern.finditer(text):
            raw = match.group(1)
            if not raw:
                continue
            if rule.split is not None:
                captures.extend(part for part in rule.split.split(raw) if part)
            else:
                captures.append(raw)
        return captures

    def _names_for(self, entity_type: EntityType, raw: str, language: Language) -> list[str]:
        if entity_type is EntityType.PERSON:
            name = self.normalize_person(raw)
        elif entity_type is EntityType.ORGANIZATION:
            name = self.normalize_organization(raw)
        elif entity_type is EntityType.LOCATION:
            name = self.normalize_location(raw)
        else:
            return self.split_concepts(raw, language)
        return [name] if name else []

    def _extract_type(self, entity_type: EntityType, text: str) -> list[EntityCandidate]:
        properties: dict[str, PropertyValue] = {}
        if entity_type is EntityType.CONCEPT:
            properties = {"category": "technology"}

        candidates: dict[str, EntityCandidate] = {}
        for rule in ENTITY_RULES[entity_type]:
            for raw in self._captures(rule, text):
                for name in self._names_for(entity_type, raw, rule.language):
                    key = name.lower()
                    if key not in candidates:
                        candidates[key] = EntityCandidate(
                            type=entity_type,
                            name=name,
                            properties=dict(properties),
                            confidence=ENTITY_CONFIDENCE[entity_type],
                        )
        return list(candidates.values())

    @staticmethod
    def contact_info(text: str) -> dict[str, PropertyValue]:
        """First phone (digits only) and email (lowercased) found in ``text``."""
        info: dict[str, PropertyValue] = {}
        phone = PHONE_PATTERN.search(text)
        if phone:
            info["phone"] = _phone_digits(phone.group(1))
        email = EMAIL_PATTERN.search(text)
        if email:
            info["email"] = email.group(1).lower()
        return info

    @staticmethod
    def role(text: str) -> Optional[str]:
        """Role of the speaker from the first matching role pattern."""
        for pattern in ROLE_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None

    def extract_entities(self, text: str) -> list[EntityCandidate]:
        """Extract deduplicated entity candidates from ``text``.

        Args:
            text: Text to analyze

        Returns:
            Persons, organizations, locations and concepts in that order,
            unique by (type, lowercased name)
        """
        persons = self._extract_type(EntityType.PERSON, text)
        contact = self.contact_info(text)

        if persons:
            first = persons[0]
            first.properties.update(contact)
            role = self.role(text)
            if role:
                first.properties["role"] = role

        entities = list(persons)
        for entity_type in (EntityType.ORGANIZATION, EntityType.LOCATION, EntityType.CONCEPT):
            entities.extend(self._extract_type(entity_type, text))

        if not persons and contact:
            email = contact.get("email")
            name = str(email).split("@")[0] if email else CONTACT_PERSON_NAME
            entities.append(
                EntityCandidate(
                    type=EntityType.PERSON,
                    name=name,
                    properties=contact,
                    confidence=CONTACT_PERSON_CONFIDENCE,
                )
            )

        unique = dedupe_entities(entities)
        logger.debug(f"Extracted {len(unique)} entities from {len(text)} chars")
        return unique

    def extract_entity_names(self, text: str) -> list[str]:
        """Names of the entities in ``text``, for graph lookups."""
        return [entity.name for entity in self.extract_entities(text)]

    # =========================================================================
    # Relations
    # =========================================================================

    def _endpoint(self, entity_type: EntityType, raw: str) -> str:
        raw = raw.strip()
        if entity_type is EntityType.PERSON:
            return self.normalize_person(raw) or raw
        if entity_type is EntityType.ORGANIZATION:
            return self.normalize_organization(raw) or QUOTE_CHARS.sub("", raw).strip()
        if entity_type is EntityType.LOCATION:
            return self.normalize_location(raw) or raw
        return raw.rstrip(_TRAILING_PUNCTUATION)

    def _relation_from_match(self, rule: RelationRule, match: re.Match) -> Optional[RelationCandidate]:
        target_raw = match.group(rule.target_group)
        source_raw = rule.fixed_source or match.group(rule.source_group)
        if not source_raw or not target_raw:
            return None

        source = rule.fixed_source or self._endpoint(rule.source_type, source_raw)
        target = self._endpoint(rule.target_type, target_raw)
        if len(source) < 2 and not rule.fixed_source:
            return None
        if len(target) < 2:
            return None
        if rule.source_type is rule.target_type and source.lower() == target.lower():
            return None

        properties: dict[str, PropertyValue] = {}
        relationship = rule.relationship
        if rule.relationship_group is not None:
            relationship = match.group(rule.relationship_group).lower()
        if relationship:
            properties["relationship"] = relationship
        if rule.strength is not None:
            properties["strength"] = rule.strength

        return RelationCandidate(
            source_type=rule.source_type,
            source_name=source,
            target_type=rule.target_type,
            target_name=target,
            relation_type=rule.relation_type,
            properties=properties,
            confidence=rule.confidence,
        )

    def extract_relations(self, text: str) -> list[RelationCandidate]:
        """Extract deduplicated explicit relations from ``text``.

        Returns:
            Relations unique by (source name, type, target name); first match wins
        """
        relations: list[RelationCandidate] = []
        for rule in RELATION_RULES:
            for match in rule.pattern.finditer(text):
                relation = self._relation_from_match(rule, match)
                if relation is not None:
                    relations.append(relation)

        unique = dedupe_relations(relations)
        logger.debug(f"Extracted {len(unique)} relations from {len(text)} chars")
        return unique


_default_extractor = EntityExtractor()


def extract_entities(text: str) -> list[EntityCandidate]:
    """Extract entities without morphology."""
    return _default_extractor.extract_entities(text)


def extract_relations(text: str) -> list[RelationCandidate]:
    """Extract relations without morphology."""
    return _default_extractor.extract_relations(text)


def extract_entity_names(text: str) -> list[str]:
    """Extract entity names without morphology."""
    return _default_extractor.extract_entity_names(text)
