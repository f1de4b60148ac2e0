"""Entity and relation extraction for mnemograph."""

from mnemograph.extraction.extractor import (
    EntityExtractor,
    extract_entities,
    extract_entity_names,
    extract_relations,
)
from mnemograph.extraction.inference import infer_implicit_relations
from mnemograph.extraction.morphology import MorphologyProvider, RussianMorphology

__all__ = [
    "EntityExtractor",
    "MorphologyProvider",
    "RussianMorphology",
    "extract_entities",
    "extract_entity_names",
    "extract_relations",
    "infer_implicit_relations",
]
