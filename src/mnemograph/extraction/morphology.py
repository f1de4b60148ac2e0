"""Morphological analysis for Russian words.

Wraps the pymorphy3 analyzer (OpenCorpora dictionaries) behind a small
capability object used by the extractor for:
- Normalizing words to their base/nominative form (Дмитрия -> Дмитрий)
- Detecting proper names (Name, Surn, Patr grammemes)
- Detecting geographical and organization names (Geox, Orgn)
- POS-based filtering of capitalized verbs/adjectives mistaken for names

The analyzer is loaded once through ``ensure_ready()``. Until it is ready,
every lookup answers as if the word were unknown, so callers fall back to
plain regex behaviour.
"""

import asyncio
import logging
import re
from typing import Any, Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

PERSON_NAME_GRAMMEMES = frozenset({"Name", "Surn", "Patr"})
GEO_NAME_GRAMMEME = "Geox"
ORG_NAME_GRAMMEME = "Orgn"

# Parts of speech that never start a person name
FALSE_POSITIVE_POS = frozenset({
    "VERB",
    "INFN",
    "GRND",
    "PRTF",
    "PRTS",
    "ADJF",
    "ADJS",
    "ADVB",
    "PREP",
    "CONJ",
    "PRCL",
    "INTJ",
    "PRED",
    "NPRO",
})

_CYRILLIC = re.compile(r"[А-Яа-яЁё]")


@runtime_checkable
class MorphologyProvider(Protocol):
    """Capability interface consumed by the extractor.

    All lookups are synchronous and side-effect free once the provider is
    ready; a provider that is not ready answers every predicate with False
    and returns words unchanged from ``normalize``.
    """

    def is_ready(self) -> bool: ...

    def covers(self, word: str) -> bool: ...

    def normalize(self, word: str) -> str: ...

    def is_proper_name(self, word: str) -> bool: ...

    def is_geo_name(self, word: str) -> bool: ...

    def is_org_name(self, word: str) -> bool: ...

    def is_false_positive_name(self, word: str) -> bool: ...


def _load_pymorphy() -> Any:
    import pymorphy3

    return pymorphy3.MorphAnalyzer()


class RussianMorphology:
    """Russian morphology provider backed by pymorphy3.

    Args:
        analyzer_factory: Zero-argument callable building the analyzer.
            Defaults to ``pymorphy3.MorphAnalyzer``; tests inject fakes.

    Example:
        >>> morph = RussianMorphology()
        >>> await morph.ensure_ready()
        True
        >>> morph.normalize("Москве")
        'москва'
    """

    def __init__(self, analyzer_factory: Optional[Callable[[], Any]] = None):
        self._analyzer_factory = analyzer_factory or _load_pymorphy
        self._analyzer: Optional[Any] = None
        self._init_task: Optional[asyncio.Task] = None

    async def ensure_ready(self) -> bool:
        """Load the dictionaries once.

        Concurrent callers share the single in-flight load. A failed load is
        remembered and not retried; the provider then stays uninitialized.

        Returns:
            True if the provider is ready
        """
        if self._analyzer is not None:
            return True
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        return await asyncio.shield(self._init_task)

    async def _initialize(self) -> bool:
        try:
            analyzer = await asyncio.to_thread(self._analyzer_factory)
        except Exception as e:
            logger.warning(f"Morphology unavailable, using regex-only extraction: {e}")
            return False

        self._analyzer = analyzer
        logger.info("Morphology analyzer initialized")
        return True

    def is_ready(self) -> bool:
        return self._analyzer is not None

    def covers(self, word: str) -> bool:
        """Whether the word contains Cyrillic script this provider handles."""
        return bool(_CYRILLIC.search(word))

    def _parse(self, word: str) -> list[Any]:
        if self._analyzer is None:
            return []
        return list(self._analyzer.parse(word))

    def normalize(self, word: str) -> str:
        """Base (nominative) form of ``word``, or the word itself if unknown.

        The analyzer returns base forms in lower case; callers restore casing.
        """
        parses = self._parse(word)
        if not parses:
            return word
        return parses[0].normal_form or word

    def part_of_speech(self, word: str) -> Optional[str]:
        """POS tag of the most likely parse (NOUN, VERB, ADJF, ...)."""
        parses = self._parse(word)
        if not parses:
            return None
        return parses[0].tag.POS

    def is_proper_name(self, word: str) -> bool:
        """Whether any parse tags the word as a first name, surname or patronymic."""
        return any(PERSON_NAME_GRAMMEMES & parse.tag.grammemes for parse in self._parse(word))

    def is_geo_name(self, word: str) -> bool:
        return any(GEO_NAME_GRAMMEME in parse.tag.grammemes for parse in self._parse(word))

    def is_org_name(self, word: str) -> bool:
        return any(ORG_NAME_GRAMMEME in parse.tag.grammemes for parse in self._parse(word))

    def is_false_positive_name(self, word: str) -> bool:
        """Whether a capitalized word is likely not a name.

        True when the most likely parse is a verb, participle, adjective,
        adverb, preposition, conjunction, particle, interjection, predicate
        or pronoun, unless that parse is itself tagged as a proper or
        geographical name.
        """
        parses = self._parse(word)
        if not parses:
            return False

        tag = parses[0].tag
        if (PERSON_NAME_GRAMMEMES | {GEO_NAME_GRAMMEME}) & tag.grammemes:
            return False

        return tag.POS in FALSE_POSITIVE_POS
