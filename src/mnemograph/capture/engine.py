"""Capture decision engine.

Decides whether a piece of conversational text is worth storing as a
memory, and classifies it:
- detect_language: script sniffing (Cyrillic -> ru, Czech diacritics -> cs, else en)
- should_capture: reject filters followed by per-language trigger rules
- detect_category: ordered category groups (preference > decision > entity > fact)
- calculate_importance: additive importance increments, capped at 1.0

All functions are pure. Rejection is a normal outcome, never an error.
"""

import logging
import re
from typing import TYPE_CHECKING, Any, Iterable, Optional

from mnemograph.capture.triggers import (
    BASE_IMPORTANCE,
    CATEGORY_RULES,
    CODE_FENCE,
    CODE_INDICATORS,
    EMOJI_PATTERN,
    ENTITY_DENSITY_BOOST,
    IMPORTANCE_RULES,
    MAX_CODE_RATIO,
    MAX_ENTITY_DENSITY_BOOST,
    MAX_IMPORTANCE,
    RECALL_OPEN_TAG,
    TRIGGERS_BY_LANGUAGE,
)
from mnemograph.memory.types import CaptureDecision, Language, MemoryCategory

if TYPE_CHECKING:
    from mnemograph.config import MnemographSettings
    from mnemograph.extraction.extractor import EntityExtractor

logger = logging.getLogger(__name__)

DEFAULT_MIN_LENGTH = 10
DEFAULT_MAX_LENGTH = 2000
DEFAULT_MAX_EMOJI = 3

_CYRILLIC = re.compile(r"[\u0400-\u04FF]")
_CZECH = re.compile("[ěščřžýáíéúůďťňó]", re.IGNORECASE)


def detect_language(text: str) -> Language:
    """Detect the language of ``text`` from its script.

    Cyrillic is checked first, then Czech-specific diacritics; anything
    else is English.
    """
    if _CYRILLIC.search(text):
        return Language.RU
    if _CZECH.search(text):
        return Language.CS
    return Language.EN


def _looks_like_code(text: str) -> bool:
    if CODE_FENCE in text:
        return True
    hits = sum(1 for indicator in CODE_INDICATORS if indicator in text)
    return hits / len(CODE_INDICATORS) > MAX_CODE_RATIO


def rejection_reason(
    text: str,
    min_length: int = DEFAULT_MIN_LENGTH,
    max_length: int = DEFAULT_MAX_LENGTH,
    max_emoji: int = DEFAULT_MAX_EMOJI,
) -> Optional[str]:
    """Name of the first reject filter ``text`` trips, or None if it passes."""
    if len(text) < min_length or len(text) > max_length:
        return "length"
    if RECALL_OPEN_TAG in text:
        return "recall_context"
    if text.startswith("<") and "</" in text:
        return "system_tag"
    if "**" in text and "\n-" in text:
        return "markdown_summary"
    if len(EMOJI_PATTERN.findall(text)) > max_emoji:
        return "emoji"
    if _looks_like_code(text):
        return "code"
    return None


def matching_trigger(text: str, languages: Iterable[Language]) -> Optional[str]:
    """Name of the first trigger rule matching ``text`` in the enabled languages."""
    for language in languages:
        for rule in TRIGGERS_BY_LANGUAGE.get(language, ()):
            if rule.matches(text):
                return rule.name
    return None


def should_capture(
    text: str,
    languages: Iterable[Language],
    min_length: int = DEFAULT_MIN_LENGTH,
    max_length: int = DEFAULT_MAX_LENGTH,
    max_emoji: int = DEFAULT_MAX_EMOJI,
) -> bool:
    """Whether ``text`` should be stored as a memory.

    Args:
        text: Candidate text
        languages: Languages whose trigger rules are enabled
        min_length: Minimum text length
        max_length: Maximum text length
        max_emoji: Maximum number of emoji

    Returns:
        True if no reject filter fires and a trigger rule matches
    """
    reason = rejection_reason(text, min_length, max_length, max_emoji)
    if reason is not None:
        logger.debug(f"Capture rejected ({reason}): {text[:50]!r}")
        return False
    return matching_trigger(text, languages) is not None


def detect_category(text: str) -> MemoryCategory:
    """Category of the first matching rule group, or OTHER."""
    lower = text.lower()
    for category, patterns in CATEGORY_RULES:
        if any(pattern.search(lower) for pattern in patterns):
            return category
    return MemoryCategory.OTHER


def calculate_importance(text: str, entity_count: Optional[int] = None) -> float:
    """Importance score of ``text``.

    Starts at 0.5; each matching importance rule adds its boost once, and
    each detected entity adds 0.05 up to 0.15. The result is capped at 1.0.

    Args:
        text: Memory text
        entity_count: Number of entities extracted from the text (optional)

    Returns:
        Importance from 0.5 to 1.0
    """
    boosts = [rule.boost for rule in IMPORTANCE_RULES if rule.matches(text)]
    if entity_count:
        boosts.append(min(entity_count * ENTITY_DENSITY_BOOST, MAX_ENTITY_DENSITY_BOOST))
    return min(BASE_IMPORTANCE + sum(boosts), MAX_IMPORTANCE)


def classify(
    text: str,
    languages: Iterable[Language],
    entity_count: Optional[int] = None,
    min_length: int = DEFAULT_MIN_LENGTH,
    max_length: int = DEFAULT_MAX_LENGTH,
    max_emoji: int = DEFAULT_MAX_EMOJI,
) -> CaptureDecision:
    """Decide whether to store ``text`` and compute its metadata."""
    return CaptureDecision(
        accept=should_capture(text, languages, min_length, max_length, max_emoji),
        language=detect_language(text),
        category=detect_category(text),
        importance=calculate_importance(text, entity_count),
    )


def extract_message_texts(messages: Iterable[Any]) -> list[str]:
    """Collect the text of user and assistant messages.

    Content may be a string or a list of content blocks, of which only
    ``{"type": "text", "text": ...}`` blocks are used.
    """
    texts: list[str] = []

    for message in messages:
        if not isinstance(message, dict):
            continue
        if message.get("role") not in ("user", "assistant"):
            continue

        content = message.get("content")
        if isinstance(content, str):
            texts.append(content)
        elif isinstance(content, list):
            for block in content:
                if (
                    isinstance(block, dict)
                    and block.get("type") == "text"
                    and isinstance(block.get("text"), str)
                ):
                    texts.append(block["text"])

    return texts


class CaptureEngine:
    """Capture decisions bound to settings and an optional extractor.

    When an extractor is given, importance includes the entity density
    boost for the entities it finds.

    Args:
        languages: Enabled languages (default: en, ru)
        min_length: Minimum text length
        max_length: Maximum text length
        max_emoji: Maximum number of emoji
        extractor: Optional EntityExtractor used for entity density

    Example:
        >>> engine = CaptureEngine(languages=[Language.EN])
        >>> engine.classify("Remember that I prefer dark mode").category
        <MemoryCategory.PREFERENCE: 'preference'>
    """

    def __init__(
        self,
        languages: Optional[Iterable[Language]] = None,
        min_length: int = DEFAULT_MIN_LENGTH,
        max_length: int = DEFAULT_MAX_LENGTH,
        max_emoji: int = DEFAULT_MAX_EMOJI,
        extractor: Optional["EntityExtractor"] = None,
    ):
        self.languages = list(languages) if languages is not None else [Language.EN, Language.RU]
        self.min_length = min_length
        self.max_length = max_length
        self.max_emoji = max_emoji
        self.extractor = extractor

    @classmethod
    def from_settings(
        cls,
        settings: "MnemographSettings",
        extractor: Optional["EntityExtractor"] = None,
    ) -> "CaptureEngine":
        return cls(
            languages=settings.get_languages(),
            min_length=settings.capture_min_length,
            max_length=settings.capture_max_length,
            max_emoji=settings.max_emoji,
            extractor=extractor,
        )

    def should_capture(self, text: str) -> bool:
        return should_capture(
            text, self.languages, self.min_length, self.max_length, self.max_emoji
        )

    def importance(self, text: str) -> float:
        entity_count = None
        if self.extractor is not None:
            entity_count = len(self.extractor.extract_entities(text))
        return calculate_importance(text, entity_count)

    def classify(self, text: str) -> CaptureDecision:
        return CaptureDecision(
            accept=self.should_capture(text),
            language=detect_language(text),
            category=detect_category(text),
            importance=self.importance(text),
        )
