"""Rule tables for the capture decision engine.

Every rule set here is plain data iterated by ``capture.engine``:
- TRIGGERS_BY_LANGUAGE: language -> ordered trigger rules (first match accepts)
- CATEGORY_RULES: ordered (category, patterns) groups (first group wins)
- IMPORTANCE_RULES: (name, patterns, boost) additive importance increments
- Reject filter constants: recall delimiter, emoji range, code indicators
"""

import re
from dataclasses import dataclass
from typing import Pattern

from mnemograph.memory.types import Language, MemoryCategory

# Wraps memories injected back into a conversation by recall
RECALL_OPEN_TAG = "<relevant-memories>"
RECALL_CLOSE_TAG = "</relevant-memories>"

EMOJI_PATTERN = re.compile("[\U0001F300-\U0001F9FF]")

CODE_FENCE = "```"
CODE_INDICATORS = (
    CODE_FENCE,
    "const ",
    "function ",
    "=> {",
    "import ",
    "export ",
    "class ",
    "var ",
    "let ",
)
MAX_CODE_RATIO = 0.5

PHONE_OR_EMAIL = re.compile(r"\+\d{10,}|[\w.-]+@[\w.-]+\.\w{2,}")


@dataclass(frozen=True)
class TriggerRule:
    """A named pattern marking memory-worthy content."""
    name: str
    pattern: Pattern[str]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class ImportanceRule:
    """An additive importance increment applied when any pattern matches."""
    name: str
    patterns: tuple[Pattern[str], ...]
    boost: float

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


def _rule(name: str, pattern: str, flags: int = re.IGNORECASE) -> TriggerRule:
    return TriggerRule(name=name, pattern=re.compile(pattern, flags))


TRIGGERS_EN: tuple[TriggerRule, ...] = (
    _rule("explicit_command", r"\b(remember|don't forget|keep in mind|note that)\b"),
    _rule(
        "preference",
        r"\b(i\s+)?(prefer|like|love|hate|want|need|don't\s+want|don't\s+like)\b",
    ),
    _rule("decision", r"\b(decided|will\s+use|chose|agreed|going\s+to\s+use)\b"),
    _rule("personal_info", r"\b(my\s+(name|phone|email|address)\s+(is|are))\b"),
    _rule("personal_info", r"\b(i\s+(am|work|live)\s+(at|in|as))\b"),
    _rule("personal_info", r"\b(call\s+me)\b"),
    _rule("contact_info", r"\+\d{10,}", 0),
    _rule("contact_info", r"[\w.-]+@[\w.-]+\.\w{2,}", 0),
    _rule("importance_marker", r"\b(always|never|important|critical|essential)\b"),
)

TRIGGERS_RU: tuple[TriggerRule, ...] = (
    _rule("explicit_command", r"\b(запомни|помни|сохрани|не\s+забудь|учти)\b"),
    _rule(
        "preference",
        r"\b(предпочитаю|нравится|не\s+нравится|люблю|ненавижу|хочу|не\s+хочу)\b",
    ),
    _rule(
        "decision",
        r"\b(решили|будем\s+использовать|выбрали|договорились|остановились\s+на)\b",
    ),
    _rule("personal_info", r"(мой\s+телефон|моя\s+почта|мой\s+адрес|меня\s+зовут)"),
    _rule("personal_info", r"\b(я\s+работаю|я\s+живу|моя\s+должность)\b"),
    _rule("importance_marker", r"\b(всегда|никогда|обязательно|важно|критично)\b"),
    _rule("organization", r"(работаю\s+в|работаю\s+на|компания)"),
    _rule(
        "relationship",
        r"\b(мой|моя|мои|наш|наша|наши)\s+(коллега|друг|подруга|начальник|руководитель"
        r"|брат|сестра|муж|жена|отец|мать|сын|дочь|знакомый|знакомая|сосед|соседка)",
    ),
    _rule(
        "possessive",
        r"\b(наш|наша|наше|наши)\s+(проект|продукт|стек|приложение|сервис|система"
        r"|платформа|бот|команда)",
    ),
    _rule(
        "temporal",
        r"(дедлайн|встреча|созвон|митинг|завтра\s+у\s+нас|послезавтра"
        r"|на\s+следующей\s+неделе|в\s+понедельник|во\s+вторник|в\s+среду"
        r"|в\s+четверг|в\s+пятницу|через\s+неделю)",
    ),
    _rule(
        "skill",
        r"(знаю|умею|владею|изучаю|опыт\s+работы|опыт\s+с|опыт\s+в|освоил|выучил)",
    ),
    _rule(
        "preference",
        r"(обожаю|терпеть\s+не\s+могу|бесит|раздражает|нравится\s+как|не\s+нравится\s+как)",
    ),
    _rule("location", r"(живу\s+в|переехал|родом\s+из|нахожусь\s+в)"),
    _rule("learning", r"(учусь|учился|закончил|окончил|поступил)\s+(в|на)"),
    _rule("personal_info", r"(зовут|его\s+зовут|её\s+зовут|их\s+зовут)"),
)

TRIGGERS_CS: tuple[TriggerRule, ...] = (
    _rule("explicit_command", r"\b(zapamatuj\s+si|pamatuj|nezapomeň|poznamenej)\b"),
    _rule("preference", r"\b(preferuji|radši|nechci|líbí\s+se\s+mi|nelíbí\s+se\s+mi)\b"),
    _rule(
        "decision",
        r"\b(rozhodli\s+jsme|budeme\s+používat|vybrali\s+jsme|dohodli\s+jsme)\b",
    ),
    _rule("personal_info", r"\b(můj\s+telefon|můj\s+email|moje\s+adresa|jmenuji\s+se)\b"),
    _rule("personal_info", r"\b(pracuji\s+v|bydlím\s+v|moje\s+pozice)\b"),
    _rule("importance_marker", r"\b(vždy|nikdy|důležité|kritické)\b"),
)

TRIGGERS_BY_LANGUAGE: dict[Language, tuple[TriggerRule, ...]] = {
    Language.EN: TRIGGERS_EN,
    Language.RU: TRIGGERS_RU,
    Language.CS: TRIGGERS_CS,
}


def _patterns(*sources: str, flags: int = re.IGNORECASE) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(source, flags) for source in sources)


# Checked in order: fact patterns are broad enough to match most sentences
CATEGORY_RULES: tuple[tuple[MemoryCategory, tuple[Pattern[str], ...]], ...] = (
    (
        MemoryCategory.PREFERENCE,
        _patterns(
            r"\b(prefer|like|love|hate|want|don't\s+want|favorite)\b",
            r"(предпочитаю|нравится|не\s+нравится|люблю|ненавижу|хочу|не\s+хочу"
            r"|любимый|обожаю|терпеть\s+не\s+могу)",
            r"\b(preferuji|líbí|nelíbí|miluju|nesnáším|chci|nechci|oblíbený)\b",
        ),
    ),
    (
        MemoryCategory.DECISION,
        _patterns(
            r"\b(decided|will\s+use|chose|agreed|going\s+to|selected)\b",
            r"(решили|будем|выбрали|договорились|остановились|используем)",
            r"\b(rozhodli|budeme|vybrali|dohodli|použijeme)\b",
        ),
    ),
    (
        MemoryCategory.ENTITY,
        _patterns(
            r"\b(my\s+name\s+is|i\s+am|call\s+me)\b",
            r"(меня\s+зовут|зовут)",
            r"\b(jmenuji\s+se|jsem)\b",
            r"\+\d{10,}",
            r"[\w.-]+@[\w.-]+\.\w{2,}",
            r"(телефон|почта)",
            r"\b(email|phone)\b",
            r"\b(telefon|e-?mail)\b",
            r"\b(works?\s+(at|for)|employed\s+by)\b",
            r"(работаю\s+в|работаю\s+на)",
            r"\b(pracuji\s+v|pracuji\s+pro)\b",
            r"(живу\s+в|переехал|родом\s+из)",
            r"\b(live[sd]?\s+in|moved\s+to|from)\b",
        ),
    ),
    (
        MemoryCategory.FACT,
        _patterns(
            r"\b(is|are|has|have|was|were|will\s+be)\b",
            r"\b(это|является|есть|был|была|будет)\b",
            r"\b(je|jsou|má|mají|byl|byla|bude)\b",
        ),
    ),
)

IMPORTANCE_RULES: tuple[ImportanceRule, ...] = (
    ImportanceRule(
        "importance_marker",
        _patterns(r"\b(важно|important|критично|critical|essential|обязательно)\b"),
        0.20,
    ),
    ImportanceRule(
        "explicit_command",
        _patterns(r"\b(remember|don't\s+forget)\b", r"(запомни|помни|сохрани)"),
        0.15,
    ),
    ImportanceRule("contact_info", (PHONE_OR_EMAIL,), 0.10),
    ImportanceRule(
        "name_introduction",
        _patterns(r"\b(my\s+name|меня\s+зовут|jmenuji\s+se)\b"),
        0.10,
    ),
    ImportanceRule(
        "decision",
        _patterns(r"\b(решили|decided|договорились|agreed)\b"),
        0.10,
    ),
    ImportanceRule(
        "relationship",
        _patterns(r"(мой|моя|наш)\s+(коллега|друг|начальник|брат|сестра|муж|жена)"),
        0.10,
    ),
)

BASE_IMPORTANCE = 0.5
ENTITY_DENSITY_BOOST = 0.05
MAX_ENTITY_DENSITY_BOOST = 0.15
MAX_IMPORTANCE = 1.0
