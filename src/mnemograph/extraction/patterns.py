"""Rule tables for entity and relation extraction.

Entity rules capture a candidate name in group 1. Relation rules capture
the source and target spans in configurable groups. Keyword parts of
patterns use scoped ``(?i:...)`` flags so that name groups stay
case-sensitive: names must start with an uppercase letter.
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern

from mnemograph.memory.types import EntityType, Language, RelationType

# Building blocks
EN_NAME = r"[A-Z][a-z]+"
RU_NAME = r"[А-ЯЁ][а-яё]+"
RU_NAME3 = r"[А-ЯЁ][а-яё]{2,}"
CS_UPPER = "A-ZÁČĎÉĚÍŇÓŘŠŤÚŮÝŽ"
CS_LOWER = "a-záčďéěíňóřšťúůýž"
CS_NAME = "[" + CS_UPPER + "][" + CS_LOWER + "]+"

EN_PERSON = EN_NAME + r"(?:\s+" + EN_NAME + ")?"
RU_PERSON = RU_NAME + r"(?:\s+" + RU_NAME + ")?"
CS_PERSON = CS_NAME + r"(?:\s+" + CS_NAME + ")?"

EN_PLACE = EN_NAME + r"(?:[\s-]" + EN_NAME + ")*"
# Space-separated parts are capitalized; hyphenated parts may not be (Ростов-на-Дону)
RU_PLACE = RU_NAME + r"(?:-[А-ЯЁа-яё]+|\s" + RU_NAME + ")*"

EN_ORG = r"[A-Z][A-Za-z\s&.-]+?"
RU_ORG = r"[A-ZА-ЯЁ«\"][A-Za-zА-Яа-яЁё\s&.»\"-]+?"
CS_ORG = "[" + CS_UPPER + "][A-Za-z" + CS_LOWER + r"\s&.-]+?"
CAPITALIZED_WORDS = r"[A-Z][\w&-]*(?:\s+[A-Z][\w&-]*)*"
CS_CAPITALIZED_WORDS = "[" + CS_UPPER + r"][\w&-]*(?:\s+[" + CS_UPPER + r"][\w&-]*)*"

TOKEN = r"[\w#+.-]+"
TOKENS = TOKEN + r"(?:\s+" + TOKEN + "){0,2}"

SENTENCE_END = r"(?=[,.!?]|$)"

ROLE_WORDS_RU = (
    "коллега|друг|подруга|начальник|руководитель|менеджер|директор|брат|сестра"
    "|муж|жена|мать|отец|сын|дочь|знакомый|знакомая|сосед|соседка|товарищ"
)
PERSON_VERBS_RU = (
    "сказал[аи]?|говорит|позвонил[аи]?|написал[аи]?|приехал[аи]?|пришёл|пришла|пришли"
    "|рассказал[аи]?|спросил[аи]?|ответил[аи]?|предложил[аи]?|решил[аи]?|хочет|думает"
    "|знает|любит|работает|живёт|живет|учится|уехал[аи]?|вернулся|вернулась"
)
PREPOSITIONS_RU = "у|от|для|с|к|про|без|после|перед|возле|напротив"

# Source name used when the speaker is implied by a possessive ("мой муж Андрей")
SELF_REFERENCE_RU = "я"
SELF_REFERENCE_EN = "me"


@dataclass(frozen=True)
class EntityRule:
    """Pattern whose group 1 captures a candidate entity name.

    Attributes:
        language: Language the pattern is written for
        pattern: Compiled pattern
        split: Optional pattern splitting one capture into several names
    """
    language: Language
    pattern: Pattern[str]
    split: Optional[Pattern[str]] = None


@dataclass(frozen=True)
class RelationRule:
    """Pattern producing a typed relation between two captured spans.

    Attributes:
        relation_type: Edge type emitted
        pattern: Compiled pattern
        source_type: Type of the source entity
        target_type: Type of the target entity
        confidence: Confidence of emitted relations
        source_group: Group holding the source name (ignored with fixed_source)
        target_group: Group holding the target name
        relationship_group: Group whose lowercased text is the ``relationship`` property
        relationship: Fixed ``relationship`` property
        strength: ``strength`` property, if any
        fixed_source: Fixed source name used instead of a captured group
    """
    relation_type: RelationType
    pattern: Pattern[str]
    source_type: EntityType
    target_type: EntityType
    confidence: float
    source_group: int = 1
    target_group: int = 2
    relationship_group: Optional[int] = None
    relationship: Optional[str] = None
    strength: Optional[float] = None
    fixed_source: Optional[str] = None


def _entity(language: Language, pattern: str, split: Optional[str] = None) -> EntityRule:
    return EntityRule(
        language=language,
        pattern=re.compile(pattern),
        split=re.compile(split) if split else None,
    )


PERSON_RULES: tuple[EntityRule, ...] = (
    # "my name is X", "I am X", "call me X"
    _entity(Language.EN, r"(?i:\b(?:my name is|i am|i'm|call me))\s+(" + EN_PERSON + ")"),
    # "X is my friend"
    _entity(
        Language.EN,
        "(" + EN_PERSON + r")\s+is\s+(?i:my|our)\s+"
        r"(?i:friend|colleague|boss|manager|brother|sister|wife|husband)\b",
    ),
    # "меня зовут X", "я X", "я - X"
    _entity(
        Language.RU,
        r"(?:\b[Мм]еня\s+зовут|\b[Яя](?:\s*[-–—])?)\s+(" + RU_NAME + r"(?:\s+" + RU_NAME + "){0,2})",
    ),
    # "зовут X"
    _entity(Language.RU, r"\bзовут\s+(" + RU_NAME3 + ")"),
    # Name followed by a 3rd person verb: "Дмитрий сказал"
    _entity(Language.RU, "(" + RU_NAME3 + r")\s+(?:" + PERSON_VERBS_RU + r")\b"),
    # Preposition + oblique case: "у Маши", "с Андреем"
    _entity(Language.RU, r"\b(?:" + PREPOSITIONS_RU + r")\s+(" + RU_NAME3 + ")"),
    # Role + name: "коллега Дмитрий"
    _entity(
        Language.RU,
        r"(?i:\b(?:" + ROLE_WORDS_RU + r"))\s+(" + RU_NAME3 + r"(?:\s+" + RU_NAME3 + ")?)",
    ),
    # Apposition: "Дмитрий, мой коллега"
    _entity(
        Language.RU,
        "(" + RU_NAME3 + r")\s*[,–—-]\s*(?:мой|моя|наш|наша)\s+"
        r"(?:коллега|друг|подруга|начальник|руководитель)",
    ),
    # "Андрей — это мой друг"
    _entity(Language.RU, "(" + RU_NAME3 + r")\s+[-–—]\s+(?:это\s+)?(?:мой|моя|наш|наша)\s+"),
    # Enumeration: "Маша, Катя и Ольга"
    _entity(
        Language.RU,
        "(" + RU_NAME3 + r"(?:\s*,\s*" + RU_NAME3 + r")*\s+и\s+" + RU_NAME3 + ")",
        split=r"\s*,\s*|\s+и\s+",
    ),
    _entity(Language.CS, r"(?i:\b(?:jmenuji se|jsem))\s+(" + CS_PERSON + ")"),
    _entity(
        Language.CS,
        "(" + CS_PERSON + r")\s+je\s+(?i:můj|moje)\s+(?i:přítel|kolega|šéf|kamarád)",
    ),
)

ORGANIZATION_RULES: tuple[EntityRule, ...] = (
    _entity(
        Language.EN,
        r"(?i:\b(?:work(?:s|ing)?\s+(?:at|for)|employed\s+(?:by|at)))\s+(" + EN_ORG + ")"
        r"(?=\s+(?i:as|since|for)\b|[,.!?]|$)",
    ),
    _entity(
        Language.EN,
        r"(?i:\b(?:company|firm))\s+(?:(?i:called|named)\s+)?(" + CAPITALIZED_WORDS + ")",
    ),
    # "работаю в X"
    _entity(
        Language.RU,
        r"(?:[Рр]аботаю|[Рр]аботает|[Рр]аботал[аи]?|[Тт]рудится|[Тт]рудоустроен[а]?"
        r"|[Уу]строился|[Уу]строилась)\s+(?:в|на)\s+(" + RU_ORG + ")"
        r"(?=\s+(?:на\s+должности|с|уже)\b|[,.!?]|$)",
    ),
    # Guillemet-quoted: «Яндекс»
    _entity(Language.RU, r"«([^»]+)»"),
    # Legal form prefix: ООО "Рога и Копыта"
    _entity(Language.RU, r"\b(?:ООО|ОАО|ЗАО|АО|ПАО|ИП|ГК)\b\s*[«\"]?([^»\",.]+)[»\"]?"),
    # "из компании X"
    _entity(
        Language.RU,
        r"\b(?:из|в)\s+(?:компании|фирмы|организации|корпорации)\s+(" + RU_ORG + ")" + SENTENCE_END,
    ),
    # "компания X"
    _entity(
        Language.RU,
        r"\b(?:компания|фирма|организация|корпорация)\s+(?:под\s+названием\s+)?(" + RU_ORG + ")"
        + SENTENCE_END,
    ),
    _entity(
        Language.CS,
        r"(?i:\bpracuji?\s+(?:v|pro|u))\s+(" + CS_ORG + r")(?=\s+(?i:jako|od)\b|[,.!?]|$)",
    ),
    _entity(
        Language.CS,
        r"(?i:\bfirma)\s+(?:(?i:s názvem)\s+)?(" + CS_CAPITALIZED_WORDS + ")",
    ),
)

LOCATION_RULES: tuple[EntityRule, ...] = (
    # "живу в X"
    _entity(
        Language.RU,
        r"(?:[Жж]иву|[Жж]ивём|[Жж]ивет|[Жж]ивёт|[Нн]ахожусь|[Пп]ереехал[аи]?|[Пп]ереезжаю"
        r"|[Рр]одился|[Рр]одилась|[Рр]одом)\s+в\s+(" + RU_PLACE + ")",
    ),
    # "из X", "родом из X"
    _entity(Language.RU, r"(?:\bиз|[Рр]одом\s+из)\s+(" + RU_PLACE + ")"),
    # "город X"
    _entity(
        Language.RU,
        r"\b(?:[Гг]ород|[Сс]ело|[Дд]еревня|[Пп]осёлок|[Пп]оселок)\s+(" + RU_PLACE + ")",
    ),
    # "в городе X"
    _entity(
        Language.RU,
        r"\bв\s+(?:городе|селе|деревне|посёлке|поселке)\s+(" + RU_PLACE + ")",
    ),
    _entity(
        Language.EN,
        r"(?i:\b(?:live[sd]?\s+in|from|moved\s+to|born\s+in|based\s+in|located\s+in))\s+("
        + EN_PLACE + ")",
    ),
    _entity(Language.EN, r"(?i:\b(?:city|town|village))\s+(?:(?i:of)\s+)?(" + EN_PLACE + ")"),
)

CONCEPT_RULES: tuple[EntityRule, ...] = (
    _entity(Language.EN, r"(?i:\b(?:prefer|like|love|use|using))\s+(" + TOKENS + ")"),
    _entity(Language.EN, r"(?i:\b(?:written\s+in|built\s+with))\s+(" + TOKENS + ")"),
    # Skills: "знаю Python"
    _entity(
        Language.RU,
        r"\b(?:[Зз]наю|[Уу]мею|[Вв]ладею|[Ии]зучаю|[Оо]своил[а]?|[Уу]чу|[Вв]ыучил[а]?)\s+("
        + TOKENS + ")",
    ),
    # Interests: "увлекаюсь машинным обучением"
    _entity(Language.RU, r"\b(?:[Уу]влекаюсь|[Зз]анимаюсь|[Ии]нтересуюсь)\s+(" + TOKENS + ")"),
    # Preferences: "люблю X"
    _entity(
        Language.RU,
        r"\b(?:[Лл]юблю|[Нн]равится|[Пп]редпочитаю|[Ии]спользую)\s+(" + TOKENS + ")",
    ),
    # Technology: "написано на X"
    _entity(
        Language.RU,
        r"\b(?:написано?\s+на|работает\s+на|на\s+базе|на\s+основе)\s+(" + TOKENS + ")",
    ),
    _entity(Language.CS, r"(?i:\b(?:preferuji|používám|mám rád))\s+(" + TOKENS + ")"),
    _entity(Language.CS, r"(?i:\bnapsáno\s+v)\s+([A-Za-z0-9#+]+)"),
)

ENTITY_RULES: dict[EntityType, tuple[EntityRule, ...]] = {
    EntityType.PERSON: PERSON_RULES,
    EntityType.ORGANIZATION: ORGANIZATION_RULES,
    EntityType.LOCATION: LOCATION_RULES,
    EntityType.CONCEPT: CONCEPT_RULES,
}

ENTITY_CONFIDENCE: dict[EntityType, float] = {
    EntityType.PERSON: 0.8,
    EntityType.ORGANIZATION: 0.7,
    EntityType.LOCATION: 0.7,
    EntityType.CONCEPT: 0.6,
}
CONTACT_PERSON_CONFIDENCE = 0.5
CONTACT_PERSON_NAME = "Contact"

# Splits one concept capture into list items by the rule's language
CONCEPT_LIST_SPLIT: dict[Language, Pattern[str]] = {
    Language.EN: re.compile(r"\s+and\s+|\s*,\s*"),
    Language.RU: re.compile(r"\s+и\s+|\s*,\s*"),
    Language.CS: re.compile(r"\s+a\s+|\s*,\s*"),
}

# Capitalized words that are never person names (checked against the first word)
PERSON_STOP_WORDS = frozenset({
    "это", "то", "the", "a", "an", "that", "this",
    "going", "coming", "leaving", "working", "looking", "trying", "thinking",
    "here", "there", "not", "so", "very", "just", "also", "still", "really",
    "sure", "sorry", "happy", "glad", "fine", "good", "ready", "tired", "busy",
    "back", "home", "afraid",
    "после", "может", "однако", "поэтому", "также", "потому", "кроме", "около",
    "между", "через", "перед", "возле", "вместо", "кстати", "например", "конечно",
    "наверное", "возможно", "пожалуй", "видимо", "очевидно", "правда",
    "сегодня", "завтра", "вчера",
})

ORGANIZATION_STOP_WORDS = frozenset({"a", "an", "the", "одна", "один", "jedna"})

QUOTE_CHARS = re.compile("[«»“”„\"]")

PHONE_PATTERN = re.compile(
    r"(?i:(?:phone|телефон|telefon)\s*(?:is|:)?\s*)?"
    r"(\+?[0-9]{1,3}[-.\s]?(?:\([0-9]{2,3}\)|[0-9]{2,3})[-.\s]?[0-9]{3}[-.\s]?[0-9]{2}[-.\s]?[0-9]{2})"
)
EMAIL_PATTERN = re.compile(
    r"(?i:(?:email|почта|e-?mail)\s*(?:is|:)?\s*)?([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})"
)

ROLE_PATTERNS: tuple[Pattern[str], ...] = (
    # "I am a software engineer at ..."
    re.compile(
        r"(?i:\b(?:i am|i'm|work(?:ing)?\s+as))\s+(?:(?i:an?)\s+)?"
        r"([a-z]+(?:\s+[a-z]+)?)\s+(?i:at|for|in)\b"
    ),
    # "работаю программистом"
    re.compile(r"(?i:\bработаю)\s+([а-яё]+(?:ом|ем|ём))\b"),
    re.compile(r"(?i:\b(?:jsem|pracuji jako))\s+([" + CS_LOWER + r"]+)\b"),
)


def _relation(
    relation_type: RelationType,
    pattern: str,
    source_type: EntityType,
    target_type: EntityType,
    confidence: float,
    **options: object,
) -> RelationRule:
    return RelationRule(
        relation_type=relation_type,
        pattern=re.compile(pattern),
        source_type=source_type,
        target_type=target_type,
        confidence=confidence,
        **options,  # type: ignore[arg-type]
    )


P, O, L, C = (
    EntityType.PERSON,
    EntityType.ORGANIZATION,
    EntityType.LOCATION,
    EntityType.CONCEPT,
)

RELATION_RULES: tuple[RelationRule, ...] = (
    # works_at
    _relation(
        RelationType.WORKS_AT,
        "(" + EN_PERSON + r")\s+(?i:works?|working)\s+(?i:at|for)\s+(" + EN_ORG + ")"
        r"(?=\s+(?i:as|since)\b|[,.!?]|$)",
        P, O, 0.8,
    ),
    _relation(
        RelationType.WORKS_AT,
        "(" + RU_PERSON + r")\s+(?:работает|работал[а]?|трудится|устроился|устроилась)"
        r"\s+(?:в|на)\s+(" + RU_ORG + r")(?=\s+(?:на\s+должности|уже)\b|[,.!?]|$)",
        P, O, 0.8,
    ),
    # knows
    _relation(
        RelationType.KNOWS,
        "(" + EN_PERSON + r")\s+(?i:knows?|met|is\s+friends?\s+with)\s+(" + EN_PERSON + ")",
        P, P, 0.7, relationship="acquaintance", strength=0.5,
    ),
    _relation(
        RelationType.KNOWS,
        "(" + RU_PERSON + r")\s+(?:знает|знаком[аы]?\s+с|дружит\s+с|общается\s+с)\s+("
        + RU_PERSON + ")",
        P, P, 0.7, relationship="acquaintance", strength=0.5,
    ),
    # "Alice is Bob's friend"
    _relation(
        RelationType.KNOWS,
        "(" + EN_NAME + r")\s+is\s+(" + EN_NAME + r")(?:'s|s)?\s+"
        r"((?i:friend|colleague|boss|brother|sister|wife|husband))\b",
        P, P, 0.8, relationship_group=3, strength=0.8,
    ),
    # "Андрей — друг Марины"
    _relation(
        RelationType.KNOWS,
        "(" + RU_NAME + r")\s+[-–—]\s+(друг|подруга|коллега|начальник|руководитель|брат"
        r"|сестра|жена|муж|отец|мать|сын|дочь)\s+(" + RU_NAME + ")",
        P, P, 0.8, target_group=3, relationship_group=2, strength=0.8,
    ),
    # "мой муж Андрей"
    _relation(
        RelationType.KNOWS,
        r"\b(?:[Мм]ой|[Мм]оя|[Мм]ои)\s+(муж|жена|брат|сестра|сын|дочь|отец|мать|друг"
        r"|подруга|коллега|начальник)\s+[-–—]?\s*(" + RU_NAME3 + ")",
        P, P, 0.85, target_group=2, relationship_group=1, strength=0.9,
        fixed_source=SELF_REFERENCE_RU,
    ),
    # "my husband John"
    _relation(
        RelationType.KNOWS,
        r"(?i:\bmy)\s+((?i:husband|wife|brother|sister|son|daughter|father|mother|friend"
        r"|colleague|boss))\s+(" + EN_NAME + ")",
        P, P, 0.85, target_group=2, relationship_group=1, strength=0.9,
        fixed_source=SELF_REFERENCE_EN,
    ),
    # lives_in
    _relation(
        RelationType.LIVES_IN,
        "(" + RU_PERSON + r")\s+(?:живёт|живет|проживает|переехал[а]?)\s+в\s+(" + RU_PLACE + ")",
        P, L, 0.7,
    ),
    _relation(
        RelationType.LIVES_IN,
        "(" + EN_PERSON + r")\s+(?i:lives?\s+in|moved\s+to|resides\s+in)\s+(" + EN_PLACE + ")",
        P, L, 0.7,
    ),
    # manages
    _relation(
        RelationType.MANAGES,
        "(" + RU_PERSON + r")\s+(?:руководит|управляет|возглавляет)\s+(" + RU_ORG + ")"
        + SENTENCE_END,
        P, O, 0.7,
    ),
    _relation(
        RelationType.MANAGES,
        "(" + RU_PERSON + r")\s+[-–—]\s+(?:начальник|руководитель|директор|глава)\s+("
        + RU_ORG + ")" + SENTENCE_END,
        P, O, 0.7,
    ),
    # studies_at
    _relation(
        RelationType.STUDIES_AT,
        "(" + RU_PERSON + r")\s+(?:учится|учился|училась|закончил[а]?|окончил[а]?|поступил[а]?)"
        r"\s+(?:в|на)\s+(" + RU_ORG + ")" + SENTENCE_END,
        P, O, 0.7,
    ),
    _relation(
        RelationType.STUDIES_AT,
        "(" + EN_PERSON + r")\s+(?i:studies|studied|graduated\s+from|attends?)(?:\s+(?i:at))?\s+("
        + EN_ORG + ")" + SENTENCE_END,
        P, O, 0.7,
    ),
    # uses
    _relation(
        RelationType.USES,
        "(" + RU_PERSON + r")\s+(?:использует|пользуется|перешёл\s+на|перешел\s+на"
        r"|работает\s+(?:с|на))\s+(" + TOKENS + ")",
        P, C, 0.6,
    ),
    # interested_in
    _relation(
        RelationType.INTERESTED_IN,
        "(" + RU_PERSON + r")\s+(?:увлекается|занимается|интересуется)\s+(" + TOKENS + ")",
        P, C, 0.6,
    ),
)
