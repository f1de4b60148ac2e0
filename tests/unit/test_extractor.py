"""Unit tests for entity and relation extraction."""

from mnemograph.extraction.extractor import (
    EntityExtractor,
    dedupe_entities,
    dedupe_relations,
    extract_entities,
    extract_entity_names,
    extract_relations,
)
from mnemograph.memory.types import (
    EntityCandidate,
    EntityType,
    Language,
    RelationCandidate,
    RelationType,
)


def names_of(entities, entity_type):
    return [e.name for e in entities if e.type is entity_type]


class FakeMorphology:
    """Morphology provider answering from fixed word tables."""

    def __init__(self, normal_forms=None, false_positives=(), proper=(), geo=(), org=(), ready=True):
        self.normal_forms = normal_forms or {}
        self.false_positives = set(false_positives)
        self.proper = set(proper)
        self.geo = set(geo)
        self.org = set(org)
        self.ready = ready

    def is_ready(self):
        return self.ready

    def covers(self, word):
        return any("а" <= ch.lower() <= "я" or ch.lower() == "ё" for ch in word)

    def normalize(self, word):
        return self.normal_forms.get(word.lower(), word.lower())

    def is_proper_name(self, word):
        return word in self.proper

    def is_geo_name(self, word):
        return word in self.geo

    def is_org_name(self, word):
        return word in self.org

    def is_false_positive_name(self, word):
        return word in self.false_positives


class TestPersonExtraction:
    """Tests for person entities."""

    def test_name_with_phone_scenario(self):
        entities = extract_entities("My name is John Smith and my phone is +1-202-555-1234")
        persons = [e for e in entities if e.type is EntityType.PERSON]
        assert len(persons) == 1
        assert "John" in persons[0].name
        assert persons[0].properties["phone"] == "12025551234"
        assert persons[0].confidence == 0.8

    def test_email_lowercased(self):
        entities = extract_entities("My name is Anna, email: Anna.K@Example.COM")
        person = entities[0]
        assert person.name == "Anna"
        assert person.properties["email"] == "anna.k@example.com"

    def test_contact_info_only_on_first_person(self):
        text = "My name is Anna and Bob is my friend, my phone is +7 912 345 67 89"
        persons = [e for e in extract_entities(text) if e.type is EntityType.PERSON]
        assert [p.name for p in persons] == ["Anna", "Bob"]
        assert persons[0].properties["phone"] == "79123456789"
        assert "phone" not in persons[1].properties

    def test_stop_word_rejected(self):
        assert names_of(extract_entities("This is my friend"), EntityType.PERSON) == []

    def test_russian_name_introduction(self):
        names = names_of(extract_entities("Меня зовут Иван Петров"), EntityType.PERSON)
        assert names[0] == "Иван Петров"

    def test_russian_enumeration_captures_all_names(self):
        names = names_of(extract_entities("Маша, Катя и Ольга пришли"), EntityType.PERSON)
        assert set(names) == {"Маша", "Катя", "Ольга"}

    def test_capitalized_word_after_i_am_not_a_name(self):
        assert names_of(extract_entities("I am Going home"), EntityType.PERSON) == []
        assert names_of(extract_entities("I am Sorry Anna"), EntityType.PERSON) == []
        assert names_of(extract_entities("I am Anna"), EntityType.PERSON) == ["Anna"]

    def test_role_attached_to_first_person(self):
        entities = extract_entities("I'm a software engineer at Google. My name is Anna")
        person = next(e for e in entities if e.type is EntityType.PERSON)
        assert person.name == "Anna"
        assert person.properties["role"] == "software engineer"


class TestContactPerson:
    """Tests for the synthetic person created from contact info."""

    def test_email_local_part_as_name(self):
        persons = [
            e for e in extract_entities("Write to anna.k@example.com for details")
            if e.type is EntityType.PERSON
        ]
        assert len(persons) == 1
        assert persons[0].name == "anna.k"
        assert persons[0].confidence == 0.5
        assert persons[0].properties == {"email": "anna.k@example.com"}

    def test_phone_only_uses_placeholder(self):
        persons = [
            e for e in extract_entities("Dial +7 912 345 67 89 tomorrow morning")
            if e.type is EntityType.PERSON
        ]
        assert len(persons) == 1
        assert persons[0].name == "Contact"
        assert persons[0].properties == {"phone": "79123456789"}


class TestOtherEntityTypes:
    """Tests for organizations, locations and concepts."""

    def test_organization_from_work_phrase(self):
        entities = extract_entities("Anna works at Google")
        assert names_of(entities, EntityType.ORGANIZATION) == ["Google"]

    def test_guillemet_organization(self):
        entities = extract_entities("Я работаю в «Яндекс»")
        assert "Яндекс" in names_of(entities, EntityType.ORGANIZATION)

    def test_english_location(self):
        entities = extract_entities("Anna lives in New York")
        assert names_of(entities, EntityType.LOCATION) == ["New York"]

    def test_hyphenated_location_keeps_separators(self):
        entities = extract_entities("Я переехал в Ростов-на-Дону")
        assert names_of(entities, EntityType.LOCATION) == ["Ростов-на-Дону"]

    def test_concept_list_split(self):
        entities = extract_entities("I like Python and React")
        concepts = [e for e in entities if e.type is EntityType.CONCEPT]
        assert [c.name for c in concepts] == ["Python", "React"]
        assert all(c.properties == {"category": "technology"} for c in concepts)
        assert all(c.confidence == 0.6 for c in concepts)

    def test_english_concept_not_split_on_czech_conjunction(self):
        assert names_of(extract_entities("I use Vim a lot"), EntityType.CONCEPT) == ["Vim a lot"]

    def test_no_entities(self):
        assert extract_entities("nothing to see here") == []


class TestExtractionProperties:
    """Tests for deduplication and idempotence."""

    def test_idempotent(self):
        text = "Меня зовут Иван. Иван работает в Сбербанк. Я люблю Python и Go"
        first = [e.key for e in extract_entities(text)]
        second = [e.key for e in extract_entities(text)]
        assert first == second

    def test_entity_keys_unique(self):
        text = "Маша пришла. Маша сказала, что Маша, Катя и Ольга придут"
        keys = [e.key for e in extract_entities(text)]
        assert len(keys) == len(set(keys))

    def test_dedupe_entities_merges_properties_without_overwrite(self):
        first = EntityCandidate(EntityType.PERSON, "Anna", {"phone": "1"})
        second = EntityCandidate(EntityType.PERSON, "anna", {"phone": "2", "email": "a@b.cz"})
        merged = dedupe_entities([first, second])
        assert len(merged) == 1
        assert merged[0].name == "Anna"
        assert merged[0].properties == {"phone": "1", "email": "a@b.cz"}

    def test_dedupe_entities_keeps_different_types(self):
        person = EntityCandidate(EntityType.PERSON, "Paris")
        place = EntityCandidate(EntityType.LOCATION, "Paris")
        assert len(dedupe_entities([person, place])) == 2

    def test_dedupe_relations_first_wins(self):
        first = RelationCandidate(
            EntityType.PERSON, "Anna", EntityType.ORGANIZATION, "Google",
            RelationType.WORKS_AT, confidence=0.8,
        )
        second = RelationCandidate(
            EntityType.PERSON, "anna", EntityType.ORGANIZATION, "GOOGLE",
            RelationType.WORKS_AT, confidence=0.3,
        )
        assert dedupe_relations([first, second]) == [first]

    def test_extract_entity_names(self):
        assert extract_entity_names("Anna works at Google") == ["Google"]


class TestRelationExtraction:
    """Tests for relation extraction."""

    def test_works_at(self):
        relations = extract_relations("Anna works at Google")
        assert len(relations) == 1
        relation = relations[0]
        assert relation.source_name == "Anna"
        assert relation.target_name == "Google"
        assert relation.relation_type == RelationType.WORKS_AT
        assert relation.confidence == 0.8

    def test_lives_in(self):
        relations = extract_relations("Anna lives in New York")
        assert [(r.source_name, r.relation_type, r.target_name) for r in relations] == [
            ("Anna", RelationType.LIVES_IN, "New York"),
        ]

    def test_knows_with_relationship(self):
        relations = extract_relations("Alice is Bob's friend")
        assert len(relations) == 1
        relation = relations[0]
        assert (relation.source_name, relation.target_name) == ("Alice", "Bob")
        assert relation.relation_type == RelationType.KNOWS
        assert relation.properties == {"relationship": "friend", "strength": 0.8}

    def test_english_possessive_uses_self_reference(self):
        relations = extract_relations("my husband John loves hiking")
        assert len(relations) == 1
        relation = relations[0]
        assert relation.source_name == "me"
        assert relation.target_name == "John"
        assert relation.confidence == 0.85
        assert relation.properties == {"relationship": "husband", "strength": 0.9}

    def test_russian_possessive_uses_self_reference(self):
        relations = extract_relations("Мой муж Андрей любит рыбалку")
        knows = [r for r in relations if r.relation_type is RelationType.KNOWS]
        assert len(knows) == 1
        assert knows[0].source_name == "я"
        assert knows[0].target_name == "Андрей"
        assert knows[0].properties["relationship"] == "муж"

    def test_russian_acquaintance(self):
        relations = extract_relations("Иван знаком с Петром")
        assert len(relations) == 1
        assert relations[0].relation_type == RelationType.KNOWS
        assert relations[0].properties == {"relationship": "acquaintance", "strength": 0.5}

    def test_no_relations(self):
        assert extract_relations("Just a random message") == []


class TestMorphologyIntegration:
    """Tests for extraction with a morphology provider."""

    def test_oblique_case_normalized(self):
        morph = FakeMorphology(normal_forms={"маши": "маша"})
        extractor = EntityExtractor(morphology=morph)
        names = names_of(extractor.extract_entities("Вчера я был у Маши"), EntityType.PERSON)
        assert names == ["Маша"]

    def test_false_positive_rejected(self):
        morph = FakeMorphology(false_positives={"Новым"})
        extractor = EntityExtractor(morphology=morph)
        names = names_of(extractor.extract_entities("Поздравляю с Новым годом"), EntityType.PERSON)
        assert names == []

    def test_proper_name_overrides_false_positive(self):
        morph = FakeMorphology(false_positives={"Любовь"}, proper={"Любовь"})
        extractor = EntityExtractor(morphology=morph)
        assert extractor.normalize_person("Любовь") == "Любовь"

    def test_not_ready_provider_ignored(self):
        morph = FakeMorphology(normal_forms={"маши": "маша"}, ready=False)
        extractor = EntityExtractor(morphology=morph)
        names = names_of(extractor.extract_entities("Вчера я был у Маши"), EntityType.PERSON)
        assert names == ["Маши"]

    def test_latin_words_not_sent_to_provider(self):
        morph = FakeMorphology(false_positives={"John"})
        extractor = EntityExtractor(morphology=morph)
        assert extractor.normalize_person("John") == "John"

    def test_location_normalized(self):
        morph = FakeMorphology(normal_forms={"москве": "москва"}, geo={"Москве"})
        extractor = EntityExtractor(morphology=morph)
        assert extractor.normalize_location("Москве") == "Москва"


class TestNormalization:
    """Tests for name validation without morphology."""

    def test_person_requires_capitalized_words(self):
        extractor = EntityExtractor()
        assert extractor.normalize_person("John Smith") == "John Smith"
        assert extractor.normalize_person("John smith") is None
        assert extractor.normalize_person("J") is None

    def test_organization_quotes_stripped(self):
        extractor = EntityExtractor()
        assert extractor.normalize_organization('"Acme"') == "Acme"
        assert extractor.normalize_organization("«Рога и Копыта»") == "Рога и Копыта"
        assert extractor.normalize_organization("An") is None
        assert extractor.normalize_organization("x") is None

    def test_split_concepts(self):
        extractor = EntityExtractor()
        assert extractor.split_concepts("Python, Go и Rust.", Language.RU) == ["Python", "Go", "Rust"]

    def test_split_uses_only_the_rule_language_conjunction(self):
        extractor = EntityExtractor()
        assert extractor.split_concepts("Vim a lot", Language.EN) == ["Vim a lot"]
        assert extractor.split_concepts("Vim a Emacs", Language.CS) == ["Vim", "Emacs"]
        assert extractor.split_concepts("Vim и Emacs", Language.CS) == ["Vim и Emacs"]


class TestCzechExtraction:
    """Tests for the Czech entity rules."""

    def test_name_introduction(self):
        names = names_of(extract_entities("Jmenuji se Jan Novák."), EntityType.PERSON)
        assert names == ["Jan Novák"]

    def test_colleague_apposition(self):
        names = names_of(extract_entities("Petr Dvořák je můj kolega"), EntityType.PERSON)
        assert names == ["Petr Dvořák"]

    def test_organization_stops_before_jako(self):
        entities = extract_entities("Pracuji v Seznam jako vývojář.")
        assert names_of(entities, EntityType.ORGANIZATION) == ["Seznam"]

    def test_organization_stops_before_od(self):
        entities = extract_entities("Pracuji pro Seznam od roku 2020")
        assert names_of(entities, EntityType.ORGANIZATION) == ["Seznam"]

    def test_concepts_split_on_a(self):
        entities = extract_entities("Používám Python a Docker.")
        assert names_of(entities, EntityType.CONCEPT) == ["Python", "Docker"]

    def test_role_attached_to_person(self):
        entities = extract_entities("Jmenuji se Jan. Jsem vývojář.")
        person = next(e for e in entities if e.type is EntityType.PERSON)
        assert person.name == "Jan"
        assert person.properties["role"] == "vývojář"
