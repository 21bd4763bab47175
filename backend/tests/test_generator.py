"""Tests for GEDCOM export and the export/import round trip."""

import io
import os
import pytest
import sys
from datetime import date

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gedcom.element.individual import IndividualElement
from gedcom.parser import Parser

from lineage.generator import build_export_records, generate, serialize
from lineage.mapper import map_from_gedcom
from lineage.models import (
    Gender,
    GeneratorOptions,
    ParentRelationship,
    ParsedRecord,
    Person,
    SpouseRelationship,
)
from lineage.parser import parse
from lineage.validator import validate


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def options():
    return GeneratorOptions(
        source_program="FamilyApp",
        source_version="2.1",
        submitter_name="Jane Submitter",
        export_date=date(2024, 3, 5),
    )


@pytest.fixture
def sample_gedcom_path():
    """Path to the sample GEDCOM file."""
    return os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
        "sample-family.ged"
    )


@pytest.fixture
def sample_mapping(sample_gedcom_path):
    with open(sample_gedcom_path, encoding="utf-8") as f:
        return map_from_gedcom(parse(f.read()))


@pytest.fixture
def family():
    """Father, mother, their child, and the father's child from elsewhere."""
    people = [
        Person(id="I1", first_name="John", last_name="Doe", gender=Gender.MALE),
        Person(id="I2", first_name="Jane", last_name="Doe", gender=Gender.FEMALE),
        Person(id="I3", first_name="Jimmy", last_name="Doe", gender=Gender.MALE),
        Person(id="I4", first_name="Sam", last_name="Doe"),
    ]
    relationships = [
        SpouseRelationship(person_id="I1", related_person_id="I2", marriage_date=date(1980, 6, 1)),
        ParentRelationship(person_id="I3", related_person_id="I1"),
        ParentRelationship(person_id="I3", related_person_id="I2"),
        ParentRelationship(person_id="I4", related_person_id="I1"),
    ]
    return people, relationships


def relationship_keys(relationships):
    """Order-free comparison keys; spouse pairs are unordered."""
    keys = set()
    for relationship in relationships:
        if isinstance(relationship, SpouseRelationship):
            keys.add(("SPOUSE", relationship.pair, relationship.marriage_date, relationship.divorce_date))
        else:
            keys.add((relationship.type, relationship.person_id, relationship.related_person_id))
    return keys


# ============================================================================
# Header and Empty Export Tests
# ============================================================================

class TestHeader:
    """Tests for the header, submitter and trailer."""

    def test_empty_input(self, options):
        """Test that no people still gives a valid, parseable file."""
        text = generate([], [], options)
        assert text.startswith("0 HEAD\n")
        assert text.endswith("0 TRLR\n")

        gedcom_file = parse(text)
        assert gedcom_file.individuals == []
        assert gedcom_file.families == []
        assert validate(gedcom_file) == []

    def test_header_values(self, options):
        """Test source, date, version, charset and submitter lines."""
        lines = generate([], [], options).splitlines()
        assert "1 SOUR FamilyApp" in lines
        assert "2 NAME FamilyApp" in lines
        assert "2 VERS 2.1" in lines
        assert "1 DATE 5 MAR 2024" in lines
        assert "2 VERS 5.5.1" in lines
        assert "2 FORM LINEAGE-LINKED" in lines
        assert "1 CHAR UTF-8" in lines
        assert "1 SUBM @SUBM1@" in lines
        assert "0 @SUBM1@ SUBM" in lines
        assert "1 NAME Jane Submitter" in lines

    def test_default_options(self):
        """Test that options are optional."""
        text = generate([], [])
        assert "1 SOUR treecore" in text.splitlines()


# ============================================================================
# Individual Export Tests
# ============================================================================

class TestIndividuals:
    """Tests for INDI records."""

    def test_full_person(self, options):
        """Test name, sex, birth and death lines."""
        person = Person(
            id="I1", first_name="John", last_name="Doe", gender=Gender.MALE,
            date_of_birth=date(1985, 1, 15), birth_place="New York, USA",
            date_of_passing=date(2020, 2, 1), death_place="Boston, USA",
            profession="Carpenter",
        )
        lines = generate([person], [], options).splitlines()
        start = lines.index("0 @I1@ INDI")
        assert lines[start:start + 11] == [
            "0 @I1@ INDI",
            "1 NAME John /Doe/",
            "1 SEX M",
            "1 BIRT",
            "2 DATE 15 JAN 1985",
            "2 PLAC New York, USA",
            "1 DEAT",
            "2 DATE 1 FEB 2020",
            "2 PLAC Boston, USA",
            "1 OCCU Carpenter",
            "0 TRLR",
        ]

    def test_missing_optional_fields_are_omitted(self, options):
        """Test that a bare person only gets NAME and SEX."""
        lines = generate([Person(id="I1", first_name="Ann")], [], options).splitlines()
        start = lines.index("0 @I1@ INDI")
        assert lines[start + 1:start + 4] == ["1 NAME Ann", "1 SEX U", "0 TRLR"]

    def test_deceased_without_date(self, options):
        """Test that a deceased person with no details gets 'DEAT Y'."""
        person = Person(id="I1", first_name="Ann", is_living=False)
        assert "1 DEAT Y" in generate([person], [], options).splitlines()

    def test_unusable_ids_are_replaced(self, options):
        """Test that ids which are not valid GEDCOM tokens get fresh ones."""
        people = [Person(id="person-1", first_name="A"), Person(id="I1", first_name="B")]
        lines = generate(people, [], options).splitlines()
        assert "0 @I1@ INDI" in lines
        assert "0 @I2@ INDI" in lines
        assert lines.index("0 @I2@ INDI") < lines.index("0 @I1@ INDI")

    def test_relationships_to_unknown_people_are_dropped(self, options):
        """Test that dangling relationships never produce broken pointers."""
        people = [Person(id="I1", first_name="A")]
        relationships = [ParentRelationship(person_id="I1", related_person_id="I9")]
        gedcom_file = parse(generate(people, relationships, options))
        assert gedcom_file.families == []


# ============================================================================
# Family Synthesis Tests
# ============================================================================

class TestFamilies:
    """Tests for building FAM records from relationships."""

    def test_couple_with_child(self, family, options):
        """Test that a child of both partners joins the couple's family."""
        people, relationships = family
        gedcom_file = parse(generate(people, relationships, options))
        couple = gedcom_file.families[0]
        assert couple.first("HUSB").pointer == "I1"
        assert couple.first("WIFE").pointer == "I2"
        assert [link.pointer for link in couple.all("CHIL")] == ["I3"]
        assert couple.first("MARR").child_value("DATE") == "1 JUN 1980"

    def test_child_of_one_partner_gets_own_family(self, family, options):
        """Test that a step-child is not attached to the step-parent."""
        people, relationships = family
        gedcom_file = parse(generate(people, relationships, options))
        assert len(gedcom_file.families) == 2
        single = gedcom_file.families[1]
        assert single.first("HUSB").pointer == "I1"
        assert single.first("WIFE") is None
        assert [link.pointer for link in single.all("CHIL")] == ["I4"]

    def test_single_mother(self, options):
        """Test that a lone female parent is written as WIFE."""
        people = [
            Person(id="I1", first_name="Ann", gender=Gender.FEMALE),
            Person(id="I2", first_name="Bo"),
        ]
        relationships = [ParentRelationship(person_id="I2", related_person_id="I1")]
        family_record = parse(generate(people, relationships, options)).families[0]
        assert family_record.first("WIFE").pointer == "I1"
        assert family_record.first("HUSB") is None

    def test_family_links_on_individuals(self, family, options):
        """Test FAMS and FAMC back-links."""
        people, relationships = family
        gedcom_file = parse(generate(people, relationships, options))
        father = gedcom_file.individuals[0]
        child = gedcom_file.individuals[2]
        assert [link.pointer for link in father.all("FAMS")] == ["F1", "F2"]
        assert [link.pointer for link in child.all("FAMC")] == ["F1"]

    def test_sibling_relationships_are_not_written(self, options):
        """Test that SIBLING links do not create families."""
        people = [Person(id="I1"), Person(id="I2")]
        relationships = [{"type": "SIBLING", "person_id": "I1", "related_person_id": "I2"}]
        assert parse(generate(people, relationships, options)).families == []

    def test_camel_case_rows(self, options):
        """Test that stored rows with camelCase keys and lower-case types are exported."""
        people = [
            Person(id="I1", first_name="John", gender=Gender.MALE),
            Person(id="I2", first_name="Jane", gender=Gender.FEMALE),
            Person(id="I3", first_name="Jimmy"),
        ]
        relationships = [
            {"type": "spouse", "personId": "I2", "relatedPersonId": "I1", "marriageDate": "1980-06-01"},
            {"type": "parent", "personId": "I3", "relatedPersonId": "I1"},
            {"type": "Parent", "person_id": "I3", "relatedPersonId": "I2"},
        ]
        families = parse(generate(people, relationships, options)).families

        assert len(families) == 1
        couple = families[0]
        assert couple.first("HUSB").pointer == "I1"
        assert couple.first("WIFE").pointer == "I2"
        assert [link.pointer for link in couple.all("CHIL")] == ["I3"]
        assert couple.first("MARR").child_value("DATE") == "1 JUN 1980"

    def test_unknown_relationship_type_is_skipped(self, options):
        """Test that a row with an unrecognised type is left out."""
        people = [Person(id="I1"), Person(id="I2")]
        relationships = [{"type": "friend", "personId": "I1", "relatedPersonId": "I2"}]
        assert parse(generate(people, relationships, options)).families == []


# ============================================================================
# Serialisation Tests
# ============================================================================

class TestSerialize:
    """Tests for line splitting."""

    def test_long_value_uses_conc(self, options):
        """Test that long values split into CONC lines within the limit and rejoin exactly."""
        bio = " ".join(f"word{i}" for i in range(60))
        person = Person(id="I1", first_name="A", bio=bio)
        text = generate([person], [], options)

        assert any(line.startswith("2 CONC ") for line in text.splitlines())
        assert all(len(line) <= 80 for line in text.splitlines())
        assert parse(text).individuals[0].child_value("NOTE") == bio

    def test_newlines_use_cont(self, options):
        """Test that embedded newlines become CONT lines."""
        person = Person(id="I1", first_name="A", bio="line one\nline two")
        lines = generate([person], [], options).splitlines()
        index = lines.index("1 NOTE line one")
        assert lines[index + 1] == "2 CONT line two"

    def test_serialize_records(self):
        """Test serialising a hand-built record tree."""
        records = [
            ParsedRecord(level=0, tag="HEAD"),
            ParsedRecord(level=0, tag="INDI", xref="X1", children=[
                ParsedRecord(level=1, tag="NAME", value="A /B/"),
            ]),
            ParsedRecord(level=0, tag="TRLR"),
        ]
        assert serialize(records) == "0 HEAD\n0 @X1@ INDI\n1 NAME A /B/\n0 TRLR\n"

    def test_build_export_records_shape(self, family, options):
        """Test the top-level record order."""
        people, relationships = family
        tags = [record.tag for record in build_export_records(people, relationships, options)]
        assert tags == ["HEAD", "SUBM", "INDI", "INDI", "INDI", "INDI", "FAM", "FAM", "TRLR"]


# ============================================================================
# Round Trip Tests
# ============================================================================

class TestRoundTrip:
    """Tests that export then import preserves people and relationships."""

    def test_sample_round_trip(self, sample_mapping, options):
        """Test the sample file survives generate, parse and map unchanged."""
        text = generate(sample_mapping.people, sample_mapping.relationships, options)
        again = map_from_gedcom(parse(text))

        assert again.errors == []
        assert again.people == sample_mapping.people
        assert relationship_keys(again.relationships) == relationship_keys(sample_mapping.relationships)

    def test_step_family_round_trip(self, family, options):
        """Test that synthesised single-parent families do not add parents."""
        people, relationships = family
        again = map_from_gedcom(parse(generate(people, relationships, options)))
        assert relationship_keys(again.relationships) == relationship_keys(relationships)

    def test_long_ids_round_trip(self, options):
        """Test that long GEDCOM 7.0 ids survive export and re-import."""
        content = "\n".join([
            "0 HEAD", "1 GEDC", "2 VERS 7.0",
            "0 @PERSON_000000000000001@ INDI", "1 NAME Ann /Lee/", "1 SEX F",
            "0 @PERSON_000000000000002@ INDI", "1 NAME Bo /Lee/", "1 SEX M",
            "0 @FAMILY_000000000000001@ FAM",
            "1 WIFE @PERSON_000000000000001@", "1 CHIL @PERSON_000000000000002@",
            "0 TRLR",
        ])
        mapped = map_from_gedcom(parse(content))
        again = map_from_gedcom(parse(generate(mapped.people, mapped.relationships, options)))

        assert [person.id for person in again.people] == [
            "PERSON_000000000000001", "PERSON_000000000000002",
        ]
        assert relationship_keys(again.relationships) == relationship_keys(mapped.relationships)

    def test_deceased_flag_round_trip(self, options):
        """Test that is_living survives without a death date."""
        person = Person(id="I1", first_name="Ann", is_living=False)
        again = map_from_gedcom(parse(generate([person], [], options)))
        assert again.people[0].is_living is False


# ============================================================================
# Compatibility Tests
# ============================================================================

class TestPythonGedcomCompatibility:
    """Tests that python-gedcom's strict parser reads the output."""

    def test_strict_parse(self, sample_mapping, options):
        """Test that every exported individual is readable with its name."""
        text = generate(sample_mapping.people, sample_mapping.relationships, options)
        parser = Parser()
        parser.parse(io.BytesIO(text.encode("utf-8-sig")), strict=True)

        individuals = [
            element for element in parser.get_root_child_elements()
            if isinstance(element, IndividualElement)
        ]
        assert len(individuals) == 13
        names = {element.get_pointer(): element.get_name() for element in individuals}
        assert names["@I9@"] == ("William Arthur Philip", "Windsor")
