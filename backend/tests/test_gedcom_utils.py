"""Tests for GEDCOM utilities.

Uses tests/data/sample-family.ged (a small Carter family) for import tests.
"""

import os
import re
import pytest
import sys

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gedcom_utils import (
    GedcomParseError,
    clean_gedcom_lines,
    decode_gedcom_bytes,
    export_to_gedcom,
    parse_gedcom,
)
from models import Gender, Marriage, MarriageStatus, Person, full_name
from person_graph import check_symmetry, update_person


def by_name(people, name):
    return next(p for p in people if full_name(p) == name)


def spouse_pairs(people):
    index = {p.id: p for p in people}
    return {
        frozenset((full_name(p), full_name(index[m.spouse_id])))
        for p in people
        for m in p.marriages
        if m.spouse_id in index
    }


def parent_edges(people):
    index = {p.id: p for p in people}
    return {
        (full_name(index[pid]), full_name(p))
        for p in people
        for pid in p.parent_ids
        if pid in index
    }


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def imported(sample_gedcom):
    """People parsed from the sample file."""
    return parse_gedcom(sample_gedcom)


# ============================================================================
# Line cleaning
# ============================================================================

class TestLineCleaning:
    """Tests for the pre-parse sanitizer."""

    def test_malformed_lines_are_dropped(self):
        lines = clean_gedcom_lines("\ufeff0 HEAD\nnot a gedcom line\n  1 CHAR UTF-8\n\n0 TRLR")
        assert lines == ["0 HEAD", "1 CHAR UTF-8", "0 TRLR"]

    def test_level_jumps_are_dropped(self):
        lines = clean_gedcom_lines("0 @I1@ INDI\n3 DATE 1900\n1 NAME Ann /Lee/")
        assert lines == ["0 @I1@ INDI", "1 NAME Ann /Lee/"]

    def test_decode_falls_back_to_latin1(self):
        assert decode_gedcom_bytes("0 NOTE café".encode("latin-1")) == "0 NOTE café"
        assert decode_gedcom_bytes("\ufeff0 HEAD".encode("utf-8")) == "0 HEAD"


# ============================================================================
# Import
# ============================================================================

class TestParsing:
    """Tests for GEDCOM import."""

    def test_individuals_are_read(self, imported):
        assert len(imported) == 5
        assert {full_name(p) for p in imported} == {
            "John Carter", "Ellen Walsh", "Robert Carter", "Margaret Carter", "Unknown",
        }

    def test_individual_details(self, imported):
        john = by_name(imported, "John Carter")
        assert john.gender == Gender.MALE
        assert john.birth_date == "12 FEB 1901"
        assert john.birth_place == "Boston, Massachusetts"
        assert john.death_date == "3 JUN 1970"
        assert john.death_place is None
        assert john.occupation == "Carpenter"

    def test_first_name_record_wins(self, imported):
        ellen = by_name(imported, "Ellen Walsh")
        assert ellen.gender == Gender.FEMALE
        assert ellen.birth_date == "ABT 1905"

    def test_note_continuations(self, imported):
        assert by_name(imported, "Ellen Walsh").notes == "Came over from Cork\nin 1923."

    def test_unknown_sex_and_missing_surname(self, imported):
        unknown = by_name(imported, "Unknown")
        assert unknown.gender == Gender.OTHER
        assert unknown.last_name is None

    def test_adoption_flag(self, imported):
        assert by_name(imported, "Margaret Carter").is_adopted is True
        assert by_name(imported, "Robert Carter").is_adopted is False

    def test_family_links(self, imported):
        john = by_name(imported, "John Carter")
        ellen = by_name(imported, "Ellen Walsh")
        robert = by_name(imported, "Robert Carter")

        assert robert.parent_ids == [john.id, ellen.id]
        assert robert.id in john.children_ids
        assert robert.id in ellen.children_ids
        assert john.marriages == [
            Marriage(spouse_id=ellen.id, status=MarriageStatus.MARRIED, date="1928", place="Boston")
        ]
        assert check_symmetry(imported) == []

    def test_ids_are_fresh_on_every_import(self, sample_gedcom):
        first = {p.id for p in parse_gedcom(sample_gedcom)}
        second = {p.id for p in parse_gedcom(sample_gedcom)}
        assert first.isdisjoint(second)

    def test_malformed_input_is_tolerated(self):
        content = """0 HEAD
this line is garbage
0 @I1@ INDI
1 NAME Ann /Lee/
3 DATE 1900
1 SEX F
1 _CUSTOM something
0 @F1@ FAM
1 HUSB @I99@
1 WIFE @I1@
1 CHIL @I42@
0 TRLR"""
        people = parse_gedcom(content)
        assert len(people) == 1
        assert full_name(people[0]) == "Ann Lee"
        assert people[0].gender == Gender.FEMALE
        assert people[0].marriages == []

    def test_child_in_two_families_keeps_the_last(self):
        content = """0 @I1@ INDI
1 NAME A /X/
0 @I2@ INDI
1 NAME B /Y/
0 @I3@ INDI
1 NAME C /X/
0 @F1@ FAM
1 HUSB @I1@
1 CHIL @I3@
0 @F2@ FAM
1 WIFE @I2@
1 CHIL @I3@
0 TRLR"""
        people = parse_gedcom(content)
        a, b, c = (by_name(people, name) for name in ("A X", "B Y", "C X"))
        assert c.parent_ids == [b.id]
        assert a.children_ids == []
        assert check_symmetry(people) == []

    def test_family_marked_not_married_links_children_only(self):
        content = """0 @I1@ INDI
1 NAME A /X/
1 SEX M
0 @I2@ INDI
1 NAME B /Y/
1 SEX F
0 @I3@ INDI
1 NAME C /X/
0 @F1@ FAM
1 HUSB @I1@
1 WIFE @I2@
1 _STAT NEVER MARRIED
1 CHIL @I3@
0 TRLR"""
        people = parse_gedcom(content)
        a, b, c = (by_name(people, name) for name in ("A X", "B Y", "C X"))
        assert c.parent_ids == [a.id, b.id]
        assert a.marriages == [] and b.marriages == []
        assert check_symmetry(people) == []

    def test_long_values_are_joined_from_conc(self):
        content = """0 @I1@ INDI
1 NAME Ann /Lee/
1 OCCU Master wea
2 CONC ver
1 BIRT
2 PLAC Bally
3 CONC macarbry
0 TRLR"""
        person = parse_gedcom(content)[0]
        assert person.occupation == "Master weaver"
        assert person.birth_place == "Ballymacarbry"

    def test_empty_content(self):
        assert parse_gedcom("") == []

    def test_non_text_is_rejected(self):
        with pytest.raises(GedcomParseError):
            parse_gedcom(b"0 HEAD")


# ============================================================================
# Export
# ============================================================================

class TestExport:
    """Tests for GEDCOM export."""

    def test_header_and_trailer(self, people):
        content = export_to_gedcom(people)
        assert content.startswith(
            "0 HEAD\n1 SOUR Kintree\n1 GEDC\n2 VERS 5.5.1\n2 FORM LINEAGE-LINKED\n1 CHAR UTF-8\n"
        )
        assert content.endswith("0 TRLR\n")

    def test_individual_records(self, people):
        content = export_to_gedcom(people)
        assert "0 @I1@ INDI\n1 NAME George /Smith/\n1 SEX M\n1 BIRT\n2 DATE 1920-01-01\n1 DEAT\n" in content
        assert "1 NAME Pat /Doe/\n1 SEX U\n" in content
        assert len(re.findall(r"^0 @I\d+@ INDI$", content, re.MULTILINE)) == len(people)

    def test_one_family_per_marriage_plus_single_parents(self, people):
        content = export_to_gedcom(people)
        # two marriages, plus Alice -> Chloe and Chloe -> Carl
        assert len(re.findall(r"^0 @F\d+@ FAM$", content, re.MULTILINE)) == 4
        assert "0 @F1@ FAM\n1 HUSB @I1@\n1 WIFE @I2@\n1 MARR\n2 DATE 1948\n2 PLAC Leeds\n" in content
        assert "1 CHIL @I3@\n1 CHIL @I4@\n" in content

    def test_husband_chosen_by_gender(self):
        wife = Person(id="w", first_name="Wendy", gender=Gender.FEMALE, marriages=[Marriage(spouse_id="h")])
        husband = Person(id="h", first_name="Hank", gender=Gender.MALE, marriages=[Marriage(spouse_id="w")])
        content = export_to_gedcom([wife, husband])
        assert "0 @F1@ FAM\n1 HUSB @I2@\n1 WIFE @I1@\n" in content
        assert "0 @I1@ INDI\n1 NAME Wendy //\n1 SEX F\n1 FAMS @F1@\n" in content

    def test_self_and_dangling_marriages_are_skipped(self):
        loner = Person(id="a", first_name="A", marriages=[Marriage(spouse_id="a"), Marriage(spouse_id="ghost")])
        assert "@F" not in export_to_gedcom([loner])

    def test_multiline_notes_use_cont(self):
        person = Person(id="a", first_name="A", notes="line one\nline two")
        assert "1 NOTE line one\n2 CONT line two\n" in export_to_gedcom([person])

    def test_adopted_child_points_to_family_through_adop(self, family, people):
        family["sis"].is_adopted = True
        content = export_to_gedcom(people)
        sara = content.split("0 @I7@ INDI\n")[1].split("\n0 ")[0]
        assert "1 ADOP\n2 FAMC @F2@" in sara
        assert "\n1 FAMC" not in sara

    def test_unmarried_parents_share_a_family(self):
        father = Person(id="a", first_name="A", gender=Gender.MALE, children_ids=["c"])
        mother = Person(id="b", first_name="B", gender=Gender.FEMALE, children_ids=["c"])
        child = Person(id="c", first_name="C", parent_ids=["b", "a"])
        content = export_to_gedcom([mother, father, child])
        assert "0 @F1@ FAM\n1 HUSB @I2@\n1 WIFE @I1@\n1 _STAT NOT MARRIED\n1 CHIL @I3@\n" in content
        assert "1 MARR" not in content

    def test_family_cast_is_part_of_the_surname(self):
        person = Person(id="a", first_name="Ali", last_name="Khan", family_cast="Yusufzai")
        assert "1 NAME Ali /Khan Yusufzai/\n" in export_to_gedcom([person])


class TestRoundTrip:
    def test_round_trip_preserves_people_and_links(self, people):
        reimported = parse_gedcom(export_to_gedcom(people))

        assert len(reimported) == len(people)
        for original in people:
            copy = by_name(reimported, full_name(original))
            assert copy.gender == original.gender
            assert copy.birth_date == original.birth_date
            assert copy.death_date == original.death_date
        assert spouse_pairs(reimported) == spouse_pairs(people)
        assert parent_edges(reimported) == parent_edges(people)
        assert check_symmetry(reimported) == []

    def test_sample_file_round_trip(self, imported):
        reimported = parse_gedcom(export_to_gedcom(imported))
        assert spouse_pairs(reimported) == spouse_pairs(imported)
        assert parent_edges(reimported) == parent_edges(imported)
        assert by_name(reimported, "Ellen Walsh").notes == "Came over from Cork\nin 1923."
        assert by_name(reimported, "Margaret Carter").is_adopted is True

    def test_long_values_survive(self):
        person = Person(
            id="a",
            first_name="Ann",
            occupation="y" * 300,
            birth_date="1900",
            birth_place="Ballymacarbry" * 25,
            notes="n" * 400 + "\nsecond line",
        )
        copy = parse_gedcom(export_to_gedcom([person]))[0]
        assert copy.occupation == person.occupation
        assert copy.birth_place == person.birth_place
        assert copy.notes == person.notes

    def test_unmarried_parents_keep_their_children(self):
        father = Person(id="a", first_name="A", gender=Gender.MALE, children_ids=["c"])
        mother = Person(id="b", first_name="B", gender=Gender.FEMALE, children_ids=["c"])
        child = Person(id="c", first_name="C", parent_ids=["a", "b"])
        reimported = parse_gedcom(export_to_gedcom([father, mother, child]))
        assert by_name(reimported, "C").parent_ids == [by_name(reimported, "A").id, by_name(reimported, "B").id]
        assert all(p.marriages == [] for p in reimported)
        assert check_symmetry(reimported) == []

    def test_removed_marriage_keeps_parent_links(self, people):
        people = update_person(people, "dad", {"marriages": []})
        reimported = parse_gedcom(export_to_gedcom(people))
        assert spouse_pairs(reimported) == spouse_pairs(people)
        assert parent_edges(reimported) == parent_edges(people)
        assert check_symmetry(reimported) == []
