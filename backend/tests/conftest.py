"""Shared fixtures: a small three-generation family."""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Gender, Marriage, MarriageStatus, Person


def _person(person_id, first_name, last_name, gender, **fields):
    return Person(id=person_id, first_name=first_name, last_name=last_name, gender=gender, **fields)


def _parent_of(parent, child):
    parent.children_ids.append(child.id)
    child.parent_ids.append(parent.id)


def _marry(first, second, **details):
    first.marriages.append(Marriage(spouse_id=second.id, status=MarriageStatus.MARRIED, **details))
    second.marriages.append(Marriage(spouse_id=first.id, status=MarriageStatus.MARRIED, **details))


@pytest.fixture
def family():
    """
    George + Grace
      |- David + Mary
      |    |- Sam
      |    |- Sara
      |- Alice
           |- Chloe
                |- Carl
    Pat is unrelated to everyone.
    """
    george = _person("gp", "George", "Smith", Gender.MALE, birth_date="1920-01-01", death_date="1990-07-01")
    grace = _person("gm", "Grace", "Smith", Gender.FEMALE, birth_date="1922-05-10", death_date="2000-05-10")
    david = _person("dad", "David", "Smith", Gender.MALE, birth_date="1950-03-15")
    alice = _person("aunt", "Alice", "Smith", Gender.FEMALE, birth_date="1952")
    mary = _person("mom", "Mary", "Jones", Gender.FEMALE, birth_date="1953-11-02")
    sam = _person("me", "Sam", "Smith", Gender.MALE, birth_date="1980-06-01")
    sara = _person("sis", "Sara", "Smith", Gender.FEMALE)
    chloe = _person("cousin", "Chloe", "Brown", Gender.FEMALE)
    carl = _person("cousin_kid", "Carl", "Brown", Gender.MALE)
    pat = _person("stranger", "Pat", "Doe", Gender.OTHER)

    _marry(george, grace, date="1948", place="Leeds")
    _marry(david, mary)
    for child in (david, alice):
        _parent_of(george, child)
        _parent_of(grace, child)
    for child in (sam, sara):
        _parent_of(david, child)
        _parent_of(mary, child)
    _parent_of(alice, chloe)
    _parent_of(chloe, carl)

    return {p.id: p for p in (george, grace, david, alice, mary, sam, sara, chloe, carl, pat)}


@pytest.fixture
def people(family):
    """The family as a list, in fixture order."""
    return list(family.values())


@pytest.fixture
def sample_gedcom_path():
    """Path to the sample GEDCOM file."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "sample-family.ged")


@pytest.fixture
def sample_gedcom(sample_gedcom_path):
    with open(sample_gedcom_path, encoding="utf-8") as f:
        return f.read()
