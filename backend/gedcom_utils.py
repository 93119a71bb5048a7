"""GEDCOM 5.5.1 import and export for person lists."""

import logging
import os
import re
import tempfile
import uuid
from dataclasses import dataclass, field
from typing import Iterable

from gedcom.element.element import Element
from gedcom.element.family import FamilyElement
from gedcom.element.individual import IndividualElement
from gedcom.parser import Parser

from models import Gender, Marriage, MarriageStatus, Person

logger = logging.getLogger("kintree.gedcom")

SOURCE_NAME = "Kintree"

# FAM status for a couple with children but no marriage
UNMARRIED_STATUS = "NOT MARRIED"
UNMARRIED_VALUES = {"NOT MARRIED", "NEVER MARRIED", "UNMARRIED"}

# LEVEL [@XREF@] TAG [VALUE]
GEDCOM_LINE = re.compile(r"^(\d+)\s+(?:(@[^@\s]+@)\s+)?([A-Za-z0-9_]+)(?:\s(.*))?$")


class GedcomParseError(ValueError):
    """The GEDCOM payload could not be read at all."""


# ============================================================================
# Import
# ============================================================================

@dataclass
class _FamilyRecord:
    husband: str | None = None
    wife: str | None = None
    children: list[str] = field(default_factory=list)
    date: str | None = None
    place: str | None = None
    married: bool = True


def decode_gedcom_bytes(content: bytes) -> str:
    """Decode an uploaded GEDCOM file, falling back to latin-1."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("UTF-8 decode failed, trying latin-1 encoding")
        return content.decode("latin-1")


def clean_gedcom_lines(text: str) -> list[str]:
    """
    Keep only well-formed GEDCOM lines.

    Lines that do not follow ``LEVEL [@XREF@] TAG [VALUE]`` or that jump more
    than one level deeper than the line before are dropped, so unknown or
    broken input never aborts an import.
    """
    lines = []
    last_level = -1
    dropped = 0

    for raw_line in text.lstrip("\ufeff").splitlines():
        match = GEDCOM_LINE.match(raw_line.strip())
        if not match:
            if raw_line.strip():
                dropped += 1
            continue
        level = int(match.group(1))
        if level > last_level + 1:
            dropped += 1
            continue
        last_level = level

        pointer, tag, value = match.group(2), match.group(3), match.group(4)
        line = str(level)
        if pointer:
            line += f" {pointer}"
        line += f" {tag}"
        if value:
            line += f" {value}"
        lines.append(line)

    if dropped:
        logger.warning(f"Ignored {dropped} malformed GEDCOM lines")
    return lines


def parse_gedcom_content(content: str) -> Parser:
    """Run the cleaned GEDCOM lines through python-gedcom."""
    lines = clean_gedcom_lines(content)

    # python-gedcom reads from a file path
    with tempfile.NamedTemporaryFile(mode="w", suffix=".ged", delete=False, encoding="utf-8") as f:
        f.write("".join(line + "\n" for line in lines))
        temp_path = f.name

    try:
        parser = Parser()
        parser.parse_file(temp_path, strict=False)
        return parser
    finally:
        os.unlink(temp_path)


def _event_details(event: Element) -> tuple[str | None, str | None]:
    date = place = None
    for child in event.get_child_elements():
        if child.get_tag() == "DATE":
            date = _text_with_continuations(child) or None
        elif child.get_tag() == "PLAC":
            place = _text_with_continuations(child) or None
    return date, place


def _text_with_continuations(element: Element) -> str:
    text = element.get_value() or ""
    for child in element.get_child_elements():
        if child.get_tag() == "CONT":
            text += "\n" + (child.get_value() or "")
        elif child.get_tag() == "CONC":
            text += child.get_value() or ""
    return text


def _read_individual(element: IndividualElement) -> Person:
    person = Person(id=str(uuid.uuid4()))
    name_seen = False

    for child in element.get_child_elements():
        tag = child.get_tag()
        value = child.get_value() or ""

        if tag == "NAME" and not name_seen:
            name_seen = True
            name_parts = _text_with_continuations(child).split("/")
            person.first_name = name_parts[0].strip()
            if len(name_parts) > 1:
                person.last_name = name_parts[1].strip() or None
        elif tag == "SEX":
            sex = value.strip().upper()
            person.gender = {"M": Gender.MALE, "F": Gender.FEMALE}.get(sex, Gender.OTHER)
        elif tag == "BIRT":
            person.birth_date, person.birth_place = _event_details(child)
        elif tag == "DEAT":
            person.death_date, person.death_place = _event_details(child)
        elif tag == "OCCU":
            person.occupation = _text_with_continuations(child) or None
        elif tag == "NOTE":
            note = _text_with_continuations(child)
            if note:
                person.notes = f"{person.notes}\n{note}" if person.notes else note
        elif tag == "ADOP":
            person.is_adopted = True

    return person


def _read_family(element: FamilyElement) -> _FamilyRecord:
    family = _FamilyRecord()
    for child in element.get_child_elements():
        tag = child.get_tag()
        value = (child.get_value() or "").strip()
        if tag == "HUSB":
            family.husband = value
        elif tag == "WIFE":
            family.wife = value
        elif tag == "CHIL" and value:
            family.children.append(value)
        elif tag == "MARR":
            family.date, family.place = _event_details(child)
        elif tag == "_STAT" and value.upper() in UNMARRIED_VALUES:
            family.married = False
    return family


def _link_family(family: _FamilyRecord, xref_to_person: dict[str, Person]) -> None:
    husband = xref_to_person.get(family.husband or "")
    wife = xref_to_person.get(family.wife or "")

    if family.married and husband is not None and wife is not None and husband.id != wife.id:
        if not any(m.spouse_id == wife.id for m in husband.marriages):
            husband.marriages.append(
                Marriage(spouse_id=wife.id, status=MarriageStatus.MARRIED, date=family.date, place=family.place)
            )
            wife.marriages.append(
                Marriage(spouse_id=husband.id, status=MarriageStatus.MARRIED, date=family.date, place=family.place)
            )

    parents = [p for p in (husband, wife) if p is not None]
    parent_ids = {parent.id for parent in parents}
    by_id = {person.id: person for person in xref_to_person.values()}

    for child_xref in family.children:
        child = xref_to_person.get(child_xref)
        if child is None:
            continue
        # a child listed in several families keeps the last one
        for old_parent_id in child.parent_ids:
            old_parent = by_id.get(old_parent_id)
            if old_parent is not None and old_parent_id not in parent_ids:
                old_parent.children_ids = [cid for cid in old_parent.children_ids if cid != child.id]
        child.parent_ids = [parent.id for parent in parents]
        for parent in parents:
            if child.id not in parent.children_ids:
                parent.children_ids.append(child.id)


def parse_gedcom(text: str) -> list[Person]:
    """
    Convert GEDCOM text into people with fresh ids and symmetric links.

    Individuals are read first; families are resolved in a second pass so
    that cross-references may point forwards. Unknown tags are ignored.

    Raises:
        GedcomParseError: when the payload is not text or cannot be parsed
    """
    if not isinstance(text, str):
        raise GedcomParseError(f"GEDCOM content must be text, got {type(text).__name__}")

    try:
        parser = parse_gedcom_content(text)
    except Exception as e:
        raise GedcomParseError(f"Failed to parse GEDCOM content: {e}") from e

    people: list[Person] = []
    xref_to_person: dict[str, Person] = {}
    families: list[_FamilyRecord] = []

    for element in parser.get_root_child_elements():
        pointer = element.get_pointer()
        if not pointer:
            continue
        if isinstance(element, IndividualElement):
            person = _read_individual(element)
            people.append(person)
            xref_to_person[pointer] = person
        elif isinstance(element, FamilyElement):
            families.append(_read_family(element))

    for family in families:
        _link_family(family, xref_to_person)

    logger.info(f"Parsed {len(people)} individuals and {len(families)} families from GEDCOM")
    return people


# ============================================================================
# Export
# ============================================================================

def serialize_elements(elements: Iterable[Element]) -> str:
    """Write element trees as GEDCOM lines, levels taken from the nesting."""
    lines = []

    def element_to_lines(element: Element, level: int = 0) -> None:
        pointer = element.get_pointer() or ""
        tag = element.get_tag()
        value = element.get_value() or ""

        line = f"{level} {pointer} {tag}" if pointer else f"{level} {tag}"
        if value:
            line += f" {value}"
        lines.append(line)

        for child in element.get_child_elements():
            element_to_lines(child, level + 1)

    for element in elements:
        element_to_lines(element, 0)

    return "\n".join(lines) + "\n"


def _child(parent: Element, tag: str, value: str = "") -> Element:
    element = Element(level=parent.get_level() + 1, pointer="", tag=tag, value=value)
    parent.add_child_element(element)
    return element


def _event(parent: Element, tag: str, date: str | None, place: str | None) -> None:
    if not date and not place:
        return
    event = _child(parent, tag)
    if date:
        _child(event, "DATE", date)
    if place:
        _child(event, "PLAC", place)


def _header() -> Element:
    head = Element(level=0, pointer="", tag="HEAD", value="")
    _child(head, "SOUR", SOURCE_NAME)
    gedc = _child(head, "GEDC")
    _child(gedc, "VERS", "5.5.1")
    _child(gedc, "FORM", "LINEAGE-LINKED")
    _child(head, "CHAR", "UTF-8")
    return head


@dataclass
class _FamilyPlan:
    xref: str
    husband: Person | None
    wife: Person | None
    children: list[str]
    date: str | None = None
    place: str | None = None
    married: bool = True


def _plan_families(people: list[Person], index: dict[str, Person]) -> list[_FamilyPlan]:
    """
    One family per distinct marriage, then one per unmarried couple with
    children, then one per known single parent.
    """
    plans: list[_FamilyPlan] = []
    processed: set[str] = set()

    for person in people:
        for marriage in person.marriages:
            spouse = index.get(marriage.spouse_id)
            if spouse is None or spouse.id == person.id:
                continue
            key = "-".join(sorted([person.id, spouse.id]))
            if key in processed:
                continue
            processed.add(key)

            if person.gender == Gender.MALE:
                husband, wife = person, spouse
            else:
                husband, wife = spouse, person
            shared = [
                cid for cid in person.children_ids if cid in spouse.children_ids and cid in index
            ]
            plans.append(_FamilyPlan(
                xref=f"@F{len(plans) + 1}@",
                husband=husband,
                wife=wife,
                children=shared,
                date=marriage.date,
                place=marriage.place,
            ))

    covered = {cid for plan in plans for cid in plan.children}
    couple_children: dict[tuple[str, str], list[str]] = {}
    solo_children: dict[str, list[str]] = {}
    for person in people:
        known_parents = [pid for pid in person.parent_ids if pid in index]
        if person.id in covered:
            continue
        if len(known_parents) == 2:
            couple_children.setdefault((known_parents[0], known_parents[1]), []).append(person.id)
        elif len(known_parents) == 1:
            solo_children.setdefault(known_parents[0], []).append(person.id)

    for (first_id, second_id), children in couple_children.items():
        first, second = index[first_id], index[second_id]
        if second.gender == Gender.MALE and first.gender != Gender.MALE:
            first, second = second, first
        plans.append(_FamilyPlan(
            xref=f"@F{len(plans) + 1}@",
            husband=first,
            wife=second,
            children=children,
            married=False,
        ))

    for parent_id, children in solo_children.items():
        parent = index[parent_id]
        is_male = parent.gender == Gender.MALE
        plans.append(_FamilyPlan(
            xref=f"@F{len(plans) + 1}@",
            husband=parent if is_male else None,
            wife=None if is_male else parent,
            children=children,
        ))

    return plans


def export_to_gedcom(people: Iterable[Person]) -> str:
    """
    Render people as a GEDCOM 5.5.1 document.

    Cross-reference numbers are assigned in list order (@I1@, @I2@, ...,
    @F1@, ...). Marriages are written once per spouse pair. Parents who share
    children without a marriage get a family marked `_STAT NOT MARRIED`.
    Every child gets a FAMC pointer to the family of its known parents.
    """
    people = list(people)
    index = {person.id: person for person in people}
    person_xref = {person.id: f"@I{n}@" for n, person in enumerate(people, start=1)}

    families = _plan_families(people, index)
    famc: dict[str, str] = {}
    fams: dict[str, list[str]] = {person.id: [] for person in people}
    for family in families:
        for spouse in (family.husband, family.wife):
            if spouse is not None:
                fams[spouse.id].append(family.xref)
        for child_id in family.children:
            famc[child_id] = family.xref

    records = [_header()]

    for person in people:
        indi = IndividualElement(level=0, pointer=person_xref[person.id], tag="INDI", value="")
        surname = " ".join(part for part in (person.last_name, person.family_cast) if part)
        _child(indi, "NAME", f"{person.first_name or ''} /{surname}/")
        _child(indi, "SEX", {Gender.MALE: "M", Gender.FEMALE: "F"}.get(person.gender, "U"))
        _event(indi, "BIRT", person.birth_date, person.birth_place)
        _event(indi, "DEAT", person.death_date, person.death_place)
        if person.occupation:
            _child(indi, "OCCU", person.occupation)
        if person.notes:
            first_line, *more_lines = person.notes.splitlines() or [""]
            note = _child(indi, "NOTE", first_line)
            for line in more_lines:
                _child(note, "CONT", line)

        family_xref = famc.get(person.id)
        if family_xref and person.is_adopted:
            adop = _child(indi, "ADOP")
            _child(adop, "FAMC", family_xref)
        elif family_xref:
            _child(indi, "FAMC", family_xref)

        for xref in fams[person.id]:
            _child(indi, "FAMS", xref)
        records.append(indi)

    for family in families:
        fam = FamilyElement(level=0, pointer=family.xref, tag="FAM", value="")
        if family.husband is not None:
            _child(fam, "HUSB", person_xref[family.husband.id])
        if family.wife is not None:
            _child(fam, "WIFE", person_xref[family.wife.id])
        if not family.married:
            _child(fam, "_STAT", UNMARRIED_STATUS)
        _event(fam, "MARR", family.date, family.place)
        for child_id in family.children:
            _child(fam, "CHIL", person_xref[child_id])
        records.append(fam)

    records.append(Element(level=0, pointer="", tag="TRLR", value=""))

    logger.info(f"Exported {len(people)} individuals and {len(families)} families to GEDCOM")
    return serialize_elements(records)
