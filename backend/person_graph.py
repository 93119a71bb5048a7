"""Person graph mutations that keep parent/child and marriage links symmetric.

Every function takes the current list of people and returns a new list; the
input is never modified, so a call that fails part way leaves the caller's
snapshot intact.
"""

import logging
import uuid
from typing import Any, Iterable, Mapping

from models import Marriage, MarriageStatus, Person, PersonCreate, PersonUpdate

logger = logging.getLogger("kintree.person_graph")


def _snapshot(people: Iterable[Person]) -> list[Person]:
    return [person.model_copy(deep=True) for person in people]


def _find(people: list[Person], person_id: str) -> Person | None:
    if not person_id:
        return None
    for person in people:
        if person.id == person_id:
            return person
    return None


def get_person_by_id(people: Iterable[Person], person_id: str) -> Person | None:
    """Look a person up; dangling ids simply resolve to None."""
    return _find(list(people), person_id)


# ============================================================================
# Link helpers (operate in place on a snapshot)
# ============================================================================

def _add_child_to_parent(people: list[Person], child_id: str, parent_id: str) -> None:
    parent = _find(people, parent_id)
    if parent is not None and child_id not in parent.children_ids:
        parent.children_ids.append(child_id)


def _remove_child_from_parent(people: list[Person], child_id: str, parent_id: str) -> None:
    parent = _find(people, parent_id)
    if parent is not None:
        parent.children_ids = [cid for cid in parent.children_ids if cid != child_id]


def _add_spouse_relationship(people: list[Person], first_id: str, second_id: str) -> None:
    """Record a Married marriage on both sides unless one is already present."""
    if not first_id or not second_id or first_id == second_id:
        return
    first = _find(people, first_id)
    second = _find(people, second_id)
    if first is None or second is None:
        return

    if not any(m.spouse_id == second_id for m in first.marriages):
        first.marriages.append(Marriage(spouse_id=second_id, status=MarriageStatus.MARRIED))
    if not any(m.spouse_id == first_id for m in second.marriages):
        second.marriages.append(Marriage(spouse_id=first_id, status=MarriageStatus.MARRIED))


def _link_parents(people: list[Person], child_id: str, parent_ids: list[str]) -> None:
    known = [pid for pid in parent_ids if pid]
    if len(parent_ids) == 2 and len(known) == 2:
        _add_spouse_relationship(people, known[0], known[1])
    for parent_id in known:
        _add_child_to_parent(people, child_id, parent_id)


# ============================================================================
# Operations
# ============================================================================

def add_person(people: Iterable[Person], data: PersonCreate | Mapping[str, Any]) -> list[Person]:
    """
    Create a person with a fresh id and link them to their parents.

    The new person is appended to the returned list. Any marriages or
    children supplied in ``data`` are ignored; those links are only created
    through updates of the related people.
    """
    if not isinstance(data, PersonCreate):
        data = PersonCreate.model_validate(dict(data))

    new_people = _snapshot(people)
    fields = data.model_dump(exclude={"id", "marriages", "children_ids"})
    person = Person(**fields, id=str(uuid.uuid4()))
    new_people.append(person)

    _link_parents(new_people, person.id, person.parent_ids)

    logger.info(f"Added person {person.id}")
    return new_people


def update_person(
    people: Iterable[Person], person_id: str, patch: PersonUpdate | Mapping[str, Any]
) -> list[Person]:
    """
    Apply a partial update and repair the reciprocal links it affects.

    - ``parent_ids``: when different from the stored list, the person is
      removed from every old parent's children and added to every new one;
      two new parents are married to each other.
    - ``marriages``: spouses no longer listed lose their mirrored record,
      every listed spouse gets a mirrored record (created or overwritten)
      with the same status, date and place.
    - anything else overwrites the stored value.

    A mapping patch is read as a PersonUpdate (camelCase or snake_case
    keys), so ``id`` and ``children_ids`` can never be patched. An unknown
    ``person_id`` leaves the list unchanged.
    """
    if not isinstance(patch, PersonUpdate):
        patch = PersonUpdate.model_validate(dict(patch))
    changes = patch.to_patch()

    new_people = _snapshot(people)
    person = _find(new_people, person_id)
    if person is None:
        logger.debug(f"Update skipped, person {person_id} not found")
        return new_people

    if changes.get("parent_ids") is not None:
        new_parent_ids = list(changes["parent_ids"])
        if new_parent_ids != person.parent_ids:
            for parent_id in person.parent_ids:
                _remove_child_from_parent(new_people, person_id, parent_id)
            _link_parents(new_people, person_id, new_parent_ids)

    if changes.get("marriages") is not None:
        new_marriages = changes["marriages"]
        new_spouse_ids = {m.spouse_id for m in new_marriages}

        for old in person.marriages:
            if old.spouse_id in new_spouse_ids:
                continue
            spouse = _find(new_people, old.spouse_id)
            if spouse is not None:
                spouse.marriages = [m for m in spouse.marriages if m.spouse_id != person_id]

        for marriage in new_marriages:
            spouse = _find(new_people, marriage.spouse_id)
            if spouse is None or spouse.id == person_id:
                continue
            reciprocal = marriage.model_copy(update={"spouse_id": person_id})
            for position, existing in enumerate(spouse.marriages):
                if existing.spouse_id == person_id:
                    spouse.marriages[position] = reciprocal
                    break
            else:
                spouse.marriages.append(reciprocal)

    # the snapshot may already carry links added above
    merged = Person.model_validate({**person.model_dump(), **changes})
    position = next(i for i, candidate in enumerate(new_people) if candidate is person)
    new_people[position] = merged
    fields = ", ".join(sorted(changes)) or "no fields"
    logger.info(f"Updated person {person_id} ({fields})")
    return new_people


def delete_person(people: Iterable[Person], person_id: str) -> list[Person]:
    """Remove a person and every reference to them held by other people."""
    new_people = _snapshot(people)
    if _find(new_people, person_id) is None:
        return new_people

    remaining = []
    for other in new_people:
        if other.id == person_id:
            continue
        other.children_ids = [cid for cid in other.children_ids if cid != person_id]
        other.parent_ids = [pid for pid in other.parent_ids if pid != person_id]
        other.marriages = [m for m in other.marriages if m.spouse_id != person_id]
        remaining.append(other)

    logger.info(f"Deleted person {person_id}")
    return remaining


def check_symmetry(people: Iterable[Person]) -> list[str]:
    """
    List every broken reciprocal link.

    Dangling references (ids with no matching person) are not violations:
    they are read as unknown people everywhere.
    """
    people = list(people)
    index = {person.id: person for person in people}
    problems = []

    for person in people:
        for parent_id in person.parent_ids:
            parent = index.get(parent_id)
            if parent is not None and person.id not in parent.children_ids:
                problems.append(f"{parent_id} is a parent of {person.id} but does not list them as a child")
        for child_id in person.children_ids:
            child = index.get(child_id)
            if child is not None and person.id not in child.parent_ids:
                problems.append(f"{child_id} is a child of {person.id} but does not list them as a parent")
        for marriage in person.marriages:
            spouse = index.get(marriage.spouse_id)
            if spouse is None:
                continue
            mirrored = [m for m in spouse.marriages if m.spouse_id == person.id]
            if not mirrored:
                problems.append(f"{marriage.spouse_id} has no marriage record back to {person.id}")
                continue
            back = mirrored[0]
            if (back.status, back.date, back.place) != (marriage.status, marriage.date, marriage.place):
                problems.append(f"marriage {person.id} <-> {marriage.spouse_id} differs between spouses")

    return problems
