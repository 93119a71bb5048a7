"""Relationship resolution between two people of the same tree.

Blood kinship (through the nearest common ancestor) is preferred; when the
two people share no ancestor the shortest chain of parent, child and spouse
links is described instead.
"""

import logging
from typing import Iterable, Literal

from pydantic import BaseModel, Field

from kinship import gendered_term, great_prefix, ordinal, removal_phrase
from models import Gender, Person, full_name
from traversal import index_people, neighbors_of, parents_of, spouses_of, walk

logger = logging.getLogger("kintree.relationships")

NO_PATH_DESCRIPTION = "No relationship path could be found between these two individuals."
SAME_PERSON_DESCRIPTION = "They are the same person."


class Relationship(BaseModel):
    """Outcome of a relationship query."""
    type: Literal["blood", "path", "none"]
    description: str
    lca: Person | None = None
    path1: list[Person] = Field(default_factory=list)
    path2: list[Person] = Field(default_factory=list)
    path: list[Person] = Field(default_factory=list)


# ============================================================================
# Lowest common ancestor
# ============================================================================

def _walk_up_with_paths(index: dict[str, Person], start: Person):
    """Walk up the parent links yielding (ancestor, path from start to ancestor)."""
    def expand(person: Person, path: tuple[Person, ...]):
        for pid in parents_of(person):
            if pid in index:
                yield pid, path + (index[pid],)

    return walk(index, [(start.id, (start,))], expand)


def path_to_ancestor(index: dict[str, Person], start_id: str, ancestor_id: str) -> list[Person] | None:
    """Shortest upward path from start to ancestor, both inclusive."""
    start = index.get(start_id)
    if start is None:
        return None
    for ancestor, path in _walk_up_with_paths(index, start):
        if ancestor.id == ancestor_id:
            return list(path)
    return None


def find_lca_and_paths(
    person1_id: str, person2_id: str, people: Iterable[Person]
) -> tuple[Person, list[Person], list[Person]] | None:
    """
    Find the common ancestor first reached when walking up from person 2.

    Person 1's ancestor set includes person 1 itself, and the walk from
    person 2 starts at person 2, so direct ancestry is found as well.

    Returns:
        (lca, path1, path2) where each path runs from the person up to the
        ancestor inclusive, or None when the two share no ancestor.
    """
    index = index_people(people)
    person1 = index.get(person1_id)
    person2 = index.get(person2_id)
    if person1 is None or person2 is None:
        return None

    person1_ancestors = {
        ancestor.id
        for ancestor, _ in walk(
            index, [(person1.id, None)], lambda p, _: ((pid, None) for pid in parents_of(p))
        )
    }

    for candidate, path2 in _walk_up_with_paths(index, person2):
        if candidate.id not in person1_ancestors:
            continue
        path1 = path_to_ancestor(index, person1.id, candidate.id)
        if path1 is not None:
            return candidate, path1, list(path2)
    return None


# ============================================================================
# Descriptions
# ============================================================================

def _ancestor_term(ancestor: Person, depth: int) -> str:
    if depth == 1:
        return gendered_term(ancestor.gender, "father", "mother", "parent")
    base = gendered_term(ancestor.gender, "grandfather", "grandmother", "grandparent")
    return great_prefix(depth - 2) + base


def _aunt_uncle_term(person: Person, removal: int) -> str:
    term = gendered_term(person.gender, "uncle", "aunt", "aunt/uncle")
    if removal <= 1:
        return term
    if person.gender == Gender.OTHER:
        term = "grandaunt/granduncle"
    else:
        term = "grand" + term
    return great_prefix(removal - 2) + term


def describe_blood_relationship(
    person1: Person, person2: Person, lca: Person, path1: list[Person], path2: list[Person]
) -> str:
    """Describe kinship from the generational distances to the common ancestor."""
    d1 = len(path1) - 1
    d2 = len(path2) - 1

    if lca.id in (person1.id, person2.id):
        if lca.id == person1.id:
            ancestor, descendant, depth = person1, person2, d2
        else:
            ancestor, descendant, depth = person2, person1, d1
        if depth == 0:
            return SAME_PERSON_DESCRIPTION
        return f"{full_name(ancestor)} is the {_ancestor_term(ancestor, depth)} of {full_name(descendant)}."

    if d1 == 1 and d2 == 1:
        return f"{full_name(person1)} and {full_name(person2)} are siblings."

    cousin_level = min(d1, d2) - 1
    removal = abs(d1 - d2)

    if cousin_level == 0:
        elder, younger = (person1, person2) if d1 < d2 else (person2, person1)
        return f"{full_name(elder)} is the {_aunt_uncle_term(elder, removal)} of {full_name(younger)}."

    cousin_term = "first" if cousin_level == 1 else ordinal(cousin_level)
    return (
        f"{full_name(person1)} and {full_name(person2)} are "
        f"{cousin_term} cousins{removal_phrase(removal)}."
    )


def describe_path_segment(current: Person, following: Person) -> str:
    """Relation word for one step of a generic path, read from the edge present."""
    if following.id in current.children_ids:
        return gendered_term(current.gender, "is the father of", "is the mother of", "is the parent of")
    if following.id in current.parent_ids:
        return gendered_term(current.gender, "is the son of", "is the daughter of", "is the child of")
    if following.id in spouses_of(current):
        return gendered_term(current.gender, "is the husband of", "is the wife of", "is the spouse of")
    return "is related to"


def describe_path(path: list[Person]) -> str:
    """Chain a path into one sentence: "A is the husband of B, who is the father of C."."""
    if len(path) < 2:
        return SAME_PERSON_DESCRIPTION

    description = full_name(path[0])
    for position, (current, following) in enumerate(zip(path, path[1:])):
        joiner = ", who " if position > 0 else " "
        description += f"{joiner}{describe_path_segment(current, following)} {full_name(following)}"
    return description + "."


# ============================================================================
# Generic path
# ============================================================================

def find_generic_path(person1: Person, person2: Person, people: Iterable[Person]) -> list[Person] | None:
    """Shortest path over parent, child and spouse links, or None when disconnected."""
    index = index_people(people)

    def expand(person: Person, path: tuple[Person, ...]):
        for neighbor_id in neighbors_of(person):
            if neighbor_id in index:
                yield neighbor_id, path + (index[neighbor_id],)

    for person, path in walk(index, [(person1.id, (person1,))], expand):
        if person.id == person2.id:
            return list(path)
    return None


# ============================================================================
# Entry point
# ============================================================================

def find_relationship(person1_id: str, person2_id: str, people: Iterable[Person]) -> Relationship | None:
    """
    Describe how person 1 relates to person 2.

    Returns None when either id is empty or unknown, or both are the same.
    """
    if not person1_id or not person2_id or person1_id == person2_id:
        return None

    people = list(people)
    index = index_people(people)
    person1 = index.get(person1_id)
    person2 = index.get(person2_id)
    if person1 is None or person2 is None:
        return None

    lca_result = find_lca_and_paths(person1_id, person2_id, people)
    if lca_result:
        lca, path1, path2 = lca_result
        logger.debug(f"Common ancestor of {person1_id} and {person2_id} is {lca.id}")
        return Relationship(
            type="blood",
            description=describe_blood_relationship(person1, person2, lca, path1, path2),
            lca=lca,
            path1=path1,
            path2=path2,
        )

    path = find_generic_path(person1, person2, people)
    if path:
        return Relationship(type="path", description=describe_path(path), path=path)

    logger.debug(f"No relationship path between {person1_id} and {person2_id}")
    return Relationship(type="none", description=NO_PATH_DESCRIPTION)
