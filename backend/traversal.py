"""Ancestor, descendant and sibling enumeration over a list of people.

All traversals go through :func:`walk`, a breadth-first walker bounded by a
visited set, so malformed (cyclic) data always terminates. Ids that do not
resolve to a person are skipped rather than reported.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Mapping, TypeVar

from kinship import gendered_term, generation_term
from models import Person

logger = logging.getLogger("kintree.traversal")

State = TypeVar("State")
Expand = Callable[[Person, State], Iterable[tuple[str, State]]]


def index_people(people: Iterable[Person]) -> dict[str, Person]:
    """Map person id to person."""
    return {person.id: person for person in people}


def walk(
    index: Mapping[str, Person],
    seeds: Iterable[tuple[str, State]],
    expand: Expand,
) -> Iterator[tuple[Person, State]]:
    """
    Breadth-first walk over the people graph.

    Args:
        index: id -> person lookup
        seeds: (id, state) pairs that start the walk, in queue order
        expand: returns the (id, state) pairs reachable from a visited person

    Yields:
        (person, state) for every reachable person, in queue order. Each id is
        yielded at most once, with the state it was first enqueued with.
    """
    visited: set[str] = set()
    queue: deque[tuple[str, Any]] = deque()

    def enqueue(pairs: Iterable[tuple[str, Any]]) -> None:
        for person_id, state in pairs:
            if not person_id or person_id in visited or person_id not in index:
                continue
            visited.add(person_id)
            queue.append((person_id, state))

    enqueue(seeds)
    while queue:
        person_id, state = queue.popleft()
        person = index[person_id]
        yield person, state
        enqueue(expand(person, state))


def parents_of(person: Person) -> list[str]:
    return [pid for pid in person.parent_ids if pid]


def children_of(person: Person) -> list[str]:
    return [cid for cid in person.children_ids if cid]


def spouses_of(person: Person) -> list[str]:
    return [marriage.spouse_id for marriage in person.marriages if marriage.spouse_id]


def neighbors_of(person: Person) -> list[str]:
    """Parents, children and spouses, in that order."""
    return parents_of(person) + children_of(person) + spouses_of(person)


# ============================================================================
# Report records
# ============================================================================

@dataclass
class AncestorLevel:
    person: Person
    level: int


@dataclass
class RelativeRecord:
    person: Person
    relationship: str
    generation: int | None = None


@dataclass
class FamilyContext:
    """Resolved immediate family, as consumed by narrative generators."""
    parents: list[Person] = field(default_factory=list)
    spouses: list[Person] = field(default_factory=list)
    children: list[Person] = field(default_factory=list)


# ============================================================================
# Traversals
# ============================================================================

def get_ancestors_hierarchically(person: Person, people: Iterable[Person]) -> list[AncestorLevel]:
    """Every ancestor with its generation level (1 = parent, 2 = grandparent...)."""
    # the subject never appears in its own ancestry, even in cyclic data
    index = {pid: p for pid, p in index_people(people).items() if pid != person.id}
    seeds = [(pid, 1) for pid in parents_of(person)]

    return [
        AncestorLevel(person=ancestor, level=level)
        for ancestor, level in walk(
            index, seeds, lambda p, level: ((pid, level + 1) for pid in parents_of(p))
        )
    ]


def get_descendants_with_relationship(person: Person, people: Iterable[Person]) -> list[RelativeRecord]:
    """Every descendant labelled Son/Daughter/Child, Grandson..., Great-Grandson..."""
    index = {pid: p for pid, p in index_people(people).items() if pid != person.id}
    seeds = [(cid, 1) for cid in children_of(person)]

    results = []
    for descendant, generation in walk(
        index, seeds, lambda p, gen: ((cid, gen + 1) for cid in children_of(p))
    ):
        label = generation_term(generation, descendant.gender, ascending=False)
        results.append(RelativeRecord(person=descendant, relationship=label, generation=generation))
    return results


def _lineage_of(parent: Person, slot: int) -> str | None:
    lineage = gendered_term(parent.gender, "Paternal", "Maternal", "")
    if lineage:
        return lineage
    return {0: "Paternal", 1: "Maternal"}.get(slot)


def get_ancestors_with_relationship(person: Person, people: Iterable[Person]) -> list[RelativeRecord]:
    """
    Every ancestor labelled Father/Mother/Parent, Grandfather... with the
    lineage (Paternal or Maternal) appended from the grandparents upwards.

    The lineage is decided by the parent each branch starts from and carried
    unchanged up that branch.
    """
    index = {pid: p for pid, p in index_people(people).items() if pid != person.id}

    seeds = []
    for slot, parent_id in enumerate(person.parent_ids):
        parent = index.get(parent_id)
        if parent is not None:
            seeds.append((parent_id, (1, _lineage_of(parent, slot))))

    def expand(p: Person, state: tuple[int, str | None]):
        generation, lineage = state
        return ((pid, (generation + 1, lineage)) for pid in parents_of(p))

    results = []
    for ancestor, (generation, lineage) in walk(index, seeds, expand):
        label = generation_term(generation, ancestor.gender, ascending=True)
        if generation > 1 and lineage:
            label = f"{label} ({lineage})"
        results.append(RelativeRecord(person=ancestor, relationship=label, generation=generation))
    return results


def get_siblings_with_relationship(person: Person, people: Iterable[Person]) -> list[RelativeRecord]:
    """Everyone sharing at least one known parent, labelled Brother/Sister/Sibling."""
    index = {pid: p for pid, p in index_people(people).items() if pid != person.id}
    seeds = [(pid, "parent") for pid in parents_of(person)]

    def expand(p: Person, role: str):
        # one hop down from each parent
        if role == "parent":
            return ((cid, "sibling") for cid in children_of(p))
        return ()

    return [
        RelativeRecord(
            person=other,
            relationship=gendered_term(other.gender, "Brother", "Sister", "Sibling"),
        )
        for other, role in walk(index, seeds, expand)
        if role == "sibling"
    ]


def get_family_context(person: Person, people: Iterable[Person]) -> FamilyContext:
    """Resolve a person's parents, spouses and children, dropping dangling ids."""
    index = index_people(people)

    def resolve(ids: Iterable[str]) -> list[Person]:
        resolved = []
        seen = set()
        for pid in ids:
            if pid in index and pid not in seen:
                seen.add(pid)
                resolved.append(index[pid])
        return resolved

    context = FamilyContext(
        parents=resolve(parents_of(person)),
        spouses=resolve(spouses_of(person)),
        children=resolve(children_of(person)),
    )
    logger.debug(
        f"Family context for {person.id}: {len(context.parents)} parents, "
        f"{len(context.spouses)} spouses, {len(context.children)} children"
    )
    return context
