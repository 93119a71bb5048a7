"""The set of trees a user works with, the active tree and its persistence."""

import logging
import re
import uuid
from datetime import datetime
from typing import Any, Mapping

import person_graph
from backup import backup_filename, restored_tree_name, tree_from_backup_json, tree_to_backup_json
from gedcom_utils import export_to_gedcom, parse_gedcom
from models import Person, PersonCreate, PersonUpdate, Tree
from storage import StorageError, TreeStore

logger = logging.getLogger("kintree.workspace")

ACTIVE_TREE_KEY = "activeTreeId"


class TreeNotFoundError(KeyError):
    """No tree with the requested id."""


class TreeWorkspace:
    """
    Owns every loaded tree and which one is active.

    Person mutations go through :mod:`person_graph` on the active tree and
    are then written to the store. The in-memory tree is updated before the
    write, so a failed write (StorageError) leaves memory ahead of storage
    until the next successful save.
    """

    def __init__(self, store: TreeStore, default_tree_name: str = "My First Tree") -> None:
        self.store = store
        self.default_tree_name = default_tree_name
        self.trees: dict[str, Tree] = {}
        self.active_tree_id = ""

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Read trees from the store, creating a first tree when it is empty."""
        trees = await self.store.get_all_trees()
        active_id = await self.store.get_app_state(ACTIVE_TREE_KEY)

        if trees:
            self.trees = dict(trees)
            self.active_tree_id = active_id if active_id in trees else next(iter(trees))
            logger.info(f"Loaded {len(trees)} trees, active tree {self.active_tree_id}")
            return

        logger.info("Store is empty, creating default tree")
        await self.create_tree(self.default_tree_name)

    @property
    def active_tree(self) -> Tree | None:
        return self.trees.get(self.active_tree_id)

    @property
    def people(self) -> list[Person]:
        tree = self.active_tree
        return tree.people if tree else []

    def get_tree(self, tree_id: str) -> Tree:
        tree = self.trees.get(tree_id)
        if tree is None:
            raise TreeNotFoundError(tree_id)
        return tree

    async def _activate(self, tree: Tree) -> None:
        self.trees[tree.id] = tree
        self.active_tree_id = tree.id
        await self.store.save_tree(tree)
        await self.store.save_app_state(ACTIVE_TREE_KEY, tree.id)

    async def create_tree(self, name: str) -> Tree:
        tree = Tree(id=str(uuid.uuid4()), name=name, people=[])
        await self._activate(tree)
        logger.info(f"Created tree '{name}' ({tree.id})")
        return tree

    async def switch_tree(self, tree_id: str) -> None:
        if tree_id not in self.trees:
            raise TreeNotFoundError(tree_id)
        self.active_tree_id = tree_id
        await self.store.save_app_state(ACTIVE_TREE_KEY, tree_id)

    async def delete_tree(self, tree_id: str) -> None:
        if tree_id not in self.trees:
            raise TreeNotFoundError(tree_id)
        del self.trees[tree_id]
        if self.active_tree_id == tree_id:
            self.active_tree_id = next(iter(self.trees), "")

        await self.store.delete_tree(tree_id)
        await self.store.save_app_state(ACTIVE_TREE_KEY, self.active_tree_id)
        logger.info(f"Deleted tree {tree_id}")

    # ------------------------------------------------------------------
    # People on the active tree
    # ------------------------------------------------------------------

    async def _replace_people(self, people: list[Person]) -> None:
        tree = self.active_tree
        if tree is None:
            return
        updated = tree.model_copy(update={"people": people})
        self.trees[tree.id] = updated
        try:
            await self.store.save_tree(updated)
        except StorageError:
            logger.error(f"Could not persist tree {tree.id}; in-memory state is ahead of storage")
            raise

    def get_person_by_id(self, person_id: str) -> Person | None:
        return person_graph.get_person_by_id(self.people, person_id)

    async def add_person(self, data: PersonCreate | Mapping[str, Any]) -> Person | None:
        """Add a person to the active tree; returns the stored record."""
        if self.active_tree is None:
            return None
        people = person_graph.add_person(self.people, data)
        await self._replace_people(people)
        return people[-1]

    async def update_person(self, person_id: str, patch: PersonUpdate | Mapping[str, Any]) -> Person | None:
        if self.get_person_by_id(person_id) is None:
            return None
        await self._replace_people(person_graph.update_person(self.people, person_id, patch))
        return self.get_person_by_id(person_id)

    async def delete_person(self, person_id: str) -> bool:
        if self.get_person_by_id(person_id) is None:
            return False
        await self._replace_people(person_graph.delete_person(self.people, person_id))
        return True

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    async def import_gedcom(self, content: str, filename: str) -> Tree:
        """
        Parse GEDCOM text into a new tree and make it active.

        The tree is fully built before anything is stored, so a parse error
        (GedcomParseError) leaves the existing trees untouched.
        """
        people = parse_gedcom(content)
        problems = person_graph.check_symmetry(people)
        if problems:
            logger.warning(f"Imported GEDCOM has {len(problems)} asymmetric links")

        name = re.sub(r"\.ged(com)?$", "", filename, flags=re.IGNORECASE) or "Imported Tree"
        tree = Tree(id=str(uuid.uuid4()), name=name, people=people)
        await self._activate(tree)
        logger.info(f"Imported {len(people)} individuals into new tree '{name}'")
        return tree

    def export_gedcom(self, tree_id: str) -> tuple[str, str]:
        """Returns (filename, GEDCOM text) for a tree."""
        tree = self.get_tree(tree_id)
        filename = re.sub(r"\s", "_", tree.name) + ".ged"
        return filename, export_to_gedcom(tree.people)

    def backup_tree(self, tree_id: str, now: datetime | None = None) -> tuple[str, str]:
        """Returns (filename, JSON text) for a tree."""
        tree = self.get_tree(tree_id)
        return backup_filename(tree, now), tree_to_backup_json(tree)

    async def import_backup(self, content: str, now: datetime | None = None) -> Tree:
        """Restore a backup as a new, active tree (BackupFormatError if invalid)."""
        restored = tree_from_backup_json(content)
        tree = restored.model_copy(
            update={"id": str(uuid.uuid4()), "name": restored_tree_name(restored.name, now)}
        )
        await self._activate(tree)
        logger.info(f"Restored backup as '{tree.name}' with {len(tree.people)} people")
        return tree
