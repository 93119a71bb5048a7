"""Persistence of trees and application state."""

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from models import Tree

logger = logging.getLogger("kintree.storage")


class StorageError(RuntimeError):
    """The store could not be read or written."""


class TreeStore(ABC):
    """Key-value store holding serialized trees and app settings."""

    @abstractmethod
    async def get_all_trees(self) -> dict[str, Tree]:
        ...

    @abstractmethod
    async def save_tree(self, tree: Tree) -> None:
        ...

    @abstractmethod
    async def delete_tree(self, tree_id: str) -> None:
        ...

    @abstractmethod
    async def get_app_state(self, key: str) -> Any:
        ...

    @abstractmethod
    async def save_app_state(self, key: str, value: Any) -> None:
        ...


class MemoryTreeStore(TreeStore):
    """Store that lives in process memory; every read returns copies."""

    def __init__(self) -> None:
        self._trees: dict[str, Tree] = {}
        self._state: dict[str, Any] = {}

    async def get_all_trees(self) -> dict[str, Tree]:
        return {tree_id: tree.model_copy(deep=True) for tree_id, tree in self._trees.items()}

    async def save_tree(self, tree: Tree) -> None:
        self._trees[tree.id] = tree.model_copy(deep=True)

    async def delete_tree(self, tree_id: str) -> None:
        self._trees.pop(tree_id, None)

    async def get_app_state(self, key: str) -> Any:
        return self._state.get(key)

    async def save_app_state(self, key: str, value: Any) -> None:
        self._state[key] = value


class JsonDirectoryTreeStore(TreeStore):
    """
    Store backed by a directory of JSON files.

    Layout::

        <root>/trees/<tree id>.json   one backup-format document per tree
        <root>/app_state.json         flat key/value object

    Files are replaced atomically and all I/O runs in worker threads.
    """

    def __init__(self, root: str | os.PathLike) -> None:
        self.root = Path(root)
        self.trees_dir = self.root / "trees"
        self.state_path = self.root / "app_state.json"

    def _tree_path(self, tree_id: str) -> Path:
        # tree ids are uuids; anything path-like is rejected
        if not tree_id or Path(tree_id).name != tree_id:
            raise StorageError(f"Invalid tree id: {tree_id!r}")
        return self.trees_dir / f"{tree_id}.json"

    @staticmethod
    def _write_atomic(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=path.parent, suffix=".tmp", delete=False, encoding="utf-8"
        ) as f:
            f.write(content)
            temp_path = f.name
        os.replace(temp_path, path)

    def _read_trees(self) -> dict[str, Tree]:
        trees: dict[str, Tree] = {}
        if not self.trees_dir.is_dir():
            return trees
        for path in sorted(self.trees_dir.glob("*.json")):
            try:
                tree = Tree.model_validate_json(path.read_text(encoding="utf-8"))
            except ValidationError as e:
                raise StorageError(f"Corrupt tree file {path.name}: {e}") from e
            trees[tree.id] = tree
        return trees

    def _read_state(self) -> dict[str, Any]:
        if not self.state_path.exists():
            return {}
        try:
            return json.loads(self.state_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt app state file: {e}") from e

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except OSError as e:
            logger.error(f"Storage I/O failed under {self.root}: {e}")
            raise StorageError(str(e)) from e

    async def get_all_trees(self) -> dict[str, Tree]:
        return await self._run(self._read_trees)

    async def save_tree(self, tree: Tree) -> None:
        path = self._tree_path(tree.id)
        await self._run(self._write_atomic, path, tree.model_dump_json(by_alias=True, indent=2))
        logger.debug(f"Saved tree {tree.id} ({len(tree.people)} people)")

    async def delete_tree(self, tree_id: str) -> None:
        path = self._tree_path(tree_id)
        await self._run(path.unlink, True)

    async def get_app_state(self, key: str) -> Any:
        state = await self._run(self._read_state)
        return state.get(key)

    async def save_app_state(self, key: str, value: Any) -> None:
        def update() -> None:
            state = self._read_state()
            state[key] = value
            self._write_atomic(self.state_path, json.dumps(state, indent=2))

        await self._run(update)
