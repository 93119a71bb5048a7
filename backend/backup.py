"""Lossless JSON backups of a single tree."""

import json
import re
from datetime import datetime

from pydantic import ValidationError

from models import Tree

RESTORED_SUFFIX = re.compile(r"\s\(Restored .*\)$")
TIMESTAMP_SUFFIX = re.compile(r"_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}$")


class BackupFormatError(ValueError):
    """The backup document does not describe a tree."""


def tree_to_backup_json(tree: Tree) -> str:
    return tree.model_dump_json(by_alias=True, indent=2)


def tree_from_backup_json(content: str) -> Tree:
    """
    Read a backup document.

    The document must be an object with a non-empty string ``name`` and a
    ``people`` array; person records are validated against the model.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise BackupFormatError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise BackupFormatError("Invalid backup file format: expected a JSON object")
    if not isinstance(data.get("name"), str) or not data["name"]:
        raise BackupFormatError("Invalid backup file format: missing tree name")
    if not isinstance(data.get("people"), list):
        raise BackupFormatError("Invalid backup file format: missing people list")

    data.setdefault("id", "")
    try:
        return Tree.model_validate(data)
    except ValidationError as e:
        raise BackupFormatError(f"Invalid person records in backup: {e}") from e


def backup_base_name(name: str) -> str:
    """Tree name without earlier restore or timestamp suffixes."""
    name = RESTORED_SUFFIX.sub("", name)
    name = TIMESTAMP_SUFFIX.sub("", name)
    return name.strip()


def backup_filename(tree: Tree, now: datetime | None = None) -> str:
    """``<name>_<YYYY-MM-DDTHH-MM-SS>.json`` with whitespace replaced by underscores."""
    now = now or datetime.now()
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    base = re.sub(r"\s", "_", backup_base_name(tree.name))
    return f"{base}_{timestamp}.json"


def restored_tree_name(name: str, now: datetime | None = None) -> str:
    """Name given to a tree restored from backup, e.g. ``Smiths (Restored 2024-05-01)``."""
    now = now or datetime.now()
    return f"{RESTORED_SUFFIX.sub('', name)} (Restored {now.strftime('%Y-%m-%d')})"
