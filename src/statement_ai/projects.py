"""Project list management and persistence.

The project list is an ordered set of unique, case-sensitive names.  It
is loaded once from a :class:`KeyValueStore` and written back in full
after every mutation, as a JSON array stored under
:data:`PROJECTS_KEY`.

Import and export use the same JSON array format::

    [
      "Alpha Upgrade",
      "Beta Rollout"
    ]
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

PROJECTS_KEY = "statement_ai_projects"
EXPORT_FILENAME = "project_config.json"


class ProjectImportError(ValueError):
    """Imported project data is not a JSON array of strings."""


class KeyValueStore(Protocol):
    """String key-value storage for persisted settings."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStore:
    """In-process store, used when nothing should touch the disk."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStore:
    """Key-value store backed by a single JSON object file.

    The file is created on the first write.  Writes go to a ``.tmp``
    sibling first and are moved into place with ``os.replace``.

    Args:
        path: Location of the JSON file, e.g. ``.statement-ai/projects.json``.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Could not read store %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring store %s: not a JSON object", self.path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)
        logger.debug("Saved %s to %s", key, self.path)


def _is_string_list(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _unique(names: Sequence[str]) -> list[str]:
    result: list[str] = []
    for name in names:
        if name and name not in result:
            result.append(name)
    return result


class ProjectList:
    """Ordered, duplicate-free list of project names bound to a store.

    Use :meth:`load` to construct one from persisted state.  Every
    mutating method saves the whole list to the store.
    """

    def __init__(self, store: KeyValueStore, names: Sequence[str] = ()) -> None:
        self.store = store
        self._names: list[str] = _unique(names)

    @classmethod
    def load(cls, store: KeyValueStore, defaults: Sequence[str] = ()) -> ProjectList:
        """Read the persisted list, falling back to *defaults*.

        The fallback applies when nothing is stored, when the stored value
        is not valid JSON, or when it is not an array of strings.
        """
        raw = store.get(PROJECTS_KEY)
        if raw is None:
            return cls(store, defaults)
        try:
            names = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Stored project list is not valid JSON (%s); using defaults", exc)
            return cls(store, defaults)
        if not _is_string_list(names):
            logger.warning("Stored project list is not an array of strings; using defaults")
            return cls(store, defaults)
        return cls(store, names)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def _commit(self, names: list[str]) -> None:
        """Store *names*, then adopt them.  A failed write leaves the list as it was."""
        self.store.set(PROJECTS_KEY, json.dumps(names))
        self._names = names

    def add(self, name: str) -> bool:
        """Append *name* (trimmed).  Returns False for blanks and duplicates."""
        name = name.strip()
        if not name or name in self._names:
            return False
        self._commit([*self._names, name])
        return True

    def remove(self, name: str) -> bool:
        """Remove *name*.  Returns False if it was not in the list."""
        if name not in self._names:
            return False
        self._commit([n for n in self._names if n != name])
        return True

    def clear(self) -> None:
        self._commit([])

    def replace_all(self, names: object) -> None:
        """Replace the whole list, e.g. from an imported file.

        Raises:
            ProjectImportError: If *names* is not a list of strings.  The
                current list is left unchanged.
        """
        if not _is_string_list(names):
            raise ProjectImportError("Invalid format: expected an array of project names")
        self._commit(_unique(names))

    def import_json(self, text: str) -> None:
        """Replace the list with the JSON array in *text*.

        Raises:
            ProjectImportError: If *text* is not valid JSON or does not
                decode to an array of strings.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProjectImportError(f"Invalid JSON: {exc}") from exc
        self.replace_all(data)

    def export_json(self) -> str:
        """Serialize the list as a pretty-printed JSON array."""
        return json.dumps(self._names, indent=2, ensure_ascii=False) + "\n"
