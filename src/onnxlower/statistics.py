"""JSON-backed hierarchical key/value store for counters and tool settings.

A `Statistics` object wraps one JSON object. Top-level keys holding objects
are *groups*; a group holds *entries* (scalars/lists) and nested groups.
Counters live in two fixed groups: ``Counter`` (name -> int) and
``Counter_Desc`` (name -> description).

The store is read/write-by-name only; callers never see the file layout.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

from .errors import StatisticsError

logger = logging.getLogger(__name__)

COUNTER_GROUP = "Counter"
COUNTER_DESC_GROUP = "Counter_Desc"
NO_DESCRIPTION = "no description"


class AccessMode(str, Enum):
    READ_ONLY = "r"
    READ_WRITE = "rw"


class StatisticsGroup:
    """A view over one JSON object inside a Statistics store."""

    def __init__(self, obj: dict[str, Any]) -> None:
        self._obj = obj

    def has_entry(self, name: str) -> bool:
        return name in self._obj and not isinstance(self._obj[name], dict)

    def read_entry(self, name: str, default: Any = None) -> Any:
        value = self._obj.get(name, default)
        if isinstance(value, dict):
            return default
        return value

    def write_entry(self, name: str, value: Any) -> None:
        self._obj[name] = value

    def delete_entry(self, name: str) -> bool:
        if not self.has_entry(name):
            return False
        del self._obj[name]
        return True

    def entries(self) -> list[str]:
        return [k for k, v in self._obj.items() if not isinstance(v, dict)]

    def has_group(self, name: str) -> bool:
        return isinstance(self._obj.get(name), dict)

    def group(self, name: str) -> StatisticsGroup:
        """Return the named subgroup, creating it if missing."""
        sub = self._obj.get(name)
        if not isinstance(sub, dict):
            if sub is not None:
                raise StatisticsError(f"{name!r} is an entry, not a group", context={"group": name})
            sub = self._obj[name] = {}
        return StatisticsGroup(sub)

    def groups(self) -> list[str]:
        return [k for k, v in self._obj.items() if isinstance(v, dict)]

    def delete_group(self, name: str) -> bool:
        if not self.has_group(name):
            return False
        del self._obj[name]
        return True

    def to_dict(self) -> dict[str, Any]:
        return json.loads(json.dumps(self._obj))


class Statistics:
    """A JSON document of named groups, optionally bound to a file."""

    def __init__(self, content: str | None = None) -> None:
        self._root: dict[str, Any] | None = None
        self._path: Path | None = None
        self._mode = AccessMode.READ_ONLY
        if content is not None:
            self.read(content)

    @classmethod
    def open(cls, path: str | Path, mode: AccessMode = AccessMode.READ_ONLY) -> Statistics:
        """Load `path`. A missing file is an error unless opened READ_WRITE."""

        stats = cls()
        path = Path(path)
        stats._path = path
        stats._mode = AccessMode(mode)
        if not path.exists():
            if stats._mode is AccessMode.READ_ONLY:
                raise StatisticsError(f"can not open statistics file: {path}", context={"path": str(path)})
            stats._root = {}
            return stats
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            stats._root = {}
            return stats
        try:
            root = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StatisticsError(f"can not parse statistics file: {path}", context={"path": str(path)}) from exc
        if not isinstance(root, dict):
            raise StatisticsError(f"statistics file is not a JSON object: {path}", context={"path": str(path)})
        stats._root = root
        return stats

    def read(self, content: str) -> Statistics:
        """Replace the document with `content` (READ_ONLY, unbound)."""
        try:
            root = json.loads(content)
        except json.JSONDecodeError as exc:
            raise StatisticsError("can not read json string") from exc
        if not isinstance(root, dict):
            raise StatisticsError("statistics content is not a JSON object")
        self._root = root
        self._path = None
        self._mode = AccessMode.READ_ONLY
        return self

    @property
    def is_valid(self) -> bool:
        return self._root is not None

    @property
    def access_mode(self) -> AccessMode:
        return self._mode

    @property
    def path(self) -> Path | None:
        return self._path

    def _top(self) -> dict[str, Any]:
        if self._root is None:
            self._root = {}
        return self._root

    def top(self) -> StatisticsGroup:
        return StatisticsGroup(self._top())

    def groups(self) -> list[str]:
        return self.top().groups()

    def has_group(self, name: str) -> bool:
        return self.top().has_group(name)

    def group(self, name: str) -> StatisticsGroup:
        return self.top().group(name)

    def add_group(self, name: str) -> StatisticsGroup:
        """Create (or reset to empty) the named group."""
        self._top()[name] = {}
        return self.group(name)

    def delete_group(self, name: str) -> bool:
        return self.top().delete_group(name)

    def update(self, name: str, group: StatisticsGroup) -> Statistics:
        """Overwrite the named group with a copy of `group`."""
        self._top()[name] = group.to_dict()
        return self

    def merge(self, name: str, group: StatisticsGroup) -> Statistics:
        """Insert a copy of `group` only if `name` is not there yet."""
        self._top().setdefault(name, group.to_dict())
        return self

    def dumps(self) -> str:
        return json.dumps(self._top(), indent=2, sort_keys=True)

    def print(self, out: TextIO) -> None:
        out.write(self.dumps())
        out.write("\n")

    def sync(self) -> bool:
        """Write back to the bound file when opened READ_WRITE."""
        if self._mode is not AccessMode.READ_WRITE or self._path is None:
            return True
        try:
            self._path.write_text(self.dumps() + "\n", encoding="utf-8")
        except OSError:
            logger.exception("failed to write statistics to %s", self._path)
            return False
        return True

    def reset(self) -> Statistics:
        self._root = None
        self._path = None
        self._mode = AccessMode.READ_ONLY
        return self

    # -- counters -------------------------------------------------------

    def add_counter(self, name: str, description: str = NO_DESCRIPTION) -> bool:
        counters = self.group(COUNTER_GROUP)
        if counters.has_entry(name):
            return False
        counters.write_entry(name, 0)
        self.group(COUNTER_DESC_GROUP).write_entry(name, description)
        return True

    def increase_counter(self, name: str, amount: int = 1) -> bool:
        counters = self.group(COUNTER_GROUP)
        if not counters.has_entry(name):
            return False
        counters.write_entry(name, int(counters.read_entry(name, 0)) + amount)
        return True

    def decrease_counter(self, name: str, amount: int = 1) -> bool:
        return self.increase_counter(name, -amount)

    def reset_counter(self, name: str, value: int = 0) -> bool:
        counters = self.group(COUNTER_GROUP)
        if not counters.has_entry(name):
            return False
        counters.write_entry(name, value)
        return True

    def counter(self, name: str) -> int | None:
        value = self.group(COUNTER_GROUP).read_entry(name)
        return None if value is None else int(value)

    def counter_list(self) -> list[str]:
        return self.group(COUNTER_GROUP).entries()

    def print_counter(self, name: str, out: TextIO) -> None:
        """Write ``name,value,description``; nothing if the counter is absent."""
        counters = self.group(COUNTER_GROUP)
        if not counters.has_entry(name):
            return
        desc = self.group(COUNTER_DESC_GROUP).read_entry(name, "no value")
        out.write(f"{name},{counters.read_entry(name, 0)},{desc}\n")

