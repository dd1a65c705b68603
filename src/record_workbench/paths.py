"""Path-addressed edits on a single record.

A path is a sequence of ``str`` (dict key) and ``int`` (list index)
segments. Every function returns a new root; the input is never mutated.
When an edit does not apply, the original root is returned as-is.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from record_workbench.coercion import MISSING

PathPart = str | int


def _index_of(part: PathPart) -> int | None:
    if isinstance(part, bool):
        return None
    if isinstance(part, int):
        return part
    try:
        return int(part)
    except ValueError:
        return None


def get_at(target: Any, path: Sequence[PathPart]) -> Any:
    """Return the value at *path*, or ``MISSING`` if it cannot be reached."""
    current = target
    for part in path:
        if isinstance(current, list):
            index = _index_of(part)
            if index is None or not 0 <= index < len(current):
                return MISSING
            current = current[index]
        elif isinstance(current, dict):
            key = str(part)
            if key not in current:
                return MISSING
            current = current[key]
        else:
            return MISSING
    return current


def set_at(target: Any, path: Sequence[PathPart], value: Any) -> Any:
    """Return a copy of *target* with *value* stored at *path*.

    Missing containers along the way are created: a list when the segment
    is an int, a dict otherwise. A scalar sitting where a container is
    needed is replaced, not an error. Writing past the end of a list pads
    the gap with ``None``.
    """
    if not path:
        return value

    head, rest = path[0], path[1:]

    if isinstance(target, list):
        index = _index_of(head)
        if index is None or index < 0:
            return target
        updated = list(target)
        if index >= len(updated):
            updated.extend([None] * (index - len(updated) + 1))
            current = MISSING
        else:
            current = updated[index]
        updated[index] = set_at(current, rest, value)
        return updated

    if isinstance(target, dict):
        key = str(head)
        updated_map = dict(target)
        updated_map[key] = set_at(updated_map.get(key, MISSING), rest, value)
        return updated_map

    container: Any = [] if isinstance(head, int) and not isinstance(head, bool) else {}
    return set_at(container, path, value)


def rename_at(target: Any, path: Sequence[PathPart], new_key: str) -> Any:
    """Rename the dict key addressed by *path*, keeping its position."""
    if not path or not new_key:
        return target

    parent_path, old_key = path[:-1], str(path[-1])
    parent = get_at(target, parent_path)
    if not isinstance(parent, dict) or old_key not in parent:
        return target

    renamed = {
        (new_key if key == old_key else key): value for key, value in parent.items()
    }
    return set_at(target, parent_path, renamed)


def remove_at(target: Any, path: Sequence[PathPart]) -> Any:
    """Remove the list item or dict entry addressed by *path*."""
    if not path:
        return target

    parent_path, last = path[:-1], path[-1]
    parent = get_at(target, parent_path)

    if isinstance(parent, list):
        index = _index_of(last)
        if index is None:
            return target
        remaining = [item for position, item in enumerate(parent) if position != index]
        return set_at(target, parent_path, remaining)

    if isinstance(parent, dict):
        remaining_map = dict(parent)
        remaining_map.pop(str(last), None)
        return set_at(target, parent_path, remaining_map)

    return target


def add_map_entry(
    target: Any, path: Sequence[PathPart], key: str, value: Any
) -> Any:
    """Add or overwrite ``key`` in the dict at *path*."""
    node = get_at(target, path)
    if not isinstance(node, dict):
        return target
    return set_at(target, path, {**node, key: value})


def add_list_item(target: Any, path: Sequence[PathPart], value: Any) -> Any:
    """Append *value* to the list at *path*."""
    node = get_at(target, path)
    if not isinstance(node, list):
        return target
    return set_at(target, path, [*node, value])
