"""Recursive flattening into dot-joined compound keys, and its inverse.

``{"user": {"name": "x"}}`` flattens to ``{"user.name": "x"}``; lists
flatten by index (``{"tags": ["a"]}`` -> ``{"tags.0": "a"}``). With smart
EAV enabled, ``{"label": "Title", "value": "Hello"}`` elements collapse
into a ``Title`` column instead of ``label``/``value`` pairs.
"""

from __future__ import annotations

from typing import Any

from record_workbench.coercion import MAX_RECURSION_DEPTH


def is_eav_object(value: Any) -> bool:
    """True for dicts carrying a non-empty string ``label`` and a ``value``."""
    return (
        isinstance(value, dict)
        and "value" in value
        and isinstance(value.get("label"), str)
        and len(value["label"]) > 0
    )


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _children(value: dict[str, Any] | list[Any]) -> list[tuple[str, Any]]:
    if isinstance(value, list):
        return [(str(index), item) for index, item in enumerate(value)]
    return list(value.items())


def _flatten_into(
    value: Any,
    prefix: str,
    result: dict[str, Any],
    max_depth: int,
    depth: int,
    smart_eav: bool,
) -> None:
    if not isinstance(value, (dict, list)):
        if prefix:
            result[prefix] = value
        return

    if depth >= max_depth:
        result[prefix] = value
        return

    if smart_eav and is_eav_object(value):
        label = value["label"].strip().replace(".", "_")
        eav_key = _join(prefix, label)
        inner = value["value"]
        if isinstance(inner, (dict, list)):
            _flatten_into(inner, eav_key, result, max_depth, depth + 1, smart_eav)
        else:
            result[eav_key] = inner
        return

    children = _children(value)
    if not children:
        # Empty containers stay as a single leaf instead of vanishing
        if prefix:
            result[prefix] = value
        return

    in_list = isinstance(value, list)
    for key, child in children:
        if smart_eav and in_list and is_eav_object(child):
            # EAV elements are keyed by their label, not their index
            _flatten_into(child, prefix, result, max_depth, depth + 1, smart_eav)
            continue
        next_key = _join(prefix, key)
        if isinstance(child, (dict, list)):
            _flatten_into(child, next_key, result, max_depth, depth + 1, smart_eav)
        else:
            result[next_key] = child


def flatten_value(
    value: Any,
    prefix: str = "",
    *,
    max_depth: int | None = None,
    smart_eav: bool = False,
) -> dict[str, Any]:
    """Flatten a dict or list into a single-level dict.

    Args:
        value: The structure to flatten.
        prefix: Leading segment for every produced key ("" for none).
        max_depth: Levels to recurse before storing the remaining
            sub-structure verbatim under its compound key. ``None`` means
            unbounded (up to ``MAX_RECURSION_DEPTH``).
        smart_eav: Collapse ``{label, value}`` objects into ``label`` keys.

    Returns:
        A new dict of compound keys to leaf values.
    """
    limit = MAX_RECURSION_DEPTH if max_depth is None else min(max_depth, MAX_RECURSION_DEPTH)
    result: dict[str, Any] = {}
    _flatten_into(value, prefix, result, limit, 0, smart_eav)
    return result


def strip_key_prefix(record: dict[str, Any], prefix: str) -> dict[str, Any]:
    """Drop *prefix* from every key that starts with it."""
    stripped: dict[str, Any] = {}
    for key, value in record.items():
        new_key = key[len(prefix):] if key.startswith(prefix) else key
        stripped[new_key] = value
    return stripped


def unflatten(flat: dict[str, Any]) -> dict[str, Any]:
    """Rebuild nesting from dot-joined keys.

    A level whose keys are exactly ``0..n-1`` becomes a list again.
    """
    root: dict[str, Any] = {}
    for compound, value in flat.items():
        parts = compound.split(".")
        node = root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return _restore_lists(root)


def _restore_lists(node: Any) -> Any:
    if not isinstance(node, dict) or not node:
        return node
    restored = {key: _restore_lists(value) for key, value in node.items()}
    keys = list(restored)
    if keys == [str(index) for index in range(len(keys))]:
        return [restored[key] for key in keys]
    return restored
