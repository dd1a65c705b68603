"""Advisory shape inference over a sample of records.

The inferred ``SchemaNode`` tree only feeds field pickers; it never
blocks or alters a transform.
"""

from __future__ import annotations

from typing import Any

from record_workbench.coercion import parse_maybe_json, stringify_value
from record_workbench.models import SchemaNode

DEFAULT_MAX_DEPTH = 6
DEFAULT_SAMPLE_LIMIT = 50
DISTINCT_VALUE_LIMIT = 40
DISCRIMINATOR_KEYS = ("label", "type", "category", "name")


def _collect_distinct(
    item: dict[str, Any], distinct: dict[str, list[str]], limit: int
) -> None:
    for key in DISCRIMINATOR_KEYS:
        raw = item.get(key)
        if raw is None:
            continue
        text = stringify_value(raw)
        if not text:
            continue
        values = distinct.setdefault(key, [])
        if text not in values and len(values) < limit:
            values.append(text)


def _build(
    samples: list[Any],
    depth: int,
    max_depth: int,
    sample_limit: int,
    distinct_limit: int,
) -> SchemaNode:
    if depth >= max_depth:
        return SchemaNode(type="value")

    parsed = [parse_maybe_json(value) for value in samples[:sample_limit] if value is not None]
    if not parsed:
        return SchemaNode(type="value")

    if any(isinstance(value, list) for value in parsed):
        items: list[Any] = []
        distinct: dict[str, list[str]] = {}
        for value in parsed:
            if not isinstance(value, list):
                continue
            for item in value:
                items.append(item)
                if isinstance(item, dict):
                    _collect_distinct(item, distinct, distinct_limit)
        return SchemaNode(
            type="array",
            item=_build(items[:sample_limit], depth + 1, max_depth, sample_limit, distinct_limit),
            distinct_values=distinct or None,
        )

    if any(isinstance(value, dict) for value in parsed):
        grouped: dict[str, list[Any]] = {}
        for value in parsed:
            if not isinstance(value, dict):
                continue
            for key, child in value.items():
                grouped.setdefault(key, []).append(child)
        return SchemaNode(
            type="object",
            keys={
                key: _build(values, depth + 1, max_depth, sample_limit, distinct_limit)
                for key, values in grouped.items()
            },
        )

    return SchemaNode(type="value")


def infer_schema(
    samples: list[Any],
    max_depth: int = DEFAULT_MAX_DEPTH,
    *,
    sample_limit: int = DEFAULT_SAMPLE_LIMIT,
    distinct_limit: int = DISTINCT_VALUE_LIMIT,
) -> SchemaNode:
    """Summarize the shape of *samples*.

    Each level looks at no more than ``sample_limit`` values. Strings that
    hold JSON are parsed first. If any sampled value is a list, the
    elements of all sampled lists are merged and summarized as the array
    item, and up to ``distinct_limit`` distinct values are collected for
    each discriminator key (``label``, ``type``, ``category``, ``name``).
    Otherwise, if any value is a dict, keys are unioned and summarized
    per key. Anything else, or reaching ``max_depth``, is a ``value`` leaf.
    """
    return _build(list(samples), 0, max_depth, sample_limit, distinct_limit)


def field_paths(node: SchemaNode, prefix: str = "") -> list[str]:
    """List dotted leaf paths of a schema tree.

    Array items contribute their keys under the array's own path, which
    matches how drill-down paths address fields inside arrays.
    """
    if node.type == "object" and node.keys:
        paths: list[str] = []
        for key, child in node.keys.items():
            child_prefix = f"{prefix}.{key}" if prefix else key
            paths.extend(field_paths(child, child_prefix))
        return paths
    if node.type == "array" and node.item is not None and node.item.type != "value":
        return field_paths(node.item, prefix)
    return [prefix] if prefix else []
