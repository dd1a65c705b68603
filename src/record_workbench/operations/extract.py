"""Extraction operations: pull values out of nested fields into columns.

Nested fields may hold real dicts/lists or JSON text; both are accepted.
Every extraction reports how many records matched and which columns it
wrote.
"""

from __future__ import annotations

from typing import Any

from record_workbench.coercion import (
    MAX_RECURSION_DEPTH,
    MISSING,
    lookup_path,
    parse_maybe_json,
    stringify_value,
    traverse_path,
)
from record_workbench.context import BatchContext
from record_workbench.models import (
    ExpandObjectOp,
    ExtractByConditionOp,
    ExtractByPathOp,
    ExtractNestedTagOp,
    PivotArrayOp,
)


def _as_object(value: Any) -> dict[str, Any] | None:
    parsed = parse_maybe_json(value)
    return parsed if isinstance(parsed, dict) else None


def _as_array(value: Any) -> list[Any] | None:
    parsed = parse_maybe_json(value)
    return parsed if isinstance(parsed, list) else None


def _matches(item: Any, key: str, expected: str) -> bool:
    if not isinstance(item, (dict, list)):
        return False
    candidate = lookup_path(item, key, through_lists=True)
    return candidate is not MISSING and stringify_value(candidate) == expected


def execute_extract_by_condition(
    op: ExtractByConditionOp, context: BatchContext
) -> list[Any]:
    """Copy a value out of the first matching element of a list field.

    Records whose source is not a list, or with no matching element, or
    whose matched element lacks ``extract_key``, are left unchanged.
    """
    context.start_counting()
    context.add_columns([op.target_field])

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        source = lookup_path(record, op.source_field, through_lists=True)
        if not isinstance(source, list):
            return record
        matched = next(
            (item for item in source if _matches(item, op.match_key, op.match_value)),
            None,
        )
        if matched is None:
            return record
        extracted = lookup_path(matched, op.extract_key, through_lists=True)
        if extracted is MISSING:
            return record
        context.count_match()
        return {**record, op.target_field: extracted}

    return context.map_records(apply)


def execute_expand_object(op: ExpandObjectOp, context: BatchContext) -> list[Any]:
    """Spread keys of a dict field into top-level columns.

    With ``expand_all`` the columns are every key seen in the field across
    the dataset. A key a record's object lacks is written as ``None``.
    """
    context.start_counting()
    if op.expand_all:
        columns: list[str] = []
        for record in context.mappings():
            obj = _as_object(record.get(op.field))
            if obj is None:
                continue
            for key in obj:
                if key not in columns:
                    columns.append(key)
    else:
        columns = [key.strip() for key in op.keys if key.strip()]
    context.add_columns(columns)

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        obj = _as_object(record.get(op.field))
        if obj is None:
            return record
        context.count_match()
        return {**record, **{column: obj.get(column) for column in columns}}

    return context.map_records(apply)


def _pivot_pairs(value: Any, key_col: str, value_col: str) -> dict[str, Any]:
    pairs: dict[str, Any] = {}
    for item in _as_array(value) or []:
        if not isinstance(item, dict):
            continue
        label = lookup_path(item, key_col)
        if label is MISSING or label is None:
            continue
        cell = lookup_path(item, value_col)
        pairs[stringify_value(label)] = None if cell is MISSING else cell
    return pairs


def execute_pivot_array(op: PivotArrayOp, context: BatchContext) -> list[Any]:
    """Turn a list of ``{key_col, value_col}`` dicts into named columns.

    Columns are the union of ``key_col`` values across the dataset.
    """
    context.start_counting()
    columns: list[str] = []
    for record in context.mappings():
        for label in _pivot_pairs(record.get(op.field), op.key_col, op.value_col):
            if label not in columns:
                columns.append(label)
    context.add_columns(columns)

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        pairs = _pivot_pairs(record.get(op.field), op.key_col, op.value_col)
        if any(column in pairs for column in columns):
            context.count_match()
        return {**record, **{column: pairs.get(column) for column in columns}}

    return context.map_records(apply)


def find_nested_tag(
    value: Any,
    label: str,
    nested_keys: list[str],
    label_key: str = "label",
    value_key: str = "value",
    depth: int = 0,
) -> Any:
    """Depth-first search for a tag element labelled *label*.

    A tag list is a list stored under one of *nested_keys*. Returns the
    tag's ``value_key`` value (``None`` if the tag has none), or
    ``MISSING`` when no tag matches.
    """
    if depth > MAX_RECURSION_DEPTH:
        return MISSING

    parsed = parse_maybe_json(value)
    if isinstance(parsed, list):
        for item in parsed:
            found = find_nested_tag(item, label, nested_keys, label_key, value_key, depth + 1)
            if found is not MISSING:
                return found
        return MISSING
    if not isinstance(parsed, dict):
        return MISSING

    for key, child in parsed.items():
        if key in nested_keys:
            tags = _as_array(child)
            for tag in tags or []:
                if isinstance(tag, dict) and stringify_value(lookup_path(tag, label_key)) == label:
                    found = lookup_path(tag, value_key)
                    return None if found is MISSING else found
        found = find_nested_tag(child, label, nested_keys, label_key, value_key, depth + 1)
        if found is not MISSING:
            return found
    return MISSING


def execute_extract_nested_tag(
    op: ExtractNestedTagOp, context: BatchContext
) -> list[Any]:
    context.start_counting()
    context.add_columns([op.target_field])

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        found = find_nested_tag(
            record.get(op.field), op.label, op.nested_keys, op.label_key, op.value_key
        )
        if found is MISSING:
            found = None
        if found is not None:
            context.count_match()
        return {**record, op.target_field: found}

    return context.map_records(apply)


def drill_down(record: dict[str, Any], op: ExtractByPathOp) -> Any:
    """Resolve the value an extractByPath operation writes for one record."""
    current = traverse_path(
        lookup_path(record, op.field, through_lists=True), op.path
    )

    if op.filter is not None and isinstance(current, list):
        current = next(
            (
                parsed
                for parsed in map(parse_maybe_json, current)
                if isinstance(parsed, dict)
                and stringify_value(lookup_path(parsed, op.filter.key)) == op.filter.value
            ),
            None,
        )

    target = (op.target or "").strip()
    if not target:
        extracted = current
    elif isinstance(current, list):
        values = [
            lookup_path(parsed, target)
            for parsed in map(parse_maybe_json, current)
            if isinstance(parsed, dict)
        ]
        values = [value for value in values if value is not MISSING]
        extracted = values or None
    elif isinstance(current, dict):
        extracted = lookup_path(current, target)
    else:
        extracted = None

    return None if extracted is MISSING else extracted


def execute_extract_by_path(op: ExtractByPathOp, context: BatchContext) -> list[Any]:
    """Drill down a path (fanning out over arrays) into a new column."""
    context.start_counting()
    output = op.output_field.strip()
    context.add_columns([output])

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        extracted = drill_down(record, op)
        if extracted is not None:
            context.count_match()
        return {**record, output: extracted}

    return context.map_records(apply)
