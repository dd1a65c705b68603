"""Field-level operations: add, delete, rename, nest, reorder."""

from __future__ import annotations

from typing import Any

from record_workbench.context import BatchContext
from record_workbench.models import (
    AddFieldOp,
    DeleteFieldOp,
    KeyReorderOp,
    NestFieldsOp,
    RenameFieldOp,
    RenameFieldsOp,
)


def rename_keys(record: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    """Rename keys in place order. A renamed key overwrites an existing one."""
    renamed: dict[str, Any] = {}
    for key, value in record.items():
        renamed[mapping.get(key, key)] = value
    return renamed


def reorder_keys(record: dict[str, Any], order: list[str]) -> dict[str, Any]:
    """Emit keys listed in *order* first, then the rest in original order."""
    reordered = {key: record[key] for key in order if key in record}
    for key, value in record.items():
        if key not in reordered:
            reordered[key] = value
    return reordered


def execute_add_field(op: AddFieldOp, context: BatchContext) -> list[Any]:
    """Set ``op.key`` on every record, overwriting any existing value.

    ``copy`` mode reads ``op.from_key``; a missing source becomes ``None``.
    """
    context.add_columns([op.key])

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        if op.mode == "copy" and op.from_key:
            value = record.get(op.from_key)
        else:
            value = "" if op.value is None else op.value
        return {**record, op.key: value}

    return context.map_records(apply)


def execute_delete_field(op: DeleteFieldOp, context: BatchContext) -> list[Any]:
    doomed = set(op.keys)
    return context.map_records(
        lambda record: {k: v for k, v in record.items() if k not in doomed}
    )


def execute_rename_field(op: RenameFieldOp, context: BatchContext) -> list[Any]:
    mapping = {op.from_: op.to}

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        if op.from_ not in record:
            return record
        # Drop a pre-existing target so the renamed key keeps the old slot
        without_target = {k: v for k, v in record.items() if k != op.to}
        return rename_keys(without_target, mapping)

    return context.map_records(apply)


def execute_rename_fields(op: RenameFieldsOp, context: BatchContext) -> list[Any]:
    mapping = {old: new for old, new in op.mapping.items() if old and new and old != new}
    return context.map_records(lambda record: rename_keys(record, mapping))


def execute_nest_fields(op: NestFieldsOp, context: BatchContext) -> list[Any]:
    """Move the source fields into a dict stored at the target field.

    An existing dict at the target is merged into; anything else there is
    replaced. Source fields a record lacks are skipped.
    """
    target = op.target_field.strip()
    sources = op.cleaned_sources()
    context.add_columns([target])

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        existing = record.get(target)
        nested = dict(existing) if isinstance(existing, dict) else {}
        remaining = {k: v for k, v in record.items() if k not in sources}
        for field in sources:
            if field in record:
                nested[field] = record[field]
        remaining[target] = nested
        return remaining

    return context.map_records(apply)


def execute_key_reorder(op: KeyReorderOp, context: BatchContext) -> list[Any]:
    return context.map_records(lambda record: reorder_keys(record, op.order))
