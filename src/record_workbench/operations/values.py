"""Value-level operations: update, type conversion, JSON conversion."""

from __future__ import annotations

from typing import Any

from record_workbench.coercion import is_truthy, loads, to_json, to_number, to_text
from record_workbench.context import BatchContext
from record_workbench.models import ConvertFieldOp, TypeConvertOp, UpdateValueOp


def execute_update_value(op: UpdateValueOp, context: BatchContext) -> list[Any]:
    """Replace or wrap the value of ``op.key`` where the key exists.

    ``prefixSuffix`` only touches string values.
    """

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        if op.key not in record:
            return record
        current = record[op.key]
        if op.mode == "set":
            return {**record, op.key: "" if op.value is None else op.value}
        if isinstance(current, str):
            return {**record, op.key: f"{op.prefix}{current}{op.suffix}"}
        return record

    return context.map_records(apply)


def execute_type_convert(op: TypeConvertOp, context: BatchContext) -> list[Any]:
    """Coerce ``op.key`` to string, number, or boolean.

    Values that do not convert to a number are left as they are and
    produce a ``cannot convert to number`` warning.
    """

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        if op.key not in record:
            return record
        current = record[op.key]
        if op.target == "string":
            return {**record, op.key: to_text(current)}
        if op.target == "boolean":
            return {**record, op.key: is_truthy(current)}
        number = to_number(current)
        if number is None:
            context.warn(f"cannot convert to number: {to_text(current)}")
            return record
        return {**record, op.key: number}

    return context.map_records(apply)


def execute_convert_field(op: ConvertFieldOp, context: BatchContext) -> list[Any]:
    """Parse a JSON string field into a dict/list, or serialize one back.

    Only a single level is converted. Successes are counted in
    ``matched``; records that could not be converted are summarized in a
    single warning.
    """
    context.start_counting()
    failed = 0

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        nonlocal failed
        value = record.get(op.key)
        converted: Any = None

        if op.mode == "parse" and isinstance(value, str):
            try:
                parsed = loads(value)
            except ValueError:
                parsed = None
            if isinstance(parsed, (dict, list)):
                converted = parsed
        elif op.mode == "stringify" and isinstance(value, (dict, list)):
            try:
                converted = to_json(value)
            except (TypeError, ValueError):
                converted = None

        if converted is None:
            failed += 1
            return record
        context.count_match()
        return {**record, op.key: converted}

    records = context.map_records(apply)
    if failed:
        context.warn(f"convertField: {failed} record(s) not converted")
    return records
