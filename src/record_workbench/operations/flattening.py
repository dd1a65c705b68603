"""flattenStrip: flatten nested fields into compound keys."""

from __future__ import annotations

from typing import Any

from record_workbench.context import BatchContext
from record_workbench.flatten import flatten_value, strip_key_prefix
from record_workbench.models import FlattenStripOp


def flatten_record(record: dict[str, Any], op: FlattenStripOp) -> dict[str, Any]:
    """Flatten one record according to *op*.

    Targeted dict/list fields are replaced by their flattened entries (the
    original key is removed first). Without targets the whole record is
    flattened. ``strip_prefix`` is applied afterwards as a separate pass.
    """
    targets = op.resolved_keys()

    if targets:
        result = dict(record)
        for key in targets:
            value = result.get(key)
            if key not in result or not isinstance(value, (dict, list)):
                continue
            prefix = key if op.keep_prefix else ""
            flattened = flatten_value(
                value, prefix, max_depth=op.depth, smart_eav=op.use_smart_eav
            )
            del result[key]
            result.update(flattened)
    else:
        result = flatten_value(
            record, "", max_depth=op.depth, smart_eav=op.use_smart_eav
        )

    if op.strip_prefix:
        return strip_key_prefix(result, op.strip_prefix)
    return result


def execute_flatten_strip(op: FlattenStripOp, context: BatchContext) -> list[Any]:
    return context.map_records(lambda record: flatten_record(record, op))
