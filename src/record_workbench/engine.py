"""Batch transform engine: the main orchestrator.

Dispatches an operation to its executor, keeps the dataset's key-order
hint in step, and returns a new dataset with the warnings the run
produced. Input datasets are never modified.
"""

from __future__ import annotations

import time
from typing import Any

from record_workbench import workbench_logger
from record_workbench.context import BatchContext, ProgressFn
from record_workbench.errors import OperationError, WorkbenchError
from record_workbench.models import (
    AddFieldOp,
    BatchResult,
    ConvertFieldOp,
    Dataset,
    DeleteFieldOp,
    EscapeStringOp,
    ExpandObjectOp,
    ExtractByConditionOp,
    ExtractByPathOp,
    ExtractNestedTagOp,
    FlattenStripOp,
    KeyReorderOp,
    NestFieldsOp,
    Operation,
    ParseJSONOp,
    PivotArrayOp,
    Plan,
    RenameFieldOp,
    RenameFieldsOp,
    TypeConvertOp,
    UnescapeStringOp,
    UpdateValueOp,
    WorkbenchSettings,
)
from record_workbench.operations.extract import (
    execute_expand_object,
    execute_extract_by_condition,
    execute_extract_by_path,
    execute_extract_nested_tag,
    execute_pivot_array,
)
from record_workbench.operations.fields import (
    execute_add_field,
    execute_delete_field,
    execute_key_reorder,
    execute_nest_fields,
    execute_rename_field,
    execute_rename_fields,
)
from record_workbench.operations.flattening import execute_flatten_strip
from record_workbench.operations.strings import (
    execute_escape_string,
    execute_parse_json,
    execute_unescape_string,
)
from record_workbench.operations.values import (
    execute_convert_field,
    execute_type_convert,
    execute_update_value,
)
from record_workbench.validator import Severity, check_operation


def execute_operation(op: Operation, context: BatchContext) -> list[Any]:
    """Dispatch an operation to its executor based on kind.

    Uses structural pattern matching on the Pydantic model type.
    """
    match op:
        case AddFieldOp():
            return execute_add_field(op, context)
        case DeleteFieldOp():
            return execute_delete_field(op, context)
        case RenameFieldOp():
            return execute_rename_field(op, context)
        case RenameFieldsOp():
            return execute_rename_fields(op, context)
        case UpdateValueOp():
            return execute_update_value(op, context)
        case TypeConvertOp():
            return execute_type_convert(op, context)
        case ConvertFieldOp():
            return execute_convert_field(op, context)
        case ExtractByConditionOp():
            return execute_extract_by_condition(op, context)
        case NestFieldsOp():
            return execute_nest_fields(op, context)
        case FlattenStripOp():
            return execute_flatten_strip(op, context)
        case KeyReorderOp():
            return execute_key_reorder(op, context)
        case EscapeStringOp():
            return execute_escape_string(op, context)
        case UnescapeStringOp():
            return execute_unescape_string(op, context)
        case ParseJSONOp():
            return execute_parse_json(op, context)
        case ExpandObjectOp():
            return execute_expand_object(op, context)
        case PivotArrayOp():
            return execute_pivot_array(op, context)
        case ExtractNestedTagOp():
            return execute_extract_nested_tag(op, context)
        case ExtractByPathOp():
            return execute_extract_by_path(op, context)
        case _:
            raise OperationError(
                getattr(op, "kind", "unknown"),
                f"Unknown operation kind: {getattr(op, 'kind', 'unknown')}",
            )


def _rename_order(key_order: list[str], mapping: dict[str, str]) -> list[str]:
    mapping = {old: new for old, new in mapping.items() if old and new and old != new}
    present = [mapping[key] for key in key_order if key in mapping]
    renamed: list[str] = []
    for key in key_order:
        if key in present and key not in mapping:
            continue
        new = mapping.get(key, key)
        if new not in renamed:
            renamed.append(new)
    return renamed


def next_key_order(
    op: Operation, key_order: list[str] | None, columns: list[str]
) -> list[str] | None:
    """Return the dataset key-order hint after *op* has run."""
    if isinstance(op, KeyReorderOp):
        return list(op.order)
    if not key_order:
        return key_order

    match op:
        case DeleteFieldOp():
            doomed = set(op.keys)
            return [key for key in key_order if key not in doomed]
        case RenameFieldOp():
            return _rename_order(key_order, {op.from_: op.to})
        case RenameFieldsOp():
            return _rename_order(key_order, op.mapping)
        case NestFieldsOp():
            sources = set(op.cleaned_sources())
            updated = [key for key in key_order if key not in sources]
        case _:
            updated = list(key_order)

    for column in columns:
        if column not in updated:
            updated.append(column)
    return updated


def summarize_warnings(warnings: list[str], limit: int = 5) -> str:
    """Collapse warnings into one message: first few distinct, plus a count.

    Returns ``""`` when there is nothing to report.
    """
    if not warnings:
        return ""
    distinct = list(dict.fromkeys(warnings))
    shown = "; ".join(distinct[:limit])
    hidden = len(distinct) - limit
    suffix = f" (+{hidden} more)" if hidden > 0 else ""
    return f"{len(warnings)} warning(s): {shown}{suffix}"


def apply_operation(
    dataset: Dataset,
    op: Operation,
    *,
    progress: ProgressFn | None = None,
    settings: WorkbenchSettings | None = None,
) -> BatchResult:
    """Apply one operation to every record of a dataset.

    1. Checks the operation's preconditions. On any error the dataset is
       returned unchanged, with the findings as ``skipped ...`` warnings.
    2. Maps each record through the operation's executor. Records that
       are not dicts pass through untouched.
    3. Updates the key-order hint and returns the new dataset.

    Args:
        dataset: Source dataset; it is not modified.
        op: Operation descriptor.
        progress: Optional ``(percent, stage)`` callback, called every
            ``settings.progress_interval`` records.
        settings: Tuning knobs (defaults to ``WorkbenchSettings()``).

    Returns:
        BatchResult with the new dataset, warnings, and for extraction
        operations the match count and created columns.

    Raises:
        OperationError: If ``dataset`` is missing or an executor fails
            unexpectedly.
    """
    if dataset is None:
        raise OperationError(getattr(op, "kind", "unknown"), "dataset is required")
    settings = settings or WorkbenchSettings()

    errors = [d for d in check_operation(op) if d.severity == Severity.ERROR]
    if errors:
        reasons = [d.message for d in errors]
        workbench_logger.log_operation_skipped(op.kind, reasons)
        return BatchResult(
            dataset=dataset,
            warnings=[f"skipped {op.kind}: {reason}" for reason in reasons],
        )

    start = time.monotonic()
    workbench_logger.log_operation_start(op.kind, len(dataset.records))
    context = BatchContext(
        dataset.records,
        stage=f"batch:{op.kind}",
        progress=progress,
        progress_interval=settings.progress_interval,
    )

    try:
        records = execute_operation(op, context)
    except WorkbenchError:
        raise
    except Exception as e:
        workbench_logger.log_error(op.kind, str(e))
        raise OperationError(op.kind, str(e), cause=e) from e

    updated = dataset.model_copy(
        update={
            "records": records,
            "key_order": next_key_order(op, dataset.key_order, context.columns),
        }
    )
    duration_ms = (time.monotonic() - start) * 1000
    workbench_logger.log_operation_complete(
        op.kind, len(records), len(context.warnings), duration_ms
    )

    return BatchResult(
        dataset=updated,
        warnings=context.warnings,
        matched=context.matched,
        columns=context.columns,
    )


def run_plan(
    plan: Plan,
    dataset: Dataset,
    *,
    progress: ProgressFn | None = None,
) -> BatchResult:
    """Apply every operation of a plan in order.

    Warnings from all operations are concatenated; ``matched`` and
    ``columns`` describe the last operation.
    """
    warnings: list[str] = []
    result = BatchResult(dataset=dataset)
    for op in plan.operations:
        result = apply_operation(
            result.dataset, op, progress=progress, settings=plan.settings
        )
        warnings.extend(result.warnings)
    return result.model_copy(update={"warnings": warnings})
