"""Pre-flight operation validator.

Statically checks operation descriptors without touching any record.
The engine runs these checks before applying an operation: any
error-severity finding turns the whole operation into a no-op, so a
batch is never half applied because of a bad parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from record_workbench.models import (
    AddFieldOp,
    ConvertFieldOp,
    DeleteFieldOp,
    ExpandObjectOp,
    ExtractByConditionOp,
    ExtractByPathOp,
    ExtractNestedTagOp,
    FlattenStripOp,
    KeyReorderOp,
    NestFieldsOp,
    Operation,
    PivotArrayOp,
    Plan,
    RenameFieldOp,
    RenameFieldsOp,
    TypeConvertOp,
    UpdateValueOp,
)

# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single validation finding."""

    severity: Severity
    kind: str
    message: str
    field: str  # "key", "from", "targetField", ...
    index: int | None = None  # position in a plan, when validating one


@dataclass(frozen=True)
class ValidationResult:
    """Aggregate result of plan validation."""

    diagnostics: list[Diagnostic]

    @property
    def ok(self) -> bool:
        """True when there are no error-severity diagnostics."""
        return not any(d.severity == Severity.ERROR for d in self.diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _require(kind: str, **fields: str | None) -> list[Diagnostic]:
    """ERROR for each named field whose value is blank."""
    return [
        Diagnostic(
            severity=Severity.ERROR,
            kind=kind,
            message=f"'{name}' must not be empty",
            field=name,
        )
        for name, value in fields.items()
        if _blank(value)
    ]


# ---------------------------------------------------------------------------
# 1. Per-operation preconditions
# ---------------------------------------------------------------------------


def check_operation(op: Operation) -> list[Diagnostic]:
    """Return the precondition findings for a single operation."""
    kind = op.kind
    diagnostics: list[Diagnostic] = []

    match op:
        case AddFieldOp():
            diagnostics.extend(_require(kind, key=op.key))
            if op.mode == "copy" and _blank(op.from_key):
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.WARNING,
                        kind=kind,
                        message="copy mode without 'fromKey' writes the static value",
                        field="fromKey",
                    )
                )
        case DeleteFieldOp():
            if not any(key for key in op.keys):
                diagnostics.extend(_require(kind, keys=None))
        case RenameFieldOp():
            diagnostics.extend(_require(kind, **{"from": op.from_, "to": op.to}))
            if not diagnostics and op.from_ == op.to:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.ERROR,
                        kind=kind,
                        message=f"'from' and 'to' are both '{op.to}'",
                        field="to",
                    )
                )
        case RenameFieldsOp():
            effective = {old: new for old, new in op.mapping.items() if old and new and old != new}
            if not effective:
                diagnostics.extend(_require(kind, mapping=None))
            targets = list(effective.values())
            for name in sorted({t for t in targets if targets.count(t) > 1}):
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.WARNING,
                        kind=kind,
                        message=f"Several fields are renamed to '{name}'; the last one wins",
                        field="mapping",
                    )
                )
        case UpdateValueOp() | TypeConvertOp() | ConvertFieldOp():
            diagnostics.extend(_require(kind, key=op.key))
        case ExtractByConditionOp():
            diagnostics.extend(
                _require(
                    kind,
                    sourceField=op.source_field,
                    matchKey=op.match_key,
                    extractKey=op.extract_key,
                    targetField=op.target_field,
                )
            )
        case NestFieldsOp():
            diagnostics.extend(_require(kind, targetField=op.target_field))
            if not diagnostics and not op.cleaned_sources():
                diagnostics.extend(_require(kind, sourceFields=None))
        case FlattenStripOp():
            if op.depth is not None and op.depth < 1:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.ERROR,
                        kind=kind,
                        message=f"'depth' must be at least 1, got {op.depth}",
                        field="depth",
                    )
                )
        case KeyReorderOp():
            if not op.order:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.WARNING,
                        kind=kind,
                        message="Empty 'order' leaves every record unchanged",
                        field="order",
                    )
                )
            for name in sorted({k for k in op.order if op.order.count(k) > 1}):
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.WARNING,
                        kind=kind,
                        message=f"'{name}' appears more than once in 'order'",
                        field="order",
                    )
                )
        case ExpandObjectOp():
            diagnostics.extend(_require(kind, field=op.field))
            if not op.expand_all and not any(k.strip() for k in op.keys):
                diagnostics.extend(_require(kind, keys=None))
        case PivotArrayOp():
            diagnostics.extend(
                _require(kind, field=op.field, keyCol=op.key_col, valueCol=op.value_col)
            )
        case ExtractNestedTagOp():
            diagnostics.extend(
                _require(kind, field=op.field, label=op.label, targetField=op.target_field)
            )
        case ExtractByPathOp():
            diagnostics.extend(
                _require(kind, field=op.field, outputField=op.output_field)
            )

    return diagnostics


# ---------------------------------------------------------------------------
# 2. Fields used after an earlier operation deleted them
# ---------------------------------------------------------------------------


def _read_fields(op: Operation) -> list[tuple[str, str]]:
    """(descriptor field, record field) pairs an operation reads from."""
    match op:
        case AddFieldOp() if op.mode == "copy" and op.from_key:
            return [("fromKey", op.from_key)]
        case RenameFieldOp():
            return [("from", op.from_)]
        case UpdateValueOp() | TypeConvertOp() | ConvertFieldOp():
            return [("key", op.key)]
        case ExtractByConditionOp():
            return [("sourceField", op.source_field.split(".")[0])]
        case ExpandObjectOp() | PivotArrayOp() | ExtractNestedTagOp() | ExtractByPathOp():
            return [("field", op.field.split(".")[0])]
        case NestFieldsOp():
            return [("sourceFields", name) for name in op.cleaned_sources()]
    return []


def _written_fields(op: Operation) -> list[str]:
    match op:
        case AddFieldOp():
            return [op.key]
        case RenameFieldOp():
            return [op.to]
        case RenameFieldsOp():
            return list(op.mapping.values())
        case NestFieldsOp():
            return [op.target_field.strip()]
        case ExtractByConditionOp() | ExtractNestedTagOp():
            return [op.target_field]
        case ExtractByPathOp():
            return [op.output_field.strip()]
    return []


def _check_deleted_references(operations: list[Operation]) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    deleted_by: dict[str, int] = {}

    for index, op in enumerate(operations):
        for descriptor_field, name in _read_fields(op):
            if name in deleted_by:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.WARNING,
                        kind=op.kind,
                        message=(
                            f"Field '{name}' was deleted by operation "
                            f"#{deleted_by[name]} and is never re-created"
                        ),
                        field=descriptor_field,
                        index=index,
                    )
                )
        if isinstance(op, DeleteFieldOp):
            for key in op.keys:
                deleted_by[key] = index
        for name in _written_fields(op):
            deleted_by.pop(name, None)

    return diagnostics


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_operation(op: Operation) -> ValidationResult:
    return ValidationResult(diagnostics=check_operation(op))


def validate_plan(plan: Plan) -> ValidationResult:
    """Statically validate every operation of a plan.

    Checks:
    - Required descriptor fields are present and non-blank
    - Parameter sanity (depth, duplicate names, rename collisions)
    - Fields read after an earlier deleteField removed them

    The plan is considered valid when ``result.ok`` is True.
    """
    diagnostics: list[Diagnostic] = []
    for index, op in enumerate(plan.operations):
        for d in check_operation(op):
            diagnostics.append(
                Diagnostic(
                    severity=d.severity,
                    kind=d.kind,
                    message=d.message,
                    field=d.field,
                    index=index,
                )
            )
    diagnostics.extend(_check_deleted_references(plan.operations))
    return ValidationResult(diagnostics=diagnostics)


def load_and_validate_plan(path: str | Path) -> tuple[Plan, ValidationResult]:
    """Load a plan from YAML and validate it.

    Convenience wrapper: calls ``load_plan`` then ``validate_plan``.
    Raises ``PlanLoadError`` if YAML/Pydantic parsing fails.
    """
    from record_workbench.loader import load_plan

    plan = load_plan(path)
    result = validate_plan(plan)
    return plan, result
