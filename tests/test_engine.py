"""Tests for the batch transform engine.

Integration-style tests that run real operations through apply_operation
and check the dataset, warnings and key-order hint it returns.
"""

from __future__ import annotations

import pytest

from record_workbench.engine import (
    apply_operation,
    execute_operation,
    next_key_order,
    run_plan,
    summarize_warnings,
)
from record_workbench.context import BatchContext
from record_workbench.errors import OperationError
from record_workbench.models import (
    AddFieldOp,
    Dataset,
    DeleteFieldOp,
    ExpandObjectOp,
    FlattenStripOp,
    KeyReorderOp,
    NestFieldsOp,
    Plan,
    RenameFieldOp,
    RenameFieldsOp,
    TypeConvertOp,
    WorkbenchSettings,
)


# ── Dispatch ──────────────────────────────────────────────────────


def test_execute_operation_dispatches():
    op = AddFieldOp(kind="addField", key="x", value=1)
    assert execute_operation(op, BatchContext([{}])) == [{"x": 1}]


def test_execute_operation_unknown_kind():
    with pytest.raises(OperationError, match="Unknown operation kind"):
        execute_operation(object(), BatchContext([]))  # type: ignore[arg-type]


# ── apply_operation ───────────────────────────────────────────────


def test_apply_returns_new_dataset():
    dataset = Dataset(records=[{"a": "1"}, {"a": "x"}])
    result = apply_operation(dataset, TypeConvertOp(kind="typeConvert", key="a", target="number"))
    assert result.dataset.records == [{"a": 1}, {"a": "x"}]
    assert result.warnings == ["cannot convert to number: x"]
    assert dataset.records == [{"a": "1"}, {"a": "x"}]
    assert result.matched is None


def test_apply_requires_dataset():
    with pytest.raises(OperationError, match="dataset is required"):
        apply_operation(None, AddFieldOp(kind="addField", key="x"))  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "op",
    [
        AddFieldOp(kind="addField", key=" "),
        DeleteFieldOp(kind="deleteField", keys=[]),
        RenameFieldOp(kind="renameField", from_="a", to="a"),
        NestFieldsOp(kind="nestFields", source_fields=["a"], target_field=""),
        FlattenStripOp(kind="flattenStrip", depth=0),
        ExpandObjectOp(kind="expandObject", field="o"),
    ],
)
def test_precondition_failure_skips_whole_operation(op):
    dataset = Dataset(records=[{"a": 1}])
    result = apply_operation(dataset, op)
    assert result.dataset is dataset
    assert result.dataset.records is dataset.records
    assert result.warnings
    assert all(w.startswith(f"skipped {op.kind}: ") for w in result.warnings)


def test_progress_callback():
    events: list[tuple[int, str]] = []
    dataset = Dataset(records=[{"a": i} for i in range(5)])
    apply_operation(
        dataset,
        AddFieldOp(kind="addField", key="b"),
        progress=lambda pct, stage: events.append((pct, stage)),
        settings=WorkbenchSettings(progress_interval=2),
    )
    assert events[-1] == (100, "batch:addField")
    assert [pct for pct, _ in events] == sorted(pct for pct, _ in events)


def test_executor_failure_wrapped(monkeypatch):
    import record_workbench.engine as engine

    def boom(op, context):
        raise RuntimeError("kaput")

    monkeypatch.setattr(engine, "execute_add_field", boom)
    with pytest.raises(OperationError, match="kaput") as exc_info:
        apply_operation(Dataset(records=[{}]), AddFieldOp(kind="addField", key="x"))
    assert exc_info.value.kind == "addField"
    assert isinstance(exc_info.value.cause, RuntimeError)


# ── Key-order hint ────────────────────────────────────────────────


def test_key_order_untouched_without_hint():
    assert next_key_order(AddFieldOp(kind="addField", key="x"), None, ["x"]) is None


def test_key_order_delete():
    op = DeleteFieldOp(kind="deleteField", keys=["b"])
    assert next_key_order(op, ["a", "b", "c"], []) == ["a", "c"]


def test_key_order_rename_keeps_slot():
    op = RenameFieldOp(kind="renameField", from_="b", to="a")
    assert next_key_order(op, ["a", "b", "c"], []) == ["a", "c"]
    op = RenameFieldOp(kind="renameField", from_="b", to="z")
    assert next_key_order(op, ["a", "b", "c"], []) == ["a", "z", "c"]


def test_key_order_rename_many():
    op = RenameFieldsOp(kind="renameFields", mapping={"a": "x", "c": "y"})
    assert next_key_order(op, ["a", "b", "c"], []) == ["x", "b", "y"]


def test_key_order_nest():
    op = NestFieldsOp(kind="nestFields", source_fields=["a", "b"], target_field="m")
    assert next_key_order(op, ["a", "b", "c"], ["m"]) == ["c", "m"]


def test_key_order_reorder_replaces_hint():
    op = KeyReorderOp(kind="keyReorder", order=["c", "a"])
    assert next_key_order(op, None, []) == ["c", "a"]


def test_key_order_extraction_appends_columns():
    dataset = Dataset(records=[{"o": {"p": 1, "q": 2}}], key_order=["o"])
    result = apply_operation(dataset, ExpandObjectOp(kind="expandObject", field="o", expand_all=True))
    assert result.dataset.key_order == ["o", "p", "q"]
    assert result.columns == ["p", "q"]
    assert result.matched == 1


# ── Plans and warnings ────────────────────────────────────────────


def test_run_plan_chains_operations():
    plan = Plan(
        operations=[
            RenameFieldOp(kind="renameField", from_="n", to="count"),
            TypeConvertOp(kind="typeConvert", key="count", target="number"),
            DeleteFieldOp(kind="deleteField", keys=[]),
        ]
    )
    result = run_plan(plan, Dataset(records=[{"n": "3"}, {"n": "?"}]))
    assert result.dataset.records == [{"count": 3}, {"count": "?"}]
    assert result.warnings[0] == "cannot convert to number: ?"
    assert result.warnings[1].startswith("skipped deleteField: ")


def test_summarize_warnings():
    assert summarize_warnings([]) == ""
    warnings = ["w1", "w2", "w1", "w3"]
    assert summarize_warnings(warnings) == "4 warning(s): w1; w2; w3"
    many = [f"w{i}" for i in range(8)]
    assert summarize_warnings(many, limit=2) == "8 warning(s): w0; w1 (+6 more)"
