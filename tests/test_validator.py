"""Tests for the static operation and plan validator."""

from __future__ import annotations

from pathlib import Path

import pytest

from record_workbench.errors import PlanLoadError
from record_workbench.models import (
    AddFieldOp,
    DeleteFieldOp,
    ExpandObjectOp,
    ExtractByConditionOp,
    FlattenStripOp,
    KeyReorderOp,
    NestFieldsOp,
    Plan,
    RenameFieldOp,
    RenameFieldsOp,
    TypeConvertOp,
    UpdateValueOp,
)
from record_workbench.validator import (
    Severity,
    check_operation,
    load_and_validate_plan,
    validate_operation,
    validate_plan,
)

FIXTURES = Path(__file__).parent / "fixtures"


def _fields(diagnostics):
    return [(d.severity, d.field) for d in diagnostics]


# ── Per-operation preconditions ───────────────────────────────────────────────


class TestCheckOperation:
    def test_valid_operation_has_no_findings(self):
        assert check_operation(AddFieldOp(kind="addField", key="x")) == []

    def test_blank_key(self):
        assert _fields(check_operation(AddFieldOp(kind="addField", key="  "))) == [
            (Severity.ERROR, "key")
        ]

    def test_copy_without_source_is_warning(self):
        result = validate_operation(AddFieldOp(kind="addField", key="x", mode="copy"))
        assert result.ok
        assert _fields(result.warnings) == [(Severity.WARNING, "fromKey")]

    def test_delete_needs_keys(self):
        assert not validate_operation(DeleteFieldOp(kind="deleteField", keys=["", ""])).ok

    def test_rename_to_itself(self):
        result = validate_operation(RenameFieldOp(kind="renameField", from_="a", to="a"))
        assert _fields(result.errors) == [(Severity.ERROR, "to")]

    def test_rename_blank(self):
        result = validate_operation(RenameFieldOp(kind="renameField", from_="", to=""))
        assert sorted(d.field for d in result.errors) == ["from", "to"]

    def test_rename_many_collisions(self):
        op = RenameFieldsOp(kind="renameFields", mapping={"a": "x", "b": "x", "c": "c"})
        result = validate_operation(op)
        assert result.ok
        assert "'x'" in result.warnings[0].message

    def test_rename_many_nothing_effective(self):
        op = RenameFieldsOp(kind="renameFields", mapping={"a": "a", "b": ""})
        assert not validate_operation(op).ok

    def test_required_fields_for_extraction(self):
        op = ExtractByConditionOp(
            kind="extractByCondition",
            source_field="items",
            match_key="",
            match_value="x",
            extract_key="v",
            target_field=" ",
        )
        assert sorted(d.field for d in check_operation(op)) == ["matchKey", "targetField"]

    def test_nest_sources_only_target(self):
        op = NestFieldsOp(kind="nestFields", source_fields=["m", " "], target_field="m")
        assert _fields(check_operation(op)) == [(Severity.ERROR, "sourceFields")]

    @pytest.mark.parametrize("depth, ok", [(None, True), (1, True), (0, False), (-2, False)])
    def test_flatten_depth(self, depth, ok):
        assert validate_operation(FlattenStripOp(kind="flattenStrip", depth=depth)).ok is ok

    def test_key_reorder_warnings(self):
        assert _fields(check_operation(KeyReorderOp(kind="keyReorder", order=[]))) == [
            (Severity.WARNING, "order")
        ]
        result = validate_operation(KeyReorderOp(kind="keyReorder", order=["a", "b", "a"]))
        assert result.ok
        assert len(result.warnings) == 1

    def test_expand_needs_keys_unless_all(self):
        assert not validate_operation(ExpandObjectOp(kind="expandObject", field="o")).ok
        assert validate_operation(
            ExpandObjectOp(kind="expandObject", field="o", expand_all=True)
        ).ok


# ── Plans ─────────────────────────────────────────────────────────────────────


class TestValidatePlan:
    def test_diagnostics_carry_plan_index(self):
        plan = Plan(
            operations=[
                AddFieldOp(kind="addField", key="ok"),
                TypeConvertOp(kind="typeConvert", key="", target="number"),
            ]
        )
        result = validate_plan(plan)
        assert not result.ok
        assert [(d.index, d.kind) for d in result.errors] == [(1, "typeConvert")]

    def test_use_after_delete(self):
        plan = Plan(
            operations=[
                DeleteFieldOp(kind="deleteField", keys=["email"]),
                UpdateValueOp(kind="updateValue", key="email", value="x"),
            ]
        )
        result = validate_plan(plan)
        assert result.ok
        (warning,) = result.warnings
        assert warning.index == 1
        assert "#0" in warning.message

    def test_recreated_field_is_fine(self):
        plan = Plan(
            operations=[
                DeleteFieldOp(kind="deleteField", keys=["email"]),
                AddFieldOp(kind="addField", key="email"),
                UpdateValueOp(kind="updateValue", key="email", value="x"),
            ]
        )
        assert validate_plan(plan).diagnostics == []

    def test_rename_into_deleted_name_recreates_it(self):
        plan = Plan(
            operations=[
                DeleteFieldOp(kind="deleteField", keys=["a"]),
                RenameFieldOp(kind="renameField", from_="b", to="a"),
                TypeConvertOp(kind="typeConvert", key="a", target="string"),
            ]
        )
        assert validate_plan(plan).diagnostics == []


def test_load_and_validate_fixture():
    plan, result = load_and_validate_plan(FIXTURES / "plan_invalid.yaml")
    assert len(plan.operations) == 3
    assert [(d.index, d.field) for d in result.errors] == [(1, "key")]
    assert [(d.index, d.field) for d in result.warnings] == [(2, "key")]


def test_load_and_validate_missing_file(tmp_path):
    with pytest.raises(PlanLoadError):
        load_and_validate_plan(tmp_path / "missing.yaml")
