"""Tests for the pydantic models: discriminated unions, aliases, defaults."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from record_workbench.models import (
    AddFieldOp,
    BatchRequest,
    EscapeStringOp,
    ExtractNestedTagOp,
    FilterRule,
    NestFieldsOp,
    Operation,
    ParseRequest,
    PivotArrayOp,
    SchemaNode,
    StringifyRequest,
    WorkbenchSettings,
    WorkerRequest,
)

OPERATION = TypeAdapter(Operation)
REQUEST = TypeAdapter(WorkerRequest)


class TestOperations:
    def test_discriminator_picks_model(self):
        op = OPERATION.validate_python(
            {"kind": "pivotArray", "field": "attrs", "keyCol": "name", "valueCol": "val"}
        )
        assert isinstance(op, PivotArrayOp)
        assert (op.key_col, op.value_col) == ("name", "val")

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            OPERATION.validate_python({"kind": "sortRecords"})

    def test_dump_uses_wire_names(self):
        op = AddFieldOp(kind="addField", key="k", mode="copy", from_key="src")
        assert op.model_dump(by_alias=True)["fromKey"] == "src"

    def test_key_targets(self):
        assert EscapeStringOp(kind="escapeString", key="a").resolved_keys() == ["a"]
        assert EscapeStringOp(kind="escapeString", key="a", target_keys=["b", "c"]).resolved_keys() == ["b", "c"]
        assert EscapeStringOp(kind="escapeString").resolved_keys() == []
        assert EscapeStringOp(kind="escapeString", target_keys=[]).resolved_keys() == []

    def test_nest_cleaned_sources(self):
        op = NestFieldsOp(
            kind="nestFields", source_fields=[" a", "b", "a", "m", ""], target_field="m "
        )
        assert op.cleaned_sources() == ["a", "b"]

    def test_nested_tag_defaults(self):
        op = ExtractNestedTagOp(kind="extractNestedTag", field="f", label="L", target_field="t")
        assert op.nested_keys == ["tags", "labels", "annotations", "attributes"]
        assert (op.label_key, op.value_key) == ("label", "value")


class TestFiltersAndSettings:
    def test_rule_ids_are_unique(self):
        assert FilterRule(field="a").id != FilterRule(field="a").id

    def test_bad_operator(self):
        with pytest.raises(ValidationError):
            FilterRule(field="a", operator="matches")

    def test_settings_bounds(self):
        assert WorkbenchSettings().history_limit == 50
        with pytest.raises(ValidationError):
            WorkbenchSettings(progress_interval=0)
        with pytest.raises(ValidationError):
            WorkbenchSettings(history_size=5)

    def test_schema_node_is_recursive(self):
        node = SchemaNode.model_validate(
            {"type": "object", "keys": {"a": {"type": "array", "item": {"type": "value"}}}}
        )
        assert node.keys["a"].item.type == "value"


class TestWorkerMessages:
    def test_request_union(self):
        request = REQUEST.validate_python({"type": "stringify", "records": [1], "format": "jsonl"})
        assert isinstance(request, StringifyRequest)

    def test_batch_request_parses_operation(self):
        request = REQUEST.validate_python(
            {
                "type": "batch",
                "dataset": {"records": [{"a": 1}]},
                "operation": {"kind": "deleteField", "keys": ["a"]},
            }
        )
        assert isinstance(request, BatchRequest)
        assert request.operation.kind == "deleteField"

    def test_request_ids_generated(self):
        assert ParseRequest(kind="json", text="[]").id != ParseRequest(kind="json", text="[]").id
