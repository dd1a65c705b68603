"""Tests for value-level operation executors."""

from __future__ import annotations

import pytest

from record_workbench.codec import dump_json
from record_workbench.context import BatchContext
from record_workbench.models import ConvertFieldOp, TypeConvertOp, UpdateValueOp
from record_workbench.operations.values import (
    execute_convert_field,
    execute_type_convert,
    execute_update_value,
)


# ── updateValue ───────────────────────────────────────────────────


def test_set_replaces_existing_only():
    op = UpdateValueOp(kind="updateValue", key="a", value=0)
    assert execute_update_value(op, BatchContext([{"a": 5}, {"b": 1}])) == [
        {"a": 0},
        {"b": 1},
    ]


def test_set_without_value_uses_empty_string():
    op = UpdateValueOp(kind="updateValue", key="a")
    assert execute_update_value(op, BatchContext([{"a": 5}])) == [{"a": ""}]


def test_prefix_suffix_only_touches_strings():
    op = UpdateValueOp(
        kind="updateValue", key="a", mode="prefixSuffix", prefix="<", suffix=">"
    )
    assert execute_update_value(op, BatchContext([{"a": "x"}, {"a": 3}])) == [
        {"a": "<x>"},
        {"a": 3},
    ]


# ── typeConvert ───────────────────────────────────────────────────


def test_number_conversion_with_warning():
    op = TypeConvertOp(kind="typeConvert", key="a", target="number")
    ctx = BatchContext([{"a": "1"}, {"a": "x"}])
    assert execute_type_convert(op, ctx) == [{"a": 1}, {"a": "x"}]
    assert ctx.warnings == ["cannot convert to number: x"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2.5", 2.5),
        ("", 0),
        (" 7 ", 7),
        ("0x1f", 31),
        (True, 1),
        (None, 0),
        ("12345678901234567890", 12345678901234567890),
        ("1e3", 1000),
    ],
)
def test_number_coercion(raw, expected):
    op = TypeConvertOp(kind="typeConvert", key="a", target="number")
    [result] = execute_type_convert(op, BatchContext([{"a": raw}]))
    assert result["a"] == expected


def test_number_from_container_warns():
    op = TypeConvertOp(kind="typeConvert", key="a", target="number")
    ctx = BatchContext([{"a": {"x": 1}}])
    assert execute_type_convert(op, ctx) == [{"a": {"x": 1}}]
    assert ctx.warnings == ['cannot convert to number: {"x":1}']


@pytest.mark.parametrize("raw", ["Infinity", "-Infinity", "1e999"])
def test_infinite_text_is_not_a_number(raw):
    op = TypeConvertOp(kind="typeConvert", key="a", target="number")
    ctx = BatchContext([{"a": raw}])
    records = execute_type_convert(op, ctx)
    assert records == [{"a": raw}]
    assert ctx.warnings == [f"cannot convert to number: {raw}"]
    assert dump_json(records)


def test_string_conversion():
    op = TypeConvertOp(kind="typeConvert", key="a", target="string")
    records = [{"a": 1}, {"a": 1.5}, {"a": True}, {"a": None}, {"a": [1, 2]}]
    assert [r["a"] for r in execute_type_convert(op, BatchContext(records))] == [
        "1",
        "1.5",
        "true",
        "null",
        "[1,2]",
    ]


def test_boolean_conversion():
    op = TypeConvertOp(kind="typeConvert", key="a", target="boolean")
    records = [{"a": ""}, {"a": "no"}, {"a": 0}, {"a": []}, {"a": None}]
    assert [r["a"] for r in execute_type_convert(op, BatchContext(records))] == [
        False,
        True,
        False,
        True,
        False,
    ]


def test_absent_key_is_noop():
    op = TypeConvertOp(kind="typeConvert", key="a", target="number")
    ctx = BatchContext([{"b": "x"}])
    assert execute_type_convert(op, ctx) == [{"b": "x"}]
    assert ctx.warnings == []


# ── convertField ──────────────────────────────────────────────────


def test_convert_parse_counts_failures():
    op = ConvertFieldOp(kind="convertField", key="p", mode="parse")
    ctx = BatchContext([{"p": '{"x": 1}'}, {"p": "nope"}, {"q": 1}, {"p": "5"}])
    assert execute_convert_field(op, ctx) == [
        {"p": {"x": 1}},
        {"p": "nope"},
        {"q": 1},
        {"p": "5"},
    ]
    assert ctx.matched == 1
    assert ctx.warnings == ["convertField: 3 record(s) not converted"]


def test_convert_parse_is_single_level():
    op = ConvertFieldOp(kind="convertField", key="p", mode="parse")
    [result] = execute_convert_field(op, BatchContext([{"p": '{"inner": "[1]"}'}]))
    assert result == {"p": {"inner": "[1]"}}


def test_convert_stringify():
    op = ConvertFieldOp(kind="convertField", key="p", mode="stringify")
    ctx = BatchContext([{"p": {"a": [1, 2]}}])
    assert execute_convert_field(op, ctx) == [{"p": '{"a":[1,2]}'}]
    assert ctx.matched == 1
    assert ctx.warnings == []
