"""Tests for the filter engine and rule-group management."""

from __future__ import annotations

import pytest

from record_workbench.filtering import (
    add_rule,
    all_rules,
    commit_filter,
    evaluate_filter,
    field_text,
    group_for_field,
    is_filtered,
    remove_group,
    remove_rule,
    rule_matches,
)
from record_workbench.flatten import flatten_value
from record_workbench.models import FilterGroup, FilterRule


def rule(field: str, operator: str = "contains", value: str = "") -> FilterRule:
    return FilterRule(field=field, operator=operator, value=value)


RECORDS = [
    {"status": "A", "name": "Alice", "user": {"email": "a@x.io"}},
    {"status": "A", "name": "Bob", "user": {"email": ""}},
    {"status": "B", "name": "Carol", "tags": ["x"]},
]


# ── Rule evaluation ───────────────────────────────────────────────


class TestRuleMatches:
    def test_equals_is_case_sensitive(self):
        assert rule_matches({"s": "A"}, rule("s", "equals", "A"))
        assert not rule_matches({"s": "a"}, rule("s", "equals", "A"))

    @pytest.mark.parametrize(
        "operator, value, expected",
        [
            ("contains", "LIC", True),
            ("startsWith", "al", True),
            ("endsWith", "CE", True),
            ("notContains", "bob", True),
            ("notContains", "ali", False),
        ],
    )
    def test_case_insensitive_operators(self, operator, value, expected):
        assert rule_matches({"n": "Alice"}, rule("n", operator, value)) is expected

    @pytest.mark.parametrize(
        "record, expected",
        [({"v": ""}, True), ({"v": "  "}, True), ({}, True), ({"v": None}, True), ({"v": 0}, False)],
    )
    def test_is_empty(self, record, expected):
        assert rule_matches(record, rule("v", "isEmpty")) is expected
        assert rule_matches(record, rule("v", "isNotEmpty")) is not expected

    def test_field_text_walks_dicts_only(self):
        assert field_text({"a": {"b": 1.0}}, "a.b") == "1"
        assert field_text({"a": [{"b": 1}]}, "a.0.b") == ""
        assert field_text({"a": True}, "a") == "true"
        assert field_text({"a": {"x": [1]}}, "a") == '{"x":[1]}'

    def test_literal_dotted_key_wins(self):
        assert field_text({"user.name": "x"}, "user.name") == "x"
        assert field_text({"user.name": "x", "user": {"name": "y"}}, "user.name") == "x"
        assert field_text({"user": {"name": "y"}}, "user.name") == "y"


# ── evaluate_filter ───────────────────────────────────────────────


class TestEvaluateFilter:
    def test_unfiltered_is_none(self):
        assert evaluate_filter(RECORDS, "   ", []) is None
        assert evaluate_filter(RECORDS, "", [FilterGroup(rules=[])]) is None

    def test_equals_selects_indices(self):
        groups = add_rule([], rule("status", "equals", "A"))
        assert evaluate_filter(RECORDS, "", groups) == [0, 1]

    def test_no_match_is_empty_list(self):
        groups = add_rule([], rule("status", "equals", "Z"))
        assert evaluate_filter(RECORDS, "", groups) == []

    def test_search_is_case_insensitive_over_json(self):
        assert evaluate_filter(RECORDS, "X.IO", []) == [0]
        assert evaluate_filter(RECORDS, '"tags"', []) == [2]

    def test_groups_and_rules_or(self):
        groups = add_rule([], rule("status", "equals", "A"))
        groups = add_rule(groups, rule("status", "equals", "B"))
        assert len(groups) == 1
        assert evaluate_filter(RECORDS, "", groups) == [0, 1, 2]

        groups = add_rule(groups, rule("name", "startsWith", "c"))
        assert len(groups) == 2
        assert evaluate_filter(RECORDS, "", groups) == [2]

    def test_query_and_rules_combined(self):
        groups = add_rule([], rule("status", "equals", "A"))
        assert evaluate_filter(RECORDS, "bob", groups) == [1]

    def test_scalar_records_never_match(self):
        records = ["A", 1, None, {"status": "A"}]
        groups = add_rule([], rule("status", "equals", "A"))
        assert evaluate_filter(records, "", groups) == [3]
        assert evaluate_filter(records, "a", []) == [3]

    def test_flattened_records_match_on_compound_keys(self):
        records = [
            flatten_value({"user": {"name": "x"}}),
            flatten_value({"user": {"name": "z"}}),
        ]
        group = FilterGroup(rules=[rule("user.name", "equals", "x")])
        assert evaluate_filter(records, "", [group]) == [0]

    def test_empty_group_passes(self):
        groups = [FilterGroup(rules=[]), *add_rule([], rule("status", "equals", "B"))]
        assert evaluate_filter(RECORDS, "", groups) == [2]


# ── Group management ──────────────────────────────────────────────


class TestGroups:
    def test_force_new_group(self):
        groups = add_rule([], rule("a"))
        groups = add_rule(groups, rule("a"), force_new_group=True)
        assert len(groups) == 2

    def test_explicit_group_id(self):
        groups = add_rule([], rule("a"))
        groups = add_rule(groups, rule("b"))
        target = groups[0].id
        groups = add_rule(groups, rule("c"), group_id=target)
        assert [r.field for r in groups[0].rules] == ["a", "c"]

    def test_unknown_group_id_is_noop(self):
        groups = add_rule([], rule("a"))
        assert add_rule(groups, rule("b"), group_id="missing") == groups

    def test_add_does_not_mutate_input(self):
        groups = add_rule([], rule("a"))
        add_rule(groups, rule("a"))
        assert len(groups[0].rules) == 1

    def test_removing_only_rule_removes_group(self):
        only = rule("a")
        groups = add_rule([], only)
        groups = add_rule(groups, rule("b"))
        groups = remove_rule(groups, only.id)
        assert len(groups) == 1
        assert groups[0].rules[0].field == "b"

    def test_remove_group(self):
        groups = add_rule(add_rule([], rule("a")), rule("b"))
        assert [g.rules[0].field for g in remove_group(groups, groups[0].id)] == ["b"]

    def test_group_for_field_and_all_rules(self):
        groups = add_rule(add_rule([], rule("a")), rule("b"))
        assert group_for_field(groups, "b") is groups[1]
        assert group_for_field(groups, "zzz") is None
        assert [r.field for r in all_rules(groups)] == ["a", "b"]

    def test_is_filtered(self):
        assert not is_filtered(" ", [])
        assert is_filtered("q", [])
        assert is_filtered("", add_rule([], rule("a")))


def test_commit_filter_deep_copies():
    committed = commit_filter(RECORDS, [2, 0])
    assert committed == [RECORDS[2], RECORDS[0]]
    assert committed[1] is not RECORDS[0]
    assert committed[1]["user"] is not RECORDS[0]["user"]
    assert commit_filter(RECORDS, None) == RECORDS
