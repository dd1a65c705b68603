"""Filter engine: free-text search plus grouped field rules.

Groups combine with AND, rules inside a group with OR. Group management
functions return new lists and never modify the groups they are given.
"""

from __future__ import annotations

from typing import Any

from record_workbench import workbench_logger
from record_workbench.coercion import copy_value, lookup_path, stringify_value, to_json
from record_workbench.models import FilterGroup, FilterRule


def field_text(record: Any, field: str) -> str:
    """Text a rule compares against.

    A literal top-level key wins (flattened records carry keys such as
    ``user.name``); otherwise the field is walked as a dict-only dot path.
    A missing key, a walk through a list, and ``None`` all give ``""``.
    """
    if isinstance(record, dict) and field in record:
        return stringify_value(record[field])
    return stringify_value(lookup_path(record, field))


def rule_matches(record: Any, rule: FilterRule) -> bool:
    text = field_text(record, rule.field)
    folded = text.lower()
    needle = rule.value.lower()

    match rule.operator:
        case "contains":
            return needle in folded
        case "equals":
            return text == rule.value
        case "startsWith":
            return folded.startswith(needle)
        case "endsWith":
            return folded.endswith(needle)
        case "notContains":
            return needle not in folded
        case "isEmpty":
            return not text.strip()
        case "isNotEmpty":
            return bool(text.strip())
    return True


def _search_text(record: Any) -> str:
    try:
        return to_json(record).lower()
    except (TypeError, ValueError):
        return str(record).lower()


def record_matches(record: Any, query: str, groups: list[FilterGroup]) -> bool:
    """True when *record* passes the search query and every rule group."""
    if not isinstance(record, (dict, list)):
        return False
    if query.strip() and query.lower() not in _search_text(record):
        return False
    return all(
        not group.rules or any(rule_matches(record, rule) for rule in group.rules)
        for group in groups
    )


def all_rules(groups: list[FilterGroup]) -> list[FilterRule]:
    return [rule for group in groups for rule in group.rules]


def is_filtered(query: str, groups: list[FilterGroup]) -> bool:
    """True when a search query or at least one rule is active."""
    return bool(query.strip()) or bool(all_rules(groups))


def evaluate_filter(
    records: list[Any], query: str, groups: list[FilterGroup]
) -> list[int] | None:
    """Return the ascending indices of matching records.

    ``None`` means no filter is active, so every record is visible. An
    active filter that matches nothing returns ``[]``.
    """
    if not is_filtered(query, groups):
        return None
    indices = [
        index
        for index, record in enumerate(records)
        if record_matches(record, query, groups)
    ]
    workbench_logger.log_filter_evaluated(len(indices), len(records))
    return indices


# ── Group management ─────────────────────────────────────────────


def group_for_field(groups: list[FilterGroup], field: str) -> FilterGroup | None:
    """First group holding a rule on *field*."""
    return next(
        (group for group in groups if any(rule.field == field for rule in group.rules)),
        None,
    )


def add_rule(
    groups: list[FilterGroup],
    rule: FilterRule,
    *,
    group_id: str | None = None,
    force_new_group: bool = False,
) -> list[FilterGroup]:
    """Return groups with *rule* added.

    With ``group_id`` the rule joins that group (unknown ids leave the
    groups unchanged). With ``force_new_group`` it starts a new group.
    Otherwise it joins the group already filtering the same field, or
    starts a new one.
    """
    if group_id:
        return [
            group.model_copy(update={"rules": [*group.rules, rule]})
            if group.id == group_id
            else group
            for group in groups
        ]

    existing = None if force_new_group else group_for_field(groups, rule.field)
    if existing is None:
        return [*groups, FilterGroup(rules=[rule])]
    return [
        group.model_copy(update={"rules": [*group.rules, rule]})
        if group is existing
        else group
        for group in groups
    ]


def remove_rule(groups: list[FilterGroup], rule_id: str) -> list[FilterGroup]:
    """Return groups without the rule; groups left empty are dropped."""
    kept: list[FilterGroup] = []
    for group in groups:
        rules = [rule for rule in group.rules if rule.id != rule_id]
        if rules:
            kept.append(group.model_copy(update={"rules": rules}))
    return kept


def remove_group(groups: list[FilterGroup], group_id: str) -> list[FilterGroup]:
    return [group for group in groups if group.id != group_id]


def commit_filter(records: list[Any], indices: list[int] | None) -> list[Any]:
    """Deep copies of the records at *indices*, in filtered order.

    ``None`` (no active filter) copies every record.
    """
    if indices is None:
        return [copy_value(record) for record in records]
    return [copy_value(records[index]) for index in indices]
