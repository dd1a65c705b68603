"""Command-line interface for record-workbench.

Enables execution via ``uvx record-workbench`` or a plain
``record-workbench`` command after install.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

# ── Human-readable help strings ──────────────────────────────────────────────

_TOP_DESCRIPTION = """\
Batch editor for JSON, JSONL and XLSX record datasets.

Loads a dataset, applies a plan of field operations (add, delete, rename,
convert, flatten, extract, ...) to every record, and writes the result.
Also filters records, infers their nested structure, and checks plans.

Use this tool when you need to RESHAPE, FILTER or INSPECT a file of records.
Do NOT use it to: validate records against a JSON Schema, query a database,
or edit a single value by hand.
"""

_TOP_EPILOG = """\
For a machine-readable JSON description of this CLI (commands, argument
schemas, output shapes, examples):

  record-workbench schema

Quick examples:
  record-workbench apply data.jsonl plan.yaml -o cleaned.jsonl
  record-workbench filter data.json --rule status:equals:active
  record-workbench infer data.jsonl --paths
  record-workbench validate plan.yaml
"""

_APPLY_DESCRIPTION = """\
Apply every operation of a plan to a dataset and write the result.

The dataset format follows the file suffix (.json, .jsonl/.ndjson, .xlsx).
Operations run in plan order; each one sees the previous one's output.
An operation with a bad parameter is skipped as a whole and reported as a
warning; per-record problems are reported as warnings too.
"""

_APPLY_EPILOG = """\
Plan file format (YAML or JSON):

  settings:                 # optional
    progress_interval: 500
  operations:
    - kind: renameField
      from: userName
      to: user_name
    - kind: typeConvert
      key: age
      target: number
    - kind: flattenStrip
      targetKey: meta
      depth: 2

Output:
  Records are written to --output (format from its suffix unless --format is
  given), or printed to stdout as a JSON array. A one-line warning summary
  goes to stderr when any operation produced warnings.

Examples:
  record-workbench apply data.jsonl plan.yaml
  record-workbench apply data.json plan.yaml -o out.xlsx
  record-workbench apply data.jsonl plan.yaml -o out.jsonl --log-dir ./logs

Common errors:
  DatasetLoadError -- data file missing, unreadable or not valid JSON
  PlanLoadError    -- plan file missing or its structure is invalid
"""

_FILTER_DESCRIPTION = """\
Print the records matching a search query and/or field rules.

Rules on the same field are OR-ed together (they share a group); rules on
different fields are AND-ed. --new-group forces each rule into its own group.
Operators: contains, equals, startsWith, endsWith, notContains, isEmpty,
isNotEmpty. Only "equals" is case-sensitive.
"""

_FILTER_EPILOG = """\
Examples:
  record-workbench filter data.jsonl --query alice
  record-workbench filter data.json --rule status:equals:A --rule status:equals:B
  record-workbench filter data.json --rule user.email:isEmpty --indices
"""

_INFER_DESCRIPTION = """\
Infer the nested structure of a dataset from a sample of its records.

Prints a tree of object/array/value nodes, or with --paths the dotted
leaf paths usable as field names in plans and filter rules.
"""

_VALIDATE_DESCRIPTION = """\
Statically validate a plan file without touching any data.

Checks required operation parameters, parameter sanity (depth, duplicate
names, rename collisions) and fields used after an earlier deleteField.
"""

_VALIDATE_EPILOG = """\
Diagnostic output format (written to stderr on failure):
  [error]   op#index.kind.field: message  -- the operation would be skipped
  [warning] op#index.kind.field: message  -- may not do what was intended

Exit codes:
  0 -- plan is valid; safe to pass to "record-workbench apply"
  1 -- one or more errors found
"""

_SCHEMA_DESCRIPTION = """\
Print a machine-readable JSON description of this CLI to stdout.

Designed for agents and tooling that need to understand what commands are
available, what arguments they accept, and what output they produce.
"""

_OPERATION_KINDS = [
    ("addField", "Add or overwrite a field with a static value or a copy of another field."),
    ("deleteField", "Remove the listed fields."),
    ("renameField", "Rename one field, keeping its position."),
    ("renameFields", "Rename several fields at once from a mapping."),
    ("updateValue", "Replace a value, or add a prefix/suffix to string values."),
    ("typeConvert", "Convert a value to string, number or boolean."),
    ("convertField", "Parse a JSON string field, or stringify an object field."),
    ("extractByCondition", "Copy a value out of the first matching element of a list field."),
    ("nestFields", "Move fields into a nested object."),
    ("flattenStrip", "Flatten nested fields into dotted keys, optionally stripping a prefix."),
    ("keyReorder", "Put the listed keys first."),
    ("escapeString", "Escape quotes, backslashes and control characters."),
    ("unescapeString", "Undo escapeString."),
    ("parseJSON", "Recursively parse JSON text inside fields."),
    ("expandObject", "Spread keys of an object field into top-level columns."),
    ("pivotArray", "Turn a list of key/value objects into named columns."),
    ("extractNestedTag", "Find a labelled tag anywhere inside a field and copy its value."),
    ("extractByPath", "Drill down a path, fanning out over arrays, into a new column."),
]


# ── Structured JSON schema (for `record-workbench schema`) ────────────────────

def _cli_schema() -> dict[str, Any]:
    """Return a structured JSON description of the entire CLI."""
    return {
        "tool": "record-workbench",
        "description": (
            "Batch editor for JSON, JSONL and XLSX record datasets. "
            "Applies plans of field operations, filters records, and infers "
            "their nested structure."
        ),
        "when_to_use": (
            "Use this CLI when you have a file of records and want to reshape, "
            "filter or inspect them in bulk."
        ),
        "not_for": [
            "Validating records against a JSON Schema",
            "Querying databases or remote APIs",
            "Editing one value by hand",
        ],
        "commands": [
            {
                "name": "apply",
                "description": "Apply every operation of a plan to a dataset and write the result.",
                "arguments": {
                    "data": {
                        "type": "string",
                        "format": "file path",
                        "required": True,
                        "description": "Dataset file (.json, .jsonl, .ndjson or .xlsx).",
                    },
                    "plan": {
                        "type": "string",
                        "format": "file path",
                        "required": True,
                        "description": "Plan file (YAML or JSON) with an 'operations' list.",
                    },
                    "--output": {
                        "short": "-o",
                        "type": "string",
                        "format": "file path",
                        "required": False,
                        "description": "Write records here instead of printing JSON to stdout.",
                    },
                    "--format": {
                        "type": "string",
                        "enum": ["json", "jsonl", "xlsx"],
                        "required": False,
                        "description": "Output format; defaults to the --output suffix.",
                    },
                    "--log-dir": {
                        "type": "string",
                        "format": "directory path",
                        "required": False,
                        "description": "Write JSON-lines operation logs to DIR/workbench.log.",
                    },
                },
                "output": {
                    "channel": "stdout (or the file given by --output)",
                    "format": "records in the chosen format",
                    "stderr": "warning summary, when any warnings were produced",
                },
                "exit_codes": {
                    "0": "success",
                    "1": "dataset or plan could not be loaded",
                },
                "examples": [
                    {
                        "description": "Apply a plan and print the result",
                        "command": "record-workbench apply data.jsonl plan.yaml",
                    },
                    {
                        "description": "Apply a plan and export to Excel",
                        "command": "record-workbench apply data.json plan.yaml -o out.xlsx",
                    },
                ],
            },
            {
                "name": "filter",
                "description": "Print the records matching a search query and/or field rules.",
                "arguments": {
                    "data": {
                        "type": "string",
                        "format": "file path",
                        "required": True,
                        "description": "Dataset file.",
                    },
                    "--query": {
                        "short": "-q",
                        "type": "string",
                        "required": False,
                        "description": "Case-insensitive text searched in each record's JSON.",
                    },
                    "--rule": {
                        "type": "string",
                        "format": "FIELD:OPERATOR[:VALUE]",
                        "required": False,
                        "repeatable": True,
                        "description": "Field rule; rules on the same field are OR-ed.",
                        "examples": ["status:equals:active", "email:isEmpty"],
                    },
                    "--new-group": {
                        "type": "boolean",
                        "required": False,
                        "description": "Put every rule in its own group (AND).",
                    },
                    "--indices": {
                        "type": "boolean",
                        "required": False,
                        "description": "Print matching record indices instead of records.",
                    },
                },
                "output": {
                    "channel": "stdout",
                    "format": "JSON array of records (or of indices)",
                },
                "exit_codes": {"0": "success", "1": "dataset could not be loaded or bad rule"},
            },
            {
                "name": "infer",
                "description": "Infer the nested structure of a dataset.",
                "arguments": {
                    "data": {
                        "type": "string",
                        "format": "file path",
                        "required": True,
                        "description": "Dataset file.",
                    },
                    "--max-depth": {
                        "type": "integer",
                        "required": False,
                        "description": "Depth limit for inference (default 6).",
                    },
                    "--paths": {
                        "type": "boolean",
                        "required": False,
                        "description": "Print dotted leaf paths instead of the tree.",
                    },
                },
                "output": {"channel": "stdout", "format": "JSON"},
                "exit_codes": {"0": "success", "1": "dataset could not be loaded"},
            },
            {
                "name": "validate",
                "description": "Statically validate a plan file without touching any data.",
                "arguments": {
                    "plan": {
                        "type": "string",
                        "format": "file path",
                        "required": True,
                        "description": "Plan file to validate.",
                    },
                },
                "output": {
                    "stdout_on_success": "Plan is valid (<N> operations)",
                    "stderr_on_failure": "[error|warning] op#index.kind.field: message",
                    "format": "human-readable text",
                },
                "exit_codes": {"0": "plan is valid", "1": "one or more errors found"},
            },
            {
                "name": "schema",
                "description": "Print this machine-readable JSON schema to stdout.",
                "arguments": {},
                "output": {"channel": "stdout", "format": "JSON object (this document)"},
                "exit_codes": {"0": "always succeeds"},
            },
        ],
        "plan_format": {
            "description": (
                "A plan file has an optional 'settings' mapping and an "
                "'operations' list. Each operation is an object with a 'kind' "
                "and camelCase parameters."
            ),
            "operation_kinds": [
                {"kind": kind, "description": description}
                for kind, description in _OPERATION_KINDS
            ],
            "settings": [
                "history_limit",
                "progress_interval",
                "schema_sample_limit",
                "schema_max_depth",
                "distinct_value_limit",
            ],
        },
    }


# ── Argument parser ───────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="record-workbench",
        description=_TOP_DESCRIPTION,
        epilog=_TOP_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command")

    # ── apply ────────────────────────────────────────────────────────────────
    apply_p = sub.add_parser(
        "apply",
        help="Apply a plan of operations to a dataset",
        description=_APPLY_DESCRIPTION,
        epilog=_APPLY_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    apply_p.add_argument("data", type=Path, help="Path to the dataset file")
    apply_p.add_argument("plan", type=Path, help="Path to the plan YAML/JSON file")
    apply_p.add_argument(
        "--output", "-o",
        type=Path,
        metavar="FILE",
        help="Write records to FILE instead of stdout.",
    )
    apply_p.add_argument(
        "--format",
        choices=["json", "jsonl", "xlsx"],
        help="Output format (default: from the --output suffix, else json).",
    )
    apply_p.add_argument(
        "--log-dir",
        type=Path,
        metavar="DIR",
        help=(
            "Write JSONL operation logs to DIR/workbench.log. Each line is a "
            "JSON event: operation_start, operation_complete, operation_skipped."
        ),
    )

    # ── filter ───────────────────────────────────────────────────────────────
    filter_p = sub.add_parser(
        "filter",
        help="Print records matching a query and/or field rules",
        description=_FILTER_DESCRIPTION,
        epilog=_FILTER_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    filter_p.add_argument("data", type=Path, help="Path to the dataset file")
    filter_p.add_argument("--query", "-q", default="", help="Free-text search")
    filter_p.add_argument(
        "--rule",
        action="append",
        default=[],
        metavar="FIELD:OPERATOR[:VALUE]",
        help="Field rule. Repeatable; rules on one field are OR-ed.",
    )
    filter_p.add_argument(
        "--new-group",
        action="store_true",
        help="Put every rule in its own group so all must match.",
    )
    filter_p.add_argument(
        "--indices",
        action="store_true",
        help="Print matching indices instead of records.",
    )

    # ── infer ────────────────────────────────────────────────────────────────
    infer_p = sub.add_parser(
        "infer",
        help="Infer the nested structure of a dataset",
        description=_INFER_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    infer_p.add_argument("data", type=Path, help="Path to the dataset file")
    infer_p.add_argument("--max-depth", type=int, default=6, metavar="N")
    infer_p.add_argument(
        "--paths",
        action="store_true",
        help="Print dotted leaf paths instead of the schema tree.",
    )

    # ── validate ─────────────────────────────────────────────────────────────
    val_p = sub.add_parser(
        "validate",
        help="Statically validate a plan without touching data",
        description=_VALIDATE_DESCRIPTION,
        epilog=_VALIDATE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    val_p.add_argument("plan", type=Path, help="Path to the plan file to validate")

    # ── schema ───────────────────────────────────────────────────────────────
    sub.add_parser(
        "schema",
        help="Print a machine-readable JSON schema of this CLI to stdout",
        description=_SCHEMA_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    return parser


# ── Command handlers ──────────────────────────────────────────────────────────

def _parse_rule(raw: str) -> Any:
    """Build a FilterRule from ``FIELD:OPERATOR[:VALUE]``."""
    from pydantic import ValidationError

    from record_workbench.models import FilterRule

    parts = raw.split(":", 2)
    if len(parts) < 2 or not parts[0]:
        print(f"Error: --rule values must be FIELD:OPERATOR[:VALUE], got {raw!r}", file=sys.stderr)
        sys.exit(1)
    field, operator = parts[0], parts[1]
    value = parts[2] if len(parts) == 3 else ""
    try:
        return FilterRule(field=field, operator=operator, value=value)
    except ValidationError:
        print(f"Error: unknown filter operator {operator!r}", file=sys.stderr)
        sys.exit(1)


def _cmd_apply(args: argparse.Namespace) -> int:
    from record_workbench import (
        configure_logging,
        dump_json,
        dump_jsonl,
        load_dataset,
        load_plan,
        run_plan,
        save_dataset,
        summarize_warnings,
    )

    if args.log_dir:
        configure_logging(args.log_dir)

    dataset = load_dataset(args.data)
    plan = load_plan(args.plan)
    result = run_plan(plan, dataset)

    if args.output:
        path = save_dataset(result.dataset, args.output, format=args.format)
        print(f"Output written to {path}", file=sys.stderr)
    elif args.format == "jsonl":
        print(dump_jsonl(result.dataset.records))
    else:
        print(dump_json(result.dataset.records))

    summary = summarize_warnings(result.warnings)
    if summary:
        print(summary, file=sys.stderr)
    return 0


def _cmd_filter(args: argparse.Namespace) -> int:
    from record_workbench import add_rule, dump_json, evaluate_filter, load_dataset

    dataset = load_dataset(args.data)
    groups = []
    for raw in args.rule:
        groups = add_rule(groups, _parse_rule(raw), force_new_group=args.new_group)

    indices = evaluate_filter(dataset.records, args.query, groups)
    if indices is None:
        indices = list(range(len(dataset.records)))

    if args.indices:
        print(json.dumps(indices))
    else:
        print(dump_json([dataset.records[i] for i in indices]))
    return 0


def _cmd_infer(args: argparse.Namespace) -> int:
    from record_workbench import field_paths, infer_schema, load_dataset

    dataset = load_dataset(args.data)
    schema = infer_schema(dataset.records, args.max_depth)
    if args.paths:
        print(json.dumps(field_paths(schema), indent=2))
    else:
        print(schema.model_dump_json(indent=2, exclude_none=True))
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    from record_workbench import load_and_validate_plan

    plan, result = load_and_validate_plan(args.plan)

    for d in result.diagnostics:
        print(
            f"[{d.severity.value}] op#{d.index}.{d.kind}.{d.field}: {d.message}",
            file=sys.stderr,
        )

    if result.ok:
        print(f"Plan is valid ({len(plan.operations)} operations)")
        return 0

    error_count = len(result.errors)
    warning_count = len(result.warnings)
    print(f"\n{error_count} error(s), {warning_count} warning(s)", file=sys.stderr)
    return 1


def _cmd_schema() -> int:
    print(json.dumps(_cli_schema(), indent=2))
    return 0


# ── Entry point ───────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    from record_workbench.errors import WorkbenchError

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers = {
        "apply": _cmd_apply,
        "filter": _cmd_filter,
        "infer": _cmd_infer,
        "validate": _cmd_validate,
    }
    if args.command == "schema":
        sys.exit(_cmd_schema())

    try:
        sys.exit(handlers[args.command](args))
    except WorkbenchError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
