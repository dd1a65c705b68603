"""record-workbench: batch editing core for JSON, JSONL and XLSX record datasets."""

from record_workbench.codec import (
    dump_json,
    dump_jsonl,
    load_dataset,
    parse_json_text,
    parse_jsonl_text,
    read_xlsx,
    save_dataset,
    write_xlsx,
)
from record_workbench.coercion import MISSING, smart_parse
from record_workbench.engine import apply_operation, run_plan, summarize_warnings
from record_workbench.errors import (
    DatasetLoadError,
    OperationError,
    PlanLoadError,
    RecordEditError,
    WorkbenchError,
)
from record_workbench.filtering import (
    add_rule,
    all_rules,
    commit_filter,
    evaluate_filter,
    group_for_field,
    remove_group,
    remove_rule,
)
from record_workbench.flatten import flatten_value, unflatten
from record_workbench.loader import load_plan
from record_workbench.models import (
    BatchResult,
    Dataset,
    FilterGroup,
    FilterRule,
    Operation,
    Plan,
    SchemaNode,
    WorkbenchSettings,
)
from record_workbench.paths import (
    add_list_item,
    add_map_entry,
    get_at,
    remove_at,
    rename_at,
    set_at,
)
from record_workbench.schema import field_paths, infer_schema
from record_workbench.store import DatasetStore, History
from record_workbench.validator import (
    Diagnostic,
    Severity,
    ValidationResult,
    load_and_validate_plan,
    validate_plan,
)
from record_workbench.workbench_logger import configure_logging
from record_workbench.worker import DataWorker

__all__ = [
    "add_list_item",
    "add_map_entry",
    "add_rule",
    "all_rules",
    "apply_operation",
    "commit_filter",
    "configure_logging",
    "Diagnostic",
    "dump_json",
    "dump_jsonl",
    "evaluate_filter",
    "field_paths",
    "flatten_value",
    "get_at",
    "group_for_field",
    "infer_schema",
    "load_and_validate_plan",
    "load_dataset",
    "load_plan",
    "MISSING",
    "parse_json_text",
    "parse_jsonl_text",
    "read_xlsx",
    "remove_at",
    "remove_group",
    "remove_rule",
    "rename_at",
    "run_plan",
    "save_dataset",
    "set_at",
    "Severity",
    "smart_parse",
    "summarize_warnings",
    "unflatten",
    "validate_plan",
    "ValidationResult",
    "write_xlsx",
    "BatchResult",
    "DataWorker",
    "Dataset",
    "DatasetLoadError",
    "DatasetStore",
    "FilterGroup",
    "FilterRule",
    "History",
    "Operation",
    "OperationError",
    "Plan",
    "PlanLoadError",
    "RecordEditError",
    "SchemaNode",
    "WorkbenchError",
    "WorkbenchSettings",
]
