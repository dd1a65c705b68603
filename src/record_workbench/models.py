"""Pydantic models for operations, datasets, filters, and results.

All data structures live here. No business logic, just shapes.
Operations use a discriminated union on the ``kind`` field so invalid
operation descriptors fail at parse time. Field names are snake_case in
Python and camelCase on the wire (``fromKey``, ``targetKeys``...).
"""

from __future__ import annotations

from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return uuid4().hex


# ── Operation descriptors ─────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class _KeyTargets(_CamelModel):
    """Shared ``key`` / ``targetKeys`` selection for string operations."""

    key: str | None = None
    target_keys: list[str] | None = None

    def resolved_keys(self) -> list[str]:
        """Explicit targets; an empty list means every field of the record."""
        if self.target_keys is not None:
            return list(self.target_keys)
        return [self.key] if self.key else []


class AddFieldOp(_CamelModel):
    kind: Literal["addField"]
    key: str
    mode: Literal["static", "copy"] = "static"
    value: Any = None
    from_key: str | None = None


class DeleteFieldOp(_CamelModel):
    kind: Literal["deleteField"]
    keys: list[str]


class RenameFieldOp(_CamelModel):
    kind: Literal["renameField"]
    from_: str = Field(alias="from")
    to: str


class RenameFieldsOp(_CamelModel):
    kind: Literal["renameFields"]
    mapping: dict[str, str]


class UpdateValueOp(_CamelModel):
    kind: Literal["updateValue"]
    key: str
    mode: Literal["set", "prefixSuffix"] = "set"
    value: Any = None
    prefix: str = ""
    suffix: str = ""


class TypeConvertOp(_CamelModel):
    kind: Literal["typeConvert"]
    key: str
    target: Literal["string", "number", "boolean"]


class ConvertFieldOp(_CamelModel):
    kind: Literal["convertField"]
    key: str
    mode: Literal["parse", "stringify"]


class ExtractByConditionOp(_CamelModel):
    kind: Literal["extractByCondition"]
    source_field: str
    match_key: str
    match_value: str
    extract_key: str
    target_field: str


class NestFieldsOp(_CamelModel):
    kind: Literal["nestFields"]
    source_fields: list[str]
    target_field: str

    def cleaned_sources(self) -> list[str]:
        """Trimmed, de-duplicated source names without the target itself."""
        target = self.target_field.strip()
        seen: list[str] = []
        for field in self.source_fields:
            name = field.strip()
            if name and name != target and name not in seen:
                seen.append(name)
        return seen


class FlattenStripOp(_CamelModel):
    kind: Literal["flattenStrip"]
    strip_prefix: str | None = None
    depth: int | None = None
    target_key: str | None = None
    target_keys: list[str] | None = None
    keep_prefix: bool = True
    use_smart_eav: bool = Field(default=False, alias="useSmartEAV")

    def resolved_keys(self) -> list[str]:
        if self.target_keys is not None:
            return list(self.target_keys)
        return [self.target_key] if self.target_key else []


class KeyReorderOp(_CamelModel):
    kind: Literal["keyReorder"]
    order: list[str]


class EscapeStringOp(_KeyTargets):
    kind: Literal["escapeString"]


class UnescapeStringOp(_KeyTargets):
    kind: Literal["unescapeString"]


class ParseJSONOp(_KeyTargets):
    kind: Literal["parseJSON"]


class ExpandObjectOp(_CamelModel):
    kind: Literal["expandObject"]
    field: str
    keys: list[str] = Field(default_factory=list)
    expand_all: bool = False


class PivotArrayOp(_CamelModel):
    kind: Literal["pivotArray"]
    field: str
    key_col: str
    value_col: str


class ExtractNestedTagOp(_CamelModel):
    kind: Literal["extractNestedTag"]
    field: str
    label: str
    target_field: str
    nested_keys: list[str] = Field(
        default_factory=lambda: ["tags", "labels", "annotations", "attributes"]
    )
    label_key: str = "label"
    value_key: str = "value"


class PathFilter(_CamelModel):
    key: str
    value: str


class ExtractByPathOp(_CamelModel):
    kind: Literal["extractByPath"]
    field: str
    path: list[str] = Field(default_factory=list)
    filter: PathFilter | None = None
    target: str | None = None
    output_field: str


# Discriminated union: Pydantic picks the right model based on `kind`
Operation = Annotated[
    AddFieldOp
    | DeleteFieldOp
    | RenameFieldOp
    | RenameFieldsOp
    | UpdateValueOp
    | TypeConvertOp
    | ConvertFieldOp
    | ExtractByConditionOp
    | NestFieldsOp
    | FlattenStripOp
    | KeyReorderOp
    | EscapeStringOp
    | UnescapeStringOp
    | ParseJSONOp
    | ExpandObjectOp
    | PivotArrayOp
    | ExtractNestedTagOp
    | ExtractByPathOp,
    Field(discriminator="kind"),
]


# ── Datasets ──────────────────────────────────────────────────────


class ParseErrorRow(BaseModel):
    line: int
    raw: str
    message: str


class Dataset(BaseModel):
    records: list[Any] = Field(default_factory=list)
    key_order: list[str] | None = None
    errors: list[ParseErrorRow] = Field(default_factory=list)
    name: str | None = None
    format: Literal["json", "jsonl", "xlsx"] | None = None


class BatchResult(BaseModel):
    dataset: Dataset
    warnings: list[str] = Field(default_factory=list)
    matched: int | None = None
    columns: list[str] = Field(default_factory=list)


# ── Filters ───────────────────────────────────────────────────────


FilterOperator = Literal[
    "contains",
    "equals",
    "startsWith",
    "endsWith",
    "notContains",
    "isEmpty",
    "isNotEmpty",
]


class FilterRule(BaseModel):
    id: str = Field(default_factory=_new_id)
    field: str
    operator: FilterOperator = "contains"
    value: str = ""


class FilterGroup(BaseModel):
    id: str = Field(default_factory=_new_id)
    rules: list[FilterRule] = Field(default_factory=list)


# ── Schema inference ──────────────────────────────────────────────


class SchemaNode(BaseModel):
    type: Literal["object", "array", "value"]
    keys: dict[str, SchemaNode] | None = None
    item: SchemaNode | None = None
    distinct_values: dict[str, list[str]] | None = None


SchemaNode.model_rebuild()


# ── Configuration and plans ───────────────────────────────────────


class WorkbenchSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    history_limit: int = Field(default=50, ge=1)
    progress_interval: int = Field(default=500, ge=1)
    schema_sample_limit: int = Field(default=50, ge=1)
    schema_max_depth: int = Field(default=6, ge=1)
    distinct_value_limit: int = Field(default=40, ge=1)


class Plan(BaseModel):
    settings: WorkbenchSettings = Field(default_factory=WorkbenchSettings)
    operations: list[Operation]


# ── Worker messages ───────────────────────────────────────────────


class ParseRequest(BaseModel):
    type: Literal["parse"] = "parse"
    id: str = Field(default_factory=_new_id)
    kind: Literal["json", "jsonl", "xlsx"]
    text: str | None = None
    content: bytes | None = None


class StringifyRequest(BaseModel):
    type: Literal["stringify"] = "stringify"
    id: str = Field(default_factory=_new_id)
    records: list[Any]
    format: Literal["json", "jsonl"] = "json"


class BatchRequest(BaseModel):
    type: Literal["batch"] = "batch"
    id: str = Field(default_factory=_new_id)
    dataset: Dataset
    operation: Operation


WorkerRequest = Annotated[
    ParseRequest | StringifyRequest | BatchRequest,
    Field(discriminator="type"),
]


class ParseResponse(BaseModel):
    type: Literal["parse"] = "parse"
    id: str
    records: list[Any]
    errors: list[ParseErrorRow] = Field(default_factory=list)


class StringifyResponse(BaseModel):
    type: Literal["stringify"] = "stringify"
    id: str
    text: str


class BatchResponse(BaseModel):
    type: Literal["batch"] = "batch"
    id: str
    result: BatchResult


class ErrorResponse(BaseModel):
    type: Literal["error"] = "error"
    id: str
    message: str


WorkerResponse = ParseResponse | StringifyResponse | BatchResponse | ErrorResponse


class ProgressEvent(BaseModel):
    id: str
    percent: int
    stage: str
