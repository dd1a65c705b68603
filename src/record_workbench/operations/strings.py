"""String operations: escape, unescape, and smart JSON parsing."""

from __future__ import annotations

from typing import Any

from record_workbench.coercion import smart_parse, to_json
from record_workbench.context import BatchContext
from record_workbench.models import EscapeStringOp, ParseJSONOp, UnescapeStringOp

# Backslash must come first so inserted backslashes are not escaped again
_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)

_UNESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    '"': '"',
    "'": "'",
    "\\": "\\",
}


def escape_text(text: str) -> str:
    """Turn backslash, quote, newline, CR, and tab into escape sequences."""
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def unescape_text(text: str) -> str:
    """Decode ``\\n \\t \\r \\" \\' \\\\`` in a single left-to-right scan.

    A backslash before any other character is kept as-is and scanning
    resumes at the following character, so ``\\q`` stays ``\\q`` and
    ``\\\\n`` decodes to a backslash followed by ``n``.
    """
    out: list[str] = []
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char == "\\" and i + 1 < length and text[i + 1] in _UNESCAPES:
            out.append(_UNESCAPES[text[i + 1]])
            i += 2
        else:
            out.append(char)
            i += 1
    return "".join(out)


def execute_escape_string(op: EscapeStringOp, context: BatchContext) -> list[Any]:
    """Escape string fields and serialize dict/list fields to JSON text.

    With no explicit targets every field is processed and serialization
    failures are skipped silently; explicit targets warn instead.
    """
    targets = op.resolved_keys()

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        explicit = bool(targets)
        keys = targets if explicit else list(record)
        updated = dict(record)
        for key in keys:
            if key not in updated:
                continue
            current = updated[key]
            if isinstance(current, str):
                updated[key] = escape_text(current)
            elif isinstance(current, (dict, list)):
                try:
                    updated[key] = to_json(current)
                except (TypeError, ValueError):
                    if explicit:
                        context.warn(f"escape failed: {key}")
        return updated

    return context.map_records(apply)


def execute_unescape_string(op: UnescapeStringOp, context: BatchContext) -> list[Any]:
    targets = op.resolved_keys()

    def apply(record: dict[str, Any]) -> dict[str, Any]:
        keys = targets or list(record)
        updated = dict(record)
        for key in keys:
            if isinstance(updated.get(key), str):
                updated[key] = unescape_text(updated[key])
        return updated

    return context.map_records(apply)


def execute_parse_json(op: ParseJSONOp, context: BatchContext) -> list[Any]:
    """Smart-parse JSON strings in the targeted fields, or the whole record."""
    targets = op.resolved_keys()

    def apply(record: dict[str, Any]) -> Any:
        if not targets:
            return smart_parse(record)
        updated = dict(record)
        for key in targets:
            if key in updated:
                updated[key] = smart_parse(updated[key])
        return updated

    return context.map_records(apply)
