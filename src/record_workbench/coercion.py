"""Shared value helpers used by every other module.

Records are plain JSON-compatible builtins: ``None``, ``bool``, ``int``,
``float``, ``str``, ``list`` and ``dict``. Python ints are arbitrary
precision, so integers beyond the double-precision safe range survive a
load/save round trip without any special representation.

``MISSING`` marks an absent value and is distinct from a stored ``None``.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Sequence
from typing import Any

# Recursive walkers stop descending past this many levels and keep the
# remaining sub-structure verbatim.
MAX_RECURSION_DEPTH = 200

_MAX_SAFE_INTEGER = 2**53 - 1

_DECIMAL_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_RADIX_RE = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_RADIX_BASES = {"x": 16, "o": 8, "b": 2}


class _Missing:
    """Sentinel type for an absent value."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Missing:
        return self


MISSING: Any = _Missing()


# ── JSON text ─────────────────────────────────────────────────────


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unexpected token {name} in JSON")


def loads(text: str) -> Any:
    """Parse strict JSON text. ``NaN``/``Infinity`` literals are rejected.

    Raises:
        ValueError: If the text is not JSON or nests too deeply to decode.
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except RecursionError as e:
        raise ValueError(f"JSON nested too deeply: {e}") from None


def to_json(value: Any, *, indent: int | None = None) -> str:
    """Serialize a value as JSON, compact unless *indent* is given.

    Raises:
        TypeError: If the value holds something JSON cannot represent.
        ValueError: If the value is circular, nests too deeply, or holds
            NaN/Infinity.
    """
    separators = (",", ":") if indent is None else None
    try:
        return json.dumps(
            value,
            ensure_ascii=False,
            indent=indent,
            separators=separators,
            allow_nan=False,
        )
    except RecursionError as e:
        raise ValueError(f"Value nested too deeply: {e}") from None


def parse_maybe_json(value: Any) -> Any:
    """Return ``value`` parsed as JSON when it is a parseable string."""
    if not isinstance(value, str):
        return value
    try:
        return loads(value)
    except ValueError:
        return value


def _looks_like_container(text: str) -> bool:
    return (text.startswith("{") and text.endswith("}")) or (
        text.startswith("[") and text.endswith("]")
    )


def smart_parse(value: Any, depth: int = 0) -> Any:
    """Recursively unwrap JSON-encoded objects and arrays.

    Strings whose trimmed text looks like ``{...}`` or ``[...]`` are parsed;
    a dict or list result is walked again so doubly stringified JSON is
    fully resolved. Parse failures and scalar results (``"[1"``, ``"\\"5\\""``)
    leave the original string untouched. Lists and dicts are walked
    element- and value-wise. Applying it twice equals applying it once.
    """
    if depth > MAX_RECURSION_DEPTH:
        return value

    if isinstance(value, str):
        trimmed = value.strip()
        if _looks_like_container(trimmed):
            try:
                parsed = loads(trimmed)
            except ValueError:
                return value
            if isinstance(parsed, (dict, list)):
                return smart_parse(parsed, depth + 1)
        return value

    if isinstance(value, list):
        return [smart_parse(item, depth + 1) for item in value]

    if isinstance(value, dict):
        return {key: smart_parse(item, depth + 1) for key, item in value.items()}

    return value


# ── Path lookup ───────────────────────────────────────────────────


def split_dot_path(path: str) -> list[str]:
    """Split ``a.b.c`` into segments, dropping empty ones."""
    return [segment for segment in path.split(".") if segment]


def _as_index(segment: str | int, length: int) -> int | None:
    if isinstance(segment, int) and not isinstance(segment, bool):
        index = segment
    elif isinstance(segment, str) and segment.isdigit():
        index = int(segment)
    else:
        return None
    return index if 0 <= index < length else None


def lookup_path(target: Any, path: str, *, through_lists: bool = False) -> Any:
    """Resolve a dot-joined path by walking dicts.

    With ``through_lists`` a numeric segment may also index into a list
    (``items.0.name``). Returns ``MISSING`` when any segment is absent or
    the walk hits a scalar.
    """
    segments = split_dot_path(path) if path else []
    if not segments:
        return MISSING

    current = target
    for segment in segments:
        if isinstance(current, dict):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif through_lists and isinstance(current, list):
            index = _as_index(segment, len(current))
            if index is None:
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def traverse_path(value: Any, path: Sequence[str]) -> Any:
    """Drill down through *path*, fanning out over arrays.

    JSON strings are coerced at every level. When the current value is a
    list, each dict element contributes its child at the segment, and list
    children are spliced in one level deep. Returns ``MISSING`` when the
    walk hits a scalar or an absent key outside of a list.
    """
    current = parse_maybe_json(value)
    for segment in path:
        current = parse_maybe_json(current)
        if isinstance(current, list):
            collected: list[Any] = []
            for item in current:
                parsed_item = parse_maybe_json(item)
                if not isinstance(parsed_item, dict) or segment not in parsed_item:
                    continue
                child = parse_maybe_json(parsed_item[segment])
                if isinstance(child, list):
                    collected.extend(child)
                else:
                    collected.append(child)
            current = collected
            continue
        if not isinstance(current, dict) or segment not in current:
            return MISSING
        current = current[segment]
    return current


# ── Stringification and coercion ─────────────────────────────────


def number_text(value: int | float) -> str:
    """Render a number the way JSON tooling displays it (``1.0`` -> ``1``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def stringify_value(value: Any) -> str:
    """Short text form used for matching and distinct-value sampling.

    ``None`` and ``MISSING`` become ``""``; scalars render as in JSON;
    containers render as compact JSON.
    """
    if value is None or value is MISSING:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return number_text(value)
    try:
        return to_json(value)
    except (TypeError, ValueError):
        return str(value)


def to_text(value: Any) -> str:
    """Generic string conversion used by ``typeConvert`` to string.

    Unlike :func:`stringify_value`, ``None`` becomes ``"null"``.
    """
    if value is None:
        return "null"
    return stringify_value(value)


def _normalize_number(value: float) -> int | float:
    if value.is_integer() and abs(value) <= _MAX_SAFE_INTEGER:
        return int(value)
    return value


def _parse_numeric_text(text: str) -> int | float | None:
    stripped = text.strip()
    if not stripped:
        return 0

    radix = _RADIX_RE.match(stripped)
    if radix:
        try:
            return int(radix.group(2), _RADIX_BASES[radix.group(1).lower()])
        except ValueError:
            return None

    if not _DECIMAL_RE.match(stripped):
        return None
    if _INTEGER_RE.match(stripped):
        return int(stripped)
    number = float(stripped)
    return _normalize_number(number) if math.isfinite(number) else None


def to_number(value: Any) -> int | float | None:
    """Numeric coercion. Returns ``None`` when the result is not a number.

    Integer text converts losslessly to ``int`` whatever its size;
    ``""``, ``None`` and ``False`` convert to ``0``; dicts and lists do not
    convert. Infinity and overflowing exponents do not convert either,
    since JSON cannot carry them.
    """
    if isinstance(value, bool):
        return int(value)
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _normalize_number(value) if math.isfinite(value) else None
    if isinstance(value, str):
        return _parse_numeric_text(value)
    return None


def is_truthy(value: Any) -> bool:
    """JSON-style truthiness: empty containers count as true."""
    if value is None or value is MISSING:
        return False
    if isinstance(value, (dict, list)):
        return True
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


# ── Copying ───────────────────────────────────────────────────────


def copy_value(value: Any) -> Any:
    """Deep copy of a JSON value.

    Walks with an explicit stack, so nesting depth is limited only by
    memory. Scalars are shared since they are immutable.
    """
    if not isinstance(value, (dict, list)):
        return value
    root: dict[str, Any] | list[Any] = {} if isinstance(value, dict) else []
    stack: list[tuple[Any, Any]] = [(value, root)]
    while stack:
        source, target = stack.pop()
        items = source.items() if isinstance(source, dict) else enumerate(source)
        for key, child in items:
            if isinstance(child, (dict, list)):
                copied: Any = {} if isinstance(child, dict) else []
                stack.append((child, copied))
            else:
                copied = child
            if isinstance(target, dict):
                target[key] = copied
            else:
                target.append(copied)
    return root
