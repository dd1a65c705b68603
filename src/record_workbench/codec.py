"""Reading and writing datasets as JSON, JSONL and XLSX.

JSON numbers are carried by Python's own ``int``/``float``, so integers
of any size round-trip without loss. XLSX goes through openpyxl: the
first worksheet's header row names the fields.
"""

from __future__ import annotations

import io
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from record_workbench.coercion import loads, to_json
from record_workbench.errors import DatasetLoadError
from record_workbench.models import Dataset, ParseErrorRow

Format = Literal["json", "jsonl", "xlsx"]
ProgressFn = Callable[[int, str], None]

PROGRESS_INTERVAL = 500
_MAX_COLUMN_WIDTH = 60

_SUFFIXES: dict[str, Format] = {
    ".json": "json",
    ".jsonl": "jsonl",
    ".ndjson": "jsonl",
    ".xlsx": "xlsx",
}


def _report(progress: ProgressFn | None, percent: int, stage: str) -> None:
    if progress is not None:
        progress(max(0, min(100, percent)), stage)


def format_for(path: str | Path) -> Format:
    """Infer the dataset format from a file suffix.

    Raises:
        DatasetLoadError: For suffixes other than .json/.jsonl/.ndjson/.xlsx.
    """
    suffix = Path(path).suffix.lower()
    try:
        return _SUFFIXES[suffix]
    except KeyError:
        raise DatasetLoadError(f"Unsupported dataset format: '{suffix or path}'") from None


# ── Parsing ──────────────────────────────────────────────────────


def parse_json_text(text: str) -> list[Any]:
    """A JSON array becomes the records; any other value a single record.

    Raises:
        DatasetLoadError: If the text is not valid JSON.
    """
    try:
        parsed = loads(text)
    except ValueError as e:
        raise DatasetLoadError(f"Invalid JSON: {e}") from e
    return parsed if isinstance(parsed, list) else [parsed]


def parse_jsonl_text(
    text: str,
    *,
    progress: ProgressFn | None = None,
    interval: int = PROGRESS_INTERVAL,
) -> tuple[list[Any], list[ParseErrorRow]]:
    """Parse one JSON value per line.

    Blank lines are skipped. Lines that fail to parse are returned as
    error rows (1-based line numbers) instead of raising.
    """
    records: list[Any] = []
    errors: list[ParseErrorRow] = []
    lines = text.splitlines()
    total = len(lines) or 1

    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped:
            try:
                records.append(loads(stripped))
            except ValueError as e:
                errors.append(ParseErrorRow(line=index + 1, raw=line, message=str(e)))
        if index % interval == 0:
            _report(progress, min(99, round(index / total * 100)), "parse:jsonl")

    _report(progress, 100, "parse:jsonl")
    return records, errors


def _header_names(row: tuple[Any, ...]) -> list[str]:
    names: list[str] = []
    blanks = 0
    for cell in row:
        if cell is None or str(cell).strip() == "":
            names.append("__EMPTY" if blanks == 0 else f"__EMPTY_{blanks}")
            blanks += 1
        else:
            names.append(str(cell))
    return names


def read_xlsx(source: str | Path | bytes) -> list[dict[str, Any]]:
    """Read the first worksheet into dict records.

    The first row holds the field names. Empty cells are left out of
    their record and rows with no values at all are skipped.

    Raises:
        DatasetLoadError: If the workbook cannot be opened.
    """
    handle = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        workbook = load_workbook(handle, read_only=True, data_only=True)
    except (
        InvalidFileException,
        zipfile.BadZipFile,
        OSError,
        KeyError,
        ValueError,
    ) as e:
        raise DatasetLoadError(f"Cannot read workbook: {e}") from e

    try:
        if not workbook.worksheets:
            return []
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        names = _header_names(header)

        records: list[dict[str, Any]] = []
        for row in rows:
            record = {
                name: value
                for name, value in zip(names, row)
                if value is not None and value != ""
            }
            if record:
                records.append(record)
        return records
    finally:
        workbook.close()


def load_dataset(
    path: str | Path,
    *,
    format: Format | None = None,
    progress: ProgressFn | None = None,
) -> Dataset:
    """Read a dataset file; the format defaults to the file suffix.

    Raises:
        DatasetLoadError: If the file is missing, unreadable, or not valid
            JSON (JSONL rows that fail are kept as error rows instead).
    """
    path = Path(path)
    fmt = format or format_for(path)
    if not path.is_file():
        raise DatasetLoadError(f"Dataset file not found: {path}")

    if fmt == "xlsx":
        return Dataset(records=read_xlsx(path), name=path.name, format=fmt)

    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise DatasetLoadError(f"Cannot read {path}: {e}") from e

    if fmt == "json":
        _report(progress, 30, "parse:json")
        records = parse_json_text(text)
        _report(progress, 100, "parse:json")
        return Dataset(records=records, name=path.name, format=fmt)

    records, errors = parse_jsonl_text(text, progress=progress)
    return Dataset(records=records, errors=errors, name=path.name, format=fmt)


# ── Serialization ────────────────────────────────────────────────


def dump_json(records: list[Any]) -> str:
    """Pretty-printed JSON array (two-space indent)."""
    return to_json(records, indent=2)


def dump_jsonl(
    records: list[Any],
    *,
    progress: ProgressFn | None = None,
    interval: int = PROGRESS_INTERVAL,
) -> str:
    """One compact JSON value per line, no trailing newline."""
    total = len(records) or 1
    lines: list[str] = []
    for index, record in enumerate(records):
        lines.append(to_json(record))
        if index % interval == 0:
            _report(progress, min(99, round(index / total * 100)), "stringify:jsonl")
    _report(progress, 100, "stringify:jsonl")
    return "\n".join(lines)


def _columns(records: list[Any], key_order: list[str] | None) -> list[str]:
    columns = list(key_order or [])
    for record in records:
        keys = record.keys() if isinstance(record, dict) else ["value"]
        for key in keys:
            if key not in columns:
                columns.append(key)
    return columns


def _cell(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return to_json(value)
    return value


def write_xlsx(
    records: list[Any],
    destination: str | Path | io.BytesIO,
    *,
    key_order: list[str] | None = None,
    sheet_title: str = "Data",
) -> None:
    """Write records to a single worksheet with a header row.

    Nested values are stored as compact JSON text. Records that are not
    dicts go into a ``value`` column.
    """
    columns = _columns(records, key_order)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    sheet.append(columns)

    widths = [len(column) for column in columns]
    for record in records:
        row_source = record if isinstance(record, dict) else {"value": record}
        row = [_cell(row_source.get(column)) for column in columns]
        sheet.append(row)
        for i, cell in enumerate(row):
            if cell is not None:
                widths[i] = max(widths[i], len(str(cell)))

    for i, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(i)].width = min(
            width + 2, _MAX_COLUMN_WIDTH
        )

    workbook.save(destination)


def save_dataset(
    dataset: Dataset, path: str | Path, *, format: Format | None = None
) -> Path:
    """Write a dataset to *path*; the format defaults to the file suffix."""
    path = Path(path)
    fmt = format or format_for(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "xlsx":
        write_xlsx(dataset.records, path, key_order=dataset.key_order)
    elif fmt == "jsonl":
        path.write_text(dump_jsonl(dataset.records), encoding="utf-8")
    else:
        path.write_text(dump_json(dataset.records), encoding="utf-8")
    return path
