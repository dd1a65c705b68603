"""Structured JSON logging for batch operations.

Every operation, filter pass and history write is recorded as one JSON
object per line in ``workbench.log``, so a plan run can be audited
afterwards. Nothing is written until :func:`configure_logging` is called.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_logger = logging.getLogger("record_workbench")
_logger.addHandler(logging.NullHandler())

LOG_FILE_NAME = "workbench.log"


def configure_logging(
    log_dir: str | Path, level: int = logging.DEBUG
) -> Path:
    """Send workbench events to ``<log_dir>/workbench.log``.

    Calling this again for the same directory reuses the existing file
    handler rather than adding a second one, so events are never
    written twice.

    Returns:
        The path of the log file.
    """
    log_path = (Path(log_dir) / LOG_FILE_NAME).resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    for existing in _logger.handlers:
        if (
            isinstance(existing, logging.FileHandler)
            and Path(existing.baseFilename) == log_path
        ):
            existing.setLevel(level)
            break
    else:
        handler = logging.FileHandler(str(log_path), encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        _logger.addHandler(handler)

    _logger.setLevel(level)
    return log_path


def _log(event: dict[str, Any], level: int = logging.INFO) -> None:
    if not _logger.isEnabledFor(level):
        return
    entry = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        "level": logging.getLevelName(level).lower(),
        **event,
    }
    _logger.log(level, json.dumps(entry, default=str))


def log_operation_start(kind: str, record_count: int) -> None:
    _log({"event": "operation_start", "kind": kind, "records": record_count})


def log_operation_complete(
    kind: str, record_count: int, warning_count: int, duration_ms: float
) -> None:
    _log({
        "event": "operation_complete",
        "kind": kind,
        "records": record_count,
        "warnings": warning_count,
        "duration_ms": round(duration_ms, 2),
    })


def log_operation_skipped(kind: str, reasons: list[str]) -> None:
    _log(
        {"event": "operation_skipped", "kind": kind, "reasons": reasons},
        logging.WARNING,
    )


def log_filter_evaluated(matched: int | None, total: int) -> None:
    _log(
        {"event": "filter_evaluated", "matched": matched, "total": total},
        logging.DEBUG,
    )


def log_history_push(dataset_id: str, depth: int) -> None:
    _log(
        {"event": "history_push", "dataset_id": dataset_id, "depth": depth},
        logging.DEBUG,
    )


def log_error(kind: str, error: str) -> None:
    _log({"event": "error", "kind": kind, "error": error}, logging.ERROR)
