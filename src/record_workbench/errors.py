"""Custom exception hierarchy for record-workbench.

All exceptions inherit from WorkbenchError so callers can catch broadly
or narrowly as needed. Per-record problems during a batch never raise;
they come back as warning strings on the BatchResult.
"""

from __future__ import annotations


class WorkbenchError(Exception):
    """Base for all record-workbench errors."""


class DatasetLoadError(WorkbenchError):
    """A dataset file could not be read or decoded."""


class PlanLoadError(WorkbenchError):
    """Plan YAML parsing or operation structure validation failed."""


class OperationError(WorkbenchError):
    """An operation was invoked with an invalid dataset or descriptor."""

    def __init__(
        self,
        kind: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        self.kind = kind
        self.cause = cause
        super().__init__(f"Operation '{kind}' failed: {message}")


class RecordEditError(WorkbenchError):
    """A store edit referenced an unknown dataset or an out-of-range row."""
