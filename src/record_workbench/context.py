"""Batch execution context.

Carries the input records of one operation run and accumulates its
warnings, match counts, and created columns. Progress is reported to an
optional callback at fixed row intervals.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

ProgressFn = Callable[[int, str], None]


class BatchContext:
    """Accumulator for one operation run over a dataset.

    Holds no business logic. Operation executors read ``records``, map
    them through :meth:`map_records`, and record soft failures with
    :meth:`warn`.
    """

    def __init__(
        self,
        records: list[Any],
        *,
        stage: str = "batch",
        progress: ProgressFn | None = None,
        progress_interval: int = 500,
    ) -> None:
        self.records = records
        self.stage = stage
        self.warnings: list[str] = []
        self.matched: int | None = None
        self.columns: list[str] = []
        self._progress = progress
        self._interval = max(1, progress_interval)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def count_match(self) -> None:
        self.matched = (self.matched or 0) + 1

    def start_counting(self) -> None:
        """Mark the run as one that reports match counts (starting at 0)."""
        if self.matched is None:
            self.matched = 0

    def add_columns(self, columns: list[str]) -> None:
        for column in columns:
            if column not in self.columns:
                self.columns.append(column)

    def report(self, percent: int) -> None:
        if self._progress is not None:
            self._progress(max(0, min(100, percent)), self.stage)

    def mappings(self) -> Iterator[dict[str, Any]]:
        """Iterate over the records that are dicts, skipping the rest."""
        return (record for record in self.records if isinstance(record, dict))

    def map_records(self, fn: Callable[[dict[str, Any]], Any]) -> list[Any]:
        """Apply *fn* to every dict record; other records pass through."""
        total = len(self.records) or 1
        mapped: list[Any] = []
        for index, record in enumerate(self.records):
            mapped.append(fn(record) if isinstance(record, dict) else record)
            if index % self._interval == 0:
                self.report(min(99, round(index / total * 100)))
        self.report(100)
        return mapped
