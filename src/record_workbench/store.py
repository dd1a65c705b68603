"""In-memory dataset store with undo/redo history and filter state.

Every mutating call snapshots the dataset (records plus key-order hint)
before writing, so it can be undone. Writes to one dataset are
serialized with a per-dataset lock; different datasets never block each
other.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from record_workbench import filtering, workbench_logger
from record_workbench.coercion import copy_value, loads
from record_workbench.engine import apply_operation
from record_workbench.errors import RecordEditError
from record_workbench.models import (
    BatchResult,
    Dataset,
    FilterGroup,
    FilterRule,
    Operation,
    WorkbenchSettings,
)
from record_workbench.paths import PathPart, remove_at, rename_at, set_at

RecordEdit = Callable[[Any], Any]


# ── History ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Snapshot:
    records: list[Any]
    key_order: list[str] | None = None

    @classmethod
    def of(cls, dataset: Dataset) -> Snapshot:
        return cls(
            records=[copy_value(r) for r in dataset.records],
            key_order=list(dataset.key_order) if dataset.key_order is not None else None,
        )


class History:
    """Bounded undo stack plus a redo stack.

    Pushing past ``limit`` evicts the oldest snapshot. Any new push
    clears the redo stack.
    """

    def __init__(self, limit: int = 50) -> None:
        self._past: deque[Snapshot] = deque(maxlen=limit)
        self._future: list[Snapshot] = []

    def push(self, snapshot: Snapshot) -> None:
        self._past.append(snapshot)
        self._future.clear()

    def undo(self, current: Snapshot) -> Snapshot | None:
        """Pop the latest snapshot, remembering *current* for redo."""
        if not self._past:
            return None
        self._future.append(current)
        return self._past.pop()

    def redo(self, current: Snapshot) -> Snapshot | None:
        if not self._future:
            return None
        self._past.append(current)
        return self._future.pop()

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def lengths(self) -> tuple[int, int]:
        """(undo depth, redo depth)."""
        return len(self._past), len(self._future)


# ── Record edit helpers ──────────────────────────────────────────


def set_value(path: Sequence[PathPart], value: Any) -> RecordEdit:
    return lambda record: set_at(record, path, value)


def rename_key(path: Sequence[PathPart], new_key: str) -> RecordEdit:
    return lambda record: rename_at(record, path, new_key)


def remove_value(path: Sequence[PathPart]) -> RecordEdit:
    return lambda record: remove_at(record, path)


# ── Store ────────────────────────────────────────────────────────


@dataclass
class FilterState:
    search_query: str = ""
    groups: list[FilterGroup] = field(default_factory=list)
    filtered_indices: list[int] | None = None


class DatasetStore:
    """Holds open datasets by id.

    Filter state is kept per dataset and recomputed whenever the query,
    the rules or the records change.
    """

    def __init__(self, settings: WorkbenchSettings | None = None) -> None:
        self.settings = settings or WorkbenchSettings()
        self._datasets: dict[str, Dataset] = {}
        self._history: dict[str, History] = {}
        self._filters: dict[str, FilterState] = {}
        self._locks: dict[str, threading.Lock] = {}

    # -- datasets ------------------------------------------------------

    def add(self, dataset: Dataset) -> str:
        dataset_id = uuid.uuid4().hex
        self._datasets[dataset_id] = dataset
        self._history[dataset_id] = History(self.settings.history_limit)
        self._filters[dataset_id] = FilterState()
        self._locks[dataset_id] = threading.Lock()
        return dataset_id

    def get(self, dataset_id: str) -> Dataset:
        try:
            return self._datasets[dataset_id]
        except KeyError:
            raise RecordEditError(f"Unknown dataset: '{dataset_id}'") from None

    def ids(self) -> list[str]:
        return list(self._datasets)

    def remove(self, dataset_id: str) -> None:
        self.get(dataset_id)
        for table in (self._datasets, self._history, self._filters, self._locks):
            table.pop(dataset_id, None)

    def rename(self, dataset_id: str, name: str) -> None:
        """Rename a dataset. Blank names are ignored."""
        with self._lock(dataset_id):
            if name.strip():
                self._datasets[dataset_id] = self._datasets[dataset_id].model_copy(
                    update={"name": name.strip()}
                )

    def history(self, dataset_id: str) -> History:
        self.get(dataset_id)
        return self._history[dataset_id]

    def _write(
        self, dataset_id: str, updated: Dataset, *, save_history: bool = True
    ) -> None:
        # Caller holds the dataset's lock.
        if save_history:
            history = self._history[dataset_id]
            history.push(Snapshot.of(self._datasets[dataset_id]))
            workbench_logger.log_history_push(dataset_id, history.lengths[0])
        self._datasets[dataset_id] = updated
        self._refilter(dataset_id)

    def _lock(self, dataset_id: str) -> threading.Lock:
        self.get(dataset_id)
        return self._locks[dataset_id]

    # -- batch operations ----------------------------------------------

    def apply(self, dataset_id: str, operation: Operation) -> BatchResult:
        """Apply an operation and record the previous state in history.

        An operation skipped on a failed precondition leaves both the
        dataset and its history untouched.
        """
        with self._lock(dataset_id):
            current = self._datasets[dataset_id]
            result = apply_operation(current, operation, settings=self.settings)
            if result.dataset is not current:
                self._write(dataset_id, result.dataset)
            return result

    def replace_records(
        self, dataset_id: str, records: list[Any], *, save_history: bool = True
    ) -> None:
        with self._lock(dataset_id):
            current = self._datasets[dataset_id]
            self._write(
                dataset_id,
                current.model_copy(update={"records": records}),
                save_history=save_history,
            )

    def _record_index(self, dataset: Dataset, index: int) -> int:
        if not 0 <= index < len(dataset.records):
            raise RecordEditError(
                f"Record index {index} out of range (0..{len(dataset.records) - 1})"
            )
        return index

    def update_record(self, dataset_id: str, index: int, value: Any) -> None:
        with self._lock(dataset_id):
            current = self._datasets[dataset_id]
            self._record_index(current, index)
            records = list(current.records)
            records[index] = value
            self._write(dataset_id, current.model_copy(update={"records": records}))

    def edit_record(self, dataset_id: str, index: int, edit: RecordEdit) -> None:
        """Replace one record with ``edit(record)``.

        Use with :func:`set_value`, :func:`rename_key` or :func:`remove_value`.
        """
        with self._lock(dataset_id):
            current = self._datasets[dataset_id]
            self._record_index(current, index)
            records = list(current.records)
            records[index] = edit(records[index])
            self._write(dataset_id, current.model_copy(update={"records": records}))

    def append_record(self, dataset_id: str, record: Any) -> None:
        with self._lock(dataset_id):
            current = self._datasets[dataset_id]
            self._write(
                dataset_id,
                current.model_copy(update={"records": [*current.records, record]}),
            )

    # -- history -------------------------------------------------------

    def undo(self, dataset_id: str) -> bool:
        with self._lock(dataset_id):
            return self._travel(dataset_id, self._history[dataset_id].undo)

    def redo(self, dataset_id: str) -> bool:
        with self._lock(dataset_id):
            return self._travel(dataset_id, self._history[dataset_id].redo)

    def _travel(
        self, dataset_id: str, step: Callable[[Snapshot], Snapshot | None]
    ) -> bool:
        current = self._datasets[dataset_id]
        snapshot = step(Snapshot.of(current))
        if snapshot is None:
            return False
        self._datasets[dataset_id] = current.model_copy(
            update={
                "records": [copy_value(r) for r in snapshot.records],
                "key_order": snapshot.key_order,
            }
        )
        self._refilter(dataset_id)
        return True

    # -- error rows ----------------------------------------------------

    def resolve_error_row(self, dataset_id: str, index: int, raw: str) -> None:
        """Parse corrected text for a failed row and append it as a record.

        Raises:
            RecordEditError: If the text is not valid JSON or the error
                index is out of range.
        """
        with self._lock(dataset_id):
            current = self._datasets[dataset_id]
            self._error_index(current, index)
            try:
                record = loads(raw)
            except ValueError as e:
                raise RecordEditError(f"Invalid JSON: {e}") from e
            errors = [row for i, row in enumerate(current.errors) if i != index]
            self._write(
                dataset_id,
                current.model_copy(
                    update={"records": [*current.records, record], "errors": errors}
                ),
            )

    def remove_error_row(self, dataset_id: str, index: int) -> None:
        with self._lock(dataset_id):
            current = self._datasets[dataset_id]
            self._error_index(current, index)
            errors = [row for i, row in enumerate(current.errors) if i != index]
            self._datasets[dataset_id] = current.model_copy(update={"errors": errors})

    def _error_index(self, dataset: Dataset, index: int) -> None:
        if not 0 <= index < len(dataset.errors):
            raise RecordEditError(f"Error row {index} out of range")

    # -- filters -------------------------------------------------------

    def filter_state(self, dataset_id: str) -> FilterState:
        self.get(dataset_id)
        return self._filters[dataset_id]

    def _refilter(self, dataset_id: str) -> None:
        state = self._filters[dataset_id]
        state.filtered_indices = filtering.evaluate_filter(
            self._datasets[dataset_id].records, state.search_query, state.groups
        )

    def set_search_query(self, dataset_id: str, query: str) -> None:
        with self._lock(dataset_id):
            self._filters[dataset_id].search_query = query
            self._refilter(dataset_id)

    def add_filter_rule(
        self,
        dataset_id: str,
        rule: FilterRule,
        *,
        group_id: str | None = None,
        force_new_group: bool = False,
    ) -> None:
        with self._lock(dataset_id):
            state = self._filters[dataset_id]
            state.groups = filtering.add_rule(
                state.groups, rule, group_id=group_id, force_new_group=force_new_group
            )
            self._refilter(dataset_id)

    def remove_filter_rule(self, dataset_id: str, rule_id: str) -> None:
        with self._lock(dataset_id):
            state = self._filters[dataset_id]
            state.groups = filtering.remove_rule(state.groups, rule_id)
            self._refilter(dataset_id)

    def remove_filter_group(self, dataset_id: str, group_id: str) -> None:
        with self._lock(dataset_id):
            state = self._filters[dataset_id]
            state.groups = filtering.remove_group(state.groups, group_id)
            self._refilter(dataset_id)

    def clear_filters(self, dataset_id: str) -> None:
        with self._lock(dataset_id):
            self._filters[dataset_id] = FilterState()

    def is_filtered(self, dataset_id: str) -> bool:
        state = self.filter_state(dataset_id)
        return filtering.is_filtered(state.search_query, state.groups)

    def filtered_records(self, dataset_id: str) -> list[Any]:
        """Visible records: all of them when no filter is active."""
        records = self.get(dataset_id).records
        indices = self.filter_state(dataset_id).filtered_indices
        if indices is None:
            return list(records)
        return [records[i] for i in indices]

    def original_index(self, dataset_id: str, filtered_index: int) -> int:
        """Map a position in the filtered view back to a record index."""
        indices = self.filter_state(dataset_id).filtered_indices
        if indices is None or not 0 <= filtered_index < len(indices):
            return filtered_index
        return indices[filtered_index]

    def commit_filter(self, dataset_id: str) -> bool:
        """Replace the records with the filtered view.

        Returns False when no filter is active. The previous records go
        into history and the filter state is cleared.
        """
        with self._lock(dataset_id):
            if not self.is_filtered(dataset_id):
                return False
            current = self._datasets[dataset_id]
            records = filtering.commit_filter(
                current.records, self._filters[dataset_id].filtered_indices
            )
            self._filters[dataset_id] = FilterState()
            self._write(dataset_id, current.model_copy(update={"records": records}))
            return True

    # -- multi-dataset -------------------------------------------------

    def merge(
        self,
        dataset_ids: list[str],
        *,
        add_source_tag: bool = True,
        source_tag_field: str = "_source",
    ) -> str:
        """Concatenate datasets into a new one and return its id.

        Dict records are tagged with their dataset's name (or id) under
        ``source_tag_field``; other records are copied as-is.
        """
        if len(dataset_ids) < 2:
            raise RecordEditError("Merging needs at least two datasets")

        merged: list[Any] = []
        for dataset_id in dataset_ids:
            dataset = self.get(dataset_id)
            source = dataset.name or dataset_id
            for record in map(copy_value, dataset.records):
                if add_source_tag and isinstance(record, dict):
                    merged.append({**record, source_tag_field: source})
                else:
                    merged.append(record)

        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        return self.add(Dataset(records=merged, name=f"merged_{stamp}.json", format="json"))

    def duplicate(self, dataset_id: str, name: str | None = None) -> str:
        """Deep-copy a dataset (records and key order, not history)."""
        source = self.get(dataset_id)
        stem = (source.name or "dataset").rsplit(".", 1)[0]
        copied = Dataset(
            records=[copy_value(r) for r in source.records],
            key_order=list(source.key_order) if source.key_order is not None else None,
            name=name or f"{stem}_copy.json",
            format=source.format,
        )
        return self.add(copied)
