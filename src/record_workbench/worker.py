"""Async front end for dataset-wide work.

Parsing, serialization and batch operations run in a thread via
``asyncio.to_thread`` so the event loop stays responsive. Each request
carries a correlation id that its progress events and response echo.
Failures come back as an ``ErrorResponse``, never as an exception.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from record_workbench import workbench_logger
from record_workbench.codec import (
    dump_json,
    dump_jsonl,
    parse_json_text,
    parse_jsonl_text,
    read_xlsx,
)
from record_workbench.engine import apply_operation
from record_workbench.models import (
    BatchRequest,
    BatchResponse,
    ErrorResponse,
    ParseRequest,
    ParseResponse,
    ProgressEvent,
    StringifyRequest,
    StringifyResponse,
    WorkbenchSettings,
    WorkerRequest,
    WorkerResponse,
)

ProgressCallback = Callable[[ProgressEvent], None]


def _parse(request: ParseRequest, progress: Callable[[int, str], None]) -> ParseResponse:
    progress(0, "parse")
    if request.kind == "xlsx":
        progress(30, "parse:xlsx")
        records: list[Any] = read_xlsx(request.content or b"")
        errors = []
    elif request.kind == "json":
        progress(30, "parse:json")
        records, errors = parse_json_text(request.text or ""), []
    else:
        records, errors = parse_jsonl_text(request.text or "", progress=progress)
    progress(100, "parse")
    return ParseResponse(id=request.id, records=records, errors=errors)


def _stringify(
    request: StringifyRequest, progress: Callable[[int, str], None]
) -> StringifyResponse:
    progress(0, "stringify")
    if request.format == "jsonl":
        text = dump_jsonl(request.records, progress=progress)
    else:
        text = dump_json(request.records)
    progress(100, "stringify")
    return StringifyResponse(id=request.id, text=text)


class DataWorker:
    """Runs requests off the event loop.

    Args:
        on_progress: Optional callback receiving ``ProgressEvent``s on the
            event loop thread. Percentages are clamped to 0..100.
        settings: Tuning knobs for batch requests.
    """

    def __init__(
        self,
        on_progress: ProgressCallback | None = None,
        settings: WorkbenchSettings | None = None,
    ) -> None:
        self.on_progress = on_progress
        self.settings = settings or WorkbenchSettings()

    def _progress_for(
        self, request_id: str, loop: asyncio.AbstractEventLoop
    ) -> Callable[[int, str], None]:
        def emit(percent: int, stage: str) -> None:
            if self.on_progress is None:
                return
            event = ProgressEvent(
                id=request_id, percent=max(0, min(100, percent)), stage=stage
            )
            loop.call_soon_threadsafe(self.on_progress, event)

        return emit

    def _run(
        self, request: WorkerRequest, progress: Callable[[int, str], None]
    ) -> WorkerResponse:
        match request:
            case ParseRequest():
                return _parse(request, progress)
            case StringifyRequest():
                return _stringify(request, progress)
            case BatchRequest():
                result = apply_operation(
                    request.dataset,
                    request.operation,
                    progress=progress,
                    settings=self.settings,
                )
                return BatchResponse(id=request.id, result=result)
        return ErrorResponse(id=request.id, message="Unsupported worker action")

    async def submit(self, request: WorkerRequest) -> WorkerResponse:
        """Run one request in a worker thread and return its response."""
        loop = asyncio.get_running_loop()
        progress = self._progress_for(request.id, loop)
        try:
            response = await asyncio.to_thread(self._run, request, progress)
        except Exception as e:
            workbench_logger.log_error(request.type, str(e))
            return ErrorResponse(id=request.id, message=str(e))
        return response
