"""Progress events and the channel that delivers them.

A job produces a time-ordered stream of ``ProgressEvent``s closed by exactly
one terminal event (``CompleteEvent`` or ``ErrorEvent``).  Each event can be
encoded for a text event stream:

    event: progress
    data: {"message": "...", "progress": 50, "file": null}

Usage:
    channel = ProgressChannel(coordinator.run())
    async for event in channel:
        print(event.to_sse(), end="")
"""

import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Literal, Union

from pydantic import BaseModel, Field


class _Event(BaseModel):
    kind: str

    @property
    def is_terminal(self) -> bool:
        return self.kind != "progress"

    def to_wire(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_sse(self) -> str:
        """Encode the event as one server-sent-events frame."""
        wire = self.to_wire()
        return f"event: {wire['event']}\ndata: {json.dumps(wire['data'])}\n\n"


class ProgressEvent(_Event):
    """Per-table or per-chunk progress report."""

    kind: Literal["progress"] = "progress"
    table: str
    rows_done: int = 0
    rows_total: int = 0
    overall_percent: int = Field(ge=0, le=100)
    message: str

    def to_wire(self) -> dict[str, Any]:
        return _wire(self.kind, self.message, self.overall_percent, None)


class CompleteEvent(_Event):
    """Terminal event: the export finished and the artifact is in place."""

    kind: Literal["complete"] = "complete"
    result_locator: str
    message: str = "Export complete!"
    overall_percent: int = 100

    def to_wire(self) -> dict[str, Any]:
        return _wire(self.kind, self.message, self.overall_percent, self.result_locator)


class ErrorEvent(_Event):
    """Terminal event: the export failed or was cancelled; nothing is kept."""

    kind: Literal["error"] = "error"
    message: str
    code: str = "export_failed"

    def to_wire(self) -> dict[str, Any]:
        return _wire(self.kind, self.message, None, None)


ExportEvent = Union[ProgressEvent, CompleteEvent, ErrorEvent]


def _wire(kind: str, message: str, progress: int | None, file: str | None) -> dict[str, Any]:
    return {
        "event": kind,
        "data": {"message": message, "progress": progress, "file": file},
    }


class ProgressChannel:
    """One-way, FIFO delivery of a job's events to an observer.

    Wraps the coordinator's async generator.  Iteration stops right after
    the terminal event; the channel can only be consumed once.
    """

    def __init__(self, events: AsyncIterator[ExportEvent]) -> None:
        self._events = events
        self._terminal: ExportEvent | None = None
        self._consumed = False

    @property
    def terminal(self) -> ExportEvent | None:
        """The terminal event, once it has been delivered."""
        return self._terminal

    async def __aiter__(self) -> AsyncIterator[ExportEvent]:
        if self._consumed:
            raise RuntimeError("Progress channel already consumed")
        self._consumed = True
        try:
            async for event in self._events:
                if event.is_terminal:
                    self._terminal = event
                yield event
                if event.is_terminal:
                    break
        finally:
            aclose = getattr(self._events, "aclose", None)
            if aclose is not None:
                await aclose()

    async def drain(
        self,
        callback: Callable[[ExportEvent], Awaitable[None] | None] | None = None,
    ) -> ExportEvent:
        """Push every event to ``callback`` in order and return the terminal one."""
        async for event in self:
            if callback is not None:
                result = callback(event)
                if result is not None:
                    await result
        if self._terminal is None:
            raise RuntimeError("Export stream ended without a terminal event")
        return self._terminal
