"""Export progress accounting."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ETA_MIN_COMPLETED = 10


@dataclass(frozen=True)
class ProgressState:
    total: int
    completed: int = 0
    failed_notes: int = 0
    failed_attachments: int = 0

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 1.0


@dataclass(frozen=True)
class ExportStatistics:
    total: int
    successful: int
    failed_notes: int
    failed_attachments: int
    completed_at: datetime

    @classmethod
    def from_state(cls, state: ProgressState) -> "ExportStatistics":
        return cls(
            total=state.total,
            successful=state.total - state.failed_notes,
            failed_notes=state.failed_notes,
            failed_attachments=state.failed_attachments,
            completed_at=datetime.now(timezone.utc),
        )


class ProgressTracker:
    """Counters shared by all workers; every update goes through one lock.

    `completed` counts notes that reached a terminal state, failed or not.
    """

    def __init__(self, total: int, clock=time.monotonic):
        self._lock = asyncio.Lock()
        self._clock = clock
        self._started = clock()
        self._state = ProgressState(total=total)

    async def note_completed(self) -> ProgressState:
        async with self._lock:
            s = self._state
            self._state = ProgressState(
                s.total, s.completed + 1, s.failed_notes, s.failed_attachments
            )
            return self._state

    async def note_failed(self) -> ProgressState:
        async with self._lock:
            s = self._state
            self._state = ProgressState(
                s.total, s.completed + 1, s.failed_notes + 1, s.failed_attachments
            )
            return self._state

    async def attachment_failed(self) -> ProgressState:
        async with self._lock:
            s = self._state
            self._state = ProgressState(
                s.total, s.completed, s.failed_notes, s.failed_attachments + 1
            )
            return self._state

    def snapshot(self) -> ProgressState:
        return self._state

    def eta_seconds(self) -> Optional[float]:
        s = self._state
        if s.completed < ETA_MIN_COMPLETED or s.completed >= s.total:
            return None
        elapsed = self._clock() - self._started
        return elapsed / s.completed * (s.total - s.completed)

    def message(self) -> str:
        return progress_message(self._state, self.eta_seconds())


def format_time_remaining(seconds: float) -> str:
    seconds = max(0, int(round(seconds)))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    return f"{seconds // 3600}h {seconds % 3600 // 60}m"


def progress_message(state: ProgressState, eta: Optional[float] = None) -> str:
    current = min(state.completed + 1, state.total) if state.total else 0
    msg = f"Exporting notes {current} of {state.total}"
    if eta is not None and state.completed >= ETA_MIN_COMPLETED:
        msg += f" (ETA {format_time_remaining(eta)} remaining)"
    return msg
