"""Concurrency-bounded scheduling of render tasks."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from ..logging import get_logger
from ..models import ErrorKind, RenderOutcome, RenderTask
from .executor import RenderExecutor

logger = get_logger("scheduler")


@dataclass(frozen=True)
class BatchReport:
    """Aggregated outcomes of one render batch."""

    outcomes: Tuple[RenderOutcome, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> List[RenderOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failed(self) -> List[RenderOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def summary_lines(self) -> List[str]:
        lines = [f"Render complete: {len(self.succeeded)} succeeded, {len(self.failed)} failed"]
        for outcome in sorted(self.failed, key=lambda item: item.entry_point):
            lines.append(f"  - {outcome.describe()}")
        return lines


class RenderScheduler:
    """Runs tasks through an executor with at most ``limit`` in flight.

    One failure never cancels its siblings. :meth:`cancel` makes tasks that have
    not started report ``cancelled`` and signals running executors to stop.
    """

    def __init__(self, executor: RenderExecutor, *, limit: int) -> None:
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1")
        self.executor = executor
        self.limit = limit
        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._active = 0

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def run(self, tasks: Sequence[RenderTask]) -> List[RenderOutcome]:
        """Render every task, returning exactly one outcome per task in completion order."""
        if not tasks:
            return []
        outcomes: List[RenderOutcome] = []
        workers = min(self.limit, len(tasks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="staticrender-render") as pool:
            futures = {pool.submit(self._run_one, task): task for task in tasks}
            for future in as_completed(futures):
                outcomes.append(future.result())
        return outcomes

    def _run_one(self, task: RenderTask) -> RenderOutcome:
        if self._cancel.is_set():
            return RenderOutcome.cancelled(task.entry_point)
        with self._lock:
            self._active += 1
        try:
            logger.debug("Rendering %s", task.entry_point)
            return self.executor.execute(task, self._cancel)
        except Exception as exc:
            logger.exception("Executor raised while rendering %s", task.entry_point)
            return RenderOutcome.failure(
                task.entry_point, ErrorKind.PROCESS, f"Executor error: {exc}"
            )
        finally:
            with self._lock:
                self._active -= 1


__all__ = ["BatchReport", "RenderScheduler"]
