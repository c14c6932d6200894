"""Render executors: run one :class:`RenderTask` in isolation and report its outcome."""

from __future__ import annotations

import json
import os
import signal
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from ..logging import get_logger
from ..models import ErrorKind, RenderOutcome, RenderTask

logger = get_logger("executor")

_STDERR_TAIL_LINES = 20
_PACKAGE_PARENT = str(Path(__file__).resolve().parents[2])


class RenderExecutor(Protocol):
    """Executes one task. Implementations must return an outcome, never raise."""

    def execute(self, task: RenderTask, cancel: Optional[threading.Event] = None) -> RenderOutcome:
        ...


def worker_command() -> List[str]:
    return [sys.executable, "-m", "staticrender.render.worker"]


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        try:
            return f"terminated by {signal.Signals(-returncode).name}"
        except ValueError:
            return f"terminated by signal {-returncode}"
    return f"exited with code {returncode}"


def _tail(text: str, lines: int = _STDERR_TAIL_LINES) -> str:
    stripped = [line for line in text.strip().splitlines() if line.strip()]
    return "\n".join(stripped[-lines:])


class SubprocessExecutor:
    """Runs each task in a fresh ``python -m staticrender.render.worker`` process.

    ``timeout`` and ``grace_period`` default to the task config's
    ``render_timeout`` and ``shutdown_grace``.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        grace_period: float | None = None,
        poll_interval: float = 0.1,
        command: Sequence[str] | None = None,
    ) -> None:
        self.timeout = timeout
        self.grace_period = grace_period
        self.poll_interval = poll_interval
        self.command = list(command) if command is not None else worker_command()

    def execute(self, task: RenderTask, cancel: Optional[threading.Event] = None) -> RenderOutcome:
        timeout = self.timeout if self.timeout is not None else task.config.render_timeout
        grace = self.grace_period if self.grace_period is not None else task.config.shutdown_grace

        if cancel is not None and cancel.is_set():
            return RenderOutcome.cancelled(task.entry_point)

        try:
            process = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(task.config.root),
                env=self._environment(),
                text=True,
                encoding="utf-8",
            )
        except OSError as exc:
            return RenderOutcome.failure(
                task.entry_point,
                ErrorKind.PROCESS,
                f"Failed to spawn render process: {exc}",
            )

        payload: Optional[str] = json.dumps(task.to_payload())
        deadline = time.monotonic() + timeout
        stdout, stderr = "", ""
        while True:
            try:
                stdout, stderr = process.communicate(input=payload, timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                # communicate() has already written stdin; later calls must not resend it.
                payload = None
            if cancel is not None and cancel.is_set():
                stdout, stderr = self._terminate(process, grace)
                self._relay(task, stderr)
                return RenderOutcome.cancelled(task.entry_point, "Render cancelled during shutdown")
            if time.monotonic() >= deadline:
                stdout, stderr = self._terminate(process, grace)
                self._relay(task, stderr)
                return RenderOutcome.failure(
                    task.entry_point,
                    ErrorKind.PROCESS,
                    f"Render process exceeded timeout of {timeout:g}s",
                    exit_code=process.returncode,
                )

        self._relay(task, stderr)
        return self._parse_outcome(task, process.returncode, stdout, stderr)

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = _PACKAGE_PARENT + (os.pathsep + existing if existing else "")
        return env

    def _terminate(self, process: subprocess.Popen[str], grace: float) -> tuple[str, str]:
        process.terminate()
        try:
            return process.communicate(timeout=grace)
        except subprocess.TimeoutExpired:
            logger.warning("Render process %s ignored SIGTERM; killing", process.pid)
            process.kill()
            return process.communicate()

    def _relay(self, task: RenderTask, stderr: str | None) -> None:
        if not stderr:
            return
        for line in stderr.rstrip().splitlines():
            logger.debug("[%s] %s", task.entry_point, line)

    def _parse_outcome(
        self, task: RenderTask, returncode: int, stdout: str | None, stderr: str | None
    ) -> RenderOutcome:
        for line in reversed((stdout or "").strip().splitlines()):
            try:
                data = json.loads(line)
                return RenderOutcome.from_dict(data)
            except (ValueError, TypeError, AttributeError):
                continue

        message = f"Render process {_describe_exit(returncode)} without a result"
        tail = _tail(stderr or "")
        if tail:
            message += f"\n{tail}"
        return RenderOutcome.failure(
            task.entry_point,
            ErrorKind.PROCESS,
            message,
            exit_code=returncode,
        )


__all__ = ["RenderExecutor", "SubprocessExecutor", "worker_command"]
