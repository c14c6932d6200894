"""Worker process entrypoint: ``python -m staticrender.render.worker``.

Reads one JSON task payload from stdin and writes one JSON outcome line to
stdout. While the task runs, file descriptor 1 points at stderr so output from
user code cannot corrupt the result channel.
"""

from __future__ import annotations

import json
import os
import sys

from ..config import ConfigError
from ..logging import configure_logging
from ..models import ErrorKind, RenderOutcome, RenderTask
from .pipeline import run_render_task


def _emit(outcome: RenderOutcome, fd: int = 1) -> int:
    with os.fdopen(fd, "w", encoding="utf-8", closefd=fd != 1) as stream:
        stream.write(json.dumps(outcome.to_dict()) + "\n")
        stream.flush()
    return 0


def main() -> int:
    try:
        payload = json.loads(sys.stdin.read())
    except ValueError as exc:
        configure_logging(worker=True)
        return _emit(RenderOutcome.failure("<unknown>", ErrorKind.CONFIG, f"Invalid render task payload: {exc}"))

    entry_point = payload.get("entry_point") if isinstance(payload, dict) else None
    try:
        if not isinstance(payload, dict):
            raise ValueError("Render task payload must be a JSON object")
        task = RenderTask.from_payload(payload)
    except (ValueError, ConfigError) as exc:
        configure_logging(worker=True)
        return _emit(
            RenderOutcome.failure(str(entry_point or "<unknown>"), ErrorKind.CONFIG, f"Invalid render task: {exc}")
        )

    configure_logging(verbose=task.config.verbose, worker=True)

    sys.stdout.flush()
    result_fd = os.dup(1)
    os.dup2(2, 1)
    outcome = run_render_task(task)
    sys.stdout.flush()
    return _emit(outcome, result_fd)


if __name__ == "__main__":
    sys.exit(main())
