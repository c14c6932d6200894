"""Render scheduling, process isolation and the per-entry pipeline."""

from __future__ import annotations

from .executor import RenderExecutor, SubprocessExecutor
from .pipeline import RenderFailure, output_path_for, run_render_task
from .scheduler import BatchReport, RenderScheduler

__all__ = [
    "BatchReport",
    "RenderExecutor",
    "RenderFailure",
    "RenderScheduler",
    "SubprocessExecutor",
    "output_path_for",
    "run_render_task",
]
