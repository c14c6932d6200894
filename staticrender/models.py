"""Core data models shared across staticrender components."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .config import RenderConfig


class ChangeKind(str, enum.Enum):
    """Filesystem change reported by the watcher."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class ErrorKind(str, enum.Enum):
    """Failure categories surfaced in batch reports."""

    CONFIG = "config-error"
    GRAPH_BUILD = "graph-build-error"
    MODULE_LOAD = "module-load-error"
    RENDER = "render-error"
    FORMAT = "format-error"
    TEMPLATE = "template-error"
    WRITE = "write-error"
    PROCESS = "process-error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class EntryPoint:
    """A renderable source file, identified by its path relative to the entry-point root."""

    path: str
    absolute_path: Path
    extension: str

    @property
    def name(self) -> str:
        return Path(self.path).stem


@dataclass(frozen=True)
class ChangeEvent:
    """Single filesystem notification, consumed once by the dispatcher."""

    path: Path
    kind: ChangeKind


@dataclass(frozen=True)
class MountDescriptor:
    """What an entry-point module exports: the node to render and where it mounts."""

    node: Any
    root_element_id: str


@dataclass(frozen=True)
class RenderTask:
    """One entry point to render against a frozen configuration snapshot."""

    entry_point: str
    config: RenderConfig

    def to_payload(self) -> Dict[str, Any]:
        return {"entry_point": self.entry_point, "config": self.config.to_dict()}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RenderTask":
        entry_point = payload.get("entry_point")
        config = payload.get("config")
        if not isinstance(entry_point, str) or not isinstance(config, Mapping):
            raise ValueError("Render task payload must contain entry_point and config")
        return cls(entry_point=entry_point, config=RenderConfig.from_dict(config))


@dataclass(frozen=True)
class RenderOutcome:
    """Result of rendering one entry point. Always a value, never raised."""

    entry_point: str
    succeeded: bool
    output_path: Optional[Path] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    file_path: Optional[str] = None
    exit_code: Optional[int] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(
        cls, entry_point: str, output_path: Path, *, warnings: Tuple[str, ...] = ()
    ) -> "RenderOutcome":
        return cls(
            entry_point=entry_point,
            succeeded=True,
            output_path=output_path,
            warnings=tuple(warnings),
        )

    @classmethod
    def failure(
        cls,
        entry_point: str,
        kind: ErrorKind,
        message: str,
        *,
        file_path: str | None = None,
        exit_code: int | None = None,
    ) -> "RenderOutcome":
        return cls(
            entry_point=entry_point,
            succeeded=False,
            error_kind=kind,
            message=message,
            file_path=file_path,
            exit_code=exit_code,
        )

    @classmethod
    def cancelled(cls, entry_point: str, message: str = "Render cancelled before it started") -> "RenderOutcome":
        return cls.failure(entry_point, ErrorKind.CANCELLED, message)

    def describe(self) -> str:
        """Return a one-line human-readable description for batch reports."""
        if self.succeeded:
            return f"{self.entry_point} -> {self.output_path}"
        kind = self.error_kind.value if self.error_kind else "unknown"
        line = f"{self.entry_point} [{kind}]: {self.message}"
        if self.file_path and self.file_path != self.entry_point:
            line += f" (file: {self.file_path})"
        return line

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_point": self.entry_point,
            "succeeded": self.succeeded,
            "output_path": str(self.output_path) if self.output_path else None,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "file_path": self.file_path,
            "exit_code": self.exit_code,
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RenderOutcome":
        entry_point = payload.get("entry_point")
        succeeded = payload.get("succeeded")
        if not isinstance(entry_point, str) or not isinstance(succeeded, bool):
            raise ValueError("Render outcome payload must contain entry_point and succeeded")
        output_path = payload.get("output_path")
        error_kind = payload.get("error_kind")
        warnings = payload.get("warnings") or []
        return cls(
            entry_point=entry_point,
            succeeded=succeeded,
            output_path=Path(output_path) if isinstance(output_path, str) else None,
            error_kind=ErrorKind(error_kind) if isinstance(error_kind, str) else None,
            message=payload.get("message") if isinstance(payload.get("message"), str) else None,
            file_path=payload.get("file_path") if isinstance(payload.get("file_path"), str) else None,
            exit_code=payload.get("exit_code") if isinstance(payload.get("exit_code"), int) else None,
            warnings=tuple(str(item) for item in warnings if isinstance(item, str)),
        )


__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "EntryPoint",
    "ErrorKind",
    "MountDescriptor",
    "RenderOutcome",
    "RenderTask",
]
