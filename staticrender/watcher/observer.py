"""watchdog-backed filesystem observer feeding a :class:`ChangeQueue`."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterable, Tuple

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from ..logging import get_logger
from ..models import ChangeEvent, ChangeKind

logger = get_logger("watcher")

ChangeSink = Callable[[ChangeEvent], None]


def _as_path(raw: str | bytes) -> Path:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="surrogateescape")
    return Path(raw)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, sink: ChangeSink) -> None:
        super().__init__()
        self._sink = sink

    def _emit(self, raw_path: str | bytes, kind: ChangeKind) -> None:
        self._sink(ChangeEvent(path=_as_path(raw_path), kind=kind))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(event.src_path, ChangeKind.ADDED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(event.src_path, ChangeKind.MODIFIED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(event.src_path, ChangeKind.REMOVED)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        # Editors that save atomically show up as a move onto the real file.
        if not event.is_directory:
            self._emit(event.src_path, ChangeKind.REMOVED)
            self._emit(event.dest_path, ChangeKind.ADDED)


class FileWatcher:
    """Keeps a watchdog observer scheduled on a changing set of directories."""

    def __init__(self, sink: ChangeSink, *, observer_factory: Callable[[], object] = Observer) -> None:
        self._handler = _ChangeHandler(sink)
        self._observer = observer_factory()
        self._watches: Dict[Tuple[Path, bool], object] = {}
        self._started = False

    @property
    def watched(self) -> Tuple[Tuple[Path, bool], ...]:
        return tuple(sorted(self._watches, key=lambda item: (str(item[0]), item[1])))

    def update(self, targets: Iterable[Tuple[Path, bool]]) -> None:
        """Reschedule the observer to exactly ``targets`` of ``(directory, recursive)``."""
        desired = {(path, recursive) for path, recursive in targets if path.is_dir()}

        for key in list(self._watches):
            if key not in desired:
                self._observer.unschedule(self._watches.pop(key))  # type: ignore[attr-defined]

        for key in sorted(desired - set(self._watches), key=lambda item: str(item[0])):
            path, recursive = key
            try:
                self._watches[key] = self._observer.schedule(  # type: ignore[attr-defined]
                    self._handler, str(path), recursive=recursive
                )
            except OSError as exc:
                logger.warning("Unable to watch %s: %s", path, exc)
        logger.debug("Watching %d directories", len(self._watches))

    def start(self) -> None:
        if not self._started:
            self._observer.start()  # type: ignore[attr-defined]
            self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._observer.stop()  # type: ignore[attr-defined]
        self._observer.join()  # type: ignore[attr-defined]
        self._started = False


__all__ = ["ChangeSink", "FileWatcher"]
