"""Build orchestration for one-shot renders and watch mode."""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from types import FrameType
from typing import Callable, Iterable, Iterator, List, Optional, Protocol, Sequence

from .config import RenderConfig
from .discovery import EntryPointScanner
from .graph import DependencyGraph, DependencyGraphBuilder, derive_watch_targets
from .logging import get_logger
from .models import ChangeEvent, EntryPoint, RenderTask
from .render import BatchReport, RenderExecutor, RenderScheduler, SubprocessExecutor
from .watcher import ChangeClassifier, ChangeQueue, FileWatcher
from .watcher.observer import ChangeSink


class NoEntryPointsError(RuntimeError):
    """Raised when discovery finds nothing to render."""


class ReloadNotifier(Protocol):
    def start(self) -> None:
        ...

    def broadcast_reload(self) -> int:
        ...

    def stop(self) -> None:
        ...


WatcherFactory = Callable[[ChangeSink], FileWatcher]


class Orchestrator:
    """Coordinates discovery, the dependency graph, rendering and watch mode.

    The orchestrator owns the current :class:`DependencyGraph`. Rebuilds produce
    a new graph that is swapped in under ``_graph_lock``; readers take one
    snapshot per batch.
    """

    def __init__(
        self,
        config: RenderConfig,
        *,
        scanner: EntryPointScanner | None = None,
        graph_builder: DependencyGraphBuilder | None = None,
        executor: RenderExecutor | None = None,
        scheduler: RenderScheduler | None = None,
        notifier: ReloadNotifier | None = None,
        watcher_factory: WatcherFactory | None = None,
    ) -> None:
        self.config = config
        self.scanner = scanner or EntryPointScanner.from_config(config)
        self.graph_builder = graph_builder or DependencyGraphBuilder.from_config(config)
        self.executor = executor or SubprocessExecutor()
        self.scheduler = scheduler or RenderScheduler(self.executor, limit=config.concurrency_limit)
        self.notifier = notifier
        self.queue = ChangeQueue(config.watch.debounce)
        self.logger = get_logger("orchestrator")
        self._watcher_factory: WatcherFactory = watcher_factory or FileWatcher
        self._watcher: Optional[FileWatcher] = None
        self._graph = DependencyGraph()
        self._graph_lock = threading.Lock()
        self._dispatcher: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._shut_down = False

    @property
    def graph(self) -> DependencyGraph:
        with self._graph_lock:
            return self._graph

    def discover(self) -> List[EntryPoint]:
        entry_points = self.scanner.scan(self.config.entry_points_dir)
        self.logger.debug("Discovered %d entry points", len(entry_points))
        return entry_points

    def resolve_entry_points(self, files: Sequence[str], *, cwd: Path | None = None) -> List[EntryPoint]:
        """Resolve explicit file arguments; raises ``FileNotFoundError`` for unknown files."""
        return [self.scanner.resolve(self.config.entry_points_dir, name, cwd=cwd) for name in files]

    def rebuild_graph(self, entry_points: Sequence[EntryPoint] | None = None) -> DependencyGraph:
        entries = list(entry_points) if entry_points is not None else self.discover()
        graph = self.graph_builder.build(entries)
        with self._graph_lock:
            self._graph = graph
        return graph

    def render(self, entry_points: Iterable[str]) -> BatchReport:
        """Render each named entry point once and log the batch summary."""
        unique = sorted(set(entry_points))
        tasks = [RenderTask(entry_point=name, config=self.config) for name in unique]
        report = BatchReport(tuple(self.scheduler.run(tasks)))
        self._log_report(report)
        return report

    def render_all(self) -> BatchReport:
        entry_points = self.discover()
        if not entry_points:
            raise NoEntryPointsError(
                f"No entry points found in {self.config.entry_points_dir}"
            )
        self.rebuild_graph(entry_points)
        return self.render(entry.path for entry in entry_points)

    def handle_changes(self, events: Sequence[ChangeEvent]) -> Optional[BatchReport]:
        """Re-render what a coalesced batch affects, then rebuild the graph and watch set."""
        classifier = ChangeClassifier(self.config, self.graph, scanner=self.scanner)
        affected: set[str] = set()
        for event in events:
            classification = classifier.classify(event)
            self.logger.debug(
                "%s %s -> %s (%d affected)",
                event.kind.value,
                event.path,
                classification.category.value,
                len(classification.affected),
            )
            affected.update(classification.affected)

        report: Optional[BatchReport] = None
        if affected:
            self.logger.info("Re-rendering %d entry point(s): %s", len(affected), ", ".join(sorted(affected)))
            report = self.render(affected)

        if self._stopping.is_set():
            return report
        self.rebuild_graph()
        self._refresh_watch()

        if report is not None and report.succeeded and self.notifier is not None:
            self.notifier.broadcast_reload()
        return report

    def start_watch(self) -> None:
        """Start the observer, the dispatcher thread and the notifier, if any."""
        if self._dispatcher is not None:
            return
        if self.notifier is not None:
            self.notifier.start()
        self._watcher = self._watcher_factory(self.queue.put)
        self._refresh_watch()
        self._watcher.start()
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="staticrender-dispatcher", daemon=True
        )
        self._dispatcher.start()
        self.logger.info("Watching for changes in %s", self.config.root)

    def shutdown(self) -> None:
        """Stop watching, cancel in-flight renders and close live-reload clients."""
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True
        self._stopping.set()
        self.queue.close()
        if self._watcher is not None:
            self._watcher.stop()
        self.scheduler.cancel()
        if self._dispatcher is not None:
            self._dispatcher.join()
        if self.notifier is not None:
            self.notifier.stop()
        self.logger.info("Shutdown complete")

    @property
    def stop_requested(self) -> bool:
        return self._stopping.is_set()

    def request_stop(self) -> None:
        """Begin a graceful stop: running and queued renders are cancelled and still report."""
        if self._stopping.is_set():
            return
        self.logger.info("Stopping: cancelling %d in-flight render(s)...", self.scheduler.active_count)
        self._stopping.set()
        self.scheduler.cancel()

    @contextmanager
    def handle_signals(self) -> Iterator[None]:
        """Route SIGINT/SIGTERM to :meth:`request_stop` for the duration of the block.

        Only the main thread may install handlers; elsewhere this is a no-op.
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def _on_signal(signum: int, frame: Optional[FrameType]) -> None:
            self.logger.debug("Received %s", signal.Signals(signum).name)
            self.request_stop()

        previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    def run_until_interrupted(self) -> None:
        """Block until a stop is requested or KeyboardInterrupt, then shut down gracefully."""
        try:
            while not self._stopping.wait(0.5):
                pass
        except KeyboardInterrupt:
            self.logger.info("Stopping watch mode...")
        finally:
            self.shutdown()

    def _dispatch_loop(self) -> None:
        while True:
            batch = self.queue.next_batch()
            if batch is None:
                return
            if not batch:
                continue
            try:
                self.handle_changes(batch)
            except Exception:
                self.logger.exception("Failed to process %d change(s)", len(batch))

    def _refresh_watch(self) -> None:
        if self._watcher is None:
            return
        targets = derive_watch_targets(self.config, self.graph)
        self._watcher.update(targets.all())

    def _log_report(self, report: BatchReport) -> None:
        lines = report.summary_lines()
        log = self.logger.error if report.failed else self.logger.info
        log(lines[0])
        for line in lines[1:]:
            self.logger.error(line)
        for outcome in report.succeeded:
            for warning in outcome.warnings:
                self.logger.warning("%s: %s", outcome.entry_point, warning)


__all__ = ["NoEntryPointsError", "Orchestrator", "ReloadNotifier"]
