"""
Grammar directory watch loop

watchdog delivers filesystem events on its own thread. Events are queued
and a single worker thread performs each reload: rescan the grammar root
and push the whole cache to the engine, with notifications disabled and
the store lock held for the duration.
"""

import logging
import queue
import threading
from pathlib import Path
from typing import Optional, Union

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer

from grammar_cache.engine import EngineAdapter
from grammar_cache.store import DEFAULT_DEPTH, GrammarStore, ScanReport

logger = logging.getLogger(__name__)

# Queue sentinel that stops the worker
_STOP = object()


class _GrammarEventHandler(PatternMatchingEventHandler):
    """Forwards *.xml write events to the watcher"""

    def __init__(self, watcher: "GrammarWatcher"):
        super().__init__(patterns=["*.xml"], ignore_directories=True, case_sensitive=False)
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        self._watcher.notify(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._watcher.notify(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._watcher.notify(event.dest_path)


class GrammarWatcher:
    """
    Hot-reloads the grammar cache when grammar files change

    Features:
    - Recursive watch of *.xml files under the grammar root
    - Events dropped while a reload is running
    - Reloads serialized through a single worker thread
    """

    def __init__(
        self,
        store: GrammarStore,
        engine: EngineAdapter,
        root: Union[str, Path],
        depth: int = DEFAULT_DEPTH,
    ):
        """
        Initialize watcher

        Args:
            store: Grammar cache to reload
            engine: Engine that receives the reloaded cache
            root: Grammar directory to watch
            depth: Scan depth for each reload
        """
        self.store = store
        self.engine = engine
        self.root = Path(root)
        self.depth = depth
        self.reload_count = 0

        self._notifications = threading.Event()
        self._notifications.set()
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._observer: Optional[Observer] = None
        self._worker: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    @property
    def notifications_enabled(self) -> bool:
        return self._notifications.is_set()

    def start(self) -> bool:
        """
        Start watching the grammar root

        Returns:
            False if the root is not a directory
        """
        if self.is_running:
            logger.warning("Watcher already running")
            return True
        if not self.root.is_dir():
            logger.warning(f"Cannot watch {self.root}: not a directory")
            return False

        self._worker = threading.Thread(target=self._reload_worker, daemon=True)
        self._worker.start()

        self._observer = Observer()
        self._observer.schedule(_GrammarEventHandler(self), str(self.root), recursive=True)
        self._observer.start()

        logger.info(f"Watching: {self.root.resolve()}")
        return True

    def stop(self) -> None:
        """Stop the observer and the reload worker"""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=2.0)
            self._observer = None

        if self._worker is not None:
            self._queue.put(_STOP)
            self._worker.join(timeout=2.0)
            self._worker = None

        logger.info(f"Watcher stopped (reloads: {self.reload_count})")

    def notify(self, path: str) -> bool:
        """
        Handle a change to a grammar file

        Returns:
            True if a reload was queued, False if notifications are off
        """
        if not self._notifications.is_set():
            logger.debug(f"Change ignored during reload: {path}")
            return False
        logger.debug(f"Grammar changed: {path}")
        self._queue.put(path)
        return True

    def request_reload(self) -> None:
        """Queue a rescan regardless of notification state"""
        self._queue.put(None)

    def reload(self) -> ScanReport:
        """
        Rescan the grammar root and push the whole cache to the engine

        Runs with notifications disabled and the store lock held, so
        readers and the composer never see a partial reload.
        """
        self._notifications.clear()
        try:
            with self.store.lock:
                report = self.store.load(self.root, self.depth)
                self.engine.load_all(self.store.grammars())
        finally:
            self._notifications.set()

        self.reload_count += 1
        logger.info(
            f"Reloaded grammars: {report.loaded} loaded, {report.unchanged} unchanged, "
            f"{report.skipped} skipped, {report.failed} failed"
        )
        return report

    def _reload_worker(self) -> None:
        """Worker thread - consumes change events one reload at a time"""
        while True:
            item = self._queue.get()
            if item is _STOP:
                return

            # Coalesce events that queued up before this reload
            stop = False
            while True:
                try:
                    pending = self._queue.get_nowait()
                except queue.Empty:
                    break
                if pending is _STOP:
                    stop = True

            try:
                self.reload()
            except Exception as e:
                logger.error(f"Reload failed: {e}")

            if stop:
                return
