"""
File watcher that keeps the analysis cache honest.

Uses watchdog to monitor a directory and forwards changed, created,
deleted and moved source files to the analyzer's notification hooks.
Changed files are only invalidated; they are re-analyzed lazily.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import TYPE_CHECKING, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ..language import detect_language
from .indexer import _SKIP_DIRS

if TYPE_CHECKING:
    from .analyzer import CodeAnalyzer

logger = logging.getLogger(__name__)


class SourceFileHandler(FileSystemEventHandler):
    """
    Watchdog event handler that forwards source-file events to an analyzer.

    Parameters
    ----------
    analyzer:
        The :class:`~codeintel.kb.analyzer.CodeAnalyzer` to notify.
    debounce_seconds:
        Minimum delay between two change notifications for the same file
        (editors often write a file several times per save).
    root:
        Watched directory.  Hidden and build directories are matched below
        it only; when None the whole path is checked.
    """

    def __init__(
        self,
        analyzer: "CodeAnalyzer",
        debounce_seconds: float = 0.5,
        root: Optional[str] = None,
    ) -> None:
        super().__init__()
        self._analyzer = analyzer
        self._root = os.path.abspath(root) if root else None
        self._debounce = debounce_seconds
        self._last_event: dict[str, float] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Watchdog event dispatch
    # ------------------------------------------------------------------

    def on_modified(self, event) -> None:
        if not event.is_directory:
            self._handle_change(_path(event.src_path))

    def on_created(self, event) -> None:
        if not event.is_directory:
            self._handle_create(_path(event.src_path))

    def on_deleted(self, event) -> None:
        if not event.is_directory:
            self._handle_delete(_path(event.src_path))

    def on_moved(self, event) -> None:
        if not event.is_directory:
            self._handle_delete(_path(event.src_path))
            self._handle_create(_path(event.dest_path))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _should_ignore(self, abs_path: str) -> bool:
        if detect_language(abs_path) is None:
            return True
        rel = abs_path
        if self._root and abs_path.startswith(self._root + os.sep):
            rel = abs_path[len(self._root) + 1:]
        parts = rel.replace("\\", "/").split("/")
        return any(part in _SKIP_DIRS or part.startswith(".") for part in parts[:-1])

    def _is_debounced(self, abs_path: str) -> bool:
        now = time.time()
        with self._lock:
            last = self._last_event.get(abs_path)
            if last is not None and now - last < self._debounce:
                return True
            self._last_event[abs_path] = now
        return False

    def _handle_change(self, abs_path: str) -> None:
        if self._should_ignore(abs_path) or self._is_debounced(abs_path):
            return
        logger.info("[Watcher] Changed: %s", abs_path)
        try:
            self._analyzer.on_file_changed(abs_path)
        except Exception as exc:
            logger.warning("[Watcher] Error invalidating %s: %s", abs_path, exc)

    def _handle_create(self, abs_path: str) -> None:
        if self._should_ignore(abs_path):
            return
        logger.info("[Watcher] Created: %s", abs_path)
        try:
            self._analyzer.on_file_created(abs_path)
        except Exception as exc:
            logger.warning("[Watcher] Error processing %s: %s", abs_path, exc)

    def _handle_delete(self, abs_path: str) -> None:
        if self._should_ignore(abs_path):
            return
        with self._lock:
            self._last_event.pop(abs_path, None)
        logger.info("[Watcher] Deleted: %s", abs_path)
        try:
            self._analyzer.on_file_deleted(abs_path)
        except Exception as exc:
            logger.warning("[Watcher] Error removing %s: %s", abs_path, exc)


def _path(raw) -> str:
    if isinstance(raw, bytes):
        raw = os.fsdecode(raw)
    return os.path.normpath(os.path.abspath(raw))


class CodeWatcher:
    """
    High-level wrapper around a watchdog observer for one directory.

    Usage::

        watcher = CodeWatcher(analyzer, root="/path/to/project")
        watcher.start()   # blocking (call from a thread) or use start_background()
        watcher.stop()
    """

    def __init__(
        self,
        analyzer: "CodeAnalyzer",
        root: str,
        debounce_seconds: float = 0.5,
    ) -> None:
        self._root = os.path.abspath(root)
        self._observer: Optional[Observer] = None
        self._stopped = threading.Event()
        self.handler = SourceFileHandler(
            analyzer, debounce_seconds=debounce_seconds, root=self._root,
        )

    @property
    def root(self) -> str:
        return self._root

    def _schedule(self) -> Observer:
        observer = Observer()
        observer.schedule(self.handler, self._root, recursive=True)
        observer.start()
        self._observer = observer
        logger.info("[Watcher] Watching %s", self._root)
        return observer

    def start(self) -> None:
        """
        Start watching the directory.

        Blocks until :meth:`stop` is called or the process is interrupted.
        """
        observer = self._schedule()
        try:
            while observer.is_alive() and not self._stopped.is_set():
                observer.join(timeout=1)
        except KeyboardInterrupt:
            pass
        finally:
            observer.stop()
            observer.join()

    def start_background(self) -> None:
        """Start the observer thread and return immediately."""
        self._schedule()

    def stop(self) -> None:
        """Stop the observer."""
        self._stopped.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("[Watcher] Stopped")
