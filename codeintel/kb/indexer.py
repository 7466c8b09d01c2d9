"""
Directory scanning and batched background indexing.

:func:`scan_directory` collects up to ``max_files`` source files under a
root, skipping hidden and build-output directories.  :class:`BatchIndexer`
feeds them to a :class:`~codeintel.kb.analyzer.CodeAnalyzer` in small
batches: files within a batch run in parallel on a thread pool, batches
run one after another with a short pause in between.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from ..language import SOURCE_EXTENSIONS, detect_language
from .analyzer import CodeAnalyzer, read_source
from .models import compute_content_hash
from .store import StoreError

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES = 200
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_PAUSE = 0.05

_SKIP_DIRS: frozenset[str] = frozenset({
    "node_modules", "dist", "build", "__pycache__",
    "vendor", "venv", "env",
    "target",           # Rust/Java build output
    "bin", "obj",
    "coverage",
    "out",
    "eggs",
})

ProgressCallback = Callable[[int, int, str], None]


def scan_directory(
    root: str,
    max_files: int = DEFAULT_MAX_FILES,
    extensions: Iterable[str] = SOURCE_EXTENSIONS,
) -> list[str]:
    """
    Return up to *max_files* source files under *root*.

    Hidden directories (leading ``.``) and build / dependency directories
    are skipped.  Directories and files are visited in sorted order so the
    result is deterministic.  Paths are absolute.
    """
    allowed = {e.lower() for e in extensions}
    results: list[str] = []
    if max_files <= 0:
        return results

    for dirpath, dirnames, filenames in os.walk(os.path.abspath(root), topdown=True):
        # Prune excluded directories in-place (modifies the walk)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in _SKIP_DIRS and not d.startswith(".")
        )
        for fname in sorted(filenames):
            if os.path.splitext(fname)[1].lower() not in allowed:
                continue
            results.append(os.path.join(dirpath, fname))
            if len(results) >= max_files:
                logger.info("[Scan] reached the %d-file cap under %s", max_files, root)
                return results
    return results


@dataclass
class IndexReport:
    """Outcome of one indexing run."""
    total: int = 0
    analyzed: int = 0
    cached: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    elapsed_seconds: float = 0.0
    errors: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "analyzed": self.analyzed,
            "cached": self.cached,
            "skipped": self.skipped,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }


class BatchIndexer:
    """
    Analyze many files in bounded-parallel batches.

    Parameters
    ----------
    analyzer:
        Receives every file.
    batch_size:
        Files per batch.
    batch_pause:
        Seconds to sleep between batches.
    max_workers:
        Thread-pool size (never more than *batch_size* are busy).
    """

    def __init__(
        self,
        analyzer: CodeAnalyzer,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause: float = DEFAULT_BATCH_PAUSE,
        max_workers: Optional[int] = None,
    ) -> None:
        self.analyzer = analyzer
        self.batch_size = max(1, batch_size)
        self.batch_pause = max(0.0, batch_pause)
        self.max_workers = max(1, min(max_workers or self.batch_size, self.batch_size))

    @classmethod
    def from_config(cls, analyzer: CodeAnalyzer, config: "Config") -> "BatchIndexer":
        return cls(
            analyzer,
            batch_size=config.BATCH_SIZE,
            batch_pause=config.BATCH_PAUSE,
            max_workers=config.MAX_WORKERS,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def index_directory(
        self,
        root: str,
        max_files: int = DEFAULT_MAX_FILES,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> IndexReport:
        """Scan *root* and index what was found."""
        paths = scan_directory(root, max_files=max_files)
        logger.info("[Indexer] %d file(s) found under %s", len(paths), root)
        return self.index_paths(paths, progress_callback, cancel_event)

    def index_paths(
        self,
        paths: list[str],
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> IndexReport:
        """
        Index *paths* batch by batch.

        Parameters
        ----------
        paths:
            Files to analyze.  Unsupported extensions are skipped silently.
        progress_callback:
            Called with ``(done, total, path)`` after each file.
        cancel_event:
            Checked between batches; when set, remaining batches are dropped.

        Returns
        -------
        IndexReport

        Raises
        ------
        StoreError
            A store write failed; the run stops.
        """
        start = time.time()
        report = IndexReport(total=len(paths))
        batches = [paths[i:i + self.batch_size] for i in range(0, len(paths), self.batch_size)]
        done = 0

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="codeintel-index") as pool:
            for batch_no, batch in enumerate(batches):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("[Indexer] cancelled after %d of %d file(s)", done, len(paths))
                    report.cancelled = True
                    break

                futures = [pool.submit(self._index_one, path) for path in batch]
                for path, future in zip(batch, futures):
                    try:
                        outcome = future.result()
                    except StoreError:
                        raise
                    except Exception as exc:
                        logger.warning("[Indexer] failed to analyze %s: %s", path, exc)
                        report.failed += 1
                        report.errors.append((path, str(exc)))
                    else:
                        setattr(report, outcome, getattr(report, outcome) + 1)
                    done += 1
                    if progress_callback:
                        progress_callback(done, len(paths), path)

                if batch_no < len(batches) - 1 and self.batch_pause:
                    time.sleep(self.batch_pause)

        report.elapsed_seconds = time.time() - start
        logger.info(
            "[Indexer] done: %d analyzed, %d cached, %d skipped, %d failed in %.2fs",
            report.analyzed, report.cached, report.skipped, report.failed,
            report.elapsed_seconds,
        )
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_one(self, path: str) -> str:
        """Analyze one file; returns the :class:`IndexReport` counter to bump."""
        if detect_language(path) is None:
            return "skipped"
        content = read_source(path)
        if self.analyzer.store.content_hash(path) == compute_content_hash(content):
            return "cached"
        self.analyzer.analyze_file(path, content, strict=False)
        return "analyzed"
