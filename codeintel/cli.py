"""
`codeintel` command-line interface.

Commands
--------
codeintel index [ROOT]                      -- analyze up to SCAN_MAX_FILES files under ROOT
codeintel index [ROOT] --watch              -- index, then keep the cache in sync
codeintel analyze FILE                      -- analyze one file and print the result
codeintel similar "<code or text>"          -- files most similar to the text
codeintel similar --file FILE               -- files most similar to a cached file
codeintel similar ... --language python --pattern async --function main
codeintel patterns                          -- architectural pattern overview
codeintel related FILE [--type import]      -- relationship edges touching FILE
codeintel stats                             -- store statistics
codeintel watch [ROOT]                      -- invalidate the cache as files change
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import threading
from typing import Optional

from . import __version__
from .config import Config
from .kb.analyzer import CodeAnalyzer, normalise_path
from .kb.searcher import SearchOptions
from .kb.store import StoreError
from .language import UnsupportedLanguageError
from .log_setup import setup_logger

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(args: argparse.Namespace) -> Config:
    config = Config.load(args.config)
    if args.db:
        config.DB_PATH = os.path.expanduser(args.db)
    return config


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _print_similar(results, title: str) -> None:
    if not results:
        print(f"  (no results for: {title})")
        return
    print(f"\n{title}  [{len(results)} result(s)]")
    print("-" * 70)
    for i, r in enumerate(results, 1):
        print(f"  [{i}] {r.similarity:.4f}  {r.path}  ({r.language})")


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_index(args: argparse.Namespace, config: Config, analyzer: CodeAnalyzer) -> int:
    """Index a directory tree in batches."""
    from tqdm import tqdm

    from .kb.indexer import BatchIndexer

    root = os.path.abspath(args.root)
    max_files = args.max_files if args.max_files is not None else config.SCAN_MAX_FILES
    print(f"Indexing: {root}")

    indexer = BatchIndexer.from_config(analyzer, config)
    pbar = tqdm(total=None, unit="file", desc="Analyzing")

    def _progress(current: int, total: int, filename: str) -> None:
        if pbar.total != total:
            pbar.total = total
            pbar.refresh()
        pbar.set_postfix_str(os.path.basename(filename), refresh=False)
        pbar.update(1)

    cancel = threading.Event()
    try:
        report = indexer.index_directory(
            root, max_files=max_files, progress_callback=_progress, cancel_event=cancel,
        )
    except KeyboardInterrupt:
        cancel.set()
        print("\nIndexing interrupted.", file=sys.stderr)
        return 130
    finally:
        pbar.close()

    print(
        f"\nIndex complete:\n"
        f"  Files:    {report.total}\n"
        f"  Analyzed: {report.analyzed}\n"
        f"  Cached:   {report.cached}\n"
        f"  Skipped:  {report.skipped}\n"
        f"  Errors:   {report.failed}\n"
        f"  Time:     {report.elapsed_seconds:.1f}s"
    )

    if args.watch:
        return _watch(analyzer, root, config)
    return 0


def _cmd_analyze(args: argparse.Namespace, config: Config, analyzer: CodeAnalyzer) -> int:
    """Analyze one file and print the cached result."""
    path = normalise_path(args.file)
    cached = analyzer.analyze_file(path)
    data = {
        "path": cached.path,
        "language": cached.record.language,
        "content_hash": cached.content_hash,
        "size": cached.record.size,
        "lines": cached.record.lines,
        "model_type": cached.embedding.model_type,
        "dimensions": cached.embedding.dimensions,
        "patterns": [p.to_dict() for p in cached.patterns],
        "relationships": [r.to_dict() for r in cached.relationships],
        "code_metrics": cached.code_metrics,
        "ast": cached.metadata.get("ast", {}),
    }
    if args.json:
        _print_json(data)
        return 0

    print(f"\n{data['path']}  ({data['language']}, {data['lines']} lines)")
    print("-" * 60)
    print(f"  Embedding : {data['model_type']} [{data['dimensions']} dims]")
    for p in cached.patterns:
        print(f"  Pattern   : {p.name} ({p.confidence:.2f}) - {p.evidence}")
    for r in cached.relationships:
        print(f"  Edge      : {r.type} -> {r.target} ({r.strength:.1f})")
    if cached.code_metrics:
        print(f"  Complexity: {cached.code_metrics.get('cyclomatic_complexity')}")
        print(f"  MI        : {cached.code_metrics.get('maintainability_index')}")
    return 0


def _cmd_similar(args: argparse.Namespace, config: Config, analyzer: CodeAnalyzer) -> int:
    """Rank cached files by similarity to text or to a cached file."""
    options = SearchOptions(
        language=args.language,
        patterns=args.pattern or [],
        functions=args.function or [],
    )
    if args.file:
        path = normalise_path(args.file)
        if analyzer.get_cached(path) is None:
            analyzer.analyze_file(path)
        results = analyzer.find_similar_to_file(path, limit=args.limit, options=options)
        title = f"Files similar to {path}"
    elif args.text:
        results = analyzer.find_similar_code(args.text, limit=args.limit, options=options)
        title = f"Files similar to {args.text[:40]!r}"
    else:
        print("Give TEXT or --file FILE.", file=sys.stderr)
        return 2

    if args.json:
        _print_json([
            {"path": r.path, "similarity": r.similarity, "cosine": r.cosine,
             "language": r.language, "model_type": r.model_type}
            for r in results
        ])
    else:
        _print_similar(results, title)
    return 0


def _cmd_patterns(args: argparse.Namespace, config: Config, analyzer: CodeAnalyzer) -> int:
    """Print the architectural pattern overview."""
    overview = analyzer.architectural_patterns(limit=args.limit)
    if args.json:
        _print_json([o.to_dict() for o in overview])
        return 0
    if not overview:
        print("No architectural patterns found. Run `codeintel index` first.")
        return 0
    print("\nArchitectural patterns")
    print("=" * 40)
    for o in overview:
        print(f"  {o.name:<12} {o.frequency:>4} file(s)  {o.evidence}")
    return 0


def _cmd_related(args: argparse.Namespace, config: Config, analyzer: CodeAnalyzer) -> int:
    """Print relationship edges touching FILE."""
    path = normalise_path(args.file)
    related = analyzer.related_files(path, types=args.type)
    if args.json:
        _print_json([
            {"path": r.path, "direction": r.direction, **r.relationship.to_dict()}
            for r in related
        ])
        return 0
    if not related:
        print(f"  (no relationships for: {path})")
        return 0
    print(f"\nRelationships of {path}  [{len(related)} edge(s)]")
    print("-" * 60)
    for r in related:
        arrow = "->" if r.direction == "outgoing" else "<-"
        print(f"  {arrow} {r.relationship.type:<15} {r.path}  ({r.relationship.strength:.1f})")
    return 0


def _cmd_stats(args: argparse.Namespace, config: Config, analyzer: CodeAnalyzer) -> int:
    """Print store statistics."""
    stats = analyzer.stats()
    if args.json:
        _print_json(stats)
        return 0
    print("\nCode store")
    print("=" * 40)
    for k, v in stats.items():
        print(f"  {k:<20} {v}")
    print()
    return 0


def _cmd_watch(args: argparse.Namespace, config: Config, analyzer: CodeAnalyzer) -> int:
    return _watch(analyzer, os.path.abspath(args.root), config)


def _watch(analyzer: CodeAnalyzer, root: str, config: Config) -> int:
    from .kb.watcher import CodeWatcher

    print(f"\nWatching {root}... (Ctrl+C to stop)")
    watcher = CodeWatcher(analyzer, root, debounce_seconds=config.WATCH_DEBOUNCE)
    try:
        watcher.start()  # blocking
    except KeyboardInterrupt:
        pass
    print("\nFile watcher stopped.")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="codeintel",
        description="Code analysis and similarity cache",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default=None, help="Path to a .codeintel.yaml file")
    parser.add_argument("--db", default=None, help="SQLite database path (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug-level file logging")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # --- index ---
    index_p = subparsers.add_parser("index", help="Analyze the source files under a directory")
    index_p.add_argument("root", nargs="?", default=".", help="Directory to index (default: .)")
    index_p.add_argument("--max-files", dest="max_files", type=int, default=None,
                         help="File cap (default: SCAN_MAX_FILES)")
    index_p.add_argument("--watch", action="store_true", help="Start the file watcher after indexing")
    index_p.set_defaults(func=_cmd_index)

    # --- analyze ---
    analyze_p = subparsers.add_parser("analyze", help="Analyze one file")
    analyze_p.add_argument("file", help="Source file")
    analyze_p.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    analyze_p.set_defaults(func=_cmd_analyze)

    # --- similar ---
    similar_p = subparsers.add_parser("similar", help="Find cached files similar to text or a file")
    similar_p.add_argument("text", nargs="?", default=None, help="Code or text to match")
    similar_p.add_argument("--file", default=None, help="Match against this file instead")
    similar_p.add_argument("--language", default=None, help="Boost files in this language")
    similar_p.add_argument("--pattern", action="append", help="Boost files tagged with this pattern")
    similar_p.add_argument("--function", action="append", help="Boost files defining this function")
    similar_p.add_argument("--limit", type=int, default=5, help="Maximum results (default: 5)")
    similar_p.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    similar_p.set_defaults(func=_cmd_similar)

    # --- patterns ---
    patterns_p = subparsers.add_parser("patterns", help="Architectural pattern overview")
    patterns_p.add_argument("--limit", type=int, default=6, help="Maximum patterns (default: 6)")
    patterns_p.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    patterns_p.set_defaults(func=_cmd_patterns)

    # --- related ---
    related_p = subparsers.add_parser("related", help="Relationship edges touching a file")
    related_p.add_argument("file", help="Cached source file")
    related_p.add_argument("--type", action="append",
                           choices=["inheritance", "implementation", "import"],
                           help="Only this relationship type (repeatable)")
    related_p.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    related_p.set_defaults(func=_cmd_related)

    # --- stats ---
    stats_p = subparsers.add_parser("stats", help="Store statistics")
    stats_p.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    stats_p.set_defaults(func=_cmd_stats)

    # --- watch ---
    watch_p = subparsers.add_parser("watch", help="Invalidate cached files as they change")
    watch_p.add_argument("root", nargs="?", default=".", help="Directory to watch (default: .)")
    watch_p.set_defaults(func=_cmd_watch)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the `codeintel` command.

    Parameters
    ----------
    argv:
        Argument list without the program name.  Defaults to sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    # Configure logging if not already configured
    if not logging.root.handlers:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(levelname)s  %(name)s  %(message)s",
        )

    parser = _build_parser()
    args = parser.parse_args(argv)

    config = _load_config(args)
    try:
        setup_logger(config.LOG_DIR, verbose=args.verbose)
    except OSError as exc:
        logger.warning("Could not open log directory %s: %s", config.LOG_DIR, exc)

    try:
        analyzer = CodeAnalyzer.from_config(config)
    except (OSError, StoreError) as exc:
        print(f"Cannot open store {config.DB_PATH}: {exc}", file=sys.stderr)
        return 1

    try:
        return args.func(args, config, analyzer)
    except UnsupportedLanguageError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except (OSError, StoreError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        analyzer.close()


if __name__ == "__main__":
    sys.exit(main())
