"""
Per-file analysis pipeline and corpus queries.

:class:`CodeAnalyzer` ties the pieces together::

    path + content ─▶ language ─▶ structural description ─▶ patterns,
                                                          relationships,
                                                          metrics
                   └▶ embedder ─▶ vector
    everything ─▶ CodeStore (keyed by content hash)

and answers the query side: similar code, architectural overview,
related files, pattern frequency and statistics.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Iterable, Optional

from ..language import resolve_language
from .embedder import Embedder, HeuristicEmbedder, create_embedder
from .extractors import extract_structure
from .metadata import code_metrics, enhanced_metadata
from .models import CachedFile, Embedding, FileRecord, compute_content_hash
from .patterns import MAX_PATTERNS, PatternOccurrence, architectural_overview, detect_patterns
from .relationships import RelationshipGraph, extract_relationships
from .searcher import SearchOptions, SimilarFile, SimilaritySearch
from .store import CodeStore

if TYPE_CHECKING:
    from ..config import Config
    from .models import CodePatternFrequency, RelatedFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 4000


def read_source(path: str) -> str:
    """Read a source file as text, replacing undecodable bytes."""
    with open(path, "r", encoding="utf-8", errors="replace") as fh:
        return fh.read()


class CodeAnalyzer:
    """
    Analyze files into the store and query the stored corpus.

    Parameters
    ----------
    store:
        Where results are cached.
    embedder:
        Vector producer; defaults to the heuristic embedder.
    max_chars:
        Text is truncated to this many characters before embedding.
    """

    def __init__(
        self,
        store: CodeStore,
        embedder: Optional[Embedder] = None,
        max_chars: int = DEFAULT_MAX_CHARS,
    ) -> None:
        self.store = store
        self.embedder = embedder or HeuristicEmbedder()
        self.max_chars = max_chars
        self._search = SimilaritySearch(store)

    @classmethod
    def from_config(cls, config: "Config") -> "CodeAnalyzer":
        return cls(
            store=CodeStore(config.DB_PATH),
            embedder=create_embedder(config),
            max_chars=config.EMBED_MAX_CHARS,
        )

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------
    # Per-file pipeline
    # ------------------------------------------------------------------

    def analyze_file(
        self,
        path: str,
        content: Optional[str] = None,
        strict: bool = True,
    ) -> CachedFile:
        """
        Analyze *path* and cache the result.

        When the content hash matches the cached row the cached row is
        returned and nothing is recomputed or written.

        Parameters
        ----------
        path:
            File path; the cache key.
        content:
            File text.  Read from *path* when omitted.
        strict:
            Raise :class:`~codeintel.language.UnsupportedLanguageError` for
            unknown extensions instead of using the generic extractor.

        Raises
        ------
        UnsupportedLanguageError
            *strict* and the extension is unknown.
        OSError
            *content* omitted and the file cannot be read.
        StoreError
            The store write failed.
        """
        language = resolve_language(path, strict=strict)
        if content is None:
            content = read_source(path)
        content_hash = compute_content_hash(content)

        cached = self.store.get(path)
        if cached is not None and cached.content_hash == content_hash:
            logger.debug("[Analyzer] cache hit for %s", path)
            return cached

        vector, model_type = self.embedder.embed(content[: self.max_chars])

        desc = None
        try:
            desc = extract_structure(content, language, path)
        except Exception as exc:
            logger.warning("[Analyzer] structural extraction failed for %s: %s", path, exc)
            ast_status = {"has_ast": False, "error": str(exc)}
        else:
            ast_status = {
                "has_ast": True,
                "classes": len(desc.classes),
                "functions": len(desc.functions),
                "imports": len(desc.all_imports()),
            }

        metadata = enhanced_metadata(path, content, language, desc)
        metadata["ast"] = ast_status
        if desc is not None:
            patterns = detect_patterns(desc)
            relationships = extract_relationships(desc, path)
            metrics = code_metrics(desc, content)
            ast = desc.to_dict()
        else:
            patterns, relationships, metrics, ast = [], [], None, {}
        metadata["architectural_patterns"] = [p.name for p in patterns]

        record = FileRecord(
            path=path,
            content_hash=content_hash,
            language=language,
            size=metadata["size"],
            lines=metadata["lines"],
        )
        stored = self.store.upsert(
            record,
            Embedding(vector, model_type),
            metadata=metadata,
            ast=ast,
            patterns=patterns,
            relationships=relationships,
            code_metrics=metrics,
        )
        self._record_code_patterns(path, metadata)
        logger.info(
            "[Analyzer] %s: %s, %d pattern(s), %d edge(s), %s",
            path, language, len(patterns), len(relationships), model_type,
        )
        return stored

    def _record_code_patterns(self, path: str, metadata: dict) -> None:
        items = [("design-pattern", tag) for tag in metadata.get("patterns", [])]
        items.extend(("function", name) for name in dict.fromkeys(metadata.get("functions", [])))
        items.extend(("class", c["name"]) for c in metadata.get("classes", []))
        self.store.record_patterns(items, path)

    def get_cached(self, path: str) -> Optional[CachedFile]:
        return self.store.get(path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_similar_code(
        self,
        text: str,
        limit: int = 5,
        options: Optional[SearchOptions] = None,
    ) -> list[SimilarFile]:
        """Embed *text* and return the most similar cached files."""
        vector, model_type = self.embedder.embed(text[: self.max_chars])
        return self._search.find_similar(vector, limit=limit, options=options, model_type=model_type)

    def find_similar_to_file(
        self,
        path: str,
        limit: int = 5,
        options: Optional[SearchOptions] = None,
        include_self: bool = False,
    ) -> list[SimilarFile]:
        """Rank cached files against the stored vector of *path*."""
        cached = self.store.get(path)
        if cached is None:
            return []
        hits = self._search.find_similar(
            cached.embedding.vector,
            limit=limit + (0 if include_self else 1),
            options=options,
            model_type=cached.embedding.model_type,
        )
        if not include_self:
            hits = [h for h in hits if h.path != path]
        return hits[:limit]

    def architectural_patterns(self, limit: int = MAX_PATTERNS) -> list[PatternOccurrence]:
        """Pattern occurrence counts across every cached file."""
        return architectural_overview(self.store.all_architectural_patterns(), limit=limit)

    def related_files(self, path: str, types: Optional[Iterable[str]] = None) -> list["RelatedFile"]:
        return self.store.related_to(path, types)

    def similar_patterns(
        self,
        content: str,
        pattern_type: Optional[str] = None,
        limit: int = 10,
    ) -> list["CodePatternFrequency"]:
        return self.store.find_similar_patterns(content, pattern_type=pattern_type, limit=limit)

    def relationship_graph(self) -> RelationshipGraph:
        """Deduplicated corpus graph with import targets resolved to cached files."""
        return RelationshipGraph.from_relationships(
            self.store.all_relationships(), known_paths=self.store.paths(),
        )

    def stats(self) -> dict:
        stats = self.store.stats()
        stats["embedder"] = self.embedder.model_type
        stats["graph"] = self.relationship_graph().stats()
        return stats

    # ------------------------------------------------------------------
    # File-system notifications
    # ------------------------------------------------------------------

    def on_file_changed(self, path: str) -> None:
        """Invalidate *path*; it is recomputed on the next :meth:`analyze_file`."""
        if self.store.remove(path):
            logger.debug("[Analyzer] invalidated %s", path)

    def on_file_created(self, path: str) -> None:
        """New files are analyzed lazily, on first request or the next scan."""
        logger.debug("[Analyzer] created %s (analyzed on demand)", path)

    def on_file_deleted(self, path: str) -> None:
        if self.store.remove(path):
            logger.debug("[Analyzer] removed %s", path)

    def on_file_moved(self, src_path: str, dest_path: str) -> None:
        self.on_file_deleted(src_path)
        self.on_file_created(dest_path)


def normalise_path(path: str) -> str:
    """Absolute, normalised form used as the cache key by the CLI and scanner."""
    return os.path.normpath(os.path.abspath(path))
