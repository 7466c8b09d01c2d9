"""
SQLite-backed persistent store for analyzed files.

Four tables, all keyed by file path:

* ``embeddings`` — vector bytes, model type, metadata, size and language;
* ``ast_data`` — structural description, architectural patterns, code
  metrics and the raw relationship list;
* ``code_patterns`` — textual pattern → file set + sighting frequency;
* ``code_relationships`` — one row per directed edge.

A row is valid exactly while its content hash matches the file.  Vectors
are stored as float32 bytes via numpy.  Writes are serialised through a
single lock and a single connection.

Storage default: ``~/.codeintel/embeddings.db``
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional

import numpy as np

from .models import (
    ArchitecturalPattern, CachedFile, CodePatternFrequency, Embedding,
    FileRecord, RelatedFile, Relationship,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS embeddings (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    path          TEXT    UNIQUE NOT NULL,
    content_hash  TEXT    NOT NULL,
    embedding     BLOB    NOT NULL,
    dimensions    INTEGER NOT NULL DEFAULT 0,
    metadata      TEXT    NOT NULL DEFAULT '{}',
    model_type    TEXT    NOT NULL DEFAULT '',
    file_size     INTEGER NOT NULL DEFAULT 0,
    line_count    INTEGER NOT NULL DEFAULT 0,
    language      TEXT    NOT NULL DEFAULT '',
    created_at    REAL    NOT NULL DEFAULT 0.0
);

CREATE TABLE IF NOT EXISTS ast_data (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    path                    TEXT    UNIQUE NOT NULL,
    content_hash            TEXT    NOT NULL,
    ast                     TEXT    NOT NULL DEFAULT '{}',
    architectural_patterns  TEXT    NOT NULL DEFAULT '[]',
    code_metrics            TEXT    DEFAULT NULL,
    relationships           TEXT    NOT NULL DEFAULT '[]',
    created_at              REAL    NOT NULL DEFAULT 0.0
);

CREATE TABLE IF NOT EXISTS code_patterns (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    pattern_type     TEXT    NOT NULL,
    pattern_content  TEXT    NOT NULL,
    file_paths       TEXT    NOT NULL DEFAULT '[]',
    frequency        INTEGER NOT NULL DEFAULT 1,
    created_at       REAL    NOT NULL DEFAULT 0.0,
    UNIQUE (pattern_type, pattern_content)
);

CREATE TABLE IF NOT EXISTS code_relationships (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    source             TEXT    NOT NULL,
    target             TEXT    NOT NULL,
    relationship_type  TEXT    NOT NULL,
    strength           REAL    NOT NULL DEFAULT 0.0,
    metadata           TEXT    NOT NULL DEFAULT '{}',
    created_at         REAL    NOT NULL DEFAULT 0.0
);

CREATE INDEX IF NOT EXISTS idx_rel_source   ON code_relationships(source);
CREATE INDEX IF NOT EXISTS idx_rel_target   ON code_relationships(target);
CREATE INDEX IF NOT EXISTS idx_pattern_type ON code_patterns(pattern_type);
"""


class StoreError(RuntimeError):
    """A read or write against the store failed."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _vec_to_bytes(vec: list[float]) -> bytes:
    """Serialise a float list to compact float32 bytes."""
    return np.asarray(vec, dtype=np.float32).tobytes()


def _bytes_to_vec(buf: bytes) -> list[float]:
    """Deserialise bytes back to a float list."""
    return np.frombuffer(buf, dtype=np.float32).astype(float).tolist()


def _loads(raw: Optional[str], default: Any) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


# ---------------------------------------------------------------------------
# CodeStore
# ---------------------------------------------------------------------------

class CodeStore:
    """
    Content-hash-keyed cache of per-file analysis results.

    Parameters
    ----------
    db_path:
        SQLite database file; parent directories are created.  ``":memory:"``
        is accepted for throwaway stores.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def db_path(self) -> str:
        return self._db_path

    def _init_db(self) -> None:
        if self._db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(self._db_path)), exist_ok=True)
        with self._transaction() as conn:
            conn.executescript(_SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        """Lazy connection shared by all threads (guarded by ``_lock``)."""
        if self._conn is None:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock, commit on success, roll back and raise StoreError on failure."""
        with self._lock:
            try:
                conn = self._get_conn()
            except sqlite3.Error as exc:
                raise StoreError(f"cannot open {self._db_path}: {exc}") from exc
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StoreError(str(exc)) from exc

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                except sqlite3.Error:
                    logger.debug("[CodeStore] error closing %s", self._db_path, exc_info=True)
                self._conn = None

    def __enter__(self) -> "CodeStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Per-file rows
    # ------------------------------------------------------------------

    def upsert(
        self,
        record: FileRecord,
        embedding: Embedding,
        metadata: Optional[dict] = None,
        ast: Optional[dict] = None,
        patterns: Iterable[ArchitecturalPattern] = (),
        relationships: Iterable[Relationship] = (),
        code_metrics: Optional[dict] = None,
    ) -> CachedFile:
        """
        Insert or replace everything stored for ``record.path``.

        If the stored content hash already equals ``record.content_hash``
        nothing is written and the cached row is returned as is.  All
        tables are updated in one transaction; the file's previous
        outgoing relationships are replaced and its previous pattern
        sightings are withdrawn.
        """
        patterns = list(patterns)
        relationships = list(relationships)
        now = time.time()
        with self._transaction() as conn:
            existing = self._get(conn, record.path)
            if existing is not None and existing.content_hash == record.content_hash:
                logger.debug("[CodeStore] %s unchanged, keeping cached row", record.path)
                return existing
            if existing is not None:
                # Superseded content: its pattern sightings go with it.
                self._prune_patterns(conn, record.path)

            conn.execute(
                """
                INSERT INTO embeddings
                    (path, content_hash, embedding, dimensions, metadata, model_type,
                     file_size, line_count, language, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    content_hash = excluded.content_hash,
                    embedding    = excluded.embedding,
                    dimensions   = excluded.dimensions,
                    metadata     = excluded.metadata,
                    model_type   = excluded.model_type,
                    file_size    = excluded.file_size,
                    line_count   = excluded.line_count,
                    language     = excluded.language,
                    created_at   = excluded.created_at
                """,
                (
                    record.path, record.content_hash, _vec_to_bytes(embedding.vector),
                    embedding.dimensions, _dumps(metadata or {}), embedding.model_type,
                    record.size, record.lines, record.language, now,
                ),
            )
            conn.execute(
                """
                INSERT INTO ast_data
                    (path, content_hash, ast, architectural_patterns, code_metrics,
                     relationships, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    content_hash           = excluded.content_hash,
                    ast                    = excluded.ast,
                    architectural_patterns = excluded.architectural_patterns,
                    code_metrics           = excluded.code_metrics,
                    relationships          = excluded.relationships,
                    created_at             = excluded.created_at
                """,
                (
                    record.path, record.content_hash, _dumps(ast or {}),
                    _dumps([p.to_dict() for p in patterns]),
                    _dumps(code_metrics) if code_metrics is not None else None,
                    _dumps([r.to_dict() for r in relationships]), now,
                ),
            )
            conn.execute("DELETE FROM code_relationships WHERE source = ?", (record.path,))
            conn.executemany(
                """
                INSERT INTO code_relationships
                    (source, target, relationship_type, strength, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (r.source, r.target, r.type, r.strength, _dumps(r.metadata), now)
                    for r in relationships
                ],
            )
        logger.debug(
            "[CodeStore] stored %s (%s, %d dims, %d edges)",
            record.path, embedding.model_type, embedding.dimensions, len(relationships),
        )
        return CachedFile(
            record=record,
            embedding=Embedding(list(embedding.vector), embedding.model_type),
            metadata=dict(metadata or {}),
            ast=dict(ast or {}),
            patterns=patterns,
            code_metrics=code_metrics,
            relationships=relationships,
            created_at=now,
        )

    def get(self, path: str) -> Optional[CachedFile]:
        """Return the cached row for *path*, or None."""
        with self._transaction() as conn:
            return self._get(conn, path)

    def content_hash(self, path: str) -> Optional[str]:
        """Stored content hash for *path*, or None if not cached."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT content_hash FROM embeddings WHERE path = ?", (path,)
            ).fetchone()
        return row["content_hash"] if row else None

    def _get(self, conn: sqlite3.Connection, path: str) -> Optional[CachedFile]:
        row = conn.execute(
            """
            SELECT e.path, e.content_hash, e.embedding, e.metadata, e.model_type,
                   e.file_size, e.line_count, e.language, e.created_at,
                   a.ast, a.architectural_patterns, a.code_metrics
            FROM embeddings e LEFT JOIN ast_data a ON a.path = e.path
            WHERE e.path = ?
            """,
            (path,),
        ).fetchone()
        if row is None:
            return None
        rels = conn.execute(
            "SELECT source, target, relationship_type, strength, metadata "
            "FROM code_relationships WHERE source = ? ORDER BY id",
            (path,),
        ).fetchall()
        return CachedFile(
            record=FileRecord(
                path=row["path"],
                content_hash=row["content_hash"],
                language=row["language"],
                size=row["file_size"],
                lines=row["line_count"],
            ),
            embedding=Embedding(_bytes_to_vec(row["embedding"]), row["model_type"]),
            metadata=_loads(row["metadata"], {}),
            ast=_loads(row["ast"], {}),
            patterns=[ArchitecturalPattern(**p) for p in _loads(row["architectural_patterns"], [])],
            code_metrics=_loads(row["code_metrics"], None),
            relationships=[self._relationship(r) for r in rels],
            created_at=row["created_at"],
        )

    @staticmethod
    def _relationship(row: sqlite3.Row) -> Relationship:
        return Relationship(
            source=row["source"],
            target=row["target"],
            type=row["relationship_type"],
            strength=row["strength"],
            metadata=_loads(row["metadata"], {}),
        )

    def remove(self, path: str) -> bool:
        """
        Delete everything stored for *path*.

        The path's sightings are also withdrawn from the pattern table (see
        :meth:`_prune_patterns`).  Returns True if a row existed.
        """
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM embeddings WHERE path = ?", (path,))
            existed = cur.rowcount > 0
            conn.execute("DELETE FROM ast_data WHERE path = ?", (path,))
            conn.execute("DELETE FROM code_relationships WHERE source = ?", (path,))
            self._prune_patterns(conn, path)
        if existed:
            logger.debug("[CodeStore] removed %s", path)
        return existed

    @staticmethod
    def _prune_patterns(conn: sqlite3.Connection, path: str) -> None:
        """
        Drop *path* from every pattern's file set and take back its sighting.

        Frequency goes down by one but never below the number of files
        still listed; patterns left with no files are deleted.
        """
        rows = conn.execute(
            "SELECT id, file_paths, frequency FROM code_patterns WHERE file_paths LIKE ?",
            (f"%{json.dumps(path)[1:-1]}%",),
        ).fetchall()
        for row in rows:
            listed = _loads(row["file_paths"], [])
            if path not in listed:
                continue
            paths = [p for p in listed if p != path]
            if paths:
                conn.execute(
                    "UPDATE code_patterns SET file_paths = ?, frequency = ? WHERE id = ?",
                    (_dumps(paths), max(len(paths), row["frequency"] - 1), row["id"]),
                )
            else:
                conn.execute("DELETE FROM code_patterns WHERE id = ?", (row["id"],))

    def paths(self) -> list[str]:
        """All cached paths in insertion order."""
        with self._transaction() as conn:
            rows = conn.execute("SELECT path FROM embeddings ORDER BY id").fetchall()
        return [r["path"] for r in rows]

    def clear(self) -> None:
        """Delete every row in every table."""
        with self._transaction() as conn:
            for table in ("embeddings", "ast_data", "code_patterns", "code_relationships"):
                conn.execute(f"DELETE FROM {table}")
        logger.info("[CodeStore] cleared %s", self._db_path)

    # ------------------------------------------------------------------
    # Pattern frequency
    # ------------------------------------------------------------------

    def record_pattern(self, pattern_type: str, content: str, path: str) -> None:
        """Count one sighting of (*pattern_type*, *content*) in *path*."""
        self.record_patterns([(pattern_type, content)], path)

    def record_patterns(self, items: Iterable[tuple[str, str]], path: str) -> None:
        """Like :meth:`record_pattern` for several patterns in one transaction."""
        items = list(items)
        if not items:
            return
        now = time.time()
        with self._transaction() as conn:
            for pattern_type, content in items:
                row = conn.execute(
                    "SELECT id, file_paths, frequency FROM code_patterns "
                    "WHERE pattern_type = ? AND pattern_content = ?",
                    (pattern_type, content),
                ).fetchone()
                if row is None:
                    conn.execute(
                        "INSERT INTO code_patterns "
                        "(pattern_type, pattern_content, file_paths, frequency, created_at) "
                        "VALUES (?, ?, ?, 1, ?)",
                        (pattern_type, content, _dumps([path]), now),
                    )
                    continue
                paths = _loads(row["file_paths"], [])
                if path not in paths:
                    paths.append(path)
                conn.execute(
                    "UPDATE code_patterns SET file_paths = ?, frequency = ? WHERE id = ?",
                    (_dumps(paths), row["frequency"] + 1, row["id"]),
                )

    def find_similar_patterns(
        self,
        content: str = "",
        pattern_type: Optional[str] = None,
        limit: int = 10,
    ) -> list[CodePatternFrequency]:
        """Patterns whose content contains *content*, most frequent first."""
        sql = (
            "SELECT pattern_type, pattern_content, file_paths, frequency "
            "FROM code_patterns WHERE pattern_content LIKE ?"
        )
        args: list[Any] = [f"%{content}%"]
        if pattern_type:
            sql += " AND pattern_type = ?"
            args.append(pattern_type)
        sql += " ORDER BY frequency DESC, id ASC LIMIT ?"
        args.append(limit)
        with self._transaction() as conn:
            rows = conn.execute(sql, args).fetchall()
        return [
            CodePatternFrequency(
                pattern_type=r["pattern_type"],
                pattern_content=r["pattern_content"],
                file_paths=_loads(r["file_paths"], []),
                frequency=r["frequency"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Corpus iteration
    # ------------------------------------------------------------------

    def all_embeddings(self) -> Iterator[tuple[FileRecord, Embedding, dict]]:
        """Yield ``(record, embedding, metadata)`` for every cached file, in insertion order."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT path, content_hash, embedding, metadata, model_type, "
                "file_size, line_count, language FROM embeddings ORDER BY id"
            ).fetchall()
        for row in rows:
            record = FileRecord(
                path=row["path"],
                content_hash=row["content_hash"],
                language=row["language"],
                size=row["file_size"],
                lines=row["line_count"],
            )
            yield (
                record,
                Embedding(_bytes_to_vec(row["embedding"]), row["model_type"]),
                _loads(row["metadata"], {}),
            )

    def all_architectural_patterns(self) -> Iterator[tuple[str, list[ArchitecturalPattern]]]:
        """Yield ``(path, patterns)`` for every file with stored structural data."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT path, architectural_patterns FROM ast_data ORDER BY id"
            ).fetchall()
        for row in rows:
            patterns = [
                ArchitecturalPattern(**p)
                for p in _loads(row["architectural_patterns"], [])
            ]
            yield row["path"], patterns

    def all_relationships(self) -> list[Relationship]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT source, target, relationship_type, strength, metadata "
                "FROM code_relationships ORDER BY id"
            ).fetchall()
        return [self._relationship(r) for r in rows]

    def related_to(
        self,
        path: str,
        types: Optional[Iterable[str]] = None,
    ) -> list[RelatedFile]:
        """
        Edges where *path* is the source or the target.

        Parameters
        ----------
        path:
            File path (or raw target name) to look up.
        types:
            Restrict to these relationship types.

        Returns
        -------
        list[RelatedFile]
            Strongest first.
        """
        sql = (
            "SELECT source, target, relationship_type, strength, metadata "
            "FROM code_relationships WHERE (source = ? OR target = ?)"
        )
        args: list[Any] = [path, path]
        wanted = list(types or [])
        if wanted:
            sql += f" AND relationship_type IN ({','.join('?' for _ in wanted)})"
            args.extend(wanted)
        sql += " ORDER BY strength DESC, id ASC"
        with self._transaction() as conn:
            rows = conn.execute(sql, args).fetchall()
        related = []
        for row in rows:
            rel = self._relationship(row)
            if rel.source == path:
                related.append(RelatedFile(rel.target, rel, "outgoing"))
            else:
                related.append(RelatedFile(rel.source, rel, "incoming"))
        return related

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self) -> dict:
        """Corpus totals, per-language / per-model counts and pattern counts."""
        with self._transaction() as conn:
            total_files = conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0]
            total_patterns = conn.execute("SELECT COUNT(*) FROM code_patterns").fetchone()[0]
            total_rels = conn.execute("SELECT COUNT(*) FROM code_relationships").fetchone()[0]
            languages = {
                r[0]: r[1] for r in conn.execute(
                    "SELECT language, COUNT(*) FROM embeddings GROUP BY language ORDER BY 2 DESC"
                )
            }
            model_types = {
                r[0]: r[1] for r in conn.execute(
                    "SELECT model_type, COUNT(*) FROM embeddings GROUP BY model_type ORDER BY 2 DESC"
                )
            }
            pattern_types = {
                r[0]: r[1] for r in conn.execute(
                    "SELECT pattern_type, COUNT(*) FROM code_patterns GROUP BY pattern_type ORDER BY 2 DESC"
                )
            }
            size = conn.execute("SELECT COALESCE(SUM(file_size), 0) FROM embeddings").fetchone()[0]
        return {
            "db_path": self._db_path,
            "total_files": total_files,
            "total_bytes": size,
            "total_patterns": total_patterns,
            "total_relationships": total_rels,
            "languages": languages,
            "model_types": model_types,
            "pattern_types": pattern_types,
        }
