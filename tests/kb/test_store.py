"""
Unit tests for codeintel.kb.store.CodeStore
"""

from __future__ import annotations

import os
import sqlite3
import unittest

import pytest

from codeintel.kb.models import (
    ArchitecturalPattern, Embedding, FileRecord, Relationship, compute_content_hash,
)
from codeintel.kb.store import CodeStore, StoreError


def _record(path, content="x = 1", language="python"):
    return FileRecord(
        path=path,
        content_hash=compute_content_hash(content),
        language=language,
        size=len(content),
        lines=content.count("\n") + 1,
    )


# ---------------------------------------------------------------------------
# Test: per-file rows
# ---------------------------------------------------------------------------

class TestCodeStoreRows(unittest.TestCase):
    """Insert, read back, replace and remove cached files."""

    def setUp(self):
        self.store = CodeStore(":memory:")

    def tearDown(self):
        self.store.close()

    def test_upsert_and_get(self):
        rel = Relationship("a.py", "Base", "inheritance", 0.9, {"class": "A"})
        pattern = ArchitecturalPattern("Factory", 0.7, "Create methods returning interface types")
        self.store.upsert(
            _record("a.py"),
            Embedding([0.5, 0.25, 0.0], "heuristic"),
            metadata={"functions": ["f"]},
            ast={"language": "python"},
            patterns=[pattern],
            relationships=[rel],
            code_metrics={"cyclomatic_complexity": 2},
        )
        cached = self.store.get("a.py")
        self.assertIsNotNone(cached)
        self.assertEqual(cached.content_hash, compute_content_hash("x = 1"))
        self.assertEqual(cached.embedding.vector, [0.5, 0.25, 0.0])
        self.assertEqual(cached.embedding.model_type, "heuristic")
        self.assertEqual(cached.metadata, {"functions": ["f"]})
        self.assertEqual(cached.ast, {"language": "python"})
        self.assertEqual(cached.patterns, [pattern])
        self.assertEqual(cached.relationships, [rel])
        self.assertEqual(cached.code_metrics, {"cyclomatic_complexity": 2})
        self.assertEqual(cached.record.language, "python")

    def test_get_missing(self):
        self.assertIsNone(self.store.get("missing.py"))
        self.assertIsNone(self.store.content_hash("missing.py"))

    def test_same_hash_is_a_noop(self):
        first = self.store.upsert(_record("a.py"), Embedding([1.0, 0.0], "heuristic"))
        again = self.store.upsert(_record("a.py"), Embedding([0.0, 1.0], "heuristic"))
        self.assertEqual(again.embedding.vector, [1.0, 0.0])
        self.assertEqual(again.created_at, first.created_at)
        self.assertEqual(self.store.stats()["total_files"], 1)

    def test_changed_hash_replaces_row(self):
        self.store.upsert(
            _record("a.py"), Embedding([1.0, 0.0], "heuristic"),
            relationships=[Relationship("a.py", "old", "import", 0.6)],
        )
        self.store.upsert(
            _record("a.py", content="x = 2"), Embedding([0.0, 1.0], "heuristic"),
            relationships=[Relationship("a.py", "new", "import", 0.6)],
        )
        cached = self.store.get("a.py")
        self.assertEqual(cached.content_hash, compute_content_hash("x = 2"))
        self.assertEqual(cached.embedding.vector, [0.0, 1.0])
        self.assertEqual([r.target for r in cached.relationships], ["new"])
        self.assertEqual(self.store.paths(), ["a.py"])

    def test_remove(self):
        self.store.upsert(
            _record("a.py"), Embedding([1.0], "heuristic"),
            relationships=[Relationship("a.py", "b", "import", 0.6)],
        )
        self.assertTrue(self.store.remove("a.py"))
        self.assertIsNone(self.store.get("a.py"))
        self.assertEqual(self.store.all_relationships(), [])
        self.assertFalse(self.store.remove("a.py"))

    def test_clear(self):
        self.store.upsert(_record("a.py"), Embedding([1.0], "heuristic"))
        self.store.record_pattern("function", "main", "a.py")
        self.store.clear()
        self.assertEqual(self.store.paths(), [])
        self.assertEqual(self.store.find_similar_patterns(), [])

    def test_float32_round_trip_tolerance(self):
        self.store.upsert(_record("a.py"), Embedding([0.1, 0.2], "heuristic"))
        vec = self.store.get("a.py").embedding.vector
        self.assertAlmostEqual(vec[0], 0.1, places=6)
        self.assertAlmostEqual(vec[1], 0.2, places=6)


# ---------------------------------------------------------------------------
# Test: pattern frequency
# ---------------------------------------------------------------------------

class TestCodeStorePatterns(unittest.TestCase):

    def setUp(self):
        self.store = CodeStore(":memory:")

    def tearDown(self):
        self.store.close()

    def test_frequency_and_file_set(self):
        self.store.record_pattern("function", "handleRequest", "a.js")
        self.store.record_pattern("function", "handleRequest", "b.js")
        self.store.record_pattern("function", "handleRequest", "a.js")
        self.store.record_pattern("function", "render", "a.js")
        found = self.store.find_similar_patterns("handle")
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].frequency, 3)
        self.assertEqual(found[0].file_paths, ["a.js", "b.js"])

    def test_filter_by_type_and_order(self):
        self.store.record_patterns([("class", "Renderer"), ("function", "render")], "a.js")
        self.store.record_pattern("function", "render", "b.js")
        found = self.store.find_similar_patterns("Render")
        self.assertEqual([p.pattern_content for p in found], ["render", "Renderer"])
        only_classes = self.store.find_similar_patterns("Render", pattern_type="class")
        self.assertEqual([p.pattern_content for p in only_classes], ["Renderer"])

    def test_remove_prunes_patterns(self):
        self.store.upsert(_record("a.js", language="javascript"), Embedding([1.0], "heuristic"))
        self.store.record_pattern("function", "shared", "a.js")
        self.store.record_pattern("function", "shared", "b.js")
        self.store.record_pattern("function", "onlyA", "a.js")
        self.store.remove("a.js")
        found = {p.pattern_content: p for p in self.store.find_similar_patterns()}
        self.assertNotIn("onlyA", found)
        self.assertEqual(found["shared"].file_paths, ["b.js"])

    def test_remove_takes_back_frequency(self):
        for path in ("a.py", "b.py"):
            self.store.upsert(_record(path, content=path), Embedding([1.0], "heuristic"))
            self.store.record_pattern("function", "main", path)
        self.store.remove("b.py")
        found = self.store.find_similar_patterns("main")[0]
        self.assertEqual(found.file_paths, ["a.py"])
        self.assertEqual(found.frequency, len(found.file_paths))

    def test_frequency_never_drops_below_file_count(self):
        self.store.record_pattern("function", "main", "a.py")
        self.store.record_pattern("function", "main", "b.py")
        self.store.record_pattern("function", "main", "c.py")
        self.store._get_conn().execute("UPDATE code_patterns SET frequency = 1")
        self.store.remove("a.py")
        found = self.store.find_similar_patterns("main")[0]
        self.assertEqual(found.frequency, 2)

    def test_prefix_paths_are_not_pruned(self):
        self.store.record_pattern("function", "main", "a.py")
        self.store.record_pattern("function", "main", "data.py")
        self.store.remove("a.py")
        found = self.store.find_similar_patterns("main")[0]
        self.assertEqual(found.file_paths, ["data.py"])
        self.store.remove("a.py")
        self.assertEqual(self.store.find_similar_patterns("main")[0].file_paths, ["data.py"])

    def test_changed_hash_withdraws_old_sightings(self):
        self.store.upsert(_record("a.py", content="v1"), Embedding([1.0], "heuristic"))
        self.store.record_pattern("function", "old_name", "a.py")
        self.store.record_pattern("function", "shared", "a.py")
        self.store.record_pattern("function", "shared", "b.py")
        self.store.upsert(_record("a.py", content="v2"), Embedding([1.0], "heuristic"))
        found = {p.pattern_content: p for p in self.store.find_similar_patterns()}
        self.assertNotIn("old_name", found)
        self.assertEqual(found["shared"].file_paths, ["b.py"])
        self.assertEqual(found["shared"].frequency, 1)

    def test_same_hash_keeps_sightings(self):
        self.store.upsert(_record("a.py"), Embedding([1.0], "heuristic"))
        self.store.record_pattern("function", "main", "a.py")
        self.store.upsert(_record("a.py"), Embedding([1.0], "heuristic"))
        self.assertEqual(self.store.find_similar_patterns("main")[0].file_paths, ["a.py"])


# ---------------------------------------------------------------------------
# Test: corpus queries
# ---------------------------------------------------------------------------

class TestCodeStoreCorpus:

    @pytest.fixture()
    def store(self, tmp_path):
        s = CodeStore(str(tmp_path / "nested" / "embeddings.db"))
        yield s
        s.close()

    def test_database_file_created(self, store, tmp_path):
        assert os.path.isfile(tmp_path / "nested" / "embeddings.db")

    def test_all_embeddings_in_insertion_order(self, store):
        store.upsert(_record("b.py"), Embedding([1.0], "heuristic"))
        store.upsert(_record("a.py"), Embedding([2.0], "heuristic"))
        assert [r.path for r, _, _ in store.all_embeddings()] == ["b.py", "a.py"]

    def test_related_to_ordering_and_direction(self, store):
        store.upsert(
            _record("a.ts", language="typescript"), Embedding([1.0], "heuristic"),
            relationships=[
                Relationship("a.ts", "./b", "import", 0.6),
                Relationship("a.ts", "Shape", "implementation", 0.8),
                Relationship("a.ts", "Base", "inheritance", 0.9),
            ],
        )
        store.upsert(
            _record("c.ts", language="typescript"), Embedding([1.0], "heuristic"),
            relationships=[Relationship("c.ts", "a.ts", "import", 0.6)],
        )
        related = store.related_to("a.ts")
        assert [(r.path, r.direction, r.relationship.strength) for r in related] == [
            ("Base", "outgoing", 0.9),
            ("Shape", "outgoing", 0.8),
            ("./b", "outgoing", 0.6),
            ("c.ts", "incoming", 0.6),
        ]
        imports_only = store.related_to("a.ts", types=["import"])
        assert [r.path for r in imports_only] == ["./b", "c.ts"]

    def test_architectural_patterns(self, store):
        pattern = ArchitecturalPattern("Observer", 0.75, "Event subscription/notification methods")
        store.upsert(_record("a.js"), Embedding([1.0], "heuristic"), patterns=[pattern])
        store.upsert(_record("b.js"), Embedding([1.0], "heuristic"))
        assert list(store.all_architectural_patterns()) == [("a.js", [pattern]), ("b.js", [])]

    def test_stats(self, store):
        store.upsert(_record("a.py"), Embedding([1.0, 0.0], "heuristic"))
        store.upsert(_record("b.js", "let b;", "javascript"), Embedding([1.0], "ollama:m"),
                     relationships=[Relationship("b.js", "x", "import", 0.6)])
        store.record_pattern("function", "f", "a.py")
        stats = store.stats()
        assert stats["total_files"] == 2
        assert stats["total_relationships"] == 1
        assert stats["total_patterns"] == 1
        assert stats["languages"] == {"python": 1, "javascript": 1}
        assert stats["model_types"] == {"heuristic": 1, "ollama:m": 1}
        assert stats["total_bytes"] == len("x = 1") + len("let b;")

    def test_context_manager_closes(self, tmp_path):
        with CodeStore(str(tmp_path / "c.db")) as s:
            s.upsert(_record("a.py"), Embedding([1.0], "heuristic"))
        with CodeStore(str(tmp_path / "c.db")) as s:
            assert s.paths() == ["a.py"]

    def test_sqlite_errors_become_store_errors(self, store):
        store._get_conn().execute("DROP TABLE embeddings")
        with pytest.raises(StoreError) as info:
            store.get("a.py")
        assert isinstance(info.value.__cause__, sqlite3.Error)
