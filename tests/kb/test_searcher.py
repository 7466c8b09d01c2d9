"""
Unit tests for codeintel.kb.searcher

Cosine similarity, model-type isolation, boosts and clamping over a real
in-memory store.
"""

from __future__ import annotations

import pytest

from codeintel.kb.models import Embedding, FileRecord
from codeintel.kb.searcher import (
    FUNCTION_BOOST, LANGUAGE_BOOST, PATTERN_BOOST, SearchOptions,
    SimilaritySearch, VectorDimensionError, cosine_similarity,
)
from codeintel.kb.store import CodeStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture()
def store():
    s = CodeStore(":memory:")
    yield s
    s.close()


def _add(store, path, vector, model_type="heuristic", language="python", metadata=None):
    record = FileRecord(path=path, content_hash=path, language=language, size=1, lines=1)
    store.upsert(record, Embedding(vector, model_type), metadata=metadata or {})


# ---------------------------------------------------------------------------
# cosine_similarity
# ---------------------------------------------------------------------------

class TestCosineSimilarity:

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(VectorDimensionError):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


# ---------------------------------------------------------------------------
# SimilaritySearch
# ---------------------------------------------------------------------------

class TestSimilaritySearch:

    def test_empty_store(self, store):
        assert SimilaritySearch(store).find_similar([1.0, 0.0]) == []

    def test_ranking_and_limit(self, store):
        _add(store, "a.py", [1.0, 0.0])
        _add(store, "b.py", [0.6, 0.8])
        _add(store, "c.py", [0.0, 1.0])
        results = SimilaritySearch(store).find_similar([1.0, 0.0], limit=2)
        assert [r.path for r in results] == ["a.py", "b.py"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].cosine == pytest.approx(0.6)

    def test_scores_are_clamped(self, store):
        _add(store, "a.py", [1.0, 0.0], metadata={"functions": ["f"]})
        _add(store, "b.py", [-1.0, 0.0])
        options = SearchOptions(language="python", functions=["f"])
        results = SimilaritySearch(store).find_similar([1.0, 0.0], options=options)
        for r in results:
            assert 0.0 <= r.similarity <= 1.0
        by_path = {r.path: r for r in results}
        assert by_path["a.py"].similarity == 1.0
        assert by_path["b.py"].cosine == pytest.approx(-1.0)
        assert by_path["b.py"].similarity == 0.0

    def test_model_type_isolation(self, store):
        _add(store, "heur.py", [1.0, 0.0], model_type="heuristic")
        _add(store, "oll.py", [1.0, 0.0], model_type="ollama:nomic-embed-text")
        results = SimilaritySearch(store).find_similar([1.0, 0.0], model_type="heuristic")
        assert [r.path for r in results] == ["heur.py"]
        assert results[0].model_type == "heuristic"

    def test_mismatched_dimensions_are_skipped(self, store):
        _add(store, "two.py", [1.0, 0.0])
        _add(store, "three.py", [1.0, 0.0, 0.0])
        results = SimilaritySearch(store).find_similar([1.0, 0.0])
        assert [r.path for r in results] == ["two.py"]

    def test_language_boost_reorders(self, store):
        _add(store, "a.py", [4.0, 3.0], language="python")       # cosine 0.8
        _add(store, "b.js", [2.0, 1.0], language="javascript")   # cosine ~0.894
        query = [1.0, 0.0]
        plain = SimilaritySearch(store).find_similar(query)
        assert plain[0].path == "b.js"
        boosted = SimilaritySearch(store).find_similar(query, options=SearchOptions(language="python"))
        assert boosted[0].path == "a.py"
        assert boosted[0].similarity == pytest.approx(0.8 + LANGUAGE_BOOST)

    def test_pattern_and_function_boosts(self, store):
        _add(store, "a.js", [0.5, 0.5], language="javascript",
             metadata={"patterns": ["async"], "functions": ["load"]})
        options = SearchOptions(patterns=["async", "singleton"], functions=["load", "save"])
        result = SimilaritySearch(store).find_similar([1.0, 0.0], options=options)[0]
        assert result.cosine == pytest.approx(0.7071, abs=1e-3)
        assert result.similarity == pytest.approx(result.cosine + PATTERN_BOOST + FUNCTION_BOOST)

    @pytest.mark.filterwarnings("ignore::RuntimeWarning")
    def test_non_finite_query_scores_zero(self, store):
        _add(store, "a.py", [1.0, 0.0])
        results = SimilaritySearch(store).find_similar([float("nan"), float("inf")])
        assert results[0].cosine == 0.0
        assert results[0].similarity == 0.0

    def test_zero_query_scores_zero(self, store):
        _add(store, "a.py", [1.0, 0.0])
        results = SimilaritySearch(store).find_similar([0.0, 0.0])
        assert results[0].similarity == 0.0
