"""
Similarity search over stored embeddings.

Scores are the cosine similarity between the query vector and each stored
vector of the same model type, plus small boosts for matching language,
code patterns and function names, clamped to [0, 1].
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

if TYPE_CHECKING:
    from .store import CodeStore

logger = logging.getLogger(__name__)

LANGUAGE_BOOST = 0.1
PATTERN_BOOST = 0.05
FUNCTION_BOOST = 0.03


class VectorDimensionError(ValueError):
    """Two vectors of different length were compared."""


# ---------------------------------------------------------------------------
# Cosine similarity
# ---------------------------------------------------------------------------

def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.

    Raises
    ------
    VectorDimensionError
        If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise VectorDimensionError(f"cannot compare vectors of length {va.size} and {vb.size}")
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def _cosine_similarity_batch(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity between *query* (1-D) and each row of *matrix*."""
    query_norm = np.linalg.norm(query)
    if query_norm == 0:
        return np.zeros(matrix.shape[0])
    row_norms = np.linalg.norm(matrix, axis=1)
    scores = (matrix @ query) / (np.where(row_norms == 0, 1.0, row_norms) * query_norm)
    scores[row_norms == 0] = 0.0
    return scores


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class SearchOptions:
    """Optional hints that boost matching files."""
    language: Optional[str] = None
    patterns: list[str] = field(default_factory=list)
    functions: list[str] = field(default_factory=list)


@dataclass
class SimilarFile:
    """
    A single similarity search hit.

    Attributes
    ----------
    path:
        Cached file path.
    similarity:
        Boosted score, clamped to [0, 1].
    cosine:
        Raw cosine similarity before boosts.
    language:
        Language tag of the cached file.
    model_type:
        Model type of the stored vector.
    metadata:
        Stored metadata for the file.
    """
    path: str
    similarity: float
    cosine: float
    language: str = ""
    model_type: str = ""
    metadata: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# SimilaritySearch
# ---------------------------------------------------------------------------

class SimilaritySearch:
    """Ranks the files in a :class:`~codeintel.kb.store.CodeStore` against a query vector."""

    def __init__(self, store: "CodeStore") -> None:
        self._store = store

    def find_similar(
        self,
        query_vector: Sequence[float],
        limit: int = 5,
        options: Optional[SearchOptions] = None,
        model_type: Optional[str] = None,
    ) -> list[SimilarFile]:
        """
        Return the *limit* most similar cached files.

        Parameters
        ----------
        query_vector:
            Embedding of the query text.
        limit:
            Maximum number of results.
        options:
            Language / pattern / function hints used for score boosts.
        model_type:
            Model type that produced *query_vector*.  Rows of any other
            model type are not compared.  When None every row of matching
            length is compared.

        Returns
        -------
        list[SimilarFile]
            Highest score first; ties keep store order.
        """
        t0 = time.perf_counter()
        options = options or SearchOptions()
        query = np.asarray(query_vector, dtype=np.float32)

        candidates = []
        skipped = 0
        for record, embedding, metadata in self._store.all_embeddings():
            if model_type is not None and embedding.model_type != model_type:
                skipped += 1
                continue
            if embedding.dimensions != query.size:
                skipped += 1
                continue
            candidates.append((record, embedding, metadata))

        if not candidates:
            logger.debug("[Search] no comparable vectors (%d skipped)", skipped)
            return []

        matrix = np.stack([np.asarray(e.vector, dtype=np.float32) for _, e, _ in candidates])
        # Non-finite query components score 0 rather than NaN.
        scores = np.nan_to_num(
            _cosine_similarity_batch(query, matrix), nan=0.0, posinf=0.0, neginf=0.0,
        )

        results = []
        for (record, embedding, metadata), cosine in zip(candidates, scores):
            score = float(cosine) + self._boost(record.language, metadata, options)
            results.append(SimilarFile(
                path=record.path,
                similarity=min(1.0, max(0.0, score)),
                cosine=float(cosine),
                language=record.language,
                model_type=embedding.model_type,
                metadata=metadata,
            ))

        results.sort(key=lambda r: -r.similarity)
        logger.debug(
            "[Search] ranked %d file(s), %d skipped, in %.1f ms",
            len(results), skipped, (time.perf_counter() - t0) * 1000,
        )
        return results[:limit]

    @staticmethod
    def _boost(language: str, metadata: dict, options: SearchOptions) -> float:
        boost = 0.0
        if options.language and language == options.language:
            boost += LANGUAGE_BOOST
        stored_patterns = set(metadata.get("patterns") or [])
        for pattern in options.patterns:
            if pattern in stored_patterns:
                boost += PATTERN_BOOST
        stored_functions = set(metadata.get("functions") or [])
        for name in options.functions:
            if name in stored_functions:
                boost += FUNCTION_BOOST
        return boost
