"""
Feature embedders: text → numeric vector.

Two strategies sit behind the :class:`Embedder` interface:

* :class:`HeuristicEmbedder` — deterministic, dependency-light features
  (construct counts, a fixed code vocabulary, layout statistics).  Never
  raises.
* :class:`ModelBackedEmbedder` — a real embedding model, reached over HTTP
  (:class:`OllamaEmbedder`) or through the OpenAI SDK
  (:class:`OpenAIEmbedder`).  Raises :class:`EmbeddingUnavailableError`.

:class:`FallbackEmbedder` composes the two: the model is tried first and,
after its first failure, bypassed for the rest of the session.
"""

from __future__ import annotations

import logging
import math
import re
import threading
from typing import TYPE_CHECKING, Optional

import numpy as np
import requests

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HEURISTIC_MODEL_TYPE = "heuristic"

CODE_FEATURE_SLOTS = 50
TEXT_FEATURE_SLOTS = 100
STRUCTURE_FEATURE_SLOTS = 30
HEURISTIC_DIMENSIONS = CODE_FEATURE_SLOTS + TEXT_FEATURE_SLOTS + STRUCTURE_FEATURE_SLOTS

DEFAULT_OLLAMA_MODEL = "nomic-embed-text"
DEFAULT_OPENAI_MODEL = "text-embedding-3-small"

# Construct / control-flow counters (slots 0..17 and 20..29 of the code block).
_CONSTRUCT_PATTERNS = [
    r"function\s+\w+",
    r"class\s+\w+",
    r"const\s+\w+",
    r"let\s+\w+",
    r"var\s+\w+",
    r"if\s*\(",
    r"for\s*\(",
    r"while\s*\(",
    r"try\s*\{",
    r"catch\s*\(",
    r"require\s*\(",
    r"import\s+",
    r"export\s+",
    r"async\s+",
    r"await\s+",
    r"throw\s+",
    r"console\.log",
    r"console\.error",
]
_EXTRA_CONSTRUCT_PATTERNS = [
    r"\bdef\s+\w+",
    r"\bself\.",
    r"\blambda\b",
    r"\bexcept\b",
    r"\braise\s+",
    r"\bpublic\s+",
    r"\bprivate\s+",
    r"\bstatic\s+",
    r"#\s*include\b",
    r"\bfn\s+\w+",
]
_CONSTRUCT_RES = [re.compile(p) for p in _CONSTRUCT_PATTERNS]
_EXTRA_CONSTRUCT_RES = [re.compile(p) for p in _EXTRA_CONSTRUCT_PATTERNS]

# Term-frequency vocabulary (slots of the text block, in order).
CODE_VOCABULARY = [
    "function", "return", "const", "let", "var", "if", "else", "for", "while",
    "try", "catch", "throw", "async", "await", "class", "extends", "constructor",
    "require", "import", "export", "module", "error", "data", "result", "response",
    "def", "self", "none", "true", "false", "null", "new", "this", "static",
    "public", "private", "interface", "struct", "include", "yield",
]

_WORD_SPLIT_RE = re.compile(r"[^a-z0-9\s]")
_COMMENT_LINE_RE = re.compile(r"^\s*(?://|#(?!include)|/\*|\*|--)")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class EmbeddingUnavailableError(RuntimeError):
    """The model-backed embedder could not produce a vector."""


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class Embedder:
    """Produces ``(vector, model_type)`` for a piece of text."""

    model_type: str = ""

    def embed(self, text: str) -> tuple[list[float], str]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Heuristic strategy
# ---------------------------------------------------------------------------

class HeuristicEmbedder(Embedder):
    """
    Fixed-length feature vector computed from the text alone.

    Layout (:data:`HEURISTIC_DIMENSIONS` floats):

    * code block — construct and control-flow counts, function / class
      density, further per-language construct counts;
    * text block — term frequency of each :data:`CODE_VOCABULARY` word;
    * structure block — line count, size, blank-line ratio, comment-line
      ratio, average indentation, brace / paren / bracket counts.

    Raw counts are ``log1p``-scaled so file size does not swamp the
    cosine.
    """

    model_type = HEURISTIC_MODEL_TYPE

    def embed(self, text: str) -> tuple[list[float], str]:
        try:
            vec = np.concatenate([
                self._code_features(text),
                self._text_features(text),
                self._structure_features(text),
            ])
            return vec.astype(np.float32).tolist(), self.model_type
        except Exception as exc:
            logger.error("[Embedder] heuristic embedding failed, using zero vector: %s", exc)
            return [0.0] * HEURISTIC_DIMENSIONS, self.model_type

    @staticmethod
    def _code_features(code: str) -> np.ndarray:
        features = np.zeros(CODE_FEATURE_SLOTS, dtype=np.float64)
        counts = [len(r.findall(code)) for r in _CONSTRUCT_RES]
        for i, count in enumerate(counts):
            features[i] = math.log1p(count)
        total_lines = max(code.count("\n") + 1, 1)
        features[18] = counts[0] / total_lines
        features[19] = counts[1] / total_lines
        for i, regex in enumerate(_EXTRA_CONSTRUCT_RES):
            features[20 + i] = math.log1p(len(regex.findall(code)))
        return features

    @staticmethod
    def _text_features(code: str) -> np.ndarray:
        features = np.zeros(TEXT_FEATURE_SLOTS, dtype=np.float64)
        words = [w for w in _WORD_SPLIT_RE.sub(" ", code.lower()).split() if len(w) > 1]
        if not words:
            return features
        total = len(words)
        counts: dict[str, int] = {}
        for w in words:
            counts[w] = counts.get(w, 0) + 1
        for i, word in enumerate(CODE_VOCABULARY[:TEXT_FEATURE_SLOTS]):
            features[i] = counts.get(word, 0) / total
        return features

    @staticmethod
    def _structure_features(code: str) -> np.ndarray:
        features = np.zeros(STRUCTURE_FEATURE_SLOTS, dtype=np.float64)
        lines = code.split("\n")
        n = len(lines)
        features[0] = math.log1p(n)
        features[1] = math.log1p(len(code))
        features[2] = sum(1 for l in lines if not l.strip()) / n
        features[3] = sum(1 for l in lines if _COMMENT_LINE_RE.match(l)) / n
        indents = [len(l) - len(l.lstrip()) for l in lines if l.strip() and l[:1].isspace()]
        features[4] = (sum(indents) / len(indents)) if indents else 0.0
        features[5] = math.log1p(code.count("{"))
        features[6] = math.log1p(code.count("("))
        features[7] = math.log1p(code.count("["))
        return features


# ---------------------------------------------------------------------------
# Model-backed strategies
# ---------------------------------------------------------------------------

def _normalise(vector: list[float]) -> list[float]:
    arr = np.asarray(vector, dtype=np.float32)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()


class ModelBackedEmbedder(Embedder):
    """Base for embedders that call a real model; vectors are L2-normalised."""

    provider = ""

    def __init__(self, model: str) -> None:
        self.model = model
        self.model_type = f"{self.provider}:{model}"

    def _raw_embed(self, text: str) -> list[float]:
        raise NotImplementedError

    def embed(self, text: str) -> tuple[list[float], str]:
        vector = self._raw_embed(text)
        if not vector:
            raise EmbeddingUnavailableError(f"{self.model_type} returned an empty vector")
        return _normalise(vector), self.model_type


class OllamaEmbedder(ModelBackedEmbedder):
    """Embeddings from a local Ollama server (``POST /api/embed``)."""

    provider = "ollama"

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str = "http://localhost:11434",
        timeout: float = 30.0,
    ) -> None:
        super().__init__(model)
        self._api_root = base_url.rstrip("/")
        if self._api_root.endswith("/api"):
            self._api_root = self._api_root[: -len("/api")]
        self.timeout = timeout

    def _raw_embed(self, text: str) -> list[float]:
        url = f"{self._api_root}/api/embed"
        payload = {"model": self.model, "input": text}
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as exc:
            raise EmbeddingUnavailableError(f"[Ollama] embedding request failed: {exc}") from exc
        except ValueError as exc:
            raise EmbeddingUnavailableError(f"[Ollama] invalid JSON from {url}: {exc}") from exc
        embeddings = data.get("embeddings") or [[]]
        return list(embeddings[0])


def _get_openai_client(api_key: str = ""):
    """Return an ``openai.OpenAI`` client, raising EmbeddingUnavailableError if unusable."""
    try:
        import openai  # type: ignore
    except ImportError as exc:
        raise EmbeddingUnavailableError(
            "openai package is required for OpenAI embeddings. "
            "Install it with: pip install 'codeintel[semantic]'"
        ) from exc
    if not api_key:
        raise EmbeddingUnavailableError("OPENAI_API_KEY is not set.")
    return openai.OpenAI(api_key=api_key)


class OpenAIEmbedder(ModelBackedEmbedder):
    """Embeddings from the OpenAI Embeddings API."""

    provider = "openai"

    def __init__(self, model: str = DEFAULT_OPENAI_MODEL, api_key: str = "", client=None) -> None:
        super().__init__(model)
        self._client = client if client is not None else _get_openai_client(api_key)

    def _raw_embed(self, text: str) -> list[float]:
        try:
            response = self._client.embeddings.create(model=self.model, input=[text])
        except Exception as exc:
            raise EmbeddingUnavailableError(f"[OpenAI] embedding request failed: {exc}") from exc
        return list(response.data[0].embedding) if response.data else []


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

class FallbackEmbedder(Embedder):
    """
    Try *primary*; on failure use *fallback* and stop trying *primary*.

    The switch is sticky for the lifetime of the instance so one file's
    vectors never mix model types mid-run.
    """

    def __init__(self, primary: Optional[Embedder], fallback: Optional[Embedder] = None) -> None:
        self.primary = primary
        self.fallback = fallback or HeuristicEmbedder()
        self._primary_disabled = primary is None
        self._lock = threading.Lock()

    @property
    def model_type(self) -> str:  # type: ignore[override]
        if self._primary_disabled:
            return self.fallback.model_type
        return self.primary.model_type

    @property
    def primary_disabled(self) -> bool:
        return self._primary_disabled

    def embed(self, text: str) -> tuple[list[float], str]:
        if not self._primary_disabled:
            try:
                return self.primary.embed(text)
            except Exception as exc:
                with self._lock:
                    if not self._primary_disabled:
                        logger.warning(
                            "[Embedder] %s unavailable, falling back to %s for this session: %s",
                            self.primary.model_type, self.fallback.model_type, exc,
                        )
                    self._primary_disabled = True
        return self.fallback.embed(text)


def create_embedder(config: "Config") -> Embedder:
    """
    Build the embedder described by *config*.

    ``EMBEDDING_PROVIDER`` is ``ollama``, ``openai`` or ``none``.  If the
    model-backed side cannot be initialised the heuristic embedder is
    returned on its own.
    """
    provider = (config.EMBEDDING_PROVIDER or "none").lower()
    heuristic = HeuristicEmbedder()
    if provider in ("none", "heuristic", ""):
        return heuristic

    try:
        if provider == "ollama":
            primary: Embedder = OllamaEmbedder(
                model=config.EMBEDDING_MODEL or DEFAULT_OLLAMA_MODEL,
                base_url=config.OLLAMA_BASE_URL,
                timeout=config.EMBED_TIMEOUT,
            )
        elif provider == "openai":
            primary = OpenAIEmbedder(
                model=config.EMBEDDING_MODEL or DEFAULT_OPENAI_MODEL,
                api_key=config.OPENAI_API_KEY,
            )
        else:
            logger.warning("[Embedder] unknown embedding provider %r, using heuristic", provider)
            return heuristic
    except EmbeddingUnavailableError as exc:
        logger.warning("[Embedder] %s embedder unavailable, using heuristic: %s", provider, exc)
        return heuristic

    logger.info("[Embedder] using %s with heuristic fallback", primary.model_type)
    return FallbackEmbedder(primary, heuristic)
