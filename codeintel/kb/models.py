"""
Records persisted by :class:`~codeintel.kb.store.CodeStore`.
"""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

# Relationship types and their fixed strengths.
INHERITANCE = "inheritance"
IMPLEMENTATION = "implementation"
IMPORT = "import"

RELATIONSHIP_STRENGTH: dict[str, float] = {
    INHERITANCE: 0.9,
    IMPLEMENTATION: 0.8,
    IMPORT: 0.6,
}


def compute_content_hash(content: str) -> str:
    """SHA-256 hex digest of the file content."""
    return hashlib.sha256(content.encode("utf-8", errors="replace")).hexdigest()


@dataclass
class FileRecord:
    """Identity of one analyzed file."""
    path: str
    content_hash: str
    language: str
    size: int = 0
    lines: int = 0


@dataclass
class Embedding:
    """A feature vector and the model type that produced it."""
    vector: list[float]
    model_type: str

    @property
    def dimensions(self) -> int:
        return len(self.vector)


@dataclass
class ArchitecturalPattern:
    """A design pattern flagged in one file."""
    name: str
    confidence: float
    evidence: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Relationship:
    """A directed edge between a file and a (possibly unresolved) name."""
    source: str
    target: str
    type: str
    strength: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RelatedFile:
    """One edge touching a queried path, seen from that path."""
    path: str                  # the other end of the edge
    relationship: Relationship
    direction: str             # "outgoing" | "incoming"


@dataclass
class CodePatternFrequency:
    """How often a textual code pattern has been seen, and where."""
    pattern_type: str
    pattern_content: str
    file_paths: list[str] = field(default_factory=list)
    frequency: int = 0


@dataclass
class CachedFile:
    """Everything stored for one file, read back in a single call."""
    record: FileRecord
    embedding: Embedding
    metadata: dict[str, Any] = field(default_factory=dict)
    ast: dict[str, Any] = field(default_factory=dict)
    patterns: list[ArchitecturalPattern] = field(default_factory=list)
    code_metrics: Optional[dict[str, Any]] = None
    relationships: list[Relationship] = field(default_factory=list)
    created_at: float = 0.0

    @property
    def path(self) -> str:
        return self.record.path

    @property
    def content_hash(self) -> str:
        return self.record.content_hash
