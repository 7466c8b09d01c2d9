"""
Relationship edges between files and the names they depend on.

:func:`extract_relationships` derives the raw edges for one file from its
structural description.  :class:`RelationshipGraph` collects the edges of
a whole corpus into a NetworkX multi-digraph, collapsing duplicates and
resolving import targets to cached files where a module string matches.
"""

from __future__ import annotations

import logging
import os
import posixpath
from typing import Iterable, Optional

import networkx as nx

from .models import (
    IMPLEMENTATION, IMPORT, INHERITANCE, RELATIONSHIP_STRENGTH, Relationship,
)
from .structure import StructuralDescription

logger = logging.getLogger(__name__)

_STRIP_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".py", ".h", ".hpp", ".java")


def extract_relationships(desc: StructuralDescription, file_path: str) -> list[Relationship]:
    """
    Derive inheritance, implementation and import edges for one file.

    Targets are recorded as written in the source; nothing is resolved.
    """
    edges: list[Relationship] = []
    for cls in desc.classes:
        for base in cls.all_bases:
            edges.append(Relationship(
                source=file_path,
                target=base,
                type=INHERITANCE,
                strength=RELATIONSHIP_STRENGTH[INHERITANCE],
                metadata={"class": cls.name},
            ))
        for interface in cls.interfaces:
            edges.append(Relationship(
                source=file_path,
                target=interface,
                type=IMPLEMENTATION,
                strength=RELATIONSHIP_STRENGTH[IMPLEMENTATION],
                metadata={"class": cls.name},
            ))
    for imp in desc.all_imports():
        edges.append(Relationship(
            source=file_path,
            target=imp.module,
            type=IMPORT,
            strength=RELATIONSHIP_STRENGTH[IMPORT],
            metadata={"items": list(imp.names)},
        ))
    return edges


# ---------------------------------------------------------------------------
# Module-string resolution
# ---------------------------------------------------------------------------

def _strip_ext(path: str) -> str:
    root, ext = os.path.splitext(path)
    return root if ext.lower() in _STRIP_EXTENSIONS else path


def resolve_import(source: str, module: str, known_paths: Iterable[str]) -> Optional[str]:
    """
    Map an import string to one of *known_paths*, or None.

    Relative specifiers (``./x``, ``../x``) are resolved against the
    importing file's directory; dotted Python / Java modules are turned
    into path suffixes.
    """
    known = {_strip_ext(p.replace(os.sep, "/")): p for p in known_paths}
    if not known:
        return None

    if module.startswith("."):
        if "/" in module:
            base = posixpath.dirname(source.replace(os.sep, "/"))
            candidate = posixpath.normpath(posixpath.join(base, module))
            hit = known.get(_strip_ext(candidate))
            if hit is None:
                hit = known.get(posixpath.join(_strip_ext(candidate), "index"))
            return hit
        # Python relative: ``.mod`` or ``..pkg.mod``
        level = len(module) - len(module.lstrip("."))
        base = posixpath.dirname(source.replace(os.sep, "/"))
        for _ in range(level - 1):
            base = posixpath.dirname(base)
        rest = module.lstrip(".").replace(".", "/")
        candidate = posixpath.join(base, rest) if rest else posixpath.join(base, "__init__")
        return known.get(candidate)

    suffix = _strip_ext(module) if "/" in module else module.replace(".", "/")
    matches = sorted(k for k in known if k == suffix or k.endswith("/" + suffix))
    return known[matches[0]] if matches else None


# ---------------------------------------------------------------------------
# RelationshipGraph
# ---------------------------------------------------------------------------

class RelationshipGraph:
    """
    Deduplicated directed graph of relationship edges.

    Each ``(source, target, type)`` triple is stored once, keyed by type on
    a :class:`networkx.MultiDiGraph`, keeping the strongest duplicate.
    """

    def __init__(self, known_paths: Optional[Iterable[str]] = None) -> None:
        self._g: nx.MultiDiGraph = nx.MultiDiGraph()
        self._known = list(known_paths or [])

    @classmethod
    def from_relationships(
        cls,
        relationships: Iterable[Relationship],
        known_paths: Optional[Iterable[str]] = None,
    ) -> "RelationshipGraph":
        graph = cls(known_paths)
        for rel in relationships:
            graph.add(rel)
        return graph

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add(self, rel: Relationship) -> None:
        target = rel.target
        resolved = None
        if rel.type == IMPORT and self._known:
            resolved = resolve_import(rel.source, rel.target, self._known)
            if resolved is not None:
                target = resolved
        if self._g.has_edge(rel.source, target, key=rel.type):
            data = self._g[rel.source][target][rel.type]
            if rel.strength <= data["strength"]:
                return
        self._g.add_node(rel.source, kind="file")
        if not self._g.has_node(target):
            self._g.add_node(target, kind="file" if resolved or target in self._known else "external")
        self._g.add_edge(
            rel.source, target, key=rel.type,
            strength=rel.strength, metadata=dict(rel.metadata), raw_target=rel.target,
        )

    def remove_file(self, path: str) -> None:
        """Drop every edge originating from *path*."""
        if not self._g.has_node(path):
            return
        out = list(self._g.out_edges(path, keys=True))
        self._g.remove_edges_from(out)
        if self._g.degree(path) == 0:
            self._g.remove_node(path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def edges(self, types: Optional[Iterable[str]] = None) -> list[Relationship]:
        wanted = set(types) if types else None
        result = []
        for src, dst, key, data in self._g.edges(keys=True, data=True):
            if wanted is not None and key not in wanted:
                continue
            result.append(Relationship(src, dst, key, data["strength"], dict(data["metadata"])))
        result.sort(key=lambda r: -r.strength)
        return result

    def dependencies(self, path: str) -> list[str]:
        """Targets *path* points at (outgoing edges)."""
        if not self._g.has_node(path):
            return []
        return sorted(set(self._g.successors(path)))

    def dependents(self, path: str) -> list[str]:
        """Sources that point at *path* (incoming edges)."""
        if not self._g.has_node(path):
            return []
        return sorted(set(self._g.predecessors(path)))

    def stats(self) -> dict:
        by_type: dict[str, int] = {}
        for _, _, key in self._g.edges(keys=True):
            by_type[key] = by_type.get(key, 0) + 1
        external = sum(1 for _, d in self._g.nodes(data=True) if d.get("kind") == "external")
        return {
            "nodes": self._g.number_of_nodes(),
            "edges": self._g.number_of_edges(),
            "external_nodes": external,
            "edges_by_type": by_type,
        }

    def __len__(self) -> int:
        return self._g.number_of_edges()
