"""
Heuristic design-pattern detection.

:func:`detect_patterns` flags patterns in one file's structural
description.  :func:`architectural_overview` aggregates the per-file flags
stored for a whole corpus into occurrence counts.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .models import ArchitecturalPattern
from .structure import StructuralDescription

logger = logging.getLogger(__name__)

MAX_PATTERNS = 6

PATTERN_NAMES = ("Singleton", "Factory", "Observer", "Strategy", "MVC")


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _is_singleton(desc: StructuralDescription) -> bool:
    return any(
        any(m.name == "getInstance" and m.is_static for m in cls.methods)
        and any(p.is_static and p.visibility == "private" for p in cls.properties)
        for cls in desc.classes
    )


def _method_name_contains(desc: StructuralDescription, *needles: str) -> bool:
    for _, method in desc.all_methods():
        lowered = method.name.lower()
        if any(n in lowered for n in needles):
            return True
    return False


def _is_factory(desc: StructuralDescription) -> bool:
    return _method_name_contains(desc, "create", "factory")


def _is_observer(desc: StructuralDescription) -> bool:
    return _method_name_contains(desc, "subscribe", "notify", "observer")


def _is_strategy(desc: StructuralDescription) -> bool:
    implementors = [cls for cls in desc.classes if cls.interfaces]
    return bool(desc.interfaces) and len(implementors) > 1


def _is_mvc(desc: StructuralDescription) -> bool:
    names = [cls.name.lower() for cls in desc.classes]
    return all(any(part in n for n in names) for part in ("controller", "model", "view"))


# Evaluated in this order; output keeps it.
_RULES: list[tuple[Callable[[StructuralDescription], bool], ArchitecturalPattern]] = [
    (_is_singleton, ArchitecturalPattern("Singleton", 0.8, "Private constructor with static instance")),
    (_is_factory, ArchitecturalPattern("Factory", 0.7, "Create methods returning interface types")),
    (_is_observer, ArchitecturalPattern("Observer", 0.75, "Event subscription/notification methods")),
    (_is_strategy, ArchitecturalPattern("Strategy", 0.6, "Interface with multiple implementations")),
    (_is_mvc, ArchitecturalPattern("MVC", 0.65, "Controller, Model, View separation")),
]


def detect_patterns(desc: StructuralDescription) -> list[ArchitecturalPattern]:
    """
    Return the design patterns flagged in *desc*, in rule order.

    At most :data:`MAX_PATTERNS` results are returned.  Results are not
    sorted by confidence.
    """
    found = []
    for rule, pattern in _RULES:
        if rule(desc):
            found.append(ArchitecturalPattern(pattern.name, pattern.confidence, pattern.evidence))
            if len(found) >= MAX_PATTERNS:
                break
    return found


# ---------------------------------------------------------------------------
# Corpus overview
# ---------------------------------------------------------------------------

@dataclass
class PatternOccurrence:
    """How many cached files a pattern was flagged in."""
    name: str
    frequency: int = 0
    files: list[str] = field(default_factory=list)
    evidence: str = ""

    def to_dict(self) -> dict:
        return {
            "pattern": self.name,
            "frequency": self.frequency,
            "files": list(self.files),
            "evidence": self.evidence,
        }


def architectural_overview(
    rows: Iterable[tuple[str, list[ArchitecturalPattern]]],
    limit: int = MAX_PATTERNS,
) -> list[PatternOccurrence]:
    """
    Aggregate per-file pattern flags into occurrence counts.

    Parameters
    ----------
    rows:
        ``(path, patterns)`` pairs, one per cached file.
    limit:
        Maximum number of entries returned.

    Returns
    -------
    list[PatternOccurrence]
        Most frequent first; ties keep first-seen order.  Empty when no
        file carries a pattern.
    """
    by_name: "OrderedDict[str, PatternOccurrence]" = OrderedDict()
    for path, patterns in rows:
        for pattern in patterns:
            entry = by_name.get(pattern.name)
            if entry is None:
                entry = by_name[pattern.name] = PatternOccurrence(pattern.name, evidence=pattern.evidence)
            entry.frequency += 1
            if path not in entry.files:
                entry.files.append(path)
    ranked = sorted(by_name.values(), key=lambda e: -e.frequency)
    logger.debug("[Patterns] overview over %d pattern name(s)", len(ranked))
    return ranked[:limit]
