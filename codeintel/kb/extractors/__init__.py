"""
Per-language structural extractors.

Extractors are looked up by language tag.  Any language without a
registered extractor falls back to :class:`GenericExtractor`, so
extraction never fails for lack of a rule set.  A real parser can replace
a language's rules through :func:`register_extractor` without touching
callers.
"""

from __future__ import annotations

import threading

from ..structure import StructuralDescription
from .base import StructuralExtractor
from .cpp import CppExtractor
from .generic import GenericExtractor
from .java import JavaExtractor
from .javascript import JavaScriptExtractor
from .python import PythonExtractor

__all__ = [
    "StructuralExtractor",
    "extract_structure",
    "get_extractor",
    "register_extractor",
    "registered_languages",
]

_lock = threading.Lock()
_registry: dict[str, StructuralExtractor] = {}
_generic = GenericExtractor()


def register_extractor(language: str, extractor: StructuralExtractor) -> None:
    """Install *extractor* for *language*, replacing any previous one."""
    with _lock:
        _registry[language] = extractor


def get_extractor(language: str) -> StructuralExtractor:
    """Return the extractor for *language*, or the generic fallback."""
    return _registry.get(language, _generic)


def registered_languages() -> list[str]:
    return sorted(_registry)


def extract_structure(text: str, language: str, file_path: str = "") -> StructuralDescription:
    """
    Apply the rule set for *language* to *text*.

    Parameters
    ----------
    text:
        Full file content.
    language:
        Language tag from :func:`codeintel.language.resolve_language`.
    file_path:
        Recorded on the description; not read.
    """
    return get_extractor(language).extract(text, language, file_path)


for _extractor in (JavaScriptExtractor(), PythonExtractor(), CppExtractor(), JavaExtractor()):
    for _language in _extractor.languages:
        register_extractor(_language, _extractor)
