"""
Language classification by file extension.

Only the extension is examined; file content never influences the tag.
Unknown extensions map to :data:`GENERIC_LANGUAGE` so that bulk indexing
can still extract a coarse structural description.
"""

from __future__ import annotations

import os
from typing import Optional

# ---------------------------------------------------------------------------
# Language mapping
# ---------------------------------------------------------------------------

EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".c++": "cpp",
    ".hpp": "cpp",
    ".hxx": "cpp",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".kt": "kotlin",
    ".swift": "swift",
    ".scala": "scala",
}

SUPPORTED_LANGUAGES: set[str] = set(EXTENSION_TO_LANGUAGE.values())

GENERIC_LANGUAGE = "generic"

# Extensions the directory scanner picks up during bulk indexing.
SOURCE_EXTENSIONS: frozenset[str] = frozenset({
    ".js", ".ts", ".tsx", ".jsx", ".py", ".java",
    ".cpp", ".c", ".go", ".rs",
})


class UnsupportedLanguageError(ValueError):
    """Raised when a single file is explicitly analyzed but its extension is unknown."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        ext = os.path.splitext(file_path)[1] or "<none>"
        super().__init__(f"Unsupported language for {file_path!r} (extension {ext})")


def detect_language(file_path: str) -> Optional[str]:
    """
    Return the language tag for *file_path*, or None if the extension is unknown.

    Parameters
    ----------
    file_path:
        Any file path; only the extension is examined.
    """
    ext = os.path.splitext(file_path)[1].lower()
    return EXTENSION_TO_LANGUAGE.get(ext)


def resolve_language(file_path: str, strict: bool = False) -> str:
    """
    Like :func:`detect_language` but never returns None.

    Unknown extensions yield :data:`GENERIC_LANGUAGE`, or raise
    :class:`UnsupportedLanguageError` when *strict* is true.
    """
    language = detect_language(file_path)
    if language is not None:
        return language
    if strict:
        raise UnsupportedLanguageError(file_path)
    return GENERIC_LANGUAGE


def is_source_file(file_path: str) -> bool:
    """True if *file_path* has an extension on the scanner allow-list."""
    return os.path.splitext(file_path)[1].lower() in SOURCE_EXTENSIONS
