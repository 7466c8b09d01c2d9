"""
Fallback rule set for languages without a dedicated extractor.

Finds function-like declarations (capped), coarse structures, import-like
statements and comment counts, and a whole-file complexity figure.
"""

from __future__ import annotations

import re

from ..structure import FunctionInfo, ImportInfo, StructuralDescription, StructureInfo
from .base import StructuralExtractor, body_after, complexity, line_number

MAX_FUNCTIONS = 20

_FUNCTION_RES = (
    re.compile(r"\bfunction\s+(\w+)\s*\(([^)]*)\)"),
    re.compile(r"\bdef\s+(\w+)\s*\(?([^)\n]*)\)?"),
    re.compile(r"\bfn\s+(\w+)\s*(?:<[^>(]*>)?\s*\(([^)]*)\)"),
    re.compile(r"\bfunc\s+(?:\([^)]*\)\s*)?(\w+)\s*\(([^)]*)\)"),
)
_STRUCTURE_RE = re.compile(r"\b(class|struct|interface|type|trait|enum|impl)\s+([A-Za-z_]\w*)")
_IMPORT_BLOCK_RE = re.compile(r"^[ \t]*import\s*\(([^)]*)\)", re.M)
_IMPORT_QUOTED_RE = re.compile(r"^[ \t]*import\s+(?:\w+\s+)?[\"']([^\"']+)[\"']", re.M)
_IMPORT_BARE_RE = re.compile(r"^[ \t]*import\s+([\w.]+)\s*;?[ \t]*$", re.M)
_REQUIRE_RE = re.compile(r"\brequire(?:_once|_relative)?\s*\(?\s*[\"']([^\"']+)[\"']")
_INCLUDE_RE = re.compile(r"^[ \t]*#\s*include\s*[<\"]([^>\"]+)[>\"]", re.M)
_USE_RE = re.compile(r"^[ \t]*use\s+([\w:\\]+)", re.M)

_LINE_COMMENT_RE = re.compile(r"^[ \t]*(?://|#(?!include|define|if|endif|pragma|!))", re.M)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_FILE_BRANCH_RE = re.compile(r"\b(?:if|else|for|while|switch|try|catch)\b")


class GenericExtractor(StructuralExtractor):
    """Language-agnostic rule set used for every unregistered language."""

    languages = ()

    def rules(self):
        return [
            ("function-like declaration", self._functions),
            ("structure declaration", self._structures),
            ("import-like statement", self._imports),
            ("comment count", self._comments),
            ("file complexity", self._file_complexity),
        ]

    def _functions(self, text: str, desc: StructuralDescription) -> None:
        found = []
        for regex in _FUNCTION_RES:
            for m in regex.finditer(text):
                found.append(m)
        found.sort(key=lambda m: m.start())
        for m in found[:MAX_FUNCTIONS]:
            body = body_after(text, m.end())
            desc.functions.append(FunctionInfo(
                name=m.group(1),
                line=line_number(text, m.start(1)),
                params=self.parse_params(m.group(2) or ""),
                complexity=complexity(body[1]) if body else 1,
            ))

    def _structures(self, text: str, desc: StructuralDescription) -> None:
        for m in _STRUCTURE_RE.finditer(text):
            desc.structures.append(StructureInfo(
                kind=m.group(1),
                name=m.group(2),
                line=line_number(text, m.start()),
            ))

    def _imports(self, text: str, desc: StructuralDescription) -> None:
        found = []
        for m in _IMPORT_BLOCK_RE.finditer(text):
            for q in re.finditer(r"[\"']([^\"']+)[\"']", m.group(1)):
                found.append((m.start(1) + q.start(), q.group(1), "import"))
        for regex, kind in (
            (_IMPORT_QUOTED_RE, "import"),
            (_IMPORT_BARE_RE, "import"),
            (_REQUIRE_RE, "require"),
            (_INCLUDE_RE, "include"),
            (_USE_RE, "use"),
        ):
            for m in regex.finditer(text):
                found.append((m.start(), m.group(1), kind))
        found.sort(key=lambda item: item[0])
        for offset, module, kind in found:
            desc.imports.append(ImportInfo(
                module=module, line=line_number(text, offset), kind=kind,
            ))

    def _comments(self, text: str, desc: StructuralDescription) -> None:
        desc.comments = {
            "line": len(_LINE_COMMENT_RE.findall(text)),
            "block": len(_BLOCK_COMMENT_RE.findall(text)),
        }

    def _file_complexity(self, text: str, desc: StructuralDescription) -> None:
        desc.complexity = 1 + len(_FILE_BRANCH_RE.findall(text))
