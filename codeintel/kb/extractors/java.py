"""
Rule set for Java.
"""

from __future__ import annotations

import re
from typing import Optional

from ..structure import (
    ClassInfo, ConstructorInfo, ImportInfo, InterfaceInfo, MethodInfo,
    Parameter, PropertyInfo, StructuralDescription,
)
from .base import (
    StructuralExtractor, block_body, complexity, line_number,
    preceding_decorators, shallow_body, split_top_level,
)

_MODIFIERS = r"(?:public|protected|private|static|final|abstract|synchronized|native|default|strictfp|sealed|transient|volatile)"

_PACKAGE_RE = re.compile(r"^[ \t]*package\s+([\w.]+)\s*;", re.M)
_IMPORT_RE = re.compile(r"^[ \t]*import\s+(static\s+)?([\w.]+(?:\.\*)?)\s*;", re.M)
_CLASS_RE = re.compile(
    rf"^[ \t]*((?:{_MODIFIERS}\s+)*)(class|enum|record)\s+(\w+)"
    r"(?:\s*<[^{]*?>)?(?:\s*\([^)]*\))?"
    r"(?:\s+extends\s+([\w.]+)(?:\s*<[^{]*?>)?)?"
    r"(?:\s+implements\s+([^{]+?))?"
    r"(?:\s+permits\s+[^{]+?)?\s*\{",
    re.M,
)
_INTERFACE_RE = re.compile(
    rf"^[ \t]*(?:{_MODIFIERS}\s+)*@?interface\s+(\w+)(?:\s*<[^{{]*?>)?"
    r"(?:\s+extends\s+([^{]+?))?\s*\{",
    re.M,
)
_METHOD_RE = re.compile(
    rf"^[ \t]*((?:{_MODIFIERS}\s+)*)(?:<[^>]+>\s+)?"
    r"([\w.]+(?:\s*<[^;{()]*?>)?(?:\[\])*)\s+(\w+)\s*\(([^)]*)\)"
    r"\s*(?:throws\s+[\w.,\s]+?)?\s*([{;])",
    re.M,
)
_CONSTRUCTOR_RE = re.compile(
    rf"^[ \t]*((?:{_MODIFIERS}\s+)*)(\w+)\s*\(([^)]*)\)\s*(?:throws\s+[\w.,\s]+?)?\s*\{{",
    re.M,
)
_FIELD_RE = re.compile(
    rf"^[ \t]*((?:{_MODIFIERS}\s+)*)"
    r"([\w.]+(?:\s*<[^;=(){}]*?>)?(?:\[\])*)\s+(\w+)\s*(?:=[^;]*)?;",
    re.M,
)

_NOT_A_TYPE = frozenset({
    "return", "new", "throw", "else", "package", "import", "case",
    "public", "protected", "private", "static", "final", "abstract",
    "synchronized", "native", "default", "transient", "volatile",
})


def _visibility(modifiers: list[str]) -> str:
    for mod in ("public", "protected", "private"):
        if mod in modifiers:
            return mod
    return "package"


def _strip_generics(name: str) -> str:
    return re.sub(r"<.*", "", name).strip()


class JavaExtractor(StructuralExtractor):
    """Regex rule set for Java."""

    languages = ("java",)

    def rules(self):
        return [
            ("package declaration", self._package),
            ("class declaration", self._classes),
            ("interface declaration", self._interfaces),
            ("import statement", self._imports),
        ]

    def parse_param(self, token: str) -> Optional[Parameter]:
        """``final Type<X> name`` style."""
        token = re.sub(r"@\w+(?:\([^)]*\))?\s*", "", token).replace("final ", "").strip()
        m = re.match(r"^(.+?)\s*(?:\.\.\.)?\s+(\w+)$", token)
        if not m:
            return None
        return Parameter(name=m.group(2), type_hint=m.group(1).strip())

    def _package(self, text: str, desc: StructuralDescription) -> None:
        m = _PACKAGE_RE.search(text)
        if m:
            desc.package = m.group(1)

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def _classes(self, text: str, desc: StructuralDescription) -> None:
        for m in _CLASS_RE.finditer(text):
            modifiers = m.group(1).split()
            cls = ClassInfo(
                name=m.group(3),
                line=line_number(text, m.start(3)),
                kind=m.group(2),
                superclass=m.group(4),
                interfaces=[_strip_generics(i) for i in split_top_level(m.group(5) or "")],
                decorators=preceding_decorators(text, m.start()),
                modifiers=modifiers,
                visibility=_visibility(modifiers),
            )
            open_index = m.end() - 1
            self._members(text, open_index + 1, block_body(text, open_index), cls)
            desc.classes.append(cls)

    def _members(self, text: str, body_start: int, body: str, cls: ClassInfo) -> None:
        shallow = shallow_body(body)
        taken = set()

        for m in _CONSTRUCTOR_RE.finditer(shallow):
            if m.group(2) != cls.name:
                continue
            line = line_number(text, body_start + m.start(2))
            taken.add(line)
            cls.constructors.append(ConstructorInfo(
                line=line,
                params=self.parse_params(m.group(3)),
                visibility=_visibility(m.group(1).split()),
            ))

        for m in _METHOD_RE.finditer(shallow):
            ret, name = m.group(2), m.group(3)
            if ret in _NOT_A_TYPE:
                continue
            offset = body_start + m.start(3)
            line = line_number(text, offset)
            if line in taken:
                continue
            taken.add(line)
            modifiers = m.group(1).split()
            body = ""
            if m.group(5) == "{":
                body = block_body(text, body_start + m.end(5) - 1)
            cls.methods.append(MethodInfo(
                name=name,
                line=line,
                params=self.parse_params(m.group(4)),
                return_type=ret,
                visibility=_visibility(modifiers),
                is_static="static" in modifiers,
                is_abstract="abstract" in modifiers or m.group(5) == ";",
                complexity=complexity(body),
                decorators=preceding_decorators(text, body_start + m.start()),
            ))

        for m in _FIELD_RE.finditer(shallow):
            if m.group(2) in _NOT_A_TYPE:
                continue
            line = line_number(text, body_start + m.start(3))
            if line in taken:
                continue
            modifiers = m.group(1).split()
            cls.properties.append(PropertyInfo(
                name=m.group(3),
                line=line,
                type_hint=m.group(2),
                visibility=_visibility(modifiers),
                is_static="static" in modifiers,
                is_readonly="final" in modifiers,
            ))

    # ------------------------------------------------------------------
    # Interfaces / imports
    # ------------------------------------------------------------------

    def _interfaces(self, text: str, desc: StructuralDescription) -> None:
        for m in _INTERFACE_RE.finditer(text):
            shallow = shallow_body(block_body(text, m.end() - 1))
            desc.interfaces.append(InterfaceInfo(
                name=m.group(1),
                line=line_number(text, m.start(1)),
                extends=[_strip_generics(e) for e in split_top_level(m.group(2) or "")],
                methods=[mm.group(3) for mm in _METHOD_RE.finditer(shallow)],
            ))

    def _imports(self, text: str, desc: StructuralDescription) -> None:
        for m in _IMPORT_RE.finditer(text):
            module = m.group(2)
            desc.imports.append(ImportInfo(
                module=module,
                line=line_number(text, m.start()),
                names=[module.rsplit(".", 1)[-1]],
                kind="java",
            ))
