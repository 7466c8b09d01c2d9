"""
Rule set for C and C++.

Classes and structs with access-qualified bases, their methods and data
members (tracking ``public:`` / ``private:`` sections), free functions
including out-of-class ``Type::method`` definitions, ``#include``
directives and namespaces.
"""

from __future__ import annotations

import re
from typing import Optional

from ..structure import (
    ClassInfo, ConstructorInfo, FunctionInfo, ImportInfo, MethodInfo,
    Parameter, PropertyInfo, StructuralDescription,
)
from .base import (
    StructuralExtractor, balanced_block, block_body, complexity, line_number,
    shallow_body, split_top_level,
)

_CLASS_RE = re.compile(
    r"^[ \t]*(?:template\s*<[^>]*>\s*)?(?:typedef\s+)?(class|struct)\s+(?:\w+\s+)?(\w+)"
    r"\s*(?:final\s*)?(?::\s*([^{;]+))?\s*\{",
    re.M,
)
_BASE_RE = re.compile(r"^(?:(public|protected|private)\s+)?(?:virtual\s+)?([\w:<>, ]+)$")
_ACCESS_RE = re.compile(r"^\s*(public|private|protected)\s*:", re.M)
_MEMBER_FN_RE = re.compile(
    r"^[ \t]*(?P<mods>(?:(?:virtual|static|inline|explicit|constexpr|friend)\s+)*)"
    r"(?:(?P<ret>[\w:<>,*& \t]+?)[ \t]*[*&]?[ \t]+)?(?P<name>~?\w+)\s*\((?P<params>[^)]*)\)"
    r"(?P<tail>[^;{}]*?)(?P<end>[;{])",
    re.M,
)
_FIELD_RE = re.compile(
    r"^[ \t]*(?P<mods>(?:(?:static|const|mutable|constexpr|inline|volatile)\s+)*)"
    r"(?P<type>[\w:<>,]+(?:[ \t]*[*&]+)?(?:[ \t]+[\w:<>,]+)*?)[ \t]*[*&]*[ \t]*(?P<name>\w+)\s*(?:\[[^\]]*\])?"
    r"\s*(?:=[^;]*|\{[^;]*\})?;",
    re.M,
)
_FUNCTION_RE = re.compile(
    r"^[ \t]*(?:(?:static|inline|extern|constexpr|virtual)\s+)*"
    r"(?P<ret>[\w:<>*&]+(?:[ \t]+[\w:<>*&]+)*?)[ \t]+[*&]?(?P<name>(?:\w+::)*~?\w+)\s*"
    r"\((?P<params>[^)]*)\)\s*(?:const\s*)?(?:noexcept\s*)?(?:override\s*)?\{",
    re.M,
)
_INCLUDE_RE = re.compile(r"^[ \t]*#\s*include\s*([<\"])([^>\"]+)[>\"]", re.M)
_NAMESPACE_RE = re.compile(r"^[ \t]*(?:inline\s+)?namespace\s+([\w:]+)\s*\{", re.M)

_KEYWORDS = frozenset({
    "if", "else", "for", "while", "switch", "return", "catch", "do", "new",
    "delete", "sizeof", "case", "throw", "using", "typedef", "template",
    "operator", "goto", "friend",
})


class CppExtractor(StructuralExtractor):
    """Regex rule set for C and C++."""

    languages = ("cpp", "c")

    def rules(self):
        return [
            ("class declaration", self._classes),
            ("function definition", self._functions),
            ("include directive", self._includes),
            ("namespace declaration", self._namespaces),
        ]

    def parse_param(self, token: str) -> Optional[Parameter]:
        """``const Type& name = default`` style."""
        default = None
        if "=" in token:
            token, default = (s.strip() for s in token.split("=", 1))
        token = token.strip()
        if not token or token == "void":
            return None
        m = re.match(r"^(.*?)[\s*&]*(\w+)\s*(?:\[[^\]]*\])?$", token)
        if not m or not m.group(1).strip():
            return Parameter(name="", type_hint=token, default=default)
        return Parameter(name=m.group(2), type_hint=m.group(1).strip(), default=default)

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def _classes(self, text: str, desc: StructuralDescription) -> None:
        for m in _CLASS_RE.finditer(text):
            kind, name = m.group(1), m.group(2)
            bases = []
            for spec in split_top_level(m.group(3) or ""):
                bm = _BASE_RE.match(spec.strip())
                if bm:
                    bases.append(bm.group(2).strip())
            cls = ClassInfo(
                name=name,
                line=line_number(text, m.start(2)),
                kind=kind,
                superclass=bases[0] if bases else None,
                bases=bases[1:],
            )
            open_index = m.end() - 1
            self._members(text, open_index + 1, block_body(text, open_index), cls)
            desc.classes.append(cls)

    def _members(self, text: str, body_start: int, body: str, cls: ClassInfo) -> None:
        shallow = shallow_body(body)
        default_access = "private" if cls.kind == "class" else "public"
        sections = [(a.start(), a.group(1)) for a in _ACCESS_RE.finditer(shallow)]

        def access_at(pos: int) -> str:
            current = default_access
            for start, label in sections:
                if start > pos:
                    break
                current = label
            return current

        method_lines = set()
        for m in _MEMBER_FN_RE.finditer(shallow):
            name = m.group("name")
            ret = (m.group("ret") or "").strip()
            if name in _KEYWORDS or ret in _KEYWORDS:
                continue
            offset = body_start + m.start("name")
            line = line_number(text, offset)
            params = self.parse_params(m.group("params"))
            visibility = access_at(m.start())
            is_ctor = name == cls.name
            if not ret and not is_ctor and not name.startswith("~"):
                continue   # macro invocation
            method_lines.add(line)
            if is_ctor:
                cls.constructors.append(ConstructorInfo(line=line, params=params, visibility=visibility))
                continue
            body = ""
            if m.group("end") == "{":
                body = block_body(text, body_start + m.end("end") - 1)
            mods = m.group("mods").split()
            cls.methods.append(MethodInfo(
                name=name,
                line=line,
                params=params,
                return_type=ret,
                visibility=visibility,
                is_static="static" in mods,
                is_abstract=bool(re.search(r"=\s*0\s*$", m.group("tail"))),
                complexity=complexity(body),
            ))

        for m in _FIELD_RE.finditer(shallow):
            name = m.group("name")
            line = line_number(text, body_start + m.start("name"))
            type_ = m.group("type").strip()
            if line in method_lines or type_.split()[0] in _KEYWORDS or name in _KEYWORDS:
                continue
            mods = m.group("mods").split()
            cls.properties.append(PropertyInfo(
                name=name,
                line=line,
                type_hint=type_,
                visibility=access_at(m.start()),
                is_static="static" in mods,
                is_readonly="const" in mods or "constexpr" in mods,
            ))

    # ------------------------------------------------------------------
    # Free functions
    # ------------------------------------------------------------------

    def _functions(self, text: str, desc: StructuralDescription) -> None:
        ranges = [balanced_block(text, m.end() - 1) for m in _CLASS_RE.finditer(text)]
        for m in _FUNCTION_RE.finditer(text):
            if any(start < m.start() < end for start, end in ranges):
                continue
            ret = m.group("ret").strip()
            qualified = m.group("name")
            if ret.split()[-1] in _KEYWORDS or qualified in _KEYWORDS:
                continue
            parent, _, name = qualified.rpartition("::")
            desc.functions.append(FunctionInfo(
                name=name,
                line=line_number(text, m.start("name")),
                params=self.parse_params(m.group("params")),
                return_type=ret,
                complexity=complexity(block_body(text, m.end() - 1)),
                parent_class=parent.split("::")[-1] if parent else None,
            ))

    # ------------------------------------------------------------------
    # Includes / namespaces
    # ------------------------------------------------------------------

    def _includes(self, text: str, desc: StructuralDescription) -> None:
        for m in _INCLUDE_RE.finditer(text):
            desc.includes.append(ImportInfo(
                module=m.group(2),
                line=line_number(text, m.start()),
                kind="include",
                is_system=m.group(1) == "<",
            ))

    def _namespaces(self, text: str, desc: StructuralDescription) -> None:
        for name in _NAMESPACE_RE.findall(text):
            if name not in desc.namespaces:
                desc.namespaces.append(name)
