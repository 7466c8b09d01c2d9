"""
Rule set for JavaScript and TypeScript.

Classes (with ``extends`` / ``implements``, methods, fields and
constructors), function declarations and arrow functions, TypeScript
interfaces, ES6 and CommonJS imports, and named / default exports.
"""

from __future__ import annotations

import re

from ..structure import (
    ClassInfo, ConstructorInfo, ExportInfo, FunctionInfo, ImportInfo,
    InterfaceInfo, MethodInfo, PropertyInfo, StructuralDescription,
)
from .base import (
    StructuralExtractor, balanced_block, block_body, body_after, complexity, line_number,
    preceding_decorators, shallow_body, split_top_level,
)

_CLASS_RE = re.compile(
    r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:declare\s+)?(abstract\s+)?class\s+([A-Za-z_$][\w$]*)"
    r"(?:\s*<[^>{]*>)?"
    r"(?:\s+extends\s+([\w$.]+)(?:\s*<[^>{]*>)?)?"
    r"(?:\s+implements\s+([^{]+?))?\s*\{",
    re.M,
)

_METHOD_RE = re.compile(
    r"^[ \t]*(?:(public|private|protected)\s+)?"
    r"((?:(?:static|async|abstract|override|get|set)\s+)*)"
    r"\*?(#?[A-Za-z_$][\w$]*)\s*(?:<[^>(]*>)?\s*\(([^)]*)\)"
    r"\s*(?::\s*([^{;]+?))?\s*([{;])",
    re.M,
)

_FIELD_RE = re.compile(
    r"^[ \t]*(?:(public|private|protected)\s+)?"
    r"((?:(?:static|readonly|declare|override)\s+)*)"
    r"(#?[A-Za-z_$][\w$]*)[?!]?[ \t]*"
    r"(?::[ \t]*([^=;\n]+?))?[ \t]*(=[^;\n]*)?(;)?[ \t]*$",
    re.M,
)

_FUNCTION_RE = re.compile(
    r"^[ \t]*(export\s+)?(?:default\s+)?(async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)"
    r"\s*(?:<[^>(]*>)?\s*\(([^)]*)\)\s*(?::\s*([^{]+?))?\s*\{",
    re.M,
)

_ARROW_RE = re.compile(
    r"^[ \t]*(export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*(?::[^=]+)?=\s*(async\s+)?"
    r"(?:function\s*\*?\s*[\w$]*\s*\(([^)]*)\)|\(([^)]*)\)|([A-Za-z_$][\w$]*))"
    r"\s*(?::\s*([^=>{]+?))?\s*(=>|\{)",
    re.M,
)

_INTERFACE_RE = re.compile(
    r"^[ \t]*(?:export\s+)?(?:declare\s+)?interface\s+([A-Za-z_$][\w$]*)"
    r"(?:\s*<[^>{]*>)?(?:\s+extends\s+([^{]+?))?\s*\{",
    re.M,
)

_INTERFACE_MEMBER_RE = re.compile(r"^[ \t]*([A-Za-z_$][\w$]*)\??\s*(?:<[^>(]*>)?\s*\(", re.M)

_ES6_IMPORT_RE = re.compile(
    r"^[ \t]*import\s+(?:type\s+)?"
    r"(?:([A-Za-z_$][\w$]*)\s*,?\s*)?"
    r"(?:\{([^}]*)\}|\*\s+as\s+([A-Za-z_$][\w$]*))?"
    r"\s*(?:from\s+)?['\"]([^'\"]+)['\"]",
    re.M,
)

_REQUIRE_RE = re.compile(
    r"(?:const|let|var)\s+(?:([A-Za-z_$][\w$]*)|\{([^}]*)\})\s*=\s*"
    r"require\(\s*['\"]([^'\"]+)['\"]\s*\)",
)

_EXPORT_DECL_RE = re.compile(
    r"^[ \t]*export\s+(?:declare\s+)?(?:async\s+)?"
    r"(?:const|let|var|function\*?|class|interface|type|enum|abstract\s+class)\s+([A-Za-z_$][\w$]*)",
    re.M,
)
_EXPORT_LIST_RE = re.compile(r"^[ \t]*export\s*\{([^}]*)\}", re.M)
_EXPORT_DEFAULT_RE = re.compile(
    r"^[ \t]*export\s+default\s+(?:async\s+)?(?:(?:function\*?|class)\s+)?([A-Za-z_$][\w$]*)?",
    re.M,
)
_MODULE_EXPORTS_RE = re.compile(r"\bmodule\.exports\s*=\s*([A-Za-z_$][\w$]*)?")
_EXPORTS_PROP_RE = re.compile(r"\b(?:module\.)?exports\.([A-Za-z_$][\w$]*)\s*=")

_NOT_A_METHOD = frozenset({
    "if", "for", "while", "switch", "catch", "function", "return", "with",
})
_NOT_A_FIELD = frozenset({"return", "break", "continue", "throw", "else", "case", "default"})


def _names(raw: str) -> list[str]:
    """Binding names from ``a, b as c, type D`` style lists (original names)."""
    names = []
    for item in split_top_level(raw):
        item = re.sub(r"^type\s+", "", item)
        name = re.split(r"\s+as\s+|\s*:\s*", item)[0].strip()
        if name:
            names.append(name)
    return names


def _class_ranges(text: str) -> list[tuple[int, int]]:
    return [balanced_block(text, m.end() - 1) for m in _CLASS_RE.finditer(text)]


def _inside(pos: int, ranges: list[tuple[int, int]]) -> bool:
    return any(start < pos < end for start, end in ranges)


class JavaScriptExtractor(StructuralExtractor):
    """Regex rule set shared by JavaScript and TypeScript."""

    languages = ("javascript", "typescript")

    def rules(self):
        return [
            ("class declaration", self._classes),
            ("function declaration", self._functions),
            ("arrow function", self._arrow_functions),
            ("interface declaration", self._interfaces),
            ("import statement", self._imports),
            ("require call", self._requires),
            ("export statement", self._exports),
        ]

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def _classes(self, text: str, desc: StructuralDescription) -> None:
        for m in _CLASS_RE.finditer(text):
            interfaces = [
                re.sub(r"<.*", "", i).strip()
                for i in split_top_level(m.group(4) or "")
            ]
            cls = ClassInfo(
                name=m.group(2),
                line=line_number(text, m.start(2)),
                superclass=m.group(3),
                interfaces=[i for i in interfaces if i],
                decorators=preceding_decorators(text, m.start()),
                modifiers=["abstract"] if m.group(1) else [],
            )
            open_index = m.end() - 1
            body_start = open_index + 1
            body = block_body(text, open_index)
            self._members(text, body_start, shallow_body(body), cls)
            desc.classes.append(cls)

    def _members(self, text: str, body_start: int, shallow: str, cls: ClassInfo) -> None:
        method_lines = set()
        for m in _METHOD_RE.finditer(shallow):
            name = m.group(3)
            if name in _NOT_A_METHOD:
                continue
            offset = body_start + m.start(3)
            line = line_number(text, offset)
            method_lines.add(line)
            visibility = m.group(1) or ("private" if name.startswith("#") else "public")
            params = self.parse_params(m.group(4))
            if name == "constructor":
                cls.constructors.append(
                    ConstructorInfo(line=line, params=params, visibility=visibility)
                )
                continue
            modifiers = m.group(2).split()
            body = ""
            if m.group(6) == "{":
                body = block_body(text, body_start + m.end(6) - 1)
            cls.methods.append(MethodInfo(
                name=name.lstrip("#"),
                line=line,
                params=params,
                return_type=(m.group(5) or "").strip(),
                visibility=visibility,
                is_static="static" in modifiers,
                is_async="async" in modifiers,
                is_abstract="abstract" in modifiers or m.group(6) == ";",
                complexity=complexity(body),
                decorators=preceding_decorators(text, offset),
            ))

        for m in _FIELD_RE.finditer(shallow):
            name = m.group(3)
            line = line_number(text, body_start + m.start(3))
            if line in method_lines or name in _NOT_A_FIELD:
                continue
            # A bare identifier line is only a field when typed, assigned or terminated.
            if not (m.group(4) or m.group(5) or m.group(6)):
                continue
            modifiers = m.group(2).split()
            private = name.startswith("#") or name.startswith("_")
            cls.properties.append(PropertyInfo(
                name=name.lstrip("#"),
                line=line,
                type_hint=(m.group(4) or "").strip(),
                visibility=m.group(1) or ("private" if private else "public"),
                is_static="static" in modifiers,
                is_readonly="readonly" in modifiers,
            ))

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _functions(self, text: str, desc: StructuralDescription) -> None:
        ranges = _class_ranges(text)
        for m in _FUNCTION_RE.finditer(text):
            if _inside(m.start(), ranges):
                continue
            desc.functions.append(FunctionInfo(
                name=m.group(3),
                line=line_number(text, m.start(3)),
                params=self.parse_params(m.group(4)),
                return_type=(m.group(5) or "").strip(),
                is_async=bool(m.group(2)),
                is_exported=bool(m.group(1)),
                complexity=complexity(block_body(text, m.end() - 1)),
            ))

    def _arrow_functions(self, text: str, desc: StructuralDescription) -> None:
        ranges = _class_ranges(text)
        for m in _ARROW_RE.finditer(text):
            if _inside(m.start(), ranges):
                continue
            raw_params = m.group(4) or m.group(5) or m.group(6) or ""
            if m.group(8) == "{" and m.group(4) is None:
                continue   # object literal, not a function
            found = body_after(text, m.end() - 1 if m.group(8) == "{" else m.end())
            if found is not None and text[m.end():found[0]].strip() == "":
                body = found[1]
            else:
                line_end = text.find("\n", m.end())
                body = text[m.end():] if line_end == -1 else text[m.end():line_end]
            desc.functions.append(FunctionInfo(
                name=m.group(2),
                line=line_number(text, m.start(2)),
                params=self.parse_params(raw_params),
                return_type=(m.group(7) or "").strip(),
                is_async=bool(m.group(3)),
                is_exported=bool(m.group(1)),
                complexity=complexity(body),
            ))

    # ------------------------------------------------------------------
    # Interfaces
    # ------------------------------------------------------------------

    def _interfaces(self, text: str, desc: StructuralDescription) -> None:
        for m in _INTERFACE_RE.finditer(text):
            body = shallow_body(block_body(text, m.end() - 1))
            desc.interfaces.append(InterfaceInfo(
                name=m.group(1),
                line=line_number(text, m.start(1)),
                extends=[re.sub(r"<.*", "", e).strip() for e in split_top_level(m.group(2) or "")],
                methods=_INTERFACE_MEMBER_RE.findall(body),
            ))

    # ------------------------------------------------------------------
    # Imports / exports
    # ------------------------------------------------------------------

    def _imports(self, text: str, desc: StructuralDescription) -> None:
        for m in _ES6_IMPORT_RE.finditer(text):
            names = []
            if m.group(1):
                names.append(m.group(1))
            if m.group(2):
                names.extend(_names(m.group(2)))
            if m.group(3):
                names.append(m.group(3))
            desc.imports.append(ImportInfo(
                module=m.group(4),
                line=line_number(text, m.start()),
                names=names,
                kind="es6",
            ))

    def _requires(self, text: str, desc: StructuralDescription) -> None:
        for m in _REQUIRE_RE.finditer(text):
            names = [m.group(1)] if m.group(1) else _names(m.group(2) or "")
            desc.imports.append(ImportInfo(
                module=m.group(3),
                line=line_number(text, m.start()),
                names=names,
                kind="commonjs",
            ))

    def _exports(self, text: str, desc: StructuralDescription) -> None:
        found = []
        for m in _EXPORT_DECL_RE.finditer(text):
            found.append((m.start(), ExportInfo(m.group(1), line_number(text, m.start()))))
        for m in _EXPORT_LIST_RE.finditer(text):
            for name in _names(m.group(1)):
                found.append((m.start(), ExportInfo(name, line_number(text, m.start()))))
        for m in _EXPORT_DEFAULT_RE.finditer(text):
            found.append((m.start(), ExportInfo(
                m.group(1) or "default", line_number(text, m.start()), kind="default",
            )))
        for m in _MODULE_EXPORTS_RE.finditer(text):
            found.append((m.start(), ExportInfo(
                m.group(1) or "module.exports", line_number(text, m.start()), kind="default",
            )))
        for m in _EXPORTS_PROP_RE.finditer(text):
            found.append((m.start(), ExportInfo(m.group(1), line_number(text, m.start()))))
        found.sort(key=lambda pair: pair[0])
        desc.exports.extend(export for _, export in found)

    def finalize(self, desc: StructuralDescription) -> None:
        exported = {e.name for e in desc.exports}
        for fn in desc.functions:
            if fn.name in exported:
                fn.is_exported = True
