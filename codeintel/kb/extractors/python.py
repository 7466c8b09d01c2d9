"""
Rule set for Python.

Class and method bodies are delimited by indentation rather than braces.
"""

from __future__ import annotations

import re

from ..structure import (
    ClassInfo, ConstructorInfo, ExportInfo, FunctionInfo, ImportInfo,
    InterfaceInfo, MethodInfo, PropertyInfo, StructuralDescription,
)
from .base import (
    StructuralExtractor, complexity, indented_block, line_number,
    preceding_decorators, split_top_level,
)

_CLASS_RE = re.compile(r"^([ \t]*)class\s+(\w+)\s*(?:\(([^)]*)\))?\s*:", re.M)
_DEF_RE = re.compile(r"^([ \t]*)(async\s+)?def\s+(\w+)\s*\(", re.M)
_IMPORT_RE = re.compile(r"^[ \t]*import\s+([\w.]+(?:\s+as\s+\w+)?(?:[ \t]*,[ \t]*[\w.]+(?:\s+as\s+\w+)?)*)", re.M)
_FROM_IMPORT_RE = re.compile(r"^[ \t]*from\s+(\.*[\w.]*)\s+import\s+(\([^)]*\)|[^\n#]+)", re.M)
_DECORATOR_RE = re.compile(r"^[ \t]*@([\w.]+)", re.M)
_ALL_RE = re.compile(r"^__all__\s*(?::[^=]+)?=\s*[\[(]([^\])]*)[\])]", re.M)
_ATTR_RE = re.compile(
    r"^([ \t]*)([A-Za-z_]\w*)(?:[ \t]*:[ \t]*([^=\n]+?)[ \t]*(?:=(?!=)|$)|[ \t]*=(?!=))", re.M,
)
_SELF_ATTR_RE = re.compile(r"\bself\.([A-Za-z_]\w*)\s*(?::[^=\n]+)?=(?!=)")

# Bases that mark a class as an interface-like abstraction.
_INTERFACE_BASES = frozenset({"ABC", "abc.ABC", "Protocol", "typing.Protocol", "Interface"})


def _indent(ws: str) -> int:
    return len(ws.expandtabs(4))


def _close_paren(text: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return len(text)


def _visibility(name: str) -> str:
    if name.startswith("_") and not (name.startswith("__") and name.endswith("__")):
        return "private"
    return "public"


class PythonExtractor(StructuralExtractor):
    """Regex + indentation rule set for Python."""

    languages = ("python",)

    def rules(self):
        return [
            ("class declaration", self._classes),
            ("function declaration", self._functions),
            ("import statement", self._imports),
            ("from-import statement", self._from_imports),
            ("decorator", self._decorators),
            ("__all__ export list", self._exports),
        ]

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def _signature(self, text: str, m: re.Match):
        """Return ``(params, return_type, colon_index)`` for a ``def`` match."""
        open_index = m.end() - 1
        close = _close_paren(text, open_index)
        raw = text[open_index + 1:close]
        rest = re.match(r"\s*(?:->\s*([^:]+?))?\s*:", text[close + 1:])
        return_type = rest.group(1).strip() if rest and rest.group(1) else ""
        colon = close + 1 + (rest.end() if rest else 0)
        params = [p for p in self.parse_params(raw) if p.name not in ("self", "cls", "/", "")]
        return params, return_type, colon

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def _classes(self, text: str, desc: StructuralDescription) -> None:
        for m in _CLASS_RE.finditer(text):
            indent = _indent(m.group(1))
            bases = [
                b for b in split_top_level(m.group(3) or "")
                if "=" not in b and b != "object"
            ]
            cls = ClassInfo(
                name=m.group(2),
                line=line_number(text, m.start(2)),
                superclass=bases[0] if bases else None,
                bases=bases[1:],
                decorators=preceding_decorators(text, m.start()),
            )
            start, end = indented_block(text, m.end(), indent)
            self._members(text, start, end, cls)
            desc.classes.append(cls)
            if any(b in _INTERFACE_BASES for b in bases):
                desc.interfaces.append(InterfaceInfo(
                    name=cls.name,
                    line=cls.line,
                    extends=[b for b in bases if b not in _INTERFACE_BASES],
                    methods=[meth.name for meth in cls.methods],
                ))

    def _body_indent(self, text: str, start: int, end: int):
        for line in text[start:end].splitlines():
            if line.strip():
                return _indent(line[: len(line) - len(line.lstrip())])
        return None

    def _members(self, text: str, start: int, end: int, cls: ClassInfo) -> None:
        body_indent = self._body_indent(text, start, end)
        if body_indent is None:
            return
        method_ranges = []
        for m in _DEF_RE.finditer(text, start, end):
            if _indent(m.group(1)) != body_indent:
                continue
            name = m.group(3)
            params, return_type, colon = self._signature(text, m)
            b_start, b_end = indented_block(text, colon, body_indent)
            method_ranges.append((m.start(), b_end))
            line = line_number(text, m.start(3))
            decorators = preceding_decorators(text, m.start())
            if name == "__init__":
                cls.constructors.append(ConstructorInfo(line=line, params=params))
                self._instance_attributes(text, b_start, b_end, cls)
                continue
            cls.methods.append(MethodInfo(
                name=name,
                line=line,
                params=params,
                return_type=return_type,
                visibility=_visibility(name),
                is_static=bool({"staticmethod", "classmethod"} & set(decorators)),
                is_async=bool(m.group(2)),
                is_abstract="abstractmethod" in decorators or "abc.abstractmethod" in decorators,
                complexity=complexity(text[b_start:b_end]),
                decorators=decorators,
            ))

        for m in _ATTR_RE.finditer(text, start, end):
            if _indent(m.group(1)) != body_indent:
                continue
            if any(s <= m.start() < e for s, e in method_ranges):
                continue
            name = m.group(2)
            if name in ("pass", "return", "def", "class", "async"):
                continue
            cls.properties.append(PropertyInfo(
                name=name,
                line=line_number(text, m.start(2)),
                type_hint=(m.group(3) or "").strip(),
                visibility=_visibility(name),
                is_static=True,
            ))

    def _instance_attributes(self, text: str, start: int, end: int, cls: ClassInfo) -> None:
        seen = {p.name for p in cls.properties}
        for m in _SELF_ATTR_RE.finditer(text, start, end):
            name = m.group(1)
            if name in seen:
                continue
            seen.add(name)
            cls.properties.append(PropertyInfo(
                name=name,
                line=line_number(text, m.start(1)),
                visibility=_visibility(name),
            ))

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _functions(self, text: str, desc: StructuralDescription) -> None:
        method_lines = {meth.line for _, meth in desc.all_methods()}
        method_lines.update(k.line for cls in desc.classes for k in cls.constructors)
        for m in _DEF_RE.finditer(text):
            line = line_number(text, m.start(3))
            if line in method_lines:
                continue
            params, return_type, colon = self._signature(text, m)
            b_start, b_end = indented_block(text, colon, _indent(m.group(1)))
            desc.functions.append(FunctionInfo(
                name=m.group(3),
                line=line,
                params=params,
                return_type=return_type,
                is_async=bool(m.group(2)),
                complexity=complexity(text[b_start:b_end]),
                decorators=preceding_decorators(text, m.start()),
            ))

    # ------------------------------------------------------------------
    # Imports / decorators / exports
    # ------------------------------------------------------------------

    def _imports(self, text: str, desc: StructuralDescription) -> None:
        for m in _IMPORT_RE.finditer(text):
            line = line_number(text, m.start())
            for item in m.group(1).split(","):
                parts = item.split()
                if not parts:
                    continue
                module = parts[0]
                alias = parts[2] if len(parts) == 3 else module.split(".")[-1]
                desc.imports.append(ImportInfo(
                    module=module, line=line, names=[alias], kind="python",
                ))

    def _from_imports(self, text: str, desc: StructuralDescription) -> None:
        for m in _FROM_IMPORT_RE.finditer(text):
            raw = m.group(2).strip().strip("()").replace("\\", " ")
            names = [n.split()[0] for n in split_top_level(raw.replace("\n", " ")) if n.split()]
            desc.imports.append(ImportInfo(
                module=m.group(1),
                line=line_number(text, m.start()),
                names=names,
                kind="python",
            ))

    def _decorators(self, text: str, desc: StructuralDescription) -> None:
        for name in _DECORATOR_RE.findall(text):
            if name not in desc.decorators:
                desc.decorators.append(name)

    def _exports(self, text: str, desc: StructuralDescription) -> None:
        for m in _ALL_RE.finditer(text):
            for name in re.findall(r"['\"](\w+)['\"]", m.group(1)):
                desc.exports.append(ExportInfo(name, line_number(text, m.start())))

    def finalize(self, desc: StructuralDescription) -> None:
        # A base that is a local ABC/Protocol is an implemented interface.
        interfaces = {i.name for i in desc.interfaces}
        for cls in desc.classes:
            implemented = [b for b in cls.all_bases if b in interfaces]
            if not implemented:
                continue
            rest = [b for b in cls.all_bases if b not in interfaces]
            cls.interfaces = implemented
            cls.superclass = rest[0] if rest else None
            cls.bases = rest[1:]
        exported = {e.name for e in desc.exports}
        for fn in desc.functions:
            if fn.name in exported:
                fn.is_exported = True
