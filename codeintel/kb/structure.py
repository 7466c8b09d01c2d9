"""
Data classes describing the structure of a single source file.

A :class:`StructuralDescription` is the "pseudo-AST" produced by the rule
extractors: ordered lists of the classes, functions, imports and exports
found in the text, each tagged with its 1-based line number, plus a few
language-specific extras.  It round-trips through plain dicts so the store
can persist it as JSON.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class Parameter:
    """A single declared parameter."""
    name: str
    type_hint: str = ""
    default: Optional[str] = None


@dataclass
class MethodInfo:
    """A method declared inside a class body."""
    name: str
    line: int
    params: list[Parameter] = field(default_factory=list)
    return_type: str = ""
    visibility: str = "public"
    is_static: bool = False
    is_async: bool = False
    is_abstract: bool = False
    complexity: int = 1
    decorators: list[str] = field(default_factory=list)


@dataclass
class PropertyInfo:
    """A field / class attribute declared inside a class body."""
    name: str
    line: int
    type_hint: str = ""
    visibility: str = "public"
    is_static: bool = False
    is_readonly: bool = False


@dataclass
class ConstructorInfo:
    """A constructor (``constructor``, ``__init__`` or a same-named C++/Java ctor)."""
    line: int
    params: list[Parameter] = field(default_factory=list)
    visibility: str = "public"


@dataclass
class ClassInfo:
    """A class, struct or similar type declaration."""
    name: str
    line: int
    kind: str = "class"
    superclass: Optional[str] = None
    bases: list[str] = field(default_factory=list)     # further bases / mixins
    interfaces: list[str] = field(default_factory=list)
    methods: list[MethodInfo] = field(default_factory=list)
    properties: list[PropertyInfo] = field(default_factory=list)
    constructors: list[ConstructorInfo] = field(default_factory=list)
    decorators: list[str] = field(default_factory=list)
    modifiers: list[str] = field(default_factory=list)
    visibility: str = "public"

    @property
    def all_bases(self) -> list[str]:
        """Superclass followed by any additional bases."""
        head = [self.superclass] if self.superclass else []
        return head + list(self.bases)


@dataclass
class FunctionInfo:
    """A free function (or a method when *parent_class* is set)."""
    name: str
    line: int
    params: list[Parameter] = field(default_factory=list)
    return_type: str = ""
    is_async: bool = False
    is_exported: bool = False
    complexity: int = 1
    decorators: list[str] = field(default_factory=list)
    parent_class: Optional[str] = None


@dataclass
class ImportInfo:
    """An import, require, include or use statement."""
    module: str
    line: int
    names: list[str] = field(default_factory=list)
    kind: str = "import"       # es6 | commonjs | python | java | include | use | import
    is_system: bool = False    # angle-bracket includes


@dataclass
class ExportInfo:
    """A named or default export."""
    name: str
    line: int
    kind: str = "named"


@dataclass
class InterfaceInfo:
    """An interface (TypeScript / Java) declaration."""
    name: str
    line: int
    extends: list[str] = field(default_factory=list)
    methods: list[str] = field(default_factory=list)


@dataclass
class StructureInfo:
    """A coarse structure found by the generic fallback extractor."""
    kind: str
    name: str
    line: int


@dataclass
class StructuralDescription:
    """Everything the rule extractors know about one file."""
    language: str
    file_path: str = ""
    classes: list[ClassInfo] = field(default_factory=list)
    functions: list[FunctionInfo] = field(default_factory=list)
    imports: list[ImportInfo] = field(default_factory=list)
    exports: list[ExportInfo] = field(default_factory=list)
    interfaces: list[InterfaceInfo] = field(default_factory=list)
    includes: list[ImportInfo] = field(default_factory=list)
    namespaces: list[str] = field(default_factory=list)
    decorators: list[str] = field(default_factory=list)
    package: Optional[str] = None
    structures: list[StructureInfo] = field(default_factory=list)
    comments: dict[str, int] = field(default_factory=dict)
    complexity: int = 1

    # ------------------------------------------------------------------
    # Convenience views
    # ------------------------------------------------------------------

    def all_methods(self) -> list[tuple[ClassInfo, MethodInfo]]:
        """(class, method) pairs for every method of every class."""
        return [(cls, m) for cls in self.classes for m in cls.methods]

    def function_names(self) -> list[str]:
        """Names of free functions followed by method names, in order."""
        names = [f.name for f in self.functions]
        names.extend(m.name for _, m in self.all_methods())
        return names

    def all_imports(self) -> list[ImportInfo]:
        """Imports followed by includes."""
        return list(self.imports) + list(self.includes)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StructuralDescription":
        """Rebuild a description from :meth:`to_dict` output."""
        def _params(items):
            return [Parameter(**p) for p in items or []]

        classes = []
        for c in data.get("classes", []):
            c = dict(c)
            c["methods"] = [
                MethodInfo(**{**m, "params": _params(m.get("params"))})
                for m in c.get("methods", [])
            ]
            c["properties"] = [PropertyInfo(**p) for p in c.get("properties", [])]
            c["constructors"] = [
                ConstructorInfo(**{**k, "params": _params(k.get("params"))})
                for k in c.get("constructors", [])
            ]
            classes.append(ClassInfo(**c))

        return cls(
            language=data.get("language", ""),
            file_path=data.get("file_path", ""),
            classes=classes,
            functions=[
                FunctionInfo(**{**f, "params": _params(f.get("params"))})
                for f in data.get("functions", [])
            ],
            imports=[ImportInfo(**i) for i in data.get("imports", [])],
            exports=[ExportInfo(**e) for e in data.get("exports", [])],
            interfaces=[InterfaceInfo(**i) for i in data.get("interfaces", [])],
            includes=[ImportInfo(**i) for i in data.get("includes", [])],
            namespaces=list(data.get("namespaces", [])),
            decorators=list(data.get("decorators", [])),
            package=data.get("package"),
            structures=[StructureInfo(**s) for s in data.get("structures", [])],
            comments=dict(data.get("comments", {})),
            complexity=data.get("complexity", 1),
        )
