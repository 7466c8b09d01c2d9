"""
Shared machinery for the rule-based structural extractors.

An extractor is an ordered list of named rules.  Each rule runs a regular
expression over the whole text and appends what it finds to a
:class:`~codeintel.kb.structure.StructuralDescription`.  The helpers here
turn match offsets into 1-based line numbers, isolate brace-balanced
bodies, and compute the per-function complexity count.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from ..structure import Parameter, StructuralDescription

logger = logging.getLogger(__name__)

Rule = Callable[[str, StructuralDescription], None]

_BRANCH_WORDS = re.compile(r"\b(?:if|else|for|while|switch|case|catch)\b")
_BRANCH_OPERATORS = ("&&", "||", "?")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def line_number(text: str, offset: int) -> int:
    """1-based line number of character *offset* in *text*."""
    return text.count("\n", 0, offset) + 1


def balanced_block(text: str, open_index: int) -> tuple[int, int]:
    """
    Return ``(open_index, close_index)`` for the brace opened at *open_index*.

    When the braces never balance the block runs to the end of *text*.
    """
    depth = 0
    for i in range(open_index, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return open_index, i
    return open_index, len(text)


def block_body(text: str, open_index: int) -> str:
    """The text strictly between the brace at *open_index* and its partner."""
    start, end = balanced_block(text, open_index)
    return text[start + 1:end]


def body_after(text: str, pos: int) -> Optional[tuple[int, str]]:
    """
    Find the body that follows a signature ending at *pos*.

    Returns ``(open_index, body)`` for the first ``{`` after *pos* provided
    no ``;`` comes first (a declaration without a body), else None.
    """
    brace = text.find("{", pos)
    if brace == -1:
        return None
    semi = text.find(";", pos, brace)
    if semi != -1:
        return None
    return brace, block_body(text, brace)


def shallow_body(body: str) -> str:
    """
    Blank out everything nested inside braces in *body*.

    Newlines and the braces themselves are kept, so offsets and line
    numbers in the result line up with *body*.  Member rules run over the
    shallow text and only see top-level declarations.
    """
    out = []
    depth = 0
    for ch in body:
        if ch == "{":
            out.append(ch if depth == 0 else " ")
            depth += 1
        elif ch == "}":
            depth = max(depth - 1, 0)
            out.append(ch if depth == 0 else " ")
        elif depth > 0 and ch != "\n":
            out.append(" ")
        else:
            out.append(ch)
    return "".join(out)


def indented_block(text: str, line_end: int, indent: int) -> tuple[int, int]:
    """
    Offsets of the indentation-delimited block that starts after *line_end*.

    The block covers every following line that is blank or indented deeper
    than *indent*.
    """
    start = text.find("\n", line_end)
    if start == -1:
        return len(text), len(text)
    pos = start + 1
    end = pos
    while pos < len(text):
        nl = text.find("\n", pos)
        line = text[pos:] if nl == -1 else text[pos:nl]
        stripped = line.strip()
        if stripped:
            if len(line) - len(line.lstrip()) <= indent:
                break
            end = pos + len(line)
        if nl == -1:
            break
        pos = nl + 1
    return start + 1, end


def complexity(body: str) -> int:
    """1 + branching keywords and operators in *body*."""
    count = len(_BRANCH_WORDS.findall(body))
    for op in _BRANCH_OPERATORS:
        count += body.count(op)
    return 1 + count


def split_top_level(raw: str, sep: str = ",") -> list[str]:
    """Split *raw* on *sep* outside of (), [], {} and <> nesting."""
    parts = []
    depth = 0
    current = []
    for ch in raw:
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth = max(depth - 1, 0)
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def preceding_decorators(text: str, offset: int) -> list[str]:
    """Names of ``@decorator`` lines directly above the line at *offset*."""
    line_start = text.rfind("\n", 0, offset) + 1
    found = []
    pos = line_start - 1
    while pos > 0:
        prev_start = text.rfind("\n", 0, pos) + 1
        line = text[prev_start:pos].strip()
        if not line.startswith("@"):
            break
        m = re.match(r"@([\w.]+)", line)
        if m:
            found.append(m.group(1))
        pos = prev_start - 1
    found.reverse()
    return found


# ---------------------------------------------------------------------------
# Extractor base class
# ---------------------------------------------------------------------------

class StructuralExtractor:
    """
    Base class for per-language rule sets.

    Subclasses implement :meth:`rules` returning ``(name, rule)`` pairs.
    Rules run in order over the full text; :meth:`finalize` runs once at
    the end for cross-rule fix-ups.
    """

    #: Language tags this extractor is registered for.
    languages: tuple[str, ...] = ()

    def rules(self) -> list[tuple[str, Rule]]:
        raise NotImplementedError

    def extract(self, text: str, language: str, file_path: str = "") -> StructuralDescription:
        desc = StructuralDescription(language=language, file_path=file_path)
        for name, rule in self.rules():
            before = _item_count(desc)
            rule(text, desc)
            logger.debug(
                "[Extract] %s rule %r produced %d item(s)",
                file_path or language, name, _item_count(desc) - before,
            )
        self.finalize(desc)
        return desc

    def finalize(self, desc: StructuralDescription) -> None:
        """Hook for fix-ups that need the output of several rules."""

    # ------------------------------------------------------------------
    # Parameter parsing (overridden per language where the syntax differs)
    # ------------------------------------------------------------------

    def parse_params(self, raw: str) -> list[Parameter]:
        params = []
        for token in split_top_level(raw.replace("\n", " ")):
            param = self.parse_param(token)
            if param is not None:
                params.append(param)
        return params

    def parse_param(self, token: str) -> Optional[Parameter]:
        """``name: type = default`` style (JavaScript, TypeScript, Python)."""
        default = None
        if "=" in token:
            token, default = (s.strip() for s in token.split("=", 1))
        type_hint = ""
        if ":" in token:
            token, type_hint = (s.strip() for s in token.split(":", 1))
        name = token.strip().lstrip("*.").rstrip("?")
        if not name:
            return None
        return Parameter(name=name, type_hint=type_hint, default=default)


def _item_count(desc: StructuralDescription) -> int:
    return (
        len(desc.classes) + len(desc.functions) + len(desc.imports)
        + len(desc.exports) + len(desc.interfaces) + len(desc.includes)
        + len(desc.structures) + len(desc.namespaces)
    )
