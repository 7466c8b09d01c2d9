"""
Per-file metadata and code metrics.

:func:`enhanced_metadata` summarises a file for similarity boosts and for
the pattern-frequency table: function / class / import / export
summaries, error-handling and async counts, API-call sites, textual
code-pattern tags and a few security hints.  :func:`code_metrics`
computes complexity, cohesion, coupling, inheritance, maintainability and
a technical-debt estimate from the structural description.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

from .structure import StructuralDescription

_FILE_BRANCH_RE = re.compile(r"\b(?:if|else|for|while|switch|case|catch)\b")
_HTTP_METHOD_RE = re.compile(r"\.(get|post|put|delete|patch)\s*\(")
_AXIOS_RE = re.compile(r"\baxios\.(get|post|put|delete|patch)\s*\(")
_FETCH_RE = re.compile(r"\bfetch\s*\(")
_REQUESTS_RE = re.compile(r"\brequests\.(get|post|put|delete|patch)\s*\(")
_ERROR_TYPE_RES = (
    re.compile(r"\bnew\s+(\w*(?:Error|Exception))\s*\("),
    re.compile(r"\braise\s+(\w*(?:Error|Exception))\b"),
    re.compile(r"\bexcept\s+(\w*(?:Error|Exception))\b"),
    re.compile(r"\bcatch\s*\(\s*(\w*(?:Error|Exception))\b"),
)


def file_complexity(content: str) -> int:
    """1 + branching keywords and ``&&`` / ``||`` / ``?`` over the whole file."""
    count = len(_FILE_BRANCH_RE.findall(content))
    count += content.count("&&") + content.count("||") + content.count("?")
    return 1 + count


def error_handling(content: str) -> dict[str, Any]:
    error_types: list[str] = []
    for regex in _ERROR_TYPE_RES:
        for name in regex.findall(content):
            if name not in error_types:
                error_types.append(name)
    try_blocks = len(re.findall(r"\btry\s*[{:]", content))
    catch_blocks = len(re.findall(r"\bcatch\s*\(", content)) + len(re.findall(r"\bexcept\b", content))
    return {
        "try_blocks": try_blocks,
        "catch_blocks": catch_blocks,
        "throw_statements": len(re.findall(r"\b(?:throw|raise)\s+", content)),
        "console_errors": content.count("console.error"),
        "console_warns": content.count("console.warn"),
        "error_types": error_types,
        "has_error_handling": try_blocks > 0 and catch_blocks > 0,
    }


def async_patterns(content: str) -> dict[str, Any]:
    return {
        "async_functions": len(re.findall(r"\basync\s+(?:function|def)\b", content)),
        "await_calls": len(re.findall(r"\bawait\s+", content)),
        "promises": len(re.findall(r"\bnew\s+Promise\b", content)),
        "promise_chains": len(re.findall(r"\.then\s*\(", content)),
        "has_async_await": "async" in content and "await" in content,
    }


def api_calls(content: str) -> list[dict[str, str]]:
    calls = []
    for method in _HTTP_METHOD_RE.findall(content):
        calls.append({"type": "http", "method": method})
    for method in _AXIOS_RE.findall(content):
        calls.append({"type": "axios", "method": method})
    for method in _REQUESTS_RE.findall(content):
        calls.append({"type": "requests", "method": method})
    for _ in _FETCH_RE.findall(content):
        calls.append({"type": "fetch"})
    return calls


def identify_code_patterns(content: str) -> list[str]:
    """Coarse textual tags (``inheritance``, ``async``, ``event-driven``, ...)."""
    tags = []
    if ("constructor" in content or "__init__" in content) and (
        "extends" in content or re.search(r"^\s*class\s+\w+\s*\(\s*\w", content, re.M)
    ):
        tags.append("inheritance")
    if "Promise" in content or "async" in content or "await" in content:
        tags.append("async")
    if "addEventListener" in content or "on(" in content or ".emit(" in content:
        tags.append("event-driven")
    if "factory" in content or "Factory" in content:
        tags.append("factory")
    if "Singleton" in content or "getInstance" in content:
        tags.append("singleton")
    return tags


def security_hints(content: str) -> dict[str, Any]:
    lowered = content.lower()
    vulnerabilities = []
    if "eval(" in content:
        vulnerabilities.append("eval-usage")
    if "innerHTML" in content and "sanitize" not in lowered:
        vulnerabilities.append("xss-risk")
    if "SQL" in content and "+" in content:
        vulnerabilities.append("sql-injection-risk")
    return {
        "has_validation": any(k in lowered for k in ("validate", "isvalid", "check")),
        "has_sanitization": any(k in lowered for k in ("sanitize", "escape", "clean")),
        "has_authentication": any(k in lowered for k in ("auth", "login", "token")),
        "has_authorization": any(k in lowered for k in ("permission", "role", "access")),
        "has_encryption": any(k in lowered for k in ("encrypt", "hash", "crypto")),
        "vulnerabilities": vulnerabilities,
    }


def enhanced_metadata(
    path: str,
    content: str,
    language: str,
    desc: Optional[StructuralDescription] = None,
) -> dict[str, Any]:
    """
    Summarise *content* for storage alongside its embedding.

    When *desc* is None (extraction failed) the structural summaries are
    empty but the textual counts are still filled in.
    """
    meta: dict[str, Any] = {
        "path": path,
        "size": len(content.encode("utf-8", errors="replace")),
        "lines": content.count("\n") + 1 if content else 0,
        "language": language,
        "functions": [],
        "classes": [],
        "imports": [],
        "exports": [],
        "error_handling": error_handling(content),
        "async": async_patterns(content),
        "complexity": file_complexity(content),
        "api_calls": api_calls(content),
        "patterns": identify_code_patterns(content),
        "security": security_hints(content),
    }
    if desc is not None:
        meta["functions"] = desc.function_names()
        meta["classes"] = [
            {"name": c.name, "extends": c.superclass, "line": c.line}
            for c in desc.classes
        ]
        meta["imports"] = [
            {"type": i.kind, "items": list(i.names), "from": i.module}
            for i in desc.all_imports()
        ]
        meta["exports"] = [e.name for e in desc.exports]
    return meta


# ---------------------------------------------------------------------------
# Code metrics
# ---------------------------------------------------------------------------

def code_metrics(desc: StructuralDescription, content: str) -> dict[str, Any]:
    """Complexity, cohesion, coupling and maintainability figures for one file."""
    cyclomatic = 1
    cyclomatic += sum(f.complexity for f in desc.functions)
    cyclomatic += sum(m.complexity for _, m in desc.all_methods())
    if not desc.functions and not desc.classes:
        cyclomatic = max(cyclomatic, desc.complexity)

    cohesion = 0.0
    if desc.classes:
        total = 0.0
        for cls in desc.classes:
            if cls.methods:
                total += len(cls.properties) / len(cls.methods)
        cohesion = total / len(desc.classes)

    loc = content.count("\n") + 1 if content else 0
    maintainability = (
        171
        - 5.2 * math.log(max(cyclomatic, 1))
        - 0.23 * cyclomatic
        - 16.2 * math.log(max(loc, 1))
    ) * 100 / 171
    maintainability = min(100.0, max(0.0, maintainability))

    handling = error_handling(content)
    debt = 0.0
    if cyclomatic > 10:
        debt += cyclomatic * 0.5
    if not handling["has_error_handling"]:
        debt += 5
    for complexity in [f.complexity for f in desc.functions] + [m.complexity for _, m in desc.all_methods()]:
        if complexity > 8:
            debt += complexity * 0.3

    return {
        "cyclomatic_complexity": cyclomatic,
        "cohesion": round(cohesion, 3),
        "coupling": len(desc.all_imports()),
        "inheritance": {
            "depth_of_inheritance": sum(1 for c in desc.classes if c.superclass),
            "number_of_children": sum(len(c.interfaces) for c in desc.classes),
            "class_hierarchies": len(desc.classes),
        },
        "maintainability_index": round(maintainability, 1),
        "technical_debt": round(debt, 1),
    }
