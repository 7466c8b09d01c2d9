"""
Unit tests for codeintel.kb.metadata
"""

from __future__ import annotations

import textwrap

from codeintel.kb.extractors import extract_structure
from codeintel.kb.metadata import (
    api_calls, async_patterns, code_metrics, enhanced_metadata, error_handling,
    file_complexity, identify_code_patterns, security_hints,
)

JS_SRC = textwrap.dedent("""\
    import axios from 'axios';

    class Api extends Base {
      constructor() {
        super();
      }

      async load(id) {
        try {
          const res = await axios.get('/items/' + id);
          return res.data;
        } catch (err) {
          console.error(err);
          throw new TypeError('bad');
        }
      }
    }
""")


class TestTextualSignals:

    def test_file_complexity(self):
        assert file_complexity("") == 1
        assert file_complexity("if (a || b) { } else { }") == 4

    def test_error_handling(self):
        info = error_handling(JS_SRC)
        assert info["try_blocks"] == 1
        assert info["catch_blocks"] == 1
        assert info["throw_statements"] == 1
        assert info["console_errors"] == 1
        assert info["error_types"] == ["TypeError"]
        assert info["has_error_handling"]

    def test_python_error_handling(self):
        src = "try:\n    x()\nexcept ValueError:\n    raise KeyError('k')\n"
        info = error_handling(src)
        assert info["has_error_handling"]
        assert info["error_types"] == ["KeyError", "ValueError"]

    def test_async_patterns(self):
        info = async_patterns(JS_SRC)
        assert info["await_calls"] == 1
        assert info["has_async_await"]
        assert async_patterns("x = 1")["has_async_await"] is False

    def test_api_calls(self):
        calls = api_calls("axios.get(u); fetch(u); requests.post(u)")
        types = [c["type"] for c in calls]
        assert "axios" in types
        assert "fetch" in types
        assert "requests" in types

    def test_code_pattern_tags(self):
        assert identify_code_patterns(JS_SRC) == ["inheritance", "async"]
        assert "singleton" in identify_code_patterns("Foo.getInstance()")
        assert "event-driven" in identify_code_patterns("el.addEventListener('x', f)")
        assert identify_code_patterns("") == []

    def test_security_hints(self):
        hints = security_hints("el.innerHTML = eval(userInput)")
        assert hints["vulnerabilities"] == ["eval-usage", "xss-risk"]
        assert security_hints("validateToken(t)")["has_authentication"]


class TestEnhancedMetadata:

    def test_with_structure(self):
        desc = extract_structure(JS_SRC, "javascript", "api.js")
        meta = enhanced_metadata("api.js", JS_SRC, "javascript", desc)
        assert meta["path"] == "api.js"
        assert meta["language"] == "javascript"
        assert meta["lines"] == JS_SRC.count("\n") + 1
        assert meta["size"] == len(JS_SRC)
        assert meta["functions"] == ["load"]
        assert meta["classes"] == [{"name": "Api", "extends": "Base", "line": 3}]
        assert meta["imports"] == [{"type": "es6", "items": ["axios"], "from": "axios"}]
        assert "inheritance" in meta["patterns"]

    def test_without_structure(self):
        meta = enhanced_metadata("x.js", "let a = 1;", "javascript", None)
        assert meta["functions"] == []
        assert meta["classes"] == []
        assert meta["complexity"] == 1
        assert meta["error_handling"]["has_error_handling"] is False


class TestCodeMetrics:

    def test_metrics_for_class(self):
        desc = extract_structure(JS_SRC, "javascript", "api.js")
        metrics = code_metrics(desc, JS_SRC)
        load = desc.classes[0].methods[0]
        assert metrics["cyclomatic_complexity"] == 1 + load.complexity
        assert metrics["coupling"] == 1
        assert metrics["inheritance"] == {
            "depth_of_inheritance": 1,
            "number_of_children": 0,
            "class_hierarchies": 1,
        }
        assert 0.0 <= metrics["maintainability_index"] <= 100.0
        assert metrics["technical_debt"] == 0.0

    def test_debt_without_error_handling(self):
        desc = extract_structure("function f() { return 1; }\n", "javascript")
        metrics = code_metrics(desc, "function f() { return 1; }\n")
        assert metrics["cyclomatic_complexity"] == 2
        assert metrics["technical_debt"] == 5.0
        assert metrics["cohesion"] == 0.0

    def test_generic_falls_back_to_file_complexity(self):
        src = "x\nif a then\nwhile b do\n"
        desc = extract_structure(src, "lua")
        assert desc.functions == [] and desc.classes == []
        assert code_metrics(desc, src)["cyclomatic_complexity"] == 3
