"""
Unit tests for the JavaScript / TypeScript rule set in
codeintel.kb.extractors.javascript
"""

from __future__ import annotations

import textwrap

import pytest

from codeintel.kb.extractors import extract_structure


@pytest.fixture()
def js_desc():
    src = textwrap.dedent("""\
        import { EventEmitter } from 'events';
        import Base from './base';
        const path = require('path');

        export class UserService extends Base {
          constructor(repo) {
            super();
            this.repo = repo;
          }

          async getUser(id) {
            if (!id) {
              return null;
            }
            return this.repo.find(id);
          }

          static create() {
            return new UserService(null);
          }
        }

        export function helper(a, b = 2) {
          return a && b;
        }

        const add = (x, y) => x + y;
    """)
    return extract_structure(src, "javascript", "src/user.js")


@pytest.fixture()
def ts_desc():
    src = textwrap.dedent("""\
        export interface Shape {
          area(): number;
          name?: string;
        }

        export class Circle implements Shape {
          private radius: number;
          static count = 0;

          constructor(radius: number) {
            this.radius = radius;
          }

          area(): number {
            return Math.PI * this.radius ** 2;
          }
        }
    """)
    return extract_structure(src, "typescript", "src/circle.ts")


class TestJavaScriptClasses:

    def test_class_with_superclass(self, js_desc):
        assert [c.name for c in js_desc.classes] == ["UserService"]
        cls = js_desc.classes[0]
        assert cls.superclass == "Base"
        assert cls.line == 5

    def test_constructor_is_not_a_method(self, js_desc):
        cls = js_desc.classes[0]
        assert len(cls.constructors) == 1
        assert [p.name for p in cls.constructors[0].params] == ["repo"]
        assert "constructor" not in [m.name for m in cls.methods]

    def test_methods(self, js_desc):
        methods = {m.name: m for m in js_desc.classes[0].methods}
        assert set(methods) == {"getUser", "create"}
        assert methods["getUser"].is_async
        assert methods["getUser"].complexity == 2
        assert methods["create"].is_static
        assert methods["create"].complexity == 1

    def test_nested_statements_are_not_members(self, js_desc):
        cls = js_desc.classes[0]
        names = [m.name for m in cls.methods] + [p.name for p in cls.properties]
        assert "super" not in names
        assert "find" not in names


class TestJavaScriptFunctions:

    def test_function_declaration(self, js_desc):
        fns = {f.name: f for f in js_desc.functions}
        helper = fns["helper"]
        assert helper.is_exported
        assert [(p.name, p.default) for p in helper.params] == [("a", None), ("b", "2")]
        assert helper.complexity == 2     # one &&

    def test_arrow_function(self, js_desc):
        fns = {f.name: f for f in js_desc.functions}
        assert "add" in fns
        assert [p.name for p in fns["add"].params] == ["x", "y"]
        assert not fns["add"].is_exported

    def test_require_is_not_a_function(self, js_desc):
        assert "path" not in [f.name for f in js_desc.functions]

    def test_functions_inside_class_bodies_are_skipped(self):
        src = textwrap.dedent("""\
            class A {
              method() {
                const inner = () => {
                  return 1;
                };
                function local() {}
                return inner();
              }
            }

            const outer = () => 2;
        """)
        desc = extract_structure(src, "javascript")
        assert [f.name for f in desc.functions] == ["outer"]
        assert [m.name for m in desc.classes[0].methods] == ["method"]


class TestJavaScriptImportsExports:

    def test_es6_imports(self, js_desc):
        es6 = [i for i in js_desc.imports if i.kind == "es6"]
        assert [(i.module, i.names) for i in es6] == [
            ("events", ["EventEmitter"]),
            ("./base", ["Base"]),
        ]

    def test_require(self, js_desc):
        cjs = [i for i in js_desc.imports if i.kind == "commonjs"]
        assert [(i.module, i.names) for i in cjs] == [("path", ["path"])]

    def test_exports(self, js_desc):
        assert [e.name for e in js_desc.exports] == ["UserService", "helper"]

    def test_commonjs_exports(self):
        src = "function run() {}\nmodule.exports = run;\nexports.other = 1;\n"
        desc = extract_structure(src, "javascript")
        assert [e.name for e in desc.exports] == ["run", "other"]
        assert desc.functions[0].is_exported


class TestTypeScript:

    def test_interface(self, ts_desc):
        assert [i.name for i in ts_desc.interfaces] == ["Shape"]
        assert ts_desc.interfaces[0].methods == ["area"]

    def test_implements(self, ts_desc):
        cls = ts_desc.classes[0]
        assert cls.name == "Circle"
        assert cls.superclass is None
        assert cls.interfaces == ["Shape"]

    def test_typed_members(self, ts_desc):
        cls = ts_desc.classes[0]
        props = {p.name: p for p in cls.properties}
        assert props["radius"].visibility == "private"
        assert props["radius"].type_hint == "number"
        assert props["count"].is_static
        area = cls.methods[0]
        assert area.name == "area"
        assert area.return_type == "number"
        assert cls.constructors[0].params[0].type_hint == "number"

    def test_line_numbers_are_one_based(self, ts_desc):
        assert ts_desc.interfaces[0].line == 1
        assert ts_desc.classes[0].line == 6
