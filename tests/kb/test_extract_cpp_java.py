"""
Unit tests for the C++ and Java rule sets in codeintel.kb.extractors
"""

from __future__ import annotations

import textwrap

import pytest

from codeintel.kb.extractors import extract_structure


@pytest.fixture()
def cpp_desc():
    src = textwrap.dedent("""\
        #include <vector>
        #include "shape.h"

        namespace geo {

        class Circle : public Shape {
        public:
            Circle(double r);
            double area() const;
            static int count;
        private:
            double radius_;
        };

        double Circle::area() const {
            return 3.14 * radius_ * radius_;
        }

        int helper(int a, int b) {
            if (a > b) {
                return a;
            }
            return b;
        }

        }
    """)
    return extract_structure(src, "cpp", "src/circle.cpp")


@pytest.fixture()
def java_desc():
    src = textwrap.dedent("""\
        package com.example;

        import java.util.List;

        public class Registry {
            private static Registry instance;
            private final List<String> items;

            private Registry() {
                items = null;
            }

            public static Registry getInstance() {
                if (instance == null) {
                    instance = new Registry();
                }
                return instance;
            }
        }
    """)
    return extract_structure(src, "java", "src/Registry.java")


class TestCpp:

    def test_class_and_base(self, cpp_desc):
        assert [c.name for c in cpp_desc.classes] == ["Circle"]
        cls = cpp_desc.classes[0]
        assert cls.superclass == "Shape"
        assert cls.kind == "class"

    def test_access_sections(self, cpp_desc):
        cls = cpp_desc.classes[0]
        props = {p.name: p for p in cls.properties}
        assert props["count"].visibility == "public"
        assert props["count"].is_static
        assert props["radius_"].visibility == "private"
        assert props["radius_"].type_hint == "double"

    def test_constructor_and_method(self, cpp_desc):
        cls = cpp_desc.classes[0]
        assert len(cls.constructors) == 1
        assert [(p.name, p.type_hint) for p in cls.constructors[0].params] == [("r", "double")]
        assert [m.name for m in cls.methods] == ["area"]
        assert cls.methods[0].return_type == "double"

    def test_free_functions(self, cpp_desc):
        fns = {f.name: f for f in cpp_desc.functions}
        assert set(fns) == {"area", "helper"}
        assert fns["area"].parent_class == "Circle"
        assert fns["helper"].parent_class is None
        assert fns["helper"].complexity == 2
        assert [p.name for p in fns["helper"].params] == ["a", "b"]

    def test_includes(self, cpp_desc):
        assert [(i.module, i.is_system) for i in cpp_desc.includes] == [
            ("vector", True),
            ("shape.h", False),
        ]
        assert cpp_desc.imports == []
        assert [i.module for i in cpp_desc.all_imports()] == ["vector", "shape.h"]

    def test_namespaces(self, cpp_desc):
        assert cpp_desc.namespaces == ["geo"]

    def test_struct_members_default_public(self):
        desc = extract_structure("struct Point {\n    int x;\n    int y;\n};\n", "c")
        point = desc.classes[0]
        assert point.kind == "struct"
        assert [(p.name, p.visibility) for p in point.properties] == [
            ("x", "public"),
            ("y", "public"),
        ]


class TestJava:

    def test_package_and_imports(self, java_desc):
        assert java_desc.package == "com.example"
        assert [(i.module, i.names) for i in java_desc.imports] == [("java.util.List", ["List"])]

    def test_class(self, java_desc):
        cls = java_desc.classes[0]
        assert cls.name == "Registry"
        assert cls.visibility == "public"
        assert cls.superclass is None

    def test_private_constructor(self, java_desc):
        ctor = java_desc.classes[0].constructors
        assert len(ctor) == 1
        assert ctor[0].visibility == "private"

    def test_static_method(self, java_desc):
        methods = java_desc.classes[0].methods
        assert [m.name for m in methods] == ["getInstance"]
        assert methods[0].is_static
        assert methods[0].return_type == "Registry"
        assert methods[0].complexity == 2

    def test_fields(self, java_desc):
        props = {p.name: p for p in java_desc.classes[0].properties}
        assert set(props) == {"instance", "items"}
        assert props["instance"].is_static
        assert props["instance"].visibility == "private"
        assert props["items"].is_readonly
        assert props["items"].type_hint == "List<String>"

    def test_extends_and_implements(self):
        src = textwrap.dedent("""\
            interface Greeter {
                String greet(String name);
            }

            class Polite extends Base implements Greeter, Comparable<Polite> {
                public String greet(String name) { return name; }
            }
        """)
        desc = extract_structure(src, "java")
        assert [i.name for i in desc.interfaces] == ["Greeter"]
        assert desc.interfaces[0].methods == ["greet"]
        polite = desc.classes[0]
        assert polite.superclass == "Base"
        assert polite.interfaces == ["Greeter", "Comparable"]
        assert polite.visibility == "package"
