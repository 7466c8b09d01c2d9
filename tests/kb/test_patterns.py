"""
Unit tests for codeintel.kb.patterns

Design-pattern rules, their fixed order, and the corpus overview.
"""

from __future__ import annotations

from codeintel.kb.models import ArchitecturalPattern
from codeintel.kb.patterns import (
    MAX_PATTERNS, PATTERN_NAMES, architectural_overview, detect_patterns,
)
from codeintel.kb.structure import (
    ClassInfo, FunctionInfo, InterfaceInfo, MethodInfo, PropertyInfo,
    StructuralDescription,
)


def _desc(classes=(), interfaces=(), functions=()):
    return StructuralDescription(
        language="typescript",
        classes=list(classes),
        interfaces=list(interfaces),
        functions=list(functions),
    )


def _names(desc):
    return [p.name for p in detect_patterns(desc)]


class TestDetectPatterns:

    def test_empty_description(self):
        assert detect_patterns(_desc()) == []

    def test_singleton(self):
        cls = ClassInfo(
            name="Config", line=1,
            methods=[MethodInfo("getInstance", 3, is_static=True)],
            properties=[PropertyInfo("instance", 2, visibility="private", is_static=True)],
        )
        found = detect_patterns(_desc([cls]))
        assert [(p.name, p.confidence) for p in found] == [("Singleton", 0.8)]
        assert found[0].evidence == "Private constructor with static instance"

    def test_singleton_needs_static_accessor(self):
        cls = ClassInfo(
            name="Config", line=1,
            methods=[MethodInfo("getInstance", 3)],
            properties=[PropertyInfo("instance", 2, visibility="private", is_static=True)],
        )
        assert "Singleton" not in _names(_desc([cls]))

    def test_factory_and_observer_from_method_names(self):
        cls = ClassInfo(
            name="Hub", line=1,
            methods=[MethodInfo("createWidget", 2), MethodInfo("subscribe", 5)],
        )
        assert _names(_desc([cls])) == ["Factory", "Observer"]

    def test_free_functions_do_not_count(self):
        desc = _desc(functions=[FunctionInfo("createApp", 1), FunctionInfo("notifyAll", 5)])
        assert detect_patterns(desc) == []

    def test_strategy_needs_two_implementors(self):
        iface = InterfaceInfo("Sorter", 1)
        one = ClassInfo("Quick", 5, interfaces=["Sorter"])
        two = ClassInfo("Merge", 9, interfaces=["Sorter"])
        assert _names(_desc([one], [iface])) == []
        assert _names(_desc([one, two], [iface])) == ["Strategy"]

    def test_mvc(self):
        classes = [ClassInfo("UserController", 1), ClassInfo("UserModel", 5), ClassInfo("UserView", 9)]
        assert _names(_desc(classes)) == ["MVC"]
        assert _names(_desc(classes[:2])) == []

    def test_rule_order_is_kept(self):
        iface = InterfaceInfo("Handler", 1)
        classes = [
            ClassInfo(
                "EventModel", 2, interfaces=["Handler"],
                methods=[MethodInfo("getInstance", 3, is_static=True), MethodInfo("notify", 4)],
                properties=[PropertyInfo("instance", 2, visibility="private", is_static=True)],
            ),
            ClassInfo("EventView", 10, interfaces=["Handler"], methods=[MethodInfo("create", 11)]),
            ClassInfo("EventController", 20),
        ]
        found = detect_patterns(_desc(classes, [iface]))
        assert [p.name for p in found] == list(PATTERN_NAMES)
        # Not sorted by confidence: Observer (0.75) follows Factory (0.7).
        assert [p.confidence for p in found] == [0.8, 0.7, 0.75, 0.6, 0.65]
        assert len(found) <= MAX_PATTERNS


class TestArchitecturalOverview:

    def test_empty_corpus(self):
        assert architectural_overview([]) == []
        assert architectural_overview([("a.js", []), ("b.js", [])]) == []

    def test_counts_and_order(self):
        factory = ArchitecturalPattern("Factory", 0.7, "Create methods returning interface types")
        observer = ArchitecturalPattern("Observer", 0.75, "Event subscription/notification methods")
        rows = [
            ("a.js", [factory]),
            ("b.js", [observer, factory]),
            ("c.js", [observer]),
            ("d.js", [observer]),
        ]
        overview = architectural_overview(rows)
        assert [(o.name, o.frequency) for o in overview] == [("Observer", 3), ("Factory", 2)]
        assert overview[0].files == ["b.js", "c.js", "d.js"]
        assert overview[1].to_dict() == {
            "pattern": "Factory",
            "frequency": 2,
            "files": ["a.js", "b.js"],
            "evidence": "Create methods returning interface types",
        }

    def test_ties_keep_first_seen_order(self):
        rows = [
            ("a.py", [ArchitecturalPattern("MVC", 0.65, "")]),
            ("b.py", [ArchitecturalPattern("Strategy", 0.6, "")]),
        ]
        assert [o.name for o in architectural_overview(rows)] == ["MVC", "Strategy"]

    def test_limit(self):
        rows = [("a.py", [ArchitecturalPattern(n, 0.5, "") for n in PATTERN_NAMES])]
        assert len(architectural_overview(rows, limit=2)) == 2
