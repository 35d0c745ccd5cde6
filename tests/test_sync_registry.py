"""Tests for the code element registry."""

from codoc_sync.schema.models import SchemaNode, SchemaTree
from codoc_sync.sync.registry import CodeElementRegistry


def _schema() -> SchemaTree:
    return SchemaTree.from_nodes(
        [
            SchemaNode(id="d", kind="directory", name="src", path="src"),
            SchemaNode(
                id="f", kind="file", name="a.ts", path="src/a.ts", parent_id="d"
            ),
            SchemaNode(id="fn", kind="function", name="render", parent_id="f"),
            SchemaNode(
                id="c",
                kind="component",
                name="Card",
                parent_id="f",
            ),
            SchemaNode(
                id="note",
                kind="function",
                name="draft",
                parent_id="f",
                is_unrecognized=True,
            ),
            SchemaNode(id="orphan", kind="function", name="lost"),
        ]
    )


class TestRebuild:
    def test_records_code_elements_by_file(self):
        registry = CodeElementRegistry()
        registry.rebuild(_schema())

        assert registry.names("src/a.ts") == frozenset({"render", "Card"})
        assert registry.files() == ["src/a.ts"]
        assert len(registry) == 2

    def test_rebuild_replaces_previous_state(self):
        registry = CodeElementRegistry()
        registry.add("other.ts", "stale")
        registry.rebuild(_schema())

        assert not registry.has("other.ts", "stale")

    def test_reset(self):
        registry = CodeElementRegistry()
        registry.rebuild(_schema())
        registry.reset()
        assert len(registry) == 0


class TestIncrementalUpdates:
    def test_add_and_remove(self):
        registry = CodeElementRegistry()
        registry.add("a.ts", "x")
        assert registry.has("a.ts", "x")

        registry.remove("a.ts", "x")
        registry.remove("a.ts", "never-added")
        assert not registry.has("a.ts", "x")
        assert registry.files() == []

    def test_move_file_merges_names(self):
        registry = CodeElementRegistry()
        registry.add("old.ts", "a")
        registry.add("new.ts", "b")

        registry.move_file("old.ts", "new.ts")

        assert registry.names("new.ts") == frozenset({"a", "b"})
        assert registry.names("old.ts") == frozenset()

    def test_move_tree(self):
        registry = CodeElementRegistry()
        registry.add("src/a.ts", "a")
        registry.add("src/deep/b.ts", "b")
        registry.add("srcx/c.ts", "c")

        registry.move_tree("src", "lib")

        assert registry.files() == ["lib/a.ts", "lib/deep/b.ts", "srcx/c.ts"]

    def test_remove_tree(self):
        registry = CodeElementRegistry()
        registry.add("src/a.ts", "a")
        registry.add("src/deep/b.ts", "b")
        registry.add("main.ts", "m")

        registry.remove_tree("src")

        assert registry.files() == ["main.ts"]

    def test_remove_file(self):
        registry = CodeElementRegistry()
        registry.add("a.ts", "x")
        registry.add("a.ts", "y")
        registry.remove_file("a.ts")
        assert len(registry) == 0
