"""Tests for owning-file resolution helpers."""

from codoc_sync.schema.models import (
    RenamedNode,
    SchemaNode,
    SchemaTree,
    StructuralDiff,
)
from codoc_sync.sync.paths import (
    build_lookup,
    file_extension,
    is_source_file,
    is_under,
    parent_dir,
    resolve_file_path,
    split_composite_path,
)


def _node(node_id, kind, name, path="", parent_id=None):
    return SchemaNode(
        id=node_id, kind=kind, name=name, path=path, parent_id=parent_id
    )


class TestPathHelpers:
    def test_split_composite_path(self):
        assert split_composite_path("src/a.ts#render") == ("src/a.ts", "render")
        assert split_composite_path("src/a.ts") == ("src/a.ts", None)
        assert split_composite_path("src/a.ts#") == ("src/a.ts", None)

    def test_file_extension(self):
        assert file_extension("src/App.TSX") == ".tsx"
        assert file_extension("src/a.py#main") == ".py"
        assert file_extension("Makefile") == ""

    def test_parent_dir(self):
        assert parent_dir("src/a.ts") == "src"
        assert parent_dir("a.ts") == ""
        assert parent_dir("src/lib/") == "src"

    def test_is_source_file(self):
        assert is_source_file("a.go")
        assert not is_source_file("README.md")
        assert is_source_file("README.md", [".md"])

    def test_is_under(self):
        assert is_under("src/a.ts", "src")
        assert is_under("src", "src/")
        assert not is_under("srcx/a.ts", "src")


class TestResolveFilePath:
    """Owner lookup order: parent chain, composite path, own path."""

    def test_nearest_file_ancestor(self):
        folder = _node("d", "directory", "src", "src")
        module = _node("f", "file", "a.ts", "src/a.ts", parent_id="d")
        cls = _node("c", "component", "Card", parent_id="f")
        method = _node("m", "function", "render", parent_id="c")
        lookup = {n.id: n for n in (folder, module, cls, method)}

        assert resolve_file_path(method, lookup) == "src/a.ts"

    def test_composite_path(self):
        fn = _node("x", "function", "render", "src/b.ts#render")
        assert resolve_file_path(fn, {}) == "src/b.ts"

    def test_own_source_path(self):
        fn = _node("x", "function", "main", "cmd/main.go")
        assert resolve_file_path(fn, {}) == "cmd/main.go"

    def test_unresolvable(self):
        fn = _node("x", "function", "lost", "docs/notes")
        assert resolve_file_path(fn, {}) is None

    def test_parent_cycle_terminates(self):
        a = _node("a", "component", "A", parent_id="b")
        b = _node("b", "component", "B", parent_id="a")
        assert resolve_file_path(a, {"a": a, "b": b}) is None


class TestBuildLookup:
    def test_schema_wins_over_diff(self):
        current = _node("f", "file", "new.ts", "new.ts")
        previous = _node("f", "file", "old.ts", "old.ts")
        removed = _node("r", "file", "gone.ts", "gone.ts")
        diff = StructuralDiff(
            removed=[removed],
            renamed=[RenamedNode(from_node=previous, to_node=current)],
        )

        lookup = build_lookup(SchemaTree.from_nodes([current]), diff)

        assert lookup["f"].path == "new.ts"
        assert lookup["r"].path == "gone.ts"
