"""Tests for placeholder and file-template generation."""

from codoc_sync.schema.models import SchemaNode
from codoc_sync.sync.placeholders import (
    PLACEHOLDER_SENTINEL,
    generate_file_template,
    generate_placeholder,
    is_placeholder,
)


def _node(kind="function", name="calc", signature=None, props=None):
    return SchemaNode(
        id=name,
        kind=kind,
        name=name,
        function_signature=signature,
        component_props=props or [],
    )


class TestFileTemplates:
    def test_known_extensions_are_empty(self):
        assert generate_file_template("src/a.ts") == ""
        assert generate_file_template("pkg/m.py") == ""

    def test_explicit_extension_without_dot(self):
        assert generate_file_template("Makefile", "java") == ""

    def test_unknown_extension(self):
        assert generate_file_template("notes.md") == ""


class TestTypeScriptPlaceholders:
    def test_function_without_signature(self):
        text = generate_placeholder(_node(), "src/a.ts")
        assert text == (
            "export function calc() {\n"
            "  // TODO: Implement\n"
            "  throw new Error('Not implemented');\n"
            "}"
        )

    def test_function_signature_from_first_paren(self):
        text = generate_placeholder(
            _node(signature="calc(a: number): number"), "src/a.ts"
        )
        assert text.startswith("export function calc(a: number): number {")

    def test_bare_parameter_list(self):
        text = generate_placeholder(_node(signature="a, b"), "src/a.js")
        assert text.startswith("export function calc(a, b) {")

    def test_tsx_component_renders_div(self):
        text = generate_placeholder(
            _node("component", "Card", props=["title", "body"]), "ui/Card.tsx"
        )
        assert text.startswith("export function Card({ title, body }) {")
        assert "return <div>Card</div>;" in text

    def test_ts_component_returns_null(self):
        text = generate_placeholder(_node("component", "Card"), "ui/card.ts")
        assert "return null;" in text


class TestOtherLanguages:
    def test_python_function(self):
        text = generate_placeholder(_node(signature="(x, y)"), "m.py")
        assert text == (
            "def calc(x, y):\n"
            "    # TODO: Implement\n"
            "    raise NotImplementedError"
        )

    def test_python_component_with_props(self):
        text = generate_placeholder(
            _node("component", "Widget", props=["title"]), "m.py"
        )
        assert text.splitlines() == [
            "class Widget:",
            "    # TODO: Implement",
            "    # Props: title",
            "    pass",
        ]

    def test_go(self):
        text = generate_placeholder(_node(), "main.go")
        assert text.startswith("func calc() {")
        assert 'panic("not implemented")' in text

    def test_rust(self):
        assert "todo!()" in generate_placeholder(_node(), "lib.rs")

    def test_generic_comment(self):
        assert generate_placeholder(_node(), "notes.txt") == (
            "// calc\n// TODO: Implement"
        )

    def test_custom_sentinel(self):
        text = generate_placeholder(_node(), "a.ts", sentinel="FIXME")
        assert "// FIXME" in text
        assert PLACEHOLDER_SENTINEL not in text


class TestIsPlaceholder:
    def test_generated_text_is_placeholder(self):
        node = _node()
        assert is_placeholder(generate_placeholder(node, "a.ts"), node)

    def test_implemented_code_is_not(self):
        code = "export function calc() {\n  return 42;\n}"
        assert not is_placeholder(code, _node())
