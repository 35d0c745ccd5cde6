"""Placeholder and file-template generation.

A placeholder is the generated, unimplemented body emitted for a newly
declared code element.  Every placeholder carries the sentinel comment
(``TODO: Implement`` by default) so the modification pass can tell a
placeholder apart from hand-written code.

File templates are keyed by extension.  Every template is currently empty;
the table is the extension point for language-specific preambles.
"""

from __future__ import annotations

from codoc_sync.schema.models import NodeKind, SchemaNode
from codoc_sync.sync.paths import file_extension

PLACEHOLDER_SENTINEL = "TODO: Implement"

FILE_TEMPLATES: dict[str, str] = {
    ".ts": "",
    ".tsx": "",
    ".js": "",
    ".jsx": "",
    ".py": "",
    ".java": "",
}

_JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
_JSX_EXTENSIONS = (".tsx", ".jsx")


def generate_file_template(path: str, extension: str | None = None) -> str:
    """Return the initial content for a newly created file."""
    ext = (extension or file_extension(path)).lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return FILE_TEMPLATES.get(ext, "")


def _parameters(node: SchemaNode) -> str:
    """Return the parameter list (plus any return annotation) for *node*.

    ``functionSignature`` may be ``(a, b): T``, ``name(a, b)`` or
    ``function name(a)``; everything from the first ``(`` is kept.
    """
    signature = (node.function_signature or "").strip()
    if not signature:
        return "()"
    if "(" not in signature:
        return f"({signature})"
    return signature[signature.index("(") :]


def _props(node: SchemaNode) -> str:
    if not node.component_props:
        return "()"
    return "({ " + ", ".join(node.component_props) + " })"


def generate_placeholder(
    node: SchemaNode,
    file_path: str,
    sentinel: str = PLACEHOLDER_SENTINEL,
) -> str:
    """Return placeholder source for *node* in *file_path*.

    The text has no leading or trailing newline; callers handle spacing.
    """
    ext = file_extension(file_path)
    name = node.name
    is_component = node.kind == NodeKind.COMPONENT.value

    if ext in _JS_EXTENSIONS:
        if is_component and ext in _JSX_EXTENSIONS:
            return (
                f"export function {name}{_props(node)} {{\n"
                f"  // {sentinel}\n"
                f"  return <div>{name}</div>;\n"
                f"}}"
            )
        if is_component:
            return (
                f"export function {name}{_props(node)} {{\n"
                f"  // {sentinel}\n"
                f"  return null;\n"
                f"}}"
            )
        return (
            f"export function {name}{_parameters(node)} {{\n"
            f"  // {sentinel}\n"
            f"  throw new Error('Not implemented');\n"
            f"}}"
        )

    if ext == ".py":
        if is_component:
            lines = [f"class {name}:", f"    # {sentinel}"]
            if node.component_props:
                lines.append(
                    "    # Props: " + ", ".join(node.component_props)
                )
            lines.append("    pass")
            return "\n".join(lines)
        return (
            f"def {name}{_parameters(node)}:\n"
            f"    # {sentinel}\n"
            f"    raise NotImplementedError"
        )

    if ext == ".go":
        return (
            f"func {name}{_parameters(node)} {{\n"
            f"\t// {sentinel}\n"
            f'\tpanic("not implemented")\n'
            f"}}"
        )

    if ext == ".rs":
        return (
            f"fn {name}{_parameters(node)} {{\n"
            f"    // {sentinel}\n"
            f"    todo!()\n"
            f"}}"
        )

    return f"// {name}\n// {sentinel}"


def is_placeholder(
    text: str, node: SchemaNode, sentinel: str = PLACEHOLDER_SENTINEL
) -> bool:
    """True when *text* holds the sentinel and *node*'s name."""
    return sentinel in text and node.name in text
