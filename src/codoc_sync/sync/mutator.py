"""Code mutation strategies for named top-level code elements.

Provides two strategies behind one ``MutationStrategy`` protocol:

- ``StructuralStrategy``: tree-sitter based; understands Python,
  JavaScript, JSX, TypeScript and TSX.  Refuses (returns ``None``) when the
  grammar is unknown or the file does not parse cleanly.
- ``TextualStrategy``: name-anchored regular expressions with brace or
  indentation matching to find a declaration's extent; whole-word
  substitution for renames.

``CodeMutator`` selects an ordered chain by file extension: structurally
analysable extensions get ``[structural, textual]``, every other extension
gets ``[textual]``.  A ``None`` result or an exception from a strategy means
"not possible this way" and moves on to the next strategy.  When the whole
chain gives up, ``CodeMutator`` raises ``ElementNotFoundError``.

Strategies work on text only; they never touch the file system.
"""

from __future__ import annotations

import functools
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from typing import Callable, Protocol, TypeVar

import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from codoc_sync.schema.models import SchemaNode
from codoc_sync.sync.paths import file_extension
from codoc_sync.sync.placeholders import (
    PLACEHOLDER_SENTINEL,
    generate_placeholder,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Span = tuple[int, int]

DEFAULT_STRUCTURAL_EXTENSIONS: tuple[str, ...] = (
    ".py",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
    ".ts",
    ".tsx",
)


class ElementNotFoundError(LookupError):
    """Raised when no strategy can locate a named code element."""

    def __init__(self, name: str, file_path: str | None = None) -> None:
        self.name = name
        self.file_path = file_path
        where = f" in {file_path}" if file_path else ""
        super().__init__(f"Element {name} not found{where}")


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class MutationStrategy(Protocol):
    """Protocol that all mutation strategies must satisfy.

    Every method returns ``None`` when the operation cannot be performed
    by this strategy, which tells ``CodeMutator`` to try the next one.
    """

    name: str

    def exists(
        self, content: str, name: str, kind: str, extension: str
    ) -> bool | None:
        """Return whether *name* is declared at top level of *content*."""
        ...  # pragma: no cover

    def remove(
        self, content: str, name: str, kind: str, extension: str
    ) -> str | None:
        """Return *content* without the declaration of *name*."""
        ...  # pragma: no cover

    def rename(
        self, content: str, old_name: str, new_name: str, extension: str
    ) -> str | None:
        """Return *content* with *old_name* renamed to *new_name*."""
        ...  # pragma: no cover

    def extract(
        self, content: str, name: str, kind: str, extension: str
    ) -> str | None:
        """Return the full declaration text of *name*."""
        ...  # pragma: no cover

    def replace(
        self,
        content: str,
        name: str,
        kind: str,
        replacement: str,
        extension: str,
    ) -> str | None:
        """Return *content* with the declaration of *name* replaced."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Span helpers
# ---------------------------------------------------------------------------


def _line_start(content: str, index: int) -> int:
    return content.rfind("\n", 0, index) + 1


def _removal_span(content: str, start: int, end: int) -> Span:
    """Widen a declaration span to whole lines plus one blank separator.

    Leading indentation and the trailing newline are included.  One blank
    separator line after the block is consumed; at end of file the blank
    line before the block is consumed instead, so appending and then
    removing a block leaves the file byte-identical.
    """
    line_start = _line_start(content, start)
    if not content[line_start:start].strip():
        start = line_start

    n = len(content)
    j = end
    while j < n and content[j] in " \t\r":
        j += 1
    if j < n and content[j] == "\n":
        end = j + 1
    elif j == n:
        end = n

    if end < n and content[end - 1 : end] == "\n":
        k = end
        while k < n and content[k] in " \t\r":
            k += 1
        if k < n and content[k] == "\n":
            return start, k + 1
    if end == n and content[:start].endswith("\n\n"):
        start -= 1
    return start, end


def append_block(content: str, block: str) -> str:
    """Append *block* after a blank separator line."""
    if not content:
        return block + "\n"
    if not content.endswith("\n"):
        content += "\n"
    return content + "\n" + block + "\n"


class SpanStrategy(ABC):
    """Base class deriving exists/remove/extract/replace from ``locate``."""

    name = "span"

    @abstractmethod
    def locate(
        self, content: str, name: str, kind: str, extension: str
    ) -> Span | None:
        """Return the declaration span of *name*, or ``None``."""

    def exists(
        self, content: str, name: str, kind: str, extension: str
    ) -> bool | None:
        return self.locate(content, name, kind, extension) is not None

    def remove(
        self, content: str, name: str, kind: str, extension: str
    ) -> str | None:
        span = self.locate(content, name, kind, extension)
        if span is None:
            return None
        start, end = _removal_span(content, *span)
        return content[:start] + content[end:]

    def extract(
        self, content: str, name: str, kind: str, extension: str
    ) -> str | None:
        span = self.locate(content, name, kind, extension)
        if span is None:
            return None
        start, end = span
        return content[start:end]

    def replace(
        self,
        content: str,
        name: str,
        kind: str,
        replacement: str,
        extension: str,
    ) -> str | None:
        span = self.locate(content, name, kind, extension)
        if span is None:
            return None
        start, end = span
        return content[:start] + replacement + content[end:]


# ---------------------------------------------------------------------------
# Structural strategy (tree-sitter)
# ---------------------------------------------------------------------------

_GRAMMARS: dict[str, Callable[[], object]] = {
    ".py": tree_sitter_python.language,
    ".js": tree_sitter_javascript.language,
    ".jsx": tree_sitter_javascript.language,
    ".mjs": tree_sitter_javascript.language,
    ".cjs": tree_sitter_javascript.language,
    ".ts": tree_sitter_typescript.language_typescript,
    ".tsx": tree_sitter_typescript.language_tsx,
}

_NAMED_DECLARATIONS = frozenset(
    {
        # JavaScript / TypeScript
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        "abstract_class_declaration",
        "interface_declaration",
        "type_alias_declaration",
        "enum_declaration",
        "function_signature",
        # Python
        "function_definition",
        "class_definition",
    }
)
_VARIABLE_DECLARATIONS = frozenset(
    {"lexical_declaration", "variable_declaration"}
)
_RENAMEABLE = frozenset({"identifier", "type_identifier"})


@functools.lru_cache(maxsize=None)
def get_parser(extension: str) -> Parser:
    """Return a cached tree-sitter parser for *extension*.

    Raises:
        KeyError: If no grammar is registered for *extension*.
    """
    return Parser(Language(_GRAMMARS[extension]()))


def _text(code: bytes, node: Node) -> str:
    return code[node.start_byte : node.end_byte].decode("utf-8")


def _char_offset(code: bytes, byte_offset: int) -> int:
    return len(code[:byte_offset].decode("utf-8", errors="replace"))


def _same(a: Node | None, b: Node) -> bool:
    return (
        a is not None
        and a.start_byte == b.start_byte
        and a.end_byte == b.end_byte
    )


def _declared_names(node: Node | None) -> list[Node]:
    """Return the name nodes a top-level statement declares."""
    if node is None:
        return []
    kind = node.type
    if kind in _NAMED_DECLARATIONS:
        name = node.child_by_field_name("name")
        return [name] if name is not None else []
    if kind in _VARIABLE_DECLARATIONS:
        names = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                names.append(name)
        return names
    if kind == "export_statement":
        return _declared_names(node.child_by_field_name("declaration"))
    if kind == "decorated_definition":
        return _declared_names(node.child_by_field_name("definition"))
    if kind == "expression_statement":
        for child in node.named_children:
            if child.type != "assignment":
                continue
            left = child.child_by_field_name("left")
            if left is not None and left.type == "identifier":
                return [left]
    return []


def _is_member_name(node: Node) -> bool:
    """True for ``obj.name`` attributes and ``f(name=...)`` keywords."""
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "attribute":
        return _same(parent.child_by_field_name("attribute"), node)
    if parent.type == "keyword_argument":
        return _same(parent.child_by_field_name("name"), node)
    return False


def _walk(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


class StructuralStrategy(SpanStrategy):
    """Locate and rename top-level declarations with tree-sitter.

    Args:
        extensions: Extensions this strategy may analyse; each must have a
            registered grammar.
    """

    name = "structural"

    def __init__(
        self, extensions: Iterable[str] = DEFAULT_STRUCTURAL_EXTENSIONS
    ) -> None:
        self.extensions = frozenset(
            ext for ext in extensions if ext in _GRAMMARS
        )

    def _parse(
        self, content: str, extension: str
    ) -> tuple[Node, bytes] | None:
        if extension not in self.extensions:
            return None
        code = content.encode("utf-8")
        tree = get_parser(extension).parse(code)
        if tree.root_node.has_error:
            logger.debug(
                "tree-sitter reported syntax errors (%s); refusing",
                extension,
            )
            return None
        return tree.root_node, code

    def declarations(
        self, content: str, extension: str
    ) -> list[tuple[str, Node, Node]] | None:
        """Return ``(name, name_node, statement)`` for each declaration."""
        parsed = self._parse(content, extension)
        if parsed is None:
            return None
        root, code = parsed
        found = []
        for statement in root.named_children:
            for name_node in _declared_names(statement):
                found.append((_text(code, name_node), name_node, statement))
        return found

    def locate(
        self, content: str, name: str, kind: str, extension: str
    ) -> Span | None:
        parsed = self._parse(content, extension)
        if parsed is None:
            return None
        root, code = parsed
        for statement in root.named_children:
            for name_node in _declared_names(statement):
                if _text(code, name_node) == name:
                    return (
                        _char_offset(code, statement.start_byte),
                        _char_offset(code, statement.end_byte),
                    )
        return None

    def exists(
        self, content: str, name: str, kind: str, extension: str
    ) -> bool | None:
        declarations = self.declarations(content, extension)
        if declarations is None:
            return None
        return any(found == name for found, _, _ in declarations)

    def rename(
        self, content: str, old_name: str, new_name: str, extension: str
    ) -> str | None:
        """Rename the declaration and same-file identifier references.

        Strings, comments and member names (``obj.old``) are untouched.
        Returns ``None`` when *old_name* is not declared at top level.
        """
        parsed = self._parse(content, extension)
        if parsed is None:
            return None
        root, code = parsed
        declared = any(
            _text(code, n) == old_name
            for statement in root.named_children
            for n in _declared_names(statement)
        )
        if not declared:
            return None

        old_bytes = old_name.encode("utf-8")
        targets = [
            node
            for node in _walk(root)
            if node.type in _RENAMEABLE
            and code[node.start_byte : node.end_byte] == old_bytes
            and not _is_member_name(node)
        ]
        new_bytes = new_name.encode("utf-8")
        for node in sorted(targets, key=lambda n: n.start_byte, reverse=True):
            code = code[: node.start_byte] + new_bytes + code[node.end_byte :]
        return code.decode("utf-8")


# ---------------------------------------------------------------------------
# Textual strategy (regular expressions)
# ---------------------------------------------------------------------------

_NAME_END = r"(?![\w$])"

# (template, needs_block, indentation_based)
_DECLARATION_PATTERNS: tuple[tuple[str, bool, bool], ...] = (
    (
        r"^[ \t]*(?:export[ \t]+(?:default[ \t]+)?)?(?:async[ \t]+)?"
        r"function[ \t]*\*?[ \t]*{name}" + _NAME_END,
        True,
        False,
    ),
    (
        r"^[ \t]*(?:export[ \t]+)?(?:const|let|var)[ \t]+{name}"
        + _NAME_END
        + r"[ \t]*(?::[^=\n]+)?=",
        False,
        False,
    ),
    (
        r"^[ \t]*(?:export[ \t]+(?:default[ \t]+)?)?(?:abstract[ \t]+)?"
        r"class[ \t]+{name}" + _NAME_END + r"[^:\n]*\{{",
        True,
        False,
    ),
    (
        r"^[ \t]*{name}[ \t]*:[ \t]*(?:async[ \t]+)?"
        r"(?:function\b|\([^)\n]*\)[ \t]*=>)",
        False,
        False,
    ),
    (r"^[ \t]*(?:async[ \t]+)?def[ \t]+{name}[ \t]*\(", False, True),
    (r"^[ \t]*class[ \t]+{name}[ \t]*[:(]", False, True),
    (
        r"^[ \t]*func[ \t]+(?:\([^)\n]*\)[ \t]*)?{name}[ \t]*[(\[]",
        True,
        False,
    ),
    (
        r"^[ \t]*(?:pub(?:\([^)\n]*\))?[ \t]+)?(?:async[ \t]+)?"
        r"fn[ \t]+{name}" + _NAME_END,
        True,
        False,
    ),
)

_CONTINUATION_CHARS = "=>,(+-*/|&?:."


def _skip_string(content: str, i: int) -> int:
    quote = content[i]
    i += 1
    n = len(content)
    while i < n:
        ch = content[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            return i
        i += 1
    return n


_TYPE_CONTEXT_CHARS = ":|&"


def _brace_extent(content: str, start: int, needs_block: bool) -> int | None:
    """Return the end offset of a brace-delimited declaration.

    Before the body opens, a ``{`` that follows a type annotation colon or
    sits inside ``<...>`` type arguments is an object type, not the body.
    """
    n = len(content)
    depth = 0
    angle = 0
    opened = False
    last = ""
    i = start
    while i < n:
        ch = content[i]
        if ch in "\"'`":
            i = _skip_string(content, i)
            last = ch
            continue
        if content.startswith("//", i):
            newline = content.find("\n", i)
            i = n if newline == -1 else newline
            continue
        if content.startswith("/*", i):
            close = content.find("*/", i + 2)
            i = n if close == -1 else close + 2
            continue

        head = depth == 0 and not opened
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == "<" and head:
            angle += 1
        elif ch == ">" and head and angle > 0 and last not in ("=", "-"):
            angle -= 1
        elif ch == "{":
            if head and not (angle > 0 or (last and last in _TYPE_CONTEXT_CHARS)):
                opened = True
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0 and opened:
                end = i + 1
                k = end
                while k < n and content[k] in " \t":
                    k += 1
                if not needs_block and k < n and content[k] not in ",;\r\n":
                    # The expression continues past the object literal.
                    opened = False
                else:
                    if k < n and content[k] == ";":
                        end = k + 1
                    return end
            if depth < 0:
                return None
        elif ch == ";" and head:
            return i + 1
        elif ch == "\n" and head and not needs_block:
            text = content[start:i].rstrip()
            if text and text[-1] not in _CONTINUATION_CHARS:
                return i
        if not ch.isspace():
            last = ch
        i += 1
    return None


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _open_triple_quote(line: str, quote: str | None) -> str | None:
    """Return the triple quote still open at the end of *line*, if any."""
    i = 0
    n = len(line)
    while i < n:
        if quote is not None:
            close = line.find(quote, i)
            if close == -1:
                return quote
            i = close + 3
            quote = None
            continue
        ch = line[i]
        if ch == "#":
            return None
        if line.startswith('"""', i) or line.startswith("'''", i):
            quote = line[i : i + 3]
            i += 3
            continue
        if ch in "\"'":
            i = _skip_string(line, i)
            continue
        i += 1
    return quote


def _indented_extent(content: str, start: int) -> tuple[int, int]:
    """Return the span of an indentation-delimited (Python) block.

    *start* is the offset of the ``def`` / ``class`` line.  Decorators
    directly above at the same indentation are included.
    """
    lines = content[start:].splitlines(keepends=True)
    base = _indent_of(lines[0])

    block_start = start
    while block_start > 0:
        prev_start = _line_start(content, block_start - 1)
        prev = content[prev_start : block_start]
        if prev.strip().startswith("@") and _indent_of(prev) == base:
            block_start = prev_start
        else:
            break

    consumed = 0
    last_code_end = 0
    depth = 0
    in_header = True
    quote: str | None = None
    for line in lines:
        stripped = line.strip()
        if in_header:
            depth += sum(line.count(c) for c in "([{")
            depth -= sum(line.count(c) for c in ")]}")
            consumed += len(line)
            last_code_end = consumed
            if depth <= 0:
                in_header = False
            continue
        # String literal contents never end the block.
        if quote is None and stripped and _indent_of(line) <= base:
            break
        quote = _open_triple_quote(line, quote)
        consumed += len(line)
        if stripped:
            last_code_end = consumed

    end = start + last_code_end
    if content[:end].endswith("\n"):
        end -= 1
    return block_start, end


class TextualStrategy(SpanStrategy):
    """Locate and rename declarations with name-anchored regexes.

    Args:
        sentinel: Placeholder sentinel, used to recognise the generic
            two-line comment placeholder.
    """

    name = "textual"

    def __init__(self, sentinel: str = PLACEHOLDER_SENTINEL) -> None:
        self.sentinel = sentinel

    def patterns(self, name: str) -> list[tuple[re.Pattern[str], bool, bool]]:
        escaped = re.escape(name)
        compiled = [
            (
                re.compile(template.format(name=escaped), re.MULTILINE),
                needs_block,
                indented,
            )
            for template, needs_block, indented in _DECLARATION_PATTERNS
        ]
        return compiled

    def locate(
        self, content: str, name: str, kind: str, extension: str
    ) -> Span | None:
        placeholder = re.compile(
            rf"^//[ \t]*{re.escape(name)}[ \t]*\n//[ \t]*"
            rf"{re.escape(self.sentinel)}[ \t]*$",
            re.MULTILINE,
        )
        match = placeholder.search(content)
        if match:
            return match.start(), match.end()

        for pattern, needs_block, indented in self.patterns(name):
            for match in pattern.finditer(content):
                start = _line_start(content, match.start())
                if indented or extension == ".py":
                    return _indented_extent(content, start)
                end = _brace_extent(content, start, needs_block)
                if end is not None:
                    return start, end
        return None

    def rename(
        self, content: str, old_name: str, new_name: str, extension: str
    ) -> str | None:
        """Whole-word substitution of every occurrence of *old_name*."""
        pattern = re.compile(
            r"(?<![\w$])" + re.escape(old_name) + _NAME_END
        )
        updated, count = pattern.subn(lambda _: new_name, content)
        if count == 0:
            return None
        return updated


# ---------------------------------------------------------------------------
# Mutator (ordered fallback chain)
# ---------------------------------------------------------------------------


class CodeMutator:
    """Apply element-level edits to one file's text with ordered fallback.

    Args:
        structural_extensions: Extensions that try the structural strategy
            first.
        sentinel: Placeholder sentinel.
        structural: Strategy used for structurally analysable extensions.
        textual: Strategy used as the fallback and for every other
            extension.
    """

    def __init__(
        self,
        structural_extensions: Iterable[str] = DEFAULT_STRUCTURAL_EXTENSIONS,
        sentinel: str = PLACEHOLDER_SENTINEL,
        structural: MutationStrategy | None = None,
        textual: MutationStrategy | None = None,
    ) -> None:
        self.structural_extensions = frozenset(
            ext.lower() for ext in structural_extensions
        )
        self.sentinel = sentinel
        self.structural = structural or StructuralStrategy(
            self.structural_extensions
        )
        self.textual = textual or TextualStrategy(sentinel)

    def strategies_for(self, file_path: str) -> list[MutationStrategy]:
        """Return the ordered strategy chain for *file_path*."""
        if file_extension(file_path) in self.structural_extensions:
            return [self.structural, self.textual]
        return [self.textual]

    def _first(
        self,
        file_path: str,
        operation: str,
        call: Callable[[MutationStrategy, str], T | None],
    ) -> T | None:
        extension = file_extension(file_path)
        for strategy in self.strategies_for(file_path):
            try:
                result = call(strategy, extension)
            except Exception as exc:
                logger.warning(
                    "%s %s failed for %s, falling back: %s",
                    strategy.name,
                    operation,
                    file_path,
                    exc,
                )
                continue
            if result is not None:
                return result
            logger.debug(
                "%s %s not possible for %s",
                strategy.name,
                operation,
                file_path,
            )
        return None

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def exists(
        self, content: str, name: str, kind: str, file_path: str
    ) -> bool:
        """Return ``True`` if *name* is declared in *content*."""
        found = self._first(
            file_path,
            "exists",
            lambda s, ext: s.exists(content, name, kind, ext),
        )
        return bool(found)

    def insert_placeholder(
        self, content: str, node: SchemaNode, file_path: str
    ) -> str:
        """Append a placeholder for *node* unless it already exists.

        Returns *content* unchanged when the element is already declared.
        """
        if self.exists(content, node.name, node.kind, file_path):
            return content
        return append_block(
            content, generate_placeholder(node, file_path, self.sentinel)
        )

    def insert(self, content: str, code: str) -> str:
        """Append an extracted declaration to *content*."""
        return append_block(content, code.strip("\n"))

    def remove(
        self, content: str, name: str, kind: str, file_path: str
    ) -> str:
        """Return *content* without the declaration of *name*.

        Raises:
            ElementNotFoundError: If no strategy can locate *name*.
        """
        updated = self._first(
            file_path,
            "remove",
            lambda s, ext: s.remove(content, name, kind, ext),
        )
        if updated is None:
            raise ElementNotFoundError(name, file_path)
        return updated

    def rename(
        self, content: str, old_name: str, new_name: str, file_path: str
    ) -> str:
        """Return *content* with *old_name* renamed to *new_name*.

        Raises:
            ElementNotFoundError: If *old_name* does not occur at all.
        """
        updated = self._first(
            file_path,
            "rename",
            lambda s, ext: s.rename(content, old_name, new_name, ext),
        )
        if updated is None:
            raise ElementNotFoundError(old_name, file_path)
        return updated

    def extract(
        self, content: str, name: str, kind: str, file_path: str
    ) -> str:
        """Return the full declaration text of *name*.

        Raises:
            ElementNotFoundError: If no strategy can locate *name*.
        """
        text = self._first(
            file_path,
            "extract",
            lambda s, ext: s.extract(content, name, kind, ext),
        )
        if text is None:
            raise ElementNotFoundError(name, file_path)
        return text

    def replace(
        self,
        content: str,
        name: str,
        kind: str,
        replacement: str,
        file_path: str,
    ) -> str:
        """Return *content* with the declaration of *name* replaced.

        Raises:
            ElementNotFoundError: If no strategy can locate *name*.
        """
        updated = self._first(
            file_path,
            "replace",
            lambda s, ext: s.replace(content, name, kind, replacement, ext),
        )
        if updated is None:
            raise ElementNotFoundError(name, file_path)
        return updated
