"""Tree-sitter parsers for code examples embedded in documentation."""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

import tree_sitter_bash
import tree_sitter_css
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

SCRIPT_LANGUAGES = frozenset(
    {"js", "jsx", "ts", "tsx", "javascript", "typescript", "mjs", "cjs"}
)
STYLE_LANGUAGES = frozenset({"css", "scss", "less"})
SHELL_LANGUAGES = frozenset({"bash", "sh", "shell", "zsh", "console"})
HTML_LANGUAGES = frozenset({"html", "htm", "xhtml"})

SCRIPT = "script"
STYLE = "style"
SHELL = "shell"
HTML = "html"

_GRAMMARS = {
    # TSX is a superset of the JavaScript and TypeScript dialects used in docs.
    SCRIPT: tree_sitter_typescript.language_tsx,
    STYLE: tree_sitter_css.language,
    SHELL: tree_sitter_bash.language,
}


def language_family(language: str) -> Optional[str]:
    """Map a code-fence info string onto a parser family."""
    key = language.strip().lower()
    if key in SCRIPT_LANGUAGES:
        return SCRIPT
    if key in STYLE_LANGUAGES:
        return STYLE
    if key in SHELL_LANGUAGES:
        return SHELL
    if key in HTML_LANGUAGES:
        return HTML
    return None


class SyntaxParser:
    """Lazily builds one tree-sitter parser per family and reuses it."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Parser] = {}

    def parse(self, language: str, source: str) -> Optional[Tree]:
        family = language_family(language)
        if family not in _GRAMMARS:
            return None
        if language.strip().lower() == "console":
            source = _strip_prompts(source)
        return self._get_parser(family).parse(source.encode("utf-8"))

    def _get_parser(self, family: str) -> Parser:
        parser = self._parsers.get(family)
        if parser is None:
            parser = Parser(Language(_GRAMMARS[family]()))
            self._parsers[family] = parser
        return parser


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal of ``node`` and its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def node_text(node: Node) -> str:
    return (node.text or b"").decode("utf-8", errors="ignore")


def node_line(node: Node) -> int:
    """Zero-based row of ``node`` within the parsed source."""
    return node.start_point[0]


def callee_name(call: Node) -> str:
    """Name of the function invoked by a ``call_expression`` (``a.b()`` yields ``b``)."""
    function = call.child_by_field_name("function")
    if function is None:
        return ""
    if function.type == "identifier":
        return node_text(function)
    if function.type == "member_expression":
        prop = function.child_by_field_name("property")
        return node_text(prop) if prop is not None else ""
    return ""


def is_module(tree: Tree) -> bool:
    """True when the script has top-level import or export statements."""
    return any(
        child.type in {"import_statement", "export_statement"} for child in tree.root_node.children
    )


def directives(tree: Tree) -> List[str]:
    """String directives (``"use client"``) in the program prologue."""
    found: List[str] = []
    for child in tree.root_node.named_children:
        if child.type == "comment":
            continue
        if child.type != "expression_statement":
            break
        expression = child.named_children[0] if child.named_children else None
        if expression is None or expression.type != "string":
            break
        found.append(node_text(expression)[1:-1])
    return found


FUNCTION_NODES = frozenset(
    {
        "function_declaration",
        "function_expression",
        "function",
        "arrow_function",
        "method_definition",
        "generator_function_declaration",
    }
)


def enclosing_function(node: Node) -> Optional[Node]:
    current = node.parent
    while current is not None:
        if current.type in FUNCTION_NODES:
            return current
        current = current.parent
    return None


def is_async(function: Node) -> bool:
    return any(child.type == "async" for child in function.children)


def _strip_prompts(source: str) -> str:
    # Only lines typed at a prompt are commands. Output lines are blanked so rows
    # still map onto file lines.
    lines = []
    for line in source.splitlines():
        stripped = line.lstrip()
        if stripped.startswith(("$ ", "# ")):
            lines.append(stripped[2:])
        else:
            lines.append("")
    return "\n".join(lines)


__all__ = [
    "FUNCTION_NODES",
    "HTML",
    "SCRIPT",
    "SHELL",
    "STYLE",
    "SyntaxParser",
    "callee_name",
    "directives",
    "enclosing_function",
    "is_async",
    "is_module",
    "language_family",
    "node_line",
    "node_text",
    "walk",
]
