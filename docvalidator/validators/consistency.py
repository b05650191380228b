"""Consistency validator: terminology, internal links and code examples."""

from __future__ import annotations

import ipaddress
import re
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import unquote, urlsplit

from tree_sitter import Node, Tree

from ..logging import get_logger
from ..models import (
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    CodeBlock,
    Document,
    ValidationIssue,
    ValidatorResult,
)
from ..syntax import (
    HTML,
    SCRIPT,
    SHELL,
    STYLE,
    callee_name,
    directives,
    enclosing_function,
    is_async,
    is_module,
    language_family,
    node_line,
    node_text,
    walk,
)
from .base import ValidationContext, Validator, passes_without_errors

DEFAULT_TERMINOLOGY: Mapping[str, str] = {
    # Next.js
    "server component": "Server Component",
    "client component": "Client Component",
    "static rendering": "Static Rendering",
    "dynamic rendering": "Dynamic Rendering",
    "server actions": "Server Actions",
    "app router": "App Router",
    "page router": "Page Router",
    "route handlers": "Route Handlers",
    # React
    "use client": '"use client"',
    "use server": '"use server"',
    "react hook": "React Hook",
    "error boundary": "Error Boundary",
    "suspense boundary": "Suspense Boundary",
}

EXTERNAL_SCHEMES = ("http", "https", "mailto", "ftp", "tel")

_CLIENT_HOOKS = {"useState", "useEffect", "useReducer", "useLayoutEffect"}
_BROWSER_GLOBALS = {"window", "document"}
_LEGACY_DATA_APIS = {"getStaticProps", "getServerSideProps", "getStaticPaths"}
_IDENTIFIER_NODES = {
    "identifier",
    "property_identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
}
_JSX_HANDLER = re.compile(r"^on[A-Z]")
_NEXT_IMAGE_IMPORT = re.compile(r"""\bimport\s+Image\b[^;\n]*?\bfrom\s+['"]next/image['"]""")
_HOST = re.compile(r"^(?:localhost|[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9-]+)+)$")

_BROKEN_LINK_TYPES = {"broken_anchor", "broken_file_link", "broken_cross_reference"}
_OUTDATED_EXAMPLE_TYPES = {"missing_use_client", "outdated_nextjs_pattern", "missing_cache"}

_logger = get_logger("validators.consistency")


def check_terminology(
    document: Document, terminology: Mapping[str, str], source: str = "consistency"
) -> List[ValidationIssue]:
    """Report non-canonical spellings of terms on prose lines.

    A term is skipped entirely when its canonical form already appears in the
    document body.
    """
    issues: List[ValidationIssue] = []
    prose = document.prose_lines()
    for term, canonical in terminology.items():
        if canonical in document.body:
            continue
        pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
        for line_number, line in prose:
            if not pattern.search(line) or canonical in line:
                continue
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_WARNING,
                    type="terminology",
                    message=f'Inconsistent terminology: "{term}" should be "{canonical}"',
                    suggestion=f'Replace with standard form: "{canonical}"',
                    line_number=line_number,
                    source=source,
                    details={"term": term, "standardForm": canonical, "line": line.strip()},
                )
            )
    return issues


def is_external(href: str) -> bool:
    if href.startswith("//"):
        return True
    scheme = href.split(":", 1)[0].lower() if ":" in href else ""
    return scheme in EXTERNAL_SCHEMES


def _well_formed_external(href: str) -> bool:
    if any(char.isspace() for char in href):
        return False
    try:
        parts = urlsplit(f"https:{href}" if href.startswith("//") else href)
        hostname = parts.hostname or ""
    except ValueError:
        return False
    if parts.scheme == "mailto":
        local, _, domain = parts.path.partition("@")
        return bool(local) and bool(domain)
    if parts.scheme == "tel":
        return any(char.isdigit() for char in parts.path)
    if _HOST.match(hostname):
        return True
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


class _ImageCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.images: List[Tuple[int, Dict[str, str]]] = []

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if tag.lower() == "img":
            self.images.append((self.getpos()[0], {key: value or "" for key, value in attrs}))


def html_images(html: str) -> List[Tuple[int, Dict[str, str]]]:
    """``(line, attributes)`` for every ``<img>`` tag; lines are 1-based within ``html``."""
    collector = _ImageCollector()
    collector.feed(html)
    collector.close()
    return collector.images


def image_suggestion(attributes: Mapping[str, str]) -> str:
    src = attributes.get("src") or "/path/to/image.jpg"
    alt = attributes.get("alt") or "Description"
    return (
        "Use the Next.js Image component for automatic optimization: "
        f'<Image src="{src}" alt="{alt}" width={{500}} height={{300}} />'
    )


def imports_next_image(document: Document) -> bool:
    return bool(_NEXT_IMAGE_IMPORT.search(document.body))


class ConsistencyValidator(Validator):
    """Ensures consistent terminology, working links and current code examples."""

    name = "consistency"

    async def validate(self, context: ValidationContext) -> ValidatorResult:
        terminology = dict(DEFAULT_TERMINOLOGY)
        terminology.update(context.settings.terminology)
        corpus = context.corpus.by_path()

        result = ValidatorResult(type=self.name)
        totals = {"totalLinks": 0, "totalExamples": 0}
        for document in context.corpus.documents:
            totals["totalLinks"] += len(document.links)
            totals["totalExamples"] += len(document.code_blocks)
            result.add(document.key, check_terminology(document, terminology, self.name))
            result.add(document.key, self._check_links(document, context, corpus))
            result.add(document.key, self._check_examples(document, context))

        issues = result.all_issues()
        result.stats = {
            "terminologyIssues": sum(1 for issue in issues if issue.type == "terminology"),
            "brokenLinks": sum(1 for issue in issues if issue.type in _BROKEN_LINK_TYPES),
            "outOfDateExamples": sum(1 for issue in issues if issue.type in _OUTDATED_EXAMPLE_TYPES),
            "totalLinks": totals["totalLinks"],
            "totalExamples": totals["totalExamples"],
            "totalDocuments": len(context.corpus.documents),
        }
        _logger.debug("Consistency stats: %s", result.stats)
        result.passed = passes_without_errors(result)
        result.summary = (
            f"{result.stats['terminologyIssues']} terminology issues, "
            f"{result.stats['brokenLinks']}/{result.stats['totalLinks']} broken links, "
            f"{result.stats['outOfDateExamples']}/{result.stats['totalExamples']} outdated code examples."
        )
        return result

    # ------------------------------------------------------------------
    # Links

    def _check_links(
        self,
        document: Document,
        context: ValidationContext,
        corpus: Mapping[Path, Document],
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for link in document.links:
            href = link.href.strip()
            if not href:
                issues.append(
                    self._issue(
                        SEVERITY_WARNING,
                        "empty_link",
                        f'Link "{link.text}" has an empty target',
                        "Point the link at a heading, document or URL",
                        link.line_number,
                    )
                )
                continue
            if is_external(href):
                if context.settings.skip_external_links or _well_formed_external(href):
                    continue
                issues.append(
                    self._issue(
                        SEVERITY_WARNING,
                        "malformed_external_link",
                        f'Malformed external link: "{href}"',
                        "Fix the URL so it has a valid scheme and host",
                        link.line_number,
                        href=href,
                    )
                )
                continue
            if href.startswith("#"):
                anchor = unquote(href[1:])
                if anchor not in document.heading_ids:
                    issues.append(
                        self._issue(
                            SEVERITY_ERROR,
                            "broken_anchor",
                            f'Broken anchor link: "{href}" - no matching heading ID found',
                            "Update the anchor to match an existing heading ID or add the missing heading",
                            link.line_number,
                            href=href,
                        )
                    )
                continue
            if ":" in href.split("/", 1)[0]:
                # Other URI schemes (data:, vscode:) are not resolvable here.
                continue
            issues.extend(self._check_file_link(document, context, corpus, href, link.line_number))
        return issues

    def _check_file_link(
        self,
        document: Document,
        context: ValidationContext,
        corpus: Mapping[Path, Document],
        href: str,
        line_number: int,
    ) -> List[ValidationIssue]:
        target, _, fragment = href.partition("#")
        target = unquote(target.split("?", 1)[0])
        if not target:
            return []
        if target.startswith("/"):
            resolved = (context.project_root / target.lstrip("/")).resolve()
        else:
            resolved = (document.path.parent / target).resolve()
        if not resolved.exists():
            return [
                self._issue(
                    SEVERITY_ERROR,
                    "broken_file_link",
                    f'Broken file link: "{href}" - file not found',
                    "Update the link to point to an existing file or create the missing file",
                    line_number,
                    href=href,
                )
            ]
        target_doc = corpus.get(resolved)
        anchor = unquote(fragment)
        if target_doc is not None and anchor and anchor not in target_doc.heading_ids:
            return [
                self._issue(
                    SEVERITY_ERROR,
                    "broken_cross_reference",
                    f'Broken cross-reference: "{href}" - no heading "{anchor}" in {resolved.name}',
                    "Update the fragment to match a heading in the linked document",
                    line_number,
                    href=href,
                )
            ]
        return []

    # ------------------------------------------------------------------
    # Code examples

    def _check_examples(self, document: Document, context: ValidationContext) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        has_image_import = imports_next_image(document)
        for block in document.code_blocks:
            if not block.language:
                if context.settings.require_language:
                    issues.append(
                        self._issue(
                            SEVERITY_WARNING,
                            "missing_language",
                            "Code block is missing language specifier",
                            "Add a language specifier to the code block, e.g., ```jsx or ```tsx",
                            block.line_number,
                        )
                    )
                continue
            family = language_family(block.language)
            if family == HTML:
                if not has_image_import:
                    issues.extend(
                        self._image_issues(
                            (block.line_for(row - 1), attrs) for row, attrs in html_images(block.body)
                        )
                    )
                continue
            tree = context.syntax.parse(block.language, block.body)
            if tree is None:
                continue
            if family == SCRIPT:
                issues.extend(self._check_script(block, tree, has_image_import))
            elif family == STYLE:
                issues.extend(self._check_style(block, tree))
            elif family == SHELL:
                issues.extend(self._check_shell(block, tree))

        if not has_image_import:
            for fragment in document.html_fragments:
                issues.extend(
                    self._image_issues(
                        (fragment.line_number + row - 1, attrs) for row, attrs in html_images(fragment.html)
                    )
                )
        return issues

    def _check_script(self, block: CodeBlock, tree: Tree, has_image_import: bool) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        nodes = list(walk(tree.root_node))
        module = is_module(tree)

        if module and "use client" not in directives(tree) and any(
            self._is_interactive(node) for node in nodes
        ):
            issues.append(
                self._issue(
                    SEVERITY_ERROR,
                    "missing_use_client",
                    'Client Component code example is missing "use client" directive',
                    'Add "use client" directive at the top of the code example',
                    block.line_number,
                )
            )

        legacy = sorted(
            {
                node_text(node)
                for node in nodes
                if node.type in _IDENTIFIER_NODES and node_text(node) in _LEGACY_DATA_APIS
            }
        )
        if legacy:
            issues.append(
                self._issue(
                    SEVERITY_ERROR,
                    "outdated_nextjs_pattern",
                    f"Code example uses outdated Next.js Pages Router patterns: {', '.join(legacy)}",
                    "Update to App Router patterns (async Server Components and Route Handlers)",
                    block.line_number,
                    apis=legacy,
                )
            )

        uncached = self._uncached_fetch(nodes)
        if uncached is not None:
            issues.append(
                self._issue(
                    SEVERITY_WARNING,
                    "missing_cache",
                    "Data fetching example does not use React cache() for deduplication",
                    "Wrap data fetching functions in cache() to deduplicate requests",
                    block.line_for(node_line(uncached)),
                )
            )

        if not has_image_import:
            issues.extend(
                self._image_issues(
                    (block.line_for(node_line(node)), self._jsx_attributes(node))
                    for node in nodes
                    if node.type in {"jsx_self_closing_element", "jsx_opening_element"}
                    and self._jsx_name(node) == "img"
                )
            )
        return issues

    @staticmethod
    def _is_interactive(node: Node) -> bool:
        if node.type == "call_expression":
            return callee_name(node) in _CLIENT_HOOKS
        if node.type == "jsx_attribute":
            name = node.named_children[0] if node.named_children else None
            return name is not None and bool(_JSX_HANDLER.match(node_text(name)))
        if node.type == "member_expression":
            obj = node.child_by_field_name("object")
            return obj is not None and obj.type == "identifier" and node_text(obj) in _BROWSER_GLOBALS
        return False

    @staticmethod
    def _uncached_fetch(nodes: Sequence[Node]) -> Optional[Node]:
        cache_calls = [node for node in nodes if node.type == "call_expression" and callee_name(node) == "cache"]
        cached_names = set()
        for call in cache_calls:
            arguments = call.child_by_field_name("arguments")
            if arguments is None:
                continue
            cached_names.update(node_text(arg) for arg in arguments.named_children if arg.type == "identifier")

        for node in nodes:
            if node.type != "call_expression" or callee_name(node) != "fetch":
                continue
            function = enclosing_function(node)
            if function is None or not is_async(function):
                continue
            if _inside_cache_call(node):
                continue
            if _function_name(function) in cached_names:
                continue
            return node
        return None

    @staticmethod
    def _jsx_name(node: Node) -> str:
        name = node.child_by_field_name("name")
        return node_text(name) if name is not None else ""

    @staticmethod
    def _jsx_attributes(node: Node) -> Dict[str, str]:
        attributes: Dict[str, str] = {}
        for child in node.named_children:
            if child.type != "jsx_attribute" or not child.named_children:
                continue
            key = node_text(child.named_children[0])
            value = child.named_children[1] if len(child.named_children) > 1 else None
            if value is None:
                attributes[key] = ""
            elif value.type == "string":
                attributes[key] = node_text(value)[1:-1]
            else:
                attributes[key] = node_text(value)
        return attributes

    def _check_style(self, block: CodeBlock, tree: Tree) -> List[ValidationIssue]:
        rows = [node_line(node) for node in walk(tree.root_node) if node.type == "important"]
        if not rows:
            return []
        return [
            self._issue(
                SEVERITY_WARNING,
                "css_important",
                "Code example uses !important which is discouraged",
                "Use more specific selectors or CSS variables instead of !important",
                block.line_for(rows[0]),
                occurrences=len(rows),
            )
        ]

    def _check_shell(self, block: CodeBlock, tree: Tree) -> List[ValidationIssue]:
        found: Dict[str, int] = {}
        for node in walk(tree.root_node):
            if node.type != "command":
                continue
            for kind in dangerous_command_kinds(_command_words(node)):
                found.setdefault(kind, block.line_for(node_line(node)))
        return [
            self._issue(
                SEVERITY_WARNING,
                "dangerous_command",
                f"Shell example contains potentially dangerous command: {kind}",
                "Add warning notes when including potentially destructive commands",
                line_number,
                command=kind,
            )
            for kind, line_number in found.items()
        ]

    def _image_issues(self, images: Iterable[Tuple[int, Mapping[str, str]]]) -> List[ValidationIssue]:
        return [
            self._issue(
                SEVERITY_WARNING,
                "img_instead_of_optimized",
                "Uses <img> instead of the optimized Next.js Image component",
                image_suggestion(attributes),
                line_number,
            )
            for line_number, attributes in images
        ]

    def _issue(
        self,
        severity: str,
        issue_type: str,
        message: str,
        suggestion: str,
        line_number: Optional[int],
        **details: object,
    ) -> ValidationIssue:
        return ValidationIssue(
            severity=severity,
            type=issue_type,
            message=message,
            suggestion=suggestion,
            line_number=line_number,
            source=self.name,
            details=details,
        )


def dangerous_command_kinds(words: Sequence[str]) -> List[str]:
    """Classify one shell command (as a word list) into dangerous command kinds."""
    if not words:
        return []
    kinds: List[str] = []
    name = words[0].rsplit("/", 1)[-1]
    args = list(words[1:])
    if name in {"sudo", "doas"}:
        kinds.append(name)
        nested = [arg for arg in args if not arg.startswith("-")]
        if nested:
            start = args.index(nested[0])
            kinds.extend(kind for kind in dangerous_command_kinds(args[start:]) if kind not in kinds)
        return kinds
    if name == "rm":
        short = "".join(arg[1:] for arg in args if arg.startswith("-") and not arg.startswith("--"))
        recursive = "r" in short.lower() or "--recursive" in args
        force = "f" in short or "--force" in args
        if recursive and force:
            kinds.append("rm -rf")
    elif name == "chmod" and any(arg in {"777", "0777", "a+rwx"} for arg in args):
        kinds.append("chmod 777")
    return kinds


def _command_words(node: Node) -> List[str]:
    words: List[str] = []
    for child in node.named_children:
        if child.type == "variable_assignment":
            continue
        if child.type == "command_name":
            words.append(node_text(child))
        elif child.type in {"word", "number", "concatenation"}:
            words.append(node_text(child))
        elif child.type in {"string", "raw_string"}:
            words.append(node_text(child)[1:-1])
    return words


def _inside_cache_call(node: Node) -> bool:
    current = node.parent
    while current is not None:
        if current.type == "call_expression" and callee_name(current) == "cache":
            return True
        current = current.parent
    return False


def _function_name(function: Node) -> str:
    name = function.child_by_field_name("name")
    if name is not None:
        return node_text(name)
    parent = function.parent
    if parent is not None and parent.type == "variable_declarator":
        declared = parent.child_by_field_name("name")
        return node_text(declared) if declared is not None else ""
    return ""


__all__ = [
    "ConsistencyValidator",
    "DEFAULT_TERMINOLOGY",
    "check_terminology",
    "dangerous_command_kinds",
    "html_images",
    "image_suggestion",
    "imports_next_image",
    "is_external",
]
