"""Lint-style checks for script code examples (``eslint-compliance``)."""

from __future__ import annotations

from typing import Iterator, List, Set, Tuple

from tree_sitter import Node, Tree

from ..logging import get_logger
from ..models import SEVERITY_ERROR, SEVERITY_WARNING, CodeBlock, ValidationIssue, ValidatorResult
from ..syntax import SCRIPT, callee_name, language_family, node_line, node_text, walk
from .base import ValidationContext, Validator, passes_without_errors

_logger = get_logger("validators.code_style")

_DECLARATION_NODES = frozenset({"lexical_declaration", "variable_declaration"})
_REFERENCE_NODES = frozenset({"identifier", "type_identifier", "shorthand_property_identifier"})
_JSX_ELEMENT_NODES = frozenset({"jsx_self_closing_element", "jsx_opening_element"})


class CodeStyleValidator(Validator):
    """Flags code examples that would fail the project's lint rules."""

    name = "code-style-compliance"

    async def validate(self, context: ValidationContext) -> ValidatorResult:
        result = ValidatorResult(type=self.name)
        examples = 0
        for document in context.corpus.documents:
            issues: List[ValidationIssue] = []
            for block in document.code_blocks:
                if language_family(block.language) != SCRIPT:
                    continue
                tree = context.syntax.parse(block.language, block.body)
                if tree is None:
                    continue
                examples += 1
                issues.extend(self.check_block(block, tree))
            result.add(document.key, issues)
            _logger.debug("%s: %d style issues", document.path, len(issues))

        counts = {
            issue_type: sum(1 for issue in result.all_issues() if issue.type == issue_type)
            for issue_type in ("require_import", "explicit_any", "unused_variable", "schema_component_jsx")
        }
        result.passed = passes_without_errors(result)
        result.stats = {
            "requireImports": counts["require_import"],
            "explicitAny": counts["explicit_any"],
            "unusedVariables": counts["unused_variable"],
            "schemaComponents": counts["schema_component_jsx"],
            "totalExamples": examples,
            "totalDocuments": len(context.corpus.documents),
        }
        result.summary = (
            f"Checked {examples} script examples: {result.count(SEVERITY_ERROR)} errors, "
            f"{result.count(SEVERITY_WARNING)} warnings."
        )
        return result

    def check_block(self, block: CodeBlock, tree: Tree) -> List[ValidationIssue]:
        nodes = list(walk(tree.root_node))
        issues: List[ValidationIssue] = []

        for node in nodes:
            if node.type == "call_expression" and callee_name(node) == "require":
                function = node.child_by_field_name("function")
                if function is None or function.type != "identifier":
                    continue
                issues.append(
                    self._issue(
                        SEVERITY_ERROR,
                        "require_import",
                        "A `require()` style import is forbidden",
                        "Use ES module `import` statements instead",
                        block.line_for(node_line(node)),
                    )
                )
            elif node.type == "predefined_type" and node_text(node) == "any":
                issues.append(
                    self._issue(
                        SEVERITY_ERROR,
                        "explicit_any",
                        "Unexpected explicit `any` type",
                        "Use a specific type or `unknown` instead of `any`",
                        block.line_for(node_line(node)),
                    )
                )
            elif node.type in _JSX_ELEMENT_NODES:
                element = node.child_by_field_name("name")
                name = node_text(element) if element is not None else ""
                if name.endswith("Schema") and name[:1].isupper():
                    issues.append(
                        self._issue(
                            SEVERITY_WARNING,
                            "schema_component_jsx",
                            f"Schema component {name} is rendered as JSX",
                            f"Call the schema helper as a function inside curly braces: {{{name}(...)}}",
                            block.line_for(node_line(node)),
                            component=name,
                        )
                    )

        for name, binding in unused_bindings(tree):
            issues.append(
                self._issue(
                    SEVERITY_WARNING,
                    "unused_variable",
                    f"'{name}' is defined but never used",
                    "Remove the binding or prefix it with an underscore",
                    block.line_for(node_line(binding)),
                    variable=name,
                )
            )
        return issues

    def _issue(
        self,
        severity: str,
        issue_type: str,
        message: str,
        suggestion: str,
        line_number: int,
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


def unused_bindings(tree: Tree) -> List[Tuple[str, Node]]:
    """Top-level variables and imports that nothing references.

    Exported declarations count as used, as do names starting with ``_``.
    """
    bindings = list(_top_level_bindings(tree))
    if not bindings:
        return []
    declared = {(binding.start_byte, binding.end_byte) for _, binding in bindings}
    referenced: Set[str] = set()
    for node in _reference_candidates(tree.root_node):
        if (node.start_byte, node.end_byte) not in declared:
            referenced.add(node_text(node))
    return [
        (name, binding)
        for name, binding in bindings
        if name not in referenced and not name.startswith("_")
    ]


# ----------------------------------------------------------------------
# Internals


def _top_level_bindings(tree: Tree) -> Iterator[Tuple[str, Node]]:
    for statement in tree.root_node.named_children:
        if statement.type == "import_statement":
            yield from _import_bindings(statement)
        elif statement.type in _DECLARATION_NODES:
            for declarator in statement.named_children:
                if declarator.type != "variable_declarator":
                    continue
                target = declarator.child_by_field_name("name")
                if target is not None:
                    yield from _pattern_bindings(target)


def _import_bindings(statement: Node) -> Iterator[Tuple[str, Node]]:
    for clause in statement.named_children:
        if clause.type != "import_clause":
            continue
        for child in clause.named_children:
            if child.type == "identifier":
                yield node_text(child), child
            elif child.type == "namespace_import":
                for ident in child.named_children:
                    if ident.type == "identifier":
                        yield node_text(ident), ident
            elif child.type == "named_imports":
                for specifier in child.named_children:
                    if specifier.type != "import_specifier":
                        continue
                    local = specifier.child_by_field_name("alias") or specifier.child_by_field_name("name")
                    if local is not None:
                        yield node_text(local), local


def _pattern_bindings(pattern: Node) -> Iterator[Tuple[str, Node]]:
    if pattern.type == "identifier":
        yield node_text(pattern), pattern
        return
    for node in walk(pattern):
        if node.type == "shorthand_property_identifier_pattern":
            yield node_text(node), node
        elif node.type == "identifier" and node.parent is not None and node.parent.type in {
            "array_pattern",
            "rest_pattern",
            "assignment_pattern",
            "pair_pattern",
        }:
            if node.parent.type == "pair_pattern" and node.parent.child_by_field_name("value") != node:
                continue
            if node.parent.type == "assignment_pattern" and node.parent.child_by_field_name("left") != node:
                continue
            yield node_text(node), node


def _reference_candidates(root: Node) -> Iterator[Node]:
    for statement in root.named_children:
        if statement.type == "import_statement":
            continue
        for node in walk(statement):
            if node.type in _REFERENCE_NODES:
                yield node


__all__ = ["CodeStyleValidator", "unused_bindings"]
