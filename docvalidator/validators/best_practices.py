"""Best-practices validator: a fixed catalogue of heuristics over prose."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Sequence

from ..logging import get_logger
from ..models import (
    SEVERITY_ERROR,
    SEVERITY_INFO,
    SEVERITY_WARNING,
    Document,
    ValidationIssue,
    ValidatorResult,
)
from .base import ValidationContext, Validator, passes_without_errors

ARCHITECTURAL = "architectural"
TECHNICAL = "technical"
ACCESSIBILITY = "accessibility"

_logger = get_logger("validators.best_practices")


@dataclass(frozen=True)
class LineRule:
    """A predicate over one prose line.

    ``qualifier`` matching the same or an adjacent line suppresses the issue;
    ``unless_document`` matching anywhere in the body disables the rule.
    """

    category: str
    type: str
    severity: str
    pattern: Pattern[str]
    message: str
    suggestion: str
    qualifier: Optional[Pattern[str]] = None
    unless_document: Optional[Pattern[str]] = None


@dataclass(frozen=True)
class Principle:
    """An architectural principle that documents on a topic should reference."""

    principle: str
    keywords: Sequence[str]
    required_in_docs: Sequence[str]


@dataclass(frozen=True)
class Guideline:
    name: str
    keywords: Sequence[str]
    message: str


def _rx(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


_LEGACY_QUALIFIER = _rx(
    r"\b(?:legacy|deprecated|migrat\w*|replaced|instead of|no longer|not used|outdated|previously|older)\b"
)

LINE_RULES: Sequence[LineRule] = (
    LineRule(
        category=ARCHITECTURAL,
        type="architectural_claim",
        severity=SEVERITY_ERROR,
        pattern=_rx(
            r"\b(?:all\s+)?components\s+are\s+client\s+components\s+by\s+default"
            r"|\bclient\s+components\s+are\s+(?:the\s+)?default"
            r"|\bby\s+default,?\s+(?:all\s+)?components\s+(?:are|run|render)\s+(?:client|on\s+the\s+client)"
        ),
        message="Claims components are Client Components by default; the App Router renders Server Components by default",
        suggestion='State that components are Server Components by default and opt into the client with "use client"',
        qualifier=_rx(r"\b(?:pages\s+router|pages\s+directory|before\s+next\.?js\s*13)\b"),
    ),
    LineRule(
        category=ARCHITECTURAL,
        type="architectural_claim",
        severity=SEVERITY_ERROR,
        pattern=_rx(
            r"\b(?:every|all)\s+components?\s+(?:must|should|needs?\s+to)\s+"
            r"(?:use|include|start\s+with|declare)\s+[\"'`]?use\s+client"
        ),
        message='Claims every component needs "use client"; only interactive leaf components should',
        suggestion='Limit "use client" to leaf components that use state, effects or event handlers',
        qualifier=_rx(r"\b(?:interactive|hooks?|state|event\s+handlers?)\b"),
    ),
    LineRule(
        category=ARCHITECTURAL,
        type="architectural_claim",
        severity=SEVERITY_WARNING,
        pattern=_rx(r"\bfetch(?:ing)?\s+(?:your\s+)?data\s+(?:in|inside|from\s+within)\s+client\s+components?"),
        message="Recommends data fetching in Client Components; fetch data in Server Components",
        suggestion="Move data fetching into Server Components and pass data down as props",
        qualifier=_rx(r"\b(?:avoid|don'?t|do\s+not|never|instead|rather\s+than|only\s+when)\b"),
    ),
    LineRule(
        category=TECHNICAL,
        type="technical_inaccuracy",
        severity=SEVERITY_ERROR,
        pattern=re.compile(r"\bget(?:ServerSideProps|StaticProps|StaticPaths)\b"),
        message="Documentation references outdated data fetching methods from the Pages Router",
        suggestion="Use async Server Components with fetch() and cache() instead",
        qualifier=_LEGACY_QUALIFIER,
    ),
    LineRule(
        category=TECHNICAL,
        type="technical_inaccuracy",
        severity=SEVERITY_WARNING,
        pattern=_rx(r"\bpages\s+directory\b|(?<![\w/.-])/?pages/(?!api/)"),
        message="Documentation references the Pages Router directory instead of the App Router",
        suggestion="Describe routes in terms of the app/ directory",
        qualifier=_LEGACY_QUALIFIER,
    ),
    LineRule(
        category=TECHNICAL,
        type="technical_inaccuracy",
        severity=SEVERITY_WARNING,
        pattern=re.compile(r"next/head|<Head\b"),
        message="Documentation references the Head component instead of the Metadata API",
        suggestion="Export metadata or generateMetadata from the route segment",
        qualifier=_rx(r"\b(?:legacy|deprecated|metadata\s+api|migrat\w*|instead\s+of|replaced)\b"),
    ),
    LineRule(
        category=TECHNICAL,
        type="technical_inaccuracy",
        severity=SEVERITY_WARNING,
        pattern=_rx(r"(?<![\w.-])/?pages/api/"),
        message="Documentation references API Routes instead of Route Handlers",
        suggestion="Document Route Handlers (app/**/route.ts) instead",
        qualifier=_LEGACY_QUALIFIER,
        unless_document=_rx(r"route\s+handlers?|\broute\.(?:js|ts)\b"),
    ),
    LineRule(
        category=TECHNICAL,
        type="technical_inaccuracy",
        severity=SEVERITY_WARNING,
        pattern=re.compile(r"\b(?:componentWillMount|componentWillReceiveProps|componentWillUpdate)\b"),
        message="Documentation recommends a deprecated React lifecycle method",
        suggestion="Use effects or the non-deprecated lifecycle methods instead",
        qualifier=re.compile(r"UNSAFE_|\b(?:[Dd]eprecated|[Ll]egacy)\b"),
    ),
    LineRule(
        category=ACCESSIBILITY,
        type="accessibility_antipattern",
        severity=SEVERITY_WARNING,
        pattern=_rx(
            r"\boutline\s*:\s*(?:none|0)\b"
            r"|\bremov(?:e|ing)\s+(?:the\s+)?focus\s+(?:outlines?|rings?|indicators?)"
        ),
        message="Advises removing visible focus indicators, which breaks keyboard navigation",
        suggestion="Keep a visible focus style, e.g. with :focus-visible",
        qualifier=_rx(r"focus-visible|\b(?:replace|custom\s+focus|never|don'?t|do\s+not|avoid)\b"),
    ),
)

ARCHITECTURE_PRINCIPLES: Sequence[Principle] = (
    Principle(
        principle="Server Components for data fetching, Client Components at leaf nodes only",
        keywords=("server component", "client component", "use client", "leaf node"),
        required_in_docs=("server-components", "component-system", "architecture"),
    ),
    Principle(
        principle="Implement proper Suspense boundaries following streaming patterns",
        keywords=("suspense", "streaming", "loading", "fallback"),
        required_in_docs=("streaming", "suspense", "loading-ui"),
    ),
    Principle(
        principle="Use React's cache() for deduplication and parallel data fetching",
        keywords=("cache()", "deduplication", "parallel fetching"),
        required_in_docs=("data-flow", "fetching"),
    ),
    Principle(
        principle="Keep UI components separate from data fetching logic",
        keywords=("separation of concerns", "data fetching", "ui component"),
        required_in_docs=("component", "architecture", "data-flow"),
    ),
    Principle(
        principle="TypeScript interfaces instead of 'any', underscore prefix for unused variables",
        keywords=("typescript", "interface", "type safety", "underscore prefix"),
        required_in_docs=("typescript", "code-quality", "standards"),
    ),
    Principle(
        principle="Content security policies (dev vs prod), proper error boundaries",
        keywords=("error boundary", "security policy", "csp"),
        required_in_docs=("error-handling", "security"),
    ),
    Principle(
        principle="Theme-based styling with centralized CSS variables",
        keywords=("theme", "css variables", "styling"),
        required_in_docs=("styling", "theming", "design-system"),
    ),
    Principle(
        principle="Performance budget: <3s initial load (3G), <300KB JS bundle",
        keywords=("performance budget", "initial load", "bundle size"),
        required_in_docs=("performance", "optimization"),
    ),
    Principle(
        principle="Core Web Vitals targets: LCP <2.5s, TBT <200ms, CLS <0.1",
        keywords=("web vitals", "lcp", "tbt", "cls"),
        required_in_docs=("performance", "web-vitals"),
    ),
)

ACCESSIBILITY_GUIDELINES: Sequence[Guideline] = (
    Guideline(
        name="ARIA attributes",
        keywords=("aria-", "aria ", "role="),
        message="Component documentation should mention proper ARIA attributes",
    ),
    Guideline(
        name="Keyboard navigation",
        keywords=("keyboard", "focus", "tab index", "tabindex"),
        message="Component documentation should address keyboard navigation",
    ),
    Guideline(
        name="Color contrast",
        keywords=("contrast", "wcag", "color blind", "colorblind", "colour"),
        message="Component documentation should mention color contrast requirements",
    ),
    Guideline(
        name="Screen reader",
        keywords=("screen reader", "alt text", "alternative text"),
        message="Component documentation should address screen reader compatibility",
    ),
)

NON_DESCRIPTIVE_LINK_TEXT = frozenset(
    {"click here", "here", "read more", "more", "this link", "link", "this"}
)

_STAT_CATEGORIES = {
    ARCHITECTURAL: "architecturalIssues",
    TECHNICAL: "technicalInaccuracies",
    ACCESSIBILITY: "accessibilityIssues",
}


def _name_tokens(document: Document) -> List[str]:
    return [token for token in re.split(r"[^a-z0-9]+", document.path.stem.lower()) if token]


def is_ui_document(document: Document) -> bool:
    stem = document.path.stem.lower()
    doc_type = str(document.front_matter.get("type") or "").lower()
    return (
        "component" in stem
        or "component" in document.path.parent.name.lower()
        or "ui" in _name_tokens(document)
        or doc_type in {"component", "ui"}
    )


def relevant_principles(document: Document) -> List[Principle]:
    name = document.path.name.lower()
    directory = document.path.parent.name.lower()
    doc_type = str(document.front_matter.get("type") or "").lower()
    return [
        principle
        for principle in ARCHITECTURE_PRINCIPLES
        if any(
            required in name or required in directory or (doc_type and required in doc_type)
            for required in principle.required_in_docs
        )
    ]


def check_line_rules(
    document: Document, rules: Sequence[LineRule] = LINE_RULES, source: str = "best-practices"
) -> List[ValidationIssue]:
    """Apply every line rule to the prose lines of ``document``."""
    prose = document.prose_lines()
    by_line: Dict[int, str] = dict(prose)
    issues: List[ValidationIssue] = []
    for rule in rules:
        if rule.unless_document is not None and rule.unless_document.search(document.body):
            continue
        for line_number, line in prose:
            if not rule.pattern.search(line):
                continue
            if rule.qualifier is not None and any(
                rule.qualifier.search(by_line.get(number, ""))
                for number in (line_number - 1, line_number, line_number + 1)
            ):
                continue
            issues.append(
                ValidationIssue(
                    severity=rule.severity,
                    type=rule.type,
                    message=rule.message,
                    suggestion=rule.suggestion,
                    line_number=line_number,
                    source=source,
                    details={"category": rule.category, "line": line.strip()},
                )
            )
    return issues


class BestPracticesValidator(Validator):
    """Checks prose against architectural, accuracy and accessibility rules."""

    name = "best-practices"

    async def validate(self, context: ValidationContext) -> ValidatorResult:
        result = ValidatorResult(type=self.name)
        for document in context.corpus.documents:
            issues = check_line_rules(document, source=self.name)
            principles, referenced = self._check_principles(document)
            issues.extend(principles)
            issues.extend(self._check_accessibility(document))
            result.add(document.key, issues)
            result.details[document.key] = {
                "principlesChecked": len(relevant_principles(document)),
                "principlesReferenced": referenced,
                "uiDocument": is_ui_document(document),
            }

        stats = {key: 0 for key in _STAT_CATEGORIES.values()}
        for issue in result.all_issues():
            category = str(issue.details.get("category", ""))
            if category in _STAT_CATEGORIES:
                stats[_STAT_CATEGORIES[category]] += 1
        stats["totalDocuments"] = len(context.corpus.documents)
        result.stats = stats
        result.passed = passes_without_errors(result)
        result.summary = (
            f"{stats['architecturalIssues']} architectural, {stats['technicalInaccuracies']} technical accuracy "
            f"and {stats['accessibilityIssues']} accessibility issues across {stats['totalDocuments']} documents."
        )
        _logger.debug("Best-practices stats: %s", stats)
        return result

    def _check_principles(self, document: Document) -> tuple[List[ValidationIssue], int]:
        text = document.prose_text().lower()
        issues: List[ValidationIssue] = []
        referenced = 0
        for principle in relevant_principles(document):
            if any(keyword in text for keyword in principle.keywords):
                referenced += 1
                continue
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_WARNING,
                    type="missing_principle",
                    message=f"Documentation should reference key principle: {principle.principle}",
                    suggestion="Consider adding information about this core architectural principle",
                    source=self.name,
                    details={"category": ARCHITECTURAL, "principle": principle.principle},
                )
            )
        return issues, referenced

    def _check_accessibility(self, document: Document) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        if is_ui_document(document):
            text = document.prose_text().lower()
            for guideline in ACCESSIBILITY_GUIDELINES:
                if any(keyword in text for keyword in guideline.keywords):
                    continue
                issues.append(
                    ValidationIssue(
                        severity=SEVERITY_WARNING,
                        type="missing_accessibility",
                        message=guideline.message,
                        suggestion=f"Add {guideline.name} guidelines to component documentation",
                        source=self.name,
                        details={"category": ACCESSIBILITY, "guideline": guideline.name},
                    )
                )
        for link in document.links:
            if link.text.strip().lower() in NON_DESCRIPTIVE_LINK_TEXT:
                issues.append(
                    ValidationIssue(
                        severity=SEVERITY_INFO,
                        type="non_descriptive_link_text",
                        message=f'Link text "{link.text}" does not describe its destination',
                        suggestion="Use link text that makes sense out of context for screen reader users",
                        line_number=link.line_number,
                        source=self.name,
                        details={"category": ACCESSIBILITY, "href": link.href},
                    )
                )
        return issues


__all__ = [
    "ACCESSIBILITY_GUIDELINES",
    "ARCHITECTURE_PRINCIPLES",
    "BestPracticesValidator",
    "LINE_RULES",
    "LineRule",
    "check_line_rules",
    "is_ui_document",
    "relevant_principles",
]
