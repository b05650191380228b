"""Coverage validator: which documentation categories and code areas are documented."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Optional, Pattern, Sequence

from ..logging import get_logger
from ..models import SEVERITY_ERROR, SEVERITY_WARNING, Document, ValidationIssue, ValidatorResult
from .base import ValidationContext, Validator

_logger = get_logger("validators.coverage")


@dataclass(frozen=True)
class Category:
    """An area of the project that is expected to have documentation."""

    name: str
    doc_globs: Sequence[str]
    tags: Sequence[str]
    heading: Pattern[str]
    source_globs: Sequence[str]
    min_word_count: int


@dataclass(frozen=True)
class Feature:
    name: str
    source_globs: Sequence[str]

    @property
    def slug(self) -> str:
        return re.sub(r"\s+", "-", self.name.lower())


def _heading(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


CATEGORIES: Sequence[Category] = (
    Category(
        name="Architecture",
        doc_globs=("**/architecture*", "**/overview*"),
        tags=("architecture",),
        heading=_heading(r"^(?:system\s+|project\s+)?architecture\b"),
        source_globs=(),
        min_word_count=300,
    ),
    Category(
        name="Server Components",
        doc_globs=("**/server-components*",),
        tags=("server-components", "server-component"),
        heading=_heading(r"^server\s+components?\b"),
        source_globs=("app/**/page.tsx", "app/**/page.jsx", "src/app/**/page.tsx"),
        min_word_count=300,
    ),
    Category(
        name="Client Components",
        doc_globs=("**/client-components*",),
        tags=("client-components", "client-component"),
        heading=_heading(r"^client\s+components?\b"),
        source_globs=("components/**/*-client.tsx", "app/**/*-client.tsx", "src/**/*-client.tsx"),
        min_word_count=300,
    ),
    Category(
        name="UI Components",
        doc_globs=("components/**/*", "**/ui-components*"),
        tags=("ui-components", "ui", "components"),
        heading=_heading(r"^ui\s+components?\b"),
        source_globs=("components/ui/**/*.tsx", "src/components/ui/**/*.tsx"),
        min_word_count=200,
    ),
    Category(
        name="Layout Components",
        doc_globs=("**/layout*",),
        tags=("layout", "layouts"),
        heading=_heading(r"^layouts?\b"),
        source_globs=("app/**/layout.tsx", "app/**/layout.jsx", "src/app/**/layout.tsx"),
        min_word_count=200,
    ),
    Category(
        name="Features",
        doc_globs=("**/features*", "features/**/*"),
        tags=("features", "feature"),
        heading=_heading(r"^features?\b"),
        source_globs=(),
        min_word_count=200,
    ),
    Category(
        name="Data Fetching",
        doc_globs=("**/data-fetching*", "**/data-flow*"),
        tags=("data-fetching", "data-flow"),
        heading=_heading(r"^data\s+(?:fetching|flow)\b"),
        source_globs=("lib/data/**/*.ts", "lib/data/**/*.js", "src/lib/data/**/*.ts"),
        min_word_count=300,
    ),
    Category(
        name="Database Schema",
        doc_globs=("**/database*", "**/schema*"),
        tags=("database", "schema"),
        heading=_heading(r"^database\b"),
        source_globs=("lib/database/**/*.ts", "lib/db/**/*.ts", "supabase/**/*.ts", "prisma/schema.prisma"),
        min_word_count=300,
    ),
    Category(
        name="API Routes",
        doc_globs=("**/api-routes*", "**/route-handlers*", "api/**/*"),
        tags=("api", "api-routes", "route-handlers"),
        heading=_heading(r"^(?:api\s+routes?|route\s+handlers?)\b"),
        source_globs=("app/api/**/route.ts", "app/api/**/route.js", "src/app/api/**/route.ts", "pages/api/**/*"),
        min_word_count=300,
    ),
    Category(
        name="Authentication",
        doc_globs=("**/authentication*", "**/auth*"),
        tags=("authentication", "auth"),
        heading=_heading(r"^auth(?:entication)?\b"),
        source_globs=("lib/auth/**/*.ts", "app/auth/**/*.tsx", "src/lib/auth/**/*.ts"),
        min_word_count=400,
    ),
    Category(
        name="SEO Features",
        doc_globs=("**/seo*",),
        tags=("seo",),
        heading=_heading(r"^seo\b"),
        source_globs=("app/**/opengraph-image.tsx", "app/**/metadata.ts", "app/sitemap.ts", "app/robots.ts"),
        min_word_count=300,
    ),
    Category(
        name="Performance Optimizations",
        doc_globs=("**/performance*", "**/optimization*"),
        tags=("performance", "optimization"),
        heading=_heading(r"^performance\b"),
        source_globs=("middleware.ts", "next.config.js", "next.config.mjs", "next.config.ts"),
        min_word_count=400,
    ),
)

FEATURES: Sequence[Feature] = (
    Feature(name="Authentication", source_globs=("lib/auth/**/*", "app/auth/**/*", "src/lib/auth/**/*")),
    Feature(name="API Routes", source_globs=("app/api/**/*", "pages/api/**/*", "src/app/api/**/*")),
    Feature(name="Database Schema", source_globs=("lib/database/**/*", "lib/db/**/*", "prisma/schema.prisma")),
    Feature(name="State Management", source_globs=("lib/store/**/*", "store/**/*", "src/store/**/*")),
    Feature(name="Middleware", source_globs=("middleware.ts", "middleware.js", "src/middleware.ts")),
    Feature(name="Configuration", source_globs=("next.config.js", "next.config.mjs", "next.config.ts")),
)

_TAG_KEYS = ("category", "categories", "tags", "type")
_COMPONENT_SUFFIXES = (".tsx", ".jsx")
_NON_COMPONENT_MARKERS = (".test.", ".spec.", ".stories.")
_INTRO_HEADING = re.compile(r"^(?:introduction|.*overview|.*about)", re.IGNORECASE)
_USAGE_HEADING = re.compile(r"^(?:usage|.*examples?|.*how to use)", re.IGNORECASE)
_API_HEADING = re.compile(r"^(?:api|.*props|.*reference|.*interface)", re.IGNORECASE)


@lru_cache(maxsize=None)
def _glob_regex(pattern: str) -> Pattern[str]:
    parts: List[str] = []
    index = 0
    while index < len(pattern):
        if pattern.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
        elif pattern.startswith("**", index):
            parts.append(".*")
            index += 2
        elif pattern[index] == "*":
            parts.append("[^/]*")
            index += 1
        elif pattern[index] == "?":
            parts.append("[^/]")
            index += 1
        else:
            parts.append(re.escape(pattern[index]))
            index += 1
    return re.compile("".join(parts) + r"\Z")


def glob_match(path: str, pattern: str) -> bool:
    """Match a posix path against a glob where ``**/`` spans zero or more directories."""
    return bool(_glob_regex(pattern).match(path))


def _matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(glob_match(path, pattern) for pattern in patterns)


def _document_tags(document: Document) -> List[str]:
    tags: List[str] = []
    for key in _TAG_KEYS:
        value = document.front_matter.get(key)
        values = value if isinstance(value, list) else [value]
        for item in values:
            if isinstance(item, (str, int, float)) and str(item).strip():
                tags.append(re.sub(r"[\s_]+", "-", str(item).strip().lower()))
    return tags


def word_count(document: Document) -> int:
    return len(document.prose_text().split())


def component_name(path: str) -> Optional[str]:
    """Component name for a source file, or ``None`` when it is not a component."""
    pure = PurePosixPath(path)
    if pure.suffix not in _COMPONENT_SUFFIXES or any(marker in pure.name for marker in _NON_COMPONENT_MARKERS):
        return None
    stem = pure.stem
    in_components_dir = any(part.lower() == "components" for part in pure.parts[:-1])
    if not (in_components_dir or stem[:1].isupper()):
        return None
    return re.sub(r"-client$", "", stem)


def name_forms(name: str) -> List[str]:
    """PascalCase and kebab-case spellings of a component name."""
    words = [word for word in re.split(r"[-_\s]+|(?<=[a-z0-9])(?=[A-Z])", name) if word]
    pascal = "".join(word[:1].upper() + word[1:] for word in words)
    kebab = "-".join(word.lower() for word in words)
    return list(dict.fromkeys([name, pascal, kebab]))


def quality_label(stats: Dict[str, Any], min_word_count: int) -> str:
    words = stats["wordCount"]
    if words < min_word_count / 2:
        return "poor"
    if words < min_word_count:
        return "needs_improvement"
    intro_and_usage = stats["hasIntroduction"] and stats["hasUsageExamples"]
    if intro_and_usage and stats["hasAPIReference"] and stats["codeExampleCount"] >= 3:
        return "excellent"
    if intro_and_usage and stats["codeExampleCount"] >= 2:
        return "good"
    return "adequate"


class CoverageValidator(Validator):
    """Computes the documented share of the category catalogue."""

    name = "coverage"

    def __init__(
        self,
        categories: Sequence[Category] = CATEGORIES,
        features: Sequence[Feature] = FEATURES,
    ) -> None:
        self._categories = categories
        self._features = features

    async def validate(self, context: ValidationContext) -> ValidatorResult:
        settings = context.settings
        corpus = context.corpus
        docs_rel = {document.key: self._doc_relative(document, context) for document in corpus.documents}
        docs_dir_rel = self._docs_dir_relative(context)
        source_files = [
            path
            for path in context.source_files
            if not (docs_dir_rel and (path == docs_dir_rel or path.startswith(f"{docs_dir_rel}/")))
        ]

        issues: List[ValidationIssue] = []
        checked = 0
        documented = 0
        missing: List[str] = []
        incomplete: List[str] = []
        quality: Dict[str, Dict[str, Any]] = {}

        for category in self._categories:
            sources = [path for path in source_files if _matches_any(path, category.source_globs)]
            if category.source_globs and not sources and not settings.include_empty:
                continue
            checked += 1
            matched = [document for document in corpus.documents if self._matches(category, document, docs_rel)]
            if not matched:
                missing.append(category.name)
                issues.append(
                    ValidationIssue(
                        severity=SEVERITY_ERROR,
                        type="missing_documentation",
                        message=f"No documentation found for {category.name}",
                        suggestion=f"Create documentation for {category.name} in the docs directory",
                        source=self.name,
                        details={"category": category.name, "codeFiles": sources[:5]},
                    )
                )
                continue

            documented += 1
            stats = self._quality(matched, docs_rel)
            stats["quality"] = quality_label(stats, category.min_word_count)
            quality[category.name] = stats
            if stats["wordCount"] < category.min_word_count:
                incomplete.append(category.name)
                issues.append(
                    ValidationIssue(
                        severity=SEVERITY_WARNING,
                        type="incomplete_documentation",
                        message=(
                            f"Documentation for {category.name} is too brief "
                            f"({stats['wordCount']} words, minimum: {category.min_word_count})"
                        ),
                        suggestion="Expand documentation with more detailed explanations, examples, and usage guidelines",
                        source=self.name,
                        details={
                            "category": category.name,
                            "docFiles": stats["docFiles"],
                            "quality": stats["quality"],
                        },
                    )
                )

        corpus_text = "\n".join(document.content for document in corpus.documents)
        undocumented_components = self._undocumented_components(source_files, corpus_text)
        for component in undocumented_components:
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_WARNING,
                    type="undocumented_component",
                    message=f"Component {component['name']} is not mentioned in any document",
                    suggestion=(
                        f"Create documentation for the {component['name']} component explaining its "
                        "purpose, props, and usage examples"
                    ),
                    source=self.name,
                    details={"component": component["name"], "path": component["path"]},
                )
            )
        undocumented_features = self._undocumented_features(source_files, corpus.documents, docs_rel)
        for feature in undocumented_features:
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_WARNING,
                    type="undocumented_feature",
                    message=f"Feature area {feature['name']} has no documentation",
                    suggestion=(
                        f"Add documentation for the {feature['name']} feature area explaining design "
                        "decisions, usage patterns, and architecture"
                    ),
                    source=self.name,
                    details={"feature": feature["name"], "paths": feature["paths"]},
                )
            )

        percentage = round(documented / max(1, checked) * 100, 1)
        minimum = float(settings.min_coverage_percentage)

        result = ValidatorResult(type=self.name)
        result.add(str(corpus.docs_dir), issues)
        result.passed = percentage >= minimum
        result.stats = {
            "coveragePercentage": percentage,
            "minimumPercentage": minimum,
            "documented": documented,
            "total": checked,
            "missingCategories": len(missing),
            "incompleteCategories": len(incomplete),
            "undocumentedComponents": len(undocumented_components),
            "undocumentedFeatures": len(undocumented_features),
            "totalDocuments": len(corpus.documents),
        }
        result.details = {
            "missingDocumentation": missing,
            "incompleteDocumentation": incomplete,
            "documentationQuality": quality,
            "undocumentedComponents": undocumented_components,
            "undocumentedFeatures": undocumented_features,
            "recommendations": self._recommendations(
                missing, incomplete, undocumented_components, undocumented_features
            ),
        }
        result.summary = (
            f"Documentation coverage {percentage:.1f}% ({documented}/{checked} categories documented; "
            f"minimum {minimum:g}%)."
        )
        _logger.info("Coverage %.1f%% (%d/%d categories)", percentage, documented, checked)
        return result

    # ------------------------------------------------------------------
    # Internals

    @staticmethod
    def _doc_relative(document: Document, context: ValidationContext) -> str:
        try:
            rel = document.path.relative_to(context.corpus.docs_dir)
        except ValueError:
            rel = PurePosixPath(document.path.name)
        return rel.with_suffix("").as_posix().lower()

    @staticmethod
    def _docs_dir_relative(context: ValidationContext) -> str:
        try:
            return context.corpus.docs_dir.relative_to(context.project_root).as_posix()
        except ValueError:
            return ""

    @staticmethod
    def _matches(category: Category, document: Document, docs_rel: Dict[str, str]) -> bool:
        if _matches_any(docs_rel[document.key], category.doc_globs):
            return True
        if any(tag in category.tags for tag in _document_tags(document)):
            return True
        return any(category.heading.search(heading.text.strip()) for heading in document.headings)

    @staticmethod
    def _quality(documents: Sequence[Document], docs_rel: Dict[str, str]) -> Dict[str, Any]:
        headings = [heading.text.strip() for document in documents for heading in document.headings]
        return {
            "docFiles": [docs_rel[document.key] for document in documents],
            "wordCount": sum(word_count(document) for document in documents),
            "codeExampleCount": sum(len(document.code_blocks) for document in documents),
            "hasIntroduction": any(_INTRO_HEADING.match(text) for text in headings),
            "hasUsageExamples": any(_USAGE_HEADING.match(text) for text in headings),
            "hasAPIReference": any(_API_HEADING.match(text) for text in headings),
        }

    @staticmethod
    def _undocumented_components(source_files: Sequence[str], corpus_text: str) -> List[Dict[str, str]]:
        undocumented: List[Dict[str, str]] = []
        seen: set[str] = set()
        for path in source_files:
            name = component_name(path)
            if name is None or name in seen:
                continue
            seen.add(name)
            if any(form in corpus_text for form in name_forms(name)):
                continue
            undocumented.append({"name": name, "path": path})
        return undocumented

    def _undocumented_features(
        self,
        source_files: Sequence[str],
        documents: Sequence[Document],
        docs_rel: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        undocumented: List[Dict[str, Any]] = []
        for feature in self._features:
            paths = [path for path in source_files if _matches_any(path, feature.source_globs)]
            if not paths:
                continue
            doc_glob = f"**/{feature.slug}*"
            if any(
                glob_match(docs_rel[document.key], doc_glob) or feature.slug in _document_tags(document)
                for document in documents
            ):
                continue
            undocumented.append({"name": feature.name, "paths": paths[:5]})
        return undocumented

    @staticmethod
    def _recommendations(
        missing: Sequence[str],
        incomplete: Sequence[str],
        components: Sequence[Dict[str, str]],
        features: Sequence[Dict[str, Any]],
    ) -> List[Dict[str, str]]:
        recommendations: List[Dict[str, str]] = []
        if missing:
            recommendations.append(
                {
                    "priority": "high",
                    "recommendation": f"Create documentation for missing categories: {', '.join(missing)}",
                }
            )
        if incomplete:
            recommendations.append(
                {
                    "priority": "medium",
                    "recommendation": f"Expand documentation for incomplete categories: {', '.join(incomplete)}",
                }
            )
        if components:
            recommendations.append(
                {
                    "priority": "high" if len(components) > 5 else "medium",
                    "recommendation": (
                        f"Document {len(components)} undocumented components "
                        "(start with the most frequently used ones)"
                    ),
                }
            )
        if features:
            names = ", ".join(feature["name"] for feature in features)
            recommendations.append(
                {"priority": "high", "recommendation": f"Create documentation for core features: {names}"}
            )
        return recommendations


__all__ = [
    "CATEGORIES",
    "FEATURES",
    "Category",
    "CoverageValidator",
    "Feature",
    "component_name",
    "glob_match",
    "name_forms",
    "quality_label",
]
