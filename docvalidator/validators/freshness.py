"""Freshness validator: compares document update times with related code."""

from __future__ import annotations

import asyncio
import datetime as _dt
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..git.history import HistoryError
from ..logging import get_logger
from ..models import (
    SEVERITY_ERROR,
    SEVERITY_INFO,
    SEVERITY_WARNING,
    Document,
    ValidationIssue,
    ValidatorResult,
)
from ..parser import coerce_datetime
from .base import ValidationContext, Validator, passes_without_errors

STATUS_FRESH = "fresh"
STATUS_NEEDS_REVIEW = "needs_review"
STATUS_OUTDATED = "outdated"
STATUS_CRITICAL = "critically_outdated"
STATUS_UNKNOWN = "unknown"

_TIMESTAMP_KEYS = ("lastUpdated", "updated", "date")
_SCRIPT_SUFFIXES = (".tsx", ".jsx", ".ts", ".js", ".mjs", ".cjs")
_IMPORT_PATTERN = re.compile(
    r"""(?:\bimport\s+(?:[^'"\n;]*?\s+from\s+)?|\brequire\(\s*|\bimport\(\s*)['"]([^'"\n]+)['"]"""
)
_COMPONENT_TITLE = re.compile(r"^([A-Z][A-Za-z0-9]+) Component$")
_PASCAL_NAME = re.compile(r"^[A-Z][A-Za-z0-9]+$")

_STAT_KEYS = {
    STATUS_FRESH: "fresh",
    STATUS_NEEDS_REVIEW: "needsReview",
    STATUS_OUTDATED: "outdated",
    STATUS_CRITICAL: "criticallyOutdated",
    STATUS_UNKNOWN: "unknown",
}

_logger = get_logger("validators.freshness")


def _path_pattern(source_dirs: Sequence[str]) -> re.Pattern[str]:
    dirs = "|".join(re.escape(name.strip("/")) for name in source_dirs if name.strip("/"))
    suffixes = "|".join(suffix[1:] for suffix in _SCRIPT_SUFFIXES)
    return re.compile(rf"(?<![\w/.-])(?:{dirs})/[\w/\[\]().@-]*?\.(?:{suffixes})(?![\w])")


def find_related_files(document: Document, project: Path, source_dirs: Sequence[str]) -> List[str]:
    """Project-relative paths of existing code files the document describes."""
    candidates: List[str] = []

    declared = document.front_matter.get("relatedFiles")
    if isinstance(declared, str):
        declared = [declared]
    if isinstance(declared, list):
        candidates.extend(str(item) for item in declared if isinstance(item, (str, int)))

    if source_dirs:
        candidates.extend(match.group(0) for match in _path_pattern(source_dirs).finditer(document.body))

    for match in _IMPORT_PATTERN.finditer(document.body):
        candidates.extend(_import_candidates(match.group(1)))

    candidates.extend(_component_candidates(document))

    related: List[str] = []
    root = project.resolve()
    for candidate in candidates:
        normalized = candidate.strip().strip("'\"").replace("\\", "/").lstrip("/")
        if normalized.startswith("./"):
            normalized = normalized[2:]
        if not normalized:
            continue
        target = (root / normalized).resolve()
        if not target.is_relative_to(root) or not target.is_file():
            continue
        rel_path = target.relative_to(root).as_posix()
        if rel_path not in related:
            related.append(rel_path)
    return related


def _import_candidates(specifier: str) -> List[str]:
    module = specifier.strip()
    if module.startswith("@/") or module.startswith("~/"):
        module = module[2:]
    elif module.startswith(("./", "../")):
        # Relative to an unknown importer; only the project-relative tail is usable.
        module = re.sub(r"^(?:\.\.?/)+", "", module)
    if not module:
        return []
    if module.endswith(_SCRIPT_SUFFIXES):
        return [module]
    options = [module + suffix for suffix in _SCRIPT_SUFFIXES]
    options.extend(f"{module}/index{suffix}" for suffix in _SCRIPT_SUFFIXES)
    return options


def _component_candidates(document: Document) -> List[str]:
    name: Optional[str] = None
    for heading in document.headings:
        if heading.level == 1:
            match = _COMPONENT_TITLE.match(heading.text.strip())
            if match:
                name = match.group(1)
                break
    if name is None and "component" in document.path.stem.lower():
        for heading in document.headings:
            if heading.level == 2 and _PASCAL_NAME.match(heading.text.strip()):
                name = heading.text.strip()
                break
    if name is None:
        return []
    return [
        f"components/{name}.tsx",
        f"components/{name}-client.tsx",
        f"components/ui/{name}.tsx",
    ]


def declared_timestamp(document: Document) -> Optional[_dt.datetime]:
    for key in _TIMESTAMP_KEYS:
        if key in document.front_matter:
            moment = coerce_datetime(document.front_matter[key])
            if moment is not None:
                return moment
            _logger.debug("Ignoring unparsable %s in %s", key, document.path)
    return None


class FreshnessValidator(Validator):
    """Flags documents that are older than the code they describe."""

    name = "freshness"

    async def validate(self, context: ValidationContext) -> ValidatorResult:
        documents = context.corpus.documents
        outcomes = await asyncio.gather(*(self._check(document, context) for document in documents))

        result = ValidatorResult(type=self.name)
        stats: Dict[str, int] = {key: 0 for key in _STAT_KEYS.values()}
        for document, (status, issues, detail) in zip(documents, outcomes):
            stats[_STAT_KEYS[status]] += 1
            result.add(document.key, issues)
            result.details[document.key] = detail
        stats["totalDocuments"] = len(documents)

        result.stats = stats
        result.passed = passes_without_errors(result)
        result.summary = (
            f"{stats['fresh']}/{len(documents)} documents fresh; "
            f"{stats['needsReview']} need review, {stats['outdated']} outdated, "
            f"{stats['criticallyOutdated']} critically outdated, {stats['unknown']} unknown."
        )
        return result

    async def _check(
        self, document: Document, context: ValidationContext
    ) -> Tuple[str, List[ValidationIssue], Dict[str, Any]]:
        thresholds = context.settings.freshness
        related = find_related_files(document, context.project_root, thresholds.source_dirs)
        detail: Dict[str, Any] = {
            "status": STATUS_FRESH,
            "lastUpdated": None,
            "relatedCodeFiles": related,
            "relatedCodeLastUpdated": None,
            "daysSinceUpdate": 0,
        }
        if not related:
            return STATUS_FRESH, [], detail

        issues: List[ValidationIssue] = []
        last_updated = declared_timestamp(document)
        if last_updated is None:
            try:
                last_updated = await context.history.last_changed_async(document.path)
            except HistoryError as exc:
                _logger.warning("History lookup failed for %s: %s", document.path, exc)
                issues.append(
                    ValidationIssue(
                        severity=SEVERITY_WARNING,
                        type="history_unavailable",
                        message="Failed to check version history for document update time",
                        suggestion="Add a lastUpdated field to the front-matter for proper tracking",
                        source=self.name,
                        details={"error": str(exc)},
                    )
                )
                detail["status"] = STATUS_UNKNOWN
                return STATUS_UNKNOWN, issues, detail
        if last_updated is None:
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_WARNING,
                    type="missing_timestamp",
                    message="No lastUpdated field in front-matter and no version history found",
                    suggestion="Add a lastUpdated field to the front-matter for proper tracking",
                    source=self.name,
                )
            )
            detail["status"] = STATUS_UNKNOWN
            return STATUS_UNKNOWN, issues, detail
        detail["lastUpdated"] = last_updated.isoformat()

        code_times = await asyncio.gather(
            *(self._code_time(context, rel_path) for rel_path in related)
        )
        known = [moment for moment in code_times if moment is not None]
        if not known:
            return STATUS_FRESH, issues, detail
        code_updated = max(known)
        detail["relatedCodeLastUpdated"] = code_updated.isoformat()
        if code_updated <= last_updated:
            return STATUS_FRESH, issues, detail

        days = (code_updated - last_updated).days
        detail["daysSinceUpdate"] = days
        status = STATUS_FRESH
        if days > thresholds.critical_days:
            status = STATUS_CRITICAL
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_ERROR,
                    type=STATUS_CRITICAL,
                    message=f"Documentation is critically outdated ({days} days behind code changes)",
                    suggestion="Urgently review and update documentation to reflect latest code changes",
                    source=self.name,
                )
            )
        elif days > thresholds.outdated_days:
            status = STATUS_OUTDATED
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_WARNING,
                    type=STATUS_OUTDATED,
                    message=f"Documentation may be outdated ({days} days behind code changes)",
                    suggestion="Review and update documentation to reflect recent code changes",
                    source=self.name,
                )
            )
        elif days > thresholds.review_days:
            status = STATUS_NEEDS_REVIEW
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_INFO,
                    type=STATUS_NEEDS_REVIEW,
                    message=f"Documentation might need a review ({days} days since code changes)",
                    suggestion="Consider reviewing documentation for accuracy",
                    source=self.name,
                )
            )
        detail["status"] = status
        return status, issues, detail

    @staticmethod
    async def _code_time(context: ValidationContext, rel_path: str) -> Optional[_dt.datetime]:
        try:
            return await context.history.last_changed_async(context.project_root / rel_path)
        except HistoryError as exc:
            _logger.debug("Ignoring history failure for %s: %s", rel_path, exc)
            return None


__all__ = ["FreshnessValidator", "declared_timestamp", "find_related_files"]
