"""Core data models shared across docvalidator components."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"

SEVERITY_RANK = {
    SEVERITY_INFO: 0,
    SEVERITY_WARNING: 1,
    SEVERITY_ERROR: 2,
}


@dataclass(frozen=True)
class Heading:
    """A markdown heading with its GitHub-style anchor id."""

    level: int
    text: str
    generated_id: str
    line_number: int


@dataclass(frozen=True)
class Link:
    """An inline or autolink reference found in the document body."""

    text: str
    href: str
    line_number: int


@dataclass(frozen=True)
class CodeBlock:
    """A fenced or indented code block."""

    language: str
    body: str
    line_number: int
    fenced: bool = True

    def line_for(self, row: int) -> int:
        """File line of the zero-based ``row`` within the block body."""
        return self.line_number + row + (1 if self.fenced else 0)


@dataclass(frozen=True)
class HtmlFragment:
    """Raw HTML embedded in the markdown outside of code blocks."""

    html: str
    line_number: int


@dataclass(frozen=True)
class Document:
    """A parsed documentation file. Identity is the absolute path."""

    path: Path
    content: str
    body: str
    front_matter: Mapping[str, Any]
    body_offset: int = 0
    front_matter_error: Optional[str] = None
    headings: Tuple[Heading, ...] = ()
    links: Tuple[Link, ...] = ()
    code_blocks: Tuple[CodeBlock, ...] = ()
    html_fragments: Tuple[HtmlFragment, ...] = ()
    code_line_ranges: Tuple[Tuple[int, int], ...] = ()

    @property
    def key(self) -> str:
        return str(self.path)

    @property
    def heading_ids(self) -> frozenset:
        return frozenset(heading.generated_id for heading in self.headings)

    def prose_lines(self) -> List[Tuple[int, str]]:
        """Return ``(line_number, text)`` pairs for body lines outside code blocks."""
        lines: List[Tuple[int, str]] = []
        for index, text in enumerate(self.body.splitlines()):
            line_number = index + 1 + self.body_offset
            if any(start <= line_number <= end for start, end in self.code_line_ranges):
                continue
            lines.append((line_number, text))
        return lines

    def prose_text(self) -> str:
        return "\n".join(text for _, text in self.prose_lines())


@dataclass(frozen=True)
class ValidationIssue:
    """A single finding emitted by a validator."""

    severity: str
    type: str
    message: str
    suggestion: str = ""
    line_number: Optional[int] = None
    source: str = ""
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "severity": self.severity,
            "type": self.type,
            "message": self.message,
            "suggestion": self.suggestion,
            "source": self.source,
        }
        if self.line_number is not None:
            payload["lineNumber"] = self.line_number
        for key, value in self.details.items():
            payload.setdefault(key, value)
        return payload


@dataclass
class ValidatorResult:
    """Outcome of one validator over the whole corpus."""

    type: str
    issues: Dict[str, List[ValidationIssue]] = field(default_factory=dict)
    summary: str = ""
    passed: bool = True
    stats: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def add(self, key: str, issues: List[ValidationIssue]) -> None:
        if issues:
            self.issues.setdefault(key, []).extend(issues)

    def all_issues(self) -> List[ValidationIssue]:
        return [issue for issues in self.issues.values() for issue in issues]

    def count(self, severity: str) -> int:
        return sum(1 for issue in self.all_issues() if issue.severity == severity)

    def to_dict(self, *, verbose: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "summary": self.summary,
            "pass": self.passed,
            "stats": dict(self.stats),
            "issues": {
                key: [issue.to_dict() for issue in issues]
                for key, issues in self.issues.items()
            },
        }
        if verbose and self.details:
            payload["details"] = self.details
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class AggregateReport:
    """Merged response payload for one validation request."""

    project_path: str
    docs_dir: str
    timestamp: str
    validators: Dict[str, ValidatorResult] = field(default_factory=dict)
    discovery_issues: Dict[str, List[ValidationIssue]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.validators)

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.validators.values() if result.passed)

    @property
    def failed_count(self) -> int:
        return self.total - self.passed_count

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.validators.values())

    def summary_line(self) -> str:
        verdict = "PASS" if self.passed else "FAIL"
        return (
            f"Documentation validation: {self.passed_count}/{self.total} validators passed ({verdict})."
        )

    def to_dict(self, *, verbose: bool = True) -> Dict[str, Any]:
        return {
            "projectPath": self.project_path,
            "docsDir": self.docs_dir,
            "timestamp": self.timestamp,
            "validators": {
                name: result.to_dict(verbose=verbose) for name, result in self.validators.items()
            },
            "summary": {
                "total": self.total,
                "passed": self.passed_count,
                "failed": self.failed_count,
            },
            "pass": self.passed,
            "discovery": {
                "issues": {
                    key: [issue.to_dict() for issue in issues]
                    for key, issues in self.discovery_issues.items()
                }
            },
        }
