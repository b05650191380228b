"""Documentation discovery and source-tree listing."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

from .config import DEFAULT_DOCS_DIRS
from .logging import get_logger
from .models import SEVERITY_WARNING, Document, ValidationIssue
from .parser import parse_document

_EXCLUDED_DIRS = {
    "node_modules",
    "__pycache__",
    "dist",
    "build",
    "vendor",
    "out",
}

DOC_SUFFIXES = (".md", ".mdx", ".markdown")

_logger = get_logger("discovery")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or exclude_paths."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.is_file():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def load_ignore_rules(root: Path, exclude_paths: Sequence[str] = ()) -> List[IgnoreRule]:
    """Combine the project's .gitignore with configured exclude patterns."""
    rules = parse_gitignore(root / ".gitignore")
    for pattern in exclude_paths:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _walk(root: Path, base: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
    """Yield files below ``root``; ignore rules are evaluated relative to ``base``."""
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(base).as_posix() if current_dir != base else ""

        kept = []
        for name in sorted(dirnames):
            if name.startswith(".") or name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if should_ignore(rel_path, False, rules):
                continue
            yield current_dir / filename


def find_docs_directory(
    project: Path,
    candidates: Sequence[str] = DEFAULT_DOCS_DIRS,
    *,
    create: bool = True,
) -> Path | None:
    """Return the first existing documentation directory under ``project``.

    When none exists and ``create`` is set, ``docs/`` is created and returned.
    """
    for candidate in candidates:
        path = project / candidate
        if path.is_dir():
            return path
    if not create:
        return None
    created = project / "docs"
    created.mkdir(parents=True, exist_ok=True)
    _logger.info("Created missing documentation directory %s", created)
    return created


def iter_doc_files(docs_dir: Path, project: Path, rules: Sequence[IgnoreRule] = ()) -> List[Path]:
    """Documentation files below ``docs_dir`` in sorted order."""
    if not docs_dir.is_dir():
        return []
    base = project if docs_dir.is_relative_to(project) else docs_dir
    return sorted(
        path for path in _walk(docs_dir, base, rules) if path.suffix.lower() in DOC_SUFFIXES
    )


def list_source_files(project: Path, rules: Sequence[IgnoreRule] = ()) -> List[str]:
    """Project-relative posix paths of all non-ignored files."""
    return [path.relative_to(project).as_posix() for path in _walk(project, project, rules)]


@dataclass
class DocumentCorpus:
    """The parsed documents of one validation run."""

    project_root: Path
    docs_dir: Path
    documents: List[Document] = field(default_factory=list)
    issues: Dict[str, List[ValidationIssue]] = field(default_factory=dict)

    def by_path(self) -> Dict[Path, Document]:
        return {document.path: document for document in self.documents}

    def relative(self, document: Document) -> str:
        try:
            return document.path.relative_to(self.project_root).as_posix()
        except ValueError:
            return document.path.as_posix()


def _read_document(path: Path) -> Document:
    text = path.read_text(encoding="utf-8")
    return parse_document(path, text)


async def discover(
    project: Path,
    docs_dir: Path,
    rules: Sequence[IgnoreRule] = (),
) -> DocumentCorpus:
    """Read and parse every documentation file concurrently."""
    loop = asyncio.get_running_loop()
    paths = iter_doc_files(docs_dir, project, rules)
    _logger.info("Discovered %d documentation files in %s", len(paths), docs_dir)

    outcomes = await asyncio.gather(
        *(loop.run_in_executor(None, _read_document, path) for path in paths),
        return_exceptions=True,
    )

    corpus = DocumentCorpus(project_root=project, docs_dir=docs_dir)
    for path, outcome in zip(paths, outcomes):
        if isinstance(outcome, Document):
            corpus.documents.append(outcome)
            if outcome.front_matter_error:
                _logger.debug("Invalid front-matter in %s: %s", path, outcome.front_matter_error)
                corpus.issues.setdefault(str(path), []).append(
                    ValidationIssue(
                        severity=SEVERITY_WARNING,
                        type="front_matter_error",
                        message=outcome.front_matter_error,
                        suggestion="Fix the YAML block at the top of the document.",
                        source="discovery",
                    )
                )
            continue
        if isinstance(outcome, (OSError, UnicodeDecodeError)):
            _logger.warning("Skipping unreadable document %s: %s", path, outcome)
            corpus.issues.setdefault(str(path), []).append(
                ValidationIssue(
                    severity=SEVERITY_WARNING,
                    type="unreadable_document",
                    message=f"Could not read {path.name}: {outcome}",
                    suggestion="Ensure the file is readable and UTF-8 encoded.",
                    source="discovery",
                )
            )
            continue
        if isinstance(outcome, BaseException):
            raise outcome
    return corpus


__all__ = [
    "DOC_SUFFIXES",
    "DocumentCorpus",
    "IgnoreRule",
    "discover",
    "find_docs_directory",
    "iter_doc_files",
    "list_source_files",
    "load_ignore_rules",
]
