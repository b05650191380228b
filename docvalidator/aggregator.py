"""Run the selected validators over one project and merge their results."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .config import ValidationOptions, ValidationSettings, load_config, resolve_settings
from .discovery import (
    discover,
    find_docs_directory,
    iter_doc_files,
    list_source_files,
    load_ignore_rules,
)
from .git.history import ChangeHistory
from .logging import get_logger
from .models import AggregateReport, ValidatorResult
from .syntax import SyntaxParser
from .validators import ValidationContext, Validator, discover_validators


@dataclass
class ExistenceCheck:
    """Outcome of the quick documentation existence check."""

    exists: bool
    message: str
    docs_dir: Optional[str] = None
    document_count: int = 0

    def to_dict(self) -> dict:
        return {
            "exists": self.exists,
            "message": self.message,
            "docsDir": self.docs_dir,
            "documentCount": self.document_count,
        }


class Aggregator:
    """Coordinates discovery and the validators for a validation request."""

    def __init__(
        self,
        validators: Optional[Iterable[Validator]] = None,
        history_factory: Callable[[], ChangeHistory] = ChangeHistory,
    ) -> None:
        self._validator_overrides = list(validators) if validators is not None else None
        self._history_factory = history_factory
        self.logger = get_logger("aggregator")

    async def run(self, project_path: str | Path, options: ValidationOptions | None = None) -> AggregateReport:
        """Validate the documentation of ``project_path``."""
        project = _resolve_project(project_path)
        self.logger.info("Starting validation run for %s", project)

        config = load_config(project)
        settings = resolve_settings(config, options)
        validators = self._select_validators(settings)
        self.logger.debug("Selected validators: %s", ", ".join(v.name for v in validators))

        docs_dir = self._docs_directory(project, settings)
        rules = load_ignore_rules(project, settings.exclude_paths)
        corpus = await discover(project, docs_dir, rules)
        loop = asyncio.get_running_loop()
        source_files = await loop.run_in_executor(None, list_source_files, project, rules)

        context = ValidationContext(
            corpus=corpus,
            settings=settings,
            history=self._history_factory(),
            syntax=SyntaxParser(),
            source_files=source_files,
        )
        results = await asyncio.gather(*(self._run_isolated(validator, context) for validator in validators))

        report = AggregateReport(
            project_path=str(project),
            docs_dir=str(docs_dir),
            timestamp=datetime.now(UTC).isoformat(),
            discovery_issues=dict(corpus.issues),
        )
        for validator, result in zip(validators, results):
            report.validators[validator.name] = result
        self.logger.info(report.summary_line())
        return report

    def documentation_exists(self, project_path: str | Path) -> ExistenceCheck:
        """Check for documentation without running validators or creating directories."""
        project = Path(project_path).expanduser()
        if not project.is_dir():
            return ExistenceCheck(exists=False, message=f"Project path not found: {project}")
        project = project.resolve()
        config = load_config(project)
        candidates: Sequence[str] = (config.docs_dir,) if config.docs_dir else ()
        docs_dir = find_docs_directory(project, candidates, create=False) if candidates else None
        if docs_dir is None:
            docs_dir = find_docs_directory(project, create=False)
        if docs_dir is None:
            return ExistenceCheck(exists=False, message=f"No documentation directory found in {project}")
        count = len(iter_doc_files(docs_dir, project, load_ignore_rules(project, config.exclude_paths)))
        if count == 0:
            return ExistenceCheck(
                exists=False,
                message=f"Documentation directory {docs_dir} contains no documents",
                docs_dir=str(docs_dir),
            )
        return ExistenceCheck(
            exists=True,
            message=f"Found {count} documentation files in {docs_dir}",
            docs_dir=str(docs_dir),
            document_count=count,
        )

    # ------------------------------------------------------------------
    # Internals

    def _select_validators(self, settings: ValidationSettings) -> List[Validator]:
        if self._validator_overrides is None:
            return discover_validators(settings.validators)
        return [validator for validator in self._validator_overrides if validator.name in settings.validators]

    @staticmethod
    def _docs_directory(project: Path, settings: ValidationSettings) -> Path:
        if settings.docs_dir:
            docs_dir = (project / settings.docs_dir).resolve()
            if not docs_dir.is_relative_to(project):
                raise ValueError(f"Documentation directory {settings.docs_dir!r} is outside the project")
            docs_dir.mkdir(parents=True, exist_ok=True)
            return docs_dir
        found = find_docs_directory(project)
        if found is None:
            raise RuntimeError(f"Could not create a documentation directory in {project}")
        return found

    async def _run_isolated(self, validator: Validator, context: ValidationContext) -> ValidatorResult:
        try:
            return await validator.validate(context)
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("Validator %s failed", validator.name)
            return ValidatorResult(
                type=validator.name,
                summary=f"Validator {validator.name} failed: {exc}",
                passed=False,
                error=str(exc),
            )


def _resolve_project(project_path: str | Path) -> Path:
    project = Path(project_path).expanduser()
    if not project.exists():
        raise FileNotFoundError(f"Project path not found: {project}")
    if not project.is_dir():
        raise NotADirectoryError(f"Project path is not a directory: {project}")
    return project.resolve()


__all__ = ["Aggregator", "ExistenceCheck"]
