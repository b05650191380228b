"""Helper utilities for constructing throwaway projects with documentation."""

from __future__ import annotations

import asyncio
import datetime as _dt
import textwrap
from pathlib import Path
from typing import Dict, Mapping, Optional

from docvalidator.config import ValidationOptions, load_config, resolve_settings
from docvalidator.discovery import (
    DocumentCorpus,
    discover,
    find_docs_directory,
    list_source_files,
    load_ignore_rules,
)
from docvalidator.git.history import ChangeHistory
from docvalidator.validators import ValidationContext


class FixedHistory(ChangeHistory):
    """Change history that answers from a fixed table of project-relative paths."""

    def __init__(self, root: Path, times: Mapping[str, Optional[_dt.datetime]]) -> None:
        super().__init__(runner=lambda *args, **kwargs: "")
        self._root = root
        self._times = dict(times)

    def last_changed(self, path: Path) -> Optional[_dt.datetime]:
        rel_path = path.resolve().relative_to(self._root).as_posix()
        return self._times.get(rel_path)


class DocsBuilder:
    """Utility for writing files into a throwaway project and building validation contexts."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = (tmp_path / "project").resolve()
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def path(self, relative: str = "") -> Path:
        """Return the project root, or a path inside it."""
        return self.root / relative if relative else self.root

    def corpus(self) -> DocumentCorpus:
        docs_dir = find_docs_directory(self.root)
        assert docs_dir is not None
        return asyncio.run(discover(self.root, docs_dir, load_ignore_rules(self.root)))

    def context(
        self,
        options: ValidationOptions | None = None,
        history: ChangeHistory | None = None,
    ) -> ValidationContext:
        """Build a validation context the way the aggregator does."""
        settings = resolve_settings(load_config(self.root), options)
        rules = load_ignore_rules(self.root, settings.exclude_paths)
        docs_dir = find_docs_directory(self.root)
        assert docs_dir is not None
        corpus = asyncio.run(discover(self.root, docs_dir, rules))
        return ValidationContext(
            corpus=corpus,
            settings=settings,
            history=history or ChangeHistory(),
            source_files=list_source_files(self.root, rules),
        )

    def history(self, times: Dict[str, Optional[_dt.datetime]]) -> FixedHistory:
        return FixedHistory(self.root, times)


__all__ = ["DocsBuilder", "FixedHistory"]
