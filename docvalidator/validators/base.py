"""Base classes for documentation validators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from ..config import ValidationSettings
from ..discovery import DocumentCorpus
from ..git.history import ChangeHistory
from ..models import SEVERITY_ERROR, ValidatorResult
from ..syntax import SyntaxParser


@dataclass
class ValidationContext:
    """Everything a validator may inspect during one run."""

    corpus: DocumentCorpus
    settings: ValidationSettings
    history: ChangeHistory = field(default_factory=ChangeHistory)
    syntax: SyntaxParser = field(default_factory=SyntaxParser)
    source_files: List[str] = field(default_factory=list)

    @property
    def project_root(self) -> Path:
        return self.corpus.project_root


class Validator(ABC):
    """Contract for validators that inspect the documentation corpus."""

    name: str = ""

    @abstractmethod
    async def validate(self, context: ValidationContext) -> ValidatorResult:
        """Inspect the corpus and return a result covering every document."""


def passes_without_errors(result: ValidatorResult) -> bool:
    return result.count(SEVERITY_ERROR) == 0


__all__ = ["ValidationContext", "Validator", "passes_without_errors"]
