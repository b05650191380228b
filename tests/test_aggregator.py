"""Tests for the aggregator that runs validators over a project."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from docvalidator.aggregator import Aggregator
from docvalidator.config import VALIDATOR_NAMES, ValidationOptions
from docvalidator.models import ValidatorResult
from docvalidator.validators import ValidationContext, Validator
from tests._fixtures.docs_builder import DocsBuilder


class _StaticValidator(Validator):
    def __init__(self, name: str, passed: bool = True) -> None:
        self.name = name
        self._passed = passed
        self.documents_seen = -1

    async def validate(self, context: ValidationContext) -> ValidatorResult:
        self.documents_seen = len(context.corpus.documents)
        return ValidatorResult(type=self.name, summary="static", passed=self._passed)


class _ExplodingValidator(Validator):
    name = "freshness"

    async def validate(self, context: ValidationContext) -> ValidatorResult:
        raise RuntimeError("history exploded")


def _aggregator(docs_builder: DocsBuilder, validators=None) -> Aggregator:  # type: ignore[no-untyped-def]
    return Aggregator(validators=validators, history_factory=lambda: docs_builder.history({}))


def test_missing_project_path_raises(docs_builder: DocsBuilder) -> None:
    with pytest.raises(FileNotFoundError):
        asyncio.run(_aggregator(docs_builder).run(docs_builder.path("missing")))


def test_file_project_path_raises(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"README.md": "# Project\n"})

    with pytest.raises(NotADirectoryError):
        asyncio.run(_aggregator(docs_builder).run(docs_builder.path("README.md")))


def test_project_without_docs_gets_a_report(docs_builder: DocsBuilder) -> None:
    report = asyncio.run(_aggregator(docs_builder).run(docs_builder.path()))

    assert docs_builder.path("docs").is_dir()
    assert report.docs_dir == str(docs_builder.path("docs"))
    assert list(report.validators) == list(VALIDATOR_NAMES)
    assert report.validators["coverage"].stats["coveragePercentage"] == 0.0
    assert report.validators["coverage"].passed is False
    assert report.passed is False
    assert report.to_dict()["summary"] == {"total": 5, "passed": 4, "failed": 1}


def test_requested_validators_run_in_canonical_order(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/index.md": "# Index\n"})
    options = ValidationOptions(validators=["eslint-compliance", "consistency"])

    report = asyncio.run(_aggregator(docs_builder).run(docs_builder.path(), options))

    assert list(report.validators) == ["consistency", "code-style-compliance"]


def test_unknown_validator_is_rejected(docs_builder: DocsBuilder) -> None:
    options = ValidationOptions(validators=["spelling"])

    with pytest.raises(ValueError, match="spelling"):
        asyncio.run(_aggregator(docs_builder).run(docs_builder.path(), options))


def test_failing_validator_is_isolated(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/index.md": "# Index\n"})
    coverage = _StaticValidator("coverage")
    aggregator = _aggregator(docs_builder, [coverage, _ExplodingValidator()])

    report = asyncio.run(aggregator.run(docs_builder.path()))

    assert coverage.documents_seen == 1
    assert report.validators["coverage"].passed is True
    failed = report.validators["freshness"]
    assert failed.passed is False
    assert failed.error == "history exploded"
    assert report.to_dict()["validators"]["freshness"]["error"] == "history exploded"
    assert report.passed is False


def test_overall_pass_requires_every_validator(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/index.md": "# Index\n"})
    passing = [_StaticValidator("coverage"), _StaticValidator("consistency")]

    all_pass = asyncio.run(_aggregator(docs_builder, passing).run(docs_builder.path()))
    one_fails = asyncio.run(
        _aggregator(docs_builder, [*passing, _StaticValidator("freshness", passed=False)]).run(
            docs_builder.path()
        )
    )

    assert all_pass.passed is True
    assert one_fails.passed is False
    assert one_fails.to_dict()["pass"] is False


def test_docs_dir_option_is_created(docs_builder: DocsBuilder) -> None:
    options = ValidationOptions(docs_dir="handbook")
    aggregator = _aggregator(docs_builder, [_StaticValidator("coverage")])

    report = asyncio.run(aggregator.run(docs_builder.path(), options))

    assert docs_builder.path("handbook").is_dir()
    assert report.docs_dir == str(docs_builder.path("handbook"))
    assert not docs_builder.path("docs").exists()


def test_docs_dir_outside_project_is_rejected(docs_builder: DocsBuilder, tmp_path: Path) -> None:
    aggregator = _aggregator(docs_builder, [_StaticValidator("coverage")])

    for docs_dir in ("../escaped", str(tmp_path / "absolute")):
        with pytest.raises(ValueError, match="outside the project"):
            asyncio.run(aggregator.run(docs_builder.path(), ValidationOptions(docs_dir=docs_dir)))

    assert not (tmp_path / "escaped").exists()
    assert not (tmp_path / "absolute").exists()


def test_report_omits_details_unless_verbose(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/architecture.md": "# Architecture\n\nHow the pieces fit.\n"})
    aggregator = _aggregator(docs_builder)

    report = asyncio.run(aggregator.run(docs_builder.path(), ValidationOptions(validators=["coverage"])))

    assert "details" not in report.to_dict(verbose=False)["validators"]["coverage"]
    assert "details" in report.to_dict(verbose=True)["validators"]["coverage"]


def test_documentation_exists_does_not_create_directories(docs_builder: DocsBuilder) -> None:
    check = _aggregator(docs_builder).documentation_exists(docs_builder.path())

    assert check.exists is False
    assert not docs_builder.path("docs").exists()


def test_documentation_exists_counts_documents(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/index.md": "# Index\n", "docs/guide/setup.md": "# Setup\n"})

    check = _aggregator(docs_builder).documentation_exists(docs_builder.path())

    assert check.exists is True
    assert check.document_count == 2
    assert check.to_dict()["docsDir"] == str(docs_builder.path("docs"))


def test_documentation_exists_honours_configured_docs_dir(docs_builder: DocsBuilder) -> None:
    docs_builder.write(
        {
            ".docvalidator.yml": "docs_dir: handbook\n",
            "handbook/intro.md": "# Intro\n",
        }
    )

    check = _aggregator(docs_builder).documentation_exists(docs_builder.path())

    assert check.exists is True
    assert check.docs_dir == str(docs_builder.path("handbook"))


def test_empty_docs_directory_does_not_count(docs_builder: DocsBuilder) -> None:
    docs_builder.path("docs").mkdir()

    check = _aggregator(docs_builder).documentation_exists(docs_builder.path())

    assert check.exists is False
    assert check.docs_dir == str(docs_builder.path("docs"))
