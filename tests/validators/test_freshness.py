"""Unit tests for the freshness validator."""

from __future__ import annotations

import asyncio
import datetime as _dt
from pathlib import Path
from typing import Optional

from docvalidator.git.history import ChangeHistory, HistoryError
from docvalidator.parser import parse_document
from docvalidator.validators.freshness import FreshnessValidator, find_related_files
from tests._fixtures.docs_builder import DocsBuilder

_DOC_DATE = _dt.datetime(2024, 1, 1, tzinfo=_dt.UTC)


class _ExplodingHistory(ChangeHistory):
    def last_changed(self, path: Path) -> Optional[_dt.datetime]:
        raise AssertionError(f"history must not be queried for {path}")


class _BrokenHistory(ChangeHistory):
    def last_changed(self, path: Path) -> Optional[_dt.datetime]:
        raise HistoryError("git unavailable")


def _button_project(docs_builder: DocsBuilder, front_matter: str = "lastUpdated: 2024-01-01\n") -> None:
    docs_builder.write(
        {
            "components/Button.tsx": "export function Button() { return null }\n",
            "docs/button.md": (
                "---\n"
                f"{front_matter}"
                "relatedFiles:\n"
                "  - components/Button.tsx\n"
                "---\n"
                "# Button\n"
            ),
        }
    )


def _run(docs_builder: DocsBuilder, history: ChangeHistory):  # type: ignore[no-untyped-def]
    return asyncio.run(FreshnessValidator().validate(docs_builder.context(history=history)))


def test_code_changed_120_days_later_is_critically_outdated(docs_builder: DocsBuilder) -> None:
    _button_project(docs_builder)
    history = docs_builder.history({"components/Button.tsx": _DOC_DATE + _dt.timedelta(days=120)})

    result = _run(docs_builder, history)

    key = str(docs_builder.path("docs/button.md"))
    issues = result.issues[key]
    assert [(issue.type, issue.severity) for issue in issues] == [("critically_outdated", "error")]
    assert result.passed is False
    assert result.stats["criticallyOutdated"] == 1
    assert result.details[key]["daysSinceUpdate"] == 120
    assert result.details[key]["relatedCodeFiles"] == ["components/Button.tsx"]


def test_freshness_bands(docs_builder: DocsBuilder) -> None:
    expectations = {
        5: (None, "fresh"),
        10: ("needs_review", "needs_review"),
        45: ("outdated", "outdated"),
        91: ("critically_outdated", "critically_outdated"),
    }
    _button_project(docs_builder)
    key = str(docs_builder.path("docs/button.md"))

    for days, (issue_type, status) in expectations.items():
        history = docs_builder.history({"components/Button.tsx": _DOC_DATE + _dt.timedelta(days=days)})
        result = _run(docs_builder, history)

        assert [issue.type for issue in result.issues.get(key, [])] == ([issue_type] if issue_type else [])
        assert result.details[key]["status"] == status


def test_outdated_warning_does_not_fail(docs_builder: DocsBuilder) -> None:
    _button_project(docs_builder)
    history = docs_builder.history({"components/Button.tsx": _DOC_DATE + _dt.timedelta(days=45)})

    result = _run(docs_builder, history)

    assert result.passed is True
    assert result.stats["outdated"] == 1


def test_document_newer_than_code_is_fresh(docs_builder: DocsBuilder) -> None:
    _button_project(docs_builder)
    history = docs_builder.history({"components/Button.tsx": _DOC_DATE - _dt.timedelta(days=30)})

    result = _run(docs_builder, history)

    assert result.issues == {}
    assert result.stats["fresh"] == 1


def test_documents_without_related_code_skip_history(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/overview.md": "# Overview\n\nNothing in particular.\n"})

    result = _run(docs_builder, _ExplodingHistory())

    assert result.issues == {}
    assert result.stats["fresh"] == 1
    assert result.stats["totalDocuments"] == 1


def test_missing_timestamp_is_unknown(docs_builder: DocsBuilder) -> None:
    _button_project(docs_builder, front_matter="")
    history = docs_builder.history({"components/Button.tsx": _DOC_DATE})

    result = _run(docs_builder, history)

    issues = result.issues[str(docs_builder.path("docs/button.md"))]
    assert [(issue.type, issue.severity) for issue in issues] == [("missing_timestamp", "warning")]
    assert result.stats["unknown"] == 1
    assert result.passed is True


def test_history_failure_is_reported_as_warning(docs_builder: DocsBuilder) -> None:
    _button_project(docs_builder, front_matter="")

    result = _run(docs_builder, _BrokenHistory())

    issues = result.issues[str(docs_builder.path("docs/button.md"))]
    assert [issue.type for issue in issues] == ["history_unavailable"]
    assert result.stats["unknown"] == 1


def test_find_related_files_combines_heuristics(tmp_path: Path) -> None:
    project = tmp_path
    for rel_path in ("components/Nav.tsx", "components/Card.tsx", "lib/utils.ts"):
        target = project / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("export {}\n", encoding="utf-8")
    text = (
        "# Card Component\n"
        "\n"
        "The layout lives in `components/Nav.tsx` and `components/Missing.tsx`.\n"
        "\n"
        "```tsx\n"
        "import { cn } from '@/lib/utils'\n"
        "```\n"
    )
    document = parse_document(project / "docs" / "card.md", text)

    related = find_related_files(document, project, ["components", "lib"])

    assert related == ["components/Nav.tsx", "lib/utils.ts", "components/Card.tsx"]


def test_find_related_files_ignores_paths_outside_project(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    (tmp_path / "secret.ts").write_text("export {}\n", encoding="utf-8")
    document = parse_document(
        project / "docs" / "a.md",
        "---\nrelatedFiles: ['../secret.ts']\n---\n# A\n",
    )

    assert find_related_files(document, project, ["components"]) == []
