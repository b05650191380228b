"""Integration tests for a full documentation validation run."""

from __future__ import annotations

import asyncio
import datetime as _dt
import json

from docvalidator.aggregator import Aggregator
from tests._fixtures.docs_builder import DocsBuilder


def _seed_project(docs_builder: DocsBuilder) -> None:
    docs_builder.write(
        {
            ".docvalidator.yml": """
            coverage:
              min_percentage: 10
            terminology:
              nextjs: Next.js
            """,
            "app/page.tsx": "export default function Home() { return null }\n",
            "components/ui/Button.tsx": "export function Button() { return null }\n",
            "docs/architecture.md": """
            ---
            lastUpdated: 2024-05-01
            ---
            # Architecture

            Pages render on the server and stream to the browser.
            Shared controls are described in the [button guide](./components/button.md#usage).
            """,
            "docs/components/button.md": """
            ---
            lastUpdated: 2024-01-01
            ---
            # Button Component

            The Button wraps the design-system styles for nextjs pages.

            ## Usage

            ```tsx
            import { Button } from '@/components/ui/Button'

            export default function Page() {
              return <Button variant="primary">Save</Button>
            }
            ```
            """,
        }
    )


def test_full_run_reports_outdated_component_docs(docs_builder: DocsBuilder) -> None:
    _seed_project(docs_builder)
    history = docs_builder.history(
        {"components/ui/Button.tsx": _dt.datetime(2024, 6, 1, tzinfo=_dt.UTC)}
    )
    aggregator = Aggregator(history_factory=lambda: history)

    report = asyncio.run(aggregator.run(docs_builder.path()))

    button_key = str(docs_builder.path("docs/components/button.md"))
    freshness = report.validators["freshness"]
    assert freshness.passed is False
    assert [issue.type for issue in freshness.issues[button_key]] == ["critically_outdated"]
    assert freshness.details[button_key]["relatedCodeFiles"] == ["components/ui/Button.tsx"]

    consistency = report.validators["consistency"]
    assert consistency.passed is True
    assert "terminology" in [issue.type for issue in consistency.issues[button_key]]

    coverage = report.validators["coverage"]
    assert coverage.passed is True
    assert coverage.stats["minimumPercentage"] == 10.0
    assert coverage.stats["undocumentedComponents"] == 0

    assert report.validators["code-style-compliance"].issues == {}
    assert report.passed is False
    assert report.to_dict()["summary"] == {"total": 5, "passed": 4, "failed": 1}


def test_report_serialises_to_json(docs_builder: DocsBuilder) -> None:
    _seed_project(docs_builder)
    aggregator = Aggregator(history_factory=lambda: docs_builder.history({}))

    report = asyncio.run(aggregator.run(docs_builder.path()))
    payload = json.loads(json.dumps(report.to_dict(verbose=True)))

    assert payload["projectPath"] == str(docs_builder.path())
    assert payload["docsDir"] == str(docs_builder.path("docs"))
    assert set(payload["validators"]) == {
        "coverage",
        "consistency",
        "freshness",
        "best-practices",
        "code-style-compliance",
    }
    assert payload["discovery"] == {"issues": {}}
