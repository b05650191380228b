"""Tests for change-history lookups."""

from __future__ import annotations

import asyncio
import datetime as _dt
import os
import subprocess
from pathlib import Path

import pytest

from docvalidator.git.history import ChangeHistory, HistoryError


def _make_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / ".git").mkdir()
    (repo / "src").mkdir()
    (repo / "src" / "app.ts").write_text("export {}\n", encoding="utf-8")
    return repo


def test_last_changed_uses_commit_time(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    calls: list[tuple[list[str], Path]] = []

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append((list(args), Path(cwd)))
        return "2024-03-01T12:00:00+02:00\n"

    history = ChangeHistory(runner=runner)
    moment = history.last_changed(repo / "src" / "app.ts")

    assert moment == _dt.datetime(2024, 3, 1, 10, 0, tzinfo=_dt.UTC)
    assert calls == [(["git", "log", "-1", "--format=%cI", "--", "src/app.ts"], repo.resolve())]


def test_last_changed_caches_per_instance(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    calls: list[list[str]] = []

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        return "2024-03-01T00:00:00Z\n"

    history = ChangeHistory(runner=runner)
    history.last_changed(repo / "src" / "app.ts")
    history.last_changed(repo / "src" / "app.ts")

    assert len(calls) == 1


def test_untracked_file_falls_back_to_mtime(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    target = repo / "src" / "app.ts"
    stamp = _dt.datetime(2023, 6, 1, tzinfo=_dt.UTC).timestamp()
    os.utime(target, (stamp, stamp))

    history = ChangeHistory(runner=lambda args, cwd, capture_output=False: "")

    assert history.last_changed(target) == _dt.datetime(2023, 6, 1, tzinfo=_dt.UTC)


def test_file_outside_repository_uses_mtime(tmp_path: Path) -> None:
    target = tmp_path / "loose.md"
    target.write_text("# Loose\n", encoding="utf-8")
    stamp = _dt.datetime(2022, 1, 2, tzinfo=_dt.UTC).timestamp()
    os.utime(target, (stamp, stamp))

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        raise AssertionError("git must not be invoked outside a work tree")

    moment = asyncio.run(ChangeHistory(runner=runner).last_changed_async(target))

    assert moment == _dt.datetime(2022, 1, 2, tzinfo=_dt.UTC)


def test_git_failure_raises_history_error(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        raise subprocess.CalledProcessError(128, list(args), stderr="fatal: bad object")

    with pytest.raises(HistoryError):
        ChangeHistory(runner=runner).last_changed(repo / "src" / "app.ts")


def test_unexpected_git_output_raises_history_error(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)

    with pytest.raises(HistoryError):
        ChangeHistory(runner=lambda args, cwd, capture_output=False: "yesterday\n").last_changed(
            repo / "src" / "app.ts"
        )
