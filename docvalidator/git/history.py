"""Change history lookups backed by git, with a modification-time fallback."""

from __future__ import annotations

import asyncio
import datetime as _dt
import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from ..logging import get_logger

_logger = get_logger("git.history")


class HistoryError(RuntimeError):
    """Raised when the change history of a file cannot be determined."""


class ChangeHistory:
    """Answers "when did file F last change?" for one validation run.

    Results are cached per instance, so a new instance should be created for
    every request.
    """

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner
        self._cache: Dict[Path, Optional[_dt.datetime]] = {}
        self._roots: Dict[Path, Optional[Path]] = {}

    def last_changed(self, path: Path) -> Optional[_dt.datetime]:
        """Return the last change time of ``path`` in UTC.

        Inside a git work tree this is the committer date of the most recent
        commit touching the file; untracked files and files outside a work
        tree fall back to their modification time.
        """
        target = path.resolve()
        if target in self._cache:
            return self._cache[target]

        repo = self._find_repo_root(target.parent)
        moment: Optional[_dt.datetime] = None
        if repo is not None:
            moment = self._commit_time(repo, target)
        if moment is None:
            moment = self._modification_time(target)
        self._cache[target] = moment
        return moment

    async def last_changed_async(self, path: Path) -> Optional[_dt.datetime]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.last_changed, path)

    # ------------------------------------------------------------------
    # Internals

    def _find_repo_root(self, directory: Path) -> Optional[Path]:
        if directory in self._roots:
            return self._roots[directory]
        root: Optional[Path] = None
        for candidate in (directory, *directory.parents):
            if (candidate / ".git").exists():
                root = candidate
                break
        self._roots[directory] = root
        return root

    def _commit_time(self, repo: Path, target: Path) -> Optional[_dt.datetime]:
        rel_path = target.relative_to(repo).as_posix()
        args = ["git", "log", "-1", "--format=%cI", "--", rel_path]
        try:
            output = self._runner(args, cwd=repo, capture_output=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise HistoryError(f"git log failed for {rel_path}: {exc}") from exc

        stamp = output.strip()
        if not stamp:
            _logger.debug("No commits for %s; using modification time", rel_path)
            return None
        try:
            moment = _dt.datetime.fromisoformat(stamp.replace("Z", "+00:00"))
        except ValueError as exc:
            raise HistoryError(f"Unexpected git timestamp for {rel_path}: {stamp!r}") from exc
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=_dt.UTC)
        return moment.astimezone(_dt.UTC)

    @staticmethod
    def _modification_time(target: Path) -> _dt.datetime:
        try:
            mtime = target.stat().st_mtime
        except OSError as exc:
            raise HistoryError(f"Cannot stat {target}: {exc}") from exc
        return _dt.datetime.fromtimestamp(mtime, tz=_dt.UTC)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


__all__ = ["ChangeHistory", "HistoryError"]
