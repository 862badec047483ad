"""Thin git wrapper providing changed files and per-file diffs."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .errors import GitError

logger = logging.getLogger(__name__)


class GitClient:
    """Runs git in *repo_root* and returns its text output."""

    def __init__(self, repo_root: Union[str, Path] = ".") -> None:
        self.repo_root = Path(repo_root)

    def _run(self, args: Sequence[str], ok_codes: Sequence[int] = (0,)) -> str:
        cmd = ["git", *args]
        logger.debug("Running %s in %s", " ".join(cmd), self.repo_root)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as exc:
            raise GitError("git executable not found") from exc

        if result.returncode not in ok_codes:
            raise GitError(
                f"git {' '.join(args)} failed ({result.returncode}): {result.stderr.strip()}"
            )
        return result.stdout

    def changed_files(self, base: Optional[str] = None, include_untracked: bool = True) -> List[str]:
        """Paths (relative to the repo root) changed against *base* or HEAD."""
        args = ["diff", "--name-only", "--relative", "--diff-filter=d"]
        if base:
            args.append(base)
        else:
            args.append("HEAD")
        files = [line for line in self._run(args).splitlines() if line.strip()]

        if include_untracked:
            untracked = self._run(["ls-files", "--others", "--exclude-standard"])
            for line in untracked.splitlines():
                if line.strip() and line not in files:
                    files.append(line)
        return files

    def is_tracked(self, path: str) -> bool:
        try:
            self._run(["ls-files", "--error-unmatch", "--", path])
        except GitError:
            return False
        return True

    def file_diff(self, path: str, base: Optional[str] = None) -> str:
        """Unified diff of *path*; untracked files diff as entirely added."""
        if not self.is_tracked(path):
            # exit code 1 just means "files differ"
            return self._run(["diff", "--no-color", "--no-index", "--", "/dev/null", path], ok_codes=(0, 1))
        return self._run(["diff", "--no-color", base or "HEAD", "--", path])
