"""Thin git wrapper for historical file lookups."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 60


class VCSError(Exception):
    pass


class GitRepository:
    """Runs read-only git commands inside a local checkout."""

    def __init__(self, repo_dir: str | Path, timeout: float = GIT_TIMEOUT) -> None:
        self.repo_dir = Path(repo_dir)
        self.timeout = timeout

    def _git(self, *args: str) -> bytes:
        cmd = ["git", *args]
        logger.debug("Running %s in %s", " ".join(cmd), self.repo_dir)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_dir,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise VCSError(f"cannot run git in {self.repo_dir}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise VCSError(f"git {args[0]} timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise VCSError(f"git {' '.join(args)} failed: {stderr or f'exit {result.returncode}'}")
        return result.stdout

    def merge_base(self, branch_a: str, branch_b: str) -> str:
        return self._git("merge-base", branch_a, branch_b).decode("utf-8").strip()

    def show_file_at_commit(self, ref: str, path: str) -> bytes:
        return self._git("show", f"{ref}:{path}")
