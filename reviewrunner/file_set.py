"""Parse the changed-files artifact and resolve pre-change file contents."""

from __future__ import annotations

import logging
import re
import threading

from reviewrunner.schemas import ChangedFiles
from reviewrunner.vcs import GitRepository, VCSError

logger = logging.getLogger(__name__)

DEFAULT_BRANCHES = ("main", "master")

_SECTION_KEYS = {
    "Modified Files": "modified",
    "Added Files": "added",
    "Deleted Files": "deleted",
}

# Bare "path/to/file.ext" lines, used when the section headers are missing.
_FILE_LINE = re.compile(r"^([a-zA-Z0-9_\-./]+\.[a-zA-Z0-9]+)$", re.M)


class ChangedFilesError(Exception):
    pass


def _path_from_line(line: str) -> str | None:
    stripped = line.strip()
    if stripped.startswith(("- ", "* ")):
        stripped = stripped[2:].strip()
    stripped = stripped.strip("`")
    if not stripped or stripped.startswith("#") or any(ch.isspace() for ch in stripped):
        return None
    return stripped


def parse_sections(files_content: str) -> ChangedFiles:
    """Split the changed-files markdown into its Modified/Added/Deleted sections."""
    sections: dict[str, list[str]] = {"modified": [], "added": [], "deleted": []}
    current: str | None = None

    for line in files_content.splitlines():
        if line.startswith("## "):
            current = _SECTION_KEYS.get(line[3:].strip())
            continue
        if current is None:
            continue
        path = _path_from_line(line)
        if path:
            sections[current].append(path)

    return ChangedFiles(**sections)


def parse_changed_files(files_content: str) -> list[str]:
    """Return modified then deleted paths, the files that have a "before" state."""
    if not files_content.strip():
        raise ChangedFilesError("files content is empty")

    changed = parse_sections(files_content)
    files = changed.historical

    if not files:
        logger.debug("No files found in sections, trying regex fallback")
        files = _FILE_LINE.findall(files_content)
        if not files:
            raise ChangedFilesError("could not find any filenames in files content")

    logger.debug(
        "Found %d files for analysis (modified: %d, deleted: %d, added files excluded)",
        len(files), len(changed.modified), len(changed.deleted),
    )
    return files


class FileSetResolver:
    """Looks up file contents as they were at the PR's merge base."""

    def __init__(
        self,
        vcs: GitRepository,
        branch: str = "",
        default_branches: tuple[str, ...] = DEFAULT_BRANCHES,
    ) -> None:
        self.vcs = vcs
        self.branch = branch or "HEAD"
        self.default_branches = default_branches
        self._merge_base: str | None = None
        self._lock = threading.Lock()

    def merge_base(self) -> str:
        """Common ancestor of the default branch and the PR branch (cached)."""
        with self._lock:
            if self._merge_base is not None:
                return self._merge_base

            errors: list[str] = []
            for base in self.default_branches:
                try:
                    commit = self.vcs.merge_base(base, self.branch)
                except VCSError as e:
                    errors.append(str(e))
                    continue
                if commit:
                    logger.debug("Merge base of %s and %s is %s", base, self.branch, commit)
                    self._merge_base = commit
                    return commit
            raise VCSError(f"failed to find merge-base: {'; '.join(errors)}")

    def get_original_file_content(self, path: str) -> str:
        commit = self.merge_base()
        try:
            content = self.vcs.show_file_at_commit(commit, path)
        except VCSError as e:
            raise VCSError(f"failed to get content for {path}: {e}") from e
        return content.decode("utf-8", errors="replace")
