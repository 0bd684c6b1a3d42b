"""Ticket-scoped markdown artifacts written and read by the review workflow."""

from __future__ import annotations

import enum
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"


class ArtifactError(Exception):
    pass


class Artifact(str, enum.Enum):
    DIFF = "diff"
    FILES = "files"
    INITIAL_DISCOVERY = "initial-discovery"
    ORIGINAL_FILE_CONTENT = "original-file-content"
    ORIGINAL_IMPLEMENTATION = "original-implementation"
    ORIGINAL_SYNTHESIS = "original-synthesis"
    REVIEW_RESULT = "review-result"
    VALIDATION = "validation"
    FINAL_SUMMARY = "final-summary"


class ArtifactStore:
    """Reads and writes ``{ticket}-{artifact}.md`` files under one directory."""

    def __init__(self, output_dir: str | Path, ticket: str) -> None:
        self.output_dir = Path(output_dir)
        self.ticket = ticket

    def path(self, artifact: Artifact) -> Path:
        return self.output_dir / f"{self.ticket}-{artifact.value}.md"

    def exists(self, artifact: Artifact) -> bool:
        return self.path(artifact).is_file()

    def read(self, artifact: Artifact) -> str:
        p = self.path(artifact)
        try:
            return p.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ArtifactError(f"artifact not found: {p}") from e
        except OSError as e:
            raise ArtifactError(f"error reading {p}: {e}") from e

    def read_optional(self, artifact: Artifact, default: str = "") -> str:
        if not self.exists(artifact):
            return default
        return self.read(artifact)

    def write(self, artifact: Artifact, content: str) -> Path:
        p = self.path(artifact)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ArtifactError(f"error writing {p}: {e}") from e
        logger.debug("Wrote %s (%d chars)", p, len(content))
        return p

    def append_section(
        self,
        artifact: Artifact,
        body: str,
        header: str = "",
        separator: str = SECTION_SEPARATOR,
    ) -> str:
        """Append ``body`` to the artifact, starting it with ``header`` if new.

        Returns the full artifact text after the write.
        """
        if self.exists(artifact):
            content = self.read(artifact) + separator + body
        else:
            content = header + body
        self.write(artifact, content)
        return content

    def delete(self, artifact: Artifact) -> bool:
        p = self.path(artifact)
        try:
            p.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ArtifactError(f"error removing {p}: {e}") from e
        logger.debug("Removed %s", p)
        return True
