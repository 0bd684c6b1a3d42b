"""Data models for reviewrunner."""

from __future__ import annotations

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Issue tracker
# ---------------------------------------------------------------------------

class Ticket(BaseModel):
    key: str
    summary: str = ""
    status: str = ""
    description: str = ""
    assignee: str = ""
    reporter: str = ""


# ---------------------------------------------------------------------------
# Changed files
# ---------------------------------------------------------------------------

class ChangedFiles(BaseModel):
    modified: list[str] = Field(default_factory=list)
    added: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)

    @property
    def historical(self) -> list[str]:
        """Files that existed before the PR (added files have no prior state)."""
        return self.modified + self.deleted

    def is_empty(self) -> bool:
        return not (self.modified or self.added or self.deleted)


# ---------------------------------------------------------------------------
# Workflow bookkeeping
# ---------------------------------------------------------------------------

class TokenReport(BaseModel):
    diff_tokens: int = 0
    files_tokens: int = 0

    @property
    def total(self) -> int:
        return self.diff_tokens + self.files_tokens


class FileAnalysisResult(BaseModel):
    """Outcome of analysing one changed file; exactly one of analysis/error is set."""
    index: int
    file: str
    analysis: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
