"""Mutable state threaded through every review stage."""

from __future__ import annotations

from dataclasses import dataclass, field

from reviewrunner.schemas import TokenReport

DEFAULT_MODEL = "gpt-4o"
DEFAULT_MAX_TOKENS = 120000
NO_SYNTHESIS = "No synthesis available."


@dataclass
class ReviewContext:
    """Everything the stages need about one PR review.

    Owned by the workflow. Fan-out workers only read ``diff_content`` and
    ``model``; their results never go back through this object.
    """

    ticket: str
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    language: str = ""

    repo_dir: str = ""
    branch: str = ""
    design_doc_name: str = ""

    design_doc_content: str = ""
    ticket_details: str = ""

    diff_content: str = ""
    files_content: str = ""
    token_report: TokenReport = field(default_factory=TokenReport)

    analysis_content: str = ""
    synthesis_content: str = ""
    review_content: str = ""
    validation_content: str = ""

    @property
    def prompt_budget(self) -> int:
        """Upper bound for any single stage's prompt."""
        return self.max_tokens // 2

    def synthesis_or_placeholder(self) -> str:
        return self.synthesis_content or NO_SYNTHESIS
