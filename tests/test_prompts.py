"""Tests for prompt builders."""

from __future__ import annotations

from reviewrunner import prompts
from reviewrunner.context import ReviewContext
from reviewrunner.schemas import Ticket


def make_ctx(**kwargs) -> ReviewContext:
    defaults = dict(ticket="TEST-123", diff_content="+added line", files_content="## Modified Files\na.py\n")
    defaults.update(kwargs)
    return ReviewContext(**defaults)


class TestFenceLanguage:
    def test_known_extension(self) -> None:
        assert prompts.fence_language("src/app/Service.php") == "php"
        assert prompts.fence_language("pkg/main.go") == "go"

    def test_case_insensitive(self) -> None:
        assert prompts.fence_language("README.MD") == "markdown"

    def test_unknown_uses_default(self) -> None:
        assert prompts.fence_language("Makefile") == ""
        assert prompts.fence_language("thing.xyz", "php") == "php"


class TestRoleIntro:
    def test_language_hint(self) -> None:
        assert "expertise in PHP and general software development" in prompts.role_intro("reviewer", "PHP")

    def test_generic_without_language(self) -> None:
        intro = prompts.role_intro("reviewer")
        assert "expertise in general software development" in intro

    def test_unknown_role_gets_base_only(self) -> None:
        assert prompts.role_intro("nobody") == prompts.role_intro("nobody", "")


class TestDiscoveryPrompt:
    def test_optional_sections_absent(self) -> None:
        text = prompts.initial_discovery_prompt(make_ctx())
        assert "+added line" in text
        assert "## 4. Recommended File Order" in text
        assert "Design Alignment" not in text
        assert "Ticket Alignment" not in text

    def test_optional_sections_present(self) -> None:
        text = prompts.initial_discovery_prompt(make_ctx(design_doc_content="DESIGN", ticket_details="TICKET"))
        assert "DESIGN" in text
        assert "TICKET" in text
        assert "## 5. Design Alignment" in text
        assert "## 6. Ticket Alignment" in text


class TestFileAnalysisPrompt:
    def test_contains_file_and_fenced_content(self) -> None:
        text = prompts.file_analysis_prompt(make_ctx(), "src/a.py", "def f(): pass")
        assert "File: src/a.py\n" in text
        assert "```python\ndef f(): pass\n```" in text
        assert "+added line" in text

    def test_braces_in_content_survive(self) -> None:
        text = prompts.file_analysis_prompt(make_ctx(), "a.js", "const o = {a: 1};")
        assert "const o = {a: 1};" in text


class TestReviewPrompts:
    def test_synthesis_placeholder(self) -> None:
        text = prompts.syntax_review_prompt(make_ctx())
        assert "No synthesis available." in text
        assert "<SYNTAX_REVIEW>" in text

    def test_synthesis_included(self) -> None:
        text = prompts.functionality_review_prompt(make_ctx(synthesis_content="HOW IT WORKED"))
        assert "HOW IT WORKED" in text
        assert "No synthesis available." not in text
        assert "<FUNCTIONALITY_ISSUES>" in text

    def test_defensive_categories(self) -> None:
        text = prompts.defensive_review_prompt(make_ctx())
        for tag in ("ERROR_HANDLING_ISSUES", "EDGE_CASE_ISSUES", "SECURITY_ISSUES", "RESOURCE_ISSUES"):
            assert f"<{tag}>" in text

    def test_extras_only_when_present(self) -> None:
        assert "### Jira Ticket" not in prompts.syntax_review_prompt(make_ctx())
        assert "### Jira Ticket\n\nTKT" in prompts.syntax_review_prompt(make_ctx(ticket_details="TKT"))


class TestValidationAndSummary:
    def test_validation_embeds_review_and_diff(self) -> None:
        text = prompts.validation_prompt(make_ctx(), "REVIEW BODY", "DIFF BODY")
        assert "```diff\nDIFF BODY\n```" in text
        assert text.endswith("REVIEW BODY")
        assert "## Ticket" not in text

    def test_validation_with_ticket(self) -> None:
        text = prompts.validation_prompt(make_ctx(ticket_details="TKT"), "r", "d")
        assert "## Ticket" in text

    def test_summary_fallbacks(self) -> None:
        text = prompts.final_summary_prompt(make_ctx(), "", "")
        assert prompts.NO_REVIEW in text
        assert prompts.NO_VALIDATION in text

    def test_summary_mentions_design_doc(self) -> None:
        text = prompts.final_summary_prompt(make_ctx(design_doc_content="x"), "r", "v")
        assert "A design document was provided for this PR." in text


class TestTicketPrompt:
    def test_fields(self) -> None:
        ticket = Ticket(key="TEST-1", summary="Sum", status="Open", description="Desc")
        text = prompts.ticket_format_prompt(ticket)
        assert "Ticket Key: TEST-1" in text
        assert "Status: Open" in text
        assert "Description: Desc" in text


class TestSynthesisPrompt:
    def test_contains_analyses(self) -> None:
        assert "ANALYSES" in prompts.synthesis_prompt("ANALYSES")
