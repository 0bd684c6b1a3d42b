"""Prompt templates for each review stage.

Builders are pure: they take the review context (and whatever stage output
they need) and return the prompt string. Optional context such as the design
document or the ticket is only included when it is non-empty.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from reviewrunner.context import ReviewContext
from reviewrunner.schemas import Ticket

NO_REVIEW = "No review content available."
NO_VALIDATION = "No validation content available."

_FENCE_LANGUAGES = {
    ".py": "python",
    ".go": "go",
    ".php": "php",
    ".js": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".swift": "swift",
    ".scala": "scala",
    ".sh": "bash",
    ".sql": "sql",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".toml": "toml",
    ".md": "markdown",
    ".html": "html",
    ".css": "css",
}


def fence_language(path: str, default: str = "") -> str:
    """Markdown code-fence tag for ``path`` based on its extension."""
    return _FENCE_LANGUAGES.get(PurePosixPath(path).suffix.lower(), default)


# ---------------------------------------------------------------------------
# Role introductions
# ---------------------------------------------------------------------------

_BASE_INTRO = (
    "You are a skeptical, methodical senior developer with expertise in {expertise}. "
    "Treat every change as if it contains mistakes until the code convinces you otherwise. "
)

_ROLE_INTROS = {
    "reviewer": "Your audience is other senior developers who want reviews that are helpful, brief and professional. ",
    "analyzer": "You are studying one file of the codebase as it existed before a pull request.\n\n",
    "discoverer": "You are getting oriented in a pull request before a detailed review.",
    "summarizer": "You are writing the final summary of a pull request review for GitHub. ",
    "validator": "You are giving a second opinion on a machine-generated pull request review. ",
}


def role_intro(role: str, language: str = "") -> str:
    expertise = f"{language} and general software development" if language else "general software development"
    return _BASE_INTRO.format(expertise=expertise) + _ROLE_INTROS.get(role, "")


# ---------------------------------------------------------------------------
# Stage 0: ticket formatting
# ---------------------------------------------------------------------------

TICKET_FORMAT_TEMPLATE = """\
You prepare issue-tracker tickets so they can be used as context for a code review.

Rewrite the ticket below as tidy markdown. Bring forward whatever helps a reviewer \
judge the code: technical requirements, acceptance criteria and implementation notes. \
Keep it short, but do not drop requirements.

Ticket Key: {key}
Summary: {summary}
Status: {status}
Description: {description}

Return only the formatted markdown."""


def ticket_format_prompt(ticket: Ticket) -> str:
    return TICKET_FORMAT_TEMPLATE.format(
        key=ticket.key,
        summary=ticket.summary,
        status=ticket.status,
        description=ticket.description,
    )


# ---------------------------------------------------------------------------
# Stage 1: initial discovery
# ---------------------------------------------------------------------------

DISCOVERY_TEMPLATE = """\
{intro}

These files were changed:
{files}

This is the full diff:
{diff}{design_section}{ticket_section}

Answer using EXACTLY these section headings:

## 1. Comprehensive Summary
[One paragraph describing what the change does]

## 2. Framework Detection
[Frameworks and libraries in play, with the evidence from the code that shows it]

## 3. Flow of Logic
[How control and data move through the changed files and functions]

## 4. Recommended File Order
[The order in which the files should be read]{design_heading}{ticket_heading}

For the recommended file order:
- Use the complete paths exactly as they appear in the file list
- Put each path in backticks
- Number the files (1, 2, 3, ...)
- Say briefly why this order makes sense

Write markdown with clear sections and references to the code."""

_DESIGN_CONTEXT = """

## Design Document

This design document describes the intent behind the pull request:

{content}

Take it into account in your analysis."""

_TICKET_CONTEXT = """

## Jira Ticket

This ticket describes what the pull request is meant to deliver:

{content}

Take it into account in your analysis."""

_DESIGN_HEADING = """

## 5. Design Alignment
[How closely the change follows the design document]"""

_TICKET_HEADING = """

## 6. Ticket Alignment
[How completely the change meets the ticket's requirements]"""


def initial_discovery_prompt(ctx: ReviewContext) -> str:
    has_design = bool(ctx.design_doc_content)
    has_ticket = bool(ctx.ticket_details)
    return DISCOVERY_TEMPLATE.format(
        intro=role_intro("discoverer", ctx.language),
        files=ctx.files_content,
        diff=ctx.diff_content,
        design_section=_DESIGN_CONTEXT.format(content=ctx.design_doc_content) if has_design else "",
        ticket_section=_TICKET_CONTEXT.format(content=ctx.ticket_details) if has_ticket else "",
        design_heading=_DESIGN_HEADING if has_design else "",
        ticket_heading=_TICKET_HEADING if has_ticket else "",
    )


# ---------------------------------------------------------------------------
# Stage 3: per-file analysis
# ---------------------------------------------------------------------------

FILE_ANALYSIS_TEMPLATE = """\
{intro}The goal is to understand how the feature touched by this pull request worked BEFORE the change.

File: {path}

Content of the file before the change:
```{fence}
{content}
```

Diff of the pull request:
{diff}

Cover:
1. Which feature or behaviour this file contributes to, judging by the diff
2. How the functions and methods affected by the diff behaved before the change
3. Their inputs, outputs and dependencies
4. Business rules and validation implemented for this feature
5. How this file cooperates with the rest of the system for this feature

Another model will read your analysis as background when it reviews the change. \
Stay on the feature being modified rather than the overall architecture, and be clear and concise."""


def file_analysis_prompt(ctx: ReviewContext, path: str, content: str) -> str:
    return FILE_ANALYSIS_TEMPLATE.format(
        intro=role_intro("analyzer", ctx.language),
        path=path,
        fence=fence_language(path, ctx.language.lower()),
        content=content,
        diff=ctx.diff_content,
    )


# ---------------------------------------------------------------------------
# Stage 4: synthesis
# ---------------------------------------------------------------------------

SYNTHESIS_TEMPLATE = """\
You are a senior software engineer combining per-file analyses into one picture of a feature.

Each analysis below describes one file involved in a feature that a pull request is changing. \
Merge them into an account of how the feature worked as a whole BEFORE the change.

Cover:
1. Which feature is being modified
2. The end-to-end data and control flow of that feature
3. Its business rules and validation
4. How the components collaborate to implement it
5. Edge cases and limitations of the existing implementation

Another model will use this synthesis as context when reviewing the change, so name concrete \
methods, parameters and rules, and organise the answer so it is easy to consult.

File analyses:

{analyses}

Give a clear, complete synthesis of how the feature behaved before the change."""


def synthesis_prompt(analyses: str) -> str:
    return SYNTHESIS_TEMPLATE.format(analyses=analyses)


# ---------------------------------------------------------------------------
# Stages 5-7: reviews
# ---------------------------------------------------------------------------

REVIEW_TEMPLATE = """\
# Code Review: {title}

{intro}{goal} Prefer substance over style and skip anything an experienced developer would find obvious.

## Review Focus

{focus}

## Output Format

Another model will consolidate your output, so it is not read by people directly. \
Use exactly this structure:

```
<{tag}>
  <REVIEW_SUMMARY>
  Short assessment of the findings and of the review's limits
  </REVIEW_SUMMARY>
{categories}
  <REVIEW_LIMITATIONS>
  [Whether the context was enough for a thorough review, and what would help]
  </REVIEW_LIMITATIONS>
</{tag}>
```

Report every issue as:

```
<ISSUE>
FILE: path/to/file
LINE: 42
SEVERITY: [Critical|Major|Minor]
PROBLEM: Short description
SOLUTION_CODE:
[original snippet, then the corrected snippet, with a few lines of surrounding context]
</ISSUE>
```

When a category has nothing to report, write `<NO_ISSUES_FOUND/>`.

{scope}

## Context

### Original Implementation

{synthesis}

### Changes in this PR

{diff}{extras}"""

_CATEGORY = """
  <{name}>
  [{hint}]
  </{name}>
"""


def _categories(pairs: list[tuple[str, str]]) -> str:
    return "".join(_CATEGORY.format(name=name, hint=hint) for name, hint in pairs)


def _review_extras(ctx: ReviewContext) -> str:
    parts = []
    if ctx.design_doc_content:
        parts.append(f"\n\n### Design Document\n\n{ctx.design_doc_content}")
    if ctx.ticket_details:
        parts.append(f"\n\n### Jira Ticket\n\n{ctx.ticket_details}")
    return "".join(parts)


def _review_prompt(
    ctx: ReviewContext,
    title: str,
    tag: str,
    goal: str,
    focus: str,
    categories: list[tuple[str, str]],
    scope: str,
) -> str:
    return REVIEW_TEMPLATE.format(
        title=title,
        intro=role_intro("reviewer", ctx.language),
        goal=goal,
        focus=focus,
        tag=tag,
        categories=_categories(categories),
        scope=scope,
        synthesis=ctx.synthesis_or_placeholder(),
        diff=ctx.diff_content,
        extras=_review_extras(ctx),
    )


SYNTAX_FOCUS = """\
1. **Syntax errors**: anything that fails at runtime, misspelled names, missing syntax, bad imports or namespaces.
2. **Logic and variables**: parameter use, type handling, null or undefined access, conditionals, error handling.
3. **Duplicate implementations**: functionality the PR adds that already exists elsewhere under another name.
4. **Name clashes**: classes or interfaces with the same name in different namespaces.
5. **Limits of this review**: say whether the context is sufficient and what else would help."""

FUNCTIONALITY_FOCUS = """\
Compare the change against the ticket and, when present, the design document. \
Decide whether every requirement is implemented completely and correctly, and list each missing \
or incorrect piece separately.

Answer honestly: with the context given, can you review this implementation thoroughly? Yes or no, and why not.
If not, name the missing context, why a senior developer on the team would expect to have it, \
and exactly how you would use it."""

DEFENSIVE_FOCUS = """\
Understand what the existing code is for before proposing any change.

1. **Understand first**: be sure of the intent of the code, especially conditional logic, before suggesting edits.
2. **Keep behaviour**: never suggest a change that drops an intended case the original code handles.
3. **Give location**: include the function signature and a few lines around every suggestion.
4. **Regressions**: given what we know of the original behaviour, could the change break something?
5. **Arguments**: check that values passed into functions are what those functions expect.
6. **Uncaught errors**: find paths where an exception could escape and interrupt callers.
7. **Edge cases**: only suggest changes that actually improve edge-case handling.
8. **Conditionals**: make sure rewritten if/else logic keeps the business rule intact.
9. **Limits of this review**: say whether the context is sufficient and what else would help."""


def syntax_review_prompt(ctx: ReviewContext) -> str:
    return _review_prompt(
        ctx,
        title="Syntax and Best Practices",
        tag="SYNTAX_REVIEW",
        goal="Find syntax problems and best-practice violations that would cost the team time.",
        focus=SYNTAX_FOCUS,
        categories=[
            ("CRITICAL_ISSUES", "Syntax errors that would fail at runtime"),
            ("LOGIC_ISSUES", "Problems with variable or parameter use and logic"),
            ("IMPROVEMENT_SUGGESTIONS", "Best-practice violations"),
        ],
        scope="Stick to syntax and logic. Broader functionality is reviewed separately.",
    )


def functionality_review_prompt(ctx: ReviewContext) -> str:
    return _review_prompt(
        ctx,
        title="Implementation vs Requirements",
        tag="FUNCTIONALITY_REVIEW",
        goal="Find functionality that is missing or wrong.",
        focus=FUNCTIONALITY_FOCUS,
        categories=[
            ("FUNCTIONALITY_ISSUES", "Gaps or errors compared with the ticket and design document"),
        ],
        scope="Stick to whether the requirements are met. Syntax and logic are reviewed separately.",
    )


def defensive_review_prompt(ctx: ReviewContext) -> str:
    return _review_prompt(
        ctx,
        title="Defensive Programming",
        tag="DEFENSIVE_REVIEW",
        goal="Find security problems, error-handling gaps and edge cases that could hurt in production.",
        focus=DEFENSIVE_FOCUS,
        categories=[
            ("ERROR_HANDLING_ISSUES", "Missing or weak error handling"),
            ("EDGE_CASE_ISSUES", "Unhandled edge cases"),
            ("SECURITY_ISSUES", "Possible security problems"),
            ("RESOURCE_ISSUES", "Resource management problems"),
        ],
        scope="Stick to defensive programming. Syntax and functionality are reviewed separately.",
    )


# ---------------------------------------------------------------------------
# Stage 8: validation
# ---------------------------------------------------------------------------

VALIDATION_TEMPLATE = """\
# PR Review Validation

{intro}Check each finding of the review against the diff and confirm or challenge it.
{ticket_section}
## Task

For every issue in the review:

1. **Evidence**: does the diff actually support the claim?
2. **Severity**: does the rating match the real impact?
3. **Fix**: would the proposed solution work without causing new problems?
4. **False positives**: is it a real issue or a misreading of the code?

Read the diff first, then go through the issues one by one and decide whether to
- **Confirm** it as stated,
- **Adjust** it (severity or description), or
- **Reject** it as invalid.

Also report real issues the review missed.

## Output Format

```xml
<VALIDATION_SUMMARY>
How many issues were confirmed, adjusted and rejected, and the overall picture.
</VALIDATION_SUMMARY>

<CONFIRMED_ISSUES>
<ISSUE>
FILE: path/to/file
ORIGINAL_SEVERITY: Critical/Major/Minor
CONFIRMED_SEVERITY: Critical/Major/Minor
PROBLEM: Short description
EVIDENCE: What in the diff confirms it
SOLUTION_ASSESSMENT: Whether the proposed fix is right
</ISSUE>
</CONFIRMED_ISSUES>

<ADJUSTED_ISSUES>
<ISSUE>
FILE: path/to/file
ORIGINAL_SEVERITY: Critical/Major/Minor
ADJUSTED_SEVERITY: Critical/Major/Minor
ORIGINAL_PROBLEM: The review's description
ADJUSTED_PROBLEM: Your description
ADJUSTMENT_REASON: Why it changed
EVIDENCE: What in the diff supports the adjustment
SOLUTION_ASSESSMENT: Whether the proposed fix is right, or a better one
</ISSUE>
</ADJUSTED_ISSUES>

<REJECTED_ISSUES>
<ISSUE>
FILE: path/to/file
ORIGINAL_SEVERITY: Critical/Major/Minor
ORIGINAL_PROBLEM: The review's description
REJECTION_REASON: Why it is not an issue
EVIDENCE: What in the diff contradicts it
</ISSUE>
</REJECTED_ISSUES>

<MISSED_ISSUES>
<ISSUE>
FILE: path/to/file
SEVERITY: Critical/Major/Minor
PROBLEM: What the review missed
EVIDENCE: What in the diff shows it
SUGGESTED_SOLUTION: How to fix it
</ISSUE>
</MISSED_ISSUES>
```

## Context

### Diff

```diff
{diff}
```

### Review to Validate

{review}"""

_VALIDATION_TICKET = """
## Ticket

The pull request is for this ticket:

{content}

Keep it in mind while validating.
"""


def validation_prompt(ctx: ReviewContext, review: str, diff: str) -> str:
    ticket_section = _VALIDATION_TICKET.format(content=ctx.ticket_details) if ctx.ticket_details else ""
    return VALIDATION_TEMPLATE.format(
        intro=role_intro("validator", ctx.language),
        ticket_section=ticket_section,
        diff=diff,
        review=review or NO_REVIEW,
    )


# ---------------------------------------------------------------------------
# Stage 9: final summary
# ---------------------------------------------------------------------------

FINAL_SUMMARY_TEMPLATE = """\
# PR Review Summary

{intro}Turn the machine-generated review phases and their validation into one concise, \
actionable and professional summary.

Where the validation disagrees with the original review, the validation wins. Report confirmed \
issues, adjusted issues in their corrected form, and issues the validation added.

Write clean GitHub-flavored markdown only. Do not use XML-style tags such as <SYNTAX_REVIEW> \
or <CRITICAL_ISSUES> anywhere in the answer.

## Rules

- Only report issues that appear in the review content. Never invent issues; when unsure, leave it out.
- Summarise what the reviews found. Do not perform a new review.
- Keep each issue's severity. Do not promote minor issues to blockers.
- If no blockers were found, say "No blocker issues were identified".

## Structure

1. **Overview**: two or three sentences on the purpose and quality of the PR.
2. **Positive Aspects**: what was done well, if anything.
3. **Blocker Issues**: issues that must be fixed before release, each as
   ### N. Title
   **Issue**, **Why** it matters, and a **Suggested Fix** as a ```diff block with the \
surrounding function signature and a few lines of context.
4. **Non-Blocker Issues**: worthwhile improvements, each as
   ### N. Title
   **Suggestion**, **Benefit**, **File**, approximate **Line**, and an **Example** ```diff block.

Diff blocks use plain - and + lines with enough context to locate the change, and no \
"original"/"fixed" comments.

Use ## and ### headers, bullet lists, fenced code with syntax highlighting, and tables where they help.

## Context
{ticket_section}{design_section}
### Original Review Content

{review}

### Validation Results

Prefer these over the original review when they conflict:

{validation}"""


def final_summary_prompt(ctx: ReviewContext, review: str, validation: str) -> str:
    ticket_section = f"\n### Jira Ticket\n\n{ctx.ticket_details}\n" if ctx.ticket_details else ""
    design_section = "\n### Design Document\n\nA design document was provided for this PR.\n" if ctx.design_doc_content else ""
    return FINAL_SUMMARY_TEMPLATE.format(
        intro=role_intro("summarizer", ctx.language),
        ticket_section=ticket_section,
        design_section=design_section,
        review=review or NO_REVIEW,
        validation=validation or NO_VALIDATION,
    )
