"""Nine-stage PR review pipeline.

Stages share a ``ReviewContext`` and hand their output to the next stage in
memory; every artifact is also written through the ``ArtifactStore`` so a run
can be inspected afterwards. Stage 3 fans the per-file analyses out over a
bounded thread pool and reassembles them in changed-file order.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from reviewrunner import prompts
from reviewrunner.artifacts import Artifact, ArtifactError, ArtifactStore
from reviewrunner.context import ReviewContext
from reviewrunner.file_set import ChangedFilesError, FileSetResolver, parse_changed_files, parse_sections
from reviewrunner.jira_client import JiraClientError, TicketStore
from reviewrunner.llm_client import Completer, LLMError
from reviewrunner.progress import ARROW, ProgressReporter
from reviewrunner.schemas import FileAnalysisResult
from reviewrunner.tokens import TokenCountError
from reviewrunner.vcs import VCSError

logger = logging.getLogger(__name__)

TOTAL_STEPS = 9
DEFAULT_MAX_WORKERS = 5
DEFAULT_LAUNCH_STAGGER = 0.25

ORIGINAL_CONTENT_HEADER = "# Original File Contents\n\n"
ANALYSIS_HEADER = (
    "# Original Implementation Analysis\n\n"
    "How the changed code behaved before this PR, file by file.\n\n"
)
SYNTHESIS_HEADER = (
    "# Original Implementation Synthesis\n\n"
    "How the affected feature worked as a whole before this PR.\n\n"
)
REVIEW_HEADER = (
    "# PR Review Results\n\n"
    "The PR changes reviewed from several angles.\n\n"
)


class StageError(Exception):
    """A fatal failure in one workflow stage."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message


class TokenBudgetExceededError(StageError):
    def __init__(self, tokens: int, limit: int) -> None:
        super().__init__("token count", f"token limit exceeded: {tokens} tokens (limit: {limit})")
        self.tokens = tokens
        self.limit = limit


def token_footer(noun: str, tokens: int, model: str) -> str:
    return f"\n\n---\n\nThis {noun} contains **{tokens} tokens** when processed by {model}.\n"


class ReviewWorkflow:
    """Runs the review stages in order against one ticket's artifacts."""

    def __init__(
        self,
        ctx: ReviewContext,
        client: Completer,
        store: ArtifactStore,
        resolver: FileSetResolver,
        progress: ProgressReporter,
        tickets: TicketStore | None = None,
        design_dir: str | Path | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        launch_stagger: float = DEFAULT_LAUNCH_STAGGER,
    ) -> None:
        self.ctx = ctx
        self.client = client
        self.store = store
        self.resolver = resolver
        self.progress = progress
        self.tickets = tickets
        self.design_dir = Path(design_dir) if design_dir is not None else None
        self.max_workers = max_workers
        self.launch_stagger = launch_stagger

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _complete(self, stage: str, prompt: str) -> str:
        """Send one prompt, enforcing the per-prompt half-budget."""
        try:
            tokens = self.client.count_text(prompt)
        except TokenCountError as e:
            logger.debug("Could not count tokens in %s prompt: %s", stage, e)
        else:
            budget = self.ctx.prompt_budget
            self.progress.verbose(f"{stage} prompt contains {tokens} tokens")
            if tokens > budget:
                raise StageError(stage, f"prompt is too large ({tokens} tokens, max is {budget})")

        try:
            return self.client.complete(prompt)
        except LLMError as e:
            raise StageError(stage, str(e)) from e

    def _with_footer(self, content: str, noun: str) -> str:
        try:
            tokens = self.client.count_text(content)
        except TokenCountError as e:
            logger.debug("Could not count tokens in %s: %s", noun, e)
            return content
        return content + token_footer(noun, tokens, self.ctx.model)

    def _write(self, stage: str, artifact: Artifact, content: str) -> None:
        try:
            path = self.store.write(artifact, content)
        except ArtifactError as e:
            raise StageError(stage, str(e)) from e
        self.progress.debug(f"Output path: {path}")

    # ------------------------------------------------------------------
    # Stage 0: context assembly
    # ------------------------------------------------------------------

    def load_design_document(self) -> None:
        name = self.ctx.design_doc_name
        if not name or self.design_dir is None:
            return

        path = self.design_dir / name
        if not path.is_file():
            self.progress.warning(f"Design document {name} not found at {path}, continuing without it")
            return
        try:
            self.ctx.design_doc_content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StageError("design document", f"error reading {path}: {e}") from e
        self.progress.success(f"Design document {name} loaded successfully")

    def load_ticket_details(self) -> None:
        if self.tickets is None:
            logger.debug("No ticket store configured, skipping ticket details")
            return

        try:
            ticket = self.tickets.get_ticket(self.ctx.ticket)
        except JiraClientError as e:
            raise StageError("ticket", str(e)) from e

        self.progress.verbose("Formatting ticket as markdown...")
        self.ctx.ticket_details = self._complete("ticket formatting", prompts.ticket_format_prompt(ticket))

    # ------------------------------------------------------------------
    # Stage 0.5: token budget gate
    # ------------------------------------------------------------------

    def count_tokens(self) -> None:
        ctx = self.ctx
        try:
            ctx.diff_content = self.store.read(Artifact.DIFF)
            ctx.files_content = self.store.read(Artifact.FILES)
        except ArtifactError as e:
            raise StageError("token count", str(e)) from e

        try:
            ctx.token_report.diff_tokens = self.client.count_text(ctx.diff_content)
            ctx.token_report.files_tokens = self.client.count_text(ctx.files_content)
        except TokenCountError as e:
            raise StageError("token count", f"error counting tokens: {e}") from e

        report = ctx.token_report
        self.progress.verbose(f"Token counts for ticket {ctx.ticket}:")
        self.progress.verbose(f"  Diff file:  {report.diff_tokens} tokens")
        self.progress.verbose(f"  Files list: {report.files_tokens} tokens")
        self.progress.verbose(f"  Total:      {report.total} tokens")
        self.progress.verbose(f"  Max tokens: {ctx.max_tokens}")

        if report.total > ctx.max_tokens:
            self.progress.error(f"Content exceeds token limit by {report.total - ctx.max_tokens} tokens")
            raise TokenBudgetExceededError(report.total, ctx.max_tokens)
        self.progress.verbose(f"Tokens remaining: {ctx.max_tokens - report.total}")

    # ------------------------------------------------------------------
    # Stage 1: initial discovery
    # ------------------------------------------------------------------

    def initial_discovery(self) -> None:
        response = self._complete("initial discovery", prompts.initial_discovery_prompt(self.ctx))
        self._write("initial discovery", Artifact.INITIAL_DISCOVERY, response)

    # ------------------------------------------------------------------
    # Stage 2: original file contents
    # ------------------------------------------------------------------

    def _historical_files(self) -> list[tuple[str, bool]]:
        """(path, deleted) pairs for files that existed before the PR."""
        changed = parse_sections(self.ctx.files_content)
        if changed.historical:
            return [(p, False) for p in changed.modified] + [(p, True) for p in changed.deleted]
        try:
            return [(p, False) for p in parse_changed_files(self.ctx.files_content)]
        except ChangedFilesError as e:
            self.progress.warning(f"Could not parse changed files: {e}")
            return []

    def collect_original_file_contents(self) -> None:
        files = self._historical_files()
        sections: list[str] = []

        if files:
            try:
                self.resolver.merge_base()
            except VCSError as e:
                self.progress.warning(str(e))
                files = []

        for path, deleted in files:
            try:
                content = self.resolver.get_original_file_content(path)
            except VCSError as e:
                self.progress.debug(f"Warning: {e}")
                continue
            title = f"{path} (DELETED)" if deleted else path
            fence = prompts.fence_language(path, self.ctx.language.lower())
            sections.append(f"## {title}\n```{fence}\n{content}\n```\n\n")

        body = "".join(sections)
        try:
            tokens = self.client.count_text(ORIGINAL_CONTENT_HEADER + body)
        except TokenCountError as e:
            logger.debug("Could not count tokens in original file contents: %s", e)
            content = ORIGINAL_CONTENT_HEADER + body
        else:
            token_line = f"This file contains **{tokens} tokens** when processed by {self.ctx.model}.\n\n"
            content = ORIGINAL_CONTENT_HEADER + token_line + body

        try:
            self.store.write(Artifact.ORIGINAL_FILE_CONTENT, content)
        except ArtifactError as e:
            self.progress.warning(str(e))
            return
        self.progress.debug(f"Original file contents saved ({len(sections)} files)")

    # ------------------------------------------------------------------
    # Stage 3: per-file analysis fan-out
    # ------------------------------------------------------------------

    def _analyze_file(self, index: int, path: str) -> FileAnalysisResult:
        worker = index + 1
        self.progress.analysis_started(worker, path)
        try:
            content = self.resolver.get_original_file_content(path)
        except Exception as e:
            self.progress.analysis_failed(worker, path, f"could not get content: {e}")
            return FileAnalysisResult(index=index, file=path, error=str(e))

        try:
            analysis = self._complete(f"analysis of {path}", prompts.file_analysis_prompt(self.ctx, path, content))
        except Exception as e:
            self.progress.analysis_failed(worker, path, f"LLM analysis failed: {e}")
            return FileAnalysisResult(index=index, file=path, error=str(e))

        self.progress.analysis_completed(worker, path)
        return FileAnalysisResult(index=index, file=path, analysis=analysis)

    def _worker_count(self, files: list[str]) -> int:
        if self.max_workers <= 0:
            return len(files)
        return min(self.max_workers, len(files))

    def _run_worker(self, results: list[FileAnalysisResult | None], index: int, path: str) -> None:
        # Each worker owns exactly one slot.
        try:
            results[index] = self._analyze_file(index, path)
        except Exception as e:
            logger.exception("Unexpected failure analysing %s", path)
            results[index] = FileAnalysisResult(index=index, file=path, error=str(e))

    def analyze_files(self, files: list[str]) -> list[FileAnalysisResult]:
        """Analyse ``files`` concurrently; results come back in input order."""
        if not files:
            return []

        results: list[FileAnalysisResult | None] = [None] * len(files)
        with ThreadPoolExecutor(max_workers=self._worker_count(files), thread_name_prefix="analyze") as executor:
            for index, path in enumerate(files):
                if index and self.launch_stagger > 0:
                    time.sleep(self.launch_stagger)
                executor.submit(self._run_worker, results, index, path)

        return [r for r in results if r is not None]

    def analyze_original_implementation(self) -> None:
        try:
            files = parse_changed_files(self.ctx.files_content)
        except ChangedFilesError as e:
            self.progress.warning(f"Could not parse changed files: {e}")
            files = []

        self.progress.step_detail(f"Starting analysis of {len(files)} files using up to {self._worker_count(files)} workers")
        results = self.analyze_files(files)

        failed = [r.file for r in results if not r.ok]
        if failed:
            logger.info("Skipped %d of %d files: %s", len(failed), len(files), ", ".join(failed))

        body = "".join(f"## {r.file}\n\n{r.analysis}\n\n" for r in results if r.ok)
        content = self._with_footer(ANALYSIS_HEADER + body, "analysis")
        self.ctx.analysis_content = content
        self._write("original implementation analysis", Artifact.ORIGINAL_IMPLEMENTATION, content)

    # ------------------------------------------------------------------
    # Stage 4: synthesis
    # ------------------------------------------------------------------

    def synthesize_original_implementation(self) -> None:
        analyses = self.ctx.analysis_content
        if not analyses:
            try:
                analyses = self.store.read(Artifact.ORIGINAL_IMPLEMENTATION)
            except ArtifactError as e:
                raise StageError("synthesis", str(e)) from e

        response = self._complete("synthesis", prompts.synthesis_prompt(analyses))
        content = self._with_footer(SYNTHESIS_HEADER + response, "synthesis")
        self.ctx.synthesis_content = content
        self._write("synthesis", Artifact.ORIGINAL_SYNTHESIS, content)

    # ------------------------------------------------------------------
    # Stages 5-7: reviews
    # ------------------------------------------------------------------

    def _review(self, stage: str, build: Callable[[ReviewContext], str], footer: bool = False) -> None:
        response = self._complete(stage, build(self.ctx))
        if footer:
            response = self._with_footer(response, "review")
        try:
            self.ctx.review_content = self.store.append_section(
                Artifact.REVIEW_RESULT, response, header=REVIEW_HEADER
            )
        except ArtifactError as e:
            raise StageError(stage, str(e)) from e

    def reset_review(self) -> None:
        self.ctx.review_content = ""
        try:
            if self.store.delete(Artifact.REVIEW_RESULT):
                self.progress.debug("Removed existing review file")
        except ArtifactError as e:
            self.progress.debug(f"Warning: could not remove existing review file: {e}")

    def syntax_review(self) -> None:
        self._review("syntax review", prompts.syntax_review_prompt, footer=True)

    def functionality_review(self) -> None:
        self._review("functionality review", prompts.functionality_review_prompt)

    def defensive_review(self) -> None:
        self._review("defensive review", prompts.defensive_review_prompt)

    # ------------------------------------------------------------------
    # Stages 8-9: validation and summary
    # ------------------------------------------------------------------

    def validate_findings(self) -> None:
        review = self.ctx.review_content or self.store.read_optional(Artifact.REVIEW_RESULT)
        response = self._complete("validation", prompts.validation_prompt(self.ctx, review, self.ctx.diff_content))
        self.ctx.validation_content = response
        self._write("validation", Artifact.VALIDATION, response)

    def final_summary(self) -> None:
        review = self.ctx.review_content or self.store.read_optional(Artifact.REVIEW_RESULT)
        validation = self.ctx.validation_content or self.store.read_optional(Artifact.VALIDATION)
        response = self._complete("final summary", prompts.final_summary_prompt(self.ctx, review, validation))
        self._write("final summary", Artifact.FINAL_SUMMARY, response)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Run every stage in order. The first fatal failure raises ``StageError``."""
        p = self.progress
        p.set_total_steps(TOTAL_STEPS)

        p.section("Assembling PR context")
        if self.ctx.design_doc_name:
            p.info(f"{ARROW} Loading design document")
            self.load_design_document()
        if self.tickets is not None:
            p.info(f"{ARROW} Fetching Jira ticket")
            self.load_ticket_details()
            p.success(f"Jira ticket {self.ctx.ticket} loaded successfully")

        self.count_tokens()

        p.step("Performing initial discovery")
        p.step_detail("Sending initial discovery prompt")
        self.initial_discovery()

        p.step("Collecting original file contents")
        self.collect_original_file_contents()
        p.success("Original file content collection completed")

        p.section("Previous implementation analysis")
        p.step("Analyzing original implementation")
        self.analyze_original_implementation()
        p.success("Original implementation analysis completed")

        p.step("Synthesizing original implementation")
        p.step_detail("Synthesizing file analyses")
        self.synthesize_original_implementation()
        p.success("Original implementation synthesis completed")

        p.section("PR review generation")
        self.reset_review()

        p.step("Generating syntax and best practices review")
        p.step_detail("Checking syntax and best practices")
        self.syntax_review()
        p.success("Syntax review completed")

        p.step("Generating functionality review")
        p.step_detail("Checking functionality against requirements")
        self.functionality_review()
        p.success("Functionality review completed")

        p.step("Generating defensive programming review")
        p.step_detail("Checking error handling, edge cases and security")
        self.defensive_review()
        p.success("Defensive programming review completed")

        p.step("Validating review findings")
        p.step_detail("Challenging assumptions and validating issues")
        self.validate_findings()
        p.success("Review validation completed")

        p.step("Generating final review summary")
        p.step_detail("Creating human-friendly review summary")
        self.final_summary()
        p.success("Final review summary saved")
        p.success(f"Review written to {self.store.path(Artifact.FINAL_SUMMARY)}")

        p.complete()
