"""Shared fakes and fixtures for reviewrunner tests."""

from __future__ import annotations

import io
import re
import threading
import time
from pathlib import Path
from typing import Callable

import pytest
from rich.console import Console

from reviewrunner.artifacts import Artifact, ArtifactStore
from reviewrunner.context import ReviewContext
from reviewrunner.jira_client import JiraClientError
from reviewrunner.llm_client import LLMRequestError
from reviewrunner.progress import ProgressReporter, Verbosity
from reviewrunner.schemas import Ticket
from reviewrunner.vcs import VCSError

_FILE_LINE = re.compile(r"^File: (.+)$", re.M)


def file_in_prompt(prompt: str) -> str | None:
    match = _FILE_LINE.search(prompt)
    return match.group(1) if match else None


def echo_responder(prompt: str) -> str:
    """Answer file-analysis prompts with the file name, everything else generically."""
    path = file_in_prompt(prompt)
    if path is not None:
        return f"analysis of {path}"
    return "response"


class FakeCompleter:
    """Deterministic completer; one token per whitespace-separated word."""

    def __init__(
        self,
        model: str = "gpt-4o",
        responder: Callable[[str], str] = echo_responder,
        delays: dict[str, float] | None = None,
        fail_on: set[str] | None = None,
    ) -> None:
        self.model = model
        self.responder = responder
        self.delays = delays or {}
        self.fail_on = fail_on or set()
        self.prompts: list[str] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def count_text(self, text: str) -> int:
        return len(text.split())

    def complete(self, prompt: str) -> str:
        path = file_in_prompt(prompt)
        with self._lock:
            self.prompts.append(prompt)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            delay = self.delays.get(path or "", 0)
            if delay:
                time.sleep(delay)
            if path in self.fail_on:
                raise LLMRequestError("unexpected status code: 500", status_code=500, retryable=True)
            return self.responder(prompt)
        finally:
            with self._lock:
                self.active -= 1


class FakeResolver:
    """Serves pre-change file contents from a dict."""

    def __init__(self, files: dict[str, str] | None = None, merge_base_error: str | None = None) -> None:
        self.files = files or {}
        self.merge_base_error = merge_base_error
        self.requested: list[str] = []
        self._lock = threading.Lock()

    def merge_base(self) -> str:
        if self.merge_base_error:
            raise VCSError(self.merge_base_error)
        return "abc123"

    def get_original_file_content(self, path: str) -> str:
        with self._lock:
            self.requested.append(path)
        self.merge_base()
        if path not in self.files:
            raise VCSError(f"failed to get content for {path}: path does not exist")
        return self.files[path]


class FakeTickets:
    def __init__(self, tickets: dict[str, Ticket] | None = None) -> None:
        self.tickets = tickets or {}

    def get_ticket(self, key: str) -> Ticket:
        if key not in self.tickets:
            raise JiraClientError(f"ticket {key} not found")
        return self.tickets[key]


def files_markdown(modified=(), added=(), deleted=()) -> str:
    parts = ["# Changed Files for feature/branch\n"]
    for title, paths in (("Modified Files", modified), ("Added Files", added), ("Deleted Files", deleted)):
        parts.append(f"## {title}")
        parts.extend(paths)
        parts.append("")
    parts.append("## Stats\n3 files changed")
    return "\n".join(parts) + "\n"


@pytest.fixture
def progress() -> ProgressReporter:
    return ProgressReporter(
        console=Console(file=io.StringIO(), width=200),
        err_console=Console(file=io.StringIO(), width=200),
        verbosity=Verbosity.DEBUG,
    )


@pytest.fixture
def store(tmp_path: Path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "reviews", "TEST-123")


@pytest.fixture
def seed(store: ArtifactStore) -> Callable[[str, str], None]:
    """Write the diff and files artifacts a review starts from."""

    def _seed(diff: str, files: str) -> None:
        store.write(Artifact.DIFF, diff)
        store.write(Artifact.FILES, files)

    return _seed


@pytest.fixture
def ctx() -> ReviewContext:
    return ReviewContext(ticket="TEST-123")
