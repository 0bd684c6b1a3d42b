"""Step-by-step console progress for review runs."""

from __future__ import annotations

import enum
import threading
import time

from rich.console import Console
from rich.markup import escape

CHECKMARK = "✓"
CROSS = "✗"
ARROW = "→"


class Verbosity(enum.IntEnum):
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


def format_duration(seconds: float) -> str:
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class ProgressReporter:
    """Write-only progress sink handed to the workflow.

    Holds its own step counter and start time. All output goes through one
    lock so lines from concurrent workers never interleave.
    """

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        verbosity: Verbosity = Verbosity.NORMAL,
    ) -> None:
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self.verbosity = verbosity
        self.total_steps = 0
        self.current_step = 0
        self.current_section = ""
        self.start_time = time.monotonic()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Output primitives
    # ------------------------------------------------------------------

    def _emit(self, level: Verbosity, text: str, style: str | None = None) -> None:
        if self.verbosity < level:
            return
        with self._lock:
            self.console.print(escape(text), style=style)

    def header(self) -> None:
        self.start_time = time.monotonic()
        self._emit(Verbosity.NORMAL, "")
        self._emit(Verbosity.NORMAL, "AUTOMATED AGENTIC PR REVIEW TOOL", style="bold")
        self._emit(Verbosity.NORMAL, "-" * 30)

    def set_total_steps(self, steps: int) -> None:
        self.total_steps = steps

    def section(self, name: str) -> None:
        if self.current_section:
            self._emit(Verbosity.NORMAL, "")
        self._emit(Verbosity.NORMAL, f"{name.upper()}:", style="bold cyan")
        self.current_section = name

    def step(self, name: str) -> None:
        self.current_step += 1
        self._emit(Verbosity.NORMAL, "")
        self._emit(Verbosity.NORMAL, f"{ARROW} Step {self.current_step}/{self.total_steps}: {name}", style="bold")

    def step_detail(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, f"  {message}")

    def info(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, message)

    def verbose(self, message: str) -> None:
        self._emit(Verbosity.VERBOSE, message)

    def debug(self, message: str) -> None:
        self._emit(Verbosity.DEBUG, f"DEBUG: {message}", style="dim")

    def success(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, f"{CHECKMARK} {message}", style="green")

    def warning(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, f"WARNING: {message}", style="yellow")

    def error(self, message: str) -> None:
        with self._lock:
            self.err_console.print(escape(f"ERROR: {message}"), style="red")

    # ------------------------------------------------------------------
    # Per-file analysis lines
    # ------------------------------------------------------------------

    def analysis_started(self, worker: int, filename: str) -> None:
        self._emit(Verbosity.NORMAL, f"  [{worker}] Analyzing: {filename}")

    def analysis_completed(self, worker: int, filename: str) -> None:
        self._emit(Verbosity.NORMAL, f"  [{worker}] {CHECKMARK} Completed: {filename}", style="green")

    def analysis_failed(self, worker: int, filename: str, reason: str) -> None:
        self._emit(Verbosity.NORMAL, f"  [{worker}] {CROSS} Failure: {filename} - {reason}", style="red")

    def complete(self) -> None:
        elapsed = time.monotonic() - self.start_time
        self._emit(Verbosity.NORMAL, "")
        self._emit(Verbosity.NORMAL, "-" * 50)
        self._emit(Verbosity.NORMAL, "REVIEW COMPLETED SUCCESSFULLY", style="bold green")
        self._emit(Verbosity.NORMAL, f"Total time: {format_duration(elapsed)}")
        self.current_step = 0
