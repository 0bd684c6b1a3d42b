"""CLI entrypoint for reviewrunner."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from yaml import YAMLError

from reviewrunner.config import Config, load_config
from reviewrunner.progress import Verbosity

app = typer.Typer(
    name="reviewrunner",
    help="Run a multi-stage LLM review of a pull request.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def _verbosity(verbose: bool = False, quiet: bool = False, debug: bool = False) -> Verbosity:
    if debug:
        return Verbosity.DEBUG
    if verbose:
        return Verbosity.VERBOSE
    if quiet:
        return Verbosity.QUIET
    return Verbosity.NORMAL


def _setup_logging(verbosity: Verbosity = Verbosity.NORMAL) -> None:
    if verbosity >= Verbosity.DEBUG:
        level = logging.DEBUG
    elif verbosity <= Verbosity.QUIET:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def _build_overrides(model: Optional[str] = None, workers: Optional[int] = None) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if model:
        overrides["llm"] = {"model": model}
    if workers is not None:
        overrides["max_workers"] = workers
    return overrides


def _load(config_file: Optional[str], overrides: dict[str, Any]) -> Config:
    try:
        return load_config(config_path=config_file, overrides=overrides)
    except (OSError, YAMLError, ValidationError) as e:
        err_console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)


def _mask(secret: str, visible: int = 6) -> str:
    if not secret:
        return ""
    if len(secret) <= visible:
        return "*" * len(secret)
    return secret[:visible] + "..."


# ---------------------------------------------------------------------------
# review
# ---------------------------------------------------------------------------

@app.command()
def review(
    ticket: str = typer.Option(..., "--ticket", help="Ticket key for the PR (e.g., PROJ-1231)"),
    repo: str = typer.Option(..., "--repo", help="Repository (owner/name); checkout expected under .context/projects/"),
    branch: str = typer.Option("", "--branch", help="PR branch name (defaults to HEAD)"),
    design_doc: str = typer.Option("", "--design-doc", help="Design document name under .context/design/"),
    model: Optional[str] = typer.Option(None, "--model", help="Model to use (overrides config and env)"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Concurrent file analyses (<= 0 for one per file)"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Path to config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimize console output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """Run the full PR review workflow for a ticket."""
    verbosity = _verbosity(verbose, quiet, debug)
    _setup_logging(verbosity)
    cfg = _load(config_file, _build_overrides(model, workers))

    from reviewrunner.artifacts import ArtifactStore
    from reviewrunner.context import ReviewContext
    from reviewrunner.file_set import FileSetResolver
    from reviewrunner.jira_client import JiraClient, JiraClientError
    from reviewrunner.llm_client import LLMError, create_client
    from reviewrunner.progress import ProgressReporter
    from reviewrunner.vcs import GitRepository
    from reviewrunner.workflow import ReviewWorkflow, StageError

    progress = ProgressReporter(console=console, err_console=err_console, verbosity=verbosity)

    try:
        client = create_client(cfg)
    except LLMError as e:
        progress.error(str(e))
        raise typer.Exit(1)

    try:
        tickets = JiraClient.from_config(cfg.jira)
    except JiraClientError as e:
        progress.error(f"Failed to load Jira ticket details: {e}")
        progress.error("Please check your Jira credentials and try again.")
        raise typer.Exit(1)

    repo_dir = cfg.repo_dir_for(repo)
    ctx = ReviewContext(
        ticket=ticket,
        model=cfg.llm.model,
        max_tokens=cfg.max_tokens,
        language=cfg.language,
        repo_dir=str(repo_dir),
        branch=branch,
        design_doc_name=design_doc,
    )

    progress.header()
    progress.info(f"Using model: {cfg.llm.model}")
    progress.info(f"Starting PR review for ticket {ticket}")
    progress.info(f"Using repository at {repo_dir}")
    if branch:
        progress.info(f"Using PR branch {branch}")
    if design_doc:
        progress.info(f"Using design document {design_doc}")

    workflow = ReviewWorkflow(
        ctx,
        client=client,
        store=ArtifactStore(cfg.reviews_dir, ticket),
        resolver=FileSetResolver(GitRepository(repo_dir), branch=branch),
        progress=progress,
        tickets=tickets,
        design_dir=cfg.design_dir,
        max_workers=cfg.max_workers,
        launch_stagger=cfg.launch_stagger_seconds,
    )

    try:
        workflow.run()
    except StageError as e:
        progress.error(f"Error running review workflow: {e}")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

@app.command()
def status(
    probe_ticket: Optional[str] = typer.Option(None, "--probe-ticket", help="Ticket key used to check Jira access"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Path to config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Check configuration and integrations."""
    _setup_logging(Verbosity.VERBOSE if verbose else Verbosity.NORMAL)
    console.print("Checking system status...")

    cfg = _load(config_file, {})
    console.print("[green]✓ Config: Successfully loaded[/green]")

    provider = cfg.llm.provider
    key = cfg.api_key_for_provider()
    if key:
        console.print(f"[green]✓ {provider} API: API key is set ({_mask(key)})[/green]")
    else:
        console.print(f"[red]✗ {provider} API: API key is not set[/red]")
    console.print(f"  Model: {cfg.llm.model}")

    if not cfg.jira.has_credentials():
        console.print("[red]✗ Jira API: missing credentials (JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN)[/red]")
    elif not probe_ticket:
        console.print("[yellow]Jira API: credentials set; pass --probe-ticket to test connectivity[/yellow]")
    else:
        from reviewrunner.jira_client import JiraClient, JiraClientError

        try:
            ticket = JiraClient.from_config(cfg.jira).get_ticket(probe_ticket)
        except JiraClientError as e:
            console.print(f"[red]✗ Jira API: {e}[/red]")
        else:
            console.print(f"Successfully retrieved ticket {ticket.key}: {ticket.summary}")
            if verbose:
                console.print(f"  Status: {ticket.status}")
                if ticket.assignee:
                    console.print(f"  Assignee: {ticket.assignee}")
                if ticket.reporter:
                    console.print(f"  Reporter: {ticket.reporter}")
            console.print("[green]✓ Jira API: Connected successfully[/green]")

    console.print("")
    console.print("Status check complete.")


# ---------------------------------------------------------------------------
# ask
# ---------------------------------------------------------------------------

@app.command()
def ask(
    prompt: Optional[List[str]] = typer.Argument(None, help="Prompt text; omit for an interactive session"),
    model: Optional[str] = typer.Option(None, "--model", help="Model to use"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Path to config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Send a single prompt, or start an interactive prompt loop."""
    _setup_logging(Verbosity.VERBOSE if verbose else Verbosity.NORMAL)
    cfg = _load(config_file, _build_overrides(model))

    from reviewrunner.llm_client import LLMError, create_client

    try:
        client = create_client(cfg)
    except LLMError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if prompt:
        _answer(client, " ".join(prompt), verbose)
        return

    console.print(f"Using model: {cfg.llm.model}")
    console.print("Type your prompt and press Enter. Type 'exit' to quit.")
    while True:
        try:
            text = console.input("> ")
        except EOFError:
            break
        if text.strip() == "exit":
            break
        if text.strip():
            _answer(client, text, verbose)


def _answer(client: Any, prompt: str, verbose: bool = False) -> None:
    from reviewrunner.llm_client import LLMError
    from reviewrunner.tokens import TokenCountError

    try:
        tokens = client.count_text(prompt)
    except TokenCountError as e:
        err_console.print(f"[red]Error counting tokens: {e}[/red]")
        return
    if verbose:
        console.print(f"Sending prompt ({tokens} tokens)")

    try:
        response = client.complete(prompt)
    except LLMError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        return

    console.print("\nResponse:")
    console.print(response, markup=False, highlight=False)


if __name__ == "__main__":
    app()
