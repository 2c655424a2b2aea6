"""Command-line interface for codetrail."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

import typer
from rich.console import Console
from rich.table import Table

from codetrail.extraction import GitRepository
from codetrail.logging_config import configure_logging
from codetrail.models import History, HistoryConfig, MatchingConfig, TerminationReason
from codetrail.trackers import (
    AttributeTracker,
    BaseTracker,
    BlockTracker,
    ClassTracker,
    MethodTracker,
    VariableTracker,
)

app = typer.Typer(
    name="codetrail",
    help="Trace the change history of a class, method, attribute, variable or block through Git",
    add_completion=False,
)
console = Console()

_REPO = typer.Argument(..., help="Path to Git repository")
_FILE = typer.Argument(..., help="Repository-relative path of the file")
_COMMIT = typer.Option("HEAD", "--commit", "-c", help="Commit to start from")
_OUTPUT = typer.Option(None, "--output", "-o", help="Output JSON file")
_MAX_COMMITS = typer.Option(None, "--max-commits", "-n", help="Maximum commits to visit")
_MAX_SECONDS = typer.Option(None, "--max-seconds", help="Wall-clock budget in seconds")
_THRESHOLD = typer.Option(None, "--threshold", "-t", help="Minimum match score (0-1)")
_FOLLOW_MOVES = typer.Option(True, "--follow-moves/--no-follow-moves", help="Search other changed files")
_VERBOSE = typer.Option(False, "--verbose", "-v", help="Verbose output")


def _run(
    tracker_cls: Type[BaseTracker],
    repo_path: Path,
    file_path: str,
    commit: str,
    output: Optional[Path],
    max_commits: Optional[int],
    max_seconds: Optional[float],
    threshold: Optional[float],
    follow_moves: bool,
    verbose: bool,
    **locator: Any,
) -> None:
    try:
        history_config = HistoryConfig(
            max_commits=max_commits,
            max_seconds=max_seconds,
            follow_moves=follow_moves,
        )
        configure_logging("DEBUG" if verbose else history_config.log_level)
        matching_config = MatchingConfig() if threshold is None else MatchingConfig(threshold=threshold)

        with GitRepository(repo_path) as repository:
            tracker = tracker_cls(
                repository,
                commit,
                file_path,
                matching_config=matching_config,
                history_config=history_config,
                **locator,
            )
            history = tracker.track()

        _print_history(history)

        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            with open(output, "w") as f:
                json.dump(history.model_dump(mode="json"), f, indent=2, default=str)
            console.print(f"[bold green]✓[/bold green] Saved to {output}")

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _history_rows(history: History) -> List[Dict[str, Any]]:
    """One row per change plus one per introduction, newest first."""
    rows = []
    for edge in history.changes():
        later = history.nodes[edge.source]
        rows.append({"node": later, "change": edge.kind.value, "score": f"{edge.score:.2f}"})
    for node in history.introduced_at():
        rows.append({"node": node, "change": "introduced", "score": ""})
    rows.sort(key=lambda row: (row["node"].committed_at, -row["node"].index), reverse=True)
    return rows


def _print_history(history: History) -> None:
    seed = history.seed
    console.print(f"\n[bold]History of {seed.kind.value}[/bold] [cyan]{seed.qualified_name}[/cyan]")
    console.print(f"[cyan]File:[/cyan] {seed.file_path}  [cyan]Lines:[/cyan] {seed.start_line}-{seed.end_line}\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Commit", style="cyan", width=10)
    table.add_column("Date", style="blue")
    table.add_column("Author", style="green")
    table.add_column("Change", style="yellow")
    table.add_column("Element", style="white")
    table.add_column("Path", style="dim")
    table.add_column("Lines", justify="right")
    table.add_column("Score", justify="right")

    for row in _history_rows(history):
        node = row["node"]
        table.add_row(
            node.commit_id[:7],
            node.committed_at.strftime("%Y-%m-%d %H:%M"),
            node.author_name[:20],
            row["change"],
            node.qualified_name,
            node.file_path,
            f"{node.start_line}-{node.end_line}",
            row["score"],
        )
    console.print(table)

    report = history.report
    console.print(
        f"\n[dim]{len(history.nodes)} versions, {len(history.changes())} changes, "
        f"{report.commits_analysed} commits analysed, "
        f"{report.cache_hits} cache hits / {report.cache_misses} misses[/dim]"
    )
    for termination in history.terminations:
        if termination.reason in (TerminationReason.INTRODUCED, TerminationReason.EXTRACTED):
            continue
        detail = f": {termination.detail}" if termination.detail else ""
        console.print(
            f"[yellow]Branch stopped at {history.nodes[termination.node].commit_id[:7]} "
            f"({termination.reason.value}){detail}[/yellow]"
        )
    if history.budget_exceeded:
        console.print("[yellow]Budget exceeded, history is incomplete[/yellow]")


@app.command(name="class")
def track_class(
    repo_path: Path = _REPO,
    file_path: str = _FILE,
    class_name: str = typer.Argument(..., help="Simple or dotted class name"),
    line: Optional[int] = typer.Option(None, "--line", "-l", help="A line inside the class"),
    commit: str = _COMMIT,
    output: Optional[Path] = _OUTPUT,
    max_commits: Optional[int] = _MAX_COMMITS,
    max_seconds: Optional[float] = _MAX_SECONDS,
    threshold: Optional[float] = _THRESHOLD,
    follow_moves: bool = _FOLLOW_MOVES,
    verbose: bool = _VERBOSE,
) -> None:
    """Trace the history of a class."""
    _run(
        ClassTracker, repo_path, file_path, commit, output, max_commits, max_seconds, threshold,
        follow_moves, verbose, class_name=class_name, line=line,
    )


@app.command(name="method")
def track_method(
    repo_path: Path = _REPO,
    file_path: str = _FILE,
    method_name: str = typer.Argument(..., help="Method or function name"),
    method_line: int = typer.Argument(..., help="A line inside the method"),
    commit: str = _COMMIT,
    output: Optional[Path] = _OUTPUT,
    max_commits: Optional[int] = _MAX_COMMITS,
    max_seconds: Optional[float] = _MAX_SECONDS,
    threshold: Optional[float] = _THRESHOLD,
    follow_moves: bool = _FOLLOW_MOVES,
    verbose: bool = _VERBOSE,
) -> None:
    """Trace the history of a method or function."""
    _run(
        MethodTracker, repo_path, file_path, commit, output, max_commits, max_seconds, threshold,
        follow_moves, verbose, method_name=method_name, method_line=method_line,
    )


@app.command(name="attribute")
def track_attribute(
    repo_path: Path = _REPO,
    file_path: str = _FILE,
    attribute_name: str = typer.Argument(..., help="Attribute name"),
    attribute_line: int = typer.Argument(..., help="Line of the declaring statement"),
    commit: str = _COMMIT,
    output: Optional[Path] = _OUTPUT,
    max_commits: Optional[int] = _MAX_COMMITS,
    max_seconds: Optional[float] = _MAX_SECONDS,
    threshold: Optional[float] = _THRESHOLD,
    follow_moves: bool = _FOLLOW_MOVES,
    verbose: bool = _VERBOSE,
) -> None:
    """Trace the history of a class attribute."""
    _run(
        AttributeTracker, repo_path, file_path, commit, output, max_commits, max_seconds, threshold,
        follow_moves, verbose, attribute_name=attribute_name, attribute_line=attribute_line,
    )


@app.command(name="variable")
def track_variable(
    repo_path: Path = _REPO,
    file_path: str = _FILE,
    variable_name: str = typer.Argument(..., help="Variable name"),
    variable_line: int = typer.Argument(..., help="Line of the declaring statement"),
    method_name: Optional[str] = typer.Option(None, "--method", "-m", help="Enclosing method name"),
    method_line: Optional[int] = typer.Option(None, "--method-line", help="A line inside the enclosing method"),
    commit: str = _COMMIT,
    output: Optional[Path] = _OUTPUT,
    max_commits: Optional[int] = _MAX_COMMITS,
    max_seconds: Optional[float] = _MAX_SECONDS,
    threshold: Optional[float] = _THRESHOLD,
    follow_moves: bool = _FOLLOW_MOVES,
    verbose: bool = _VERBOSE,
) -> None:
    """Trace the history of a variable."""
    _run(
        VariableTracker, repo_path, file_path, commit, output, max_commits, max_seconds, threshold,
        follow_moves, verbose, variable_name=variable_name, variable_line=variable_line,
        method_name=method_name, method_line=method_line,
    )


@app.command(name="block")
def track_block(
    repo_path: Path = _REPO,
    file_path: str = _FILE,
    method_name: str = typer.Argument(..., help="Enclosing method name"),
    method_line: int = typer.Argument(..., help="A line inside the enclosing method"),
    block_type: str = typer.Argument(..., help="Block type: if, for, while, with, try, match"),
    start_line: int = typer.Argument(..., help="First line of the block"),
    end_line: int = typer.Argument(..., help="Last line of the block"),
    commit: str = _COMMIT,
    output: Optional[Path] = _OUTPUT,
    max_commits: Optional[int] = _MAX_COMMITS,
    max_seconds: Optional[float] = _MAX_SECONDS,
    threshold: Optional[float] = _THRESHOLD,
    follow_moves: bool = _FOLLOW_MOVES,
    verbose: bool = _VERBOSE,
) -> None:
    """Trace the history of a block inside a method."""
    _run(
        BlockTracker, repo_path, file_path, commit, output, max_commits, max_seconds, threshold,
        follow_moves, verbose, method_name=method_name, method_line=method_line,
        block_type=block_type, start_line=start_line, end_line=end_line,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from codetrail import __version__

    console.print(f"[bold]codetrail[/bold] version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
