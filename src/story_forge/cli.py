"""Command-line interface for Story Forge."""

import json
import logging
import time
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from story_forge import __version__

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Logging level (default from SF_LOG_LEVEL)")
def main(log_level: str | None) -> None:
    """Story Forge - race several writer models and keep the best story."""
    from story_forge.config import get_settings

    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@main.command()
def status() -> None:
    """Check system status (LLM backend, agents file, results file)."""
    from story_forge.config import get_settings
    from story_forge.llm import LLMClient

    settings = get_settings()
    console.print("[bold]Story Forge Status[/bold]\n")
    console.print(f"Provider: {settings.llm_provider}")

    client = LLMClient()
    if client.is_available:
        console.print("[green]OK[/green] LLM backend reachable")
    else:
        console.print("[red]X[/red] LLM backend not reachable")

    if settings.agents_file:
        console.print(f"Agents file: {settings.agents_file}")
    else:
        console.print("Agents file: [dim]built-in defaults[/dim]")
    console.print(f"Results file: {settings.results_file}")


@main.command()
@click.option("--file", "-f", "agents_file", type=click.Path(exists=True), help="Roster JSON (default from settings)")
def agents(agents_file: str | None) -> None:
    """List configured writers and evaluators."""
    from story_forge.agents import load_roster
    from story_forge.config import get_settings
    from story_forge.errors import ConfigurationError

    path = Path(agents_file) if agents_file else get_settings().agents_file
    try:
        roster = load_roster(path)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    table = Table(title="Agents")
    table.add_column("Role", style="cyan")
    table.add_column("Label", style="bold")
    table.add_column("Model", style="green")
    table.add_column("Temperature", justify="right")

    for agent in roster.writers + roster.evaluators:
        table.add_row(agent.role.value, agent.label, agent.model, f"{agent.temperature:.1f}")

    console.print(table)


@main.command()
@click.argument("prompt")
@click.option("--writer", "-w", default="All", help="All, A, B or C")
@click.option("--timeout", "-t", type=float, default=None, help="Give up waiting after N seconds")
@click.option("--output", "-o", type=click.Path(), help="Write the winning story to this file")
def generate(prompt: str, writer: str, timeout: float | None, output: str | None) -> None:
    """Generate a story from PROMPT and print the winner."""
    from story_forge.errors import StoryForgeError
    from story_forge.generate import GenerationCoordinator

    try:
        coordinator = GenerationCoordinator.from_settings()
        generation_id = coordinator.start(prompt, writer)
    except StoryForgeError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    console.print(f"[bold]Generation:[/bold] {generation_id}\n")

    deadline = time.monotonic() + timeout if timeout else None
    seen = 0
    with console.status("Writing..."):
        while True:
            snapshot = coordinator.wait(generation_id, timeout=0.5)
            for message in snapshot.messages[seen:]:
                console.print(f"  {message}")
            seen = len(snapshot.messages)
            if snapshot.completed:
                break
            if deadline is not None and time.monotonic() > deadline:
                console.print("[yellow]Stopped waiting; the generation keeps running in the background[/yellow]")
                raise SystemExit(2)

    outcome = snapshot.result
    _print_usage(coordinator)

    if outcome is None or outcome.winning_draft is None:
        console.print("\n[red]No story was produced[/red]")
        raise SystemExit(1)

    table = Table(title="Candidates")
    table.add_column("Writer", style="cyan")
    table.add_column("Model")
    table.add_column("Words", justify="right")
    table.add_column("Best score", justify="right", style="green")
    table.add_column("Status")
    for draft, best in outcome.all_drafts:
        table.add_row(
            draft.writer_label,
            draft.model,
            f"{draft.word_count:,}",
            str(best.score) if best and best.score is not None else "-",
            draft.failure_reason if draft.failed else "ok",
        )
    console.print()
    console.print(table)

    verdict = "[green]approved[/green]" if outcome.approved else "[yellow]not approved[/yellow]"
    title = f"Writer {outcome.winning_draft.writer_label} - {outcome.winning_score:.2f}/10 ({verdict})"
    console.print(Panel(outcome.winning_text, title=title))

    if output:
        output_path = Path(output)
        output_path.write_text(outcome.winning_text, encoding="utf-8")
        console.print(f"[green]OK[/green] Story saved to {output_path}")


@main.command()
@click.option("--limit", "-n", type=int, default=10, help="Show the last N generations")
@click.option("--json-output", "-j", is_flag=True, help="Print raw JSON records")
def history(limit: int, json_output: bool) -> None:
    """Show saved generations."""
    from story_forge.config import get_settings
    from story_forge.generate import JsonlResultSink

    records = JsonlResultSink(get_settings().results_file).load_all()[-limit:]
    if not records:
        console.print("[dim]No generations saved yet[/dim]")
        return

    if json_output:
        click.echo(json.dumps(records, indent=2, ensure_ascii=False))
        return

    table = Table(title="Generations")
    table.add_column("Saved", style="dim")
    table.add_column("Prompt")
    table.add_column("Winner", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Approved")

    for record in records:
        outcome = record.get("outcome") or {}
        winner = outcome.get("winning_draft") or {}
        prompt = record["prompt"]
        table.add_row(
            record["saved_at"][:19],
            prompt[:50] + ("..." if len(prompt) > 50 else ""),
            winner.get("writer_label", "-"),
            f"{outcome.get('winning_score', 0):.2f}" if outcome else "-",
            "yes" if outcome.get("approved") else "no",
        )
    console.print(table)


def _print_usage(coordinator) -> None:
    if coordinator.ledger is None:
        return
    totals = coordinator.ledger.totals()
    console.print(
        f"\n[dim]{totals.calls} model calls ({totals.failures} failed), "
        f"~{totals.total_tokens:,} tokens[/dim]"
    )


if __name__ == "__main__":
    main()
