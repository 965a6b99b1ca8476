"""
Command-line interface for DME order extraction.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config.loader import load_config, require_run_settings
from .config.schema import ConfigSchema
from .engine import ExtractionPipeline
from .errors import ConfigError, ExtractionError
from .extractors.base import build_extractor, build_provider, resolve_strategy
from .logging_setup import configure_logging
from .models import RunSummary
from .services.note_reader import NoteReader
from .services.submitter import OrderSubmitter

app = typer.Typer(
    name="dme-extract",
    help="Extract DME orders from physician notes and submit them downstream",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

STRATEGY_HELP = "Override extraction.strategy (rules, model, auto)"


def _load(config: Optional[Path]) -> ConfigSchema:
    try:
        cfg = load_config(config)
    except (ExtractionError, FileNotFoundError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=1)
    configure_logging(cfg.logging)
    return cfg


def _print_summary(summary: RunSummary) -> None:
    table = Table(title=f"Run summary ({summary.strategy})")
    table.add_column("Note")
    table.add_column("Status")
    table.add_column("Device / Error")
    for outcome in summary.outcomes:
        if outcome.success:
            table.add_row(outcome.note, "[green]ok[/green]", outcome.device or "")
        else:
            table.add_row(outcome.note, f"[red]{outcome.failure_kind}[/red]", outcome.error or "")
    console.print(table)
    console.print(f"Success: {summary.succeeded}, Failures: {summary.failed}")


async def _run_pipeline(cfg: ConfigSchema, strategy: Optional[str], dry_run: bool) -> RunSummary:
    extractor = build_extractor(cfg, strategy=strategy)
    reader = NoteReader(pattern=cfg.notes.pattern)
    submitter = None if dry_run else OrderSubmitter(cfg.api.url, timeout=cfg.api.timeout)
    pipeline = ExtractionPipeline(extractor, reader, submitter, show_progress=not cfg.logging.console)
    try:
        return await pipeline.run(cfg.notes.folder)
    finally:
        if submitter is not None:
            await submitter.aclose()


@app.command()
def run(
    config: Path = typer.Option(..., exists=True, readable=True, help="Configuration YAML"),
    strategy: Optional[str] = typer.Option(None, help=STRATEGY_HELP),
    dry_run: bool = typer.Option(False, "--dry-run", help="Extract without submitting to the API"),
):
    """Process every note in the configured folder and submit the orders."""
    cfg = _load(config)
    console.print(Panel.fit("[bold cyan]DME order extraction[/bold cyan]", border_style="green"))

    try:
        if dry_run:
            if not cfg.notes.folder:
                raise ConfigError("notes.folder is not configured")
        else:
            require_run_settings(cfg)
        summary = asyncio.run(_run_pipeline(cfg, strategy, dry_run))
    except ExtractionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    _print_summary(summary)
    if summary.failed:
        raise typer.Exit(code=1)


@app.command()
def extract(
    note: Path = typer.Argument(..., exists=True, readable=True, help="Physician note file"),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="Configuration YAML"),
    strategy: Optional[str] = typer.Option(None, help=STRATEGY_HELP),
):
    """Extract a single note and print the order payload as JSON."""
    cfg = _load(config)
    try:
        extractor = build_extractor(cfg, strategy=strategy)
        note_text = NoteReader().read_note(note)
        order = asyncio.run(extractor.extract(note_text))
    except ExtractionError as e:
        console.print(f"[red]Extraction failed:[/red] {e}")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(order.to_payload()))


@app.command()
def validate(
    config: Path = typer.Option(..., exists=True, readable=True, help="Configuration YAML"),
    check_connection: bool = typer.Option(
        False, "--check-connection", help="Also contact the configured LLM provider"
    ),
):
    """Validate a configuration file and show the strategy it selects."""
    cfg = _load(config)
    try:
        selected = resolve_strategy(cfg)
        provider = build_provider(cfg) if check_connection else None
    except ExtractionError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=cfg.title or str(config))
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("strategy", f"{cfg.extraction.strategy} -> {selected}")
    table.add_row("provider", cfg.llm.default_provider)
    table.add_row("notes.folder", cfg.notes.folder or "[yellow]not set[/yellow]")
    table.add_row("api.url", cfg.api.url or "[yellow]not set[/yellow]")
    console.print(table)

    if provider is not None:
        ok, message = asyncio.run(provider.validate_connection())
        if not ok:
            console.print(f"[red]Provider check failed:[/red] {message}")
            raise typer.Exit(code=1)
        console.print(f"[green]Provider check passed:[/green] {message}")


def main():
    app()


if __name__ == "__main__":
    main()
