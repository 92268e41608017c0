"""Command line interface for Insights."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from insights.config import AppConfig
from insights.service import InsightsService

console = Console()
app = typer.Typer(help="Insights - local semantic search and rumination for Markdown vaults")

VAULT_OPTION = typer.Option(None, "--vault", help="Vault directory (defaults to the current directory)")
STATE_OPTION = typer.Option(None, "--state", help="Settings/state JSON path")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _make_config(vault: Path | None, state: Path | None) -> AppConfig:
    config = AppConfig(vault_path=vault if vault is not None else Path.cwd(), state_path=state)
    if not config.vault_path.is_dir():
        raise typer.BadParameter(f"Vault not found: {config.vault_path}")
    return config


def _load_service(vault: Path | None, state: Path | None) -> InsightsService:
    return InsightsService.from_config(_make_config(vault, state), notify=lambda message: None)


def _build_index(service: InsightsService) -> None:
    if not asyncio.run(service.rebuild_index()):
        console.print("[red]Indexing failed, see the log for details.[/red]")
        raise typer.Exit(code=1)


@app.command()
def index(
    vault: Path = VAULT_OPTION,
    state: Path = STATE_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Build the index and report what was found."""
    _setup_logging(verbose)
    service = _load_service(vault, state)
    console.print(f"Indexing [bold]{service.vault.root}[/bold]...")
    _build_index(service)

    stats = service.last_stats
    console.print(
        f"Documents: {stats.documents}, terms: {stats.terms}, "
        f"failed: {stats.failed}, dense: {'yes' if stats.dense else 'no'}"
    )
    if stats.dense_error:
        console.print(f"[yellow]Dense embeddings failed ({stats.dense_error}), using TF-IDF.[/yellow]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(None, "--top-k", help="Number of results to display"),
    vault: Path = VAULT_OPTION,
    state: Path = STATE_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Rank vault documents against a query."""
    _setup_logging(verbose)
    service = _load_service(vault, state)
    _build_index(service)

    results = asyncio.run(service.search(query, top_k=top_k))
    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Excerpt")

    for result in results:
        excerpt = result.excerpt.replace("\n", " ")
        table.add_row(f"{result.score:.4f}", result.path, excerpt[:180])

    console.print(table)


@app.command()
def ruminate(
    force: bool = typer.Option(False, "--force", help="Ignore the allowed-hours window"),
    vault: Path = VAULT_OPTION,
    state: Path = STATE_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Run one rumination scan and show the suggested pairs."""
    _setup_logging(verbose)
    service = _load_service(vault, state)
    _build_index(service)

    suggestions = asyncio.run(service.run_rumination(force))
    if not suggestions:
        console.print("[yellow]No ruminations right now.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Pair")
    table.add_column("Bridge")

    for suggestion in suggestions:
        table.add_row(
            f"{suggestion.score:.3f}",
            f"{suggestion.a_title} ⇄ {suggestion.b_title}",
            suggestion.bridge or ", ".join(suggestion.shared_terms),
        )

    console.print(table)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    vault: Path = VAULT_OPTION,
    state: Path = STATE_OPTION,
) -> None:
    """Start the HTTP API with background indexing and rumination."""
    import uvicorn

    from insights.web.app import app as web_app
    from insights.web.app import configure

    config = _make_config(vault, state)
    configure(InsightsService.from_config(config))

    console.print(f"Starting web API on http://{host}:{port} (vault: {config.vault_path})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
