"""Typer CLI entrypoint for Maps Harvester."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, HarvesterSettings, SearchRequest
from .engine import MergedResult
from .engine.exporter import FileExporter
from .errors import HarvesterError
from .logging_conf import available_logs, configure_logging, tail_log
from .pipeline import run_search
from .ui import ProgressReporter, ProgressStage, RichProgressListener

app = typer.Typer(
    help="Maps Harvester command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="Settings commands", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="Log commands", no_args_is_help=True, rich_markup_mode=None)

console = Console()

Searcher = Callable[..., Awaitable[List[MergedResult]]]


@dataclass
class AppState:
    repository: ConfigRepository
    settings: HarvesterSettings
    searcher: Searcher


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    settings = repository.load_settings()
    return AppState(repository=repository, settings=settings, searcher=run_search)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _build_request(
    request_file: Optional[Path],
    keyword: Optional[str],
    address: str,
    rating_min: float,
    rating_max: Optional[float],
    reviews_min: int,
    reviews_max: Optional[int],
    address_terms: str,
    category: str,
    budget_min: Optional[int],
    budget_max: Optional[int],
    days: Sequence[str],
    hours: str,
    max_items: int,
    repository: ConfigRepository,
) -> SearchRequest:
    if request_file is not None:
        return repository.load_request(request_file)
    return SearchRequest(
        address_query=address,
        keyword=keyword or "",
        rating_min=rating_min,
        rating_max=rating_max,
        review_count_min=reviews_min,
        review_count_max=reviews_max,
        filters={
            "address_terms": address_terms,
            "category_terms": category,
            "budget_min": budget_min,
            "budget_max": budget_max,
            "days": list(days),
            "hours": hours,
            "max_items": max_items,
        },
    )


def _render_results_table(results: Sequence[MergedResult], title: str) -> Table:
    table = Table(title=f"{title} · {len(results)} results", box=box.SIMPLE_HEAD)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan", overflow="fold")
    table.add_column("Category", style="magenta")
    table.add_column("Rating", justify="right", style="green")
    table.add_column("Reviews", justify="right")
    table.add_column("Budget")
    table.add_column("Address", overflow="fold")
    for index, item in enumerate(results, start=1):
        table.add_row(
            str(index),
            item.name,
            item.category,
            f"{item.rating:.1f}" if item.rating else "-",
            str(item.review_count) if item.review_count else "-",
            item.budget_text or "-",
            item.address or "-",
        )
    return table


def _export(
    results: Iterable[MergedResult], output_dir: Path, label: str, fmt: str
) -> Path:
    exporter = FileExporter(output_dir, label, fmt)
    with exporter:
        exporter.export_many(results)
    return exporter.path


app.add_typer(config_app, name="config", help="Show or initialise settings")
app.add_typer(log_app, name="log", help="Inspect log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@app.command("search", help="Run a map search and export the matching listings.")
def search(
    ctx: typer.Context,
    keyword: Optional[str] = typer.Option(None, "--keyword", "-k", help="Search keyword."),
    address: str = typer.Option("", "--address", "-a", help="Area or address to search in."),
    rating_min: float = typer.Option(0.0, "--rating-min", help="Minimum rating."),
    rating_max: Optional[float] = typer.Option(None, "--rating-max", help="Maximum rating."),
    reviews_min: int = typer.Option(0, "--reviews-min", help="Minimum review count."),
    reviews_max: Optional[int] = typer.Option(None, "--reviews-max", help="Maximum review count."),
    address_terms: str = typer.Option("", "--address-terms", help="Comma separated address terms."),
    category: str = typer.Option("", "--category", help="Comma separated category terms."),
    budget_min: Optional[int] = typer.Option(None, "--budget-min", help="Lowest accepted price."),
    budget_max: Optional[int] = typer.Option(None, "--budget-max", help="Highest accepted price."),
    days: List[str] = typer.Option([], "--day", help="Required opening day, repeatable."),
    hours: str = typer.Option("", "--hours", help="Required opening time (HH:MM)."),
    max_items: int = typer.Option(0, "--max-items", help="Item limit (accepted, not enforced)."),
    request_file: Optional[Path] = typer.Option(None, "--request", help="YAML/JSON request file."),
    headless: Optional[bool] = typer.Option(None, "--headless/--no-headless", help="Run the browser headless."),
    fmt: Optional[str] = typer.Option(None, "--format", help="Output format: csv or json."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Directory for result files."),
) -> None:
    state = _get_state(ctx)
    if request_file is None and not keyword:
        console.print("Provide --keyword or --request.", style="red")
        raise typer.Exit(code=1)
    try:
        request = _build_request(
            request_file,
            keyword,
            address,
            rating_min,
            rating_max,
            reviews_min,
            reviews_max,
            address_terms,
            category,
            budget_min,
            budget_max,
            days,
            hours,
            max_items,
            state.repository,
        )
    except (ValidationError, ValueError, FileNotFoundError) as exc:
        console.print(f"Invalid search request: {exc}", style="red")
        raise typer.Exit(code=1)

    updates: dict[str, object] = {}
    if headless is not None:
        updates["headless"] = headless
    if fmt is not None:
        if fmt not in ("csv", "json"):
            console.print(f"Unsupported format: {fmt}", style="red")
            raise typer.Exit(code=1)
        updates["output_format"] = fmt
    settings = state.settings.model_copy(update=updates) if updates else state.settings

    listener = RichProgressListener()
    listener.start(request.keyword)
    try:
        results = asyncio.run(state.searcher(request, settings, listeners=[listener]))
    except HarvesterError as exc:
        listener.close()
        console.print(f"Search failed: {exc}", style="red")
        raise typer.Exit(code=1)

    if not results:
        listener.close()
        console.print("No listings matched the criteria, nothing saved.", style="yellow")
        return

    reporter = ProgressReporter([listener])
    reporter.emit(ProgressStage.SAVING, "saving results", total=len(results))
    target_dir = output_dir or state.repository.resolved_outputs_dir(settings)
    path = _export(results, target_dir, request.query(), settings.output_format)
    listener.close()

    console.print(_render_results_table(results, request.query()))
    console.print(f"Saved {len(results)} results to {path}", style="green")


@config_app.command("show", help="Print the active settings.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(f"# {state.repository.locator.settings_path()}", style="dim")
    console.print(
        yaml.safe_dump(state.settings.model_dump(mode="json"), allow_unicode=True, sort_keys=False),
        highlight=False,
        markup=False,
    )


@config_app.command("init", help="Write the default settings file.")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.settings_path()
    if path.exists() and not force:
        console.print(f"{path} already exists, use --force to overwrite.", style="yellow")
        raise typer.Exit(code=0)
    state.repository.save_settings(HarvesterSettings())
    console.print(f"Default settings written to {path}", style="green")


@log_app.command("list", help="List available log files.")
def log_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    logs = list(available_logs(state.repository.locator.logs_dir))
    if not logs:
        console.print("No log files yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("tail", help="Show the last lines of a log file.")
def log_tail(
    ctx: typer.Context,
    name: str = typer.Option("harvester", "--name", help="Log name: harvester or error."),
    lines: int = typer.Option(100, "--lines", "-n", help="Number of lines."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.logs_dir / f"{name}.log"
    content = tail_log(path, lines)
    if not content:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(content)} lines", style="cyan")
    console.print("".join(content), highlight=False, markup=False)


if __name__ == "__main__":  # pragma: no cover
    app()
