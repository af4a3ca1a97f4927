"""Typer CLI entrypoint for quota-harvester."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, HarvestConfig
from .engine import ChunkRunResult, SessionHandle
from .errors import NoInputData, SetupError
from .logging_conf import available_chunk_logs, configure_logging, log_path, tail_log
from .orchestrator import Orchestrator
from .ui import ProgressActivity

app = typer.Typer(
    help="Quota-bound table harvester",
    no_args_is_help=True,
    rich_markup_mode=None,
)
chunks_app = typer.Typer(name="chunks", help="Chunk generation commands", no_args_is_help=True, rich_markup_mode=None)
session_app = typer.Typer(name="session", help="Session handle tooling", no_args_is_help=True, rich_markup_mode=None)
config_app = typer.Typer(name="config", help="Configuration commands", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="Log viewing commands", no_args_is_help=True, rich_markup_mode=None)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    orchestrator = Orchestrator(config_repository=repository)
    return AppState(repository=repository, orchestrator=orchestrator)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _fail(exc: Exception) -> None:
    console.print(f"{type(exc).__name__}: {exc}", style="red")
    raise typer.Exit(code=1)


def _render_run_table(label: str, result: ChunkRunResult) -> Table:
    table = Table(title=f"Chunk {label}", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", overflow="fold")
    attempted = result.success + result.failed
    table.add_row("URLs attempted", str(attempted))
    table.add_row("Successes", str(result.success))
    table.add_row("Failures", str(result.failed))
    for kind, count in sorted(result.failures_by_kind().items(), key=lambda item: item[0].value):
        table.add_row(f"  {kind.value}", str(count))
    table.add_row("Rows", str(result.rows))
    if result.cancelled:
        table.add_row("Not attempted", str(result.not_attempted))
    table.add_row("Output", str(result.path) if result.path else "-")
    return table


app.add_typer(chunks_app, name="chunks", help="Partition the page space into quota-sized chunks")
app.add_typer(session_app, name="session", help="Encode or verify the session handle")
app.add_typer(config_app, name="config", help="Show or initialise the configuration file")
app.add_typer(log_app, name="log", help="View log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    try:
        ctx.obj = build_state(verbose)
    except SetupError as exc:
        _fail(exc)


# ----------------------------------------------------------------------
# chunks
# ----------------------------------------------------------------------
@chunks_app.command("generate", help="Write chunk files and the manifest.")
def chunks_generate(
    ctx: typer.Context,
    total_pages: Optional[int] = typer.Option(None, "--total-pages", help="Override configured page count."),
    quota: Optional[int] = typer.Option(None, "--quota", help="Override configured pages per chunk."),
) -> None:
    state = _get_state(ctx)
    try:
        generated = state.orchestrator.generate_chunks(total_pages=total_pages, quota=quota)
    except SetupError as exc:
        _fail(exc)
    manifest = generated.manifest
    table = Table(title="Chunks generated", box=box.SIMPLE_HEAD)
    table.add_column("Pages", style="cyan")
    table.add_column("Quota", style="magenta")
    table.add_column("Chunks", style="green")
    table.add_column("Directory", style="yellow", overflow="fold")
    table.add_row(str(manifest.total_pages), str(manifest.quota), str(manifest.total_chunks), str(generated.chunks_dir))
    console.print(table)


@chunks_app.command("show", help="Summarise the current manifest.")
def chunks_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    manifest = state.orchestrator.chunk_manifest()
    if manifest is None:
        console.print("No manifest yet. Run `quota-harvester chunks generate` first.", style="yellow")
        return
    table = Table(title="Chunk manifest", box=box.SIMPLE_HEAD)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in manifest.to_json().items():
        table.add_row(key, str(value))
    sequences = state.orchestrator.chunk_sequences()
    table.add_row("chunkFiles", f"{sequences[0]:04d}..{sequences[-1]:04d} ({len(sequences)})" if sequences else "none")
    console.print(table)
    if len(sequences) != manifest.total_chunks:
        console.print(
            f"Manifest lists {manifest.total_chunks} chunks but {len(sequences)} chunk files exist.", style="yellow"
        )


# ----------------------------------------------------------------------
# run / consolidate
# ----------------------------------------------------------------------
@app.command("run", help="Fetch every URL of one chunk and write its partial CSV.")
def run_chunk(
    ctx: typer.Context,
    chunk_id: str = typer.Argument(..., help="Chunk number, e.g. 7, 0007 or chunk_0007."),
    quiet: bool = typer.Option(False, "--quiet", help="Hide the progress bar.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    try:
        result = state.orchestrator.run_chunk(chunk_id, progress_enabled=False if quiet else None)
    except SetupError as exc:
        _fail(exc)
    label = f"{result.partial.chunk_sequence:04d}"
    console.print(_render_run_table(label, result))
    if result.cancelled:
        console.print("Run cancelled; collected rows were saved.", style="yellow")


@app.command("consolidate", help="Merge all partial CSVs into the master dataset.")
def consolidate(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(None, "--output", help="Destination CSV (defaults to config)."),
) -> None:
    state = _get_state(ctx)
    try:
        with ProgressActivity(enabled=console.is_terminal, console=console) as activity:
            activity.start("Consolidating partial results...")
            report = state.orchestrator.consolidate(output=output)
    except NoInputData as exc:
        console.print(f"Nothing to consolidate: {exc}", style="yellow")
        return
    result = report.result
    table = Table(title="Consolidation", box=box.SIMPLE_HEAD)
    table.add_column("Partials", style="cyan")
    table.add_column("Input rows", style="magenta")
    table.add_column("Output rows", style="green")
    table.add_column("Duplicates removed", style="yellow")
    table.add_row(
        str(result.partials), str(result.input_rows), str(result.output_rows), str(result.duplicates_removed)
    )
    console.print(table)
    console.print(f"Written to {report.output}", style="green")


# ----------------------------------------------------------------------
# session
# ----------------------------------------------------------------------
@session_app.command("encode", help="Encode a JSON cookie export for the session environment variable.")
def session_encode(cookies_file: Path = typer.Argument(..., help="JSON list of cookies.")) -> None:
    try:
        session = SessionHandle.from_file(cookies_file)
    except SetupError as exc:
        _fail(exc)
    typer.echo(session.encode())


@session_app.command("check", help="Decode the session environment variable and report it.")
def session_check(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    env_var = state.orchestrator.config.session.env_var
    try:
        session = state.orchestrator.load_session()
    except SetupError as exc:
        _fail(exc)
    if session.empty:
        console.print(f"{env_var} decodes to an empty bundle; fetches will be unauthenticated.", style="yellow")
        return
    console.print(f"{env_var}: {len(session)} cookies", style="green")


# ----------------------------------------------------------------------
# config
# ----------------------------------------------------------------------
@config_app.command("show", help="Print the effective configuration.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    config = state.repository.load_config()
    console.print(f"# {state.repository.locator.config_path()}", style="dim")
    typer.echo(yaml.safe_dump(config.model_dump(mode="json"), allow_unicode=True, sort_keys=False))


@config_app.command("init", help="Write the default configuration file.")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.config_path()
    if path.exists() and not force:
        console.print(f"{path} already exists; pass --force to overwrite.", style="yellow")
        return
    state.repository.save_config(HarvestConfig())
    console.print(f"Wrote {path}", style="green")


# ----------------------------------------------------------------------
# log
# ----------------------------------------------------------------------
@log_app.command("list", help="List chunk log files.")
def log_list() -> None:
    logs = list(available_chunk_logs())
    console.print("Log files:", style="cyan")
    if not logs:
        console.print("No chunk logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    chunk: Optional[str] = typer.Option(None, "--chunk", help="Chunk number (global log when omitted)."),
    tail: int = typer.Option(100, "--tail", help="Show the last N lines."),
) -> None:
    label = None
    if chunk:
        raw = chunk.removeprefix("chunk_")
        label = raw.zfill(4) if raw.isdigit() else raw
    lines = tail_log(log_path(label), tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    header = f"{'Chunk ' + label if label else 'Global'} log · last {len(lines)} lines"
    console.print(header, style="cyan")
    typer.echo("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
