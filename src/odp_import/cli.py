"""Command-line interface of the ODP import pipeline."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import ConfigurationError, ConfigurationManager, SystemConfiguration
from .importer.exceptions import ImportFailure
from .models.import_data import ImportSummary, StandardImportSummary, StructuredImportData
from .parsers.exceptions import ParseError
from .parsers.serialization import deserialize_raw_data, serialize_raw_data
from .service import DEFAULT_USER_ID, ImportService

app = typer.Typer(
    name="odp-import",
    help="Import ODP Word documents into the operational data store.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()


def _load_configuration(config: Optional[Path]) -> SystemConfiguration:
    manager = ConfigurationManager(config)
    try:
        manager.load()
        manager.apply_environment()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/] {e.message}")
        if e.validation_result:
            for error in e.validation_result.errors:
                console.print(f"  - {error}")
        raise typer.Exit(code=2)
    return manager.configuration


def _build_service(ctx: typer.Context, database_url: Optional[str] = None) -> ImportService:
    configuration: SystemConfiguration = ctx.obj
    if database_url:
        configuration.store.database_url = database_url
    return ImportService(configuration)


def _write_json(payload: str, output: Optional[Path]) -> None:
    if output is None:
        console.print_json(payload)
        return
    output.write_text(payload, encoding="utf-8")
    console.print(f"[green]Written:[/] {output}")


def _print_summary(summary: ImportSummary) -> None:
    table = Table(title="Import summary", show_header=True, border_style="blue")
    table.add_column("Entity class", style="cyan")
    table.add_column("Created", justify="right", style="green")
    for key, value in summary.to_dict().items():
        if isinstance(value, int):
            table.add_row(key, str(value))
    console.print(table)

    if isinstance(summary, StandardImportSummary):
        console.print(f"[green]updated:[/] {', '.join(summary.updated) or '-'}")
        console.print(f"[dim]unchanged:[/] {', '.join(summary.skipped) or '-'}")

    for warning in summary.warnings:
        console.print(f"[yellow]warning:[/] {warning}")
    for error in summary.errors:
        console.print(f"[bold red]error:[/] {error}")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    config: Annotated[
        Optional[Path], typer.Option("--config", "-c", help="JSON configuration file")
    ] = None,
) -> None:
    """Configure logging and settings shared by every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.obj = _load_configuration(config)


@app.command()
def extract(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Word document (.docx), archive (.zip) or workbook (.xlsx)")],
    output: Annotated[
        Optional[Path], typer.Option("--output", "-o", help="Write the extracted JSON here")
    ] = None,
) -> None:
    """Extract the section tree (or workbook sheets) of a document as JSON."""
    service = _build_service(ctx)
    try:
        raw = service.extract_file(source)
    except (FileNotFoundError, ParseError) as e:
        console.print(f"[bold red]Extraction failed:[/] {e}")
        raise typer.Exit(code=1)
    for message in raw.metadata.messages:
        console.print(f"[yellow]warning:[/] {message}")
    _write_json(serialize_raw_data(raw), output)


@app.command("map")
def map_command(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Extracted document JSON")],
    group: Annotated[str, typer.Option("--group", "-g", help="Drafting group of the mapper")] = "STANDARD",
    subgroup: Annotated[Optional[str], typer.Option("--subgroup", help="Mapper subgroup")] = None,
    output: Annotated[
        Optional[Path], typer.Option("--output", "-o", help="Write the import data JSON here")
    ] = None,
) -> None:
    """Map an extracted document to structured import data."""
    service = _build_service(ctx)
    try:
        raw = deserialize_raw_data(source.read_text(encoding="utf-8"))
        structured = service.map_to_structured_data(raw, group, subgroup)
    except (OSError, ValueError, KeyError, ImportFailure) as e:
        console.print(f"[bold red]Mapping failed:[/] {e}")
        raise typer.Exit(code=1)
    _write_json(json.dumps(structured.to_dict(), ensure_ascii=False, indent=2), output)


@app.command("import-data")
def import_data(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Structured import data JSON")],
    database_url: Annotated[
        Optional[str], typer.Option("--database-url", help="Entity store URL")
    ] = None,
    user: Annotated[str, typer.Option("--user", "-u", help="User recorded on created entities")] = DEFAULT_USER_ID,
    standard: Annotated[
        bool, typer.Option("--standard", help="Update entities already stored under the same code")
    ] = False,
) -> None:
    """Import structured data into the entity store."""
    try:
        data = StructuredImportData.from_dict(json.loads(source.read_text(encoding="utf-8")))
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Cannot read import data:[/] {e}")
        raise typer.Exit(code=1)

    service = _build_service(ctx, database_url)
    try:
        if standard:
            summary = service.import_standard_data(data, user)
        else:
            summary = service.import_structured_data(data, user)
    finally:
        service.close()
    _print_summary(summary)
    if summary.has_errors:
        raise typer.Exit(code=1)


@app.command()
def run(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Word document (.docx) or archive (.zip)")],
    group: Annotated[str, typer.Option("--group", "-g", help="Drafting group of the mapper")] = "STANDARD",
    subgroup: Annotated[Optional[str], typer.Option("--subgroup", help="Mapper subgroup")] = None,
    database_url: Annotated[
        Optional[str], typer.Option("--database-url", help="Entity store URL")
    ] = None,
    user: Annotated[str, typer.Option("--user", "-u", help="User recorded on created entities")] = DEFAULT_USER_ID,
) -> None:
    """Extract, map and import a document in one go."""
    if not source.exists():
        console.print(f"[bold red]File not found:[/] {source}")
        raise typer.Exit(code=1)

    service = _build_service(ctx, database_url)
    try:
        summary = service.import_document(source.read_bytes(), source.name, group, subgroup, user)
    finally:
        service.close()
    _print_summary(summary)
    if summary.has_errors:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
