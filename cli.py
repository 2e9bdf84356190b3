"""
Tax Document Extraction - Command Line Interface

Usage:
    taxdoc extract w2_2024.pdf
    taxdoc extract scan.png --form-type 1099_nec --json-report out.json
    taxdoc batch ./uploads/ --concurrency 4
    taxdoc parse-text statement.txt --csv statement.csv
    taxdoc list-types
    taxdoc detect 1099-INT_chase.pdf
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from doctypes import (
    Confidence,
    ExtractionResult,
    TaxFormType,
    detect_form_type,
    get_field_patterns,
)
from documents import DocumentStore
from extractor import DocumentSource, OCRUnavailableError, check_tesseract_installed
from parser import parse_unstructured_text
from pipeline import ExtractionEngine, Settings, get_supported_extraction_types, load_settings


DEFAULT_SETTINGS = Path(__file__).parent / "config" / "settings.yaml"

CONFIDENCE_STYLES = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "red",
}

console = Console()


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None):
    """Configure loguru logging."""
    logger.remove()

    log_level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=log_level,
        colorize=True
    )

    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
            level="DEBUG",
            rotation="10 MB"
        )


def _form_type_option(value: Optional[str]) -> Optional[TaxFormType]:
    if value is None:
        return None
    member = TaxFormType.coerce(value)
    if member is None:
        raise click.BadParameter(f"unknown form type '{value}'")
    return member


def _print_result(result: ExtractionResult, title: str) -> None:
    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_column("Confidence", justify="center")

    for extracted in result.fields:
        style = CONFIDENCE_STYLES[extracted.confidence]
        table.add_row(
            extracted.key,
            extracted.value or "[dim]-[/]",
            f"[{style}]{extracted.confidence.value}[/]",
        )

    console.print(table)
    console.print(f"[bold]Overall confidence:[/] {result.overall_confidence}%")
    for warning in result.warnings:
        console.print(f"[yellow]! {warning}[/]")


@click.group()
@click.option(
    '--config', '-c',
    'config_path',
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help='Path to settings.yaml'
)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option(
    '--log-file',
    type=click.Path(path_type=Path),
    default=None,
    help='Write logs to file'
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool, log_file: Optional[Path]):
    """Extract structured fields from tax documents (W-2, 1099, 1098, ...)."""
    setup_logging(verbose=verbose, log_file=log_file)

    if config_path is None and DEFAULT_SETTINGS.exists():
        config_path = DEFAULT_SETTINGS

    try:
        settings = load_settings(config_path)
    except Exception as e:
        console.print(f"[bold red]Could not load settings: {e}[/]")
        raise SystemExit(1)

    ctx.obj = {'settings': settings, 'verbose': verbose}


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--form-type', '-t', default=None, help='Form type tag or label (default: detect from filename)')
@click.option('--simulate', is_flag=True, help='Ignore the file contents and return template values')
@click.option('--json-report', type=click.Path(path_type=Path), default=None, help='Write the result as JSON')
@click.pass_context
def extract(ctx: click.Context, input_path: Path, form_type: Optional[str], simulate: bool, json_report: Optional[Path]):
    """Extract fields from a single document."""
    settings: Settings = ctx.obj['settings']
    member = _form_type_option(form_type) or detect_form_type(input_path.name)

    engine = ExtractionEngine(settings.engine)
    source = None if simulate else DocumentSource.from_path(input_path)

    try:
        result = engine.extract(
            member,
            source,
            on_step=lambda event: console.print(f"[dim]{event.index + 1}/4 {event.label}[/]"),
        )
    except OCRUnavailableError as e:
        console.print(f"[bold red]OCR unavailable: {e}[/]")
        raise SystemExit(1)
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/]")
        if ctx.obj['verbose']:
            logger.exception("Full traceback:")
        raise SystemExit(1)

    _print_result(result, f"{input_path.name} ({member.label})")

    if json_report:
        with open(json_report, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2)
        console.print(f"Report written to: {json_report}")


@cli.command()
@click.argument('inputs', nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option('--concurrency', type=int, default=None, help='Documents extracted at once')
@click.option('--max-retries', type=int, default=None, help='Attempts per document')
@click.option('--base-delay', type=float, default=None, help='First retry delay in seconds')
@click.option('--json-report', type=click.Path(path_type=Path), default=None, help='Write all results as JSON')
@click.pass_context
def batch(
    ctx: click.Context,
    inputs,
    concurrency: Optional[int],
    max_retries: Optional[int],
    base_delay: Optional[float],
    json_report: Optional[Path],
):
    """Extract many documents (files or directories) concurrently."""
    settings: Settings = ctx.obj['settings']
    queue_config = settings.queue
    if concurrency is not None:
        queue_config.concurrency = concurrency
    if max_retries is not None:
        queue_config.max_retries = max_retries
    if base_delay is not None:
        queue_config.base_delay = base_delay

    files = []
    for path in inputs:
        if path.is_dir():
            files.extend(sorted(p for p in path.iterdir() if p.is_file()))
        else:
            files.append(path)

    if not files:
        console.print("[yellow]No documents found[/]")
        return

    store = DocumentStore()
    for path in files:
        store.add(str(path), DocumentSource.from_path(path))

    engine = ExtractionEngine(settings.engine)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task = progress.add_task("Extracting", total=len(files))
        queue_config.on_complete = lambda job_id, result: progress.advance(task)
        queue_config.on_error = lambda job_id, error: progress.advance(task)
        results = store.run_batch(engine, queue_config=queue_config)

    summary = Table(title="Extraction Summary")
    summary.add_column("File", style="cyan")
    summary.add_column("Form", justify="center")
    summary.add_column("Fields", justify="right")
    summary.add_column("Confidence", justify="right")
    summary.add_column("Warnings", justify="right")

    for doc_id, result in results.items():
        filename = Path(doc_id).name
        if len(filename) > 30:
            filename = filename[:27] + "..."
        summary.add_row(
            filename,
            store.form_type(doc_id).label,
            str(len(result.fields)),
            f"{result.overall_confidence}%",
            str(len(result.warnings)),
        )

    console.print()
    console.print(summary)

    if json_report:
        with open(json_report, 'w', encoding='utf-8') as f:
            json.dump({doc_id: r.to_dict() for doc_id, r in results.items()}, f, indent=2)
        console.print(f"Report written to: {json_report}")


@cli.command('parse-text')
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--csv', 'csv_path', type=click.Path(path_type=Path), default=None, help='Write the table to CSV')
def parse_text(input_path: Path, csv_path: Optional[Path]):
    """Detect a table in a plain-text file."""
    text = input_path.read_text(encoding='utf-8', errors='replace')
    parsed = parse_unstructured_text(text)

    if parsed.is_empty:
        console.print("[yellow]No content found[/]")
        return

    column_types = parsed.column_types()
    table = Table(title=f"{input_path.name} ({parsed.strategy})")
    for header in parsed.headers:
        table.add_column(f"{header} [dim]{column_types[header].value}[/]")
    for row in parsed.rows:
        table.add_row(*row)
    console.print(table)

    if csv_path:
        parsed.to_dataframe().to_csv(csv_path, index=False)
        console.print(f"[green]✓ Output written to: {csv_path}[/]")


@cli.command('list-types')
def list_types():
    """Show form types that have extraction templates."""
    table = Table(title="Supported Form Types")
    table.add_column("Tag", style="cyan")
    table.add_column("Form")
    table.add_column("Fields", justify="right")

    for form_type in get_supported_extraction_types():
        table.add_row(form_type.value, form_type.label, str(len(get_field_patterns(form_type))))

    console.print(table)

    if check_tesseract_installed():
        console.print("[green]✓ Tesseract available for scanned documents[/]")
    else:
        console.print("[yellow]! Tesseract not found: scanned documents and images cannot be read[/]")


@cli.command()
@click.argument('filenames', nargs=-1, required=True)
def detect(filenames):
    """Guess the form type from filenames."""
    for filename in filenames:
        form_type = detect_form_type(filename)
        console.print(f"{filename}: [bold]{form_type.label}[/] ({form_type.value})")


if __name__ == "__main__":
    cli()
