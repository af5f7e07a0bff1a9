#!/usr/bin/env python3
"""Glucose Ingest CLI Tool - Command-line interface for glucose export ingestion.

This tool provides access to the ingestion engine and reading processing:
- Format detection
- Parsing to canonical readings (with CSV export)
- Glucose statistics over standard periods
- Batch processing

Can be used as:
- Installed command: glucose-ingest <command>
- Python module: python -m glucose_ingest.ingest_cli <command>
- Direct script: python scripts/ingest_cli.py <command>
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import polars as pl
import typer
from loguru import logger
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from glucose_ingest.column_resolver import sniff_delimiter
from glucose_ingest.format_parser import IngestionOrchestrator
from glucose_ingest.interface.ingest_interface import (
    MMOL_THRESHOLD,
    CanonicalReading,
    IngestionResult,
)
from glucose_ingest.reading_processor import GlucoseStatistics, ReadingProcessor
from glucose_ingest.value_extractor import make_unit_policy

app = typer.Typer(
    name="glucose-ingest",
    help="Glucose Ingest CLI - Detect, parse and summarise glucose meter exports",
    add_completion=False,
)
console = Console()

TARGET_RANGE_MGDL = (70.0, 180.0)


# ===== Format Detection & Parsing Commands =====

@app.command()
def detect(
    input_file: Path = typer.Argument(..., help="Input file to detect format"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed information"),
) -> None:
    """Detect the vendor format of a glucose export."""
    _require_file(input_file)
    _configure_logging(verbose)
    try:
        raw_data = input_file.read_bytes()
        orchestrator = IngestionOrchestrator()
        lines = orchestrator.split_lines(orchestrator.decode_raw_data(raw_data))
        detected_format = orchestrator.detect_format(lines)
    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[green]✓[/green] Detected format: [bold]{detected_format.value}[/bold]")

    if verbose:
        console.print(f"\nFile: {input_file}")
        console.print(f"Size: {len(raw_data)} bytes")
        console.print(f"Lines: {len(lines)}")
        console.print(f"Delimiter: {sniff_delimiter(lines)!r}")


@app.command()
def parse(
    input_file: Path = typer.Argument(..., help="Input file to parse"),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Output CSV file (reading table)"),
    show_stats: bool = typer.Option(True, "--stats/--no-stats", help="Show statistics"),
    show_preview: bool = typer.Option(False, "--preview", "-p", help="Show data preview"),
    mmol_threshold: float = typer.Option(MMOL_THRESHOLD, "--mmol-threshold", help="Bare values below this are read as mmol/L"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA zone for timestamps without offset (default: local)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show ingestion log"),
) -> None:
    """Parse a glucose export to canonical readings."""
    _require_file(input_file)
    _configure_logging(verbose)
    orchestrator = _build_orchestrator(mmol_threshold, tz)

    with console.status(f"[bold green]Parsing {input_file.name}...") as status:
        result = orchestrator.ingest_file(
            input_file,
            progress=lambda message: status.update(f"[bold green]{message}"),
        )

    readings = _unwrap_or_exit(result)
    console.print(
        f"\n[green]✓[/green] Successfully parsed {len(readings)} readings "
        f"([bold]{result.format.value}[/bold], {result.stage.value})"
    )
    if result.has_synthetic_timestamps:
        console.print("[yellow]⚠ Timestamps are synthetic (hourly, counting back from now)[/yellow]")

    df = ReadingProcessor.to_dataframe(readings)

    if show_stats:
        _print_dataframe_stats(df, "Parsed Data")

    if show_preview:
        console.print("\n[bold]Data Preview:[/bold]")
        console.print(df.head(10))

    if output_file:
        ReadingProcessor.to_csv_file(df, str(output_file))
        console.print(f"\n[green]✓[/green] Saved to: {output_file}")


# ===== Info & Stats Commands =====

@app.command()
def stats(
    input_file: Path = typer.Argument(..., help="Input file"),
    days: Optional[int] = typer.Option(None, "--days", "-d", min=1, help="Only the last N days"),
    mmol_threshold: float = typer.Option(MMOL_THRESHOLD, "--mmol-threshold", help="Bare values below this are read as mmol/L"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA zone for timestamps without offset (default: local)"),
) -> None:
    """Show glucose statistics (average, minimum, maximum, count) for a file."""
    _require_file(input_file)
    orchestrator = _build_orchestrator(mmol_threshold, tz)

    with console.status("[bold green]Analyzing file..."):
        result = orchestrator.ingest_file(input_file)
    readings = _unwrap_or_exit(result)

    now = datetime.now().astimezone()
    if days is not None:
        summaries = [
            ReadingProcessor.compute_statistics(
                readings, start=now - timedelta(days=days), end=now, period=f"Last {days} Days"
            )
        ]
    else:
        summaries = list(ReadingProcessor.summarize_periods(readings, now).values())
        summaries.append(ReadingProcessor.compute_statistics(readings, period="All Readings"))

    console.print(f"\n[bold]Glucose Statistics: {input_file.name}[/bold] ({result.format.value})\n")
    _print_statistics_table(summaries)


@app.command()
def batch(
    input_dir: Path = typer.Argument(..., help="Directory containing glucose exports"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    pattern: str = typer.Option("*.csv", "--pattern", "-p", help="File pattern to match"),
    continue_on_error: bool = typer.Option(True, "--continue/--stop", help="Continue on errors"),
    mmol_threshold: float = typer.Option(MMOL_THRESHOLD, "--mmol-threshold", help="Bare values below this are read as mmol/L"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA zone for timestamps without offset (default: local)"),
) -> None:
    """Parse every matching file in a directory."""
    if not input_dir.exists():
        console.print(f"[red]Error: Directory not found: {input_dir}[/red]")
        raise typer.Exit(1)

    if not input_dir.is_dir():
        console.print(f"[red]Error: Not a directory: {input_dir}[/red]")
        raise typer.Exit(1)

    files = sorted(input_dir.glob(pattern))
    if not files:
        console.print(f"[red]Error: No files matching '{pattern}' found in {input_dir}[/red]")
        raise typer.Exit(1)

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)

    orchestrator = _build_orchestrator(mmol_threshold, tz)
    console.print(f"\n[bold]Batch processing {len(files)} file(s)[/bold]\n")

    results = {"success": 0, "failed": 0}
    failures: List[str] = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Processing...", total=len(files))

        for file_path in files:
            progress.update(task, description=f"Processing {file_path.name}...")
            result = orchestrator.ingest_file(file_path)

            if result.is_success:
                results["success"] += 1
                if output_dir:
                    df = ReadingProcessor.to_dataframe(result.readings)
                    ReadingProcessor.to_csv_file(df, str(output_dir / file_path.name))
            else:
                results["failed"] += 1
                failures.append(f"{file_path.name}: {result.reason}")
                if not continue_on_error:
                    progress.stop()
                    console.print(f"\n[red]✗ Error processing {file_path.name}: {result.reason}[/red]")
                    raise typer.Exit(1)

            progress.advance(task)

    console.print("\n[bold]Batch processing complete:[/bold]")
    console.print(f"  [green]Success: {results['success']}[/green]")
    if results["failed"] > 0:
        console.print(f"  [red]Failed: {results['failed']}[/red]")
        for failure in failures:
            console.print(f"    [red]{failure}[/red]")

    if output_dir:
        console.print(f"\n[green]✓[/green] Output saved to: {output_dir}")


# ===== Helper Functions =====

def _require_file(input_file: Path) -> None:
    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)


def _configure_logging(verbose: bool) -> None:
    """Route the package log to stderr when verbose."""
    if not verbose:
        return
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")
    logger.enable("glucose_ingest")


def _build_orchestrator(mmol_threshold: float, tz: Optional[str]) -> IngestionOrchestrator:
    zone = None
    if tz:
        try:
            zone = ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError) as e:
            console.print(f"[red]✗ Unknown time zone: {tz} ({e})[/red]")
            raise typer.Exit(1)
    return IngestionOrchestrator(unit_policy=make_unit_policy(mmol_threshold), tz=zone)


def _unwrap_or_exit(result: IngestionResult) -> List[CanonicalReading]:
    if not result.is_success:
        console.print(f"[red]✗ Parse error: {result.reason}[/red]")
        raise typer.Exit(1)
    return result.unwrap()


def _format_mg_dl(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.1f} mg/dL"


def _print_dataframe_stats(df: pl.DataFrame, title: str) -> None:
    """Print a summary of a reading table: span, glucose spread, time in range and meal tags."""
    console.print(f"\n[bold]{title} Statistics:[/bold]")

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Total Readings", f"{len(df):,}")

    if len(df) > 0:
        first, last = df['datetime'].min(), df['datetime'].max()
        span_days = (last - first).total_seconds() / 86400
        table.add_row("First Reading (UTC)", str(first))
        table.add_row("Last Reading (UTC)", str(last))
        table.add_row("Span", f"{span_days:.1f} days")

        glucose = df['glucose']
        table.add_row("Glucose Mean ± SD", f"{glucose.mean():.1f} ± {glucose.std() or 0.0:.1f} mg/dL")
        table.add_row("Glucose Range", f"{glucose.min():.1f} - {glucose.max():.1f} mg/dL")

        low, high = TARGET_RANGE_MGDL
        in_range = df.filter(pl.col('glucose').is_between(low, high)).height
        table.add_row(f"In Range ({low:.0f}-{high:.0f})", f"{in_range / len(df):.0%}")

        meal_counts = df.group_by('meal_relation').agg(pl.len().alias('count')).sort('meal_relation')
        for meal_relation, count in meal_counts.iter_rows():
            table.add_row(f"  {meal_relation}", f"{count:,}")

    console.print(table)


def _print_statistics_table(summaries: List[GlucoseStatistics]) -> None:
    table = Table()
    table.add_column("Period", style="cyan")
    table.add_column("Average", style="white")
    table.add_column("Minimum", style="green")
    table.add_column("Maximum", style="red")
    table.add_column("Readings", style="yellow")

    for summary in summaries:
        table.add_row(
            summary.period,
            _format_mg_dl(summary.average_glucose),
            _format_mg_dl(summary.minimum_glucose),
            _format_mg_dl(summary.maximum_glucose),
            f"{summary.reading_count:,}",
        )

    console.print(table)


# ===== Main Entry Point =====

def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
