#!/usr/bin/env python3
"""Example CLI Usage Script - Demonstrates all glucose-ingest commands.

Writes a handful of small vendor exports to a working directory and runs
every CLI command on them as a subprocess.

Usage:
    python examples/example_cli_usage.py

    # Or with your own exports
    python examples/example_cli_usage.py --data-dir /path/to/exports
"""

import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel

app = typer.Typer()
console = Console()

SAMPLE_EXPORTS: Dict[str, str] = {
    "agamatrix.csv": (
        "AgaMatrix Diabetes Manager Export\n"
        "Date,Time,Glucose (mg/dL),Meal\n"
        "01/15/2024,07:45,102,Before Meal\n"
        "01/15/2024,12:30,145,After Meal\n"
    ),
    "onetouch.csv": (
        "OneTouch Reveal export\n"
        "Date;Time;Result;Unit;Tag\n"
        "15.01.2024;07:30;5,4;mmol/L;Fasting\n"
        "15.01.2024;13:10;7,9;mmol/L;After Meal\n"
    ),
    "generic.csv": "Date,Time,Glucose\n01/15/2024,08:30,112\n01/15/2024,14:00,98 mg/dL\n",
    "numbers_only.csv": "AgaMatrix Export\n120\n135\n150\n",
    "not_glucose.csv": "hello world 2024\n",
}


def run_cli_command(args: List[str], description: str = "") -> subprocess.CompletedProcess:
    """Run a glucose-ingest command and display results.

    Args:
        args: Command arguments for glucose-ingest
        description: Human-readable description of what this command does

    Returns:
        CompletedProcess with stdout/stderr
    """
    if description:
        console.print(f"\n[bold cyan]Example: {description}[/bold cyan]")

    cmd = [sys.executable, "-m", "glucose_ingest.ingest_cli"] + args
    console.print(f"[dim]$ glucose-ingest {' '.join(args)}[/dim]\n")

    result = subprocess.run(cmd, capture_output=True, text=True)

    if result.stdout:
        console.print(result.stdout)
    if result.returncode != 0 and result.stderr:
        console.print(f"[red]{result.stderr}[/red]")

    return result


def write_sample_exports(data_dir: Path) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    for name, content in SAMPLE_EXPORTS.items():
        (data_dir / name).write_text(content)


def section(title: str) -> None:
    console.print("\n" + "=" * 70)
    console.print(f"[bold green]{title}[/bold green]")
    console.print("=" * 70)


@app.command()
def main(
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Directory containing glucose exports (default: generated samples)"
    ),
) -> None:
    """Run through all glucose-ingest command examples."""
    console.print(Panel.fit(
        "[bold]Glucose Ingest CLI - Usage Examples[/bold]\n\n"
        "Commands are executed via subprocess to show real-world usage.",
        border_style="cyan"
    ))

    if data_dir is None:
        data_dir = Path(tempfile.mkdtemp(prefix="glucose_ingest_")) / "exports"
        write_sample_exports(data_dir)
    elif not data_dir.is_dir():
        console.print(f"\n[red]Error: Data directory not found: {data_dir}[/red]")
        raise typer.Exit(1)

    exports = sorted(data_dir.glob("*.csv"))
    if not exports:
        console.print(f"\n[red]Error: No CSV files found in {data_dir}[/red]")
        raise typer.Exit(1)

    output_dir = data_dir.parent / "cli_examples_output"
    output_dir.mkdir(exist_ok=True)
    console.print(f"\n[bold]Data directory:[/bold] {data_dir}")
    console.print(f"[bold]Output directory:[/bold] {output_dir}\n")

    section("1. FORMAT DETECTION")
    for export in exports:
        run_cli_command(["detect", str(export)], f"Detect the vendor of {export.name}")
    run_cli_command(["detect", str(exports[0]), "--verbose"], "Detect with file details")

    section("2. PARSING")
    test_file = exports[0]
    parsed_file = output_dir / f"parsed_{test_file.name}"
    run_cli_command(
        ["parse", str(test_file), "--output", str(parsed_file), "--stats"],
        "Parse to a reading table with statistics"
    )
    run_cli_command(
        ["parse", str(test_file), "--preview", "--no-stats", "--tz", "Europe/Berlin"],
        "Parse with preview, reading naive timestamps in Berlin time"
    )

    section("3. STATISTICS")
    run_cli_command(["stats", str(test_file)], "Statistics for today, 7 days, 30 days and all readings")
    run_cli_command(["stats", str(test_file), "--days", "90"], "Statistics for the last 90 days")

    section("4. BATCH PROCESSING")
    batch_output = output_dir / "batch_output"
    run_cli_command(
        ["batch", str(data_dir), "--output", str(batch_output), "--continue"],
        "Parse every export in the directory, reporting failures"
    )

    section("SUMMARY")
    console.print(f"\nOutput files saved to: {output_dir}")
    for output_file in sorted(output_dir.rglob("*.csv")):
        console.print(f"  • {output_file.relative_to(output_dir)} ({output_file.stat().st_size:,} bytes)")

    console.print("\n[bold cyan]For help on any command:[/bold cyan]")
    console.print("  glucose-ingest <command> --help")


if __name__ == "__main__":
    app()
