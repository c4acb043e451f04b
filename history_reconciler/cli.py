"""Command Line Interface for the Health History Reconciler.

This module provides a CLI using Typer for parsing raw third-party payloads,
reconciling patient reviews and checking canonical histories for quality
issues.

Security Impact:
    - All commands validate inputs before processing
    - Domain errors are reported without a traceback and exit with code 1
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from history_reconciler.adapters.sources import JSONFileHistorySource
from history_reconciler.domain.cdc_models import ChangeEvent
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.ports import HealthHistoryError
from history_reconciler.domain.services.change_detector import ChangeDetector
from history_reconciler.domain.services.history_parser import get_parser, supported_versions
from history_reconciler.domain.services.quality_checker import QualityChecker
from history_reconciler.domain.services.reconciler import Reconciler
from history_reconciler.infrastructure.diagnostics_collector import DiagnosticsCollector
from history_reconciler.infrastructure.logging_config import setup_logging
from history_reconciler.infrastructure.settings import settings

# Initialize Typer app and Rich console
app = typer.Typer(
    name="history-reconciler",
    help="Health History Reconciler: normalize and reconcile patient health histories",
    add_completion=False
)
console = Console()


def _fail(message: str) -> None:
    console.print(f"[red]✗[/red] {escape(message)}")
    raise typer.Exit(code=1)


def _read_json(path: Path) -> Any:
    source = JSONFileHistorySource(path.parent, max_payload_size=settings.max_payload_size)
    return source.load(path)


def _write_json(payload: Any, output: Optional[Path]) -> None:
    if output is None:
        console.print_json(data=payload)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    console.print(f"[green]✓[/green] Written: {output}")


def _load_history(path: Path) -> PatientHealthHistory:
    try:
        return PatientHealthHistory.model_validate(_read_json(path))
    except PydanticValidationError as e:
        _fail(f"{path} is not a canonical health history: {e.error_count()} validation error(s)")


def _print_changes(changes: List[ChangeEvent]) -> None:
    if not changes:
        console.print("[dim]No field changes[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category", style="cyan")
    table.add_column("Record")
    table.add_column("Field")
    table.add_column("Old")
    table.add_column("New")
    table.add_column("Type")
    for change in changes:
        table.add_row(
            change.category,
            escape(change.record_key),
            change.field_name,
            escape("" if change.old_value is None else str(change.old_value)),
            escape("" if change.new_value is None else str(change.new_value)),
            change.change_type.value,
        )
    console.print(table)


@app.command()
def parse(
    input_file: Path = typer.Argument(..., help="Raw third-party payload (JSON)", exists=True, dir_okay=False),
    parser_version: Optional[str] = typer.Option(None, "--parser-version", "-p", help="Parser version (default from settings)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the canonical history to this file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Parse a raw payload into a canonical health history.

    Examples:
        history-reconciler parse data/P001.json
        history-reconciler parse data/P001.json --output canonical/P001.json
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        console.print("[dim]Verbose logging enabled[/dim]")

    collector = DiagnosticsCollector()
    try:
        parser = get_parser(parser_version or settings.parser_version, diagnostics=collector)
        report = parser.parse_with_report(_read_json(input_file))
    except HealthHistoryError as e:
        _fail(f"Parse failed: {e}")

    history = report.history
    summary_table = Table(show_header=False, box=None, padding=(0, 2))
    summary_table.add_row("Patient:", escape(history.patient_id))
    for category in history.categories():
        summary_table.add_row(f"{category}:", f"{len(history.records(category)):,}")
    summary_table.add_row("Dropped:", f"{report.dropped_items:,}")
    summary_table.add_row(
        "Rejected:",
        f"[red]{report.rejected_items:,}[/red]" if report.rejected_items else f"{report.rejected_items:,}",
    )
    if report.new_categories:
        summary_table.add_row("New categories:", escape(", ".join(report.new_categories)))
    console.print(summary_table)

    for issue in report.quality_issues:
        console.print(f"[yellow]⚠[/yellow] {escape(issue)}")

    _write_json(history.to_payload(), output)


@app.command()
def reconcile(
    stored_file: Path = typer.Argument(..., help="Stored canonical history (JSON)", exists=True, dir_okay=False),
    reviewed_file: Path = typer.Argument(..., help="Patient-reviewed history (JSON)", exists=True, dir_okay=False),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the reconciled history to this file"),
) -> None:
    """Reconcile a patient-reviewed history into a stored one.

    Examples:
        history-reconciler reconcile stored/P001.json reviews/P001.json -o stored/P001.json
    """
    try:
        reviewed = _read_json(reviewed_file)
        stored = _load_history(stored_file)
        result = Reconciler(diagnostics=DiagnosticsCollector()).reconcile_with_report(stored, reviewed)
    except HealthHistoryError as e:
        _fail(f"Reconciliation failed: {e}")

    changes = ChangeDetector(source="cli").detect_history_changes(stored, result.history)
    _print_changes(changes)

    if result.ignored_entries:
        console.print(f"[yellow]⚠[/yellow] Ignored {result.ignored_entries} entries without a name")

    _write_json(result.history.to_payload(), output)


@app.command()
def check(
    input_file: Path = typer.Argument(..., help="Canonical history (JSON)", exists=True, dir_okay=False),
) -> None:
    """Report data-quality issues in a canonical history.

    Exits with code 1 when any issue is found.
    """
    try:
        history = _load_history(input_file)
    except HealthHistoryError as e:
        _fail(f"Check failed: {e}")

    issues = QualityChecker().check(history)
    if not issues:
        console.print("[green]✓[/green] No quality issues found")
        return

    for issue in issues:
        console.print(f"[yellow]⚠[/yellow] {escape(issue)}")
    console.print(f"\n[yellow]{len(issues)} quality issue(s) found[/yellow]")
    raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """Display system information and configuration."""
    console.print("[bold blue]System Information[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", settings.app_name)
    info_table.add_row("Version:", settings.app_version)
    info_table.add_row("Parser Version:", settings.parser_version)
    info_table.add_row("Supported Versions:", ", ".join(supported_versions()))
    info_table.add_row("Source Directory:", str(settings.get_source_dir()))
    info_table.add_row("Max Payload Size:", f"{settings.max_payload_size / (1024 * 1024):.0f} MB")
    info_table.add_row("Log Level:", settings.log_level)
    info_table.add_row("JSON Logs:", "Enabled" if settings.log_json else "Disabled")

    console.print(info_table)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{settings.app_name} v{settings.app_version}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", help="Show version information", callback=_version_callback, is_eager=True
    ),
) -> None:
    """Health History Reconciler."""
    setup_logging(use_json=settings.log_json, log_level=settings.log_level, stream=sys.stderr)


if __name__ == "__main__":
    app()
