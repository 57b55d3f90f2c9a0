"""CLI entry point for the visual comparison tool."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mockup_diff.errors import BrowserLaunchFailure
from mockup_diff.models.comparison import ComparisonResult
from mockup_diff.models.config import PageConfig, RunConfig
from mockup_diff.models.report import RunReport
from mockup_diff.orchestrator import Orchestrator

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> RunConfig:
    try:
        return RunConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'mockup-diff init' to create a default config.")
        sys.exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid config {config}:[/red]\n{e}")
        sys.exit(1)


def _print_report(report: RunReport, paths: dict[str, str]) -> None:
    table = Table(title="Visual Comparison Results")
    table.add_column("Page", style="bold")
    table.add_column("Viewport")
    table.add_column("Match", justify="right")
    table.add_column("Result")
    for r in report.results:
        if isinstance(r, ComparisonResult) and r.compared:
            match = f"{r.match_percentage:.2f}%"
        else:
            match = "-"
        if r.passed:
            outcome = "[green]PASS[/green]"
        elif r.failure_reason:
            outcome = f"[red]{r.failure_category.value if r.failure_category else 'error'}[/red]"
        else:
            outcome = "[red]FAIL[/red]"
        table.add_row(r.task.page_id, r.task.viewport.name, match, outcome)
    console.print(table)

    summary = report.summary
    average = (
        f"{summary.average_match_percentage:.2f}%"
        if summary.average_match_percentage is not None else "n/a"
    )
    console.print(
        f"Total: {summary.total_comparisons}  "
        f"Passed: [green]{summary.passed}[/green]  "
        f"Failed: [red]{summary.failed}[/red]  "
        f"Average match: {average}"
    )
    for fmt, path in paths.items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Capture pages and compare them against design mock-ups."""
    setup_logging(verbose)


@cli.command()
@click.argument("page_id", required=False)
@click.argument("viewport", required=False)
@click.option("--config", "-c", default="visual-config.json", help="Config file path")
def compare(page_id: Optional[str], viewport: Optional[str], config: str) -> None:
    """Compare the full matrix, or a single PAGE_ID [VIEWPORT] cell."""
    cfg = _load_config(config)
    if page_id and viewport is None and cfg.get_viewport("desktop") is not None:
        viewport = "desktop"

    try:
        orchestrator = Orchestrator(cfg)
        report, paths = orchestrator.run(page_id, viewport)
    except KeyError as e:
        console.print(f"[red]{e.args[0]}[/red]")
        sys.exit(1)
    except BrowserLaunchFailure as e:
        console.print(f"[red]Browser launch failed:[/red] {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception("Visual comparison failed: %s", e)
        sys.exit(1)

    _print_report(report, paths)
    if report.exit_code:
        console.print("\n[red]Some visual comparisons failed. Check the report for details.[/red]")
    else:
        console.print("\n[green]All visual comparisons passed![/green]")
    sys.exit(report.exit_code)


@cli.command()
@click.option("--config", "-c", default="visual-config.json", help="Config file path")
def capture(config: str) -> None:
    """Capture screenshots of the full matrix without comparing."""
    cfg = _load_config(config)
    try:
        results, report_path = Orchestrator(cfg).run_capture_only()
    except BrowserLaunchFailure as e:
        console.print(f"[red]Browser launch failed:[/red] {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception("Capture failed: %s", e)
        sys.exit(1)

    failed = [r for r in results if not r.succeeded]
    console.print(f"[green]Captured {len(results) - len(failed)}/{len(results)} screenshots[/green]")
    for r in failed:
        console.print(f"  [red]{r.task.label}:[/red] {r.failure_reason}")
    console.print(f"  Capture report: [blue]{report_path}[/blue]")
    sys.exit(1 if failed else 0)


@cli.command()
@click.option("--base-url", "-b", prompt="Base URL", help="URL of the site under test")
@click.option("--config", "-c", default="visual-config.json", help="Config file path")
def init(base_url: str, config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    try:
        cfg = RunConfig(
            base_url=base_url,
            pages=[
                PageConfig(
                    id="homepage",
                    path="/",
                    reference_images={
                        "desktop": "design/home__desktop.png",
                        "mobile": "design/home__mobile.png",
                    },
                ),
            ],
        )
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nAdd your pages and mock-up paths, then run:")
    console.print("  [blue]mockup-diff compare[/blue]")


if __name__ == "__main__":
    cli()
