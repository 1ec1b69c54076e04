"""
Rich-based terminal rendering for one-shot measurements.

All number formatting lives in ``bandwidth.stats``; this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bandwidth.config import CalibrationProfile
from bandwidth.selector import SpeedTestResult
from bandwidth.stats import DOWNLOAD, DirectionStats, Sample, format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    top = len(_BARS) - 1
    return "".join(_BARS[min(int((v - lo) / span * top), top)] for v in values)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header(methods: List[str]) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Speedcheck[/bold cyan]\n"
            f"[dim]Methods: {' -> '.join(methods) or 'none'}[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_direction_stats(stats: DirectionStats, title: str, color: str = "green") -> None:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Mean", f"[bold {color}]{format_speed(stats.mean)}[/bold {color}]")
    table.add_row("Min", format_speed(stats.min))
    table.add_row("Max", format_speed(stats.max))
    table.add_row("Samples", str(stats.count))
    console.print(table)

    if stats.count > 1:
        console.print(
            Panel(
                f"[{color}]{create_histogram(stats.values)}[/{color}]",
                title="Per-Sample Speed",
            )
        )


def print_samples(samples: List[Sample], profile: CalibrationProfile) -> None:
    """One row per probe, failed ones included."""
    if not samples:
        return

    table = Table(title="Probes", box=box.SIMPLE)
    table.add_column("Kind", style="dim")
    table.add_column("URL")
    table.add_column("Bytes", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Speed", justify="right")

    for s in samples:
        if s.succeeded:
            factor = profile.download_factor if s.kind == DOWNLOAD else profile.upload_factor
            speed = format_speed(s.throughput(factor))
            elapsed = f"{s.elapsed_seconds:.2f} s"
        else:
            speed = f"[red]{s.error or 'failed'}[/red]"
            elapsed = "-"
        table.add_row(s.kind, s.url[:60], f"{s.byte_size / 1_000_000:.1f} MB", elapsed, speed)

    console.print(table)


def print_final_results(result: SpeedTestResult) -> None:
    upload_note = " [dim](estimated)[/dim]" if result.upload_estimated else ""
    jitter = f"{result.jitter:.2f} ms" if result.jitter is not None else "n/a"

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Method:[/bold cyan] {result.method}\n"
            f"[bold cyan]Server:[/bold cyan] {result.server or 'n/a'}\n\n"
            f"[bold white]   Ping:[/bold white]  [bold yellow]{format_latency(result.ping)}[/bold yellow]  "
            f"[dim](jitter: {jitter})[/dim]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{format_speed(result.download)}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{format_speed(result.upload)}[/bold blue]"
            f"{upload_note}",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


def print_error(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
