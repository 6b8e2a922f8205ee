"""
Rich-based terminal dashboard for diagnostic results.

All formatting helpers live in ``netdiag.stats`` -- this module only does
presentation via the ``rich`` library.  :class:`ConsoleSink` is the result
sink the CLI hands to the session runner.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from netdiag.api import ClientInfo
from netdiag.constants import CELL_ERROR, NOT_AVAILABLE
from netdiag.reachability import CellValue, Column, DohAnswer, ReachabilityRow
from netdiag.session import Phase, ResultSink, SessionState, TestSession
from netdiag.stats import format_latency, format_speed

console = Console()

_PHASE_COLORS = {Phase.PING: "yellow", Phase.DOWNLOAD: "green", Phase.UPLOAD: "blue"}


# ---------------------------------------------------------------------------
# Sparkline helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_sparkline(values: List[float]) -> str:
    """Return a single-line Unicode trend chart of *values*."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)]
        for v in values
    )


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Network Diagnostic Tool[/bold cyan]\n"
            "[dim]Latency, throughput and reachability from the terminal[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def format_client_info(info: ClientInfo) -> str:
    parts = []
    if info.ip != NOT_AVAILABLE:
        parts.append(f"Your IP: {info.ip}")
    if info.city != NOT_AVAILABLE:
        parts.append(f"City: {info.city}")
    if info.country != NOT_AVAILABLE:
        flag = info.country_flag
        parts.append(f"Country: {flag} {info.country}" if flag else f"Country: {info.country}")
    return " | ".join(parts) if parts else "Could not retrieve IP information."


def print_client_info(info: Optional[ClientInfo]) -> None:
    text = format_client_info(info) if info else "Could not retrieve IP information."
    console.print(f"[dim]{text}[/dim]")


def print_session_summary(session: TestSession) -> None:
    """Final Ping / Download / Upload panel."""
    lines = []
    if session.ping_ms is not None:
        lines.append(f"[bold white]   Ping:[/bold white]  [bold yellow]{session.ping_ms:.0f} ms[/bold yellow]")
    if session.download_mbps is not None:
        lines.append(
            f"[bold white]   Download:[/bold white]  "
            f"[bold green]{format_speed(session.download_mbps)}[/bold green] [dim]Avg[/dim]"
        )
    if session.upload_mbps is not None:
        lines.append(
            f"[bold white]   Upload:[/bold white]  "
            f"[bold blue]{format_speed(session.upload_mbps)}[/bold blue] [dim]Avg[/dim]"
        )
    if session.state is SessionState.FAILED:
        lines.append(f"[bold red]   Failed:[/bold red] {session.error}")

    console.print()
    console.print(
        Panel.fit(
            "\n".join(lines) or "[dim]No results[/dim]",
            title="[bold]Results[/bold]",
            border_style="red" if session.state is SessionState.FAILED else "cyan",
        )
    )

    for series, color in ((session.download_series, "green"), (session.upload_series, "blue")):
        if series and series.live:
            console.print(
                Panel(
                    f"[{color}]{create_sparkline(series.live)}[/{color}]\n"
                    f"[dim]Min: {min(series.live):.1f} Mbps  Max: {max(series.live):.1f} Mbps[/dim]",
                    title=f"{series.direction.capitalize()} Trend (Mbps)",
                )
            )
    console.print()


# ---------------------------------------------------------------------------
# Result sink
# ---------------------------------------------------------------------------

class ConsoleSink(ResultSink):
    """Shows the latest Live reading of the running phase, then its result."""

    def __init__(self, console_: Optional[Console] = None) -> None:
        self.console = console_ or console
        self.progress: Optional[Progress] = None
        self._task_id = None

    def _stop(self) -> None:
        if self.progress is not None:
            self.progress.stop()
            self.progress = None
            self._task_id = None

    def on_phase_start(self, phase: Phase) -> None:
        self._stop()
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )
        self.progress.start()
        self._task_id = self.progress.add_task(f"Testing {phase.value}...", total=None, speed="")

    def on_live_reading(self, phase: Phase, mbps: float) -> None:
        if self.progress is not None and self._task_id is not None:
            self.progress.update(self._task_id, speed=f"Live {format_speed(mbps)}")

    def on_ping_result(self, latency_ms: float) -> None:
        self._stop()
        self.console.print(f"  Ping      [bold yellow]{format_latency(latency_ms)}[/bold yellow]")

    def on_final_reading(self, phase: Phase, mbps: float) -> None:
        self._stop()
        color = _PHASE_COLORS[phase]
        label = phase.value.capitalize()
        self.console.print(f"  {label:<9} [bold {color}]{format_speed(mbps)}[/bold {color}] [dim]Avg[/dim]")

    def on_phase_error(self, phase: Phase, message: str) -> None:
        self._stop()
        self.console.print(f"[red]Error ({phase.value}): {message}[/red]")

    def on_state_change(self, state: SessionState) -> None:
        if state in (SessionState.DONE, SessionState.FAILED):
            self._stop()


# ---------------------------------------------------------------------------
# Reachability table
# ---------------------------------------------------------------------------

def format_cell(value: Optional[CellValue]) -> str:
    """Text for one reachability cell: pending, error, address or latency."""
    if value is None:
        return "…"
    if isinstance(value, DohAnswer):
        return f"{value.ip}\n[dim]{value.latency_ms:.0f} ms[/dim]"
    if value == CELL_ERROR or isinstance(value, str):
        return f"[red]{value}[/red]"
    return f"{value:.0f} ms"


def build_reachability_table(rows: Dict[str, ReachabilityRow]) -> Table:
    table = Table(title="Reachability", box=box.ROUNDED)
    table.add_column("Domain", style="bold")
    table.add_column("Cloudflare DNS", justify="center")
    table.add_column("Google DNS", justify="center")
    table.add_column("HTTP Ping (Avg)", justify="center")
    for row in rows.values():
        table.add_row(
            row.domain,
            format_cell(row.cloudflare),
            format_cell(row.google),
            format_cell(row.http_latency_ms),
        )
    return table


class ReachabilityTable:
    """A ``rich.live.Live`` table redrawn every time a single cell settles."""

    def __init__(self, domains: List[str], console_: Optional[Console] = None) -> None:
        self.rows: Dict[str, ReachabilityRow] = {d: ReachabilityRow(domain=d) for d in domains}
        self.live = Live(
            build_reachability_table(self.rows),
            console=console_ or console,
            refresh_per_second=8,
        )

    def __enter__(self) -> ReachabilityTable:
        self.live.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.live.update(build_reachability_table(self.rows), refresh=True)
        self.live.stop()

    def update_cell(self, domain: str, column: Column, value: CellValue) -> None:
        self.rows[domain].set(column, value)
        self.live.update(build_reachability_table(self.rows))
