from __future__ import annotations

from typing import Any, Dict, Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table


class RunProgress:
    def __init__(self, *, enabled: bool, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Optional[int] = None
        self._started = False
        if self._enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TextColumn("{task.fields[detail]}", justify="left"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )

    def __enter__(self) -> RunProgress:
        if self._progress is not None and not self._started:
            self._progress.start()
            self._started = True
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._progress is not None and self._started:
            self._progress.stop()
            self._started = False

    def start_enrich(self, total: int) -> None:
        if self._progress is None:
            return
        self._task = self._progress.add_task("Enrichment", total=total, detail="")

    def advance_enrich(self, *, detail: str = "", count: int = 1) -> None:
        if self._progress is None or self._task is None:
            return
        self._progress.update(self._task, advance=count, detail=detail)


def render_run_summary_table(
    *,
    enabled: bool,
    status: str,
    metrics: Dict[str, Any],
    outdir: str,
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title="Enrichment Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Status", status)
    table.add_row("Inputs", str(metrics.get("inputs", 0)))
    table.add_row("Failed inputs", str(metrics.get("failed_inputs", 0)))
    table.add_row("Enriched records", str(metrics.get("enriched_records", 0)))
    table.add_row("Not enriched records", str(metrics.get("not_enriched_records", 0)))
    cache = metrics.get("path_cache") or {}
    if cache:
        table.add_row("Path cache hits/misses", f"{cache.get('hits', 0)}/{cache.get('misses', 0)}")
    table.add_row("Output dir", outdir)
    (console or Console()).print(table)
