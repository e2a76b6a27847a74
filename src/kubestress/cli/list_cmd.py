"""``kubestress list``: LIST objects at a fixed QPS and report failures."""

from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kubestress._internal.config import (
    DEFAULT_NAMESPACE,
    DispatchConfig,
    parse_duration,
    request_timeout_from_env,
)
from kubestress._internal.errors import KubeStressError
from kubestress._internal.logging import verbosity_to_level
from kubestress.engine.runner import run_list
from kubestress.kube.config import load_cluster_config

if TYPE_CHECKING:
    from kubestress.cli.app import GlobalOptions
    from kubestress.metrics.counters import Summary

console = Console(stderr=True)


def _format_seconds(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value * 1000:.1f}ms"


def _print_summary(summary: Summary) -> None:
    """Print the final summary table.

    Args:
        summary: Completed run summary.
    """
    table = Table(
        title="List Run Complete",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Duration", f"{summary.elapsed_seconds:.1f}s")
    table.add_row("Total Requests", str(summary.total))
    table.add_row("Failed Requests", str(summary.failed))
    table.add_row("Failure Rate", summary.format_failure_rate())
    table.add_row("p50 Latency", _format_seconds(summary.latency_p50))
    table.add_row("p90 Latency", _format_seconds(summary.latency_p90))
    table.add_row("p99 Latency", _format_seconds(summary.latency_p99))
    table.add_row("Max Latency", _format_seconds(summary.latency_max))

    console.print(table)


def list_cmd(
    ctx: typer.Context,
    namespace: str = typer.Option(
        DEFAULT_NAMESPACE,
        "--namespace",
        help="Namespace to list the objects from (empty value means all namespaces).",
    ),
    object_type: str = typer.Option(
        "configmaps",
        "--object-type",
        help="Type of objects to list: configmaps or pods.",
    ),
    page_size: int = typer.Option(
        0,
        "--page-size",
        help="Number of objects per page, i.e. the `limit` param (0 means no pagination).",
        min=0,
    ),
    num_clients: int = typer.Option(
        10,
        "--num-clients",
        help="Number of clients to spread the list calls over.",
        min=1,
    ),
    qps: float = typer.Option(
        2.0,
        "--qps",
        help="QPS to generate for the list calls.",
    ),
    total_duration: str = typer.Option(
        "5m",
        "--total-duration",
        help="Total duration for which to send list calls (e.g. 30s, 5m, 1h).",
    ),
    request_timeout: str | None = typer.Option(
        None,
        "--request-timeout",
        help="Per-request timeout (default: $KUBESTRESS_REQUEST_TIMEOUT or 60s).",
    ),
    csv_output_filepath: Path | None = typer.Option(
        None,
        "--csv-output-filepath",
        help="Path to the output CSV file where latency values will be written.",
        dir_okay=False,
    ),
    max_failure_rate: float | None = typer.Option(
        None,
        "--max-failure-rate",
        help="Exit non-zero if the failure rate (percent) exceeds this value.",
    ),
) -> None:
    """List objects of a given type at a fixed QPS and report the failure rate."""
    options: GlobalOptions | None = ctx.obj

    try:
        timeout = (
            parse_duration(request_timeout)
            if request_timeout is not None
            else request_timeout_from_env()
        )
        config = DispatchConfig(
            qps=qps,
            total_duration=parse_duration(total_duration),
            request_timeout=timeout,
            namespace=namespace,
            object_type=object_type,
            page_size=page_size,
        )
        cluster = load_cluster_config(
            options.kubeconfig if options else None,
            context=options.context if options else None,
        )
    except KubeStressError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Server:[/bold]      {cluster.base_url}\n"
            f"[bold]Objects:[/bold]     {config.object_type} in "
            f"{config.namespace or 'all namespaces'} (page size {config.page_size})\n"
            f"[bold]Clients:[/bold]     {num_clients}\n"
            f"[bold]QPS:[/bold]         {config.qps}\n"
            f"[bold]Duration:[/bold]    {config.total_duration:g}s",
            title="kubestress list",
            border_style="cyan",
        )
    )

    try:
        summary = run_list(
            cluster,
            config,
            num_clients=num_clients,
            csv_output=csv_output_filepath,
            log_level=verbosity_to_level(options.verbosity if options else 0),
            json_logs=options.json_logs if options else False,
        )
    except KubeStressError as exc:
        console.print(f"[red]Error executing list command:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(summary)

    rate = summary.failure_rate
    if max_failure_rate is not None and not math.isnan(rate) and rate > max_failure_rate:
        console.print(
            f"[red]FAIL:[/red] Failure rate {rate:.2f}% "
            f"exceeds threshold {max_failure_rate:.2f}%"
        )
        raise typer.Exit(code=1)
