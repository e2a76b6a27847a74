"""Main Typer application, the entry point of the ``kubestress`` CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from kubestress import __version__
from kubestress.cli.list_cmd import list_cmd

app = typer.Typer(
    name="kubestress",
    help="Generate rate-controlled load against a Kubernetes API server.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("list", help="List objects of a given type in the cluster.")(list_cmd)


@dataclass(frozen=True)
class GlobalOptions:
    """Options shared by every subcommand.

    Attributes:
        kubeconfig: Explicit kubeconfig path, if given.
        context: Kubeconfig context override.
        verbosity: Number of ``-v`` flags.
        json_logs: Emit JSON log lines.
    """

    kubeconfig: Path | None = None
    context: str | None = None
    verbosity: int = 0
    json_logs: bool = False


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"kubestress {__version__}")
        raise typer.Exit


@app.callback()
def main(
    ctx: typer.Context,
    kubeconfig: Path | None = typer.Option(
        None,
        "--kubeconfig",
        help="Path to the kubeconfig file (default: $KUBECONFIG, ~/.kube/config, in-cluster).",
        dir_okay=False,
    ),
    context: str | None = typer.Option(
        None,
        "--context",
        help="Kubeconfig context to use instead of current-context.",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase log verbosity (-v lifecycle, -vv every request).",
    ),
    log_json: bool = typer.Option(
        False,
        "--log-json",
        help="Emit logs as JSON lines.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Stress Kubernetes API servers with LIST calls."""
    ctx.obj = GlobalOptions(
        kubeconfig=kubeconfig,
        context=context,
        verbosity=verbose,
        json_logs=log_json,
    )
