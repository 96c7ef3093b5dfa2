"""sharelens CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from sharelens.cli.history import history_cmd
from sharelens.cli.ingest import ingest_cmd
from sharelens.cli.init import init_cmd
from sharelens.cli.query import query_cmd
from sharelens.cli.remove import remove_cmd
from sharelens.cli.resources import resources_cmd
from sharelens.cli.scan import scan_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("sharelens")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"sharelens {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="sharelens",
    help=(
        "sharelens: search documents on a file share and watch its logs.\n\n"
        "  sharelens ingest  Embed documents from the share.\n"
        "  sharelens query   Hybrid (semantic + keyword) search.\n"
        "  sharelens scan    LLM security analysis of the share's logs."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """sharelens: search documents on a file share and watch its logs."""


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("query")(query_cmd)
app.command("resources")(resources_cmd)
app.command("remove")(remove_cmd)
app.command("scan")(scan_cmd)
app.command("history")(history_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed sharelens version."""
    typer.echo(f"sharelens {_installed_version()}")


if __name__ == "__main__":
    app()
