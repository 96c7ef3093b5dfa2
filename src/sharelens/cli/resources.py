"""sharelens resources: list the owner's resources with embedding counts."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from sharelens.cli.common import DEFAULT_DB, open_db_or_exit, resolve_owner
from sharelens.db.store import ResourceStore

console = Console()


def resources_cmd(
    owner: Annotated[
        str | None,
        typer.Option("--owner", help="Owner id (default: $SHARELENS_OWNER or login name)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .sharelens.db."),
    ] = DEFAULT_DB,
) -> None:
    """List your ingested resources."""
    conn = open_db_or_exit(db, console)
    owner_id = resolve_owner(owner)
    try:
        store = ResourceStore(conn)
        rows = [(r, store.count_embeddings(r.id)) for r in store.list_resources(owner_id)]
    finally:
        conn.close()

    if not rows:
        console.print(f"[dim]No resources for owner '{owner_id}'.[/]")
        return

    table = Table(title=f"Resources ({owner_id})")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Embeddings", justify="right")
    table.add_column("Model")
    table.add_column("Created")
    for resource, count in rows:
        table.add_row(
            resource.id,
            resource.name,
            str(count),
            f"{resource.embedding_model} ({resource.dimensions}d)",
            resource.created_at or "",
        )
    console.print(table)
