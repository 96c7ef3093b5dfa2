"""sharelens remove: delete a resource and everything derived from it.

Removes, in one transaction:
  - keyword index rows (FTS5)
  - embeddings
  - the resource record

A resource owned by someone else is reported exactly like a missing one.

Usage:
  sharelens remove <resource-id>
  sharelens remove <resource-id> --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from sharelens.cli.common import DEFAULT_DB, open_db_or_exit, resolve_owner
from sharelens.cli.errors import err_resource_not_found
from sharelens.db.store import ResourceStore
from sharelens.errors import NotFound

console = Console()


def remove_cmd(
    resource_id: Annotated[str, typer.Argument(help="Resource id to remove.")],
    owner: Annotated[
        str | None,
        typer.Option("--owner", help="Owner id (default: $SHARELENS_OWNER or login name)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .sharelens.db."),
    ] = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a resource and all its embeddings."""
    conn = open_db_or_exit(db, console)
    owner_id = resolve_owner(owner)
    store = ResourceStore(conn)

    try:
        try:
            resource = store.get_resource(resource_id, owner_id)
        except NotFound:
            console.print(err_resource_not_found(resource_id))
            raise typer.Exit(1)

        count = store.count_embeddings(resource.id)
        console.print(f"\nRemove resource: [bold]{resource.name}[/]")
        console.print(f"  Embeddings: {count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        deleted = store.delete_resource(resource.id, owner_id)
        console.print(f"\n[green]✓[/] Removed: {resource.name}")
        console.print(f"  {deleted} embeddings deleted")
    finally:
        conn.close()
