"""sharelens history: recent ingestion runs and security scans."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from sharelens.cli.common import DEFAULT_DB, open_db_or_exit, resolve_owner
from sharelens.db.audit import AuditStore

console = Console()

_STATUS_STYLE = {"completed": "green", "failed": "red"}


def history_cmd(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Records per table."),
    ] = 10,
    owner: Annotated[
        str | None,
        typer.Option("--owner", help="Owner id (default: $SHARELENS_OWNER or login name)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .sharelens.db."),
    ] = DEFAULT_DB,
) -> None:
    """Show recent ingestion and scan records."""
    conn = open_db_or_exit(db, console)
    owner_id = resolve_owner(owner)
    try:
        audit = AuditStore(conn)
        ingestions = audit.list_ingestion_records(owner_id, limit=limit)
        scans = audit.list_scan_records(owner_id, limit=limit)
    finally:
        conn.close()

    if not ingestions and not scans:
        console.print(f"[dim]No history for owner '{owner_id}'.[/]")
        return

    if ingestions:
        table = Table(title="Ingestion runs")
        table.add_column("When")
        table.add_column("Source")
        table.add_column("Status")
        table.add_column("Docs", justify="right")
        table.add_column("Embeddings", justify="right")
        table.add_column("Error")
        for rec in ingestions:
            style = _STATUS_STYLE.get(rec.status, "white")
            table.add_row(
                rec.created_at or "",
                rec.source,
                f"[{style}]{rec.status}[/]",
                str(rec.documents_processed),
                str(rec.embeddings_created),
                rec.error or "",
            )
        console.print(table)

    if scans:
        table = Table(title="Security scans")
        table.add_column("When")
        table.add_column("Source")
        table.add_column("Status")
        table.add_column("Severity")
        table.add_column("Issues", justify="right")
        table.add_column("Email")
        for rec in scans:
            style = _STATUS_STYLE.get(rec.status, "white")
            table.add_row(
                rec.created_at or "",
                rec.source,
                f"[{style}]{rec.status}[/]",
                rec.severity,
                str(rec.issues_found),
                "yes" if rec.email_sent else "no",
            )
        console.print(table)
