"""sharelens ingest: embed documents from the share into a new resource.

One run = one resource: every matching file in --directory is chunked by
words, embedded in a single provider call and stored with BM25 + vector
indexes. Files that cannot be read are skipped and listed.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from sharelens.cli.common import DEFAULT_DB, load_config_or_exit, open_db_or_exit, resolve_owner
from sharelens.cli.errors import err_invalid_argument, err_share_not_found, err_workflow_failed
from sharelens.collaborators.filesystem import LocalFileShare
from sharelens.db.audit import AuditStore
from sharelens.db.store import ResourceStore
from sharelens.errors import InvalidConfig
from sharelens.ingest.embeddings import LiteLLMEmbeddingProvider
from sharelens.log import configure_logging
from sharelens.workflows.ingestion import IngestionRequest, IngestionWorkflow
from sharelens.workflows.runner import WorkflowRunner

console = Console()


def ingest_cmd(
    directory: Annotated[
        str | None,
        typer.Option("--directory", "-d", help="Directory on the share (default: share.documents_dir)."),
    ] = None,
    pattern: Annotated[
        str | None,
        typer.Option("--pattern", "-p", help="Glob for files to ingest (default: share.file_pattern)."),
    ] = None,
    chunk_size: Annotated[
        int | None,
        typer.Option("--chunk-size", help="Words per chunk (default: chunking.chunk_size)."),
    ] = None,
    overlap: Annotated[
        int | None,
        typer.Option("--overlap", help="Words shared by consecutive chunks."),
    ] = None,
    owner: Annotated[
        str | None,
        typer.Option("--owner", help="Owner id (default: $SHARELENS_OWNER or login name)."),
    ] = None,
    share_root: Annotated[
        str | None,
        typer.Option("--share-root", help="Override share.root."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .sharelens.db."),
    ] = DEFAULT_DB,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging."),
    ] = False,
) -> None:
    """Ingest documents from the file share."""
    configure_logging(verbose)
    cfg = load_config_or_exit(console)
    conn = open_db_or_exit(db, console)

    request = IngestionRequest(
        owner_id=resolve_owner(owner),
        directory=directory or cfg.share.documents_dir,
        pattern=pattern or cfg.share.file_pattern,
        chunk_size=chunk_size if chunk_size is not None else cfg.chunking.chunk_size,
        overlap=overlap if overlap is not None else cfg.chunking.overlap,
    )
    workflow = IngestionWorkflow(
        share=LocalFileShare(share_root or cfg.share.root),
        provider=LiteLLMEmbeddingProvider(cfg.embedding_provider()),
        store=ResourceStore(conn, batch_size=cfg.storage.insert_batch_size),
        audit=AuditStore(conn),
        runner=WorkflowRunner(timeout=cfg.workflows.ingest_timeout),
    )

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
            disable=as_json,
        ) as prog:
            prog.add_task(f"Ingesting {request.directory}/{request.pattern}…", total=None)
            result = workflow.run(request)
    except InvalidConfig as exc:
        console.print(err_invalid_argument(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        raise typer.Exit(0 if result.success else 1)

    if not result.success:
        if (result.error or "").startswith("Directory not found"):
            console.print(err_share_not_found(result.source))
        else:
            console.print(err_workflow_failed("Ingestion", result.error_kind, result.error))
        raise typer.Exit(1)

    for skipped in result.skipped:
        console.print(f"  [yellow]↷ Skipped[/] {skipped.path}: {skipped.reason}")
    if result.embeddings_created == 0:
        console.print(f"  [yellow]No text found in {result.source}[/] (nothing stored)")
        return
    console.print(
        f"[green]✓[/] {result.documents_processed} documents, "
        f"{result.embeddings_created} embeddings → resource [bold]{result.resource_id}[/]"
    )
