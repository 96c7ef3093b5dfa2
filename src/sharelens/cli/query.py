"""sharelens query: hybrid (vector + BM25) search over the owner's resources."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from sharelens.cli.common import DEFAULT_DB, load_config_or_exit, open_db_or_exit, resolve_owner
from sharelens.cli.errors import err_invalid_argument, err_workflow_failed, warn_no_embeddings
from sharelens.db.store import ResourceStore
from sharelens.errors import EmbeddingProviderError, InvalidConfig, StorageError
from sharelens.ingest.embeddings import LiteLLMEmbeddingProvider
from sharelens.log import configure_logging
from sharelens.retrieval.search import search

console = Console()

_PREVIEW_CHARS = 160


def query_cmd(
    text: Annotated[str, typer.Argument(help="Natural-language query.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", help="Number of results (default: retrieval.top_k)."),
    ] = None,
    alpha: Annotated[
        float | None,
        typer.Option("--alpha", help="Semantic weight in [0, 1] (default: retrieval.alpha)."),
    ] = None,
    resource: Annotated[
        list[str] | None,
        typer.Option("--resource", "-r", help="Restrict to resource id (repeatable)."),
    ] = None,
    owner: Annotated[
        str | None,
        typer.Option("--owner", help="Owner id (default: $SHARELENS_OWNER or login name)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .sharelens.db."),
    ] = DEFAULT_DB,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print results as JSON."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging."),
    ] = False,
) -> None:
    """Search ingested documents."""
    configure_logging(verbose)
    cfg = load_config_or_exit(console)
    conn = open_db_or_exit(db, console)
    owner_id = resolve_owner(owner)

    try:
        store = ResourceStore(conn)
        results = search(
            text,
            owner_id=owner_id,
            provider=LiteLLMEmbeddingProvider(cfg.embedding_provider()),
            store=store,
            top_k=top_k if top_k is not None else cfg.retrieval.top_k,
            alpha=alpha if alpha is not None else cfg.retrieval.alpha,
            resource_ids=resource or None,
        )
        has_resources = bool(results) or bool(store.list_resources(owner_id))
    except InvalidConfig as exc:
        console.print(err_invalid_argument(str(exc)))
        raise typer.Exit(1) from exc
    except (EmbeddingProviderError, StorageError) as exc:
        console.print(err_workflow_failed("Query", exc.kind, str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return

    if not results:
        if not has_resources:
            console.print(warn_no_embeddings())
        else:
            console.print("[yellow]No results.[/]")
        return

    table = Table(title=f"Results for: {text}")
    table.add_column("#", justify="right")
    table.add_column("Hybrid", justify="right")
    table.add_column("Semantic", justify="right")
    table.add_column("Keyword", justify="right")
    table.add_column("Resource")
    table.add_column("Content")
    for i, r in enumerate(results, start=1):
        preview = r.content if len(r.content) <= _PREVIEW_CHARS else r.content[:_PREVIEW_CHARS] + "…"
        table.add_row(
            str(i),
            f"{r.hybrid_score:.3f}",
            f"{r.semantic_score:.3f}",
            f"{r.keyword_score:.3f}",
            r.resource_name,
            preview,
        )
    console.print(table)
