"""sharelens rich error messages.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from sharelens.cli.errors import err_no_db
    console.print(err_no_db(str(db)))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str = ".sharelens.db") -> str:
    """No database found at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  sharelens init"
    )


def err_config(message: str) -> str:
    """Config file failed validation."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix the value in sharelens.yaml or ~/.sharelens/config.yaml."
    )


def err_invalid_argument(message: str) -> str:
    """A CLI value was rejected before any work started."""
    return f"[red]Error:[/] {message}"


def err_resource_not_found(resource_id: str) -> str:
    """Resource absent or owned by someone else."""
    return (
        f"[yellow]Resource not found:[/] '{resource_id}'.\n"
        "  Run:  sharelens resources  to see your resources."
    )


def err_share_not_found(path: str) -> str:
    """Share directory missing (share not mounted?)."""
    return (
        f"[red]Error:[/] Directory not found on the share: '{path}'\n"
        "  Check that the share is mounted and share.root in sharelens.yaml points at it."
    )


def err_workflow_failed(workflow: str, kind: str | None, message: str | None) -> str:
    """A workflow run ended in the failed state."""
    hint = {
        "EmbeddingProviderError": "Check the embedding model is reachable (embedding.api_base).",
        "Timeout": "Raise workflows.*_timeout in sharelens.yaml or ingest a smaller directory.",
        "StorageError": "Check the database file is writable.",
    }.get(kind or "", "Re-run with --verbose for details.")
    return (
        f"[red]✗ {workflow} failed[/] [{kind}] {message}\n"
        f"  {hint}"
    )


def warn_no_embeddings() -> str:
    """Query run against an empty knowledge base."""
    return (
        "[yellow]No results.[/] You have no ingested resources yet.\n"
        "  Run:  sharelens ingest"
    )
