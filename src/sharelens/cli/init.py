"""sharelens init: create the database and a starter project config.

Creates:
  .sharelens.db            : empty store with schema
  sharelens.yaml           : project config (share, chunking, retrieval, security)
  ~/.sharelens/config.yaml : global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from sharelens.config import SharelensConfig, ensure_global_config, write_project_config
from sharelens.db.schema import open_database

console = Console()


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
    share_root: Annotated[
        str | None,
        typer.Option("--share-root", help="Mount point of the file share."),
    ] = None,
    global_config: Annotated[
        bool,
        typer.Option("--global-config/--no-global-config", help="Create ~/.sharelens/config.yaml."),
    ] = True,
) -> None:
    """Initialize a sharelens project in PROJECT_DIR."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / ".sharelens.db"
    existed = db_path.exists()
    conn = open_database(db_path)
    conn.close()
    if existed:
        console.print(f"  [dim]↷ {db_path.name} already exists (schema up to date)[/]")
    else:
        console.print(f"  [green]✓[/] {db_path.name}")

    cfg_path = project_dir / "sharelens.yaml"
    if cfg_path.exists():
        console.print(f"  [dim]↷ {cfg_path.name} already exists[/]")
    else:
        cfg = SharelensConfig()
        if share_root:
            cfg.share.root = share_root
        write_project_config(project_dir, cfg)
        console.print(f"  [green]✓[/] {cfg_path.name}")

    if global_config:
        path = ensure_global_config()
        console.print(f"  [green]✓[/] {path} (global config)")

    console.print("\nNext steps:")
    console.print("  1. sharelens ingest                 (embed documents from the share)")
    console.print("  2. sharelens query \"your question\"  (hybrid search)")
    console.print("  3. sharelens scan                   (security log analysis)")
