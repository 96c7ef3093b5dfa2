"""Helpers shared by the CLI commands."""

from __future__ import annotations

import getpass
import os
import sqlite3
import warnings
from pathlib import Path

import typer
from rich.console import Console

from sharelens.cli.errors import err_config, err_no_db
from sharelens.config import ConfigError, SharelensConfig, load_config
from sharelens.db.schema import open_database

DEFAULT_DB = Path(".sharelens.db")


def resolve_owner(owner: str | None) -> str:
    """Explicit --owner, else $SHARELENS_OWNER, else the login name."""
    return owner or os.environ.get("SHARELENS_OWNER") or getpass.getuser()


def load_config_or_exit(console: Console) -> SharelensConfig:
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    for w in caught:
        console.print(f"[yellow]⚠[/]  {w.message}")
    return cfg


def open_db_or_exit(db_path: Path, console: Console) -> sqlite3.Connection:
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return open_database(db_path)
