"""Fixtures for CLI tests: isolated cwd, global config path and log sink."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest
from rich.console import Console
from rich.logging import RichHandler

from sharelens.cli import history, ingest, init, query, remove, resources, scan
from sharelens.db.schema import open_database


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every CLI test from tmp_path with no real config or log output."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        "sharelens.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / ".sharelens" / "config.yaml"
    )
    for var in (
        "SHARELENS_OWNER",
        "SHARELENS_EMBEDDING_MODEL",
        "SHARELENS_REASONING_MODEL",
        "SHARELENS_SHARE_ROOT",
        "SHARELENS_ALERT_RECIPIENTS",
    ):
        monkeypatch.delenv(var, raising=False)

    # Wide consoles so table cells are not folded.
    for module in (history, ingest, init, query, remove, resources, scan):
        monkeypatch.setattr(module.console, "width", 200)

    # configure_logging() keeps an existing RichHandler, so logs land here.
    logger = logging.getLogger("sharelens")
    saved = list(logger.handlers)
    logger.handlers[:] = [RichHandler(console=Console(file=io.StringIO()))]
    yield tmp_path
    logger.handlers[:] = saved


@pytest.fixture
def db_path(cli_env: Path) -> Path:
    path = cli_env / ".sharelens.db"
    open_database(path).close()
    return path
