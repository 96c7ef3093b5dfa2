"""Forward-only migration runner for the sharelens database schema."""

from __future__ import annotations

import logging
import sqlite3

_log = logging.getLogger(__name__)

# Created before any migration so the applied versions can be read.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS resources (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    owner_id        TEXT NOT NULL,
    metadata        TEXT NOT NULL DEFAULT '{}',
    embedding_model TEXT NOT NULL,
    dimensions      INTEGER NOT NULL CHECK (dimensions > 0),
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_resources_owner ON resources(owner_id);

CREATE TABLE IF NOT EXISTS embeddings (
    id              TEXT NOT NULL UNIQUE,
    resource_id     TEXT NOT NULL REFERENCES resources(id),
    content         TEXT NOT NULL CHECK (length(content) > 0),
    vector          BLOB NOT NULL,
    metadata        TEXT NOT NULL DEFAULT '{}',
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_embeddings_resource ON embeddings(resource_id);

CREATE VIRTUAL TABLE IF NOT EXISTS embeddings_fts USING fts5(content, tokenize='porter ascii');

CREATE TABLE IF NOT EXISTS ingestion_records (
    id                  TEXT PRIMARY KEY,
    owner_id            TEXT NOT NULL,
    source              TEXT NOT NULL,
    documents_processed INTEGER NOT NULL DEFAULT 0,
    embeddings_created  INTEGER NOT NULL DEFAULT 0,
    resource_id         TEXT,
    status              TEXT NOT NULL CHECK (status IN ('completed', 'failed')),
    error               TEXT,
    created_at          DATETIME NOT NULL DEFAULT (datetime('now')),
    completed_at        DATETIME
);

CREATE TABLE IF NOT EXISTS scan_records (
    id              TEXT PRIMARY KEY,
    owner_id        TEXT NOT NULL,
    source          TEXT NOT NULL,
    severity        TEXT NOT NULL,
    issues_found    INTEGER NOT NULL DEFAULT 0,
    logs_analyzed   INTEGER NOT NULL DEFAULT 0,
    analysis        TEXT NOT NULL DEFAULT '{}',
    email_sent      INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL CHECK (status IN ('completed', 'failed')),
    error           TEXT,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);
"""

# Append-only (version, sql) pairs. executescript() commits implicitly first.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied migration, 0 for a fresh database."""
    (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return int(version)


def run_migrations(conn: sqlite3.Connection) -> list[int]:
    """Apply pending migrations in ascending order and return their versions.

    Safe to call on a database at any version; already-applied versions are
    skipped.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    applied: list[int] = []
    for version, sql in sorted(MIGRATIONS):
        if version <= current_version(conn):
            continue
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        conn.commit()
        _log.info("Applied schema migration %d", version)
        applied.append(version)
    return applied
