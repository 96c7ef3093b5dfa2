"""Audit store: one ingestion/scan record per finished workflow run."""

from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any

from sharelens.db.models import IngestionRecord, ScanRecord
from sharelens.errors import StorageError


class AuditStore:
    """Persist and list workflow outcome records.

    Args:
        conn: Open connection with the schema initialised. Owned by the caller.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Ingestion records
    # ------------------------------------------------------------------

    def add_ingestion_record(
        self,
        owner_id: str,
        source: str,
        status: str,
        documents_processed: int = 0,
        embeddings_created: int = 0,
        resource_id: str | None = None,
        error: str | None = None,
    ) -> str:
        """Insert an ingestion record and return its id."""
        record_id = str(uuid.uuid4())
        self._insert(
            """
            INSERT INTO ingestion_records
                (id, owner_id, source, documents_processed, embeddings_created,
                 resource_id, status, error, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, datetime('now'))
            """,
            (
                record_id, owner_id, source, documents_processed, embeddings_created,
                resource_id, status, error,
            ),
        )
        return record_id

    def list_ingestion_records(self, owner_id: str, limit: int = 20) -> list[IngestionRecord]:
        """Return *owner_id*'s ingestion records, newest first."""
        rows = self._conn.execute(
            """
            SELECT id, owner_id, source, documents_processed, embeddings_created,
                   resource_id, status, error, created_at, completed_at
            FROM ingestion_records WHERE owner_id = ?
            ORDER BY created_at DESC, rowid DESC LIMIT ?
            """,
            (owner_id, limit),
        ).fetchall()
        return [
            IngestionRecord(
                id=r["id"],
                owner_id=r["owner_id"],
                source=r["source"],
                status=r["status"],
                documents_processed=r["documents_processed"],
                embeddings_created=r["embeddings_created"],
                resource_id=r["resource_id"],
                error=r["error"],
                created_at=r["created_at"],
                completed_at=r["completed_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Scan records
    # ------------------------------------------------------------------

    def add_scan_record(
        self,
        owner_id: str,
        source: str,
        status: str,
        severity: str,
        issues_found: int = 0,
        logs_analyzed: int = 0,
        analysis: dict[str, Any] | None = None,
        email_sent: bool = False,
        error: str | None = None,
    ) -> str:
        """Insert a security scan record and return its id."""
        record_id = str(uuid.uuid4())
        self._insert(
            """
            INSERT INTO scan_records
                (id, owner_id, source, severity, issues_found, logs_analyzed,
                 analysis, email_sent, status, error)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id, owner_id, source, severity, issues_found, logs_analyzed,
                json.dumps(analysis or {}), int(email_sent), status, error,
            ),
        )
        return record_id

    def list_scan_records(self, owner_id: str, limit: int = 20) -> list[ScanRecord]:
        """Return *owner_id*'s scan records, newest first."""
        rows = self._conn.execute(
            """
            SELECT id, owner_id, source, severity, issues_found, logs_analyzed,
                   analysis, email_sent, status, error, created_at
            FROM scan_records WHERE owner_id = ?
            ORDER BY created_at DESC, rowid DESC LIMIT ?
            """,
            (owner_id, limit),
        ).fetchall()
        return [
            ScanRecord(
                id=r["id"],
                owner_id=r["owner_id"],
                source=r["source"],
                severity=r["severity"],
                status=r["status"],
                issues_found=r["issues_found"],
                logs_analyzed=r["logs_analyzed"],
                analysis=r["analysis"],
                email_sent=bool(r["email_sent"]),
                error=r["error"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def _insert(self, sql: str, params: tuple) -> None:
        try:
            self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Failed to write audit record: {exc}") from exc
