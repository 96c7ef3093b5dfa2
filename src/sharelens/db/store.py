"""Resource store: resources, their embedding rows, and hybrid-ranked query.

One Resource owns many embedding rows. Each embedding row is mirrored into
the ``embeddings_fts`` FTS5 index under the same rowid so both relevance
channels can be joined back to the row in a single query.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import uuid
from collections.abc import Callable, Sequence
from typing import Any

from sharelens.db.models import EmbeddingRecord, NewEmbedding, Resource
from sharelens.db.vectors import from_blob, is_valid_vector, is_zero_vector, to_blob
from sharelens.errors import NotFound, StorageError
from sharelens.retrieval.ranker import (
    DEFAULT_ALPHA,
    DEFAULT_TOP_K,
    Candidate,
    RankedResult,
    rank,
    validate_query_params,
)

_log = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

_TERM_RE = re.compile(r"\w+")

# vec_distance_cosine() is NULL against a zero vector; such rows score 0.
_CANDIDATES_SQL = """
SELECT e.rowid AS rowid, e.id, e.resource_id, e.content, e.metadata,
       r.name AS resource_name, r.metadata AS resource_metadata,
       COALESCE(1.0 - vec_distance_cosine(e.vector, :query_vector), 0.0) AS semantic_score,
       {keyword_expr} AS keyword_score
FROM embeddings e
JOIN resources r ON r.id = e.resource_id
{keyword_join}
WHERE r.owner_id = :owner_id AND r.dimensions = :dimensions
{allow_list}
ORDER BY e.rowid
"""

# bm25() is negative (more negative = better); negate it so higher = better.
_KEYWORD_JOIN = """
LEFT JOIN (
    SELECT rowid, bm25(embeddings_fts) AS score
    FROM embeddings_fts WHERE embeddings_fts MATCH :match
) k ON k.rowid = e.rowid
"""


def build_match_query(text: str) -> str:
    """Turn free text into an FTS5 MATCH expression of OR-ed quoted terms.

    FTS5 treats punctuation as syntax, so only word characters survive.
    Returns an empty string when *text* has no terms.
    """
    seen: dict[str, None] = {}
    for term in _TERM_RE.findall(text.lower()):
        seen.setdefault(term, None)
    return " OR ".join(f'"{term}"' for term in seen)


class ResourceStore:
    """Data access for resources and embeddings.

    Wraps an open sqlite3.Connection (sqlite-vec loaded, schema initialised).
    The connection is owned by the caller and must be closed after use.

    Args:
        conn: Open connection from ``sharelens.db.schema.open_database``.
        batch_size: Maximum rows per insert statement.
    """

    def __init__(self, conn: sqlite3.Connection, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._conn = conn
        self.batch_size = batch_size

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def create_resource(
        self,
        name: str,
        owner_id: str,
        metadata: dict[str, Any],
        embedding_model: str,
        dimensions: int,
    ) -> str:
        """Insert a new resource and return its id.

        Raises:
            StorageError: If the insert fails (nothing is written).
        """
        resource_id = str(uuid.uuid4())
        try:
            self._conn.execute(
                """
                INSERT INTO resources (id, name, owner_id, metadata, embedding_model, dimensions)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (resource_id, name, owner_id, json.dumps(metadata), embedding_model, dimensions),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Failed to create resource '{name}': {exc}") from exc
        _log.info("Created resource %s (%s)", resource_id, name)
        return resource_id

    def get_resource(self, resource_id: str, owner_id: str) -> Resource:
        """Return the resource if it exists and belongs to *owner_id*.

        Raises:
            NotFound: If absent or owned by someone else.
        """
        row = self._conn.execute(
            f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE id = ? AND owner_id = ?",
            (resource_id, owner_id),
        ).fetchone()
        if row is None:
            raise NotFound(f"Resource '{resource_id}' not found")
        return _row_to_resource(row)

    def list_resources(self, owner_id: str) -> list[Resource]:
        """Return all resources of *owner_id*, newest first."""
        rows = self._conn.execute(
            f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE owner_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        ).fetchall()
        return [_row_to_resource(r) for r in rows]

    def delete_resource(self, resource_id: str, owner_id: str) -> int:
        """Delete a resource and all its embeddings. Returns embeddings deleted.

        Two-phase delete (FTS rows + embeddings, then the resource) in a
        single transaction.

        Raises:
            NotFound: If absent or owned by someone else.
            StorageError: If the delete fails (nothing is removed).
        """
        owned = self._conn.execute(
            "SELECT 1 FROM resources WHERE id = ? AND owner_id = ?",
            (resource_id, owner_id),
        ).fetchone()
        if owned is None:
            raise NotFound(f"Resource '{resource_id}' not found")

        try:
            self._conn.execute(
                "DELETE FROM embeddings_fts WHERE rowid IN "
                "(SELECT rowid FROM embeddings WHERE resource_id = ?)",
                (resource_id,),
            )
            cur = self._conn.execute(
                "DELETE FROM embeddings WHERE resource_id = ?", (resource_id,)
            )
            deleted = cur.rowcount
            self._conn.execute("DELETE FROM resources WHERE id = ?", (resource_id,))
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Failed to delete resource '{resource_id}': {exc}") from exc

        _log.info("Deleted resource %s (%d embeddings)", resource_id, deleted)
        return deleted

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def insert_embeddings(
        self,
        resource_id: str,
        records: Sequence[NewEmbedding],
        before_commit: Callable[[], None] | None = None,
    ) -> int:
        """Insert *records* for *resource_id* in batches, all-or-nothing.

        Rows are written ``batch_size`` at a time inside one transaction.
        If any batch fails, every batch is rolled back. *before_commit* runs
        after the last batch; if it raises, the transaction is rolled back
        and its exception propagates unchanged.

        Returns:
            Number of rows inserted (``len(records)``).

        Raises:
            StorageError: Unknown resource, invalid record, or write failure.
                ``committed`` is always 0.
        """
        row = self._conn.execute(
            "SELECT dimensions FROM resources WHERE id = ?", (resource_id,)
        ).fetchone()
        if row is None:
            raise StorageError(f"Resource '{resource_id}' does not exist")
        dimensions = row["dimensions"]

        for i, rec in enumerate(records):
            if not rec.content.strip():
                raise StorageError(f"Record {i} has empty content")
            if not is_valid_vector(rec.vector, dimensions):
                raise StorageError(
                    f"Record {i} vector has {len(rec.vector)} dimensions, "
                    f"resource expects {dimensions}"
                )
            if is_zero_vector(rec.vector):
                raise StorageError(f"Record {i} has a zero vector (cosine undefined)")

        inserted = 0
        try:
            for start in range(0, len(records), self.batch_size):
                batch = records[start : start + self.batch_size]
                ids = [str(uuid.uuid4()) for _ in batch]
                self._conn.executemany(
                    """
                    INSERT INTO embeddings (id, resource_id, content, vector, metadata)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (eid, resource_id, rec.content, to_blob(rec.vector), json.dumps(rec.metadata))
                        for eid, rec in zip(ids, batch)
                    ],
                )
                placeholders = ",".join("?" * len(ids))
                self._conn.execute(
                    "INSERT INTO embeddings_fts(rowid, content) "
                    f"SELECT rowid, content FROM embeddings WHERE id IN ({placeholders}) "
                    "ORDER BY rowid",
                    ids,
                )
                inserted += len(batch)
                _log.debug("Inserted %d/%d embeddings", inserted, len(records))
            if before_commit is not None:
                before_commit()
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(
                f"Embedding insert failed after {inserted}/{len(records)} rows "
                f"(rolled back): {exc}",
                committed=0,
            ) from exc
        except Exception:
            self._conn.rollback()
            raise

        return inserted

    def list_embeddings(self, resource_id: str) -> list[EmbeddingRecord]:
        """Return the embedding rows of *resource_id* in insertion order."""
        rows = self._conn.execute(
            """
            SELECT rowid, id, resource_id, content, vector, metadata, created_at
            FROM embeddings WHERE resource_id = ? ORDER BY rowid
            """,
            (resource_id,),
        ).fetchall()
        return [_row_to_embedding(r) for r in rows]

    def count_embeddings(self, resource_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM embeddings WHERE resource_id = ?", (resource_id,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Hybrid query
    # ------------------------------------------------------------------

    def query_candidates(
        self,
        owner_id: str,
        query_text: str,
        query_vector: Sequence[float],
        resource_ids: Sequence[str] | None = None,
    ) -> list[Candidate]:
        """Score every eligible record on both channels, in insertion order.

        Eligible: owned (through its resource) by *owner_id*, inside the
        *resource_ids* allow-list when given, and stored with the same
        dimensionality as *query_vector*.
        """
        if resource_ids is not None and len(resource_ids) == 0:
            return []

        params: dict[str, Any] = {
            "query_vector": to_blob(query_vector),
            "owner_id": owner_id,
            "dimensions": len(query_vector),
        }

        match = build_match_query(query_text)
        if match:
            keyword_expr, keyword_join = "COALESCE(-k.score, 0.0)", _KEYWORD_JOIN
            params["match"] = match
        else:
            keyword_expr, keyword_join = "0.0", ""

        allow_list = ""
        if resource_ids is not None:
            names = []
            for i, rid in enumerate(resource_ids):
                params[f"rid{i}"] = rid
                names.append(f":rid{i}")
            allow_list = f"AND r.id IN ({','.join(names)})"

        sql = _CANDIDATES_SQL.format(
            keyword_expr=keyword_expr, keyword_join=keyword_join, allow_list=allow_list
        )
        try:
            rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Hybrid query failed: {exc}") from exc

        return [
            Candidate(
                rowid=r["rowid"],
                id=r["id"],
                resource_id=r["resource_id"],
                content=r["content"],
                resource_name=r["resource_name"],
                semantic_score=float(r["semantic_score"]),
                keyword_score=float(r["keyword_score"]),
                resource_metadata=json.loads(r["resource_metadata"]),
                metadata=json.loads(r["metadata"]),
            )
            for r in rows
        ]

    def query_hybrid(
        self,
        owner_id: str,
        query_text: str,
        query_vector: Sequence[float],
        top_k: int = DEFAULT_TOP_K,
        alpha: float = DEFAULT_ALPHA,
        resource_ids: Sequence[str] | None = None,
    ) -> list[RankedResult]:
        """Return the *top_k* records of *owner_id* ranked by hybrid score.

        Raises:
            InvalidConfig: Bad *top_k* / *alpha* (checked before touching the DB).
            StorageError: The query itself failed.
        """
        validate_query_params(top_k, alpha)
        candidates = self.query_candidates(owner_id, query_text, query_vector, resource_ids)
        results = rank(candidates, top_k=top_k, alpha=alpha)
        _log.debug(
            "Hybrid query for %s: %d candidates, %d results (alpha=%.2f)",
            owner_id, len(candidates), len(results), alpha,
        )
        return results


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

_RESOURCE_COLUMNS = "id, name, owner_id, metadata, embedding_model, dimensions, created_at"


def _row_to_resource(row: sqlite3.Row) -> Resource:
    return Resource(
        id=row["id"],
        name=row["name"],
        owner_id=row["owner_id"],
        metadata=row["metadata"],
        embedding_model=row["embedding_model"],
        dimensions=row["dimensions"],
        created_at=row["created_at"],
    )


def _row_to_embedding(row: sqlite3.Row) -> EmbeddingRecord:
    return EmbeddingRecord(
        rowid=row["rowid"],
        id=row["id"],
        resource_id=row["resource_id"],
        content=row["content"],
        vector=from_blob(row["vector"]),
        metadata=row["metadata"],
        created_at=row["created_at"],
    )
