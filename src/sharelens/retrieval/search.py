"""Query entry point: embed the query, then rank the owner's chunks."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from sharelens.errors import InvalidConfig
from sharelens.ingest.text import clean_text
from sharelens.retrieval.ranker import (
    DEFAULT_ALPHA,
    DEFAULT_TOP_K,
    RankedResult,
    validate_query_params,
)

if TYPE_CHECKING:
    from sharelens.db.store import ResourceStore
    from sharelens.ingest.embeddings import EmbeddingProvider

_log = logging.getLogger(__name__)


def search(
    query: str,
    owner_id: str,
    provider: EmbeddingProvider,
    store: ResourceStore,
    top_k: int = DEFAULT_TOP_K,
    alpha: float = DEFAULT_ALPHA,
    resource_ids: Sequence[str] | None = None,
) -> list[RankedResult]:
    """Hybrid search over *owner_id*'s knowledge base.

    The query is cleaned (``clean_text``) before it is embedded; the raw
    query text feeds the keyword channel. Parameters are validated before
    the embedding call.

    Raises:
        InvalidConfig: Empty query, bad *top_k* or *alpha*.
        EmbeddingProviderError: Query embedding failed.
        StorageError: The store query failed.
    """
    if not query or not query.strip():
        raise InvalidConfig("query must be a non-empty string")
    validate_query_params(top_k, alpha)

    if resource_ids is not None and len(resource_ids) == 0:
        return []

    embed_input = clean_text(query) or query.strip()
    query_vector = provider.embed_one(embed_input)

    results = store.query_hybrid(
        owner_id,
        query,
        query_vector,
        top_k=top_k,
        alpha=alpha,
        resource_ids=resource_ids,
    )
    _log.info("Hybrid search found %d chunks for %r (alpha=%.2f)", len(results), query, alpha)
    return results
