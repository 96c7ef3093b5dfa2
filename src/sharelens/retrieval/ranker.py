"""Hybrid ranking: weighted blend of semantic and keyword relevance.

  hybrid(d) = alpha * semantic(d) + (1 - alpha) * keyword(d)

semantic = 1 - cosine distance between query and record vectors.
keyword  = BM25 relevance of the query terms against the record content (>= 0).

alpha = 1 reproduces pure vector order, alpha = 0 pure keyword order.
Ties keep insertion order, so identical inputs always rank identically.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sharelens.errors import InvalidConfig

DEFAULT_TOP_K = 5
DEFAULT_ALPHA = 0.6


@dataclass
class Candidate:
    """One EmbeddingRecord eligible for ranking, with both channel scores.

    Attributes:
        rowid: Insertion order of the record (tie-breaker).
        semantic_score: ``1 - cosine_distance`` against the query vector.
        keyword_score: BM25 relevance (0 when no query term matches).
    """

    rowid: int
    id: str
    resource_id: str
    content: str
    resource_name: str
    semantic_score: float
    keyword_score: float
    resource_metadata: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RankedResult:
    """A ranked chunk with the blended score and both component scores."""

    id: str
    content: str
    resource_id: str
    resource_name: str
    resource_metadata: dict[str, Any]
    hybrid_score: float
    semantic_score: float
    keyword_score: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "resourceId": self.resource_id,
            "source": self.resource_name,
            "resourceMetadata": self.resource_metadata,
            "hybridScore": self.hybrid_score,
            "semanticScore": self.semantic_score,
            "keywordScore": self.keyword_score,
            "metadata": self.metadata,
        }


def validate_query_params(top_k: int, alpha: float) -> None:
    """Raise InvalidConfig for a non-positive *top_k* or *alpha* outside [0, 1]."""
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
        raise InvalidConfig(f"top_k must be a positive integer, got {top_k!r}")
    if isinstance(alpha, bool) or not isinstance(alpha, (int, float)) or not 0.0 <= alpha <= 1.0:
        raise InvalidConfig(f"alpha must be in [0, 1], got {alpha!r}")


def hybrid_score(semantic: float, keyword: float, alpha: float) -> float:
    return alpha * semantic + (1.0 - alpha) * keyword


def rank(
    candidates: Iterable[Candidate],
    top_k: int = DEFAULT_TOP_K,
    alpha: float = DEFAULT_ALPHA,
) -> list[RankedResult]:
    """Order *candidates* by hybrid score (desc) and keep the best *top_k*.

    Raises:
        InvalidConfig: If *top_k* or *alpha* is out of range.
    """
    validate_query_params(top_k, alpha)

    # Stable sort on insertion order first, then by score.
    ordered = sorted(candidates, key=lambda c: c.rowid)
    scored = [(hybrid_score(c.semantic_score, c.keyword_score, alpha), c) for c in ordered]
    scored.sort(key=lambda pair: pair[0], reverse=True)

    return [
        RankedResult(
            id=c.id,
            content=c.content,
            resource_id=c.resource_id,
            resource_name=c.resource_name,
            resource_metadata=c.resource_metadata,
            hybrid_score=score,
            semantic_score=c.semantic_score,
            keyword_score=c.keyword_score,
            metadata=c.metadata,
        )
        for score, c in scored[:top_k]
    ]
