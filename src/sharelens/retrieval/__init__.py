"""Hybrid retrieval: ranking and the query entry point."""

from sharelens.retrieval.ranker import Candidate, RankedResult, hybrid_score, rank
from sharelens.retrieval.search import search

__all__ = ["Candidate", "RankedResult", "hybrid_score", "rank", "search"]
