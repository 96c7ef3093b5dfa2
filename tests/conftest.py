"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

import pytest

from sharelens.db.connection import Database
from sharelens.db.schema import initialize


class FakeEmbeddingProvider:
    """Deterministic embedding provider for tests.

    Vectors come from *table* when the text is a key there, else from a hash
    of the text. Every vector is non-zero so cosine distance is defined.
    """

    def __init__(
        self,
        dimensions: int = 3,
        table: dict[str, list[float]] | None = None,
        model: str = "fake/embed",
    ) -> None:
        self.dimensions = dimensions
        self.table = table or {}
        self._model = model
        self.calls: list[list[str]] = []

    @property
    def model(self) -> str:
        return self._model

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_one(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def _vector(self, text: str) -> list[float]:
        if text in self.table:
            return list(self.table[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(b % 50 + 1) / 50.0 for b in digest[: self.dimensions]]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".sharelens.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()
