"""Embedding provider adapter over ``litellm.embedding()``.

One request per batch, one vector per input text, input order preserved.
Any upstream failure surfaces as EmbeddingProviderError; a partial batch is
never returned.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import litellm

from sharelens.errors import EmbeddingProviderError

_log = logging.getLogger(__name__)

litellm.suppress_debug_info = True


@dataclass(frozen=True)
class EmbeddingProviderConfig:
    """Explicit embedding provider selection.

    Attributes:
        model: LiteLLM model string, e.g. ``ollama/nomic-embed-text`` or
            ``hosted_vllm/BAAI/bge-small-en-v1.5``.
        api_base: Endpoint override (Ollama / vLLM servers).
        dimensions: Expected vector size; ``None`` accepts whatever the model
            returns, as long as it is uniform within a batch.
        num_retries: LiteLLM transport retries for a single request.
    """

    model: str = "ollama/nomic-embed-text"
    api_base: str | None = None
    dimensions: int | None = None
    num_retries: int = 2


class EmbeddingProvider(Protocol):
    """Anything that turns texts into fixed-length vectors."""

    @property
    def model(self) -> str: ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...

    def embed_one(self, text: str) -> list[float]: ...


class LiteLLMEmbeddingProvider:
    """EmbeddingProvider backed by litellm.

    Args:
        config: Provider selection; passed in explicitly, never read from env.
    """

    def __init__(self, config: EmbeddingProviderConfig | None = None) -> None:
        self._config = config or EmbeddingProviderConfig()

    @property
    def model(self) -> str:
        return self._config.model

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in one upstream call.

        Raises:
            EmbeddingProviderError: Upstream error, wrong vector count, or
                inconsistent dimensions.
        """
        if not texts:
            return []

        kwargs = {"model": self._config.model, "input": list(texts), "num_retries": self._config.num_retries}
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        try:
            response = litellm.embedding(**kwargs)
        except Exception as exc:
            raise EmbeddingProviderError(
                f"Embedding generation failed ({self._config.model}): {exc}"
            ) from exc

        vectors = _extract_vectors(response.data)
        self._check_batch(vectors, expected=len(texts))
        _log.debug("Embedded %d texts with %s", len(texts), self._config.model)
        return vectors

    def embed_one(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def _check_batch(self, vectors: list[list[float]], expected: int) -> None:
        if len(vectors) != expected:
            raise EmbeddingProviderError(
                f"Embedding model returned {len(vectors)} vectors for {expected} inputs"
            )
        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            raise EmbeddingProviderError(
                f"Embedding model returned vectors of mixed dimensions: {sorted(dims)}"
            )
        (dim,) = dims
        if dim == 0:
            raise EmbeddingProviderError("Embedding model returned empty vectors")
        zero = [i for i, v in enumerate(vectors) if not any(v)]
        if zero:
            raise EmbeddingProviderError(
                f"Embedding model returned zero vectors for inputs {zero}"
            )
        if self._config.dimensions is not None and dim != self._config.dimensions:
            raise EmbeddingProviderError(
                f"Expected {self._config.dimensions}-dimensional vectors, got {dim}"
            )


def _extract_vectors(data: Sequence) -> list[list[float]]:
    """Pull vectors out of the response items, ordered by their ``index``."""
    items = [item if isinstance(item, dict) else dict(item) for item in data]
    if items and all("index" in item for item in items):
        items.sort(key=lambda item: item["index"])
    try:
        return [list(map(float, item["embedding"])) for item in items]
    except (KeyError, TypeError, ValueError) as exc:
        raise EmbeddingProviderError(f"Malformed embedding response: {exc}") from exc
