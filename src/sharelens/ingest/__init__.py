"""Ingest pipeline pieces: word chunker, text cleaning, embedding provider."""

from sharelens.ingest.chunker import TextChunk, WordChunker, chunk_text
from sharelens.ingest.embeddings import (
    EmbeddingProvider,
    EmbeddingProviderConfig,
    LiteLLMEmbeddingProvider,
)
from sharelens.ingest.text import clean_text

__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderConfig",
    "LiteLLMEmbeddingProvider",
    "TextChunk",
    "WordChunker",
    "chunk_text",
    "clean_text",
]
