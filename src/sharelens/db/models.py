"""Domain models for the sharelens database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Resource:
    id: str
    name: str
    owner_id: str
    embedding_model: str
    dimensions: int
    metadata: str = field(default_factory=lambda: "{}")
    created_at: str | None = None

    @property
    def metadata_dict(self) -> dict[str, Any]:
        return json.loads(self.metadata)


@dataclass
class NewEmbedding:
    """An embedding row to insert: chunk text, its vector, and chunk metadata."""

    content: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class EmbeddingRecord:
    id: str
    resource_id: str
    content: str
    vector: list[float]
    metadata: str = field(default_factory=lambda: "{}")
    created_at: str | None = None
    rowid: int | None = None  # insertion order; ranking tie-breaker

    @property
    def metadata_dict(self) -> dict[str, Any]:
        return json.loads(self.metadata)


@dataclass
class IngestionRecord:
    id: str
    owner_id: str
    source: str
    status: str  # completed | failed
    documents_processed: int = 0
    embeddings_created: int = 0
    resource_id: str | None = None
    error: str | None = None
    created_at: str | None = None
    completed_at: str | None = None


@dataclass
class ScanRecord:
    id: str
    owner_id: str
    source: str
    severity: str
    status: str  # completed | failed
    issues_found: int = 0
    logs_analyzed: int = 0
    analysis: str = field(default_factory=lambda: "{}")
    email_sent: bool = False
    error: str | None = None
    created_at: str | None = None

    @property
    def analysis_dict(self) -> dict[str, Any]:
        return json.loads(self.analysis)
