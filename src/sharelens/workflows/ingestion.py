"""Ingestion workflow: file share -> chunks -> embeddings -> resource store.

Steps, in order:
  collect_documents  list + read matching files; unreadable files are skipped
  chunk_and_embed    word-window chunking, one embedding call for all chunks
  store_embeddings   one Resource per run, embeddings inserted in batches
  record_outcome     completed audit record

A failure anywhere writes a ``failed`` audit record from the runner's
failure path instead. Nothing is stored unless embedding succeeded, and a
run that produced zero chunks stores no Resource at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sharelens.collaborators.filesystem import FileShare
from sharelens.db.audit import AuditStore
from sharelens.db.models import NewEmbedding
from sharelens.db.store import ResourceStore
from sharelens.errors import PartialReadError, StorageError, WorkflowTimeout
from sharelens.ingest.chunker import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, WordChunker
from sharelens.ingest.embeddings import EmbeddingProvider
from sharelens.workflows.runner import Step, StepContext, Workflow, WorkflowRun, WorkflowRunner

_log = logging.getLogger(__name__)

WORKFLOW_ID = "rag-ingest"


@dataclass(frozen=True)
class IngestionRequest:
    owner_id: str
    directory: str = "documents"
    pattern: str = "*.txt"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    overlap: int = DEFAULT_OVERLAP


@dataclass(frozen=True)
class Document:
    name: str
    content: str
    size: int
    modified: str


@dataclass
class CollectedDocuments:
    documents: list[Document] = field(default_factory=list)
    skipped: list[PartialReadError] = field(default_factory=list)


@dataclass(frozen=True)
class EmbeddedChunk:
    document: str
    content: str
    metadata: dict[str, Any]
    vector: list[float]


@dataclass
class IngestionResult:
    success: bool
    run: WorkflowRun
    source: str
    resource_id: str | None = None
    documents_processed: int = 0
    embeddings_created: int = 0
    skipped: list[PartialReadError] = field(default_factory=list)
    error_kind: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "runId": self.run.run_id,
            "source": self.source,
            "documentsProcessed": self.documents_processed,
            "embeddingsCreated": self.embeddings_created,
        }
        if self.resource_id:
            data["resourceId"] = self.resource_id
        if self.skipped:
            data["skipped"] = [s.path for s in self.skipped]
        if not self.success:
            data["errorKind"] = self.error_kind
            data["error"] = self.error
        return data


class IngestionWorkflow:
    """Compose chunker, embedding provider and resource store in a WorkflowRunner.

    Args:
        share: File-share collaborator to read documents from.
        provider: Embedding provider (explicitly configured).
        store: Resource store receiving the embeddings.
        audit: Audit store receiving the outcome record.
        runner: Runner to execute with (its timeout is the run budget).
    """

    def __init__(
        self,
        share: FileShare,
        provider: EmbeddingProvider,
        store: ResourceStore,
        audit: AuditStore,
        runner: WorkflowRunner | None = None,
    ) -> None:
        self._share = share
        self._provider = provider
        self._store = store
        self._audit = audit
        self._runner = runner or WorkflowRunner()

    def run(self, request: IngestionRequest) -> IngestionResult:
        """Ingest *request.directory* for *request.owner_id*.

        Raises:
            InvalidConfig: Bad chunk size / overlap (before any I/O).
        """
        chunker = WordChunker(chunk_size=request.chunk_size, overlap=request.overlap)
        source = self._describe(request.directory)

        workflow = Workflow(
            WORKFLOW_ID,
            [
                Step("collect_documents", self._collect_documents),
                Step("chunk_and_embed", lambda ctx: self._chunk_and_embed(ctx, chunker)),
                Step("store_embeddings", self._store_embeddings),
                Step("record_outcome", lambda ctx: self._record_outcome(ctx, source)),
            ],
        )

        def _record_failure(run: WorkflowRun, exc: BaseException) -> None:
            self._audit.add_ingestion_record(
                owner_id=request.owner_id,
                source=source,
                status="failed",
                error=f"{run.error.kind}: {run.error.message}",
            )

        run = self._runner.run(workflow, trigger=request, on_failure=_record_failure)

        if not run.succeeded:
            return IngestionResult(
                success=False,
                run=run,
                source=source,
                error_kind=run.error.kind,
                error=run.error.message,
            )

        collected: CollectedDocuments = run.output_of("collect_documents")
        return IngestionResult(
            success=True,
            run=run,
            source=source,
            resource_id=run.output_of("store_embeddings"),
            documents_processed=len(collected.documents),
            embeddings_created=len(run.output_of("chunk_and_embed")),
            skipped=collected.skipped,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _collect_documents(self, ctx: StepContext) -> CollectedDocuments:
        request: IngestionRequest = ctx.trigger
        _log.info("Collecting documents from %s matching %s", request.directory, request.pattern)

        files = self._share.list_files(request.directory, request.pattern)
        collected = CollectedDocuments()
        for info in files:
            if info.is_directory or info.size <= 0:
                continue
            path = f"{request.directory}/{info.name}"
            try:
                content = self._share.read_file(path)
            except (OSError, UnicodeError, ValueError) as exc:
                _log.warning("Skipping %s: %s", path, exc)
                collected.skipped.append(PartialReadError(path, str(exc)))
                continue
            collected.documents.append(
                Document(name=info.name, content=content, size=info.size, modified=info.modified)
            )

        _log.info(
            "Read %d documents (%d skipped)", len(collected.documents), len(collected.skipped)
        )
        return collected

    def _chunk_and_embed(self, ctx: StepContext, chunker: WordChunker) -> list[EmbeddedChunk]:
        collected: CollectedDocuments = ctx.output_of("collect_documents")

        pending: list[tuple[str, str, dict[str, Any]]] = []
        for doc in collected.documents:
            for chunk in chunker.chunk(doc.content):
                pending.append(
                    (
                        doc.name,
                        chunk.content,
                        {"source": doc.name, "chunkIndex": chunk.index, "modified": doc.modified},
                    )
                )
        _log.info("Created %d chunks from %d documents", len(pending), len(collected.documents))
        if not pending:
            return []

        vectors = self._provider.embed_batch([content for _, content, _ in pending])
        return [
            EmbeddedChunk(document=name, content=content, metadata=meta, vector=vector)
            for (name, content, meta), vector in zip(pending, vectors)
        ]

    def _store_embeddings(self, ctx: StepContext) -> str | None:
        request: IngestionRequest = ctx.trigger
        chunks: list[EmbeddedChunk] = ctx.output_of("chunk_and_embed")
        if not chunks:
            _log.info("Nothing to store")
            return None

        collected: CollectedDocuments = ctx.output_of("collect_documents")
        ctx.raise_if_cancelled("creating the resource")
        resource_id = self._store.create_resource(
            name=f"{request.directory} - {datetime.now(timezone.utc).isoformat()}",
            owner_id=request.owner_id,
            metadata={
                "documentCount": len(collected.documents),
                "directory": request.directory,
                "filePattern": request.pattern,
            },
            embedding_model=self._provider.model,
            dimensions=len(chunks[0].vector),
        )
        records = [NewEmbedding(content=c.content, vector=c.vector, metadata=c.metadata) for c in chunks]
        try:
            self._store.insert_embeddings(
                resource_id,
                records,
                before_commit=lambda: ctx.raise_if_cancelled("committing embeddings"),
            )
        except (StorageError, WorkflowTimeout):
            # A resource must never be left without its embeddings.
            self._store.delete_resource(resource_id, request.owner_id)
            raise
        _log.info("Stored %d embeddings in resource %s", len(records), resource_id)
        return resource_id

    def _record_outcome(self, ctx: StepContext, source: str) -> str:
        request: IngestionRequest = ctx.trigger
        collected: CollectedDocuments = ctx.output_of("collect_documents")
        ctx.raise_if_cancelled("recording the outcome")
        return self._audit.add_ingestion_record(
            owner_id=request.owner_id,
            source=source,
            status="completed",
            documents_processed=len(collected.documents),
            embeddings_created=len(ctx.output_of("chunk_and_embed")),
            resource_id=ctx.output_of("store_embeddings"),
        )

    def _describe(self, directory: str) -> str:
        describe = getattr(self._share, "describe", None)
        return describe(directory) if describe else directory
