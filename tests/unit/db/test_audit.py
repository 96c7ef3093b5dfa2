"""Tests for AuditStore ingestion and scan records."""

from __future__ import annotations

import pytest

from sharelens.db.audit import AuditStore
from sharelens.errors import StorageError


@pytest.fixture
def audit(tmp_db):
    return AuditStore(tmp_db)


def test_add_and_list_ingestion_record(audit):
    audit.add_ingestion_record(
        owner_id="alice",
        source="/mnt/share/documents",
        status="completed",
        documents_processed=2,
        embeddings_created=3,
        resource_id="r1",
    )
    [rec] = audit.list_ingestion_records("alice")
    assert rec.status == "completed"
    assert rec.documents_processed == 2
    assert rec.embeddings_created == 3
    assert rec.resource_id == "r1"
    assert rec.error is None
    assert rec.completed_at is not None


def test_failed_ingestion_record_keeps_error(audit):
    audit.add_ingestion_record(
        owner_id="alice", source="docs", status="failed", error="EmbeddingProviderError: down"
    )
    [rec] = audit.list_ingestion_records("alice")
    assert rec.status == "failed"
    assert rec.documents_processed == 0
    assert rec.embeddings_created == 0
    assert rec.error == "EmbeddingProviderError: down"


def test_ingestion_records_newest_first_and_limited(audit):
    for i in range(3):
        audit.add_ingestion_record(owner_id="alice", source=f"run-{i}", status="completed")
    records = audit.list_ingestion_records("alice", limit=2)
    assert [r.source for r in records] == ["run-2", "run-1"]


def test_ingestion_records_are_per_owner(audit):
    audit.add_ingestion_record(owner_id="bob", source="docs", status="completed")
    assert audit.list_ingestion_records("alice") == []


def test_invalid_status_raises_storage_error(audit):
    with pytest.raises(StorageError):
        audit.add_ingestion_record(owner_id="alice", source="docs", status="running")


def test_add_and_list_scan_record(audit):
    analysis = {"severity": "high", "summary": "brute force", "issues": [], "logsAnalyzed": 4}
    audit.add_scan_record(
        owner_id="alice",
        source="logs",
        status="completed",
        severity="high",
        issues_found=1,
        logs_analyzed=4,
        analysis=analysis,
        email_sent=True,
    )
    [rec] = audit.list_scan_records("alice")
    assert rec.severity == "high"
    assert rec.issues_found == 1
    assert rec.email_sent is True
    assert rec.analysis_dict == analysis


def test_failed_scan_record_defaults(audit):
    audit.add_scan_record(
        owner_id="alice", source="logs", status="failed", severity="none", error="Timeout: too slow"
    )
    [rec] = audit.list_scan_records("alice")
    assert rec.status == "failed"
    assert rec.email_sent is False
    assert rec.analysis_dict == {}
    assert rec.error == "Timeout: too slow"
