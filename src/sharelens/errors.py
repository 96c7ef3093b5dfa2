"""Exception taxonomy shared by the store, the pipelines and the workflow runner.

Every exception carries a ``kind`` string. The workflow runner records
``kind`` and ``str(exc)`` verbatim in the audit row of a failed run.
"""

from __future__ import annotations


class SharelensError(Exception):
    """Base class for all sharelens errors."""

    kind: str = "Error"


class InvalidConfig(SharelensError, ValueError):
    """Caller error (bad chunk size, top_k, alpha, tool arguments).

    Raised before any I/O happens.
    """

    kind = "InvalidConfig"


class EmbeddingProviderError(SharelensError):
    """The upstream embedding model call failed or returned a malformed batch."""

    kind = "EmbeddingProviderError"


class StorageError(SharelensError):
    """A persistence operation failed.

    Attributes:
        committed: Number of records durably written before the failure.
            Embedding inserts are atomic, so this is always 0 for them.
    """

    kind = "StorageError"

    def __init__(self, message: str, committed: int = 0) -> None:
        super().__init__(message)
        self.committed = committed


class NotFound(SharelensError, LookupError):
    """Resource absent or not owned by the caller (the two are indistinguishable)."""

    kind = "NotFound"


class WorkflowTimeout(SharelensError, TimeoutError):
    """A workflow run exceeded its wall-clock budget."""

    kind = "Timeout"


class PartialReadError(SharelensError):
    """A single file could not be read during document collection.

    Collected on the step output, never raised out of the collection step.
    """

    kind = "PartialReadError"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to read {path}: {reason}")
        self.path = path
        self.reason = reason


class AnalysisParseError(SharelensError):
    """The reasoning collaborator's reply did not contain a usable JSON analysis."""

    kind = "AnalysisParseError"
