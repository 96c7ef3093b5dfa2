from sharelens.workflows.ingestion import IngestionRequest, IngestionResult, IngestionWorkflow
from sharelens.workflows.runner import (
    RunError,
    RunStatus,
    Step,
    StepContext,
    Workflow,
    WorkflowRun,
    WorkflowRunner,
)
from sharelens.workflows.security import ScanRequest, ScanResult, SecurityScanWorkflow

__all__ = [
    "IngestionRequest",
    "IngestionResult",
    "IngestionWorkflow",
    "RunError",
    "RunStatus",
    "ScanRequest",
    "ScanResult",
    "SecurityScanWorkflow",
    "Step",
    "StepContext",
    "Workflow",
    "WorkflowRun",
    "WorkflowRunner",
]
