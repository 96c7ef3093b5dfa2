"""Security-analysis workflow: log tools + reasoning model + alerting.

Steps, in order:
  connect_tools   open a log toolset from the log-access collaborator
  analyze_logs    reasoning model inspects the logs through the toolset
  send_alert      email when severity reaches the threshold
  record_outcome  completed scan record

The toolset is closed after every run, whatever the outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sharelens.analysis import (
    SecurityAnalysis,
    fallback_analysis,
    meets_threshold,
    parse_analysis,
    severity_rank,
)
from sharelens.collaborators.logtools import LogAccess, LogToolset
from sharelens.collaborators.notify import NotificationResult, Notifier
from sharelens.collaborators.reasoning import Reasoner
from sharelens.db.audit import AuditStore
from sharelens.errors import AnalysisParseError
from sharelens.workflows.runner import Step, StepContext, Workflow, WorkflowRun, WorkflowRunner

_log = logging.getLogger(__name__)

WORKFLOW_ID = "security-monitor"

SYSTEM_PROMPT = """You are a security analyst. Your task is to analyze system logs for security threats and anomalies.

Use the available tools to:
1. List log files in the "{log_directory}" directory
2. Read syslog files from the last 24 hours
3. Search for suspicious patterns like:
   - Failed login attempts (brute force indicators)
   - Privilege escalation attempts
   - Unusual sudo commands
   - SSH authentication failures
   - Port scans or network anomalies
   - File integrity changes
   - Suspicious process executions

After analyzing the logs, return your findings in VALID JSON format:

{{
  "severity": "none" | "low" | "medium" | "high" | "critical",
  "issues": [
    {{
      "type": "string (e.g., 'Brute Force Attack', 'Privilege Escalation')",
      "description": "string (detailed description)",
      "evidence": ["string array of log entries"],
      "affected_hosts": ["string array of hostnames"]
    }}
  ],
  "summary": "string (overall security summary)",
  "recommendations": ["string array of recommended actions"],
  "logsAnalyzed": number
}}

IMPORTANT: Return ONLY the JSON object, no additional text or markdown formatting."""

USER_PROMPT = (
    "Analyze security logs in directory: {log_directory}. "
    "Focus on {threshold} severity and above issues. "
    "Use the tools to access the log files."
)


@dataclass(frozen=True)
class ScanRequest:
    owner_id: str
    log_directory: str = "logs"
    recipients: tuple[str, ...] = ()
    threshold: str = "medium"


@dataclass
class ScanResult:
    success: bool
    run: WorkflowRun
    source: str
    severity: str | None = None
    issues_found: int = 0
    logs_analyzed: int = 0
    email_sent: bool = False
    summary: str | None = None
    analysis: SecurityAnalysis | None = None
    notification: NotificationResult | None = None
    error_kind: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "runId": self.run.run_id,
            "source": self.source,
            "severity": self.severity,
            "issuesFound": self.issues_found,
            "logsAnalyzed": self.logs_analyzed,
            "emailSent": self.email_sent,
            "summary": self.summary,
        }
        if not self.success:
            data["errorKind"] = self.error_kind
            data["error"] = self.error
        return data


class SecurityScanWorkflow:
    """Run one security scan over the log directory of a share.

    Args:
        logs: Log-access collaborator handing out toolsets.
        reasoner: Reasoning collaborator (tool-calling LLM).
        audit: Audit store receiving the scan record.
        notifier: Alert channel; ``None`` disables email.
        runner: Runner to execute with (its timeout is the run budget).
    """

    def __init__(
        self,
        logs: LogAccess,
        reasoner: Reasoner,
        audit: AuditStore,
        notifier: Notifier | None = None,
        runner: WorkflowRunner | None = None,
    ) -> None:
        self._logs = logs
        self._reasoner = reasoner
        self._audit = audit
        self._notifier = notifier
        self._runner = runner or WorkflowRunner()

    def run(self, request: ScanRequest) -> ScanResult:
        """Scan *request.log_directory* and alert *request.recipients*.

        Raises:
            InvalidConfig: Unknown alert threshold (before any I/O).
        """
        severity_rank(request.threshold)
        source = self._logs.describe(request.log_directory)
        opened: list[LogToolset] = []

        def _connect_tools(ctx: StepContext) -> LogToolset:
            toolset = self._logs.connect()
            opened.append(toolset)
            _log.info("Log toolset connected for %s", source)
            return toolset

        workflow = Workflow(
            WORKFLOW_ID,
            [
                Step("connect_tools", _connect_tools),
                Step("analyze_logs", self._analyze_logs),
                Step("send_alert", lambda ctx: self._send_alert(ctx, source)),
                Step("record_outcome", lambda ctx: self._record_outcome(ctx, source)),
            ],
        )

        def _record_failure(run: WorkflowRun, exc: BaseException) -> None:
            self._audit.add_scan_record(
                owner_id=request.owner_id,
                source=source,
                status="failed",
                severity="none",
                error=f"{run.error.kind}: {run.error.message}",
            )

        try:
            run = self._runner.run(workflow, trigger=request, on_failure=_record_failure)
        finally:
            for toolset in opened:
                toolset.close()

        if not run.succeeded:
            return ScanResult(
                success=False,
                run=run,
                source=source,
                error_kind=run.error.kind,
                error=run.error.message,
            )

        analysis: SecurityAnalysis = run.output_of("analyze_logs")
        notification: NotificationResult = run.output_of("send_alert")
        return ScanResult(
            success=True,
            run=run,
            source=source,
            severity=analysis.severity,
            issues_found=len(analysis.issues),
            logs_analyzed=analysis.logs_analyzed,
            email_sent=notification.sent,
            summary=analysis.summary,
            analysis=analysis,
            notification=notification,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _analyze_logs(self, ctx: StepContext) -> SecurityAnalysis:
        request: ScanRequest = ctx.trigger
        toolset: LogToolset = ctx.output_of("connect_tools")

        text = self._reasoner.analyze(
            SYSTEM_PROMPT.format(log_directory=request.log_directory),
            USER_PROMPT.format(log_directory=request.log_directory, threshold=request.threshold),
            toolset,
            cancelled=ctx.cancelled,
        )
        _log.debug("Reasoning reply: %s", text[:200])
        try:
            analysis = parse_analysis(text)
        except AnalysisParseError as exc:
            _log.warning("%s; using low-severity fallback", exc)
            analysis = fallback_analysis(text)
        _log.info("Analysis severity %s, %d issue(s)", analysis.severity, len(analysis.issues))
        return analysis

    def _send_alert(self, ctx: StepContext, source: str) -> NotificationResult:
        request: ScanRequest = ctx.trigger
        analysis: SecurityAnalysis = ctx.output_of("analyze_logs")

        if not meets_threshold(analysis.severity, request.threshold):
            return NotificationResult(sent=False, reason="Below alert threshold")
        if not request.recipients:
            return NotificationResult(sent=False, reason="No recipients")
        if self._notifier is None:
            return NotificationResult(sent=False, reason="Notifier not configured")
        ctx.raise_if_cancelled("sending the alert")
        return self._notifier.send_alert(analysis, list(request.recipients), source)

    def _record_outcome(self, ctx: StepContext, source: str) -> str:
        request: ScanRequest = ctx.trigger
        analysis: SecurityAnalysis = ctx.output_of("analyze_logs")
        notification: NotificationResult = ctx.output_of("send_alert")
        ctx.raise_if_cancelled("recording the outcome")
        return self._audit.add_scan_record(
            owner_id=request.owner_id,
            source=source,
            status="completed",
            severity=analysis.severity,
            issues_found=len(analysis.issues),
            logs_analyzed=analysis.logs_analyzed,
            analysis=analysis.to_dict(),
            email_sent=notification.sent,
        )


def recipients_from(values: Sequence[str] | str | None) -> tuple[str, ...]:
    """Normalise a comma-separated string or list of addresses."""
    if values is None:
        return ()
    if isinstance(values, str):
        values = values.split(",")
    return tuple(v.strip() for v in values if v and v.strip())
