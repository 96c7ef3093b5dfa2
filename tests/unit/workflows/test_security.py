"""Tests for the security-analysis workflow."""

from __future__ import annotations

import json
import time
from unittest.mock import MagicMock

import pytest

from sharelens.collaborators.notify import NotificationResult
from sharelens.db.audit import AuditStore
from sharelens.errors import InvalidConfig, WorkflowTimeout
from sharelens.workflows.runner import RunStatus, WorkflowRunner
from sharelens.workflows.security import ScanRequest, SecurityScanWorkflow, recipients_from

HIGH_REPLY = json.dumps(
    {
        "severity": "high",
        "issues": [
            {
                "type": "Brute Force Attack",
                "description": "Repeated SSH failures",
                "evidence": ["Failed password for root from 10.0.0.5"],
                "affected_hosts": ["web01"],
            }
        ],
        "summary": "SSH brute force against web01",
        "recommendations": ["Block 10.0.0.5"],
        "logsAnalyzed": 3,
    }
)


@pytest.fixture
def logs():
    access = MagicMock()
    access.describe.return_value = "/mnt/share/logs"
    access.connect.return_value = MagicMock(name="toolset")
    return access


@pytest.fixture
def notifier():
    n = MagicMock()
    n.send_alert.return_value = NotificationResult(sent=True, message_id="<1@sharelens>")
    return n


def _reasoner(reply: str) -> MagicMock:
    r = MagicMock()
    r.analyze.return_value = reply
    return r


def _workflow(logs, reasoner, tmp_db, notifier=None) -> SecurityScanWorkflow:
    return SecurityScanWorkflow(
        logs=logs, reasoner=reasoner, audit=AuditStore(tmp_db), notifier=notifier
    )


# ------------------------------------------------------------------
# Analysis + alerting
# ------------------------------------------------------------------


def test_high_severity_sends_alert(logs, notifier, tmp_db):
    result = _workflow(logs, _reasoner(HIGH_REPLY), tmp_db, notifier).run(
        ScanRequest(owner_id="alice", recipients=("ops@example.com",))
    )

    assert result.success
    assert result.run.status is RunStatus.COMPLETED
    assert result.severity == "high"
    assert result.issues_found == 1
    assert result.logs_analyzed == 3
    assert result.email_sent is True
    notifier.send_alert.assert_called_once()
    analysis, recipients, source = notifier.send_alert.call_args.args
    assert analysis.severity == "high"
    assert recipients == ["ops@example.com"]
    assert source == "/mnt/share/logs"


def test_reasoner_gets_prompts_and_toolset(logs, tmp_db):
    reasoner = _reasoner(HIGH_REPLY)
    _workflow(logs, reasoner, tmp_db).run(ScanRequest(owner_id="alice", log_directory="syslogs"))
    system, user, toolset = reasoner.analyze.call_args.args
    assert '"syslogs"' in system
    assert "logsAnalyzed" in system
    assert "syslogs" in user
    assert toolset is logs.connect.return_value


def test_below_threshold_sends_nothing(logs, notifier, tmp_db):
    reply = json.dumps({"severity": "low", "issues": [], "summary": "quiet", "logsAnalyzed": 2})
    result = _workflow(logs, _reasoner(reply), tmp_db, notifier).run(
        ScanRequest(owner_id="alice", recipients=("ops@example.com",))
    )
    assert result.success
    assert result.email_sent is False
    assert result.notification.reason == "Below alert threshold"
    notifier.send_alert.assert_not_called()


def test_threshold_is_inclusive(logs, notifier, tmp_db):
    reply = json.dumps({"severity": "medium", "issues": [], "summary": "odd"})
    result = _workflow(logs, _reasoner(reply), tmp_db, notifier).run(
        ScanRequest(owner_id="alice", recipients=("ops@example.com",), threshold="medium")
    )
    assert result.email_sent is True


def test_no_recipients_sends_nothing(logs, notifier, tmp_db):
    result = _workflow(logs, _reasoner(HIGH_REPLY), tmp_db, notifier).run(
        ScanRequest(owner_id="alice")
    )
    assert result.email_sent is False
    assert result.notification.reason == "No recipients"
    notifier.send_alert.assert_not_called()


def test_without_notifier_scan_still_completes(logs, tmp_db):
    result = _workflow(logs, _reasoner(HIGH_REPLY), tmp_db).run(
        ScanRequest(owner_id="alice", recipients=("ops@example.com",))
    )
    assert result.success
    assert result.email_sent is False


def test_notifier_failure_does_not_fail_scan(logs, tmp_db):
    notifier = MagicMock()
    notifier.send_alert.return_value = NotificationResult(sent=False, error="Connection refused")
    result = _workflow(logs, _reasoner(HIGH_REPLY), tmp_db, notifier).run(
        ScanRequest(owner_id="alice", recipients=("ops@example.com",))
    )
    assert result.success
    assert result.email_sent is False
    assert result.notification.error == "Connection refused"


# ------------------------------------------------------------------
# Reply parsing
# ------------------------------------------------------------------


def test_fenced_reply_is_parsed(logs, tmp_db):
    reply = f"Here is my analysis:\n```json\n{HIGH_REPLY}\n```\nStay safe."
    result = _workflow(logs, _reasoner(reply), tmp_db).run(ScanRequest(owner_id="alice"))
    assert result.severity == "high"


def test_unparsable_reply_falls_back_to_low(logs, notifier, tmp_db):
    reply = "I looked at the logs and everything seems fine. " * 30
    result = _workflow(logs, _reasoner(reply), tmp_db, notifier).run(
        ScanRequest(owner_id="alice", recipients=("ops@example.com",))
    )
    assert result.success
    assert result.severity == "low"
    assert result.issues_found == 0
    assert reply[:500] in result.summary
    assert reply[:501] not in result.summary
    notifier.send_alert.assert_not_called()


# ------------------------------------------------------------------
# Audit + cleanup
# ------------------------------------------------------------------


def test_completed_scan_is_recorded(logs, notifier, tmp_db):
    _workflow(logs, _reasoner(HIGH_REPLY), tmp_db, notifier).run(
        ScanRequest(owner_id="alice", recipients=("ops@example.com",))
    )
    [rec] = AuditStore(tmp_db).list_scan_records("alice")
    assert rec.status == "completed"
    assert rec.severity == "high"
    assert rec.issues_found == 1
    assert rec.email_sent is True
    assert rec.analysis_dict["summary"] == "SSH brute force against web01"
    assert rec.source == "/mnt/share/logs"


def test_reasoner_failure_records_failed_scan(logs, tmp_db):
    reasoner = MagicMock()
    reasoner.analyze.side_effect = RuntimeError("model unreachable")
    result = _workflow(logs, reasoner, tmp_db).run(ScanRequest(owner_id="alice"))

    assert not result.success
    assert result.run.error.step_name == "analyze_logs"
    assert "model unreachable" in result.error
    [rec] = AuditStore(tmp_db).list_scan_records("alice")
    assert rec.status == "failed"
    assert "model unreachable" in rec.error


def test_toolset_closed_after_success(logs, tmp_db):
    _workflow(logs, _reasoner(HIGH_REPLY), tmp_db).run(ScanRequest(owner_id="alice"))
    logs.connect.return_value.close.assert_called_once()


def test_toolset_closed_after_failure(logs, tmp_db):
    reasoner = MagicMock()
    reasoner.analyze.side_effect = RuntimeError("boom")
    _workflow(logs, reasoner, tmp_db).run(ScanRequest(owner_id="alice"))
    logs.connect.return_value.close.assert_called_once()


def test_timed_out_scan_closes_toolset_after_reasoning_stops(logs, notifier, tmp_db):
    events = []

    def _slow_analyze(system, user, toolset, cancelled=None):
        cancelled.wait(5)
        time.sleep(0.1)
        events.append("reasoning stopped")
        raise WorkflowTimeout("Reasoning cancelled")

    reasoner = MagicMock()
    reasoner.analyze.side_effect = _slow_analyze
    logs.connect.return_value.close.side_effect = lambda: events.append("closed")
    workflow = SecurityScanWorkflow(
        logs=logs,
        reasoner=reasoner,
        audit=AuditStore(tmp_db),
        notifier=notifier,
        runner=WorkflowRunner(timeout=0.05),
    )

    result = workflow.run(ScanRequest(owner_id="alice", recipients=("sec@example.com",)))

    assert not result.success
    assert result.error_kind == "Timeout"
    assert events == ["reasoning stopped", "closed"]
    notifier.send_alert.assert_not_called()
    [rec] = AuditStore(tmp_db).list_scan_records("alice")
    assert rec.status == "failed"



def test_connect_failure_records_failed_scan(logs, tmp_db):
    logs.connect.side_effect = OSError("share not mounted")
    result = _workflow(logs, _reasoner(HIGH_REPLY), tmp_db).run(ScanRequest(owner_id="alice"))
    assert not result.success
    assert result.run.error.step_name == "connect_tools"
    assert AuditStore(tmp_db).list_scan_records("alice")[0].status == "failed"


def test_unknown_threshold_rejected_before_io(logs, tmp_db):
    with pytest.raises(InvalidConfig):
        _workflow(logs, _reasoner(HIGH_REPLY), tmp_db).run(
            ScanRequest(owner_id="alice", threshold="urgent")
        )
    logs.connect.assert_not_called()


# ------------------------------------------------------------------
# recipients_from
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, ()),
        ("", ()),
        ("a@x.com, b@x.com", ("a@x.com", "b@x.com")),
        (["a@x.com", " ", "b@x.com "], ("a@x.com", "b@x.com")),
    ],
)
def test_recipients_from(value, expected):
    assert recipients_from(value) == expected
