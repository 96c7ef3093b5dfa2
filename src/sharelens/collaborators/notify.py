"""Notification collaborator: HTML security alerts over SMTP."""

from __future__ import annotations

import html
import logging
import smtplib
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Protocol

from sharelens.analysis import SecurityAnalysis

_log = logging.getLogger(__name__)

_SEVERITY_COLORS = {
    "medium": "#f59e0b",
    "high": "#ef4444",
    "critical": "#dc2626",
}


@dataclass
class NotificationResult:
    sent: bool
    reason: str | None = None
    error: str | None = None
    message_id: str | None = None


class Notifier(Protocol):
    def send_alert(
        self, analysis: SecurityAnalysis, recipients: Sequence[str], source: str
    ) -> NotificationResult: ...


def alert_subject(analysis: SecurityAnalysis) -> str:
    return (
        f"[{analysis.severity.upper()}] Security Alert - "
        f"{len(analysis.issues)} Issues Detected"
    )


def render_alert_html(analysis: SecurityAnalysis, source: str, now: datetime | None = None) -> str:
    """Render *analysis* as an HTML email body. All model text is escaped."""
    esc = html.escape
    color = _SEVERITY_COLORS.get(analysis.severity, _SEVERITY_COLORS["medium"])
    when = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S %Z")

    if analysis.issues:
        issue_blocks = []
        for issue in analysis.issues:
            hosts = (
                f"<p><strong>Affected Hosts:</strong> {esc(', '.join(issue.affected_hosts))}</p>"
                if issue.affected_hosts
                else ""
            )
            evidence = "".join(f'<div class="evidence">{esc(e)}</div>' for e in issue.evidence)
            issue_blocks.append(
                f'<div class="issue" style="border-left:4px solid {color}">'
                f"<h3>{esc(issue.type)}</h3>"
                f"<p><strong>Description:</strong> {esc(issue.description)}</p>"
                f"{hosts}<h4>Evidence:</h4>{evidence}</div>"
            )
        issues_html = "".join(issue_blocks)
    else:
        issues_html = "<p>No specific issues detected.</p>"

    recommendations = ""
    if analysis.recommendations:
        items = "".join(f"<li>{esc(r)}</li>" for r in analysis.recommendations)
        recommendations = f'<div class="recommendations"><h2>Recommendations</h2><ul>{items}</ul></div>'

    return (
        "<!DOCTYPE html><html><head><style>"
        "body{font-family:Arial,sans-serif;line-height:1.6;color:#333;max-width:800px;margin:0 auto}"
        ".evidence{background:#f3f4f6;padding:10px;margin:10px 0;font-family:monospace;font-size:12px}"
        ".recommendations{background:#e0f2fe;padding:15px;border-radius:4px;margin-top:20px}"
        "</style></head><body>"
        f'<div class="header" style="background:{color};color:white;padding:20px">'
        f"<h1>Security Alert: {esc(analysis.severity.upper())}</h1><p>{when}</p></div>"
        '<div class="content">'
        f"<h2>Summary</h2><p>{esc(analysis.summary)}</p>"
        f"<p><strong>Logs Analyzed:</strong> {analysis.logs_analyzed}</p>"
        f"<h2>Issues Detected ({len(analysis.issues)})</h2>{issues_html}"
        f"{recommendations}"
        '<hr><p style="color:#6b7280;font-size:12px">'
        f"Automated security alert. Log source: {esc(source)}</p>"
        "</div></body></html>"
    )


class SmtpNotifier:
    """Send alerts through an SMTP relay.

    Delivery failures are reported in the result, never raised: a failed
    email must not fail the scan that produced it.

    Args:
        host: SMTP server host.
        port: SMTP server port.
        sender: From address.
        use_tls: Upgrade the connection with STARTTLS.
        username: Optional SMTP login (password from the caller's environment).
        password: Optional SMTP password.
    """

    def __init__(
        self,
        host: str,
        port: int = 25,
        sender: str = "Security Monitor <security@localhost>",
        use_tls: bool = False,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.use_tls = use_tls
        self._username = username
        self._password = password
        self._timeout = timeout

    def send_alert(
        self, analysis: SecurityAnalysis, recipients: Sequence[str], source: str
    ) -> NotificationResult:
        if not recipients:
            return NotificationResult(sent=False, reason="No recipients")

        msg = EmailMessage()
        msg["Subject"] = alert_subject(analysis)
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg["Message-ID"] = make_msgid(domain="sharelens")
        msg.set_content(f"{analysis.severity.upper()}: {analysis.summary}")
        msg.add_alternative(render_alert_html(analysis, source), subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self._timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self._username:
                    smtp.login(self._username, self._password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            _log.error("Failed to send security alert: %s", exc)
            return NotificationResult(sent=False, error=str(exc))

        _log.info("Security alert sent to %s", ", ".join(recipients))
        return NotificationResult(sent=True, message_id=msg["Message-ID"])
