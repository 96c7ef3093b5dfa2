"""sharelens scan: security analysis of the share's log directory.

The reasoning model reads the logs through the share toolset and returns a
severity rating. An HTML alert is emailed when the severity reaches the
threshold and notify.smtp_host plus at least one recipient are configured.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from sharelens.cli.common import DEFAULT_DB, load_config_or_exit, open_db_or_exit, resolve_owner
from sharelens.cli.errors import err_invalid_argument, err_workflow_failed
from sharelens.collaborators.filesystem import LocalFileShare
from sharelens.collaborators.logtools import FileShareLogAccess
from sharelens.collaborators.notify import SmtpNotifier
from sharelens.collaborators.reasoning import LiteLLMReasoner
from sharelens.config import SharelensConfig
from sharelens.db.audit import AuditStore
from sharelens.errors import InvalidConfig
from sharelens.log import configure_logging
from sharelens.workflows.runner import WorkflowRunner
from sharelens.workflows.security import ScanRequest, SecurityScanWorkflow, recipients_from

console = Console()

_SEVERITY_STYLE = {
    "none": "green",
    "low": "cyan",
    "medium": "yellow",
    "high": "red",
    "critical": "bold red",
}


def scan_cmd(
    log_directory: Annotated[
        str | None,
        typer.Option("--log-directory", "-d", help="Log directory on the share (default: security.log_directory)."),
    ] = None,
    recipient: Annotated[
        list[str] | None,
        typer.Option("--recipient", help="Alert recipient (repeatable; default: security.recipients)."),
    ] = None,
    threshold: Annotated[
        str | None,
        typer.Option("--threshold", help="Minimum severity that triggers an alert."),
    ] = None,
    owner: Annotated[
        str | None,
        typer.Option("--owner", help="Owner id (default: $SHARELENS_OWNER or login name)."),
    ] = None,
    share_root: Annotated[
        str | None,
        typer.Option("--share-root", help="Override share.root."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .sharelens.db."),
    ] = DEFAULT_DB,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging."),
    ] = False,
) -> None:
    """Analyze security logs on the share."""
    configure_logging(verbose)
    cfg = load_config_or_exit(console)
    conn = open_db_or_exit(db, console)

    request = ScanRequest(
        owner_id=resolve_owner(owner),
        log_directory=log_directory or cfg.security.log_directory,
        recipients=recipients_from(recipient or cfg.security.recipients),
        threshold=(threshold or cfg.security.alert_threshold).lower(),
    )
    share = LocalFileShare(share_root or cfg.share.root)

    try:
        workflow = SecurityScanWorkflow(
            logs=FileShareLogAccess(share),
            reasoner=LiteLLMReasoner(cfg.reasoning_provider()),
            audit=AuditStore(conn),
            notifier=_build_notifier(cfg),
            runner=WorkflowRunner(timeout=cfg.workflows.scan_timeout),
        )
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
            disable=as_json,
        ) as prog:
            prog.add_task(f"Analyzing {request.log_directory}…", total=None)
            result = workflow.run(request)
    except InvalidConfig as exc:
        console.print(err_invalid_argument(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        raise typer.Exit(0 if result.success else 1)

    if not result.success:
        console.print(err_workflow_failed("Security scan", result.error_kind, result.error))
        raise typer.Exit(1)

    style = _SEVERITY_STYLE.get(result.severity or "", "white")
    console.print(f"Severity: [{style}]{(result.severity or '').upper()}[/]")
    console.print(f"  Issues: {result.issues_found}  |  Logs analyzed: {result.logs_analyzed}")
    console.print(f"  {result.summary}")
    if result.analysis is not None:
        for issue in result.analysis.issues:
            console.print(f"  [bold]• {issue.type}[/] {issue.description}")
    if result.email_sent:
        console.print(f"[green]✓[/] Alert sent to {', '.join(request.recipients)}")
    elif result.notification is not None and result.notification.error:
        console.print(f"[yellow]⚠[/]  Alert not sent: {result.notification.error}")


def _build_notifier(cfg: SharelensConfig) -> SmtpNotifier | None:
    if not cfg.notify.smtp_host:
        return None
    return SmtpNotifier(
        host=cfg.notify.smtp_host,
        port=cfg.notify.smtp_port,
        sender=cfg.notify.sender,
        use_tls=cfg.notify.use_tls,
        username=os.environ.get("SHARELENS_SMTP_USER"),
        password=os.environ.get("SHARELENS_SMTP_PASSWORD"),
    )
