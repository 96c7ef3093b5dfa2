"""Security analysis result model and best-effort parsing of LLM replies.

The reasoning model is asked for a bare JSON object but often wraps it in a
markdown fence or surrounds it with prose. ``parse_analysis`` tries, in
order: a ```json fence, any ``` fence, the outermost ``{...}`` span, and
the whole text. ``fallback_analysis`` is the explicit value used when none
of them yields a valid object.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from typing import Any

from sharelens.errors import AnalysisParseError, InvalidConfig

SEVERITIES: tuple[str, ...] = ("none", "low", "medium", "high", "critical")

_FENCED_JSON_RE = re.compile(r"```json\s*\n(.*?)\n\s*```", re.DOTALL)
_FENCED_RE = re.compile(r"```\s*\n(.*?)\n\s*```", re.DOTALL)
_BRACES_RE = re.compile(r"(\{.*\})", re.DOTALL)


def severity_rank(severity: str) -> int:
    """Position of *severity* in SEVERITIES (none=0 ... critical=4).

    Raises:
        InvalidConfig: Unknown severity name.
    """
    try:
        return SEVERITIES.index(severity)
    except ValueError:
        raise InvalidConfig(
            f"Unknown severity '{severity}'; expected one of {', '.join(SEVERITIES)}"
        ) from None


def meets_threshold(severity: str, threshold: str) -> bool:
    return severity_rank(severity) >= severity_rank(threshold)


@dataclass
class SecurityIssue:
    type: str
    description: str
    evidence: list[str] = field(default_factory=list)
    affected_hosts: list[str] = field(default_factory=list)


@dataclass
class SecurityAnalysis:
    severity: str
    summary: str
    issues: list[SecurityIssue] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    logs_analyzed: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["logsAnalyzed"] = data.pop("logs_analyzed")
        return data


def parse_analysis(text: str) -> SecurityAnalysis:
    """Extract a SecurityAnalysis from free-form model output.

    Raises:
        AnalysisParseError: No candidate parsed as a valid analysis object.
    """
    if not text or not text.strip():
        raise AnalysisParseError("Empty response from reasoning model")

    last_error = "no JSON object found"
    for candidate in _json_candidates(text):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = f"invalid JSON: {exc}"
            continue
        try:
            return _from_dict(data)
        except (TypeError, ValueError, KeyError) as exc:
            last_error = f"unexpected analysis shape: {exc}"

    raise AnalysisParseError(f"Could not parse analysis: {last_error}")


def fallback_analysis(raw_text: str) -> SecurityAnalysis:
    """Low-severity placeholder used when the reply could not be parsed."""
    return SecurityAnalysis(
        severity="low",
        summary=(
            "Analysis completed but response was not in expected JSON format. "
            f"Raw response: {raw_text[:500]}"
        ),
    )


def _json_candidates(text: str) -> list[str]:
    candidates: list[str] = []
    for pattern in (_FENCED_JSON_RE, _FENCED_RE, _BRACES_RE):
        match = pattern.search(text)
        if match:
            candidates.append(match.group(1))
    candidates.append(text.strip())
    return candidates


def _from_dict(data: Any) -> SecurityAnalysis:
    if not isinstance(data, dict):
        raise TypeError("top-level JSON value is not an object")

    severity = str(data["severity"]).lower()
    if severity not in SEVERITIES:
        raise ValueError(f"unknown severity '{severity}'")

    issues = []
    for raw in data.get("issues") or []:
        if not isinstance(raw, dict):
            raise TypeError("issue entry is not an object")
        issues.append(
            SecurityIssue(
                type=str(raw.get("type", "Unknown")),
                description=str(raw.get("description", "")),
                evidence=[str(e) for e in raw.get("evidence") or []],
                affected_hosts=[str(h) for h in raw.get("affected_hosts") or []],
            )
        )

    return SecurityAnalysis(
        severity=severity,
        summary=str(data.get("summary", "")),
        issues=issues,
        recommendations=[str(r) for r in data.get("recommendations") or []],
        logs_analyzed=int(data.get("logsAnalyzed") or 0),
    )
