"""Log-access tools exposed to the reasoning model during a security scan.

Every tool has one canonical argument schema. Calls with unknown or missing
arguments are rejected with InvalidConfig instead of being coerced.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from sharelens.collaborators.filesystem import FileShare
from sharelens.errors import InvalidConfig

# RFC 3164: timestamp hostname process[pid]: message
_SYSLOG_RE = re.compile(
    r"^(\w+\s+\d+\s+\d+:\d+:\d+)\s+(\S+)\s+(\S+?)(?:\[(\d+)\])?:\s*(.*)$"
)

_MAX_MATCHES = 200


def parse_syslog_line(line: str) -> dict[str, str | None]:
    """Split an RFC 3164 line into its fields; unparsable lines keep only ``raw``."""
    match = _SYSLOG_RE.match(line)
    if not match:
        return {"raw": line}
    timestamp, host, process, pid, message = match.groups()
    return {
        "timestamp": timestamp,
        "host": host,
        "process": process,
        "pid": pid,
        "message": message,
        "raw": line,
    }


@dataclass(frozen=True)
class ToolParam:
    name: str
    type: str  # JSON schema type: string | integer
    description: str
    required: bool = True


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    params: tuple[ToolParam, ...]
    handler: Callable[..., Any]

    def schema(self) -> dict[str, Any]:
        """OpenAI function-calling schema for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        p.name: {"type": p.type, "description": p.description}
                        for p in self.params
                    },
                    "required": [p.name for p in self.params if p.required],
                    "additionalProperties": False,
                },
            },
        }

    def validate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Check *arguments* against the canonical schema.

        Raises:
            InvalidConfig: Non-object arguments, unknown keys, missing
                required keys, or wrongly typed values.
        """
        if not isinstance(arguments, dict):
            raise InvalidConfig(f"{self.name}: arguments must be an object")
        known = {p.name: p for p in self.params}
        unknown = sorted(set(arguments) - set(known))
        if unknown:
            raise InvalidConfig(f"{self.name}: unknown argument(s) {', '.join(unknown)}")
        for p in self.params:
            if p.name not in arguments:
                if p.required:
                    raise InvalidConfig(f"{self.name}: missing required argument '{p.name}'")
                continue
            value = arguments[p.name]
            if p.type == "integer" and (isinstance(value, bool) or not isinstance(value, int)):
                raise InvalidConfig(f"{self.name}: '{p.name}' must be an integer")
            if p.type == "string" and not isinstance(value, str):
                raise InvalidConfig(f"{self.name}: '{p.name}' must be a string")
        return arguments


class LogToolset(Protocol):
    def schemas(self) -> list[dict[str, Any]]: ...

    def call(self, name: str, arguments: dict[str, Any]) -> str: ...

    def close(self) -> None: ...


class LogAccess(Protocol):
    """Opens a toolset for one scan; the caller closes it."""

    def connect(self) -> LogToolset: ...

    def describe(self, directory: str) -> str: ...


class FileShareToolset:
    """LogToolset backed by a FileShare."""

    def __init__(self, share: FileShare) -> None:
        self._share = share
        self._closed = False
        self._tools: dict[str, Tool] = {
            t.name: t
            for t in (
                Tool(
                    "list_files",
                    "List files in a directory on the share. Returns names, sizes and modification dates.",
                    (
                        ToolParam("directory", "string", "Directory relative to the share root, e.g. 'logs'."),
                        ToolParam("pattern", "string", "Glob pattern, e.g. '*.log'. Defaults to '*'.", required=False),
                    ),
                    self._list_files,
                ),
                Tool(
                    "read_file",
                    "Read the full text content of a file on the share.",
                    (ToolParam("path", "string", "File path relative to the share root."),),
                    self._read_file,
                ),
                Tool(
                    "read_syslog",
                    "Read a syslog file and return parsed entries (timestamp, host, process, pid, message).",
                    (
                        ToolParam("path", "string", "Syslog file path relative to the share root."),
                        ToolParam("lines", "integer", "Only return the last N lines.", required=False),
                    ),
                    self._read_syslog,
                ),
                Tool(
                    "search_logs",
                    "Search log files in a directory for a case-insensitive regular expression.",
                    (
                        ToolParam("directory", "string", "Directory relative to the share root."),
                        ToolParam("query", "string", "Regular expression to search for."),
                        ToolParam("pattern", "string", "Glob for files to search. Defaults to '*'.", required=False),
                    ),
                    self._search_logs,
                ),
            )
        }

    def schemas(self) -> list[dict[str, Any]]:
        return [t.schema() for t in self._tools.values()]

    def call(self, name: str, arguments: dict[str, Any]) -> str:
        """Validate *arguments* and run tool *name*; returns a JSON string.

        Raises:
            InvalidConfig: Unknown tool, invalid arguments, or closed toolset.
        """
        if self._closed:
            raise InvalidConfig("Toolset is closed")
        tool = self._tools.get(name)
        if tool is None:
            raise InvalidConfig(f"Unknown tool '{name}'")
        return json.dumps(tool.handler(**tool.validate(arguments)))

    def close(self) -> None:
        self._closed = True

    # ------------------------------------------------------------------
    # Tool handlers
    # ------------------------------------------------------------------

    def _list_files(self, directory: str, pattern: str = "*") -> list[dict[str, Any]]:
        return [
            {"name": f.name, "size": f.size, "modified": f.modified, "isDirectory": f.is_directory}
            for f in self._share.list_files(directory, pattern)
        ]

    def _read_file(self, path: str) -> dict[str, str]:
        return {"path": path, "content": self._share.read_file(path)}

    def _read_syslog(self, path: str, lines: int | None = None) -> dict[str, Any]:
        raw_lines = [ln for ln in self._share.read_file(path).splitlines() if ln.strip()]
        if lines is not None:
            if lines <= 0:
                raise InvalidConfig("read_syslog: 'lines' must be positive")
            raw_lines = raw_lines[-lines:]
        return {"path": path, "entries": [parse_syslog_line(ln) for ln in raw_lines]}

    def _search_logs(self, directory: str, query: str, pattern: str = "*") -> dict[str, Any]:
        try:
            regex = re.compile(query, re.IGNORECASE)
        except re.error as exc:
            raise InvalidConfig(f"search_logs: invalid regular expression: {exc}") from exc

        matches: list[dict[str, Any]] = []
        for info in self._share.list_files(directory, pattern):
            if info.is_directory:
                continue
            path = f"{directory}/{info.name}"
            for lineno, line in enumerate(self._share.read_file(path).splitlines(), start=1):
                if regex.search(line):
                    matches.append({"file": path, "line": lineno, "text": line})
                    if len(matches) >= _MAX_MATCHES:
                        return {"matches": matches, "truncated": True}
        return {"matches": matches, "truncated": False}


class FileShareLogAccess:
    """LogAccess that hands out FileShareToolsets over one share."""

    def __init__(self, share: FileShare) -> None:
        self._share = share

    def connect(self) -> FileShareToolset:
        return FileShareToolset(self._share)

    def describe(self, directory: str) -> str:
        describe = getattr(self._share, "describe", None)
        return describe(directory) if describe else directory
