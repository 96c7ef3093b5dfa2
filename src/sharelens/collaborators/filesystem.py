"""File-share collaborator: list and read files under a mounted share root.

Mounting the share (CIFS, UNC paths) is outside this package; LocalFileShare
only sees an already-mounted directory.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sharelens.errors import InvalidConfig


@dataclass(frozen=True)
class FileInfo:
    name: str
    size: int
    modified: str  # ISO-8601, UTC
    is_directory: bool = False


class FileShare(Protocol):
    """Listing/reading contract used by the ingestion workflow and log tools."""

    def list_files(self, directory: str, pattern: str = "*") -> list[FileInfo]: ...

    def read_file(self, path: str) -> str: ...


class LocalFileShare:
    """FileShare over a local directory (the share's mount point).

    All paths are relative to *root*; anything resolving outside it is
    rejected with InvalidConfig.

    Args:
        root: Mount point of the share.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def list_files(self, directory: str, pattern: str = "*") -> list[FileInfo]:
        """Return entries of *directory* whose name matches *pattern*, sorted by name.

        Raises:
            InvalidConfig: Path escapes the share root.
            FileNotFoundError: *directory* does not exist.
        """
        target = self.resolve(directory)
        if not target.is_dir():
            raise FileNotFoundError(f"Directory not found on share: '{directory}'")

        entries: list[FileInfo] = []
        for entry in sorted(target.iterdir()):
            if not fnmatch.fnmatch(entry.name, pattern):
                continue
            stat = entry.stat()
            entries.append(
                FileInfo(
                    name=entry.name,
                    size=0 if entry.is_dir() else stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                    is_directory=entry.is_dir(),
                )
            )
        return entries

    def read_file(self, path: str) -> str:
        """Return the decoded text of *path* (invalid UTF-8 bytes are replaced)."""
        target = self.resolve(path)
        return target.read_text(encoding="utf-8", errors="replace")

    def resolve(self, relative: str) -> Path:
        root = self.root.resolve()
        target = (root / relative).resolve()
        if not target.is_relative_to(root):
            raise InvalidConfig(f"Path escapes the share root: '{relative}'")
        return target

    def describe(self, directory: str) -> str:
        return str(self.root / directory)
