"""Tests for LocalFileShare."""

from __future__ import annotations

import pytest

from sharelens.collaborators.filesystem import LocalFileShare
from sharelens.errors import InvalidConfig


@pytest.fixture
def share(tmp_path):
    docs = tmp_path / "documents"
    docs.mkdir()
    (docs / "b.txt").write_text("bravo", encoding="utf-8")
    (docs / "a.txt").write_text("alpha", encoding="utf-8")
    (docs / "notes.md").write_text("# notes", encoding="utf-8")
    (docs / "archive").mkdir()
    return LocalFileShare(tmp_path)


def test_list_files_sorted_with_pattern(share):
    files = share.list_files("documents", "*.txt")
    assert [f.name for f in files] == ["a.txt", "b.txt"]
    assert files[0].size == 5
    assert files[0].modified.endswith("+00:00")


def test_list_files_reports_directories(share):
    entries = {f.name: f for f in share.list_files("documents")}
    assert entries["archive"].is_directory is True
    assert entries["archive"].size == 0


def test_list_missing_directory(share):
    with pytest.raises(FileNotFoundError):
        share.list_files("nope")


def test_read_file(share):
    assert share.read_file("documents/a.txt") == "alpha"


def test_read_file_replaces_invalid_utf8(tmp_path):
    (tmp_path / "bad.txt").write_bytes(b"ok \xff\xfe end")
    text = LocalFileShare(tmp_path).read_file("bad.txt")
    assert text.startswith("ok ")
    assert text.endswith(" end")


@pytest.mark.parametrize("path", ["../outside.txt", "documents/../../etc/passwd"])
def test_paths_cannot_escape_root(share, path):
    with pytest.raises(InvalidConfig):
        share.read_file(path)


def test_describe(tmp_path):
    assert LocalFileShare(tmp_path).describe("logs") == str(tmp_path / "logs")
