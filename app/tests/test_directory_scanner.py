import io
import os

import pytest

import services.DirectoryScanner as scanner_module
from services.DirectoryScanner import DirectoryScanner, format_size, icon_for, mime_type_for
from utils.errors import NotFoundError, PathTraversalError


@pytest.mark.parametrize("size, expected", [
    (0, "0 B"),
    (1023, "1023 B"),
    (1024, "1.0 KB"),
    (1536, "1.5 KB"),
    (1048576, "1.0 MB"),
    (5 * 1024 ** 3, "5.0 GB"),
    (3 * 1024 ** 4 // 2, "1.5 TB"),
    (2 * 1024 ** 6, "2.0 EB"),
])
def test_format_size(size, expected):
    assert format_size(size) == expected


@pytest.mark.parametrize("name, mime_type, icon", [
    ("a.PNG", "image/png", "image"),
    ("clip.mkv", "video/x-matroska", "video"),
    ("song.ogg", "audio/ogg", "audio"),
    ("readme.md", "text/markdown", "text"),
    ("paper.pdf", "application/pdf", "pdf"),
    ("letter.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document", "document"),
    ("budget.xls", "application/vnd.ms-excel", "spreadsheet"),
    ("deck.pptx", "application/vnd.openxmlformats-officedocument.presentationml.presentation", "presentation"),
    ("backup.7z", "application/x-7z-compressed", "archive"),
    ("data.json", "application/json", "file"),
    ("binary", "application/octet-stream", "file"),
])
def test_mime_type_and_icon(name, mime_type, icon):
    assert mime_type_for(name) == mime_type
    assert icon_for(mime_type) == icon


def test_scan_lists_one_level_sorted(accessor):
    scanner = DirectoryScanner(accessor)
    accessor.ensure_directory("docs/deeper")
    accessor.ensure_directory("Archive")
    (accessor.root / "docs" / "b.txt").write_bytes(b"b" * 1536)
    (accessor.root / "docs" / "A.txt").write_bytes(b"a")
    (accessor.root / "docs" / "deeper" / "hidden.txt").write_bytes(b"x")

    files, folders = scanner.scan("docs")

    assert [entry.name for entry in files] == ["A.txt", "b.txt"]
    assert [entry.path for entry in files] == ["docs/A.txt", "docs/b.txt"]
    assert files[1].formatted_size == "1.5 KB"
    assert files[1].extension == ".txt"
    assert [entry.path for entry in folders] == ["docs/deeper"]
    assert folders[0].size == 0

    root_files, root_folders = scanner.scan("")
    assert root_files == []
    assert [entry.name for entry in root_folders] == ["Archive", "docs"]


def test_scan_missing_folder(accessor):
    with pytest.raises(NotFoundError):
        DirectoryScanner(accessor).scan("missing")


def test_scan_file_is_not_a_folder(accessor):
    accessor.save_stream(io.BytesIO(b"x"), "", "a.txt")
    name = next(accessor.root.iterdir()).name
    with pytest.raises(NotFoundError):
        DirectoryScanner(accessor).scan(name)


def test_scan_traversal(accessor):
    with pytest.raises(PathTraversalError):
        DirectoryScanner(accessor).scan("../")


class UnreadableEntry:
    def __init__(self, entry):
        self.name = entry.name
        self.path = entry.path

    def is_dir(self, follow_symlinks=True):
        raise PermissionError("denied")

    def is_file(self, follow_symlinks=True):
        raise PermissionError("denied")

    def stat(self, follow_symlinks=True):
        raise PermissionError("denied")


def test_scan_skips_unreadable_entries(accessor, monkeypatch):
    (accessor.root / "good.txt").write_bytes(b"ok")
    (accessor.root / "broken.txt").write_bytes(b"??")
    real_scandir = os.scandir

    def flaky_scandir(path):
        return [UnreadableEntry(entry) if entry.name.startswith("broken") else entry
                for entry in real_scandir(path)]

    monkeypatch.setattr(scanner_module.os, "scandir", flaky_scandir)

    files, folders = DirectoryScanner(accessor).scan("")

    assert [entry.name for entry in files] == ["good.txt"]
    assert folders == []


def test_scan_skips_symlinks(accessor):
    (accessor.root / "real.txt").write_bytes(b"real")
    os.symlink(accessor.root / "real.txt", accessor.root / "alias.txt")

    files, folders = DirectoryScanner(accessor).scan("")

    assert [entry.name for entry in files] == ["real.txt"]
    assert folders == []
