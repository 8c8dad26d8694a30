import logging
import os
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from schemas.file_schema import FileEntry, FolderEntry
from services.SafeFileAccessor import SafeFileAccessor
from utils.errors import FileSystemError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",
    ".zip": "application/zip",
    ".rar": "application/x-rar-compressed",
    ".7z": "application/x-7z-compressed",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".go": "text/plain",
    ".py": "text/plain",
    ".java": "text/plain",
    ".c": "text/plain",
    ".cpp": "text/plain",
    ".h": "text/plain",
    ".md": "text/markdown",
}

SIZE_UNITS = "KMGTPE"


def mime_type_for(name: str) -> str:
    _, ext = os.path.splitext(name)
    return MIME_TYPES.get(ext.lower(), DEFAULT_MIME_TYPE)


def icon_for(mime_type: str) -> str:
    for family in ("image", "video", "audio", "text"):
        if mime_type.startswith(family + "/"):
            return family
    if "pdf" in mime_type:
        return "pdf"
    # office formats all contain "officedocument"
    if "sheet" in mime_type or "excel" in mime_type:
        return "spreadsheet"
    if "presentation" in mime_type or "powerpoint" in mime_type:
        return "presentation"
    if "word" in mime_type or "document" in mime_type:
        return "document"
    if any(marker in mime_type for marker in ("zip", "compressed", "tar", "gzip")):
        return "archive"
    return "file"


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    divisor, exponent = 1024, 0
    remaining = size // 1024
    while remaining >= 1024 and exponent < len(SIZE_UNITS) - 1:
        divisor *= 1024
        exponent += 1
        remaining //= 1024
    return f"{size / divisor:.1f} {SIZE_UNITS[exponent]}B"


class DirectoryScanner:
    """One-level listing of a folder straight from the live filesystem."""

    def __init__(self, accessor: SafeFileAccessor):
        self.accessor = accessor

    def file_entry(self, relative_path: str, stat_result: Optional[os.stat_result] = None) -> FileEntry:
        target = self.accessor.resolve(relative_path, allow_root=False)
        if stat_result is None:
            if not target.is_file():
                raise NotFoundError("File not found", {"path": relative_path})
            try:
                stat_result = target.stat()
            except FileNotFoundError:
                raise NotFoundError("File not found", {"path": relative_path})
        mime_type = mime_type_for(target.name)
        return FileEntry(
            name=target.name,
            path=self.accessor.to_relative(target),
            size=stat_result.st_size,
            mime_type=mime_type,
            extension=os.path.splitext(target.name)[1],
            created_at=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc),
            icon=icon_for(mime_type),
            formatted_size=format_size(stat_result.st_size),
        )

    def scan(self, folder_path: Optional[str]) -> Tuple[List[FileEntry], List[FolderEntry]]:
        directory = self.accessor.resolve(folder_path)
        if not directory.is_dir():
            raise NotFoundError("Folder not found", {"path": folder_path})

        files: List[FileEntry] = []
        folders: List[FolderEntry] = []
        try:
            entries = list(os.scandir(directory))
        except FileNotFoundError:
            raise NotFoundError("Folder not found", {"path": folder_path})
        except OSError as error:
            logger.error("Failed to read directory %s: %s", directory, error)
            raise FileSystemError("Failed to list files", str(directory), error)

        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                stat_result = entry.stat(follow_symlinks=False)
            except OSError as error:
                # an unreadable entry never aborts the listing
                logger.debug("Skipping unreadable entry %s: %s", entry.path, error)
                continue

            relative = self.accessor.to_relative(directory / entry.name)
            if is_dir:
                folders.append(FolderEntry(
                    name=entry.name,
                    path=relative,
                    created_at=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc),
                    size=0,
                ))
            elif entry.is_file(follow_symlinks=False):
                files.append(self.file_entry(relative, stat_result))

        files.sort(key=lambda item: item.name.lower())
        folders.sort(key=lambda item: item.name.lower())
        return files, folders
