import logging
import os
import re
import uuid
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional, Tuple

from utils.errors import FileSystemError, FileTooLargeError, PathTraversalError, ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
DEFAULT_BASE_NAME = "file"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_UNSAFE_EXT_CHARS = re.compile(r"[^A-Za-z0-9]")


class SafeFileAccessor:
    """
    Gatekeeper for everything that touches the storage root.

    All caller supplied paths are relative to the root and use forward
    slashes. Any path that would land outside the root is refused with
    PathTraversalError before the filesystem is modified.
    """

    def __init__(self, storage_root: str):
        root = Path(storage_root)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            logger.error("Cannot create storage root %s: %s", root, error)
            raise FileSystemError("Storage is unavailable", str(root), error)
        self.root = root.resolve()

    def resolve(self, relative_path: Optional[str], allow_root: bool = True) -> Path:
        raw = (relative_path or "").replace("\\", "/")
        segments = []
        for segment in raw.split("/"):
            if segment in ("", "."):
                continue
            if segment == ".." or "\x00" in segment:
                logger.warning("Path traversal attempt rejected: %r", relative_path)
                raise PathTraversalError(raw)
            segments.append(segment)

        resolved = self.root.joinpath(*segments).resolve()
        if resolved == self.root:
            if allow_root:
                return resolved
            raise PathTraversalError(raw)
        if self.root not in resolved.parents:
            logger.warning("Path escaping storage root rejected: %r -> %s", relative_path, resolved)
            raise PathTraversalError(raw)
        return resolved

    def to_relative(self, path: Path) -> str:
        relative = path.relative_to(self.root)
        return PurePosixPath(*relative.parts).as_posix() if relative.parts else ""

    def normalize(self, relative_path: Optional[str]) -> str:
        return self.to_relative(self.resolve(relative_path))

    @staticmethod
    def split_filename(name: str) -> Tuple[str, str]:
        base_name = PurePosixPath((name or "").replace("\\", "/")).name
        stem, ext = os.path.splitext(base_name)
        return stem, ext

    @classmethod
    def sanitize_filename(cls, name: str) -> str:
        stem, _ = cls.split_filename(name)
        sanitized = _UNSAFE_NAME_CHARS.sub("", stem.replace(" ", "_"))
        return sanitized or DEFAULT_BASE_NAME

    @classmethod
    def sanitize_extension(cls, name: str) -> str:
        _, ext = cls.split_filename(name)
        cleaned = _UNSAFE_EXT_CHARS.sub("", ext[1:])
        return f".{cleaned}" if cleaned else ""

    @classmethod
    def unique_filename(cls, name: str) -> str:
        suffix = uuid.uuid4().hex[:8]
        return f"{cls.sanitize_filename(name)}_{suffix}{cls.sanitize_extension(name)}"

    def ensure_directory(self, relative_path: Optional[str]) -> Path:
        directory = self.resolve(relative_path)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            logger.error("Failed to create directory %s: %s", directory, error)
            raise FileSystemError("Failed to create directory", str(directory), error)
        return directory

    def save_stream(self, stream: BinaryIO, folder_path: Optional[str], original_name: str,
                    max_size: Optional[int] = None) -> Tuple[str, str, int]:
        """
        Copy ``stream`` into ``folder_path`` under a fresh unique name.

        Returns ``(stored_name, relative_path, size)``. The payload is copied
        chunk by chunk; a partially written file is removed on any failure.
        """
        directory = self.ensure_directory(folder_path)
        stored_name = self.unique_filename(original_name)
        target = self.resolve(self.to_relative(directory / stored_name), allow_root=False)

        try:
            destination = open(target, "xb")
        except OSError as error:
            logger.error("Failed to create upload target %s: %s", target, error)
            raise FileSystemError("Failed to save file", str(target), error)

        size = 0
        try:
            with destination:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if max_size is not None and size > max_size:
                        raise FileTooLargeError(max_size)
                    destination.write(chunk)
        except FileTooLargeError:
            self._discard(target)
            raise
        except OSError as error:
            self._discard(target)
            logger.error("Failed to save upload to %s: %s", target, error)
            raise FileSystemError("Failed to save file", str(target), error)

        return stored_name, self.to_relative(target), size

    def remove_file(self, relative_path: str) -> bool:
        """Delete one file. Returns False when it was already gone."""
        target = self.resolve(relative_path, allow_root=False)
        if target.is_dir():
            raise ValidationError("Path refers to a folder, not a file", {"path": relative_path})
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as error:
            logger.error("Failed to delete file %s: %s", target, error)
            raise FileSystemError("Failed to delete file", str(target), error)
        return True

    def is_file(self, relative_path: str) -> bool:
        return self.resolve(relative_path, allow_root=False).is_file()

    @staticmethod
    def _discard(target: Path):
        try:
            target.unlink()
        except FileNotFoundError:
            pass
        except OSError as error:
            logger.error("Failed to remove partial file %s: %s", target, error)
