import logging
from typing import BinaryIO, Optional

from sqlalchemy.orm import Session

from models.file_model import DriveFile
from models.file_share_model import FileShare
from schemas.file_schema import FileEntry
from services.DirectoryScanner import DirectoryScanner, mime_type_for
from services.FolderHierarchyManager import FolderHierarchyManager
from services.SafeFileAccessor import SafeFileAccessor
from utils.errors import ConflictError, FileSystemError, NotFoundError, PathTraversalError, ValidationError

logger = logging.getLogger(__name__)


class FileStorage:
    """Paired disk + metadata mutations for single files."""

    def __init__(self, db: Session, accessor: SafeFileAccessor, max_upload_size: Optional[int] = None):
        self.db = db
        self.accessor = accessor
        self.max_upload_size = max_upload_size
        self.folders = FolderHierarchyManager(db, accessor)
        self.scanner = DirectoryScanner(accessor)

    def upload(self, stream: BinaryIO, original_name: str, folder_path: Optional[str] = "") -> FileEntry:
        folder = self.folders.get_folder(folder_path)
        target_folder = self.folders.materialized_path(folder)

        stored_name, relative_path, size = self.accessor.save_stream(
            stream, target_folder, original_name, self.max_upload_size
        )
        extension = self.accessor.sanitize_extension(original_name)

        drive_file = DriveFile(
            name=stored_name,
            original_name=original_name,
            path=relative_path,
            size=size,
            mime_type=mime_type_for(stored_name),
            extension=extension,
            folder_id=folder.id if folder else None,
        )
        self.db.add(drive_file)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.accessor.remove_file(relative_path)
            raise

        logger.info("File uploaded: name=%s, size=%d, path=%s", stored_name, size, relative_path)
        return self.scanner.file_entry(relative_path)

    def describe(self, file_path: str) -> FileEntry:
        return self.scanner.file_entry(file_path)

    def delete(self, file_path: str) -> bool:
        """
        Remove a file from disk and metadata.

        Deleting a file that is already gone is a successful no-op; returns
        whether anything was actually removed.
        """
        relative_path = self.accessor.normalize(file_path)
        removed_from_disk = self.accessor.remove_file(relative_path)
        removed_rows = self.db.query(DriveFile).filter(DriveFile.path == relative_path).delete(synchronize_session=False)
        self.db.commit()

        if removed_from_disk or removed_rows:
            logger.info("File deleted: %s", relative_path)
        return bool(removed_from_disk or removed_rows)

    def rename(self, file_path: str, new_name: str) -> FileEntry:
        """
        Rename a file inside its folder, keeping the current extension.

        The new name is sanitized like an uploaded name. Metadata rows and
        share links follow the file to its new path.
        """
        cleaned = (new_name or "").strip()
        if not cleaned:
            raise ValidationError("Name is required")
        if "/" in cleaned or "\\" in cleaned or "\x00" in cleaned or cleaned in (".", ".."):
            logger.warning("Rename to a name outside the folder rejected: %r", new_name)
            raise PathTraversalError(cleaned)

        old_path = self.accessor.normalize(file_path)
        source = self.accessor.resolve(old_path, allow_root=False)
        if not source.is_file():
            raise NotFoundError("File not found", {"path": file_path})

        renamed = self.accessor.sanitize_filename(cleaned) + self.accessor.sanitize_extension(source.name)
        target = self.accessor.resolve(self.accessor.to_relative(source.parent / renamed), allow_root=False)
        new_path = self.accessor.to_relative(target)
        if new_path == old_path:
            return self.scanner.file_entry(old_path)
        if target.exists():
            raise ConflictError("A file with that name already exists", {"path": new_path})

        try:
            source.rename(target)
        except FileNotFoundError:
            raise NotFoundError("File not found", {"path": file_path})
        except OSError as error:
            logger.error("Failed to rename %s to %s: %s", source, target, error)
            raise FileSystemError("Failed to rename file", str(source), error)

        self.db.query(DriveFile).filter(DriveFile.path == old_path).update(
            {DriveFile.name: renamed, DriveFile.path: new_path}
        )
        self.db.query(FileShare).filter(FileShare.file_path == old_path).update({FileShare.file_path: new_path})
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            target.rename(source)
            raise

        logger.info("File renamed: %s -> %s", old_path, new_path)
        return self.scanner.file_entry(new_path)
