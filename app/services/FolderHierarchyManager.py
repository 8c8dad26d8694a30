import logging
import shutil
from datetime import datetime, timezone
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from models.file_model import DriveFile
from models.folder_model import Folder
from schemas.file_schema import FolderEntry
from services.SafeFileAccessor import SafeFileAccessor
from utils.errors import FileSystemError, IntegrityError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_FOLDER_DEPTH = 64


class FolderHierarchyManager:
    """
    Folder tree kept in the ``folders`` table and mirrored on disk.

    Folders are addressed by their materialized path ("a/b/c"). The rows are
    authoritative for identity and hierarchy; every disk location is still
    derived through the SafeFileAccessor.
    """

    def __init__(self, db: Session, accessor: SafeFileAccessor):
        self.db = db
        self.accessor = accessor

    @staticmethod
    def _segments(folder_path: Optional[str]) -> List[str]:
        return [part for part in (folder_path or "").replace("\\", "/").split("/") if part not in ("", ".")]

    @staticmethod
    def validate_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned or cleaned in (".", "..") or "/" in cleaned or "\\" in cleaned or "\x00" in cleaned:
            raise ValidationError("Invalid folder name", {"name": name})
        return cleaned

    def _child(self, parent_id: Optional[int], name: str) -> Optional[Folder]:
        query = self.db.query(Folder).filter(Folder.name == name)
        if parent_id is None:
            query = query.filter(Folder.parent_id.is_(None))
        else:
            query = query.filter(Folder.parent_id == parent_id)
        return query.order_by(Folder.id).first()

    def get_folder(self, folder_path: Optional[str]) -> Optional[Folder]:
        """Folder row for a materialized path, None for the root."""
        self.accessor.resolve(folder_path)
        folder = None
        for segment in self._segments(folder_path):
            folder = self._child(folder.id if folder else None, segment)
            if folder is None:
                raise NotFoundError("Folder not found", {"path": folder_path})
        return folder

    def ancestors(self, folder: Folder) -> List[Folder]:
        """Chain from the root down to ``folder`` following parent_id."""
        chain = []
        visited: Set[int] = set()
        current = folder
        while current is not None:
            if current.id in visited:
                logger.error("Cycle detected in folder hierarchy at folder id=%s", current.id)
                raise IntegrityError("Folder hierarchy is corrupted", {"folder_id": current.id})
            if len(chain) >= MAX_FOLDER_DEPTH:
                raise IntegrityError("Folder hierarchy is too deep", {"folder_id": folder.id})
            visited.add(current.id)
            chain.append(current)
            current = self.db.get(Folder, current.parent_id) if current.parent_id is not None else None
        chain.reverse()
        return chain

    def materialized_path(self, folder: Optional[Folder]) -> str:
        if folder is None:
            return ""
        return "/".join(item.name for item in self.ancestors(folder))

    def _entry(self, folder: Folder, path: str) -> FolderEntry:
        created_at = folder.created_at or datetime.now(timezone.utc)
        try:
            created_at = datetime.fromtimestamp(self.accessor.resolve(path).stat().st_mtime, tz=timezone.utc)
        except OSError:
            pass
        return FolderEntry(name=folder.name, path=path, created_at=created_at, size=0)

    def create_folder(self, name: str, parent_path: Optional[str] = "") -> FolderEntry:
        name = self.validate_name(name)
        parent = self.get_folder(parent_path)
        if parent is not None and len(self.ancestors(parent)) >= MAX_FOLDER_DEPTH:
            raise ValidationError("Folder hierarchy is too deep", {"path": parent_path})

        parent_materialized = self.materialized_path(parent)
        path = f"{parent_materialized}/{name}" if parent_materialized else name

        folder = self._child(parent.id if parent else None, name)
        if folder is None:
            self.accessor.ensure_directory(path)
            folder = Folder(name=name, parent_id=parent.id if parent else None)
            self.db.add(folder)
            self.db.commit()
            self.db.refresh(folder)
            logger.info("Folder created: %s (id=%s)", path, folder.id)
        else:
            self.accessor.ensure_directory(path)
        return self._entry(folder, path)

    def breadcrumb(self, folder_path: str) -> List[FolderEntry]:
        folder = self.get_folder(folder_path)
        if folder is None:
            return []
        entries = []
        current_path = ""
        for item in self.ancestors(folder):
            current_path = f"{current_path}/{item.name}" if current_path else item.name
            entries.append(self._entry(item, current_path))
        return entries

    def descendant_ids(self, root: Folder) -> List[int]:
        ordered = []
        visited: Set[int] = set()
        pending = [root.id]
        while pending:
            folder_id = pending.pop()
            if folder_id in visited:
                logger.error("Cycle detected below folder id=%s at id=%s", root.id, folder_id)
                raise IntegrityError("Folder hierarchy is corrupted", {"folder_id": folder_id})
            visited.add(folder_id)
            ordered.append(folder_id)
            children = self.db.query(Folder.id).filter(Folder.parent_id == folder_id).all()
            pending.extend(child_id for (child_id,) in children)
        return ordered

    def delete_folder(self, folder_path: str) -> int:
        """
        Delete a folder with every descendant folder and file.

        The subtree is collected before anything is touched, so a corrupted
        hierarchy aborts with IntegrityError without partial deletion.
        Returns the number of folders removed.
        """
        folder = self.get_folder(folder_path)
        if folder is None:
            raise ValidationError("The root folder cannot be deleted")
        path = self.materialized_path(folder)
        directory = self.accessor.resolve(path, allow_root=False)

        folder_ids = self.descendant_ids(folder)
        files = self.db.query(DriveFile).filter(DriveFile.folder_id.in_(folder_ids)).all()

        for drive_file in files:
            self.accessor.remove_file(drive_file.path)

        self.db.query(DriveFile).filter(DriveFile.folder_id.in_(folder_ids)).delete(synchronize_session=False)
        self.db.query(Folder).filter(Folder.id.in_(folder_ids)).delete(synchronize_session=False)
        self.db.commit()

        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            pass
        except OSError as error:
            logger.error("Failed to remove folder tree %s: %s", directory, error)
            raise FileSystemError("Failed to delete folder", str(directory), error)

        logger.info("Folder deleted: %s (%d folders, %d files)", path, len(folder_ids), len(files))
        return len(folder_ids)
