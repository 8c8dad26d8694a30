import logging
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from services.FileStorage import FileStorage
from schemas.file_schema import BulkDeleteFailure, BulkDeleteResult
from utils.errors import DriveError, FileSystemError

logger = logging.getLogger(__name__)


class BulkOperationCoordinator:
    """Applies per-file operations to many identifiers, collecting failures instead of raising."""

    def __init__(self, storage: FileStorage):
        self.storage = storage

    def bulk_delete(self, identifiers: Iterable[str]) -> BulkDeleteResult:
        deleted_count = 0
        failures = []

        for identifier in identifiers:
            try:
                self.storage.delete(identifier)
            except FileSystemError as error:
                self.storage.db.rollback()
                logger.error("Bulk delete failed for %s (%s): %s", identifier, error.path, error.cause)
                failures.append(BulkDeleteFailure(identifier=identifier, reason=error.message))
            except DriveError as error:
                self.storage.db.rollback()
                failures.append(BulkDeleteFailure(identifier=identifier, reason=error.message))
            except SQLAlchemyError as error:
                self.storage.db.rollback()
                logger.error("Bulk delete metadata failure for %s: %s", identifier, error)
                failures.append(BulkDeleteFailure(identifier=identifier, reason="Failed to delete file"))
            else:
                deleted_count += 1

        logger.info("Bulk delete: %d deleted, %d failed", deleted_count, len(failures))
        return BulkDeleteResult(deleted_count=deleted_count, failures=failures)
