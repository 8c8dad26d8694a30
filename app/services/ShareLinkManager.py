import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError as DatabaseIntegrityError
from sqlalchemy.orm import Session

from models.file_model import DriveFile
from models.file_share_model import FileShare
from schemas.share_schema import ShareInfo
from services.DirectoryScanner import mime_type_for
from services.SafeFileAccessor import SafeFileAccessor
from utils.errors import (
    FileSystemError,
    IntegrityError,
    NotFoundError,
    PathTraversalError,
    ShareExpiredError,
    ShareLimitReachedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16
MAX_TOKEN_ATTEMPTS = 5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def generate_share_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


@dataclass
class RedeemedShare:
    token: str
    path: Path
    name: str
    mime_type: str


class ShareLinkManager:
    """
    Time and usage bounded access grants for single files.

    ``inspect`` is read-only and safe for preview pages; ``redeem`` consumes
    one download. The download budget is enforced by a single conditional
    UPDATE so that concurrent redemptions can never overshoot it.
    """

    def __init__(self, db: Session, accessor: SafeFileAccessor):
        self.db = db
        self.accessor = accessor

    def _get_share(self, token: str) -> FileShare:
        share = self.db.query(FileShare).filter(FileShare.token == token).first()
        if share is None:
            logger.warning("Unknown share token requested: %s", token)
            raise NotFoundError("Shared file not found", {"token": token})
        return share

    def _shared_file(self, share: FileShare) -> Path:
        try:
            target = self.accessor.resolve(share.file_path, allow_root=False)
        except PathTraversalError:
            raise NotFoundError("File not found", {"token": share.token})
        if not target.is_file():
            logger.warning("Shared file missing on disk: token=%s, file=%s", share.token, share.file_path)
            raise NotFoundError("File not found", {"token": share.token})
        return target

    @staticmethod
    def is_expired(share: FileShare, now: Optional[datetime] = None) -> bool:
        expires_at = as_utc(share.expires_at)
        return expires_at is not None and (now or utc_now()) > expires_at

    def issue(self, file_path: str, expiry_hours: int = 0, max_downloads: Optional[int] = None) -> FileShare:
        if expiry_hours is None or expiry_hours < 0:
            raise ValidationError("expiry_hours must be zero or positive")
        if max_downloads is not None and max_downloads < 1:
            raise ValidationError("max_downloads must be at least 1")

        relative_path = self.accessor.normalize(file_path)
        if not self.accessor.is_file(relative_path):
            raise NotFoundError("File not found", {"path": file_path})

        expires_at = utc_now() + timedelta(hours=expiry_hours) if expiry_hours > 0 else None

        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            share = FileShare(
                token=generate_share_token(),
                file_path=relative_path,
                expires_at=expires_at,
                max_downloads=max_downloads,
                downloads=0,
            )
            self.db.add(share)
            try:
                self.db.flush()
            except DatabaseIntegrityError:
                self.db.rollback()
                logger.warning("Share token collision, retrying (attempt %d)", attempt)
                continue

            self.db.query(DriveFile).filter(DriveFile.path == relative_path).update(
                {DriveFile.share_token: share.token, DriveFile.share_expiry: expires_at},
                synchronize_session=False,
            )
            self.db.commit()
            self.db.refresh(share)
            logger.info("Share link created: token=%s, file=%s, expiry=%s, max_downloads=%s",
                        share.token, relative_path, expires_at, max_downloads)
            return share

        raise IntegrityError("Could not allocate a unique share token")

    def inspect(self, token: str) -> ShareInfo:
        share = self._get_share(token)
        if self.is_expired(share):
            logger.warning("Expired share link inspected: token=%s", token)
            raise ShareExpiredError(token)
        target = self._shared_file(share)
        try:
            size = target.stat().st_size
        except FileNotFoundError:
            raise NotFoundError("File not found", {"token": token})
        except OSError as error:
            logger.error("Failed to read shared file %s: %s", target, error)
            raise FileSystemError("Failed to read file", str(target), error)
        return ShareInfo(
            name=target.name,
            size=size,
            mime_type=mime_type_for(target.name),
            downloads=share.downloads,
            max_downloads=share.max_downloads,
            expires_at=as_utc(share.expires_at),
        )

    def redeem(self, token: str) -> RedeemedShare:
        share = self._get_share(token)
        if self.is_expired(share):
            logger.warning("Expired share link accessed: token=%s", token)
            raise ShareExpiredError(token)
        target = self._shared_file(share)

        now = utc_now()
        claimed = (
            self.db.query(FileShare)
            .filter(
                FileShare.token == token,
                or_(FileShare.max_downloads.is_(None), FileShare.downloads < FileShare.max_downloads),
                or_(FileShare.expires_at.is_(None), FileShare.expires_at >= now),
            )
            .update({FileShare.downloads: FileShare.downloads + 1}, synchronize_session=False)
        )
        if not claimed:
            self.db.rollback()
            self._raise_unclaimed(token, now)

        self.db.query(DriveFile).filter(DriveFile.path == share.file_path).update(
            {DriveFile.downloads: DriveFile.downloads + 1}, synchronize_session=False
        )
        self.db.commit()

        logger.info("Shared file redeemed: token=%s, file=%s", token, share.file_path)
        return RedeemedShare(token=token, path=target, name=target.name, mime_type=mime_type_for(target.name))

    def _raise_unclaimed(self, token: str, now: datetime):
        share = self.db.query(FileShare).filter(FileShare.token == token).first()
        if share is None:
            raise NotFoundError("Shared file not found", {"token": token})
        self.db.refresh(share)
        if self.is_expired(share, now):
            raise ShareExpiredError(token)
        logger.warning("Download limit reached: token=%s, downloads=%s", token, share.downloads)
        raise ShareLimitReachedError(token, share.max_downloads)

    def _clear_denormalized(self, tokens):
        if tokens:
            self.db.query(DriveFile).filter(DriveFile.share_token.in_(tokens)).update(
                {DriveFile.share_token: None, DriveFile.share_expiry: None},
                synchronize_session=False,
            )

    def revoke(self, token: str):
        share = self._get_share(token)
        self._clear_denormalized([share.token])
        self.db.delete(share)
        self.db.commit()
        logger.info("Share link revoked: token=%s", token)

    def revoke_for_path(self, file_path: str) -> int:
        relative_path = self.accessor.normalize(file_path)
        tokens = [token for (token,) in self.db.query(FileShare.token).filter(FileShare.file_path == relative_path)]
        self._clear_denormalized(tokens)
        removed = self.db.query(FileShare).filter(FileShare.file_path == relative_path).delete(synchronize_session=False)
        self.db.commit()
        logger.info("Share links revoked for %s: %d", relative_path, removed)
        return removed

    def purge_expired(self) -> int:
        now = utc_now()
        expired = self.db.query(FileShare.token).filter(FileShare.expires_at.is_not(None), FileShare.expires_at < now)
        tokens = [token for (token,) in expired]
        self._clear_denormalized(tokens)
        removed = 0
        if tokens:
            removed = self.db.query(FileShare).filter(FileShare.token.in_(tokens)).delete(synchronize_session=False)
        self.db.commit()
        logger.info("Expired share links purged: %d", removed)
        return removed
