import os

from fastapi import Depends, HTTPException, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from database import get_db
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from services.BulkOperationCoordinator import BulkOperationCoordinator
from services.DirectoryScanner import DirectoryScanner
from services.FileStorage import FileStorage
from services.FolderHierarchyManager import FolderHierarchyManager
from services.SafeFileAccessor import SafeFileAccessor
from services.ShareLinkManager import ShareLinkManager

oauth2_scheme = HTTPBearer()

DEFAULT_STORAGE_DIR = "./storage"
DEFAULT_MAX_UPLOAD_SIZE = 100 * 1024 * 1024


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme)) -> str:
    """Caller identity: the subject of a valid bearer token."""
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, os.getenv("SECRET_KEY"), algorithms=[os.getenv("ALGORITHM", "HS256")])
        subject: str = payload.get("sub")
        if subject is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    return subject


def get_max_upload_size() -> int:
    return int(os.getenv("MAX_UPLOAD_SIZE", DEFAULT_MAX_UPLOAD_SIZE))


def get_accessor() -> SafeFileAccessor:
    return SafeFileAccessor(os.getenv("STORAGE_DIR", DEFAULT_STORAGE_DIR))


def get_scanner(accessor: SafeFileAccessor = Depends(get_accessor)) -> DirectoryScanner:
    return DirectoryScanner(accessor)


def get_folder_manager(db: Session = Depends(get_db),
                       accessor: SafeFileAccessor = Depends(get_accessor)) -> FolderHierarchyManager:
    return FolderHierarchyManager(db, accessor)


def get_share_manager(db: Session = Depends(get_db),
                      accessor: SafeFileAccessor = Depends(get_accessor)) -> ShareLinkManager:
    return ShareLinkManager(db, accessor)


def get_file_storage(db: Session = Depends(get_db),
                     accessor: SafeFileAccessor = Depends(get_accessor)) -> FileStorage:
    return FileStorage(db, accessor, get_max_upload_size())


def get_bulk_coordinator(storage: FileStorage = Depends(get_file_storage)) -> BulkOperationCoordinator:
    return BulkOperationCoordinator(storage)
