from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from starlette.responses import FileResponse

from dependencies import (
    get_accessor,
    get_bulk_coordinator,
    get_current_user,
    get_file_storage,
    get_scanner,
    get_share_manager,
)
from schemas.file_schema import (
    BulkDeleteRequest,
    BulkDeleteResult,
    FileEntry,
    FileListResponse,
    MessageResponse,
    RenameRequest,
)
from schemas.share_schema import ShareCreate, ShareLinkResponse
from services.BulkOperationCoordinator import BulkOperationCoordinator
from services.DirectoryScanner import DirectoryScanner, mime_type_for
from services.FileStorage import FileStorage
from services.SafeFileAccessor import SafeFileAccessor
from services.ShareLinkManager import ShareLinkManager, as_utc
from utils.errors import NotFoundError

router = APIRouter()


@router.post("/upload", response_model=FileEntry, status_code=status.HTTP_201_CREATED,
             summary="Upload a file into a folder",
             description="""
                            Streams the uploaded file into the selected folder under a unique, sanitized name.
                            The original filename is kept as metadata.
                          """,
             responses={
                 400: {"description": "Invalid folder path"},
                 401: {"description": "Not authenticated"},
                 404: {"description": "Folder not found"},
                 413: {"description": "Upload file is too large"},
             })
def upload_file(file: UploadFile = File(...),
                folder_path: str = Form(""),
                user: str = Depends(get_current_user),
                storage: FileStorage = Depends(get_file_storage)):
    return storage.upload(file.file, file.filename or "", folder_path)


@router.get("", response_model=FileListResponse,
            summary="List the content of a folder",
            description="""
                            Returns the files and folders directly inside the given folder, one level only.
                        """,
            responses={
                400: {"description": "Invalid folder path"},
                401: {"description": "Not authenticated"},
                404: {"description": "Folder not found"},
            })
def list_files(folder_path: str = "",
               user: str = Depends(get_current_user),
               accessor: SafeFileAccessor = Depends(get_accessor),
               scanner: DirectoryScanner = Depends(get_scanner)):
    files, folders = scanner.scan(folder_path)
    return FileListResponse(
        files=files,
        folders=folders,
        total_files=len(files),
        total_size=sum(entry.size for entry in files),
        folder_path=accessor.normalize(folder_path),
    )


@router.post("/bulk-delete", response_model=BulkDeleteResult,
             summary="Delete many files at once",
             description="""
                            Every identifier is processed independently. Files that are already gone count as deleted,
                            other failures are reported per identifier.
                          """,
             responses={401: {"description": "Not authenticated"}})
def bulk_delete(request: BulkDeleteRequest,
                user: str = Depends(get_current_user),
                coordinator: BulkOperationCoordinator = Depends(get_bulk_coordinator)):
    return coordinator.bulk_delete(request.identifiers)


@router.get("/info/{file_path:path}", response_model=FileEntry,
            summary="Information about a single file",
            responses={
                401: {"description": "Not authenticated"},
                404: {"description": "File not found"},
            })
def file_info(file_path: str,
              user: str = Depends(get_current_user),
              storage: FileStorage = Depends(get_file_storage)):
    return storage.describe(file_path)


def _serve(accessor: SafeFileAccessor, file_path: str, disposition: str) -> FileResponse:
    target = accessor.resolve(file_path, allow_root=False)
    if not target.is_file():
        raise NotFoundError("File not found", {"path": file_path})
    return FileResponse(
        path=target,
        filename=target.name,
        media_type=mime_type_for(target.name),
        content_disposition_type=disposition,
    )


@router.get("/download/{file_path:path}",
            summary="Download a file",
            responses={
                401: {"description": "Not authenticated"},
                404: {"description": "File not found"},
                200: {"description": "File content as an attachment"},
            })
def download_file(file_path: str,
                  user: str = Depends(get_current_user),
                  accessor: SafeFileAccessor = Depends(get_accessor)):
    return _serve(accessor, file_path, "attachment")


@router.get("/preview/{file_path:path}",
            summary="Preview a file inline",
            responses={
                401: {"description": "Not authenticated"},
                404: {"description": "File not found"},
            })
def preview_file(file_path: str,
                 user: str = Depends(get_current_user),
                 accessor: SafeFileAccessor = Depends(get_accessor)):
    return _serve(accessor, file_path, "inline")


@router.post("/share/{file_path:path}", response_model=ShareLinkResponse,
             summary="Create a share link for a file",
             description="""
                            Issues a token granting public access to the file. The link may expire after the given
                            number of hours and may be limited to a number of downloads.
                          """,
             responses={
                 400: {"description": "Invalid expiry or download limit"},
                 401: {"description": "Not authenticated"},
                 404: {"description": "File not found"},
             })
def create_share_link(file_path: str,
                      request: Optional[ShareCreate] = None,
                      user: str = Depends(get_current_user),
                      shares: ShareLinkManager = Depends(get_share_manager)):
    request = request or ShareCreate()
    share = shares.issue(file_path, request.expiry_hours, request.max_downloads)
    return ShareLinkResponse(
        file_name=share.file_path,
        share_token=share.token,
        share_url=f"/share/{share.token}/download",
        expires_at=as_utc(share.expires_at),
        max_downloads=share.max_downloads,
    )


@router.delete("/share/{file_path:path}", response_model=MessageResponse,
               summary="Remove every share link of a file",
               responses={401: {"description": "Not authenticated"}})
def remove_share_links(file_path: str,
                       user: str = Depends(get_current_user),
                       shares: ShareLinkManager = Depends(get_share_manager)):
    removed = shares.revoke_for_path(file_path)
    return {"detail": f"Share links removed: {removed}"}


@router.delete("/{file_path:path}", response_model=MessageResponse,
               summary="Delete a file",
               description="""
                             Removes the file from disk and metadata. Deleting a file that no longer exists succeeds.
                           """,
               responses={
                   400: {"description": "Invalid path"},
                   401: {"description": "Not authenticated"},
               })
def delete_file(file_path: str,
                user: str = Depends(get_current_user),
                storage: FileStorage = Depends(get_file_storage)):
    storage.delete(file_path)
    return {"detail": "File deleted"}


@router.patch("/{file_path:path}", response_model=FileEntry,
              summary="Rename a file",
              description="""
                            Renames the file inside its folder. The new name is sanitized and the original extension
                            is kept. Share links of the file follow it to the new name.
                          """,
              responses={
                  400: {"description": "Invalid name"},
                  401: {"description": "Not authenticated"},
                  404: {"description": "File not found"},
                  409: {"description": "A file with that name already exists"},
              })
def rename_file(file_path: str,
                request: RenameRequest,
                user: str = Depends(get_current_user),
                storage: FileStorage = Depends(get_file_storage)):
    return storage.rename(file_path, request.name)
